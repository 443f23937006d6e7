# backend/wsgi.py
# Entry point for `flask` CLI (FLASK_APP=wsgi.py) and WSGI servers.
from app import create_app

app = create_app()
