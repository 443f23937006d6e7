# Overview: Service-layer session parsing; turns the login cookie into an acting user.

"""
Session Cookie Parsing

Login, registration and passwords belong to the external auth provider. What
reaches this backend is the cookie the login frontend persists (default name
``auth-storage``): URL-encoded JSON shaped like

    {"state": {"isAuthenticated": true,
               "user": {"id": 7, "role": "admin", "name": "Ada"}}}

Only ``id`` and ``role`` are trusted for authorization. A missing cookie, a
cookie that does not decode, ``isAuthenticated`` false, or a user without an
integer id all mean "no session".
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from urllib.parse import unquote


ROLES = ("admin", "user", "waste_disposal_merchant")


@dataclass(frozen=True)
class SessionUser:
    id: int
    role: str
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict:
        return {"id": self.id, "role": self.role, "name": self.name}


def parse_auth_cookie(raw: str | None) -> SessionUser | None:
    """Decode the auth cookie. Returns None when there is no usable session."""
    if not raw:
        return None
    try:
        data = json.loads(unquote(raw))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    state = data.get("state")
    if not isinstance(state, dict) or state.get("isAuthenticated") is not True:
        return None

    user = state.get("user")
    if not isinstance(user, dict):
        return None

    user_id = user.get("id")
    if isinstance(user_id, str) and user_id.strip().isdigit():
        user_id = int(user_id.strip())
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None

    role = user.get("role")
    if role not in ROLES:
        return None

    name = user.get("name")
    return SessionUser(id=user_id, role=role, name=name if isinstance(name, str) else None)
