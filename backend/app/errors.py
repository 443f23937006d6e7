# Overview: Domain error taxonomy shared by services and route handlers.

"""
Every failure a service can report is one of these classes.

Services raise them; route handlers roll back the session and answer with
``exc.to_dict()`` and ``exc.status_code``. The ``code`` values are stable
and safe to match on in clients.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class. Subclasses pin ``code`` and ``status_code``."""

    code = "error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class ValidationError(DomainError, ValueError):
    """400-level input problem."""

    code = "validation_error"
    status_code = 400


class InvalidTransition(DomainError):
    """Requested status is not a direct successor of the current one."""

    code = "invalid_transition"
    status_code = 400


class AuctionNotActive(DomainError):
    code = "auction_not_active"
    status_code = 400


class BidTooLow(DomainError):
    code = "bid_too_low"
    status_code = 400


class AlreadySettled(DomainError):
    code = "already_settled"
    status_code = 409


class ReferencedEntityInUse(DomainError):
    """A staff member or vehicle is still assigned to an open appointment."""

    code = "referenced_entity_in_use"
    status_code = 409


class ConflictError(DomainError, ValueError):
    """409-level uniqueness conflict (e.g., duplicate plate number)."""

    code = "conflict"
    status_code = 409


class NotFound(DomainError):
    code = "not_found"
    status_code = 404


class StoreUnavailable(DomainError):
    """The store timed out, stayed locked, or kept failing after retries."""

    code = "store_unavailable"
    status_code = 503


class Unauthorized(DomainError):
    code = "unauthorized"
    status_code = 401


class Forbidden(DomainError):
    code = "forbidden"
    status_code = 403
