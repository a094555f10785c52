"""Error taxonomy shared by the forms, signature and workflows features.

Every error carries a stable ``code`` and the HTTP ``status`` an API layer
should map it to, plus a human-readable message.
"""
from __future__ import annotations


class FormSignError(Exception):
    """Base exception; unexpected failures surface as INTERNAL."""

    code = "INTERNAL"
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class NotFoundError(FormSignError):
    """Workflow, document or referenced field absent."""

    code = "NOT_FOUND"
    status = 404


class ForbiddenError(FormSignError):
    """Turn violation, already signed, or download before completion."""

    code = "FORBIDDEN"
    status = 403


class BadRequestError(FormSignError):
    """Malformed client input."""

    code = "BAD_REQUEST"
    status = 400


class ConflictError(FormSignError):
    """A concurrent write won the compare-and-swap on a record version."""

    code = "CONFLICT"
    status = 409


class InternalError(FormSignError):
    """Structural invariant violated."""


class SigningFailedError(InternalError):
    """The cryptographic signing step failed; no revision was produced."""
