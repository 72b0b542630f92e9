"""
auth/exceptions.py -- Failure taxonomy for the authentication core.

Each exception carries the HTTP status, a stable machine-readable code and the
client-facing message. api/main.py registers one handler for AuthError that
turns any of these into {"code": ..., "message": ...}.

InvalidCredentials is deliberately identical for "unknown email" and "wrong
password" so responses cannot be used to enumerate accounts.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 400
    code: str = "auth_error"
    message: str = "Error: Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    status_code = 401
    code = "bad_credentials"
    message = "Error: Wrong email or password"


class NotLoggedIn(AuthError):
    status_code = 403
    code = "not_logged_in"
    message = "Error: Not logged in"


class DuplicateKey(AuthError):
    """Raised by UserStore when the email UNIQUE constraint rejects a write."""

    status_code = 409
    code = "duplicate_key"
    message = "Error: Email already registered"
