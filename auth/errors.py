"""
auth/errors.py -- Named failures raised by the auth core.

Every error carries the HTTP status the API layer answers with and a default
client-facing message. Registration and login errors propagate to the route
handler; token errors are raised only inside the gates and AuthService, which
turn them into Reject responses or None before they reach a caller.

Layer rule: no imports outside the standard library.
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 401
    message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class EmailAlreadyRegistered(AuthError):
    status_code = 409
    message = "Email is already registered."


class InvalidCredentials(AuthError):
    status_code = 401
    message = "Invalid email or password."


class TokenMalformed(AuthError):
    status_code = 401
    message = "Authentication token is invalid."


class TokenExpired(AuthError):
    status_code = 401
    message = "Authentication token has expired."


class TokenRevoked(AuthError):
    status_code = 401
    message = "Authentication token has been revoked."


class AccountNotFound(AuthError):
    status_code = 404
    message = "Account not found."
