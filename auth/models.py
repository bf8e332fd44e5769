"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these classes only own the shape.

Layer rule: no imports from api/, web/, core/, or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """A registered identity.

    email is unique and stored lower-cased. id is None until CredentialStore
    assigns a UUID on save(). The auth core never mutates an account after
    creation.
    """

    name: str
    email: str
    hashed_password: str
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class SessionToken:
    """The server-side record of an issued session token.

    At most one row per account_id is expected. The store does not enforce
    that; AuthService.login() rotates by deleting before inserting.
    """

    account_id: str
    token: str
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried inside a signed token. Recomputed on every decode."""

    sub: str
    iat: int
    exp: int
    jti: str | None = None


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Request-scoped result of a successful gate check.

    Lives in request.state for exactly one request and is never persisted.
    """

    account: Account
    token: str
