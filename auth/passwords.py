"""
auth/passwords.py -- Password hashing and constant-time credential checks.

Passwords: bcrypt, used directly (no passlib wrapper). passlib's internal
     wrap-bug detection builds a password longer than 72 bytes, which bcrypt
     4.x rejects outright. The cost factor comes from Settings.bcrypt_rounds so
     tests can run at the minimum cost of 4.

Timing equalization [C1]: authenticate_account() always runs bcrypt, against
     _DUMMY_HASH when the email is unknown, so response time does not reveal
     whether an account exists.

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import bcrypt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import Account
    from auth.store import CredentialStore


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt silently truncates input past 72 bytes. The API layer caps
    passwords at 72 characters so the limit is never reached with ASCII input.
    """
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in storage.
        return False


# Computed once at module load so the first failed login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("shopgate_timing_dummy")


def authenticate_account(store: CredentialStore, email: str, password: str) -> Account | None:
    """Return the Account whose email and password match, or None.

    Always runs bcrypt whether or not the account exists [C1]:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)
    """
    account = store.get_by_email(email)
    if account is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, account.hashed_password):
        return None
    return account
