"""
auth/tokens.py -- Session token signing/verification and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. A token carries only the account id (sub),
       issued-at and expiry. Every failure path returns False/None rather than
       raising -- callers treat any invalid token as unauthenticated.

  Keys: TokenCodec is constructed with its signing key instead of reading a
       module constant, so tests and key rotation inject keys explicitly. New
       tokens are always signed with the current key; fallback keys are only
       accepted for verification (see core/config.py for the rotation steps).

  Cookie: the token travels to browsers in an httpOnly cookie named "token".
       Its max_age matches the token lifetime so both expire together.

Layer rule: no imports from api/, web/, or catalog/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenPayload
from core.config import Settings, get_settings

logger = logging.getLogger("shopgate.auth")

_ALGORITHM = "HS256"

SESSION_COOKIE = "token"
DEFAULT_LIFETIME_SECONDS = 86400


class TokenCodec:
    """Stateless issue/verify of signed session tokens.

    Usage:
        codec = TokenCodec(settings.secret_key)
        token = codec.issue(account_id)
        codec.verify(token)                          # signature + expiry
        codec.verify(token, ignore_expiration=True)  # signature only
        codec.extract_account_id(token)              # account id or None
    """

    def __init__(
        self,
        secret_key: str,
        fallback_keys: Sequence[str] = (),
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenCodec requires a non-empty signing key.")
        self._signing_key = secret_key
        self._keys: tuple[str, ...] = (secret_key, *fallback_keys)
        self.lifetime_seconds = lifetime_seconds

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TokenCodec:
        settings = settings or get_settings()
        return cls(
            settings.secret_key,
            fallback_keys=settings.secret_key_fallbacks,
            lifetime_seconds=settings.token_expire_seconds,
        )

    def issue(self, account_id: str, issued_at: datetime | None = None) -> str:
        """Return a signed token for account_id.

        issued_at defaults to now; passing an earlier moment produces a token
        that is already past its expiry, which is how the expiry paths are
        exercised in tests.
        """
        now = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(account_id),
            "iat": now,
            "exp": now + timedelta(seconds=self.lifetime_seconds),
            # Two logins in the same second must still yield distinct tokens.
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._signing_key, algorithm=_ALGORITHM)

    def decode(self, token: str, ignore_expiration: bool = False) -> TokenPayload | None:
        """Return the verified claims, or None on any failure.

        Keys are tried in order (current first). An expired token with a good
        signature stops the search: another key cannot make it unexpired.
        """
        if not token:
            return None
        options = {"verify_exp": not ignore_expiration}
        for index, key in enumerate(self._keys):
            try:
                claims = jwt.decode(token, key, algorithms=[_ALGORITHM], options=options)
            except ExpiredSignatureError:
                return None
            except JWTError:
                continue
            if index > 0:
                logger.debug("Token verified with fallback signing key #%d", index)
            return _to_payload(claims)
        return None

    def verify(self, token: str, ignore_expiration: bool = False) -> bool:
        return self.decode(token, ignore_expiration=ignore_expiration) is not None

    def extract_account_id(self, token: str) -> str | None:
        """Return the account id in a valid, unexpired token, else None.

        The subject must parse as a UUID. The canonical string form is
        returned, so ids produced by str(uuid.uuid4()) round-trip unchanged.
        """
        payload = self.decode(token)
        if payload is None:
            return None
        try:
            return str(uuid.UUID(payload.sub))
        except ValueError:
            return None


def _to_payload(claims: dict) -> TokenPayload | None:
    sub, iat, exp = claims.get("sub"), claims.get("iat"), claims.get("exp")
    if not isinstance(sub, str) or not isinstance(iat, int) or not isinstance(exp, int):
        return None
    jti = claims.get("jti")
    return TokenPayload(sub=sub, iat=iat, exp=exp, jti=jti if isinstance(jti, str) else None)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, max_age: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: defaults to Settings.token_expire_seconds (86400).
    """
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        max_age=max_age if max_age > 0 else settings.token_expire_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )


def clear_session_cookie(response) -> None:
    """Expire the session cookie immediately (Max-Age=0)."""
    response.set_cookie(
        SESSION_COOKIE,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=get_settings().secure_cookies,
    )
