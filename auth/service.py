"""
auth/service.py -- Registration, login (token rotation), logout and token resolution.

AuthService is the only component that writes session tokens. Everything else
(gates, routes, the CLI) goes through it or reads the stores directly.

Error contract:
  register() / login() raise named AuthError subclasses for the route handler
  to translate. logout() and resolve() never raise for token problems --
  resolve() runs on every page render to populate an optional "current
  account", so a bad cookie must not break an unrelated page. Storage errors
  are not part of this contract and propagate.

Rotation:
  login() calls TokenStore.delete_by_account() and then TokenStore.put() in two
  separate round trips. Concurrent logins for the same account can interleave
  between the two; see auth/store.py for the consequences.

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from auth.errors import EmailAlreadyRegistered, InvalidCredentials
from auth.models import Account, SessionToken
from auth.passwords import authenticate_account, hash_password
from auth.store import CredentialStore, TokenStore
from auth.tokens import TokenCodec

logger = logging.getLogger("shopgate.auth")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(self, codec: TokenCodec, accounts: CredentialStore, tokens: TokenStore) -> None:
        self.codec = codec
        self.accounts = accounts
        self.tokens = tokens

    def register(self, name: str, email: str, password: str) -> Account:
        """Create an account. Raises EmailAlreadyRegistered if the email is taken."""
        email = normalize_email(email)
        if self.accounts.email_exists(email):
            raise EmailAlreadyRegistered()
        account = Account(name=name.strip(), email=email, hashed_password=hash_password(password))
        try:
            saved = self.accounts.save(account)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration for the same email.
            raise EmailAlreadyRegistered() from exc
        logger.info("Registered account %s", saved.id)
        return saved

    def login(self, email: str, password: str) -> SessionToken:
        """Check credentials and issue a fresh token, revoking any previous one.

        Raises InvalidCredentials for an unknown email and for a wrong
        password alike, so callers cannot tell which one failed.
        """
        account = authenticate_account(self.accounts, normalize_email(email), password)
        if account is None:
            logger.info("Login rejected: bad credentials")
            raise InvalidCredentials()

        revoked = self.tokens.delete_by_account(account.id)
        if revoked:
            logger.info("Rotated %d previous session(s) for account %s", revoked, account.id)
        session = self.tokens.put(SessionToken(account_id=account.id, token=self.codec.issue(account.id)))
        logger.info("Login succeeded for account %s", account.id)
        return session

    def logout(self, token: str) -> None:
        """Forget token. Unknown, expired or empty tokens are ignored."""
        if token:
            self.tokens.delete_by_token(token)

    def resolve(self, token: str | None) -> Account | None:
        """Return the account a token belongs to, or None.

        Checks signature and expiry only; the TokenStore row is NOT consulted,
        so a logged-out token keeps resolving until it expires. ApiGate adds
        the store cross-check for API calls.
        """
        if not token:
            return None
        try:
            if not self.codec.verify(token):
                return None
            account_id = self.codec.extract_account_id(token)
        except Exception:  # noqa: BLE001 -- any codec failure means "not authenticated"
            logger.debug("Token resolution failed", exc_info=True)
            return None
        if account_id is None:
            return None
        return self.accounts.get_by_id(account_id)

    def get_account(self, account_id: str) -> Account | None:
        return self.accounts.get_by_id(account_id)

    def revoke_all(self, account_id: str) -> int:
        """Drop every session of an account. Returns the number of rows removed."""
        removed = self.tokens.delete_by_account(account_id)
        logger.info("Revoked %d session(s) for account %s", removed, account_id)
        return removed

    def purge_expired_tokens(self) -> int:
        """Delete token rows older than the token lifetime."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.codec.lifetime_seconds)
        removed = self.tokens.purge_older_than(cutoff.isoformat())
        if removed:
            logger.info("Purged %d expired session token(s)", removed)
        return removed
