"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as catalog/store.py).
CredentialStore and TokenStore are the repositories; _row_to_account /
_row_to_session_token are the mappers. Services and gates never touch SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.

Single-session invariant:
  auth_tokens.account_id is indexed but deliberately NOT unique. The store
  records whatever it is given; AuthService.login() rotates by calling
  delete_by_account() before put(). Two logins racing for the same account can
  leave zero or two rows for a moment -- deployments that need a hard
  guarantee should add UNIQUE(account_id) at the database level.

"Not found" is always None / False / 0, never an exception. Storage failures
(SQLAlchemyError) propagate to the caller unchanged.

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import Account, SessionToken
from core.db import make_engine, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_auth_tokens = Table(
    "auth_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", Text, nullable=False, unique=True),
    Column("account_id", String(36), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Account records.

    Usage:
        store = CredentialStore("sqlite:///:memory:")
        account = store.save(Account(name="Ann", email="ann@example.com", hashed_password=hash_password("pw")))
        store.get_by_email("ann@example.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url, _metadata)

    def save(self, account: Account) -> Account:
        """Insert a new account and return it with id and timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        AuthService.register() checks email_exists() first and treats an
        IntegrityError here as the same EmailAlreadyRegistered failure.
        """
        now = now_iso()
        account_id = account.id or str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                _accounts.insert().values(
                    id=account_id,
                    name=account.name,
                    email=account.email,
                    hashed_password=account.hashed_password,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return Account(
            id=account_id,
            name=account.name,
            email=account.email,
            hashed_password=account.hashed_password,
            created_at=now,
            updated_at=now,
        )

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_accounts).where(_accounts.c.email == email)
            ).scalar()
        return (count or 0) > 0

    def close(self) -> None:
        self.engine.dispose()


class TokenStore:
    """Repository for SessionToken records -- the account -> active token registry.

    Usage:
        tokens = TokenStore("sqlite:///:memory:")
        tokens.put(SessionToken(account_id=account.id, token=codec.issue(account.id)))
        tokens.find(token_string)
        tokens.delete_by_token(token_string)
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url, _metadata)

    def find(self, token: str) -> SessionToken | None:
        with self.engine.connect() as conn:
            row = conn.execute(_auth_tokens.select().where(_auth_tokens.c.token == token)).fetchone()
        return _row_to_session_token(row) if row is not None else None

    def find_by_account(self, account_id: str) -> SessionToken | None:
        """Return the newest token row for an account, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _auth_tokens.select()
                .where(_auth_tokens.c.account_id == account_id)
                .order_by(_auth_tokens.c.id.desc())
                .limit(1)
            ).fetchone()
        return _row_to_session_token(row) if row is not None else None

    def put(self, session_token: SessionToken) -> SessionToken:
        """Insert or update the row keyed by the token string.

        Does not remove other rows for the same account -- rotation is the
        caller's job. Returns the stored record with id and created_at set.
        """
        created_at = session_token.created_at or now_iso()
        with self.engine.connect() as conn:
            existing = conn.execute(
                select(_auth_tokens.c.id).where(_auth_tokens.c.token == session_token.token)
            ).fetchone()
            if existing is not None:
                conn.execute(
                    _auth_tokens.update()
                    .where(_auth_tokens.c.id == existing.id)
                    .values(account_id=session_token.account_id, created_at=created_at)
                )
                row_id = existing.id
            else:
                result = conn.execute(
                    _auth_tokens.insert().values(
                        token=session_token.token,
                        account_id=session_token.account_id,
                        created_at=created_at,
                    )
                )
                row_id = result.inserted_primary_key[0]
            conn.commit()
        return SessionToken(
            id=row_id,
            account_id=session_token.account_id,
            token=session_token.token,
            created_at=created_at,
        )

    def delete_by_token(self, token: str) -> None:
        """Delete the row for token. A missing row is not an error."""
        with self.engine.connect() as conn:
            conn.execute(_auth_tokens.delete().where(_auth_tokens.c.token == token))
            conn.commit()

    def delete_by_account(self, account_id: str) -> int:
        """Delete every row for an account. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_auth_tokens.delete().where(_auth_tokens.c.account_id == account_id))
            conn.commit()
        return result.rowcount

    def count_by_account(self, account_id: str) -> int:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_auth_tokens).where(_auth_tokens.c.account_id == account_id)
            ).scalar()
        return count or 0

    def purge_older_than(self, cutoff_iso: str) -> int:
        """Delete rows created before cutoff_iso (ISO 8601 UTC). Returns rows removed.

        Timestamps are all written by now_iso() in the same UTC format, so
        string comparison orders them correctly.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_auth_tokens.delete().where(_auth_tokens.c.created_at < cutoff_iso))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session_token(row) -> SessionToken:
    return SessionToken(
        id=row.id,
        account_id=row.account_id,
        token=row.token,
        created_at=row.created_at,
    )
