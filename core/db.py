"""
core/db.py -- SQLAlchemy engine construction shared by every store.

CredentialStore, TokenStore and ProductStore each own an engine, but all of
them need the same SQLite settings, so the setup lives here once.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or catalog/.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine

from core.config import get_settings


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: Optional[str], metadata: MetaData) -> Engine:
    """Create an engine for db_url (default: DATABASE_URL) and create metadata's tables."""
    db_url = db_url or get_settings().database_url
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # Route handlers run in a thread pool; one connection may serve several threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine


def now_iso() -> str:
    """Current UTC time as ISO 8601. Every stored timestamp uses this format."""
    return datetime.now(timezone.utc).isoformat()
