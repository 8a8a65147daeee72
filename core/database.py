"""
core/database.py -- Engine construction shared by every store.

Both auth/store.py and inventory/store.py build their engine here so pool
bounds and SQLite pragmas are configured in one place.

Pool: server databases (MySQL, PostgreSQL) get a bounded QueuePool sized by
Settings.db_pool_size with db_pool_timeout seconds of queueing before the
checkout fails. File-backed SQLite keeps SQLAlchemy's default pool; in-memory
SQLite (plain or shared-cache URIs) uses SingletonThreadPool. Neither can take
the server pool arguments.

Layer rule: core/ may not import from api/, web/, auth/, or inventory/.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import SingletonThreadPool

from core.config import get_settings


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journaling and foreign-key enforcement on every new connection.

    SQLite PRAGMAs are per-connection and are not inherited from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _is_memory_sqlite(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url


def create_db_engine(db_url: str) -> Engine:
    """Return an Engine for db_url with Stockify's pool and pragma settings."""
    if db_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(db_url):
            # One connection per thread keeps each thread on the shared in-memory database.
            options["poolclass"] = SingletonThreadPool
        engine = create_engine(db_url, **options)
        event.listen(engine, "connect", _set_sqlite_pragmas)
        return engine
    settings = get_settings()
    return create_engine(
        db_url,
        pool_size=settings.db_pool_size,
        max_overflow=0,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
    )


def now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def to_iso(value: datetime) -> str:
    """Render a UTC timestamp with fixed precision so stored values sort lexically."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
