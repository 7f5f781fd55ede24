"""
Engine creation for the market database.

Engines are cached per URL so that every component talking to the same
database shares one pool.
"""

import threading
from typing import Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, StaticPool

# URL-keyed engine cache and lock for thread-safe lazy initialization
_ENGINE_CACHE: Dict[str, Engine] = {}
_ENGINE_LOCK = threading.Lock()


def create_market_engine(url: str) -> Engine:
    """
    Create a SQLAlchemy engine for url.

    SQLite gets a StaticPool for in-memory databases (one shared connection)
    and a NullPool for files, plus pragmas applied on every new connection.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    is_memory = (":memory:" in url) or url.endswith("?mode=memory")
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if is_memory else NullPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA synchronous=NORMAL;")
            if not is_memory:
                cursor.execute("PRAGMA journal_mode=WAL;")
        finally:
            cursor.close()

    return engine


def get_engine(url: str) -> Engine:
    """Return the cached engine for url, creating it on first use."""
    with _ENGINE_LOCK:
        if url not in _ENGINE_CACHE:
            _ENGINE_CACHE[url] = create_market_engine(url)
        return _ENGINE_CACHE[url]


def dispose_engines() -> None:
    with _ENGINE_LOCK:
        for engine in _ENGINE_CACHE.values():
            engine.dispose()
        _ENGINE_CACHE.clear()
