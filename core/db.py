"""
core/db.py -- Engine construction shared by auth/store.py and tasks/store.py.

Both repositories point at the same DATABASE_URL by default. Each builds its
own Engine (and pool) so either store can be closed independently.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str) -> Engine:
    """Build an Engine with the SQLite tweaks the stores need.

    In-memory databases skip WAL; SQLite ignores it there anyway.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI's threadpool touches connections from several threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    return engine
