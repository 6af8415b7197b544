"""
Module: inventory_kernel.db.engine
Responsibility: SQLAlchemy engine construction and schema creation.  This is
    the single point of database connection configuration.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except for create_tables/drop_tables which import models).

Supported backends:
    - PostgreSQL (production): QueuePool with pre-ping, READ COMMITTED, and
      explicit row-level locking (SELECT ... FOR UPDATE) on balance rows.
    - SQLite (development and tests, file databases only): every transaction
      starts with BEGIN IMMEDIATE so that writers serialize on the database
      write lock, and the driver busy timeout doubles as the lock wait timeout.

Failure modes:
    - ValueError for in-memory SQLite URLs.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.

Note:
    There is no module-level engine.  Callers build one, wrap it in a
    sessionmaker, and inject that into services.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    lock_timeout_ms: int = 5000,
) -> Engine:
    """
    Create an engine for PostgreSQL or a file-backed SQLite database.

    Preconditions: database_url is a PostgreSQL URL or a ``sqlite:///<path>``
        URL.  In-memory SQLite is not supported because each pooled
        connection would see its own empty database.

    Args:
        database_url: Connection URL.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool.
        max_overflow: Max connections beyond pool_size.
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        lock_timeout_ms: SQLite busy timeout (PostgreSQL lock timeouts are
            applied per transaction by TransactionRunner).

    Returns:
        SQLAlchemy Engine instance.
    """
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            raise ValueError("In-memory SQLite is not supported; use a file database")

        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            connect_args={
                "check_same_thread": False,
                "timeout": lock_timeout_ms / 1000.0,
            },
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )



def create_tables(engine: Engine) -> None:
    """Create all tables defined in the models."""
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401  (registers tables)

    Base.metadata.create_all(engine)


def drop_tables(engine: Engine) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine)
