from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def make_engine(url: str, busy_timeout: float = 5.0) -> Engine:
    """
    Create the engine for a database URL.

    SQLite: pysqlite's own transaction handling is switched off so that
    SQLAlchemy emits BEGIN itself. A connection carrying the execution
    option sqlite_begin="IMMEDIATE" takes the database write lock at the
    start of its transaction; that is what serializes reservations there.

    In-memory SQLite uses StaticPool, i.e. one connection for all threads.
    SqlStorage serializes its sessions on such an engine; other users of the
    engine must not run transactions on it concurrently.
    """
    if not is_sqlite(url):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {
        # FastAPI runs sync endpoints in a threadpool
        "connect_args": {"check_same_thread": False, "timeout": busy_timeout},
    }
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, _):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        options = conn.get_execution_options()
        busy_timeout_ms = options.get("sqlite_busy_timeout_ms")
        if busy_timeout_ms is not None:
            conn.exec_driver_sql(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        conn.exec_driver_sql(f"BEGIN {options.get('sqlite_begin', 'DEFERRED')}")

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


engine = make_engine(
    settings.resolved_database_url,
    busy_timeout=settings.request_timeout_seconds,
)

SessionLocal = make_session_factory(engine)
