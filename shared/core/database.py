from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from shared.core.config import LEASING_DATABASE_URL, settings

Base = declarative_base()

# Execution option marking a transaction that will write. On SQLite it takes
# the database write lock at BEGIN; other backends ignore it.
WRITE_TRANSACTION = "write_transaction"


def _enable_sqlite_write_serialization(engine: Engine):
    """Make SQLite write transactions take the database write lock up front.

    pysqlite defers BEGIN until the first write, which lets two sessions read
    the same snapshot and then both write. Write transactions use BEGIN
    IMMEDIATE to close that gap. Reads keep a deferred BEGIN and never wait
    on a writer that has not reached commit.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # hand transaction control to SQLAlchemy
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_TRANSACTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(url: str, lock_timeout_ms: int = settings.LEASE_LOCK_TIMEOUT_MS) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": lock_timeout_ms / 1000.0,
            },
        )
        _enable_sqlite_write_serialization(engine)
        return engine

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


leasing_engine = build_engine(LEASING_DATABASE_URL)
LeasingSessionLocal = build_session_factory(leasing_engine)


# Dependency
def get_leasing_db():
    db = LeasingSessionLocal()
    try:
        yield db
    finally:
        db.close()
