# blackbird/db.py
from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from . import config

Base = declarative_base()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    future=True,
)

engine = None


# ── Database config ──────────────────────────────
def init_engine(url: str | None = None):
    """(Re)bind the session factory to the database at `url`."""
    global engine
    url = url or config.DATABASE_URL

    kwargs = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every checkout sees an empty db
            kwargs["poolclass"] = StaticPool

    if engine is not None:
        engine.dispose()
    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        _sqlite_savepoints(engine)
    SessionLocal.configure(bind=engine)
    return engine


def _sqlite_savepoints(eng):
    """pysqlite defers BEGIN on its own; emit it ourselves so SAVEPOINT nests properly."""

    @event.listens_for(eng, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_all():
    from . import models  # noqa: F401  (register tables on Base.metadata)
    Base.metadata.create_all(bind=engine)


def drop_all():
    from . import models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


# ── Context managers ─────────────────────────────
@contextmanager
def get_session():
    """Provide a transactional scope around a series of operations."""
    if engine is None:
        init_engine()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
