import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from config import DATABASE_URL, SQLITE_BUSY_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

Base = declarative_base()
db_engine = None
SessionLocal = None


def make_engine(url: str, **kwargs):
    """Create an engine; SQLite connections get foreign key enforcement and a busy timeout"""
    url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("sqlite"):
        connect_args = kwargs.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", SQLITE_BUSY_TIMEOUT_SECONDS)
    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def init_db(url: str = None):
    global db_engine, SessionLocal
    import models  # noqa: F401  registers tables on Base.metadata

    db_engine = make_engine(url or DATABASE_URL)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database initialized (%s)", db_engine.url.render_as_string(hide_password=True))
    return SessionLocal


def get_session():
    """FastAPI dependency yielding a session that is always closed"""
    if SessionLocal is None:
        init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
