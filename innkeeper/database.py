"""
Database configuration - SQLAlchemy persistence layer
Every mutating ledger operation runs inside one `atomic` unit
"""
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from innkeeper.config import settings

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def make_engine(url: str):
    """Create an engine; SQLite connections are shared across threads"""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 15}
    return create_engine(url, connect_args=connect_args)


engine = make_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency injection: yield a database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """
    One operation = one transaction.
    Commits when the block finishes, rolls back and re-raises on any error
    so no partial state survives a rejected operation.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(bind=None):
    """Create tables"""
    from innkeeper.models import ontology  # noqa
    target = bind or engine
    Base.metadata.create_all(bind=target)

    if target.dialect.name == "sqlite":
        with target.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.execute(text("PRAGMA synchronous=NORMAL"))
            conn.commit()
    logger.info(f"Database initialized ({target.dialect.name})")
