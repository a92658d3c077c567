"""
Database engine, session factory and declarative base
"""
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_recycle=1800
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a session for the duration of one request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create tables that do not exist yet"""
    # Register models on Base.metadata
    from storefront.models import order, email_log, webhook_event  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def dialect_insert(db):
    """INSERT construct of the bound dialect, for ON CONFLICT upserts"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")
