"""
Database engine + session factory.

Defaults to SQLite for local dev; point DATABASE_URL at Postgres/MySQL in production.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from sheetsync.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def make_engine(database_url=DATABASE_URL):
    """Build an engine with the right kwargs for the backend."""
    # Heroku-style URLs use postgres:// but SQLAlchemy 2.x requires postgresql://
    url = database_url.replace('postgres://', 'postgresql://', 1)

    # SQLite needs different engine kwargs than a pooled server database
    if url.startswith('sqlite'):
        return create_engine(url, connect_args={'check_same_thread': False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


def make_session_factory(engine):
    """Sessions keep loaded attributes after commit so rows can be returned detached."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine):
    """Create all tables that don't exist yet."""
    import_models()
    Base.metadata.create_all(engine)


def import_models():
    """Import model modules so Base.metadata knows about them."""
    import importlib
    importlib.import_module('sheetsync.models.connector')
    importlib.import_module('sheetsync.models.field_mapping')
    importlib.import_module('sheetsync.models.lead')
    importlib.import_module('sheetsync.models.failed_lead')
    importlib.import_module('sheetsync.models.sync_history')
