"""
GP Dashboard Database Configuration
SQLAlchemy setup for the application database and the Dynamics GP database
"""
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.orm import declarative_base, sessionmaker
from typing import Generator
import logging

from .config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """Pooling options for a database URL"""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,
    }


# Application database (reservations)
engine = create_engine(
    settings.APP_DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.APP_DATABASE_URL),
)

# Dynamics GP company database, never written to
erp_engine = create_engine(
    settings.ERP_DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.ERP_DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
ErpSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=erp_engine)

# Application tables, with naming convention for constraints
Base = declarative_base(metadata=MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}))

# GP tables are mapped for reading only; their metadata is never created in production
ErpBase = declarative_base()


def get_db() -> Generator:
    """
    Dependency function to get an application database session

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def get_erp_db() -> Generator:
    """Dependency function to get a read-only GP database session"""
    db = ErpSessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Initialize application database tables

    GP tables belong to the ERP and are not created here.
    """
    try:
        # Import all models to ensure they are registered with Base
        from gpdash.models import reservation  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


def check_db_connection(target=None) -> bool:
    """
    Check if a database connection is working

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        with (target or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
