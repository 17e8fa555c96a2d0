"""
Database connection and session management.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from contextlib import contextmanager
from typing import Generator

from database.models import Base
from core.logger import logger


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, pool_size: int = 10, max_overflow: int = 20):
        """
        Initialize database connection.

        Args:
            database_url: SQLAlchemy URL (PostgreSQL in production, SQLite in tests)
            pool_size: Number of connections to maintain
            max_overflow: Maximum overflow connections
        """
        self.database_url = database_url
        if database_url.startswith("sqlite"):
            # Pooled SQLite connections are shared across the TestClient threads
            self.engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                echo=False
            )
        else:
            self.engine = create_engine(
                database_url,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
                echo=False
            )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info(f"Database engine initialized: {database_url.split('@')[1] if '@' in database_url else 'local'}")

    def create_tables(self):
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        """Drop all database tables (use with caution!)."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("All database tables dropped")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Transactional session scope: commits on success, rolls back on error.

        Usage:
            with db.get_session() as session:
                session.add(obj)
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
