"""
Database connection and session management for the ParkLookup media service.

This module provides:
- SQLAlchemy engine setup from DatabaseConfig
- Session management
- Table creation and health checks
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import DatabaseConfig, settings
from ..core.logging import get_logger

logger = get_logger("models.db")

# Base class for all SQLAlchemy models
Base = declarative_base()


class DatabaseManager:
    """Database connection and session manager."""

    def __init__(self, config: DatabaseConfig | None = None):
        self.config = config or settings.database
        self._sync_engine: Engine | None = None
        self._sync_session_factory = None

    @property
    def is_sqlite(self) -> bool:
        return self.config.database_url.startswith("sqlite")

    @property
    def sync_engine(self) -> Engine:
        """Get or create synchronous database engine."""
        if self._sync_engine is None:
            if self.is_sqlite:
                # One shared connection so in-memory databases survive across sessions
                self._sync_engine = create_engine(
                    self.config.database_url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                    echo=self.config.echo_sql,
                )
            else:
                self._sync_engine = create_engine(
                    self.config.database_url,
                    pool_size=self.config.pool_size,
                    max_overflow=self.config.max_overflow,
                    pool_timeout=self.config.pool_timeout,
                    pool_recycle=self.config.pool_recycle,
                    pool_pre_ping=True,
                    echo=self.config.echo_sql,
                )
        return self._sync_engine

    @property
    def sync_session_factory(self):
        """Get or create synchronous session factory."""
        if self._sync_session_factory is None:
            self._sync_session_factory = sessionmaker(
                bind=self.sync_engine, class_=Session, autoflush=True, expire_on_commit=False
            )
        return self._sync_session_factory

    @contextmanager
    def get_sync_session(self) -> Generator[Session, None, None]:
        """Context manager for synchronous database sessions."""
        session = self.sync_session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create all tables that do not exist yet."""
        # Import models so they register on Base.metadata
        from . import entities  # noqa: F401

        Base.metadata.create_all(self.sync_engine)
        logger.info("Database tables ensured")

    def health_check(self) -> bool:
        """Check database connection health."""
        try:
            with self.get_sync_session() as session:
                result = session.execute(text("SELECT 1")).scalar()
                return result == 1
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

    def dispose(self) -> None:
        """Close pooled connections."""
        if self._sync_engine is not None:
            self._sync_engine.dispose()
            self._sync_engine = None
            self._sync_session_factory = None
            logger.info("Database connections closed")


# Global database manager instance
db_manager = DatabaseManager()

