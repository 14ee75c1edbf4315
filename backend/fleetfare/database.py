"""Database models and setup for the fleet fare configuration store."""

import logging
import os
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from fleetfare.exceptions import ConfigStoreError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfigEntryDB(Base):
    """One JSON configuration document stored under a scope key."""
    __tablename__ = "config_entries"

    id = Column(Integer, primary_key=True, index=True)
    scope_key = Column(String, unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<ConfigEntry(scope_key={self.scope_key})>"


class DatabaseManager:
    """
    Manager class for configuration store operations.
    Writes are last-write-wins; there is no locking or versioning.
    """

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection."""
        self.database_url = database_url or os.getenv(
            "DATABASE_URL",
            "sqlite:///./fleetfare_config.db"
        )

        # SQLite connections are shared with the API worker threads
        connect_args = {"check_same_thread": False} if "sqlite" in self.database_url else {}
        self.engine = create_engine(self.database_url, connect_args=connect_args)

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def get_value(self, scope_key: str) -> Optional[str]:
        """Raw stored text for a key, or None."""
        session = self.get_session()
        try:
            entry = session.query(ConfigEntryDB).filter_by(scope_key=scope_key).first()
            return entry.value if entry else None
        finally:
            session.close()

    def set_value(self, scope_key: str, value: str) -> None:
        """
        Create or overwrite the value stored under a key.

        Raises:
            ConfigStoreError: if the write could not be committed
        """
        session = self.get_session()
        try:
            entry = session.query(ConfigEntryDB).filter_by(scope_key=scope_key).first()
            if entry:
                entry.value = value
                entry.updated_at = _utcnow()
            else:
                session.add(ConfigEntryDB(scope_key=scope_key, value=value))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Config write failed for %s: %s", scope_key, e)
            raise ConfigStoreError(f"Could not save configuration '{scope_key}'") from e
        finally:
            session.close()

    def list_entries(self, prefix: str = "") -> Dict[str, str]:
        """All stored values whose key starts with prefix."""
        session = self.get_session()
        try:
            query = session.query(ConfigEntryDB)
            if prefix:
                query = query.filter(ConfigEntryDB.scope_key.startswith(prefix, autoescape=True))
            return {entry.scope_key: entry.value for entry in query.order_by(ConfigEntryDB.scope_key)}
        finally:
            session.close()

    def delete_key(self, scope_key: str) -> bool:
        """Remove one stored value. Only used by the management CLI."""
        session = self.get_session()
        try:
            deleted = session.query(ConfigEntryDB).filter_by(scope_key=scope_key).delete()
            session.commit()
            return deleted > 0
        except SQLAlchemyError as e:
            session.rollback()
            raise ConfigStoreError(f"Could not delete configuration '{scope_key}'") from e
        finally:
            session.close()

    def ping(self) -> int:
        """Number of stored entries; raises if the database is unreachable."""
        session = self.get_session()
        try:
            return session.query(ConfigEntryDB).count()
        finally:
            session.close()


# Singleton instance
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get singleton database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
