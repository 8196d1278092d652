"""SQLAlchemy-backed key/value store."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from smartpaste.storage.base import StorageWriteError

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


class KVEntry(Base):
    """
    One persisted document of engine state.

    Keys are namespaced strings (e.g. 'smartpaste.templates') and values
    are JSON documents stored as text.
    """

    __tablename__ = "kv_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="State key (e.g., 'smartpaste.vendor_suggestions')",
    )
    value: Mapped[str] = mapped_column(
        Text, nullable=False, comment="JSON document"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<KVEntry(key={self.key}, size={len(self.value)})>"


def sanitize_db_url(db_url: str) -> str:
    """Hide credentials in a database URL before logging it."""
    return re.sub(r"(.*://)[^:]+:[^@]+(@.*)", r"\1***:***\2", db_url)


class SqlKeyValueStore:
    """KeyValueStore persisted in a relational table.

    Uses a synchronous engine: every ``set`` commits before returning so a
    learning update is durable as soon as the call completes.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = create_engine(url, echo=echo, future=True)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        logger.info("storage.create_tables", url=sanitize_db_url(self.url))
        Base.metadata.create_all(self.engine)

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as session:
            row = session.execute(
                select(KVEntry).where(KVEntry.key == key)
            ).scalar_one_or_none()
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._session_factory.begin() as session:
                self._upsert(session, key, value)
        except SQLAlchemyError as e:
            logger.error("storage.write_failed", key=key, error=str(e))
            raise StorageWriteError(key, str(e)) from e

    def delete(self, key: str) -> None:
        try:
            with self._session_factory.begin() as session:
                row = session.execute(
                    select(KVEntry).where(KVEntry.key == key)
                ).scalar_one_or_none()
                if row is not None:
                    session.delete(row)
        except SQLAlchemyError as e:
            raise StorageWriteError(key, str(e)) from e

    def keys(self) -> list[str]:
        with self._session_factory() as session:
            return list(
                session.execute(select(KVEntry.key).order_by(KVEntry.key)).scalars()
            )

    def dispose(self) -> None:
        self.engine.dispose()

    @staticmethod
    def _upsert(session: Session, key: str, value: str) -> None:
        row = session.execute(
            select(KVEntry).where(KVEntry.key == key)
        ).scalar_one_or_none()
        if row is None:
            session.add(KVEntry(key=key, value=value))
        else:
            row.value = value
