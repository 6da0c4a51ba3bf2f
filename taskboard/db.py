from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text, create_engine, delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .config import DATABASE_URL
from .errors import PersistenceError
from .utils import now_utc


class Base(DeclarativeBase):
    pass


class StorageEntry(Base):
    __tablename__ = "storage_entries"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)


def create_db_engine(url: str = DATABASE_URL) -> Engine:
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
    )


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


class SqlKeyValueStore:
    """Key-value transport over a single SQL table.

    Database errors surface as ``PersistenceError``.
    """

    def __init__(self, url: str = DATABASE_URL, engine: Optional[Engine] = None) -> None:
        self.engine = engine or create_db_engine(url)
        init_db(self.engine)
        self.sessions = sessionmaker(autoflush=False, bind=self.engine)

    def get_item(self, key: str) -> Optional[str]:
        try:
            with self.sessions() as session:
                entry = session.get(StorageEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to read {key}") from e

    def set_item(self, key: str, value: str) -> None:
        try:
            with self.sessions.begin() as session:
                entry = session.get(StorageEntry, key)
                if entry is None:
                    session.add(StorageEntry(key=key, value=value))
                else:
                    entry.value = value
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to write {key}") from e

    def remove_item(self, key: str) -> None:
        try:
            with self.sessions.begin() as session:
                session.execute(delete(StorageEntry).where(StorageEntry.key == key))
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to remove {key}") from e

    def clear(self) -> None:
        try:
            with self.sessions.begin() as session:
                session.execute(delete(StorageEntry))
        except SQLAlchemyError as e:
            raise PersistenceError("failed to clear storage") from e
