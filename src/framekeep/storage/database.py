"""Structured-database tier (SQLAlchemy 2.0 over SQLite by default).

Schema
------
One table, ``calculator_state``, keyed by the fixed session key, with the
state stored as JSON and an index on the write timestamp::

    key (PK) | state (JSON) | timestamp (BIGINT, indexed) | hash (CHAR 64)

Opening the tier creates the schema. Any failure while opening surfaces as
:class:`TierUnavailableError`; the state manager treats that as a permanent
downgrade for the session.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy import JSON, BigInteger, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from framekeep.core.contracts.records import StoredRecord
from framekeep.core.errors import TierError, TierUnavailableError, TierWriteError
from framekeep.core.settings import get_logger

logger = get_logger(__name__)

_IN_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


class Base(DeclarativeBase):
    """Declarative base for the tier's tables."""


class StateRow(Base):
    """The single live record per session key."""

    __tablename__ = "calculator_state"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    state: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<StateRow key={self.key!r} ts={self.timestamp}>"


def _make_engine(url: str) -> Engine:
    if url in _IN_MEMORY_URLS:
        return create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    if url.startswith("sqlite:///"):
        Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url)


class DatabaseTier:
    """Primary tier: one row per session key, replaced on every write."""

    name = "database"

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def open(cls, url: str) -> DatabaseTier:
        """Connect, create the schema, and return a ready tier.

        Raises
        ------
        TierUnavailableError
            If the database cannot be opened or the schema cannot be created.
        """
        try:
            engine = _make_engine(url)
            Base.metadata.create_all(engine)
        except (SQLAlchemyError, OSError) as exc:
            raise TierUnavailableError(f"cannot open database tier at {url}: {exc}") from exc
        logger.info("Database tier ready at %s", url)
        return cls(engine)

    def read(self, key: str) -> StoredRecord | None:
        """Return the record under ``key``; a corrupt row raises :class:`TierError`."""
        try:
            with self._sessions() as session:
                row = session.get(StateRow, key)
                if row is None:
                    return None
                return StoredRecord(
                    key=row.key, state=row.state, timestamp=row.timestamp, hash=row.hash
                )
        except (SQLAlchemyError, ValidationError, ValueError) as exc:
            raise TierError(f"database read failed: {exc}") from exc

    def write(self, record: StoredRecord) -> None:
        try:
            with self._sessions.begin() as session:
                session.merge(
                    StateRow(
                        key=record.key,
                        state=record.state,
                        timestamp=record.timestamp,
                        hash=record.hash,
                    )
                )
        except SQLAlchemyError as exc:
            raise TierWriteError(f"database write failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._sessions.begin() as session:
                row = session.get(StateRow, key)
                if row is not None:
                    session.delete(row)
        except SQLAlchemyError as exc:
            raise TierWriteError(f"database delete failed: {exc}") from exc

    def usage_bytes(self) -> int | None:
        """Size of the database file, or ``None`` for non-file databases."""
        database = self.engine.url.database
        if self.engine.url.get_backend_name() != "sqlite" or not database:
            return None
        if database == ":memory:":
            return None
        path = Path(database)
        return path.stat().st_size if path.exists() else None

    def close(self) -> None:
        self.engine.dispose()


__all__ = ["Base", "DatabaseTier", "StateRow"]
