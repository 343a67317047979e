"""SQL paste store (SQLAlchemy Core).

Works with any SQLAlchemy URL; tested against SQLite, intended for
PostgreSQL in production. Blocking database calls run in the default
executor so request handlers stay async; on SQLite they run one at a time.

There is no native TTL: expired rows are deleted lazily on read and by
``cleanup_expired``. ``DELETE ... WHERE id = :id`` reports ``rowcount``, which
is the single-consumer guard for burn-after-read pastes.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import nullcontext
from datetime import datetime
from functools import partial
from typing import Any, Callable, TypeVar

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from app.adapters.storage.base import (
    MAX_ID_ATTEMPTS,
    AbstractPasteStore,
    StorageResult,
)
from app.models.paste import (
    NewPaste,
    PasteRecord,
    ensure_utc,
    generate_paste_id,
    utcnow,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

metadata = MetaData()

pastes_table = Table(
    "pastes",
    metadata,
    Column("id", String(16), primary_key=True),
    Column("content", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False, index=True),
    Column("has_password", Boolean, nullable=False, default=False),
    Column("salt", String(64), nullable=True),
    Column("burn_after_read", Boolean, nullable=False, default=False),
    Column("language", String(32), nullable=True),
)


def build_engine(url: str) -> Engine:
    """Create an engine with settings suited to the dialect.

    Bound parameters (ciphertext, salts) are kept out of exception messages,
    since those end up in the error log.
    """
    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
            "hide_parameters": True,
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout is a new empty DB
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        hide_parameters=True,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
    )


def _describe(exc: SQLAlchemyError) -> str:
    """Error summary without the statement or its parameters."""
    orig = getattr(exc, "orig", None)
    return f"{type(exc).__name__}: {orig}" if orig is not None else type(exc).__name__


def _row_to_record(row: Any) -> PasteRecord:
    return PasteRecord(
        id=row.id,
        content=row.content,
        created_at=ensure_utc(row.created_at),
        expires_at=ensure_utc(row.expires_at),
        has_password=bool(row.has_password),
        salt=row.salt,
        burn_after_read=bool(row.burn_after_read),
        language=row.language,
    )


class SqlPasteStore(AbstractPasteStore):
    """Paste store backed by a relational database."""

    backend_name = "sql"

    def __init__(
        self,
        engine: Engine,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_paste_id,
    ) -> None:
        self._engine = engine
        self._clock = clock
        self._id_factory = id_factory
        # SQLite allows one writer and a shared in-memory DB is one connection;
        # executor threads must take turns
        self._serial = threading.Lock() if engine.dialect.name == "sqlite" else nullcontext()

    @classmethod
    def from_url(cls, url: str) -> "SqlPasteStore":
        """Build a store and make sure the ``pastes`` table exists."""
        engine = build_engine(url)
        metadata.create_all(engine)
        return cls(engine)

    def _serialized(self, func: Callable[..., R], *args: Any) -> R:
        with self._serial:
            return func(*args)

    async def _run(self, func: Callable[..., R], *args: Any) -> R:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._serialized, func, *args))

    # ---------- blocking operations ----------

    def _insert(self, new: NewPaste) -> str | None:
        now = self._clock()
        for _ in range(MAX_ID_ATTEMPTS):
            paste_id = self._id_factory()
            record = PasteRecord.from_new(paste_id, new, now)
            try:
                with self._engine.begin() as conn:
                    conn.execute(
                        insert(pastes_table).values(
                            id=record.id,
                            content=record.content,
                            created_at=record.created_at,
                            expires_at=record.expires_at,
                            has_password=record.has_password,
                            salt=record.salt,
                            burn_after_read=record.burn_after_read,
                            language=record.language,
                        )
                    )
                return paste_id
            except IntegrityError:
                logger.debug("storage.sql.id_collision", extra={"paste_id": paste_id})
        return None

    def _select(self, paste_id: str) -> PasteRecord | None:
        now = self._clock()
        with self._engine.begin() as conn:
            row = conn.execute(
                select(pastes_table).where(pastes_table.c.id == paste_id)
            ).first()
            if row is None:
                return None

            record = _row_to_record(row)
            if record.is_expired(now):
                # Lazy expiry; conditional so a concurrent re-create is untouched
                conn.execute(
                    delete(pastes_table).where(
                        pastes_table.c.id == paste_id,
                        pastes_table.c.expires_at < now,
                    )
                )
                return None
            return record

    def _delete(self, paste_id: str) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(pastes_table).where(pastes_table.c.id == paste_id)
            )
            return result.rowcount == 1

    def _delete_expired(self) -> int:
        now = self._clock()
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(pastes_table).where(pastes_table.c.expires_at < now)
            )
            return max(0, result.rowcount or 0)

    def _ping(self) -> None:
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # ---------- contract ----------

    async def create_paste(self, new: NewPaste) -> StorageResult[str]:
        try:
            paste_id = await self._run(self._insert, new)
        except SQLAlchemyError as exc:
            return StorageResult.failure(f"sql create failed: {_describe(exc)}")
        if paste_id is None:
            return StorageResult.failure("could not allocate a unique paste id")
        return StorageResult.success(paste_id)

    async def get_paste(self, paste_id: str) -> StorageResult[PasteRecord | None]:
        try:
            return StorageResult.success(await self._run(self._select, paste_id))
        except SQLAlchemyError as exc:
            return StorageResult.failure(f"sql get failed: {_describe(exc)}")

    async def delete_paste(self, paste_id: str) -> StorageResult[bool]:
        try:
            return StorageResult.success(await self._run(self._delete, paste_id))
        except SQLAlchemyError as exc:
            return StorageResult.failure(f"sql delete failed: {_describe(exc)}")

    async def cleanup_expired(self) -> StorageResult[int]:
        try:
            return StorageResult.success(await self._run(self._delete_expired))
        except SQLAlchemyError as exc:
            return StorageResult.failure(f"sql cleanup failed: {_describe(exc)}")

    async def health_check(self) -> StorageResult[None]:
        try:
            await self._run(self._ping)
        except SQLAlchemyError as exc:
            return StorageResult.failure(f"sql ping failed: {_describe(exc)}")
        return StorageResult.success()

    async def close(self) -> None:
        self._engine.dispose()
