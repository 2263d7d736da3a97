from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, and_, func, inspect, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sportsfeed.cache import TieredCache
from sportsfeed.config import settings
from sportsfeed.database import Base
from sportsfeed.errors import PersistenceError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


@dataclass
class SyncResult:
    successful: int = 0
    failed: int = 0
    total: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_to_dict(row: Base) -> dict[str, Any]:
    """Column snapshot of an ORM row, JSON-compatible so it can be cached as-is."""
    return {attr.key: _jsonable(getattr(row, attr.key)) for attr in inspect(row).mapper.column_attrs}


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]
    conflict_columns: tuple[str, ...] = ("external_id",)
    immutable_columns: frozenset[str] = frozenset({"id", "external_id", "created_at"})

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: TieredCache,
        *,
        chunk_size: int | None = None,
        chunk_pause_seconds: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.cache = cache
        self.chunk_size = chunk_size or settings.sync_chunk_size
        self.chunk_pause_seconds = settings.sync_chunk_pause_seconds if chunk_pause_seconds is None else chunk_pause_seconds

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    # reads

    async def _scalar(self, stmt: Any) -> Any:
        async with self.session_factory() as session:
            try:
                return await session.scalar(stmt)
            except SQLAlchemyError as exc:
                raise PersistenceError(f"{self.table_name} read failed: {exc}") from exc

    async def _scalars(self, stmt: Any) -> list[Any]:
        async with self.session_factory() as session:
            try:
                return list((await session.scalars(stmt)).all())
            except SQLAlchemyError as exc:
                raise PersistenceError(f"{self.table_name} read failed: {exc}") from exc

    async def _rows(self, stmt: Any) -> list[Any]:
        async with self.session_factory() as session:
            try:
                return list((await session.execute(stmt)).all())
            except SQLAlchemyError as exc:
                raise PersistenceError(f"{self.table_name} read failed: {exc}") from exc

    async def find_by_id(self, row_id: int) -> ModelT | None:
        return await self._scalar(select(self.model).where(self.model.id == row_id))

    async def find_by_external_id(self, external_id: str) -> ModelT | None:
        return await self._scalar(select(self.model).where(self.model.external_id == str(external_id)))

    async def find_where(
        self,
        filters: dict[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ModelT]:
        stmt = select(self.model)
        for column, value in (filters or {}).items():
            if value is not None:
                stmt = stmt.where(getattr(self.model, column) == value)
        if order_by:
            column = getattr(self.model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return await self._scalars(stmt)

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        stmt = select(func.count()).select_from(self.model)
        for column, value in (filters or {}).items():
            if value is not None:
                stmt = stmt.where(getattr(self.model, column) == value)
        return int((await self._scalar(stmt)) or 0)

    # writes

    def _update_guard(self) -> ColumnElement[bool] | None:
        """Optional WHERE on the conflicting row; rows failing it are left untouched."""
        return None

    def _upsert_statement(self, session: AsyncSession, records: list[dict[str, Any]]):
        dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
        insert_stmt = (sqlite_insert(self.model) if dialect == "sqlite" else pg_insert(self.model)).values(records)
        return self._on_conflict(insert_stmt, records)

    def _on_conflict(self, insert_stmt, records: list[dict[str, Any]]):
        protected = set(self.conflict_columns) | self.immutable_columns
        set_ = {column: insert_stmt.excluded[column] for column in records[0] if column not in protected}
        if "updated_at" in self.model.__table__.c:
            set_["updated_at"] = func.now()
        if not set_:
            return insert_stmt.on_conflict_do_nothing(index_elements=list(self.conflict_columns))
        return insert_stmt.on_conflict_do_update(
            index_elements=list(self.conflict_columns),
            set_=set_,
            where=self._update_guard(),
        )

    def _dedupe(self, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        by_key: dict[tuple, dict[str, Any]] = {}
        for record in records:
            by_key[tuple(record[c] for c in self.conflict_columns)] = record
        return list(by_key.values())

    def _conflict_filter(self, record: dict[str, Any]) -> ColumnElement[bool]:
        return and_(*(getattr(self.model, c) == record[c] for c in self.conflict_columns))

    async def _write_chunk(self, chunk: list[dict[str, Any]]) -> int:
        rows = self._dedupe(chunk)
        async with self.session_factory() as session:
            try:
                await session.execute(self._upsert_statement(session, rows))
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise PersistenceError(f"{self.table_name} upsert failed: {exc}") from exc
        return len(chunk)

    async def upsert(self, record: dict[str, Any]) -> ModelT:
        """Insert or update one record on its conflict key and return the stored row."""
        await self._write_chunk([record])
        row = await self._scalar(select(self.model).where(self._conflict_filter(record)))
        if row is None:
            raise PersistenceError(f"{self.table_name} row missing after upsert")
        logger.debug("%s upserted: key=%s", self.table_name, [record[c] for c in self.conflict_columns])
        return row

    async def bulk_upsert(self, records: list[dict[str, Any]], chunk_size: int | None = None) -> SyncResult:
        total = len(records)
        if total == 0:
            return SyncResult()

        size = max(chunk_size or self.chunk_size, 1)
        successful = 0
        failed = 0
        for index, start in enumerate(range(0, total, size), start=1):
            chunk = records[start : start + size]
            try:
                successful += await self._write_chunk(chunk)
            except PersistenceError:
                failed += len(chunk)
                logger.exception(
                    "bulk upsert chunk failed: table=%s chunk=%s size=%s", self.table_name, index, len(chunk)
                )
            if start + size < total and self.chunk_pause_seconds > 0:
                await asyncio.sleep(self.chunk_pause_seconds)

        logger.info(
            "bulk upsert complete: table=%s total=%s successful=%s failed=%s", self.table_name, total, successful, failed
        )
        return SyncResult(successful=successful, failed=failed, total=total)

    async def _clear_cache(self, *patterns: str) -> int:
        cleared = 0
        for pattern in patterns:
            cleared += await self.cache.delete_by_pattern(pattern)
        logger.debug("cache cleared after sync: table=%s patterns=%s count=%s", self.table_name, patterns, cleared)
        return cleared
