"""Generic document-collection access over SQLAlchemy.

Every table in :mod:`bookhive.infrastructure.database.models` is handled as a
collection of documents (plain dicts keyed by column name). The collection
owns timestamp stamping and the atomic transform primitive; repositories
never write ``created_at``, ``updated_at`` or ``version`` themselves.

Atomic transforms use optimistic concurrency: the document is read, the
pipeline applied, and the write only lands if ``version`` is still the one
that was read. A lost race re-applies the pipeline to the fresh document, so
concurrent writers never compute from a stale value.
"""

import copy
import enum
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from sqlalchemy import ColumnElement, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookhive.domain.errors import ConflictError
from bookhive.infrastructure.database.models import Base
from bookhive.infrastructure.database.pipeline import (
    Document,
    Stage,
    describe,
    stamp_timestamps,
)

logger = logging.getLogger(__name__)

Where = Sequence[ColumnElement[bool]]
Update = Union[Mapping[str, Any], Sequence[Stage]]

_MANAGED_FIELDS = ("created_at", "updated_at", "version")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReturnDocument(enum.Enum):
    BEFORE = "before"
    AFTER = "after"


@dataclass
class UpdateResult:
    matched_count: int = 0
    modified_count: int = 0
    upserted_id: Optional[uuid.UUID] = None


class _StaleVersion(Exception):
    pass


class DocumentCollection:
    """One collection backed by one table."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        model: type[Base],
        *,
        max_attempts: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_maker = session_maker
        self.table = model.__table__
        self.name = self.table.name
        self.max_attempts = max_attempts
        self._clock = clock
        self._columns = {column.key for column in self.table.columns}

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------
    async def insert_one(self, doc: Mapping[str, Any]) -> Document:
        """Insert one document. Raises ``ConflictError`` on a uniqueness violation."""
        return (await self._insert("insert_one", [doc]))[0]

    async def insert_many(self, docs: Sequence[Mapping[str, Any]]) -> list[Document]:
        """Insert all documents in one transaction; nothing is written on conflict."""
        if not docs:
            return []
        return await self._insert("insert_many", docs)

    async def _insert(self, operation: str, docs: Sequence[Mapping[str, Any]]) -> list[Document]:
        now = self._clock()
        rows = [self._new_document(doc, now) for doc in docs]
        try:
            async with self.session_maker() as session, session.begin():
                await session.execute(insert(self.table), rows)
        except IntegrityError as exc:
            self._log_failure(operation, exc, documents=docs, level=logging.WARNING)
            raise ConflictError(f"{self.name}: {operation} violates a unique constraint") from exc
        except SQLAlchemyError as exc:
            self._log_failure(operation, exc, documents=docs)
            raise
        return rows

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def find(
        self,
        where: Where = (),
        *,
        projection: Optional[Sequence[str]] = None,
        order_by: Sequence[ColumnElement] = (),
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[Document]:
        stmt = self._select(projection).where(*where).order_by(*order_by).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as exc:
            self._log_failure("find", exc, where=where)
            raise

    async def find_one(
        self, where: Where = (), *, projection: Optional[Sequence[str]] = None
    ) -> Optional[Document]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(self._select(projection).where(*where).limit(1))
                row = result.mappings().first()
                return dict(row) if row is not None else None
        except SQLAlchemyError as exc:
            self._log_failure("find_one", exc, where=where)
            raise

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    async def update_one(
        self, where: Where, update_: Update, *, upsert: bool = False
    ) -> UpdateResult:
        """Update the first matching document.

        ``update_`` is either a field map (plain write) or a sequence of
        pipeline stages (atomic transform of the current document).
        """
        result, _, _ = await self._update("update_one", where, update_, upsert)
        return result

    async def find_one_and_update(
        self,
        where: Where,
        update_: Update,
        *,
        upsert: bool = False,
        return_document: ReturnDocument = ReturnDocument.AFTER,
    ) -> Optional[Document]:
        _, before, after = await self._update("find_one_and_update", where, update_, upsert)
        return after if return_document is ReturnDocument.AFTER else before

    async def _update(self, operation: str, where: Where, update_: Update, upsert: bool):
        try:
            if isinstance(update_, Mapping):
                return await self._set_fields(where, update_, upsert)
            return await self._transform(operation, where, list(update_), upsert)
        except IntegrityError as exc:
            self._log_failure(operation, exc, where=where, update_=update_, level=logging.WARNING)
            raise ConflictError(f"{self.name}: {operation} violates a unique constraint") from exc
        except SQLAlchemyError as exc:
            self._log_failure(operation, exc, where=where, update_=update_)
            raise

    async def _set_fields(self, where: Where, values: Mapping[str, Any], upsert: bool):
        now = self._clock()
        async with self.session_maker() as session, session.begin():
            before = await self._select_for_write(session, where)
            if before is None:
                if not upsert:
                    return UpdateResult(), None, None
                doc = self._new_document(values, now)
                await session.execute(insert(self.table).values(**doc))
                return UpdateResult(upserted_id=doc["id"]), None, doc

            fields = self._writable(values)
            await session.execute(
                update(self.table)
                .where(self.table.c.id == before["id"])
                .values(**fields, updated_at=now, version=self.table.c.version + 1)
            )
            after = {**before, **fields, "updated_at": now, "version": before["version"] + 1}
            return UpdateResult(matched_count=1, modified_count=1), before, after

    async def _transform(self, operation: str, where: Where, stages: list[Stage], upsert: bool):
        for attempt in range(1, self.max_attempts + 1):
            inserting = False
            try:
                async with self.session_maker() as session, session.begin():
                    now = self._clock()
                    before = await self._select_for_write(session, where)
                    if before is None:
                        if not upsert:
                            return UpdateResult(), None, None
                        inserting = True
                        after = self._apply(stages, {}, now)
                        after.setdefault("id", uuid.uuid4())
                        after["version"] = 0
                        await session.execute(insert(self.table).values(**after))
                        return UpdateResult(upserted_id=after["id"]), None, after

                    after = self._apply(stages, before, now)
                    changes = {
                        key: value for key, value in after.items()
                        if key != "version" and before.get(key) != value
                    }
                    after["version"] = before["version"] + 1
                    result = await session.execute(
                        update(self.table)
                        .where(
                            self.table.c.id == before["id"],
                            self.table.c.version == before["version"],
                        )
                        .values(**changes, version=after["version"])
                    )
                    if result.rowcount != 1:
                        raise _StaleVersion()
                    return UpdateResult(matched_count=1, modified_count=1), before, after
            except _StaleVersion:
                logger.debug(
                    "%s - %s: document changed underneath (attempt %d), re-applying",
                    operation, self.name, attempt,
                )
            except IntegrityError:
                # A concurrent upsert created the document first; apply to the winner.
                if not inserting:
                    raise
                logger.debug(
                    "%s - %s: lost upsert race (attempt %d), re-applying",
                    operation, self.name, attempt,
                )

        raise ConflictError(
            f"{self.name}: {operation} lost {self.max_attempts} consecutive write races"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _select(self, projection: Optional[Sequence[str]]):
        if projection is None:
            return select(self.table)
        return select(*(self.table.c[name] for name in projection))

    async def _select_for_write(self, session: AsyncSession, where: Where) -> Optional[Document]:
        result = await session.execute(select(self.table).where(*where).limit(1))
        row = result.mappings().first()
        return dict(row) if row is not None else None

    def _apply(self, stages: list[Stage], doc: Document, now: datetime) -> Document:
        doc = copy.deepcopy(doc)
        for stage in stages:
            doc = stage(doc)
        return self._writable(stamp_timestamps(now)(doc), keep_managed=True)

    def _new_document(self, doc: Mapping[str, Any], now: datetime) -> Document:
        new = self._writable(doc)
        new.setdefault("id", uuid.uuid4())
        new.update(created_at=now, updated_at=now, version=0)
        return new

    def _writable(self, doc: Mapping[str, Any], keep_managed: bool = False) -> Document:
        """Drop keys that are not columns (scratch fields) and, unless asked, managed ones."""
        return {
            key: value for key, value in doc.items()
            if key in self._columns and (keep_managed or key not in _MANAGED_FIELDS)
        }

    def _log_failure(
        self,
        operation: str,
        exc: Exception,
        *,
        where: Where = (),
        update_: Optional[Update] = None,
        documents: Optional[Sequence[Mapping[str, Any]]] = None,
        level: int = logging.ERROR,
    ) -> None:
        logger.log(
            level,
            "Error in %s - %s - filter=%s - update=%s - documents=%s: %s",
            operation,
            self.name,
            _dump([{str(clause): clause.compile().params} for clause in where]),
            _dump(_describe_update(update_)),
            _dump(documents),
            exc,
            exc_info=level >= logging.ERROR,
        )


def _describe_update(update_: Optional[Update]) -> Any:
    if update_ is None or isinstance(update_, Mapping):
        return update_
    return {"pipeline": describe(update_)}


def _dump(value: Any) -> str:
    return json.dumps(value, default=str)
