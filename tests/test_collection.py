import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bookhive.domain.errors import ConflictError
from bookhive.infrastructure.database.collection import (
    DocumentCollection,
    ReturnDocument,
)
from bookhive.infrastructure.database.models import SearchHistoryModel
from bookhive.infrastructure.database.pipeline import set_default

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


def naive(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo.
    return value.replace(tzinfo=None)


def append_query(query):
    def append_query(doc):
        return {**doc, "queries": [*(doc.get("queries") or []), query]}

    return append_query


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def histories(session_maker, clock):
    return DocumentCollection(session_maker, SearchHistoryModel, clock=clock)


async def test_insert_stamps_both_timestamps(histories):
    doc = await histories.insert_one({"user_id": uuid.uuid4(), "queries": ["dune"]})

    assert doc["created_at"] == T0
    assert doc["updated_at"] == T0
    assert doc["version"] == 0


async def test_insert_ignores_caller_supplied_managed_fields(histories):
    bogus = datetime(1999, 1, 1, tzinfo=timezone.utc)
    doc = await histories.insert_one(
        {"user_id": uuid.uuid4(), "queries": [], "created_at": bogus, "version": 7}
    )

    assert doc["created_at"] == T0
    assert doc["version"] == 0


async def test_transform_keeps_created_at_and_moves_updated_at(histories, clock):
    user_id = uuid.uuid4()
    await histories.insert_one({"user_id": user_id, "queries": []})

    later = clock.advance(minutes=5)
    after = await histories.find_one_and_update(
        [SearchHistoryModel.user_id == user_id], [append_query("dune")]
    )
    stored = await histories.find_one([SearchHistoryModel.user_id == user_id])

    assert after["queries"] == ["dune"]
    assert naive(stored["created_at"]) == naive(T0)
    assert naive(stored["updated_at"]) == naive(later)
    assert stored["version"] == 1


async def test_field_update_keeps_created_at(histories, clock):
    user_id = uuid.uuid4()
    await histories.insert_one({"user_id": user_id, "queries": []})

    later = clock.advance(hours=1)
    result = await histories.update_one(
        [SearchHistoryModel.user_id == user_id],
        {"queries": ["x"], "created_at": later},
    )
    stored = await histories.find_one([SearchHistoryModel.user_id == user_id])

    assert result.matched_count == 1
    assert naive(stored["created_at"]) == naive(T0)
    assert naive(stored["updated_at"]) == naive(later)


async def test_upsert_creates_document_with_both_timestamps(histories):
    user_id = uuid.uuid4()
    doc = await histories.find_one_and_update(
        [SearchHistoryModel.user_id == user_id],
        [append_query("dune"), set_default("user_id", user_id)],
        upsert=True,
    )

    assert doc["user_id"] == user_id
    assert doc["queries"] == ["dune"]
    assert doc["created_at"] == doc["updated_at"] == T0


async def test_update_without_upsert_on_missing_document(histories):
    where = [SearchHistoryModel.user_id == uuid.uuid4()]

    result = await histories.update_one(where, [append_query("x")])
    doc = await histories.find_one_and_update(where, [append_query("x")])

    assert result.matched_count == 0
    assert result.upserted_id is None
    assert doc is None


async def test_return_document_before(histories):
    user_id = uuid.uuid4()
    await histories.insert_one({"user_id": user_id, "queries": ["a"]})

    before = await histories.find_one_and_update(
        [SearchHistoryModel.user_id == user_id],
        [append_query("b")],
        return_document=ReturnDocument.BEFORE,
    )

    assert before["queries"] == ["a"]


async def test_duplicate_unique_key_raises_conflict(histories):
    user_id = uuid.uuid4()
    await histories.insert_one({"user_id": user_id, "queries": []})

    with pytest.raises(ConflictError):
        await histories.insert_one({"user_id": user_id, "queries": []})


async def test_insert_many_writes_nothing_on_conflict(histories):
    user_id = uuid.uuid4()
    await histories.insert_one({"user_id": user_id, "queries": []})
    fresh = uuid.uuid4()

    with pytest.raises(ConflictError):
        await histories.insert_many(
            [{"user_id": fresh, "queries": []}, {"user_id": user_id, "queries": []}]
        )

    assert await histories.find_one([SearchHistoryModel.user_id == fresh]) is None


async def test_concurrent_transforms_do_not_lose_updates(histories):
    user_id = uuid.uuid4()
    await histories.insert_one({"user_id": user_id, "queries": []})
    where = [SearchHistoryModel.user_id == user_id]

    await asyncio.gather(*(histories.update_one(where, [append_query(f"q{i}")]) for i in range(6)))

    stored = await histories.find_one(where)
    assert sorted(stored["queries"]) == [f"q{i}" for i in range(6)]
    assert stored["version"] == 6


async def test_concurrent_upserts_create_one_document(histories):
    user_id = uuid.uuid4()
    where = [SearchHistoryModel.user_id == user_id]

    await asyncio.gather(
        *(
            histories.update_one(
                where, [append_query(f"q{i}"), set_default("user_id", user_id)], upsert=True
            )
            for i in range(4)
        )
    )

    docs = await histories.find(where)
    assert len(docs) == 1
    assert sorted(docs[0]["queries"]) == ["q0", "q1", "q2", "q3"]


async def test_transform_gives_up_after_max_attempts(session_maker, monkeypatch):
    histories = DocumentCollection(session_maker, SearchHistoryModel, max_attempts=3)
    user_id = uuid.uuid4()
    await histories.insert_one({"user_id": user_id, "queries": []})

    original = histories._select_for_write
    reads = []

    async def stale_read(session, where):
        doc = await original(session, where)
        reads.append(doc)
        return {**doc, "version": doc["version"] - 1}

    monkeypatch.setattr(histories, "_select_for_write", stale_read)

    with pytest.raises(ConflictError):
        await histories.update_one(
            [SearchHistoryModel.user_id == user_id], [append_query("x")]
        )
    assert len(reads) == 3


async def test_store_failure_is_logged_and_reraised(histories, caplog):
    caplog.set_level(logging.ERROR)

    with pytest.raises(SQLAlchemyError):
        await histories.find([text("no_such_column = 1")])

    assert any(
        "find" in record.getMessage() and "search_histories" in record.getMessage()
        for record in caplog.records
    )


async def test_find_supports_projection_order_and_paging(histories):
    for i in range(5):
        await histories.insert_one({"user_id": uuid.uuid4(), "queries": [f"q{i}"]})

    docs = await histories.find(
        projection=("id", "queries"),
        order_by=[SearchHistoryModel.id],
        skip=1,
        limit=2,
    )

    assert len(docs) == 2
    assert set(docs[0]) == {"id", "queries"}
