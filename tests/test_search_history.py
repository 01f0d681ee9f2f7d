import asyncio
import uuid

import pytest

from bookhive.domain.errors import ValidationError
from bookhive.services.caching import last_search_key


async def test_repeated_query_is_stored_once(ctx):
    user_id = uuid.uuid4()

    await ctx.history_service.record(user_id, "dune")
    queries = await ctx.history_service.record(user_id, "dune")

    assert queries == ["dune"]


async def test_history_keeps_five_most_recent_newest_first(ctx):
    user_id = uuid.uuid4()

    for i in range(1, 7):
        await ctx.history_service.record(user_id, f"q{i}")

    assert await ctx.history_service.last_search(user_id) == ["q6", "q5", "q4", "q3", "q2"]


async def test_repeated_query_moves_to_front(ctx):
    user_id = uuid.uuid4()
    for query in ("a", "b", "c"):
        await ctx.history_service.record(user_id, query)

    assert await ctx.history_service.record(user_id, "a") == ["a", "c", "b"]


async def test_query_is_trimmed(ctx):
    user_id = uuid.uuid4()

    assert await ctx.history_service.record(user_id, "  dune  ") == ["dune"]


@pytest.mark.parametrize("query", ["", "   ", None])
async def test_blank_query_is_rejected(ctx, query):
    user_id = uuid.uuid4()

    with pytest.raises(ValidationError):
        await ctx.history_service.record(user_id, query)
    assert await ctx.history_service.last_search(user_id) == []


async def test_histories_are_per_user(ctx):
    alice, bob = uuid.uuid4(), uuid.uuid4()

    await ctx.history_service.record(alice, "dune")
    await ctx.history_service.record(bob, "emma")

    assert await ctx.history_service.last_search(alice) == ["dune"]
    assert await ctx.history_service.last_search(bob) == ["emma"]


async def test_concurrent_first_searches_create_one_history(ctx):
    user_id = uuid.uuid4()

    await asyncio.gather(*(ctx.history_service.record(user_id, f"q{i}") for i in range(4)))

    assert sorted(await ctx.history_service.last_search(user_id)) == ["q0", "q1", "q2", "q3"]


async def test_record_invalidates_last_search(ctx, cache):
    user_id = uuid.uuid4()
    cache.store[last_search_key(user_id)] = '{"queries": []}'

    await ctx.history_service.record(user_id, "dune")

    assert last_search_key(user_id) not in cache.store
