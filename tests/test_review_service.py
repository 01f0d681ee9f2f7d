import asyncio
import uuid

import pytest

from bookhive.domain.entities import NewBook
from bookhive.domain.errors import NotFoundError, ValidationError
from bookhive.services.caching import book_key


@pytest.fixture
async def book(ctx):
    return await ctx.book_repository.create(NewBook(key="OL1W", title="Dune"))


async def test_review_updates_rating_aggregate(ctx, book):
    await ctx.review_service.add_review(book.id, uuid.uuid4(), 4, "good")
    updated = await ctx.review_service.add_review(book.id, uuid.uuid4(), 2, "meh")

    assert updated.rating_count == 2
    assert updated.rating_sum == 6
    assert updated.rating_avg == 3.0
    assert updated.has_reviews is True
    assert [r.rating for r in updated.reviews] == [4, 2]

    stored = await ctx.book_repository.get_by_id(book.id)
    assert stored.rating_count == 2
    assert stored.rating_avg == 3.0


async def test_review_comment_is_trimmed(ctx, book):
    reviewer = uuid.uuid4()

    updated = await ctx.review_service.add_review(book.id, reviewer, 5, "  loved it  ")

    assert updated.reviews[0].comment == "loved it"
    assert updated.reviews[0].reviewer_id == str(reviewer)


async def test_review_on_missing_book(ctx):
    with pytest.raises(NotFoundError):
        await ctx.review_service.add_review(uuid.uuid4(), uuid.uuid4(), 3, "")


@pytest.mark.parametrize("rating", [0, 6, 3.5, True, "4", None])
async def test_review_rejects_bad_rating(ctx, book, rating):
    with pytest.raises(ValidationError):
        await ctx.review_service.add_review(book.id, uuid.uuid4(), rating, "")

    stored = await ctx.book_repository.get_by_id(book.id)
    assert stored.rating_count == 0


async def test_review_rejects_non_string_comment(ctx, book):
    with pytest.raises(ValidationError):
        await ctx.review_service.add_review(book.id, uuid.uuid4(), 3, None)


async def test_concurrent_reviews_keep_aggregate_consistent(ctx, book):
    ratings = [5, 4, 3, 2, 1, 5]

    await asyncio.gather(
        *(ctx.review_service.add_review(book.id, uuid.uuid4(), r, "") for r in ratings)
    )

    stored = await ctx.book_repository.get_by_id(book.id)
    assert stored.rating_count == len(ratings)
    assert stored.rating_sum == sum(ratings)
    assert stored.rating_avg == pytest.approx(sum(ratings) / len(ratings))
    assert len(stored.reviews) == len(ratings)


async def test_review_invalidates_book_entry(ctx, cache, book):
    cache.store[book_key(book.id)] = '{"stale": true}'

    await ctx.review_service.add_review(book.id, uuid.uuid4(), 4, "")

    assert book_key(book.id) not in cache.store
