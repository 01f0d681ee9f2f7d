import json
from typing import Any, Optional

import pytest
import pytest_asyncio

from bookhive.core.config import Settings
from bookhive.core.context import build_context
from bookhive.domain.entities import ExternalBookRef
from bookhive.domain.errors import AssetFetchError
from bookhive.domain.repositories import IAssetFetcher, ICacheService, ISearchProvider
from bookhive.infrastructure.database.connection import (
    create_engine,
    create_session_maker,
    init_db,
)
from bookhive.infrastructure.storage.local import LocalStorageService


class FakeCache(ICacheService):
    """In-memory cache that round-trips through JSON and records purges."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.invalidated: list[str] = []
        self.invalidated_prefixes: list[str] = []
        self.fail = False

    async def get_json(self, key: str) -> Optional[Any]:
        self._check()
        raw = self.store.get(key)
        return json.loads(raw) if raw is not None else None

    async def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        self._check()
        self.store[key] = json.dumps(value, default=str)

    async def invalidate(self, key: str) -> None:
        self._check()
        self.invalidated.append(key)
        self.store.pop(key, None)

    async def invalidate_prefix(self, prefix: str) -> None:
        self._check()
        self.invalidated_prefixes.append(prefix)
        for key in [k for k in self.store if k.startswith(prefix)]:
            del self.store[key]

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("cache down")


class FakeSearchProvider(ISearchProvider):

    def __init__(self) -> None:
        self.results: list[ExternalBookRef] = []
        self.error: Optional[Exception] = None
        self.calls: list[tuple[str, int]] = []

    async def search(self, query: str, page: int = 1) -> list[ExternalBookRef]:
        self.calls.append((query, page))
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeAssetFetcher(IAssetFetcher):

    def __init__(self) -> None:
        self.content = b"\xff\xd8\xff cover bytes"
        self.fail = False
        self.urls: list[str] = []

    async def fetch(self, url: str) -> bytes:
        self.urls.append(url)
        if self.fail:
            raise AssetFetchError(f"Failed to fetch {url}")
        return self.content


def make_ref(key, title="A Title", authors=("Some Author",), year=2001, cover_url=None):
    return ExternalBookRef(
        external_key=key,
        title=title,
        authors=list(authors),
        publication_year=year,
        cover_url=cover_url,
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'bookhive.db'}",
        storage_path=str(tmp_path / "storage"),
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_engine(settings.database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def provider():
    return FakeSearchProvider()


@pytest.fixture
def fetcher():
    return FakeAssetFetcher()


@pytest.fixture
def storage(settings):
    return LocalStorageService(settings.storage_path)


@pytest_asyncio.fixture
async def ctx(settings, engine, cache, provider, fetcher, storage):
    context = build_context(
        settings,
        engine=engine,
        cache=cache,
        search_provider=provider,
        asset_fetcher=fetcher,
        storage=storage,
    )
    yield context
    await context.aclose()
