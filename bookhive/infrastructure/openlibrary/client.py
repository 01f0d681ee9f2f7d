"""Open Library search and cover download over **httpx**."""

import logging
from typing import Any, Optional

import httpx

from bookhive.domain.entities import ExternalBookRef
from bookhive.domain.errors import AssetFetchError
from bookhive.domain.repositories import IAssetFetcher, ISearchProvider

logger = logging.getLogger(__name__)


class OpenLibraryClient(ISearchProvider):
    """Title search against ``GET /search.json``.

    Constructor args:
        base_url:     Open Library root (default ``https://openlibrary.org``).
        covers_url:   Covers host used to build ``cover_url`` from ``cover_i``.
        page_size:    Results per page requested from the API.
        timeout:      Per-request timeout in seconds.
        client:       Optional pre-built ``httpx.AsyncClient`` (tests inject one).

    Transport errors and non-2xx responses propagate as ``httpx.HTTPError``;
    the call is idempotent so the caller may retry it.
    """

    def __init__(
        self,
        base_url: str = "https://openlibrary.org",
        covers_url: str = "https://covers.openlibrary.org",
        page_size: int = 10,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.covers_url = covers_url.rstrip("/")
        self.page_size = page_size
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def search(self, query: str, page: int = 1) -> list[ExternalBookRef]:
        logger.info("OpenLibrary: searching title=%r page=%d", query, page)
        resp = await self.client.get(
            f"{self.base_url}/search.json",
            params={"title": query, "page": page, "limit": self.page_size},
        )
        resp.raise_for_status()
        docs = resp.json().get("docs") or []
        return [self._to_ref(doc) for doc in docs]

    def _to_ref(self, doc: dict[str, Any]) -> ExternalBookRef:
        raw_key = doc.get("key")
        cover_id = doc.get("cover_i")
        return ExternalBookRef(
            external_key=raw_key.rsplit("/", 1)[-1] if isinstance(raw_key, str) else None,
            title=doc.get("title"),
            authors=list(doc.get("author_name") or []),
            publication_year=doc.get("first_publish_year"),
            cover_url=f"{self.covers_url}/b/id/{cover_id}-M.jpg" if cover_id else None,
        )

    async def aclose(self) -> None:
        await self.client.aclose()


class HttpAssetFetcher(IAssetFetcher):
    """Downloads cover images with a bounded timeout."""

    def __init__(self, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def fetch(self, url: str) -> bytes:
        try:
            resp = await self.client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise AssetFetchError(f"Failed to fetch {url}: {exc}") from exc
        if not resp.content:
            raise AssetFetchError(f"Empty response body from {url}")
        return resp.content

    async def aclose(self) -> None:
        await self.client.aclose()
