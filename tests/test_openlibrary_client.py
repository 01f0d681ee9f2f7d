import httpx
import pytest

from bookhive.domain.errors import AssetFetchError
from bookhive.infrastructure.openlibrary.client import HttpAssetFetcher, OpenLibraryClient


def search_client(handler) -> OpenLibraryClient:
    return OpenLibraryClient(
        base_url="https://ol.test/",
        covers_url="https://covers.test",
        page_size=5,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


async def test_search_maps_documents():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "docs": [
                    {
                        "key": "/works/OL45883W",
                        "title": "Dune",
                        "author_name": ["Frank Herbert"],
                        "first_publish_year": 1965,
                        "cover_i": 12345,
                    },
                    {"key": "/works/OL1W", "title": "No Cover"},
                ]
            },
        )

    client = search_client(handler)
    refs = await client.search("dune", page=2)
    await client.aclose()

    assert seen[0].url.path == "/search.json"
    assert seen[0].url.params["title"] == "dune"
    assert seen[0].url.params["page"] == "2"
    assert seen[0].url.params["limit"] == "5"
    assert refs[0].external_key == "OL45883W"
    assert refs[0].authors == ["Frank Herbert"]
    assert refs[0].publication_year == 1965
    assert refs[0].cover_url == "https://covers.test/b/id/12345-M.jpg"
    assert refs[1].authors == []
    assert refs[1].cover_url is None


async def test_search_without_docs():
    client = search_client(lambda request: httpx.Response(200, json={"numFound": 0}))

    assert await client.search("nothing") == []


async def test_search_raises_on_server_error():
    client = search_client(lambda request: httpx.Response(503))

    with pytest.raises(httpx.HTTPStatusError):
        await client.search("dune")


async def test_asset_fetcher_returns_body():
    fetcher = HttpAssetFetcher(
        client=httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"jpeg"))
        )
    )

    assert await fetcher.fetch("https://covers.test/b/id/1-M.jpg") == b"jpeg"


@pytest.mark.parametrize(
    "response",
    [httpx.Response(404), httpx.Response(200, content=b"")],
)
async def test_asset_fetcher_wraps_failures(response):
    fetcher = HttpAssetFetcher(
        client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))
    )

    with pytest.raises(AssetFetchError):
        await fetcher.fetch("https://covers.test/b/id/1-M.jpg")


async def test_asset_fetcher_wraps_transport_errors():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    fetcher = HttpAssetFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(AssetFetchError):
        await fetcher.fetch("https://covers.test/b/id/1-M.jpg")
