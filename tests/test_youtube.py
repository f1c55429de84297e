import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from conftest import make_item
from config import Settings
from youtube import (
    DEFAULT_QUERY,
    ROMANIAN_QUERY,
    SearchProxy,
    UpstreamError,
    VideoSummary,
    build_search_params,
    close_client_session,
    fetch_youtube_search,
    parse_int,
    resolve_query,
)


@pytest.fixture
def proxy(search_cache, settings, fetch):
    return SearchProxy(search_cache, settings, fetch)


def sent_params(fetch):
    return fetch.await_args.args[0]


class TestSearchProxy:
    def test_miss_fetches_and_maps_results(self, proxy, fetch):
        status, payload = asyncio.run(proxy.search("robots", 1, 20))

        assert status == 200
        assert fetch.await_count == 1
        assert payload["cached"] is False
        assert payload["totalResults"] == 1000
        assert payload["search"] == "robots"
        assert payload["page"] == 1
        assert payload["maxResults"] == 20
        assert payload["videos"][0] == {
            "id": "vid1",
            "title": "First Video",
            "description": "Description of First Video",
            "thumbnail": "https://i.ytimg.com/vi/vid1/hqdefault.jpg",
            "channelTitle": "AI Channel",
            "publishedAt": "2024-01-15T10:30:00Z",
            "url": "https://www.youtube.com/watch?v=vid1",
        }

    def test_identical_query_is_served_from_cache(self, proxy, fetch):
        _, first = asyncio.run(proxy.search("robots", 2, 10))
        _, second = asyncio.run(proxy.search("robots", 2, 10))

        assert fetch.await_count == 1
        assert second == first

    def test_different_query_misses_cache(self, proxy, fetch):
        asyncio.run(proxy.search("robots", 1, 20))
        asyncio.run(proxy.search("robots", 2, 20))
        assert fetch.await_count == 2

    def test_expired_entry_refetches(self, proxy, fetch, clock):
        asyncio.run(proxy.search("robots", 1, 20))
        clock.advance(600)
        asyncio.run(proxy.search("robots", 1, 20))
        assert fetch.await_count == 2

    @pytest.mark.parametrize("requested, sent", [(40, 25), (26, 25), (25, 25), (10, 10)])
    def test_max_results_is_clamped_upstream(self, proxy, fetch, requested, sent):
        _, payload = asyncio.run(proxy.search("ai", 1, requested))

        assert sent_params(fetch)["maxResults"] == sent
        assert payload["maxResults"] == requested

    def test_page_token_only_after_first_page(self, proxy, fetch):
        asyncio.run(proxy.search("ai", 1, 20))
        assert "pageToken" not in sent_params(fetch)

        asyncio.run(proxy.search("ai", 3, 20))
        assert sent_params(fetch)["pageToken"] == "page3"

    def test_upstream_request_shape(self, proxy, fetch):
        asyncio.run(proxy.search("ai", 1, 20))
        params = sent_params(fetch)

        assert params["part"] == "snippet"
        assert params["type"] == "video"
        assert params["order"] == "relevance"
        assert params["key"] == "test-key"
        assert fetch.await_args.args[1] == 10

    def test_romanian_default_query(self, proxy, fetch):
        asyncio.run(proxy.search(None, 1, 20, language="ro"))
        assert sent_params(fetch)["q"] == ROMANIAN_QUERY

    def test_missing_api_key_falls_back(self, search_cache, fetch):
        proxy = SearchProxy(search_cache, Settings(youtube_api_key=None), fetch)

        status, payload = asyncio.run(proxy.search("ai", 1, 20))

        assert status == 500
        assert payload["error"] is True
        assert fetch.await_count == 0

    @pytest.mark.parametrize(
        "error",
        [
            aiohttp.ClientConnectionError("connection refused"),
            asyncio.TimeoutError(),
            UpstreamError("HTTP 403: quotaExceeded"),
        ],
    )
    def test_upstream_failure_returns_placeholder(self, search_cache, settings, error):
        fetch = AsyncMock(side_effect=error)
        proxy = SearchProxy(search_cache, settings, fetch)

        status, payload = asyncio.run(proxy.search(None, 2, 30))

        assert status == 500
        assert payload["error"] is True
        assert payload["message"] == "Unable to fetch YouTube videos at this time"
        assert len(payload["videos"]) == 1
        assert payload["videos"][0]["id"] == "demo"
        assert payload["videos"][0]["url"] == "#"
        assert payload["search"] == ""
        assert payload["page"] == 2
        assert payload["maxResults"] == 30
        assert payload["totalResults"] == 0
        assert len(search_cache) == 0

    def test_failures_are_not_cached(self, search_cache, settings, upstream_response):
        fetch = AsyncMock(side_effect=[UpstreamError("HTTP 500"), upstream_response])
        proxy = SearchProxy(search_cache, settings, fetch)

        first_status, _ = asyncio.run(proxy.search("ai", 1, 20))
        second_status, _ = asyncio.run(proxy.search("ai", 1, 20))

        assert (first_status, second_status) == (500, 200)

    def test_malformed_upstream_body_falls_back(self, search_cache, settings):
        proxy = SearchProxy(search_cache, settings, AsyncMock(return_value={"error": {}}))
        status, payload = asyncio.run(proxy.search("ai", 1, 20))
        assert status == 500
        assert payload["videos"][0]["id"] == "demo"


class TestVideoSummary:
    def test_prefers_high_thumbnail(self):
        video = VideoSummary.from_item(make_item("abc"))
        assert video.thumbnail.endswith("/hqdefault.jpg")

    def test_falls_back_to_default_thumbnail(self):
        item = make_item("abc", thumbnails={"default": {"url": "https://i.ytimg.com/d.jpg"}})
        assert VideoSummary.from_item(item).thumbnail == "https://i.ytimg.com/d.jpg"

    def test_missing_thumbnails(self):
        assert VideoSummary.from_item(make_item("abc", thumbnails={})).thumbnail is None


class TestHelpers:
    def test_resolve_query(self):
        assert resolve_query("llm", "ro") == "llm"
        assert resolve_query(None, None) == DEFAULT_QUERY
        assert resolve_query("", "en") == DEFAULT_QUERY
        assert resolve_query(None, "ro") == ROMANIAN_QUERY

    def test_parse_int(self):
        assert parse_int("3", 1) == 3
        assert parse_int(None, 20) == 20
        assert parse_int("", 20) == 20
        assert parse_int("abc", 20) == 20

    def test_build_search_params_drops_page_token_on_first_page(self):
        params = build_search_params("ai", 1, 5, "key")
        assert "pageToken" not in params
        assert params["maxResults"] == 5


async def run_against_upstream(handler, call):
    """Run ``call`` with the search URL pointed at a local aiohttp app."""
    app = web.Application()
    app.router.add_get("/youtube/v3/search", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        with patch("youtube.YOUTUBE_SEARCH_URL", str(server.make_url("/youtube/v3/search"))):
            return await call()
    finally:
        await close_client_session()
        await server.close()


class TestFetchYouTubeSearch:
    @pytest.fixture
    def requests_seen(self):
        return []

    def test_forwards_params_as_query_string(self, search_cache, settings, upstream_response, requests_seen):
        async def handler(request):
            requests_seen.append(dict(request.query))
            return web.json_response(upstream_response)

        proxy = SearchProxy(search_cache, settings)
        status, payload = asyncio.run(
            run_against_upstream(handler, lambda: proxy.search(None, 2, 40, "ro"))
        )

        assert status == 200
        assert [v["id"] for v in payload["videos"]] == ["vid1", "vid2"]
        query = requests_seen[0]
        assert query["maxResults"] == "25"
        assert query["pageToken"] == "page2"
        assert query["q"] == ROMANIAN_QUERY
        assert query["key"] == "test-key"

    def test_non_200_success_status_is_accepted(self, search_cache, settings, upstream_response):
        async def handler(request):
            return web.json_response(upstream_response, status=203)

        proxy = SearchProxy(search_cache, settings)
        status, _ = asyncio.run(run_against_upstream(handler, lambda: proxy.search("ai", 1, 20)))

        assert status == 200

    def test_error_status_falls_back(self, search_cache, settings):
        async def handler(request):
            return web.json_response({"error": {"code": 403, "message": "quotaExceeded"}}, status=403)

        proxy = SearchProxy(search_cache, settings)
        status, payload = asyncio.run(run_against_upstream(handler, lambda: proxy.search("ai", 1, 20)))

        assert status == 500
        assert [v["id"] for v in payload["videos"]] == ["demo"]
        assert len(search_cache) == 0

    def test_error_status_raises_upstream_error(self, settings):
        async def handler(request):
            return web.Response(status=502, text="bad gateway")

        with pytest.raises(UpstreamError, match="HTTP 502"):
            asyncio.run(
                run_against_upstream(handler, lambda: fetch_youtube_search({"q": "ai"}, 5))
            )

    def test_slow_upstream_times_out(self, search_cache, settings, upstream_response):
        async def handler(request):
            await asyncio.sleep(1)
            return web.json_response(upstream_response)

        proxy = SearchProxy(search_cache, settings, timeout=0.1)
        status, payload = asyncio.run(run_against_upstream(handler, lambda: proxy.search("ai", 1, 20)))

        assert status == 500
        assert payload["error"] is True
