"""
Shared fixtures: a controllable clock, canned upstream responses and an app
wired to a mocked upstream fetcher so no test touches the network.
"""

import logging
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from cache import SearchCache
from config import Settings


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_item(video_id, title="Test Video", thumbnails=None):
    if thumbnails is None:
        thumbnails = {
            "default": {"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg"},
            "high": {"url": f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"},
        }
    return {
        "kind": "youtube#searchResult",
        "id": {"kind": "youtube#video", "videoId": video_id},
        "snippet": {
            "title": title,
            "description": f"Description of {title}",
            "thumbnails": thumbnails,
            "channelTitle": "AI Channel",
            "publishedAt": "2024-01-15T10:30:00Z",
        },
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(youtube_api_key="test-key", git_commit="abc123", environment="development")


@pytest.fixture
def upstream_response():
    return {
        "items": [make_item("vid1", "First Video"), make_item("vid2", "Second Video")],
        "pageInfo": {"totalResults": 1000, "resultsPerPage": 2},
    }


@pytest.fixture
def fetch(upstream_response):
    return AsyncMock(return_value=upstream_response)


@pytest.fixture
def search_cache(clock):
    return SearchCache(clock=clock)


@pytest.fixture
def app(settings, search_cache, fetch):
    from main import create_app

    return create_app(settings=settings, cache=search_cache, fetch=fetch)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture(autouse=True)
def quiet_logging():
    logging.getLogger().setLevel(logging.WARNING)
    yield
    logging.getLogger().setLevel(logging.INFO)
