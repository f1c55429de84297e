# === 📦 IMPORTS ===
import asyncio, logging
from dataclasses import dataclass, field, asdict
from typing import Any, Awaitable, Callable
from aiohttp import ClientTimeout, ClientSession

from cache import SearchCache
from config import Settings, iso_now

# === ⚙️ CONFIGURATION ===
YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
UPSTREAM_TIMEOUT = 10
MAX_RESULTS_CAP = 25
DEFAULT_PAGE = 1
DEFAULT_MAX_RESULTS = 20

DEFAULT_QUERY = (
    "artificial intelligence OR machine learning OR AI technology OR deep learning"
)
ROMANIAN_QUERY = (
    "inteligență artificială OR AI OR tehnologie OR machine learning OR deep learning"
)

FALLBACK_MESSAGE = "Unable to fetch YouTube videos at this time"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

client_session: ClientSession | None = None
_session_lock = asyncio.Lock()

FetchFn = Callable[[dict, float], Awaitable[dict]]


class ConfigurationError(RuntimeError):
    pass


class UpstreamError(RuntimeError):
    pass


# === 🧠 MODELS ===
@dataclass(frozen=True)
class VideoSummary:
    id: str
    title: str
    description: str
    thumbnail: str | None
    channelTitle: str
    publishedAt: str
    url: str

    @classmethod
    def from_item(cls, item: dict) -> "VideoSummary":
        snippet = item.get("snippet") or {}
        thumbnails = snippet.get("thumbnails") or {}
        video_id = (item.get("id") or {}).get("videoId")
        thumbnail = (thumbnails.get("high") or {}).get("url") or (
            thumbnails.get("default") or {}
        ).get("url")

        return cls(
            id=video_id,
            title=snippet.get("title"),
            description=snippet.get("description"),
            thumbnail=thumbnail,
            channelTitle=snippet.get("channelTitle"),
            publishedAt=snippet.get("publishedAt"),
            url=YOUTUBE_WATCH_URL.format(video_id=video_id),
        )


@dataclass(frozen=True)
class SearchResult:
    videos: tuple[VideoSummary, ...]
    totalResults: int
    search: str | None
    page: int
    maxResults: int
    cached: bool = False
    timestamp: str = field(default_factory=iso_now)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["videos"] = list(data["videos"])
        return data


# === 🔧 UTILITIES ===
def parse_int(value: Any, default: int) -> int:
    # Cache keys use the parsed value, so "?page=abc" and "?page=1" share an entry.
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logging.debug(f"PARAM - Not an integer: {value!r}, using {default}")
        return default


def resolve_query(search: str | None, language: str | None) -> str:
    if search:
        return search
    return ROMANIAN_QUERY if language == "ro" else DEFAULT_QUERY


def build_search_params(query: str, page: int, max_results: int, api_key: str) -> dict:
    params = {
        "part": "snippet",
        "q": query,
        "type": "video",
        "maxResults": min(max_results, MAX_RESULTS_CAP),
        "order": "relevance",
        "videoDefinition": "any",
        "videoDuration": "any",
        "key": api_key,
    }
    # Not a real YouTube page token; upstream rejects or ignores it.
    if page > 1:
        params["pageToken"] = f"page{page}"
    return params


def fallback_payload(search: str | None, page: int, max_results: int) -> dict:
    placeholder = VideoSummary(
        id="demo",
        title="AI Videos Loading...",
        description="Unable to fetch YouTube videos at this time. Please try again later.",
        thumbnail=None,
        channelTitle="AI News",
        publishedAt=iso_now(),
        url="#",
    )
    return {
        "videos": [asdict(placeholder)],
        "totalResults": 0,
        "search": search or "",
        "page": page or DEFAULT_PAGE,
        "maxResults": max_results or DEFAULT_MAX_RESULTS,
        "error": True,
        "message": FALLBACK_MESSAGE,
        "timestamp": iso_now(),
    }


# === 🌐 UPSTREAM ===
async def get_client_session():
    global client_session
    async with _session_lock:
        if client_session is None or client_session.closed:
            client_session = ClientSession()
    return client_session


async def close_client_session():
    global client_session
    if client_session and not client_session.closed:
        await client_session.close()
    client_session = None


async def fetch_youtube_search(params: dict, timeout: float = UPSTREAM_TIMEOUT) -> dict:
    session = await get_client_session()
    async with session.get(
        YOUTUBE_SEARCH_URL, params=params, timeout=ClientTimeout(total=timeout)
    ) as resp:
        if not 200 <= resp.status < 300:
            body = await resp.text()
            raise UpstreamError(f"HTTP {resp.status}: {body[:200]}")
        return await resp.json()


# === 🔍 SEARCH PROXY ===
class SearchProxy:
    def __init__(
        self,
        cache: SearchCache,
        settings: Settings,
        fetch: FetchFn = fetch_youtube_search,
        timeout: float = UPSTREAM_TIMEOUT,
    ):
        self.cache = cache
        self.settings = settings
        self.fetch = fetch
        self.timeout = timeout

    async def search(
        self,
        search: str | None = None,
        page: int = DEFAULT_PAGE,
        max_results: int = DEFAULT_MAX_RESULTS,
        language: str | None = None,
    ) -> tuple[int, dict]:
        """Serve a search from cache or upstream.

        Returns ``(status_code, payload)``. Every failure is turned into the
        500 fallback payload, so callers never see an exception.
        """
        try:
            api_key = self.settings.youtube_api_key
            if not api_key:
                raise ConfigurationError("YouTube API key not configured")

            cache_key = SearchCache.make_key(search, page, max_results)
            cached = self.cache.get(cache_key)
            if cached is not None:
                logging.info(f"CACHE HIT - {cache_key}")
                return 200, cached.to_dict()

            query = resolve_query(search, language)
            params = build_search_params(query, page, max_results, api_key)
            logging.info(f"SEARCH - q={query!r} page={page} maxResults={params['maxResults']}")

            data = await self.fetch(params, self.timeout)

            result = SearchResult(
                videos=tuple(VideoSummary.from_item(item) for item in data["items"]),
                totalResults=(data.get("pageInfo") or {}).get("totalResults") or 0,
                search=search,
                page=page,
                maxResults=max_results,
                cached=False,
            )
            self.cache.set(cache_key, result)
            logging.info(f"RESULTS - {len(result.videos)} video(s) for {cache_key}")
            return 200, result.to_dict()

        except Exception as e:
            logging.error(f"YOUTUBE API ERROR - {e.__class__.__name__}: {e}")
            return 500, fallback_payload(search, page, max_results)
