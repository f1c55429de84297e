# === 📦 IMPORTS ===
import os, sys, time, signal, logging, psutil, uvicorn
from contextlib import asynccontextmanager
from urllib.parse import urlencode
from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from bs4 import BeautifulSoup

from cache import SearchCache
from config import Settings, setup_logging, iso_now
from diagnostics import deployment_check
from player import render_player
from youtube import (
    CORS_HEADERS,
    DEFAULT_MAX_RESULTS,
    DEFAULT_PAGE,
    FetchFn,
    SearchProxy,
    close_client_session,
    fetch_youtube_search,
    parse_int,
)

setup_logging()

# === ⚙️ CONFIGURATION ===
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
STATIC_DIR = os.path.join(BASE_DIR, "static")
INDEX_HTML = os.path.join(STATIC_DIR, "index.html")

HEALTH_PATHS = {"/health", "/api/health"}
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

API_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


# === 🩺 HEALTH ===
def process_uptime() -> float:
    return time.time() - psutil.Process().create_time()


def health_payload(settings: Settings) -> dict:
    return {
        "status": "healthy",
        "timestamp": iso_now(),
        "uptime": process_uptime(),
        "environment": settings.environment_name,
    }


# === 🖼️ PAGES ===
def render_index(payload: dict, search: str, language: str, watch: str | None) -> str:
    with open(INDEX_HTML, encoding="utf-8") as f:
        soup = BeautifulSoup(f.read(), "lxml")

    search_input = soup.find(id="search-input")
    if search_input is not None and search:
        search_input["value"] = search

    language_option = soup.find("option", attrs={"value": language})
    if language_option is not None:
        language_option["selected"] = ""

    params = {k: v for k, v in {"search": search, "language": language}.items() if v}
    grid = soup.find(id="videos")

    if payload.get("error"):
        notice = soup.new_tag("p", attrs={"class": "notice"})
        notice.string = payload.get("message", "")
        grid.append(notice)

    for video in payload.get("videos", []):
        card = soup.new_tag(
            "a",
            attrs={
                "class": "video-card",
                "href": "/?" + urlencode({**params, "watch": video["id"]}),
            },
        )
        if video.get("thumbnail"):
            card.append(
                soup.new_tag("img", attrs={"src": video["thumbnail"], "alt": video.get("title") or ""})
            )
        title = soup.new_tag("h4")
        title.string = video.get("title") or ""
        channel = soup.new_tag("p")
        channel.string = video.get("channelTitle") or ""
        card.extend([title, channel])
        grid.append(card)

    selected = next((v for v in payload.get("videos", []) if v["id"] == watch), None)
    close_href = "/?" + urlencode(params) if params else "/"
    modal = render_player(selected, bool(watch), close_href=close_href, language=language)
    if modal is not None:
        soup.body.append(modal)

    return str(soup)


# === 🚀 FASTAPI ROUTES ===
router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def index(request: Request, search: str = "", language: str = "en", watch: str | None = None):
    proxy: SearchProxy = request.app.state.proxy
    _, payload = await proxy.search(search or None, DEFAULT_PAGE, DEFAULT_MAX_RESULTS, language)
    return HTMLResponse(render_index(payload, search, language, watch))


@router.api_route("/api/youtube", methods=ALL_METHODS)
async def youtube_search(
    request: Request,
    search: str | None = None,
    page: str | None = None,
    maxResults: str | None = None,
    language: str | None = None,
):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    if request.method != "GET":
        return JSONResponse(
            status_code=405, content={"message": "Method not allowed"}, headers=CORS_HEADERS
        )

    proxy: SearchProxy = request.app.state.proxy
    status, payload = await proxy.search(
        search,
        parse_int(page, DEFAULT_PAGE),
        parse_int(maxResults, DEFAULT_MAX_RESULTS),
        language,
    )
    return JSONResponse(status_code=status, content=payload, headers=CORS_HEADERS)


@router.api_route("/api/deployment-check", methods=ALL_METHODS)
def deployment_check_route(request: Request):
    status, payload = deployment_check(request.app.state.settings)
    return JSONResponse(status_code=status, content=payload)


# === 🧱 APP FACTORY ===
def create_app(
    settings: Settings | None = None,
    cache: SearchCache | None = None,
    fetch: FetchFn = fetch_youtube_search,
) -> FastAPI:
    settings = settings or Settings.from_env()
    cache = cache if cache is not None else SearchCache()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        base_url = f"http://{settings.host}:{settings.port}"
        logging.info(f"> Ready on {base_url}")
        logging.info(f"> Environment: {settings.environment_name}")
        logging.info(f"> Health check: {base_url}/health")
        yield
        await close_client_session()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.proxy = SearchProxy(cache, settings, fetch)

    @app.middleware("http")
    async def server_wrapper(request: Request, call_next):
        path = request.url.path

        if path in HEALTH_PATHS:
            return JSONResponse(health_payload(settings))

        is_api = path.startswith("/api/")
        if is_api and request.method == "OPTIONS":
            return Response(status_code=200, headers=API_CORS_HEADERS)

        try:
            response = await call_next(request)
        except Exception as e:
            logging.error(f"Error occurred handling {request.url}: {e}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "message": str(e) if settings.is_dev else "Something went wrong",
                    "timestamp": iso_now(),
                },
            )

        if is_api:
            for name, value in API_CORS_HEADERS.items():
                response.headers.setdefault(name, value)
        return response

    app.include_router(router)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    return app


app = create_app()


# === 🖥️ SERVER ===
class Server(uvicorn.Server):
    def handle_exit(self, sig, frame):
        logging.info(f"{signal.Signals(sig).name} received, shutting down")
        logging.shutdown()
        os._exit(0)


def main():
    settings = Settings.from_env()
    try:
        config = uvicorn.Config(
            create_app(settings), host=settings.host, port=settings.port, log_config=None
        )
        Server(config).run()
    except Exception as e:
        logging.error(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
