# === 📦 IMPORTS ===
import os, time, logging
from dataclasses import dataclass
from datetime import datetime, timezone
from dotenv import load_dotenv

# === ℹ️ LOGGING ===
start_time = time.monotonic()


class ElapsedFormatter(logging.Formatter):
    def format(self, record):
        elapsed = time.monotonic() - start_time
        record.elapsed_time = f"{elapsed:.2f}s"
        return super().format(record)


formatter_str = "%(elapsed_time)s [%(levelname)s] %(message)s"


def setup_logging(level=logging.INFO):
    logging.basicConfig(level=level, format=formatter_str)

    for handler in logging.getLogger().handlers:
        handler.setFormatter(ElapsedFormatter(formatter_str))

    for lib in ["aiohttp", "urllib3", "asyncio", "uvicorn.access"]:
        logging.getLogger(lib).setLevel(logging.WARNING)


# === ⚙️ CONFIGURATION ===
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3008


@dataclass(frozen=True)
class Settings:
    youtube_api_key: str | None = None
    git_commit: str = "unknown"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    environment: str | None = None

    @property
    def environment_name(self) -> str:
        return self.environment or "development"

    @property
    def is_dev(self) -> bool:
        return self.environment != "production"

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "Settings":
        load_dotenv(env_file)
        try:
            port = int(os.getenv("PORT", DEFAULT_PORT))
        except ValueError:
            logging.warning(f"CONFIG - Invalid PORT {os.getenv('PORT')!r}, using {DEFAULT_PORT}")
            port = DEFAULT_PORT

        return cls(
            youtube_api_key=os.getenv("YOUTUBE_API_KEY")
            or os.getenv("NEXT_PUBLIC_YOUTUBE_API_KEY"),
            git_commit=os.getenv("GITHUB_SHA") or "unknown",
            host=os.getenv("HOSTNAME") or DEFAULT_HOST,
            port=port,
            environment=os.getenv("APP_ENV") or os.getenv("NODE_ENV"),
        )


# === 🔧 UTILITIES ===
def iso_now() -> str:
    """UTC timestamp with millisecond precision and a trailing Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
