import os
import subprocess
import sys
import time
import webbrowser
import requests

from config import Settings

# === ⚙️ SETTINGS ===
DEFAULT_RETRIES = 20
DEFAULT_DELAY = 2
BASE_DIR = os.path.dirname(os.path.abspath(__file__))


# === 🧾 LOGGING ===
def log(status: str, message: str, end="\n"):
    icons = {
        "info": "ℹ️ ",
        "success": "✅",
        "error": "❌",
        "action": "🔧",
        "waiting": "⏳",
        "build": "🚀",
        "hint": "💡",
    }
    print(f"\r{icons.get(status, '❔')} {message}", end=end, flush=True)


# === 🔑 CONFIG ===
def check_config(settings: Settings):
    log("action", "Checking configuration...")
    if settings.youtube_api_key:
        log("success", "YouTube API key configured.")
    else:
        log("error", "YOUTUBE_API_KEY is not set; /api/youtube will serve placeholder data.")
    log("info", f"Environment: {settings.environment_name}, commit: {settings.git_commit}")


# === 🖥️ SERVER ===
def start_server() -> subprocess.Popen:
    log("build", "Starting server process")
    try:
        return subprocess.Popen([sys.executable, os.path.join(BASE_DIR, "main.py")], cwd=BASE_DIR)
    except OSError as e:
        log("error", f"Exception during server launch: {e}")
        sys.exit(1)


# === ⏳ WAITERS ===
def wait_for_service(
    host: str,
    port: int,
    path: str = "/health",
    process: subprocess.Popen | None = None,
    retries=DEFAULT_RETRIES,
    delay=DEFAULT_DELAY,
):
    url = f"http://{host}:{port}{path}"
    msg = f"Waiting for {url}"
    log("waiting", msg, end="")

    dots = ""
    for _ in range(retries):
        if process is not None and process.poll() is not None:
            print()
            log("error", f"Server exited early (exit {process.returncode}).")
            sys.exit(1)

        try:
            resp = requests.get(url, timeout=2)
            if resp.status_code == 200 and resp.json().get("status") == "healthy":
                print("\r" + " " * (len(msg) + len(dots) + 4), end="\r")
                log("success", f"{url} is ready.")
                return
        except (requests.RequestException, ValueError):
            pass

        dots += "."
        print(f"\r⏳ {msg}{dots}", end="", flush=True)
        time.sleep(delay)

    print()
    log("error", f"Timeout waiting for {url}")
    sys.exit(1)


# === 🌐 BROWSER ===
def open_browser(url: str):
    log("action", f"Opening browser at {url}")
    webbrowser.open(url)


# === 🚀 MAIN ===
def main():
    log("info", "=== 🚀 News Video Service Bootstrap ===")
    settings = Settings.from_env()
    check_config(settings)
    process = start_server()
    try:
        wait_for_service(settings.host, settings.port, process=process)
        open_browser(f"http://{settings.host}:{settings.port}")
        log("success", "🎉 All systems operational!")
        process.wait()
    except KeyboardInterrupt:
        log("action", "Stopping server...")
        process.terminate()
        process.wait()


if __name__ == "__main__":
    main()
