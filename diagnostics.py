import os, logging

from config import Settings, iso_now

DEPLOYMENT_PROBES = {
    "YouTubePlayer": "player.py",
    "components": "static",
    "pages": os.path.join("static", "index.html"),
    "lib": "youtube.py",
}


def deployment_check(settings: Settings) -> tuple[int, dict]:
    cwd = os.getcwd()
    try:
        files = {
            name: os.path.exists(os.path.join(cwd, path))
            for name, path in DEPLOYMENT_PROBES.items()
        }
        return 200, {
            "status": "success",
            "deploymentTime": iso_now(),
            "gitCommit": settings.git_commit or "unknown",
            "files": files,
            "workingDirectory": cwd,
            "nodeEnv": settings.environment,
        }
    except Exception as e:
        logging.error(f"DEPLOYMENT CHECK ERROR - {e}")
        return 500, {"status": "error", "message": str(e), "workingDirectory": cwd}
