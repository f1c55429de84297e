"""Google Calendar OAuth diagnostic.

Checks a running deployment's auth providers and session, then calls the
Calendar API with the session's access token and prints suggestions when
something is off.
"""

import argparse
import sys
import webbrowser
import requests

from launch import log

CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
REQUEST_TIMEOUT = 10

SUGGESTIONS = [
    "Enable Google Calendar API in Google Cloud Console",
    "Check that calendar.readonly scope is included",
    "Try re-authenticating with --reauth",
    "Check .env.local variables",
]


def check_server_config(base_url: str) -> dict | None:
    log("info", "Checking server configuration...")
    try:
        resp = requests.get(f"{base_url}/api/auth/providers", timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        providers = resp.json()
    except (requests.RequestException, ValueError) as e:
        log("error", f"Server config check failed: {e}")
        return None

    log("success", f"Available providers: {providers}")
    entries = providers.values() if isinstance(providers, dict) else providers
    google = next((p for p in entries if isinstance(p, dict) and p.get("id") == "google"), None)
    if google is None:
        log("error", "Google provider not found")
        return None

    scope = ((google.get("authorization") or {}).get("params") or {}).get("scope")
    log("success", "Google provider configured")
    log("info", f"Google scopes: {scope}")
    return google


def check_session(base_url: str, cookie: str | None = None) -> str | None:
    log("info", "Checking session...")
    headers = {"Cookie": cookie} if cookie else {}
    try:
        resp = requests.get(f"{base_url}/api/auth/session", headers=headers, timeout=REQUEST_TIMEOUT)
        session = resp.json()
    except (requests.RequestException, ValueError) as e:
        log("error", f"Session check failed: {e}")
        return None

    token = (session or {}).get("accessToken")
    if token:
        log("success", "Access token found!")
        return token
    log("error", "No access token - need to re-authenticate")
    return None


def probe_calendar_api(access_token: str | None) -> bool:
    log("info", "Testing Google Calendar API...")
    if not access_token:
        log("error", "No access token provided")
        return False

    try:
        resp = requests.get(
            CALENDAR_EVENTS_URL,
            params={"maxResults": 1, "singleEvents": "true", "orderBy": "startTime"},
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        log("error", f"Calendar API test failed: {e}")
        return False

    log("info", f"Response status: {resp.status_code}")
    if resp.ok:
        items = resp.json().get("items") or []
        log("success", f"Calendar API working! Events: {len(items)}")
        log("info", f"Sample event: {items[0] if items else 'No events'}")
        return True

    log("error", f"Calendar API error: {resp.status_code} {resp.text}")
    if resp.status_code == 403:
        log("action", "Calendar API might not be enabled or scope missing")
    elif resp.status_code == 401:
        log("action", "Token expired or invalid - need re-auth")
    return False


def force_reauth(base_url: str):
    log("action", "Forcing re-authentication...")
    webbrowser.open(f"{base_url}/auth/signin")


def run_diagnostic(base_url: str, cookie: str | None = None, token: str | None = None) -> bool:
    log("build", "Starting Google Calendar API diagnostic...")
    check_server_config(base_url)

    access_token = token or check_session(base_url, cookie)
    works = False
    if access_token:
        works = probe_calendar_api(access_token)
        if not works:
            log("hint", "Suggestions:")
            for i, suggestion in enumerate(SUGGESTIONS, 1):
                log("hint", f"{i}. {suggestion}")
    else:
        log("hint", "Try re-authenticating with --reauth")

    log("success", "Diagnostic complete!")
    return works


def main(argv=None):
    parser = argparse.ArgumentParser(description="Google Calendar OAuth diagnostic")
    parser.add_argument("--base-url", default="http://localhost:3008", help="Deployment base URL")
    parser.add_argument("--cookie", help="Session cookie header copied from the browser")
    parser.add_argument("--token", help="Use this access token instead of the session's")
    parser.add_argument("--reauth", action="store_true", help="Open the sign-in page and exit")
    args = parser.parse_args(argv)

    base_url = args.base_url.rstrip("/")
    if args.reauth:
        force_reauth(base_url)
        return 0
    return 0 if run_diagnostic(base_url, args.cookie, args.token) else 1


if __name__ == "__main__":
    sys.exit(main())
