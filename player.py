"""Server-side rendering of the YouTube player modal.

The modal is a pure function of ``(video, is_open)``. Visibility belongs to
the caller: the backdrop and the close control only *request* a close, via
the ``close_href`` link in the browser or ``dispatch_click`` on the tree.
"""

# === 📦 IMPORTS ===
import re, logging
from datetime import datetime
from typing import Callable, Mapping
from bs4 import BeautifulSoup, Tag

# === ⚙️ CONFIGURATION ===
VIDEO_ID_PATTERN = re.compile(
    r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#]+)"
)
EMBED_URL = "https://www.youtube.com/embed/{video_id}?autoplay=1&rel=0"
IFRAME_ALLOW = (
    "accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope; picture-in-picture"
)

DATE_FORMATS = {
    "en": "{month}/{day}/{year}",
    "ro": "{day:02d}.{month:02d}.{year}",
}

CLOSE_ACTION = "close"


# === 🔧 UTILITIES ===
def extract_video_id(url: str | None) -> str | None:
    if not url:
        return None
    match = VIDEO_ID_PATTERN.search(url)
    return match.group(1) if match else None


def format_publish_date(value: str | None, language: str = "en") -> str:
    if not value:
        return ""
    try:
        published = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logging.debug(f"PLAYER - Unparsable publish date: {value!r}")
        return value
    template = DATE_FORMATS.get(language, DATE_FORMATS["en"])
    return template.format(day=published.day, month=published.month, year=published.year)


# === 🌐 RENDER ===
def render_player(
    video: Mapping | None,
    is_open: bool,
    close_href: str = "/",
    language: str = "en",
) -> Tag | None:
    if not is_open or not video:
        return None

    video_id = extract_video_id(video.get("url"))
    if not video_id:
        return None

    soup = BeautifulSoup("", "lxml")
    title = video.get("title") or ""

    overlay = soup.new_tag(
        "div",
        attrs={
            "class": "youtube-player-overlay",
            "data-action": CLOSE_ACTION,
            "data-close-href": close_href,
            "onclick": "window.location.href = this.dataset.closeHref",
        },
    )
    modal = soup.new_tag(
        "div",
        attrs={
            "class": "youtube-player-modal",
            "data-stop-propagation": "true",
            "onclick": "event.stopPropagation()",
        },
    )
    overlay.append(modal)

    header = soup.new_tag("div", attrs={"class": "youtube-player-header"})
    heading = soup.new_tag("h3")
    heading.string = title
    close_button = soup.new_tag(
        "a",
        attrs={
            "class": "close-button",
            "href": close_href,
            "data-action": CLOSE_ACTION,
            "aria-label": "Close",
        },
    )
    close_button.string = "×"
    header.extend([heading, close_button])

    container = soup.new_tag("div", attrs={"class": "youtube-player-container"})
    iframe = soup.new_tag(
        "iframe",
        attrs={
            "src": EMBED_URL.format(video_id=video_id),
            "title": title,
            "frameborder": "0",
            "allow": IFRAME_ALLOW,
            "allowfullscreen": "",
            "class": "youtube-iframe",
        },
    )
    container.append(iframe)

    info = soup.new_tag("div", attrs={"class": "youtube-player-info"})
    for css_class, text in [
        ("video-channel", video.get("channelTitle") or ""),
        ("video-date", f"Published: {format_publish_date(video.get('publishedAt'), language)}"),
        ("video-description", video.get("description") or ""),
    ]:
        paragraph = soup.new_tag("p", attrs={"class": css_class})
        paragraph.string = text
        info.append(paragraph)

    modal.extend([header, container, info])
    return overlay


def render_player_html(video: Mapping | None, is_open: bool, **kwargs) -> str:
    tree = render_player(video, is_open, **kwargs)
    return str(tree) if tree is not None else ""


# === 🖱️ EVENTS ===
def dispatch_click(target: Tag, on_close: Callable[[], None]) -> None:
    """Bubble a click from ``target`` up through its ancestors.

    Every element marked with the close action calls ``on_close``; an
    element marked ``data-stop-propagation`` ends the bubbling.
    """
    node = target
    while isinstance(node, Tag):
        if node.get("data-action") == CLOSE_ACTION:
            on_close()
        if node.get("data-stop-propagation") == "true":
            return
        node = node.parent
