"""RSS/Atom fetching and item normalization."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Final
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import feedparser
import httpx

logger = logging.getLogger(__name__)

UTM_PARAMS: Final[frozenset[str]] = frozenset(
    {"utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content"}
)

USER_AGENT = "newsdesk-ingestion/1.0 (+https://cucinalabs.com)"


def _normalize_category(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", " ", name.lower()).strip()


DEFAULT_FALLBACK_IMAGE = "https://images.unsplash.com/photo-1677442136019-21780ecad995?w=800&q=80"

FALLBACK_IMAGES: Final[dict[str, str]] = {
    _normalize_category("Agentic AI & Agents"): (
        "https://images.unsplash.com/photo-1620712943543-bcc4688e7485?w=800&q=80"
    ),
    _normalize_category("LLMs & Foundation Models"): (
        "https://images.unsplash.com/photo-1655720357761-f18ea9e5e7e6?w=800&q=80"
    ),
    _normalize_category("AI Product & UX"): (
        "https://images.unsplash.com/photo-1531403009284-440f080d1e12?w=800&q=80"
    ),
    _normalize_category("AI Safety & Governance"): (
        "https://images.unsplash.com/photo-1550751827-4bd374c3f58b?w=800&q=80"
    ),
    _normalize_category("AI Infrastructure & Tooling"): (
        "https://images.unsplash.com/photo-1518770660439-4636190af475?w=800&q=80"
    ),
    _normalize_category("Regulation & Policy"): (
        "https://images.unsplash.com/photo-1589829085413-56de8ae18c73?w=800&q=80"
    ),
    _normalize_category("Research & Whitepapers"): (
        "https://images.unsplash.com/photo-1532619675605-1ede6c2ed2b7?w=800&q=80"
    ),
}

CATEGORY_ALIASES: Final[dict[str, str]] = {
    _normalize_category("AI Product Strategy"): _normalize_category("AI Product & UX"),
    _normalize_category("AI Infrastructure"): _normalize_category("AI Infrastructure & Tooling"),
    _normalize_category("Research"): _normalize_category("Research & Whitepapers"),
    _normalize_category("LLMs and Foundation Models"): _normalize_category(
        "LLMs & Foundation Models"
    ),
}


def fallback_image(category: str | None) -> str:
    if not category:
        return DEFAULT_FALLBACK_IMAGE
    normalized = _normalize_category(category)
    return FALLBACK_IMAGES.get(CATEGORY_ALIASES.get(normalized, normalized), DEFAULT_FALLBACK_IMAGE)


def canonical_link(url: str) -> str:
    """Strip UTM tracking parameters; unparsable input is returned unchanged."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in UTM_PARAMS
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


_IMG_SRCSET = re.compile(r"<img[^>]+srcset=[\"']([^\"']+)[\"']", re.IGNORECASE)
_IMG_SRC = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
_IMG_DATA_SRC = re.compile(r"<img[^>]+data-src=[\"']([^\"']+)[\"']", re.IGNORECASE)


def image_from_html(html: str) -> str | None:
    match = _IMG_SRCSET.search(html)
    if match:
        first = match.group(1).split(",")[0].strip()
        if first:
            return first.split(" ")[0]
    for pattern in (_IMG_SRC, _IMG_DATA_SRC):
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


def _media_url(value: Any) -> str | None:
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        for entry in value:
            url = _media_url(entry)
            if url:
                return url
        return None
    if isinstance(value, dict):
        kind = value.get("type") or value.get("medium")
        if kind and "image" not in str(kind):
            return None
        return value.get("url") or value.get("href") or value.get("link")
    return None


def extract_image(entry: Any) -> str | None:
    """Image for a parsed feed entry: enclosures, media tags, then inline ``<img>``."""
    for field in ("enclosures", "media_content", "media_thumbnail", "itunes_image", "image"):
        url = _media_url(entry.get(field))
        if url:
            return url
    html = ""
    content = entry.get("content")
    if isinstance(content, list) and content:
        html = content[0].get("value") or ""
    html = html or entry.get("summary") or ""
    return image_from_html(html)


def _published_at(entry: Any) -> datetime | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=UTC)


@dataclass
class FeedItem:
    title: str
    link: str
    content: str
    published_at: datetime | None
    image_url: str | None = None
    category: str | None = None
    creator: str | None = None

    def to_prompt_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "link": self.link,
            "isoDate": self.published_at.isoformat() if self.published_at else None,
            "imageUrl": self.image_url,
            "category": self.category,
            "creator": self.creator,
        }


def parse_feed(payload: bytes | str) -> list[FeedItem]:
    feed = feedparser.parse(payload)
    items: list[FeedItem] = []
    for entry in feed.entries:
        link = entry.get("link") or ""
        if not link:
            continue
        items.append(
            FeedItem(
                title=entry.get("title") or "",
                link=link,
                content=entry.get("summary") or "",
                published_at=_published_at(entry),
                image_url=extract_image(entry),
                creator=entry.get("author"),
            )
        )
    return items


class RssFetcher:
    def __init__(
        self, transport: httpx.AsyncBaseTransport | None = None, timeout: float = 20.0
    ) -> None:
        self._transport = transport
        self._timeout = timeout

    async def fetch(self, url: str) -> list[FeedItem]:
        """Download and parse one feed; HTTP failures propagate as ``httpx.HTTPError``."""
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
        items = parse_feed(response.content)
        logger.debug("Fetched %d items from %s", len(items), url)
        return items
