"""Newsletter HTML/plain-text rendering.

Templates are Jinja2 with autoescaping off: template HTML is written by
admins and model output is inserted verbatim. Every outbound link in the
context is routed through ``/api/redirect`` on the site origin.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, Final
from urllib.parse import parse_qs, quote, urlsplit

from jinja2 import Environment, PackageLoader, TemplateError

from newsdesk.core.config import settings
from newsdesk.core.errors import NewsdeskError
from newsdesk.db.base import utcnow
from newsdesk.llm.schemas import NewsletterContent, StoryRef
from newsdesk.services.article_source import SourceArticle

SYSTEM_DAILY_TEMPLATE_ID: Final[str] = "system-daily-insights"
SYSTEM_WEEKLY_TEMPLATE_ID: Final[str] = "system-weekly-update"
SYSTEM_WELCOME_TEMPLATE_ID: Final[str] = "system-welcome"

BUILTIN_TEMPLATE_FILES: Final[dict[str, str]] = {
    SYSTEM_DAILY_TEMPLATE_ID: "daily.html.j2",
    SYSTEM_WEEKLY_TEMPLATE_ID: "weekly_update.html.j2",
    SYSTEM_WELCOME_TEMPLATE_ID: "welcome.html.j2",
}
WEEKLY_NEWSLETTER_TEMPLATE: Final[str] = "weekly.html.j2"

DEFAULT_SUBJECT = "cucina labs Briefing"

REDIRECTOR_HOSTS: Final[frozenset[str]] = frozenset(
    {
        "t.co",
        "bit.ly",
        "lnkd.in",
        "trib.al",
        "tinyurl.com",
        "goo.gl",
        "news.google.com",
        "link.medium.com",
        "mailchi.mp",
        "r.mailchimp.com",
        "l.facebook.com",
        "www.google.com",
        "google.com",
    }
)

_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)
_SCHEME_AUTHORITY = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)

_env = Environment(
    loader=PackageLoader("newsdesk", "templates"),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


class TemplateRenderError(NewsdeskError):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message, "template_render_failed")


def format_long_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def normalize_url(value: str | None) -> str:
    """Give scheme-less links an ``https://`` prefix."""
    trimmed = (value or "").strip()
    if not trimmed:
        return ""
    if _SCHEME_AUTHORITY.match(trimmed):
        return trimmed
    if trimmed.startswith("//"):
        return f"https:{trimmed}"
    if _SCHEME.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


def hostname(value: str | None) -> str:
    normalized = normalize_url(value)
    if not normalized:
        return ""
    try:
        host = (urlsplit(normalized).hostname or "").lower()
    except ValueError:
        return ""
    return host.removeprefix("www.")


def unwrap_redirect_url(value: str | None) -> str:
    """Follow Google, Facebook and ``?url=`` style redirectors one level."""
    normalized = normalize_url(value)
    if not normalized:
        return ""
    try:
        parts = urlsplit(normalized)
    except ValueError:
        return normalized
    host = (parts.hostname or "").lower()
    params = {key: values[0] for key, values in parse_qs(parts.query).items() if values}
    if host in ("www.google.com", "google.com") and parts.path == "/url":
        candidate = params.get("q") or params.get("url") or ""
    elif host == "l.facebook.com" and parts.path == "/l.php":
        candidate = params.get("u") or ""
    else:
        candidate = next(
            (params[key] for key in ("url", "u", "target", "dest") if params.get(key)), ""
        )
    unwrapped = normalize_url(candidate)
    return unwrapped if unwrapped and hostname(unwrapped) else normalized


def build_allowlist(urls: Iterable[str | None]) -> set[str]:
    allowlist: set[str] = set()
    for url in urls:
        host = hostname(unwrap_redirect_url(url))
        if host and host not in REDIRECTOR_HOSTS:
            allowlist.add(host)
    return allowlist


def safe_link(candidates: Sequence[str | None], allowlist: set[str]) -> str:
    """First candidate whose unwrapped host is a known article host, else ``""``."""
    for candidate in candidates:
        unwrapped = unwrap_redirect_url(candidate)
        host = hostname(unwrapped)
        if not host or host in REDIRECTOR_HOSTS or host not in allowlist:
            continue
        return unwrapped
    return ""


def wrap_redirect_url(url: str, origin: str) -> str:
    """Route ``url`` through ``{origin}/api/redirect`` unless it is already ours."""
    if not url or not origin:
        return url
    try:
        target = urlsplit(url)
        site = urlsplit(origin)
    except ValueError:
        return url
    if target.hostname and target.hostname == site.hostname:
        if target.path.startswith("/api/redirect") or target.path.startswith("/r/"):
            return url
    return f"{origin}/api/redirect?url={quote(url, safe='')}"


def normalize_title(value: str) -> str:
    lowered = re.sub(r"['’\"]", "", value.lower())
    return re.sub(r"\s+", " ", re.sub(r"[^a-z0-9\s]", " ", lowered)).strip()


def _wrap(url: str, origin: str) -> str:
    return wrap_redirect_url(url, origin) if url else ""


def normalize_articles(articles: Sequence[SourceArticle], origin: str) -> list[dict[str, Any]]:
    return [
        {
            "id": article.id,
            "title": article.title,
            "link": article.link,
            "source_link": _wrap(article.link, origin),
            "image_link": _wrap(article.image_url, origin),
            "summary": article.summary,
            "why_it_matters": article.why_it_matters,
            "business_value": article.business_value,
            "category": article.category,
            "creator": article.creator,
        }
        for article in articles
    ]


class _ArticleIndex:
    def __init__(self, articles: list[dict[str, Any]]) -> None:
        self.articles = articles

    def find(
        self, story: StoryRef | Mapping[str, Any] | None, index: int | None = None
    ) -> dict[str, Any] | None:
        if story is None:
            return None
        if isinstance(story, Mapping):
            # Templates pass the already-normalized story dicts back in.
            story = StoryRef.model_validate(dict(story))
        if story.id is not None:
            wanted = str(story.id)
            for article in self.articles:
                if article["id"] == wanted:
                    return article
        link = story.link or story.source_link
        if link:
            for article in self.articles:
                if link in (article["link"], article["source_link"]):
                    return article
        title = story.display_headline
        if title:
            for article in self.articles:
                if article["title"] == title:
                    return article
            normalized = normalize_title(title)
            for article in self.articles:
                if normalized and normalize_title(article["title"]) == normalized:
                    return article
        if index is not None and index < len(self.articles):
            return self.articles[index]
        return None


def build_newsletter_context(
    content: NewsletterContent,
    articles: Sequence[SourceArticle],
    origin: str = "",
    now: datetime | None = None,
) -> dict[str, Any]:
    current = now or utcnow()
    normalized = normalize_articles(articles, origin)
    index = _ArticleIndex(normalized)

    featured = content.featured_story or StoryRef()
    featured_article = index.find(featured) or (normalized[0] if normalized else {})
    featured_source = featured_article.get("link", "")
    featured_link = featured.resolved_link or featured_source

    top_stories = []
    for position, story in enumerate(content.top_stories):
        matched = index.find(story, position) or {}
        source_link = matched.get("link", "")
        top_stories.append(
            {
                "id": story.id,
                "headline": story.title or story.headline or "",
                "why_read_it": story.summary or story.why_read_it or "",
                "link": _wrap(story.link or story.source_link or source_link, origin),
                "source_link": _wrap(source_link, origin),
                "category": story.category or matched.get("category", ""),
                "creator": story.creator or matched.get("creator", ""),
            }
        )

    newsletter = {
        "subject": content.subject or DEFAULT_SUBJECT,
        "intro": content.intro or "",
        "featured_story": {
            "id": featured.id,
            "headline": featured.title or featured.headline or "",
            "why_this_matters": featured.summary or featured.why_this_matters or "",
            "link": _wrap(featured_link, origin),
            "source_link": _wrap(featured_source, origin),
        },
        "top_stories": top_stories,
        "looking_ahead": content.looking_ahead or "",
    }

    chefs_table = content.from_chefs_table
    cooking = content.what_were_cooking
    news_source = (
        [
            {
                "id": story.id,
                "headline": story.display_headline,
                "why_this_matters": (
                    story.why_this_matters or story.summary or story.why_read_it or ""
                ),
                "source": story.source or story.creator or "",
                "link": _wrap(story.link or story.source_link or story.url or "", origin),
            }
            for story in content.news
        ]
        if content.news
        else [
            {
                "id": story["id"],
                "headline": story["headline"],
                "why_this_matters": story["why_read_it"],
                "source": story["creator"],
                "link": story["link"],
            }
            for story in top_stories
        ]
    )
    weekly = {
        "from_chefs_table": {
            "title": (chefs_table.title if chefs_table else None) or "",
            "body": (chefs_table.body if chefs_table else None) or newsletter["intro"],
        },
        "news": news_source,
        "what_were_reading": [
            {
                "title": item.title or "",
                "url": _wrap(item.resolved_url, origin),
                "description": item.description or item.summary or "",
            }
            for item in content.what_were_reading
        ],
        "what_were_cooking": {
            "title": (cooking.title if cooking else None) or "",
            "url": _wrap(cooking.resolved_url if cooking else "", origin),
            "description": (cooking.description if cooking else None)
            or newsletter["looking_ahead"],
        },
    }

    extra_links = [item.resolved_url for item in content.what_were_reading]
    if cooking and cooking.resolved_url:
        extra_links.append(cooking.resolved_url)
    allowlist = build_allowlist([article.link for article in articles] + extra_links)

    base_url = origin or ""
    return {
        "content": content.model_dump(),
        "newsletter": newsletter,
        "weekly": weekly,
        "articles": normalized,
        "featured": featured_article,
        "find_article": index.find,
        "safe_link": lambda candidates: safe_link(candidates, allowlist),
        "unsubscribe_url": normalize_url(f"{base_url}/unsubscribe") if base_url else "/unsubscribe",
        "banner_url": f"{base_url}/video-background-2-still.png",
        "current_date": format_long_date(current),
        "current_year": current.year,
        "business_name": settings.business_name,
    }


def builtin_template_source(template_id: str) -> str | None:
    filename = BUILTIN_TEMPLATE_FILES.get(template_id)
    if filename is None:
        return None
    assert _env.loader is not None
    source, _, _ = _env.loader.get_source(_env, filename)
    return source


def render_template(source: str, context: dict[str, Any]) -> str:
    try:
        return _env.from_string(source).render(context)
    except TemplateError as exc:
        raise TemplateRenderError(f"Failed to render newsletter template: {exc}") from exc


def render_builtin(filename: str, context: dict[str, Any]) -> str:
    return _env.get_template(filename).render(context)


def generate_email_html(
    content: NewsletterContent,
    articles: Sequence[SourceArticle],
    origin: str = "",
    template: str | None = None,
    now: datetime | None = None,
) -> str:
    context = build_newsletter_context(content, articles, origin, now)
    if template:
        return render_template(template, context)
    default_id = SYSTEM_WEEKLY_TEMPLATE_ID if content.is_weekly else SYSTEM_DAILY_TEMPLATE_ID
    return render_builtin(BUILTIN_TEMPLATE_FILES[default_id], context)


def _footer_text(year: int) -> str:
    return (
        f"---\n© {year} {settings.business_name}\n"
        f"Unsubscribe: {settings.public_base_url}/unsubscribe"
    )


def _weekly_plain_text(content: NewsletterContent, year: int) -> str:
    chefs_table = (content.from_chefs_table.body if content.from_chefs_table else None) or (
        content.intro or ""
    )
    news = "\n\n".join(
        f"{position}. {story.headline or ''}\n{story.why_this_matters or ''}\n"
        f"{story.link or story.url or ''}"
        for position, story in enumerate(content.news, start=1)
    )
    sections = ["CUCINA LABS - WEEKLY UPDATE", chefs_table, f"NEWS\n{news}"]
    if content.what_were_reading:
        reading = "\n\n".join(
            f"{item.title or ''}\n{item.description or item.summary or ''}\n{item.resolved_url}"
            for item in content.what_were_reading
        )
        sections.append(f"WHAT WE'RE READING\n{reading}")
    cooking = content.what_were_cooking
    if cooking and cooking.title:
        sections.append(
            f"WHAT WE'RE COOKING\n{cooking.title}\n{cooking.description or ''}\n"
            f"{cooking.resolved_url}"
        )
    sections.append(_footer_text(year))
    return "\n\n".join(sections)


def _story_block(story: StoryRef) -> str:
    lines = []
    if story.category:
        lines.append(story.category.upper())
    lines.append(story.title or story.headline or "")
    lines.append(story.summary or story.why_read_it or story.why_this_matters or "")
    if story.link:
        lines.append(f"Read more: {story.link}")
    return "\n".join(lines)


def generate_plain_text(content: NewsletterContent, now: datetime | None = None) -> str:
    """Plain-text alternative: the weekly layout when ``news`` is present."""
    year = (now or utcnow()).year
    if content.is_weekly:
        return _weekly_plain_text(content, year)

    featured = content.featured_story
    highlights = []
    for story in ([featured] if featured else []) + content.top_stories[:3]:
        title = story.title or story.headline or ""
        summary = story.summary or story.why_read_it or story.why_this_matters or ""
        if title:
            highlights.append(f"- {title} - {summary}" if summary else f"- {title}")

    sections = ["CUCINA LABS - AI Product Newsletter", content.intro or ""]
    if highlights:
        sections.append("HIGHLIGHTS\n" + "\n".join(highlights))
    if featured and (featured.title or featured.headline):
        sections.append(f"FEATURED STORY\n{_story_block(featured)}")
    sections.append("TOP STORIES\n" + "\n\n".join(_story_block(s) for s in content.top_stories))
    if content.looking_ahead:
        sections.append(f"LOOKING AHEAD\n{content.looking_ahead}")
    sections.append(_footer_text(year))
    return "\n\n".join(section for section in sections if section)
