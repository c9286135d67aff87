"""
RSS feed scraper for TasiPulse.

Fetches and parses the Saudi market RSS feeds into normalized article
records. A failing source contributes nothing; only a run where every source
fails is an error.
"""

import calendar
import html
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import feedparser
import requests
from bs4 import BeautifulSoup

from tasipulse.config import settings, RSS_SOURCES
from tasipulse.scripts.data_manager import PLACEHOLDER_URL, utc_now
from tasipulse.scripts.errors import AllSourcesFailedError, SourceFetchError
from tasipulse.scripts.logger import setup_logger

logger = setup_logger(__name__)

RTL_MARK = "\u200f"
DEFAULT_CATEGORY = "General"


def extract_text_from_html(html_content: str) -> str:
    """
    Extract only text content from HTML, removing all tags.

    Args:
        html_content: HTML string that may contain tags

    Returns:
        Clean text content without any HTML tags
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")

    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(separator=" ", strip=True)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def _entry_date(entry: Any, fallback: datetime) -> datetime:
    """Published date of an entry as aware UTC, or the fetch time."""
    for field in ("published_parsed", "updated_parsed"):
        parsed = entry.get(field)
        if parsed:
            try:
                # feedparser normalizes struct_time to UTC
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (OverflowError, ValueError, TypeError):
                continue
    return fallback


def parse_feed_entries(entries: List[Any], source_name: str, fetched_at: datetime) -> List[Dict[str, Any]]:
    """
    Map feedparser entries to article records.

    Args:
        entries: feedparser entry objects
        source_name: Display name of the source
        fetched_at: Fetch time, used for ids and missing dates

    Returns:
        List of article dictionaries
    """
    timestamp_ms = int(fetched_at.timestamp() * 1000)
    articles = []

    for idx, entry in enumerate(entries):
        title = (entry.get("title") or "").lstrip(RTL_MARK).strip()
        raw_description = entry.get("description") or entry.get("summary") or ""
        description = extract_text_from_html(raw_description)

        articles.append({
            "id": f"{source_name}-{idx}-{timestamp_ms}",
            "title": title,
            "description": description[:settings.DESCRIPTION_MAX_CHARS],
            "source": source_name,
            "url": entry.get("link") or PLACEHOLDER_URL,
            "date": _entry_date(entry, fetched_at),
            "category": DEFAULT_CATEGORY,
        })

    return articles


def fetch_source(name: str, url: str, session: Optional[requests.Session] = None,
                 now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Fetch and parse one RSS source.

    Raises:
        SourceFetchError: On transport errors, non-2xx responses or documents
            that are not a feed at all
    """
    http = session or requests
    fetched_at = now or utc_now()

    try:
        response = http.get(
            url,
            timeout=settings.RSS_REQUEST_TIMEOUT,
            headers={"User-Agent": settings.RSS_USER_AGENT},
        )
        response.raise_for_status()
    except requests.RequestException as e:
        raise SourceFetchError(name, f"request failed: {e}") from e

    feed = feedparser.parse(response.content)

    if feed.bozo and not feed.entries and not feed.get("version"):
        raise SourceFetchError(name, f"unparseable feed: {feed.get('bozo_exception')}")

    articles = parse_feed_entries(feed.entries, name, fetched_at)
    logger.info(f"[RSS] {name}: {len(articles)} articles")
    return articles


def fetch_all(sources: Optional[List[Dict[str, str]]] = None, session: Optional[requests.Session] = None,
              now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Fetch every source, isolating per-source failures.

    Args:
        sources: List of {"name", "url"} dicts (defaults to RSS_SOURCES)
        session: Optional requests session
        now: Fetch time override

    Returns:
        All fetched articles, in source order

    Raises:
        AllSourcesFailedError: If every source failed
    """
    if sources is None:
        sources = RSS_SOURCES

    logger.info(f"[RSS] Fetching from {len(sources)} sources...")

    articles: List[Dict[str, Any]] = []
    failures = 0

    for source in sources:
        try:
            articles.extend(fetch_source(source["name"], source["url"], session=session, now=now))
        except SourceFetchError as e:
            failures += 1
            logger.error(f"[RSS] Failed to fetch {e}")

    if sources and failures == len(sources):
        raise AllSourcesFailedError("All RSS sources failed to return articles")

    logger.info(f"[RSS] Fetched {len(articles)} total articles")
    return articles
