"""
Article selection for TasiPulse.

Handles deduplication, financial relevance filtering, importance
ranking and removal of previously posted stories.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from tasipulse.scripts.data_manager import identity_url, normalize_title, utc_now
from tasipulse.scripts.logger import setup_logger
from tasipulse.scripts.scoring import is_financially_relevant, score_article

logger = setup_logger(__name__)

# Number of ranked candidates written to the log on each selection
LOG_TOP_CANDIDATES = 6


def article_key(article: Dict[str, Any]) -> Tuple[str, str]:
    """Identity of an article: its URL, or its normalized title when it has no link."""
    url = identity_url(article.get("url"))
    if url:
        return ("url", url)
    return ("title", normalize_title(article.get("title")))


def deduplicate_articles(articles: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Remove articles whose identity was already seen; first occurrence wins.

    Args:
        articles: Articles in fetch order

    Returns:
        Articles with unique URLs (or titles, for linkless items), order preserved
    """
    seen = set()
    unique = []
    for article in articles:
        key = article_key(article)
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


def rank_articles(articles: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Score copies of the articles and sort them by score, highest first.

    sorted() is stable, so equal scores keep their incoming order.
    """
    if now is None:
        now = utc_now()
    scored = [{**article, "score": score_article(article, now)} for article in articles]
    return sorted(scored, key=lambda a: a["score"], reverse=True)


def is_previously_posted(article: Dict[str, Any], history: List[Dict[str, Any]]) -> bool:
    """
    Check an article against the posted history.

    URLs are compared when both sides have one; otherwise the normalized
    titles must match exactly.
    """
    url = identity_url(article.get("url"))
    title = normalize_title(article.get("title"))

    for entry in history:
        entry_url = identity_url(entry.get("url"))
        if url and entry_url:
            if url == entry_url:
                return True
        elif title and title == normalize_title(entry.get("title")):
            return True
    return False


def remove_previously_posted(articles: List[Dict[str, Any]], history: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop articles already present in the posted history."""
    return [a for a in articles if not is_previously_posted(a, history)]


def select_articles(articles: List[Dict[str, Any]], history: List[Dict[str, Any]], limit: int,
                    now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Pick the most important fresh articles.

    Steps, in order: dedupe by URL or title, keep financially relevant articles,
    score and sort, drop previously posted ones, truncate to ``limit``.

    Args:
        articles: Fetched articles
        history: Posted history entries ({title, url, postedAt})
        limit: Maximum number of articles to return
        now: Reference time for recency scoring

    Returns:
        Scored article copies, highest score first (may be empty)
    """
    unique = deduplicate_articles(articles)
    relevant = [a for a in unique if is_financially_relevant(a)]
    ranked = rank_articles(relevant, now)
    fresh = remove_previously_posted(ranked, history)

    logger.info(
        f"[Select] {len(articles)} fetched, {len(unique)} unique, {len(relevant)} relevant, "
        f"{len(fresh)} not yet posted"
    )
    for i, article in enumerate(fresh[:LOG_TOP_CANDIDATES], 1):
        logger.info(f"  {i}. [{article['score']}pts] {article['title'][:70]}")

    selected = fresh[:max(0, limit)]
    logger.info(f"[Select] Selected {len(selected)} articles after importance scoring")
    return selected
