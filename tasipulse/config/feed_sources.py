"""
RSS feed sources for TasiPulse.

Each source has a display name (used for scoring and filtering rules) and
the feed URL. Source names are significant: "Argaam" earns a curated-source
bonus and "Disclosures" bypasses the financial keyword filter.
"""

from typing import Dict, List

RSS_SOURCES: List[Dict[str, str]] = [
    {
        "key": "argaam",
        "name": "Argaam",
        "url": "https://www.argaam.com/en/rss/ho-main-news?sectionid=1524",
    },
    {
        "key": "argaam-disc",
        "name": "Disclosures",
        "url": "https://www.argaam.com/en/rss/ho-company-disclosures?sectionid=244",
    },
    {
        "key": "alarabiya",
        "name": "Al Arabiya",
        "url": "https://english.alarabiya.net/feed/rss2/en/business.xml",
    },
]


def get_source_by_key(key: str) -> Dict[str, str]:
    """Look up a configured source by its short key."""
    for source in RSS_SOURCES:
        if source["key"] == key:
            return source
    raise KeyError(f"Unknown feed source: {key}")
