"""
Importance scoring for TasiPulse articles.

Additive keyword/entity/recency/source rules. The score is a pure function
of the article text, source and date plus the reference time, so callers
that need reproducible results pass ``now`` explicitly.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tasipulse.scripts.data_manager import utc_now


def _unique(keywords: List[str]) -> List[str]:
    """Drop repeated keywords, keeping first-seen order."""
    return list(dict.fromkeys(keywords))


# High-impact companies and entities, major market movers
TIER1_COMPANIES = _unique([
    "aramco", "sabic", "stc", "al rajhi", "alrajhi", "samba", "snb",
    "riyad bank", "maaden", "acwa", "neom", "pif",
    "public investment fund", "vision 2030",
])

# Market-moving events and regulators
HIGH_IMPACT_KEYWORDS = _unique([
    "ipo", "merger", "acquisition", "bankruptcy", "default",
    "dividend", "earnings", "profit", "loss", "revenue", "results",
    "interest rate", "inflation", "gdp", "oil price", "crude",
    "tasi", "tadawul", "suspend", "halt", "record high", "record low",
    "billion", "trillion", "quarterly", "annual report", "guidance",
    "sama", "cma", "ministry of finance", "vision 2030",
])

# Generic market terms
MEDIUM_IMPACT_KEYWORDS = _unique([
    "saudi", "riyal", "sar", "bank", "market", "shares", "stock",
    "investment", "financial", "million", "percent", "growth",
    "quarter", "contract", "partnership", "expansion", "launch",
])

# Routine or administrative news
LOW_IMPACT_KEYWORDS = _unique([
    "appointment", "board member", "agm", "general assembly",
    "minor", "routine", "reminder", "clarification",
])

FINANCIAL_KEYWORDS = _unique(HIGH_IMPACT_KEYWORDS + MEDIUM_IMPACT_KEYWORDS)

FIGURE_PATTERN = re.compile(r"\d+(\.\d+)?\s*(billion|million|trillion|%|percent|sar|riyal)")

TIER1_BONUS = 40
HIGH_IMPACT_POINTS = 15
MEDIUM_IMPACT_POINTS = 5
LOW_IMPACT_PENALTY = -10
FIGURE_POINTS = 8
CURATED_SOURCE = "Argaam"
CURATED_SOURCE_BONUS = 10


def article_text(article: Dict[str, Any]) -> str:
    """Lowercased title + description, the text every keyword rule runs on."""
    return f"{article.get('title') or ''} {article.get('description') or ''}".lower()


def recency_points(article_date: Optional[datetime], now: datetime) -> int:
    """
    Recency bonus or penalty.

    Bands are checked in order and are mutually exclusive:
    under 2h +20, under 6h +10, over 24h -15, otherwise 0.
    """
    if article_date is None:
        return 0
    if article_date.tzinfo is None:
        article_date = article_date.replace(tzinfo=timezone.utc)

    age_hours = (now - article_date).total_seconds() / 3600
    if age_hours < 2:
        return 20
    if age_hours < 6:
        return 10
    if age_hours > 24:
        return -15
    return 0


def score_breakdown(article: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Per-rule contributions to an article's score.

    Returns:
        Dict of rule name -> points, plus "total" (floored at 0)
    """
    if now is None:
        now = utc_now()

    text = article_text(article)

    tier1 = TIER1_BONUS if any(company in text for company in TIER1_COMPANIES) else 0
    high = HIGH_IMPACT_POINTS * sum(1 for kw in HIGH_IMPACT_KEYWORDS if kw in text)
    medium = MEDIUM_IMPACT_POINTS * sum(1 for kw in MEDIUM_IMPACT_KEYWORDS if kw in text)
    low = LOW_IMPACT_PENALTY * sum(1 for kw in LOW_IMPACT_KEYWORDS if kw in text)
    figures = FIGURE_POINTS * sum(1 for _ in FIGURE_PATTERN.finditer(text))
    recency = recency_points(article.get("date"), now)
    source = CURATED_SOURCE_BONUS if article.get("source") == CURATED_SOURCE else 0

    breakdown = {
        "tier1": tier1,
        "high_impact": high,
        "medium_impact": medium,
        "low_impact": low,
        "figures": figures,
        "recency": recency,
        "source": source,
    }
    breakdown["total"] = max(0, sum(breakdown.values()))
    return breakdown


def score_article(article: Dict[str, Any], now: Optional[datetime] = None) -> int:
    """Importance score of an article, never negative."""
    return score_breakdown(article, now)["total"]


def is_financially_relevant(article: Dict[str, Any]) -> bool:
    """Disclosures always qualify; anything else needs a financial keyword."""
    if article.get("source") == "Disclosures":
        return True
    text = article_text(article)
    return any(kw in text for kw in FINANCIAL_KEYWORDS)
