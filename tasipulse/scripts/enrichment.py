"""
Article enrichment for TasiPulse.

Asks the generative AI provider to write the bilingual headline and caption for each
selected article, one article at a time. Rate limiting is retried with a
linear backoff; any other failure skips just that article.
"""

import json
import re
import time
from typing import Any, Callable, Dict, List, Optional

from tasipulse.config import settings
from tasipulse.scripts.error_logger import log_exception
from tasipulse.scripts.errors import EnrichmentError, InvalidResponseError, RateLimitedError
from tasipulse.scripts.llm_providers import LLMProvider
from tasipulse.scripts.logger import setup_logger
from tasipulse.scripts.retry import RetryPolicy, linear_backoff, retry_call

logger = setup_logger(__name__)

MAX_FIGURES = 3
TRENDS = ("up", "down", "neutral")
TEXT_FIELDS = ("headline_en", "headline_ar", "summary_en", "summary_ar", "caption_en", "caption_ar")
LIST_FIELDS = ("key_points_en", "key_points_ar")

_STRING = {"type": "STRING"}
_STRING_LIST = {"type": "ARRAY", "items": _STRING}

ENRICHED_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "headline_en": _STRING,
        "headline_ar": _STRING,
        "summary_en": _STRING,
        "summary_ar": _STRING,
        "key_points_en": _STRING_LIST,
        "key_points_ar": _STRING_LIST,
        "caption_en": _STRING,
        "caption_ar": _STRING,
        "figures": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "key": _STRING,
                    "value": _STRING,
                    "label_en": _STRING,
                    "label_ar": _STRING,
                    "trend": {"type": "STRING", "enum": list(TRENDS)},
                },
                "required": ["key", "value", "label_en", "label_ar"],
            },
        },
    },
    "required": list(TEXT_FIELDS + LIST_FIELDS) + ["figures"],
}

PROMPT_TEMPLATE = """You are a professional financial news editor for "TasiPulse", a Saudi market news outlet.

Task: Analyze the following news article and extract/generate content for a social media post.

Input Source: {source}
Input Title: {title}
Input Text: {description}

Requirements:
1. Translate the core message to Arabic (Saudi business dialect, proper RTL Arabic - NOT transliterated).
2. Provide a punchy Headline in both English and Arabic (max 80 chars each).
3. Provide a short 2-sentence summary in both languages.
4. Extract 3-4 key bullet points in both languages (concise, max 60 chars each).
5. Generate a social media caption with relevant Arabic/English hashtags (max 300 chars).
6. Extract any numerical figures (prices, %, billions, etc.) into a structured list. Max 3 figures. If no specific figures exist, return an empty array.

IMPORTANT: Arabic text must be real Arabic script, not romanized transliteration.

Return ONLY valid JSON matching the response schema."""

CODE_FENCE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_prompt_input(text: str, max_chars: int = None) -> str:
    """
    Make article text safe to embed in the prompt.

    Control characters are removed, whitespace collapsed and the text capped.
    """
    if max_chars is None:
        max_chars = settings.PROMPT_MAX_INPUT_CHARS
    text = CONTROL_CHARS.sub("", text or "")
    text = re.sub(r"\s+", " ", text).strip()
    return text[:max_chars]


def build_prompt(article: Dict[str, Any]) -> str:
    """Editorial prompt for one article."""
    return PROMPT_TEMPLATE.format(
        source=sanitize_prompt_input(article.get("source", ""), 100),
        title=sanitize_prompt_input(article.get("title", ""), 500),
        description=sanitize_prompt_input(article.get("description", "")),
    )


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return CODE_FENCE.sub("", text or "").strip()


def _clean_figure(figure: Any) -> Optional[Dict[str, str]]:
    if not isinstance(figure, dict):
        return None
    trend = str(figure.get("trend") or "neutral").lower()
    return {
        "key": str(figure.get("key") or ""),
        "value": str(figure.get("value") or ""),
        "label_en": str(figure.get("label_en") or ""),
        "label_ar": str(figure.get("label_ar") or ""),
        "trend": trend if trend in TRENDS else "neutral",
    }


def parse_enriched(text: str) -> Dict[str, Any]:
    """
    Parse and normalize the provider's JSON answer.

    Raises:
        InvalidResponseError: Empty text, invalid JSON, a non-object, or a
            missing English headline
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise InvalidResponseError("Response contained no text")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise InvalidResponseError(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise InvalidResponseError("Response is not a JSON object")

    enriched: Dict[str, Any] = {}
    for field in TEXT_FIELDS:
        value = data.get(field)
        enriched[field] = value.strip() if isinstance(value, str) else ""

    if not enriched["headline_en"]:
        raise InvalidResponseError("Required field 'headline_en' is empty")

    for field in LIST_FIELDS:
        value = data.get(field)
        items = value if isinstance(value, list) else []
        enriched[field] = [str(item).strip() for item in items if str(item).strip()]

    figures = data.get("figures") if isinstance(data.get("figures"), list) else []
    cleaned_figures = [f for f in (_clean_figure(item) for item in figures) if f]
    enriched["figures"] = cleaned_figures[:MAX_FIGURES]

    return enriched


def default_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.ENRICHMENT_MAX_ATTEMPTS,
        backoff=linear_backoff(settings.ENRICHMENT_BACKOFF_SECONDS),
    )


class EnrichmentClient:
    """Sequential, rate-limit aware enrichment of selected articles."""

    def __init__(self, provider: LLMProvider, policy: RetryPolicy = None, delay_seconds: float = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.provider = provider
        self.policy = policy or default_retry_policy()
        self.delay_seconds = settings.ENRICHMENT_DELAY_SECONDS if delay_seconds is None else delay_seconds
        self.sleep = sleep
        self.last_attempts = 0
        self.last_backoff_seconds = 0.0

    def enrich(self, article: Dict[str, Any]) -> Dict[str, Any]:
        """
        Enrich one article.

        Only RateLimitedError is retried; every other error propagates at once.
        """
        prompt = build_prompt(article)
        self.last_attempts = 0
        self.last_backoff_seconds = 0.0

        def attempt():
            self.last_attempts += 1
            return self.provider.generate(prompt, ENRICHED_SCHEMA)

        def record_backoff(attempt_number, delay, error):
            self.last_backoff_seconds += delay

        logger.info(f"[Enrich] Enriching: \"{article.get('title', '')[:60]}...\"")
        text = retry_call(
            attempt,
            self.policy,
            should_retry=lambda e: isinstance(e, RateLimitedError),
            sleep=self.sleep,
            on_retry=record_backoff,
        )
        enriched = parse_enriched(text)
        logger.info(f"[Enrich] Enriched successfully: \"{enriched['headline_en'][:50]}\"")
        return enriched

    def enrich_many(self, articles: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Enrich articles one by one, skipping the ones that fail.

        Returns:
            List of {article, enriched, attempts, backoff_seconds}; may be
            shorter than the input
        """
        results = []

        for i, article in enumerate(articles):
            if i > 0 and self.delay_seconds > 0:
                self.sleep(self.delay_seconds)
            try:
                enriched = self.enrich(article)
            except EnrichmentError as e:
                logger.error(f"[Enrich] Failed to enrich \"{article.get('title', '')}\": {e}")
                continue
            except Exception as e:
                # A provider SDK bug skips this article only
                logger.exception(f"[Enrich] Unexpected error enriching \"{article.get('title', '')}\"")
                log_exception(e, context="enrich")
                continue

            results.append({
                "article": article,
                "enriched": enriched,
                "attempts": self.last_attempts,
                "backoff_seconds": self.last_backoff_seconds,
            })

        logger.info(f"[Enrich] Successfully enriched {len(results)}/{len(articles)} articles")
        return results
