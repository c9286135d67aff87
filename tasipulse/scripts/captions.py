"""
Bilingual caption building for TasiPulse posts.

Pure functions: combine the English and Arabic captions into one string
that fits a platform's hard length ceiling.
"""

from typing import Any, Dict

from tasipulse.config import settings

ELLIPSIS = "..."
SEPARATOR = "\n\n"


def truncate(text: str, max_len: int) -> str:
    """Cut ``text`` to ``max_len`` characters, ending in an ellipsis when cut."""
    if max_len <= 0:
        return ""
    if len(text) <= max_len:
        return text
    if max_len <= len(ELLIPSIS):
        return text[:max_len]
    return text[:max_len - len(ELLIPSIS)] + ELLIPSIS


def _join(en: str, ar: str) -> str:
    return SEPARATOR.join(part for part in (en, ar) if part)


def caption_parts(enriched: Dict[str, Any]):
    """English and Arabic caption text, falling back to the headlines."""
    en = (enriched.get("caption_en") or enriched.get("headline_en") or "").strip()
    ar = (enriched.get("caption_ar") or enriched.get("headline_ar") or "").strip()
    return en, ar


def build_caption(enriched: Dict[str, Any], limit: int, en_max: int = None) -> str:
    """
    Build a caption no longer than ``limit``.

    1. Full bilingual text, unchanged, if it fits.
    2. English shortened to ``en_max`` plus the full Arabic, if that fits.
    3. English only, truncated to ``limit``.
    """
    if en_max is None:
        en_max = settings.X_CAPTION_EN_MAX

    en, ar = caption_parts(enriched)

    full = _join(en, ar)
    if len(full) <= limit:
        return full

    shortened = _join(truncate(en, en_max), ar)
    if len(shortened) <= limit:
        return shortened

    return truncate(en or ar, limit)


def build_x_caption(enriched: Dict[str, Any]) -> str:
    return build_caption(enriched, settings.X_CAPTION_LIMIT, settings.X_CAPTION_EN_MAX)


def build_instagram_caption(enriched: Dict[str, Any]) -> str:
    return build_caption(enriched, settings.INSTAGRAM_CAPTION_LIMIT, settings.INSTAGRAM_CAPTION_EN_MAX)
