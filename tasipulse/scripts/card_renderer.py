"""
Client for the external card renderer.

The renderer (a headless-browser service) turns a card config into a
square PNG. This module only builds the configs and fetches the images.
"""

from datetime import datetime
from typing import Any, Dict, Optional

import requests

from tasipulse.config import settings
from tasipulse.scripts.data_manager import to_iso, utc_now
from tasipulse.scripts.enrichment import MAX_FIGURES
from tasipulse.scripts.errors import RenderError
from tasipulse.scripts.logger import setup_logger

logger = setup_logger(__name__)

LANGUAGES = ("en", "ar")


def build_card_config(enriched: Dict[str, Any], lang: str, date: Optional[datetime] = None) -> Dict[str, Any]:
    """Card payload for one language."""
    return {
        "headline": enriched.get(f"headline_{lang}", ""),
        "summary": enriched.get(f"summary_{lang}", ""),
        "keyPoints": enriched.get(f"key_points_{lang}") or [],
        "figures": (enriched.get("figures") or [])[:MAX_FIGURES],
        "date": to_iso(date or utc_now()),
        "lang": lang,
        "platform": "instagram",  # square format
        "source": "",
    }


class CardRendererClient:
    """Fetches EN and AR card images from the renderer service."""

    def __init__(self, base_url: str = None, session: Optional[requests.Session] = None, timeout: int = None):
        self.base_url = base_url or settings.CARD_RENDERER_URL
        self.session = session or requests.Session()
        self.timeout = timeout or settings.CARD_RENDERER_TIMEOUT

    def render_card(self, config: Dict[str, Any]) -> bytes:
        try:
            response = self.session.post(self.base_url, json=config, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RenderError(f"Card render failed ({config['lang']}): {e}") from e
        if not response.content:
            raise RenderError(f"Card renderer returned an empty image ({config['lang']})")
        return response.content

    def render(self, enriched: Dict[str, Any], date: Optional[datetime] = None) -> Dict[str, bytes]:
        """
        Render both language cards.

        Returns:
            {"en": png_bytes, "ar": png_bytes}
        """
        images = {lang: self.render_card(build_card_config(enriched, lang, date)) for lang in LANGUAGES}
        logger.info(f"[Image] Generated EN + AR cards ({sum(len(b) for b in images.values())} bytes total)")
        return images
