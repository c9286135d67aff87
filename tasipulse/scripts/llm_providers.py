"""
Generative AI providers for TasiPulse enrichment.

Each provider turns a prompt plus a JSON schema into response text and
translates its own failure modes into the enrichment error taxonomy:
HTTP 429 becomes RateLimitedError, anything else ProviderError.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import anthropic
import requests

from tasipulse.config import settings
from tasipulse.scripts.errors import InvalidResponseError, ProviderError, RateLimitedError
from tasipulse.scripts.logger import setup_logger

logger = setup_logger(__name__)


class LLMProvider(ABC):
    """Abstract base class for LLM providers (Gemini, Claude, ...)."""

    name = "llm"

    @abstractmethod
    def generate(self, prompt: str, schema: Dict[str, Any]) -> str:
        """Return the raw response text for ``prompt``, shaped by ``schema``."""


class GeminiProvider(LLMProvider):
    """
    Gemini generateContent over REST, with a pool of API keys.

    A 429 on one key moves on to the next key in round-robin order; the call
    is rate limited only when every key answered 429.
    """

    name = "gemini"

    def __init__(self, api_keys: List[str] = None, model: str = None,
                 session: Optional[requests.Session] = None, timeout: int = None):
        keys = settings.GEMINI_API_KEYS if api_keys is None else api_keys
        if not keys:
            raise ValueError("At least one Gemini API key is required")
        self.api_keys = list(keys)
        self.model = model or settings.GEMINI_MODEL
        self.session = session or requests.Session()
        self.timeout = timeout or settings.ENRICHMENT_TIMEOUT
        self._key_index = 0

    @property
    def endpoint(self) -> str:
        return f"{settings.GEMINI_API_BASE_URL}/{self.model}:generateContent"

    def _request_body(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
                "temperature": settings.ENRICHMENT_TEMPERATURE,
                "maxOutputTokens": settings.ENRICHMENT_MAX_OUTPUT_TOKENS,
            },
        }

    def generate(self, prompt: str, schema: Dict[str, Any]) -> str:
        body = self._request_body(prompt, schema)

        for _ in range(len(self.api_keys)):
            key_number = self._key_index + 1
            headers = {
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_keys[self._key_index],
            }
            try:
                response = self.session.post(self.endpoint, json=body, headers=headers, timeout=self.timeout)
            except requests.RequestException as e:
                raise ProviderError(f"Gemini request failed: {e}") from e

            if response.status_code == 429:
                logger.warning(f"[Gemini] Key #{key_number} rate limited, rotating")
                self._key_index = (self._key_index + 1) % len(self.api_keys)
                continue

            if not response.ok:
                detail = _response_detail(response)
                raise ProviderError(
                    f"Gemini HTTP {response.status_code}", status_code=response.status_code, detail=detail
                )

            return _extract_gemini_text(response)

        raise RateLimitedError(f"Gemini rate limited on all {len(self.api_keys)} keys")


def _response_detail(response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


def _extract_gemini_text(response) -> str:
    try:
        data = response.json()
    except ValueError as e:
        raise InvalidResponseError(f"Gemini response is not JSON: {e}") from e

    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None

    if not text:
        raise InvalidResponseError("Empty response from Gemini")
    return text


class ClaudeProvider(LLMProvider):
    """Claude API provider via Anthropic."""

    name = "claude"

    def __init__(self, api_key: Optional[str] = None, model: str = None, client=None):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to settings.ANTHROPIC_API_KEY)
            model: Model name (defaults to settings.ANTHROPIC_MODEL)
            client: Pre-built anthropic client (tests)
        """
        self.client = client or anthropic.Anthropic(api_key=api_key or settings.ANTHROPIC_API_KEY or None)
        self.model = model or settings.ANTHROPIC_MODEL

    def generate(self, prompt: str, schema: Dict[str, Any]) -> str:
        system_prompt = (
            "You are a careful financial news editor. Respond with a single JSON object "
            "and nothing else. The object must match this JSON schema:\n"
            f"{json.dumps(schema, ensure_ascii=False)}"
        )
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=settings.ENRICHMENT_MAX_OUTPUT_TOKENS,
                temperature=settings.ENRICHMENT_TEMPERATURE,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.RateLimitError as e:
            raise RateLimitedError(f"Claude rate limited: {e}") from e
        except anthropic.APIStatusError as e:
            raise ProviderError(f"Claude HTTP {e.status_code}", status_code=e.status_code, detail=str(e)) from e
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {str(e)}", exc_info=True)
            raise ProviderError(f"Claude API error: {e}") from e

        texts = [block.text for block in message.content if getattr(block, "type", "") == "text"]
        if not texts or not texts[0]:
            raise InvalidResponseError("Empty response from Claude")
        return texts[0]


def build_llm_provider() -> LLMProvider:
    """Provider selected by settings.LLM_PROVIDER."""
    if settings.LLM_PROVIDER == "claude":
        return ClaudeProvider()
    if settings.LLM_PROVIDER == "gemini":
        return GeminiProvider()
    raise ValueError(f"Unknown LLM provider: {settings.LLM_PROVIDER}")
