"""
Exception taxonomy for TasiPulse.

Failures are granular: a source, an article or a platform can fail without
taking the run down. Only FatalPipelineError is meant to end a run.
"""

from typing import Any, Dict, Optional


class TasiPulseError(Exception):
    """Base class for all pipeline errors."""


# --- Ingestion ---

class SourceFetchError(TasiPulseError):
    """A single RSS source could not be fetched or parsed."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class FatalPipelineError(TasiPulseError):
    """The run cannot produce anything useful and must stop."""

    def __init__(self, message: str, summary: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.summary = summary


class AllSourcesFailedError(FatalPipelineError):
    """Every configured RSS source failed."""


class PipelineBusyError(TasiPulseError):
    """A pipeline run is already in progress in this process."""


# --- Enrichment ---

class EnrichmentError(TasiPulseError):
    """Enrichment failed for one article."""


class RateLimitedError(EnrichmentError):
    """The provider answered HTTP 429 for every available credential."""


class InvalidResponseError(EnrichmentError):
    """The provider answered, but not with usable JSON content."""


class ProviderError(EnrichmentError):
    """Any other provider failure (non-2xx, transport error)."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


# --- Rendering ---

class RenderError(TasiPulseError):
    """The card renderer did not return images."""


# --- Publishing ---

class PublishError(TasiPulseError):
    """Base class for failures on a publish path."""

    def __init__(self, message: str, platform: str = "", detail: Any = None):
        super().__init__(message)
        self.platform = platform
        self.detail = detail


class ConfigurationError(PublishError):
    """Credentials or endpoints for a platform are missing."""


class MediaUploadError(PublishError):
    """A media upload or container step was rejected or failed."""


class MediaProcessingTimeout(PublishError):
    """Server-side media processing did not finish within the poll budget."""


class PublishRejectedError(PublishError):
    """The final post/publish call returned a non-2xx response."""


# --- History ---

class HistoryPersistenceError(TasiPulseError):
    """Posted history could not be read or written."""
