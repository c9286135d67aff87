"""
Posted history persistence for TasiPulse.

The history is a capped, insertion-ordered list of {title, url, postedAt}
entries for stories that were published. The primary copy lives in an
object-store bucket; a local JSON file backs it up and takes over reads
when the bucket is unreachable.

Saving rewrites the whole list, so only one pipeline run may write at a
time. Concurrent runs are not coordinated here.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests
from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from tasipulse.config import settings
from tasipulse.scripts.data_manager import identity_url, load_json, save_json, to_iso, utc_now
from tasipulse.scripts.errors import HistoryPersistenceError
from tasipulse.scripts.logger import setup_logger

logger = setup_logger(__name__)

# Failures talking to the bucket; NotFound is handled separately
REMOTE_ERRORS = (gcs_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, requests.RequestException)


def make_history_entry(article: Dict[str, Any], posted_at: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the history record for a published article."""
    return {
        "title": article.get("title", ""),
        "url": identity_url(article.get("url")),
        "postedAt": to_iso(posted_at or utc_now()),
    }


def cap_history(entries: List[Dict[str, Any]], max_history: int) -> List[Dict[str, Any]]:
    """Keep the last ``max_history`` entries by insertion order."""
    if max_history <= 0:
        return []
    return list(entries[-max_history:])


def _validate_entries(data: Any, origin: str) -> List[Dict[str, Any]]:
    if not isinstance(data, list):
        raise HistoryPersistenceError(f"{origin}: history is not a JSON array")
    return [entry for entry in data if isinstance(entry, dict)]


class HistoryStore(ABC):
    """Abstract posted-history store."""

    def __init__(self, max_history: int = None):
        self.max_history = settings.MAX_HISTORY if max_history is None else max_history

    @abstractmethod
    def load(self) -> List[Dict[str, Any]]:
        """Return the stored entries, oldest first."""

    @abstractmethod
    def write(self, entries: List[Dict[str, Any]]) -> None:
        """Replace the stored list with ``entries``."""

    def merge(self, new_entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Existing entries plus ``new_entries``, capped."""
        return cap_history(self.load() + list(new_entries), self.max_history)

    def save(self, new_entries: List[Dict[str, Any]]) -> None:
        """Append ``new_entries`` and persist the capped list."""
        self.write(self.merge(new_entries))


class LocalFileHistoryStore(HistoryStore):
    """History kept in a local JSON file."""

    def __init__(self, path: Union[str, Path] = None, max_history: int = None):
        super().__init__(max_history)
        self.path = path or settings.HISTORY_FILE

    def load(self) -> List[Dict[str, Any]]:
        try:
            data = load_json(self.path)
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as e:
            raise HistoryPersistenceError(f"Local history unreadable: {e}") from e
        return _validate_entries(data, "local")

    def write(self, entries: List[Dict[str, Any]]) -> None:
        try:
            save_json(entries, self.path)
        except (OSError, TypeError) as e:
            raise HistoryPersistenceError(f"Local history write failed: {e}") from e


class GCSHistoryStore(HistoryStore):
    """
    History kept as a JSON object in a Cloud Storage bucket.

    The storage client is created on first use with application default
    credentials (the service account on Cloud Run / GCE).
    """

    def __init__(self, bucket: str, object_name: str = None, max_history: int = None,
                 client: Optional[storage.Client] = None, timeout: int = None):
        super().__init__(max_history)
        self.bucket = bucket
        self.object_name = object_name or settings.HISTORY_OBJECT
        self.timeout = timeout or settings.HISTORY_REQUEST_TIMEOUT
        self._client = client

    def _blob(self):
        if self._client is None:
            try:
                self._client = storage.Client()
            except auth_exceptions.GoogleAuthError as e:
                raise HistoryPersistenceError(f"Cloud Storage credentials unavailable: {e}") from e
        return self._client.bucket(self.bucket).blob(self.object_name)

    def load(self) -> List[Dict[str, Any]]:
        blob = self._blob()
        try:
            content = blob.download_as_text(timeout=self.timeout)
        except gcs_exceptions.NotFound:
            return []
        except REMOTE_ERRORS as e:
            raise HistoryPersistenceError(f"Remote history read failed: {e}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise HistoryPersistenceError(f"Remote history is not JSON: {e}") from e
        return _validate_entries(data, "remote")

    def write(self, entries: List[Dict[str, Any]]) -> None:
        blob = self._blob()
        body = json.dumps(entries, ensure_ascii=False)
        try:
            blob.upload_from_string(body, content_type="application/json", timeout=self.timeout)
        except REMOTE_ERRORS as e:
            raise HistoryPersistenceError(f"Remote history write failed: {e}") from e


class FallbackHistoryStore(HistoryStore):
    """
    Remote store with a local file behind it.

    Reads come from the primary unless it fails. Writes go to both; the
    save succeeds as long as one of them succeeded.
    """

    def __init__(self, primary: HistoryStore, fallback: HistoryStore, max_history: int = None):
        super().__init__(max_history if max_history is not None else primary.max_history)
        self.primary = primary
        self.fallback = fallback

    def load(self) -> List[Dict[str, Any]]:
        try:
            return self.primary.load()
        except HistoryPersistenceError as e:
            logger.warning(f"[History] Primary store unavailable, using local copy: {e}")
            return self.fallback.load()

    def write(self, entries: List[Dict[str, Any]]) -> None:
        errors = []
        for label, store in (("primary", self.primary), ("fallback", self.fallback)):
            try:
                store.write(entries)
            except HistoryPersistenceError as e:
                logger.warning(f"[History] {label} write failed: {e}")
                errors.append(str(e))

        if len(errors) == 2:
            raise HistoryPersistenceError("; ".join(errors))


def build_history_store() -> HistoryStore:
    """History store configured from settings."""
    local = LocalFileHistoryStore(settings.HISTORY_FILE, settings.MAX_HISTORY)
    if not settings.HISTORY_BUCKET:
        return local
    remote = GCSHistoryStore(settings.HISTORY_BUCKET, settings.HISTORY_OBJECT, settings.MAX_HISTORY)
    return FallbackHistoryStore(remote, local)
