"""
Data management utilities for TasiPulse.

Handles JSON file operations and small record helpers shared by the
history store, the draft store and the selector.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union
from tasipulse.config import settings

JsonData = Union[dict, list]


def resolve_data_path(file_path: Union[str, Path]) -> Path:
    """Relative paths are relative to DATA_DIR."""
    path = Path(file_path)
    if not path.is_absolute():
        path = settings.DATA_DIR / path
    return path


def load_json(file_path: Union[str, Path]) -> JsonData:
    """
    Load JSON data from file.

    Args:
        file_path: Path to JSON file (relative to DATA_DIR or absolute)

    Returns:
        Parsed JSON document (object or array)

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    path = resolve_data_path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"JSON file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_json(data: JsonData, file_path: Union[str, Path]) -> None:
    """
    Save JSON data to file.

    The document is written to a temporary file in the same directory and
    then moved into place, so a crash never leaves a half-written file.

    Args:
        data: Object or array to save as JSON
        file_path: Output file path (relative to DATA_DIR or absolute)

    Raises:
        OSError: If file cannot be written
    """
    path = resolve_data_path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=_json_default)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 string in UTC; naive datetimes are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def normalize_title(title: Optional[str]) -> str:
    """Lowercased, trimmed title used as the fallback identity of an article."""
    return (title or "").strip().lower()


# Link written by the RSS scraper for items that carry none
PLACEHOLDER_URL = "#"


def identity_url(url: Optional[str]) -> Optional[str]:
    """The article URL when it identifies a story, else None."""
    if not url or url.strip() == PLACEHOLDER_URL:
        return None
    return url
