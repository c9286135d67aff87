"""
Centralized error journal for TasiPulse.

Per-article failures (enrichment, rendering, publishing) are appended to
errors.log together with any provider payload, so a failed post can be
diagnosed after the run summary has scrolled away. Unhandled exceptions are
caught by a sys.excepthook installed from the entrypoints.
"""

import json
import re
import sys
import traceback
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional
from tasipulse.config import settings

ERROR_LOG_NAME = "errors.log"
SEPARATOR = "=" * 80
ENTRY_START = re.compile(r"(?=\n={80}\n\[\d{4}-\d{2}-\d{2})")
ENTRY_DATE = re.compile(r"^\[(\d{4}-\d{2}-\d{2}) ", re.MULTILINE)


def get_error_log_path() -> Path:
    """Path of the error journal (follows DATA_DIR, which tests patch)."""
    return settings.DATA_DIR / ERROR_LOG_NAME


def _format_detail(detail: Any) -> str:
    if detail is None:
        return "-"
    if isinstance(detail, (dict, list)):
        try:
            return json.dumps(detail, ensure_ascii=False)
        except (TypeError, ValueError):
            pass
    return str(detail)


def log_error(error_type, error_value, traceback_obj, context: Optional[str] = None, detail: Any = None) -> None:
    """
    Append one entry to the error journal.

    Args:
        error_type: Exception type (or its name)
        error_value: Exception value/message
        traceback_obj: Traceback object (may be None)
        context: Where it happened, e.g. "publish.x" or "pipeline.run"
        detail: Provider payload or other diagnostics
    """
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(error_type, str):
        error_name = error_type
    else:
        error_name = error_type.__name__ if error_type else "UnknownError"
    tb_text = "".join(traceback.format_tb(traceback_obj)) if traceback_obj else "No traceback available\n"

    entry = (
        f"\n{SEPARATOR}\n"
        f"[{timestamp}] ERROR: {error_name}\n"
        f"{SEPARATOR}\n"
        f"Context: {context or 'Unhandled exception'}\n"
        f"Error: {error_value}\n"
        f"Detail: {_format_detail(detail)}\n"
        f"Traceback:\n{tb_text}\n"
    )

    try:
        path = get_error_log_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError:
        print(f"[ERROR LOGGER FAILED] {error_name}: {error_value}", file=sys.stderr)


def log_exception(error: BaseException, context: Optional[str] = None) -> None:
    """
    Journal a caught exception.

    Usage:
        try:
            publisher.publish(...)
        except PublishError as e:
            log_exception(e, context="publish.x")

    Provider payloads attached as ``error.detail`` are recorded as well.
    """
    log_error(type(error), error, error.__traceback__, context, getattr(error, "detail", None))


def log_failure(kind: str, message: str, context: Optional[str] = None, detail: Any = None) -> None:
    """Journal a failure that was reported as a value instead of raised."""
    log_error(kind, message, None, context, detail)


def exception_hook(error_type, error_value, traceback_obj):
    """sys.excepthook replacement: journal, then defer to the default hook."""
    context = None
    if traceback_obj:
        tb = traceback_obj
        while tb.tb_next:
            tb = tb.tb_next
        frame = tb.tb_frame
        context = f"{Path(frame.f_code.co_filename).name}:{tb.tb_lineno} in {frame.f_code.co_name}"

    log_error(error_type, error_value, traceback_obj, context)
    sys.__excepthook__(error_type, error_value, traceback_obj)


def cleanup_old_errors(days: int = 7) -> None:
    """Drop journal entries older than ``days``."""
    path = get_error_log_path()
    if not path.exists():
        return

    cutoff_str = (datetime.now() - timedelta(days=days)).strftime("%Y-%m-%d")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return

    # Each entry starts with a separator line followed by "[YYYY-MM-DD ..."
    entries = ENTRY_START.split(content)
    kept = [
        entry for entry in entries
        if entry.strip() and _entry_date(entry) >= cutoff_str
    ]

    try:
        path.write_text("".join(kept), encoding="utf-8")
    except OSError:
        pass


def _entry_date(entry: str) -> str:
    match = ENTRY_DATE.search(entry)
    # Entries without a recognizable header are kept
    return match.group(1) if match else "9999-99-99"


def initialize_error_logging() -> None:
    """
    Install the journaling excepthook and prune old entries.

    Call once at process start (CLI and HTTP entrypoints).
    """
    sys.excepthook = exception_hook
    cleanup_old_errors(days=7)
