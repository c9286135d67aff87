"""
Local drafts for TasiPulse.

When posting is not wanted (or not configured), each enriched article is
saved as a draft: the two card images plus a caption file an editor can
copy from. Drafts are replaced on every run that writes them.
"""

import re
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tasipulse.config import settings
from tasipulse.scripts.captions import caption_parts
from tasipulse.scripts.errors import PublishError
from tasipulse.scripts.logger import setup_logger
from tasipulse.scripts.publish_result import PublishFailure, PublishResult, PublishSuccess

logger = setup_logger(__name__)

PLATFORM = "draft"
DRAFT_FILE = re.compile(r"^draft_(\d+)_(.+)$")


def build_caption_file(enriched: Dict[str, Any], article: Dict[str, Any]) -> str:
    """Plain-text caption sheet for one draft."""
    en, ar = caption_parts(enriched)
    lines = ["=== ENGLISH CAPTION ===", en, "", "=== ARABIC CAPTION ===", ar, "", "=== KEY POINTS (EN) ==="]
    lines += [f"{i}. {point}" for i, point in enumerate(enriched.get("key_points_en") or [], 1)]
    lines += ["", "=== KEY POINTS (AR) ==="]
    lines += [f"{i}. {point}" for i, point in enumerate(enriched.get("key_points_ar") or [], 1)]
    lines += [
        "",
        "=== SOURCE ===",
        f"Title: {article.get('title', '')}",
        f"Source: {article.get('source', '')}",
        f"URL: {article.get('url', '')}",
    ]
    return "\n".join(lines)


class DraftStore:
    """Draft files in a single flat directory."""

    def __init__(self, drafts_dir: Union[str, Path] = None):
        self.drafts_dir = Path(drafts_dir or settings.DRAFTS_DIR)

    def ensure_dir(self) -> None:
        self.drafts_dir.mkdir(parents=True, exist_ok=True)

    def clear(self) -> None:
        """Remove every existing draft."""
        try:
            if self.drafts_dir.exists():
                shutil.rmtree(self.drafts_dir)
            self.ensure_dir()
            logger.info("[Draft] Cleared old drafts")
        except OSError as e:
            logger.warning(f"[Draft] Could not clear drafts: {e}")

    def save(self, index: int, en_png: bytes, ar_png: bytes, enriched: Dict[str, Any],
             article: Dict[str, Any]) -> str:
        """
        Write one draft.

        Returns:
            The draft file prefix, e.g. "draft_1"
        """
        self.ensure_dir()
        prefix = f"draft_{index}"

        (self.drafts_dir / f"{prefix}_EN.png").write_bytes(en_png)
        (self.drafts_dir / f"{prefix}_AR.png").write_bytes(ar_png)
        (self.drafts_dir / f"{prefix}_caption.txt").write_text(
            build_caption_file(enriched, article), encoding="utf-8"
        )

        logger.info(f"[Draft] Saved draft {index}: {article.get('title', '')[:50]}")
        return prefix

    def list_drafts(self) -> List[Dict[str, Any]]:
        """Drafts grouped by index, lowest first."""
        if not self.drafts_dir.exists():
            return []

        drafts: Dict[int, Dict[str, Any]] = {}
        for path in self.drafts_dir.iterdir():
            match = DRAFT_FILE.match(path.name)
            if not match:
                continue
            index, rest = int(match.group(1)), match.group(2)
            draft = drafts.setdefault(index, {"index": index})
            if rest == "EN.png":
                draft["en_image"] = path.name
            elif rest == "AR.png":
                draft["ar_image"] = path.name
            elif rest == "caption.txt":
                draft["caption"] = path.read_text(encoding="utf-8")

        return [drafts[i] for i in sorted(drafts)]

    def get_file(self, filename: str) -> Optional[Path]:
        """Path of a draft file, or None; directory components are ignored."""
        path = self.drafts_dir / Path(filename).name
        return path if path.is_file() else None


class DraftPublisher:
    """Saves drafts instead of posting; numbering restarts each run."""

    def __init__(self, store: DraftStore = None):
        self.store = store or DraftStore()
        self.count = 0

    def reset(self) -> None:
        self.store.clear()
        self.count = 0

    def publish(self, images: Dict[str, bytes], enriched: Dict[str, Any],
                article: Optional[Dict[str, Any]] = None) -> PublishResult:
        self.count += 1
        try:
            prefix = self.store.save(self.count, images["en"], images["ar"], enriched, article or {})
        except OSError as e:
            logger.error(f"[Draft] Could not save draft {self.count}: {e}")
            return PublishFailure.from_error(PLATFORM, PublishError(str(e), platform=PLATFORM))
        return PublishSuccess(platform=PLATFORM, post_id=prefix)
