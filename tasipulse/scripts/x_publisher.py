"""
X (Twitter) publisher for TasiPulse.

Uploads the English and Arabic cards through the chunked media endpoint
(INIT -> APPEND -> FINALIZE -> STATUS polling) and posts a single tweet
carrying both images and the bilingual caption. Every request is signed
with OAuth 1.0a.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type

import requests

from tasipulse.config import settings
from tasipulse.scripts.captions import build_x_caption
from tasipulse.scripts.errors import (
    ConfigurationError,
    MediaProcessingTimeout,
    MediaUploadError,
    PublishError,
    PublishRejectedError,
)
from tasipulse.scripts.logger import setup_logger
from tasipulse.scripts.oauth import XCredentials, authorization_header
from tasipulse.scripts.publish_result import PublishFailure, PublishResult, PublishSuccess
from tasipulse.scripts.retry import exponential_backoff

logger = setup_logger(__name__)

PLATFORM = "x"


class UploadPhase(str, Enum):
    INIT = "INIT"
    APPENDED = "APPENDED"
    FINALIZED = "FINALIZED"
    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


@dataclass
class MediaUploadSession:
    """State of one media upload; discarded once the upload ends."""

    total_bytes: int
    media_type: str
    media_id: Optional[str] = None
    phase: UploadPhase = UploadPhase.INIT
    segments: int = 0
    polls: int = 0


def _payload(response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


class XPublisher:
    """Posts an EN/AR card pair as one tweet."""

    def __init__(self, credentials: XCredentials, session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep, chunk_size: int = None,
                 max_status_polls: int = None, timeout: int = None, parallel_uploads: bool = True):
        self.credentials = credentials
        self.session = session or requests.Session()
        self.sleep = sleep
        self.chunk_size = chunk_size or settings.X_CHUNK_SIZE
        self.max_status_polls = settings.X_MAX_STATUS_POLLS if max_status_polls is None else max_status_polls
        self.timeout = timeout or settings.X_REQUEST_TIMEOUT
        self.parallel_uploads = parallel_uploads
        self.upload_url = settings.X_UPLOAD_URL
        self.tweet_url = settings.X_TWEET_URL
        self._status_backoff = exponential_backoff(1, cap=30)

    # --- signed transport ---

    def _headers(self, method: str, url: str, signed_params: Dict[str, str]) -> Dict[str, str]:
        return {"Authorization": authorization_header(method, url, signed_params, self.credentials)}

    def _call(self, method: str, url: str, step: str, error_cls: Type[PublishError] = MediaUploadError,
              signed_params: Dict[str, str] = None, **kwargs) -> Any:
        headers = self._headers(method, url, signed_params or {})
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise error_cls(f"{step} request failed: {e}", platform=PLATFORM) from e

        payload = _payload(response)
        if not response.ok:
            raise error_cls(f"{step} failed: HTTP {response.status_code}", platform=PLATFORM, detail=payload)
        return payload

    # --- media upload state machine ---

    def _init(self, upload: MediaUploadSession) -> None:
        params = {
            "command": "INIT",
            "total_bytes": str(upload.total_bytes),
            "media_type": upload.media_type,
            "media_category": "tweet_image",
        }
        payload = self._call("POST", self.upload_url, "INIT", signed_params=params, data=params)
        media_id = payload.get("media_id_string") if isinstance(payload, dict) else None
        if not media_id:
            raise MediaUploadError("INIT returned no media id", platform=PLATFORM, detail=payload)
        upload.media_id = media_id
        logger.info(f"[X] Media INIT - ID: {media_id}")

    def _append(self, upload: MediaUploadSession, data: bytes) -> None:
        for index, offset in enumerate(range(0, len(data), self.chunk_size)):
            chunk = data[offset:offset + self.chunk_size]
            fields = {"command": "APPEND", "media_id": upload.media_id, "segment_index": str(index)}
            # Multipart bodies are not part of the OAuth signature
            self._call(
                "POST", self.upload_url, f"APPEND #{index}",
                data=fields,
                files={"media": ("image.png", chunk, upload.media_type)},
            )
            upload.segments += 1
        upload.phase = UploadPhase.APPENDED
        logger.info(f"[X] Media APPEND done ({upload.segments} segments)")

    def _finalize(self, upload: MediaUploadSession) -> Optional[Dict[str, Any]]:
        params = {"command": "FINALIZE", "media_id": upload.media_id}
        payload = self._call("POST", self.upload_url, "FINALIZE", signed_params=params, data=params)
        upload.phase = UploadPhase.FINALIZED
        logger.info(f"[X] Media FINALIZE done - mediaId: {upload.media_id}")
        return payload.get("processing_info") if isinstance(payload, dict) else None

    def _status(self, upload: MediaUploadSession) -> Dict[str, Any]:
        params = {"command": "STATUS", "media_id": upload.media_id}
        payload = self._call("GET", self.upload_url, "STATUS", signed_params=params, params=params)
        info = payload.get("processing_info") if isinstance(payload, dict) else None
        # No processing_info in a STATUS answer means nothing is left to wait for
        return info or {"state": "succeeded"}

    def _wait_for_processing(self, upload: MediaUploadSession, info: Dict[str, Any]) -> None:
        upload.phase = UploadPhase.PROCESSING
        while True:
            state = info.get("state")
            if state == "succeeded":
                upload.phase = UploadPhase.READY
                return
            if state == "failed":
                upload.phase = UploadPhase.FAILED
                raise MediaUploadError(
                    f"Media {upload.media_id} processing failed", platform=PLATFORM, detail=info.get("error")
                )
            if upload.polls >= self.max_status_polls:
                upload.phase = UploadPhase.FAILED
                raise MediaProcessingTimeout(
                    f"Media {upload.media_id} still {state} after {upload.polls} status checks",
                    platform=PLATFORM, detail=info,
                )

            delay = info.get("check_after_secs") or self._status_backoff(upload.polls + 1)
            logger.info(f"[X] Media {upload.media_id} {state}, checking again in {delay}s")
            self.sleep(delay)
            upload.polls += 1
            info = self._status(upload)

    def upload_media(self, data: bytes, media_type: str = "image/png") -> str:
        """
        Upload one image and wait until X can attach it.

        Returns:
            The media id string

        Raises:
            MediaUploadError: A step was rejected or processing failed
            MediaProcessingTimeout: Processing outlasted the poll budget
        """
        upload = MediaUploadSession(total_bytes=len(data), media_type=media_type)
        try:
            self._init(upload)
            self._append(upload, data)
            info = self._finalize(upload)
            if info:
                self._wait_for_processing(upload, info)
            else:
                upload.phase = UploadPhase.READY
        except PublishError:
            upload.phase = UploadPhase.FAILED
            raise
        return upload.media_id

    def _upload_pair(self, images: Dict[str, bytes]) -> List[str]:
        if not self.parallel_uploads:
            return [self.upload_media(images["en"]), self.upload_media(images["ar"])]

        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [executor.submit(self.upload_media, images[lang]) for lang in ("en", "ar")]
            # Both uploads finish before any error is re-raised
            return [future.result() for future in futures]

    # --- posting ---

    def post(self, text: str, media_ids: List[str]) -> str:
        """Create the tweet and return its id."""
        body = {"text": text, "media": {"media_ids": media_ids}}
        payload = self._call("POST", self.tweet_url, "Tweet", error_cls=PublishRejectedError, json=body)
        tweet_id = payload.get("data", {}).get("id") if isinstance(payload, dict) else None
        if not tweet_id:
            raise PublishRejectedError("Tweet response carried no id", platform=PLATFORM, detail=payload)
        return tweet_id

    def publish(self, images: Dict[str, bytes], enriched: Dict[str, Any],
                article: Optional[Dict[str, Any]] = None) -> PublishResult:
        """
        Upload both cards and post them with the caption.

        Returns:
            PublishSuccess with the tweet id, or PublishFailure
        """
        logger.info("[X] Starting post pipeline...")
        try:
            media_ids = self._upload_pair(images)
            tweet_id = self.post(build_x_caption(enriched), media_ids)
        except PublishError as e:
            logger.error(f"[X] Publish failed: {e}")
            return PublishFailure.from_error(PLATFORM, e)

        logger.info(f"[X] Posted successfully! Tweet ID: {tweet_id}")
        return PublishSuccess(platform=PLATFORM, post_id=tweet_id)


def build_x_publisher() -> XPublisher:
    """Publisher configured from settings."""
    credentials = XCredentials(
        api_key=settings.X_API_KEY,
        api_secret=settings.X_API_SECRET,
        access_token=settings.X_ACCESS_TOKEN,
        access_token_secret=settings.X_ACCESS_TOKEN_SECRET,
    )
    if not credentials.is_complete():
        raise ConfigurationError("X credentials not configured", platform=PLATFORM)
    return XPublisher(credentials)
