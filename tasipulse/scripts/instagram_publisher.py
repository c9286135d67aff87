"""
Instagram publisher for TasiPulse.

Instagram pulls media from public URLs, so each card is first uploaded to
an image host. The two cards become carousel children, the children become
one carousel container, and the container is published once Instagram
reports it FINISHED.
"""

import base64
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from tasipulse.config import settings
from tasipulse.scripts.captions import build_instagram_caption
from tasipulse.scripts.errors import (
    ConfigurationError,
    MediaProcessingTimeout,
    MediaUploadError,
    PublishError,
    PublishRejectedError,
)
from tasipulse.scripts.logger import setup_logger
from tasipulse.scripts.publish_result import PublishFailure, PublishResult, PublishSuccess

logger = setup_logger(__name__)

PLATFORM = "instagram"


def _detail(response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


class InstagramPublisher:
    """Publishes an EN/AR card pair as a two-image carousel."""

    def __init__(self, access_token: str, account_id: str, image_host_key: str,
                 session: Optional[requests.Session] = None, sleep: Callable[[float], None] = time.sleep,
                 poll_interval: float = None, max_polls: int = None, timeout: int = None):
        self.access_token = access_token
        self.account_id = account_id
        self.image_host_key = image_host_key
        self.session = session or requests.Session()
        self.sleep = sleep
        self.poll_interval = settings.INSTAGRAM_POLL_INTERVAL if poll_interval is None else poll_interval
        self.max_polls = settings.INSTAGRAM_MAX_POLLS if max_polls is None else max_polls
        self.timeout = timeout or settings.INSTAGRAM_REQUEST_TIMEOUT
        self.base_url = settings.INSTAGRAM_API_BASE_URL

    def _post(self, url: str, step: str, error_cls=MediaUploadError, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise error_cls(f"{step} failed: {e}", platform=PLATFORM) from e
        if not response.ok:
            detail = _detail(response)
            logger.error(f"[IG] {step} error: {detail}")
            raise error_cls(f"{step} failed: HTTP {response.status_code}", platform=PLATFORM, detail=detail)
        data = _detail(response)
        return data if isinstance(data, dict) else {}

    def upload_image(self, data: bytes) -> str:
        """Upload a PNG to the image host and return its public URL."""
        payload = self._post(
            settings.IMGBB_UPLOAD_URL,
            "Image host upload",
            params={"key": self.image_host_key},
            data={"image": base64.b64encode(data).decode("ascii")},
        )
        url = (payload.get("data") or {}).get("url")
        if not url:
            raise MediaUploadError("Image host response missing URL", platform=PLATFORM, detail=payload)
        return url

    def _create_container(self, fields: Dict[str, Any], step: str) -> str:
        payload = self._post(
            f"{self.base_url}/{self.account_id}/media",
            step,
            data={**fields, "access_token": self.access_token},
        )
        container_id = payload.get("id")
        if not container_id:
            raise MediaUploadError(f"No ID returned from {step.lower()}", platform=PLATFORM, detail=payload)
        return container_id

    def create_carousel_child(self, image_url: str) -> str:
        return self._create_container({"image_url": image_url, "is_carousel_item": "true"}, "Carousel child")

    def create_carousel(self, child_ids: List[str], caption: str) -> str:
        logger.info(f"[IG] Creating carousel with children: {', '.join(child_ids)}")
        return self._create_container(
            {"media_type": "CAROUSEL", "children": ",".join(child_ids), "caption": caption},
            "Carousel container",
        )

    def wait_for_container(self, container_id: str) -> None:
        """
        Poll a container until it is FINISHED.

        A failed status request is logged and polled again; ERROR aborts.

        Raises:
            MediaUploadError: Container status is ERROR
            MediaProcessingTimeout: Not FINISHED after max_polls checks
        """
        for _ in range(self.max_polls):
            try:
                response = self.session.get(
                    f"{self.base_url}/{container_id}",
                    params={"fields": "status_code,status", "access_token": self.access_token},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                logger.warning(f"[IG] Status check failed: {e}")
            else:
                status = data.get("status_code")
                logger.info(f"[IG] Container {container_id} status: {status}")
                if status == "FINISHED":
                    return
                if status == "ERROR":
                    raise MediaUploadError(
                        f"Container {container_id} failed: {data.get('status') or 'unknown error'}",
                        platform=PLATFORM, detail=data,
                    )
            self.sleep(self.poll_interval)

        raise MediaProcessingTimeout(
            f"Container {container_id} timed out after {self.max_polls * self.poll_interval:.0f}s",
            platform=PLATFORM,
        )

    def publish_container(self, container_id: str) -> str:
        payload = self._post(
            f"{self.base_url}/{self.account_id}/media_publish",
            "Publish",
            error_cls=PublishRejectedError,
            data={"creation_id": container_id, "access_token": self.access_token},
        )
        post_id = payload.get("id")
        if not post_id:
            raise PublishRejectedError("No ID returned from publish", platform=PLATFORM, detail=payload)
        return post_id

    def publish(self, images: Dict[str, bytes], enriched: Dict[str, Any],
                article: Optional[Dict[str, Any]] = None) -> PublishResult:
        """
        Run the full carousel flow for one article.

        Child containers created before a failure are left for Instagram to expire.
        """
        logger.info("[IG] Starting Instagram carousel post...")
        try:
            en_url = self.upload_image(images["en"])
            logger.info(f"[IG] EN image uploaded: {en_url}")
            ar_url = self.upload_image(images["ar"])
            logger.info(f"[IG] AR image uploaded: {ar_url}")

            children = [self.create_carousel_child(en_url), self.create_carousel_child(ar_url)]
            for child_id in children:
                self.wait_for_container(child_id)

            carousel_id = self.create_carousel(children, build_instagram_caption(enriched))
            self.wait_for_container(carousel_id)

            post_id = self.publish_container(carousel_id)
        except PublishError as e:
            logger.error(f"[IG] Publish failed: {e}")
            return PublishFailure.from_error(PLATFORM, e)

        logger.info(f"[IG] Posted carousel! Post ID: {post_id}")
        return PublishSuccess(platform=PLATFORM, post_id=post_id)


def build_instagram_publisher() -> InstagramPublisher:
    """Publisher configured from settings."""
    if not settings.INSTAGRAM_ACCESS_TOKEN or not settings.INSTAGRAM_ACCOUNT_ID:
        raise ConfigurationError("Instagram credentials not configured", platform=PLATFORM)
    if not settings.IMGBB_API_KEY:
        raise ConfigurationError("Image host key not configured", platform=PLATFORM)
    return InstagramPublisher(
        settings.INSTAGRAM_ACCESS_TOKEN,
        settings.INSTAGRAM_ACCOUNT_ID,
        settings.IMGBB_API_KEY,
    )
