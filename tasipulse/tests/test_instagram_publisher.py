"""
Instagram carousel publisher tests.
"""

import pytest
import requests
from tasipulse.config import settings
from tasipulse.scripts.errors import ConfigurationError, MediaProcessingTimeout, MediaUploadError
from tasipulse.scripts.instagram_publisher import InstagramPublisher, build_instagram_publisher
from tasipulse.scripts.publish_result import PublishSuccess

BASE = settings.INSTAGRAM_API_BASE_URL


class FakeGraphApi:
    """Image host plus Graph API container endpoints."""

    def __init__(self, make_response, statuses=None, publish_status=200):
        self.make_response = make_response
        # container id -> list of status answers, last one repeats
        self.statuses = statuses or {}
        self.publish_status = publish_status
        self.created = []
        self.uploads = 0

    def __call__(self, method, url, kwargs):
        if url == settings.IMGBB_UPLOAD_URL:
            self.uploads += 1
            return self.make_response(json_data={"data": {"url": f"https://img.test/{self.uploads}.png"}})
        if url == f"{BASE}/acct/media":
            container_id = "carousel" if kwargs["data"].get("media_type") == "CAROUSEL" else f"child-{len(self.created) + 1}"
            self.created.append((container_id, kwargs["data"]))
            return self.make_response(json_data={"id": container_id})
        if url == f"{BASE}/acct/media_publish":
            if self.publish_status >= 400:
                return self.make_response(status_code=self.publish_status, json_data={"error": {"message": "nope"}})
            return self.make_response(json_data={"id": "post-1"})
        if method == "GET" and url.startswith(f"{BASE}/"):
            container_id = url.rsplit("/", 1)[1]
            answers = self.statuses.get(container_id, [{"status_code": "FINISHED"}])
            answer = answers.pop(0) if len(answers) > 1 else answers[0]
            if isinstance(answer, Exception):
                return answer
            return self.make_response(json_data=answer)
        raise AssertionError(f"Unexpected request: {method} {url}")


def _publisher(session, sleeps, **kwargs):
    return InstagramPublisher("ig-token", "acct", "imgbb-key", session=session, sleep=sleeps, **kwargs)


def test_carousel_flow(make_session, make_response, sleeps, card_images, sample_enriched):
    api = FakeGraphApi(make_response)
    session = make_session(handler=api)

    result = _publisher(session, sleeps).publish(card_images, sample_enriched)

    assert result == PublishSuccess(platform="instagram", post_id="post-1")
    children = [data for container_id, data in api.created if container_id.startswith("child")]
    assert [c["image_url"] for c in children] == ["https://img.test/1.png", "https://img.test/2.png"]
    assert all(c["is_carousel_item"] == "true" for c in children)

    carousel = dict(api.created)["carousel"]
    assert carousel["children"] == "child-1,child-2"
    assert carousel["caption"].startswith(sample_enriched["caption_en"])
    assert carousel["access_token"] == "ig-token"

    upload = session.calls[0]
    assert upload["params"] == {"key": "imgbb-key"}
    assert upload["data"]["image"]
    assert sleeps.calls == []


def test_waits_until_finished(make_session, make_response, sleeps):
    api = FakeGraphApi(make_response, statuses={
        "child-1": [{"status_code": "IN_PROGRESS"}, requests.Timeout("slow"), {"status_code": "FINISHED"}],
    })
    publisher = _publisher(make_session(handler=api), sleeps, poll_interval=3, max_polls=5)

    publisher.wait_for_container("child-1")

    assert sleeps.calls == [3, 3]


def test_container_error(make_session, make_response, sleeps):
    api = FakeGraphApi(make_response, statuses={"child-1": [{"status_code": "ERROR", "status": "Bad media"}]})
    with pytest.raises(MediaUploadError, match="Bad media"):
        _publisher(make_session(handler=api), sleeps).wait_for_container("child-1")


def test_container_timeout(make_session, make_response, sleeps):
    api = FakeGraphApi(make_response, statuses={"child-1": [{"status_code": "IN_PROGRESS"}]})
    publisher = _publisher(make_session(handler=api), sleeps, poll_interval=3, max_polls=4)

    with pytest.raises(MediaProcessingTimeout):
        publisher.wait_for_container("child-1")
    assert len(sleeps.calls) == 4


def test_publish_rejected(make_session, make_response, sleeps, card_images, sample_enriched):
    api = FakeGraphApi(make_response, publish_status=400)
    result = _publisher(make_session(handler=api), sleeps).publish(card_images, sample_enriched)

    assert not result.success
    assert result.kind == "PublishRejectedError"
    assert result.detail == {"error": {"message": "nope"}}


def test_image_host_failure(make_session, make_response, sleeps, card_images, sample_enriched):
    session = make_session([make_response(status_code=500, text="down")])
    result = _publisher(session, sleeps).publish(card_images, sample_enriched)

    assert result.kind == "MediaUploadError"
    assert len(session.calls) == 1


def test_build_requires_credentials(monkeypatch):
    monkeypatch.setattr(settings, "INSTAGRAM_ACCESS_TOKEN", "")
    with pytest.raises(ConfigurationError):
        build_instagram_publisher()
