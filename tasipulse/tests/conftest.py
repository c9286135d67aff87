"""
Pytest configuration and fixtures for TasiPulse tests.

No test touches the network or sleeps: HTTP goes through FakeSession and
every sleep is an injected recorder.
"""

import json
import tempfile
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
import pytest
import requests
from tasipulse.main import app
from tasipulse.config import settings

FROZEN_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    """Just enough of requests.Response for the code under test."""

    def __init__(self, status_code=200, json_data=None, content=None, text=None):
        self.status_code = status_code
        self._json = json_data
        if content is None:
            if json_data is not None:
                content = json.dumps(json_data).encode("utf-8")
            elif text is not None:
                content = text.encode("utf-8")
            else:
                content = b""
        self.content = content
        self.text = text if text is not None else content.decode("utf-8", errors="replace")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    """
    Scripted HTTP session.

    Either replays ``responses`` in order or asks ``handler(method, url,
    kwargs)`` for each answer. An Exception instead of a response is raised.
    """

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []

    def request(self, method, url, **kwargs):
        method = method.upper()
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.handler is not None:
            result = self.handler(method, url, kwargs)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            raise AssertionError(f"Unexpected request: {method} {url}")
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self.request("PUT", url, **kwargs)


class SleepRecorder:
    """Drop-in for time.sleep that only records the requested delays."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)

    @property
    def total(self):
        return sum(self.calls)


@pytest.fixture
def client():
    """Flask test client fixture."""
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def temp_data_dir(monkeypatch):
    """Temporary data directory fixture."""
    temp_dir = tempfile.mkdtemp()

    # Patch settings to use temp directory
    monkeypatch.setattr(settings, 'DATA_DIR', Path(temp_dir))

    yield temp_dir

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def temp_drafts_dir(monkeypatch, tmp_path):
    """Drafts directory under pytest's tmp_path."""
    drafts_dir = tmp_path / "drafts"
    monkeypatch.setattr(settings, 'DRAFTS_DIR', drafts_dir)
    return drafts_dir


@pytest.fixture
def now():
    """Fixed reference time for scoring and history timestamps."""
    return FROZEN_NOW


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_article(now):
    """Factory for article records as produced by the RSS scraper."""
    counter = {"n": 0}

    def _make(title, description="", source="Argaam", url=None, hours_old=1.0):
        counter["n"] += 1
        return {
            "id": f"{source}-{counter['n']}-0",
            "title": title,
            "description": description,
            "source": source,
            "url": url if url is not None else f"https://example.com/news/{counter['n']}",
            "date": now - timedelta(hours=hours_old),
            "category": "General",
        }

    return _make


@pytest.fixture
def sample_enriched():
    """A complete, already-normalized enrichment result."""
    return {
        "headline_en": "Aramco lifts dividend",
        "headline_ar": "أرامكو ترفع التوزيعات",
        "summary_en": "Aramco raised its quarterly dividend. Markets reacted positively.",
        "summary_ar": "رفعت أرامكو توزيعاتها الفصلية. وتفاعلت الأسواق بإيجابية.",
        "key_points_en": ["Dividend up 4%", "Payout in March"],
        "key_points_ar": ["ارتفاع التوزيعات 4%", "الصرف في مارس"],
        "caption_en": "Aramco lifts its dividend #Aramco #TASI",
        "caption_ar": "أرامكو ترفع التوزيعات #أرامكو #تاسي",
        "figures": [
            {"key": "dividend", "value": "0.33 SAR", "label_en": "Dividend", "label_ar": "التوزيعات",
             "trend": "up"},
        ],
    }


@pytest.fixture
def card_images():
    return {"en": b"\x89PNG en-card", "ar": b"\x89PNG ar-card"}
