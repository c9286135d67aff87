"""
Configuration settings for TasiPulse.

This module contains all configuration constants, API endpoints,
file paths, and processing parameters used throughout the application.
"""

import os
from pathlib import Path
from typing import List
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_list(name: str, default: str = "") -> List[str]:
    """Split a comma separated environment variable into a clean list."""
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings:
    """Application configuration class."""

    # RSS Configuration
    RSS_REQUEST_TIMEOUT: int = 10  # seconds
    RSS_USER_AGENT: str = "Mozilla/5.0 (compatible; TasiPulse/1.0)"
    DESCRIPTION_MAX_CHARS: int = 1000

    # Pipeline Configuration
    ARTICLES_PER_RUN: int = int(os.getenv("ARTICLES_PER_RUN", "3"))
    ARTICLE_DELAY_SECONDS: float = float(os.getenv("ARTICLE_DELAY_SECONDS", "5"))
    PUBLISH_TARGETS: List[str] = _env_list("PUBLISH_TARGETS", "x")

    # Posted history
    MAX_HISTORY: int = 200
    HISTORY_FILE: str = "posted_history.json"
    HISTORY_BUCKET: str = os.getenv("HISTORY_BUCKET", "")
    HISTORY_OBJECT: str = os.getenv("HISTORY_OBJECT", "posted_history.json")
    HISTORY_REQUEST_TIMEOUT: int = 10

    # Generative AI Configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "gemini").lower()
    GEMINI_API_KEYS: List[str] = _env_list("GEMINI_API_KEYS") or _env_list("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022")
    ENRICHMENT_TIMEOUT: int = 30  # seconds
    ENRICHMENT_DELAY_SECONDS: float = float(os.getenv("ENRICHMENT_DELAY_SECONDS", "15"))
    ENRICHMENT_MAX_ATTEMPTS: int = 4  # First call plus three retries when rate limited
    ENRICHMENT_BACKOFF_SECONDS: float = 20  # Multiplied by attempt number
    ENRICHMENT_TEMPERATURE: float = 0.3
    ENRICHMENT_MAX_OUTPUT_TOKENS: int = 1500
    PROMPT_MAX_INPUT_CHARS: int = 4000

    # X (Twitter) Configuration
    X_API_KEY: str = os.getenv("X_API_KEY", "")
    X_API_SECRET: str = os.getenv("X_API_SECRET", "")
    X_ACCESS_TOKEN: str = os.getenv("X_ACCESS_TOKEN", "")
    X_ACCESS_TOKEN_SECRET: str = os.getenv("X_ACCESS_TOKEN_SECRET", "")
    X_UPLOAD_URL: str = "https://upload.twitter.com/1.1/media/upload.json"
    X_TWEET_URL: str = "https://api.twitter.com/2/tweets"
    X_CAPTION_LIMIT: int = 280
    X_CAPTION_EN_MAX: int = 130
    X_CHUNK_SIZE: int = 4 * 1024 * 1024  # 4MB per APPEND segment
    X_MAX_STATUS_POLLS: int = 10
    X_REQUEST_TIMEOUT: int = 30

    # Instagram Configuration
    INSTAGRAM_ACCESS_TOKEN: str = os.getenv("INSTAGRAM_ACCESS_TOKEN", "")
    INSTAGRAM_ACCOUNT_ID: str = os.getenv("INSTAGRAM_ACCOUNT_ID", "")
    INSTAGRAM_API_BASE_URL: str = "https://graph.instagram.com/v21.0"
    INSTAGRAM_CAPTION_LIMIT: int = 2200
    INSTAGRAM_CAPTION_EN_MAX: int = 1000
    INSTAGRAM_POLL_INTERVAL: float = 3  # seconds between container status checks
    INSTAGRAM_MAX_POLLS: int = 12
    INSTAGRAM_REQUEST_TIMEOUT: int = 15
    IMGBB_API_KEY: str = os.getenv("IMGBB_API_KEY", "")
    IMGBB_UPLOAD_URL: str = "https://api.imgbb.com/1/upload"

    # Card renderer (external service that turns card configs into PNGs)
    CARD_RENDERER_URL: str = os.getenv("CARD_RENDERER_URL", "http://localhost:3000/render")
    CARD_RENDERER_TIMEOUT: int = 30

    # File Paths
    BASE_DIR: Path = Path(__file__).parent.parent.parent
    APP_DIR: Path = BASE_DIR / "tasipulse"
    DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(APP_DIR / "data")))
    LOGS_DIR: Path = Path(os.getenv("LOGS_DIR", str(APP_DIR / "logs")))
    DRAFTS_DIR: Path = Path(os.getenv("DRAFTS_DIR", "/tmp/drafts"))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
    LOG_FILE_BACKUP_COUNT: int = 5

    # API Server Configuration
    PORT: int = int(os.getenv("PORT", "8080"))
    TRIGGER_SECRET: str = os.getenv("TRIGGER_SECRET", "")

    @classmethod
    def get_log_file_path(cls, filename: str) -> Path:
        """Get full path to a log file."""
        return cls.LOGS_DIR / filename

    @classmethod
    def ensure_directories_exist(cls) -> None:
        """Ensure all required directories exist."""
        cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
        cls.LOGS_DIR.mkdir(parents=True, exist_ok=True)


# Create singleton instance
settings = Settings()
