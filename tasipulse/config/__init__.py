"""
Configuration package for TasiPulse.

Exports the settings instance and feed sources for easy import throughout the application.
"""

from tasipulse.config.settings import settings, Settings
from tasipulse.config.feed_sources import RSS_SOURCES

__all__ = ["settings", "Settings", "RSS_SOURCES"]
