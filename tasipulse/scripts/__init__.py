"""
Scripts package for TasiPulse.

This package contains the processing steps of the publishing pipeline:
- RSS scraping and importance scoring
- Article selection and posted history
- AI enrichment (Gemini / Claude)
- Card rendering and drafts
- X and Instagram publishing
"""

__all__ = []
