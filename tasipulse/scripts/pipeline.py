"""
Main automation pipeline for TasiPulse: RSS -> AI enrichment -> cards -> publish.

One run fetches the feeds, selects the few most important fresh articles,
enriches them one at a time, renders and publishes each independently, and
finally records the published ones in the posted history. A failing article
never stops the others; the run only fails when nothing at all came out of
a stage.
"""

import argparse
import sys
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from tasipulse.config import settings, RSS_SOURCES
from tasipulse.config.feed_sources import get_source_by_key
from tasipulse.scripts.card_renderer import CardRendererClient
from tasipulse.scripts.data_manager import utc_now
from tasipulse.scripts.draft_store import DraftPublisher
from tasipulse.scripts.enrichment import EnrichmentClient
from tasipulse.scripts.error_logger import initialize_error_logging, log_exception, log_failure
from tasipulse.scripts.errors import (
    ConfigurationError,
    FatalPipelineError,
    HistoryPersistenceError,
    PipelineBusyError,
    RenderError,
)
from tasipulse.scripts.filtering import select_articles
from tasipulse.scripts.history_store import HistoryStore, build_history_store, make_history_entry
from tasipulse.scripts.instagram_publisher import build_instagram_publisher
from tasipulse.scripts.llm_providers import build_llm_provider
from tasipulse.scripts.logger import setup_logger
from tasipulse.scripts.publish_result import PublishFailure
from tasipulse.scripts.rss_scraper import fetch_all
from tasipulse.scripts.x_publisher import build_x_publisher

logger = setup_logger(__name__)

STATUS_COMPLETED = "completed"
STATUS_NO_FRESH_ARTICLES = "no_fresh_articles"

PUBLISHER_FACTORIES = {
    "x": build_x_publisher,
    "instagram": build_instagram_publisher,
    "draft": DraftPublisher,
}


class Pipeline:
    """One configured pipeline; call run() once per scheduled run."""

    def __init__(self, history_store: HistoryStore, enrichment_client: EnrichmentClient, renderer,
                 publishers: Dict[str, Any], sources: Optional[List[Dict[str, str]]] = None,
                 limit: int = None, article_delay: float = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], datetime] = utc_now,
                 fetch: Callable[..., List[Dict[str, Any]]] = fetch_all):
        self.history_store = history_store
        self.enrichment_client = enrichment_client
        self.renderer = renderer
        self.publishers = publishers
        self.sources = RSS_SOURCES if sources is None else sources
        self.limit = settings.ARTICLES_PER_RUN if limit is None else limit
        self.article_delay = settings.ARTICLE_DELAY_SECONDS if article_delay is None else article_delay
        self.sleep = sleep
        self.clock = clock
        self.fetch = fetch

    def _load_history(self) -> List[Dict[str, Any]]:
        try:
            return self.history_store.load()
        except HistoryPersistenceError as e:
            logger.warning(f"[Pipeline] Posted history unavailable, continuing without it: {e}")
            return []

    def _commit_history(self, entries: List[Dict[str, Any]]) -> None:
        if not entries:
            return
        try:
            self.history_store.save(entries)
            logger.info(f"[Pipeline] Recorded {len(entries)} posted articles in history")
        except HistoryPersistenceError as e:
            logger.warning(f"[Pipeline] Could not save posted history: {e}")
            log_exception(e, context="pipeline.history")

    def _publish_everywhere(self, images: Dict[str, bytes], enriched: Dict[str, Any],
                            article: Dict[str, Any]) -> Dict[str, Any]:
        outcomes = {}
        for name, publisher in self.publishers.items():
            try:
                result = publisher.publish(images, enriched, article)
            except Exception as e:
                # A publisher bug must not take the other articles down
                logger.exception(f"[Pipeline] {name} crashed")
                log_exception(e, context=f"publish.{name}")
                result = PublishFailure.from_error(name, e)
            else:
                if not result.success:
                    log_failure(result.kind, result.message, context=f"publish.{name}", detail=result.detail)
            outcomes[name] = result
        return outcomes

    def process_article(self, article: Dict[str, Any], enriched: Dict[str, Any]) -> Dict[str, Any]:
        """Render and publish one enriched article; returns its result record."""
        record = {
            "title": article.get("title", ""),
            "source": article.get("source", ""),
            "url": article.get("url"),
            "score": article.get("score"),
            "status": "failed",
            "platforms": {},
        }

        try:
            images = self.renderer.render(enriched, article.get("date"))
        except RenderError as e:
            logger.error(f"[Pipeline] Image generation failed: {e}")
            log_exception(e, context="pipeline.render")
            record["error"] = f"Image generation failed: {e}"
            return record

        outcomes = self._publish_everywhere(images, enriched, article)
        record["platforms"] = {name: result.to_dict() for name, result in outcomes.items()}

        # One platform is enough; the failed ones are not retried on later runs
        if any(result.success for result in outcomes.values()):
            record["status"] = "success"
        else:
            record["error"] = "All publish targets failed"
        return record

    def run(self) -> Dict[str, Any]:
        """
        Execute one pipeline run.

        Returns:
            Summary with per-article results

        Raises:
            FatalPipelineError: Nothing fetched, nothing enriched or nothing
                published (the summary so far is attached)
        """
        started = time.monotonic()
        now = self.clock()
        summary = {
            "success": False,
            "status": STATUS_COMPLETED,
            "started_at": now.isoformat(),
            "duration": None,
            "articles_fetched": 0,
            "articles_selected": 0,
            "articles_enriched": 0,
            "articles_processed": 0,
            "results": [],
        }

        def finish() -> Dict[str, Any]:
            summary["duration"] = f"{time.monotonic() - started:.1f}s"
            return summary

        logger.info(f"[Pipeline] Starting at {now.isoformat()}")
        for publisher in self.publishers.values():
            if isinstance(publisher, DraftPublisher):
                publisher.reset()

        # Step 1: fetch
        try:
            articles = self.fetch(self.sources, now=now)
        except FatalPipelineError as e:
            e.summary = finish()
            raise
        summary["articles_fetched"] = len(articles)
        if not articles:
            raise FatalPipelineError("No articles fetched from any source", finish())

        # Step 2: select
        history = self._load_history()
        selected = select_articles(articles, history, self.limit, now)
        summary["articles_selected"] = len(selected)
        if not selected:
            logger.info("[Pipeline] No fresh articles to publish")
            summary["success"] = True
            summary["status"] = STATUS_NO_FRESH_ARTICLES
            return finish()

        # Step 3: enrich
        pairs = self.enrichment_client.enrich_many(selected)
        summary["articles_enriched"] = len(pairs)
        if not pairs:
            raise FatalPipelineError("No articles were successfully enriched", finish())

        # Step 4: render and publish each article independently
        staged = []
        for i, pair in enumerate(pairs):
            article = pair["article"]
            logger.info(f"[Pipeline] Processing article {i + 1}/{len(pairs)}: \"{article.get('title', '')[:70]}\"")

            record = self.process_article(article, pair["enriched"])
            summary["results"].append(record)
            if record["status"] == "success":
                staged.append(make_history_entry(article, posted_at=self.clock()))

            if i < len(pairs) - 1 and self.article_delay > 0:
                self.sleep(self.article_delay)

        summary["articles_processed"] = len(summary["results"])

        # Step 5: history, only for what was actually published
        self._commit_history(staged)

        if not staged:
            raise FatalPipelineError("No posts were successfully published", finish())

        summary["success"] = True
        finish()
        logger.info(f"[Pipeline] Done in {summary['duration']}")
        return summary


def build_publishers(targets: List[str]) -> Dict[str, Any]:
    """
    Instantiate the requested publish targets.

    Targets whose credentials are missing are skipped with an error.
    """
    publishers = {}
    for target in targets:
        factory = PUBLISHER_FACTORIES.get(target)
        if factory is None:
            logger.error(f"[Pipeline] Unknown publish target: {target}")
            continue
        try:
            publishers[target] = factory()
        except ConfigurationError as e:
            logger.error(f"[Pipeline] Skipping {target}: {e}")
    return publishers


def build_pipeline(targets: Optional[List[str]] = None, limit: Optional[int] = None,
                   sources: Optional[List[Dict[str, str]]] = None) -> Pipeline:
    """Pipeline wired from settings."""
    publishers = build_publishers(targets or settings.PUBLISH_TARGETS)
    if not publishers:
        raise FatalPipelineError("No publish target is configured")

    try:
        provider = build_llm_provider()
    except ValueError as e:
        raise FatalPipelineError(f"Enrichment provider not configured: {e}") from e

    return Pipeline(
        history_store=build_history_store(),
        enrichment_client=EnrichmentClient(provider),
        renderer=CardRendererClient(),
        publishers=publishers,
        sources=sources,
        limit=limit,
    )


_run_lock = threading.Lock()


def is_running() -> bool:
    return _run_lock.locked()


def run_pipeline(pipeline: Optional[Pipeline] = None) -> Dict[str, Any]:
    """
    Run the pipeline unless a run is already in progress in this process.

    Raises:
        PipelineBusyError: Another run holds the lock
        FatalPipelineError: The run failed as a whole
    """
    if not _run_lock.acquire(blocking=False):
        raise PipelineBusyError("Pipeline already running")
    try:
        return (pipeline or build_pipeline()).run()
    finally:
        _run_lock.release()


def log_summary(summary: Dict[str, Any]) -> None:
    logger.info("Pipeline Summary:")
    logger.info(f"   Articles processed: {summary.get('articles_processed', 0)}")
    logger.info(f"   Duration: {summary.get('duration')}")
    for i, result in enumerate(summary.get("results", []), 1):
        logger.info(f"   [{i}] {result['title'][:60]}")
        if result.get("error"):
            logger.info(f"       Error: {result['error']}")
        for platform, outcome in result.get("platforms", {}).items():
            detail = outcome.get("post_id") if outcome.get("success") else outcome.get("error")
            logger.info(f"       {'OK' if outcome.get('success') else 'FAILED'} {platform}: {detail}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function for command-line invocation."""
    initialize_error_logging()

    parser = argparse.ArgumentParser(description="Run the TasiPulse publishing pipeline once")
    parser.add_argument("--limit", type=int, default=None, help="Articles to publish (default: ARTICLES_PER_RUN)")
    parser.add_argument("--targets", default=None, help="Comma separated publish targets: x,instagram,draft")
    parser.add_argument("--drafts-only", action="store_true", help="Save drafts instead of posting")
    parser.add_argument("--source", action="append", default=None,
                        help="Only fetch this feed key (repeatable), e.g. argaam")
    args = parser.parse_args(argv)

    if args.drafts_only:
        targets = ["draft"]
    elif args.targets:
        targets = [t.strip() for t in args.targets.split(",") if t.strip()]
    else:
        targets = None

    try:
        sources = [get_source_by_key(key) for key in args.source] if args.source else None
    except KeyError as e:
        parser.error(str(e))

    try:
        summary = run_pipeline(build_pipeline(targets=targets, limit=args.limit, sources=sources))
    except FatalPipelineError as e:
        logger.error(f"Fatal pipeline error: {e}")
        if e.summary:
            log_summary(e.summary)
        return 1

    log_summary(summary)
    return 0


if __name__ == "__main__":
    """Command-line execution."""
    sys.exit(main())
