"""Runs the two-feed crawl and persists the results."""
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from processor.event_persister import EventPersister, Store
from processor.image_downloader import ImageDownloader
from processor.models import CrawlRun, CrawlSettings, FeedResult
from processor.normalizer import EventNormalizer
from scraper.browser import RequestsBrowser
from scraper.detail_enricher import DetailEnricher
from scraper.feed_paginator import FEEDS, FeedPaginator

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Owns the browser session and the store for one crawl."""

    def __init__(
        self,
        settings: CrawlSettings,
        store: Store,
        browser_factory: Optional[Callable[[], RequestsBrowser]] = None,
        paginator: Optional[FeedPaginator] = None,
        persister: Optional[EventPersister] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            settings: Crawl configuration
            store: Event store, closed when the run ends
            browser_factory: Callable returning a browser context manager
            paginator: Feed paginator (default built from settings)
            persister: Event persister (default built from settings)
        """
        self.settings = settings
        self.store = store
        self.browser_factory = browser_factory or (
            lambda: RequestsBrowser(user_agent=settings.user_agent)
        )
        self.paginator = paginator or FeedPaginator(
            site_url=settings.site_url,
            enricher=DetailEnricher(timeout=settings.detail_timeout),
            timeout=settings.list_timeout,
            request_delay=settings.request_delay,
            page_delay=settings.page_delay,
        )
        self.image_downloader = None
        if persister is None:
            self.image_downloader = ImageDownloader(
                images_dir=settings.images_dir,
                url_prefix=settings.images_url_prefix,
                timeout=settings.image_timeout,
                user_agent=settings.user_agent,
            )
            persister = EventPersister(
                store=store,
                normalizer=EventNormalizer(first_season_year=settings.first_season_year),
                image_downloader=self.image_downloader,
            )
        self.persister = persister

    def run(self) -> CrawlRun:
        """
        Crawl the upcoming then the past feed and upsert every event.

        Returns:
            CrawlRun with found/created/updated/skipped/error counts

        Raises:
            Exception: Any failure outside per-event handling (browser,
                listing navigation); the browser, image session and store are
                still closed
        """
        run = CrawlRun()
        try:
            feed_results = self._crawl_feeds()
            self._save_debug_pages(feed_results)

            stubs = []
            for result in feed_results:
                run.feeds[result.feed] = len(result.stubs)
                stubs.extend(result.stubs)
            run.found = len(stubs)

            if not stubs:
                logger.warning("No events found on any feed, nothing to import")
                return run

            logger.info(f"Saving {len(stubs)} crawled events")
            for outcome in self.persister.persist(stubs):
                run.record(outcome)

            logger.info(
                f"Crawl complete: {run.found} found, {run.created} created, "
                f"{run.updated} updated, {run.skipped} skipped, {run.errors} errors"
            )
            return run
        finally:
            if self.image_downloader is not None:
                self.image_downloader.close()
            self.store.close()

    def _crawl_feeds(self) -> List[FeedResult]:
        with self.browser_factory() as browser:
            page = browser.new_page()
            page.set_user_agent(self.settings.user_agent)
            return [self.paginator.crawl(page, feed) for feed in FEEDS]

    def _save_debug_pages(self, feed_results: List[FeedResult]) -> None:
        if not self.settings.debug_dir:
            return
        for result in feed_results:
            if not result.first_page_empty:
                continue
            try:
                debug_dir = Path(self.settings.debug_dir)
                debug_dir.mkdir(parents=True, exist_ok=True)
                path = debug_dir / f"debug-{result.feed}-{int(time.time())}.html"
                path.write_text(result.first_page_html, encoding='utf-8')
                logger.info(f"Saved first page of feed '{result.feed}' to {path}")
            except OSError as e:
                logger.warning(f"Could not save debug page for feed '{result.feed}': {e}")
