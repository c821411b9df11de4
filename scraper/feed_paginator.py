"""Page-by-page crawl of the venue's event listing feeds."""
import logging
import time
from typing import Callable, List, Optional

from processor.models import FeedResult, RawEventStub
from scraper.browser import Page
from scraper.detail_enricher import DetailEnricher
from scraper.listing_extractor import ListingExtractor

logger = logging.getLogger(__name__)

UPCOMING = 'upcoming'
PAST = 'past'
FEEDS = (UPCOMING, PAST)


def build_feed_url(site_url: str, feed: str, page_number: int) -> str:
    """
    URL of one page of a listing feed.

    Page 1 is the feed root; later pages append ``page/<n>/``. The past
    feed is the same listing with ``eventDisplay=past``.
    """
    if feed not in FEEDS:
        raise ValueError(f"Unknown feed: {feed}")
    if page_number < 1:
        raise ValueError(f"Page numbers start at 1, got {page_number}")

    url = site_url if site_url.endswith('/') else site_url + '/'
    if page_number > 1:
        url += f"page/{page_number}/"
    if feed == PAST:
        url += '?eventDisplay=past'
    return url


class FeedPaginator:
    """Walks a feed until a 404 or an empty page, enriching every stub."""

    def __init__(
        self,
        site_url: str,
        extractor: Optional[ListingExtractor] = None,
        enricher: Optional[DetailEnricher] = None,
        timeout: float = 30,
        request_delay: float = 0.5,
        page_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the paginator.

        Args:
            site_url: Root URL of the upcoming feed
            extractor: Listing extractor (default: ListingExtractor())
            enricher: Detail enricher (default: DetailEnricher())
            timeout: Listing page navigation timeout in seconds
            request_delay: Pause between detail page requests in seconds
            page_delay: Pause between listing pages in seconds
            sleep: Sleep function, replaceable in tests
        """
        self.site_url = site_url
        self.extractor = extractor or ListingExtractor()
        self.enricher = enricher or DetailEnricher()
        self.timeout = timeout
        self.request_delay = request_delay
        self.page_delay = page_delay
        self.sleep = sleep

    def crawl(self, page: Page, feed: str) -> FeedResult:
        """
        Crawl every page of a feed.

        Args:
            page: Page used for both listing and detail navigation
            feed: UPCOMING or PAST

        Returns:
            FeedResult with the enriched stubs in page order

        Raises:
            NavigationError: If a listing page fails for a reason other than 404
        """
        result = FeedResult(feed=feed, stubs=[])
        page_number = 1

        while True:
            url = build_feed_url(self.site_url, feed, page_number)
            logger.info(f"Fetching {feed} page {page_number}: {url}")
            response = page.goto(url, timeout=self.timeout)

            if response.status == 404:
                logger.info(f"Feed '{feed}' ended at page {page_number} (404)")
                break

            stubs = self.extractor.extract(page)
            result.pages_fetched += 1

            if not stubs:
                if page_number == 1:
                    result.first_page_html = page.content()
                    logger.warning(f"No events found on the first page of feed '{feed}'")
                else:
                    logger.info(f"Feed '{feed}' ended at page {page_number} (empty page)")
                break

            logger.info(f"Found {len(stubs)} events on {feed} page {page_number}")
            result.stubs.extend(self._enrich_all(page, stubs))

            page_number += 1
            self.sleep(self.page_delay)

        logger.info(
            f"Feed '{feed}' done: {len(result.stubs)} events over "
            f"{result.pages_fetched} pages"
        )
        return result

    def _enrich_all(self, page: Page, stubs: List[RawEventStub]) -> List[RawEventStub]:
        enriched = []
        for index, stub in enumerate(stubs):
            if index:
                self.sleep(self.request_delay)
            enriched.append(self.enricher.enrich(page, stub))
        return enriched
