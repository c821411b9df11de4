"""Detail page enrichment for event stubs."""
import logging
from dataclasses import asdict
from typing import Optional

from bs4 import BeautifulSoup, Tag

from processor.models import EnrichedEventStub, RawEventStub
from processor.normalizer import decode_entities
from scraper.browser import Page

logger = logging.getLogger(__name__)


class DetailEnricher:
    """Visits an event's own page to fetch its full description and venue."""

    DESCRIPTION_SELECTORS = [
        '.tribe-events-single-event-description',
        '.entry-content',
        '.event-description',
        '.content',
        'article .description',
    ]
    VENUE_SELECTOR = '.tribe-venue, .event-venue, [itemprop="location"]'

    def __init__(self, timeout: float = 15):
        self.timeout = timeout

    def enrich(self, page: Page, stub: RawEventStub) -> RawEventStub:
        """
        Merge detail-page content into a stub.

        Never raises: on any failure the original stub is returned.

        Args:
            page: Page used for navigation
            stub: Stub with a detail URL

        Returns:
            EnrichedEventStub, or the original stub if enrichment failed
        """
        try:
            response = page.goto(stub.detail_url, timeout=self.timeout)
            if response.status >= 400:
                raise ValueError(f"HTTP {response.status}")
            details = page.evaluate(self._read_details)
        except Exception as e:
            logger.warning(f"Could not enrich '{stub.name}' ({stub.detail_url}): {e}")
            return stub

        fields = asdict(stub)
        fields.pop('full_description_html', None)
        fields.pop('full_description_text', None)
        fields.pop('location', None)
        enriched = EnrichedEventStub(**fields, **details)

        # detail_url stays the listing's canonical URL even after redirects
        enriched.detail_url = stub.detail_url
        enriched.name = decode_entities(enriched.name)
        enriched.full_description_html = decode_entities(enriched.full_description_html)
        enriched.full_description_text = decode_entities(enriched.full_description_text)
        return enriched

    def _read_details(self, soup: BeautifulSoup) -> dict:
        details = {
            'full_description_html': None,
            'full_description_text': None,
            'location': None,
        }

        description = self._first_match(soup)
        if description is not None:
            details['full_description_html'] = description.decode_contents().strip() or None
            details['full_description_text'] = description.get_text(' ', strip=True) or None

        venue = soup.select_one(self.VENUE_SELECTOR)
        if venue is not None:
            details['location'] = venue.get_text(' ', strip=True) or None

        return details

    def _first_match(self, soup: BeautifulSoup) -> Optional[Tag]:
        for selector in self.DESCRIPTION_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                return element
        return None
