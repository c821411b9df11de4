"""Extract event stubs from the structured data embedded in listing pages."""
import json
import logging
from typing import Any, Iterator, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from processor.models import RawEventStub
from processor.normalizer import extract_price_text, short_description
from scraper.browser import Page

logger = logging.getLogger(__name__)


class ListingExtractor:
    """Reads schema.org Event objects out of ld+json blocks."""

    EVENT_TYPES = {'Event', 'TheaterEvent', 'MusicEvent', 'ComedyEvent', 'DanceEvent', 'Festival'}

    def extract(self, page: Page) -> List[RawEventStub]:
        """
        Return the event stubs found on an already loaded page.

        Args:
            page: Loaded listing page

        Returns:
            List of RawEventStub, possibly empty
        """
        base_url = page.url or ''
        items = page.evaluate(self._read_structured_data)

        stubs = []
        for item in items:
            try:
                stub = self._item_to_stub(item, base_url)
            except Exception as e:
                logger.warning(f"Failed to read structured event: {e}")
                continue
            if stub:
                stubs.append(stub)

        logger.debug(f"Extracted {len(stubs)} events from {base_url}")
        return stubs

    @staticmethod
    def _read_structured_data(soup: BeautifulSoup) -> List[dict]:
        """Collect every JSON object declared in ld+json script tags."""
        objects = []
        for tag in soup.find_all('script', type='application/ld+json'):
            raw = tag.string or tag.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except ValueError as e:
                logger.warning(f"Skipping unparseable ld+json block: {e}")
                continue
            objects.extend(_flatten(data))
        return objects

    def _is_event(self, item: dict) -> bool:
        declared = item.get('@type')
        if isinstance(declared, list):
            return any(t in self.EVENT_TYPES for t in declared)
        return declared in self.EVENT_TYPES

    def _item_to_stub(self, item: dict, base_url: str) -> Optional[RawEventStub]:
        if not self._is_event(item):
            return None

        name = (item.get('name') or '').strip()
        url = (item.get('url') or '').strip()
        if not name or not url:
            return None

        description = item.get('description') or ''
        location = item.get('location')
        venue_name = None
        if isinstance(location, dict):
            venue_name = (location.get('name') or '').strip() or None
        elif isinstance(location, str):
            venue_name = location.strip() or None

        image = _first_image(item.get('image'))

        return RawEventStub(
            name=name,
            detail_url=urljoin(base_url, url),
            image_url=urljoin(base_url, image) if image else None,
            start_date_time=item.get('startDate') or None,
            end_date_time=item.get('endDate') or None,
            price_text=extract_price_text(description),
            short_description=short_description(description),
            venue_name=venue_name,
        )


def _flatten(data: Any) -> Iterator[dict]:
    """Yield objects from a block holding an object, an array or an @graph."""
    if isinstance(data, list):
        for entry in data:
            yield from _flatten(entry)
    elif isinstance(data, dict):
        if isinstance(data.get('@graph'), list):
            yield from _flatten(data['@graph'])
        else:
            yield data


def _first_image(image: Any) -> Optional[str]:
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get('url')
    if isinstance(image, str) and image.strip():
        return image.strip()
    return None
