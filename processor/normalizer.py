"""Normalizer converting scraped event stubs into store fields."""
import html
import re
from datetime import date as date_type
from datetime import datetime
from typing import Optional

from bs4 import BeautifulSoup

from processor.models import EnrichedEventStub, EventFields, RawEventStub

PRICE_NOT_SPECIFIED = 'Non spécifié'
IMPORT_MARKER = 'Importé depuis le site officiel'

# "Tarif plein : 15€", "Prévente: 12,50 €"; the label starts at a price keyword
# and takes at most two more words before the colon
_LABELLED_PRICE_RE = re.compile(
    r"\b((?:tarifs?|prix|pr[ée]ventes?|plein|r[ée]duit|adh[ée]rents?|enfants?|entr[ée]e)"
    r"(?:\s+[^\W\d_]+){0,2})\s*:\s*(\d+(?:[.,]\d{1,2})?)\s*€",
    re.IGNORECASE,
)
_BARE_PRICE_RE = re.compile(r"(\d+(?:[.,]\d{1,2})?)\s*€")
_ELLIPSIS_RE = re.compile(r"\s*(?:\[(?:&hellip;|…|\.\.\.)\]|&hellip;|…)\s*")
_WHITESPACE_RE = re.compile(r"\s+")


def decode_entities(text: Optional[str]) -> Optional[str]:
    """Decode HTML character entities, leaving None untouched."""
    if text is None:
        return None
    return html.unescape(text)


def strip_html(markup: Optional[str]) -> str:
    """Return the visible text of an HTML fragment with whitespace collapsed."""
    if not markup:
        return ''
    text = BeautifulSoup(markup, 'html.parser').get_text(' ')
    return _WHITESPACE_RE.sub(' ', text).strip()


def short_description(markup: Optional[str]) -> str:
    """Plain-text excerpt with trailing "read more" ellipsis markers removed."""
    if not markup:
        return ''
    without_markers = _ELLIPSIS_RE.sub(' ', markup)
    return strip_html(without_markers)


def extract_price_text(description: Optional[str]) -> str:
    """
    Find a price mention in an event description.

    A labelled price ("Tarif : 15€") wins over a bare amount ("15€").

    Args:
        description: Description text or HTML

    Returns:
        Price text, or PRICE_NOT_SPECIFIED when none is found
    """
    text = html.unescape(strip_html(description))
    labelled = _LABELLED_PRICE_RE.search(text)
    if labelled:
        label = labelled.group(1).strip()
        return f"{label}: {labelled.group(2)}€"
    bare = _BARE_PRICE_RE.search(text)
    if bare:
        return f"{bare.group(1)}€"
    return PRICE_NOT_SPECIFIED


def compute_season(event_date: date_type, first_season_year: int) -> int:
    """
    Season number for a date.

    A season runs from September of year Y to August of year Y+1 and is
    numbered from first_season_year (season 1).
    """
    season_start_year = event_date.year if event_date.month >= 9 else event_date.year - 1
    return season_start_year - first_season_year + 1


def add_hours(time_of_day: str, hours: int) -> str:
    """Add hours to an HH:MM time, wrapping past midnight."""
    hour, minute = (int(part) for part in time_of_day.split(':'))
    total = (hour * 60 + minute + hours * 60) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_start(value: str) -> tuple[datetime, bool]:
    """
    Parse a structured-data start timestamp.

    Args:
        value: ISO 8601 date or datetime, optionally with an offset

    Returns:
        Tuple of (datetime, has_time)

    Raises:
        ValueError: If the value is not a recognised timestamp
    """
    value = value.strip()
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        return datetime.strptime(value, '%Y-%m-%d'), False
    # fromisoformat does not take a trailing Z before Python 3.11
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value), True


class EventNormalizer:
    """Pure conversion from an enriched stub to DomainEvent fields."""

    DEFAULT_ARRIVAL_TIME = '19:00'
    SHOW_DURATION_HOURS = 3
    DEFAULT_EXPECTED_AUDIENCE = 100
    DEFAULT_REQUIRED_VOLUNTEERS = 5

    def __init__(self, first_season_year: int = 1995):
        self.first_season_year = first_season_year

    def normalize(
        self, stub: RawEventStub, now: Optional[datetime] = None
    ) -> EventFields:
        """
        Convert a stub to event fields (image_url left unset).

        Args:
            stub: Enriched (or raw) event stub
            now: Timestamp used when the stub has no start date

        Returns:
            EventFields ready to be written

        Raises:
            ValueError: If the stub has no detail URL or an unparseable date
        """
        if not stub.detail_url:
            raise ValueError(f"Event '{stub.name}' has no source URL")

        has_time = False
        if stub.start_date_time:
            event_date, has_time = parse_start(stub.start_date_time)
        else:
            event_date = now or datetime.now()

        arrival_time = (
            event_date.strftime('%H:%M') if has_time else self.DEFAULT_ARRIVAL_TIME
        )

        return EventFields(
            date=event_date.isoformat(),
            name=decode_entities(stub.name),
            description=self._description(stub),
            arrival_time=arrival_time,
            departure_time=add_hours(arrival_time, self.SHOW_DURATION_HOURS),
            expected_audience=self.DEFAULT_EXPECTED_AUDIENCE,
            required_volunteers=self.DEFAULT_REQUIRED_VOLUNTEERS,
            season=compute_season(event_date, self.first_season_year),
            comments=self._comments(stub),
            price=stub.price_text or PRICE_NOT_SPECIFIED,
            source_url=stub.detail_url,
        )

    def _description(self, stub: RawEventStub) -> str:
        if isinstance(stub, EnrichedEventStub):
            if stub.full_description_html:
                return stub.full_description_html
            if stub.full_description_text:
                return stub.full_description_text
        if stub.short_description:
            return stub.short_description
        return f"Spectacle : {decode_entities(stub.name)}"

    def _comments(self, stub: RawEventStub) -> str:
        venue = stub.venue_name
        if not venue and isinstance(stub, EnrichedEventStub):
            venue = stub.location
        if venue:
            return f"{IMPORT_MARKER} - Lieu : {venue}"
        return IMPORT_MARKER
