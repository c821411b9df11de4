"""Data models for the event crawl pipeline."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


@dataclass
class RawEventStub:
    """Event discovered on a listing page, before enrichment."""
    name: str
    detail_url: str
    image_url: Optional[str] = None
    start_date_time: Optional[str] = None
    end_date_time: Optional[str] = None
    price_text: str = ''
    short_description: str = ''
    venue_name: Optional[str] = None


@dataclass
class EnrichedEventStub(RawEventStub):
    """Stub completed with the content of its detail page."""
    full_description_html: Optional[str] = None
    full_description_text: Optional[str] = None
    location: Optional[str] = None


@dataclass
class EventFields:
    """Mutable fields of a DomainEvent, as produced by the normalizer."""
    date: str
    name: str
    description: str
    arrival_time: str
    departure_time: str
    expected_audience: int
    required_volunteers: int
    season: int
    comments: str
    price: str
    source_url: str
    image_url: Optional[str] = None


@dataclass
class DomainEvent:
    """Event record as persisted in the store."""
    id: str
    date: str
    name: str
    description: str
    arrival_time: str
    departure_time: str
    expected_audience: int
    required_volunteers: int
    season: int
    comments: str
    price: str
    source_url: str
    image_url: Optional[str]
    created_at: str
    updated_at: str


class StubOutcome(Enum):
    """What happened to one stub during persistence."""
    CREATED = 'created'
    UPDATED = 'updated'
    SKIPPED = 'skipped'
    ERROR = 'error'


@dataclass
class PersistResult:
    """Outcome of persisting a single stub."""
    outcome: StubOutcome
    source_url: str
    event_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class FeedResult:
    """Stubs accumulated while paginating one feed."""
    feed: str
    stubs: List[RawEventStub]
    pages_fetched: int = 0
    first_page_html: Optional[str] = None

    @property
    def first_page_empty(self) -> bool:
        return self.first_page_html is not None


@dataclass
class CrawlRun:
    """Counters for one end-to-end crawl."""
    found: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    feeds: Dict[str, int] = field(default_factory=dict)
    error_messages: List[str] = field(default_factory=list)

    def record(self, result: PersistResult) -> None:
        """Fold one persistence outcome into the counters."""
        if result.outcome is StubOutcome.CREATED:
            self.created += 1
        elif result.outcome is StubOutcome.UPDATED:
            self.updated += 1
        elif result.outcome is StubOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1
            if result.error:
                self.error_messages.append(f"{result.source_url}: {result.error}")

    def to_dict(self) -> dict:
        return {
            'found': self.found,
            'created': self.created,
            'updated': self.updated,
            'skipped': self.skipped,
            'errors': self.errors,
            'feeds': dict(self.feeds),
        }


@dataclass
class CrawlSettings:
    """Runtime configuration, usually read from environment variables."""
    table_name: str = 'volunteer-events'
    log_level: str = 'INFO'
    site_url: str = 'https://www.baiedessinges.com/programme/liste/'
    images_dir: str = 'public/images/events'
    images_url_prefix: str = '/images/events'
    debug_dir: Optional[str] = None
    first_season_year: int = 1995
    list_timeout: float = 30
    detail_timeout: float = 15
    image_timeout: float = 10
    request_delay: float = 0.5
    page_delay: float = 1.0
    user_agent: str = (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36'
    )
