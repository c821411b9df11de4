"""Deduplicate crawled stubs and upsert them into the event store."""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence

from processor.image_downloader import ImageDownloader
from processor.models import (
    DomainEvent,
    EventFields,
    PersistResult,
    RawEventStub,
    StubOutcome,
)
from processor.normalizer import EventNormalizer

logger = logging.getLogger(__name__)


class Store(Protocol):
    def find_event_by_source_url(self, source_url: str) -> Optional[DomainEvent]:
        ...

    def create_event(self, fields: EventFields) -> DomainEvent:
        ...

    def update_event(self, event_id: str, fields: EventFields) -> DomainEvent:
        ...

    def close(self) -> None:
        ...


class EventPersister:
    """Create-or-update of events keyed by their source URL."""

    def __init__(
        self,
        store: Store,
        normalizer: EventNormalizer,
        image_downloader: ImageDownloader,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.normalizer = normalizer
        self.image_downloader = image_downloader
        self.clock = clock

    def persist(self, stubs: Sequence[RawEventStub]) -> List[PersistResult]:
        """
        Persist crawled stubs, one outcome per input stub.

        The first stub seen for a source URL is written, later ones are
        reported as SKIPPED. A failure on one stub never stops the others.

        Args:
            stubs: Stubs from all feeds, in crawl order

        Returns:
            List of PersistResult in input order
        """
        results = []
        seen = set()

        for stub in stubs:
            if stub.detail_url in seen:
                logger.info(f"Skipping duplicate '{stub.name}' ({stub.detail_url})")
                results.append(PersistResult(StubOutcome.SKIPPED, stub.detail_url))
                continue
            seen.add(stub.detail_url)
            results.append(self._persist_one(stub))

        logger.info(
            f"Persisted {len(seen)} unique events out of {len(stubs)} crawled"
        )
        return results

    def _persist_one(self, stub: RawEventStub) -> PersistResult:
        try:
            fields = self.normalizer.normalize(stub, now=self.clock())
        except Exception as e:
            logger.error(f"Failed to convert '{stub.name}' ({stub.detail_url}): {e}")
            return PersistResult(StubOutcome.ERROR, stub.detail_url, error=str(e))

        fields.image_url = self.image_downloader.download(stub.image_url, fields.name)

        try:
            existing = self.store.find_event_by_source_url(fields.source_url)
            if existing:
                if fields.image_url is None:
                    fields.image_url = existing.image_url
                event = self.store.update_event(existing.id, fields)
                logger.info(f"Updated: {fields.name}")
                return PersistResult(StubOutcome.UPDATED, fields.source_url, event_id=event.id)

            event = self.store.create_event(fields)
            logger.info(f"Created: {fields.name}")
            return PersistResult(StubOutcome.CREATED, fields.source_url, event_id=event.id)
        except Exception as e:
            logger.error(f"Failed to save '{fields.name}' ({fields.source_url}): {e}")
            return PersistResult(StubOutcome.ERROR, fields.source_url, error=str(e))
