from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .config import ResolutionSettings, get_settings
from .consolidation import ContactConsolidator
from .ingest import IngestStats, ingest_batch
from .locks import KeyedLock
from .matching import ContactMatcher
from .merging import ContactMerger
from .models import Contact, ContactInput, MatchConfidence, MatchResult, MergeOutcome
from .repository import ContactStore


class ContactResolutionService:
    """In-process entry point for the sync jobs and the admin cleanup action.

    Wires matcher, merger and consolidator over one store, taking default
    confidence floors and limits from :class:`ResolutionSettings`.
    """

    def __init__(
        self,
        store: ContactStore,
        *,
        settings: Optional[ResolutionSettings] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.matcher = ContactMatcher(store, search_limit=self.settings.search_limit)
        self.merger = ContactMerger(
            store,
            matcher=self.matcher,
            locks=locks,
            insert_retries=self.settings.insert_retries,
        )
        self.consolidator = ContactConsolidator(store)

    def find_best_match(
        self,
        info: ContactInput,
        min_confidence: Optional[MatchConfidence] = None,
        include_links: bool = False,
    ) -> MatchResult:
        return self.matcher.find_best_match(
            info,
            min_confidence or self.settings.match_min_confidence,
            include_links=include_links,
        )

    def create_or_update_contact(
        self,
        info: ContactInput,
        update_existing: bool = True,
        min_confidence: Optional[MatchConfidence] = None,
    ) -> MergeOutcome:
        return self.merger.create_or_update_contact(
            info,
            update_existing=update_existing,
            min_confidence=min_confidence or self.settings.merge_min_confidence,
        )

    def merge_contacts(self, primary_id: int, secondary_ids: Sequence[int]) -> Contact:
        return self.consolidator.merge_contacts(primary_id, secondary_ids)

    def ingest(self, source: str, records: Iterable[ContactInput]) -> IngestStats:
        return ingest_batch(
            self.merger,
            source,
            records,
            min_confidence=self.settings.merge_min_confidence,
        )


__all__ = ["ContactResolutionService"]
