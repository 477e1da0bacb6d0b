from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List

from .logging import get_logger
from .merging import ContactMerger
from .models import ContactInput, MatchConfidence

logger = get_logger("contacts.ingest")


@dataclass(slots=True)
class IngestStats:
    accepted: int = 0
    matched: int = 0
    created: int = 0
    merged: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, int]:
        return {
            "accepted": self.accepted,
            "matched": self.matched,
            "created": self.created,
            "merged": self.merged,
            "failed": self.failed,
        }


def ingest_batch(
    merger: ContactMerger,
    source: str,
    records: Iterable[ContactInput],
    *,
    update_existing: bool = True,
    min_confidence: MatchConfidence = MatchConfidence.MEDIUM,
) -> IngestStats:
    """Run one feed's records through the merger, one record at a time.

    A record that fails (store outage, bad data) is counted and logged; the
    rest of the batch still runs.
    """
    stats = IngestStats()
    for index, record in enumerate(records):
        stats.accepted += 1
        if not record.lead_source:
            record = replace(record, lead_source=source)
        try:
            outcome = merger.create_or_update_contact(
                record,
                update_existing=update_existing,
                min_confidence=min_confidence,
            )
        except Exception as exc:
            stats.failed += 1
            stats.errors.append(f"record {index}: {exc}")
            logger.exception(
                "contact_ingest_failed",
                source=source,
                index=index,
                error=str(exc),
            )
            continue

        if outcome.created:
            stats.created += 1
        else:
            stats.matched += 1
            if outcome.merged:
                stats.merged += 1

    logger.info("contact_ingest_complete", source=source, **stats.as_dict())
    return stats


__all__ = ["IngestStats", "ingest_batch"]
