from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class MatchConfidence(str, Enum):
    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"

    @property
    def cutoff(self) -> float:
        return CONFIDENCE_CUTOFFS[self]

    def meets(self, minimum: "MatchConfidence") -> bool:
        """True when this tier is at least as strong as ``minimum``."""
        if self is MatchConfidence.NONE:
            return False
        return self.cutoff >= minimum.cutoff

    def accepts(self, score: float) -> bool:
        return score >= self.cutoff


CONFIDENCE_CUTOFFS: Dict[MatchConfidence, float] = {
    MatchConfidence.EXACT: 1.0,
    MatchConfidence.HIGH: 0.8,
    MatchConfidence.MEDIUM: 0.6,
    MatchConfidence.LOW: 0.4,
    MatchConfidence.NONE: 0.0,
}

# Scalar fields merged first-non-empty-wins, in precedence order.
MERGEABLE_FIELDS: tuple[str, ...] = (
    "name",
    "phone",
    "company",
    "title",
    "linkedin_url",
    "status",
    "preferred_contact_method",
    "timezone",
)

DEPENDENT_TABLES: tuple[str, ...] = ("activities", "deals", "meetings", "forms")


@dataclass(slots=True)
class Contact:
    id: int | None = None
    email: str = ""
    name: str | None = None
    phone: str | None = None
    company: str | None = None
    title: str | None = None
    linkedin_url: str | None = None
    status: str | None = None
    preferred_contact_method: str | None = None
    timezone: str | None = None
    lead_source: str = ""
    sources_count: int = 0
    notes: str | None = None
    created_at: datetime | None = None
    last_update_date: datetime | None = None
    first_touch_date: datetime | None = None
    last_activity_date: datetime | None = None

    @property
    def lead_sources(self) -> list[str]:
        return split_lead_sources(self.lead_source)

    def copy(self, **changes: Any) -> "Contact":
        return replace(self, **changes)

    def as_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class ContactInput:
    """A partial contact handed over by one of the ingestion feeds."""

    email: str | None = None
    name: str | None = None
    phone: str | None = None
    company: str | None = None
    title: str | None = None
    linkedin_url: str | None = None
    status: str | None = None
    preferred_contact_method: str | None = None
    timezone: str | None = None
    lead_source: str | None = None
    notes: str | None = None
    first_touch_date: datetime | None = None
    last_activity_date: datetime | None = None

    def value(self, field_name: str) -> Optional[str]:
        if field_name not in MERGEABLE_FIELDS:
            raise KeyError(field_name)
        return getattr(self, field_name)


@dataclass(slots=True)
class MatchResult:
    contact: Contact | None
    confidence: MatchConfidence
    score: float
    reason: str
    links: Dict[str, int] | None = None

    @property
    def matched(self) -> bool:
        return self.contact is not None and self.confidence is not MatchConfidence.NONE

    @classmethod
    def no_match(cls, score: float = 0.0, reason: str = "No match found") -> "MatchResult":
        return cls(contact=None, confidence=MatchConfidence.NONE, score=score, reason=reason)


@dataclass(slots=True)
class MergeOutcome:
    contact: Contact
    created: bool = False
    merged: bool = False
    reason: str = ""


@dataclass(slots=True)
class DuplicateGroup:
    primary: Contact
    duplicates: list[Contact] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)
    # Members carry more than one distinct email: the shared phone may be a shared line.
    needs_review: bool = False

    @property
    def contact_ids(self) -> list[int]:
        return [contact.id for contact in (self.primary, *self.duplicates)]


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def split_lead_sources(value: str | None) -> list[str]:
    if not value:
        return []
    tokens: list[str] = []
    for raw in value.split(","):
        token = raw.strip()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def join_lead_sources(tokens: list[str]) -> str:
    return ",".join(tokens)


def append_note(existing: str | None, incoming: str | None) -> str | None:
    """Append-only note merge; identical or empty notes are not repeated."""
    if is_empty(incoming):
        return existing
    if is_empty(existing):
        return incoming
    paragraphs = {part.strip() for part in existing.split("\n\n")}
    if existing.strip() == incoming.strip() or incoming.strip() in paragraphs:
        return existing
    return f"{existing}\n\n{incoming}"


__all__ = [
    "CONFIDENCE_CUTOFFS",
    "Contact",
    "ContactInput",
    "DEPENDENT_TABLES",
    "DuplicateGroup",
    "MERGEABLE_FIELDS",
    "MatchConfidence",
    "MatchResult",
    "MergeOutcome",
    "append_note",
    "is_empty",
    "join_lead_sources",
    "split_lead_sources",
]
