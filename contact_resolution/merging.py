from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ContactStoreError, DuplicateEmailError
from .locks import KeyedLock
from .logging import get_logger
from .matching import ContactMatcher
from .models import (
    MERGEABLE_FIELDS,
    Contact,
    ContactInput,
    MatchConfidence,
    MergeOutcome,
    append_note,
    is_empty,
    join_lead_sources,
    split_lead_sources,
)
from .normalization import normalize_email, normalize_phone
from .repository import ContactStore

logger = get_logger("contacts.merging")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def merge_lead_sources(existing: str, incoming: str | None) -> tuple[str, int]:
    """Return the joined token set and how many tokens ``incoming`` added."""
    tokens = split_lead_sources(existing)
    added = 0
    for token in split_lead_sources(incoming):
        if token not in tokens:
            tokens.append(token)
            added += 1
    return join_lead_sources(tokens), added


def collect_changes(existing: Contact, info: ContactInput) -> Dict[str, Any]:
    """Field-precedence merge of ``info`` onto ``existing``.

    Populated scalar fields are never overwritten, notes only grow, and each
    new lead source token bumps ``sources_count``.
    """
    changes: Dict[str, Any] = {}

    lead_source, added = merge_lead_sources(existing.lead_source, info.lead_source)
    if added:
        changes["lead_source"] = lead_source
        changes["sources_count"] = existing.sources_count + added

    if is_empty(existing.email) and not is_empty(info.email):
        changes["email"] = info.email

    for field_name in MERGEABLE_FIELDS:
        incoming = info.value(field_name)
        if is_empty(getattr(existing, field_name)) and not is_empty(incoming):
            changes[field_name] = incoming

    notes = append_note(existing.notes, info.notes)
    if notes != existing.notes:
        changes["notes"] = notes

    if info.first_touch_date and (
        existing.first_touch_date is None or info.first_touch_date < existing.first_touch_date
    ):
        changes["first_touch_date"] = info.first_touch_date
    if info.last_activity_date and (
        existing.last_activity_date is None or info.last_activity_date > existing.last_activity_date
    ):
        changes["last_activity_date"] = info.last_activity_date

    return changes


class ContactMerger:
    """Create-or-update entry point used by every ingestion feed.

    Writes for one normalized email are serialized through ``locks``; pass the
    same KeyedLock to every merger sharing a process. Across processes the
    store's unique email constraint takes over: an insert or update that
    loses the email to another writer is retried as lookup-then-update.
    """

    def __init__(
        self,
        store: ContactStore,
        *,
        matcher: Optional[ContactMatcher] = None,
        locks: Optional[KeyedLock] = None,
        insert_retries: int = 3,
    ) -> None:
        self.store = store
        self.matcher = matcher or ContactMatcher(store)
        self.locks = locks or KeyedLock()
        self.insert_retries = max(1, insert_retries)

    def create_or_update_contact(
        self,
        info: ContactInput,
        update_existing: bool = True,
        min_confidence: MatchConfidence = MatchConfidence.MEDIUM,
    ) -> MergeOutcome:
        email = normalize_email(info.email)
        prepared = replace(
            info,
            email=email or None,
            phone=normalize_phone(info.phone) or None,
        )

        with self.locks.hold(email):
            for attempt in range(1, self.insert_retries + 1):
                result = self.matcher.find_best_match(prepared, min_confidence)
                try:
                    if result.matched and result.contact is not None:
                        if not update_existing:
                            return MergeOutcome(result.contact, created=False, merged=False, reason=result.reason)
                        return self._update(result.contact, prepared, result.reason)
                    return self._create(prepared)
                except DuplicateEmailError:
                    logger.info("contact_insert_conflict", email=email, attempt=attempt)
                    existing = self.store.get_contact_by_email(email)
                    if existing is None:
                        continue
                    if not update_existing:
                        return MergeOutcome(existing, reason="Concurrent insert for the same email")
                    return self._update(existing, prepared, "Concurrent insert for the same email")

        raise ContactStoreError(f"Could not create or update contact for {email!r}")

    def _create(self, info: ContactInput) -> MergeOutcome:
        now = _utcnow()
        lead_source, added = merge_lead_sources("", info.lead_source)
        contact = Contact(
            email=info.email or "",
            name=info.name,
            phone=info.phone,
            company=info.company,
            title=info.title,
            linkedin_url=info.linkedin_url,
            status=info.status,
            preferred_contact_method=info.preferred_contact_method,
            timezone=info.timezone,
            lead_source=lead_source,
            sources_count=added,
            notes=info.notes,
            created_at=now,
            last_update_date=now,
            first_touch_date=info.first_touch_date,
            last_activity_date=info.last_activity_date,
        )
        created = self.store.insert_contact(contact)
        logger.info("contact_created", contact_id=created.id, source=lead_source or None)
        return MergeOutcome(created, created=True, merged=False, reason="New contact created")

    def _update(self, existing: Contact, info: ContactInput, reason: str) -> MergeOutcome:
        changes = collect_changes(existing, info)
        if not changes:
            return MergeOutcome(existing, created=False, merged=False, reason=f"{reason}; nothing new")

        changes["last_update_date"] = _utcnow()
        updated = self.store.update_contact(existing.id, changes)
        logger.info(
            "contact_merged",
            contact_id=existing.id,
            source=info.lead_source,
            fields=sorted(key for key in changes if key != "last_update_date"),
        )
        return MergeOutcome(updated, created=False, merged=True, reason=reason)


__all__ = ["ContactMerger", "collect_changes", "merge_lead_sources"]
