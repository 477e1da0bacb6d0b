from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from .errors import ContactNotFoundError, ReassignmentError
from .logging import get_logger
from .models import MERGEABLE_FIELDS, Contact, append_note, is_empty, join_lead_sources
from .repository import ContactStore

logger = get_logger("contacts.consolidation")


def merged_fields(primary: Contact, secondaries: Sequence[Contact]) -> Dict[str, Any]:
    """Field set the primary ends up with after absorbing ``secondaries``.

    ``secondaries`` must already be in tie-break order: the first non-empty
    value wins for every field the primary leaves empty.
    """
    tokens = list(primary.lead_sources)
    sources_count = primary.sources_count
    notes = primary.notes
    first_touch = primary.first_touch_date
    last_activity = primary.last_activity_date
    fields: Dict[str, Any] = {}

    for secondary in secondaries:
        for token in secondary.lead_sources:
            if token not in tokens:
                tokens.append(token)
        sources_count += secondary.sources_count
        notes = append_note(notes, secondary.notes)
        if secondary.first_touch_date and (first_touch is None or secondary.first_touch_date < first_touch):
            first_touch = secondary.first_touch_date
        if secondary.last_activity_date and (
            last_activity is None or secondary.last_activity_date > last_activity
        ):
            last_activity = secondary.last_activity_date

    for field_name in MERGEABLE_FIELDS:
        if not is_empty(getattr(primary, field_name)):
            continue
        for secondary in secondaries:
            value = getattr(secondary, field_name)
            if not is_empty(value):
                fields[field_name] = value
                break

    fields.update(
        lead_source=join_lead_sources(tokens),
        sources_count=sources_count,
        notes=notes,
        first_touch_date=first_touch,
        last_activity_date=last_activity,
        last_update_date=datetime.now(timezone.utc),
    )
    return fields


class ContactConsolidator:
    """Folds explicit duplicates into a primary contact.

    The primary's merged fields are written first. Each secondary is then
    handled in its own store transaction: its activities, deals, meetings and
    forms move to the primary and the secondary is deleted. A primary without
    an email takes over the first secondary email in the same transaction. A
    failing secondary rolls back alone and is reported through
    :class:`ReassignmentError` once the others are done.
    """

    def __init__(self, store: ContactStore) -> None:
        self.store = store

    def merge_contacts(self, primary_id: int, secondary_ids: Sequence[int]) -> Contact:
        if not secondary_ids:
            raise ValueError("secondary_ids cannot be empty")
        # Ascending id order is the tie-break for conflicting secondary values
        ordered_ids = sorted(set(secondary_ids))
        if primary_id in ordered_ids:
            raise ValueError("primary_id cannot be in secondary_ids")

        primary = self.store.get_contact(primary_id)
        if primary is None:
            raise ContactNotFoundError(primary_id, role="Primary")
        secondaries: List[Contact] = []
        for secondary_id in ordered_ids:
            secondary = self.store.get_contact(secondary_id)
            if secondary is None:
                raise ContactNotFoundError(secondary_id, role="Secondary")
            secondaries.append(secondary)

        merged = self.store.update_contact(primary_id, merged_fields(primary, secondaries))

        merged_ids: List[int] = []
        failed_ids: List[int] = []
        for secondary in secondaries:
            # The primary takes over the first secondary email only once that
            # secondary row, and with it the unique email, is gone.
            adopt_email = not merged.email and bool(secondary.email)
            try:
                with self.store.transaction():
                    counts = self.store.reassign_dependents(secondary.id, primary_id)
                    self.store.delete_contact(secondary.id)
                    if adopt_email:
                        merged = self.store.update_contact(primary_id, {"email": secondary.email})
            except Exception as exc:
                logger.exception(
                    "contact_consolidation_failed",
                    contact_id=primary_id,
                    secondary_id=secondary.id,
                    error=str(exc),
                )
                failed_ids.append(secondary.id)
                continue
            merged_ids.append(secondary.id)
            logger.info(
                "contact_consolidated",
                contact_id=primary_id,
                secondary_id=secondary.id,
                reassigned=counts,
            )

        if failed_ids:
            raise ReassignmentError(primary_id, failed_ids, merged_ids, contact=merged)
        return merged


__all__ = ["ContactConsolidator", "merged_fields"]
