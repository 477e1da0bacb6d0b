from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional

from .models import Contact, DuplicateGroup
from .normalization import normalize_email, normalize_phone
from .repository import ContactStore

# CRM records win over calendar bookings, which win over form submissions.
SOURCE_PRIORITY: Dict[str, int] = {
    "close": 1,
    "calendly": 2,
    "typeform": 3,
}

MIN_PHONE_DIGITS = 10


def _primary_sort_key(contact: Contact) -> tuple:
    tokens = contact.lead_sources
    priority = SOURCE_PRIORITY.get(tokens[0].lower(), 999) if tokens else 999
    created = contact.created_at.timestamp() if contact.created_at else float("inf")
    return (priority, created, contact.id)


class _DisjointSet:
    def __init__(self) -> None:
        self.parent: Dict[int, int] = {}

    def find(self, item: int) -> int:
        self.parent.setdefault(item, item)
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, left: int, right: int) -> None:
        left_root, right_root = self.find(left), self.find(right)
        if left_root != right_root:
            self.parent[max(left_root, right_root)] = min(left_root, right_root)


def find_duplicate_groups(store: ContactStore, limit: Optional[int] = None) -> List[DuplicateGroup]:
    """Group contacts that share a normalized email or phone.

    Stored emails predating normalization (``Jane.Doe@gmail.com`` next to
    ``janedoe@gmail.com``) collapse here. Groups linked through any shared key
    are joined. Each group's primary is picked by source priority, then
    earliest ``created_at``, then lowest id. Groups whose members hold more
    than one distinct email are flagged ``needs_review``: merging them would
    drop every email but the primary's.
    """
    contacts: Dict[int, Contact] = {}
    by_key: Dict[str, List[int]] = defaultdict(list)
    for contact in store.iter_contacts():
        contacts[contact.id] = contact
        email = normalize_email(contact.email)
        if email:
            by_key[f"email:{email}"].append(contact.id)
        phone = normalize_phone(contact.phone)
        if len(phone) >= MIN_PHONE_DIGITS:
            by_key[f"phone:{phone}"].append(contact.id)

    sets = _DisjointSet()
    group_keys: Dict[int, List[str]] = defaultdict(list)
    for key, ids in by_key.items():
        if len(ids) < 2:
            continue
        for other in ids[1:]:
            sets.union(ids[0], other)
    for key, ids in by_key.items():
        if len(ids) >= 2:
            group_keys[sets.find(ids[0])].append(key)

    members: Dict[int, List[Contact]] = defaultdict(list)
    for contact_id in sets.parent:
        members[sets.find(contact_id)].append(contacts[contact_id])

    groups: List[DuplicateGroup] = []
    for root in sorted(members):
        ordered = sorted(members[root], key=_primary_sort_key)
        emails = {normalize_email(contact.email) for contact in ordered} - {""}
        groups.append(
            DuplicateGroup(
                primary=ordered[0],
                duplicates=sorted(ordered[1:], key=lambda item: item.id),
                keys=sorted(group_keys[root]),
                needs_review=len(emails) > 1,
            )
        )
    groups.sort(key=lambda group: (-len(group.duplicates), group.primary.id))
    if limit:
        groups = groups[:limit]
    return groups


__all__ = ["SOURCE_PRIORITY", "find_duplicate_groups"]
