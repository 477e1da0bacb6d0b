from __future__ import annotations

import contextlib
import copy
import itertools
import threading
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import DuplicateEmailError
from .models import DEPENDENT_TABLES, Contact
from .repository import CONTACT_COLUMNS
from .similarity import name_search_tokens, tokenize_name


class InMemoryContactStore:
    """Process-local ContactStore.

    Holds contacts and their dependent rows in dictionaries guarded by one
    re-entrant lock. ``transaction()`` snapshots the state and restores it if
    the block raises, so nested blocks behave like savepoints. Inject it
    wherever a ContactStore is expected (tests, dry runs, offline reports);
    nothing in the package keeps a module-level instance.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._contacts: Dict[int, Contact] = {}
        self._dependents: Dict[str, Dict[int, Dict[str, Any]]] = {table: {} for table in DEPENDENT_TABLES}
        self._contact_ids = itertools.count(1)
        self._row_ids = itertools.count(1)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = (copy.deepcopy(self._contacts), copy.deepcopy(self._dependents))
            try:
                yield
            except BaseException:
                self._contacts, self._dependents = snapshot
                raise

    def get_contact(self, contact_id: int) -> Optional[Contact]:
        with self._lock:
            contact = self._contacts.get(contact_id)
            return contact.copy() if contact else None

    def get_contact_by_email(self, email: str) -> Optional[Contact]:
        if not email:
            return None
        with self._lock:
            for contact in self._contacts.values():
                if contact.email == email:
                    return contact.copy()
        return None

    def find_contacts_by_phone(self, phone: str) -> List[Contact]:
        if not phone:
            return []
        return [contact for contact in self.iter_contacts() if contact.phone == phone]

    def find_contacts_by_email_domain(
        self, domain: str, min_local_length: int = 0, max_local_length: Optional[int] = None
    ) -> List[Contact]:
        if not domain:
            return []
        suffix = f"@{domain}"
        matches = []
        for contact in self.iter_contacts():
            if not contact.email.endswith(suffix):
                continue
            length = len(contact.email) - len(suffix)
            if length < min_local_length or (max_local_length is not None and length > max_local_length):
                continue
            matches.append(contact)
        return matches

    def _search(self, attribute: str, tokens: List[str], limit: int) -> List[Contact]:
        if not tokens:
            return []
        wanted = set(tokens)
        ranked = []
        for contact in self.iter_contacts():
            value = (getattr(contact, attribute) or "").lower()
            if value and any(token in value for token in tokens):
                ranked.append((-len(wanted & set(value.split())), contact.id, contact))
        ranked.sort(key=lambda item: item[:2])
        return [contact for _, _, contact in ranked[:limit]]

    def search_contacts_by_name(self, name: str, limit: int = 50) -> List[Contact]:
        return self._search("name", name_search_tokens(name), limit)

    def search_contacts_by_company(self, company: str, limit: int = 50) -> List[Contact]:
        return self._search("company", tokenize_name(company), limit)

    def iter_contacts(self) -> Iterator[Contact]:
        with self._lock:
            contacts = [self._contacts[key].copy() for key in sorted(self._contacts)]
        yield from contacts

    def insert_contact(self, contact: Contact) -> Contact:
        with self._lock:
            if contact.email and self.get_contact_by_email(contact.email) is not None:
                raise DuplicateEmailError(contact.email)
            stored = contact.copy(id=next(self._contact_ids))
            self._contacts[stored.id] = stored
            return stored.copy()

    def update_contact(self, contact_id: int, changes: Mapping[str, Any]) -> Contact:
        unknown = set(changes) - set(CONTACT_COLUMNS[1:])
        if unknown:
            raise ValueError(f"Unknown contact fields: {sorted(unknown)}")
        with self._lock:
            current = self._contacts.get(contact_id)
            if current is None:
                raise ValueError(f"Contact {contact_id} not found")
            email = changes.get("email")
            if email and email != current.email:
                owner = self.get_contact_by_email(email)
                if owner is not None and owner.id != contact_id:
                    raise DuplicateEmailError(email)
            updated = current.copy(**dict(changes))
            self._contacts[contact_id] = updated
            return updated.copy()

    def delete_contact(self, contact_id: int) -> None:
        with self._lock:
            self._contacts.pop(contact_id, None)

    def add_dependent(self, table: str, contact_id: int, **data: Any) -> int:
        """Attach an activity/deal/meeting/form row to a contact."""
        if table not in self._dependents:
            raise ValueError(f"Unknown dependent table: {table}")
        with self._lock:
            row_id = next(self._row_ids)
            self._dependents[table][row_id] = {"id": row_id, "contact_id": contact_id, **data}
            return row_id

    def dependents(self, table: str, contact_id: int) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                dict(row) for row in self._dependents[table].values() if row["contact_id"] == contact_id
            ]

    def reassign_dependents(self, from_contact_id: int, to_contact_id: int) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for table in DEPENDENT_TABLES:
                moved = 0
                for row in self._dependents[table].values():
                    if row["contact_id"] == from_contact_id:
                        row["contact_id"] = to_contact_id
                        moved += 1
                counts[table] = moved
        return counts

    def count_dependents(self, contact_id: int) -> Dict[str, int]:
        with self._lock:
            return {
                table: sum(1 for row in rows.values() if row["contact_id"] == contact_id)
                for table, rows in self._dependents.items()
            }


__all__ = ["InMemoryContactStore"]
