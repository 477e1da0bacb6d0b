from __future__ import annotations

from typing import Sequence


class ContactResolutionError(Exception):
    """Base class for errors raised by the contact engine."""


class ContactStoreError(ContactResolutionError):
    """The contact store could not be reached or failed a lookup."""


class DuplicateEmailError(ContactResolutionError):
    """An insert collided with the unique normalized-email constraint."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Contact with email {email!r} already exists")
        self.email = email


class ContactNotFoundError(ContactResolutionError, ValueError):
    def __init__(self, contact_id: int, role: str = "Contact") -> None:
        super().__init__(f"{role} contact {contact_id} not found")
        self.contact_id = contact_id


class ReassignmentError(ContactResolutionError, RuntimeError):
    """One or more duplicates could not be folded into the primary contact.

    The primary and every secondary listed in ``merged_ids`` are committed;
    secondaries in ``failed_ids`` are untouched.
    """

    def __init__(
        self,
        primary_id: int,
        failed_ids: Sequence[int],
        merged_ids: Sequence[int] = (),
        contact=None,
    ) -> None:
        failed = ", ".join(str(item) for item in failed_ids)
        super().__init__(f"Failed to merge contacts [{failed}] into {primary_id}")
        self.primary_id = primary_id
        self.failed_ids = list(failed_ids)
        self.merged_ids = list(merged_ids)
        self.contact = contact


__all__ = [
    "ContactNotFoundError",
    "ContactResolutionError",
    "ContactStoreError",
    "DuplicateEmailError",
    "ReassignmentError",
]
