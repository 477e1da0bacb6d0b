"""Contact matching and merge engine for the CRM analytics dashboard."""

from .consolidation import ContactConsolidator
from .duplicates import find_duplicate_groups
from .errors import (
    ContactNotFoundError,
    ContactResolutionError,
    ContactStoreError,
    DuplicateEmailError,
    ReassignmentError,
)
from .ingest import IngestStats, ingest_batch
from .locks import KeyedLock
from .matching import ContactMatcher
from .memory import InMemoryContactStore
from .merging import ContactMerger
from .models import Contact, ContactInput, DuplicateGroup, MatchConfidence, MatchResult, MergeOutcome
from .normalization import normalize_email, normalize_phone
from .repository import ContactStore, PostgresContactStore
from .service import ContactResolutionService
from .similarity import name_similarity, string_similarity

__all__ = [
    "Contact",
    "ContactConsolidator",
    "ContactInput",
    "ContactMatcher",
    "ContactMerger",
    "ContactNotFoundError",
    "ContactResolutionError",
    "ContactResolutionService",
    "ContactStore",
    "ContactStoreError",
    "DuplicateEmailError",
    "DuplicateGroup",
    "InMemoryContactStore",
    "IngestStats",
    "KeyedLock",
    "MatchConfidence",
    "MatchResult",
    "MergeOutcome",
    "PostgresContactStore",
    "ReassignmentError",
    "find_duplicate_groups",
    "ingest_batch",
    "name_similarity",
    "normalize_email",
    "normalize_phone",
    "string_similarity",
]
