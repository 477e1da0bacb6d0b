import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from contact_resolution.consolidation import ContactConsolidator
from contact_resolution.matching import ContactMatcher
from contact_resolution.memory import InMemoryContactStore
from contact_resolution.merging import ContactMerger
from contact_resolution.models import Contact


@pytest.fixture
def store():
    return InMemoryContactStore()


@pytest.fixture
def matcher(store):
    return ContactMatcher(store)


@pytest.fixture
def merger(store, matcher):
    return ContactMerger(store, matcher=matcher)


@pytest.fixture
def consolidator(store):
    return ContactConsolidator(store)


@pytest.fixture
def add_contact(store):
    """Insert a contact directly into the store, bypassing matching."""

    def _add(**fields):
        fields.setdefault("lead_source", "close")
        fields.setdefault("sources_count", len([t for t in fields["lead_source"].split(",") if t]))
        return store.insert_contact(Contact(**fields))

    return _add
