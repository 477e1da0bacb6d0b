from contact_resolution.errors import ContactStoreError
from contact_resolution.ingest import ingest_batch
from contact_resolution.merging import ContactMerger
from contact_resolution.models import ContactInput


def test_batch_stamps_source_and_counts_outcomes(store, merger):
    records = [
        ContactInput(email="lee@acme.io", name="Lee Adams"),
        ContactInput(email="LEE@acme.io", company="Acme"),
        ContactInput(email="lee@acme.io"),
        ContactInput(email="kim@initech.com", lead_source="calendly"),
    ]

    stats = ingest_batch(merger, "typeform", records)

    assert stats.as_dict() == {"accepted": 4, "matched": 2, "created": 2, "merged": 1, "failed": 0}
    lee = store.get_contact_by_email("lee@acme.io")
    assert lee.lead_source == "typeform"
    assert lee.company == "Acme"
    assert store.get_contact_by_email("kim@initech.com").lead_source == "calendly"


class _FlakyStore:
    def __init__(self, inner, bad_email):
        self.inner = inner
        self.bad_email = bad_email

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def insert_contact(self, contact):
        if contact.email == self.bad_email:
            raise ContactStoreError("connection refused")
        return self.inner.insert_contact(contact)


def test_failed_record_does_not_abort_batch(store):
    merger = ContactMerger(_FlakyStore(store, "broken@acme.io"))
    records = [
        ContactInput(email="first@acme.io"),
        ContactInput(email="broken@acme.io"),
        ContactInput(email="last@acme.io"),
    ]

    stats = ingest_batch(merger, "close", records)

    assert stats.accepted == 3
    assert stats.created == 2
    assert stats.failed == 1
    assert stats.errors == ["record 1: connection refused"]
    assert store.get_contact_by_email("last@acme.io") is not None
