from datetime import datetime, timedelta, timezone

from contact_resolution.duplicates import find_duplicate_groups

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_groups_by_normalized_email(store, add_contact):
    first = add_contact(email="Jane.Doe@gmail.com", lead_source="typeform")
    second = add_contact(email="janedoe+promo@gmail.com", lead_source="close")
    add_contact(email="someone@else.io")

    groups = find_duplicate_groups(store)

    assert len(groups) == 1
    group = groups[0]
    assert group.primary.id == second.id
    assert [contact.id for contact in group.duplicates] == [first.id]
    assert group.keys == ["email:janedoe@gmail.com"]


def test_groups_by_phone_and_ignores_short_numbers(store, add_contact):
    a = add_contact(email="a@acme.io", phone="(415) 555-0100")
    b = add_contact(email="b@acme.io", phone="+1 415 555 0100")
    add_contact(email="c@acme.io", phone="555-0100")
    add_contact(email="d@acme.io", phone="5550100")

    groups = find_duplicate_groups(store)

    assert len(groups) == 1
    assert groups[0].contact_ids == [a.id, b.id]
    assert groups[0].keys == ["phone:4155550100"]


def test_shared_keys_join_transitively(store, add_contact):
    a = add_contact(email="pat@acme.io", phone="4155550100")
    b = add_contact(email="PAT@acme.io", phone="4155550199")
    c = add_contact(email="patrick@home.io", phone="415-555-0199")

    groups = find_duplicate_groups(store)

    assert len(groups) == 1
    assert sorted(groups[0].contact_ids) == [a.id, b.id, c.id]
    assert groups[0].keys == ["email:pat@acme.io", "phone:4155550199"]


def test_primary_prefers_source_then_age(store, add_contact):
    newer_crm = add_contact(email="pat@acme.io", lead_source="close", created_at=BASE + timedelta(days=2))
    older_crm = add_contact(email="Pat@Acme.io", lead_source="close", created_at=BASE)
    form = add_contact(email="PAT@ACME.IO", lead_source="typeform", created_at=BASE - timedelta(days=30))

    group = find_duplicate_groups(store)[0]

    assert group.primary.id == older_crm.id
    assert [contact.id for contact in group.duplicates] == [newer_crm.id, form.id]


def test_largest_groups_first_and_limit(store, add_contact):
    add_contact(email="x@acme.io")
    add_contact(email="X@acme.io")
    for variant in ("y@acme.io", "Y@acme.io", "y@ACME.io"):
        add_contact(email=variant)

    groups = find_duplicate_groups(store)
    assert [len(group.duplicates) for group in groups] == [2, 1]

    limited = find_duplicate_groups(store, limit=1)
    assert len(limited) == 1
    assert limited[0].keys == ["email:y@acme.io"]


def test_no_duplicates(store, add_contact):
    add_contact(email="one@acme.io")
    add_contact(email="two@acme.io", phone="4155550100")

    assert find_duplicate_groups(store) == []


def test_shared_phone_with_distinct_emails_needs_review(store, add_contact):
    add_contact(email="pat@acme.io", phone="4155550100")
    add_contact(email="sam@acme.io", phone="415-555-0100")

    group = find_duplicate_groups(store)[0]

    assert group.needs_review is True


def test_shared_phone_with_one_email_is_safe_to_merge(store, add_contact):
    add_contact(phone="4155550100", name="Pat Lee")
    add_contact(email="pat@acme.io", phone="415-555-0100")
    add_contact(email="PAT@acme.io")

    group = find_duplicate_groups(store)[0]

    assert group.needs_review is False
