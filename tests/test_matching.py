"""
Tests for the staged contact matcher.

Covers each stage of the cascade (exact email, fuzzy email, phone,
name + company, name only), the minimum-confidence floor and link counts.
"""

import pytest

from contact_resolution.matching import ContactMatcher
from contact_resolution.models import ContactInput, MatchConfidence


class TestExactEmail:
    def test_normalized_email_hit_is_exact(self, matcher, add_contact):
        stored = add_contact(email="janedoe@gmail.com", name="Jane Doe")

        result = matcher.find_best_match(ContactInput(email="Jane.Doe+calendly@gmail.com"))

        assert result.contact.id == stored.id
        assert result.confidence is MatchConfidence.EXACT
        assert result.score == 1.0
        assert "Normalized" in result.reason

    def test_identical_email_reason(self, matcher, add_contact):
        add_contact(email="sam@acme.io", name="Sam Carter")

        result = matcher.find_best_match(ContactInput(email="SAM@acme.io"))

        assert result.confidence is MatchConfidence.EXACT
        assert result.reason == "Exact email match"


class TestFuzzyEmail:
    def test_typo_in_local_part_matches_high(self, matcher, add_contact):
        stored = add_contact(email="jonathan.baker@acme.io", name="Jonathan Baker")

        result = matcher.find_best_match(ContactInput(email="jonathan.bakr@acme.io"))

        assert result.contact.id == stored.id
        assert result.confidence is MatchConfidence.HIGH
        assert result.score == 0.95

    def test_short_local_part_skips_fuzzy_stage(self, matcher, add_contact):
        add_contact(email="abc@acme.io", name="Someone Else")

        result = matcher.find_best_match(ContactInput(email="abd@acme.io"))

        assert result.confidence is MatchConfidence.NONE
        assert result.contact is None
        # the stage never ran, so no local-part similarity was observed
        assert result.score == 0.0

    def test_near_miss_reports_observed_similarity(self, matcher, add_contact):
        add_contact(email="abcd@acme.io", name="Someone Else")

        result = matcher.find_best_match(ContactInput(email="abce@acme.io"))

        assert result.confidence is MatchConfidence.NONE
        assert result.score == pytest.approx(0.75)

    def test_other_domain_is_not_considered(self, matcher, add_contact):
        add_contact(email="jonathan.baker@acme.io", name="Jonathan Baker")

        result = matcher.find_best_match(ContactInput(email="jonathan.baker@globex.com"))

        assert result.confidence is MatchConfidence.NONE


class TestPhone:
    def test_formatted_us_number_matches(self, matcher, add_contact):
        stored = add_contact(email="pat@acme.io", name="Pat Lee", phone="4155550100")

        result = matcher.find_best_match(ContactInput(phone="+1 (415) 555-0100"))

        assert result.contact.id == stored.id
        assert result.confidence is MatchConfidence.HIGH
        assert result.score == 0.9

    def test_similar_name_raises_score(self, matcher, add_contact):
        add_contact(email="bob@acme.io", name="Robert Smith", phone="4155550100")

        result = matcher.find_best_match(ContactInput(phone="415-555-0100", name="Bob Smith"))

        assert result.confidence is MatchConfidence.HIGH
        assert result.score == 0.95

    def test_different_name_demotes_to_medium(self, matcher, add_contact):
        add_contact(email="xavier@acme.io", name="Xavier Quill", phone="4155550100")

        result = matcher.find_best_match(ContactInput(phone="4155550100", name="Mo Dee"))

        assert result.confidence is MatchConfidence.MEDIUM
        assert result.score == 0.6
        assert "shared line" in result.reason

    def test_short_phone_is_ignored(self, matcher, add_contact):
        add_contact(email="pat@acme.io", phone="5550100")

        result = matcher.find_best_match(ContactInput(phone="555-0100"))

        assert result.confidence is MatchConfidence.NONE


class TestNameAndCompany:
    def test_nickname_and_company_variant_match(self, matcher, add_contact):
        stored = add_contact(email="robert@acme.com", name="Robert Johnson", company="ACME Inc.")

        result = matcher.find_best_match(ContactInput(name="Rob Johnson", company="Acme Inc"))

        assert result.contact.id == stored.id
        assert result.score >= 0.7
        assert result.confidence in (MatchConfidence.MEDIUM, MatchConfidence.HIGH)

    def test_identical_name_and_company_is_high(self, matcher, add_contact):
        add_contact(email="kim@initech.com", name="Kim Park", company="Initech")

        result = matcher.find_best_match(ContactInput(name="Kim Park", company="initech"))

        assert result.confidence is MatchConfidence.HIGH
        assert result.score == pytest.approx(1.0)


class TestNameOnly:
    def test_strong_name_match_without_other_signals(self, matcher, add_contact):
        stored = add_contact(email="quentin@example.org", name="Quentin Blake")

        result = matcher.find_best_match(ContactInput(name="quentin blake"))

        assert result.contact.id == stored.id
        assert result.confidence is MatchConfidence.HIGH

    def test_weak_name_match_is_rejected(self, matcher, add_contact):
        add_contact(email="quentin@example.org", name="Quentin Blake")

        result = matcher.find_best_match(ContactInput(name="Quinn Black"))

        assert result.contact is None
        assert result.confidence is MatchConfidence.NONE


class TestMinimumConfidence:
    def test_below_minimum_returns_none_with_score(self, matcher, add_contact):
        add_contact(email="xavier@acme.io", name="Xavier Quill", phone="4155550100")

        result = matcher.find_best_match(
            ContactInput(phone="4155550100", name="Mo Dee"),
            MatchConfidence.HIGH,
        )

        assert result.contact is None
        assert result.confidence is MatchConfidence.NONE
        assert result.score == 0.6

    def test_empty_input_degrades_to_none(self, matcher, add_contact):
        add_contact(email="pat@acme.io", name="Pat Lee")

        result = matcher.find_best_match(ContactInput())

        assert result.confidence is MatchConfidence.NONE
        assert result.score == 0.0
        assert result.reason


def test_include_links_reports_dependent_counts(store, matcher, add_contact):
    stored = add_contact(email="pat@acme.io", name="Pat Lee")
    store.add_dependent("deals", stored.id, title="Annual plan")
    store.add_dependent("meetings", stored.id)

    result = matcher.find_best_match(ContactInput(email="pat@acme.io"), include_links=True)

    assert result.links == {"activities": 0, "deals": 1, "meetings": 1, "forms": 0}


def test_links_omitted_by_default(matcher, add_contact):
    add_contact(email="pat@acme.io", name="Pat Lee")

    result = matcher.find_best_match(ContactInput(email="pat@acme.io"))

    assert result.links is None


class TestLargeCandidatePools:
    """More same-domain or same-name contacts than the search limit."""

    def test_fuzzy_email_scores_every_same_domain_contact(self, matcher, add_contact):
        for index in range(60):
            add_contact(email=f"fillerperson{index:02d}@gmail.com")
        stored = add_contact(email="jonathanbaker@gmail.com", name="Jonathan Baker")

        result = matcher.find_best_match(ContactInput(email="jonathanbakr@gmail.com"))

        assert result.contact.id == stored.id
        assert result.confidence is MatchConfidence.HIGH

    def test_name_only_prefers_full_token_overlap(self, matcher, add_contact):
        for index in range(60):
            add_contact(email=f"jane{index}@example.org", name=f"Jane Smithers{index}")
        stored = add_contact(email="jane.smith@example.org", name="Jane Smith")

        result = matcher.find_best_match(ContactInput(name="Jane Smith"))

        assert result.contact.id == stored.id
        assert result.confidence is MatchConfidence.HIGH
        assert result.score == 1.0

    def test_name_and_company_finds_contact_past_limit(self, store, add_contact):
        matcher = ContactMatcher(store, search_limit=5)
        for index in range(20):
            add_contact(email=f"jane{index}@acme.io", name=f"Jane Smithers{index}", company="Acme")
        stored = add_contact(email="jsmith@acme.io", name="Jane Smith", company="Acme")

        result = matcher.find_best_match(ContactInput(name="Jane Smith", company="Acme"))

        assert result.contact.id == stored.id
        assert result.score == pytest.approx(1.0)
