from __future__ import annotations

from typing import Dict, List, Optional

from .logging import get_logger
from .models import Contact, ContactInput, MatchConfidence, MatchResult
from .normalization import email_parts, normalize_email, normalize_phone
from .repository import ContactStore
from .similarity import name_similarity, string_similarity

logger = get_logger("contacts.matching")

FUZZY_EMAIL_MIN_LOCAL_LENGTH = 3
FUZZY_EMAIL_THRESHOLD = 0.9
FUZZY_EMAIL_SCORE = 0.95

PHONE_MIN_DIGITS = 10
PHONE_BASE_SCORE = 0.9
PHONE_CONFIRMED_SCORE = 0.95
PHONE_NAME_CONFIRM = 0.6
PHONE_NAME_CONFLICT = 0.2
PHONE_SHARED_LINE_SCORE = 0.6

NAME_WEIGHT = 0.7
COMPANY_WEIGHT = 0.3
NAME_COMPANY_THRESHOLD = 0.7
NAME_ONLY_THRESHOLD = 0.8
HIGH_TIER_SCORE = 0.9


def _tier_for(score: float) -> MatchConfidence:
    return MatchConfidence.HIGH if score >= HIGH_TIER_SCORE else MatchConfidence.MEDIUM


def _company_key(value: str | None) -> str:
    return (value or "").strip().lower()


class ContactMatcher:
    """Staged entity resolution against a contact store.

    Stages run cheapest and most precise first (exact email, fuzzy email,
    phone, name + company, name only) and the first stage to accept a
    candidate ends the cascade.
    """

    def __init__(self, store: ContactStore, *, search_limit: int = 50) -> None:
        self.store = store
        self.search_limit = search_limit

    def find_best_match(
        self,
        info: ContactInput,
        min_confidence: MatchConfidence = MatchConfidence.LOW,
        *,
        include_links: bool = False,
    ) -> MatchResult:
        best_score = 0.0
        accepted: Optional[MatchResult] = None

        email = normalize_email(info.email)
        if email:
            accepted = self._match_exact_email(email, info.email or "")
            if accepted is None:
                accepted, observed = self._match_fuzzy_email(email)
                best_score = max(best_score, observed)

        if accepted is None:
            accepted = self._match_phone(info)

        if accepted is None and info.name and info.company:
            accepted, observed = self._match_name_and_company(info.name, info.company)
            best_score = max(best_score, observed)

        if accepted is None and info.name:
            accepted, observed = self._match_name_only(info.name)
            best_score = max(best_score, observed)

        if accepted is None:
            logger.debug("contact_match_none", email=email, best_score=best_score)
            return MatchResult.no_match(best_score, "No match found")

        if not accepted.confidence.meets(min_confidence):
            logger.debug(
                "contact_match_below_minimum",
                contact_id=accepted.contact.id if accepted.contact else None,
                confidence=accepted.confidence.value,
                minimum=min_confidence.value,
                score=accepted.score,
            )
            return MatchResult.no_match(
                max(best_score, accepted.score),
                f"Best candidate below {min_confidence.value} confidence: {accepted.reason}",
            )

        if include_links and accepted.contact is not None:
            accepted.links = self.store.count_dependents(accepted.contact.id)

        logger.debug(
            "contact_match_found",
            contact_id=accepted.contact.id if accepted.contact else None,
            confidence=accepted.confidence.value,
            score=accepted.score,
            reason=accepted.reason,
        )
        return accepted

    def _match_exact_email(self, email: str, raw_email: str) -> Optional[MatchResult]:
        contact = self.store.get_contact_by_email(email)
        if contact is None:
            return None
        if raw_email.strip().lower() == email:
            reason = "Exact email match"
        else:
            reason = "Normalized email match (dots and aliases ignored)"
        return MatchResult(contact, MatchConfidence.EXACT, 1.0, reason)

    def _match_fuzzy_email(self, email: str) -> tuple[Optional[MatchResult], float]:
        local, domain = email_parts(email)
        if len(local) <= FUZZY_EMAIL_MIN_LOCAL_LENGTH or not domain:
            return None, 0.0

        best: Optional[Contact] = None
        best_similarity = 0.0
        # similarity above the threshold needs d < (1 - threshold) * max, and d >= the length gap
        min_length = int(len(local) * FUZZY_EMAIL_THRESHOLD)
        max_length = int(len(local) / FUZZY_EMAIL_THRESHOLD) + 1
        for candidate in self.store.find_contacts_by_email_domain(domain, min_length, max_length):
            candidate_local, _ = email_parts(candidate.email)
            similarity = string_similarity(local, candidate_local)
            if similarity > best_similarity:
                best, best_similarity = candidate, similarity

        if best is not None and best_similarity > FUZZY_EMAIL_THRESHOLD:
            return (
                MatchResult(
                    best,
                    MatchConfidence.HIGH,
                    FUZZY_EMAIL_SCORE,
                    f"Fuzzy email match ({best_similarity:.2f} local-part similarity)",
                ),
                FUZZY_EMAIL_SCORE,
            )
        return None, best_similarity

    def _match_phone(self, info: ContactInput) -> Optional[MatchResult]:
        phone = normalize_phone(info.phone)
        if len(phone) < PHONE_MIN_DIGITS:
            return None
        matches = self.store.find_contacts_by_phone(phone)
        if not matches:
            return None

        contact = matches[0]
        if info.name and contact.name:
            similarity = name_similarity(info.name, contact.name)
            if similarity > PHONE_NAME_CONFIRM:
                return MatchResult(
                    contact, MatchConfidence.HIGH, PHONE_CONFIRMED_SCORE, "Phone match confirmed by name"
                )
            if similarity < PHONE_NAME_CONFLICT:
                return MatchResult(
                    contact,
                    MatchConfidence.MEDIUM,
                    PHONE_SHARED_LINE_SCORE,
                    "Phone match but different name - possible shared line",
                )
        return MatchResult(contact, MatchConfidence.HIGH, PHONE_BASE_SCORE, "Phone match")

    def _candidates(self, name: str, company: str | None = None) -> List[Contact]:
        seen: Dict[int, Contact] = {}
        for contact in self.store.search_contacts_by_name(name, self.search_limit):
            seen.setdefault(contact.id, contact)
        if company:
            for contact in self.store.search_contacts_by_company(company, self.search_limit):
                seen.setdefault(contact.id, contact)
        return list(seen.values())

    def _match_name_and_company(self, name: str, company: str) -> tuple[Optional[MatchResult], float]:
        best: Optional[Contact] = None
        best_score = 0.0
        company_key = _company_key(company)
        for candidate in self._candidates(name, company):
            score = NAME_WEIGHT * name_similarity(name, candidate.name) + COMPANY_WEIGHT * string_similarity(
                company_key, _company_key(candidate.company)
            )
            if score > best_score:
                best, best_score = candidate, score

        if best is not None and best_score >= NAME_COMPANY_THRESHOLD:
            return (
                MatchResult(best, _tier_for(best_score), best_score, "Name similarity + company match"),
                best_score,
            )
        return None, best_score

    def _match_name_only(self, name: str) -> tuple[Optional[MatchResult], float]:
        best: Optional[Contact] = None
        best_score = 0.0
        for candidate in self._candidates(name):
            score = name_similarity(name, candidate.name)
            if score > best_score:
                best, best_score = candidate, score

        if best is not None and best_score >= NAME_ONLY_THRESHOLD:
            return MatchResult(best, _tier_for(best_score), best_score, "Strong name similarity only"), best_score
        return None, best_score


__all__ = ["ContactMatcher"]
