from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Set

from rapidfuzz.distance import Levenshtein

# Canonical given name -> common nicknames. Lookups work in both directions.
NICKNAMES: Dict[str, FrozenSet[str]] = {
    "alexander": frozenset({"alex", "al", "xander"}),
    "andrew": frozenset({"andy", "drew"}),
    "anthony": frozenset({"tony"}),
    "benjamin": frozenset({"ben", "benji", "benny"}),
    "catherine": frozenset({"cathy", "kate", "katie", "cat"}),
    "charles": frozenset({"charlie", "chuck", "chas"}),
    "christopher": frozenset({"chris", "topher"}),
    "daniel": frozenset({"dan", "danny"}),
    "david": frozenset({"dave", "davey"}),
    "edward": frozenset({"ed", "eddie", "ted", "ned"}),
    "elizabeth": frozenset({"liz", "beth", "betty", "lizzie", "eliza"}),
    "james": frozenset({"jim", "jimmy", "jamie"}),
    "jennifer": frozenset({"jen", "jenny"}),
    "john": frozenset({"jack", "johnny"}),
    "jonathan": frozenset({"jon", "jonny"}),
    "joseph": frozenset({"joe", "joey"}),
    "joshua": frozenset({"josh"}),
    "katherine": frozenset({"kathy", "kate", "katie", "kat"}),
    "margaret": frozenset({"maggie", "meg", "peggy"}),
    "matthew": frozenset({"matt", "matty"}),
    "michael": frozenset({"mike", "mikey", "mick"}),
    "nicholas": frozenset({"nick", "nicky"}),
    "patricia": frozenset({"pat", "patty", "trish"}),
    "patrick": frozenset({"pat", "paddy"}),
    "richard": frozenset({"rick", "rich", "dick", "richie"}),
    "robert": frozenset({"rob", "bob", "bobby"}),
    "samuel": frozenset({"sam", "sammy"}),
    "stephen": frozenset({"steve", "stevie"}),
    "steven": frozenset({"steve", "stevie"}),
    "susan": frozenset({"sue", "susie"}),
    "thomas": frozenset({"tom", "tommy"}),
    "timothy": frozenset({"tim", "timmy"}),
    "william": frozenset({"will", "bill", "billy", "liam"}),
}


def _invert(table: Dict[str, FrozenSet[str]]) -> Dict[str, FrozenSet[str]]:
    inverted: Dict[str, Set[str]] = {}
    for canonical, nicknames in table.items():
        for nickname in nicknames:
            inverted.setdefault(nickname, set()).add(canonical)
    return {nickname: frozenset(names) for nickname, names in inverted.items()}


CANONICAL_NAMES: Dict[str, FrozenSet[str]] = _invert(NICKNAMES)


def levenshtein_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def string_similarity(a: str | None, b: str | None) -> float:
    """Normalized Levenshtein similarity in [0, 1]."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def tokenize_name(name: str | None) -> list[str]:
    if not name:
        return []
    return [token for token in name.lower().split() if token]


def expand_tokens(tokens: Iterable[str]) -> Set[str]:
    """Original tokens plus every nickname or canonical form they map to."""
    expanded: Set[str] = set()
    for token in tokens:
        expanded.add(token)
        expanded.update(NICKNAMES.get(token, ()))
        expanded.update(CANONICAL_NAMES.get(token, ()))
    return expanded


def name_search_tokens(name: str | None) -> list[str]:
    """Query tokens for a name lookup, widened with nickname forms."""
    return sorted(expand_tokens(tokenize_name(name)))


def name_similarity(name1: str | None, name2: str | None) -> float:
    tokens1 = set(tokenize_name(name1))
    tokens2 = set(tokenize_name(name2))
    if not tokens1 or not tokens2:
        return 0.0

    exact_score = len(tokens1 & tokens2) / max(len(tokens1), len(tokens2))

    fuzzy_score = 0.0
    for left in expand_tokens(tokens1):
        for right in expand_tokens(tokens2):
            score = string_similarity(left, right)
            if score > fuzzy_score:
                fuzzy_score = score
                if fuzzy_score == 1.0:
                    break
        if fuzzy_score == 1.0:
            break

    # Fuzzy token hits count for less than tokens both names share verbatim.
    return max(exact_score, fuzzy_score * 0.8)


__all__ = [
    "CANONICAL_NAMES",
    "NICKNAMES",
    "expand_tokens",
    "levenshtein_distance",
    "name_search_tokens",
    "name_similarity",
    "string_similarity",
    "tokenize_name",
]
