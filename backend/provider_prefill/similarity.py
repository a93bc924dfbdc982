"""Label similarity scoring used by the field mapper."""

from __future__ import annotations

import re

EXACT_MATCH_SCORE = 1.0
CONTAINMENT_SCORE = 0.8

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_label(label: str) -> str:
    """Lowercase and drop everything that is not a-z or 0-9."""
    if not label:
        return ""
    return _NON_ALNUM.sub("", label.lower())


def similarity(first: str, second: str) -> float:
    """
    Score how alike two field labels are, in [0, 1].

    Exact match after normalization scores 1.0, containment of one label in
    the other scores 0.8, otherwise the Jaccard overlap of their word sets.
    """
    s1 = normalize_label(first)
    s2 = normalize_label(second)

    if s1 == s2:
        return EXACT_MATCH_SCORE

    # An empty label is a substring of everything; it must not count as containment.
    if s1 and s2 and (s1 in s2 or s2 in s1):
        return CONTAINMENT_SCORE

    words1 = set(s1.split())
    words2 = set(s2.split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)
