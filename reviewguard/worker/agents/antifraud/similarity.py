"""Creator name / username similarity.

Deterministic and explainable:
- normalize() folds case and drops separators, so "OnlyFans_Girl" == "onlyfansgirl"
- similarity() is 1 - levenshtein / longest, over the normalized strings

Used by the creator check for duplicate-name and duplicate-username detection.
"""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

_SEPARATORS_RE = re.compile(r"[._\-\s]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize(value: str | None) -> str:
    if not value:
        return ""
    return _NON_ALNUM_RE.sub("", _SEPARATORS_RE.sub("", value.lower()))


def similarity(a: str | None, b: str | None) -> float:
    norm_a = normalize(a)
    norm_b = normalize(b)
    if norm_a == norm_b:
        return 1.0
    longest = max(len(norm_a), len(norm_b))
    return 1.0 - (Levenshtein.distance(norm_a, norm_b) / float(longest))
