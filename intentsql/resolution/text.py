"""
String normalisation and edit-distance helpers shared by the resolvers.
"""
from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")


def normalize(value: str | None) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    if not value:
        return ""
    cleaned = _PUNCT_RE.sub(" ", value.lower())
    return _SPACE_RE.sub(" ", cleaned).strip()


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert / delete / substitute, unit cost)."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Normalised similarity in [0, 1]: ``1 - levenshtein / max_len``."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)
