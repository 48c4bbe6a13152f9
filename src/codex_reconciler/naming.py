# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Identifier normalization and name similarity.

normalize() turns an identifier into a canonical comparison key:
    "getBalance"  -> "get_balance"
    "User-Data"   -> "user_data"
    "HTTPServer"  -> "h_t_t_p_server"

Both the call graph tooling and the entity reconciler compare names through
these helpers. Keyword filtering is not done here; see Config.ignored_callees.
"""

import re
from collections import Counter
from typing import List

SEPARATOR = "_"

_UPPER = re.compile(r"([A-Z])")
_DISALLOWED = re.compile(r"[^a-z0-9_]")
_REPEATED_SEPARATORS = re.compile(r"_+")
_KEYWORD_SPLIT = re.compile(r"(?=[A-Z])|_")


def normalize(identifier: str) -> str:
    """Return the canonical comparison key for an identifier.

    Deterministic and total: any string, including the empty string, maps to
    a (possibly empty) key. normalize(normalize(x)) == normalize(x).
    """
    key = _UPPER.sub(SEPARATOR + r"\1", identifier).lower()
    key = _DISALLOWED.sub("", key)
    key = _REPEATED_SEPARATORS.sub(SEPARATOR, key)
    return key.strip(SEPARATOR)


def compact_key(identifier: str) -> str:
    """Normalized key with separators removed ("UserData" -> "userdata").

    Used for containment and overlap comparisons, where "user_data" and a
    synonym entry "userdata" must compare equal.
    """
    return normalize(identifier).replace(SEPARATOR, "")


def character_overlap(a: str, b: str) -> float:
    """Multiset character overlap: 2 * |common| / (|a| + |b|).

    Order of characters is ignored. Returns 0.0 when both strings are empty.
    """
    total = len(a) + len(b)
    if total == 0:
        return 0.0
    common = Counter(a) & Counter(b)
    return 2 * sum(common.values()) / total


def contains_either_way(a: str, b: str) -> bool:
    """True if one non-empty key is a substring of the other."""
    if not a or not b:
        return False
    return a in b or b in a


def keys_similar(a: str, b: str, threshold: float) -> bool:
    """Decide whether two compact keys name the same concept.

    Identical keys, substring/superset keys, and keys whose character
    overlap exceeds ``threshold`` are similar. Empty keys are never similar.
    """
    if not a or not b:
        return False
    if contains_either_way(a, b):
        return True
    return character_overlap(a, b) > threshold


def split_keywords(identifier: str, min_length: int = 3) -> List[str]:
    """Split camelCase/snake_case into lower-case keywords of ``min_length`` or more."""
    parts = [p for p in _KEYWORD_SPLIT.split(identifier) if p]
    return [p.lower() for p in parts if len(p) >= min_length]
