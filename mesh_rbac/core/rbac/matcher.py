"""String pattern matching for RBAC rules and subjects.

Patterns come in four shapes:
- ``*``: matches any value
- ``foo*``: prefix match
- ``*foo``: suffix match
- anything else: exact, case-sensitive match

A ``*`` in the middle of a pattern is a literal character. Pattern
classification is cached since the same handful of patterns is evaluated
for every request against a snapshot.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING

from mesh_rbac.core.rbac.constants import WILDCARD

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ["MatchKind", "classify_pattern", "matches", "matches_any"]


class MatchKind(str, Enum):
    """How a pattern is compared against a value."""

    ANY = "any"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    EXACT = "exact"


@lru_cache(maxsize=4096)
def classify_pattern(pattern: str) -> tuple[MatchKind, str]:
    """Classify a pattern and strip its wildcard.

    Args:
        pattern: Raw pattern string (e.g., "bookstore*", "*.cluster.local").

    Returns:
        Tuple of match kind and the literal fragment to compare with.

    Example:
        >>> classify_pattern("foo*")
        (<MatchKind.PREFIX: 'prefix'>, 'foo')
    """
    if pattern == WILDCARD:
        return MatchKind.ANY, ""
    if len(pattern) > 1 and pattern.endswith(WILDCARD):
        return MatchKind.PREFIX, pattern[:-1]
    if len(pattern) > 1 and pattern.startswith(WILDCARD):
        return MatchKind.SUFFIX, pattern[1:]
    return MatchKind.EXACT, pattern


def matches(pattern: str, value: str) -> bool:
    """Check whether a value satisfies a pattern.

    Args:
        pattern: Exact, prefix (``foo*``), suffix (``*foo``) or ``*`` pattern.
        value: Candidate string from the request.

    Returns:
        True if the value matches the pattern.
    """
    kind, fragment = classify_pattern(pattern)
    if kind is MatchKind.ANY:
        return True
    if kind is MatchKind.PREFIX:
        return value.startswith(fragment)
    if kind is MatchKind.SUFFIX:
        return value.endswith(fragment)
    return value == pattern


def matches_any(patterns: Iterable[str], value: str) -> bool:
    """Check whether a value satisfies at least one pattern (OR)."""
    return any(matches(pattern, value) for pattern in patterns)
