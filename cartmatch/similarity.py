"""
String similarity for product-name matching.

Levenshtein edit distance (insertion, deletion and substitution each cost 1)
normalized by the longer string:

    similarity(a, b) = 1 - distance(a, b) / max(len(a), len(b))

Example:
    >>> similarity("milk", "milk")
    1.0
    >>> similarity("banana", "bananas")
    0.857...
"""

from rapidfuzz.distance import Levenshtein


def edit_distance(a: str, b: str) -> int:
    """Unit-cost Levenshtein distance between two strings."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Normalized edit-distance similarity in [0, 1].

    Symmetric, and 1.0 for identical strings. Two empty strings are
    identical, so they score 1.0 rather than dividing by zero.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest
