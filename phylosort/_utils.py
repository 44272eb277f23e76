"""
_utils.py
=========
General-purpose utility functions for phylosort.

These are standalone functions that don't depend on the main classes.
"""

from typing import Set, TypeVar


T = TypeVar("T")


def jaccard_similarity(set_a: Set[T], set_b: Set[T]) -> float:
    """
    Jaccard similarity |A ∩ B| / |A ∪ B| of two sets.

    Returns 0.0 when both sets are empty.

    Examples
    --------
    >>> jaccard_similarity({1, 2, 3}, {2, 3, 4})
    0.5
    >>> jaccard_similarity(set(), set())
    0.0
    """
    union = len(set_a | set_b)
    return len(set_a & set_b) / union if union > 0 else 0.0


def numbered_name(prefix: str, number: int, total: int) -> str:
    """
    Name the *number*-th of *total* items, zero-padded to the width of
    *total* so that names sort in numeric order.

    Examples
    --------
    >>> numbered_name("cluster", 3, 12)
    'cluster03'
    >>> numbered_name("cluster", 1, 1)
    'cluster1'
    """
    width = len(str(total))
    return f"{prefix}{number:0{width}d}"
