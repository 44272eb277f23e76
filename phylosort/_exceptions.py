"""
_exceptions.py
==============
Exception hierarchy for phylosort.

Only conditions the caller cannot recover from inside a single operation are
raised.  Lookup misses (a label that is not in the tree, a taxon set with no
members) are reported as ``None`` / ``INVALID_NODE_ID`` / empty results.
"""

from typing import Optional


class PhyloSortError(Exception):
    """Base class for every error raised by phylosort."""


class NewickParseError(PhyloSortError):
    """
    Raised when bracket-notation text cannot be turned into a tree.

    Attributes
    ----------
    text : str
        The offending text (the whole tree or the failing segment).
    position : int or None
        Character offset of the problem inside *text*, when known.
    """

    def __init__(self, message: str, text: str = "", position: Optional[int] = None):
        self.text = text
        self.position = position
        detail = message
        if position is not None:
            detail = f"{message} (at position {position})"
        if text:
            snippet = text if len(text) <= 60 else text[:57] + "..."
            detail = f"{detail}: {snippet!r}"
        super().__init__(detail)


class TreeStructureError(PhyloSortError):
    """Raised when a mutator finds the tree in a state it cannot handle."""


class ConfigError(PhyloSortError):
    """Raised for an invalid configuration value or configuration file."""
