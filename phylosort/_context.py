"""
_context.py
===========
Context managers that quiet phylosort during batch runs and tests.

  suppress_logger(names, level)      raise the level of one or more loggers
  quiet(level, modules=None)         the same for the package (or some modules)
  suppress_warnings(*categories)     ignore warnings, optionally by message

Levels and warning filters are put back on exit, also when the block raises.
"""

import logging
import warnings
from contextlib import contextmanager
from typing import Iterable, Optional, Type, Union


PACKAGE_LOGGER = "phylosort"


# ============================================================================ #
# Logging
# ============================================================================ #


@contextmanager
def suppress_logger(names: Union[str, Iterable[str]], level: int = logging.CRITICAL):
    """
    Set the level of the named logger(s) for the duration of the block.

    Parameters
    ----------
    names : str or iterable of str
        Logger name(s), e.g. ``'phylosort._cluster'``.
    level : int, default logging.CRITICAL

    Examples
    --------
    >>> # Per-round clustering reports off, file failures still shown
    >>> with suppress_logger(['phylosort._cluster', 'phylosort._logging'], logging.WARNING):
    ...     clusters = cluster_directory('trees/')

    Nested blocks restore levels innermost first.
    """
    if isinstance(names, str):
        names = [names]
    loggers = [logging.getLogger(name) for name in names]
    saved = [lg.level for lg in loggers]
    try:
        for lg in loggers:
            lg.setLevel(level)
        yield
    finally:
        for lg, previous in zip(loggers, saved):
            lg.setLevel(previous)


@contextmanager
def quiet(level: int = logging.CRITICAL, modules: Optional[Iterable[str]] = None):
    """
    Quiet phylosort logging.

    Without *modules* the package logger ``'phylosort'`` is changed, and every
    module logger inherits its effective level from it.  With *modules*, only
    ``phylosort.<module>`` loggers are changed (``'_batch'``, ``'_cluster'``,
    ...).

    Examples
    --------
    >>> with quiet():
    ...     matched = sort_trees('trees/', 'sorted/', groups, config)

    >>> # Keep the warnings about unreadable tree files
    >>> with quiet(logging.WARNING):
    ...     matched = sort_trees('trees/', 'sorted/', groups, config)
    """
    if modules is None:
        names = [PACKAGE_LOGGER]
    else:
        names = [f"{PACKAGE_LOGGER}.{m}" for m in modules]
    with suppress_logger(names, level):
        yield


# ============================================================================ #
# Warnings
# ============================================================================ #


@contextmanager
def suppress_warnings(*categories: Type[Warning], message: str = ""):
    """
    Ignore warnings of the given categories (all warnings when none given).

    *message* is a regular expression the start of the warning text must
    match, as in :func:`warnings.filterwarnings`.

    Examples
    --------
    >>> from numba.core.errors import NumbaWarning
    >>> with suppress_warnings(NumbaWarning, message='Cannot cache'):
    ...     clusters = cluster_taxa(taxa_by_tree, backend='numba')
    """
    with warnings.catch_warnings():
        for category in categories or (Warning,):
            warnings.filterwarnings("ignore", message=message, category=category)
        yield
