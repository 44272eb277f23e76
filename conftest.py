"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
large_scale
    Applied to tests that cluster thousands of random taxon sets on both
    backends.  Excluded from quick runs with ``-m "not large_scale"``.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.

Warning filters
---------------
NumbaWarning messages (e.g. an unwritable kernel cache directory) are
filtered out during tests; they say nothing about correctness.
"""

import warnings

from numba.core.errors import NumbaWarning


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test module is imported, so the filter is in place
    before the cluster kernel is compiled.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: clustering agreement on large random inputs (slow)",
    )
    warnings.filterwarnings("ignore", category=NumbaWarning)


def pytest_unconfigure(config):
    """Restore default warning behavior after all tests complete."""
    warnings.resetwarnings()
