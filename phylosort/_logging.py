"""
_logging.py
===========
Reporting functions for phylosort.

All functions in this module have NO side effects except logging.  They take
computed data as parameters and format/emit log messages, which keeps the
algorithms free of presentation code and lets tests silence reporting with
``phylosort.quiet()``.
"""

import logging
from itertools import combinations
from typing import List, Optional, Set

from phylosort._utils import jaccard_similarity


logger = logging.getLogger(__name__)


# ============================================================================ #
# Clustering
# ============================================================================ #


def log_cluster_round(round_number: int, n_merges: int, n_clusters: int) -> None:
    """
    Report one merge round.

    Parameters
    ----------
    round_number : int
        1-based round counter.
    n_merges : int
        Merges performed in this round.
    n_clusters : int
        Live clusters after the round.
    """
    logger.info(
        "Clustering round #%d: %d merge(s), %d cluster(s) remain",
        round_number,
        n_merges,
        n_clusters,
    )


def log_cluster_summary(n_trees: int, cluster_taxa: List[Set[str]], n_rounds: int) -> None:
    """
    Report the outcome of a clustering run.

    Parameters
    ----------
    n_trees : int
        Number of input trees.
    cluster_taxa : List[Set[str]]
        Taxon set of each final cluster.
    n_rounds : int
        Number of rounds run (the last one merged nothing).
    """
    logger.info(
        "Clustered %d tree(s) into %d cluster(s) in %d round(s)",
        n_trees,
        len(cluster_taxa),
        n_rounds,
    )

    if len(cluster_taxa) < 2:
        return

    # Residual similarity between clusters that stayed apart.
    similarities = [jaccard_similarity(a, b) for a, b in combinations(cluster_taxa, 2)]
    logger.debug(
        "  Taxon Jaccard similarity between clusters: mean %.3f, max %.3f",
        sum(similarities) / len(similarities),
        max(similarities),
    )


# ============================================================================ #
# Batch sorting
# ============================================================================ #


def log_tree_skipped(filename: str, reason: str) -> None:
    """Report a tree file left out by a filter."""
    logger.info("Skipping %s: %s", filename, reason)


def log_file_failure(filename: str, error: Exception) -> None:
    """Report a tree file that could not be processed; the batch continues."""
    logger.warning("Failed processing %s: %s", filename, error)


def log_unsupported_match(filename: str, node: int, label: Optional[str]) -> None:
    """Report a match whose node carries no usable support value."""
    if label:
        logger.warning(
            "Support value %r of node %d in %s is not a number", label, node, filename
        )
    else:
        logger.warning(
            "Matched node %d in %s has no support value (single leaf match?)",
            node,
            filename,
        )


def log_sort_summary(
    n_files: int, n_skipped: int, n_failed: int, n_matched: int, action: str
) -> None:
    """
    Report the outcome of a sorting run.

    Parameters
    ----------
    n_files : int
        Tree files selected by the filename pattern.
    n_skipped : int
        Files left out by the taxa-count or copy-number filters.
    n_failed : int
        Files that raised an error.
    n_matched : int
        Files with at least one accepted match.
    action : str
        'copy', 'move' or 'count'.
    """
    logger.info(
        "Sorted %d tree file(s): %d matched, %d skipped, %d failed (action=%s)",
        n_files,
        n_matched,
        n_skipped,
        n_failed,
        action,
    )
