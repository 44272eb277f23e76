"""
_cluster.py
===========
Overlap cluster merger: group trees whose taxon sets share enough taxa.

Every tree starts in a cluster of its own.  Rounds are repeated until one
merges nothing; within a round every pair (i, j), i < j, of live clusters is
compared and j is merged into i when they share at least ``minimum_overlap``
taxa.  Merging is transitive across rounds: two trees with no taxon in
common still end up together when a third tree bridges them.

Taxon sets are held in a dense uint8 membership matrix over a sorted global
taxon namespace, shape (n_trees, n_taxa), so one round is a pass over pairs
of matrix rows.  Two backends run the round:

  'python'   reference implementation (numpy row operations)
  'numba'    JIT-compiled kernel from ``_cluster_kernels``
  'best'     same as 'numba'

Both give identical clusters.
"""

import logging
from typing import Hashable, Iterable, List, Mapping, Sequence, Set, Union

import numpy as np

from phylosort._cluster_kernels import _merge_round_nb
from phylosort._logging import log_cluster_round, log_cluster_summary


logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_OVERLAP = 1
VALID_BACKENDS = ("python", "numba", "best")


class TreeCluster:
    """
    A group of trees and the union of their taxa.

    Attributes
    ----------
    trees : list   Member tree identifiers, in seed order.
    taxa  : set    Union of the members' taxa.
    """

    def __init__(self, trees: Iterable[Hashable] = (), taxa: Iterable[str] = ()):
        self.trees: List[Hashable] = list(trees)
        self.taxa: Set[str] = set(taxa)

    def add(self, tree_id: Hashable, taxa: Iterable[str]) -> None:
        self.trees.append(tree_id)
        self.taxa.update(taxa)

    def overlap(self, other: "TreeCluster") -> int:
        """Number of taxa shared with *other*."""
        return len(self.taxa & other.taxa)

    def overlaps(self, other: "TreeCluster", minimum_overlap: int = DEFAULT_MINIMUM_OVERLAP) -> bool:
        return self.overlap(other) >= minimum_overlap

    def merge(self, other: "TreeCluster") -> None:
        """Absorb the members and taxa of *other*."""
        self.trees.extend(t for t in other.trees if t not in self.trees)
        self.taxa |= other.taxa

    def __len__(self) -> int:
        return len(self.trees)

    def __contains__(self, tree_id) -> bool:
        return tree_id in self.trees

    def __repr__(self) -> str:
        return f"TreeCluster(n_trees={len(self.trees)}, n_taxa={len(self.taxa)})"


# ======================================================================== #
# Merge round (reference)                                                   #
# ======================================================================== #


def _merge_round_py(present, alive, owner, minimum_overlap: int) -> int:
    """Pure-Python twin of ``_merge_round_nb``; same arguments and result."""
    n_clusters = present.shape[0]
    n_merges = 0
    for i in range(n_clusters - 1):
        if not alive[i]:
            continue
        for j in range(i + 1, n_clusters):
            if not alive[j]:
                continue
            if np.count_nonzero(present[i] & present[j]) >= minimum_overlap:
                present[i] |= present[j]
                alive[j] = 0
                owner[owner == j] = i
                n_merges += 1
    return n_merges


# ======================================================================== #
# Public entry point                                                        #
# ======================================================================== #


def cluster_taxa(
    taxa_by_tree: Union[Mapping[Hashable, Iterable[str]], Sequence[Iterable[str]]],
    minimum_overlap: int = DEFAULT_MINIMUM_OVERLAP,
    backend: str = "best",
) -> List[TreeCluster]:
    """
    Cluster trees by shared taxa.

    Parameters
    ----------
    taxa_by_tree : mapping or sequence
        ``{tree_id: taxa}``, or a sequence of taxon collections whose
        positions serve as tree ids.
    minimum_overlap : int, default 1
        Shared-taxon count at which two clusters merge.
    backend : {'best', 'numba', 'python'}

    Returns
    -------
    list[TreeCluster]
        Final clusters, ordered by the position of their first seed tree.

    Raises
    ------
    ValueError   if *minimum_overlap* < 1 or *backend* is unknown.
    """
    if minimum_overlap < 1:
        raise ValueError(f"minimum_overlap must be at least 1, got {minimum_overlap}")
    if backend not in VALID_BACKENDS:
        raise ValueError(
            f"Unknown backend {backend!r}. Valid options: {', '.join(VALID_BACKENDS)}"
        )

    if isinstance(taxa_by_tree, Mapping):
        tree_ids = list(taxa_by_tree.keys())
        taxon_sets = [set(taxa_by_tree[t]) for t in tree_ids]
    else:
        taxon_sets = [set(taxa) for taxa in taxa_by_tree]
        tree_ids = list(range(len(taxon_sets)))

    n_trees = len(taxon_sets)
    if n_trees == 0:
        return []

    # ---- Global taxon namespace and membership matrix ------------------ #
    names = sorted(set().union(*taxon_sets))
    index = {name: k for k, name in enumerate(names)}
    present = np.zeros((n_trees, len(names)), dtype=np.uint8)
    for row, taxa in enumerate(taxon_sets):
        present[row, np.asarray([index[t] for t in taxa], dtype=np.intp)] = 1

    alive = np.ones(n_trees, dtype=np.uint8)
    owner = np.arange(n_trees, dtype=np.int64)

    merge_round = _merge_round_py if backend == "python" else _merge_round_nb
    logger.info(
        "Clustering %d tree(s) over %d taxa (minimum overlap %d, backend=%r)",
        n_trees, len(names), minimum_overlap, backend,
    )

    n_rounds = 0
    while True:
        n_rounds += 1
        n_merges = int(merge_round(present, alive, owner, int(minimum_overlap)))
        log_cluster_round(n_rounds, n_merges, int(alive.sum()))
        if n_merges == 0:
            break

    clusters = []
    for slot in np.flatnonzero(alive):
        members = [tree_ids[t] for t in np.flatnonzero(owner == slot)]
        taxa = {names[k] for k in np.flatnonzero(present[slot])}
        clusters.append(TreeCluster(members, taxa))

    log_cluster_summary(n_trees, [c.taxa for c in clusters], n_rounds)
    return clusters
