"""
_cluster_kernels.py
===================
Numba-compiled kernel for the overlap cluster merger.

This module contains ONLY numba-accelerated code and does not import other
project modules.  The kernel works on plain numpy arrays; the Python wrapper
in ``_cluster.py`` owns all name handling.

Exported Functions
------------------
_merge_round_nb : njit function
    One merge round over every pair (i, j), i < j, of live clusters.

Notes
-----
- cache=True persists the compiled binary to disk for faster later runs.
- ``_merge_round_py`` in ``_cluster.py`` is the pure-Python reference; both
  must produce identical arrays for identical input.
"""

import numpy as np
from numba import njit


# ======================================================================== #
# CPU Kernels                                                               #
# ======================================================================== #


@njit(cache=True)
def _merge_round_nb(present, alive, owner, minimum_overlap):
    """
    Run one merge round in place.

    Parameters
    ----------
    present : uint8[n_clusters, n_taxa]
        Taxon membership of each cluster slot.
    alive : uint8[n_clusters]
        1 while the slot still holds a cluster.
    owner : int64[n_trees]
        Cluster slot currently holding each input tree.
    minimum_overlap : int
        Shared-taxon count at which two clusters merge.

    Returns
    -------
    int   Number of merges performed.

    Notes
    -----
    Cluster *i* absorbs *j* as soon as the pair qualifies, so later pairs in
    the same round see the enlarged taxon set of *i*.  A slot retired in this
    round takes no further part in it.
    """
    n_clusters = present.shape[0]
    n_taxa = present.shape[1]
    n_trees = owner.shape[0]
    n_merges = 0

    for i in range(n_clusters - 1):
        if alive[i] == 0:
            continue
        for j in range(i + 1, n_clusters):
            if alive[j] == 0:
                continue

            shared = 0
            for k in range(n_taxa):
                if present[i, k] != 0 and present[j, k] != 0:
                    shared += 1
                    if shared >= minimum_overlap:
                        break
            if shared < minimum_overlap:
                continue

            for k in range(n_taxa):
                if present[j, k] != 0:
                    present[i, k] = 1
            alive[j] = 0
            for t in range(n_trees):
                if owner[t] == j:
                    owner[t] = i
            n_merges += 1

    return n_merges
