"""
_clades.py
==========
Clade matching: locate the nodes whose subtrees are monophyletic for a list
of taxon groups.

Public API
----------
  monophyletic_node(tree, groups, exclusive=None, query=None, config=None)
      Single best match, or None.
  all_monophyletic_nodes(tree, groups, exclusive=None, query=None, config=None)
      Every match, deduplicated and sorted by node id.

  belongs(tree, node, taxa)          every leaf taxon under node is in taxa
  count_members(tree, node, taxa)    number of leaves under node in taxa
  contains_query(tree, node, query)  some leaf label equals query (any case)
  nodes_by_taxa(tree, taxa, equal)   leaves whose taxon is (not) in taxa

Matching modes
--------------
*union* is the set of taxa over all groups.

exclusive
    Take the LCA of every leaf whose taxon is in the union.  It matches only
    if all of its leaves are in the union and every group has at least one
    leaf under it.
inclusive
    From each union leaf, climb toward the root.  The first node whose
    leaves are all in the union and that holds at least
    ``config.minimum_group_size`` leaves of every group is a match.  A climb
    stops at the first node holding a foreign leaf; such nodes (and matches
    already reported) are remembered so later climbs stop there too.

Both tests count leaves, not distinct taxa, and the union check is the only
place foreign taxa are rejected.

Implementation
--------------
Per-node counts are accumulated once per query in a single post-order pass
(``_CladeTable``): a (n_nodes, n_groups) member matrix, a foreign-leaf count
and a query-hit count.  Each step of a climb is then O(n_groups).
"""

import logging
from typing import Iterable, List, NamedTuple, Optional, Sequence, Set

import numpy as np

from phylosort._config import SortConfig
from phylosort._tree import DEFAULT_TAXON_PATTERN, INVALID_NODE_ID, Tree


logger = logging.getLogger(__name__)


# ======================================================================== #
# Leaf-set helpers                                                          #
# ======================================================================== #


def belongs(tree: Tree, node, taxa: Iterable[str], pattern=DEFAULT_TAXON_PATTERN) -> bool:
    """True if the taxon of every leaf under *node* is in *taxa*."""
    taxa = set(taxa)
    return all(tree.taxon(leaf, pattern) in taxa for leaf in tree.leaves(node))


def count_members(
    tree: Tree, node, taxa: Iterable[str], pattern=DEFAULT_TAXON_PATTERN
) -> int:
    """Number of leaves under *node* whose taxon is in *taxa*."""
    taxa = set(taxa)
    return sum(1 for leaf in tree.leaves(node) if tree.taxon(leaf, pattern) in taxa)


def contains_query(tree: Tree, node, query: Optional[str]) -> bool:
    """
    True if a leaf label under *node* equals *query*, ignoring case.

    A ``None`` query is contained in every subtree.
    """
    if query is None:
        return True
    wanted = query.lower()
    return any(tree.labels[leaf].lower() == wanted for leaf in tree.leaves(node))


def nodes_by_taxa(
    tree: Tree,
    taxa: Iterable[str],
    equal: bool = True,
    node=None,
    pattern=DEFAULT_TAXON_PATTERN,
) -> List[int]:
    """
    Leaves under *node* whose taxon is in *taxa* (or, with ``equal=False``,
    not in *taxa*), left to right.
    """
    taxa = set(taxa)
    return [
        leaf for leaf in tree.leaves(node)
        if (tree.taxon(leaf, pattern) in taxa) == equal
    ]


# ======================================================================== #
# Per-node count tables                                                     #
# ======================================================================== #


class _CladeTable(NamedTuple):
    member: np.ndarray   # int64 [n_nodes, n_groups]
    foreign: np.ndarray  # int64 [n_nodes]
    hits: np.ndarray     # int64 [n_nodes]

    def covers(self, node: int, minimum: int) -> bool:
        return bool(np.all(self.member[node] >= minimum))

    def has_query(self, node: int, query: Optional[str]) -> bool:
        return query is None or self.hits[node] > 0


def _build_table(
    tree: Tree, groups: Sequence[Set[str]], query: Optional[str], pattern
) -> _CladeTable:
    n = tree.n_nodes
    member = np.zeros((n, len(groups)), dtype=np.int64)
    foreign = np.zeros(n, dtype=np.int64)
    hits = np.zeros(n, dtype=np.int64)
    wanted = None if query is None else query.lower()

    order = tree.preorder()
    for node in order:
        if tree.children[node]:
            continue
        taxon = tree.taxon(node, pattern)
        for g, group in enumerate(groups):
            if taxon in group:
                member[node, g] = 1
        if not member[node].any():
            foreign[node] = 1
        if wanted is not None and tree.labels[node].lower() == wanted:
            hits[node] = 1

    # Reverse pre-order visits every child before its parent.
    for node in reversed(order):
        p = int(tree.parent[node])
        if p != INVALID_NODE_ID:
            member[p] += member[node]
            foreign[p] += foreign[node]
            hits[p] += hits[node]

    return _CladeTable(member, foreign, hits)


def _prepare(tree, groups, query, config):
    config = config if config is not None else SortConfig()
    groups = [set(g) for g in groups]
    table = _build_table(tree, groups, query, config.taxon_regex)
    return config, groups, table


# ======================================================================== #
# Matching                                                                  #
# ======================================================================== #


def _exclusive_node(tree, table, query, config) -> Optional[int]:
    union_leaves = [leaf for leaf in tree.leaves() if table.foreign[leaf] == 0]
    if not union_leaves:
        return None
    node = tree.lca(union_leaves)
    if node == INVALID_NODE_ID:
        return None
    if table.foreign[node] > 0 or not table.covers(node, 1):
        logger.debug("Exclusive LCA %d rejected", node)
        return None
    if config.query_required and not table.has_query(node, query):
        return None
    return node


def _climb(tree, table, start, top, excluded, minimum) -> int:
    """
    Climb from *start* toward *top* (inclusive) and return the first node
    that holds only union leaves and covers every group, or INVALID_NODE_ID.
    """
    node = start
    while node not in excluded:
        if table.foreign[node] > 0:
            break
        if table.covers(node, minimum):
            excluded.add(node)
            return node
        if node == top:
            break
        node = int(tree.parent[node])
    excluded.add(node)
    return INVALID_NODE_ID


def _inclusive_nodes(tree, table, top, query, config, first_only) -> List[int]:
    excluded: Set[int] = set()
    found = []
    for leaf in tree.leaves(top):
        if table.foreign[leaf] > 0:
            continue
        node = _climb(tree, table, leaf, top, excluded, config.minimum_group_size)
        if node == INVALID_NODE_ID:
            continue
        if config.query_required and not table.has_query(node, query):
            continue
        found.append(node)
        if first_only:
            break
    return found


def monophyletic_node(
    tree: Tree,
    groups: Sequence[Iterable[str]],
    exclusive: Optional[bool] = None,
    query: Optional[str] = None,
    config: Optional[SortConfig] = None,
) -> Optional[int]:
    """
    Return the node rooting a monophyletic clade for *groups*, or None.

    Parameters
    ----------
    tree      : Tree
    groups    : sequence of iterables of taxon names
    exclusive : bool or None
        Exclusive mode (LCA of all union leaves) instead of inclusive mode.
        None takes the mode from *config*.
    query     : str or None
        Query taxon; only enforced when ``config.query_required`` is set.
    config    : SortConfig or None
        Supplies ``minimum_group_size``, ``query_required`` and
        ``taxon_pattern``.  Defaults to ``SortConfig()``.

    Returns
    -------
    int or None
        Node id of the match.  In inclusive mode the first match found in
        leaf order is returned.
    """
    config, groups, table = _prepare(tree, groups, query, config)
    if exclusive is None:
        exclusive = config.exclusive
    if exclusive:
        return _exclusive_node(tree, table, query, config)
    found = _inclusive_nodes(tree, table, tree.root, query, config, first_only=True)
    return found[0] if found else None


def all_monophyletic_nodes(
    tree: Tree,
    groups: Sequence[Iterable[str]],
    exclusive: Optional[bool] = None,
    query: Optional[str] = None,
    config: Optional[SortConfig] = None,
) -> List[int]:
    """
    Return every node rooting a monophyletic clade for *groups*.

    In exclusive mode the exclusive LCA is located first and inclusive
    matching then runs on the subtree below it (climbs never leave that
    subtree).  Parameters are as for :func:`monophyletic_node`.

    Returns
    -------
    list[int]   Matching node ids, ascending; empty when nothing matches.
    """
    config, groups, table = _prepare(tree, groups, query, config)
    if exclusive is None:
        exclusive = config.exclusive
    top = tree.root
    if exclusive:
        top = _exclusive_node(tree, table, query, config)
        if top is None:
            return []
    found = _inclusive_nodes(tree, table, top, query, config, first_only=False)
    logger.debug(
        "Found %d monophyletic node(s) in %s mode",
        len(found),
        "exclusive" if exclusive else "inclusive",
    )
    return sorted(set(found))
