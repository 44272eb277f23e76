"""
_topology.py
============
Operations that change the shape or annotations of a tree.

Public API
----------
  reroot(tree, outgroup)            -> Tree   (new tree; input untouched)
  remove_node(tree, node)           -> int    (in place; new root id)
  remove_nodes(tree, names)         -> Tree   (in place, by label prefix)
  find_outgroup(tree, groups)       -> int | None
  clean_support(tree, minimum)      -> int    (in place; labels blanked)
  log_transform(tree, scale=1.0)    -> Tree   (new tree)
  average_copies(tree)              -> float

Rerooting
---------
The outgroup's subtree is copied and becomes (part of) the new root; the
rest of the tree is rebuilt underneath a new "sister" node by recursively
rerooting at each ancestor in turn.  Every recursive step works from copies
and receives the child it must leave out explicitly, so the input tree is
never modified.  Branch lengths are carried over so the total length of the
tree is unchanged:

* a leaf outgroup splits its branch evenly between itself and the sister;
* an internal outgroup becomes the root and its branch is added to the
  sister's;
* the subtree rebuilt from an ancestor hangs from the sister on the branch
  (and with the support label) of the node it was detached from.
"""

import logging
from typing import Iterable, List, Optional

import numpy as np

from phylosort._exceptions import TreeStructureError
from phylosort._tree import DEFAULT_TAXON_PATTERN, INVALID_NODE_ID, Tree


logger = logging.getLogger(__name__)


# ======================================================================== #
# Rerooting                                                                 #
# ======================================================================== #


class _Arena:
    """Growable per-node lists used while assembling a rerooted tree."""

    def __init__(self) -> None:
        self.parent: List[int] = []
        self.length: List[float] = []
        self.labels: List[str] = []
        self.children: List[List[int]] = []

    def new_node(self, label: str = "", length: float = 0.0) -> int:
        self.parent.append(INVALID_NODE_ID)
        self.length.append(float(length))
        self.labels.append(label)
        self.children.append([])
        return len(self.labels) - 1

    def attach(self, parent: int, child: int) -> None:
        if child not in self.children[parent]:
            self.children[parent].append(child)
            self.parent[child] = parent

    def is_leaf(self, node: int) -> bool:
        return not self.children[node]

    def copy_subtree(self, tree: Tree, node: int, excluded: int = INVALID_NODE_ID) -> int:
        """Copy *tree*'s subtree at *node*, leaving out its child *excluded*."""
        top = self.new_node(tree.labels[node], tree.length[node])
        stack = [(child, top) for child in reversed(tree.children[node]) if child != excluded]
        while stack:
            source, dest_parent = stack.pop()
            copied = self.new_node(tree.labels[source], tree.length[source])
            self.attach(dest_parent, copied)
            stack.extend((child, copied) for child in reversed(tree.children[source]))
        return top

    def to_tree(self, root: int) -> Tree:
        return Tree.from_arrays(self.parent, self.length, self.labels, self.children, root)


def _reroot(tree: Tree, outgroup: int, excluded: int, arena: _Arena) -> int:
    """
    Build, inside *arena*, the tree as seen from *outgroup* with its child
    *excluded* left out.  Returns the arena id of the new root.
    """
    parent = int(tree.parent[outgroup])
    if parent == INVALID_NODE_ID:
        return arena.copy_subtree(tree, outgroup, excluded)

    branch = float(tree.length[outgroup])
    copied = arena.copy_subtree(tree, outgroup, excluded)
    sister = arena.new_node()

    if arena.is_leaf(copied):
        root = arena.new_node()
        arena.length[copied] = branch / 2.0
        arena.length[sister] = branch / 2.0
        arena.attach(root, copied)
        arena.attach(root, sister)
    else:
        root = copied
        arena.length[sister] += branch
        arena.attach(root, sister)

    for child in tree.children[parent]:
        if child != outgroup:
            arena.attach(sister, arena.copy_subtree(tree, child))

    if tree.parent[parent] != INVALID_NODE_ID:
        rest = _reroot(tree, int(tree.parent[parent]), parent, arena)
        arena.length[rest] = float(tree.length[parent])
        arena.labels[rest] = tree.labels[parent]
        arena.attach(sister, rest)

    return root


def reroot(tree: Tree, outgroup) -> Tree:
    """
    Return a copy of *tree* rooted on the branch leading to *outgroup*.

    Parameters
    ----------
    tree     : Tree
    outgroup : int | str   Node id or label.

    Returns
    -------
    Tree
        A new tree with pre-order ids and a zero-length root branch.  The
        leaf set and the sum of branch lengths are those of *tree*.  Rerooting
        at the root returns a plain copy.
    """
    out = tree._resolve_node(outgroup)
    if out == tree.root:
        return tree.copy()

    arena = _Arena()
    root = _reroot(tree, out, INVALID_NODE_ID, arena)
    arena.length[root] = 0.0
    rerooted = arena.to_tree(root)
    logger.debug(
        "Rerooted at node %d (%r): %d -> %d nodes",
        out, tree.labels[out], tree.n_nodes, rerooted.n_nodes,
    )
    return rerooted


# ======================================================================== #
# Pruning                                                                   #
# ======================================================================== #


def _collapse(tree: Tree, node: int) -> None:
    """Replace unary *node* by its only child, summing the two branches."""
    if len(tree.children[node]) != 1:
        raise TreeStructureError(
            f"node {node} has {len(tree.children[node])} children; "
            "only a node with exactly one child can be collapsed"
        )
    child = tree.children[node][0]
    grand = int(tree.parent[node])
    tree.length[child] += tree.length[node]
    slot = tree.children[grand].index(node)
    tree.children[grand][slot] = child
    tree.parent[child] = grand
    tree.parent[node] = INVALID_NODE_ID
    tree.children[node] = []


def _detach(tree: Tree, target: int) -> int:
    """Remove *target* and repair its ancestors; return the root id."""
    while True:
        parent = int(tree.parent[target])
        if not tree.remove_child(parent, target):
            raise TreeStructureError(f"node {target} is missing from its parent {parent}")
        remaining = tree.children[parent]

        if parent == tree.root:
            if len(remaining) >= 2:
                return parent
            if not remaining:
                raise TreeStructureError("removing the last child of the root")
            new_root = remaining[0]
            tree.parent[new_root] = INVALID_NODE_ID
            logger.debug("Root %d replaced by its child %d", parent, new_root)
            return new_root

        if not remaining:
            # The parent became a childless internal node: remove it too.
            target = parent
            continue
        if len(remaining) == 1:
            _collapse(tree, parent)
        return tree.root


def remove_node(tree: Tree, node) -> int:
    """
    Remove *node* (and its subtree) from *tree* in place.

    Repairs applied after detaching the node:

    * the parent is left with one child: that child takes the parent's place
      and its branch length becomes the sum of both branches;
    * the parent is left with no children: the parent is removed as well;
    * the parent is the root and keeps one child: that child becomes the
      new root.

    The arena is compacted and renumbered in pre-order afterwards, so every
    previously held node id is invalidated.

    Parameters
    ----------
    tree : Tree
    node : int | str   Node id or label.

    Returns
    -------
    int   Id of the (possibly new) root.

    Raises
    ------
    TreeStructureError
        If *node* is the root, or the removal would leave an empty tree.
    """
    target = tree._resolve_node(node)
    if tree.parent[target] == INVALID_NODE_ID:
        raise TreeStructureError("cannot remove the root node")

    logger.debug("Removing node %d (%r)", target, tree.labels[target])
    tree.root = _detach(tree, target)
    tree.renumber_preorder()
    return tree.root


def remove_nodes(tree: Tree, names: Iterable[str]) -> Tree:
    """
    Remove, in order, the first node whose label starts with each name.

    Blank names and names matching nothing are skipped.  Returns *tree*,
    modified in place.
    """
    for name in names:
        name = name.strip()
        if not name:
            continue
        node = tree.find(name)
        if node is None:
            logger.debug("No node labelled %r; skipped", name)
            continue
        if node == tree.root:
            logger.warning("Name %r matches the root; not removed", name)
            continue
        remove_node(tree, node)
    return tree


# ======================================================================== #
# Annotations and summaries                                                 #
# ======================================================================== #


def find_outgroup(
    tree: Tree, groups: Iterable[Iterable[str]], pattern=DEFAULT_TAXON_PATTERN
) -> Optional[int]:
    """First leaf (left to right) whose taxon is in none of *groups*."""
    union = set()
    for group in groups:
        union.update(group)
    for leaf in tree.leaves():
        if tree.taxon(leaf, pattern) not in union:
            return leaf
    return None


def clean_support(tree: Tree, minimum: float) -> int:
    """
    Blank the labels of internal nodes whose support is below *minimum*.

    Labels that are not numbers count as support 0; non-empty ones are
    reported at WARNING level.

    Returns
    -------
    int   Number of labels blanked.
    """
    blanked = 0
    for node in tree.preorder():
        if not tree.children[node]:
            continue
        label = tree.labels[node]
        try:
            support = float(label)
        except ValueError:
            if label:
                logger.warning("Support value %r of node %d is not a number", label, node)
            support = 0.0
        if support < minimum and label:
            tree.labels[node] = ""
            blanked += 1
    tree._name_index = None
    return blanked


def log_transform(tree: Tree, scale: float = 1.0) -> Tree:
    """
    Return a copy of *tree* with each positive branch length replaced by
    ``log10(scale * length)`` and every other length set to 0.

    Raises
    ------
    ValueError   if *scale* is not positive.
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    transformed = tree.copy()
    lengths = transformed.length
    transformed.length = np.log10(
        scale * lengths, out=np.zeros_like(lengths), where=lengths > 0
    )
    return transformed


def average_copies(tree: Tree, pattern=DEFAULT_TAXON_PATTERN) -> float:
    """Mean number of leaves per distinct taxon (unmatched labels pooled)."""
    counts = {}
    for leaf in tree.leaves():
        key = tree.taxon(leaf, pattern)
        counts[key] = counts.get(key, 0) + 1
    return sum(counts.values()) / len(counts)
