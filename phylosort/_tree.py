"""
_tree.py
========
A single rooted phylogenetic tree stored as a set of parallel arrays indexed
by node id (an arena).  Nodes may have any number of children.

Public API
----------
  Tree(newick_string)
      Constructor.  Parses the NEWICK string and builds the arrays.
  Tree.from_arrays(parent, length, labels, children, root)
      Build from raw per-node lists (used by the topology mutators).

  Traversal   : .preorder  .leaves  .size  .sorted_children  .maximum_id
  Lookup      : .find  .taxon  .taxa
  Path / LCA  : .path_from_root  .path_from_internal  .lca
  Distances   : .distance  .nearest  .farthest  .total_length
  Structure   : .add_child  .remove_child  .copy  .renumber_preorder
  Output      : .to_newick  (also ``str(tree)``)

Arena layout
------------
  parent   : int32  [n_nodes]   Parent id; -1 for the root.
  length   : float64[n_nodes]   Branch length to the parent (default 0).
  level    : int32  [n_nodes]   Edge depth from the root.
  labels   : list[str]          Taxon label (leaves) or support value.
  children : list[list[int]]    Ordered child ids; empty for a leaf.
  root     : int                Id of the root (0 after every renumbering).

Node ids equal array indices after parsing and after ``renumber_preorder``.
Mutators that detach nodes leave unreachable slots behind; they always finish
by calling ``renumber_preorder``, which compacts the arena and restores
pre-order ids.

Node references
---------------
Every method that takes a node accepts either an integer id or a label.  A
label is resolved to the first node (in id order) carrying exactly that
label; an unknown label raises ``KeyError``.
"""

import logging
import re
from typing import Iterable, List, NamedTuple, Optional, Sequence, Set

import numpy as np

from phylosort._parser import parse_arrays


logger = logging.getLogger(__name__)

INVALID_NODE_ID = -1
DEFAULT_TAXON_PATTERN = "(.+)"


class Distance(NamedTuple):
    """Separation of two nodes: edge count and summed branch length."""

    depth: int
    length: float


class Tree:
    """
    A rooted phylogenetic tree with multifurcation support.

    Attributes
    ----------
    n_nodes  : int   Number of nodes in the arena.
    n_leaves : int   Number of leaves reachable from the root.
    root     : int   Id of the root node.
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, newick_string: str) -> None:
        """
        Parse *newick_string* and build the arena.

        Parameters
        ----------
        newick_string : str
            A NEWICK-formatted tree string terminated by ';'.

        Raises
        ------
        NewickParseError   if the string is malformed.
        """
        arrays = parse_arrays(newick_string)
        self._assign(
            arrays.parent, arrays.length, arrays.level, arrays.labels,
            arrays.children, root=0,
        )
        logger.debug(
            "Parsed tree with %d nodes (%d leaves)", self.n_nodes, self.n_leaves
        )

    @classmethod
    def from_arrays(
        cls,
        parent: Sequence[int],
        length: Sequence[float],
        labels: Sequence[str],
        children: Sequence[Sequence[int]],
        root: int,
    ) -> "Tree":
        """
        Build a tree from raw per-node lists and renumber it in pre-order.

        Only the nodes reachable from *root* through *children* are kept.
        Levels are recomputed, so none need to be supplied.
        """
        tree = cls.__new__(cls)
        tree._assign(parent, length, [0] * len(labels), labels, children, root)
        tree.renumber_preorder()
        return tree

    def _assign(self, parent, length, level, labels, children, root) -> None:
        """**Private.**  Store the arena arrays on ``self``."""
        self.parent = np.asarray(parent, dtype=np.int32)
        self.length = np.asarray(length, dtype=np.float64)
        self.level = np.asarray(level, dtype=np.int32)
        self.labels: List[str] = list(labels)
        self.children: List[List[int]] = [list(c) for c in children]
        self.root: int = int(root)
        # Built lazily on first name-based query.
        self._name_index: dict = None  # type: ignore[assignment]

    # ================================================================== #
    # Shape                                                                #
    # ================================================================== #

    @property
    def n_nodes(self) -> int:
        return len(self.labels)

    @property
    def n_leaves(self) -> int:
        return self.size()

    def __len__(self) -> int:
        return self.n_nodes

    def is_leaf(self, node) -> bool:
        return not self.children[self._resolve_node(node)]

    def is_root(self, node) -> bool:
        return self._resolve_node(node) == self.root

    # ================================================================== #
    # Traversal                                                            #
    # ================================================================== #

    def preorder(self, node=None, sort: bool = False) -> List[int]:
        """
        Return the ids of the subtree rooted at *node* in pre-order.

        Parameters
        ----------
        node : int | str | None   Subtree root; the tree root when None.
        sort : bool               Visit children by ascending branch length
                                  (the serialization order) instead of their
                                  stored order.
        """
        start = self.root if node is None else self._resolve_node(node)
        order = []
        stack = [start]
        while stack:
            current = stack.pop()
            order.append(current)
            kids = self.sorted_children(current) if sort else self.children[current]
            stack.extend(reversed(kids))
        return order

    def leaves(self, node=None) -> List[int]:
        """Return the leaf ids under *node* (default: root), left to right."""
        return [n for n in self.preorder(node) if not self.children[n]]

    def size(self, node=None) -> int:
        """Number of leaves under *node* (default: root)."""
        return len(self.leaves(node))

    def sorted_children(self, node) -> List[int]:
        """Children of *node* ordered by ascending branch length (stable)."""
        kids = self.children[self._resolve_node(node)]
        return sorted(kids, key=lambda c: self.length[c])

    def maximum_id(self, node=None) -> int:
        """Largest node id in the subtree rooted at *node*."""
        return max(self.preorder(node))

    # ================================================================== #
    # Lookup                                                               #
    # ================================================================== #

    def find(self, query: str, regexp: bool = False) -> Optional[int]:
        """
        Return the first node (pre-order) whose label matches *query*.

        Parameters
        ----------
        query  : str    Label prefix, or a regular expression when *regexp*.
        regexp : bool   Match *query* against the whole label as a pattern.

        Returns
        -------
        int or None   ``None`` when no label matches.
        """
        if regexp:
            pattern = re.compile(query)
            for n in self.preorder():
                if pattern.fullmatch(self.labels[n]):
                    return n
            return None

        for n in self.preorder():
            if self.labels[n].startswith(query):
                return n
        return None

    def taxon(
        self,
        node,
        pattern=DEFAULT_TAXON_PATTERN,
        label_on_no_match: bool = False,
    ) -> Optional[str]:
        """
        Extract the taxon name from the label of *node*.

        The label must match *pattern* in full; the taxon is capture group 1.

        Parameters
        ----------
        node              : int | str
        pattern           : str | re.Pattern   Must define at least one group.
        label_on_no_match : bool   Return the raw label instead of None when
                                   the pattern does not match.
        """
        label = self.labels[self._resolve_node(node)]
        match = re.fullmatch(pattern, label)
        if match is None:
            return label if label_on_no_match else None
        return match.group(1)

    def taxa(
        self,
        node=None,
        pattern=DEFAULT_TAXON_PATTERN,
        label_on_no_match: bool = False,
    ) -> Set[str]:
        """Distinct taxa of the leaves under *node* (unmatched labels skipped)."""
        found = set()
        for leaf in self.leaves(node):
            t = self.taxon(leaf, pattern, label_on_no_match)
            if t is not None:
                found.add(t)
        return found

    # ================================================================== #
    # Paths and LCA                                                        #
    # ================================================================== #

    def path_from_root(self, node) -> List[int]:
        """Ids from the root down to *node*, root first."""
        current = self._resolve_node(node)
        path = []
        while current != INVALID_NODE_ID:
            path.append(current)
            current = int(self.parent[current])
        path.reverse()
        return path

    def path_from_internal(self, node, internal) -> List[int]:
        """
        Ids from *internal* down to *node*, *internal* first.

        Raises
        ------
        ValueError   if *internal* is not an ancestor of (or equal to) *node*.
        """
        current = self._resolve_node(node)
        stop = self._resolve_node(internal)
        path = []
        while current != stop:
            if current == INVALID_NODE_ID:
                raise ValueError(f"Node {stop} is not an ancestor of node {node}.")
            path.append(current)
            current = int(self.parent[current])
        path.append(stop)
        path.reverse()
        return path

    def lca(self, nodes: Iterable) -> int:
        """
        Return the id of the Lowest Common Ancestor of all *nodes*.

        Root paths are stacked into a (rows, max_depth) grid padded with
        ``INVALID_NODE_ID``.  Columns are scanned from the root; a column
        matches when every row holds the same real id.  The last matching
        column before the first mismatch is the LCA.

        Parameters
        ----------
        nodes : iterable of (int | str)   At least one node; duplicates OK.

        Returns
        -------
        int   LCA id, or ``INVALID_NODE_ID`` if the paths share no column
              (nodes from disconnected arena slots).

        Raises
        ------
        ValueError   if *nodes* is empty.
        KeyError     if a name is not found.
        """
        paths = [self.path_from_root(n) for n in nodes]
        if not paths:
            raise ValueError("nodes must contain at least one element.")

        width = max(len(p) for p in paths)
        grid = np.full((len(paths), width), INVALID_NODE_ID, dtype=np.int64)
        for row, path in enumerate(paths):
            grid[row, : len(path)] = path

        matches = np.all(grid == grid[0], axis=0) & (grid[0] != INVALID_NODE_ID)
        # First mismatching column; everything before it is shared.
        mismatch = np.flatnonzero(~matches)
        shared = width if mismatch.size == 0 else int(mismatch[0])
        if shared == 0:
            return INVALID_NODE_ID
        return int(grid[0, shared - 1])

    # ================================================================== #
    # Distances                                                            #
    # ================================================================== #

    def distance(self, a, b) -> Distance:
        """
        Edge count and summed branch length between *a* and *b* via their LCA.
        """
        a_id = self._resolve_node(a)
        b_id = self._resolve_node(b)
        ancestor = self.lca([a_id, b_id])
        if ancestor == INVALID_NODE_ID:
            raise ValueError(f"Nodes {a_id} and {b_id} are not connected.")

        depth = 0
        length = 0.0
        for current in (a_id, b_id):
            while current != ancestor:
                depth += 1
                length += float(self.length[current])
                current = int(self.parent[current])
        return Distance(depth, length)

    def nearest(self, node, skip: Iterable[str] = ()) -> Optional[int]:
        """
        Return the leaf closest to *node*.

        Ancestors are visited from the parent upward; the first ancestor whose
        leaves include any candidate decides the answer.  Fewer edges win,
        then the shorter summed length.  Leaves whose label contains any of
        the *skip* substrings are not candidates.

        Returns
        -------
        int or None   ``None`` for the root or when every leaf is skipped.
        """
        node_id = self._resolve_node(node)
        skip = list(skip)
        ancestor = node_id
        nearest = None
        while nearest is None and ancestor != self.root:
            ancestor = int(self.parent[ancestor])
            best = None
            for leaf in self.leaves(ancestor):
                if leaf == node_id:
                    continue
                if any(s in self.labels[leaf] for s in skip):
                    continue
                d = self.distance(node_id, leaf)
                if best is None or d.depth < best.depth or (
                    d.depth == best.depth and d.length < best.length
                ):
                    nearest = leaf
                    best = d
        return nearest

    def farthest(self, node) -> Optional[int]:
        """
        Return the leaf farthest from *node*.

        A candidate replaces the current best only when it is at least as many
        edges away AND strictly longer in summed length.
        """
        node_id = self._resolve_node(node)
        farthest = None
        depth = -1
        length = -np.inf
        for leaf in self.leaves():
            if leaf == node_id:
                continue
            d = self.distance(node_id, leaf)
            if d.depth >= depth and d.length > length:
                farthest = leaf
                depth, length = d.depth, d.length
        return farthest

    def total_length(self, node=None) -> float:
        """Sum of branch lengths in the subtree (the subtree root's own
        branch excluded)."""
        ids = self.preorder(node)
        return float(self.length[ids[1:]].sum()) if len(ids) > 1 else 0.0

    # ================================================================== #
    # Structure                                                            #
    # ================================================================== #

    def add_child(self, parent, child) -> bool:
        """
        Attach *child* under *parent*.

        A child already attached to *parent* is left alone (returns False).
        A child attached elsewhere is moved.
        """
        p = self._resolve_node(parent)
        c = self._resolve_node(child)
        if c in self.children[p]:
            return False
        old = int(self.parent[c])
        if old != INVALID_NODE_ID:
            self.children[old].remove(c)
        self.children[p].append(c)
        self.parent[c] = p
        return True

    def remove_child(self, parent, child) -> bool:
        """Detach *child* from *parent*; False if it was not a child."""
        p = self._resolve_node(parent)
        c = self._resolve_node(child)
        if c not in self.children[p]:
            return False
        self.children[p].remove(c)
        self.parent[c] = INVALID_NODE_ID
        return True

    def copy(self, node=None) -> "Tree":
        """
        Return an independent copy of the subtree rooted at *node*.

        The copied subtree root keeps its label and branch length but has no
        parent.  Ids are renumbered in pre-order.
        """
        start = self.root if node is None else self._resolve_node(node)
        return Tree.from_arrays(
            self.parent, self.length, self.labels, self.children, start
        )

    def renumber_preorder(self) -> None:
        """
        Compact the arena to the nodes reachable from the root and renumber
        them in pre-order of their stored child order.

        Afterwards the root is 0, ids equal array indices and
        ``level(child) == level(parent) + 1``.
        """
        order = np.asarray(self.preorder(), dtype=np.int64)
        remap = np.full(self.n_nodes, INVALID_NODE_ID, dtype=np.int64)
        remap[order] = np.arange(order.size)

        old_parent = self.parent[order].astype(np.int64)
        parent = np.where(old_parent >= 0, remap[old_parent], INVALID_NODE_ID)
        parent[0] = INVALID_NODE_ID

        level = np.zeros(order.size, dtype=np.int32)
        for i in range(1, order.size):
            level[i] = level[parent[i]] + 1

        self._assign(
            parent,
            self.length[order],
            level,
            [self.labels[i] for i in order],
            [[int(remap[c]) for c in self.children[i]] for i in order],
            root=0,
        )

    # ================================================================== #
    # Output                                                               #
    # ================================================================== #

    def to_newick(self, node=None) -> str:
        """
        Serialize the subtree rooted at *node* (default: the whole tree).

        Every node is written as ``label:length``, children in ascending
        order of branch length.  The ``;`` terminator is added only when the
        subtree root is the tree root.
        """
        start = self.root if node is None else self._resolve_node(node)
        parts = []
        # Entries: (node id, closing?) or (None, literal text).
        stack = [(start, False)]
        while stack:
            current, closing = stack.pop()
            if current is None:
                parts.append(closing)
                continue
            kids = self.sorted_children(current)
            if closing or not kids:
                if closing:
                    parts.append(")")
                parts.append(self._descriptor(current))
                continue
            parts.append("(")
            stack.append((current, True))
            for i, child in enumerate(reversed(kids)):
                if i > 0:
                    stack.append((None, ","))
                stack.append((child, False))
        if start == self.root:
            parts.append(";")
        return "".join(parts)

    def _descriptor(self, node: int) -> str:
        return f"{self.labels[node]}:{float(self.length[node])!r}"

    def __str__(self) -> str:
        return self.to_newick()

    def __repr__(self) -> str:
        return f"Tree(n_nodes={self.n_nodes}, n_leaves={self.n_leaves})"

    # ================================================================== #
    # Name resolution                                                      #
    # ================================================================== #

    def _resolve_node(self, node) -> int:
        """
        **Private.**  Return the integer node id for *node*.

        Integers (including numpy integers) are returned as plain ``int``;
        strings are looked up in a lazily built label index.

        Raises
        ------
        KeyError   if *node* is a string not present in the tree.
        """
        if isinstance(node, (int, np.integer)):
            return int(node)
        if self._name_index is None:
            self._build_name_index()
        if node not in self._name_index:
            raise KeyError(f"No node with name '{node}' found in tree.")
        return self._name_index[node]

    def _build_name_index(self) -> None:
        """**Private.**  Map each non-empty label to its lowest node id."""
        idx = {}
        for node_id, name in enumerate(self.labels):
            if name != "" and name not in idx:
                idx[name] = node_id
        self._name_index = idx
