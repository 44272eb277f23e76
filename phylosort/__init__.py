"""
phylosort
=========

Sort and cluster phylogenetic gene trees by the taxonomic composition of
their clades.

Trees are read from NEWICK text into a compact array-backed ``Tree``; clade
matching then asks whether a tree holds a monophyletic clade made up of given
groups of taxa, and the cluster merger groups trees whose taxon sets overlap.

Main Classes
------------
Tree        : Single rooted phylogenetic tree (arena of parallel arrays)
SortConfig  : Validated, immutable parameters of a sorting run
TreeCluster : Group of trees and the union of their taxa

Parsing
-------
parse_newick : NEWICK text -> Tree
load_tree    : First tree in a file -> Tree
save_tree    : Tree -> file, one line of NEWICK text

Clade matching
--------------
monophyletic_node, all_monophyletic_nodes,
belongs, count_members, contains_query, nodes_by_taxa

Topology
--------
reroot, remove_node, remove_nodes, find_outgroup, clean_support,
log_transform, average_copies

Clustering and batch runs
-------------------------
cluster_taxa, load_groups, sort_trees, cluster_directory

Context Managers
----------------
quiet             : Suppress phylosort logging
suppress_logger   : Suppress a specific logger
suppress_warnings : Suppress specific warnings

Examples
--------
>>> from phylosort import parse_newick, monophyletic_node
>>> tree = parse_newick("(((a,b),c),(e,d));")
>>> node = monophyletic_node(tree, [["a", "b"], ["c"]], exclusive=True)
>>> tree.to_newick(node)
'((a:0.0,b:0.0):0.0,c:0.0):0.0'

>>> from phylosort import cluster_taxa
>>> [c.trees for c in cluster_taxa({"t1": "ab", "t2": "bc", "t3": "de"})]
[['t1', 't2'], ['t3']]
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Main classes
from ._tree import Tree, Distance, INVALID_NODE_ID, DEFAULT_TAXON_PATTERN
from ._config import SortConfig
from ._cluster import TreeCluster

# Parsing
from ._parser import parse_newick, load_tree, save_tree

# Clade matching
from ._clades import (
    monophyletic_node,
    all_monophyletic_nodes,
    belongs,
    count_members,
    contains_query,
    nodes_by_taxa,
)

# Topology
from ._topology import (
    reroot,
    remove_node,
    remove_nodes,
    find_outgroup,
    clean_support,
    log_transform,
    average_copies,
)

# Clustering and batch runs
from ._cluster import cluster_taxa
from ._batch import load_groups, sort_trees, cluster_directory

# Context managers
from ._context import suppress_logger, quiet, suppress_warnings

# Errors
from ._exceptions import (
    PhyloSortError,
    NewickParseError,
    TreeStructureError,
    ConfigError,
)

# Utilities
from ._utils import jaccard_similarity

__all__ = [
    # Main classes
    "Tree",
    "Distance",
    "SortConfig",
    "TreeCluster",
    "INVALID_NODE_ID",
    "DEFAULT_TAXON_PATTERN",
    # Parsing
    "parse_newick",
    "load_tree",
    "save_tree",
    # Clade matching
    "monophyletic_node",
    "all_monophyletic_nodes",
    "belongs",
    "count_members",
    "contains_query",
    "nodes_by_taxa",
    # Topology
    "reroot",
    "remove_node",
    "remove_nodes",
    "find_outgroup",
    "clean_support",
    "log_transform",
    "average_copies",
    # Clustering and batch runs
    "cluster_taxa",
    "load_groups",
    "sort_trees",
    "cluster_directory",
    # Context managers
    "suppress_logger",
    "quiet",
    "suppress_warnings",
    # Errors
    "PhyloSortError",
    "NewickParseError",
    "TreeStructureError",
    "ConfigError",
    # Utilities
    "jaccard_similarity",
]
