"""
_batch.py
=========
Directory-level drivers built on the tree, clade and cluster modules.

Public API
----------
  load_groups(path)                                   -> list[list[str]]
  sort_trees(in_dir, out_dir, groups, config=None)    -> int
  cluster_directory(in_dir, out_dir=None, minimum_overlap=1,
                    taxon_pattern=DEFAULT_TAXON_PATTERN, backend='best')
                                                      -> list[TreeCluster]

A file that cannot be read or parsed is reported at WARNING level and
skipped; the rest of the directory is still processed.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from phylosort._clades import all_monophyletic_nodes
from phylosort._cluster import DEFAULT_MINIMUM_OVERLAP, TreeCluster, cluster_taxa
from phylosort._config import SortConfig
from phylosort._exceptions import PhyloSortError
from phylosort._logging import (
    log_file_failure,
    log_sort_summary,
    log_tree_skipped,
    log_unsupported_match,
)
from phylosort._parser import load_tree
from phylosort._topology import average_copies, find_outgroup, reroot
from phylosort._tree import DEFAULT_TAXON_PATTERN, Tree
from phylosort._utils import numbered_name


logger = logging.getLogger(__name__)

GROUP_DELIMITERS = re.compile(r"[,\s:]+")
CLUSTER_PREFIX = "cluster"


def load_groups(path) -> List[List[str]]:
    """
    Read taxon groups, one group per line.

    Taxa on a line are separated by commas, colons or whitespace.  Blank
    lines and lines starting with ``#`` are ignored.
    """
    groups = []
    with open(path) as handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            groups.append([t for t in GROUP_DELIMITERS.split(line) if t])
    logger.info("Loaded %d taxon group(s) from %s", len(groups), path)
    return groups


def _tree_files(directory: Path) -> List[Path]:
    return sorted(p for p in directory.iterdir() if p.is_file())


# ======================================================================== #
# Sorting                                                                   #
# ======================================================================== #


def _skip_reason(tree: Tree, config: SortConfig) -> Optional[str]:
    """Why the taxa-count / copy-number filters reject *tree*, or None."""
    if config.minimum_taxa >= 0 or config.maximum_taxa >= 0:
        size = tree.size()
        if config.minimum_taxa >= 0 and size < config.minimum_taxa:
            return f"{size} leaves < minimum {config.minimum_taxa}"
        if config.maximum_taxa >= 0 and size > config.maximum_taxa:
            return f"{size} leaves > maximum {config.maximum_taxa}"
    if config.maximum_average_copies >= 0:
        copies = average_copies(tree, config.taxon_regex)
        if copies > config.maximum_average_copies:
            return (
                f"{copies:.2f} copies per taxon > maximum "
                f"{config.maximum_average_copies}"
            )
    return None


def _supported(tree: Tree, nodes: Sequence[int], config: SortConfig, filename: str) -> bool:
    """True if some matched node meets the minimum support value."""
    if config.minimum_support < 0:
        return bool(nodes)
    for node in nodes:
        label = tree.labels[node]
        support = 0.0
        if tree.is_leaf(node):
            log_unsupported_match(filename, node, None)
        else:
            try:
                support = float(label)
            except ValueError:
                log_unsupported_match(filename, node, label)
        if support >= config.minimum_support:
            return True
    return False


def _match_tree(tree: Tree, groups, query: str, config: SortConfig, filename: str) -> bool:
    if config.root_outgroup:
        outgroup = find_outgroup(tree, groups, config.taxon_regex)
        if outgroup is not None:
            tree = reroot(tree, outgroup)
    nodes = all_monophyletic_nodes(tree, groups, config.exclusive, query, config)
    return _supported(tree, nodes, config, filename)


def sort_trees(
    in_dir,
    out_dir,
    groups: Sequence[Iterable[str]],
    config: Optional[SortConfig] = None,
) -> int:
    """
    Find the tree files in *in_dir* holding a monophyletic clade for *groups*.

    For every file whose name matches ``config.filename_pattern`` (group 1
    is the query taxon) the tree is loaded and, in order:

    1. dropped if it fails the taxa-count or copy-number filters;
    2. rerooted at its first leaf outside *groups* (``config.root_outgroup``);
    3. searched with :func:`all_monophyletic_nodes`;
    4. accepted if some match meets ``config.minimum_support``.

    Accepted files are copied or moved to *out_dir*, or only counted,
    according to ``config.on_match``.

    Parameters
    ----------
    in_dir  : str or Path
    out_dir : str or Path or None   Created if missing; unused for 'count'.
    groups  : sequence of taxon collections
    config  : SortConfig or None    Defaults to ``SortConfig()``.

    Returns
    -------
    int   Number of accepted tree files.
    """
    config = config if config is not None else SortConfig()
    groups = [list(g) for g in groups]
    if not groups:
        logger.warning("No taxon groups given; nothing can match")

    in_dir = Path(in_dir)
    target = None
    if config.on_match != "count":
        if out_dir is None:
            raise ValueError(f"on_match={config.on_match!r} needs an output directory")
        target = Path(out_dir)
        target.mkdir(parents=True, exist_ok=True)

    pattern = config.filename_regex
    n_files = n_skipped = n_failed = n_matched = 0
    logger.info("Sorting trees in %s (%s mode)", in_dir, config.mode)

    for path in _tree_files(in_dir):
        match = pattern.fullmatch(path.name)
        if match is None:
            continue
        n_files += 1
        query = match.group(1)
        logger.debug("%d: %s (query %s)", n_files, path.name, query)

        try:
            tree = load_tree(path)
            reason = _skip_reason(tree, config)
            if reason is not None:
                log_tree_skipped(path.name, reason)
                n_skipped += 1
                continue
            if not _match_tree(tree, groups, query, config, path.name):
                continue
            if config.on_match == "copy":
                shutil.copy2(path, target / path.name)
            elif config.on_match == "move":
                shutil.move(str(path), str(target / path.name))
        except (PhyloSortError, OSError) as exc:
            log_file_failure(path.name, exc)
            n_failed += 1
            continue
        n_matched += 1

    log_sort_summary(n_files, n_skipped, n_failed, n_matched, config.on_match)
    return n_matched


# ======================================================================== #
# Clustering                                                                #
# ======================================================================== #


def cluster_directory(
    in_dir,
    out_dir=None,
    minimum_overlap: int = DEFAULT_MINIMUM_OVERLAP,
    taxon_pattern=DEFAULT_TAXON_PATTERN,
    backend: str = "best",
) -> List[TreeCluster]:
    """
    Cluster the tree files of *in_dir* by shared taxa.

    Each readable tree contributes the taxa of its leaves (raw labels where
    *taxon_pattern* does not match).  When *out_dir* is given, the files of
    cluster *k* are copied into ``out_dir/clusterK`` with *K* zero-padded to
    the width of the cluster count.

    Returns
    -------
    list[TreeCluster]   Member ids are file names.
    """
    in_dir = Path(in_dir)
    taxa_by_file = {}
    for path in _tree_files(in_dir):
        try:
            tree = load_tree(path)
        except (PhyloSortError, OSError) as exc:
            log_file_failure(path.name, exc)
            continue
        taxa_by_file[path.name] = tree.taxa(pattern=taxon_pattern, label_on_no_match=True)

    clusters = cluster_taxa(taxa_by_file, minimum_overlap, backend)

    if out_dir is not None:
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        for number, cluster in enumerate(clusters, start=1):
            folder = out_dir / numbered_name(CLUSTER_PREFIX, number, len(clusters))
            folder.mkdir(exist_ok=True)
            for name in cluster.trees:
                shutil.copy2(in_dir / name, folder / name)
        logger.info("Wrote %d cluster folder(s) to %s", len(clusters), out_dir)

    return clusters
