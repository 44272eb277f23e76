"""
tests/test_topology.py
======================
Tests for rerooting, node removal and the tree maintenance helpers.

Tree fixtures
-------------
  rooted
      (((a,b),c)60:1,d:2);

      Node IDs (pre-order):
        root=0  abc=1  ab=2  a=3  b=4  c=5  d=6

      Total branch length 3.

  three
      ((a,b),c);

      Node IDs: root=0  ab=1  a=2  b=3  c=4
"""

import logging

import numpy as np
import pytest

from phylosort import (
    TreeStructureError,
    average_copies,
    clean_support,
    find_outgroup,
    log_transform,
    parse_newick,
    remove_node,
    remove_nodes,
    reroot,
)
from phylosort._topology import _collapse


ROOTED = "(((a,b),c)60:1,d:2);"
SPECIES = r"([A-Za-z]+)_\d+"


@pytest.fixture(scope="module")
def rooted():
    """(((a,b),c)60:1,d:2);"""
    return parse_newick(ROOTED)


def leaf_labels(tree):
    return sorted(tree.labels[leaf] for leaf in tree.leaves())


# ======================================================================== #
# Rerooting                                                                 #
# ======================================================================== #


class TestReroot:
    def test_leaf_outgroup(self, rooted):
        rerooted = reroot(rooted, "a")
        assert str(rerooted) == "(a:0.0,(b:0.0,(c:0.0,(d:2.0):1.0):0.0):0.0):0.0;"

    def test_total_length_conserved(self, rooted):
        assert reroot(rooted, "a").total_length() == pytest.approx(3.0)

    def test_leaf_set_conserved(self, rooted):
        assert leaf_labels(reroot(rooted, "c")) == ["a", "b", "c", "d"]

    def test_reroot_twice(self, rooted):
        twice = reroot(reroot(rooted, "a"), "d")
        assert twice.total_length() == pytest.approx(3.0)
        assert leaf_labels(twice) == ["a", "b", "c", "d"]

    def test_leaf_branch_split_in_half(self, rooted):
        rerooted = reroot(rooted, "d")
        d = rerooted.labels.index("d")
        assert rerooted.parent[d] == rerooted.root
        assert rerooted.length[d] == pytest.approx(1.0)
        sister = [c for c in rerooted.children[rerooted.root] if c != d][0]
        assert rerooted.length[sister] == pytest.approx(1.0)

    def test_internal_outgroup_becomes_root(self, rooted):
        rerooted = reroot(rooted, 2)
        assert rerooted.total_length() == pytest.approx(3.0)
        assert rerooted.length[rerooted.root] == 0.0
        # a and b hang directly from the new root.
        top = [rerooted.labels[c] for c in rerooted.children[rerooted.root]]
        assert "a" in top and "b" in top

    def test_support_label_follows_branch(self, rooted):
        rerooted = reroot(rooted, 2)
        node = rerooted.labels.index("60")
        assert rerooted.length[node] == pytest.approx(1.0)
        assert rerooted.labels[rerooted.children[node][0]] == "d"

    def test_ids_are_preorder(self, rooted):
        rerooted = reroot(rooted, "b")
        assert rerooted.root == 0
        assert rerooted.preorder() == list(range(rerooted.n_nodes))

    def test_at_root_is_copy(self, rooted):
        copy = reroot(rooted, 0)
        assert str(copy) == str(rooted)
        assert copy is not rooted

    def test_input_untouched(self, rooted):
        before = str(rooted)
        reroot(rooted, "a")
        reroot(rooted, 2)
        assert str(rooted) == before
        assert rooted.n_nodes == 7


# ======================================================================== #
# Removal                                                                   #
# ======================================================================== #


class TestRemoveNode:
    def test_unary_parent_collapsed(self):
        tree = parse_newick("((a,b),c);")
        assert remove_node(tree, "b") == 0
        assert str(tree) == "(a:0.0,c:0.0):0.0;"
        assert str(tree) == str(parse_newick("(a,c);"))

    def test_collapsed_lengths_summed(self):
        tree = parse_newick("((a:1,b:2):3,c:4);")
        remove_node(tree, "b")
        assert str(tree) == "(a:4.0,c:4.0):0.0;"

    def test_root_child_promoted(self):
        tree = parse_newick("((a,b),c);")
        assert remove_node(tree, "c") == 0
        assert str(tree) == "(a:0.0,b:0.0):0.0;"
        assert tree.n_nodes == 3
        assert tree.parent[0] == -1

    def test_multifurcation_kept(self):
        tree = parse_newick("((a,b,c),d);")
        remove_node(tree, "b")
        assert str(tree) == "((a:0.0,c:0.0):0.0,d:0.0):0.0;"

    def test_empty_parent_removed(self):
        tree = parse_newick("((a)u,c);")
        remove_node(tree, "a")
        assert str(tree) == "c:0.0;"
        assert tree.n_nodes == 1

    def test_ids_renumbered(self):
        tree = parse_newick("((a,b),(c,d));")
        remove_node(tree, 1)
        assert tree.preorder() == list(range(tree.n_nodes))
        np.testing.assert_array_equal(tree.level, [0, 1, 1])

    def test_root_removal_raises(self):
        tree = parse_newick("((a,b),c);")
        with pytest.raises(TreeStructureError):
            remove_node(tree, 0)

    def test_last_child_of_root_raises(self):
        tree = parse_newick("((a,b));")
        with pytest.raises(TreeStructureError):
            remove_node(tree, 1)

    def test_collapse_needs_one_child(self):
        tree = parse_newick("((a,b),c);")
        with pytest.raises(TreeStructureError):
            _collapse(tree, 0)


class TestRemoveNodes:
    def test_blank_and_missing_names_skipped(self):
        tree = parse_newick("((a,b),c);")
        assert remove_nodes(tree, ["b", "zz", "", "  "]) is tree
        assert str(tree) == "(a:0.0,c:0.0):0.0;"

    def test_prefix_match(self):
        tree = parse_newick("((Hsap_1,Mmus_1),Rnor_1);")
        remove_nodes(tree, ["Mmus"])
        assert leaf_labels(tree) == ["Hsap_1", "Rnor_1"]

    def test_root_match_skipped(self, caplog):
        tree = parse_newick("((a,b),c)top;")
        with caplog.at_level(logging.WARNING, logger="phylosort"):
            remove_nodes(tree, ["top"])
        assert tree.n_nodes == 5
        assert "matches the root" in caplog.text


# ======================================================================== #
# Maintenance helpers                                                       #
# ======================================================================== #


class TestFindOutgroup:
    def test_first_foreign_leaf(self):
        tree = parse_newick("(((a,b),c),(e,d));")
        assert find_outgroup(tree, [["a", "b"], ["c"]]) == 7

    def test_no_foreign_leaf(self):
        tree = parse_newick("((a,b),c);")
        assert find_outgroup(tree, [["a", "b", "c"]]) is None

    def test_with_pattern(self):
        tree = parse_newick("((Hsap_1,Mmus_1),Rnor_1);")
        assert find_outgroup(tree, [["Hsap", "Mmus"]], SPECIES) == 4


class TestCleanSupport:
    TEXT = "((a,b)95:1,(c,d)40:1,(e,f)xx:1)10;"

    def test_low_support_blanked(self):
        tree = parse_newick(self.TEXT)
        assert clean_support(tree, 50) == 3
        assert tree.labels[0] == ""
        assert tree.labels[1] == "95"
        assert tree.labels[4] == ""
        assert tree.labels[7] == ""

    def test_leaves_untouched(self):
        tree = parse_newick(self.TEXT)
        clean_support(tree, 100)
        assert leaf_labels(tree) == ["a", "b", "c", "d", "e", "f"]

    def test_non_numeric_label_warns(self, caplog):
        tree = parse_newick(self.TEXT)
        with caplog.at_level(logging.WARNING, logger="phylosort"):
            clean_support(tree, 50)
        assert "'xx'" in caplog.text

    def test_name_lookup_refreshed(self):
        tree = parse_newick(self.TEXT)
        assert tree.find("4") == 4
        clean_support(tree, 50)
        assert tree.find("4") is None


class TestLogTransform:
    def test_positive_lengths(self):
        tree = parse_newick("(a:10,b:0.1,c:0);")
        logged = log_transform(tree)
        np.testing.assert_allclose(logged.length, [0.0, 1.0, -1.0, 0.0])

    def test_scale(self):
        tree = parse_newick("(a:10,b:0.1);")
        np.testing.assert_allclose(log_transform(tree, 10).length, [0.0, 2.0, 0.0])

    def test_input_untouched(self):
        tree = parse_newick("(a:10,b:0.1);")
        log_transform(tree)
        np.testing.assert_allclose(tree.length, [0.0, 10.0, 0.1])

    @pytest.mark.parametrize("scale", [0, -1.0])
    def test_scale_must_be_positive(self, scale):
        with pytest.raises(ValueError):
            log_transform(parse_newick("(a:1,b:1);"), scale)


class TestAverageCopies:
    def test_species_pattern(self):
        tree = parse_newick("((Hsap_1,Hsap_2),(Mmus_1,Rnor_1));")
        assert average_copies(tree, SPECIES) == pytest.approx(4 / 3)

    def test_distinct_labels(self):
        tree = parse_newick("((Hsap_1,Hsap_2),(Mmus_1,Rnor_1));")
        assert average_copies(tree) == pytest.approx(1.0)
