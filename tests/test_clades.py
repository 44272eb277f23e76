"""
tests/test_clades.py
====================
Tests for inclusive and exclusive clade matching.

Tree fixtures
-------------
  five
      (((a,b),c),(e,d));

      Node IDs (pre-order):
        root=0  abc=1  ab=2  a=3  b=4  c=5  ed=6  e=7  d=8

  species
      ((Hsap_1,Hsap_2),(Mmus_1,Rnor_1));

      Node IDs: root=0  HH=1  Hsap_1=2  Hsap_2=3  MR=4  Mmus_1=5  Rnor_1=6
"""

import pytest

from phylosort import (
    SortConfig,
    all_monophyletic_nodes,
    belongs,
    contains_query,
    count_members,
    monophyletic_node,
    nodes_by_taxa,
    parse_newick,
)


@pytest.fixture(scope="module")
def five():
    """(((a,b),c),(e,d));"""
    return parse_newick("(((a,b),c),(e,d));")


@pytest.fixture(scope="module")
def species():
    """((Hsap_1,Hsap_2),(Mmus_1,Rnor_1));"""
    return parse_newick("((Hsap_1,Hsap_2),(Mmus_1,Rnor_1));")


# ======================================================================== #
# Leaf-set helpers                                                          #
# ======================================================================== #


class TestHelpers:
    def test_belongs(self, five):
        assert belongs(five, 2, {"a", "b"})
        assert not belongs(five, 1, {"a", "b"})

    def test_belongs_leaf(self, five):
        assert belongs(five, "c", ["c"])

    def test_count_members(self, five):
        assert count_members(five, 0, {"a", "e"}) == 2
        assert count_members(five, 6, {"a"}) == 0

    def test_contains_query_ignores_case(self, five):
        assert contains_query(five, 1, "C")
        assert not contains_query(five, 6, "c")

    def test_contains_none_query(self, five):
        assert contains_query(five, 6, None)

    def test_nodes_by_taxa(self, five):
        assert nodes_by_taxa(five, {"a", "e"}) == [3, 7]
        assert nodes_by_taxa(five, {"a", "e"}, equal=False) == [4, 5, 8]

    def test_nodes_by_taxa_pattern(self, species):
        found = nodes_by_taxa(species, {"Hsap"}, pattern=r"([A-Za-z]+)_\d+")
        assert found == [2, 3]


# ======================================================================== #
# Exclusive mode                                                            #
# ======================================================================== #


class TestExclusive:
    def test_clade_found(self, five):
        node = monophyletic_node(five, [["a", "b"], ["c"]], exclusive=True)
        assert node == 1
        assert five.to_newick(node) == "((a:0.0,b:0.0):0.0,c:0.0):0.0"

    def test_foreign_leaf_under_lca(self, five):
        assert monophyletic_node(five, [["a"], ["e"]], exclusive=True) is None

    def test_group_without_members(self, five):
        assert monophyletic_node(five, [["a", "b"], ["z"]], exclusive=True) is None

    def test_no_members_at_all(self, five):
        assert monophyletic_node(five, [["x"], ["y"]], exclusive=True) is None
        assert all_monophyletic_nodes(five, [["x"]], exclusive=True) == []

    def test_mode_from_config(self, five):
        config = SortConfig(exclusive=True)
        assert monophyletic_node(five, [["a", "b"], ["c"]], config=config) == 1

    def test_all_nodes_below_lca(self, five):
        assert all_monophyletic_nodes(five, [["a", "b"], ["c"]], exclusive=True) == [1]

    def test_all_nodes_with_single_group(self, five):
        """Inclusive matching inside the LCA finds every member leaf."""
        found = all_monophyletic_nodes(five, [["a", "b", "c"]], exclusive=True)
        assert found == [3, 4, 5]

    def test_climb_stays_inside_lca(self, five):
        """Group size 3 is never reached below the LCA; no climb above it."""
        config = SortConfig(minimum_group_size=3)
        found = all_monophyletic_nodes(
            five, [["a", "b"], ["c"]], exclusive=True, config=config
        )
        assert found == []

    def test_query_required(self, five):
        config = SortConfig(query_required=True)
        groups = [["a", "b"], ["c"]]
        assert monophyletic_node(five, groups, True, "A", config) == 1
        assert monophyletic_node(five, groups, True, "d", config) is None

    def test_query_ignored_when_not_required(self, five):
        assert monophyletic_node(five, [["a", "b"], ["c"]], True, "d") == 1

    def test_taxon_pattern(self, species):
        config = SortConfig(taxon_pattern=r"([A-Za-z]+)_\d+")
        assert monophyletic_node(species, [["Hsap"]], True, config=config) == 1
        assert monophyletic_node(species, [["Mmus"], ["Rnor"]], True, config=config) == 4


# ======================================================================== #
# Inclusive mode                                                            #
# ======================================================================== #


class TestInclusive:
    def test_lowest_qualifying_ancestor(self, five):
        assert monophyletic_node(five, [["a"], ["b"]], exclusive=False) == 2

    def test_leaf_matches_single_group(self, five):
        found = all_monophyletic_nodes(five, [["a", "b", "c", "d"]], exclusive=False)
        assert found == [3, 4, 5, 8]

    def test_minimum_group_size(self, five):
        config = SortConfig(minimum_group_size=2)
        found = all_monophyletic_nodes(
            five, [["a", "b", "c", "d"]], exclusive=False, config=config
        )
        # a climbs to ab; c climbs to abc; d stops at ed (foreign e).
        assert found == [1, 2]

    def test_foreign_leaf_stops_climb(self):
        tree = parse_newick("((a,x),b);")
        assert monophyletic_node(tree, [["a"], ["b"]], exclusive=False) is None
        assert monophyletic_node(tree, [["a"], ["b"]], exclusive=True) is None

    def test_root_match(self, five):
        groups = [["a", "b", "c"], ["d", "e"]]
        assert monophyletic_node(five, groups, exclusive=False) == 0
        assert all_monophyletic_nodes(five, groups, exclusive=False) == [0]

    def test_query_required(self, five):
        config = SortConfig(query_required=True)
        groups = [["a"], ["b"]]
        assert all_monophyletic_nodes(five, groups, False, "B", config) == [2]
        assert all_monophyletic_nodes(five, groups, False, "c", config) == []
        assert monophyletic_node(five, groups, False, "c", config) is None

    def test_results_deduplicated_and_sorted(self, species):
        config = SortConfig(taxon_pattern=r"([A-Za-z]+)_\d+", minimum_group_size=2)
        assert all_monophyletic_nodes(species, [["Hsap"]], False, config=config) == [1]

    def test_input_tree_untouched(self, five):
        before = str(five)
        all_monophyletic_nodes(five, [["a"], ["b"]])
        assert str(five) == before
