"""
Tests for descriptive network statistics.

Small hand-checked graphs: the four-node A->B, B->A, B->C, C->D network,
two disjoint 3-cycles, a directed path and complete graphs.
"""

import math

import pytest
import numpy as np

from groomnet.network.construction import build_grooming_network, induced_subgraph
from groomnet.network import statistics as stats
from groomnet.common.exceptions import (
    ConfigurationError,
    DegenerateGraphError,
    ValidationError
)


def complete_network(tables, k):
    names = [f"N{i}" for i in range(k)]
    pairs = [(names[i], names[j]) for i in range(k) for j in range(i + 1, k)]
    return build_grooming_network(tables.attributes(names), tables.edges(pairs))


class TestBasicCounts:

    def test_order_size_density(self, four_node_network):
        assert stats.order(four_node_network) == 4
        assert stats.size(four_node_network) == 4
        assert stats.density(four_node_network) == pytest.approx(1 / 3)

    def test_density_in_unit_interval(self, group_network):
        assert 0.0 <= stats.density(group_network) <= 1.0

    def test_density_single_node(self, tables):
        network = build_grooming_network(tables.attributes(["A"]), tables.edges([]))
        assert stats.density(network) == 0.0

    def test_complete_directed_density(self, tables):
        names = ["A", "B", "C"]
        pairs = [(s, t) for s in names for t in names if s != t]
        network = build_grooming_network(tables.attributes(names), tables.edges(pairs))
        assert stats.density(network) == pytest.approx(1.0)


class TestComponents:

    def test_four_node_components(self, four_node_network):
        weak = stats.connected_components(four_node_network, mode="weak")
        strong = stats.connected_components(four_node_network, mode="strong")

        assert weak["count"] == 1
        assert strong["count"] == 3
        assert strong["sizes"] == [2, 1, 1]

    def test_membership_largest_first(self, four_node_network):
        membership = stats.connected_components(four_node_network, mode="strong")["membership"]
        labels = dict(zip(membership["node_id"].to_list(), membership["component"].to_list()))

        assert labels["A"] == labels["B"] == 0
        assert labels["C"] != labels["D"]

    def test_two_triangles(self, two_triangles_network):
        assert stats.connected_components(two_triangles_network, mode="weak")["count"] == 2
        assert stats.connected_components(two_triangles_network, mode="strong")["count"] == 2

    def test_invalid_mode(self, four_node_network):
        with pytest.raises(ConfigurationError):
            stats.connected_components(four_node_network, mode="both")


class TestDiameter:

    def test_directed_path(self, tables):
        network = build_grooming_network(
            tables.attributes(["A", "B", "C", "D"]),
            tables.edges([("A", "B"), ("B", "C"), ("C", "D")])
        )
        result = stats.diameter(network, directed=True)

        assert result["diameter"] == 3
        assert result["connected"] is False
        assert result["reachable_pairs"] == 6
        assert result["total_pairs"] == 12

    def test_undirected(self, four_node_network):
        result = stats.diameter(four_node_network, directed=False)

        assert result["diameter"] == 3
        assert result["connected"] is True

    def test_directed_cycle(self, tables):
        network = build_grooming_network(
            tables.attributes(["A", "B", "C"]),
            tables.edges([("A", "B"), ("B", "C"), ("C", "A")])
        )
        result = stats.diameter(network)

        assert result["diameter"] == 2
        assert result["connected"] is True

    def test_distance_matrix_unreachable(self, four_node_network):
        distances = stats.distance_matrix(four_node_network)

        assert distances[0, 3] == 3
        assert math.isinf(distances[3, 0])


class TestCliques:

    @pytest.mark.parametrize("k", [3, 4, 5])
    def test_clique_edge_count(self, tables, k):
        network = complete_network(tables, k)

        assert stats.count_cliques(network, 2) == k * (k - 1) // 2
        assert stats.count_cliques(network, k) == 1
        assert stats.clique_number(network) == k

    def test_sub_cliques_counted(self, tables):
        network = complete_network(tables, 5)

        assert stats.count_cliques(network, 3) == 10
        assert stats.count_cliques(network, 3, maximal_only=True) == 0
        assert stats.count_cliques(network, 5, maximal_only=True) == 1

    def test_maximal_cliques(self, four_node_network):
        cliques = stats.maximal_cliques(four_node_network)

        assert cliques == [["A", "B"], ["B", "C"], ["C", "D"]]
        assert stats.clique_number(four_node_network) == 2

    def test_mutual_edges_count_once(self, four_node_network):
        assert stats.count_cliques(four_node_network, 2) == 3
        assert stats.count_cliques(four_node_network, 3) == 0

    def test_edgeless_graph(self, tables):
        network = build_grooming_network(tables.attributes(["A", "B"]), tables.edges([]))

        assert stats.clique_number(network) == 1
        assert stats.count_cliques(network, 1) == 2
        assert stats.count_cliques(network, 1, maximal_only=True) == 2

    def test_invalid_size(self, four_node_network):
        with pytest.raises(ConfigurationError):
            stats.count_cliques(four_node_network, 0)


class TestModularity:

    def test_component_partition(self, two_triangles_network):
        assert stats.modularity(two_triangles_network, "SleepLoc") == pytest.approx(0.5)

    def test_single_group_is_zero(self, two_triangles_network):
        assert stats.modularity(two_triangles_network, ["x"] * 6) == pytest.approx(0.0)

    def test_near_zero_on_random_partition(self, group_network):
        rng = np.random.default_rng(0)
        values = [
            stats.modularity(group_network, list(rng.integers(0, 2, size=24)))
            for _ in range(50)
        ]

        assert abs(float(np.mean(values))) < 0.05
        assert stats.modularity(group_network, "SleepLoc") > 0.2

    def test_dict_partition(self, two_triangles_network):
        labels = {name: name in {"A", "B", "C"} for name in two_triangles_network.node_ids()}
        assert stats.modularity(two_triangles_network, labels) == pytest.approx(0.5)

    def test_range(self, four_node_network):
        for attribute in four_node_network.covariates:
            assert -1.0 <= stats.modularity(four_node_network, attribute) <= 1.0

    def test_no_edges(self, tables):
        network = build_grooming_network(tables.attributes(["A", "B"]), tables.edges([]))

        with pytest.raises(DegenerateGraphError):
            stats.modularity(network, "Age")

    def test_partition_length_mismatch(self, four_node_network):
        with pytest.raises(ValidationError, match="3 labels for 4 nodes"):
            stats.modularity(four_node_network, [0, 1, 0])


class TestDegrees:

    def test_degree_table(self, four_node_network):
        table = stats.degree_table(four_node_network)

        assert table["in_degree"].to_list() == [1, 1, 1, 1]
        assert table["out_degree"].to_list() == [1, 2, 1, 0]
        assert table["in_degree"].sum() == table["out_degree"].sum() == 4

    def test_degree_summary(self, four_node_network):
        summary = stats.degree_summary(four_node_network)

        assert summary["out_degree"]["mean"] == pytest.approx(1.0)
        assert summary["out_degree"]["max"] == 2.0
        assert summary["out_degree"]["median"] == pytest.approx(1.0)
        assert summary["in_degree"]["std"] == pytest.approx(0.0)

    def test_degree_frequency(self, four_node_network):
        freq = stats.degree_frequency(four_node_network, "out")

        assert freq["degree"].to_list() == [0, 1, 2]
        assert freq["count"].to_list() == [1, 2, 1]


class TestReciprocity:

    def test_four_node(self, four_node_network):
        assert stats.reciprocity(four_node_network) == pytest.approx(1 / 3)
        assert stats.reciprocity(four_node_network, mode="edge") == pytest.approx(0.5)

    def test_no_edges(self, tables):
        network = build_grooming_network(tables.attributes(["A", "B"]), tables.edges([]))
        assert stats.reciprocity(network) == 0.0

    def test_fully_mutual(self, tables):
        network = build_grooming_network(
            tables.attributes(["A", "B"]), tables.edges([("A", "B"), ("B", "A")])
        )
        assert stats.reciprocity(network) == pytest.approx(1.0)


class TestTransitivity:

    def setup_method(self):
        self.pairs = [("A", "B"), ("B", "C"), ("C", "A"), ("C", "D")]

    def test_triangle_with_pendant(self, tables):
        network = build_grooming_network(tables.attributes(["A", "B", "C", "D"]), tables.edges(self.pairs))

        assert stats.transitivity(network) == pytest.approx(1 / 3)
        assert stats.transitivity(network, method="global") == pytest.approx(0.6)

    def test_no_triangles(self, four_node_network):
        assert stats.transitivity(four_node_network) == 0.0

    def test_complete(self, tables):
        assert stats.transitivity(complete_network(tables, 4)) == pytest.approx(1.0)


class TestAssortativity:

    def test_mixing_matrix(self, four_node_network):
        levels, matrix = stats.mixing_matrix(four_node_network, "SleepLoc")

        assert levels == ["Loc1", "Loc2"]
        np.testing.assert_array_equal(matrix, [[2, 1], [0, 1]])

    def test_mixing_table(self, four_node_network):
        table = stats.mixing_table(four_node_network, "SleepLoc")
        assert table.columns == ["source_category", "Loc1", "Loc2"]

    def test_perfect_assortativity(self, two_triangles_network):
        assert stats.assortativity_nominal(two_triangles_network, "SleepLoc") == pytest.approx(1.0)

    def test_single_category_reports_zero(self, two_triangles_network):
        assert stats.assortativity_nominal(two_triangles_network, "Gender") == 0.0

    def test_no_edges(self, tables):
        network = build_grooming_network(tables.attributes(["A", "B"]), tables.edges([]))

        with pytest.raises(DegenerateGraphError):
            stats.assortativity_nominal(network, "Age")

    def test_permutation_test(self, group_network):
        result = stats.assortativity_permutation_test(group_network, "SleepLoc", n_permutations=200, seed=1)

        assert result["observed"] > 0.3
        assert result["p_value"] < 0.05
        assert result["n_permutations"] == 200

    def test_random_graphs_near_zero(self, tables):
        """Random edge placement with fixed category sizes gives r close to 0."""
        rng = np.random.default_rng(11)
        n = 60
        names = [f"M{i:02d}" for i in range(n)]
        nodes = tables.attributes(names, sleep=["Loc1"] * 30 + ["Loc2"] * 30)

        values = []
        for _ in range(40):
            adjacency = rng.random((n, n)) < 0.1
            np.fill_diagonal(adjacency, False)
            pairs = [(names[i], names[j]) for i, j in zip(*np.nonzero(adjacency))]
            network = build_grooming_network(nodes, tables.edges(pairs))
            values.append(stats.assortativity_nominal(network, "SleepLoc"))

        assert all(-1.0 <= r <= 1.0 for r in values)
        assert abs(np.mean(values)) < 0.05

        result = stats.assortativity_permutation_test(network, "SleepLoc", n_permutations=200, seed=2)
        assert abs(result["null_mean"]) < 0.05
        assert -1.0 <= result["observed"] <= 1.0

    def test_permutation_test_reproducible(self, group_network):
        first = stats.assortativity_permutation_test(group_network, "Age", n_permutations=50, seed=3)
        second = stats.assortativity_permutation_test(group_network, "Age", n_permutations=50, seed=3)

        assert first == second
        assert 0.0 < first["p_value"] <= 1.0


class TestSubgraphStatistics:
    """The same statistics apply unchanged to induced subgraphs."""

    def test_subgraph_density(self, four_node_network):
        sub = induced_subgraph(four_node_network, ["A", "B"])

        assert stats.density(sub) == pytest.approx(1.0)
        assert stats.reciprocity(sub) == pytest.approx(1.0)
