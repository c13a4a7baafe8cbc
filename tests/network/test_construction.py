"""
Tests for grooming network construction.

Covers building from DataFrames and CSV files, duplicate and self-loop
handling, endpoint validation, induced subgraphs and matrix views.
"""

import pytest
import polars as pl
import numpy as np

from groomnet.network.construction import (
    GroomingNetwork,
    load_table,
    build_grooming_network,
    induced_subgraph,
    subgraph_by_attribute,
    split_by_attribute,
    symmetrize,
    adjacency_matrix,
    get_graph_info
)
from groomnet.common.exceptions import ValidationError, DataFormatError


class TestBuildGroomingNetwork:
    """Test graph construction from tables."""

    def test_basic_construction(self, four_node_network):
        network = four_node_network

        assert isinstance(network, GroomingNetwork)
        assert network.number_of_nodes() == 4
        assert network.number_of_edges() == 4
        assert network.graph.isDirected()
        assert not network.graph.isWeighted()
        assert network.node_ids() == ["A", "B", "C", "D"]
        assert network.covariates == ["Age", "Gender", "SleepLoc"]

    def test_edges_follow_observation_direction(self, four_node_network):
        table = four_node_network.edge_table()
        pairs = set(zip(table["source"].to_list(), table["target"].to_list()))

        assert pairs == {("A", "B"), ("B", "A"), ("B", "C"), ("C", "D")}

    def test_attribute_rows_align_with_node_ids(self, tables):
        nodes = tables.attributes(["C", "A", "B"], age=["Senior", "Juvenile", "Adult"])
        network = build_grooming_network(nodes, tables.edges([("A", "C")]))

        assert network.node_ids() == ["A", "B", "C"]
        assert network.attribute_values("Age") == ["Juvenile", "Adult", "Senior"]
        assert network.id_mapper.get_internal("C") == 2

    def test_duplicate_observations_collapse(self, tables):
        nodes = tables.attributes(["A", "B", "C"])
        edges = tables.edges([("A", "B"), ("A", "B"), ("B", "C"), ("A", "B")])

        network = build_grooming_network(nodes, edges)

        assert network.number_of_edges() == 2
        assert network.n_observations == 4
        assert network.n_duplicates == 2

    def test_self_loops_dropped(self, tables):
        nodes = tables.attributes(["A", "B"])
        edges = tables.edges([("A", "A"), ("A", "B")])

        network = build_grooming_network(nodes, edges)

        assert network.number_of_edges() == 1
        assert network.n_self_loops == 1

    def test_isolated_monkeys_kept(self, tables):
        nodes = tables.attributes(["A", "B", "C", "Z"])
        network = build_grooming_network(nodes, tables.edges([("A", "B")]))

        assert network.number_of_nodes() == 4
        assert network.graph.degree(network.id_mapper.get_internal("Z")) == 0

    def test_unknown_endpoint_rejected(self, tables):
        nodes = tables.attributes(["A", "B"])
        edges = tables.edges([("A", "B"), ("B", "Zed")])

        with pytest.raises(ValidationError, match="unknown node"):
            build_grooming_network(nodes, edges)

    def test_duplicated_monkey_rejected(self, tables):
        nodes = tables.attributes(["A", "B", "A"])

        with pytest.raises(ValidationError, match="Duplicated"):
            build_grooming_network(nodes, tables.edges([("A", "B")]))

    def test_missing_covariate_rejected(self, tables):
        nodes = tables.attributes(["A", "B"]).drop("SleepLoc")

        with pytest.raises(ValidationError, match="SleepLoc"):
            build_grooming_network(nodes, tables.edges([("A", "B")]))

    def test_all_columns_as_covariates(self, tables):
        nodes = tables.attributes(["A", "B"]).with_columns(pl.lit("x").alias("Troop"))

        network = build_grooming_network(nodes, tables.edges([("A", "B")]), covariates=None)

        assert network.covariates == ["Age", "Gender", "SleepLoc", "Troop"]

    def test_custom_column_names(self):
        nodes = pl.DataFrame({"monkey": ["A", "B"], "Age": ["Adult", "Senior"]})
        edges = pl.DataFrame({"groomer": ["A"], "groomed": ["B"]})

        network = build_grooming_network(nodes, edges, node_col="monkey",
                                         source_col="groomer", target_col="groomed",
                                         covariates=["Age"])

        assert network.number_of_edges() == 1
        assert network.node_ids() == ["A", "B"]

    def test_from_csv_files(self, tmp_path, tables):
        nodes_path = tmp_path / "nodes.csv"
        edges_path = tmp_path / "edges.csv"
        tables.attributes(["A", "B", "C"]).write_csv(nodes_path)
        tables.edges([("A", "B"), ("C", "A")]).write_csv(edges_path)

        network = build_grooming_network(nodes_path, str(edges_path))

        assert network.number_of_nodes() == 3
        assert network.number_of_edges() == 2


class TestLoadTable:

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataFormatError, match="not found"):
            load_table(tmp_path / "missing.csv", "nodes")

    def test_invalid_type(self):
        with pytest.raises(DataFormatError, match="Invalid edges type"):
            load_table(42, "edges")

    def test_dataframe_passthrough(self):
        df = pl.DataFrame({"a": [1]})
        assert load_table(df) is df


class TestSubgraphs:
    """Test induced subgraphs."""

    def test_induced_subgraph_keeps_internal_edges_only(self, four_node_network):
        sub = induced_subgraph(four_node_network, ["B", "C", "D"])

        assert sub.node_ids() == ["B", "C", "D"]
        table = sub.edge_table()
        assert set(zip(table["source"].to_list(), table["target"].to_list())) == {("B", "C"), ("C", "D")}

    def test_induced_subgraph_carries_attributes(self, four_node_network):
        sub = induced_subgraph(four_node_network, ["A", "D"])

        assert sub.number_of_edges() == 0
        assert sub.attribute_values("Gender") == ["Male", "Male"]

    def test_unknown_node(self, four_node_network):
        with pytest.raises(ValidationError, match="unknown node"):
            induced_subgraph(four_node_network, ["A", "Zed"])

    def test_subgraph_by_attribute(self, four_node_network):
        sub = subgraph_by_attribute(four_node_network, "SleepLoc", "Loc1")

        assert sub.node_ids() == ["A", "B"]
        assert sub.number_of_edges() == 2

    def test_split_by_attribute(self, four_node_network):
        parts = split_by_attribute(four_node_network, "SleepLoc")

        assert list(parts) == ["Loc1", "Loc2"]
        assert parts["Loc2"].node_ids() == ["C", "D"]
        assert parts["Loc2"].number_of_edges() == 1

    def test_split_wrong_group_count(self, four_node_network):
        with pytest.raises(ValidationError, match="expected 3"):
            split_by_attribute(four_node_network, "SleepLoc", expected_groups=3)

    def test_split_without_group_check(self, four_node_network):
        parts = split_by_attribute(four_node_network, "Age", expected_groups=None)
        assert set(parts) == {"Juvenile", "Senior"}


class TestMatrixViews:

    def test_adjacency_matrix(self, four_node_network):
        expected = np.array([
            [0, 1, 0, 0],
            [1, 0, 1, 0],
            [0, 0, 0, 1],
            [0, 0, 0, 0],
        ])
        np.testing.assert_array_equal(adjacency_matrix(four_node_network), expected)

    def test_symmetric_adjacency(self, four_node_network):
        sym = adjacency_matrix(four_node_network, symmetric=True)
        np.testing.assert_array_equal(sym, sym.T)
        assert sym.sum() == 6

    def test_symmetrize(self, four_node_network):
        undirected = symmetrize(four_node_network)

        assert not undirected.isDirected()
        assert undirected.numberOfEdges() == 3

    def test_edge_table_with_attributes(self, four_node_network):
        table = four_node_network.edge_table(with_attributes=True)

        assert {"source_Age", "target_SleepLoc"} <= set(table.columns)
        row = table.filter((pl.col("source") == "C") & (pl.col("target") == "D"))
        assert row["source_Age"].to_list() == ["Senior"]
        assert row["target_Gender"].to_list() == ["Male"]

    def test_unknown_attribute(self, four_node_network):
        with pytest.raises(ValidationError, match="Unknown node attribute"):
            four_node_network.attribute_values("Colour")

    def test_graph_info(self, four_node_network):
        info = get_graph_info(four_node_network)

        assert info["nodes"] == 4
        assert info["edges"] == 4
        assert info["density"] == pytest.approx(1 / 3)
        assert info["directed"] is True
