"""
Graph construction for grooming networks.

This module turns a per-monkey attribute table and a grooming edge list into
a simple directed networkit graph with the monkeys' covariates attached, and
provides the derived views every statistic is computed on: induced subgraphs,
the symmetrized (undirected) graph and the adjacency matrix.

Repeated observations of the same ordered (groomer, groomed) pair collapse to
a single edge; the number of collapsed observations is logged and kept on the
resulting ``GroomingNetwork``. Self-grooming rows are dropped so the graph is
loop-free and density = |E| / (n (n - 1)) holds.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union, Tuple, Optional, List, Dict, Any, Iterable, Sequence

import polars as pl
import networkit as nk
import numpy as np

from groomnet.common.id_mapper import IDMapper
from groomnet.common.exceptions import (
    GraphConstructionError,
    ValidationError,
    DataFormatError
)
from groomnet.common.validators import validate_edgelist_dataframe, validate_attribute_dataframe
from groomnet.common.logging_config import get_logger, log_function_entry, LoggingTimer

logger = get_logger(__name__)

DEFAULT_COVARIATES = ("Age", "Gender", "SleepLoc")

TableInput = Union[str, Path, pl.DataFrame]


@dataclass
class GroomingNetwork:
    """
    A simple directed grooming graph with per-monkey covariates.

    Attributes
    ----------
    graph : nk.Graph
        Directed, unweighted, loop-free networkit graph
    id_mapper : IDMapper
        Monkey name <-> networkit node id
    attributes : pl.DataFrame
        Attribute table, row ``i`` describing networkit node ``i``
    node_col : str
        Name of the identifier column in ``attributes``
    n_observations : int
        Grooming rows read, before self-loop removal and duplicate collapsing
    n_duplicates : int
        Rows collapsed into an already present edge
    n_self_loops : int
        Self-grooming rows dropped
    """

    graph: nk.Graph
    id_mapper: IDMapper
    attributes: pl.DataFrame
    node_col: str = "name"
    n_observations: int = 0
    n_duplicates: int = 0
    n_self_loops: int = 0

    @property
    def covariates(self) -> List[str]:
        """Attribute columns other than the identifier column."""
        return [col for col in self.attributes.columns if col != self.node_col]

    def number_of_nodes(self) -> int:
        return self.graph.numberOfNodes()

    def number_of_edges(self) -> int:
        return self.graph.numberOfEdges()

    def node_ids(self) -> List[Any]:
        """Monkey names ordered by networkit node id."""
        return self.attributes[self.node_col].to_list()

    def attribute_values(self, attribute: str) -> List[Any]:
        """
        Values of a covariate ordered by networkit node id.

        Raises
        ------
        ValidationError
            If the network carries no such covariate
        """
        if attribute not in self.covariates:
            raise ValidationError(
                f"Unknown node attribute '{attribute}'",
                field="attribute",
                value=attribute,
                details={"available": self.covariates}
            )
        return self.attributes[attribute].to_list()

    def attribute_levels(self, attribute: str) -> List[Any]:
        """Sorted distinct values of a covariate."""
        return sorted(set(self.attribute_values(attribute)), key=str)

    def edges(self) -> List[Tuple[int, int]]:
        """Edges as (source, target) networkit id pairs."""
        return [(int(u), int(v)) for u, v in self.graph.iterEdges()]

    def edge_table(self, with_attributes: bool = False) -> pl.DataFrame:
        """
        Edges as a DataFrame of monkey names.

        With ``with_attributes`` every covariate is joined on both ends as
        ``source_<covariate>`` and ``target_<covariate>``.
        """
        names = self.node_ids()
        pairs = self.edges()
        edges = pl.DataFrame(
            {"source": [names[u] for u, _ in pairs], "target": [names[v] for _, v in pairs]},
            schema={"source": self.attributes[self.node_col].dtype,
                    "target": self.attributes[self.node_col].dtype}
        )
        if not with_attributes:
            return edges

        for end in ("source", "target"):
            end_attrs = self.attributes.rename(
                {self.node_col: end, **{col: f"{end}_{col}" for col in self.covariates}}
            )
            edges = edges.join(end_attrs, on=end, how="left")
        return edges


def load_table(table: TableInput, kind: str = "table") -> pl.DataFrame:
    """
    Load a CSV file or pass a DataFrame through unchanged.

    Parameters
    ----------
    table : Union[str, Path, pl.DataFrame]
        Path to a CSV file with a header row, or a DataFrame
    kind : str
        Label used in log and error messages ("nodes", "edges")

    Raises
    ------
    DataFormatError
        If the file is missing or cannot be parsed, or the input type is wrong
    """
    if isinstance(table, pl.DataFrame):
        return table

    if isinstance(table, (str, Path)):
        file_path = Path(table)
        if not file_path.exists():
            raise DataFormatError(
                f"{kind} file not found: {file_path}",
                format_type="CSV",
                file_path=str(file_path)
            )

        logger.debug("Loading %s from file: %s", kind, file_path)
        try:
            return pl.read_csv(file_path)
        except (pl.exceptions.PolarsError, OSError) as e:
            raise DataFormatError(
                f"Failed to parse {kind} CSV file: {e}",
                format_type="CSV",
                file_path=str(file_path),
                cause=e
            )

    raise DataFormatError(
        f"Invalid {kind} type: {type(table)}. Expected a path or pl.DataFrame",
        format_type="DataFrame"
    )


def build_grooming_network(
    nodes: TableInput,
    edges: TableInput,
    node_col: str = "name",
    source_col: str = "source",
    target_col: str = "target",
    covariates: Optional[Sequence[str]] = DEFAULT_COVARIATES,
    allow_self_loops: bool = False
) -> GroomingNetwork:
    """
    Build a grooming network from an attribute table and an edge list.

    Parameters
    ----------
    nodes : Union[str, Path, pl.DataFrame]
        Attribute table, one row per monkey
    edges : Union[str, Path, pl.DataFrame]
        Edge list, one row per grooming observation (groomer -> groomed)
    node_col : str, default "name"
        Identifier column of the attribute table
    source_col, target_col : str
        Groomer and groomed columns of the edge list
    covariates : Sequence[str], optional
        Covariate columns to attach. Defaults to Age, Gender and SleepLoc;
        None attaches every non-identifier column.
    allow_self_loops : bool, default False
        Keep self-grooming rows. They are dropped by default because the
        density and reciprocity definitions assume a loop-free graph.

    Returns
    -------
    GroomingNetwork
        Directed graph, ID mapping and aligned attribute table

    Raises
    ------
    ValidationError
        If a monkey name is duplicated, a covariate column is missing or null,
        or an edge references a monkey missing from the attribute table
    DataFormatError
        If an input file cannot be read
    GraphConstructionError
        If networkit graph construction fails

    Examples
    --------
    >>> nodes = pl.DataFrame({
    ...     "name": ["A", "B", "C"],
    ...     "Age": ["Juvenile", "Senior", "Senior"],
    ...     "Gender": ["Male", "Female", "Female"],
    ...     "SleepLoc": ["Loc1", "Loc1", "Loc2"],
    ... })
    >>> edges = pl.DataFrame({"source": ["A", "B", "A"], "target": ["B", "C", "B"]})
    >>> network = build_grooming_network(nodes, edges)
    >>> network.number_of_edges()
    2
    >>> network.n_duplicates
    1
    """
    log_function_entry("build_grooming_network", node_col=node_col,
                       source_col=source_col, target_col=target_col)

    with LoggingTimer("build_grooming_network"):
        try:
            node_df = load_table(nodes, "nodes")
            edge_df = load_table(edges, "edges")

            covariate_cols = _resolve_covariates(node_df, node_col, covariates)
            validate_attribute_dataframe(node_df, id_col=node_col, required_cols=covariate_cols)
            validate_edgelist_dataframe(edge_df, source_col=source_col, target_col=target_col)

            attributes = node_df.select([node_col] + covariate_cols).sort(node_col)
            id_mapper = IDMapper.from_ids(attributes[node_col].to_list())

            _check_edge_endpoints(edge_df, id_mapper, source_col, target_col)

            pairs, n_self_loops, n_duplicates = _collapse_observations(
                edge_df, source_col, target_col, allow_self_loops
            )

            graph = _construct_graph(id_mapper, pairs)

            logger.info(
                "Grooming network built: %d nodes, %d edges from %d observations "
                "(%d duplicates collapsed, %d self-loops dropped)",
                graph.numberOfNodes(), graph.numberOfEdges(), len(edge_df),
                n_duplicates, n_self_loops
            )

            return GroomingNetwork(
                graph=graph,
                id_mapper=id_mapper,
                attributes=attributes,
                node_col=node_col,
                n_observations=len(edge_df),
                n_duplicates=n_duplicates,
                n_self_loops=n_self_loops
            )

        except (ValidationError, GraphConstructionError):
            raise
        except Exception as e:
            raise GraphConstructionError(
                f"Unexpected error during graph construction: {e}",
                operation="build_grooming_network",
                cause=e
            )


def _resolve_covariates(
    node_df: pl.DataFrame,
    node_col: str,
    covariates: Optional[Sequence[str]]
) -> List[str]:
    if covariates is None:
        return [col for col in node_df.columns if col != node_col]
    return list(covariates)


def _check_edge_endpoints(
    edge_df: pl.DataFrame,
    id_mapper: IDMapper,
    source_col: str,
    target_col: str
) -> None:
    """Reject the dataset if any observation names an unknown monkey."""
    unknown = set()
    for col in (source_col, target_col):
        unknown.update(v for v in edge_df[col].unique().to_list() if v not in id_mapper)

    if unknown:
        unknown_sorted = sorted(unknown, key=str)
        raise ValidationError(
            f"Edge list references {len(unknown)} unknown node(s): {unknown_sorted[:10]}",
            field="edges",
            details={"unknown_count": len(unknown)}
        )


def _collapse_observations(
    edge_df: pl.DataFrame,
    source_col: str,
    target_col: str,
    allow_self_loops: bool
) -> Tuple[pl.DataFrame, int, int]:
    """Drop self-loops and collapse repeated ordered pairs to one edge."""
    pairs = edge_df.select([source_col, target_col])

    n_self_loops = 0
    if not allow_self_loops:
        before = len(pairs)
        pairs = pairs.filter(pl.col(source_col) != pl.col(target_col))
        n_self_loops = before - len(pairs)
        if n_self_loops > 0:
            logger.warning("Dropped %d self-grooming observations", n_self_loops)

    before = len(pairs)
    pairs = pairs.unique(subset=[source_col, target_col], keep="first", maintain_order=True)
    n_duplicates = before - len(pairs)
    if n_duplicates > 0:
        logger.info("Collapsed %d repeated grooming observations into existing edges", n_duplicates)

    return pairs.rename({source_col: "source", target_col: "target"}), n_self_loops, n_duplicates


def _construct_graph(id_mapper: IDMapper, pairs: pl.DataFrame) -> nk.Graph:
    """Create the directed networkit graph and add the collapsed edges."""
    try:
        graph = nk.Graph(id_mapper.size(), weighted=False, directed=True)
        for source, target in zip(pairs["source"].to_list(), pairs["target"].to_list()):
            graph.addEdge(id_mapper.get_internal(source), id_mapper.get_internal(target))
        return graph
    except Exception as e:
        raise GraphConstructionError(
            f"Failed to add edges to graph: {e}",
            graph_type="directed",
            node_count=id_mapper.size(),
            edge_count=len(pairs),
            operation="add_edges",
            cause=e
        )


def induced_subgraph(network: GroomingNetwork, nodes: Iterable[Any]) -> GroomingNetwork:
    """
    Restrict a network to a subset of monkeys.

    The result contains exactly the edges whose endpoints are both in the
    subset; node ids are renumbered consecutively in the original order.

    Parameters
    ----------
    network : GroomingNetwork
        Network to restrict
    nodes : Iterable[Any]
        Monkey names to keep

    Raises
    ------
    ValidationError
        If a name is not part of the network
    """
    keep = set(nodes)
    unknown = [name for name in keep if not network.id_mapper.has_original(name)]
    if unknown:
        raise ValidationError(
            f"Subgraph references {len(unknown)} unknown node(s): {sorted(unknown, key=str)[:10]}",
            field="nodes"
        )

    old_ids = sorted(network.id_mapper.get_internal_batch(list(keep)))
    kept = set(old_ids)
    mask = [i in kept for i in range(network.number_of_nodes())]
    remap = {old: new for new, old in enumerate(old_ids)}

    attributes = network.attributes.filter(pl.Series(mask, dtype=pl.Boolean))
    id_mapper = IDMapper.from_ids(attributes[network.node_col].to_list())

    graph = nk.Graph(len(old_ids), weighted=False, directed=True)
    for u, v in network.edges():
        if u in remap and v in remap:
            graph.addEdge(remap[u], remap[v])

    logger.debug("Induced subgraph: %d of %d nodes, %d of %d edges",
                 graph.numberOfNodes(), network.number_of_nodes(),
                 graph.numberOfEdges(), network.number_of_edges())

    return GroomingNetwork(graph=graph, id_mapper=id_mapper, attributes=attributes,
                           node_col=network.node_col)


def subgraph_by_attribute(network: GroomingNetwork, attribute: str, value: Any) -> GroomingNetwork:
    """Induced subgraph on the monkeys whose ``attribute`` equals ``value``."""
    names = network.node_ids()
    values = network.attribute_values(attribute)
    return induced_subgraph(network, [n for n, v in zip(names, values) if v == value])


def split_by_attribute(
    network: GroomingNetwork,
    attribute: str = "SleepLoc",
    expected_groups: Optional[int] = 2
) -> Dict[Any, GroomingNetwork]:
    """
    Partition a network into one induced subgraph per level of an attribute.

    Parameters
    ----------
    network : GroomingNetwork
        Network to split
    attribute : str, default "SleepLoc"
        Categorical covariate defining the partition
    expected_groups : int, optional, default 2
        Number of non-empty groups the attribute must produce; None disables
        the check

    Returns
    -------
    Dict[Any, GroomingNetwork]
        Level -> induced subgraph, in sorted level order

    Raises
    ------
    ValidationError
        If the attribute does not yield ``expected_groups`` groups
    """
    levels = network.attribute_levels(attribute)
    if expected_groups is not None and len(levels) != expected_groups:
        raise ValidationError(
            f"Attribute '{attribute}' splits nodes into {len(levels)} groups, "
            f"expected {expected_groups}",
            field=attribute,
            details={"levels": levels}
        )

    return {level: subgraph_by_attribute(network, attribute, level) for level in levels}


def symmetrize(network: GroomingNetwork) -> nk.Graph:
    """
    Undirected collapse of the grooming graph.

    An undirected edge {u, v} is present if either u -> v or v -> u was
    observed. Node ids are preserved.
    """
    undirected = nk.Graph(network.number_of_nodes(), weighted=False, directed=False)
    for u, v in network.edges():
        if not undirected.hasEdge(u, v):
            undirected.addEdge(u, v)
    return undirected


def adjacency_matrix(network: GroomingNetwork, symmetric: bool = False) -> np.ndarray:
    """
    Dense 0/1 adjacency matrix, rows indexed by source.

    Parameters
    ----------
    network : GroomingNetwork
        Network to convert
    symmetric : bool, default False
        Return the adjacency matrix of the symmetrized graph instead
    """
    n = network.number_of_nodes()
    matrix = np.zeros((n, n), dtype=np.int64)
    for u, v in network.edges():
        matrix[u, v] = 1
    if symmetric:
        matrix = np.maximum(matrix, matrix.T)
    return matrix


def get_graph_info(network: GroomingNetwork) -> Dict[str, Any]:
    """
    Basic information about a grooming network.

    Returns
    -------
    Dict[str, Any]
        nodes, edges, density, directed, observations, duplicates,
        self_loops and covariates
    """
    n = network.number_of_nodes()
    m = network.number_of_edges()
    return {
        "nodes": n,
        "edges": m,
        "density": m / (n * (n - 1)) if n > 1 else 0.0,
        "directed": network.graph.isDirected(),
        "observations": network.n_observations,
        "duplicates": network.n_duplicates,
        "self_loops": network.n_self_loops,
        "covariates": network.covariates,
    }
