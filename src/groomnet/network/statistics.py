"""
Descriptive statistics for grooming networks.

Every function takes a ``GroomingNetwork``, either the full network or an
induced subgraph, and applies the same algorithm to both. Directed measures
work on the grooming graph as observed; diameter-on-undirected, cliques,
modularity and transitivity work on its symmetrized collapse.

Component structure and maximal cliques come from networkit, shortest-path
distances from scipy's csgraph routines. The closed-form ratios (density,
reciprocity, transitivity, modularity, assortativity) are evaluated with
numpy on the adjacency matrix.
"""

from typing import List, Dict, Any, Optional, Sequence, Union, Tuple

import polars as pl
import networkit as nk
import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import shortest_path

from groomnet.network.construction import GroomingNetwork, symmetrize, adjacency_matrix
from groomnet.common.exceptions import (
    DegenerateGraphError,
    ValidationError,
    validate_parameter,
    require_positive
)
from groomnet.common.logging_config import get_logger, log_function_entry, LoggingTimer

logger = get_logger(__name__)

COMPONENT_MODES = ["strong", "weak"]
RECIPROCITY_MODES = ["dyad", "edge"]
TRANSITIVITY_METHODS = ["triples", "global"]

Partition = Union[str, Sequence[Any], Dict[Any, Any]]


def order(network: GroomingNetwork) -> int:
    """Number of monkeys."""
    return network.number_of_nodes()


def size(network: GroomingNetwork) -> int:
    """Number of distinct directed grooming edges."""
    return network.number_of_edges()


def density(network: GroomingNetwork) -> float:
    """
    Fraction of possible directed edges present: |E| / (n (n - 1)).

    Returns 0.0 for networks with fewer than two nodes.
    """
    n = order(network)
    if n < 2:
        return 0.0
    return size(network) / (n * (n - 1))


def connected_components(network: GroomingNetwork, mode: str = "strong") -> Dict[str, Any]:
    """
    Strong or weak connected components.

    Parameters
    ----------
    network : GroomingNetwork
        Network to decompose
    mode : str, default "strong"
        "strong" for mutual directed reachability, "weak" for reachability
        ignoring edge direction

    Returns
    -------
    Dict[str, Any]
        - "count": number of components
        - "sizes": component sizes, largest first
        - "membership": DataFrame with node_id and component index, where
          component 0 is the largest

    Examples
    --------
    >>> result = connected_components(network, mode="weak")
    >>> result["count"]
    1
    """
    validate_parameter(mode, COMPONENT_MODES, "mode", "connected_components")
    log_function_entry("connected_components", mode=mode, nodes=order(network))

    if order(network) == 0:
        return {"count": 0, "sizes": [], "membership": _membership_frame(network, [])}

    if mode == "strong":
        algorithm = nk.components.StronglyConnectedComponents(network.graph)
    else:
        algorithm = nk.components.WeaklyConnectedComponents(network.graph)
    algorithm.run()

    components = sorted(
        (sorted(int(v) for v in component) for component in algorithm.getComponents()),
        key=lambda c: (-len(c), c[0])
    )

    labels = [0] * order(network)
    for index, component in enumerate(components):
        for v in component:
            labels[v] = index

    logger.debug("%s components: %d", mode, len(components))

    return {
        "count": len(components),
        "sizes": [len(c) for c in components],
        "membership": _membership_frame(network, labels),
    }


def _membership_frame(network: GroomingNetwork, labels: List[int]) -> pl.DataFrame:
    return pl.DataFrame(
        {"node_id": network.node_ids(), "component": labels},
        schema_overrides={"component": pl.Int64}
    )


def distance_matrix(network: GroomingNetwork, directed: bool = True) -> np.ndarray:
    """
    All-pairs shortest path lengths in hops.

    Entry [i, j] is the length of the shortest path from node i to node j;
    unreachable pairs are ``np.inf``. With ``directed=False`` edges are
    traversed in both directions (the symmetrized graph).
    """
    n = order(network)
    if n == 0:
        return np.zeros((0, 0))
    graph = csr_matrix(adjacency_matrix(network).astype(float))
    return shortest_path(graph, method="D", directed=directed, unweighted=True)


def diameter(network: GroomingNetwork, directed: bool = True) -> Dict[str, Any]:
    """
    Longest shortest path over all ordered node pairs.

    Pairs with no connecting path are excluded from the maximum. Whether that
    happened is reported in the result rather than being hidden.

    Parameters
    ----------
    network : GroomingNetwork
        Network to measure
    directed : bool, default True
        Follow edge direction; False measures the symmetrized graph

    Returns
    -------
    Dict[str, Any]
        - "diameter": longest finite shortest path (0 if no pair is reachable)
        - "connected": True if every ordered pair is reachable
        - "reachable_pairs": ordered pairs with a path
        - "total_pairs": n (n - 1)
    """
    log_function_entry("diameter", directed=directed, nodes=order(network))

    n = order(network)
    total_pairs = n * (n - 1)

    with LoggingTimer("diameter", {"nodes": n, "directed": directed}):
        distances = distance_matrix(network, directed=directed)

    off_diagonal = ~np.eye(n, dtype=bool)
    finite = np.isfinite(distances) & off_diagonal
    reachable_pairs = int(finite.sum())
    value = int(distances[finite].max()) if reachable_pairs > 0 else 0
    connected = reachable_pairs == total_pairs

    if not connected:
        logger.warning(
            "Graph is not %sconnected: diameter computed over %d of %d reachable pairs",
            "strongly " if directed else "", reachable_pairs, total_pairs
        )

    return {
        "diameter": value,
        "connected": connected,
        "reachable_pairs": reachable_pairs,
        "total_pairs": total_pairs,
    }


def maximal_cliques(network: GroomingNetwork) -> List[List[Any]]:
    """
    Maximal cliques of the symmetrized graph, as lists of monkey names.

    Isolated nodes are not reported as cliques.
    """
    if order(network) == 0:
        return []

    algorithm = nk.clique.MaximalCliques(symmetrize(network))
    algorithm.run()

    cliques = [
        sorted(network.id_mapper.get_original_batch(clique), key=str)
        for clique in algorithm.getCliques()
        if len(clique) > 1
    ]
    return sorted(cliques, key=lambda c: (-len(c), [str(x) for x in c]))


def clique_number(network: GroomingNetwork) -> int:
    """
    Size of the largest clique of the symmetrized graph.

    Returns 1 for a graph with nodes but no edges and 0 for an empty graph.
    """
    if order(network) == 0:
        return 0
    cliques = maximal_cliques(network)
    return max((len(c) for c in cliques), default=1)


def count_cliques(network: GroomingNetwork, clique_size: int, maximal_only: bool = False) -> int:
    """
    Count cliques with exactly ``clique_size`` nodes in the symmetrized graph.

    Parameters
    ----------
    network : GroomingNetwork
        Network to search
    clique_size : int
        Number of nodes per clique
    maximal_only : bool, default False
        Count only maximal cliques of that size. By default every complete
        subgraph of that size is counted, including those contained in a
        larger clique.

    Examples
    --------
    >>> count_cliques(network, 6)
    1
    """
    require_positive(clique_size, "clique_size")

    neighbours = _undirected_neighbours(network)

    if maximal_only:
        if clique_size == 1:
            return sum(1 for adj in neighbours if not adj)
        return sum(1 for c in maximal_cliques(network) if len(c) == clique_size)

    higher = [{u for u in adj if u > v} for v, adj in enumerate(neighbours)]

    def extend(candidates: set, depth: int) -> int:
        if depth == clique_size:
            return 1
        return sum(extend(candidates & higher[w], depth + 1) for w in candidates)

    with LoggingTimer("count_cliques", {"clique_size": clique_size}):
        return sum(extend(higher[v], 1) for v in range(order(network)))


def _undirected_neighbours(network: GroomingNetwork) -> List[set]:
    neighbours = [set() for _ in range(order(network))]
    for u, v in network.edges():
        neighbours[u].add(v)
        neighbours[v].add(u)
    return neighbours


def resolve_partition(network: GroomingNetwork, partition: Partition) -> List[Any]:
    """
    Turn a partition description into one label per node (by networkit id).

    Parameters
    ----------
    partition : str, sequence or dict
        A covariate name, a sequence of labels aligned with node ids, or a
        mapping from monkey name to label

    Raises
    ------
    ValidationError
        If the labels do not cover every node
    """
    if isinstance(partition, str):
        return network.attribute_values(partition)

    if isinstance(partition, dict):
        missing = [name for name in network.node_ids() if name not in partition]
        if missing:
            raise ValidationError(
                f"Partition has no label for {len(missing)} node(s)",
                field="partition",
                details={"missing": missing[:10]}
            )
        return [partition[name] for name in network.node_ids()]

    labels = list(partition)
    if len(labels) != order(network):
        raise ValidationError(
            f"Partition has {len(labels)} labels for {order(network)} nodes",
            field="partition"
        )
    return labels


def _label_indices(labels: Sequence[Any]) -> Tuple[List[Any], np.ndarray]:
    levels = sorted(set(labels), key=str)
    index = {level: i for i, level in enumerate(levels)}
    return levels, np.array([index[label] for label in labels], dtype=np.int64)


def modularity(network: GroomingNetwork, partition: Partition) -> float:
    """
    Newman modularity of a node partition on the undirected collapse.

    Q = sum_c [ L_c / m - (d_c / 2m)^2 ], where m is the number of undirected
    edges, L_c the number of edges inside category c and d_c the summed
    degree of its nodes. Q lies in [-1, 1]; 0 means no more within-category
    edges than the configuration model expects.

    Parameters
    ----------
    network : GroomingNetwork
        Network to score
    partition : str, sequence or dict
        Covariate name, labels aligned with node ids, or name -> label mapping

    Raises
    ------
    DegenerateGraphError
        If the graph has no edges (modularity is undefined)
    """
    labels = resolve_partition(network, partition)
    _, codes = _label_indices(labels)

    sym = adjacency_matrix(network, symmetric=True)
    two_m = float(sym.sum())
    if two_m == 0:
        raise DegenerateGraphError(
            "Modularity is undefined for a graph without edges",
            operation="modularity",
            resource_info={"nodes": order(network)}
        )

    n_categories = int(codes.max()) + 1 if len(codes) else 0
    membership = np.zeros((len(codes), n_categories))
    membership[np.arange(len(codes)), codes] = 1.0

    within = np.einsum("ic,ij,jc->", membership, sym, membership) / two_m
    degree_share = membership.T @ sym.sum(axis=1) / two_m
    return float(within - np.sum(degree_share ** 2))


def degree_table(network: GroomingNetwork) -> pl.DataFrame:
    """
    In- and out-degree per monkey.

    Returns
    -------
    pl.DataFrame
        Columns node_id, in_degree, out_degree, ordered by networkit id
    """
    graph = network.graph
    nodes = range(order(network))
    return pl.DataFrame(
        {
            "node_id": network.node_ids(),
            "in_degree": [graph.degreeIn(v) for v in nodes],
            "out_degree": [graph.degreeOut(v) for v in nodes],
        },
        schema_overrides={"in_degree": pl.Int64, "out_degree": pl.Int64}
    )


def degree_summary(network: GroomingNetwork) -> Dict[str, Dict[str, float]]:
    """
    Summary statistics of the in- and out-degree distributions.

    Returns
    -------
    Dict[str, Dict[str, float]]
        For "in_degree" and "out_degree": count, mean, std, min, max,
        median, q25 and q75
    """
    table = degree_table(network)
    summary = {}

    for col in ("in_degree", "out_degree"):
        values = table[col]
        if len(values) == 0:
            summary[col] = {"count": 0}
            continue
        summary[col] = {
            "count": len(values),
            "mean": float(values.mean()),
            "std": float(values.std()) if len(values) > 1 else 0.0,
            "min": float(values.min()),
            "max": float(values.max()),
            "median": float(values.median()),
            "q25": float(values.quantile(0.25, interpolation="linear")),
            "q75": float(values.quantile(0.75, interpolation="linear")),
        }

    return summary


def degree_frequency(network: GroomingNetwork, direction: str = "in") -> pl.DataFrame:
    """
    Histogram-ready degree frequencies.

    Parameters
    ----------
    direction : str, default "in"
        "in" or "out"

    Returns
    -------
    pl.DataFrame
        Columns degree and count, sorted by degree
    """
    validate_parameter(direction, ["in", "out"], "direction", "degree_frequency")
    col = f"{direction}_degree"
    return (
        degree_table(network)
        .group_by(col)
        .agg(pl.len().alias("count"))
        .rename({col: "degree"})
        .with_columns(pl.col("count").cast(pl.Int64))
        .sort("degree")
    )


def reciprocity(network: GroomingNetwork, mode: str = "dyad") -> float:
    """
    Share of grooming ties that are returned.

    Parameters
    ----------
    mode : str, default "dyad"
        "dyad": mutual dyads / dyads with at least one edge.
        "edge": edges whose reverse is present / all edges.

    Returns
    -------
    float
        Value in [0, 1]; 0.0 for a graph without edges

    Examples
    --------
    A->B, B->A, B->C, C->D: one mutual dyad out of three connected dyads.

    >>> reciprocity(network)
    0.3333333333333333
    """
    validate_parameter(mode, RECIPROCITY_MODES, "mode", "reciprocity")

    adjacency = adjacency_matrix(network)
    mutual_edges = int((adjacency * adjacency.T).sum())

    if mode == "edge":
        total = int(adjacency.sum())
        return mutual_edges / total if total else 0.0

    connected_dyads = int(np.triu(np.maximum(adjacency, adjacency.T), k=1).sum())
    return (mutual_edges / 2) / connected_dyads if connected_dyads else 0.0


def transitivity(network: GroomingNetwork, method: str = "triples") -> float:
    """
    Tendency of two-edge triads to close into triangles (symmetrized graph).

    Parameters
    ----------
    method : str, default "triples"
        "triples": among unordered node triples with at least two of the
        three undirected edges present, the fraction with all three.
        "global": 3 x triangles / connected triples counted per centre node
        (the classic global clustering coefficient).

    Returns
    -------
    float
        Value in [0, 1]; 0.0 when there is no triple with two edges
    """
    validate_parameter(method, TRANSITIVITY_METHODS, "method", "transitivity")

    sym = adjacency_matrix(network, symmetric=True)
    degrees = sym.sum(axis=1)
    triangles = float(np.trace(sym @ sym @ sym)) / 6.0
    two_paths = float(np.sum(degrees * (degrees - 1)) / 2.0)

    if method == "global":
        return 3.0 * triangles / two_paths if two_paths else 0.0

    # each open triple has exactly one centre, each triangle three
    triples_with_two_edges = two_paths - 2.0 * triangles
    return triangles / triples_with_two_edges if triples_with_two_edges else 0.0


def mixing_matrix(
    network: GroomingNetwork,
    attribute: Partition,
    directed: bool = True
) -> Tuple[List[Any], np.ndarray]:
    """
    Edge counts between categories.

    Parameters
    ----------
    attribute : str, sequence or dict
        Covariate name or explicit labels
    directed : bool, default True
        Count directed edges (row = groomer category). With False each
        undirected edge of the symmetrized graph counts once in each
        direction, giving a symmetric matrix.

    Returns
    -------
    levels : List[Any]
        Category labels in row/column order
    matrix : np.ndarray
        Category-by-category edge counts
    """
    labels = resolve_partition(network, attribute)
    levels, codes = _label_indices(labels)

    adjacency = adjacency_matrix(network, symmetric=not directed)
    membership = np.zeros((len(codes), len(levels)), dtype=np.int64)
    membership[np.arange(len(codes)), codes] = 1

    return levels, membership.T @ adjacency @ membership


def mixing_table(network: GroomingNetwork, attribute: str, directed: bool = True) -> pl.DataFrame:
    """Mixing matrix as a DataFrame with one column per target category."""
    levels, matrix = mixing_matrix(network, attribute, directed=directed)
    data = {"source_category": [str(level) for level in levels]}
    for j, level in enumerate(levels):
        data[str(level)] = matrix[:, j].tolist()
    return pl.DataFrame(data)


def assortativity_nominal(
    network: GroomingNetwork,
    attribute: Partition,
    directed: bool = True
) -> float:
    """
    Newman's nominal assortativity coefficient.

    r = (sum_i e_ii - sum_i a_i b_i) / (1 - sum_i a_i b_i), with e the
    normalized mixing matrix and a, b its row and column sums. r is 1 when
    every edge joins same-category monkeys and 0 under random mixing.

    Parameters
    ----------
    attribute : str, sequence or dict
        Covariate name or explicit labels
    directed : bool, default True
        Use the directed edge set; False uses the symmetrized graph

    Raises
    ------
    DegenerateGraphError
        If the graph has no edges

    Notes
    -----
    If all edges fall within a single category the denominator is zero; the
    coefficient is then reported as 0.0 with a warning.
    """
    _, matrix = mixing_matrix(network, attribute, directed=directed)
    total = float(matrix.sum())
    if total == 0:
        raise DegenerateGraphError(
            "Assortativity is undefined for a graph without edges",
            operation="assortativity_nominal",
            resource_info={"nodes": order(network)}
        )

    e = matrix / total
    expected = float(e.sum(axis=1) @ e.sum(axis=0))
    if np.isclose(expected, 1.0):
        logger.warning("Assortativity undefined: all edges lie within one category; reporting 0.0")
        return 0.0

    return float((np.trace(e) - expected) / (1.0 - expected))


def assortativity_permutation_test(
    network: GroomingNetwork,
    attribute: str,
    n_permutations: int = 1000,
    directed: bool = True,
    seed: Optional[int] = 42
) -> Dict[str, Any]:
    """
    Compare observed nominal assortativity with a label-permutation null.

    Node labels are shuffled ``n_permutations`` times, keeping category sizes
    and graph structure fixed. This is the permutation analogue of an ERGM
    nodematch term.

    Returns
    -------
    Dict[str, Any]
        observed, null_mean, null_std, z_score and two-sided p_value
        ((extreme + 1) / (n_permutations + 1))
    """
    require_positive(n_permutations, "n_permutations")
    log_function_entry("assortativity_permutation_test", attribute=attribute,
                       n_permutations=n_permutations, seed=seed)

    labels = network.attribute_values(attribute)
    observed = assortativity_nominal(network, labels, directed=directed)

    rng = np.random.default_rng(seed)
    label_array = np.array(labels, dtype=object)
    null = np.empty(n_permutations)

    with LoggingTimer("assortativity_permutation_test", {"permutations": n_permutations}):
        for i in range(n_permutations):
            null[i] = assortativity_nominal(network, list(rng.permutation(label_array)), directed=directed)

    null_std = float(null.std())
    extreme = int(np.sum(np.abs(null) >= abs(observed) - 1e-12))

    return {
        "attribute": attribute,
        "observed": observed,
        "null_mean": float(null.mean()),
        "null_std": null_std,
        "z_score": (observed - float(null.mean())) / null_std if null_std > 0 else 0.0,
        "p_value": (extreme + 1) / (n_permutations + 1),
        "n_permutations": n_permutations,
    }
