"""
Node centrality for grooming networks.

Four measures of which monkey is most important in the grooming network:

- degree: raw in-degree (being groomed is read as a sign of status)
- closeness: inverse of the summed directed distance to every reachable monkey
- betweenness: fraction of directed shortest paths between other monkeys
  passing through the node (networkit's Brandes implementation)
- eigenvector: dominant eigenvector of the symmetrized adjacency matrix,
  scaled to a maximum of 1
"""

from typing import List, Dict, Any, Optional, Sequence

import polars as pl
import networkit as nk
import numpy as np

from groomnet.network.construction import GroomingNetwork, adjacency_matrix
from groomnet.network.statistics import distance_matrix, connected_components
from groomnet.common.exceptions import (
    ComputationError,
    ConfigurationError,
    DegenerateGraphError,
    ValidationError
)
from groomnet.common.logging_config import get_logger, log_function_entry, LoggingTimer

logger = get_logger(__name__)

AVAILABLE_METRICS = ("degree", "closeness", "betweenness", "eigenvector")


def extract_centrality(
    network: GroomingNetwork,
    metrics: Sequence[str] = AVAILABLE_METRICS,
    restrict_to_largest: bool = False
) -> pl.DataFrame:
    """
    Calculate centrality metrics for every monkey.

    Parameters
    ----------
    network : GroomingNetwork
        Full network or induced subgraph
    metrics : Sequence[str], default all four
        Any of "degree", "closeness", "betweenness", "eigenvector"
    restrict_to_largest : bool, default False
        For eigenvector centrality on a disconnected graph, compute it on the
        largest component and give every other node 0.0 instead of failing

    Returns
    -------
    pl.DataFrame
        "node_id" plus one "{metric}_centrality" column per metric, sorted
        by node_id

    Raises
    ------
    ValidationError
        If no metric or an unknown metric is requested
    DegenerateGraphError
        If eigenvector centrality is requested on a disconnected graph
        without ``restrict_to_largest``
    ComputationError
        If a calculation fails for any other reason

    Examples
    --------
    >>> centrality_df = extract_centrality(network, ["degree", "betweenness"])
    >>> top_node(centrality_df, "degree_centrality")
    'Ada'

    Notes
    -----
    Time Complexity:
    - Degree: O(V)
    - Closeness: O(V * E) (one BFS per node)
    - Betweenness: O(V * E)
    - Eigenvector: O(V^3) dense eigendecomposition, fine for a few hundred
      monkeys
    """
    log_function_entry("extract_centrality", n_nodes=network.number_of_nodes(), metrics=metrics)

    _validate_centrality_parameters(metrics)

    data = {"node_id": network.node_ids()}

    if network.number_of_nodes() == 0:
        for metric in metrics:
            data[f"{metric}_centrality"] = []
        return pl.DataFrame(data, schema_overrides={f"{m}_centrality": pl.Float64 for m in metrics})

    with LoggingTimer("extract_centrality", {"metrics": metrics, "nodes": network.number_of_nodes()}):
        for metric in metrics:
            logger.debug("Calculating %s centrality", metric)
            try:
                values = _calculate_single_centrality(network, metric, restrict_to_largest)
            except (ComputationError, ConfigurationError):
                raise
            except Exception as e:
                raise ComputationError(
                    f"Failed to calculate {metric} centrality: {e}",
                    operation=f"calculate_{metric}",
                    error_type="numerical" if "converge" in str(e).lower() else "computation",
                    resource_info={"nodes": network.number_of_nodes(), "edges": network.number_of_edges()},
                    cause=e
                )
            data[f"{metric}_centrality"] = values.astype(float).tolist()

    result = pl.DataFrame(data).sort("node_id")
    logger.info("Centrality calculation completed: %d nodes, %d metrics", len(result), len(metrics))
    return result


def _validate_centrality_parameters(metrics: Sequence[str]) -> None:
    if not metrics:
        raise ValidationError("At least one centrality metric must be specified")

    invalid_metrics = [m for m in metrics if m not in AVAILABLE_METRICS]
    if invalid_metrics:
        raise ValidationError(
            f"Invalid centrality metrics: {invalid_metrics}. "
            f"Available metrics: {AVAILABLE_METRICS}"
        )


def _calculate_single_centrality(
    network: GroomingNetwork,
    metric: str,
    restrict_to_largest: bool
) -> np.ndarray:
    if metric == "degree":
        return degree_centrality(network)
    elif metric == "closeness":
        return closeness_centrality(network)
    elif metric == "betweenness":
        return betweenness_centrality(network)
    elif metric == "eigenvector":
        return eigenvector_centrality(network, restrict_to_largest=restrict_to_largest)
    raise ValueError(f"Unknown centrality metric: {metric}")


def degree_centrality(network: GroomingNetwork) -> np.ndarray:
    """Raw in-degree per node, indexed by networkit id."""
    graph = network.graph
    return np.array([graph.degreeIn(v) for v in range(network.number_of_nodes())], dtype=float)


def closeness_centrality(network: GroomingNetwork) -> np.ndarray:
    """
    Inverse of the summed directed distance from each node to the nodes it reaches.

    Unreachable nodes are left out of the sum; a node that reaches no other
    node scores 0.0. When the graph is not strongly connected this
    restriction changes the meaning of the scores, so it is logged.
    """
    distances = distance_matrix(network, directed=True)
    n = distances.shape[0]
    reachable = np.isfinite(distances) & ~np.eye(n, dtype=bool)

    totals = np.where(reachable, distances, 0.0).sum(axis=1)
    scores = np.zeros(n)
    np.divide(1.0, totals, out=scores, where=totals > 0)

    unreached = int((~reachable).sum()) - n
    if unreached > 0:
        logger.warning(
            "Closeness computed over reachable nodes only: %d ordered pairs have no path",
            unreached
        )

    return scores


def betweenness_centrality(network: GroomingNetwork) -> np.ndarray:
    """
    Directed shortest-path betweenness as a fraction of ordered pairs.

    networkit's raw score sums, over ordered pairs (s, t) of other nodes, the
    share of s -> t shortest paths through the node; it is divided here by
    (n - 1)(n - 2), the number of such pairs.
    """
    n = network.number_of_nodes()
    if n < 3:
        return np.zeros(n)

    algorithm = nk.centrality.Betweenness(network.graph, normalized=False)
    algorithm.run()
    return np.array(algorithm.scores(), dtype=float) / ((n - 1) * (n - 2))


def eigenvector_centrality(network: GroomingNetwork, restrict_to_largest: bool = False) -> np.ndarray:
    """
    Dominant eigenvector of the symmetrized adjacency matrix, max-scaled to 1.

    Parameters
    ----------
    restrict_to_largest : bool, default False
        If the symmetrized graph is disconnected the dominant eigenvector is
        not unique. By default that raises; with True the eigenvector of the
        largest component is used and all other nodes score 0.0.

    Raises
    ------
    DegenerateGraphError
        If the graph is disconnected and ``restrict_to_largest`` is False, or
        has no edges at all
    """
    n = network.number_of_nodes()
    components = connected_components(network, mode="weak")

    if network.number_of_edges() == 0:
        raise DegenerateGraphError(
            "Eigenvector centrality is undefined for a graph without edges",
            operation="eigenvector_centrality",
            resource_info={"nodes": n}
        )

    keep = np.ones(n, dtype=bool)
    if components["count"] > 1:
        if not restrict_to_largest:
            raise DegenerateGraphError(
                f"Eigenvector centrality requires a connected graph; found "
                f"{components['count']} components",
                operation="eigenvector_centrality",
                resource_info={"components": components["count"], "sizes": components["sizes"]}
            )
        keep = np.array(components["membership"]["component"].to_list()) == 0
        logger.warning(
            "Eigenvector centrality restricted to the largest component (%d of %d nodes)",
            int(keep.sum()), n
        )

    sym = adjacency_matrix(network, symmetric=True).astype(float)[np.ix_(keep, keep)]
    _, vectors = np.linalg.eigh(sym)
    leading = np.abs(vectors[:, -1])

    scores = np.zeros(n)
    scores[keep] = leading / leading.max()
    return scores


def get_centrality_summary(centrality_df: pl.DataFrame) -> Dict[str, Any]:
    """
    Summary statistics for each centrality column.

    Returns
    -------
    Dict[str, Any]
        Per "{metric}_centrality" column: count, mean, std, min, max, median,
        q25, q75 and the argmax node
    """
    summary = {}

    for col in [c for c in centrality_df.columns if c.endswith("_centrality")]:
        values = centrality_df[col]
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
            "q25": float(values.quantile(0.25)),
            "q75": float(values.quantile(0.75)),
            "top_node": top_node(centrality_df, col),
        }

    return summary


def identify_central_nodes(
    centrality_df: pl.DataFrame,
    metric: str = "degree_centrality",
    top_k: int = 10,
    threshold: Optional[float] = None
) -> List[Any]:
    """
    Most central monkeys by one metric, highest first.

    Ties keep node_id order.

    Raises
    ------
    ValueError
        If the metric column is missing
    """
    if metric not in centrality_df.columns:
        available_metrics = [col for col in centrality_df.columns if col.endswith("_centrality")]
        raise ValueError(
            f"Metric '{metric}' not found in DataFrame. "
            f"Available metrics: {available_metrics}"
        )

    result = centrality_df.sort(["node_id"]).sort(metric, descending=True, maintain_order=True)

    if threshold is not None:
        result = result.filter(pl.col(metric) >= threshold)

    return result.head(top_k)["node_id"].to_list()


def top_node(centrality_df: pl.DataFrame, metric: str = "degree_centrality") -> Any:
    """The argmax node of a centrality column (first node_id on ties)."""
    nodes = identify_central_nodes(centrality_df, metric, top_k=1)
    return nodes[0] if nodes else None
