"""
The full descriptive battery for a grooming network.

``describe_network`` runs every statistic on one network (the full graph or
an induced subgraph); ``compare_subgraphs`` runs it per level of a covariate
and lines the scalar results up in one table.
"""

from typing import Any, Dict, Optional, Sequence

import polars as pl

from groomnet.network.construction import GroomingNetwork, split_by_attribute
from groomnet.network import statistics as stats
from groomnet.network.centrality import extract_centrality, get_centrality_summary
from groomnet.common.exceptions import DegenerateGraphError
from groomnet.common.logging_config import get_logger, log_function_entry, LoggingTimer

logger = get_logger(__name__)

DEFAULT_CLIQUE_SIZE = 6


def describe_network(
    network: GroomingNetwork,
    attributes: Optional[Sequence[str]] = None,
    clique_size: int = DEFAULT_CLIQUE_SIZE,
    include_centrality: bool = True,
    restrict_to_largest: bool = True
) -> Dict[str, Any]:
    """
    Compute the descriptive statistics of one grooming network.

    Parameters
    ----------
    network : GroomingNetwork
        Full network or induced subgraph
    attributes : Sequence[str], optional
        Covariates to compute modularity and assortativity for. Defaults to
        all of the network's covariates.
    clique_size : int, default 6
        Clique size whose count is reported
    include_centrality : bool, default True
        Compute the four centrality measures
    restrict_to_largest : bool, default True
        Passed to eigenvector centrality. The battery reports rather than
        fails, so a disconnected graph gets the largest-component restriction,
        which is logged and recorded under "eigenvector_restricted".

    Returns
    -------
    Dict[str, Any]
        Scalars under their statistic names, "degree_summary",
        "degree_table", per-attribute "modularity" and "assortativity", and
        "centrality" / "centrality_summary" when requested. Statistics that
        are undefined for the network (e.g. modularity without edges) are
        None.
    """
    attributes = list(attributes) if attributes is not None else network.covariates
    log_function_entry("describe_network", nodes=network.number_of_nodes(),
                       edges=network.number_of_edges(), attributes=attributes)

    with LoggingTimer("describe_network", {"nodes": network.number_of_nodes()}):
        strong = stats.connected_components(network, mode="strong")
        weak = stats.connected_components(network, mode="weak")
        directed_diameter = stats.diameter(network, directed=True)
        undirected_diameter = stats.diameter(network, directed=False)

        result: Dict[str, Any] = {
            "order": stats.order(network),
            "size": stats.size(network),
            "density": stats.density(network),
            "strong_components": strong["count"],
            "strong_component_sizes": strong["sizes"],
            "weak_components": weak["count"],
            "weak_component_sizes": weak["sizes"],
            "diameter_directed": directed_diameter["diameter"],
            "diameter_undirected": undirected_diameter["diameter"],
            "strongly_connected": directed_diameter["connected"],
            "clique_number": stats.clique_number(network),
            "clique_size": clique_size,
            "clique_count": stats.count_cliques(network, clique_size),
            "reciprocity": stats.reciprocity(network),
            "transitivity": stats.transitivity(network),
            "degree_summary": stats.degree_summary(network),
            "degree_table": stats.degree_table(network),
            "modularity": {},
            "assortativity": {},
        }

        for attribute in attributes:
            result["modularity"][attribute] = _defined_or_none(stats.modularity, network, attribute)
            result["assortativity"][attribute] = _defined_or_none(
                stats.assortativity_nominal, network, attribute
            )

        if include_centrality:
            metrics = ["degree", "closeness", "betweenness"]
            if network.number_of_edges() > 0:
                metrics.append("eigenvector")
            centrality = extract_centrality(network, metrics, restrict_to_largest=restrict_to_largest)
            result["centrality"] = centrality
            result["centrality_summary"] = get_centrality_summary(centrality)
            result["eigenvector_restricted"] = weak["count"] > 1

    logger.info(
        "Described network: %d nodes, %d edges, density=%.4f, reciprocity=%.4f",
        result["order"], result["size"], result["density"], result["reciprocity"]
    )
    return result


def _defined_or_none(func, network: GroomingNetwork, attribute: str) -> Optional[float]:
    try:
        return func(network, attribute)
    except DegenerateGraphError as e:
        logger.warning("Skipping %s for '%s': %s", func.__name__, attribute, e.message)
        return None


SCALAR_KEYS = [
    "order", "size", "density", "strong_components", "weak_components",
    "diameter_directed", "diameter_undirected", "clique_number",
    "clique_count", "reciprocity", "transitivity",
]


def compare_subgraphs(
    network: GroomingNetwork,
    attribute: str = "SleepLoc",
    clique_size: int = DEFAULT_CLIQUE_SIZE,
    expected_groups: Optional[int] = 2
) -> Dict[str, Any]:
    """
    Describe the full network and each induced subgraph of a covariate.

    Returns
    -------
    Dict[str, Any]
        - "descriptions": subset label ("all" or the level) -> describe_network result
        - "table": DataFrame with one row per scalar statistic and one column
          per subset
    """
    subgraphs = split_by_attribute(network, attribute, expected_groups=expected_groups)

    descriptions = {"all": describe_network(network, clique_size=clique_size)}
    for level, subgraph in subgraphs.items():
        logger.info("Describing %s=%s subgraph", attribute, level)
        others = [a for a in network.covariates if a != attribute]
        descriptions[str(level)] = describe_network(subgraph, attributes=others, clique_size=clique_size)

    table = pl.DataFrame({
        "statistic": SCALAR_KEYS,
        **{
            label: [float(description[key]) for key in SCALAR_KEYS]
            for label, description in descriptions.items()
        },
    })

    return {"descriptions": descriptions, "table": table}
