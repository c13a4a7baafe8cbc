"""
End-to-end grooming network analysis.

Load the two tables, build the network, run the descriptive battery on the
full network and on each subgraph of the subgraph attribute, fit the
reference ERGMs with goodness-of-fit, fit block models for 1..K
communities and cross-tabulate the best partition against every covariate.
"""

import json
from pathlib import Path
from typing import Any, Dict

import numpy as np
import polars as pl

from groomnet.config import AnalysisConfig
from groomnet.network.construction import (
    GroomingNetwork,
    build_grooming_network,
    adjacency_matrix,
    get_graph_info
)
from groomnet.network.statistics import (
    assortativity_permutation_test,
    mixing_table,
    degree_frequency
)
from groomnet.network.summary import compare_subgraphs
from groomnet.models.ergm import fit_reference_models, compare_models, ergm_gof
from groomnet.models.sbm import (
    fit_sbm,
    select_best,
    icl_table,
    membership_table,
    crosstab_communities
)
from groomnet.common.exceptions import NetworkAnalysisError, ComputationError
from groomnet.common.logging_config import get_logger, log_function_entry, LoggingTimer

logger = get_logger(__name__)


def run_analysis(config: AnalysisConfig) -> Dict[str, Any]:
    """
    Run the whole analysis described by ``config``.

    Returns
    -------
    Dict[str, Any]
        - "graph_info": basic network information
        - "descriptives": ``compare_subgraphs`` result (full network and
          each subgraph)
        - "mixing": per covariate, the directed mixing table
        - "assortativity_tests": per covariate, permutation test results
          (absent when ``config.permutations`` is 0)
        - "ergm": per reference specification, "result" and "gof", plus
          "comparison" (absent when ERGMs are skipped)
        - "sbm": "fits", "icl", "best", "membership", "crosstabs" (absent when
          block models are skipped)

    Raises
    ------
    NetworkAnalysisError
        Any failure, with the pipeline stage added to its context
    """
    log_function_entry("run_analysis", nodes=str(config.nodes_path), edges=str(config.edges_path))

    with LoggingTimer("run_analysis"):
        network = _stage("build", build_grooming_network,
                         config.nodes_path, config.edges_path,
                         node_col=config.node_col, source_col=config.source_col,
                         target_col=config.target_col, covariates=config.covariates)

        results: Dict[str, Any] = {"graph_info": get_graph_info(network)}
        logger.info("Loaded grooming network: %d monkeys, %d directed edges",
                    network.number_of_nodes(), network.number_of_edges())

        results["descriptives"] = _stage(
            "describe", compare_subgraphs, network,
            attribute=config.subgraph_attribute,
            clique_size=config.clique_size,
            expected_groups=config.expected_groups
        )
        results["mixing"] = {a: mixing_table(network, a) for a in network.covariates}

        if config.permutations > 0:
            results["assortativity_tests"] = {
                a: _stage("assortativity", assortativity_permutation_test, network, a,
                          n_permutations=config.permutations, seed=config.seed)
                for a in network.covariates
            }

        if config.run_ergm:
            results["ergm"] = _run_ergm(network, config)

        if config.run_sbm:
            results["sbm"] = _run_sbm(network, config)

    if config.output_dir is not None:
        write_results(results, network, config.output_dir)

    return results


def _stage(name: str, func, *args, **kwargs):
    try:
        return func(*args, **kwargs)
    except NetworkAnalysisError as e:
        e.add_context(stage=name)
        raise
    except Exception as e:
        raise ComputationError(
            f"Pipeline stage '{name}' failed: {e}",
            operation=name,
            cause=e
        )


def _run_ergm(network: GroomingNetwork, config: AnalysisConfig) -> Dict[str, Any]:
    fitted = _stage("ergm", fit_reference_models, network, seed=config.seed)

    models = {}
    for name, result in fitted.items():
        gof = _stage("ergm_gof", ergm_gof, result, network,
                     n_simulations=config.gof_simulations, seed=config.seed)
        models[name] = {"result": result, "gof": gof}

    return {"models": models, "comparison": compare_models(fitted)}


def _run_sbm(network: GroomingNetwork, config: AnalysisConfig) -> Dict[str, Any]:
    fits = _stage("sbm", fit_sbm, adjacency_matrix(network), max_blocks=config.max_blocks,
                  n_init=config.sbm_restarts, seed=config.seed)
    best = select_best(fits)
    assignment = best.hard_assignment()

    return {
        "fits": fits,
        "icl": icl_table(fits),
        "best": best,
        "membership": membership_table(network, best),
        "crosstabs": {
            a: _stage("crosstab", crosstab_communities, network, assignment, a)
            for a in network.covariates
        },
    }


def write_results(results: Dict[str, Any], network: GroomingNetwork, output_dir: Path) -> Dict[str, Path]:
    """
    Write analysis tables as CSV and the scalar results as ``summary.json``.

    Returns
    -------
    Dict[str, Path]
        Output name -> written file
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}

    def _write(name: str, frame: pl.DataFrame) -> None:
        path = output_dir / f"{name}.csv"
        frame.write_csv(path)
        written[name] = path

    _write("edges", network.edge_table(with_attributes=True))
    descriptives = results["descriptives"]
    _write("descriptives", descriptives["table"])
    full = descriptives["descriptions"]["all"]
    _write("degrees", full["degree_table"])
    _write("in_degree_frequency", degree_frequency(network, "in"))
    if "centrality" in full:
        _write("centrality", full["centrality"])
    for attribute, table in results["mixing"].items():
        _write(f"mixing_{attribute}", table)

    if "ergm" in results:
        _write("ergm_comparison", results["ergm"]["comparison"])
        for name, model in results["ergm"]["models"].items():
            _write(f"ergm_{name}", model["result"].table())
            for statistic, table in model["gof"].tables.items():
                _write(f"ergm_{name}_gof_{statistic}", table)

    if "sbm" in results:
        _write("sbm_icl", results["sbm"]["icl"])
        _write("sbm_membership", results["sbm"]["membership"])
        for attribute, crosstab in results["sbm"]["crosstabs"].items():
            _write(f"sbm_crosstab_{attribute}", crosstab["table"])

    summary_path = output_dir / "summary.json"
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(summarize(results), f, indent=2, default=_json_default)
    written["summary"] = summary_path

    logger.info("Wrote %d result files to %s", len(written), output_dir)
    return written


def summarize(results: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-ready scalar view of ``run_analysis`` results."""
    descriptions = results["descriptives"]["descriptions"]
    summary: Dict[str, Any] = {
        "graph_info": results["graph_info"],
        "descriptives": {
            label: {
                key: value for key, value in description.items()
                if not isinstance(value, pl.DataFrame)
            }
            for label, description in descriptions.items()
        },
    }

    if "assortativity_tests" in results:
        summary["assortativity_tests"] = results["assortativity_tests"]

    if "ergm" in results:
        summary["ergm"] = {
            name: {
                key: value for key, value in model["result"].summary().items()
                if key != "coefficients"
            }
            for name, model in results["ergm"]["models"].items()
        }

    if "sbm" in results:
        sbm = results["sbm"]
        summary["sbm"] = {
            "best_n_blocks": sbm["best"].n_blocks,
            "icl": {fit.n_blocks: fit.icl for fit in sbm["fits"]},
            "alpha": sbm["best"].alpha,
            "pi": sbm["best"].pi,
            "crosstab_tests": {
                a: {"chi2": c["chi2"], "p_value": c["p_value"], "dof": c["dof"]}
                for a, c in sbm["crosstabs"].items()
            },
        }

    return summary


def _json_default(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, float) and not np.isfinite(value):
        return None
    return str(value)
