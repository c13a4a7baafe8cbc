"""Command line entry point: ``groomnet NODES EDGES [options]``."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from groomnet.config import AnalysisConfig
from groomnet.pipeline import run_analysis
from groomnet.common.exceptions import NetworkAnalysisError
from groomnet.common.logging_config import (
    setup_logging,
    configure_external_library_logging,
    get_logger
)

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="groomnet",
        description="Descriptive statistics, ERGMs and block models for a grooming network."
    )
    parser.add_argument("nodes", type=Path, help="CSV of monkey attributes (one row per monkey)")
    parser.add_argument("edges", type=Path, help="CSV of grooming observations (groomer, groomed)")
    parser.add_argument("--output-dir", type=Path, default=None,
                        help="Write CSV tables and summary.json here")
    parser.add_argument("--node-col", default="name", help="Identifier column of the nodes table")
    parser.add_argument("--source-col", default="source", help="Groomer column of the edges table")
    parser.add_argument("--target-col", default="target", help="Groomed column of the edges table")
    parser.add_argument("--subgraph-attribute", default="SleepLoc",
                        help="Covariate whose levels define the compared subgraphs")
    parser.add_argument("--clique-size", type=int, default=6, help="Clique size to count")
    parser.add_argument("--max-blocks", type=int, default=6, help="Largest SBM community count")
    parser.add_argument("--restarts", type=int, default=5, help="SBM restarts per community count")
    parser.add_argument("--gof-simulations", type=int, default=100,
                        help="Simulated networks for ERGM goodness-of-fit")
    parser.add_argument("--permutations", type=int, default=1000,
                        help="Permutations for assortativity tests (0 to skip)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--skip-ergm", action="store_true", help="Do not fit ERGMs")
    parser.add_argument("--skip-sbm", action="store_true", help="Do not fit block models")
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Overrides GROOMNET_LOG_LEVEL")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(level=args.log_level)
    configure_external_library_logging()

    try:
        config = AnalysisConfig(
            nodes_path=args.nodes,
            edges_path=args.edges,
            output_dir=args.output_dir,
            node_col=args.node_col,
            source_col=args.source_col,
            target_col=args.target_col,
            subgraph_attribute=args.subgraph_attribute,
            clique_size=args.clique_size,
            seed=args.seed,
            gof_simulations=args.gof_simulations,
            max_blocks=args.max_blocks,
            sbm_restarts=args.restarts,
            permutations=args.permutations,
            run_ergm=not args.skip_ergm,
            run_sbm=not args.skip_sbm
        )
        results = run_analysis(config)
    except NetworkAnalysisError as e:
        logger.error("Analysis failed: %s", e)
        logger.debug("Debug info: %s", e.get_debug_info())
        return 1

    info = results["graph_info"]
    print(f"{info['nodes']} monkeys, {info['edges']} grooming edges, density {info['density']:.4f}")
    print(results["descriptives"]["table"])
    if "ergm" in results:
        print(results["ergm"]["comparison"])
    if "sbm" in results:
        print(f"Best block model: {results['sbm']['best'].n_blocks} communities")
    return 0


if __name__ == "__main__":
    sys.exit(main())
