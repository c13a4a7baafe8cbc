"""
groomnet - analysis of directed primate grooming networks.

Builds a directed grooming graph from a monkey attribute table and an edge
list of grooming observations, computes descriptive network statistics on
it and its subgraphs, and fits exponential random graph models and
stochastic block models with monkey covariates.

Modules:
    common: Exceptions, logging, ID mapping and input validation
    network: Graph construction, descriptive statistics and centrality
    models: ERGM terms, fitting and goodness-of-fit; stochastic block models
    pipeline: The end-to-end analysis behind the ``groomnet`` command
"""

__version__ = "0.1.0"

from .network import (
    GroomingNetwork,
    build_grooming_network,
    describe_network,
    compare_subgraphs
)
from .models import (
    Edges,
    Mutual,
    NodeMatch,
    NodeFactor,
    fit_ergm,
    ergm_gof,
    fit_sbm,
    select_best
)
from .config import AnalysisConfig
from .pipeline import run_analysis
