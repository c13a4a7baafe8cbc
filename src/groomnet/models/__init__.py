"""
Statistical models of grooming networks.

- ERGM terms as explicit variant types, exact maximum likelihood fitting,
  simulation and goodness-of-fit
- Directed Bernoulli stochastic block models with ICL model selection and
  community/covariate cross-tabulation
"""

from .terms import (
    ErgmTerm,
    Edges,
    Mutual,
    NodeMatch,
    NodeFactor,
    validate_terms,
    format_terms
)

from .ergm import (
    REFERENCE_SPECIFICATIONS,
    DyadDesign,
    ErgmResult,
    GofResult,
    build_dyad_design,
    fit_ergm,
    simulate_ergm,
    gof_statistics,
    ergm_gof,
    fit_reference_models,
    compare_models
)

from .sbm import (
    SbmFit,
    fit_sbm,
    select_best,
    hard_assignment,
    icl_table,
    membership_table,
    crosstab_communities
)
