"""
Bernoulli stochastic block models for directed grooming networks.

Each monkey belongs to one of Q latent communities; a directed edge i -> j
appears with probability pi[q, l] given that i is in q and j is in l. The
model is fitted for every Q in 1..K by variational EM (mean-field
membership probabilities tau), and the community count is chosen by the
Integrated Complete-data Likelihood (ICL).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import polars as pl
import numpy as np
from scipy.cluster.vq import kmeans2
from scipy.special import logsumexp, xlogy
from scipy.stats import chi2_contingency

from groomnet.network.construction import GroomingNetwork
from groomnet.common.exceptions import (
    ComputationError,
    ConvergenceError,
    ValidationError,
    require_positive
)
from groomnet.common.logging_config import get_logger, log_function_entry, LoggingTimer

logger = get_logger(__name__)

DEFAULT_MAX_BLOCKS = 6
DEFAULT_RESTARTS = 5
DEFAULT_MAX_ITERATIONS = 500
DEFAULT_TOLERANCE = 1e-6

# keeps log(pi) and log(1 - pi) finite
_PI_FLOOR = 1e-10


@dataclass
class SbmFit:
    """
    One fitted block model.

    Attributes
    ----------
    n_blocks : int
        Number of communities Q
    icl : float
        Integrated Complete-data Likelihood (higher is better)
    lower_bound : float
        Variational lower bound on the log-likelihood
    alpha : np.ndarray
        Shape (Q,): community proportions
    pi : np.ndarray
        Shape (Q, Q): edge probability from community q to community l
    membership : np.ndarray
        Shape (n, Q): membership probabilities, rows sum to 1
    iterations : int
        EM iterations of the retained restart
    """

    n_blocks: int
    icl: float
    lower_bound: float
    alpha: np.ndarray
    pi: np.ndarray
    membership: np.ndarray
    iterations: int

    def hard_assignment(self) -> np.ndarray:
        return hard_assignment(self.membership)


def _validate_adjacency(adjacency: np.ndarray) -> np.ndarray:
    adjacency = np.asarray(adjacency)
    if adjacency.ndim != 2 or adjacency.shape[0] != adjacency.shape[1]:
        raise ValidationError(
            f"Adjacency matrix must be square, got shape {adjacency.shape}",
            field="adjacency",
            expected="square matrix"
        )
    if adjacency.shape[0] < 2:
        raise ValidationError(
            "A block model needs at least two nodes",
            field="adjacency",
            value=adjacency.shape[0]
        )
    if not np.isin(adjacency, (0, 1)).all():
        raise ValidationError(
            "Adjacency matrix must be binary",
            field="adjacency",
            expected="entries in {0, 1}"
        )
    if np.any(np.diag(adjacency)):
        logger.warning("Ignoring %d self-loops on the adjacency diagonal", int(np.diag(adjacency).sum()))
    x = adjacency.astype(float)
    np.fill_diagonal(x, 0.0)
    return x


def _m_step(x: np.ndarray, tau: np.ndarray):
    alpha = np.clip(tau.mean(axis=0), _PI_FLOOR, None)
    totals = tau.sum(axis=0)
    possible = np.outer(totals, totals) - tau.T @ tau
    observed = tau.T @ x @ tau
    pi = np.divide(observed, possible, out=np.zeros_like(observed), where=possible > 0)
    return alpha, np.clip(pi, _PI_FLOOR, 1.0 - _PI_FLOOR)


def _expected_complete_loglik(x: np.ndarray, absent: np.ndarray, tau: np.ndarray,
                              alpha: np.ndarray, pi: np.ndarray) -> float:
    log_pi, log_not_pi = np.log(pi), np.log1p(-pi)
    edges = np.sum((tau.T @ x @ tau) * log_pi)
    non_edges = np.sum((tau.T @ absent @ tau) * log_not_pi)
    return float(tau.sum(axis=0) @ np.log(alpha) + edges + non_edges)


def _ve_step(x: np.ndarray, absent: np.ndarray, tau: np.ndarray,
             alpha: np.ndarray, pi: np.ndarray) -> np.ndarray:
    log_pi, log_not_pi = np.log(pi), np.log1p(-pi)
    log_tau = (
        np.log(alpha)[None, :]
        + x @ tau @ log_pi.T
        + absent @ tau @ log_not_pi.T
        + x.T @ tau @ log_pi
        + absent.T @ tau @ log_not_pi
    )
    return np.exp(log_tau - logsumexp(log_tau, axis=1, keepdims=True))


def _kmeans_plus_plus(features: np.ndarray, n_blocks: int, rng: np.random.Generator) -> np.ndarray:
    """Initial centroids spread out by squared distance."""
    chosen = [int(rng.integers(len(features)))]
    for _ in range(1, n_blocks):
        gaps = features[:, None, :] - features[chosen][None, :, :]
        d2 = np.min(np.sum(gaps ** 2, axis=2), axis=1)
        if d2.sum() == 0:
            chosen.append(int(rng.integers(len(features))))
        else:
            chosen.append(int(rng.choice(len(features), p=d2 / d2.sum())))
    return features[chosen]


def _initial_membership(x: np.ndarray, n_blocks: int, rng: np.random.Generator) -> np.ndarray:
    """k-means on out- and in-neighbourhood profiles, softened into probabilities."""
    features = np.hstack([x, x.T])
    starts = _kmeans_plus_plus(features, n_blocks, rng)
    _, labels = kmeans2(features, starts, minit="matrix", missing="warn")
    tau = np.full((len(x), n_blocks), 0.1)
    tau[np.arange(len(x)), labels] += 1.0
    return tau / tau.sum(axis=1, keepdims=True)


def _fit_single(
    x: np.ndarray,
    n_blocks: int,
    rng: np.random.Generator,
    max_iterations: int,
    tolerance: float
) -> Optional[SbmFit]:
    n = len(x)
    absent = 1.0 - x - np.eye(n)

    if n_blocks == 1:
        tau = np.ones((n, 1))
        iterations = 0
    else:
        tau = _initial_membership(x, n_blocks, rng)
        previous = -np.inf
        for iterations in range(1, max_iterations + 1):
            alpha, pi = _m_step(x, tau)
            updated = _ve_step(x, absent, tau, alpha, pi)
            change = float(np.max(np.abs(updated - tau)))
            tau = updated
            bound = _expected_complete_loglik(x, absent, tau, alpha, pi) - float(np.sum(xlogy(tau, tau)))
            if change < tolerance or abs(bound - previous) < tolerance * abs(bound):
                break
            previous = bound
        else:
            logger.debug("SBM Q=%d restart stopped at %d iterations (change %.2e)",
                         n_blocks, max_iterations, change)
            return None

    alpha, pi = _m_step(x, tau)
    complete = _expected_complete_loglik(x, absent, tau, alpha, pi)
    entropy = -float(np.sum(xlogy(tau, tau)))

    penalty = 0.5 * (n_blocks - 1) * np.log(n) + 0.5 * n_blocks ** 2 * np.log(n * (n - 1))

    return SbmFit(
        n_blocks=n_blocks,
        icl=complete - penalty,
        lower_bound=complete + entropy,
        alpha=alpha,
        pi=pi,
        membership=tau,
        iterations=iterations
    )


def fit_sbm(
    adjacency: np.ndarray,
    max_blocks: int = DEFAULT_MAX_BLOCKS,
    n_init: int = DEFAULT_RESTARTS,
    seed: Optional[int] = 42,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    tolerance: float = DEFAULT_TOLERANCE
) -> List[SbmFit]:
    """
    Fit directed Bernoulli block models for 1..max_blocks communities.

    Parameters
    ----------
    adjacency : np.ndarray
        Binary square matrix, rows are groomers; the diagonal is ignored
    max_blocks : int, default 6
        Largest community count to fit
    n_init : int, default 5
        k-means restarts per community count; the restart with the highest
        lower bound is kept
    seed : int, optional, default 42
        Seed for the restarts
    max_iterations : int, default 500
        Variational EM iteration limit per restart
    tolerance : float, default 1e-6
        Convergence threshold on the largest membership change

    Returns
    -------
    List[SbmFit]
        One fit per community count, in increasing order of count

    Raises
    ------
    ValidationError
        If the adjacency matrix is not square and binary
    ConvergenceError
        If no restart converges for some community count
    """
    require_positive(max_blocks, "max_blocks")
    require_positive(n_init, "n_init")
    require_positive(max_iterations, "max_iterations")
    require_positive(tolerance, "tolerance")

    x = _validate_adjacency(adjacency)
    n = len(x)
    if max_blocks > n:
        logger.warning("max_blocks=%d exceeds the %d nodes; fitting up to %d blocks", max_blocks, n, n)
        max_blocks = n

    log_function_entry("fit_sbm", nodes=n, max_blocks=max_blocks, n_init=n_init)
    rng = np.random.default_rng(seed)

    fits = []
    with LoggingTimer("fit_sbm", {"nodes": n, "max_blocks": max_blocks}):
        for n_blocks in range(1, max_blocks + 1):
            restarts = 1 if n_blocks == 1 else n_init
            candidates = [
                _fit_single(x, n_blocks, rng, max_iterations, tolerance)
                for _ in range(restarts)
            ]
            converged = [c for c in candidates if c is not None]
            if not converged:
                raise ConvergenceError(
                    f"Variational EM did not converge for {n_blocks} blocks in any of {restarts} restarts",
                    algorithm="SBM variational EM",
                    iterations=max_iterations,
                    max_iterations=max_iterations,
                    threshold=tolerance
                )
            if len(converged) < restarts:
                logger.warning("SBM Q=%d: %d of %d restarts did not converge",
                               n_blocks, restarts - len(converged), restarts)

            best = max(converged, key=lambda fit: fit.lower_bound)
            logger.info("SBM Q=%d: ICL=%.3f, lower bound=%.3f", n_blocks, best.icl, best.lower_bound)
            fits.append(best)

    return fits


def select_best(fits: Sequence[SbmFit]) -> SbmFit:
    """
    The fit with the highest ICL; ties go to the smallest community count.

    Raises
    ------
    ValidationError
        If no fits are given
    """
    if not fits:
        raise ValidationError("No block model fits to select from", field="fits")
    ordered = sorted(fits, key=lambda fit: fit.n_blocks)
    icl = np.array([fit.icl for fit in ordered])
    best = ordered[int(np.argmax(icl))]
    logger.info("Selected %d blocks by ICL (%.3f)", best.n_blocks, best.icl)
    return best


def hard_assignment(membership: np.ndarray) -> np.ndarray:
    """Row-wise argmax of a membership matrix (lowest community on ties)."""
    return np.argmax(np.asarray(membership), axis=1)


def icl_table(fits: Sequence[SbmFit]) -> pl.DataFrame:
    return pl.DataFrame({
        "n_blocks": [fit.n_blocks for fit in fits],
        "icl": [fit.icl for fit in fits],
        "lower_bound": [fit.lower_bound for fit in fits],
        "iterations": [fit.iterations for fit in fits],
    }).sort("n_blocks")


def membership_table(network: GroomingNetwork, fit: SbmFit) -> pl.DataFrame:
    """Per monkey: node_id, one probability column per community and the hard community."""
    if fit.membership.shape[0] != network.number_of_nodes():
        raise ValidationError(
            "Membership matrix does not match the network's node count",
            field="membership",
            value=fit.membership.shape[0],
            expected=str(network.number_of_nodes())
        )
    data: Dict[str, Any] = {"node_id": network.node_ids()}
    for q in range(fit.n_blocks):
        data[f"block_{q}"] = fit.membership[:, q].tolist()
    data["community"] = fit.hard_assignment().tolist()
    return pl.DataFrame(data)


def crosstab_communities(
    network: GroomingNetwork,
    assignment: np.ndarray,
    attribute: str
) -> Dict[str, Any]:
    """
    Contingency table of communities against a covariate, with a chi-squared test.

    Parameters
    ----------
    network : GroomingNetwork
        Network the assignment was fitted on
    assignment : np.ndarray
        Hard community per node, in node id order
    attribute : str
        Covariate to cross-tabulate

    Returns
    -------
    Dict[str, Any]
        - "table": DataFrame, one row per occupied community, one count
          column per covariate level
        - "chi2", "p_value", "dof": Pearson chi-squared independence test
        - "expected": expected counts under independence
    """
    assignment = np.asarray(assignment)
    values = network.attribute_values(attribute)
    if len(assignment) != len(values):
        raise ValidationError(
            f"Assignment has {len(assignment)} entries for {len(values)} nodes",
            field="assignment",
            value=len(assignment),
            expected=str(len(values))
        )

    communities = sorted(set(assignment.tolist()))
    levels = network.attribute_levels(attribute)
    row_of = {c: i for i, c in enumerate(communities)}
    col_of = {level: j for j, level in enumerate(levels)}

    counts = np.zeros((len(communities), len(levels)), dtype=np.int64)
    for community, value in zip(assignment.tolist(), values):
        counts[row_of[community], col_of[value]] += 1

    table = pl.DataFrame({
        "community": communities,
        **{str(level): counts[:, j].tolist() for j, level in enumerate(levels)},
    })

    if counts.shape[0] < 2 or counts.shape[1] < 2:
        logger.warning("Crosstab of '%s' is %dx%d; independence test is trivial",
                       attribute, counts.shape[0], counts.shape[1])
        return {"table": table, "chi2": 0.0, "p_value": 1.0, "dof": 0,
                "expected": counts.astype(float)}

    try:
        chi2, p_value, dof, expected = chi2_contingency(counts)
    except ValueError as e:
        raise ComputationError(
            f"Chi-squared test failed for '{attribute}': {e}",
            operation="crosstab_communities",
            cause=e
        )

    logger.info("Communities x %s: chi2=%.3f, dof=%d, p=%.4g", attribute, chi2, dof, p_value)
    return {"table": table, "chi2": float(chi2), "p_value": float(p_value),
            "dof": int(dof), "expected": expected}
