"""
Model selection across HMM restarts.

Each restart of the copy-number HMM (different purity/ploidy initialisations
or state sets) is scored with the Bayesian Information Criterion and the
lowest score wins.
"""

from dataclasses import dataclass, field
from typing import List, Sequence
import logging
import math

import numpy as np

logger = logging.getLogger("ulpcn.core.model_selection")


def compute_bic(
    log_likelihood: float,
    num_states: int,
    num_data_points: int,
    num_normal_params: int,
    num_ploidy_params: int,
    num_precision_params: int = 1,
) -> float:
    """
    BIC of a fitted HMM.

    The parameter count is K(K-1) for the transition matrix, K*(L + NP) for
    the per-state normal contamination, ploidy and precision parameters,
    minus one.

    Args:
        log_likelihood: Final log-likelihood of the fit
        num_states: Number of HMM states (K)
        num_data_points: Number of observations (N)
        num_normal_params: Number of normal-contamination parameters
        num_ploidy_params: Number of ploidy parameters
        num_precision_params: Number of precision parameters (L)

    Returns:
        -2 * log_likelihood + num_params * log(N)
    """
    if num_data_points <= 0:
        raise ValueError(f"num_data_points must be positive, got {num_data_points}")
    k = num_states
    num_params = k * (k - 1) + k * (num_precision_params + num_normal_params + num_ploidy_params) - 1
    return -2.0 * log_likelihood + num_params * math.log(num_data_points)


@dataclass
class HmmFit:
    """
    Summary of one HMM restart.

    Attributes:
        rho: State responsibilities, K x N
        n: Normal contamination estimate(s)
        phi: Ploidy estimate(s)
        loglik: Log-likelihood per EM iteration
        iteration: Index of the final iteration in `loglik`
        label: Free-form identifier of the restart
    """
    rho: np.ndarray
    n: Sequence[float] = field(default_factory=list)
    phi: Sequence[float] = field(default_factory=list)
    loglik: Sequence[float] = field(default_factory=list)
    iteration: int = -1
    label: str = ""

    @property
    def final_loglik(self) -> float:
        return float(self.loglik[self.iteration])


def bic_from_fit(fit: HmmFit, num_precision_params: int = 1) -> float:
    """Score an HmmFit with compute_bic."""
    rho = np.atleast_2d(fit.rho)
    return compute_bic(
        fit.final_loglik,
        num_states=rho.shape[0],
        num_data_points=rho.shape[1],
        num_normal_params=len(np.atleast_1d(fit.n)),
        num_ploidy_params=len(np.atleast_1d(fit.phi)),
        num_precision_params=num_precision_params,
    )


def select_best_model(scores: Sequence[float]) -> int:
    """
    Index of the lowest BIC score.

    NaN scores are never selected; ties keep the first restart.
    """
    arr = np.asarray(scores, dtype=float)
    if arr.size == 0 or np.isnan(arr).all():
        raise ValueError("No finite BIC scores to select from")
    best = int(np.nanargmin(arr))
    logger.info(f"Selected restart {best + 1}/{arr.size} (BIC={arr[best]:.3f})")
    return best


def rank_fits(fits: List[HmmFit], num_precision_params: int = 1) -> List[float]:
    """BIC score of every fit, in input order."""
    return [bic_from_fit(f, num_precision_params) for f in fits]
