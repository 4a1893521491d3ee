"""
Confidence intervals for path parameters and defined effects.

Plain labelled paths use the normal-theory (Wald) interval. Defined effects
are non-linear in the labels (products for indirect effects), so their
default interval is the Monte Carlo interval: draw the labels from
``MVN(estimates, acov)``, evaluate each expression on every draw and take
percentiles. The delta method is available as a faster, less accurate
alternative.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy.stats import norm

from ..utils.expressions import evaluate_defined_effects

FLOAT_NEAR_ZERO = 1e-15
GRADIENT_STEP = 1e-6


def _covariance_factor(acov: np.ndarray) -> np.ndarray:
    """Matrix ``L`` with ``L @ L.T == acov``, tolerating semi-definite input."""
    try:
        return np.linalg.cholesky(acov)
    except np.linalg.LinAlgError:
        eigenvals, eigenvecs = np.linalg.eigh((acov + acov.T) / 2)
        eigenvals = np.maximum(eigenvals, 0.0)
        return eigenvecs @ np.diag(np.sqrt(eigenvals))


def _interval_result(estimate, se, lower, upper, p_value) -> Dict[str, float]:
    return {
        "estimate": float(estimate),
        "se": float(se),
        "ci_lower": float(lower),
        "ci_upper": float(upper),
        "p_value": float(p_value),
    }


def wald_ci(estimates: np.ndarray, acov: np.ndarray, labels: Sequence[str], level: float = 0.95) -> Dict[str, Dict[str, float]]:
    """Normal-theory intervals and z-test p-values for every label.

    Args:
        estimates: Point estimates, shape ``(n_labels,)``.
        acov: Asymptotic covariance matrix.
        labels: Label per estimate.
        level: Confidence level.

    Returns:
        ``{label: {"estimate", "se", "ci_lower", "ci_upper", "p_value"}}``.
    """
    z_crit = norm.ppf(1 - (1 - level) / 2)
    ses = np.sqrt(np.maximum(np.diag(acov), 0.0))
    out = {}
    for label, est, se in zip(labels, estimates, ses):
        if se > FLOAT_NEAR_ZERO:
            p_value = 2 * norm.sf(abs(est) / se)
        else:
            p_value = 0.0 if est != 0 else 1.0
        out[label] = _interval_result(est, se, est - z_crit * se, est + z_crit * se, p_value)
    return out


def _tail_rank(n_draws: int, alpha: float) -> int:
    """Largest rank ``j`` such that ``j`` draws in one tail still give ``p < alpha``."""
    counts = np.arange(n_draws + 1)
    return max(int(np.sum(2 * (counts / n_draws) < alpha)) - 1, 0)


def monte_carlo_ci(
    estimates: np.ndarray,
    acov: np.ndarray,
    labels: Sequence[str],
    definitions: Dict[str, str],
    n_draws: int = 1000,
    level: float = 0.95,
    rng: Optional[np.random.RandomState] = None,
) -> Dict[str, Dict[str, float]]:
    """Monte Carlo intervals for defined effects.

    Algorithm:

    1. Draw ``n_draws`` label vectors from ``MVN(estimates, acov)``.
    2. Evaluate every defined effect on all draws at once.
    3. Two-sided p-value: ``2 * min(P(draw <= 0), P(draw >= 0))``, capped
       at 1.
    4. Interval bounds are the order statistics at ranks ``j`` and
       ``n_draws - 1 - j``, where ``j + 1`` is the number of tail counts
       ``c`` with ``2 * c / n_draws < 1 - level``. This is the
       ``(1-level)/2`` percentile pair without interpolation, and the
       interval excludes 0 exactly when the p-value is below
       ``1 - level``. The standard error is the SD of the draws.

    The point estimate is the expression evaluated at *estimates*.

    Returns:
        ``{effect: {"estimate", "se", "ci_lower", "ci_upper", "p_value"}}``.
    """
    if rng is None:
        rng = np.random.RandomState()

    factor = _covariance_factor(acov)
    draws = estimates + rng.standard_normal((n_draws, len(estimates))) @ factor.T

    drawn = evaluate_defined_effects(definitions, {label: draws[:, i] for i, label in enumerate(labels)})
    point = evaluate_defined_effects(definitions, dict(zip(labels, estimates)))

    # 1 - (1 - alpha) is not always alpha in floating point
    rank = _tail_rank(n_draws, round(1 - level, 12))
    out = {}
    for name in definitions:
        values = np.broadcast_to(np.asarray(drawn[name], dtype=float), (n_draws,))
        ordered = np.sort(values)
        lower, upper = ordered[rank], ordered[n_draws - 1 - rank]
        p_value = min(1.0, 2 * min(np.mean(values <= 0), np.mean(values >= 0)))
        out[name] = _interval_result(point[name], np.std(values, ddof=1), lower, upper, p_value)
    return out


def _numeric_gradient(labels: Sequence[str], estimates: np.ndarray, definitions: Dict[str, str]) -> np.ndarray:
    """Central-difference Jacobian of the defined effects, shape ``(n_effects, n_labels)``."""
    names = list(definitions)
    jacobian = np.zeros((len(names), len(labels)))
    for j in range(len(labels)):
        step = GRADIENT_STEP * max(1.0, abs(estimates[j]))
        up = estimates.copy()
        down = estimates.copy()
        up[j] += step
        down[j] -= step
        f_up = evaluate_defined_effects(definitions, dict(zip(labels, up)))
        f_down = evaluate_defined_effects(definitions, dict(zip(labels, down)))
        for i, name in enumerate(names):
            jacobian[i, j] = (f_up[name] - f_down[name]) / (2 * step)
    return jacobian


def delta_method_ci(
    estimates: np.ndarray,
    acov: np.ndarray,
    labels: Sequence[str],
    definitions: Dict[str, str],
    level: float = 0.95,
) -> Dict[str, Dict[str, float]]:
    """First-order delta-method intervals for defined effects (Sobel-type).

    Returns:
        ``{effect: {"estimate", "se", "ci_lower", "ci_upper", "p_value"}}``.
    """
    point = evaluate_defined_effects(definitions, dict(zip(labels, estimates)))
    jacobian = _numeric_gradient(labels, np.asarray(estimates, dtype=float), definitions)
    effect_cov = jacobian @ acov @ jacobian.T
    names: List[str] = list(definitions)
    values = np.array([float(point[name]) for name in names])
    return wald_ci(values, effect_cov, names, level)
