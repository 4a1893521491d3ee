"""
Path model estimation for MedPower.

A recursive path model with uncorrelated disturbances factors into one
regression per endogenous variable, so each replication is fitted equation
by equation with QR-based OLS. The parameter covariance matrix is block
diagonal across equations. Labels shared between equations (equality
constraints) are pooled by minimum-distance (GLS) weighting of the
per-equation estimates.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np
from scipy.linalg import solve_triangular

FLOAT_NEAR_ZERO = 1e-15
SINGULAR_TOLERANCE = 1e-10

# (label, component column indices) / (fixed value, component column indices)
FreeTerms = List[Tuple[str, List[int]]]
FixedTerms = List[Tuple[float, List[int]]]


@dataclass
class PathFit:
    """Estimates from one fitted replication.

    Attributes:
        labels: Free-parameter labels, in the order of *estimates*.
        estimates: Point estimates, shape ``(n_labels,)``.
        acov: Asymptotic covariance of the estimates, shape
            ``(n_labels, n_labels)``.
        residual_variances: Estimated disturbance variance per equation.
        r_squared: Proportion of outcome variance explained per equation.
    """

    labels: List[str]
    estimates: np.ndarray
    acov: np.ndarray
    residual_variances: np.ndarray
    r_squared: np.ndarray

    @property
    def standard_errors(self) -> np.ndarray:
        return np.sqrt(np.maximum(np.diag(self.acov), 0.0))

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(self.labels, self.estimates.tolist()))


def _product(data: np.ndarray, columns: Sequence[int]) -> np.ndarray:
    col = data[:, columns[0]].copy()
    for idx in columns[1:]:
        col *= data[:, idx]
    return col


def _ols_with_covariance(X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float, float]:
    """OLS with intercept via QR.

    Args:
        X: ``(n, p)`` design matrix (no intercept).
        y: ``(n,)`` response vector.

    Returns:
        Tuple ``(beta, cov, sigma2, r_squared)`` for the *p* slopes.

    Raises:
        ValueError: If there are no residual degrees of freedom.
        np.linalg.LinAlgError: If the design matrix is singular.
    """
    n, p = X.shape
    dof = n - (p + 1)
    if dof <= 0:
        raise ValueError(f"No residual degrees of freedom (n={n}, parameters={p + 1})")

    X_int = np.column_stack((np.ones(n), X))
    Q, R = np.linalg.qr(X_int)

    diag = np.abs(np.diag(R))
    if diag.min() <= SINGULAR_TOLERANCE * max(diag.max(), FLOAT_NEAR_ZERO):
        raise np.linalg.LinAlgError("Design matrix is singular")

    beta_all = solve_triangular(R, Q.T @ y)
    residuals = y - X_int @ beta_all
    ss_res = float(residuals @ residuals)
    sigma2 = ss_res / dof

    R_inv = solve_triangular(R, np.eye(p + 1))
    cov_all = sigma2 * (R_inv @ R_inv.T)

    centred = y - np.mean(y)
    ss_tot = float(centred @ centred)
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > FLOAT_NEAR_ZERO else 0.0

    return beta_all[1:], cov_all[1:, 1:], sigma2, r_squared


def fit_path_model(
    data: np.ndarray,
    fit_equations: Sequence[Tuple[int, FreeTerms, FixedTerms]],
    labels: Sequence[str],
) -> PathFit:
    """Fit every equation of the path model to one data set.

    Args:
        data: Simulated data, shape ``(n, n_vars)``.
        fit_equations: ``(outcome_column, free_terms, fixed_terms)`` per
            endogenous variable. Fixed terms are moved to an offset;
            free terms sharing a label within an equation share a column.
        labels: Global label order for the returned estimates.

    Returns:
        ``PathFit`` for this replication.

    Raises:
        ValueError: If an equation has no residual degrees of freedom.
        np.linalg.LinAlgError: If a design matrix is singular.
    """
    label_index = {label: i for i, label in enumerate(labels)}

    local_estimates: List[np.ndarray] = []
    local_covs: List[np.ndarray] = []
    local_labels: List[str] = []
    residual_variances = np.zeros(len(fit_equations))
    r_squared = np.zeros(len(fit_equations))

    for k, (outcome_col, free_terms, fixed_terms) in enumerate(fit_equations):
        y = data[:, outcome_col].copy()
        for value, columns in fixed_terms:
            y -= value * _product(data, columns)

        eq_labels: List[str] = []
        eq_columns: List[np.ndarray] = []
        for label, columns in free_terms:
            col = _product(data, columns)
            if label in eq_labels:
                eq_columns[eq_labels.index(label)] += col
            else:
                eq_labels.append(label)
                eq_columns.append(col)

        if not eq_labels:
            # Only fixed paths: nothing to estimate, still report the residual
            resid = y - np.mean(y)
            residual_variances[k] = float(resid @ resid) / max(len(y) - 1, 1)
            continue

        X = np.column_stack(eq_columns)
        beta, cov, sigma2, r2 = _ols_with_covariance(X, y)
        local_estimates.append(beta)
        local_covs.append(cov)
        local_labels.extend(eq_labels)
        residual_variances[k] = sigma2
        r_squared[k] = r2

    theta = np.concatenate(local_estimates)
    V = np.zeros((len(theta), len(theta)))
    offset = 0
    for cov in local_covs:
        size = cov.shape[0]
        V[offset : offset + size, offset : offset + size] = cov
        offset += size

    n_labels = len(labels)
    A = np.zeros((len(theta), n_labels))
    for row, label in enumerate(local_labels):
        A[row, label_index[label]] = 1.0

    if len(local_labels) == n_labels:
        # Every label estimated exactly once: a reordering
        order = [local_labels.index(label) for label in labels]
        estimates = theta[order]
        acov = V[np.ix_(order, order)]
    else:
        V_inv = np.linalg.inv(V)
        info = A.T @ V_inv @ A
        acov = np.linalg.inv(info)
        estimates = acov @ (A.T @ V_inv @ theta)

    return PathFit(
        labels=list(labels),
        estimates=estimates,
        acov=acov,
        residual_variances=residual_variances,
        r_squared=r_squared,
    )
