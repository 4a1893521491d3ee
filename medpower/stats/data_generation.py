"""
Data generation for MedPower simulations.

Exogenous variables are drawn as correlated standard normals and then
transformed to their target distributions; endogenous variables are built in
generation order as a linear combination of their predictors plus a normal
disturbance.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm
from scipy.stats import t as t_dist

FLOAT_NEAR_ZERO = 1e-15
PERCENTILE_RANGE = (1e-6, 1 - 1e-6)
SQRT3 = np.sqrt(3.0)
T3_SD = np.sqrt(3.0)  # sd of t(df=3)

# Minimum disturbance variance accepted when standardising
MIN_RESIDUAL_VARIANCE = 0.01

# (coefficient, component column indices) for each predictor of an outcome
EquationTerms = List[Tuple[float, List[int]]]


def _cholesky_decomposition(corr_matrix: np.ndarray) -> np.ndarray:
    """Compute Cholesky factor, falling back to eigen-decomposition if needed."""
    try:
        return np.linalg.cholesky(corr_matrix)
    except np.linalg.LinAlgError:
        eigenvals, eigenvecs = np.linalg.eigh(corr_matrix)
        eigenvals = np.maximum(eigenvals, FLOAT_NEAR_ZERO)
        return eigenvecs @ np.diag(np.sqrt(eigenvals))


def _transform_distribution(data: np.ndarray, dist_type: int, param: float) -> np.ndarray:
    """Transform a standard-normal column to the target distribution.

    Distribution codes: 0=normal, 1=binary, 2=right_skewed, 3=left_skewed,
    4=high_kurtosis (t with df=3), 5=uniform. All non-binary outputs have
    mean 0 and variance 1; binary columns are centred on their sample mean.
    """
    if dist_type == 0:
        return data.copy()

    percentiles = norm.cdf(data)
    if dist_type == 1:
        binary_data = (percentiles < param).astype(np.float64)
        return binary_data - np.mean(binary_data)

    percentiles = np.clip(percentiles, PERCENTILE_RANGE[0], PERCENTILE_RANGE[1])
    if dist_type == 2:  # Exp(1), centred
        return -np.log(percentiles) - 1.0
    if dist_type == 3:
        return np.log(1 - percentiles) + 1.0
    if dist_type == 4:
        return t_dist.ppf(percentiles, 3) / T3_SD
    if dist_type == 5:
        return SQRT3 * (2 * percentiles - 1)

    raise ValueError(f"Unknown distribution code: {dist_type}")


def generate_exogenous(
    sample_size: int,
    correlation_matrix: np.ndarray,
    var_types: np.ndarray,
    var_params: np.ndarray,
    rng: np.random.RandomState,
) -> np.ndarray:
    """Generate the exogenous block of the data matrix.

    Algorithm:

    1. Draw ``(sample_size, n_vars)`` i.i.d. standard normals.
    2. Apply the Cholesky factor of *correlation_matrix* to induce the
       desired correlation structure.
    3. Transform each column to its target distribution.

    Returns:
        Array of shape ``(sample_size, n_vars)``.
    """
    n_vars = len(var_types)
    base_normal = rng.standard_normal((sample_size, n_vars))
    cholesky_matrix = _cholesky_decomposition(correlation_matrix)
    correlated = base_normal @ cholesky_matrix.T

    X = np.empty((sample_size, n_vars))
    for j in range(n_vars):
        X[:, j] = _transform_distribution(correlated[:, j], int(var_types[j]), float(var_params[j]))
    return X


def _linear_predictor(data: np.ndarray, terms: EquationTerms) -> np.ndarray:
    """Sum of ``coefficient * product(component columns)`` over the terms."""
    lp = np.zeros(data.shape[0])
    for coef, columns in terms:
        if coef == 0.0:
            continue
        col = data[:, columns[0]].copy()
        for idx in columns[1:]:
            col *= data[:, idx]
        lp += coef * col
    return lp


def generate_path_data(
    sample_size: int,
    correlation_matrix: np.ndarray,
    var_types: np.ndarray,
    var_params: np.ndarray,
    equations: Sequence[Tuple[int, EquationTerms]],
    residual_variances: np.ndarray,
    n_vars: int,
    sim_seed: Optional[int] = None,
) -> np.ndarray:
    """Simulate one data set from the population path model.

    Args:
        sample_size: Number of observations.
        correlation_matrix: Correlations among exogenous variables.
        var_types: Distribution code per exogenous variable.
        var_params: Distribution parameter per exogenous variable.
        equations: ``(outcome_column, terms)`` per endogenous variable, in
            generation order.
        residual_variances: Disturbance variance per equation.
        n_vars: Total number of observed variables.
        sim_seed: Random seed (``None`` for unseeded).

    Returns:
        Data matrix of shape ``(sample_size, n_vars)`` in column order
        exogenous | endogenous.
    """
    rng = np.random.RandomState(sim_seed)
    n_exog = len(var_types)

    data = np.empty((sample_size, n_vars))
    data[:, :n_exog] = generate_exogenous(sample_size, correlation_matrix, var_types, var_params, rng)

    disturbances = rng.standard_normal((sample_size, len(equations)))
    for k, (outcome_col, terms) in enumerate(equations):
        data[:, outcome_col] = _linear_predictor(data, terms) + np.sqrt(residual_variances[k]) * disturbances[:, k]

    return data


def standardized_residual_variances(
    correlation_matrix: np.ndarray,
    var_types: np.ndarray,
    var_params: np.ndarray,
    equations: Sequence[Tuple[int, EquationTerms]],
    n_vars: int,
    endogenous_names: Sequence[str],
    pilot_size: int = 200_000,
    seed: Optional[int] = 2137,
) -> np.ndarray:
    """Derive disturbance variances that give every endogenous variable unit variance.

    Product terms and non-normal exogenous variables make the implied
    variance awkward to get in closed form, so it is measured on one large
    pilot sample, one equation at a time in generation order.

    Raises:
        ValueError: If the paths into a variable already explain (almost)
            all of its unit variance.
    """
    rng = np.random.RandomState(seed)
    n_exog = len(var_types)

    data = np.empty((pilot_size, n_vars))
    data[:, :n_exog] = generate_exogenous(pilot_size, correlation_matrix, var_types, var_params, rng)

    residuals = np.empty(len(equations))
    for k, (outcome_col, terms) in enumerate(equations):
        lp = _linear_predictor(data, terms)
        explained = float(np.var(lp))
        residual = 1.0 - explained
        if residual < MIN_RESIDUAL_VARIANCE:
            raise ValueError(
                f"Paths into '{endogenous_names[k]}' explain {explained:.3f} of its variance; "
                f"standardised residual variance would be {residual:.3f}. Reduce the effect sizes "
                f"or set residual variances explicitly."
            )
        residuals[k] = residual
        data[:, outcome_col] = lp + np.sqrt(residual) * rng.standard_normal(pilot_size)

    return residuals
