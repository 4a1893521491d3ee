"""
Validation utilities for Monte Carlo Power Analysis.

This module provides validation functions for model inputs, parameters,
and mathematical constraints.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

import numpy as np

__all__ = []

CI_METHODS = ("monte_carlo", "delta")
MAX_SAMPLE_SIZE = 100000


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self):
        """Raise ``ValueError`` if the validation failed."""
        if not self.is_valid:
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise ValueError(error_msg)


class _Validator:
    """Static helpers for type and range checks used by all validators."""

    @staticmethod
    def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
        """Check if value has expected type."""
        if isinstance(value, bool) or not isinstance(value, expected_types):
            actual_type = type(value).__name__
            expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
            return f"{name} must be {expected}, got {actual_type}"
        return None

    @staticmethod
    def _check_range(
        value: Union[int, float],
        min_val: Optional[float],
        max_val: Optional[float],
        name: str,
    ) -> Optional[str]:
        """Check if value is within range."""
        if min_val is not None and value < min_val:
            return f"{name} must be >= {min_val}, got {value}"
        if max_val is not None and value > max_val:
            return f"{name} must be <= {max_val}, got {value}"
        return None


_validator = _Validator()


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (int, float),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    allow_rounding: bool = False,
) -> _ValidationResult:
    """Generic validation for numeric parameters."""
    errors: List[str] = []
    warnings: List[str] = []

    type_error = _validator._check_type(value, expected_types, name)
    if type_error:
        errors.append(type_error)
        return _ValidationResult(False, errors, warnings)

    range_error = _validator._check_range(value, min_val, max_val, name)
    if range_error:
        errors.append(range_error)

    # Rounding warning for floats when int expected
    if allow_rounding and isinstance(value, float):
        rounded = int(round(value))
        if value != rounded:
            warnings.append(f"{name} rounded from {value} to {rounded}")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_power(power: Any) -> _ValidationResult:
    """Validate power parameter (0-100%)."""
    return _validate_numeric_parameter(power, "Power", min_val=0, max_val=100)


def _validate_alpha(alpha: Any) -> _ValidationResult:
    """Validate alpha level parameter (0-0.25)."""
    result = _validate_numeric_parameter(alpha, "Alpha", min_val=0, max_val=0.25)
    if result.is_valid and alpha == 0:
        return _ValidationResult(False, ["Alpha must be greater than 0"], [])
    return result


def _validate_simulations(n_simulations: Any) -> Tuple[int, _ValidationResult]:
    """Validate and process number of replications."""
    result = _validate_numeric_parameter(n_simulations, "Number of simulations", min_val=1, allow_rounding=True)

    if result.is_valid:
        rounded = int(round(n_simulations))
        if rounded < 500:
            result.warnings.append(f"Low simulation count ({rounded}). Consider using at least 500 for reliable results.")
        return rounded, result

    return 0, result


def _validate_draws(n_draws: Any) -> Tuple[int, _ValidationResult]:
    """Validate the number of Monte Carlo draws per confidence interval."""
    result = _validate_numeric_parameter(n_draws, "Number of draws", min_val=100, allow_rounding=True)

    if result.is_valid:
        rounded = int(round(n_draws))
        if rounded < 1000:
            result.warnings.append(f"Low draw count ({rounded}). Interval bounds will be noisy below 1000 draws.")
        return rounded, result

    return 0, result


def _validate_ci_method(ci_method: Any) -> _ValidationResult:
    """Validate the interval method for defined effects."""
    if ci_method not in CI_METHODS:
        return _ValidationResult(False, [f"ci_method must be one of {', '.join(CI_METHODS)}, got {ci_method!r}"], [])
    return _ValidationResult(True, [], [])


def _validate_sample_size(sample_size: Any) -> _ValidationResult:
    """Validate sample size parameter.

    Requires an integer >= 20 and <= 100,000.
    """
    errors = []

    if isinstance(sample_size, bool) or not isinstance(sample_size, int):
        errors.append(f"sample_size must be an integer, got {type(sample_size).__name__}")
        return _ValidationResult(False, errors, [])

    if sample_size < 20:
        errors.append(f"sample_size must be at least 20, got {sample_size}")
    elif sample_size > MAX_SAMPLE_SIZE:
        errors.append(f"sample_size too large ({sample_size:,}). Maximum: {MAX_SAMPLE_SIZE:,}.")

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_sample_size_for_model(sample_size: int, n_predictors: int) -> _ValidationResult:
    """Validate that sample size is sufficient for the largest equation.

    Requires sample_size >= 15 + n_predictors, where n_predictors is the
    largest number of predictors (products included) of any endogenous
    variable.

    Args:
        sample_size: Total number of observations.
        n_predictors: Predictors in the largest equation (excluding intercept).

    Returns:
        _ValidationResult with errors if sample size is insufficient.
    """
    errors = []
    min_required = 15 + n_predictors

    if sample_size < min_required:
        errors.append(
            f"sample_size ({sample_size}) is too small for an equation with {n_predictors} "
            f"predictors. Minimum required: {min_required} (15 + {n_predictors} predictors)."
        )

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_sample_size_range(from_size: Any, to_size: Any, by: Any) -> _ValidationResult:
    """Validate sample size range parameters."""
    errors: List[str] = []
    warnings: List[str] = []

    for param, name in [(from_size, "from_size"), (to_size, "to_size"), (by, "by")]:
        if isinstance(param, bool) or not isinstance(param, int) or param <= 0:
            errors.append(f"{name} must be a positive integer, got {param}")

    if errors:
        return _ValidationResult(False, errors, warnings)

    if from_size >= to_size:
        errors.append(f"from_size ({from_size}) must be less than to_size ({to_size})")

    if by > (to_size - from_size):
        errors.append(f"Step size 'by' ({by}) is larger than range ({to_size - from_size}). This will only test one sample size.")

    sizes = range(from_size, to_size + 1, by)
    if len(sizes) and sizes[-1] > MAX_SAMPLE_SIZE:
        errors.append(f"Largest sample size in the range ({sizes[-1]:,}) exceeds the maximum of {MAX_SAMPLE_SIZE:,}.")

    n_tests = len(sizes)
    if n_tests > 100:
        warnings.append(f"Large number of sample sizes to test ({n_tests}). This may take significant time.")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_correlation_matrix(
    corr_matrix: Optional[np.ndarray],
) -> _ValidationResult:
    """Validate correlation matrix meets mathematical requirements."""
    errors = []

    if corr_matrix is None:
        errors.append("Correlation matrix is None")
        return _ValidationResult(False, errors, [])

    if corr_matrix.ndim != 2 or corr_matrix.shape[0] != corr_matrix.shape[1]:
        errors.append("Correlation matrix must be square")
        return _ValidationResult(False, errors, [])

    if not np.allclose(np.diag(corr_matrix), 1.0):
        errors.append("Diagonal elements of correlation matrix must be 1")

    if not np.allclose(corr_matrix, corr_matrix.T):
        errors.append("Correlation matrix must be symmetric")

    if np.any(np.abs(corr_matrix) > 1):
        errors.append("All correlations must be between -1 and 1")

    try:
        eigenvals = np.linalg.eigvalsh((corr_matrix + corr_matrix.T) / 2)
        if np.any(eigenvals < -1e-8):  # Tolerance for floating point noise
            errors.append("Correlation matrix must be positive semi-definite")
    except np.linalg.LinAlgError:
        errors.append("Cannot compute eigenvalues of correlation matrix")

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_correction_method(correction: Optional[str]) -> _ValidationResult:
    """Validate correction method name."""
    if correction is None:
        return _ValidationResult(True, [], [])

    if not isinstance(correction, str):
        return _ValidationResult(False, [f"correction must be a string or None, got {type(correction).__name__}"], [])

    method = correction.lower().replace("-", "_").replace(" ", "_")
    valid_methods = ["bonferroni", "benjamini_hochberg", "bh", "fdr", "holm"]

    if method not in valid_methods:
        return _ValidationResult(
            False,
            [f"Unknown correction method: {correction}. Valid options: 'Bonferroni', 'Benjamini-Hochberg' (or 'BH', 'FDR'), 'Holm'"],
            [],
        )

    return _ValidationResult(True, [], [])


def _validate_parallel_settings(enable: Any, n_cores: Optional[int]) -> Tuple[Tuple[Any, int], _ValidationResult]:
    """Validate parallel processing settings.

    Args:
        enable: True or False
        n_cores: Number of CPU cores (positive int or None for auto)

    Returns:
        ((enable, n_cores), ValidationResult)
    """
    import multiprocessing as mp

    errors = []

    if enable not in (True, False):
        errors.append(f"enable must be True or False, got {enable!r}")
        return (False, 1), _ValidationResult(False, errors, [])

    max_cores = mp.cpu_count()
    validated_n_cores = max(1, max_cores // 2)

    if n_cores is not None:
        if isinstance(n_cores, bool) or not isinstance(n_cores, int) or n_cores <= 0:
            errors.append(f"n_cores must be a positive integer, got {n_cores}")
        else:
            validated_n_cores = min(n_cores, max_cores)

    return (enable, validated_n_cores), _ValidationResult(len(errors) == 0, errors, [])


def _validate_model_ready(model) -> _ValidationResult:
    """
    Validate that model is ready for analysis.

    Every free label needs a population value, either from ``set_effects``
    or by being shared with a label that has one. Labels left at zero are
    reported as warnings, since a zero effect is a legitimate null
    scenario.

    Args:
        model: MedPower instance to validate

    Returns:
        _ValidationResult with any errors or warnings
    """
    errors: List[str] = []
    warnings: List[str] = []

    registry = model._registry
    if model._pending_effects is None:
        errors.append(
            "Effect sizes must be set using set_effects() before running analysis. "
            f"Available parameters: {', '.join(registry.settable_names)}"
        )
    else:
        zero = [label for label, value in registry.population_values().items() if value == 0.0]
        if zero:
            warnings.append(f"Population value is 0 for: {', '.join(zero)}")

    for attr in ["power", "alpha", "n_simulations", "n_draws"]:
        if not hasattr(model, attr):
            errors.append(f"Model missing required attribute: {attr}")

    return _ValidationResult(len(errors) == 0, errors, warnings)
