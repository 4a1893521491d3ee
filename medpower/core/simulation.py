"""
Simulation execution for MedPower.

This module contains the Monte Carlo loop: for each replication it
simulates a data set from the population path model, fits the analysis
model, builds a confidence interval for every target and records whether
the interval excludes zero.
"""

import warnings
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ..stats.corrections import apply_correction, compute_correction_thresholds, encode_correction
from ..stats.data_generation import generate_path_data, standardized_residual_variances
from ..stats.monte_carlo_ci import delta_method_ci, monte_carlo_ci, wald_ci
from ..stats.path_fit import fit_path_model

# Per-replication failure rate above which a warning is issued, even when
# the run stays under the hard threshold
FAILURE_WARNING_RATE = 0.01


class SimulationRunner:
    """Executes Monte Carlo simulations for power analysis.

    Each replication generates the exogenous variables, builds every
    endogenous variable in generation order, fits the equations by OLS and
    tests every target. Failed replications (singular designs, non-finite
    estimates) are counted, and the analysis aborts if the failure rate
    exceeds the configured threshold.
    """

    def __init__(
        self,
        n_simulations: int,
        seed: Optional[int] = None,
        alpha: float = 0.05,
        n_draws: int = 1000,
        ci_method: str = "monte_carlo",
        max_failed_simulations: float = 0.03,
    ):
        """Initialise the simulation runner.

        Args:
            n_simulations: Number of Monte Carlo replications.
            seed: Base random seed. Replication ``sim_id`` generates data
                with ``seed + 4 * sim_id`` and draws its Monte Carlo
                interval with the next seed.
            alpha: Significance level; intervals have level ``1 - alpha``.
            n_draws: Monte Carlo draws per interval for defined effects.
            ci_method: ``"monte_carlo"`` or ``"delta"`` for defined effects.
            max_failed_simulations: Maximum acceptable proportion of
                failed replications (0-1). Exceeding it raises
                ``RuntimeError``.
        """
        self.n_simulations = n_simulations
        self.seed = seed
        self.alpha = alpha
        self.n_draws = n_draws
        self.ci_method = ci_method
        self.max_failed_simulations = max_failed_simulations

    def run_power_simulations(
        self,
        sample_size: int,
        metadata: "SimulationMetadata",
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> Dict[str, Any]:
        """Run the full Monte Carlo simulation loop.

        Args:
            sample_size: Number of observations per replication.
            metadata: Pre-computed ``SimulationMetadata``.
            progress: Optional ``ProgressReporter`` (advanced by 1 per
                replication).
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            Dict with keys ``"all_results"``, ``"all_results_corrected"``,
            ``"all_estimates"``, ``"all_standard_errors"``,
            ``"all_covered"``, ``"n_simulations_used"`` and
            ``"n_simulations_failed"``. Each ``all_*`` entry is a list with
            one array (ordered like ``metadata.target_tests``) per
            successful replication.

        Raises:
            RuntimeError: If all replications fail or the failure rate
                exceeds ``max_failed_simulations``.
            SimulationCancelled: If *cancel_check* returns ``True``.
        """
        all_results = []
        all_results_corrected = []
        all_estimates = []
        all_standard_errors = []
        all_covered = []

        thresholds = compute_correction_thresholds(self.alpha, len(metadata.target_tests), metadata.correction_method)

        for sim_id in range(self.n_simulations):
            if cancel_check is not None and cancel_check():
                from ..progress import SimulationCancelled

                raise SimulationCancelled("Simulation cancelled by user")

            sim_seed = self.seed + 4 * sim_id if self.seed is not None else None

            result = self._single_simulation(
                sample_size=sample_size,
                metadata=metadata,
                thresholds=thresholds,
                sim_seed=sim_seed,
            )

            if result is not None:
                significant, significant_corrected, estimates, standard_errors, covered = result
                all_results.append(significant)
                all_results_corrected.append(significant_corrected)
                all_estimates.append(estimates)
                all_standard_errors.append(standard_errors)
                all_covered.append(covered)

            if progress is not None:
                progress.advance(1)

        if not all_results:
            raise RuntimeError("All simulations failed")

        n_failed = self.n_simulations - len(all_results)
        failed_pct = n_failed / self.n_simulations

        if failed_pct > self.max_failed_simulations:
            raise RuntimeError(
                f"Too many failed simulations: {n_failed}/{self.n_simulations} "
                f"({failed_pct:.1%}), threshold: {self.max_failed_simulations:.1%}"
            )
        elif failed_pct > FAILURE_WARNING_RATE:
            warnings.warn(
                f"{n_failed} simulations failed ({failed_pct:.1%}) at N={sample_size} - "
                f"check sample size and model specification"
            )

        return {
            "all_results": all_results,
            "all_results_corrected": all_results_corrected,
            "all_estimates": all_estimates,
            "all_standard_errors": all_standard_errors,
            "all_covered": all_covered,
            "n_simulations_used": len(all_results),
            "n_simulations_failed": n_failed,
        }

    def _single_simulation(
        self,
        sample_size: int,
        metadata: "SimulationMetadata",
        thresholds: np.ndarray,
        sim_seed: Optional[int] = None,
    ) -> Optional[Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]]:
        """
        Execute a single Monte Carlo replication.

        Args:
            sample_size: Number of observations
            metadata: Simulation metadata
            thresholds: Per-rank p-value thresholds for the correction
            sim_seed: Random seed for this replication

        Returns:
            Tuple of (significant, corrected_significant, estimates,
            standard_errors, covered) arrays ordered like the targets, or
            None if the replication failed
        """
        try:
            data = generate_path_data(
                sample_size,
                metadata.correlation_matrix,
                metadata.var_types,
                metadata.var_params,
                metadata.generation_equations,
                metadata.residual_variances,
                metadata.n_vars,
                sim_seed=sim_seed,
            )

            fit = fit_path_model(data, metadata.fit_equations, metadata.labels)
            if not (np.all(np.isfinite(fit.estimates)) and np.all(np.isfinite(fit.acov))):
                raise FloatingPointError("Non-finite parameter estimates")

            level = 1 - self.alpha
            intervals = wald_ci(fit.estimates, fit.acov, metadata.labels, level)

            if metadata.needs_defined:
                if self.ci_method == "delta":
                    intervals.update(delta_method_ci(fit.estimates, fit.acov, metadata.labels, metadata.definitions, level))
                else:
                    draw_rng = np.random.RandomState(sim_seed + 1 if sim_seed is not None else None)
                    intervals.update(
                        monte_carlo_ci(
                            fit.estimates,
                            fit.acov,
                            metadata.labels,
                            metadata.definitions,
                            n_draws=self.n_draws,
                            level=level,
                            rng=draw_rng,
                        )
                    )

            targets = [intervals[name] for name in metadata.target_tests]
            lower = np.array([t["ci_lower"] for t in targets])
            upper = np.array([t["ci_upper"] for t in targets])
            estimates = np.array([t["estimate"] for t in targets])
            standard_errors = np.array([t["se"] for t in targets])
            p_values = np.array([t["p_value"] for t in targets])

            if not (np.all(np.isfinite(lower)) and np.all(np.isfinite(upper))):
                raise FloatingPointError("Non-finite confidence interval")

            # Every interval excludes zero exactly when its p-value is below alpha
            significant = p_values < self.alpha
            if metadata.correction_method == 0:
                significant_corrected = significant.copy()
            else:
                significant_corrected = apply_correction(p_values, thresholds, metadata.correction_method)

            covered = (lower <= metadata.population_targets) & (metadata.population_targets <= upper)

            return significant, significant_corrected, estimates, standard_errors, covered

        except (np.linalg.LinAlgError, ValueError, FloatingPointError, ZeroDivisionError):
            return None


class SimulationMetadata:
    """Pre-computed metadata for simulation execution.

    Holds all static data needed for running simulations, avoiding
    repeated extraction from the model on every replication. Created once
    by ``prepare_metadata`` and passed to ``SimulationRunner``.

    Attributes:
        target_tests: Names being tested (labels and defined effects).
        population_targets: True value of each target, same order.
        labels: Free-parameter labels in estimation order.
        definitions: All defined effects (name -> expression), in order.
        correlation_matrix: Correlations among exogenous variables.
        var_types: Integer-coded distribution per exogenous variable
            (0=normal, 1=binary, 2=right_skewed, 3=left_skewed,
            4=high_kurtosis, 5=uniform).
        var_params: Per-variable parameters (binary proportions).
        generation_equations: ``(outcome_column, [(value, columns)])`` per
            endogenous variable, in generation order.
        fit_equations: ``(outcome_column, free_terms, fixed_terms)`` per
            endogenous variable, in generation order.
        residual_variances: Disturbance variance per endogenous variable.
        n_vars: Number of observed variables.
        correction_method: Encoded multiple-comparison correction
            (0=none, 1=Bonferroni, 2=BH, 3=Holm).
    """

    def __init__(
        self,
        target_tests: List[str],
        population_targets: np.ndarray,
        labels: List[str],
        definitions: Dict[str, str],
        correlation_matrix: np.ndarray,
        var_types: np.ndarray,
        var_params: np.ndarray,
        generation_equations: List,
        fit_equations: List,
        residual_variances: np.ndarray,
        n_vars: int,
        correction_method: int = 0,
    ):
        self.target_tests = target_tests
        self.population_targets = population_targets
        self.labels = labels
        self.definitions = definitions
        self.correlation_matrix = correlation_matrix
        self.var_types = var_types
        self.var_params = var_params
        self.generation_equations = generation_equations
        self.fit_equations = fit_equations
        self.residual_variances = residual_variances
        self.n_vars = n_vars
        self.correction_method = correction_method

    @property
    def needs_defined(self) -> bool:
        """Whether any target is a defined effect."""
        return any(name in self.definitions for name in self.target_tests)


def prepare_metadata(
    model,
    target_tests: List[str],
    correction: Optional[str] = None,
) -> SimulationMetadata:
    """
    Prepare simulation metadata from model state.

    This function extracts and pre-computes all data needed for running
    simulations, converting model state into numpy arrays and column
    indices.

    Args:
        model: MedPower instance
        target_tests: List of labels and defined effects to test
        correction: Multiple comparison correction method

    Returns:
        SimulationMetadata instance

    Raises:
        ValueError: If standardised residual variances cannot be derived.
    """
    registry = model._registry
    columns = {name: registry.get_variable(name).column_index for name in registry.variable_names}

    n_exog = len(registry.exogenous_names)
    corr = registry.get_correlation_matrix()
    correlation_matrix = corr if corr is not None else np.eye(n_exog)

    generation_equations = []
    fit_equations = []
    for outcome in registry.endogenous_names:
        gen_terms = []
        free_terms = []
        fixed_terms = []
        for path in registry.paths_for(outcome):
            cols = [columns[c] for c in path.components]
            gen_terms.append((path.population_value, cols))
            if path.is_free:
                free_terms.append((path.label, cols))
            else:
                fixed_terms.append((path.fixed, cols))
        generation_equations.append((columns[outcome], gen_terms))
        fit_equations.append((columns[outcome], free_terms, fixed_terms))

    var_types = registry.get_var_types()
    var_params = registry.get_var_params()

    if registry.standardized:
        residual_variances = standardized_residual_variances(
            correlation_matrix,
            var_types,
            var_params,
            generation_equations,
            len(columns),
            registry.endogenous_names,
            seed=model.seed,
        )
    else:
        residual_variances = registry.get_residual_variances()

    population = registry.population_targets()

    return SimulationMetadata(
        target_tests=list(target_tests),
        population_targets=np.array([population[name] for name in target_tests], dtype=float),
        labels=registry.parameter_names,
        definitions=registry.definitions,
        correlation_matrix=correlation_matrix,
        var_types=var_types,
        var_params=var_params,
        generation_equations=generation_equations,
        fit_equations=fit_equations,
        residual_variances=residual_variances,
        n_vars=len(columns),
        correction_method=encode_correction(correction),
    )
