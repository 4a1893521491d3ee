"""
MedPower - Monte Carlo Power Analysis for moderated mediation.

This module provides the main MedPower class for conducting power analysis
of observed-variable path models using Monte Carlo simulations.
"""

from typing import Any, Dict, List, Optional, Union

import numpy as np

from .core import (
    PathRegistry,
    ResultsProcessor,
    SimulationRunner,
    build_power_result,
    build_sample_size_result,
    prepare_metadata,
)
from .utils.formatters import _format_results
from .utils.validators import (
    _validate_alpha,
    _validate_ci_method,
    _validate_correction_method,
    _validate_correlation_matrix,
    _validate_draws,
    _validate_model_ready,
    _validate_parallel_settings,
    _validate_power,
    _validate_sample_size,
    _validate_sample_size_for_model,
    _validate_sample_size_range,
    _validate_simulations,
)
from .utils.visualization import _create_power_plot


class MedPower:
    """Monte Carlo Power Analysis for path models.

    Conducts simulation-based power analysis for recursive observed-variable
    path models: simple and moderated mediation, serial mediation, and any
    other model written as a set of regressions. Tests target single
    labelled paths and defined effects such as conditional indirect effects
    and the index of moderated mediation.

    All configuration methods (``set_*``) return ``self`` for method
    chaining. Model-content settings (effects, variable types,
    correlations, residual variances) are deferred: they are stored as
    pending and processed in the correct order when ``apply()`` is called
    (or automatically before ``find_power``/``find_sample_size``).

    Attributes:
        seed: Random seed for reproducibility (default: 2137).
        power: Target power level in percent (default: 80.0).
        alpha: Significance level (default: 0.05).
        n_simulations: Number of Monte Carlo replications (default: 1000).
        n_draws: Monte Carlo draws per interval of a defined effect
            (default: 1000).
        ci_method: Interval for defined effects, ``"monte_carlo"``
            (default) or ``"delta"``.
        parallel: Whether sample sizes are simulated in parallel.
        n_cores: Number of CPU cores for parallel execution.
        max_failed_simulations: Maximum acceptable failure rate (default: 0.03).

    Example:
        >>> model = MedPower('''
        ...     m ~ a1*x + a2*w + a3*x:w
        ...     y ~ cp*x + b1*m
        ...     imm := a3*b1
        ... ''')
        >>> model.set_effects("a1=0.3, a2=0.1, a3=0.2, cp=0.1, b1=0.3")
        >>> model.find_power(sample_size=200, target_test="imm")
    """

    def __init__(self, model_syntax: str):
        """Initialize Monte Carlo Power Analysis.

        Parses the model syntax, creates the path registry, and sets all
        configuration attributes to their defaults.

        Args:
            model_syntax: lavaan-style path model. Regressions use ``~``
                with ``label*var`` for labelled free paths, ``0.2*var``
                for fixed paths and ``x:w`` for products. Defined effects
                use ``name := expression``. Statements are separated by
                newlines or ``;``; ``#`` starts a comment.
        """
        # Core configuration (applied immediately)
        self.seed: Optional[int] = 2137
        self.power = 80.0
        self.alpha = 0.05
        self.n_simulations = 1000
        self.n_draws = 1000
        self.ci_method = "monte_carlo"

        # Parallel processing
        import multiprocessing as mp

        self.parallel = False
        self.n_cores = max(1, (mp.cpu_count() or 1) // 2)

        # Simulation failure tolerance
        self.max_failed_simulations = 0.03  # 3% default

        self._registry = PathRegistry(model_syntax)

        # Pending inputs (deferred until apply())
        self._pending_variable_types: Optional[str] = None
        self._pending_effects: Optional[str] = None
        self._pending_correlations: Optional[Union[str, np.ndarray]] = None
        self._pending_residuals: Optional[str] = None

        self._applied = False

        registry = self._registry
        print(f"Variables: {', '.join(registry.exogenous_names)} (exogenous), {', '.join(registry.endogenous_names)} (endogenous)")
        print(f"Found {len(registry.path_names)} paths, {len(registry.parameter_names)} free parameters")
        if registry.defined_names:
            print(f"Defined effects: {', '.join(registry.defined_names)}")

    # =========================================================================
    # Model properties
    # =========================================================================

    @property
    def model_syntax(self) -> str:
        """Original model syntax."""
        return self._registry.model_syntax

    @property
    def correlation_matrix(self) -> Optional[np.ndarray]:
        """Correlation matrix among exogenous variables."""
        return self._registry.get_correlation_matrix()

    @correlation_matrix.setter
    def correlation_matrix(self, value: Optional[np.ndarray]):
        if value is not None:
            self._registry.set_correlation_matrix(value)

    @property
    def parameters(self) -> List[str]:
        """Free-parameter labels."""
        return self._registry.parameter_names

    @property
    def defined_effects(self) -> Dict[str, str]:
        """Defined effects (name -> expression)."""
        return self._registry.definitions

    # =========================================================================
    # Configuration methods
    # =========================================================================

    def set_parallel(self, enable: bool = True, n_cores: Optional[int] = None):
        """Enable or disable parallel processing of the sample-size sweep.

        Requires ``joblib`` to be installed. Falls back to sequential
        processing with a warning if ``joblib`` is unavailable.

        Args:
            enable: ``True`` to simulate sample sizes in parallel.
            n_cores: Number of CPU cores to use. Defaults to
                ``cpu_count // 2``.

        Returns:
            self: For method chaining.
        """
        if enable is False:
            self.parallel, self.n_cores = False, 1
            return self

        try:
            import joblib  # noqa: F401
        except ImportError:
            print("Warning: joblib not available. Install with: pip install medpower[parallel]")
            print("Warning: Continuing with sequential processing.")
            self.parallel = False
            return self

        settings, result = _validate_parallel_settings(enable, n_cores)
        result.raise_if_invalid()
        self.parallel, self.n_cores = settings
        return self

    def set_seed(self, seed: Optional[int] = None):
        """Set random seed for reproducibility.

        Args:
            seed: Non-negative integer up to 3,000,000,000.
                Pass ``None`` to enable fully random seeding.

        Returns:
            self: For method chaining.

        Raises:
            TypeError: If *seed* is not an integer or ``None``.
            ValueError: If *seed* is negative or exceeds the maximum.
        """
        if seed is not None:
            if isinstance(seed, bool) or not isinstance(seed, int):
                raise TypeError("seed must be an integer or None")
            if seed < 0:
                raise ValueError("seed must be non-negative")
            if seed > 3000000000:
                raise ValueError("seed must be lower than 3,000,000,000")

        self.seed = seed
        if seed is not None:
            print(f"Seed set to: {seed}")
        else:
            print("Random seeding enabled")
        return self

    def set_power(self, power: float):
        """Set the target statistical power level.

        Used by ``find_sample_size`` to determine when power is sufficient.

        Args:
            power: Target power as a percentage (0-100). Default is 80.

        Returns:
            self: For method chaining.

        Raises:
            ValueError: If *power* is outside the valid range.
        """
        result = _validate_power(power)
        result.raise_if_invalid()
        self.power = float(power)
        return self

    def set_alpha(self, alpha: float):
        """Set the significance level; intervals have level ``1 - alpha``.

        Args:
            alpha: Type-I error rate (0-0.25). Default is 0.05.

        Returns:
            self: For method chaining.

        Raises:
            ValueError: If *alpha* is outside the valid range.
        """
        result = _validate_alpha(alpha)
        result.raise_if_invalid()
        self.alpha = float(alpha)
        return self

    def set_simulations(self, n_simulations: int):
        """Set the number of Monte Carlo replications per sample size.

        Args:
            n_simulations: Number of replications (positive integer).

        Returns:
            self: For method chaining.

        Raises:
            ValueError: If *n_simulations* is not a positive integer.
        """
        n_sims, result = _validate_simulations(n_simulations)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self.n_simulations = n_sims
        return self

    def set_draws(self, n_draws: int):
        """Set the number of Monte Carlo draws behind each defined-effect interval.

        Args:
            n_draws: Draws per replication (at least 100).

        Returns:
            self: For method chaining.
        """
        draws, result = _validate_draws(n_draws)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self.n_draws = draws
        return self

    def set_ci_method(self, ci_method: str):
        """Choose the interval for defined effects.

        Args:
            ci_method: ``"monte_carlo"`` (percentile interval of draws from
                the estimates' sampling distribution) or ``"delta"``
                (first-order normal approximation).

        Returns:
            self: For method chaining.
        """
        _validate_ci_method(ci_method).raise_if_invalid()
        self.ci_method = ci_method
        return self

    def set_max_failed_simulations(self, percentage: float):
        """Set the maximum acceptable proportion of failed replications.

        A replication fails when an equation cannot be estimated (singular
        design, e.g. a binary predictor with a single level in a small
        sample). Failed replications are discarded; if the failure rate
        exceeds this threshold the analysis raises an error.

        Args:
            percentage: Maximum failure rate as a proportion (0-1).
                Default is 0.03 (3%).

        Returns:
            self: For method chaining.

        Raises:
            ValueError: If *percentage* is not between 0 and 1.
        """
        if not 0 <= percentage <= 1:
            raise ValueError("percentage must be between 0 and 1")
        self.max_failed_simulations = percentage
        return self

    def set_effects(self, effects_string: str):
        """Set population values for free parameters.

        Each assignment maps a label (``a1=0.3``) or an unlabelled path
        (``y~x=0.1``) to its population value. Assigning a shared label
        sets every path that carries it.

        This setting is deferred until ``apply()`` is called.

        Args:
            effects_string: Comma-separated ``name=value`` pairs.

        Returns:
            self: For method chaining.

        Raises:
            TypeError: If *effects_string* is not a string.
            ValueError: If *effects_string* is empty or contains invalid
                assignments (checked at apply time).
        """
        if not isinstance(effects_string, str):
            raise TypeError("effects_string must be a string")
        if not effects_string.strip():
            raise ValueError("effects_string cannot be empty")

        self._pending_effects = effects_string
        self._applied = False
        return self

    def set_correlations(self, correlations_input):
        """Set correlations between exogenous variables.

        This setting is deferred until ``apply()`` is called.

        Args:
            correlations_input: Either a comma-separated string of pair-wise
                assignments (e.g. ``"corr(x, w)=0.3"``) or a full NumPy
                correlation matrix over the exogenous variables.

        Returns:
            self: For method chaining.

        Raises:
            TypeError: If *correlations_input* is not a string or ndarray.
            ValueError: If the matrix is not positive semi-definite or has
                wrong dimensions (checked at apply time).
        """
        if not isinstance(correlations_input, (str, np.ndarray)):
            raise TypeError("correlations_input must be string or numpy array")

        self._pending_correlations = correlations_input
        self._applied = False
        return self

    def set_variable_type(self, variable_types_string: str):
        """Set distribution types for exogenous variables.

        Variables default to ``"normal"``. Endogenous variables are always
        generated from their equation with a normal disturbance.

        This setting is deferred until ``apply()`` is called.

        Args:
            variable_types_string: Comma-separated ``name=type`` assignments.
                Supported types: ``"normal"``, ``"binary"`` (p=0.5),
                ``"(binary,p)"``, ``"right_skewed"``, ``"left_skewed"``,
                ``"high_kurtosis"`` and ``"uniform"``. All continuous types
                have mean 0 and variance 1.

                Example: ``"w=binary, x=(binary,0.3)"``.

        Returns:
            self: For method chaining.

        Raises:
            TypeError: If *variable_types_string* is not a string.
        """
        if not isinstance(variable_types_string, str):
            raise TypeError("variable_types_string must be a string")

        self._pending_variable_types = variable_types_string
        self._applied = False
        return self

    def set_residual_variances(self, residuals: str):
        """Set disturbance variances of endogenous variables.

        This setting is deferred until ``apply()`` is called.

        Args:
            residuals: Either comma-separated ``name=value`` pairs
                (``"m=0.8, y=0.6"``; unset variables keep 1.0) or
                ``"standardized"``, which derives every disturbance
                variance so that each endogenous variable has unit
                population variance. Path values are then standardised
                coefficients.

        Returns:
            self: For method chaining.

        Raises:
            TypeError: If *residuals* is not a string.
        """
        if not isinstance(residuals, str):
            raise TypeError("residuals must be a string")
        if not residuals.strip():
            raise ValueError("residuals cannot be empty")

        self._pending_residuals = residuals
        self._applied = False
        return self

    # =========================================================================
    # Apply method (processes all pending settings)
    # =========================================================================

    def apply(self):
        """
        Apply all pending settings to the model.

        Processes settings in the correct order:
        1. Variable types
        2. Effects
        3. Correlations
        4. Residual variances

        This method is called automatically before find_power() or find_sample_size()
        if any settings have changed since the last apply().

        Returns:
            self for method chaining
        """
        from .utils.parsers import _parser

        self._apply_variable_types(_parser)
        self._apply_effects(_parser)
        self._apply_correlations(_parser)
        self._apply_residuals(_parser)

        model_result = _validate_model_ready(self)
        for warning in model_result.warnings:
            print(f"Warning: {warning}")
        model_result.raise_if_invalid()

        self._applied = True
        print("Model settings applied successfully")
        return self

    def _apply_variable_types(self, _parser):
        """Apply pending variable types to exogenous variables."""
        if self._pending_variable_types is None or not self._pending_variable_types.strip():
            return

        parsed_vars, errors = _parser._parse(self._pending_variable_types, "variable_type", self._registry.exogenous_names)
        if errors:
            raise ValueError("Error setting variable types:\n" + "\n".join(f"- {e}" for e in errors))

        successful = []
        for var_name, var_data in parsed_vars.items():
            var_type = var_data["type"]
            self._registry.set_variable_type(var_name, var_type, var_data.get("proportion"))
            if "proportion" in var_data:
                successful.append(f"{var_name}=({var_type},{var_data['proportion']})")
            else:
                successful.append(f"{var_name}={var_type}")

        if successful:
            print(f"Variable types: {', '.join(successful)}")

    def _apply_effects(self, _parser):
        """Parse and apply pending population values to the registry."""
        if self._pending_effects is None:
            return

        parsed, errors = _parser._parse(self._pending_effects, "effect", self._registry.settable_names)
        if errors:
            raise ValueError("Effect validation failed:\n" + "\n".join(f"- {e}" for e in errors))

        successful = []
        for name, value in parsed.items():
            self._registry.set_effect_size(name, value)
            successful.append(f"{name}={value}")

        if successful:
            print(f"Effects: {', '.join(successful)}")

    def _apply_correlations(self, _parser):
        """Parse and apply pending correlation settings to the registry."""
        if self._pending_correlations is None:
            return

        exogenous = self._registry.exogenous_names
        if len(exogenous) < 2:
            raise ValueError("Need at least 2 exogenous variables for correlations")

        n_vars = len(exogenous)
        correlations_input = self._pending_correlations

        if isinstance(correlations_input, str):
            if not correlations_input.strip():
                return

            correlations, errors = _parser._parse(correlations_input, "correlation", exogenous)
            if errors:
                raise ValueError("Error setting correlations:\n" + "\n".join(f"- {e}" for e in errors))

            self._registry.set_correlation_matrix(np.eye(n_vars))
            for (var1, var2), value in correlations.items():
                self._registry.set_correlation(var1, var2, value)

            result = _validate_correlation_matrix(self.correlation_matrix)
            if not result.is_valid:
                raise ValueError("Invalid correlation matrix:\n" + "\n".join(f"- {e}" for e in result.errors))

            print(f"Correlations: {len(correlations)} set")

        elif isinstance(correlations_input, np.ndarray):
            if correlations_input.shape != (n_vars, n_vars):
                raise ValueError(f"Matrix shape {correlations_input.shape} doesn't match {n_vars} exogenous variables")

            result = _validate_correlation_matrix(correlations_input)
            if not result.is_valid:
                raise ValueError("Invalid correlation matrix:\n" + "\n".join(f"- {e}" for e in result.errors))

            self._registry.set_correlation_matrix(correlations_input)
            print("Correlation matrix set")

    def _apply_residuals(self, _parser):
        """Apply pending residual variances, or switch to standardised mode."""
        if self._pending_residuals is None:
            return

        if self._pending_residuals.strip().lower() in ("standardized", "standardised"):
            self._registry.set_standardized(True)
            print("Residual variances: standardized")
            return

        parsed, errors = _parser._parse(self._pending_residuals, "residual", self._registry.endogenous_names)
        if errors:
            raise ValueError("Error setting residual variances:\n" + "\n".join(f"- {e}" for e in errors))

        self._registry.set_standardized(False)
        for name, value in parsed.items():
            self._registry.set_residual_variance(name, value)
        print(f"Residual variances: {', '.join(f'{k}={v}' for k, v in parsed.items())}")

    # =========================================================================
    # Analysis
    # =========================================================================

    def population_effects(self) -> Dict[str, float]:
        """Population value of every testable target (labels and defined effects)."""
        if not self._applied:
            self.apply()
        return self._registry.population_targets()

    def find_power(
        self,
        sample_size: int,
        target_test: Union[str, List[str]] = "all",
        correction: Optional[str] = None,
        print_results: bool = True,
        summary: str = "short",
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """
        Calculate statistical power for a given sample size.

        Args:
            sample_size: Number of observations per replication
            target_test: Target(s) to test - a label, a defined effect, a
                comma-separated list, "all" (every label and defined
                effect), "paths" or "defined"
            correction: Multiple comparison correction (None, "bonferroni", "benjamini-hochberg", "holm")
            print_results: Whether to print results
            summary: Output detail level ("short" or "long")
            return_results: Return results dict
            progress_callback: Progress reporting control:
                - ``None`` (default): auto-use ``PrintReporter`` when
                  *print_results* is ``True``.
                - ``False``: explicitly disable progress.
                - callable ``(current, total)``: custom callback.
                - a ``ProgressReporter``: advanced in place, not started
                  or finished (used to share one count across a study).
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            dict or None: If *return_results* is ``True``, returns a
            results dictionary with keys ``"model"`` (metadata) and
            ``"results"`` (power estimates and estimate summaries).
            Returns ``None`` otherwise.
        """
        if not self._applied:
            self.apply()

        _validate_sample_size(sample_size).raise_if_invalid()
        _validate_sample_size_for_model(sample_size, self._largest_equation()).raise_if_invalid()

        self._validate_analysis_inputs(correction)
        target_tests = self._parse_target_tests(target_test)

        reporter = self._make_reporter(progress_callback, print_results, n_sample_sizes=1)
        owns_reporter = reporter is not progress_callback
        if reporter is not None and owns_reporter:
            reporter.start()

        result = self._run_find_power(
            sample_size,
            target_tests,
            correction,
            progress=reporter,
            cancel_check=cancel_check,
        )

        if reporter is not None and owns_reporter:
            reporter.finish()

        if print_results:
            print(f"\n{'=' * 80}")
            print("MONTE CARLO POWER ANALYSIS RESULTS")
            print(f"{'=' * 80}")
            if correction:
                print(f"Multiple comparison correction: {correction}")
            print(_format_results("power", result, summary))

        return result if return_results else None

    def find_sample_size(
        self,
        target_test: Union[str, List[str]] = "all",
        from_size: int = 50,
        to_size: int = 500,
        by: int = 25,
        correction: Optional[str] = None,
        print_results: bool = True,
        summary: str = "short",
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """
        Find minimum sample size needed for target power.

        Args:
            target_test: Target(s) to test (see ``find_power``)
            from_size: Minimum sample size to test
            to_size: Maximum sample size to test
            by: Step size between sample sizes
            correction: Multiple comparison correction
            print_results: Whether to print results
            summary: Output detail level; "long" also draws power curves
            return_results: Return results dict
            progress_callback: Progress reporting control (see ``find_power``).
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            dict or None: If *return_results* is ``True``, returns a
            results dictionary with keys ``"model"`` (metadata) and
            ``"results"`` (per-sample-size power estimates, first-achieved
            sizes). Returns ``None`` otherwise.
        """
        if not self._applied:
            self.apply()

        _validate_sample_size(from_size).raise_if_invalid()
        _validate_sample_size_for_model(from_size, self._largest_equation()).raise_if_invalid()

        self._validate_analysis_inputs(correction)
        validation_result = _validate_sample_size_range(from_size, to_size, by)
        for warning in validation_result.warnings:
            print(f"Warning: {warning}")
        validation_result.raise_if_invalid()

        target_tests = self._parse_target_tests(target_test)
        sample_sizes = list(range(from_size, to_size + 1, by))

        reporter = self._make_reporter(progress_callback, print_results, n_sample_sizes=len(sample_sizes))
        owns_reporter = reporter is not progress_callback
        if reporter is not None and owns_reporter:
            reporter.start()

        result = self._run_sample_size_analysis(
            sample_sizes,
            target_tests,
            correction,
            progress=reporter,
            cancel_check=cancel_check,
        )

        if reporter is not None and owns_reporter:
            reporter.finish()

        if print_results:
            print(f"\n{'=' * 80}")
            print("SAMPLE SIZE ANALYSIS RESULTS")
            print(f"{'=' * 80}")
            if correction:
                print(f"Multiple comparison correction: {correction}")
            print(_format_results("sample_size", result, summary))

            if summary == "long":
                self._create_sample_size_plots(result)

        return result if return_results else None

    # =========================================================================
    # Internal methods
    # =========================================================================

    def _make_reporter(self, progress_callback, print_results: bool, n_sample_sizes: int):
        """Resolve the progress callback into a ``ProgressReporter`` (or ``None``)."""
        from .progress import PrintReporter, ProgressReporter, compute_total_simulations

        if isinstance(progress_callback, ProgressReporter):
            return progress_callback
        if progress_callback is None:
            effective_cb = PrintReporter() if print_results else None
        elif progress_callback is False:
            effective_cb = None
        else:
            effective_cb = progress_callback

        if effective_cb is None:
            return None
        total = compute_total_simulations(self.n_simulations, n_sample_sizes)
        return ProgressReporter(total, effective_cb)

    def _largest_equation(self) -> int:
        """Number of free predictors in the largest equation."""
        return max(
            (sum(1 for p in self._registry.paths_for(outcome) if p.is_free) for outcome in self._registry.endogenous_names),
            default=0,
        )

    def _validate_analysis_inputs(self, correction):
        """Validate the multiple-comparison correction method before analysis."""
        result = _validate_correction_method(correction)
        result.raise_if_invalid()

    def _parse_target_tests(self, target_test: Union[str, List[str]]) -> List[str]:
        """Parse a target_test argument into a list of target names."""
        registry = self._registry
        if isinstance(target_test, str):
            keyword = target_test.strip().lower()
            if keyword == "all":
                target_test = registry.target_names
            elif keyword == "paths":
                target_test = registry.parameter_names
            elif keyword == "defined":
                target_test = registry.defined_names
                if not target_test:
                    raise ValueError("Model has no defined effects (use 'name := expression')")
            elif "," in target_test:
                target_test = [t.strip() for t in target_test.split(",")]
            else:
                target_test = [target_test.strip()]

        # Unlabelled paths may be referred to by path name
        resolved = []
        for name in target_test:
            path = registry.get_path(name)
            if path is not None and path.is_free:
                name = path.label
            if name not in resolved:
                resolved.append(name)

        valid = registry.target_names
        invalid = [t for t in resolved if t not in valid]
        if invalid:
            raise ValueError(f"Invalid target test(s): {', '.join(invalid)}. Available: {', '.join(valid)}")

        return resolved

    def _prepare_metadata(self, target_tests, correction=None):
        """Pre-compute all static simulation metadata from the current model state."""
        return prepare_metadata(self, target_tests, correction)

    def _run_find_power(
        self,
        sample_size,
        target_tests,
        correction,
        seed_offset: int = 0,
        progress=None,
        cancel_check=None,
        phase: Optional[str] = None,
    ):
        """Run the Monte Carlo simulation loop and return a power result dict."""
        if progress is not None:
            progress.begin_sample_size(sample_size, phase)
        metadata = self._prepare_metadata(target_tests, correction)

        runner = SimulationRunner(
            n_simulations=self.n_simulations,
            seed=self.seed + seed_offset if self.seed is not None else None,
            alpha=self.alpha,
            n_draws=self.n_draws,
            ci_method=self.ci_method,
            max_failed_simulations=self.max_failed_simulations,
        )

        sim_results = runner.run_power_simulations(
            sample_size=sample_size,
            metadata=metadata,
            progress=progress,
            cancel_check=cancel_check,
        )

        processor = ResultsProcessor(target_power=self.power)
        power_results = processor.calculate_powers(
            sim_results["all_results"],
            sim_results["all_results_corrected"],
            target_tests,
        )
        power_results["estimate_summaries"] = processor.summarize_estimates(
            sim_results["all_estimates"],
            sim_results["all_standard_errors"],
            sim_results["all_covered"],
            metadata.population_targets,
            target_tests,
        )
        power_results["n_simulations_failed"] = sim_results["n_simulations_failed"]

        return build_power_result(
            target_tests=target_tests,
            model_syntax=self.model_syntax,
            sample_size=sample_size,
            alpha=self.alpha,
            n_simulations=self.n_simulations,
            correction=correction,
            target_power=self.power,
            ci_method=self.ci_method,
            parallel=self.parallel,
            power_results=power_results,
        )

    def _run_sample_size_analysis(
        self,
        sample_sizes,
        target_tests,
        correction,
        progress=None,
        cancel_check=None,
    ):
        """Iterate over sample sizes, running power analysis for each."""
        from .progress import SimulationCancelled

        if self.parallel:
            from joblib import Parallel, delayed

            try:
                power_results = Parallel(
                    n_jobs=self.n_cores,
                    backend="loky",
                    verbose=0,
                    return_as="generator",
                )(delayed(self._run_find_power)(ss, target_tests, correction) for ss in sample_sizes)
                results = []
                for ss, result in zip(sample_sizes, power_results):
                    if cancel_check is not None and cancel_check():
                        raise SimulationCancelled("Simulation cancelled by user")
                    results.append((ss, result))
                    if progress is not None:
                        progress.begin_sample_size(ss)
                        progress.advance(self.n_simulations)
            except (SimulationCancelled, RuntimeError):
                raise
            except Exception as e:
                print(f"Warning: Parallel execution failed ({e}). Falling back to sequential.")
                results = self._run_sequential(sample_sizes, target_tests, correction, progress, cancel_check)
        else:
            results = self._run_sequential(sample_sizes, target_tests, correction, progress, cancel_check)

        processor = ResultsProcessor(target_power=self.power)
        analysis_results = processor.process_sample_size_results(results, target_tests, correction)

        return build_sample_size_result(
            target_tests=target_tests,
            model_syntax=self.model_syntax,
            sample_sizes=sample_sizes,
            alpha=self.alpha,
            n_simulations=self.n_simulations,
            correction=correction,
            target_power=self.power,
            ci_method=self.ci_method,
            parallel=self.parallel,
            analysis_results=analysis_results,
        )

    def _run_sequential(self, sample_sizes, target_tests, correction, progress=None, cancel_check=None):
        from .progress import SimulationCancelled

        results = []
        for sample_size in sample_sizes:
            if cancel_check is not None and cancel_check():
                raise SimulationCancelled("Simulation cancelled by user")
            power_result = self._run_find_power(
                sample_size,
                target_tests,
                correction,
                progress=progress,
                cancel_check=cancel_check,
            )
            results.append((sample_size, power_result))
        return results

    def _create_sample_size_plots(self, results, save_path: Optional[str] = None, selected_size: Optional[int] = None):
        """Create power-vs-sample-size plots (uncorrected and/or corrected)."""
        common: Dict[str, Any] = {
            "sample_sizes": results["results"]["sample_sizes_tested"],
            "target_tests": results["model"]["target_tests"],
            "target_power": self.power,
            "defined_effects": self._registry.defined_names,
            "selected_size": selected_size,
        }
        if results.get("model", {}).get("correction"):
            _create_power_plot(
                powers_by_test=results["results"]["powers_by_test"],
                first_achieved=results["results"]["first_achieved"],
                title="Uncorrected Power",
                save_path=save_path,
                **common,
            )
            _create_power_plot(
                powers_by_test=results["results"]["powers_by_test_corrected"],
                first_achieved=results["results"]["first_achieved_corrected"],
                title=f"Corrected Power ({results['model']['correction'].title()})",
                save_path=save_path.replace(".png", "_corrected.png") if save_path else None,
                **common,
            )
        else:
            _create_power_plot(
                powers_by_test=results["results"]["powers_by_test"],
                first_achieved=results["results"]["first_achieved"],
                title="Power Analysis",
                save_path=save_path,
                **common,
            )

    def __repr__(self):
        return f"MedPower(exogenous={self._registry.exogenous_names}, endogenous={self._registry.endogenous_names}, targets={self._registry.target_names})"
