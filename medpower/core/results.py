"""
Results processing for MedPower.

This module handles power calculation, estimate summaries and result
formatting from simulation outputs.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd


class ResultsProcessor:
    """Converts raw simulation output into power estimates and statistics.

    Computes individual power per target, combined significance
    probabilities (exactly-*k* and at-least-*k*), estimate summaries
    (bias, empirical SD, mean standard error, interval coverage), and
    aggregates sample-size sweep results to find the first sample size
    that achieves the target power.
    """

    def __init__(self, target_power: float = 80.0):
        """Initialise the results processor.

        Args:
            target_power: Target power as a percentage (0-100).
        """
        self.target_power = target_power

    def calculate_powers(
        self,
        all_results: List[np.ndarray],
        all_results_corrected: List[np.ndarray],
        target_tests: List[str],
    ) -> Dict[str, Any]:
        """
        Calculate power estimates from simulation results.

        Args:
            all_results: List of uncorrected rejection arrays per replication
            all_results_corrected: List of corrected rejection arrays per replication
            target_tests: List of target names

        Returns:
            Dictionary with power estimates and probabilities
        """
        n_sims = len(all_results)
        n_tests = len(target_tests)

        results_array = np.array(all_results, dtype=bool).reshape(n_sims, n_tests)
        results_corrected_array = np.array(all_results_corrected, dtype=bool).reshape(n_sims, n_tests)

        individual_powers = {}
        individual_powers_corrected = {}
        for col_idx, test in enumerate(target_tests):
            individual_powers[test] = float(np.mean(results_array[:, col_idx]) * 100)
            individual_powers_corrected[test] = float(np.mean(results_corrected_array[:, col_idx]) * 100)

        # Combined probabilities
        combined = {}
        combined_corrected = {}
        cumulative = {}
        cumulative_corrected = {}

        # Count how many targets were significant in each replication
        sig_counts = np.sum(results_array, axis=1)
        sig_counts_corrected = np.sum(results_corrected_array, axis=1)

        for k in range(n_tests + 1):
            combined[f"exactly_{k}_significant"] = float(np.sum(sig_counts == k) / n_sims * 100)
            combined_corrected[f"exactly_{k}_significant"] = float(np.sum(sig_counts_corrected == k) / n_sims * 100)

            cumulative[f"at_least_{k}_significant"] = float(np.sum(sig_counts >= k) / n_sims * 100)
            cumulative_corrected[f"at_least_{k}_significant"] = float(np.sum(sig_counts_corrected >= k) / n_sims * 100)

        return {
            "individual_powers": individual_powers,
            "individual_powers_corrected": individual_powers_corrected,
            "combined_probabilities": combined,
            "combined_probabilities_corrected": combined_corrected,
            "cumulative_probabilities": cumulative,
            "cumulative_probabilities_corrected": cumulative_corrected,
            "n_simulations_used": n_sims,
        }

    def summarize_estimates(
        self,
        all_estimates: List[np.ndarray],
        all_standard_errors: List[np.ndarray],
        all_covered: List[np.ndarray],
        population_targets: np.ndarray,
        target_tests: List[str],
    ) -> Dict[str, Dict[str, float]]:
        """Per-target summary of the sampling distribution of the estimates.

        Returns:
            ``{target: {"population", "mean_estimate", "sd_estimate",
            "mean_se", "bias", "coverage"}}``; coverage is a percentage.
        """
        n_sims = len(all_estimates)
        n_tests = len(target_tests)
        estimates = np.array(all_estimates, dtype=float).reshape(n_sims, n_tests)
        ses = np.array(all_standard_errors, dtype=float).reshape(n_sims, n_tests)
        covered = np.array(all_covered, dtype=bool).reshape(n_sims, n_tests)

        summaries = {}
        for col_idx, test in enumerate(target_tests):
            mean_est = float(np.mean(estimates[:, col_idx]))
            population = float(population_targets[col_idx])
            summaries[test] = {
                "population": population,
                "mean_estimate": mean_est,
                "sd_estimate": float(np.std(estimates[:, col_idx], ddof=1)) if n_sims > 1 else 0.0,
                "mean_se": float(np.mean(ses[:, col_idx])),
                "bias": mean_est - population,
                "coverage": float(np.mean(covered[:, col_idx]) * 100),
            }
        return summaries

    def process_sample_size_results(
        self,
        results: List[Tuple[int, Optional[Dict]]],
        target_tests: List[str],
        correction: Optional[str],
    ) -> Dict[str, Any]:
        """
        Process power results from sample size analysis.

        Args:
            results: List of (sample_size, power_result) tuples
            target_tests: List of target names
            correction: Correction method name

        Returns:
            Dictionary with sample size analysis results
        """
        powers_by_test: Dict[str, List[float]] = {test: [] for test in target_tests}
        powers_by_test_corrected: Dict[str, List[float]] = {test: [] for test in target_tests}
        first_achieved = dict.fromkeys(target_tests, -1)
        first_achieved_corrected = dict.fromkeys(target_tests, -1)
        sample_sizes_tested = []
        n_simulations_failed = []

        for sample_size, power_result in results:
            if power_result is None:
                continue
            sample_sizes_tested.append(sample_size)
            n_simulations_failed.append(power_result["results"].get("n_simulations_failed", 0))

            for test in target_tests:
                power = power_result["results"]["individual_powers"][test]
                power_corrected = power_result["results"]["individual_powers_corrected"][test]

                powers_by_test[test].append(power)
                powers_by_test_corrected[test].append(power_corrected)

                if power >= self.target_power and first_achieved[test] == -1:
                    first_achieved[test] = sample_size

                if power_corrected >= self.target_power and first_achieved_corrected[test] == -1:
                    first_achieved_corrected[test] = sample_size

        return {
            "sample_sizes_tested": sample_sizes_tested,
            "powers_by_test": powers_by_test,
            "powers_by_test_corrected": (powers_by_test_corrected if correction else None),
            "first_achieved": first_achieved,
            "first_achieved_corrected": (first_achieved_corrected if correction else None),
            "n_simulations_failed": n_simulations_failed,
        }


def build_power_result(
    target_tests: List[str],
    model_syntax: str,
    sample_size: int,
    alpha: float,
    n_simulations: int,
    correction: Optional[str],
    target_power: float,
    ci_method: str,
    parallel: Union[bool, str],
    power_results: Dict,
) -> Dict[str, Any]:
    """
    Build complete power analysis result dictionary.

    Args:
        target_tests: List of targets tested
        model_syntax: Original model syntax
        sample_size: Sample size tested
        alpha: Significance level
        n_simulations: Number of replications requested
        correction: Correction method
        target_power: Target power level
        ci_method: Interval method for defined effects
        parallel: Whether parallel processing was used
        power_results: Results from power calculation

    Returns:
        Complete result dictionary
    """
    return {
        "model": {
            "model_type": "Path model (OLS per equation)",
            "target_tests": target_tests,
            "model_syntax": model_syntax,
            "sample_size": sample_size,
            "alpha": alpha,
            "n_simulations": power_results.get("n_simulations_used", n_simulations),
            "correction": correction,
            "target_power": target_power,
            "ci_method": ci_method,
            "parallel": parallel,
        },
        "results": power_results,
    }


def build_sample_size_result(
    target_tests: List[str],
    model_syntax: str,
    sample_sizes: List[int],
    alpha: float,
    n_simulations: int,
    correction: Optional[str],
    target_power: float,
    ci_method: str,
    parallel: Union[bool, str],
    analysis_results: Dict,
) -> Dict[str, Any]:
    """
    Build complete sample size analysis result dictionary.

    Args:
        target_tests: List of targets tested
        model_syntax: Original model syntax
        sample_sizes: Sample sizes tested
        alpha: Significance level
        n_simulations: Number of replications
        correction: Correction method
        target_power: Target power level
        ci_method: Interval method for defined effects
        parallel: Whether parallel processing was used
        analysis_results: Results from sample size analysis

    Returns:
        Complete result dictionary
    """
    return {
        "model": {
            "model_type": "Path model (OLS per equation)",
            "target_tests": target_tests,
            "target_power": target_power,
            "model_syntax": model_syntax,
            "alpha": alpha,
            "n_simulations": n_simulations,
            "correction": correction,
            "ci_method": ci_method,
            "parallel": parallel,
            "sample_size_range": {
                "from_size": sample_sizes[0],
                "to_size": sample_sizes[-1],
                "by": sample_sizes[1] - sample_sizes[0] if len(sample_sizes) > 1 else 1,
            },
        },
        "results": analysis_results,
    }


def results_to_dataframe(result: Dict[str, Any]) -> pd.DataFrame:
    """Flatten a power or sample-size result into a long ``DataFrame``.

    Power results give one row per target with power and the estimate
    summary columns. Sample-size results give one row per
    ``(sample_size, target)`` pair.
    """
    results = result["results"]
    rows = []

    if "powers_by_test" in results:
        corrected = results.get("powers_by_test_corrected")
        for test, powers in results["powers_by_test"].items():
            for i, sample_size in enumerate(results["sample_sizes_tested"]):
                row = {"sample_size": sample_size, "target": test, "power": powers[i]}
                if corrected is not None:
                    row["power_corrected"] = corrected[test][i]
                rows.append(row)
        return pd.DataFrame(rows, columns=["sample_size", "target", "power"] + (["power_corrected"] if corrected is not None else []))

    sample_size = result["model"]["sample_size"]
    summaries = results.get("estimate_summaries", {})
    for test, power in results["individual_powers"].items():
        row = {
            "sample_size": sample_size,
            "target": test,
            "power": power,
            "power_corrected": results["individual_powers_corrected"][test],
        }
        row.update(summaries.get(test, {}))
        rows.append(row)
    return pd.DataFrame(rows)
