"""Unit tests for medpower.core.results."""

import numpy as np
import pandas as pd
import pytest

from medpower.core.results import (
    ResultsProcessor,
    build_power_result,
    build_sample_size_result,
    results_to_dataframe,
)

TARGETS = ["a", "b", "ind"]


def _power_result(powers, corrected=None, n_failed=0):
    corrected = powers if corrected is None else corrected
    return {
        "results": {
            "individual_powers": dict(zip(TARGETS, powers)),
            "individual_powers_corrected": dict(zip(TARGETS, corrected)),
            "n_simulations_failed": n_failed,
        }
    }


class TestCalculatePowers:
    def test_individual_and_combined(self):
        results = [
            np.array([True, True, True]),
            np.array([True, False, False]),
            np.array([False, False, False]),
            np.array([True, True, False]),
        ]
        corrected = [np.array([True, False, False])] * 4
        out = ResultsProcessor().calculate_powers(results, corrected, TARGETS)

        assert out["individual_powers"] == {"a": 75.0, "b": 50.0, "ind": 25.0}
        assert out["individual_powers_corrected"] == {"a": 100.0, "b": 0.0, "ind": 0.0}
        assert out["combined_probabilities"] == {
            "exactly_0_significant": 25.0,
            "exactly_1_significant": 25.0,
            "exactly_2_significant": 25.0,
            "exactly_3_significant": 25.0,
        }
        assert out["cumulative_probabilities"]["at_least_0_significant"] == 100.0
        assert out["cumulative_probabilities"]["at_least_2_significant"] == 50.0
        assert out["cumulative_probabilities_corrected"]["at_least_1_significant"] == 100.0
        assert out["n_simulations_used"] == 4

    def test_combined_sums_to_100(self):
        rng = np.random.RandomState(0)
        results = [rng.rand(3) < 0.5 for _ in range(37)]
        out = ResultsProcessor().calculate_powers(results, results, TARGETS)
        assert sum(out["combined_probabilities"].values()) == pytest.approx(100.0)


class TestSummarizeEstimates:
    def test_summary_values(self):
        estimates = [np.array([0.3, 0.1]), np.array([0.5, 0.3])]
        ses = [np.array([0.1, 0.2]), np.array([0.3, 0.2])]
        covered = [np.array([True, True]), np.array([False, True])]
        out = ResultsProcessor().summarize_estimates(estimates, ses, covered, np.array([0.4, 0.0]), ["a", "ind"])

        assert out["a"]["mean_estimate"] == pytest.approx(0.4)
        assert out["a"]["bias"] == pytest.approx(0.0)
        assert out["a"]["sd_estimate"] == pytest.approx(np.std([0.3, 0.5], ddof=1))
        assert out["a"]["mean_se"] == pytest.approx(0.2)
        assert out["a"]["coverage"] == 50.0
        assert out["ind"]["population"] == 0.0
        assert out["ind"]["bias"] == pytest.approx(0.2)
        assert out["ind"]["coverage"] == 100.0

    def test_single_replication(self):
        out = ResultsProcessor().summarize_estimates([np.array([0.2])], [np.array([0.1])], [np.array([True])], np.array([0.2]), ["a"])
        assert out["a"]["sd_estimate"] == 0.0


class TestProcessSampleSizeResults:
    def test_first_achieved(self):
        results = [
            (50, _power_result([60.0, 90.0, 40.0])),
            (100, _power_result([85.0, 95.0, 70.0])),
            (150, _power_result([75.0, 99.0, 82.0])),
        ]
        out = ResultsProcessor(target_power=80.0).process_sample_size_results(results, TARGETS, None)
        assert out["sample_sizes_tested"] == [50, 100, 150]
        assert out["powers_by_test"]["a"] == [60.0, 85.0, 75.0]
        # first crossing is kept even if a later estimate dips
        assert out["first_achieved"] == {"a": 100, "b": 50, "ind": 150}
        assert out["powers_by_test_corrected"] is None
        assert out["first_achieved_corrected"] is None

    def test_never_achieved_is_minus_one(self):
        results = [(50, _power_result([10.0, 20.0, 30.0])), (100, _power_result([20.0, 30.0, 79.9]))]
        out = ResultsProcessor().process_sample_size_results(results, TARGETS, None)
        assert out["first_achieved"] == {"a": -1, "b": -1, "ind": -1}

    def test_corrected_tracked_with_correction(self):
        results = [
            (50, _power_result([85.0, 85.0, 85.0], corrected=[70.0, 70.0, 70.0])),
            (100, _power_result([95.0, 95.0, 95.0], corrected=[90.0, 80.0, 70.0], n_failed=2)),
        ]
        out = ResultsProcessor().process_sample_size_results(results, TARGETS, "holm")
        assert out["first_achieved"] == {"a": 50, "b": 50, "ind": 50}
        assert out["first_achieved_corrected"] == {"a": 100, "b": 100, "ind": -1}
        assert out["n_simulations_failed"] == [0, 2]

    def test_missing_results_skipped(self):
        results = [(50, None), (100, _power_result([85.0, 85.0, 85.0]))]
        out = ResultsProcessor().process_sample_size_results(results, TARGETS, None)
        assert out["sample_sizes_tested"] == [100]


class TestBuildResults:
    def test_power_result(self):
        out = build_power_result(TARGETS, "m ~ a*x", 200, 0.05, 1000, None, 80.0, "monte_carlo", False, {"n_simulations_used": 990})
        assert set(out) == {"model", "results"}
        assert out["model"]["sample_size"] == 200
        assert out["model"]["n_simulations"] == 990
        assert out["model"]["ci_method"] == "monte_carlo"

    def test_sample_size_result_range(self):
        out = build_sample_size_result(TARGETS, "m ~ a*x", [50, 75, 100], 0.05, 500, "holm", 80.0, "delta", False, {})
        assert out["model"]["sample_size_range"] == {"from_size": 50, "to_size": 100, "by": 25}
        assert out["model"]["correction"] == "holm"


class TestResultsToDataFrame:
    def test_sweep_long_format(self):
        sweep = {
            "model": {},
            "results": {
                "sample_sizes_tested": [50, 100],
                "powers_by_test": {"a": [40.0, 80.0], "ind": [20.0, 60.0]},
                "powers_by_test_corrected": None,
            },
        }
        df = results_to_dataframe(sweep)
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ["sample_size", "target", "power"]
        assert len(df) == 4
        assert df[(df.target == "ind") & (df.sample_size == 100)]["power"].item() == 60.0

    def test_sweep_with_correction(self):
        sweep = {
            "model": {},
            "results": {
                "sample_sizes_tested": [50],
                "powers_by_test": {"a": [40.0]},
                "powers_by_test_corrected": {"a": [30.0]},
            },
        }
        df = results_to_dataframe(sweep)
        assert df["power_corrected"].tolist() == [30.0]

    def test_power_result_with_summaries(self):
        result = {
            "model": {"sample_size": 200},
            "results": {
                "individual_powers": {"a": 90.0},
                "individual_powers_corrected": {"a": 85.0},
                "estimate_summaries": {"a": {"population": 0.3, "mean_estimate": 0.31, "bias": 0.01, "coverage": 95.0}},
            },
        }
        df = results_to_dataframe(result)
        row = df.iloc[0]
        assert row["sample_size"] == 200
        assert row["power_corrected"] == 85.0
        assert row["coverage"] == 95.0
