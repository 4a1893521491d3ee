"""Integration tests for MedPower.find_sample_size."""

import pytest

from tests.config import MODERATED_MEDIATION, MODERATED_MEDIATION_EFFECTS
from tests.helpers.power_helpers import make_model


def _sweep(model, **kwargs):
    kwargs.setdefault("from_size", 50)
    kwargs.setdefault("to_size", 150)
    kwargs.setdefault("by", 50)
    kwargs.setdefault("print_results", False)
    kwargs.setdefault("progress_callback", False)
    return model.find_sample_size(return_results=True, **kwargs)


class TestFindSampleSize:
    def test_result_structure(self, moderated_mediation_model):
        result = _sweep(moderated_mediation_model, target_test="a1, imm")
        assert set(result) == {"model", "results"}
        assert result["model"]["sample_size_range"] == {"from_size": 50, "to_size": 150, "by": 50}
        results = result["results"]
        assert results["sample_sizes_tested"] == [50, 100, 150]
        assert set(results["powers_by_test"]) == {"a1", "imm"}
        assert all(len(v) == 3 for v in results["powers_by_test"].values())
        assert results["powers_by_test_corrected"] is None
        assert results["n_simulations_failed"] == [0, 0, 0]
        for target, n in results["first_achieved"].items():
            assert n == -1 or n in results["sample_sizes_tested"]

    def test_first_achieved_matches_powers(self, moderated_mediation_model):
        result = _sweep(moderated_mediation_model, target_test="b1")
        results = result["results"]
        powers = results["powers_by_test"]["b1"]
        reached = [n for n, p in zip(results["sample_sizes_tested"], powers) if p >= 80.0]
        assert results["first_achieved"]["b1"] == (reached[0] if reached else -1)

    def test_with_correction(self, moderated_mediation_model):
        result = _sweep(moderated_mediation_model, target_test="paths", correction="holm")
        results = result["results"]
        assert results["powers_by_test_corrected"] is not None
        for target in result["model"]["target_tests"]:
            for raw, corrected in zip(results["powers_by_test"][target], results["powers_by_test_corrected"][target]):
                assert corrected <= raw

    def test_same_powers_as_find_power(self, moderated_mediation_model):
        sweep = _sweep(moderated_mediation_model, target_test="imm")
        single = moderated_mediation_model.find_power(100, target_test="imm", print_results=False, return_results=True, progress_callback=False)
        assert sweep["results"]["powers_by_test"]["imm"][1] == single["results"]["individual_powers"]["imm"]

    def test_invalid_range(self, moderated_mediation_model):
        with pytest.raises(ValueError):
            _sweep(moderated_mediation_model, from_size=200, to_size=100)
        with pytest.raises(ValueError):
            _sweep(moderated_mediation_model, from_size=10)
        with pytest.raises(ValueError, match="exceeds the maximum"):
            _sweep(moderated_mediation_model, from_size=99_000, to_size=100_100, by=1100)

    def test_progress_counts_all_sizes(self, moderated_mediation_model):
        calls = []
        _sweep(moderated_mediation_model, target_test="a1", progress_callback=lambda c, t: calls.append((c, t)))
        assert calls[0] == (0, 150)
        assert calls[-1] == (150, 150)

    def test_progress_reports_current_sample_size(self, moderated_mediation_model):
        stages = []

        def callback(current, total, stage):
            stages.append(stage)

        callback.accepts_stage = True
        _sweep(moderated_mediation_model, target_test="a1", progress_callback=callback)
        assert stages[0] is None
        assert [s for i, s in enumerate(stages) if s and s not in stages[:i]] == ["N=50", "N=100", "N=150"]

    def test_long_summary_draws_plots(self, moderated_mediation_model, monkeypatch, capsys):
        drawn = []
        monkeypatch.setattr(moderated_mediation_model, "_create_sample_size_plots", lambda result, **kw: drawn.append(result))
        moderated_mediation_model.find_sample_size(target_test="imm", from_size=50, to_size=100, by=50, summary="long", progress_callback=False)
        printed = capsys.readouterr().out
        assert "SAMPLE SIZE ANALYSIS RESULTS" in printed
        assert "Power by Sample Size (%)" in printed
        assert len(drawn) == 1


class TestParallel:
    def test_parallel_matches_sequential(self, suppress_output):
        pytest.importorskip("joblib")
        sequential = make_model(MODERATED_MEDIATION, MODERATED_MEDIATION_EFFECTS)
        parallel = make_model(MODERATED_MEDIATION, MODERATED_MEDIATION_EFFECTS)
        parallel.set_parallel(True, n_cores=2)

        seq = _sweep(sequential, target_test="imm")
        par = _sweep(parallel, target_test="imm")
        assert par["results"]["powers_by_test"] == seq["results"]["powers_by_test"]
        assert par["model"]["parallel"] is True
