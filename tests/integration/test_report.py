"""Integration tests for the study workflow and Markdown report."""

import re

import pytest

from medpower import render_report, run_study
from medpower.report import CONFIRMATION_SEED_OFFSET, select_sample_size, write_report


def _sweep_result(first_achieved, sizes=(50, 100, 150), first_achieved_corrected=None):
    return {
        "model": {},
        "results": {
            "sample_sizes_tested": list(sizes),
            "first_achieved": first_achieved,
            "first_achieved_corrected": first_achieved_corrected,
        },
    }


class TestSelectSampleSize:
    def test_largest_first_achieved(self):
        selection = select_sample_size(_sweep_result({"a1": 50, "imm": 150, "b1": 100}))
        assert selection == {"sample_size": 150, "achieved": True, "not_achieved": []}

    def test_not_achieved_uses_largest_size(self):
        selection = select_sample_size(_sweep_result({"a1": 50, "imm": -1}))
        assert selection == {"sample_size": 150, "achieved": False, "not_achieved": ["imm"]}

    def test_corrected(self):
        sweep = _sweep_result({"a1": 50}, first_achieved_corrected={"a1": 100})
        assert select_sample_size(sweep, corrected=True)["sample_size"] == 100

    def test_corrected_without_correction(self):
        with pytest.raises(ValueError, match="correction"):
            select_sample_size(_sweep_result({"a1": 50}), corrected=True)


@pytest.fixture
def study(moderated_mediation_model):
    return run_study(moderated_mediation_model, target_test="b1, imm", from_size=50, to_size=150, by=50)


class TestRunStudy:
    def test_structure(self, study):
        assert set(study) == {"sweep", "selection", "confirmation"}
        assert study["confirmation"]["model"]["sample_size"] == study["selection"]["sample_size"]
        assert study["confirmation"]["model"]["target_tests"] == ["b1", "imm"]

    def test_confirmation_is_independent_of_sweep(self, moderated_mediation_model, study):
        n = study["selection"]["sample_size"]
        rerun = moderated_mediation_model._run_find_power(n, ["b1", "imm"], None)
        assert rerun["results"]["estimate_summaries"] != study["confirmation"]["results"]["estimate_summaries"]
        offset = moderated_mediation_model._run_find_power(n, ["b1", "imm"], None, seed_offset=CONFIRMATION_SEED_OFFSET)
        assert offset["results"] == study["confirmation"]["results"]

    def test_print_results(self, moderated_mediation_model, capsys):
        run_study(moderated_mediation_model, target_test="b1", from_size=50, to_size=100, by=50, print_results=True)
        out = capsys.readouterr().out
        assert "Selected sample size: N=" in out
        assert "Estimates Across Replications" in out

    def test_progress_callback(self, moderated_mediation_model):
        calls = []
        run_study(moderated_mediation_model, target_test="b1", from_size=50, to_size=100, by=50, progress_callback=lambda c, t: calls.append((c, t)))
        # one count over two swept sizes and the confirmation run
        assert calls[0] == (0, 150)
        assert calls[-1] == (150, 150)
        assert [c for c, _ in calls] == sorted(c for c, _ in calls)
        assert {t for _, t in calls} == {150}

    def test_progress_labels_confirmation(self, moderated_mediation_model):
        stages = []

        def callback(current, total, stage):
            stages.append(stage)

        callback.accepts_stage = True
        study = run_study(moderated_mediation_model, target_test="b1", from_size=50, to_size=100, by=50, progress_callback=callback)
        assert "N=100" in stages
        assert stages[-1] == f"confirmation N={study['selection']['sample_size']}"

    def test_invalid_range_raises_before_running(self, moderated_mediation_model):
        with pytest.raises(ValueError, match="exceeds the maximum"):
            run_study(moderated_mediation_model, from_size=99_000, to_size=100_100, by=1100, progress_callback=lambda c, t: None)


class TestRenderReport:
    def test_sections(self, study):
        text = render_report(study)
        assert text.startswith("# Power analysis for moderated mediation")
        for heading in ["## Model", "## Settings", "## Power by sample size (uncorrected, %)", "## Selected sample size", "## Confirmation run"]:
            assert heading in text
        assert "imm := a3*b1" in text
        assert re.search(r"^\|\s*N\s*\|\s*b1\s*\|\s*imm\s*\|$", text, re.M)
        assert re.search(r"^\|\s*50\s*\|", text, re.M)
        assert "\n\n|" in text

    def test_plot_embedded(self, study):
        assert "![Power curves](curves.png)" in render_report(study, plot_file="curves.png")

    def test_corrected_sweep(self, moderated_mediation_model):
        study = run_study(moderated_mediation_model, target_test="paths", from_size=50, to_size=100, by=50, correction="holm")
        text = render_report(study, title="Holm")
        assert text.startswith("# Holm")
        assert "## Power by sample size (corrected, %)" in text
        assert re.search(r"^\|\s*Correction\s*\|\s*holm\s*\|$", text, re.M)


class TestWriteReport:
    def test_without_plot(self, study, tmp_path):
        path = tmp_path / "report.md"
        assert write_report(study, str(path)) == str(path)
        assert path.read_text(encoding="utf-8").startswith("# Power analysis")

    def test_with_plot(self, study, moderated_mediation_model, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(moderated_mediation_model, "_create_sample_size_plots", lambda result, **kw: calls.append(kw))
        path = tmp_path / "study.md"
        write_report(study, str(path), model=moderated_mediation_model)
        assert calls[0]["save_path"] == str(tmp_path / "study_power.png")
        assert calls[0]["selected_size"] == study["selection"]["sample_size"]
        assert "![Power curves](study_power.png)" in path.read_text(encoding="utf-8")

    def test_corrected_plot_embedded_with_correction(self, moderated_mediation_model, tmp_path, monkeypatch):
        study = run_study(moderated_mediation_model, target_test="paths", from_size=50, to_size=100, by=50, correction="holm")
        monkeypatch.setattr(moderated_mediation_model, "_create_sample_size_plots", lambda result, **kw: None)
        path = tmp_path / "holm.md"
        write_report(study, str(path), model=moderated_mediation_model)
        text = path.read_text(encoding="utf-8")
        assert "![Power curves](holm_power_corrected.png)" in text
        assert "## Power by sample size (corrected, %)" in text

    def test_real_plot_file(self, study, moderated_mediation_model, tmp_path):
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        path = tmp_path / "study.md"
        write_report(study, str(path), model=moderated_mediation_model)
        assert (tmp_path / "study_power.png").exists()
