"""
Correction hierarchy on simulated studies.

Within one run every correction sees the same replications, so per-target
power must follow none >= Benjamini-Hochberg >= Holm >= Bonferroni.
"""

import contextlib
import io

import pytest

from tests.config import MODERATED_MEDIATION, MODERATED_MEDIATION_EFFECTS, N_SIMS_ORDERING as N_SIMS
from tests.helpers.power_helpers import get_power, get_power_corrected, make_model, run_power


@pytest.fixture(autouse=True)
def _quiet():
    with contextlib.redirect_stdout(io.StringIO()):
        yield


@pytest.fixture(scope="module")
def corrected_runs():
    with contextlib.redirect_stdout(io.StringIO()):
        model = make_model(MODERATED_MEDIATION, MODERATED_MEDIATION_EFFECTS, n_sims=N_SIMS)
        return {c: run_power(model, 120, target_test="paths", correction=c) for c in ["bonferroni", "holm", "benjamini-hochberg"]}


TARGETS = ["a1", "a2", "a3", "cp", "b1"]


class TestCorrectionHierarchy:
    def test_uncorrected_identical_across_corrections(self, corrected_runs):
        for target in TARGETS:
            powers = {get_power(r, target) for r in corrected_runs.values()}
            assert len(powers) == 1

    @pytest.mark.parametrize("target", TARGETS)
    def test_hierarchy(self, corrected_runs, target):
        none = get_power(corrected_runs["holm"], target)
        bh = get_power_corrected(corrected_runs["benjamini-hochberg"], target)
        holm = get_power_corrected(corrected_runs["holm"], target)
        bonferroni = get_power_corrected(corrected_runs["bonferroni"], target)
        assert none >= bh >= holm >= bonferroni
