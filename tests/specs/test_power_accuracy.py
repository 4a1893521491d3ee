"""
Power and interval accuracy against closed-form values.

For ``m ~ a*x`` with standard-normal ``x`` and unit residual variance the
estimate of ``a`` is approximately normal with SE ``1/sqrt(n)``, so power
is ``Phi(a*sqrt(n) - z) + Phi(-a*sqrt(n) - z)``.
"""

import contextlib
import io
import math

import pytest
from scipy.stats import norm

from tests.config import DEFAULT_ALPHA, N_SIMS_STANDARD as N_SIMS
from tests.helpers.mc_margins import mc_margin
from tests.helpers.power_helpers import get_power, make_model, run_power


@pytest.fixture(autouse=True)
def _quiet():
    with contextlib.redirect_stdout(io.StringIO()):
        yield


def _analytic_power(a, n, alpha=DEFAULT_ALPHA):
    z = norm.ppf(1 - alpha / 2)
    shift = a * math.sqrt(n)
    return (norm.cdf(shift - z) + norm.cdf(-shift - z)) * 100


class TestPowerAccuracy:
    @pytest.mark.parametrize("a, n", [(0.2, 100), (0.15, 300), (0.3, 60)])
    def test_single_path(self, a, n):
        model = make_model("m ~ a*x\ny ~ b*m", f"a={a}, b=0.3", n_sims=N_SIMS)
        power = get_power(run_power(model, n, target_test="a"), "a")
        expected = _analytic_power(a, n)
        assert abs(power - expected) <= mc_margin(expected, N_SIMS), f"power={power:.1f}, expected={expected:.1f}"

    def test_estimates_unbiased_and_covered(self):
        model = make_model("m ~ a1*x + a2*w + a3*x:w\ny ~ cp*x + b1*m\nimm := a3*b1", "a1=0.3, a2=0.1, a3=0.2, cp=0.1, b1=0.4", n_sims=N_SIMS)
        summaries = run_power(model, 300)["results"]["estimate_summaries"]
        for target in ["a1", "a3", "b1"]:
            s = summaries[target]
            assert abs(s["bias"]) < 0.02
            assert abs(s["mean_se"] - s["sd_estimate"]) < 0.1 * s["sd_estimate"]
            assert abs(s["coverage"] - 95.0) <= mc_margin(95.0, N_SIMS)
        assert abs(summaries["imm"]["bias"]) < 0.01
        assert abs(summaries["imm"]["coverage"] - 95.0) <= mc_margin(95.0, N_SIMS)

    def test_standardized_residuals_give_unit_outcome_variance(self):
        model = make_model("m ~ a*x\ny ~ b*m", "a=0.5, b=0.5", n_sims=N_SIMS, residuals="standardized")
        summaries = run_power(model, 200)["results"]["estimate_summaries"]
        # with var(m) = 1 the SE of b is sqrt(1 - b^2) / sqrt(n)
        assert summaries["b"]["mean_se"] == pytest.approx(math.sqrt(0.75 / 200), rel=0.05)
