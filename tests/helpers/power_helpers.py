"""
Power analysis helpers for tests.

Shared utilities for model creation and power extraction.
"""

import contextlib
import io

from tests.config import DEFAULT_ALPHA, N_DRAWS_CHECK, N_SIMS_CHECK, SEED


def make_model(syntax, effects, n_sims=N_SIMS_CHECK, alpha=DEFAULT_ALPHA, seed=SEED, n_draws=N_DRAWS_CHECK, **settings):
    """Create a configured MedPower model with console output silenced.

    Extra keyword arguments map to deferred settings: ``variable_types``,
    ``correlations`` and ``residuals``.
    """
    from medpower import MedPower

    with contextlib.redirect_stdout(io.StringIO()):
        m = MedPower(syntax)
        m.set_simulations(n_sims)
        m.set_seed(seed)
        m.set_alpha(alpha)
        m.set_draws(n_draws)
        m.set_effects(effects)
        if "variable_types" in settings:
            m.set_variable_type(settings["variable_types"])
        if "correlations" in settings:
            m.set_correlations(settings["correlations"])
        if "residuals" in settings:
            m.set_residual_variances(settings["residuals"])
        m.apply()
    return m


def run_power(model, sample_size, target_test="all", correction=None):
    """Run find_power silently and return the result dict."""
    with contextlib.redirect_stdout(io.StringIO()):
        return model.find_power(
            sample_size,
            target_test=target_test,
            correction=correction,
            print_results=False,
            return_results=True,
            progress_callback=False,
        )


def get_power(result, test_name):
    """Extract power for a target from a result dict."""
    return result["results"]["individual_powers"][test_name]


def get_power_corrected(result, test_name):
    """Extract corrected power for a target from a result dict."""
    return result["results"]["individual_powers_corrected"][test_name]
