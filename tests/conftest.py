"""
Shared pytest fixtures for MedPower tests.
"""

import contextlib
import io

import numpy as np
import pytest

from tests.config import MODERATED_MEDIATION, MODERATED_MEDIATION_EFFECTS, SIMPLE_MEDIATION
from tests.helpers.power_helpers import make_model


@pytest.fixture
def suppress_output():
    """Silence the configuration messages printed by MedPower."""
    with contextlib.redirect_stdout(io.StringIO()):
        yield


@pytest.fixture
def simple_mediation_model():
    """x -> m -> y with a direct path."""
    return make_model(SIMPLE_MEDIATION, "a=0.4, b=0.4, cp=0.1")


@pytest.fixture
def moderated_mediation_model():
    """First-stage moderated mediation with index of moderated mediation."""
    return make_model(MODERATED_MEDIATION, MODERATED_MEDIATION_EFFECTS)


@pytest.fixture
def correlation_matrix_3x3():
    """Valid 3x3 correlation matrix."""
    return np.array(
        [
            [1.0, 0.3, 0.5],
            [0.3, 1.0, 0.2],
            [0.5, 0.2, 1.0],
        ]
    )


@pytest.fixture
def rng():
    return np.random.RandomState(42)
