"""Statistical estimation, interval and data generation modules."""

from . import corrections as corrections
from . import data_generation as data_generation
from . import monte_carlo_ci as monte_carlo_ci
from . import path_fit as path_fit
