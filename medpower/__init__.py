"""MedPower - Monte Carlo Power Analysis for moderated mediation.

A simulation-based framework for sample-size planning of observed-variable
path models: simple, serial and moderated mediation with labelled paths,
defined (conditional) indirect effects and Monte Carlo confidence intervals.

Example:
    >>> from medpower import MedPower
    >>>
    >>> model = MedPower('''
    ...     m ~ a1*x + a2*w + a3*x:w
    ...     y ~ cp*x + b1*m
    ...     ind_low  := (a1 - a3)*b1
    ...     ind_high := (a1 + a3)*b1
    ...     imm      := a3*b1
    ... ''')
    >>> model.set_effects("a1=0.3, a2=0.1, a3=0.15, cp=0.1, b1=0.3")
    >>> model.find_power(sample_size=300, target_test="imm")
    >>>
    >>> model.find_sample_size(target_test="defined", from_size=100, to_size=800, by=50)
"""

from importlib.metadata import version as _get_version

from .model import MedPower
from .progress import PrintReporter, ProgressReporter, SimulationCancelled, TqdmReporter
from .report import render_report, run_study

__version__ = _get_version("MedPower")

__all__ = [
    "MedPower",
    "run_study",
    "render_report",
    "SimulationCancelled",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
