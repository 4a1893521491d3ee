"""Core components for the MedPower framework.

Re-exports the foundational building blocks:

- ``PathRegistry``, ``ObservedVar``, ``Path``, ``DefinedEffect``: variable,
  path and defined-effect management.
- ``SimulationRunner``, ``SimulationMetadata``, ``prepare_metadata``: Monte
  Carlo simulation execution.
- ``ResultsProcessor``, ``build_power_result``, ``build_sample_size_result``,
  ``results_to_dataframe``: power calculation and result formatting.
"""

from .paths import DefinedEffect, ObservedVar, Path, PathRegistry
from .results import (
    ResultsProcessor,
    build_power_result,
    build_sample_size_result,
    results_to_dataframe,
)
from .simulation import SimulationMetadata, SimulationRunner, prepare_metadata

__all__ = [
    # Paths
    "PathRegistry",
    "ObservedVar",
    "Path",
    "DefinedEffect",
    # Simulation
    "SimulationRunner",
    "SimulationMetadata",
    "prepare_metadata",
    # Results
    "ResultsProcessor",
    "build_power_result",
    "build_sample_size_result",
    "results_to_dataframe",
]
