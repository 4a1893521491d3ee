"""
Progress reporting for MedPower runs.

A run is counted in replications across every sample size it touches: one
size for ``find_power``, the whole grid for ``find_sample_size``, and the
grid plus the confirmation size for ``run_study``. The reporter also tracks
which sample size is being simulated, so console and tqdm output can show
where a sweep currently is.

Any ``callback(current, total)`` works as a progress hook. Callbacks that
set ``accepts_stage = True`` are called as ``callback(current, total,
stage)``, where *stage* reads like ``"N=150"`` or ``"confirmation N=200"``.
"""

import sys
from typing import Callable, Optional


class SimulationCancelled(Exception):
    """Raised when a simulation is cancelled by the user."""


class ProgressReporter:
    """Counts replications of a run and forwards throttled updates.

    Args:
        total: Replications in the whole run (see
            ``compute_total_simulations``).
        callback: Progress hook, see the module docstring.
        update_every: Forward at most one update per this many
            replications. Defaults to ``max(1, total // 200)``.
    """

    def __init__(self, total: int, callback: Callable[..., None], update_every: Optional[int] = None):
        self.total = total
        self.update_every = update_every if update_every is not None else max(1, total // 200)
        self.sample_size: Optional[int] = None
        self.phase: Optional[str] = None
        self._callback = callback
        self._with_stage = bool(getattr(callback, "accepts_stage", False))
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    @property
    def stage(self) -> Optional[str]:
        """Label of the sample size being simulated, or ``None`` before the first one."""
        if self.sample_size is None:
            return None
        label = f"N={self.sample_size}"
        return f"{self.phase} {label}" if self.phase else label

    def begin_sample_size(self, sample_size: int, phase: Optional[str] = None):
        """Mark the start of the replications for one sample size."""
        self.sample_size = sample_size
        self.phase = phase

    def start(self):
        self._current = 0
        self._emit()

    def advance(self, n: int = 1):
        self._current = min(self._current + n, self.total)
        if self._current >= self.total or self._current % self.update_every == 0:
            self._emit()

    def finish(self):
        if self._current < self.total:
            self._current = self.total
            self._emit()

    def _emit(self):
        if self._with_stage:
            self._callback(self._current, self.total, self.stage)
        else:
            self._callback(self._current, self.total)


class PrintReporter:
    """Writes ``\\rProgress:  45.2% (723/1600 replications, N=150)`` to stderr."""

    accepts_stage = True

    def __call__(self, current: int, total: int, stage: Optional[str] = None):
        if total <= 0:
            return
        where = f", {stage}" if stage else ""
        sys.stderr.write(f"\rProgress: {100.0 * current / total:5.1f}% ({current}/{total} replications{where})")
        if current >= total:
            sys.stderr.write("\n")
        sys.stderr.flush()


class TqdmReporter:
    """tqdm progress bar with the current sample size as postfix.

    Usage::

        from medpower.progress import TqdmReporter
        model.find_sample_size(progress_callback=TqdmReporter(desc="sweep"))
    """

    accepts_stage = True

    def __init__(self, **tqdm_kwargs):
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, current: int, total: int, stage: Optional[str] = None):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="rep", **self._tqdm_kwargs)
        if stage:
            self._bar.set_postfix_str(stage, refresh=False)
        if current > self._bar.n:
            self._bar.update(current - self._bar.n)
        if current >= total:
            self._bar.close()
            self._bar = None


def compute_total_simulations(n_simulations: int, n_sample_sizes: int = 1, confirmation: bool = False) -> int:
    """Replications in a run: one block per sample size, plus the confirmation block of a study."""
    return n_simulations * (n_sample_sizes + int(confirmation))
