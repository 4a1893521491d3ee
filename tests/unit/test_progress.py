"""Unit tests for medpower.progress."""

import io
import sys
import types

import pytest

from medpower.progress import PrintReporter, ProgressReporter, SimulationCancelled, TqdmReporter, compute_total_simulations


class TestProgressReporter:
    def test_start_fires_zero(self):
        calls = []
        reporter = ProgressReporter(10, lambda c, t: calls.append((c, t)))
        reporter.start()
        assert calls == [(0, 10)]

    def test_throttling(self):
        calls = []
        reporter = ProgressReporter(10, lambda c, t: calls.append(c), update_every=3)
        for _ in range(10):
            reporter.advance()
        assert calls == [3, 6, 9, 10]

    def test_default_update_every(self):
        assert ProgressReporter(100, lambda c, t: None).update_every == 1
        assert ProgressReporter(4000, lambda c, t: None).update_every == 20

    def test_advance_clamps_to_total(self):
        calls = []
        reporter = ProgressReporter(5, lambda c, t: calls.append(c))
        reporter.advance(10)
        assert reporter.current == 5
        assert calls == [5]

    def test_finish(self):
        calls = []
        reporter = ProgressReporter(10, lambda c, t: calls.append(c), update_every=100)
        reporter.advance(4)
        reporter.finish()
        assert calls == [10]
        reporter.finish()
        assert calls == [10]

    def test_stage_passed_to_stage_aware_callbacks(self):
        calls = []

        def callback(current, total, stage):
            calls.append((current, stage))

        callback.accepts_stage = True
        reporter = ProgressReporter(4, callback)
        reporter.start()
        reporter.begin_sample_size(100)
        reporter.advance()
        reporter.advance()
        reporter.begin_sample_size(150, "confirmation")
        reporter.advance()
        reporter.advance()
        assert calls == [(0, None), (1, "N=100"), (2, "N=100"), (3, "confirmation N=150"), (4, "confirmation N=150")]

    def test_plain_callbacks_get_two_arguments(self):
        calls = []
        reporter = ProgressReporter(2, lambda c, t: calls.append((c, t)))
        reporter.begin_sample_size(100)
        reporter.advance(2)
        assert calls == [(2, 2)]
        assert reporter.stage == "N=100"


class TestPrintReporter:
    def test_writes_to_stderr(self, monkeypatch):
        buffer = io.StringIO()
        monkeypatch.setattr(sys, "stderr", buffer)
        reporter = PrintReporter()
        reporter(5, 10)
        reporter(10, 10)
        out = buffer.getvalue()
        assert "50.0% (5/10 replications)" in out
        assert out.endswith("\n")

    def test_shows_sample_size(self, monkeypatch):
        buffer = io.StringIO()
        monkeypatch.setattr(sys, "stderr", buffer)
        reporter = ProgressReporter(10, PrintReporter())
        reporter.begin_sample_size(150)
        reporter.advance(5)
        assert "(5/10 replications, N=150)" in buffer.getvalue()

    def test_zero_total(self, monkeypatch):
        buffer = io.StringIO()
        monkeypatch.setattr(sys, "stderr", buffer)
        PrintReporter()(0, 0)
        assert buffer.getvalue() == ""


class TestTqdmReporter:
    def test_updates_and_closes(self, monkeypatch):
        created = []

        class FakeBar:
            def __init__(self, total, unit, **kwargs):
                self.total = total
                self.unit = unit
                self.n = 0
                self.closed = False
                created.append(self)

            def update(self, delta):
                self.n += delta

            def set_postfix_str(self, s, refresh=True):
                self.postfix = s

            def close(self):
                self.closed = True

        monkeypatch.setitem(sys.modules, "tqdm", types.SimpleNamespace(tqdm=FakeBar))
        reporter = TqdmReporter(desc="power")
        reporter(0, 10)
        reporter(4, 10, "N=100")
        reporter(10, 10, "N=100")

        assert len(created) == 1
        bar = created[0]
        assert bar.unit == "rep"
        assert bar.n == 10
        assert bar.postfix == "N=100"
        assert bar.closed


def test_compute_total_simulations():
    assert compute_total_simulations(1000) == 1000
    assert compute_total_simulations(500, 19) == 9500
    assert compute_total_simulations(500, 19, confirmation=True) == 10000


def test_simulation_cancelled_is_exception():
    with pytest.raises(SimulationCancelled):
        raise SimulationCancelled("stop")
