"""Tests for the stepwise migration driver."""

import pytest

from hourglass.errors import MigrationError
from hourglass.migration import migrate


class Recorder:
    def __init__(self, fail_at=None):
        self.fail_at = fail_at
        self.calls = []
        self.version = None

    def step(self, number):
        def run():
            self.calls.append(number)
            if number == self.fail_at:
                raise OSError(f"step {number} exploded")

        return run

    def advance(self, version):
        self.version = version


class TestMigrate:
    """Tests for migrate()."""

    def test_runs_each_step_in_order(self):
        recorder = Recorder()
        steps = [recorder.step(n) for n in range(3)]
        assert migrate("test", 0, steps, recorder.advance) == 3
        assert recorder.calls == [0, 1, 2]
        assert recorder.version == 3

    def test_starts_from_current_version(self):
        recorder = Recorder()
        steps = [recorder.step(n) for n in range(3)]
        migrate("test", 2, steps, recorder.advance)
        assert recorder.calls == [2]

    def test_up_to_date_is_noop(self):
        recorder = Recorder()
        steps = [recorder.step(n) for n in range(2)]
        assert migrate("test", 2, steps, recorder.advance) == 2
        assert recorder.calls == []
        assert recorder.version is None

    def test_failure_stops_before_advancing(self):
        recorder = Recorder(fail_at=1)
        steps = [recorder.step(n) for n in range(3)]
        with pytest.raises(MigrationError) as excinfo:
            migrate("test", 0, steps, recorder.advance)

        assert excinfo.value.version == 1
        assert isinstance(excinfo.value.__cause__, OSError)
        assert recorder.calls == [0, 1]
        assert recorder.version == 1
