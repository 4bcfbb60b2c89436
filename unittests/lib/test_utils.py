"""Unit tests for utils.py."""

from unittest.mock import Mock

from navsweep.lib.utils import PollOutcome, await_condition, first_line


class FakeClock:
    """Clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class TestAwaitCondition:
    def setup_method(self):
        self.clock = FakeClock()

    def poll(self, predicate, max_wait=1.0, **kwargs):
        return await_condition(
            predicate, max_wait, 0.25, sleep=self.clock.sleep, clock=self.clock, **kwargs
        )

    def test_satisfied_immediately(self):
        outcome = self.poll(lambda: True)

        assert outcome is PollOutcome.SATISFIED
        assert outcome
        assert self.clock.now == 0

    def test_satisfied_after_a_few_polls(self):
        predicate = Mock(side_effect=[False, False, True])

        assert self.poll(predicate) is PollOutcome.SATISFIED
        assert predicate.call_count == 3

    def test_times_out(self):
        predicate = Mock(return_value=False)

        outcome = self.poll(predicate)

        assert outcome is PollOutcome.TIMED_OUT
        assert not outcome
        assert self.clock.now == 1.0
        assert predicate.call_count == 5

    def test_zero_wait_evaluates_once(self):
        predicate = Mock(return_value=False)

        assert self.poll(predicate, max_wait=0) is PollOutcome.TIMED_OUT
        predicate.assert_called_once()

    def test_abort(self):
        predicate = Mock(return_value=False)
        abort = Mock(side_effect=[False, True])

        outcome = self.poll(predicate, abort=abort)

        assert outcome is PollOutcome.ABORTED
        assert not outcome
        assert predicate.call_count == 2

    def test_exception_is_a_negative_observation(self):
        predicate = Mock(side_effect=[RuntimeError("detached"), True])

        assert self.poll(predicate) is PollOutcome.SATISFIED


def test_first_line():
    assert first_line(RuntimeError("Timeout 30000ms exceeded.\n=== logs ===")) == "Timeout 30000ms exceeded."
    assert first_line("") == ""
