"""Small helpers shared by the GUI modules."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable

_LOGGER = logging.getLogger(__name__)


class PollOutcome(Enum):
    """Result of :func:`await_condition`."""

    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"

    def __bool__(self) -> bool:
        return self is PollOutcome.SATISFIED


def await_condition(
    predicate: Callable[[], bool],
    max_wait: float,
    interval: float = 0.3,
    *,
    abort: Callable[[], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PollOutcome:
    """Poll ``predicate`` until it holds or ``max_wait`` seconds pass.

    The predicate is always evaluated at least once. Exceptions raised by
    the predicate count as a negative observation; the DOM under test is
    frequently mid-animation or mid-navigation and a failed probe simply
    means "not yet".

    Args:
        predicate: Condition to wait for
        max_wait: Maximum time to wait in seconds
        interval: Pause between two observations in seconds
        abort: Optional check evaluated after every negative observation;
            returning True stops the poll early
        sleep: Pause function, e.g. ``lambda s: page.wait_for_timeout(s * 1000)``
            so Playwright keeps dispatching events while waiting
        clock: Monotonic clock in seconds

    Returns:
        SATISFIED, TIMED_OUT or ABORTED. The outcome is truthy only when
        the predicate was satisfied.
    """
    deadline = clock() + max(max_wait, 0)
    while True:
        try:
            if predicate():
                return PollOutcome.SATISFIED
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Poll predicate raised: %s", e)

        if abort is not None and abort():
            return PollOutcome.ABORTED

        remaining = deadline - clock()
        if remaining <= 0:
            return PollOutcome.TIMED_OUT
        sleep(min(interval, remaining))


def first_line(error: BaseException | str) -> str:
    """Return the first line of an error message (Playwright errors are long)."""
    text = str(error)
    return text.splitlines()[0] if text else ""
