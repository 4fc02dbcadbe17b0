"""A small discrete-event simulator and random models for share timing."""

from __future__ import annotations

import heapq
import itertools
import math
import random
from typing import Any, Callable


class Event:
    """A callback scheduled at a point in simulated time."""

    __slots__ = ("time", "callback", "args", "cancelled", "executed")

    def __init__(self, time: float, callback: Callable[..., Any], args: tuple) -> None:
        self.time = time
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.executed = False

    @property
    def is_running(self) -> bool:
        """True while the event is still waiting to fire."""
        return not self.cancelled and not self.executed

    def cancel(self) -> None:
        """Prevent the event from firing."""
        self.cancelled = True


class Simulator:
    """Runs scheduled events in time order; equal times run in schedule order."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, Event]] = []
        self._counter = itertools.count()
        self._stopped = False

    @property
    def time_step(self) -> int:
        """Current time in nanoseconds."""
        return round(self.now * 1e9)

    @property
    def pending(self) -> int:
        """Number of events still waiting to fire."""
        return sum(1 for _, _, event in self._queue if event.is_running)

    def _push(self, time: float, callback: Callable[..., Any], args: tuple) -> Event:
        event = Event(time, callback, args)
        heapq.heappush(self._queue, (time, next(self._counter), event))
        return event

    def schedule(self, delay: float, callback: Callable[..., Any], *args: Any) -> Event:
        """Run ``callback(*args)`` after ``delay`` seconds of simulated time."""
        if delay < 0:
            raise ValueError(f"delay must not be negative: {delay}")
        return self._push(self.now + delay, callback, args)

    def stop(self, at: float) -> Event:
        """Halt the run when simulated time reaches ``at`` seconds."""
        if at < self.now:
            raise ValueError(f"stop time {at} is before the current time {self.now}")
        return self._push(at, self._halt, ())

    def _halt(self) -> None:
        self._stopped = True

    def run(self) -> None:
        """Fire events until the queue empties or a stop time is reached."""
        self._stopped = False
        while self._queue and not self._stopped:
            time, _, event = heapq.heappop(self._queue)
            if event.cancelled:
                continue
            self.now = time
            event.executed = True
            event.callback(*event.args)


class NormalVariable:
    """Normally distributed random values with a given mean and variance."""

    def __init__(self, mean: float, variance: float, rng: random.Random | None = None) -> None:
        if variance < 0:
            raise ValueError(f"variance must not be negative: {variance}")
        self.mean = mean
        self.variance = variance
        self.rng = rng if rng is not None else random.Random()

    def sample(self) -> float:
        """Draw one value."""
        return self.rng.gauss(self.mean, math.sqrt(self.variance))