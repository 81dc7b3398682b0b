"""Incremental completion timer — a cancellable countdown on the asyncio loop.

One timer instance drives one exercise countdown.  Every tick boundary and
the final completion are registered with ``loop.call_at`` against the
instant :meth:`IncrementalTimer.start` runs, so a slow tick callback never
pushes the completion deadline back.
"""

from __future__ import annotations

import asyncio
import logging
import math
from enum import Enum
from typing import Any, Callable, Iterator, NamedTuple

logger = logging.getLogger(__name__)


class TimerState(Enum):
    """Possible states of a timer session."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class TimerError(Exception):
    """Base class for timer errors."""


class InvalidStateError(TimerError):
    """Raised when an invalid state transition is attempted."""


class InvalidDuration(TimerError, ValueError):
    """Raised when the total duration is negative or not finite."""


class TimerCancelled(TimerError):
    """Set on the outcome when the session is cancelled before completion."""

    def __init__(self, message: str = "Timer cancelled") -> None:
        super().__init__(message)


class TimerHandle(NamedTuple):
    """What the caller gets back from :meth:`IncrementalTimer.start`.

    Unpacks as ``outcome, cancel``.
    """

    outcome: asyncio.Future[Any]
    cancel: Callable[[], None]


_TERMINAL_STATES = frozenset({TimerState.COMPLETED, TimerState.CANCELLED, TimerState.FAILED})


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def tick_offsets(total_duration_ms: float, tick_interval_ms: float | None) -> Iterator[float]:
    """Yield every multiple of *tick_interval_ms* strictly below *total_duration_ms*.

    A boundary landing exactly on the total duration is left to the
    completion.  Missing, non-positive and NaN intervals produce no ticks.
    Offsets are produced lazily, so a tiny interval over a long countdown
    costs nothing up front.
    """
    if tick_interval_ms is None or not tick_interval_ms > 0:
        return
    k = 1
    while k * tick_interval_ms < total_duration_ms:
        yield k * tick_interval_ms
        k += 1


class IncrementalTimer:
    """A single countdown with optional periodic ticks.

    Only the next tick and the completion are registered with the loop at
    any moment; each tick registers its successor at ``start + k * interval``.

    Sessions are not reusable: once terminal, create a new instance.
    """

    def __init__(
        self,
        total_duration_ms: float,
        completion_callback: Callable[[], Any],
        tick_interval_ms: float | None = None,
        tick_callback: Callable[[int], Any] | None = None,
    ) -> None:
        if not _is_number(total_duration_ms):
            raise TypeError(
                f"total_duration_ms must be a number, got {type(total_duration_ms).__name__}"
            )
        if not math.isfinite(total_duration_ms) or total_duration_ms < 0:
            raise InvalidDuration(
                f"total_duration_ms must be a finite non-negative number, got {total_duration_ms}"
            )
        if tick_interval_ms is not None and not _is_number(tick_interval_ms):
            raise TypeError(
                f"tick_interval_ms must be a number, got {type(tick_interval_ms).__name__}"
            )

        self._total_duration_ms: float = total_duration_ms
        self._tick_interval_ms: float | None = tick_interval_ms
        self._completion_callback = completion_callback
        self._tick_callback = tick_callback
        self._state: TimerState = TimerState.PENDING
        self._tick_count: int = 0
        self._offsets: Iterator[float] = iter(())
        self._started_at: float = 0.0
        self._tick_handle: asyncio.TimerHandle | None = None
        self._completion_handle: asyncio.TimerHandle | None = None
        self._outcome: asyncio.Future[Any] | None = None

    # -- public interface ----------------------------------------------------

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def total_duration_ms(self) -> float:
        return self._total_duration_ms

    @property
    def tick_interval_ms(self) -> float | None:
        return self._tick_interval_ms

    def start(self) -> TimerHandle:
        """Schedule the first tick and the completion, and enter RUNNING.

        Must be called from a coroutine or callback running on an event loop.
        """
        if self._state != TimerState.PENDING:
            raise InvalidStateError(f"start() is not valid from {self._state.value} state")

        loop = asyncio.get_running_loop()
        outcome = loop.create_future()
        outcome.add_done_callback(self._on_outcome_done)
        self._outcome = outcome

        self._started_at = loop.time()
        if self._tick_callback is not None:
            self._offsets = tick_offsets(self._total_duration_ms, self._tick_interval_ms)
            self._schedule_next_tick(loop)
        self._completion_handle = loop.call_at(
            self._started_at + self._total_duration_ms / 1000.0, self._complete
        )

        self._state = TimerState.RUNNING
        logger.debug(
            "Timer started: %sms total, tick every %sms",
            self._total_duration_ms,
            self._tick_interval_ms if self._tick_handle is not None else None,
        )
        return TimerHandle(outcome, self.cancel)

    def cancel(self) -> None:
        """Stop the countdown and reject the outcome with :class:`TimerCancelled`.

        A no-op once the session is terminal.
        """
        if self._state in _TERMINAL_STATES:
            return
        was_running = self._state == TimerState.RUNNING
        self._state = TimerState.CANCELLED
        if not was_running:
            return

        self._revoke()
        logger.debug("Timer cancelled after %d tick(s)", self._tick_count)
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_exception(TimerCancelled())

    # -- private helpers -----------------------------------------------------

    def _schedule_next_tick(self, loop: asyncio.AbstractEventLoop) -> None:
        offset = next(self._offsets, None)
        if offset is None:
            self._tick_handle = None
            return
        self._tick_handle = loop.call_at(self._started_at + offset / 1000.0, self._fire_tick)

    def _halted(self) -> bool:
        """Return True when no more callbacks may run for this session.

        The outcome's done-callbacks run a loop pass late, so a consumer
        cancellation is picked up here as well as in :meth:`_on_outcome_done`.
        """
        if self._state != TimerState.RUNNING:
            return True
        if self._outcome is not None and self._outcome.done():
            self._state = TimerState.CANCELLED
            self._revoke()
            logger.debug("Timer outcome settled by its consumer")
            return True
        return False

    def _fire_tick(self) -> None:
        if self._halted():
            return
        self._tick_count += 1
        self._schedule_next_tick(asyncio.get_running_loop())
        try:
            self._tick_callback(self._tick_count)  # type: ignore[misc]
        except Exception as exc:
            if self._state != TimerState.RUNNING:
                # cancel() ran inside the callback and already settled the outcome.
                raise
            self._fail(exc)

    def _complete(self) -> None:
        if self._halted():
            return
        # A late loop can make the completion due alongside pending ticks.
        while self._tick_handle is not None and self._state == TimerState.RUNNING:
            self._tick_handle.cancel()
            self._fire_tick()
        if self._state != TimerState.RUNNING:
            return

        self._completion_handle = None
        self._state = TimerState.COMPLETED
        try:
            result = self._completion_callback()
        except Exception as exc:
            self._fail(exc)
            return
        logger.debug("Timer completed after %d tick(s)", self._tick_count)
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(result)

    def _fail(self, exc: Exception) -> None:
        if self._state in (TimerState.CANCELLED, TimerState.FAILED):
            return
        self._state = TimerState.FAILED
        self._revoke()
        logger.debug("Timer failed: %r", exc)
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_exception(exc)

    def _on_outcome_done(self, outcome: asyncio.Future[Any]) -> None:
        # The awaiting task was cancelled, which cancels the outcome with it.
        if outcome.cancelled() and self._state == TimerState.RUNNING:
            self._state = TimerState.CANCELLED
            self._revoke()
            logger.debug("Timer outcome cancelled by its consumer")

    def _revoke(self) -> None:
        for handle in (self._tick_handle, self._completion_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = None
        self._completion_handle = None


def incremental_completion_timer(
    total_duration_ms: float,
    completion_callback: Callable[[], Any],
    tick_interval_ms: float | None = None,
    tick_callback: Callable[[int], Any] | None = None,
) -> TimerHandle:
    """Start a countdown and return its ``(outcome, cancel)`` handle.

    *tick_callback* receives the 1-based tick count at each multiple of
    *tick_interval_ms* strictly below *total_duration_ms*.  The outcome
    resolves with the return value of *completion_callback*.
    """
    return IncrementalTimer(
        total_duration_ms, completion_callback, tick_interval_ms, tick_callback
    ).start()
