"""Paced breathing — timed steps queued on the exercise scheduler.

A breathing pattern is four counts (inhale, hold, exhale, hold) in whole
seconds.  Each non-zero phase becomes a countdown step; the step's last
count and the move to the next phase land on the same instant, with the
countdown job ordered first by priority.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

import click

from breathpace.core.scheduler import ExerciseScheduler
from breathpace.core.session import CANCELLED_MESSAGE, COMPLETE_MESSAGE

logger = logging.getLogger(__name__)

_MS_PER_SECOND = 1000

PHASES = ("inhale", "hold", "exhale", "hold")

_MAX_COUNT = 60
_MAX_ROUNDS = 100

_COUNTDOWN_PRIORITY = 0
_NEXT_STEP_PRIORITY = 1


def _pad(value: int) -> str:
    return f"{value:02d}"


class TimedStepExecutor:
    """Queues the jobs for one step: a countdown, or an endless count-up."""

    def __init__(self, scheduler: ExerciseScheduler) -> None:
        self._scheduler = scheduler

    def execute(
        self,
        count: int,
        on_tick: Callable[[str], None],
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        """Show the starting count and queue the rest of the step.

        A positive *count* counts down to ``00`` and then calls
        *on_complete*; zero counts up once a second until the scheduler is
        reset.
        """
        on_tick(_pad(count))
        if count:
            self._schedule_countdown(count, on_tick, on_complete)
        else:
            self._schedule_count_up(on_tick)

    def _schedule_countdown(
        self,
        count: int,
        on_tick: Callable[[str], None],
        on_complete: Callable[[], None] | None,
    ) -> None:
        for t in range(1, count + 1):
            self._scheduler.add_job(
                t * _MS_PER_SECOND,
                lambda left=count - t: on_tick(_pad(left)),
                priority=_COUNTDOWN_PRIORITY,
                label="Countdown",
            )
        if on_complete is not None:
            self._scheduler.add_job(
                count * _MS_PER_SECOND,
                on_complete,
                priority=_NEXT_STEP_PRIORITY,
                label="Next step",
            )

    def _schedule_count_up(self, on_tick: Callable[[str], None]) -> None:
        counter = 0

        def bump() -> None:
            nonlocal counter
            counter += 1
            on_tick(_pad(counter))

        self._scheduler.add_job(
            _MS_PER_SECOND,
            bump,
            priority=_COUNTDOWN_PRIORITY,
            repeat=_MS_PER_SECOND,
            label="Count up",
        )


def _check_pattern(pattern: Sequence[int]) -> tuple[int, ...]:
    counts = tuple(pattern)
    if len(counts) != len(PHASES):
        raise ValueError(f"pattern needs {len(PHASES)} counts, got {len(counts)}")
    for count in counts:
        if not isinstance(count, int) or isinstance(count, bool):
            raise TypeError(f"pattern counts must be integers, got {type(count).__name__}")
        if not (0 <= count <= _MAX_COUNT):
            raise ValueError(f"pattern counts must be between 0 and {_MAX_COUNT}, got {count}")
    if not any(counts):
        raise ValueError("pattern needs at least one non-zero count")
    return counts


class BreathingExercise:
    """Runs rounds of a four-phase breathing pattern.

    Each phase line is echoed as ``<phase> <count>``, e.g. ``inhale 03``.
    """

    def __init__(
        self,
        pattern: Sequence[int],
        rounds: int = 1,
        echo: Callable[[str], None] = click.echo,
        scheduler: ExerciseScheduler | None = None,
    ) -> None:
        counts = _check_pattern(pattern)
        if not isinstance(rounds, int) or isinstance(rounds, bool):
            raise TypeError(f"rounds must be an integer, got {type(rounds).__name__}")
        if not (1 <= rounds <= _MAX_ROUNDS):
            raise ValueError(f"rounds must be between 1 and {_MAX_ROUNDS}, got {rounds}")

        self._steps: list[tuple[str, int]] = [
            (phase, count)
            for _ in range(rounds)
            for phase, count in zip(PHASES, counts)
            if count
        ]
        self._echo = echo
        self._scheduler = scheduler if scheduler is not None else ExerciseScheduler()
        self._executor = TimedStepExecutor(self._scheduler)
        self._index = -1
        self._finished = False
        self._done: asyncio.Future[tuple[str, int]] | None = None

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def steps(self) -> list[tuple[str, int]]:
        return list(self._steps)

    def start(self) -> None:
        """Reset the scheduler and queue the first step."""
        self._scheduler.reset()
        self._scheduler.start()
        self._index = -1
        self._finished = False
        self._next_step()

    async def run(self) -> tuple[str, int]:
        """Drive the scheduler until every step is done; return ``(message, exit_code)``."""
        self._done = asyncio.get_running_loop().create_future()
        self.start()
        driver = asyncio.create_task(self._scheduler.run())
        try:
            return await self._done
        finally:
            driver.cancel()
            self._done = None

    def cancel(self) -> None:
        """Drop every queued step; a no-op once finished."""
        if self._finished:
            return
        self._finished = True
        self._scheduler.reset()
        logger.debug("Breathing exercise cancelled at step %d", self._index)
        if self._done is not None and not self._done.done():
            self._done.set_result((CANCELLED_MESSAGE, 1))

    def _next_step(self) -> None:
        self._index += 1
        if self._index >= len(self._steps):
            self._finished = True
            self._scheduler.stop()
            logger.debug("Breathing exercise complete after %d steps", len(self._steps))
            if self._done is not None and not self._done.done():
                self._done.set_result((COMPLETE_MESSAGE, 0))
            return

        phase, count = self._steps[self._index]
        self._executor.execute(
            count, lambda shown: self._echo(f"{phase} {shown}"), self._next_step
        )
