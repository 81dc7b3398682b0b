"""Exercise scheduler — a job queue driven by a virtual clock.

The clock only moves while the scheduler is active, so pausing an exercise
freezes every pending job in place.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

INTERVAL_MS = 100


@dataclass(order=True)
class Job:
    """A queued callback, ordered by due time, then priority, then insertion."""

    execution_ts: int
    priority: int
    seq: int
    callback: Callable[[], None] = field(compare=False)
    repeat: int = field(default=0, compare=False)
    label: str = field(default="", compare=False)


class ExerciseScheduler:
    """Runs callbacks at offsets on a pausable virtual clock (milliseconds)."""

    def __init__(self, interval_ms: int = INTERVAL_MS) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._interval_ms = interval_ms
        self._elapsed: int = 0
        self._active: bool = False
        self._queue: list[Job] = []
        self._counter = itertools.count()

    @property
    def elapsed(self) -> int:
        """Virtual milliseconds the clock has advanced since the last reset."""
        return self._elapsed

    @property
    def pending(self) -> int:
        return len(self._queue)

    def start(self) -> None:
        self._active = True

    def stop(self) -> None:
        self._active = False

    def toggle(self) -> None:
        self._active = not self._active

    def active(self) -> bool:
        return self._active

    def reset(self) -> None:
        """Drop every job, stop, and rewind the clock to zero."""
        self.clear_jobs()
        self._active = False
        self._elapsed = 0

    def clear_jobs(self) -> None:
        self._queue = []

    def add_job(
        self,
        time_ms: int,
        callback: Callable[[], None],
        *,
        priority: int = 0,
        repeat: int = 0,
        label: str = "",
    ) -> bool:
        """Queue *callback* to run *time_ms* after the current virtual time.

        Returns ``False`` without queueing anything while the scheduler is
        stopped.  A non-zero *repeat* re-queues the job that many
        milliseconds after each run.
        """
        if not self._active:
            return False
        job = Job(
            execution_ts=self._elapsed + time_ms,
            priority=priority,
            seq=next(self._counter),
            callback=callback,
            repeat=repeat,
            label=label,
        )
        heapq.heappush(self._queue, job)
        return True

    def advance(self, ms: int | None = None) -> int:
        """Move the clock forward and run every job that has come due.

        Stops early if a job stops or resets the scheduler.  Returns the
        number of jobs run.
        """
        if not self._active:
            return 0
        self._elapsed += self._interval_ms if ms is None else ms

        ran = 0
        while self._active and self._queue and self._queue[0].execution_ts <= self._elapsed:
            job = heapq.heappop(self._queue)
            if job.label:
                logger.debug("Running job %r at %dms", job.label, self._elapsed)
            job.callback()
            ran += 1
            if job.repeat:
                self.add_job(
                    job.repeat,
                    job.callback,
                    priority=job.priority,
                    repeat=job.repeat,
                    label=job.label,
                )
        return ran

    async def run(self) -> None:
        """Advance the clock every interval until the task is cancelled."""
        while True:
            await asyncio.sleep(self._interval_ms / 1000.0)
            self.advance()
