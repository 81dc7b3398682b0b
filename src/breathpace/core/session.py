"""Countdown Session — runs one exercise countdown and reports progress."""

from __future__ import annotations

import logging
from typing import Callable

import click

from breathpace.core.timer import TimerCancelled, TimerHandle, incremental_completion_timer

logger = logging.getLogger(__name__)

_MS_PER_SECOND = 1000

_MIN_SECONDS = 1
_MAX_SECONDS = 60 * 60

COMPLETE_MESSAGE = "Exercise complete"
CANCELLED_MESSAGE = "Exercise cancelled"


def _format_remaining(seconds: float) -> str:
    """Format *seconds* as ``M:SS``."""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def _check_seconds(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if not (_MIN_SECONDS <= value <= _MAX_SECONDS):
        raise ValueError(
            f"{name} must be between {_MIN_SECONDS} and {_MAX_SECONDS}, got {value}"
        )


class CountdownSession:
    """Drives an incremental timer for a terminal user.

    Every tick echoes the time left as ``M:SS remaining``; the session ends
    with either :data:`COMPLETE_MESSAGE` or :data:`CANCELLED_MESSAGE`.
    """

    def __init__(
        self,
        seconds: int,
        tick_seconds: int | None = None,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        _check_seconds("seconds", seconds)
        if tick_seconds is not None:
            _check_seconds("tick_seconds", tick_seconds)
        self._seconds = seconds
        self._tick_seconds = tick_seconds
        self._echo = echo
        self._handle: TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    async def run(self) -> tuple[str, int]:
        """Count down and return ``(message, exit_code)``."""
        tick_ms = None
        if self._tick_seconds is not None:
            tick_ms = self._tick_seconds * _MS_PER_SECOND

        logger.debug("Countdown started: %ds, tick every %ss", self._seconds, self._tick_seconds)
        self._handle = incremental_completion_timer(
            self._seconds * _MS_PER_SECOND,
            lambda: COMPLETE_MESSAGE,
            tick_ms,
            self._on_tick,
        )
        try:
            message = await self._handle.outcome
        except TimerCancelled:
            return CANCELLED_MESSAGE, 1
        finally:
            self._handle = None
        return message, 0

    def cancel(self) -> None:
        """Cancel the running countdown; a no-op when nothing is running."""
        if self._handle is not None:
            self._handle.cancel()

    def _on_tick(self, tick_count: int) -> None:
        remaining = self._seconds - tick_count * (self._tick_seconds or 0)
        self._echo(f"{_format_remaining(remaining)} remaining")
