"""Tests for the countdown session."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from breathpace.core.session import (
    CANCELLED_MESSAGE,
    COMPLETE_MESSAGE,
    CountdownSession,
    _format_remaining,
)

# Ten real milliseconds per session "second" keeps the suite fast.
_FAST = patch("breathpace.core.session._MS_PER_SECOND", 10)

# ---------------------------------------------------------------------------
# Time formatting
# ---------------------------------------------------------------------------


class TestTimeFormatting:
    """Remaining time is shown as M:SS."""

    def test_format_seven_minutes_thirty_four_seconds(self) -> None:
        assert _format_remaining(454) == "7:34"

    def test_format_five_seconds(self) -> None:
        assert _format_remaining(5) == "0:05"

    def test_format_twelve_minutes_exactly(self) -> None:
        assert _format_remaining(720) == "12:00"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestSessionValidation:
    """Durations are whole seconds between 1 and 3600."""

    def test_zero_seconds_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            CountdownSession(0)

    def test_over_an_hour_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            CountdownSession(3601)

    def test_non_integer_raises_type_error(self) -> None:
        with pytest.raises(TypeError):
            CountdownSession(2.5)  # type: ignore[arg-type]

    def test_zero_tick_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            CountdownSession(10, tick_seconds=0)


# ---------------------------------------------------------------------------
# run()
# ---------------------------------------------------------------------------


class TestSessionRun:
    """run() reports progress and returns (message, exit_code)."""

    def test_completes_with_progress_messages(self) -> None:
        lines: list[str] = []
        session = CountdownSession(10, tick_seconds=3, echo=lines.append)
        with _FAST:
            result = asyncio.run(session.run())
        assert result == (COMPLETE_MESSAGE, 0)
        assert lines == ["0:07 remaining", "0:04 remaining", "0:01 remaining"]

    def test_completes_silently_without_tick(self) -> None:
        lines: list[str] = []
        session = CountdownSession(5, echo=lines.append)
        with _FAST:
            result = asyncio.run(session.run())
        assert result == (COMPLETE_MESSAGE, 0)
        assert lines == []

    def test_cancel_returns_cancelled(self) -> None:
        lines: list[str] = []
        session = CountdownSession(50, tick_seconds=10, echo=lines.append)

        async def scenario() -> tuple[str, int]:
            task = asyncio.create_task(session.run())
            await asyncio.sleep(0.15)
            assert session.running
            session.cancel()
            return await task

        with _FAST:
            result = asyncio.run(scenario())
        assert result == (CANCELLED_MESSAGE, 1)
        assert lines == ["0:40 remaining"]
        assert not session.running

    def test_cancel_when_idle_is_noop(self) -> None:
        session = CountdownSession(5)
        session.cancel()
        assert not session.running
