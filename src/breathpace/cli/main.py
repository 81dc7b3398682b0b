"""CLI entry point for breathpace.

Uses Click to expose the ``breathpace`` command group: ``countdown`` runs a
single timed session and ``breathe`` paces a breathing pattern.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable, TypeVar

import click

import breathpace
from breathpace.core.session import CANCELLED_MESSAGE, CountdownSession
from breathpace.core.steps import BreathingExercise
from breathpace.core.timer import TimerError

T = TypeVar("T")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting argument and timer errors to a CLI error.

    The message is printed to stderr and the process exits with code 1.
    """
    try:
        return action()
    except (TypeError, ValueError, TimerError) as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=breathpace.__version__, prog_name="breathpace")
@click.option("-v", "--verbose", is_flag=True, help="Log timer activity to stderr.")
def cli(verbose: bool) -> None:
    """breathpace: paced countdowns for breathing exercises."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=_LOG_FORMAT)


@cli.command()
@click.argument("seconds", type=int)
@click.option(
    "--tick",
    "tick_seconds",
    type=int,
    default=None,
    envvar="BREATHPACE_TICK",
    help="Report progress every TICK seconds.",
)
def countdown(seconds: int, tick_seconds: int | None) -> None:
    """Count down SECONDS seconds; Ctrl-C cancels."""
    session = _run(lambda: CountdownSession(seconds, tick_seconds))
    try:
        message, exit_code = asyncio.run(session.run())
    except KeyboardInterrupt:
        click.echo(CANCELLED_MESSAGE, err=True)
        sys.exit(1)
    click.echo(message)
    sys.exit(exit_code)


def _parse_pattern(
    ctx: click.Context, param: click.Parameter, value: str
) -> tuple[int, ...]:
    """Turn ``4,7,8,0`` into a tuple of counts."""
    try:
        return tuple(int(part) for part in value.split(","))
    except ValueError:
        raise click.BadParameter(f"expected comma-separated seconds, got {value!r}") from None


@cli.command()
@click.option(
    "--pattern",
    default="4,4,4,4",
    show_default=True,
    callback=_parse_pattern,
    help="Seconds to inhale, hold, exhale and hold.",
)
@click.option("--rounds", type=int, default=1, show_default=True, help="Rounds of the pattern.")
def breathe(pattern: tuple[int, ...], rounds: int) -> None:
    """Pace a breathing exercise, counting down each phase; Ctrl-C cancels."""
    exercise = _run(lambda: BreathingExercise(pattern, rounds))
    try:
        message, exit_code = asyncio.run(exercise.run())
    except KeyboardInterrupt:
        click.echo(CANCELLED_MESSAGE, err=True)
        sys.exit(1)
    click.echo(message)
    sys.exit(exit_code)
