"""Input utilities for CLI commands."""

import sys

import click


def read_lines_stdin() -> list[str]:
    """Read one value per line from stdin, skipping blanks and # comments.

    Raises UsageError for interactive terminals and for empty input.
    """
    if sys.stdin.isatty():
        raise click.UsageError("Expected phone numbers on stdin")

    lines = [line.strip() for line in sys.stdin.read().splitlines()]
    values = [line for line in lines if line and not line.startswith("#")]
    if not values:
        raise click.UsageError("No phone numbers on stdin")

    return values
