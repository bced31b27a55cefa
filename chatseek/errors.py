"""Error handling for the chatseek CLI."""

from __future__ import annotations

import sys

import click

from .logging import ChatSeekError, TransportError, get_logger

logger = get_logger(__name__)


class ErrorHandlingGroup(click.Group):
    """Click group that handles errors with clean output.

    Subclasses can override _transport_error_message to add context.
    """

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except TransportError as e:
            self._handle_error(self._transport_error_message(e))
        except ChatSeekError as e:
            self._handle_error(str(e))

    def _handle_error(self, message: str) -> None:
        """Log error and exit cleanly."""
        logger.error(message)
        click.echo(f"Error: {message}", err=True)
        sys.exit(1)

    def _transport_error_message(self, e: TransportError) -> str:
        """Convert TransportError to user-friendly message."""
        status = e.status
        reason = str(e)

        if status is None:
            return f"Connection failed: {reason}"
        if status == 401:
            return f"Authentication failed: {reason}. Check chatwoot_api_token."
        if status == 403:
            return f"Permission denied: {reason}"
        if status == 404:
            return (
                f"Not found: {reason}. "
                "Check chatwoot_url and chatwoot_account_id."
            )
        if status == 429:
            return f"Rate limit exceeded: {reason}. Wait a moment and try again."
        return f"API error ({status}): {reason}"
