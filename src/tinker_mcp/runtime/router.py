"""Lifecycle event routing.

laravel-tinker-mcp runtime module v0.1.0

The supervisor reports three kinds of events: start, output chunk and
terminate. Chunks go to the output sink, start/terminate go to the
completion notifier. Everything runs on the supervisor's event loop and is
delivered synchronously in call order, so a chunk can never overtake the
terminate event that follows it.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .types import Notification, RunOutcome

__all__ = [
    "OutputSink",
    "NotificationSink",
    "CompletionNotifier",
    "SignalRouter",
]

logger = logging.getLogger(__name__)


class OutputSink(Protocol):
    """Receives raw process output in emission order."""

    def reset(self) -> None:
        """Clear previous output; called before the first chunk of a run."""
        ...

    def write(self, chunk: str) -> None: ...


class NotificationSink(Protocol):
    """Receives user-facing error events (at most one per invocation)."""

    def notify(self, notification: Notification) -> None: ...


class CompletionNotifier(Protocol):
    """Receives run boundaries."""

    def on_start(self, pid: int | None) -> None: ...

    def on_terminate(self, outcome: RunOutcome) -> None: ...


class SignalRouter:
    """Routes supervisor events for a single invocation.

    Attributes:
        output_sink: Destination for output chunks
        notifier: Optional destination for start/terminate events
    """

    def __init__(
        self,
        output_sink: OutputSink,
        notifier: CompletionNotifier | None = None,
    ) -> None:
        self.output_sink = output_sink
        self.notifier = notifier
        self._started = False
        self._outcome: RunOutcome | None = None

    @property
    def terminated(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> RunOutcome | None:
        return self._outcome

    def reset_output(self) -> None:
        self.output_sink.reset()

    def on_start(self, pid: int | None = None) -> None:
        if self._started:
            return
        self._started = True
        logger.debug(f"Process started pid={pid}")
        if self.notifier is not None:
            self.notifier.on_start(pid)

    def on_output_chunk(self, chunk: str) -> None:
        if not chunk:
            return
        if self._outcome is not None:
            logger.debug(f"Dropping {len(chunk)} chars received after terminate")
            return
        self.output_sink.write(chunk)

    def on_terminate(self, outcome: RunOutcome) -> None:
        if self._outcome is not None:
            return
        self._outcome = outcome
        logger.debug(f"Process terminated outcome={outcome.kind.value} exit_code={outcome.exit_code}")
        if self.notifier is not None:
            self.notifier.on_terminate(outcome)
