"""Runtime type definitions.

laravel-tinker-mcp runtime module v0.1.0

Per-invocation value objects: resolved configuration, staged payload, the
final command, the supervise outcome and the shared cancellation flag.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = [
    "RuntimeConfig",
    "Payload",
    "Command",
    "OutcomeKind",
    "RunOutcome",
    "CancellationToken",
    "NotificationKind",
    "Notification",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeConfig:
    """Resolved runtime configuration for one invocation.

    Attributes:
        interpreter_path: PHP executable (path or name on PATH)
        working_directory: Resolved Laravel root, used as the process cwd
        dependency_root: Root the vendor directory was validated under
        extra_args: Interpreter runtime flags, placed before the script path
        extra_options: Options blob forwarded to the bootstrap script
        remote_prefix: Command prefix for remote interpreters (e.g. docker exec)
        path_mappings: (local, remote) path prefix pairs for remote interpreters
    """

    interpreter_path: str
    working_directory: Path
    dependency_root: Path
    extra_args: tuple[str, ...] = ()
    extra_options: Mapping[str, Any] = field(default_factory=dict)
    remote_prefix: tuple[str, ...] = ()
    path_mappings: tuple[tuple[str, str], ...] = ()

    @property
    def is_remote(self) -> bool:
        return bool(self.remote_prefix)


@dataclass
class Payload:
    """Staged bootstrap script plus the code and options it will receive.

    Owned by exactly one invocation. ``release()`` deletes the temporary
    script and may be called any number of times.
    """

    bootstrap_script_path: Path
    source_code: str
    options_blob: str
    on_release: Callable[[Path], None] | None = field(default=None, repr=False, compare=False)
    _released: bool = field(default=False, init=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Delete the staged script (best-effort)."""
        if self._released:
            return
        self._released = True
        try:
            self.bootstrap_script_path.unlink(missing_ok=True)
            logger.debug(f"Removed staged script {self.bootstrap_script_path}")
        except OSError as e:
            logger.warning(
                f"Could not remove staged script {self.bootstrap_script_path}: {e}"
            )
        if self.on_release is not None:
            self.on_release(self.bootstrap_script_path)


@dataclass(frozen=True)
class Command:
    """Fully assembled process command.

    Attributes:
        argv: Command line (first element is the executable)
        cwd: Working directory for the process
        env: Environment overrides merged over the parent environment
            (None = inherit unchanged)
        remote: Whether argv goes through a remote interpreter prefix
    """

    argv: tuple[str, ...]
    cwd: Path
    env: Mapping[str, str] | None = None
    remote: bool = False


class OutcomeKind(str, Enum):
    """Terminal outcome of a supervised run."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class RunOutcome:
    """Tri-state supervise result.

    ``COMPLETED`` carries the exit code (non-zero exits are still completed
    runs); ``FAILED`` carries the reason the process could not be run.
    ``launch_error`` marks a FAILED outcome produced at spawn time, as opposed
    to one produced by staging or by a supervision error mid-run.
    """

    kind: OutcomeKind
    exit_code: int | None = None
    reason: str | None = None
    launch_error: bool = False

    @classmethod
    def completed(cls, exit_code: int) -> "RunOutcome":
        return cls(OutcomeKind.COMPLETED, exit_code=exit_code)

    @classmethod
    def cancelled(cls, exit_code: int | None = None) -> "RunOutcome":
        return cls(OutcomeKind.CANCELLED, exit_code=exit_code)

    @classmethod
    def failed(cls, reason: str, launch_error: bool = False) -> "RunOutcome":
        return cls(OutcomeKind.FAILED, reason=reason, launch_error=launch_error)

    @property
    def is_completed(self) -> bool:
        return self.kind is OutcomeKind.COMPLETED

    @property
    def is_cancelled(self) -> bool:
        return self.kind is OutcomeKind.CANCELLED

    @property
    def is_failed(self) -> bool:
        return self.kind is OutcomeKind.FAILED


class CancellationToken:
    """Cooperative cancellation flag shared between caller and supervisor.

    Backed by ``threading.Event`` so it can be set from another thread or a
    signal handler and read from the event loop without extra locking.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


class NotificationKind(str, Enum):
    """User-facing error events."""

    NO_INTERPRETER = "no_interpreter"
    INVALID_ROOT = "invalid_root"
    MISSING_DEPENDENCIES = "missing_dependencies"
    INTERPRETER_LAUNCH_ERROR = "interpreter_launch_error"


@dataclass(frozen=True)
class Notification:
    """A single user-facing error event.

    Attributes:
        kind: Event type
        detail: Path or message relevant to the event (may be empty)
    """

    kind: NotificationKind
    detail: str = ""

    @property
    def message(self) -> str:
        """Human-readable message for the event."""
        if self.kind is NotificationKind.NO_INTERPRETER:
            return "No PHP interpreter configured. Set TINKER_PHP to a PHP executable."
        if self.kind is NotificationKind.INVALID_ROOT:
            return f"Laravel root '{self.detail}' does not contain bootstrap/app.php."
        if self.kind is NotificationKind.MISSING_DEPENDENCIES:
            return f"Vendor folder not found at '{self.detail}'. Run composer install first."
        return f"PHP interpreter error: {self.detail}"
