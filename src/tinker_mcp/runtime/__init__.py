"""laravel-tinker-mcp runtime module.

Process orchestration for one tinker run: resolve the interpreter and the
Laravel root, stage the bootstrap script, build the command, supervise the
process with cooperative cancellation and route its events.
"""

from __future__ import annotations

from .command import CommandBuilder, RunTemplate, map_remote_path
from .errors import (
    ConfigurationError,
    InterpreterLaunchError,
    InvalidRootError,
    MissingDependenciesError,
    NoInterpreterError,
    StagingIOError,
    TinkerError,
)
from .handles import (
    LocalProcessHandle,
    ProcessHandle,
    RemoteProcessHandle,
    open_process_handle,
)
from .invocation import InvocationResult, TinkerInvocation, notification_for
from .resolver import RuntimeResolver, find_project_root
from .router import CompletionNotifier, NotificationSink, OutputSink, SignalRouter
from .stager import BOOTSTRAP_VERSION, PayloadStager, load_bootstrap_script
from .supervisor import END_OF_INPUT, ProcessSupervisor
from .types import (
    CancellationToken,
    Command,
    Notification,
    NotificationKind,
    OutcomeKind,
    Payload,
    RunOutcome,
    RuntimeConfig,
)

__all__ = [
    # Types
    "RuntimeConfig",
    "Payload",
    "Command",
    "OutcomeKind",
    "RunOutcome",
    "CancellationToken",
    "NotificationKind",
    "Notification",
    # Errors
    "TinkerError",
    "ConfigurationError",
    "NoInterpreterError",
    "InvalidRootError",
    "MissingDependenciesError",
    "StagingIOError",
    "InterpreterLaunchError",
    # Pipeline
    "RuntimeResolver",
    "find_project_root",
    "PayloadStager",
    "load_bootstrap_script",
    "BOOTSTRAP_VERSION",
    "CommandBuilder",
    "RunTemplate",
    "map_remote_path",
    "ProcessHandle",
    "LocalProcessHandle",
    "RemoteProcessHandle",
    "open_process_handle",
    "ProcessSupervisor",
    "END_OF_INPUT",
    "OutputSink",
    "NotificationSink",
    "CompletionNotifier",
    "SignalRouter",
    "TinkerInvocation",
    "InvocationResult",
    "notification_for",
]
