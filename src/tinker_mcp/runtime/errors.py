"""Runtime exceptions.

laravel-tinker-mcp runtime module v0.1.0

Configuration errors are raised before anything is spawned and map one-to-one
onto user-facing notifications. None of them are retryable.
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "TinkerError",
    "ConfigurationError",
    "NoInterpreterError",
    "InvalidRootError",
    "MissingDependenciesError",
    "StagingIOError",
    "InterpreterLaunchError",
]


class TinkerError(Exception):
    """Base exception for the runtime module."""
    pass


class ConfigurationError(TinkerError):
    """Runtime configuration is unusable (detected before spawn)."""
    pass


class NoInterpreterError(ConfigurationError):
    """No PHP interpreter is configured."""

    def __init__(self) -> None:
        super().__init__("No PHP interpreter configured")


class InvalidRootError(ConfigurationError):
    """Custom Laravel root lacks the bootstrap marker file.

    Attributes:
        path: The custom root as configured by the user
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"Laravel root does not exist: {self.path}")


class MissingDependenciesError(ConfigurationError):
    """The vendor directory is missing under the resolved root.

    Attributes:
        path: The vendor directory that was expected
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"Vendor folder not found: {self.path}")


class StagingIOError(TinkerError):
    """The bootstrap script could not be written to a temporary file."""
    pass


class InterpreterLaunchError(TinkerError):
    """The interpreter process could not be started.

    Attributes:
        message: Launch failure detail from the OS or the interpreter setup
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
