"""Payload staging.

laravel-tinker-mcp runtime module v0.1.0

The bootstrap script ships inside the package and is copied to a fresh
temporary file for every invocation. PHP then runs it as a file rather than
through ``php -r``, which step debuggers such as Xdebug cannot attach to.

Staged files are removed when the invocation releases its payload; any file
still on disk when the interpreter exits is removed by an atexit hook.
"""

from __future__ import annotations

import atexit
import json
import logging
import os
import tempfile
import threading
from collections.abc import Mapping
from importlib import resources
from pathlib import Path
from typing import Any

from .errors import StagingIOError
from .types import Payload

__all__ = [
    "PayloadStager",
    "BOOTSTRAP_VERSION",
    "load_bootstrap_script",
]

logger = logging.getLogger(__name__)

BOOTSTRAP_RESOURCE = "tinker_run.php"
BOOTSTRAP_VERSION = "1"

# Files staged by this process and not yet released
_staged_files: set[Path] = set()
_staged_lock = threading.Lock()


def _forget_staged(path: Path) -> None:
    with _staged_lock:
        _staged_files.discard(path)


@atexit.register
def _remove_staged_files() -> None:
    with _staged_lock:
        paths = list(_staged_files)
        _staged_files.clear()
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            pass


def load_bootstrap_script() -> bytes:
    """Read the embedded PHP bootstrap script."""
    return (
        resources.files("tinker_mcp")
        .joinpath("scripts", BOOTSTRAP_RESOURCE)
        .read_bytes()
    )


class PayloadStager:
    """Stages the bootstrap script and serializes runtime options.

    Attributes:
        temp_dir: Directory for staged scripts (None = system temp dir)
        bootstrap_source: Script file to stage instead of the embedded one
    """

    def __init__(
        self,
        temp_dir: str | Path | None = None,
        bootstrap_source: Path | None = None,
    ) -> None:
        self.temp_dir = str(temp_dir) if temp_dir else None
        self.bootstrap_source = bootstrap_source

    def stage(self, source_code: str, runtime_options: Mapping[str, Any]) -> Payload:
        """Write the bootstrap to a new temporary file.

        Args:
            source_code: PHP code to evaluate
            runtime_options: Options forwarded to the bootstrap

        Returns:
            The staged payload, owned by the caller

        Raises:
            StagingIOError: The temporary file could not be created or written
        """
        options_blob = json.dumps(
            dict(runtime_options), ensure_ascii=False, separators=(",", ":")
        )

        try:
            script = self._read_bootstrap()
        except OSError as e:
            raise StagingIOError(f"Cannot read bootstrap script: {e}") from e

        suffix = Path(self.bootstrap_source).suffix if self.bootstrap_source else ".php"

        try:
            fd, name = tempfile.mkstemp(prefix="tinker_run", suffix=suffix, dir=self.temp_dir)
        except OSError as e:
            raise StagingIOError(f"Cannot create temporary file: {e}") from e

        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(script)
        except OSError as e:
            path.unlink(missing_ok=True)
            raise StagingIOError(f"Cannot write {path}: {e}") from e

        with _staged_lock:
            _staged_files.add(path)

        logger.debug(f"Staged bootstrap v{BOOTSTRAP_VERSION} at {path}")

        return Payload(
            bootstrap_script_path=path,
            source_code=source_code,
            options_blob=options_blob,
            on_release=_forget_staged,
        )

    def _read_bootstrap(self) -> bytes:
        if self.bootstrap_source is not None:
            return Path(self.bootstrap_source).read_bytes()
        return load_bootstrap_script()
