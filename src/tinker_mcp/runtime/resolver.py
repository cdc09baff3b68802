"""Runtime resolution: interpreter and Laravel project layout.

laravel-tinker-mcp runtime module v0.1.0

Checks run in a fixed order and stop at the first failure:
1. An interpreter is configured        -> NoInterpreterError
2. A custom root contains the marker   -> InvalidRootError
3. The vendor directory exists         -> MissingDependenciesError
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..settings import SettingsProvider
from .errors import InvalidRootError, MissingDependenciesError, NoInterpreterError
from .types import RuntimeConfig

__all__ = [
    "RuntimeResolver",
    "find_project_root",
    "MANIFEST_FILENAME",
    "ROOT_MARKER",
    "DEPENDENCY_DIR",
]

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "composer.json"
ROOT_MARKER = Path("bootstrap") / "app.php"
DEPENDENCY_DIR = "vendor"


def find_project_root(start: Path) -> Path:
    """Return the nearest directory at or above ``start`` holding composer.json.

    Falls back to ``start`` itself when no manifest is found.
    """
    start = Path(start).expanduser().resolve()
    for directory in (start, *start.parents):
        if (directory / MANIFEST_FILENAME).is_file():
            return directory
    logger.debug(f"No {MANIFEST_FILENAME} found above {start}, using it as project root")
    return start


class RuntimeResolver:
    """Resolves the RuntimeConfig for one invocation.

    Example:
        resolver = RuntimeResolver(interpreter_args=("-d", "memory_limit=1G"))
        runtime = resolver.resolve(Path("/srv/app"), settings)
    """

    def __init__(
        self,
        interpreter_args: tuple[str, ...] = (),
        remote_prefix: tuple[str, ...] = (),
        path_mappings: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self.interpreter_args = tuple(interpreter_args)
        self.remote_prefix = tuple(remote_prefix)
        self.path_mappings = tuple(path_mappings)

    def resolve(self, workspace: Path, settings: SettingsProvider) -> RuntimeConfig:
        """Resolve interpreter and roots, persisting the roots on success.

        Args:
            workspace: Directory the run was requested for
            settings: Configuration provider for the project

        Returns:
            The immutable runtime configuration

        Raises:
            NoInterpreterError: No interpreter configured
            InvalidRootError: Custom root lacks bootstrap/app.php
            MissingDependenciesError: No vendor directory under the root
        """
        interpreter = settings.get_interpreter_path()
        custom_root = settings.get_custom_root()
        options = settings.get_persisted_options()

        if not interpreter:
            raise NoInterpreterError()

        root = find_project_root(workspace)

        if custom_root:
            candidate = Path(custom_root).expanduser()
            if not (candidate / ROOT_MARKER).is_file():
                raise InvalidRootError(custom_root)
            root = candidate.resolve()

        vendor_dir = root / DEPENDENCY_DIR
        if not vendor_dir.is_dir():
            raise MissingDependenciesError(vendor_dir)

        # The dependency root is the project root, not the vendor directory.
        settings.persist_resolved_roots(root, root)

        logger.debug(f"Resolved runtime: interpreter={interpreter}, root={root}")

        return RuntimeConfig(
            interpreter_path=interpreter,
            working_directory=root,
            dependency_root=root,
            extra_args=self.interpreter_args,
            extra_options=options,
            remote_prefix=self.remote_prefix,
            path_mappings=self.path_mappings,
        )
