"""Command assembly.

laravel-tinker-mcp runtime module v0.1.0

Argument layout:

    [remote prefix...] php [template flags...] [extra args...] <script> <code> <options>

The last three positional arguments are always the bootstrap path, the
source code and the serialized options, with nothing interposed.

The process cwd only reaches a local interpreter. For remote commands the
mapped project root travels in the options under ``root`` and the bootstrap
changes into it.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field

from .types import Command, Payload, RuntimeConfig

__all__ = [
    "CommandBuilder",
    "RunTemplate",
    "map_remote_path",
    "XDEBUG_FLAGS",
    "ROOT_OPTION",
]

XDEBUG_FLAGS: tuple[str, ...] = (
    "-dxdebug.mode=debug",
    "-dxdebug.start_with_request=yes",
)
XDEBUG_SESSION = "laravel-tinker-mcp"
ROOT_OPTION = "root"


@dataclass(frozen=True)
class RunTemplate:
    """Interpreter settings shared by every run.

    Attributes:
        interpreter_options: Flags placed right after the interpreter
        env: Environment overrides for the process
        start_debug: Start a step-debugger session with the run
    """

    interpreter_options: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    start_debug: bool = False

    def flags(self) -> tuple[str, ...]:
        if self.start_debug:
            return (*self.interpreter_options, *XDEBUG_FLAGS)
        return self.interpreter_options

    def environment(self) -> dict[str, str] | None:
        env = dict(self.env)
        if self.start_debug:
            env.setdefault("XDEBUG_SESSION", XDEBUG_SESSION)
        return env or None


def map_remote_path(path: str, mappings: tuple[tuple[str, str], ...]) -> str:
    """Translate a local path through the first matching prefix mapping."""
    for local, remote in mappings:
        if path == local:
            return remote
        prefix = local if local.endswith("/") else local + "/"
        if path.startswith(prefix):
            base = remote if remote.endswith("/") else remote + "/"
            return base + path[len(prefix):]
    return path


def _with_root(options_blob: str, root: str) -> str:
    options = json.loads(options_blob) if options_blob else {}
    options[ROOT_OPTION] = root
    return json.dumps(options, ensure_ascii=False, separators=(",", ":"))


class CommandBuilder:
    """Builds the final Command from a RuntimeConfig and a Payload."""

    def __init__(self, template: RunTemplate | None = None) -> None:
        self.template = template or RunTemplate()

    def build(self, runtime: RuntimeConfig, payload: Payload) -> Command:
        script_path = str(payload.bootstrap_script_path)
        options_blob = payload.options_blob
        if runtime.is_remote:
            script_path = map_remote_path(script_path, runtime.path_mappings)
            remote_root = map_remote_path(str(runtime.working_directory), runtime.path_mappings)
            options_blob = _with_root(options_blob, remote_root)

        argv = (
            *runtime.remote_prefix,
            runtime.interpreter_path,
            *self.template.flags(),
            *runtime.extra_args,
            script_path,
            payload.source_code,
            options_blob,
        )

        return Command(
            argv=argv,
            cwd=runtime.working_directory,
            env=self.template.environment(),
            remote=runtime.is_remote,
        )
