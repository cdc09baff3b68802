"""CommandBuilder unit tests.

Test coverage:
- Argument layout (interpreter flags before the script, payload last)
- Run template flags and environment
- Remote prefix and path mapping
"""

from __future__ import annotations

import json
from pathlib import Path

from tinker_mcp.runtime.command import (
    ROOT_OPTION,
    XDEBUG_FLAGS,
    CommandBuilder,
    RunTemplate,
    map_remote_path,
)
from tinker_mcp.runtime.types import Payload, RuntimeConfig


def make_runtime(root: Path, **kwargs) -> RuntimeConfig:
    return RuntimeConfig(
        interpreter_path=kwargs.pop("interpreter_path", "php"),
        working_directory=root,
        dependency_root=root,
        **kwargs,
    )


def make_payload(path: str = "/tmp/tinker_run123.php") -> Payload:
    return Payload(
        bootstrap_script_path=Path(path),
        source_code="User::count()",
        options_blob='{"queryLog":true}',
    )


class TestArgumentLayout:
    """Test argv ordering."""

    def test_minimal(self, tmp_path: Path):
        command = CommandBuilder().build(make_runtime(tmp_path), make_payload())

        assert command.argv == (
            "php",
            "/tmp/tinker_run123.php",
            "User::count()",
            '{"queryLog":true}',
        )
        assert command.cwd == tmp_path
        assert command.env is None
        assert command.remote is False

    def test_extra_args_before_script(self, tmp_path: Path):
        runtime = make_runtime(tmp_path, extra_args=("-d", "memory_limit=1G"))
        command = CommandBuilder().build(runtime, make_payload())

        assert command.argv[:3] == ("php", "-d", "memory_limit=1G")
        assert command.argv[-3:] == (
            "/tmp/tinker_run123.php",
            "User::count()",
            '{"queryLog":true}',
        )

    def test_template_flags_precede_extra_args(self, tmp_path: Path):
        template = RunTemplate(interpreter_options=("-n",))
        runtime = make_runtime(tmp_path, extra_args=("-d", "x=1"))
        command = CommandBuilder(template).build(runtime, make_payload())
        assert command.argv[:4] == ("php", "-n", "-d", "x=1")

    def test_deterministic(self, tmp_path: Path):
        builder = CommandBuilder(RunTemplate(env={"APP_ENV": "local"}))
        runtime = make_runtime(tmp_path)
        payload = make_payload()
        assert builder.build(runtime, payload) == builder.build(runtime, payload)


class TestRunTemplate:
    """Test run template flags and environment."""

    def test_debug_adds_xdebug_flags(self):
        template = RunTemplate(interpreter_options=("-n",), start_debug=True)
        assert template.flags() == ("-n", *XDEBUG_FLAGS)

    def test_debug_sets_session_env(self):
        env = RunTemplate(start_debug=True).environment()
        assert env is not None
        assert "XDEBUG_SESSION" in env

    def test_explicit_session_kept(self):
        env = RunTemplate(env={"XDEBUG_SESSION": "ide"}, start_debug=True).environment()
        assert env == {"XDEBUG_SESSION": "ide"}

    def test_no_env_inherits(self):
        assert RunTemplate().environment() is None

    def test_env_overrides_passed(self, tmp_path: Path):
        builder = CommandBuilder(RunTemplate(env={"APP_ENV": "testing"}))
        command = builder.build(make_runtime(tmp_path), make_payload())
        assert command.env == {"APP_ENV": "testing"}


class TestRemote:
    """Test remote interpreter commands."""

    def test_prefix_and_mapping(self, tmp_path: Path):
        runtime = make_runtime(
            tmp_path,
            remote_prefix=("docker", "compose", "exec", "-T", "app"),
            path_mappings=(("/tmp", "/shared/tmp"),),
        )
        command = CommandBuilder().build(runtime, make_payload())

        assert command.remote is True
        assert command.argv[:6] == ("docker", "compose", "exec", "-T", "app", "php")
        assert command.argv[6] == "/shared/tmp/tinker_run123.php"
        assert command.cwd == tmp_path

    def test_mapped_root_carried_in_options(self):
        runtime = make_runtime(
            Path("/home/me/app"),
            remote_prefix=("ssh", "box"),
            path_mappings=(("/home/me/app", "/var/www"), ("/tmp", "/shared/tmp")),
        )
        command = CommandBuilder().build(runtime, make_payload())

        assert command.argv[-3] == "/shared/tmp/tinker_run123.php"
        assert command.argv[-2] == "User::count()"
        assert json.loads(command.argv[-1]) == {"queryLog": True, ROOT_OPTION: "/var/www"}

    def test_unmapped_root_carried_as_is(self):
        runtime = make_runtime(Path("/srv/app"), remote_prefix=("ssh", "box"))
        command = CommandBuilder().build(runtime, make_payload())
        assert json.loads(command.argv[-1])[ROOT_OPTION] == "/srv/app"

    def test_local_path_not_mapped(self, tmp_path: Path):
        runtime = make_runtime(tmp_path, path_mappings=(("/tmp", "/shared"),))
        command = CommandBuilder().build(runtime, make_payload())
        assert command.argv[1] == "/tmp/tinker_run123.php"
        assert command.argv[-1] == '{"queryLog":true}'


class TestMapRemotePath:
    """Test prefix mapping."""

    def test_prefix_match(self):
        assert map_remote_path("/home/me/app/x.php", (("/home/me/app", "/var/www"),)) == "/var/www/x.php"

    def test_exact_match(self):
        assert map_remote_path("/home/me/app", (("/home/me/app", "/var/www"),)) == "/var/www"

    def test_partial_segment_not_matched(self):
        assert map_remote_path("/home/me/application/x", (("/home/me/app", "/var/www"),)) == "/home/me/application/x"

    def test_first_match_wins(self):
        mappings = (("/home/me/app", "/app"), ("/home/me", "/home"))
        assert map_remote_path("/home/me/app/a", mappings) == "/app/a"
        assert map_remote_path("/home/me/b", mappings) == "/home/b"

    def test_no_mapping(self):
        assert map_remote_path("/tmp/x", ()) == "/tmp/x"
