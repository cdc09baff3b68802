"""tinker 工具处理器。

每次调用创建独立的 TinkerInvocation 和接收器（per-request 隔离），
运行结束后把输出和结果格式化为 XML-wrapped Markdown。
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import anyio
from mcp.types import TextContent

from ..config import Config
from ..response_formatter import (
    DebugInfo,
    ResponseData,
    format_error_response,
    get_formatter,
)
from ..runtime import (
    CommandBuilder,
    PayloadStager,
    ProcessSupervisor,
    RunOutcome,
    RunTemplate,
    RuntimeResolver,
    TinkerInvocation,
)
from ..runtime.router import NotificationSink
from ..sinks import CollectingOutputSink, RecordingNotificationSink
from ..tool_schema import TOOL_DESCRIPTION, TOOL_NAME, create_tool_schema
from .base import ToolContext, ToolHandler

__all__ = ["TinkerHandler", "RunTracker", "create_invocation"]

logger = logging.getLogger(__name__)


class RunTracker:
    """记录运行边界（pid 和最终结果），用于 debug 信息。"""

    def __init__(self) -> None:
        self.pid: int | None = None
        self.outcome: RunOutcome | None = None

    def on_start(self, pid: int | None) -> None:
        self.pid = pid

    def on_terminate(self, outcome: RunOutcome) -> None:
        self.outcome = outcome


def create_invocation(config: Config, notification_sink: NotificationSink) -> TinkerInvocation:
    """根据全局配置组装一次运行所需的组件。"""
    return TinkerInvocation(
        resolver=RuntimeResolver(
            interpreter_args=config.interpreter_args,
            remote_prefix=config.remote_prefix,
            path_mappings=config.path_mappings,
        ),
        stager=PayloadStager(temp_dir=config.temp_dir),
        builder=CommandBuilder(RunTemplate(start_debug=config.xdebug)),
        supervisor=ProcessSupervisor(poll_interval=config.poll_interval),
        notification_sink=notification_sink,
    )


class TinkerHandler(ToolHandler):
    """tinker 工具处理器。"""

    @property
    def name(self) -> str:
        return TOOL_NAME

    @property
    def description(self) -> str:
        return TOOL_DESCRIPTION

    def get_input_schema(self) -> dict[str, Any]:
        return create_tool_schema()

    def validate(self, arguments: dict[str, Any]) -> str | None:
        code = arguments.get("code")
        workspace = arguments.get("workspace")
        if not isinstance(code, str) or not code.strip():
            return "Missing required argument: 'code'"
        if not workspace or not isinstance(workspace, str):
            return "Missing required argument: 'workspace'"
        options = arguments.get("options")
        if options is not None and not isinstance(options, dict):
            return "Argument 'options' must be an object"
        return None

    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> list[TextContent]:
        """处理 tinker 工具调用。"""
        error = self.validate(arguments)
        if error:
            return format_error_response(error)

        workspace = Path(arguments["workspace"]).expanduser()
        if not workspace.is_absolute():
            workspace = workspace.resolve()
        if not workspace.is_dir():
            return format_error_response(f"Workspace does not exist: {workspace}")

        settings = ctx.settings_registry.get(workspace)
        output = CollectingOutputSink(max_chars=ctx.config.max_output_chars)
        notifications = RecordingNotificationSink()
        tracker = RunTracker()
        invocation = create_invocation(ctx.config, notifications)

        try:
            result = await invocation.run(
                arguments["code"],
                workspace,
                settings,
                output,
                ctx.token,
                notifier=tracker,
                options=arguments.get("options"),
            )

        except anyio.get_cancelled_exc_class() as e:
            logger.info(f"Tool '{self.name}' cancelled (type={type(e).__name__})")
            raise

        except asyncio.CancelledError:
            logger.info(f"Tool '{self.name}' cancelled via asyncio.CancelledError")
            raise

        except Exception as e:
            logger.error(f"Tool '{self.name}' error: {e}", exc_info=True)
            return format_error_response(str(e))

        debug_enabled = ctx.resolve_debug(arguments)
        outcome = result.outcome

        error = None
        if result.notification:
            error = result.notification.message
        elif outcome.is_failed:
            error = outcome.reason

        debug_info = None
        if debug_enabled:
            debug_info = DebugInfo(
                duration_sec=result.duration_sec,
                pid=tracker.pid,
                output_chars=len(output.text),
                working_directory=settings.resolved_root or None,
                remote=bool(ctx.config.remote_prefix),
                cancelled=outcome.is_cancelled,
                log_file=ctx.config.log_file if ctx.config.log_debug else None,
            )

        response_data = ResponseData(
            output=output.text,
            exit_code=outcome.exit_code if outcome.is_completed else None,
            cancelled=outcome.is_cancelled,
            error=error,
            truncated=output.truncated,
            debug_info=debug_info,
        )

        response = get_formatter().format(response_data, debug=debug_enabled)

        logger.debug(
            "[MCP] call_tool response:\n"
            f"  Tool: {self.name}\n"
            f"  Outcome: {outcome.kind.value}\n"
            f"  Exit code: {outcome.exit_code}\n"
            f"  Response length: {len(response)} chars\n"
            f"  Duration: {result.duration_sec:.3f}s"
        )

        return [TextContent(type="text", text=response)]
