"""MCP 响应格式化器。

使用 XML-wrapped Markdown 格式，对 LLM 友好。

格式说明:
    - <output>: 进程输出（stdout/stderr 合并，保持原始顺序）
    - <exit_code>: 退出码（正常结束时）
    - <cancelled>: 运行被取消
    - <error>: 配置错误 / 启动失败
    - <debug_info>: 调试信息（debug=True 时输出）
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp.types import TextContent

__all__ = [
    "DebugInfo",
    "ResponseData",
    "ResponseFormatter",
    "get_formatter",
    "format_error_response",
]


@dataclass
class DebugInfo:
    """调试信息。"""

    duration_sec: float = 0.0
    pid: int | None = None
    output_chars: int = 0
    working_directory: str | None = None
    remote: bool = False
    cancelled: bool = False
    log_file: str | None = None  # DEBUG 日志文件路径

    def to_dict(self) -> dict[str, Any]:
        """转换为字典。"""
        data: dict[str, Any] = {"duration_sec": round(self.duration_sec, 3)}
        if self.pid is not None:
            data["pid"] = self.pid
        data["output_chars"] = self.output_chars
        if self.working_directory:
            data["working_directory"] = self.working_directory
        if self.remote:
            data["remote"] = True
        if self.cancelled:
            data["cancelled"] = True
        if self.log_file:
            data["log_file"] = self.log_file
        return data


@dataclass
class ResponseData:
    """响应数据。"""

    # 进程输出
    output: str = ""

    # 退出码（取消或启动失败时为 None）
    exit_code: int | None = None

    # 是否被取消
    cancelled: bool = False

    # 错误信息（配置错误 / 启动失败）
    error: str | None = None

    # 输出是否被截断
    truncated: bool = False

    # 调试信息（可选，debug 时使用）
    debug_info: DebugInfo | None = None


class ResponseFormatter:
    """MCP 响应格式化器。

    Example:
        >>> formatter = ResponseFormatter()
        >>> data = ResponseData(output="=> 2\\n", exit_code=0)
        >>> output = formatter.format(data)
    """

    def format(self, data: ResponseData, *, debug: bool = False) -> str:
        """格式化响应数据。

        Args:
            data: 响应数据
            debug: 是否输出调试信息

        Returns:
            XML-wrapped Markdown 格式的响应字符串
        """
        parts = ["<response>"]

        if data.error:
            parts.append(f"  <error>{data.error}</error>")

        # 取消或失败时也返回已收集的输出
        if data.output or not data.error:
            parts.append(self._format_output(data.output, data.truncated))

        if data.cancelled:
            parts.append("  <cancelled>true</cancelled>")
        elif data.exit_code is not None:
            parts.append(f"  <exit_code>{data.exit_code}</exit_code>")

        if debug and data.debug_info:
            parts.append(self._format_debug_info(data.debug_info))

        parts.append("</response>")
        return "\n".join(parts)

    def _format_output(self, output: str, truncated: bool) -> str:
        """格式化进程输出。"""
        attr = ' truncated="true"' if truncated else ""
        return f"  <output{attr}>\n{output}\n  </output>"

    def _format_debug_info(self, debug_info: DebugInfo) -> str:
        """格式化调试信息（XML 格式）。"""
        lines = ["  <debug_info>"]
        lines.append(f"    <duration_sec>{debug_info.duration_sec:.3f}</duration_sec>")
        if debug_info.pid is not None:
            lines.append(f"    <pid>{debug_info.pid}</pid>")
        lines.append(f"    <output_chars>{debug_info.output_chars}</output_chars>")
        if debug_info.working_directory:
            lines.append(f"    <working_directory>{debug_info.working_directory}</working_directory>")
        if debug_info.remote:
            lines.append("    <remote>true</remote>")
        if debug_info.cancelled:
            lines.append("    <cancelled>true</cancelled>")
        if debug_info.log_file:
            lines.append(f"    <log_file>{debug_info.log_file}</log_file>")
        lines.append("  </debug_info>")
        return "\n".join(lines)


# 全局实例
_formatter: ResponseFormatter | None = None


def get_formatter() -> ResponseFormatter:
    """获取全局格式化器实例。"""
    global _formatter
    if _formatter is None:
        _formatter = ResponseFormatter()
    return _formatter


def format_error_response(error: str) -> list[TextContent]:
    """统一的错误响应格式化函数。

    确保所有错误都以 <response><error>...</error></response> 格式返回。
    """
    from mcp.types import TextContent

    formatter = get_formatter()
    return [TextContent(type="text", text=formatter.format(ResponseData(error=error)))]
