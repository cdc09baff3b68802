"""Laravel Tinker MCP Server。

在 Laravel 项目上下文中执行 PHP 代码的 MCP 服务器。

环境变量见 config.py（TINKER_*）。

用法:
    uvx laravel-tinker-mcp
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from .config import get_config
from .handlers import TinkerHandler, ToolContext
from .orchestrator import RequestRegistry
from .response_formatter import format_error_response
from .settings import SettingsRegistry

__all__ = ["create_server"]

logger = logging.getLogger(__name__)


def _summarize_arguments(arguments: dict[str, Any]) -> str:
    """截断过长的字符串参数，用于日志。"""
    return json.dumps(
        {
            k: v[:100] + "..." if isinstance(v, str) and len(v) > 100 else v
            for k, v in arguments.items()
        },
        ensure_ascii=False,
        default=str,
    )


def create_server(
    registry: RequestRegistry | None = None,
    settings_registry: SettingsRegistry | None = None,
) -> Server:
    """创建 MCP Server 实例。

    Args:
        registry: 活动运行注册表（可选，用于信号隔离）
        settings_registry: 按 workspace 管理的项目设置（默认新建）
    """
    config = get_config()
    server = Server("laravel-tinker-mcp")
    settings_registry = settings_registry if settings_registry is not None else SettingsRegistry(config)
    handler = TinkerHandler()

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """列出可用工具。"""
        tools = [
            Tool(
                name=handler.name,
                description=handler.description,
                inputSchema=handler.get_input_schema(),
            )
        ]
        logger.debug(f"[MCP] list_tools called, returning {[t.name for t in tools]}")
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """调用工具。"""
        logger.debug(
            f"[MCP] call_tool request:\n"
            f"  Tool: {name}\n"
            f"  Arguments: {_summarize_arguments(arguments or {})}"
        )

        if name != handler.name:
            return format_error_response(f"Unknown tool '{name}'")

        ctx = ToolContext(
            config=config,
            settings_registry=settings_registry,
            registry=registry,
        )

        # 登记运行（令牌供 SignalManager 取消）
        request_id = None
        if registry is not None:
            current_task = asyncio.current_task()
            if current_task:
                request_id = registry.generate_request_id()
                workspace = str((arguments or {}).get("workspace", ""))
                ctx.token = registry.register(request_id, workspace, current_task)
                logger.debug(f"Registered request: {request_id[:8]}... ({name})")
            else:
                logger.warning("No current_task, cannot register request")

        try:
            return await handler.handle(arguments or {}, ctx)

        except asyncio.CancelledError:
            logger.info(f"Tool '{name}' cancelled")
            raise

        except Exception as e:
            logger.error(f"Tool '{name}' error: type={type(e).__name__}, msg={e}")
            return format_error_response(str(e))

        finally:
            if registry and request_id:
                registry.unregister(request_id)
                logger.debug(f"Unregistered request: {request_id[:8]}...")

    return server
