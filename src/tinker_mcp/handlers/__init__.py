"""Tool Handlers 模块。

提供工具处理器抽象和具体实现。
"""

from .base import ToolContext, ToolHandler
from .tinker import RunTracker, TinkerHandler, create_invocation

__all__ = [
    "ToolContext",
    "ToolHandler",
    "TinkerHandler",
    "RunTracker",
    "create_invocation",
]
