"""Tool Schema 定义。

包含工具描述、参数 schema 和 schema 创建函数。
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "TOOL_NAME",
    "TOOL_DESCRIPTION",
    "create_tool_schema",
]

TOOL_NAME = "tinker"

# 工具描述
TOOL_DESCRIPTION = """Run PHP code inside a Laravel application (like `php artisan tinker`).

EXECUTION:
- The code runs once in a fresh PHP process booted from the project's
  bootstrap/app.php, then the process exits. No state survives between calls.
- The return value of the last statement is printed (disable with
  options.showReturnValue=false).
- stdout and stderr are returned together in emission order.

PROJECT ROOT:
- Found by walking up from `workspace` to the nearest composer.json,
  unless the server is configured with a fixed Laravel root.
- The project must have its vendor/ directory installed.

BEST PRACTICES:
- Prefer read-only queries; the code runs against the real application
  database and services.
- Use options.queryLog=true to print the executed SQL queries."""

TOOL_PROPERTIES: dict[str, Any] = {
    "code": {
        "type": "string",
        "description": "PHP code to evaluate. A leading <?php tag is optional.",
    },
    "workspace": {
        "type": "string",
        "description": "Absolute path of the Laravel project (or any directory inside it).",
    },
    "options": {
        "type": "object",
        "description": (
            "Options passed to the bootstrap script, merged over the server defaults. "
            "Known keys: queryLog (bool), showReturnValue (bool)."
        ),
        "additionalProperties": True,
    },
    "debug": {
        "type": "boolean",
        "description": "Include run statistics (duration, pid, output size) in the response.",
    },
}


def create_tool_schema() -> dict[str, Any]:
    """创建 tinker 工具的 JSON Schema。

    参数顺序：code, workspace (必填) → options → debug (末尾)
    """
    return {
        "type": "object",
        "properties": dict(TOOL_PROPERTIES),
        "required": ["code", "workspace"],
    }
