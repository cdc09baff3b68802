"""Laravel Tinker MCP - 在 Laravel 项目上下文中执行 PHP 代码的 MCP 服务器。

环境变量:
    TINKER_PHP: PHP 解释器路径（默认在 PATH 中查找）
    TINKER_LARAVEL_ROOT: 自定义 Laravel 根目录
    TINKER_SIGINT_MODE: SIGINT 处理模式

用法:
    uvx laravel-tinker-mcp
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
