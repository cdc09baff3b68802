"""Laravel Tinker MCP 入口点。

支持: python -m tinker_mcp
"""

from .app import main

if __name__ == "__main__":
    main()
