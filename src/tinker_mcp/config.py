"""TINKER 环境变量配置管理。

环境变量:
    TINKER_PHP: PHP 解释器路径
        - 未设置时在 PATH 中查找 php
        - 设置为空字符串 = 显式不配置解释器

    TINKER_LARAVEL_ROOT: 自定义 Laravel 根目录
        - 未设置 = 从 workspace 向上查找 composer.json
        - 设置后目录下必须存在 bootstrap/app.php

    TINKER_INTERPRETER_ARGS: 额外的解释器参数（按 shell 规则分割）
        - 例: "-d memory_limit=1G -d display_errors=1"

    TINKER_OPTIONS: 传给 bootstrap 脚本的 JSON 选项
        - 默认 {}
        - 非法 JSON 或非对象时忽略

    TINKER_XDEBUG: 启动时开启 Xdebug 调试会话
        - true/1/yes = 开启
        - false/0/no = 关闭 (默认)

    TINKER_POLL_INTERVAL: 进程轮询间隔（秒）
        - 默认 0.25 秒，限制在 0.05-5 秒

    TINKER_TEMP_DIR: bootstrap 脚本的暂存目录
        - 默认系统临时目录
        - 远程解释器需要指向共享挂载目录

    TINKER_REMOTE_PREFIX: 远程解释器命令前缀（按 shell 规则分割）
        - 例: "docker compose exec -T app"

    TINKER_PATH_MAPPINGS: 本地到远程的路径映射
        - 格式: "local=remote;local2=remote2"

    TINKER_MAX_OUTPUT_CHARS: 响应中保留的最大输出字符数
        - 默认 0 = 不限制
        - 超出时保留末尾部分

    TINKER_DEBUG: 调试模式
        - true/1/yes = 开启 (MCP 响应包含统计信息)
        - false/0/no = 关闭 (默认)

    TINKER_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    TINKER_SIGINT_MODE: SIGINT (Ctrl+C) 处理模式
        - cancel = 取消活动运行（无活动运行则退出）(默认)
        - exit = 直接退出进程
        - cancel_then_exit = 先取消运行，第二次才退出

    TINKER_SIGINT_DOUBLE_TAP_WINDOW: 双击退出窗口时间（秒）
        - 默认 1.0 秒
"""

from __future__ import annotations

import json
import os
import shlex
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = ["Config", "load_config", "get_config", "reload_config", "SigintMode"]

DEFAULT_POLL_INTERVAL = 0.25


class SigintMode(Enum):
    """SIGINT 处理模式。

    - CANCEL: 只取消活动运行，不退出（如果没有活动运行则退出）
    - EXIT: 直接退出进程
    - CANCEL_THEN_EXIT: 先取消运行，第二次 SIGINT 才退出
    """

    CANCEL = "cancel"
    EXIT = "exit"
    CANCEL_THEN_EXIT = "cancel_then_exit"

    @classmethod
    def from_string(cls, value: str) -> "SigintMode":
        """从字符串解析模式。

        Args:
            value: 模式字符串 (cancel/exit/cancel_then_exit)

        Returns:
            对应的 SigintMode 枚举值，无效值返回 CANCEL
        """
        value = value.lower().strip()
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.CANCEL


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_interpreter(value: str | None) -> str | None:
    """解析解释器路径。

    未设置时在 PATH 中查找 php；显式设置为空字符串表示不配置。
    """
    if value is None:
        return shutil.which("php")
    value = value.strip()
    return value or None


def _parse_args(value: str | None) -> tuple[str, ...]:
    """按 shell 规则分割参数列表。"""
    if not value or not value.strip():
        return ()
    try:
        return tuple(shlex.split(value))
    except ValueError:
        return ()


def _parse_options(value: str | None) -> dict[str, Any]:
    """解析 JSON 选项，非法值返回空字典。"""
    if not value or not value.strip():
        return {}
    try:
        options = json.loads(value)
    except json.JSONDecodeError:
        return {}
    return options if isinstance(options, dict) else {}


def _parse_path_mappings(value: str | None) -> tuple[tuple[str, str], ...]:
    """解析路径映射。

    Args:
        value: "local=remote;local2=remote2"

    Returns:
        (local, remote) 元组，按本地路径长度降序（最长前缀优先）
    """
    if not value or not value.strip():
        return ()

    mappings = []
    for item in value.split(";"):
        local, sep, remote = item.partition("=")
        local, remote = local.strip(), remote.strip()
        if sep and local and remote:
            mappings.append((local.rstrip("/") or "/", remote.rstrip("/") or "/"))

    mappings.sort(key=lambda m: len(m[0]), reverse=True)
    return tuple(mappings)


def _parse_poll_interval(value: str | None) -> float:
    """解析轮询间隔环境变量。"""
    if not value:
        return DEFAULT_POLL_INTERVAL
    try:
        interval = float(value)
        return max(0.05, min(interval, 5.0))  # 限制在 0.05-5 秒范围
    except ValueError:
        return DEFAULT_POLL_INTERVAL


def _parse_max_output(value: str | None) -> int:
    """解析输出上限环境变量，非法值或负数返回 0。"""
    if not value:
        return 0
    try:
        return max(0, int(value))
    except ValueError:
        return 0


def _parse_sigint_mode(value: str | None) -> SigintMode:
    """解析 SIGINT 模式环境变量。"""
    if not value:
        return SigintMode.CANCEL
    return SigintMode.from_string(value)


def _parse_double_tap_window(value: str | None) -> float:
    """解析双击窗口时间环境变量。"""
    if not value:
        return 1.0
    try:
        window = float(value)
        return max(0.1, min(window, 10.0))  # 限制在 0.1-10 秒范围
    except ValueError:
        return 1.0


@dataclass
class Config:
    """TINKER 配置。

    Attributes:
        interpreter_path: PHP 解释器路径（None = 未配置）
        laravel_root: 自定义 Laravel 根目录
        interpreter_args: 额外的解释器参数
        options: bootstrap 选项
        xdebug: 是否开启 Xdebug 调试会话
        poll_interval: 进程轮询间隔（秒）
        temp_dir: bootstrap 暂存目录（None = 系统临时目录）
        remote_prefix: 远程解释器命令前缀
        path_mappings: 本地到远程的路径映射
        max_output_chars: 响应中保留的最大输出字符数（0 = 不限制）
        debug: 调试模式（响应包含统计信息）
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        sigint_mode: SIGINT 处理模式
        sigint_double_tap_window: 双击退出窗口时间（秒）
    """

    interpreter_path: str | None = None
    laravel_root: str | None = None
    interpreter_args: tuple[str, ...] = ()
    options: dict[str, Any] = field(default_factory=dict)
    xdebug: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    temp_dir: str | None = None
    remote_prefix: tuple[str, ...] = ()
    path_mappings: tuple[tuple[str, str], ...] = ()
    max_output_chars: int = 0
    debug: bool = False
    log_debug: bool = False
    log_file: str | None = None
    sigint_mode: SigintMode = SigintMode.CANCEL
    sigint_double_tap_window: float = 1.0

    def __repr__(self) -> str:
        return (
            f"Config(interpreter_path={self.interpreter_path}, "
            f"laravel_root={self.laravel_root or 'auto'}, "
            f"interpreter_args={list(self.interpreter_args)}, "
            f"xdebug={self.xdebug}, "
            f"poll_interval={self.poll_interval}, "
            f"remote_prefix={list(self.remote_prefix)}, "
            f"debug={self.debug}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"sigint_mode={self.sigint_mode.value}, "
            f"sigint_double_tap_window={self.sigint_double_tap_window})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "laravel-tinker-mcp"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"tinker_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("TINKER_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None
    temp_dir = os.environ.get("TINKER_TEMP_DIR", "").strip() or None

    return Config(
        interpreter_path=_parse_interpreter(os.environ.get("TINKER_PHP")),
        laravel_root=os.environ.get("TINKER_LARAVEL_ROOT", "").strip() or None,
        interpreter_args=_parse_args(os.environ.get("TINKER_INTERPRETER_ARGS")),
        options=_parse_options(os.environ.get("TINKER_OPTIONS")),
        xdebug=_parse_bool(os.environ.get("TINKER_XDEBUG"), default=False),
        poll_interval=_parse_poll_interval(os.environ.get("TINKER_POLL_INTERVAL")),
        temp_dir=temp_dir,
        remote_prefix=_parse_args(os.environ.get("TINKER_REMOTE_PREFIX")),
        path_mappings=_parse_path_mappings(os.environ.get("TINKER_PATH_MAPPINGS")),
        max_output_chars=_parse_max_output(os.environ.get("TINKER_MAX_OUTPUT_CHARS")),
        debug=_parse_bool(os.environ.get("TINKER_DEBUG"), default=False),
        log_debug=log_debug,
        log_file=log_file,
        sigint_mode=_parse_sigint_mode(os.environ.get("TINKER_SIGINT_MODE")),
        sigint_double_tap_window=_parse_double_tap_window(
            os.environ.get("TINKER_SIGINT_DOUBLE_TAP_WINDOW")
        ),
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
