"""项目设置（配置提供者）。

每个 workspace 持有一份 ProjectSettings：
- interpreter_path: PHP 解释器路径
- laravel_root: 用户自定义的 Laravel 根目录（空 = 自动发现）
- options: 透传给 bootstrap 脚本的选项

解析成功后，RuntimeResolver 会把归一化的根目录写回 resolved_root / dependency_root。
设置只保存在内存中，不做持久化。
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from .config import Config

__all__ = ["SettingsProvider", "ProjectSettings", "SettingsRegistry"]

logger = logging.getLogger(__name__)


class SettingsProvider(Protocol):
    """RuntimeResolver 依赖的配置提供者接口。"""

    def get_interpreter_path(self) -> str | None: ...

    def get_custom_root(self) -> str | None: ...

    def get_persisted_options(self) -> dict[str, Any]: ...

    def persist_resolved_roots(self, root: Path, dependency_root: Path) -> None: ...


@dataclass
class ProjectSettings:
    """单个项目的设置状态。

    Attributes:
        interpreter_path: PHP 解释器路径（None = 未配置）
        laravel_root: 自定义 Laravel 根目录（空字符串 = 未设置）
        options: bootstrap 选项
        resolved_root: 最近一次解析得到的项目根目录
        dependency_root: 最近一次解析得到的依赖根目录
    """

    interpreter_path: str | None = None
    laravel_root: str = ""
    options: dict[str, Any] = field(default_factory=dict)
    resolved_root: str = ""
    dependency_root: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def from_config(cls, config: Config) -> "ProjectSettings":
        """从全局配置创建项目设置。"""
        return cls(
            interpreter_path=config.interpreter_path,
            laravel_root=config.laravel_root or "",
            options=dict(config.options),
        )

    def get_interpreter_path(self) -> str | None:
        return self.interpreter_path or None

    def get_custom_root(self) -> str | None:
        return self.laravel_root.strip() or None

    def get_persisted_options(self) -> dict[str, Any]:
        return copy.deepcopy(self.options)

    def persist_resolved_roots(self, root: Path, dependency_root: Path) -> None:
        with self._lock:
            self.resolved_root = str(root)
            self.dependency_root = str(dependency_root)
        logger.debug(f"Persisted resolved roots: root={root}, dependency_root={dependency_root}")


class SettingsRegistry:
    """按 workspace 管理 ProjectSettings。

    同一 workspace 的多次调用共享同一份设置，因此解析结果写回后对下一次调用可见。
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._settings: dict[str, ProjectSettings] = {}
        self._lock = threading.Lock()

    def get(self, workspace: Path) -> ProjectSettings:
        key = str(Path(workspace).expanduser().resolve())
        with self._lock:
            settings = self._settings.get(key)
            if settings is None:
                settings = ProjectSettings.from_config(self._config)
                self._settings[key] = settings
                logger.debug(f"Created settings for workspace {key}")
            return settings

    def __len__(self) -> int:
        return len(self._settings)
