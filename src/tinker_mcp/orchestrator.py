"""请求编排与管理模块。

提供请求级别的隔离和管理，包括：
- RequestRegistry: 活动 tinker 运行的登记和管理
- 协作式取消：取消时先置位 CancellationToken，由 ProcessSupervisor
  在下一个轮询间隔内终止进程并返回 CANCELLED 结果
- 强制取消：同时取消关联的 asyncio Task（用于关闭流程）
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from .runtime.types import CancellationToken

__all__ = ["RequestRegistry", "RequestInfo"]

logger = logging.getLogger(__name__)


@dataclass
class RequestInfo:
    """活动请求的信息。

    Attributes:
        request_id: 唯一请求标识符
        workspace: 运行所属的 workspace
        task: 关联的 asyncio Task
        token: 该运行的取消令牌
        created_at: 创建时间
    """

    request_id: str
    workspace: str
    task: asyncio.Task
    token: CancellationToken = field(default_factory=CancellationToken)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def active(self) -> bool:
        return not self.task.done()

    def __repr__(self) -> str:
        elapsed = (datetime.now() - self.created_at).total_seconds()
        if self.task.done():
            status = "done"
        elif self.token.is_cancelled:
            status = "cancelling"
        else:
            status = "running"
        return (
            f"RequestInfo(id={self.request_id[:8]}..., "
            f"workspace={self.workspace}, "
            f"status={status}, "
            f"elapsed={elapsed:.1f}s)"
        )


class RequestRegistry:
    """活动请求的注册表。

    管理所有正在执行的 tinker 运行，提供：
    - 请求登记和注销
    - 单个/批量取消
    - 活动状态查询

    线程安全：所有操作都是同步的，由调用方保证在同一个事件循环中调用。
    CancellationToken 本身可以跨线程置位。

    Example:
        ```python
        registry = RequestRegistry()

        task = asyncio.current_task()
        token = registry.register("req-1", "/srv/app", task)

        # 取消所有运行（协作式）
        registry.cancel_all()

        registry.unregister("req-1")
        ```
    """

    def __init__(self) -> None:
        self._requests: Dict[str, RequestInfo] = {}
        self._on_empty_callbacks: list[Callable[[], None]] = []

    @staticmethod
    def generate_request_id() -> str:
        """生成唯一的请求 ID（UUID4）。"""
        return str(uuid.uuid4())

    def register(
        self,
        request_id: str,
        workspace: str,
        task: asyncio.Task,
        token: Optional[CancellationToken] = None,
    ) -> CancellationToken:
        """登记新请求。

        Args:
            request_id: 唯一请求标识符
            workspace: 运行所属的 workspace
            task: 关联的 asyncio Task
            token: 取消令牌（默认新建）

        Returns:
            该请求的取消令牌

        Raises:
            ValueError: 如果 request_id 已存在
        """
        if request_id in self._requests:
            raise ValueError(f"Request {request_id} already registered")

        info = RequestInfo(
            request_id=request_id,
            workspace=workspace,
            task=task,
            token=token if token is not None else CancellationToken(),
        )
        self._requests[request_id] = info
        logger.debug(f"Registered request: {info}")
        return info.token

    def unregister(self, request_id: str) -> bool:
        """注销请求。

        Returns:
            是否成功注销（请求存在则返回 True）
        """
        if request_id in self._requests:
            info = self._requests.pop(request_id)
            logger.debug(f"Unregistered request: {info}")

            # 如果注册表变空，触发回调
            if not self._requests and self._on_empty_callbacks:
                for callback in self._on_empty_callbacks:
                    try:
                        callback()
                    except Exception as e:
                        logger.warning(f"Error in on_empty callback: {e}")

            return True
        return False

    def get(self, request_id: str) -> Optional[RequestInfo]:
        """获取请求信息，不存在则返回 None。"""
        return self._requests.get(request_id)

    def _cancel_info(self, info: RequestInfo, force: bool) -> bool:
        if info.task.done():
            return False
        info.token.cancel()
        if force:
            info.task.cancel()
        logger.info(f"Cancelled request: {info} (force={force})")
        return True

    def cancel(self, request_id: str, force: bool = False) -> bool:
        """取消指定请求。

        Args:
            request_id: 请求标识符
            force: 同时取消关联的 Task（否则仅置位令牌）

        Returns:
            是否成功发起取消（请求存在且未完成则返回 True）
        """
        info = self._requests.get(request_id)
        if info is None:
            return False
        return self._cancel_info(info, force)

    def cancel_all(self, force: bool = False) -> int:
        """取消所有活动请求。

        Returns:
            成功发起取消的请求数量
        """
        cancelled = 0
        for info in list(self._requests.values()):
            if self._cancel_info(info, force):
                cancelled += 1

        if cancelled > 0:
            logger.info(f"Cancelled {cancelled} active request(s)")

        return cancelled

    def has_active_requests(self) -> bool:
        """检查是否有未完成的请求。"""
        return any(info.active for info in self._requests.values())

    @property
    def active_count(self) -> int:
        """未完成的请求数量。"""
        return sum(1 for info in self._requests.values() if info.active)

    def list_active(self) -> list[RequestInfo]:
        """列出所有活动请求（按创建时间排序）。"""
        active = [info for info in self._requests.values() if info.active]
        return sorted(active, key=lambda x: x.created_at)

    def add_on_empty_callback(self, callback: Callable[[], None]) -> None:
        """添加注册表变空时的回调。"""
        self._on_empty_callbacks.append(callback)

    def remove_on_empty_callback(self, callback: Callable[[], None]) -> None:
        """移除注册表变空时的回调。"""
        if callback in self._on_empty_callbacks:
            self._on_empty_callbacks.remove(callback)

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._requests
