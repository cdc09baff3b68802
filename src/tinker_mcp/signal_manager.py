"""信号管理模块。

实现信号隔离策略，将 OS 信号转换为运行级别的操作：
- SIGINT: 协作式取消活动的 tinker 运行（置位 CancellationToken，
  PHP 进程在一个轮询间隔内被终止，工具仍返回已收集的输出）
- SIGTERM: 优雅退出（强制取消所有运行 + 清理 + 退出）

支持的配置：
- TINKER_SIGINT_MODE: cancel | exit | cancel_then_exit
- TINKER_SIGINT_DOUBLE_TAP_WINDOW: 双击退出窗口时间
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from typing import Callable, Optional

from .config import SigintMode, get_config
from .orchestrator import RequestRegistry

__all__ = ["SignalManager", "SigintMode"]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


class SignalManager:
    """信号管理器。

    Example:
        ```python
        registry = RequestRegistry()
        signal_manager = SignalManager(registry)

        await signal_manager.start()
        try:
            await server.run(...)
        finally:
            await signal_manager.stop()
        ```

    Attributes:
        registry: 活动运行注册表
        sigint_mode: SIGINT 处理模式
        double_tap_window: 双击退出窗口时间（秒）
    """

    def __init__(
        self,
        registry: RequestRegistry,
        sigint_mode: Optional[SigintMode] = None,
        double_tap_window: Optional[float] = None,
        on_shutdown: Optional[Callable[[], None]] = None,
    ) -> None:
        """初始化信号管理器。

        Args:
            registry: 活动运行注册表
            sigint_mode: SIGINT 处理模式（默认从配置读取）
            double_tap_window: 双击退出窗口时间（默认从配置读取）
            on_shutdown: 关闭时的回调函数
        """
        self.registry = registry

        config = get_config()
        self.sigint_mode = sigint_mode if sigint_mode is not None else config.sigint_mode
        self.double_tap_window = (
            double_tap_window if double_tap_window is not None else config.sigint_double_tap_window
        )
        self._on_shutdown = on_shutdown

        self._last_sigint_time: float = 0.0
        self._shutdown_requested: bool = False
        self._force_exit: bool = False
        self._shutdown_event: Optional[asyncio.Event] = None
        self._original_sigint_handler: Optional[signal.Handlers] = None
        self._running: bool = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_shutdown_requested(self) -> bool:
        """是否已请求关闭。"""
        return self._shutdown_requested

    @property
    def is_force_exit(self) -> bool:
        """是否请求强制退出（双击 SIGINT）。"""
        return self._force_exit

    async def start(self) -> None:
        """安装 SIGINT / SIGTERM 处理器。必须在事件循环中调用。"""
        if self._running:
            logger.warning("SignalManager already running")
            return

        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        self._running = True

        if not IS_WINDOWS:
            self._loop.add_signal_handler(signal.SIGINT, self._handle_sigint)
            self._loop.add_signal_handler(signal.SIGTERM, self._handle_sigterm)
            logger.debug(
                f"Signal handlers installed (mode={self.sigint_mode.value}, "
                f"double_tap_window={self.double_tap_window}s)"
            )
        else:
            # Windows 的事件循环不支持 add_signal_handler
            self._original_sigint_handler = signal.signal(
                signal.SIGINT,
                lambda sig, frame: self._loop.call_soon_threadsafe(self._handle_sigint),
            )
            logger.debug(f"SIGINT handler installed on Windows (mode={self.sigint_mode.value})")

    async def stop(self) -> None:
        """移除信号处理器。"""
        if not self._running:
            return
        self._running = False

        if not IS_WINDOWS and self._loop:
            try:
                self._loop.remove_signal_handler(signal.SIGINT)
                self._loop.remove_signal_handler(signal.SIGTERM)
            except Exception as e:
                logger.debug(f"Error removing signal handlers: {e}")
        elif IS_WINDOWS and self._original_sigint_handler is not None:
            try:
                signal.signal(signal.SIGINT, self._original_sigint_handler)
            except Exception as e:
                logger.debug(f"Error restoring SIGINT handler: {e}")

        logger.debug("Signal handlers removed")

    async def wait_for_shutdown(self) -> None:
        """等待关闭信号（SIGTERM 或满足退出条件的 SIGINT）。"""
        if self._shutdown_event:
            await self._shutdown_event.wait()

    def _cancel_runs(self, force: bool = False) -> int:
        """取消所有活动运行，返回发起取消的数量。"""
        if not self.registry.has_active_requests():
            return 0
        return self.registry.cancel_all(force=force)

    def _handle_sigint(self) -> None:
        """处理 SIGINT 信号。

        - 有活动运行：取消运行（EXIT 模式除外）
        - 没有活动运行或模式为 EXIT：请求关闭
        - 双击窗口内再次收到 SIGINT：强制退出
        """
        now = time.time()
        since_last = now - self._last_sigint_time
        self._last_sigint_time = now

        if since_last < self.double_tap_window and self._shutdown_requested:
            logger.warning("Double SIGINT detected, forcing shutdown")
            self._force_shutdown()
            return

        if self.sigint_mode == SigintMode.EXIT:
            logger.info("SIGINT received (mode=exit), requesting shutdown")
            self._request_shutdown()
            return

        count = self._cancel_runs()
        if count == 0:
            logger.info(
                f"SIGINT received (mode={self.sigint_mode.value}), "
                "no active runs, requesting shutdown"
            )
            self._request_shutdown()
            return

        if self.sigint_mode == SigintMode.CANCEL_THEN_EXIT:
            logger.info(
                f"SIGINT received (mode=cancel_then_exit), cancelled {count} run(s). "
                f"Press Ctrl+C again within {self.double_tap_window}s to exit."
            )
            # 标记为已请求关闭，但不触发实际关闭
            self._shutdown_requested = True
        else:
            logger.info(f"SIGINT received (mode=cancel), cancelled {count} run(s)")

    def _handle_sigterm(self) -> None:
        """处理 SIGTERM：强制取消所有运行并请求关闭。"""
        logger.info("SIGTERM received, initiating graceful shutdown")
        count = self._cancel_runs(force=True)
        if count:
            logger.info(f"Cancelled {count} active run(s) for shutdown")
        self._request_shutdown()

    def _request_shutdown(self) -> None:
        self._shutdown_requested = True
        self._fire_shutdown()

    def _force_shutdown(self) -> None:
        """强制退出。

        实际的进程退出由 run_server() 在清理完成后执行。
        """
        self._force_exit = True
        self._shutdown_requested = True
        count = self._cancel_runs(force=True)
        if count:
            logger.info(f"Force shutdown: cancelled {count} run(s)")
        self._fire_shutdown()

    def _fire_shutdown(self) -> None:
        if self._on_shutdown:
            try:
                self._on_shutdown()
            except Exception as e:
                logger.warning(f"Error in shutdown callback: {e}")

        if self._shutdown_event and self._loop:
            self._loop.call_soon_threadsafe(self._shutdown_event.set)

    def request_graceful_shutdown(self) -> None:
        """程序化请求优雅退出。"""
        logger.info("Programmatic shutdown requested")
        self._cancel_runs(force=True)
        self._request_shutdown()
