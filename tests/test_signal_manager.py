"""SignalManager 模块测试。

测试信号管理器的基本功能：
- SIGINT 协作式取消活动运行
- SIGTERM 强制取消并关闭
- 双击退出
"""

from __future__ import annotations

import asyncio
import os
import sys
from unittest import mock

import pytest

from tinker_mcp.config import SigintMode, reload_config
from tinker_mcp.orchestrator import RequestRegistry
from tinker_mcp.signal_manager import SignalManager


def make_task(done: bool = False) -> mock.MagicMock:
    task = mock.MagicMock(spec=asyncio.Task)
    task.done.return_value = done
    return task


def make_manager(registry: RequestRegistry, **kwargs) -> SignalManager:
    manager = SignalManager(registry, **kwargs)
    manager._shutdown_event = asyncio.Event()
    manager._loop = mock.MagicMock()
    return manager


class TestSigintMode:
    """SigintMode 枚举测试。"""

    def test_from_string_valid(self):
        assert SigintMode.from_string("cancel") == SigintMode.CANCEL
        assert SigintMode.from_string("exit") == SigintMode.EXIT
        assert SigintMode.from_string("cancel_then_exit") == SigintMode.CANCEL_THEN_EXIT

    def test_from_string_case_insensitive(self):
        assert SigintMode.from_string(" Cancel_Then_Exit ") == SigintMode.CANCEL_THEN_EXIT

    def test_from_string_invalid(self):
        """无效字符串返回默认值 CANCEL。"""
        assert SigintMode.from_string("invalid") == SigintMode.CANCEL


class TestSignalManagerInit:
    """SignalManager 初始化测试。"""

    def test_init_from_config(self):
        env = {"TINKER_SIGINT_MODE": "exit", "TINKER_SIGINT_DOUBLE_TAP_WINDOW": "2.5"}
        with mock.patch.dict(os.environ, env, clear=False):
            reload_config()
            manager = SignalManager(RequestRegistry())
            assert manager.sigint_mode == SigintMode.EXIT
            assert manager.double_tap_window == 2.5
        reload_config()

    def test_init_with_custom_values(self):
        manager = SignalManager(
            RequestRegistry(),
            sigint_mode=SigintMode.CANCEL_THEN_EXIT,
            double_tap_window=2.0,
        )
        assert manager.sigint_mode == SigintMode.CANCEL_THEN_EXIT
        assert manager.double_tap_window == 2.0


class TestSigintCancel:
    """CANCEL 模式测试。"""

    def test_cancels_runs_cooperatively(self):
        """有活动运行时只置位令牌，不取消 Task，也不关闭。"""
        registry = RequestRegistry()
        task = make_task()
        token = registry.register("req-1", "/srv/app", task)
        manager = make_manager(registry, sigint_mode=SigintMode.CANCEL)

        manager._handle_sigint()

        assert token.is_cancelled
        task.cancel.assert_not_called()
        assert manager.is_shutdown_requested is False

    def test_no_active_runs_shuts_down(self):
        manager = make_manager(RequestRegistry(), sigint_mode=SigintMode.CANCEL)
        manager._handle_sigint()
        assert manager.is_shutdown_requested is True
        manager._loop.call_soon_threadsafe.assert_called_once()


class TestSigintExit:
    """EXIT 模式测试。"""

    def test_always_shuts_down(self):
        registry = RequestRegistry()
        token = registry.register("req-1", "/srv/app", make_task())
        manager = make_manager(registry, sigint_mode=SigintMode.EXIT)

        manager._handle_sigint()

        assert manager.is_shutdown_requested is True
        assert not token.is_cancelled


class TestSigintCancelThenExit:
    """CANCEL_THEN_EXIT 模式测试。"""

    def test_first_cancels_second_forces_exit(self):
        registry = RequestRegistry()
        task = make_task()
        token = registry.register("req-1", "/srv/app", task)
        manager = make_manager(
            registry,
            sigint_mode=SigintMode.CANCEL_THEN_EXIT,
            double_tap_window=5.0,
        )

        manager._handle_sigint()
        assert token.is_cancelled
        assert manager.is_shutdown_requested is True
        assert manager.is_force_exit is False
        manager._loop.call_soon_threadsafe.assert_not_called()

        manager._handle_sigint()
        assert manager.is_force_exit is True
        task.cancel.assert_called_once()
        manager._loop.call_soon_threadsafe.assert_called_once()

    def test_no_active_runs_shuts_down(self):
        manager = make_manager(RequestRegistry(), sigint_mode=SigintMode.CANCEL_THEN_EXIT)
        manager._handle_sigint()
        assert manager.is_shutdown_requested is True


class TestSigterm:
    """SIGTERM 测试。"""

    def test_force_cancels_and_shuts_down(self):
        registry = RequestRegistry()
        task = make_task()
        token = registry.register("req-1", "/srv/app", task)
        manager = make_manager(registry)

        manager._handle_sigterm()

        assert token.is_cancelled
        task.cancel.assert_called_once()
        assert manager.is_shutdown_requested is True


class TestCallbacks:
    """回调测试。"""

    def test_on_shutdown_callback(self):
        callback = mock.MagicMock()
        manager = make_manager(RequestRegistry(), sigint_mode=SigintMode.EXIT, on_shutdown=callback)
        manager._handle_sigint()
        callback.assert_called_once()

    def test_callback_error_does_not_block_shutdown(self):
        callback = mock.MagicMock(side_effect=RuntimeError("boom"))
        manager = make_manager(RequestRegistry(), sigint_mode=SigintMode.EXIT, on_shutdown=callback)
        manager._handle_sigint()
        manager._loop.call_soon_threadsafe.assert_called_once()

    def test_request_graceful_shutdown(self):
        registry = RequestRegistry()
        task = make_task()
        registry.register("req-1", "/srv/app", task)
        manager = make_manager(registry)

        manager.request_graceful_shutdown()

        task.cancel.assert_called_once()
        assert manager.is_shutdown_requested is True


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal handling")
class TestStartStop:
    """启动/停止测试（仅 POSIX）。"""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        manager = SignalManager(RequestRegistry(), sigint_mode=SigintMode.CANCEL)

        await manager.start()
        assert manager._running is True
        assert manager._loop is not None

        await manager.stop()
        assert manager._running is False

    @pytest.mark.asyncio
    async def test_wait_for_shutdown(self):
        manager = SignalManager(RequestRegistry(), sigint_mode=SigintMode.EXIT)
        await manager.start()
        try:
            manager._handle_sigint()
            await asyncio.wait_for(manager.wait_for_shutdown(), timeout=1.0)
        finally:
            await manager.stop()
