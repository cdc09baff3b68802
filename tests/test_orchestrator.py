"""RequestRegistry 模块测试。

测试活动运行的登记、注销和取消。
"""

from __future__ import annotations

import asyncio
from unittest import mock

import pytest

from tinker_mcp.orchestrator import RequestInfo, RequestRegistry
from tinker_mcp.runtime.types import CancellationToken


def make_task(done: bool = False) -> mock.MagicMock:
    task = mock.MagicMock(spec=asyncio.Task)
    task.done.return_value = done
    return task


class TestRequestInfo:
    """RequestInfo 测试。"""

    def test_repr_running(self):
        info = RequestInfo(request_id="12345678-abcd", workspace="/srv/app", task=make_task())
        text = repr(info)
        assert "12345678" in text
        assert "workspace=/srv/app" in text
        assert "status=running" in text

    def test_repr_cancelling(self):
        info = RequestInfo(request_id="r", workspace="/srv/app", task=make_task())
        info.token.cancel()
        assert "status=cancelling" in repr(info)

    def test_repr_done(self):
        info = RequestInfo(request_id="r", workspace="", task=make_task(done=True))
        assert "status=done" in repr(info)
        assert not info.active


class TestRegistration:
    """登记与注销测试。"""

    def test_register_returns_token(self):
        registry = RequestRegistry()
        token = registry.register("req-1", "/srv/app", make_task())

        assert isinstance(token, CancellationToken)
        assert "req-1" in registry
        assert registry.get("req-1").token is token

    def test_register_with_existing_token(self):
        registry = RequestRegistry()
        token = CancellationToken()
        assert registry.register("req-1", "/srv/app", make_task(), token) is token

    def test_duplicate_id_rejected(self):
        registry = RequestRegistry()
        registry.register("req-1", "/srv/app", make_task())
        with pytest.raises(ValueError):
            registry.register("req-1", "/srv/app", make_task())

    def test_unregister(self):
        registry = RequestRegistry()
        registry.register("req-1", "/srv/app", make_task())
        assert registry.unregister("req-1") is True
        assert registry.unregister("req-1") is False
        assert len(registry) == 0

    def test_generate_request_id_unique(self):
        ids = {RequestRegistry.generate_request_id() for _ in range(100)}
        assert len(ids) == 100

    def test_on_empty_callback(self):
        registry = RequestRegistry()
        callback = mock.Mock()
        registry.add_on_empty_callback(callback)

        registry.register("req-1", "/a", make_task())
        registry.register("req-2", "/b", make_task())
        registry.unregister("req-1")
        callback.assert_not_called()
        registry.unregister("req-2")
        callback.assert_called_once()

    def test_on_empty_callback_error_swallowed(self):
        registry = RequestRegistry()
        registry.add_on_empty_callback(mock.Mock(side_effect=RuntimeError("boom")))
        registry.register("req-1", "/a", make_task())
        assert registry.unregister("req-1") is True

    def test_remove_on_empty_callback(self):
        registry = RequestRegistry()
        callback = mock.Mock()
        registry.add_on_empty_callback(callback)
        registry.remove_on_empty_callback(callback)
        registry.register("req-1", "/a", make_task())
        registry.unregister("req-1")
        callback.assert_not_called()


class TestCancellation:
    """取消测试。"""

    def test_cancel_sets_token_only(self):
        """默认协作式取消：只置位令牌，不取消 Task。"""
        registry = RequestRegistry()
        task = make_task()
        token = registry.register("req-1", "/a", task)

        assert registry.cancel("req-1") is True
        assert token.is_cancelled
        task.cancel.assert_not_called()

    def test_force_cancel_cancels_task(self):
        registry = RequestRegistry()
        task = make_task()
        token = registry.register("req-1", "/a", task)

        assert registry.cancel("req-1", force=True) is True
        assert token.is_cancelled
        task.cancel.assert_called_once()

    def test_cancel_done_request(self):
        registry = RequestRegistry()
        token = registry.register("req-1", "/a", make_task(done=True))
        assert registry.cancel("req-1") is False
        assert not token.is_cancelled

    def test_cancel_unknown(self):
        assert RequestRegistry().cancel("missing") is False

    def test_cancel_all(self):
        registry = RequestRegistry()
        token_a = registry.register("a", "/a", make_task())
        token_b = registry.register("b", "/b", make_task())
        token_c = registry.register("c", "/c", make_task(done=True))

        assert registry.cancel_all() == 2
        assert token_a.is_cancelled and token_b.is_cancelled
        assert not token_c.is_cancelled

    def test_active_queries(self):
        registry = RequestRegistry()
        assert not registry.has_active_requests()
        registry.register("a", "/a", make_task())
        registry.register("b", "/b", make_task(done=True))

        assert registry.has_active_requests()
        assert registry.active_count == 1
        assert [info.request_id for info in registry.list_active()] == ["a"]
