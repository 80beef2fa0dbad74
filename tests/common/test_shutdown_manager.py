"""Tests for graceful shutdown manager."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from common.shutdown_manager import ShutdownManager, ShutdownState


class TestShutdownManager:
    """Test cases for ShutdownManager."""

    @pytest.fixture
    def shutdown_manager(self):
        """Create a ShutdownManager instance for testing."""
        return ShutdownManager("test_service", shutdown_timeout=5.0)

    def test_initialization(self, shutdown_manager):
        assert shutdown_manager.service_name == "test_service"
        assert shutdown_manager.shutdown_timeout == 5.0
        assert not shutdown_manager.is_shutdown_requested()
        assert shutdown_manager.get_state() == ShutdownState.NOT_STARTED

    @pytest.mark.parametrize("timeout", [0.5, 301.0])
    def test_invalid_timeout_rejected(self, timeout):
        with pytest.raises(ValueError):
            ShutdownManager("test_service", shutdown_timeout=timeout)

    @pytest.mark.asyncio
    async def test_setup_signal_handlers(self, shutdown_manager):
        """Signal handler setup does not raise."""
        await shutdown_manager.setup_signal_handlers()

    def test_request_shutdown(self, shutdown_manager):
        shutdown_manager.request_shutdown()

        assert shutdown_manager.is_shutdown_requested()
        assert shutdown_manager.get_state() == ShutdownState.INITIATED

    @pytest.mark.asyncio
    async def test_wait_for_shutdown_times_out(self, shutdown_manager):
        assert await shutdown_manager.wait_for_shutdown(timeout=0.01) is False

    @pytest.mark.asyncio
    async def test_wait_for_shutdown_returns_when_requested(self, shutdown_manager):
        asyncio.get_running_loop().call_later(0.01, shutdown_manager.request_shutdown)

        assert await shutdown_manager.wait_for_shutdown(timeout=1.0) is True

    @pytest.mark.asyncio
    async def test_cleanup_runs_in_reverse_order(self, shutdown_manager):
        order = []
        shutdown_manager.register_cleanup_callback(lambda: order.append("session"))

        async def close_connection():
            order.append("connection")

        shutdown_manager.register_cleanup_callback(close_connection)

        await shutdown_manager.execute_cleanup()

        assert order == ["connection", "session"]
        assert shutdown_manager.get_state() == ShutdownState.COMPLETED

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_cleanup(self, shutdown_manager):
        survivor = Mock()
        shutdown_manager.register_cleanup_callback(survivor)
        shutdown_manager.register_cleanup_callback(Mock(side_effect=RuntimeError("boom")))

        await shutdown_manager.execute_cleanup()

        survivor.assert_called_once()

    @pytest.mark.asyncio
    async def test_cleanup_runs_only_once(self, shutdown_manager):
        callback = AsyncMock()
        shutdown_manager.register_cleanup_callback(callback)

        await shutdown_manager.execute_cleanup()
        await shutdown_manager.execute_cleanup()

        callback.assert_awaited_once()
