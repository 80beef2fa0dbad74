"""Graceful shutdown handling for the translation worker."""

import asyncio
import logging
import signal
import sys
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ShutdownState(Enum):
    """Shutdown state tracking."""

    NOT_STARTED = "not_started"
    INITIATED = "initiated"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ShutdownManager:
    """
    Coordinates graceful shutdown of a worker that owns engine resources.

    The worker loop polls ``is_shutdown_requested()``; resources that must be
    released on exit (loaded translation models, broker connections) register
    cleanup callbacks which run in reverse registration order, so the
    translation session is torn down before the connection it was served on.

    Example:
        ```python
        shutdown_manager = ShutdownManager("translator", shutdown_timeout=30.0)
        await shutdown_manager.setup_signal_handlers()
        shutdown_manager.register_cleanup_callback(session.close)

        await shutdown_manager.wait_for_shutdown()
        await shutdown_manager.execute_cleanup()
        ```
    """

    def __init__(self, service_name: str, shutdown_timeout: float = 30.0):
        """
        Initialize the shutdown manager.

        Args:
            service_name: Name of the service (for logging)
            shutdown_timeout: Seconds allowed for an in-flight RPC call to
                finish once shutdown starts (must be between 1.0 and 300.0)

        Raises:
            ValueError: If shutdown_timeout is outside valid range
        """
        if not 1.0 <= shutdown_timeout <= 300.0:
            raise ValueError(
                f"shutdown_timeout must be between 1.0 and 300.0 seconds, got {shutdown_timeout}"
            )

        self.service_name = service_name
        self.shutdown_timeout = shutdown_timeout
        self._shutdown_event = asyncio.Event()
        self._cleanup_callbacks: List[Callable] = []
        self._state = ShutdownState.NOT_STARTED
        self._signal_received_count = 0

    async def setup_signal_handlers(self) -> None:
        """Install SIGINT/SIGTERM handlers on the running event loop."""
        loop = asyncio.get_running_loop()

        def handle_signal(signum: int) -> None:
            # First signal starts graceful shutdown, second one exits hard
            self._signal_received_count += 1
            signal_name = signal.Signals(signum).name

            if self._signal_received_count == 1:
                logger.info(
                    f"🛑 Received {signal_name}, shutting down {self.service_name}..."
                )
                self.request_shutdown()
            else:
                logger.critical(
                    f"⚠️  Received second {signal_name}, exiting without cleanup"
                )
                sys.exit(1)

        try:
            loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT)
            loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(signal.SIGINT, lambda s, f: handle_signal(s))
            signal.signal(signal.SIGTERM, lambda s, f: handle_signal(s))

    def is_shutdown_requested(self) -> bool:
        return self._shutdown_event.is_set()

    def request_shutdown(self) -> None:
        """Request shutdown programmatically (also used by signal handlers)."""
        if self._state == ShutdownState.NOT_STARTED:
            self._state = ShutdownState.INITIATED
        self._shutdown_event.set()

    def get_state(self) -> ShutdownState:
        return self._state

    def register_cleanup_callback(self, callback: Callable) -> None:
        """
        Register a cleanup callback (sync or async).

        Callbacks are executed in reverse order of registration (LIFO).
        """
        self._cleanup_callbacks.append(callback)

    async def execute_cleanup(self) -> None:
        """
        Run all cleanup callbacks once, in LIFO order.

        A failing callback is logged and the remaining callbacks still run.
        """
        if self._state == ShutdownState.COMPLETED:
            return

        self._state = ShutdownState.IN_PROGRESS
        logger.info(
            f"🧹 Executing cleanup for {self.service_name} "
            f"({len(self._cleanup_callbacks)} callbacks)..."
        )

        for callback in reversed(self._cleanup_callbacks):
            callback_name = getattr(callback, "__name__", repr(callback))
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    f"❌ Error executing cleanup callback {callback_name}: {e}",
                    exc_info=True,
                )

        self._state = ShutdownState.COMPLETED
        logger.info(f"✅ Cleanup completed for {self.service_name}")

    async def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for a shutdown request.

        Returns:
            True if shutdown was requested, False if the timeout elapsed first
        """
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def __repr__(self) -> str:
        return (
            f"ShutdownManager(service={self.service_name}, "
            f"state={self._state.value}, "
            f"callbacks={len(self._cleanup_callbacks)})"
        )
