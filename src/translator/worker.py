"""Translator worker exposing a TranslationSession over RabbitMQ JSON-RPC."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import aio_pika
from aio_pika.patterns import JsonRPC

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.config import settings  # noqa: E402
from common.logging_config import setup_service_logging  # noqa: E402
from common.shutdown_manager import ShutdownManager  # noqa: E402
from translator.session import TranslationSession  # noqa: E402

# Named explicitly so the logger stays under "translator" when run as __main__
logger = logging.getLogger("translator.worker")

RPC_METHODS = ("import_engine", "load_model", "translate")
CONNECTION_CHECK_INTERVAL = 5.0  # Seconds between broker liveness checks


class SessionRPCHandlers:
    """
    JSON-facing wrappers around one TranslationSession.

    RPC payloads are keyword arguments; results must be JSON-serializable.
    """

    def __init__(self, session: TranslationSession):
        self.session = session

    async def import_engine(
        self, *, code_location: str, binary_location: Optional[str] = None
    ) -> None:
        logger.info(f"📥 import_engine({code_location})")
        await self.session.import_engine(code_location, binary_location)

    async def load_model(
        self,
        *,
        source_language: str,
        target_language: str,
        registry: Dict[str, Any],
    ) -> str:
        logger.info(f"📥 load_model({source_language}, {target_language})")
        return await self.session.load_model(source_language, target_language, registry)

    async def translate(
        self,
        *,
        source_language: str,
        target_language: str,
        texts: List[str],
        options: List[Dict[str, Any]],
    ) -> Optional[List[Dict[str, Any]]]:
        logger.info(
            f"📥 translate({source_language}, {target_language}, {len(texts)} texts)"
        )
        results = await self.session.translate(
            source_language, target_language, texts, options
        )
        if results is None:
            return None
        return [result.model_dump() for result in results]


async def register_session_methods(rpc: JsonRPC, handlers: SessionRPCHandlers) -> None:
    for method_name in RPC_METHODS:
        await rpc.register(method_name, getattr(handlers, method_name), auto_delete=True)
        logger.info(f"📋 Registered RPC method: {method_name}")


async def import_configured_engine(session: TranslationSession) -> None:
    """Import the engine named in settings, if any, before serving calls."""
    if not settings.engine_code_location or session.is_engine_imported:
        return
    logger.info(f"🔧 Importing engine from {settings.engine_code_location}")
    await session.import_engine(
        settings.engine_code_location, settings.engine_binary_location
    )


async def serve_translation_session(
    session: Optional[TranslationSession] = None,
    shutdown_manager: Optional[ShutdownManager] = None,
) -> None:
    """Serve RPC calls against one session, reconnecting to RabbitMQ on failure."""
    session = session or TranslationSession()
    shutdown_manager = shutdown_manager or ShutdownManager(
        "translator", shutdown_timeout=settings.shutdown_timeout
    )
    handlers = SessionRPCHandlers(session)
    reconnect_delay = settings.rabbitmq_reconnect_initial_delay
    consecutive_failures = 0
    max_consecutive_failures = 3
    connection: Optional[aio_pika.abc.AbstractConnection] = None
    rpc: Optional[JsonRPC] = None

    shutdown_manager.register_cleanup_callback(session.close)

    await import_configured_engine(session)

    while not shutdown_manager.is_shutdown_requested():
        try:
            logger.info("🔌 Connecting to RabbitMQ...")
            connection = await aio_pika.connect_robust(settings.rabbitmq_url)
            connection.reconnect_callbacks.add(
                lambda conn: logger.info(
                    "🔄 Translator worker reconnected to RabbitMQ successfully!"
                )
            )

            channel = await connection.channel()
            # One call at a time per worker
            await channel.set_qos(prefetch_count=1)

            rpc = await JsonRPC.create(channel)
            await register_session_methods(rpc, handlers)

            consecutive_failures = 0
            reconnect_delay = settings.rabbitmq_reconnect_initial_delay

            logger.info("🎧 Serving translation session RPC calls...")
            logger.info("=" * 50)

            while not await shutdown_manager.wait_for_shutdown(
                timeout=CONNECTION_CHECK_INTERVAL
            ):
                if connection.is_closed:
                    logger.warning("RabbitMQ connection lost, reconnecting...")
                    raise ConnectionError("RabbitMQ connection closed")

            logger.info("🛑 Shutdown requested, stopping RPC service...")

        except Exception as e:
            consecutive_failures += 1
            logger.error(
                f"❌ Error in translator (failure #{consecutive_failures}): {e}"
            )

            if not shutdown_manager.is_shutdown_requested():
                if consecutive_failures >= max_consecutive_failures:
                    reconnect_delay = min(
                        reconnect_delay * 2, settings.rabbitmq_reconnect_max_delay
                    )
                    logger.error(
                        f"❌ Too many consecutive failures ({consecutive_failures}), "
                        f"increasing reconnect delay to {reconnect_delay}s"
                    )
                    consecutive_failures = 0

                logger.warning(f"Attempting to reconnect in {reconnect_delay}s...")
                await asyncio.sleep(reconnect_delay)
        finally:
            if rpc is not None:
                try:
                    await rpc.close()
                except Exception as e:
                    logger.warning(f"Failed to close RPC channel: {e}")
                rpc = None
            if connection is not None and not connection.is_closed:
                logger.info("🔌 Closing RabbitMQ connection...")
                await connection.close()
            connection = None

    await shutdown_manager.execute_cleanup()


async def main() -> None:
    """Main entry point for the translator worker."""
    setup_service_logging("translator", enable_file_logging=True)
    logger.info("🚀 Starting Translation Session Worker")
    logger.info(
        f"🧭 Pivot routing: {'enabled' if settings.pivot_routing_enabled else 'disabled'} "
        f"(pivot language '{settings.pivot_language}')"
    )
    logger.info("=" * 60)

    shutdown_manager = ShutdownManager(
        "translator", shutdown_timeout=settings.shutdown_timeout
    )
    await shutdown_manager.setup_signal_handlers()
    await serve_translation_session(shutdown_manager=shutdown_manager)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
