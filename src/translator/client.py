"""Client for a translator worker reachable over RabbitMQ JSON-RPC."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection
from aio_pika.patterns import JsonRPC

from common.config import settings
from translator.registry import ModelRegistry
from translator.schemas import TranslationOptions, TranslationResult

logger = logging.getLogger(__name__)


class WorkerTerminated(ConnectionError):
    """The connection to the worker closed while calls were pending."""


class TranslationWorkerClient:
    """
    Calls ``import_engine``, ``load_model`` and ``translate`` on a worker.

    Every call is raced against loss of the broker connection, so a worker
    that goes away rejects pending calls instead of leaving them hanging.

    Example:
        ```python
        async with TranslationWorkerClient() as client:
            await client.import_engine("translator.mock_engine")
            status = await client.load_model("de", "en", registry)
            results = await client.translate("de", "en", ["Hallo Welt."])
        ```
    """

    def __init__(
        self,
        rabbitmq_url: Optional[str] = None,
        call_timeout: Optional[float] = None,
    ):
        self.rabbitmq_url = rabbitmq_url or settings.rabbitmq_url
        self.call_timeout = call_timeout or settings.rpc_call_timeout
        self.connection: Optional[AbstractConnection] = None
        self.channel: Optional[AbstractChannel] = None
        self.rpc: Optional[JsonRPC] = None
        self._terminated: Optional[asyncio.Future] = None

    @property
    def connected(self) -> bool:
        return self.connection is not None and not self.connection.is_closed

    async def connect(self) -> None:
        if self.connected:
            return
        loop = asyncio.get_running_loop()
        self._terminated = loop.create_future()
        self.connection = await aio_pika.connect(self.rabbitmq_url)
        self.connection.close_callbacks.add(self._on_connection_closed)
        self.channel = await self.connection.channel()
        self.rpc = await JsonRPC.create(self.channel)
        logger.info("🔌 Connected to translator worker")

    def _on_connection_closed(self, sender: Any, exc: Optional[BaseException] = None) -> None:
        if self._terminated is not None and not self._terminated.done():
            self._terminated.set_exception(
                WorkerTerminated(f"Connection to translator worker closed: {exc}")
            )
            # Mark retrieved so an unused failure does not warn on collection
            self._terminated.exception()

    async def _call(self, method_name: str, **kwargs: Any) -> Any:
        if not self.connected or self.rpc is None:
            raise WorkerTerminated("Not connected to translator worker")

        call = asyncio.ensure_future(self.rpc.call(method_name, kwargs=kwargs))
        done, _ = await asyncio.wait(
            {call, self._terminated},
            timeout=self.call_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if call in done:
            return call.result()

        call.cancel()
        if self._terminated in done:
            raise self._terminated.exception()
        raise asyncio.TimeoutError(
            f"{method_name} did not answer within {self.call_timeout}s"
        )

    async def import_engine(
        self, code_location: str, binary_location: Optional[str] = None
    ) -> None:
        await self._call(
            "import_engine", code_location=code_location, binary_location=binary_location
        )

    async def load_model(
        self,
        source_language: str,
        target_language: str,
        registry: Union[ModelRegistry, Dict[str, Any]],
    ) -> str:
        if isinstance(registry, ModelRegistry):
            registry = registry.model_dump(by_alias=True, exclude_none=True)
        return await self._call(
            "load_model",
            source_language=source_language,
            target_language=target_language,
            registry=registry,
        )

    async def translate(
        self,
        source_language: str,
        target_language: str,
        texts: Sequence[str],
        options: Optional[Sequence[TranslationOptions]] = None,
    ) -> Optional[List[TranslationResult]]:
        """
        Translate texts on the worker.

        ``options`` defaults to plain-text options for every text.
        """
        if options is None:
            options = [TranslationOptions() for _ in texts]
        results = await self._call(
            "translate",
            source_language=source_language,
            target_language=target_language,
            texts=list(texts),
            options=[o.model_dump(by_alias=True) for o in options],
        )
        if results is None:
            return None
        return [TranslationResult.model_validate(r) for r in results]

    async def terminate(self) -> None:
        """Close the RPC channel and the connection."""
        if self.rpc is not None:
            await self.rpc.close()
            self.rpc = None
        if self.connection is not None and not self.connection.is_closed:
            await self.connection.close()
        self.connection = None
        self.channel = None

    async def __aenter__(self) -> "TranslationWorkerClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.terminate()
