"""Tests for the translator worker."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from translator.session import MODEL_LOADED, MODEL_LOADING_FAILED, TranslationSession
from translator.worker import (
    RPC_METHODS,
    SessionRPCHandlers,
    import_configured_engine,
    register_session_methods,
    serve_translation_session,
)


@pytest.fixture
def session(test_settings, in_memory_loader, fake_runtime):
    session = TranslationSession(config=test_settings, asset_loader=in_memory_loader)
    session.runtime = fake_runtime
    return session


@pytest.fixture
def handlers(session):
    return SessionRPCHandlers(session)


def make_shutdown_manager(shutdown_checks):
    """ShutdownManager mock answering is_shutdown_requested() from a list."""
    manager = MagicMock()
    manager.is_shutdown_requested.side_effect = shutdown_checks
    manager.wait_for_shutdown = AsyncMock(return_value=True)
    manager.execute_cleanup = AsyncMock()
    return manager


def make_connection(channel):
    connection = MagicMock()
    connection.is_closed = False
    connection.channel = AsyncMock(return_value=channel)
    connection.close = AsyncMock()
    return connection


@pytest.mark.unit
class TestSessionRPCHandlers:
    @pytest.mark.asyncio
    async def test_load_model_returns_status(self, handlers, sample_registry):
        status = await handlers.load_model(
            source_language="de", target_language="en", registry=sample_registry
        )

        assert status == MODEL_LOADED

    @pytest.mark.asyncio
    async def test_load_model_failure_status(self, handlers, sample_registry):
        status = await handlers.load_model(
            source_language="xx", target_language="en", registry=sample_registry
        )

        assert status == MODEL_LOADING_FAILED

    @pytest.mark.asyncio
    async def test_translate_returns_plain_dicts(self, handlers, sample_registry):
        await handlers.load_model(
            source_language="de", target_language="en", registry=sample_registry
        )

        results = await handlers.translate(
            source_language="de",
            target_language="en",
            texts=["Hallo."],
            options=[{"isHtml": False, "isQualityScores": False}],
        )

        assert results == [
            {
                "translated_text": "<deen>Hallo.",
                "source_text": "Hallo.",
                "translated_sentences": ["<deen>Hallo."],
                "source_sentences": ["Hallo."],
            }
        ]

    @pytest.mark.asyncio
    async def test_translate_failure_is_none(self, handlers):
        results = await handlers.translate(
            source_language="de", target_language="en", texts=["Hallo."], options=[{}]
        )

        assert results is None

    @pytest.mark.asyncio
    async def test_import_engine_delegates(self):
        session = MagicMock()
        session.import_engine = AsyncMock()

        await SessionRPCHandlers(session).import_engine(
            code_location="translator.mock_engine", binary_location="engine.bin"
        )

        session.import_engine.assert_awaited_once_with("translator.mock_engine", "engine.bin")


@pytest.mark.unit
class TestRegistration:
    @pytest.mark.asyncio
    async def test_registers_every_method(self, handlers):
        rpc = AsyncMock()

        await register_session_methods(rpc, handlers)

        registered = [c.args[0] for c in rpc.register.await_args_list]
        assert registered == list(RPC_METHODS)
        for call in rpc.register.await_args_list:
            assert call.kwargs == {"auto_delete": True}
            assert call.args[1] == getattr(handlers, call.args[0])

    @pytest.mark.asyncio
    async def test_import_configured_engine_skipped_without_location(self, test_settings):
        session = MagicMock(is_engine_imported=False)
        session.import_engine = AsyncMock()

        with patch("translator.worker.settings", test_settings):
            await import_configured_engine(session)

        session.import_engine.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_import_configured_engine(self, test_settings):
        test_settings.engine_code_location = "translator.mock_engine"
        test_settings.engine_binary_location = "/opt/engine.bin"
        session = MagicMock(is_engine_imported=False)
        session.import_engine = AsyncMock()

        with patch("translator.worker.settings", test_settings):
            await import_configured_engine(session)

        session.import_engine.assert_awaited_once_with(
            "translator.mock_engine", "/opt/engine.bin"
        )


@pytest.mark.unit
class TestServeTranslationSession:
    @pytest.mark.asyncio
    async def test_serves_until_shutdown(
        self, session, test_settings, mock_rabbitmq_channel
    ):
        connection = make_connection(mock_rabbitmq_channel)
        rpc = AsyncMock()
        manager = make_shutdown_manager([False, True])

        with patch("translator.worker.settings", test_settings), patch(
            "translator.worker.aio_pika.connect_robust",
            AsyncMock(return_value=connection),
        ) as mock_connect, patch(
            "translator.worker.JsonRPC.create", AsyncMock(return_value=rpc)
        ):
            await serve_translation_session(session, manager)

        mock_connect.assert_awaited_once_with(test_settings.rabbitmq_url)
        mock_rabbitmq_channel.set_qos.assert_awaited_once_with(prefetch_count=1)
        assert rpc.register.await_count == len(RPC_METHODS)
        rpc.close.assert_awaited_once()
        connection.close.assert_awaited_once()
        manager.register_cleanup_callback.assert_called_once_with(session.close)
        manager.execute_cleanup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reconnects_after_failure(
        self, session, test_settings, mock_rabbitmq_channel
    ):
        connection = make_connection(mock_rabbitmq_channel)
        manager = make_shutdown_manager([False, False, False, True])

        with patch("translator.worker.settings", test_settings), patch(
            "translator.worker.aio_pika.connect_robust",
            AsyncMock(side_effect=[ConnectionError("refused"), connection]),
        ) as mock_connect, patch(
            "translator.worker.JsonRPC.create", AsyncMock(return_value=AsyncMock())
        ), patch(
            "translator.worker.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await serve_translation_session(session, manager)

        assert mock_connect.await_count == 2
        mock_sleep.assert_awaited_once_with(test_settings.rabbitmq_reconnect_initial_delay)
        manager.execute_cleanup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lost_connection_triggers_reconnect(
        self, session, test_settings, mock_rabbitmq_channel
    ):
        lost = make_connection(mock_rabbitmq_channel)
        healthy = make_connection(mock_rabbitmq_channel)
        manager = make_shutdown_manager([False, False, False, True])
        # The first connection is found closed on its first liveness check
        lost.is_closed = True
        manager.wait_for_shutdown = AsyncMock(side_effect=[False, True])

        with patch("translator.worker.settings", test_settings), patch(
            "translator.worker.aio_pika.connect_robust",
            AsyncMock(side_effect=[lost, healthy]),
        ) as mock_connect, patch(
            "translator.worker.JsonRPC.create", AsyncMock(return_value=AsyncMock())
        ), patch("translator.worker.asyncio.sleep", new_callable=AsyncMock):
            await serve_translation_session(session, manager)

        assert mock_connect.await_count == 2
        lost.close.assert_not_awaited()
        healthy.close.assert_awaited_once()
