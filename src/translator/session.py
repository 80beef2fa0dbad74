"""
Translation session: the surface the worker exposes over RPC.

One ``TranslationSession`` lives per worker. It owns the engine runtime, the
blocking translation service created from it, and the model cache. Calls are
expected one at a time; a ``translate`` running while a ``load_model`` clears
the cache may observe the cleared cache and fail with ``ModelNotLoaded``.

Caller contract
---------------
* ``import_engine`` raises on failure; it must succeed before anything else.
* ``load_model`` never raises. It returns ``MODEL_LOADED`` or
  ``MODEL_LOADING_FAILED`` so caller UIs can display the status directly.
* ``translate`` never raises. It returns one ``TranslationResult`` per
  non-blank input text, or ``None`` when anything went wrong (the cause is
  logged).
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from common.config import Settings, settings as default_settings
from common.string_utils import count_words, truncate_for_logging
from common.utils import DateTimeUtils, gather_or_cancel
from translator.asset_loader import AssetLoader
from translator.engine import (
    EngineRuntime,
    ServiceConfig,
    TranslationEngine,
    build_model_config,
    load_engine_runtime,
)
from translator.exceptions import (
    EngineAlreadyImported,
    EngineNotImported,
    ModelConstructionFailed,
)
from translator.executor import TranslationExecutor, prepare_request
from translator.model_cache import ModelCache
from translator.pivot_router import PivotRouter
from translator.registry import ModelRegistry
from translator.schemas import TranslationOptions, TranslationResult

logger = logging.getLogger(__name__)

MODEL_LOADED = "Model successfully loaded"
MODEL_LOADING_FAILED = "Model loading failed"

OptionsInput = Union[TranslationOptions, Mapping[str, Any]]


class TranslationSession:
    """Orchestrates model loading and translation inside one worker."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        asset_loader: Optional[AssetLoader] = None,
    ):
        self.config = config or default_settings
        self.asset_loader = asset_loader or AssetLoader(self.config)
        self.router = PivotRouter(
            pivot_language=self.config.pivot_language,
            pivoting_enabled=self.config.pivot_routing_enabled,
        )
        self.runtime: Optional[EngineRuntime] = None
        self.engine: Optional[TranslationEngine] = None
        self.cache: Optional[ModelCache] = None
        self.executor: Optional[TranslationExecutor] = None
        self.created_at = DateTimeUtils.get_current_utc_datetime()

    @property
    def is_engine_imported(self) -> bool:
        return self.runtime is not None

    async def import_engine(
        self, code_location: str, binary: Union[str, bytes, None] = None
    ) -> None:
        """
        Load the engine code and wait until its runtime reports readiness.

        Args:
            code_location: Dotted module name or path to a ``.py`` file
                exposing ``init_runtime(binary, on_initialized)``
            binary: Location of the engine binary, or its raw bytes

        Raises:
            EngineAlreadyImported: On any call after the first successful one
        """
        if self.runtime is not None:
            raise EngineAlreadyImported("Engine runtime is already imported")

        loop = asyncio.get_running_loop()
        ready = asyncio.Event()

        def on_initialized() -> None:
            # The runtime may signal readiness from its own thread
            loop.call_soon_threadsafe(ready.set)

        logger.info(
            f"Time until engine import: "
            f"{DateTimeUtils.elapsed_seconds(self.created_at):.3f} secs"
        )
        import_start = DateTimeUtils.get_current_utc_datetime()
        runtime = load_engine_runtime(code_location, binary, on_initialized)
        await ready.wait()
        self.runtime = runtime
        logger.info(
            f"Engine runtime initialized successfully "
            f"({DateTimeUtils.elapsed_seconds(import_start):.3f} secs)"
        )

    def _ensure_service(self) -> TranslationEngine:
        """Create the translation service on first use."""
        if self.runtime is None:
            raise EngineNotImported("Engine runtime has not been imported")
        if self.engine is None:
            service_config = ServiceConfig(
                cache_size=self.config.translation_service_cache_size
            )
            logger.info(f"Creating Translation Service with config {service_config}")
            engine = self.runtime.create_service(service_config)
            if not isinstance(engine, TranslationEngine):
                raise TypeError(
                    f"Engine service {type(engine).__name__} does not implement TranslationEngine"
                )
            self.engine = engine
            self.cache = ModelCache(self.engine)
            self.executor = TranslationExecutor(self.engine, self.cache)
            logger.info("Translation Service created successfully")
        return self.engine

    async def load_model(
        self,
        source_language: str,
        target_language: str,
        registry: Union[ModelRegistry, Dict[str, Any]],
    ) -> str:
        """
        Replace all loaded models with the ones needed for this pair.

        Returns:
            ``MODEL_LOADED`` or ``MODEL_LOADING_FAILED``
        """
        load_start = DateTimeUtils.get_current_utc_datetime()
        pair_label = f"{source_language}{target_language}"

        if source_language == target_language:
            logger.info(f"Same source and target language '{source_language}', nothing to load")
            return MODEL_LOADED

        try:
            self._ensure_service()
            await self.construct_models(
                source_language, target_language, ModelRegistry.from_mapping(registry)
            )
            logger.info(
                f"Model '{pair_label}' successfully constructed "
                f"({DateTimeUtils.elapsed_seconds(load_start):.3f} secs)"
            )
            return MODEL_LOADED
        except Exception as e:
            logger.error(f"❌ Model '{pair_label}' construction failed: {e}", exc_info=True)
            return MODEL_LOADING_FAILED

    async def construct_models(
        self, source_language: str, target_language: str, registry: ModelRegistry
    ) -> None:
        """
        Clear the cache, then build every model the route needs, concurrently.

        If any model fails, the other constructions are cancelled and joined
        and every model already built is released, leaving the cache empty.
        """
        engine = self._ensure_service()
        self.cache.clear_all()

        route = self.router.route(source_language, target_language)
        model_config = build_model_config(self.config)
        logger.debug(f"Translation Model config:\n{model_config}")

        try:
            await gather_or_cancel(
                *(
                    self._construct_model(engine, pair_id, registry, model_config)
                    for pair_id in route.pair_ids
                )
            )
        except BaseException:
            self.cache.clear_all()
            raise

    async def _construct_model(
        self,
        engine: TranslationEngine,
        pair_id: str,
        registry: ModelRegistry,
        model_config: str,
    ) -> None:
        logger.info(f"Constructing translation model {pair_id}")
        descriptors = registry.descriptors(pair_id)
        buffers = await self.asset_loader.load_all(descriptors)
        by_kind = {d.kind: b for d, b in zip(descriptors, buffers)}

        try:
            model = engine.create_model(
                model_config,
                by_kind["model"],
                by_kind["lex"],
                [by_kind["vocab"]],
                by_kind.get("qualityModel"),
            )
        except Exception as e:
            raise ModelConstructionFailed(
                f"Engine rejected model '{pair_id}': {e}"
            ) from e

        # Buffers are owned by the model from here on
        self.cache.set(pair_id, model)

    async def translate(
        self,
        source_language: str,
        target_language: str,
        texts: Sequence[str],
        options: Sequence[OptionsInput],
    ) -> Optional[List[TranslationResult]]:
        """
        Translate texts with the currently loaded model(s).

        Returns:
            One result per non-blank text, in input order, or None on failure
        """
        translate_start = DateTimeUtils.get_current_utc_datetime()

        try:
            word_count = sum(count_words(text) for text in texts)
            parsed_options = [TranslationOptions.model_validate(o) for o in options]

            if source_language == target_language:
                source_texts, _ = prepare_request(texts, parsed_options)
                return [
                    TranslationResult(
                        translated_text=text,
                        source_text=text,
                        translated_sentences=[text],
                        source_sentences=[text],
                    )
                    for text in source_texts
                ]

            self._ensure_service()
            route = self.router.route(source_language, target_language)
            results = self.executor.execute(route, texts, parsed_options)
        except Exception as e:
            logger.error(f"❌ Translation {source_language}->{target_language} failed: {e}")
            return None

        secs = DateTimeUtils.elapsed_seconds(translate_start)
        words_per_second = round(word_count / secs) if secs > 0 else word_count
        logger.info(
            f"Speed: {words_per_second} WPS ({word_count} words in {secs:.3f} secs)"
        )
        for result in results:
            logger.debug(f"Source text: {truncate_for_logging(result.source_text)}")
            logger.debug(f"Translated text: {truncate_for_logging(result.translated_text)}")
        return results

    def close(self) -> None:
        """Release every loaded model. The session can load models again afterwards."""
        if self.cache is not None:
            self.cache.clear_all()
