"""
Capability interface of the inference engine.

The orchestrator never talks to a concrete engine binding; it depends on the
protocols below. A runtime is shipped as a Python module exposing::

    def init_runtime(binary, on_initialized) -> EngineRuntime

``binary`` is whatever was passed to ``import_engine`` as the binary location
(a path/URL string or raw bytes) and ``on_initialized`` must be called exactly
once, from any thread, when the runtime is ready to create services.
"""

import importlib
import importlib.util
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import (
    Any,
    Callable,
    Iterator,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from common.config import Settings
from translator.asset_loader import AlignedBuffer

logger = logging.getLogger(__name__)

RUNTIME_ENTRY_POINT = "init_runtime"


@dataclass(frozen=True)
class SentenceByteRange:
    """A ``[begin, end)`` span in the UTF-8 encoding of a text."""

    begin: int
    end: int


@dataclass(frozen=True)
class ResponseOptions:
    """Per-text options handed to the engine alongside each source text."""

    quality_scores: bool = False
    alignment: bool = True
    html: bool = False


@dataclass(frozen=True)
class ServiceConfig:
    cache_size: int


class EngineResponse(Protocol):
    """One translated item of a response vector."""

    def translated_text(self) -> str: ...

    def original_text(self) -> str: ...

    def sentence_count(self) -> int: ...

    def translated_sentence(self, index: int) -> SentenceByteRange: ...

    def source_sentence(self, index: int) -> SentenceByteRange: ...


class ResponseVector(Protocol):
    def __len__(self) -> int: ...

    def __getitem__(self, index: int) -> EngineResponse: ...


@runtime_checkable
class TranslationEngine(Protocol):
    """Blocking translation service created by an engine runtime."""

    def create_model(
        self,
        config: str,
        weights: AlignedBuffer,
        shortlist: AlignedBuffer,
        vocabularies: Sequence[AlignedBuffer],
        quality_model: Optional[AlignedBuffer],
    ) -> Any: ...

    def create_source_texts(self, texts: Sequence[str]) -> Any: ...

    def create_response_options(self, options: Sequence[ResponseOptions]) -> Any: ...

    def translate(
        self, model: Any, source_texts: Any, response_options: Any
    ) -> ResponseVector: ...

    def translate_via_pivoting(
        self,
        source_to_pivot_model: Any,
        pivot_to_target_model: Any,
        source_texts: Any,
        response_options: Any,
    ) -> ResponseVector: ...

    def release(self, resource: Any) -> None: ...


class EngineRuntime(Protocol):
    def create_service(self, config: ServiceConfig) -> TranslationEngine: ...


def build_model_config(settings: Settings) -> str:
    """
    Render the engine model configuration as fixed-format ``key: value`` lines.

    The engine parses this text strictly: one entry per line, a single space
    after the colon and a trailing newline.
    """
    entries = [
        ("beam-size", settings.model_beam_size),
        ("normalize", settings.model_normalize),
        ("word-penalty", settings.model_word_penalty),
        ("max-length-break", settings.model_max_length_break),
        ("mini-batch-words", settings.model_mini_batch_words),
        ("workspace", settings.model_workspace),
        ("max-length-factor", settings.model_max_length_factor),
        ("skip-cost", "false"),
        ("cpu-threads", settings.model_cpu_threads),
        ("quiet", "true"),
        ("quiet-translation", "true"),
        ("gemm-precision", settings.model_gemm_precision),
        ("alignment", "soft"),
    ]
    return "".join(f"{key}: {value}\n" for key, value in entries)


@contextmanager
def engine_resource(engine: TranslationEngine, resource: Any) -> Iterator[Any]:
    """
    Hold an engine-owned resource for the duration of a ``with`` block.

    The resource is released on every exit path. A failing release is logged
    and not retried.
    """
    try:
        yield resource
    finally:
        try:
            engine.release(resource)
        except Exception as e:
            logger.error(f"❌ Failed to release engine resource {resource!r}: {e}")


def _import_runtime_module(code_location: str) -> ModuleType:
    """Import a runtime module by dotted name or by path to a ``.py`` file."""
    path = Path(code_location)
    if path.suffix == ".py":
        if not path.is_file():
            raise FileNotFoundError(f"Engine code not found: {code_location}")
        spec = importlib.util.spec_from_file_location(
            f"_engine_runtime_{path.stem}", path
        )
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load engine code from {code_location}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(code_location)


def load_engine_runtime(
    code_location: str,
    binary: Union[str, bytes, None],
    on_initialized: Callable[[], None],
) -> EngineRuntime:
    """
    Import the engine code and start runtime initialization.

    Returns as soon as the runtime object exists; readiness is reported
    separately through ``on_initialized``.
    """
    module = _import_runtime_module(code_location)
    entry_point = getattr(module, RUNTIME_ENTRY_POINT, None)
    if entry_point is None:
        raise ImportError(
            f"Engine module '{code_location}' has no {RUNTIME_ENTRY_POINT}()"
        )
    logger.debug(f"Initializing engine runtime from {code_location}")
    return entry_point(binary, on_initialized)
