"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock

import aio_pika
import pytest

# Add src directory to Python path for imports
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from common.config import Settings  # noqa: E402
from translator.asset_loader import AlignedBuffer, AssetLoader  # noqa: E402
from translator.engine import (  # noqa: E402
    ResponseOptions,
    SentenceByteRange,
    ServiceConfig,
)


class FakeHandle:
    """Engine-owned object that remembers its kind."""

    def __init__(self, kind: str, payload: Any = None):
        self.kind = kind
        self.payload = payload

    def __repr__(self) -> str:
        return f"FakeHandle({self.kind})"


class FakeResponse:
    """Response reporting one sentence per text, covering the whole text."""

    def __init__(self, original: str, translated: str):
        self._original = original
        self._translated = translated

    def translated_text(self) -> str:
        return self._translated

    def original_text(self) -> str:
        return self._original

    def sentence_count(self) -> int:
        return 1

    def translated_sentence(self, index: int) -> SentenceByteRange:
        return SentenceByteRange(0, len(self._translated.encode("utf-8")))

    def source_sentence(self, index: int) -> SentenceByteRange:
        return SentenceByteRange(0, len(self._original.encode("utf-8")))


class FakeEngine:
    """
    Test double for TranslationEngine.

    Records every call and every released resource so tests can check
    ownership rules.
    """

    def __init__(self):
        self.created_models: List[FakeHandle] = []
        self.model_args: List[Dict[str, Any]] = []
        self.released: List[Any] = []
        self.translate_calls: List[Dict[str, Any]] = []
        self.pivot_calls: List[Dict[str, Any]] = []
        self.fail_create_model = False
        self.fail_translate = False

    def create_model(
        self,
        config: str,
        weights: AlignedBuffer,
        shortlist: AlignedBuffer,
        vocabularies: Sequence[AlignedBuffer],
        quality_model: Optional[AlignedBuffer],
    ) -> FakeHandle:
        if self.fail_create_model:
            raise RuntimeError("bad model config")
        self.model_args.append(
            {
                "config": config,
                "weights": weights,
                "shortlist": shortlist,
                "vocabularies": list(vocabularies),
                "quality_model": quality_model,
            }
        )
        handle = FakeHandle("model", weights.tobytes().decode("utf-8", "replace"))
        self.created_models.append(handle)
        return handle

    def create_source_texts(self, texts: Sequence[str]) -> FakeHandle:
        return FakeHandle("source_texts", list(texts))

    def create_response_options(self, options: Sequence[ResponseOptions]) -> FakeHandle:
        return FakeHandle("response_options", list(options))

    def _responses(self, label: str, source_texts: FakeHandle) -> FakeHandle:
        return FakeHandle(
            "responses",
            [FakeResponse(text, f"<{label}>{text}") for text in source_texts.payload],
        )

    def translate(
        self, model: FakeHandle, source_texts: FakeHandle, response_options: FakeHandle
    ) -> "FakeResponseVector":
        self.translate_calls.append(
            {"model": model, "texts": source_texts.payload, "options": response_options.payload}
        )
        if self.fail_translate:
            raise RuntimeError("engine exploded")
        return FakeResponseVector(self._responses(model.payload, source_texts).payload)

    def translate_via_pivoting(
        self,
        source_to_pivot_model: FakeHandle,
        pivot_to_target_model: FakeHandle,
        source_texts: FakeHandle,
        response_options: FakeHandle,
    ) -> "FakeResponseVector":
        self.pivot_calls.append(
            {
                "models": (source_to_pivot_model, pivot_to_target_model),
                "texts": source_texts.payload,
            }
        )
        label = f"{source_to_pivot_model.payload}+{pivot_to_target_model.payload}"
        return FakeResponseVector(self._responses(label, source_texts).payload)

    def release(self, resource: Any) -> None:
        self.released.append(resource)

    def released_kinds(self) -> List[str]:
        return [getattr(r, "kind", type(r).__name__) for r in self.released]


class FakeResponseVector(list):
    kind = "responses"


class FakeRuntime:
    def __init__(self, engine: FakeEngine):
        self.engine = engine
        self.service_configs: List[ServiceConfig] = []

    def create_service(self, config: ServiceConfig) -> FakeEngine:
        self.service_configs.append(config)
        return self.engine


class InMemoryAssetLoader(AssetLoader):
    """AssetLoader whose byte source is a dict instead of the network."""

    def __init__(self, files: Dict[str, bytes], config: Optional[Settings] = None):
        super().__init__(config or Settings())
        self.files = files
        self.fetched: List[str] = []

    async def fetch_bytes(self, location: str) -> bytes:
        from translator.exceptions import AssetUnavailable

        self.fetched.append(location)
        if location not in self.files:
            raise AssetUnavailable(f"Fetching {location} failed: not found")
        return self.files[location]


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def fake_runtime(fake_engine):
    return FakeRuntime(fake_engine)


def _registry_entry(pair_id: str, with_quality_model: bool = False) -> Dict[str, Any]:
    entry = {
        "model": {
            "name": f"mem://{pair_id}/model.bin",
            "expectedSha256Hash": "0" * 64,
            "estimatedCompressedSize": 100,
            "modelType": "prod",
            "size": 200,
        },
        "lex": {"name": f"mem://{pair_id}/lex.bin", "modelType": "prod"},
        "vocab": {"name": f"mem://{pair_id}/vocab.spm", "modelType": "prod"},
    }
    if with_quality_model:
        entry["qualityModel"] = {"name": f"mem://{pair_id}/qe.bin", "modelType": "prod"}
    return entry


@pytest.fixture
def sample_registry() -> Dict[str, Any]:
    """Registry with de<->en, en->fr (with quality model) and es->en."""
    return {
        "deen": _registry_entry("deen"),
        "ende": _registry_entry("ende"),
        "enfr": _registry_entry("enfr", with_quality_model=True),
        "esen": _registry_entry("esen"),
    }


@pytest.fixture
def sample_files(sample_registry) -> Dict[str, bytes]:
    """In-memory bytes for every file of sample_registry; weights hold the pair id."""
    files = {}
    for pair_id, entry in sample_registry.items():
        for kind, info in entry.items():
            content = pair_id if kind == "model" else f"{pair_id}-{kind}"
            files[info["name"]] = content.encode("utf-8")
    return files


@pytest.fixture
def in_memory_loader(sample_files, test_settings):
    return InMemoryAssetLoader(sample_files, test_settings)


@pytest.fixture
def mock_rabbitmq_connection():
    """Mock RabbitMQ connection for testing."""
    mock_connection = AsyncMock(spec=aio_pika.abc.AbstractConnection)
    mock_connection.is_closed = False
    mock_connection.close = AsyncMock()
    return mock_connection


@pytest.fixture
def mock_rabbitmq_channel():
    """Mock RabbitMQ channel for testing."""
    mock_channel = AsyncMock(spec=aio_pika.abc.AbstractChannel)
    mock_channel.set_qos = AsyncMock()
    mock_channel.close = AsyncMock()
    return mock_channel
