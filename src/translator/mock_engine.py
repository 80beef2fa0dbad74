"""
Mock engine runtime for development without a native engine.

Import it with ``import_engine("translator.mock_engine")``. Each sentence is
"translated" by prefixing it with the model label, so pipelines, sentence
ranges and pivoting can be exercised end to end. The label is the weights
file content when that is short printable text, else ``model-<n>``.
"""

import itertools
import logging
import re
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from translator.asset_loader import AlignedBuffer
from translator.engine import ResponseOptions, SentenceByteRange, ServiceConfig

logger = logging.getLogger(__name__)

SENTENCE_BOUNDARY = re.compile(r"[^.!?]+(?:[.!?]+|$)")
MAX_LABEL_BYTES = 32

_model_counter = itertools.count(1)


class MockModel:
    def __init__(self, label: str):
        self.label = label
        self.released = False

    def __repr__(self) -> str:
        return f"MockModel({self.label!r})"


class MockVector(list):
    """Engine-owned vector stand-in that records whether it was released."""

    released = False


class MockResponse:
    def __init__(
        self,
        original: str,
        translated: str,
        source_ranges: List[SentenceByteRange],
        translated_ranges: List[SentenceByteRange],
    ):
        self._original = original
        self._translated = translated
        self._source_ranges = source_ranges
        self._translated_ranges = translated_ranges

    def translated_text(self) -> str:
        return self._translated

    def original_text(self) -> str:
        return self._original

    def sentence_count(self) -> int:
        return len(self._source_ranges)

    def translated_sentence(self, index: int) -> SentenceByteRange:
        return self._translated_ranges[index]

    def source_sentence(self, index: int) -> SentenceByteRange:
        return self._source_ranges[index]


def split_sentences(text: str) -> List[Tuple[str, SentenceByteRange]]:
    """Split on sentence punctuation, reporting UTF-8 byte ranges."""
    sentences = []
    for match in SENTENCE_BOUNDARY.finditer(text):
        sentence = match.group().strip()
        if not sentence:
            continue
        leading = len(match.group()) - len(match.group().lstrip())
        begin = len(text[: match.start() + leading].encode("utf-8"))
        end = begin + len(sentence.encode("utf-8"))
        sentences.append((sentence, SentenceByteRange(begin, end)))
    return sentences


def _label_from_weights(weights: AlignedBuffer) -> str:
    raw = weights.tobytes()
    if 0 < len(raw) <= MAX_LABEL_BYTES:
        try:
            text = raw.decode("ascii").strip()
        except UnicodeDecodeError:
            text = ""
        if text.isprintable() and text:
            return text
    return f"model-{next(_model_counter)}"


class MockTranslationService:
    """Satisfies ``TranslationEngine`` without doing any real translation."""

    def __init__(self, config: ServiceConfig):
        self.config = config
        self.released: List[Any] = []

    def create_model(
        self,
        config: str,
        weights: AlignedBuffer,
        shortlist: AlignedBuffer,
        vocabularies: Sequence[AlignedBuffer],
        quality_model: Optional[AlignedBuffer],
    ) -> MockModel:
        if not config.strip():
            raise ValueError("Empty model configuration")
        return MockModel(_label_from_weights(weights))

    def create_source_texts(self, texts: Sequence[str]) -> MockVector:
        return MockVector(texts)

    def create_response_options(self, options: Sequence[ResponseOptions]) -> MockVector:
        return MockVector(options)

    def _translate_text(self, labels: Sequence[str], text: str) -> MockResponse:
        source_ranges = []
        translated_parts = []
        translated_ranges = []
        offset = 0
        prefix = "".join(f"[{label}] " for label in labels)
        for sentence, source_range in split_sentences(text):
            translated = f"{prefix}{sentence}"
            if translated_parts:
                offset += 1  # joining space
            length = len(translated.encode("utf-8"))
            translated_ranges.append(SentenceByteRange(offset, offset + length))
            source_ranges.append(source_range)
            translated_parts.append(translated)
            offset += length
        return MockResponse(
            text, " ".join(translated_parts), source_ranges, translated_ranges
        )

    def translate(
        self, model: MockModel, source_texts: MockVector, response_options: MockVector
    ) -> MockVector:
        return MockVector(self._translate_text([model.label], t) for t in source_texts)

    def translate_via_pivoting(
        self,
        source_to_pivot_model: MockModel,
        pivot_to_target_model: MockModel,
        source_texts: MockVector,
        response_options: MockVector,
    ) -> MockVector:
        labels = [pivot_to_target_model.label, source_to_pivot_model.label]
        return MockVector(self._translate_text(labels, t) for t in source_texts)

    def release(self, resource: Any) -> None:
        resource.released = True
        self.released.append(resource)


class MockRuntime:
    def __init__(self, binary: Union[str, bytes, None]):
        self.binary = binary

    def create_service(self, config: ServiceConfig) -> MockTranslationService:
        return MockTranslationService(config)


def init_runtime(
    binary: Union[str, bytes, None], on_initialized: Callable[[], None]
) -> MockRuntime:
    runtime = MockRuntime(binary)
    logger.info("Mock engine runtime initialized")
    on_initialized()
    return runtime
