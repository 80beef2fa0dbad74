"""Turning engine responses into plain translation results."""

import logging
from typing import Callable, List, Union

from translator.engine import EngineResponse, ResponseVector, SentenceByteRange
from translator.schemas import TranslationResult

logger = logging.getLogger(__name__)


def substring_by_byte_range(
    text: Union[str, bytes], byte_range: SentenceByteRange
) -> str:
    """
    Return the substring covered by a ``[begin, end)`` range of UTF-8 bytes.

    The engine reports offsets into the UTF-8 encoding, which differ from
    character indices as soon as the text holds multi-byte characters, so the
    slice is taken on the encoded bytes and decoded back.

    Example:
        >>> substring_by_byte_range("café bar", SentenceByteRange(0, 5))
        'café'
    """
    encoded = text.encode("utf-8") if isinstance(text, str) else text
    return encoded[byte_range.begin : byte_range.end].decode("utf-8", errors="replace")


def _sentences(
    text: str,
    count: int,
    range_at: Callable[[int], SentenceByteRange],
) -> List[str]:
    encoded = text.encode("utf-8")
    sentences = []
    for index in range(count):
        byte_range = range_at(index)
        if not 0 <= byte_range.begin <= byte_range.end <= len(encoded):
            logger.warning(
                f"Sentence {index} byte range [{byte_range.begin}, {byte_range.end}) "
                f"exceeds text of {len(encoded)} bytes"
            )
        sentences.append(substring_by_byte_range(encoded, byte_range))
    return sentences


def project_response(response: EngineResponse) -> TranslationResult:
    translated_text = response.translated_text()
    source_text = response.original_text()
    count = response.sentence_count()
    return TranslationResult(
        translated_text=translated_text,
        source_text=source_text,
        translated_sentences=_sentences(
            translated_text, count, response.translated_sentence
        ),
        source_sentences=_sentences(source_text, count, response.source_sentence),
    )


def project(responses: ResponseVector) -> List[TranslationResult]:
    """Project every response, keeping the order of the submitted texts."""
    return [project_response(responses[i]) for i in range(len(responses))]
