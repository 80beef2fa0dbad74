"""Data structures exchanged with translation callers."""

from typing import List

from pydantic import BaseModel, Field


class TranslationOptions(BaseModel):
    """Per-text options supplied by the caller."""

    is_html: bool = Field(
        False, alias="isHtml", description="Source text is HTML and must stay escaped"
    )
    is_quality_scores: bool = Field(
        False, alias="isQualityScores", description="Request quality scores"
    )

    class Config:
        populate_by_name = True


class TranslationResult(BaseModel):
    """Translation of one input text, with sentence-level substrings."""

    translated_text: str = Field(..., description="Whole translated text")
    source_text: str = Field(..., description="Source text as submitted to the engine")
    translated_sentences: List[str] = Field(
        default_factory=list, description="Sentences of the translated text"
    )
    source_sentences: List[str] = Field(
        default_factory=list, description="Sentences of the source text"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "translated_text": "Hallo Welt. Wie geht's?",
                "source_text": "Hello world. How are you?",
                "translated_sentences": ["Hallo Welt.", "Wie geht's?"],
                "source_sentences": ["Hello world.", "How are you?"],
            }
        }
