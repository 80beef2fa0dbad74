"""Model registry: which asset files make up the model for each language pair."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel

from translator.asset_loader import AssetDescriptor
from translator.exceptions import AssetUnavailable

logger = logging.getLogger(__name__)

# Asset kinds in the order the engine expects them, with the byte alignment
# each buffer must satisfy.
ASSET_FILE_INFO = (
    ("model", 256),
    ("lex", 64),
    ("vocab", 64),
    ("qualityModel", 64),
)

REQUIRED_ASSET_KINDS = ("model", "lex", "vocab")


def language_pair_id(source_language: str, target_language: str) -> str:
    """
    Build the cache/registry key for an ordered language pair.

    Example:
        >>> language_pair_id("de", "en")
        'deen'
    """
    return f"{source_language}{target_language}"


class ModelAssetInfo(BaseModel):
    """One registry file entry. Only ``name`` is used to locate the bytes."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    name: str = Field(..., description="URL or local path of the file")
    expected_sha256_hash: Optional[str] = Field(None, alias="expectedSha256Hash")
    estimated_compressed_size: Optional[int] = Field(
        None, alias="estimatedCompressedSize"
    )
    model_type: Optional[str] = Field(None, alias="modelType")
    size: Optional[int] = None


class ModelInfo(BaseModel):
    """Asset files for one translation direction."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: Optional[ModelAssetInfo] = None
    vocab: Optional[ModelAssetInfo] = None
    lex: Optional[ModelAssetInfo] = None
    quality_model: Optional[ModelAssetInfo] = Field(None, alias="qualityModel")

    def asset(self, kind: str) -> Optional[ModelAssetInfo]:
        if kind == "qualityModel":
            return self.quality_model
        return getattr(self, kind)


class ModelRegistry(RootModel[Dict[str, ModelInfo]]):
    """
    Read-only mapping from language-pair id (e.g. ``"deen"``) to model files.

    Example:
        >>> registry = ModelRegistry.from_mapping(
        ...     {"deen": {"model": {"name": "m.bin"}, "lex": {"name": "l.bin"},
        ...               "vocab": {"name": "v.spm"}}}
        ... )
        >>> [d.kind for d in registry.descriptors("deen")]
        ['model', 'lex', 'vocab']
    """

    @classmethod
    def from_mapping(
        cls, data: Union[Dict[str, dict], "ModelRegistry"]
    ) -> "ModelRegistry":
        if isinstance(data, ModelRegistry):
            return data
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ModelRegistry":
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate(json.load(f))

    def __contains__(self, pair_id: str) -> bool:
        return pair_id in self.root

    def pair_ids(self) -> List[str]:
        return list(self.root)

    def languages(self) -> List[str]:
        """
        Distinct language codes appearing in two-letter pair keys, sorted.

        Keys not made of two 2-letter codes are skipped.
        """
        codes = set()
        for pair_id in self.root:
            if len(pair_id) != 4:
                logger.debug(f"Skipping registry key with unexpected shape: {pair_id}")
                continue
            codes.update((pair_id[:2], pair_id[2:]))
        return sorted(codes)

    def descriptors(self, pair_id: str) -> List[AssetDescriptor]:
        """
        Asset descriptors for a pair, in engine order, for the kinds present.

        Raises:
            AssetUnavailable: If the pair is unknown or a required asset is missing
        """
        info = self.root.get(pair_id)
        if info is None:
            raise AssetUnavailable(f"No model registered for language pair '{pair_id}'")

        descriptors = []
        for kind, alignment in ASSET_FILE_INFO:
            asset = info.asset(kind)
            if asset is None:
                if kind in REQUIRED_ASSET_KINDS:
                    raise AssetUnavailable(
                        f"Registry entry '{pair_id}' has no '{kind}' asset"
                    )
                continue
            descriptors.append(
                AssetDescriptor(
                    kind=kind,
                    required_alignment=alignment,
                    location=asset.name,
                    expected_sha256=asset.expected_sha256_hash,
                )
            )
        return descriptors
