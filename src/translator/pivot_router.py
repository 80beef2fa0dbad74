"""Deciding between direct and pivot (two-hop) translation."""

from dataclasses import dataclass
from typing import Tuple, Union

from translator.registry import language_pair_id


@dataclass(frozen=True)
class RouteDirect:
    pair_id: str

    @property
    def pair_ids(self) -> Tuple[str, ...]:
        return (self.pair_id,)


@dataclass(frozen=True)
class RoutePivot:
    source_to_pivot: str
    pivot_to_target: str

    @property
    def pair_ids(self) -> Tuple[str, ...]:
        return (self.source_to_pivot, self.pivot_to_target)


Route = Union[RouteDirect, RoutePivot]


class PivotRouter:
    """
    Chooses the model chain for a language pair.

    With pivoting disabled every pair is routed directly. With pivoting
    enabled, pairs that do not involve the pivot language go through it.
    """

    def __init__(self, pivot_language: str = "en", pivoting_enabled: bool = False):
        self.pivot_language = pivot_language
        self.pivoting_enabled = pivoting_enabled

    def is_pivoting_required(self, source_language: str, target_language: str) -> bool:
        if not self.pivoting_enabled:
            return False
        return (
            source_language != self.pivot_language
            and target_language != self.pivot_language
        )

    def route(self, source_language: str, target_language: str) -> Route:
        """
        Example:
            >>> PivotRouter("en", pivoting_enabled=True).route("de", "fr")
            RoutePivot(source_to_pivot='deen', pivot_to_target='enfr')
            >>> PivotRouter("en").route("de", "fr")
            RouteDirect(pair_id='defr')
        """
        if self.is_pivoting_required(source_language, target_language):
            return RoutePivot(
                source_to_pivot=language_pair_id(source_language, self.pivot_language),
                pivot_to_target=language_pair_id(self.pivot_language, target_language),
            )
        return RouteDirect(pair_id=language_pair_id(source_language, target_language))
