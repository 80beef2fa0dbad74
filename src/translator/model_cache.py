"""Cache of constructed translation models, keyed by language-pair id."""

import logging
from typing import Any, Dict, List, Optional

from translator.engine import TranslationEngine
from translator.exceptions import ModelNotLoaded

logger = logging.getLogger(__name__)


class ModelCache:
    """
    Owns every loaded translation model handle of one session.

    Loading is never incremental: callers clear the whole cache before
    constructing the models for a new request, so switching any direction
    drops every other loaded direction too.
    """

    def __init__(self, engine: TranslationEngine):
        self.engine = engine
        self._models: Dict[str, Any] = {}

    def clear_all(self) -> None:
        """Release every held model and empty the cache."""
        for pair_id, model in self._models.items():
            logger.info(f"Destructing model '{pair_id}'")
            try:
                self.engine.release(model)
            except Exception as e:
                logger.error(f"❌ Failed to release model '{pair_id}': {e}")
        self._models.clear()

    def get(self, pair_id: str) -> Optional[Any]:
        return self._models.get(pair_id)

    def set(self, pair_id: str, model: Any) -> None:
        # Overwrites without releasing; clear_all() must have run first
        self._models[pair_id] = model

    def require(self, pair_id: str) -> Any:
        """
        Return the model for ``pair_id``.

        Raises:
            ModelNotLoaded: If no model is cached for the pair
        """
        model = self._models.get(pair_id)
        if model is None:
            raise ModelNotLoaded(pair_id)
        return model

    def pair_ids(self) -> List[str]:
        return list(self._models)

    def __contains__(self, pair_id: str) -> bool:
        return pair_id in self._models

    def __len__(self) -> int:
        return len(self._models)
