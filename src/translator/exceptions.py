"""Error kinds raised inside the translation session."""


class TranslationSessionError(Exception):
    """Base class for every failure raised by the orchestrator."""


class AssetUnavailable(TranslationSessionError):
    """A model asset could not be fetched, read or verified."""


class ModelConstructionFailed(TranslationSessionError):
    """The engine rejected the model configuration or the supplied buffers."""


class ModelNotLoaded(TranslationSessionError):
    """A translation was requested for a language pair that is not loaded."""

    def __init__(self, pair_id: str):
        super().__init__(f"Translation model '{pair_id}' not loaded")
        self.pair_id = pair_id


class EmptyInput(TranslationSessionError):
    """No non-blank text was left to translate."""


class NoOptions(TranslationSessionError):
    """No per-text translation options were supplied."""


class EngineNotImported(TranslationSessionError):
    """The engine runtime has not been imported into this worker yet."""


class EngineAlreadyImported(TranslationSessionError):
    """The engine runtime can only be imported once per worker lifetime."""


class EngineInvocationFailed(TranslationSessionError):
    """The engine raised while translating."""


class OptionsMismatch(TranslationSessionError):
    """The options sequence does not pair up one-to-one with the texts."""
