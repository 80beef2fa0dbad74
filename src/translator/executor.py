"""Running translation requests against the engine."""

import logging
from contextlib import ExitStack
from typing import List, Sequence, Tuple

from translator.engine import ResponseOptions, TranslationEngine, engine_resource
from translator.exceptions import (
    EmptyInput,
    EngineInvocationFailed,
    NoOptions,
    OptionsMismatch,
)
from translator.model_cache import ModelCache
from translator.pivot_router import Route, RoutePivot
from translator.result_projector import project
from translator.schemas import TranslationOptions, TranslationResult

logger = logging.getLogger(__name__)


def prepare_request(
    texts: Sequence[str], options: Sequence[TranslationOptions]
) -> Tuple[List[str], List[ResponseOptions]]:
    """
    Validate a request and build the engine-level arguments.

    Blank texts are dropped together with their options and the remaining
    texts are trimmed; the engine must never see an empty paragraph.

    Raises:
        NoOptions: If no options were supplied
        OptionsMismatch: If options and texts differ in length
        EmptyInput: If no non-blank text remains
    """
    if not options:
        raise NoOptions("No Translation Options provided")
    if len(options) != len(texts):
        raise OptionsMismatch(
            f"Got {len(options)} translation options for {len(texts)} texts"
        )

    source_texts: List[str] = []
    response_options: List[ResponseOptions] = []
    for text, option in zip(texts, options):
        stripped = text.strip()
        if not stripped:
            continue
        source_texts.append(stripped)
        response_options.append(
            ResponseOptions(
                quality_scores=option.is_quality_scores,
                alignment=True,
                html=option.is_html,
            )
        )

    if not source_texts:
        raise EmptyInput("No text provided to translate")
    return source_texts, response_options


class TranslationExecutor:
    """Invokes the engine for a route and projects its responses."""

    def __init__(self, engine: TranslationEngine, cache: ModelCache):
        self.engine = engine
        self.cache = cache

    def execute(
        self,
        route: Route,
        texts: Sequence[str],
        options: Sequence[TranslationOptions],
    ) -> List[TranslationResult]:
        """
        Translate ``texts`` along ``route``.

        Every engine-owned vector created here is released before returning,
        whether the call succeeds or raises.

        Raises:
            NoOptions, OptionsMismatch, EmptyInput: On invalid input, before
                the engine is touched
            ModelNotLoaded: If a model needed by the route is not cached
            EngineInvocationFailed: If the engine raises while translating
        """
        source_texts, response_options = prepare_request(texts, options)
        models = [self.cache.require(pair_id) for pair_id in route.pair_ids]
        logger.info(f"Blocks to translate: {len(source_texts)}")

        with ExitStack() as stack:
            options_vector = stack.enter_context(
                engine_resource(
                    self.engine, self.engine.create_response_options(response_options)
                )
            )
            texts_vector = stack.enter_context(
                engine_resource(self.engine, self.engine.create_source_texts(source_texts))
            )

            try:
                if isinstance(route, RoutePivot):
                    responses = self.engine.translate_via_pivoting(
                        models[0], models[1], texts_vector, options_vector
                    )
                else:
                    responses = self.engine.translate(
                        models[0], texts_vector, options_vector
                    )
            except Exception as e:
                raise EngineInvocationFailed(f"Engine translation failed: {e}") from e

            stack.enter_context(engine_resource(self.engine, responses))
            return project(responses)
