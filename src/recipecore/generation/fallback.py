# src/recipecore/generation/fallback.py
"""
Model fallback policy.

A generation attempt runs a complete continuation protocol against the
primary model. If that attempt fails for any reason, one fresh attempt is
made against the secondary model; partial output never crosses models.

State machine::

    PRIMARY --ok--> SUCCEEDED
    PRIMARY --error, secondary != primary--> FALLBACK
    PRIMARY --error, secondary == primary--> FAILED
    FALLBACK --ok--> SUCCEEDED (used_fallback=True)
    FALLBACK --error--> FAILED

FAILED raises UpstreamError carrying the *primary* failure as its cause.
"""

import logging
from enum import Enum
from typing import Optional, Sequence

from ..exceptions import UpstreamError
from ..models import GenerationResult, Message
from ..observability.metrics import record_fallback
from .continuation import ContinuationController

logger = logging.getLogger(__name__)

FALLBACK_NOTE = "Auto-fallback used."


class FallbackState(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FallbackPolicy:
    """Wraps a ContinuationController with one retry on a secondary model."""

    def __init__(self, controller: ContinuationController):
        self._controller = controller

    async def run(
        self,
        primary_model: str,
        secondary_model: Optional[str],
        sequence: Sequence[Message],
    ) -> GenerationResult:
        """
        Raises:
            UpstreamError: If the primary attempt fails and the fallback
                           either is not allowed or fails too.
        """
        state = FallbackState.PRIMARY
        try:
            result = await self._controller.run(sequence, primary_model)
        except Exception as primary_error:
            logger.warning(f"Primary model '{primary_model}' failed: {primary_error}")
            if not secondary_model or secondary_model == primary_model:
                state = FallbackState.FAILED
                logger.error(f"Generation {state.value}: no distinct fallback model for '{primary_model}'.")
                raise UpstreamError(primary_model, cause=primary_error) from primary_error

            state = FallbackState.FALLBACK
            record_fallback(primary_model, secondary_model)
            logger.info(f"Generation state -> {state.value}: retrying with '{secondary_model}'.")
            try:
                result = await self._controller.run(sequence, secondary_model)
            except Exception as fallback_error:
                state = FallbackState.FAILED
                logger.error(f"Generation {state.value}: fallback model '{secondary_model}' failed too: {fallback_error}")
                raise UpstreamError(
                    primary_model,
                    cause=primary_error,
                    fallback_model=secondary_model,
                    fallback_error=fallback_error,
                ) from primary_error

            state = FallbackState.SUCCEEDED
            logger.info(f"Generation {state.value} on fallback model '{secondary_model}'.")
            return result.model_copy(update={"used_fallback": True, "note": FALLBACK_NOTE})

        state = FallbackState.SUCCEEDED
        logger.debug(f"Generation {state.value} on primary model '{primary_model}' in {result.rounds} round(s).")
        return result
