# src/recipecore/generation/continuation.py
"""
Continuation protocol.

Models regularly stop short of a complete recipe (token limits, early
stops). The system instruction asks for an out-of-band completion sentinel
at the very end; as long as it has not appeared, the controller asks the
model to continue, feeding back everything produced so far as an assistant
turn. The protocol is bounded by ``max_rounds`` inference calls in total.
Running out of rounds is not an error: the best-effort text is returned.
"""

import logging
from typing import AsyncIterator, List, Sequence, Tuple

from ..config.settings import GenerationSettings
from ..exceptions import EmptyResponseError, ProviderError
from ..models import GenerationResult, Message
from ..observability.metrics import record_rounds
from ..prompts import build_continuation_prompt
from ..providers.base import BaseProvider

logger = logging.getLogger(__name__)


def split_partial_sentinel(buffer: str, sentinel: str) -> Tuple[str, str]:
    """
    Splits ``buffer`` into text that is safe to emit and a held-back tail.

    The tail is the longest suffix of ``buffer`` that is also a proper
    prefix of ``sentinel``; it may turn into the sentinel once the next
    chunk arrives.
    """
    for size in range(min(len(buffer), len(sentinel) - 1), 0, -1):
        if buffer.endswith(sentinel[:size]):
            return buffer[:-size], buffer[-size:]
    return buffer, ""


class ContinuationController:
    """
    Runs the bounded continuation protocol against one provider.

    The controller is stateless between calls and safe to share across
    concurrent requests.
    """

    def __init__(self, provider: BaseProvider, settings: GenerationSettings):
        self._provider = provider
        self._settings = settings
        self._sentinel = settings.completion_sentinel
        self._continuation_prompt = build_continuation_prompt(self._sentinel)

    @property
    def sentinel(self) -> str:
        return self._sentinel

    def _continuation_sequence(self, sequence: Sequence[Message], accumulated: str) -> List[Message]:
        return [*sequence, Message.assistant(accumulated), Message.user(self._continuation_prompt)]

    async def _complete(self, sequence: Sequence[Message], model: str) -> str:
        result = await self._provider.instrumented_completion(
            list(sequence), model=model, stream=False, **self._settings.inference_params(stream=False)
        )
        if not isinstance(result, str):
            raise ProviderError(self._provider.get_name(), f"Expected text, got {type(result).__name__}.")
        return result

    async def run(self, sequence: Sequence[Message], model: str) -> GenerationResult:
        """
        Produces a complete answer for ``sequence`` using ``model``.

        Raises:
            ProviderError: Inference errors propagate uncaught.
            EmptyResponseError: If the first call or the final text is empty.
        """
        accumulated = await self._complete(sequence, model)
        if not accumulated.strip():
            raise EmptyResponseError(self._provider.get_name(), f"Model '{model}' returned an empty response.")
        rounds = 1

        while self._sentinel not in accumulated and rounds < self._settings.max_rounds:
            logger.debug(f"No completion marker after round {rounds} ({len(accumulated)} chars); continuing with '{model}'.")
            fragment = await self._complete(self._continuation_sequence(sequence, accumulated), model)
            rounds += 1
            if not accumulated.endswith("\n"):
                accumulated += "\n"
            accumulated += fragment

        if self._sentinel not in accumulated:
            logger.info(f"Continuation budget of {self._settings.max_rounds} calls exhausted for '{model}'; accepting partial text.")
        record_rounds(rounds)

        text = accumulated.replace(self._sentinel, "").strip()
        if not text:
            raise EmptyResponseError(self._provider.get_name(), f"Model '{model}' produced no text besides the completion marker.")
        return GenerationResult(model_used=model, text=text, rounds=rounds)

    async def stream(self, sequence: Sequence[Message], model: str) -> AsyncIterator[str]:
        """
        Streaming variant of :meth:`run`.

        Yields text deltas as they arrive, across as many rounds as needed.
        The sentinel is never yielded, even when it is split over chunk
        boundaries. Between rounds a newline separator is yielded unless the
        text so far already ends with one.
        """
        params = self._settings.inference_params(stream=True)
        emitted = ""
        rounds = 0
        try:
            while rounds < self._settings.max_rounds:
                round_sequence = list(sequence) if rounds == 0 else self._continuation_sequence(sequence, emitted)
                deltas = await self._provider.instrumented_completion(round_sequence, model=model, stream=True, **params)
                rounds += 1
                needs_separator = bool(emitted) and not emitted.endswith("\n")
                pending = ""
                finished = False
                try:
                    async for delta in deltas:
                        if not delta:
                            continue
                        pending += delta
                        marker_at = pending.find(self._sentinel)
                        if marker_at >= 0:
                            safe, pending, finished = pending[:marker_at], "", True
                        else:
                            safe, pending = split_partial_sentinel(pending, self._sentinel)
                        if safe:
                            if needs_separator:
                                needs_separator = False
                                emitted += "\n"
                                yield "\n"
                            emitted += safe
                            yield safe
                        if finished:
                            break
                finally:
                    aclose = getattr(deltas, "aclose", None)
                    if aclose is not None:
                        await aclose()
                if not finished and pending:
                    if needs_separator:
                        emitted += "\n"
                        yield "\n"
                    emitted += pending
                    yield pending
                if finished:
                    return
                logger.debug(f"Stream round {rounds} for '{model}' ended without completion marker.")
            logger.info(f"Streaming continuation budget of {self._settings.max_rounds} calls exhausted for '{model}'.")
        finally:
            if rounds:
                record_rounds(rounds, stream=True)
