# src/recipecore/providers/base.py
"""
Abstract Base Class for inference providers.

This module defines the common interface that every concrete provider
(Workers AI REST, OpenAI-compatible endpoints) must adhere to within the
RecipeCore library. Providers are plain text in, plain text out: the
orchestrator never sees vendor response objects.
"""

import abc
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from ..models import Message
from ..observability.metrics import record_inference

logger = logging.getLogger(__name__)

ContextPayload = List[Message]


class BaseProvider(abc.ABC):
    """
    Abstract Base Class for inference provider integrations.

    Concrete providers translate a list of Messages into one vendor request
    and hand back plain text, either whole or as a stream of deltas.
    """
    log_raw_payloads_enabled: bool

    @abc.abstractmethod
    def __init__(self, config: Dict[str, Any], log_raw_payloads: bool = False):
        """
        Store provider settings.

        Args:
            config: A dictionary containing provider-specific settings taken
                    from the ``provider`` section of the settings (e.g., api_key,
                    account_id, base_url, timeout).
            log_raw_payloads: Whether raw request/response payloads should be
                              logged at DEBUG level by this provider instance.
        """
        self.log_raw_payloads_enabled = log_raw_payloads

    @abc.abstractmethod
    def get_name(self) -> str:
        """
        Name under which the provider is registered in the settings.

        Examples: "workers_ai", "openai".
        """
        pass

    @abc.abstractmethod
    async def chat_completion(
        self,
        context: ContextPayload,
        model: Optional[str] = None,
        stream: bool = False,
        **kwargs: Any
    ) -> Union[str, AsyncIterator[str]]:
        """
        Perform one chat completion request against the provider's API.

        Args:
            context: The ordered message sequence to send.
            model: The model identifier to use for this completion.
            stream: If True, return an async iterator yielding text deltas.
            **kwargs: Inference parameters (max_tokens, temperature, top_p).

        Returns:
            - If stream=False: the complete generated text.
            - If stream=True: an async iterator of text deltas. Errors that
              happen while reading the stream are raised from the iterator.

        Raises:
            ProviderError: For any provider-specific errors (API, connection, timeout).
        """
        pass

    async def close(self) -> None:
        """
        Release network sessions or clients held by the provider.
        Providers that hold nothing can rely on this pass-through implementation.
        """
        pass

    @staticmethod
    def _messages_payload(context: ContextPayload) -> List[Dict[str, str]]:
        """Converts Message objects into the role/content dicts both wire formats share."""
        return [{"role": str(getattr(msg.role, "value", msg.role)), "content": msg.content} for msg in context]

    async def instrumented_completion(
        self,
        context: ContextPayload,
        model: str,
        stream: bool = False,
        **kwargs: Any
    ) -> Union[str, AsyncIterator[str]]:
        """
        Wrapper around chat_completion that records inference metrics.

        Latency is only observed for materialized calls; a stream's duration
        depends on the consumer.
        """
        start_time = time.monotonic()
        try:
            result = await self.chat_completion(context, model=model, stream=stream, **kwargs)
        except Exception as e:
            record_inference(model, error=type(e).__name__)
            raise
        record_inference(model, duration=None if stream else time.monotonic() - start_time)
        return result
