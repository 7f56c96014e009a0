# src/recipecore/providers/openai_provider.py
"""
OpenAI-compatible provider implementation for the RecipeCore library.

Uses the official ``openai`` SDK against any endpoint that speaks the
chat-completions protocol. When only an ``account_id`` is configured the
client is pointed at the Workers AI OpenAI-compatible endpoint.
"""

import asyncio
import json
import logging
import os
from typing import Any, AsyncIterator, Dict, Optional, Union

from openai import AsyncOpenAI, OpenAIError

from ..exceptions import ConfigError, EmptyResponseError, ProviderError
from .base import BaseProvider, ContextPayload

logger = logging.getLogger(__name__)

WORKERS_AI_OPENAI_BASE_URL = "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/v1"


class OpenAIProvider(BaseProvider):
    """
    RecipeCore provider for OpenAI-compatible chat-completions endpoints.
    """
    _client: Optional[AsyncOpenAI] = None

    def __init__(self, config: Dict[str, Any], log_raw_payloads: bool = False):
        """
        Builds the AsyncOpenAI client for a chat-completions endpoint.

        Args:
            config: Configuration dictionary containing:
                    'api_key' (optional): API key. Defaults to env var OPENAI_API_KEY.
                    'base_url' (optional): Endpoint URL.
                    'account_id' (optional): Used to build the Workers AI ``/ai/v1`` URL
                                             when no base_url is given.
                    'timeout' (optional): Request timeout in seconds (default: 60).
            log_raw_payloads: Whether to log raw request/response payloads.
        """
        super().__init__(config, log_raw_payloads)
        self.api_key = config.get('api_key') or os.environ.get('OPENAI_API_KEY')
        self.base_url = config.get('base_url')
        if not self.base_url and config.get('account_id'):
            self.base_url = WORKERS_AI_OPENAI_BASE_URL.format(account_id=config['account_id'])
        self.timeout = float(config.get('timeout') or 60.0)

        if not self.api_key:
            logger.warning("OpenAI API key not found in config or environment variable OPENAI_API_KEY. "
                           "Requests will fail authentication until one is configured.")

        try:
            self._client = AsyncOpenAI(
                api_key=self.api_key or "missing",
                base_url=self.base_url,
                timeout=self.timeout,
            )
            logger.debug(f"AsyncOpenAI client ready (base_url={self.base_url or 'default'}).")
        except Exception as e:
            logger.error(f"Could not build AsyncOpenAI client: {e}", exc_info=True)
            raise ConfigError(f"Cannot create OpenAI client: {e}")

    def get_name(self) -> str:
        """Registry name of this provider."""
        return "openai"

    def _translate_error(self, e: OpenAIError) -> ProviderError:
        status = getattr(e, "status_code", None)
        message = getattr(e, "message", None) or str(e)
        if status == 401:
            return ProviderError(self.get_name(), f"Authentication failed (Invalid API Key? Status 401): {message}")
        if status == 429:
            return ProviderError(self.get_name(), f"Rate limit exceeded (Status 429): {message}")
        if status is None:
            return ProviderError(self.get_name(), f"OpenAI API Error: {message}")
        return ProviderError(self.get_name(), f"OpenAI API Error (Status {status}): {message}")

    async def chat_completion(
        self,
        context: ContextPayload,
        model: Optional[str] = None,
        stream: bool = False,
        **kwargs: Any
    ) -> Union[str, AsyncIterator[str]]:
        """
        Sends a chat completion request to the configured endpoint.

        Raises:
            ProviderError: If the API call fails.
            EmptyResponseError: If a non-streaming answer carries no text.
        """
        if not self._client:
            raise ProviderError(self.get_name(), "OpenAI client not initialized.")
        if not model:
            raise ProviderError(self.get_name(), "A model identifier is required.")

        messages_payload = self._messages_payload(context)
        if not messages_payload:
            raise ProviderError(self.get_name(), "No messages to send.")

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            request_log_data = {"model": model, "messages": messages_payload, "stream": stream, **kwargs}
            logger.debug(f"RAW LLM REQUEST ({self.get_name()} @ {model}): {json.dumps(request_log_data, indent=2)}")

        logger.debug(f"Sending request to OpenAI API: model='{model}', stream={stream}, num_messages={len(messages_payload)}")

        try:
            completion = await self._client.chat.completions.create(
                model=model,
                messages=messages_payload,  # type: ignore [arg-type]
                stream=stream,
                **kwargs
            )
        except OpenAIError as e:
            logger.error(f"OpenAI API error: {e}", exc_info=True)
            raise self._translate_error(e)
        except asyncio.TimeoutError:
            logger.error(f"OpenAI-compatible request for '{model}' exceeded {self.timeout}s.")
            raise ProviderError(self.get_name(), f"Request timed out after {self.timeout}s.")

        if stream:
            return self._stream_deltas(completion, model)

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW LLM RESPONSE ({self.get_name()} @ {model}): {completion.model_dump_json(indent=2)}")  # type: ignore [union-attr]

        choices = getattr(completion, "choices", None) or []
        text = choices[0].message.content if choices and choices[0].message else None
        if not text:
            raise EmptyResponseError(self.get_name(), f"Model '{model}' returned no text.")
        return text

    async def _stream_deltas(self, response_stream: Any, model: str) -> AsyncIterator[str]:
        try:
            async for chunk_obj in response_stream:
                if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
                    logger.debug(f"RAW LLM STREAM CHUNK ({self.get_name()} @ {model}): {chunk_obj.model_dump_json()}")
                if not chunk_obj.choices:
                    continue
                delta = chunk_obj.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as e:
            logger.error(f"OpenAI stream error: {e}", exc_info=True)
            raise self._translate_error(e)

    async def close(self) -> None:
        """Closes the underlying OpenAI client session."""
        if self._client:
            try:
                await self._client.close()
                logger.info("OpenAIProvider client closed.")
            except RuntimeError as e:
                logger.warning(f"OpenAIProvider client close failed: {e}")
            finally:
                self._client = None
