# src/recipecore/providers/workers_ai_provider.py
"""
Cloudflare Workers AI provider implementation for the RecipeCore library.

Talks to the native REST endpoint ``/accounts/{account_id}/ai/run/{model}``
with aiohttp. Non-streaming answers carry the text in ``result.response``
(some models use ``output_text`` instead); streaming answers are
server-sent events of the form ``data: {"response": "..."}`` terminated by
``data: [DONE]``.
"""

import asyncio
import json
import logging
import os
from typing import Any, AsyncIterator, Dict, Optional, Union

import aiohttp

from ..exceptions import ConfigError, EmptyResponseError, ProviderError
from .base import BaseProvider, ContextPayload

logger = logging.getLogger(__name__)

DEFAULT_WORKERS_AI_BASE_URL = "https://api.cloudflare.com/client/v4"


def extract_text(payload: Any) -> Optional[str]:
    """
    Pulls the generated text out of a Workers AI response body.

    Accepts either the REST envelope (``{"result": {...}, "success": true}``)
    or the bare result object.
    """
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return None
    result = payload.get("result", payload)
    if isinstance(result, str):
        return result
    if not isinstance(result, dict):
        return None
    for key in ("response", "output_text"):
        value = result.get(key)
        if isinstance(value, str):
            return value
    return None


def parse_sse_line(line: str) -> Optional[str]:
    """
    Decodes one server-sent-event line into a text delta.

    Returns None for lines without text (comments, blank keep-alives,
    non-JSON payloads). The ``[DONE]`` terminator is reported as the empty
    string.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data_str = line[len("data:"):].strip()
    if data_str == "[DONE]":
        return ""
    try:
        chunk = json.loads(data_str)
    except json.JSONDecodeError:
        logger.warning(f"Failed to decode stream data JSON: {data_str[:200]}")
        return None
    if isinstance(chunk, dict):
        value = chunk.get("response")
        if isinstance(value, str) and value:
            return value
    return None


class WorkersAIProvider(BaseProvider):
    """
    RecipeCore provider for the Cloudflare Workers AI REST API.
    """
    _session: Optional[aiohttp.ClientSession] = None

    def __init__(self, config: Dict[str, Any], log_raw_payloads: bool = False):
        """
        Initializes the WorkersAIProvider.

        Args:
            config: Configuration dictionary containing:
                    'api_key': API token. Defaults to env var CLOUDFLARE_API_TOKEN.
                    'account_id': Account identifier. Defaults to env var CLOUDFLARE_ACCOUNT_ID.
                    'base_url' (optional): API root (default: the public Cloudflare API).
                    'timeout' (optional): Request timeout in seconds (default: 60).
            log_raw_payloads: Whether to log raw request/response payloads.
        """
        super().__init__(config, log_raw_payloads)
        self.api_key = config.get('api_key') or os.environ.get('CLOUDFLARE_API_TOKEN')
        self.account_id = config.get('account_id') or os.environ.get('CLOUDFLARE_ACCOUNT_ID')
        self.base_url = (config.get('base_url') or DEFAULT_WORKERS_AI_BASE_URL).rstrip('/')
        self.timeout = float(config.get('timeout') or 60.0)

        if not self.account_id:
            raise ConfigError("WorkersAIProvider requires 'account_id' (or CLOUDFLARE_ACCOUNT_ID).")
        if not self.api_key:
            logger.warning("Workers AI API token not found in config or CLOUDFLARE_API_TOKEN. "
                           "Requests will be rejected until it is set.")

        logger.info(f"WorkersAIProvider configured for account '{self.account_id}' at {self.base_url}")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Gets or creates the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            logger.debug("Created new aiohttp.ClientSession for WorkersAIProvider.")
        return self._session

    def _stream_timeout(self) -> aiohttp.ClientTimeout:
        # A stream may run for minutes; only a stalled connection counts as a timeout.
        return aiohttp.ClientTimeout(total=None, sock_connect=self.timeout, sock_read=self.timeout)

    def get_name(self) -> str:
        return "workers_ai"

    def _run_url(self, model: str) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/ai/run/{model}"

    async def chat_completion(
        self,
        context: ContextPayload,
        model: Optional[str] = None,
        stream: bool = False,
        **kwargs: Any
    ) -> Union[str, AsyncIterator[str]]:
        """
        Runs the model on the given message sequence.

        Raises:
            ProviderError: On HTTP errors, timeouts or connection failures.
            EmptyResponseError: If a non-streaming answer carries no text.
        """
        if not model:
            raise ProviderError(self.get_name(), "A model identifier is required.")
        if not context:
            raise ProviderError(self.get_name(), "No messages to send.")

        payload: Dict[str, Any] = {"messages": self._messages_payload(context), **kwargs}
        if stream:
            payload["stream"] = True
        target_url = self._run_url(model)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW LLM REQUEST ({self.get_name()} @ {model}): {json.dumps(payload, indent=2)}")
        logger.debug(f"Sending request to Workers AI: model='{model}', stream={stream}, num_messages={len(context)}")

        if stream:
            return self._stream(target_url, headers, payload, model)

        session = await self._get_session()
        try:
            async with session.post(target_url, json=payload, headers=headers) as response:
                if response.status >= 400:
                    error_detail = await response.text()
                    logger.error(f"Workers AI request failed: {response.status} {error_detail[:500]}")
                    raise ProviderError(self.get_name(), f"Server Error ({response.status}): {error_detail[:500]}")
                response_json = await response.json(content_type=None)
        except ProviderError:
            raise
        except asyncio.TimeoutError:
            logger.error(f"Request to Workers AI at {target_url} timed out after {self.timeout} seconds.")
            raise ProviderError(self.get_name(), f"Request timed out after {self.timeout}s.")
        except aiohttp.ClientError as e:
            logger.error(f"Could not reach Workers AI at {target_url}: {e}", exc_info=True)
            raise ProviderError(self.get_name(), f"Connection error: {e}")

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW LLM RESPONSE ({self.get_name()} @ {model}): {json.dumps(response_json)[:4000]}")

        if isinstance(response_json, dict) and response_json.get("success") is False:
            errors = response_json.get("errors") or []
            raise ProviderError(self.get_name(), f"API reported failure: {errors}")

        text = extract_text(response_json)
        if not text:
            raise EmptyResponseError(self.get_name(), f"Model '{model}' returned no text.")
        return text

    async def _stream(
        self,
        target_url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        model: str,
    ) -> AsyncIterator[str]:
        """Streams text deltas; the HTTP response stays open until the iterator finishes."""
        session = await self._get_session()
        try:
            async with session.post(target_url, json=payload, headers=headers, timeout=self._stream_timeout()) as response:
                if response.status >= 400:
                    error_detail = await response.text()
                    logger.error(f"Workers AI stream request failed: {response.status} {error_detail[:500]}")
                    raise ProviderError(self.get_name(), f"Server Error ({response.status}): {error_detail[:500]}")
                async for raw_line in response.content:
                    line = raw_line.decode('utf-8', errors='replace')
                    if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
                        logger.debug(f"RAW LLM STREAM CHUNK ({self.get_name()} @ {model}): {line.strip()}")
                    delta = parse_sse_line(line)
                    if delta is None:
                        continue
                    if delta == "":
                        logger.debug("Received stream [DONE] marker.")
                        break
                    yield delta
        except ProviderError:
            raise
        except asyncio.TimeoutError:
            logger.error(f"Workers AI stream from {target_url} stalled for more than {self.timeout} seconds.")
            raise ProviderError(self.get_name(), f"Stream stalled for more than {self.timeout}s.")
        except aiohttp.ClientError as e:
            logger.error(f"Stream error from Workers AI at {target_url}: {e}", exc_info=True)
            raise ProviderError(self.get_name(), f"Stream error: {e}")

    async def close(self) -> None:
        """Closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.info("WorkersAIProvider aiohttp session closed.")
        self._session = None
