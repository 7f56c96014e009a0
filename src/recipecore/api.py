# src/recipecore/api.py
"""
Core API Facade for the RecipeCore library.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import (Any, AsyncIterator, Dict, List, Optional, Sequence, Set,
                    Tuple, Union)

from .config.settings import RecipeCoreSettings, load_settings
from .exceptions import EmptyInputError, StreamTapError
from .generation.continuation import ContinuationController
from .generation.fallback import FallbackPolicy
from .generation.routing import resolve_model
from .generation.stream_tap import StreamTap
from .models import GenerationRequest, GenerationResult, Message
from .observability.metrics import stream_fallbacks_total
from .prompts import VARIANT_PROMPTS, variant_constraints
from .providers.base import BaseProvider
from .providers.manager import ProviderManager
from .sessions.memory import SessionMemory
from .storage.base_session import BaseSessionStorage
from .storage.manager import StorageManager

logger = logging.getLogger(__name__)

STREAM_FALLBACK_NOTE = "Stream fallback used."


@dataclass
class GenerationStream:
    """
    A live generation.

    Attributes:
        model_used: The model producing the stream.
        chunks: The caller's cursor over the text deltas.
        persisted: Task resolving to the committed text, or None if the
                   stream failed midway and nothing was committed.
    """
    model_used: str
    chunks: AsyncIterator[str]
    persisted: "asyncio.Task[Optional[str]]"


class RecipeCore:
    """
    Main entry point for recipe generation.

    Owns the provider, the session store and the orchestration components,
    and exposes the generation operations. It is initialized asynchronously
    using the `RecipeCore.create()` classmethod.
    """
    settings: RecipeCoreSettings
    _provider_manager: ProviderManager
    _storage_manager: StorageManager
    _memory: SessionMemory
    _controller: ContinuationController
    _fallback_policy: FallbackPolicy
    _pending_persists: Set["asyncio.Task[Any]"]

    def __init__(self):
        """
        Private constructor. Use `RecipeCore.create()` for initialization.
        """
        self._pending_persists = set()

    @classmethod
    async def create(
        cls,
        settings: Optional[RecipeCoreSettings] = None,
        config_file_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        provider: Optional[BaseProvider] = None,
        storage: Optional[BaseSessionStorage] = None,
    ) -> "RecipeCore":
        """
        Asynchronously creates and initializes a RecipeCore instance.

        Args:
            settings: Ready-made settings; when omitted they are loaded from
                      ``config_file_path``, the environment and ``overrides``.
            provider: Optional provider instance replacing the configured one.
            storage: Optional (uninitialized) session store replacing the configured one.

        Raises:
            ConfigError: If configuration is invalid or a component cannot be built.
            StorageError: If the session store cannot be initialized.
        """
        instance = cls()
        instance.settings = settings or load_settings(config_file_path=config_file_path, overrides=overrides)
        await instance._initialize(provider, storage)
        return instance

    async def _initialize(self, provider: Optional[BaseProvider], storage: Optional[BaseSessionStorage]) -> None:
        logger.info("Initializing RecipeCore components from configuration...")
        self._provider_manager = ProviderManager(self.settings.provider, provider=provider)
        self._storage_manager = StorageManager(self.settings.storage, storage=storage)
        await self._storage_manager.initialize_storages()
        self._memory = SessionMemory(
            self._storage_manager.get_session_storage(),
            sentinel=self.settings.generation.completion_sentinel,
            storage_type=self._storage_manager.storage_type,
        )
        self._controller = ContinuationController(self._provider_manager.get_provider(), self.settings.generation)
        self._fallback_policy = FallbackPolicy(self._controller)
        logger.info("RecipeCore components initialization complete.")

    def _prepare(
        self,
        session_id: str,
        raw_inputs: Sequence[str],
        constraints: Optional[str],
        model_id: Optional[str],
    ) -> Tuple[str, Message]:
        request = GenerationRequest(
            session_id=session_id,
            raw_inputs=list(raw_inputs or []),
            constraints=constraints,
            model_id=model_id,
        )
        inputs = request.cleaned_inputs
        if not inputs:
            raise EmptyInputError()
        gen = self.settings.generation
        model = resolve_model(request.model_id, gen.supported_models, gen.default_model)
        user_msg = self._memory.build_user_message(inputs, request.cleaned_constraints)
        return model, user_msg

    async def generate(
        self,
        session_id: str,
        raw_inputs: Sequence[str],
        constraints: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generates one complete recipe and records the exchange in the session history.

        Raises:
            EmptyInputError: If no non-blank input remains; raised before any I/O.
            UpstreamError: If both the requested and the fallback model fail.
        """
        model, user_msg = self._prepare(session_id, raw_inputs, constraints, model_id)
        history = await self._memory.load_history(session_id)
        sequence = self._memory.build_sequence(history, user_msg)

        result = await self._fallback_policy.run(model, self.settings.generation.fallback_model, sequence)
        await self._memory.commit(session_id, user_msg, Message.assistant(result.text))
        logger.info(f"Generated recipe for session '{session_id}' with '{result.model_used}' "
                    f"({result.rounds} round(s), fallback={result.used_fallback}).")
        return result

    async def generate_streaming(
        self,
        session_id: str,
        raw_inputs: Sequence[str],
        constraints: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> Union[GenerationStream, GenerationResult]:
        """
        Starts a streamed generation.

        Returns a GenerationStream once the first chunk is available. If the
        stream fails or stays empty before that, the request is served by the
        materialized path instead and a GenerationResult is returned with the
        note "Stream fallback used.". The exchange is committed once the full
        text is known, even if the caller stops reading early.

        Raises:
            EmptyInputError: If no non-blank input remains.
            UpstreamError: If the stream fell back and the materialized path failed too.
        """
        model, user_msg = self._prepare(session_id, raw_inputs, constraints, model_id)
        history = await self._memory.load_history(session_id)
        sequence = self._memory.build_sequence(history, user_msg)

        async def persist(text: str) -> None:
            cleaned = text.strip()
            if not cleaned:
                logger.warning(f"Streamed answer for session '{session_id}' was blank; nothing committed.")
                return
            await self._memory.commit(session_id, user_msg, Message.assistant(cleaned))

        tap = StreamTap(self._controller.stream(sequence, model), on_complete=persist)
        try:
            await tap.prime()
        except StreamTapError as e:
            stream_fallbacks_total.inc()
            logger.warning(f"Stream for '{model}' failed before the first chunk ({e}); serving materialized answer.")
            result = await self._fallback_policy.run(model, self.settings.generation.fallback_model, sequence)
            await self._memory.commit(session_id, user_msg, Message.assistant(result.text))
            return result.model_copy(update={"note": STREAM_FALLBACK_NOTE})

        persisted = tap.completion
        self._pending_persists.add(persisted)
        persisted.add_done_callback(self._pending_persists.discard)
        return GenerationStream(model_used=model, chunks=tap.caller_stream(), persisted=persisted)

    async def generate_variants(
        self,
        session_id: str,
        raw_inputs: Sequence[str],
        constraints: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> Dict[str, Union[GenerationResult, BaseException]]:
        """
        Generates the quick, balanced and gourmet variants concurrently.

        Each variant is an independent request: one failing does not affect
        the others, and its exception is returned in place of a result.

        Raises:
            EmptyInputError: If no non-blank input remains; no variant is started.
        """
        self._prepare(session_id, raw_inputs, constraints, model_id)
        names = list(VARIANT_PROMPTS)
        outcomes = await asyncio.gather(
            *(self.generate(session_id, raw_inputs, variant_constraints(name, constraints), model_id) for name in names),
            return_exceptions=True,
        )
        return dict(zip(names, outcomes))

    async def reset(self, session_id: str) -> bool:
        """Forgets the conversation history of a session."""
        return await self._memory.reset(session_id)

    async def get_history(self, session_id: str) -> List[Message]:
        return await self._memory.load_history(session_id)

    def get_provider_name(self) -> str:
        return self._provider_manager.get_provider().get_name()

    async def close(self):
        """Waits for pending history commits, then closes provider and storage."""
        logger.info("Closing RecipeCore resources...")
        if self._pending_persists:
            logger.info(f"Waiting for {len(self._pending_persists)} pending history commit(s)...")
            await asyncio.gather(*list(self._pending_persists), return_exceptions=True)
        await asyncio.gather(
            self._provider_manager.close_all(),
            self._storage_manager.close_storages(),
            return_exceptions=True
        )
        logger.info("RecipeCore resources cleanup complete.")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
