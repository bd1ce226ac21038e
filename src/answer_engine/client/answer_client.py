# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Public entry point for answering quiz questions.

AnswerClient wires the prompt formatter, pacer, retry executor, provider and
credential rotation together and owns the shared httpx.AsyncClient.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Union

import httpx

from ..core.config import ConfigLoader
from ..core.types import AnswerResult, EngineConfig, KeyValidation, QuestionRecord
from ..core.waiting import StatusCallback, Waiter
from ..credentials.rotation import CredentialRotator, CredentialSource
from ..credentials.store import CredentialStore
from ..error_handler import MissingCredentialError, mask_credential
from ..providers.gemini_provider import GeminiProvider
from .executor import RequestExecutor
from .models import ModelRoster
from .pacer import RatePacer
from .policy import RotationPolicy
from .prompt import format_question_prompt
from .types import RetrySession

lib_logger = logging.getLogger("answer_engine")

QuestionInput = Union[QuestionRecord, Dict[str, Any]]


class AnswerClient:
    """
    Asks Gemini for quiz answers, riding out rate limits and dead keys.

    Usage:
        async with AnswerClient(credential_source=source) as client:
            result = await client.process_question(record, on_status=show)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional[CredentialStore] = None,
        credential_source: Optional[CredentialSource] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        pacer: Optional[RatePacer] = None,
    ):
        """
        Initialize the AnswerClient.

        Args:
            config: Engine configuration (defaults to ConfigLoader().load())
            store: Credential store (defaults to the configured credential file)
            credential_source: Where replacement keys come from. Without one,
                exhausted or invalid keys surface as ApiError.
            http_client: Shared HTTP client; created (and closed) here if omitted
            pacer: Request pacer (defaults to config.min_request_interval)
        """
        self.config = config or ConfigLoader().load()
        self.roster = ModelRoster.from_config(self.config)
        self.store = store or CredentialStore(self.config.credential_file)
        self.rotator = (
            CredentialRotator(credential_source, self.store)
            if credential_source is not None
            else None
        )

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()
        self.provider = GeminiProvider(self.config, self.http_client)

        self.executor = RequestExecutor(
            self.config,
            self.provider,
            self.roster,
            policy=RotationPolicy(self.config.exhaustion_multiplier),
            pacer=pacer or RatePacer(self.config.min_request_interval),
            rotator=self.rotator,
        )

        # Model the previous call ended on; the next call starts there
        self._model_index = 0
        self._processing_lock = asyncio.Lock()

    @property
    def current_model(self) -> str:
        return self.roster[self._model_index]

    @property
    def is_processing(self) -> bool:
        return self._processing_lock.locked()

    async def ask_model(
        self,
        question: QuestionInput,
        credential: Optional[str] = None,
        on_status: Optional[StatusCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        waiter: Optional[Waiter] = None,
    ) -> AnswerResult:
        """
        Answer one question.

        Args:
            question: QuestionRecord, or the scraper's dict shape
            credential: API key; read from the store when omitted
            on_status: Status callback; returning False cancels at the next wait
            cancel_event: Setting this cancels any pending wait
            waiter: Prebuilt Waiter (overrides on_status and cancel_event)

        Returns:
            AnswerResult

        Raises:
            MissingCredentialError: No credential given or stored.
            RequestCancelledError: Caller cancelled.
            ApiError, StoppedError, MalformedResponseError,
            RotationFailedError, RotationTimeoutError: Terminal failures.
        """
        record = (
            question
            if isinstance(question, QuestionRecord)
            else QuestionRecord.from_dict(question)
        )

        if not credential:
            credential = await self.store.get()
        if not credential:
            raise MissingCredentialError()

        waiter = waiter or Waiter(on_status=on_status, cancel_event=cancel_event)
        prompt = format_question_prompt(record)
        session = RetrySession(
            current_credential=credential, current_model_index=self._model_index
        )

        lib_logger.info(
            f"Asking {self.current_model} ({record.question_type.value}) "
            f"with key {mask_credential(credential)}"
        )
        try:
            result = await self.executor.execute(prompt, session, waiter)
        finally:
            self._model_index = self.roster.normalize(session.current_model_index)
            lib_logger.debug(f"Call finished: {session}")

        lib_logger.info(f"Answer received after {session.attempts} attempt(s)")
        return result

    async def process_question(
        self,
        question: QuestionInput,
        on_status: Optional[StatusCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        waiter: Optional[Waiter] = None,
    ) -> Optional[AnswerResult]:
        """
        Answer a question unless another one is already in flight.

        The credential is read from the store right before the request so a
        key saved in settings (or by a rotation) is always used.

        Returns:
            AnswerResult, or None if a question is already being processed
        """
        if self._processing_lock.locked():
            lib_logger.warning("Already processing a question. Ignoring submission")
            return None

        async with self._processing_lock:
            credential = await self.store.get()
            return await self.ask_model(
                question,
                credential=credential,
                on_status=on_status,
                cancel_event=cancel_event,
                waiter=waiter,
            )

    async def validate_api_key(self, credential: Optional[str] = None) -> KeyValidation:
        """Check a key (default: the stored one) against the first model."""
        if credential is None:
            credential = await self.store.get()
        return await self.provider.validate_api_key(credential, self.roster[0])

    async def save_api_key(self, credential: str) -> bool:
        return await self.store.set(credential)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client and self.http_client:
            await self.http_client.aclose()


async def ask_model(
    question: QuestionInput,
    credential: str,
    on_status: Optional[StatusCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
    config: Optional[EngineConfig] = None,
    credential_source: Optional[CredentialSource] = None,
) -> AnswerResult:
    """One-shot helper: answer a single question with a throwaway client."""
    async with AnswerClient(config=config, credential_source=credential_source) as client:
        return await client.ask_model(
            question,
            credential=credential,
            on_status=on_status,
            cancel_event=cancel_event,
        )
