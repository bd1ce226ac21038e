# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Request execution with retry, model failover and credential rotation.

One call to RequestExecutor.execute() drives a RetrySession through as many
attempts as it takes:

- 429: one grace wait on the same model, then switch models; once every
  model has been switched through ``exhaustion_multiplier`` times, rotate
  the credential and start the counters over.
- 500/503, transport failures and MAX_TOKENS truncation: exponential backoff
  on the same model.
- 400 with an invalid-key message: rotate the credential.
- Anything else: surface to the caller.
"""

import logging
import math
from typing import Optional, Tuple

import httpx

from ..core.types import AnswerResult, EngineConfig, StatusLevel
from ..core.constants import RATE_LIMIT_HINT_BUFFER
from ..core.waiting import Waiter
from ..credentials.rotation import CredentialRotator
from ..error_handler import (
    ClassifiedError,
    MalformedResponseError,
    RateLimitedError,
    RotationFailedError,
    ServerError,
    StoppedError,
    classify_exception,
    classify_response,
    mask_credential,
    to_api_error,
)
from ..providers.gemini_provider import GeminiProvider, ProviderResponse
from ..providers.utilities.gemini_file_logger import TransactionFileLogger
from ..providers.utilities.gemini_shared_utils import (
    FINISH_REASON_MAX_TOKENS,
    FINISH_REASON_STOP,
    describe_finish_reason,
    extract_candidate,
)
from .models import ModelRoster
from .pacer import RatePacer
from .parser import parse_answer
from .policy import RotationPolicy
from .types import AttemptOutcome, RateLimitAction, RetrySession

lib_logger = logging.getLogger("answer_engine")


class RequestExecutor:
    """
    Runs the retry state machine for one prompt.

    The loop is explicit: each pass sends one request, classifies the outcome
    and either returns, raises a terminal error, or mutates the session and
    goes round again.
    """

    def __init__(
        self,
        config: EngineConfig,
        provider: GeminiProvider,
        roster: ModelRoster,
        policy: Optional[RotationPolicy] = None,
        pacer: Optional[RatePacer] = None,
        rotator: Optional[CredentialRotator] = None,
    ):
        self._config = config
        self._provider = provider
        self._roster = roster
        self._policy = policy or RotationPolicy(config.exhaustion_multiplier)
        self._pacer = pacer or RatePacer(config.min_request_interval)
        self._rotator = rotator

    async def execute(
        self, prompt: str, session: RetrySession, waiter: Waiter
    ) -> AnswerResult:
        """
        Send ``prompt`` until it yields an answer or a terminal error.

        Args:
            prompt: Formatted prompt text
            session: Counters for this call (mutated in place)
            waiter: Status reporting and cancellation for the caller

        Returns:
            AnswerResult

        Raises:
            RequestCancelledError: Caller cancelled at a suspension point.
            ApiError: Non-retriable provider error, or retries ran out.
            StoppedError: Generation stopped for a non-STOP reason.
            MalformedResponseError: Completion had no usable answer.
            RotationFailedError, RotationTimeoutError: Rotation failed.
        """
        while True:
            await self._pacer.acquire(waiter)
            waiter.check_cancelled("request")

            session.current_model_index = self._roster.normalize(
                session.current_model_index
            )
            model = self._roster[session.current_model_index]
            session.attempts += 1
            lib_logger.debug(f"Attempt on {model}: {session}")

            file_logger = TransactionFileLogger(
                model,
                enabled=self._config.transaction_logs,
                logs_dir=self._config.logs_dir,
                attempt=session.attempts,
            )

            try:
                response = await self._provider.generate(
                    model, session.current_credential, prompt, file_logger
                )
            except httpx.RequestError as e:
                classified = classify_exception(e)
                session.last_error = e
                lib_logger.warning(f"Network error on {model}: {classified.message}")
                file_logger.log_error(f"Network error: {classified.message}")
                if session.retry_count >= self._config.max_retries:
                    raise to_api_error(classified) from e
                await self._backoff(
                    session, waiter, "Network error. Retrying...", "network retry"
                )
                continue

            outcome, classified = self._classify(response)

            if outcome == AttemptOutcome.SUCCESS:
                return self._parse(response)

            if outcome == AttemptOutcome.TRUNCATED:
                session.last_error = StoppedError(FINISH_REASON_MAX_TOKENS, response.payload)
                lib_logger.warning(f"Response truncated (MAX_TOKENS) on {model}")
                if session.retry_count >= self._config.max_retries:
                    raise session.last_error
                await self._backoff(
                    session,
                    waiter,
                    "Response truncated (Max Tokens). Retrying...",
                    "truncation retry",
                )
                continue

            if outcome == AttemptOutcome.STOPPED:
                _, finish_reason = extract_candidate(response.payload or {})
                lib_logger.error(
                    f"Generation on {model} stopped: {describe_finish_reason(finish_reason)}"
                )
                raise StoppedError(finish_reason, response.payload)

            if outcome == AttemptOutcome.RATE_LIMITED:
                session.last_error = RateLimitedError(
                    model, classified.message, classified.retry_after
                )
                if session.retry_count >= self._config.max_retries:
                    await self._report_terminal(waiter, classified)
                    raise to_api_error(classified) from session.last_error
                await self._handle_rate_limit(session, waiter, classified, model)
                continue

            if outcome == AttemptOutcome.SERVER_ERROR:
                session.last_error = ServerError(classified.status_code, classified.message)
                lib_logger.warning(
                    f"Server error ({classified.status_code}) on {model}. "
                    f"Retry {session.retry_count + 1}/{self._config.max_retries}"
                )
                if session.retry_count >= self._config.max_retries:
                    await self._report_terminal(waiter, classified)
                    raise to_api_error(classified) from session.last_error
                await self._backoff(
                    session,
                    waiter,
                    f"Server error ({classified.status_code}). Retrying...",
                    "server error wait",
                )
                continue

            if outcome == AttemptOutcome.INVALID_CREDENTIAL:
                lib_logger.warning(
                    f"Invalid/deleted key {mask_credential(session.current_credential)} detected"
                )
                await self._rotate_credential(
                    session,
                    waiter,
                    classified,
                    "Invalid API Key detected. Rotating key...",
                    "New key rotated. Retrying...",
                )
                continue

            # AttemptOutcome.API_ERROR
            await self._report_terminal(waiter, classified)
            raise to_api_error(classified)

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def _classify(
        self, response: ProviderResponse
    ) -> Tuple[AttemptOutcome, Optional[ClassifiedError]]:
        if not response.ok:
            classified = classify_response(response.status_code, response.payload)
            if classified.payload is None and response.text:
                classified.message = classified.message or response.text[:500]
            outcome = {
                ClassifiedError.RATE_LIMIT: AttemptOutcome.RATE_LIMITED,
                ClassifiedError.SERVER_ERROR: AttemptOutcome.SERVER_ERROR,
                ClassifiedError.INVALID_CREDENTIAL: AttemptOutcome.INVALID_CREDENTIAL,
            }.get(classified.error_type, AttemptOutcome.API_ERROR)
            return outcome, classified

        _, finish_reason = extract_candidate(response.payload or {})
        if finish_reason is None or finish_reason == FINISH_REASON_STOP:
            return AttemptOutcome.SUCCESS, None
        if finish_reason == FINISH_REASON_MAX_TOKENS:
            return AttemptOutcome.TRUNCATED, None
        return AttemptOutcome.STOPPED, None

    def _parse(self, response: ProviderResponse) -> AnswerResult:
        text, _ = extract_candidate(response.payload or {})
        if not text:
            lib_logger.error(f"Empty response from Gemini: {response.payload}")
            raise MalformedResponseError(
                "Empty response: no candidate text", raw_text=response.text
            )
        return parse_answer(text)

    # =========================================================================
    # RECOVERY ACTIONS
    # =========================================================================

    async def _handle_rate_limit(
        self,
        session: RetrySession,
        waiter: Waiter,
        classified: ClassifiedError,
        model: str,
    ) -> None:
        model_count = len(self._roster)
        action = self._policy.decide(
            session.is_same_model_retry, session.switch_count, model_count
        )

        if action == RateLimitAction.WAIT_SAME_MODEL:
            if classified.retry_after is not None:
                wait_time = classified.retry_after + RATE_LIMIT_HINT_BUFFER
                lib_logger.info(f"Server requested wait: {classified.retry_after}s")
            else:
                wait_time = self._config.rate_limit_wait
            lib_logger.warning(f"Rate limit on {model}. Waiting {wait_time}s")
            await waiter.report(
                f"Rate limit on {model}. Waiting {math.ceil(wait_time)}s...",
                StatusLevel.WARNING,
                stage="rate limit wait",
            )
            await waiter.wait(wait_time, stage="rate limit wait")
            session.is_same_model_retry = True
            return

        if action == RateLimitAction.ROTATE_CREDENTIAL:
            lib_logger.warning(
                f"All models exhausted after {session.switch_count} switches. "
                f"Initiating key rotation"
            )
            await self._rotate_credential(
                session,
                waiter,
                classified,
                "All models exhausted. Rotating API key...",
                "Key rotation successful. Resuming...",
            )
            return

        # RateLimitAction.SWITCH_MODEL
        session.current_model_index = self._roster.next_index(
            session.current_model_index
        )
        new_model = self._roster[session.current_model_index]
        limit = self._policy.switch_limit(model_count)
        lib_logger.info(f"Rate limit persists on {model}. Switching to {new_model}")
        await waiter.report(
            f"Rate limit persists. Switching to {new_model} "
            f"(Attempt {session.switch_count + 1}/{limit})...",
            StatusLevel.WARNING,
            stage="rate limit switch",
        )
        session.is_same_model_retry = False
        session.switch_count += 1
        await waiter.wait(self._config.model_switch_delay, stage="rate limit switch")

    async def _backoff(
        self, session: RetrySession, waiter: Waiter, message: str, stage: str
    ) -> None:
        """Exponential backoff that keeps the model and rate limit counters."""
        delay = self._config.retry_delay * (2 ** session.retry_count)
        lib_logger.warning(
            f"{message} (attempt {session.retry_count + 1}/{self._config.max_retries}, "
            f"waiting {delay}s)"
        )
        await waiter.report(message, StatusLevel.WARNING, stage=stage)
        await waiter.wait(delay, stage=stage)
        session.retry_count += 1

    async def _rotate_credential(
        self,
        session: RetrySession,
        waiter: Waiter,
        classified: ClassifiedError,
        start_message: str,
        done_message: str,
    ) -> None:
        if self._rotator is None:
            lib_logger.error("Credential rotation needed but no rotator is configured")
            await self._report_terminal(waiter, classified)
            raise to_api_error(classified)

        if session.rotations >= self._config.max_rotations:
            raise RotationFailedError(
                f"Gave up after {session.rotations} credential rotations"
            )

        await waiter.report(start_message, StatusLevel.ACTION)
        new_credential = await self._rotator.rotate(session.current_credential, waiter)

        session.rotations += 1
        session.current_credential = new_credential
        session.reset_counters()
        lib_logger.info(
            f"Resuming with credential {mask_credential(new_credential)} "
            f"(rotation {session.rotations}/{self._config.max_rotations})"
        )
        await waiter.report(done_message, StatusLevel.SUCCESS)

    async def _report_terminal(self, waiter: Waiter, classified: ClassifiedError) -> None:
        error = to_api_error(classified)
        lib_logger.error(f"Non-retriable error: {error}")
        await waiter.report(str(error), StatusLevel.ERROR)
