# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/answer_engine/providers/gemini_provider.py
"""
Gemini generateContent transport.

One request per call. No retry logic lives here: the provider reports the
HTTP status and decoded body, and transport failures propagate as
httpx.RequestError for the executor to classify.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..core.types import EngineConfig, KeyValidation
from ..error_handler import extract_error_message, mask_credential
from .utilities.gemini_shared_utils import build_generate_payload
from .utilities.gemini_file_logger import TransactionFileLogger

lib_logger = logging.getLogger("answer_engine")

VALIDATION_TIMEOUT = 20.0


@dataclass
class ProviderResponse:
    """Raw outcome of one generateContent request."""

    status_code: int
    payload: Optional[Dict[str, Any]]
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class GeminiProvider:
    """
    Thin async client for the Gemini REST API.

    The httpx.AsyncClient is supplied by the owner (AnswerClient) so tests can
    hand in one backed by httpx.MockTransport.
    """

    def __init__(self, config: EngineConfig, http_client: httpx.AsyncClient):
        self._config = config
        self._http = http_client

    def generate_url(self, model: str) -> str:
        return f"{self._config.api_base}/models/{model}:generateContent"

    def model_url(self, model: str) -> str:
        return f"{self._config.api_base}/models/{model}"

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return build_generate_payload(
            prompt,
            temperature=self._config.temperature,
            max_output_tokens=self._config.max_output_tokens,
        )

    async def generate(
        self,
        model: str,
        credential: str,
        prompt: str,
        file_logger: Optional[TransactionFileLogger] = None,
    ) -> ProviderResponse:
        """
        POST one generateContent request.

        Args:
            model: Model identifier from the roster
            credential: API key, sent as the ``key`` query parameter
            prompt: Formatted prompt text
            file_logger: Optional transaction logger for this attempt

        Returns:
            ProviderResponse with the decoded JSON body (None if not JSON)

        Raises:
            httpx.RequestError: Transport failure (DNS, connect, timeout...)
        """
        payload = self.build_payload(prompt)
        if file_logger:
            file_logger.log_request(payload)

        lib_logger.debug(
            f"Gemini request: model={model} key={mask_credential(credential)} "
            f"prompt_chars={len(prompt)}"
        )

        response = await self._http.post(
            self.generate_url(model),
            params={"key": credential},
            json=payload,
            timeout=self._config.request_timeout,
        )

        body = self._decode(response)
        lib_logger.debug(f"Gemini response: model={model} status={response.status_code}")

        if file_logger:
            if body is not None:
                file_logger.log_final_response(body)
            if response.status_code >= 400:
                file_logger.log_error(
                    f"HTTP {response.status_code}: {extract_error_message(body) or response.text}"
                )

        return ProviderResponse(
            status_code=response.status_code, payload=body, text=response.text
        )

    async def validate_api_key(
        self, credential: Optional[str], model: Optional[str] = None
    ) -> KeyValidation:
        """
        Check a credential by fetching a model's metadata.

        Args:
            credential: API key to test
            model: Model to look up (defaults to the first configured model)

        Returns:
            KeyValidation(valid, error)
        """
        if not credential or not credential.strip():
            return KeyValidation(valid=False, error="API key is required")

        target = model or self._config.models[0]
        try:
            response = await self._http.get(
                self.model_url(target),
                params={"key": credential},
                timeout=VALIDATION_TIMEOUT,
            )
        except httpx.RequestError as e:
            lib_logger.warning(f"Key validation network error: {e}")
            return KeyValidation(valid=False, error=f"Network error: {e}")

        if response.is_success:
            lib_logger.info(f"API key {mask_credential(credential)} validated")
            return KeyValidation(valid=True)

        if response.status_code == 400:
            message = extract_error_message(self._decode(response))
            return KeyValidation(valid=False, error=message or "Invalid API key")
        if response.status_code == 403:
            return KeyValidation(
                valid=False, error="API key is invalid or doesn't have permission"
            )
        return KeyValidation(
            valid=False,
            error=f"Validation failed with status {response.status_code}",
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Optional[Dict[str, Any]]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
