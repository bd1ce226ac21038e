# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential rotation.

A CredentialSource knows how to obtain a fresh API key (by driving the web
console, or by asking the user). CredentialRotator wraps a source with the
store so that concurrent callers share one rotation and the new key is
persisted before anyone uses it.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Union

from ..core.waiting import Waiter
from ..core.types import StatusLevel
from ..error_handler import RotationFailedError, mask_credential
from .store import CredentialStore

lib_logger = logging.getLogger("answer_engine")


class CredentialSource(ABC):
    """Something that can hand out a replacement API key."""

    @abstractmethod
    async def request_rotated_credential(self, waiter: Waiter) -> str:
        """
        Obtain a new credential.

        Args:
            waiter: Status reporting and cancellable waits for the caller

        Returns:
            The new API key

        Raises:
            RotationFailedError: The source could not produce a key.
            RotationTimeoutError: The source gave up waiting.
            RequestCancelledError: The caller cancelled.
        """


KeyPrompt = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class ManualCredentialSource(CredentialSource):
    """Asks the user for a new key through a host-supplied prompt."""

    def __init__(self, prompt: KeyPrompt):
        self._prompt = prompt

    async def request_rotated_credential(self, waiter: Waiter) -> str:
        await waiter.report(
            "API key exhausted. Please enter a new API key.",
            StatusLevel.ACTION,
            stage="manual key entry",
        )
        key = self._prompt()
        if inspect.isawaitable(key):
            key = await key
        if not key or not key.strip():
            raise RotationFailedError("No replacement API key was provided")
        return key.strip()


class CredentialRotator:
    """
    Serializes rotations and persists the result.

    If the stored key already differs from the one the caller found exhausted,
    another rotation won the race and its key is returned without rotating
    again.
    """

    def __init__(self, source: CredentialSource, store: CredentialStore):
        self.source = source
        self.store = store
        self._lock = asyncio.Lock()

    async def rotate(self, stale_credential: Optional[str], waiter: Waiter) -> str:
        async with self._lock:
            current = await self.store.get()
            if current and current != stale_credential:
                lib_logger.info(
                    f"Credential already rotated to {mask_credential(current)}; reusing it"
                )
                return current

            lib_logger.info(
                f"Rotating credential {mask_credential(stale_credential)} "
                f"via {type(self.source).__name__}"
            )
            new_credential = await self.source.request_rotated_credential(waiter)
            if not new_credential or not new_credential.strip():
                raise RotationFailedError("Credential rotation produced an empty key")
            new_credential = new_credential.strip()

            if not await self.store.set(new_credential):
                lib_logger.warning(
                    "Rotated credential could not be persisted; using it for this session only"
                )
            return new_credential
