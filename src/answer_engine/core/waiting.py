# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Status reporting and cancellable waits.

Every suspension point in the retry machine goes through a Waiter so the
caller can cancel: either the status callback returns False, or the
caller's cancel event is set while a wait is pending.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from .types import StatusLevel, StatusUpdate
from ..error_handler import RequestCancelledError

lib_logger = logging.getLogger("answer_engine")

StatusCallback = Callable[
    [StatusUpdate], Union[Optional[bool], Awaitable[Optional[bool]]]
]


class Waiter:
    """
    Pairs the caller's status callback with its cancel event.

    Subclasses may override ``_sleep`` (tests record durations instead of
    sleeping).
    """

    def __init__(
        self,
        on_status: Optional[StatusCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self._on_status = on_status
        self._cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def check_cancelled(self, stage: str) -> None:
        """
        Raises:
            RequestCancelledError: The cancel event is set.
        """
        if self.cancelled:
            raise RequestCancelledError(stage)

    async def report(
        self,
        message: str,
        level: StatusLevel = StatusLevel.INFO,
        stage: Optional[str] = None,
    ) -> None:
        """
        Send a status update to the caller.

        Args:
            message: Text shown to the user
            level: Severity
            stage: When given, a False reply from the callback cancels the
                request; otherwise the reply is ignored.

        Raises:
            RequestCancelledError: Callback returned False for a cancellable stage.
        """
        lib_logger.debug(f"Status [{level.value}]: {message}")
        if self._on_status is None:
            return

        result = self._on_status(StatusUpdate(message=message, level=level))
        if inspect.isawaitable(result):
            result = await result

        if stage is not None and result is False:
            lib_logger.info(f"Request cancelled by status callback during {stage}")
            raise RequestCancelledError(stage)

    async def wait(self, seconds: float, stage: str) -> None:
        """
        Suspend for ``seconds`` unless cancelled first.

        Raises:
            RequestCancelledError: Cancel event set before or during the wait.
        """
        self.check_cancelled(stage)
        if seconds > 0:
            await self._sleep(seconds)
        self.check_cancelled(stage)

    async def _sleep(self, seconds: float) -> None:
        if self._cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
