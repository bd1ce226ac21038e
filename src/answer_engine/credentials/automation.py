# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Automated key rotation through the AI Studio web console.

The host controls a browser tab; an agent script injected into the console
pages does the clicking. This module only sequences the two stages and polls
the agent:

1. Open the projects page, poll ``performProjectCleanup`` until it succeeds.
2. Navigate to the key page, poll ``performKeyRotation`` until it returns
   ``{"success": true, "apiKey": ...}``.

Each stage polls every ``poll_interval`` seconds, at most ``max_polls`` times.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..core.waiting import Waiter
from ..core.constants import (
    AGENT_KEY_ROTATION,
    AGENT_PROJECT_CLEANUP,
    DEFAULT_KEYS_URL,
    DEFAULT_PROJECTS_URL,
    DEFAULT_ROTATION_MAX_POLLS,
    DEFAULT_ROTATION_POLL_INTERVAL,
)
from ..core.types import EngineConfig, StatusLevel
from ..error_handler import RotationFailedError, RotationTimeoutError, mask_credential
from .rotation import CredentialSource

lib_logger = logging.getLogger("answer_engine")


class AutomationSurface(ABC):
    """Host-side browser control used by ConsoleAutomationSource."""

    @abstractmethod
    async def open_tab(self, url: str) -> Any:
        """Open ``url`` in a new tab and return an opaque tab handle."""

    @abstractmethod
    async def navigate(self, tab: Any, url: str) -> None:
        """Point an existing tab at ``url``."""

    @abstractmethod
    async def send_message(
        self, tab: Any, message: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Deliver a message to the page agent.

        Returns:
            The agent's reply, or None when no agent is listening yet
            (page still loading).
        """

    @abstractmethod
    async def close_tab(self, tab: Any) -> None:
        pass


class ConsoleAutomationSource(CredentialSource):
    """Rotates the API key by driving the web console through its page agent."""

    def __init__(
        self,
        surface: AutomationSurface,
        projects_url: str = DEFAULT_PROJECTS_URL,
        keys_url: str = DEFAULT_KEYS_URL,
        poll_interval: float = DEFAULT_ROTATION_POLL_INTERVAL,
        max_polls: int = DEFAULT_ROTATION_MAX_POLLS,
    ):
        self.surface = surface
        self.projects_url = projects_url
        self.keys_url = keys_url
        self.poll_interval = poll_interval
        self.max_polls = max_polls

    @classmethod
    def from_config(
        cls, surface: AutomationSurface, config: EngineConfig
    ) -> "ConsoleAutomationSource":
        return cls(
            surface,
            projects_url=config.projects_url,
            keys_url=config.keys_url,
            poll_interval=config.rotation_poll_interval,
            max_polls=config.rotation_max_polls,
        )

    async def request_rotated_credential(self, waiter: Waiter) -> str:
        await waiter.report(
            "Opening AI Studio to rotate key...",
            StatusLevel.ACTION,
        )
        tab = await self.surface.open_tab(self.projects_url)

        await self._poll_agent(
            tab, AGENT_PROJECT_CLEANUP, "project cleanup", waiter
        )
        lib_logger.info("Project cleanup finished. Proceeding to key rotation")

        await self.surface.navigate(tab, self.keys_url)
        reply = await self._poll_agent(
            tab, AGENT_KEY_ROTATION, "key rotation script", waiter
        )

        api_key = reply["apiKey"]
        lib_logger.info(f"Key rotation produced {mask_credential(api_key)}")
        await self.surface.close_tab(tab)
        return api_key

    async def _poll_agent(
        self, tab: Any, message_type: str, stage: str, waiter: Waiter
    ) -> Dict[str, Any]:
        """
        Poll the page agent until it reports success.

        Returns:
            The successful reply

        Raises:
            RotationFailedError: Agent replied with an error.
            RotationTimeoutError: No success within max_polls.
            RequestCancelledError: Caller cancelled between polls.
        """
        needs_key = message_type == AGENT_KEY_ROTATION

        for poll in range(1, self.max_polls + 1):
            await waiter.wait(self.poll_interval, stage=stage)

            reply = await self.surface.send_message(tab, {"type": message_type})
            if reply is None:
                lib_logger.debug(f"Waiting for {stage} ({poll}/{self.max_polls})...")
                continue

            if reply.get("busy"):
                lib_logger.debug(f"Agent busy during {stage} ({poll}/{self.max_polls})")
                continue

            if reply.get("success") and (not needs_key or reply.get("apiKey")):
                return reply

            error = reply.get("error")
            if error:
                lib_logger.error(f"{stage.capitalize()} failed: {error}")
                raise RotationFailedError(str(error))

        lib_logger.error(f"Timeout waiting for {stage} after {self.max_polls} polls")
        raise RotationTimeoutError(stage, self.max_polls)
