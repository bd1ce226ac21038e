# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Single-value credential persistence.

The API key lives under one name in a small JSON file. Reads go to disk every
time so a key saved by another process (or the settings page) is picked up
before the next request.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..core.constants import CREDENTIAL_KEY
from ..error_handler import mask_credential

lib_logger = logging.getLogger("answer_engine")


class CredentialStore:
    """
    JSON key-value file holding the current API key.

    Writes are serialized with an asyncio.Lock and land atomically
    (temp file + rename). Other keys already in the file are preserved.
    """

    def __init__(self, path: Union[str, Path], key: str = CREDENTIAL_KEY):
        self.path = Path(path)
        self.key = key
        self._lock = asyncio.Lock()

    async def get(self) -> Optional[str]:
        """Return the stored credential, or None if unset or unreadable."""
        value = self._read().get(self.key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    async def set(self, value: str) -> bool:
        """
        Persist a new credential.

        Args:
            value: API key to store

        Returns:
            True if saved successfully, False otherwise
        """
        async with self._lock:
            data = self._read()
            data[self.key] = value.strip()
            saved = self._write(data)
        if saved:
            lib_logger.info(f"Saved credential {mask_credential(value)} to {self.path}")
        return saved

    async def clear(self) -> bool:
        async with self._lock:
            data = self._read()
            if self.key not in data:
                return True
            del data[self.key]
            return self._write(data)

    # =========================================================================
    # FILE I/O
    # =========================================================================

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            lib_logger.warning(f"Failed to read credential file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            lib_logger.warning(f"Credential file {self.path} is not a JSON object")
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            # Write atomically
            temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)

            temp_path.replace(self.path)
            return True
        except OSError as e:
            lib_logger.error(f"Failed to save credential file {self.path}: {e}")
            return False
