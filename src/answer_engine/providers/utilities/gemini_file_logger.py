# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/answer_engine/providers/utilities/gemini_file_logger.py
"""
Transaction file logger for Gemini requests.

Each attempt gets its own directory with separate files for the request,
the response and any error. Disabled loggers are no-ops.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ...utils.paths import get_logs_dir

lib_logger = logging.getLogger("answer_engine")

TRANSACTIONS_SUBDIR = "transactions"


class TransactionFileLogger:
    """
    Per-attempt transaction logger.

    Creates a unique directory for each attempt and logs:
    - Request payload (JSON, credential never included)
    - Final response (JSON)
    - Errors (text)
    """

    __slots__ = ("enabled", "log_dir")

    def __init__(
        self,
        model_name: str,
        enabled: bool,
        logs_dir: Optional[Path] = None,
        attempt: int = 0,
    ):
        """
        Initialize the file logger.

        Args:
            model_name: Name of the model (used in directory name)
            enabled: Whether logging is enabled
            logs_dir: Base logs directory (defaults to get_logs_dir())
            attempt: Attempt number within the call
        """
        self.enabled = enabled
        self.log_dir: Optional[Path] = None

        if not enabled:
            return

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        safe_model_name = model_name.replace("/", "_").replace(":", "_")
        request_id = uuid.uuid4().hex[:8]

        base = Path(logs_dir) if logs_dir is not None else get_logs_dir()
        self.log_dir = (
            base
            / TRANSACTIONS_SUBDIR
            / f"{timestamp}_{safe_model_name}_a{attempt}_{request_id}"
        )

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            lib_logger.error(f"Failed to create log directory: {e}")
            self.enabled = False

    def log_request(self, payload: Dict[str, Any]) -> None:
        """Log the request payload sent to the API."""
        self._write_json("request_payload.json", payload)

    def log_error(self, error_message: str) -> None:
        """Log an error message with timestamp."""
        self._append_text(
            "error.log",
            f"[{datetime.now(timezone.utc).isoformat()}] {error_message}",
        )

    def log_final_response(self, response_data: Dict[str, Any]) -> None:
        """Log the decoded response body."""
        self._write_json("final_response.json", response_data)

    def _write_json(self, filename: str, data: Dict[str, Any]) -> None:
        if not self.enabled or not self.log_dir:
            return
        try:
            with open(self.log_dir / filename, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as e:
            lib_logger.error(f"TransactionFileLogger: Failed to write {filename}: {e}")

    def _append_text(self, filename: str, text: str) -> None:
        if not self.enabled or not self.log_dir:
            return
        try:
            with open(self.log_dir / filename, "a", encoding="utf-8") as f:
                f.write(text + "\n")
        except OSError as e:
            lib_logger.error(
                f"TransactionFileLogger: Failed to append to {filename}: {e}"
            )
