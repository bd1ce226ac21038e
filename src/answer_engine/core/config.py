# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Centralized configuration loader for the answer engine.

This module provides a ConfigLoader class that builds an EngineConfig from:
1. System defaults (from core/constants.py)
2. Explicit overrides passed by the caller
3. Environment variables (ALWAYS override everything else)
"""

import os
import logging
from typing import Any, Callable, Dict, List, Optional

from .types import EngineConfig
from .constants import ENV_PREFIX

lib_logger = logging.getLogger("answer_engine")

_TRUE_VALUES = ("true", "1", "yes")


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.lower() in _TRUE_VALUES


def _parse_positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise ValueError("must be >= 1")
    return parsed


def _parse_non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise ValueError("must be >= 0")
    return parsed


def _parse_non_negative_float(value: str) -> float:
    parsed = float(value)
    if parsed < 0:
        raise ValueError("must be >= 0")
    return parsed


# EngineConfig field -> (env suffix, parser)
_ENV_FIELDS: Dict[str, tuple] = {
    "models": ("MODELS", _parse_list),
    "ignore_models": ("IGNORE_MODELS", _parse_list),
    "api_base": ("API_BASE", str),
    "temperature": ("TEMPERATURE", _parse_non_negative_float),
    "max_output_tokens": ("MAX_OUTPUT_TOKENS", _parse_positive_int),
    "request_timeout": ("REQUEST_TIMEOUT", _parse_non_negative_float),
    "max_retries": ("MAX_RETRIES", _parse_non_negative_int),
    "retry_delay": ("RETRY_DELAY", _parse_non_negative_float),
    "rate_limit_wait": ("RATE_LIMIT_WAIT", _parse_non_negative_float),
    "model_switch_delay": ("MODEL_SWITCH_DELAY", _parse_non_negative_float),
    "min_request_interval": ("MIN_REQUEST_INTERVAL", _parse_non_negative_float),
    "exhaustion_multiplier": ("EXHAUSTION_MULTIPLIER", _parse_positive_int),
    "max_rotations": ("MAX_ROTATIONS", _parse_non_negative_int),
    "projects_url": ("PROJECTS_URL", str),
    "keys_url": ("KEYS_URL", str),
    "rotation_poll_interval": ("ROTATION_POLL_INTERVAL", _parse_non_negative_float),
    "rotation_max_polls": ("ROTATION_MAX_POLLS", _parse_positive_int),
    "credential_file": ("CREDENTIAL_FILE", str),
    "transaction_logs": ("TRANSACTION_LOGS", _parse_bool),
    "logs_dir": ("LOGS_DIR", str),
}


class ConfigLoader:
    """
    Centralized configuration loader.

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # Tests and embedders can pin values; env vars still win
        config = ConfigLoader(overrides={"max_retries": 2}).load()
    """

    def __init__(
        self,
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the ConfigLoader.

        Args:
            overrides: EngineConfig field values applied over the defaults
            environ: Environment mapping to read (defaults to os.environ)
        """
        self._overrides = overrides or {}
        self._environ = environ if environ is not None else os.environ
        self._cache: Optional[EngineConfig] = None

    def load(self, force_reload: bool = False) -> EngineConfig:
        """
        Load the complete configuration.

        Args:
            force_reload: If True, bypass cache and reload

        Returns:
            EngineConfig
        """
        if self._cache is not None and not force_reload:
            return self._cache

        config = EngineConfig()
        config = self._apply_overrides(config)
        config = self._apply_env_overrides(config)

        if not config.models:
            lib_logger.warning("Empty model roster configured. Using defaults.")
            config.models = EngineConfig().models

        self._cache = config
        return config

    def clear_cache(self) -> None:
        self._cache = None

    # =========================================================================
    # INTERNAL METHODS
    # =========================================================================

    def _apply_overrides(self, config: EngineConfig) -> EngineConfig:
        for name, value in self._overrides.items():
            if not hasattr(config, name):
                lib_logger.warning(f"Unknown config override '{name}'. Ignoring.")
                continue
            setattr(config, name, value)
        return config

    def _apply_env_overrides(self, config: EngineConfig) -> EngineConfig:
        """
        Apply ANSWER_ENGINE_* environment variables.

        Invalid values are logged and the previous value is kept.
        """
        for name, (suffix, parser) in _ENV_FIELDS.items():
            env_key = f"{ENV_PREFIX}{suffix}"
            env_val = self._environ.get(env_key)
            if env_val is None or env_val == "":
                continue
            try:
                setattr(config, name, self._parse(parser, env_val))
            except ValueError as e:
                lib_logger.warning(
                    f"Invalid {env_key}='{env_val}' ({e}). "
                    f"Using {getattr(config, name)!r}."
                )
        return config

    @staticmethod
    def _parse(parser: Callable[[str], Any], value: str) -> Any:
        return parser(value.strip())
