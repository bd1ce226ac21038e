# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Constants and default values for the answer engine.

All tunable defaults live here. ConfigLoader starts from these values and
applies environment overrides on top, so nothing else in the package should
hard-code a retry count, delay or URL.
"""

from typing import List

# =============================================================================
# PROVIDER
# =============================================================================

# Base URL for the Generative Language API (v1beta)
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

# Ordered model roster. Tried in sequence under sustained rate limiting.
DEFAULT_MODELS: List[str] = [
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-3-pro-preview",
    "gemini-2.5-pro",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
]

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_OUTPUT_TOKENS = 8192

# Per-request HTTP timeout (seconds). A timeout is a network-class error.
DEFAULT_REQUEST_TIMEOUT = 120.0

# =============================================================================
# RETRY & BACKOFF
# =============================================================================

DEFAULT_MAX_RETRIES = 5

# Base delay for exponential backoff: RETRY_DELAY * 2 ** retry_count
DEFAULT_RETRY_DELAY = 1.0

# Wait before retrying the same model when a 429 carries no retry hint
DEFAULT_RATE_LIMIT_WAIT = 2.0

# Added on top of a server-suggested "retry after N seconds"
RATE_LIMIT_HINT_BUFFER = 1.0

# Debounce after switching to the next model
DEFAULT_MODEL_SWITCH_DELAY = 1.0

# Reactive pacing: no proactive floor, rely on server 429s
DEFAULT_MIN_REQUEST_INTERVAL = 0.0

# Every model must be tried this many times (fresh + post-wait) before the
# credential is considered exhausted
DEFAULT_EXHAUSTION_MULTIPLIER = 2

# Credential rotations allowed within one top-level call
DEFAULT_MAX_ROTATIONS = 3

# =============================================================================
# CREDENTIAL ROTATION
# =============================================================================

DEFAULT_PROJECTS_URL = "https://aistudio.google.com/projects"
DEFAULT_KEYS_URL = "https://aistudio.google.com/api-keys"

DEFAULT_ROTATION_POLL_INTERVAL = 2.0
DEFAULT_ROTATION_MAX_POLLS = 60  # 60 x 2s = 2 minutes per stage

AGENT_PROJECT_CLEANUP = "performProjectCleanup"
AGENT_KEY_ROTATION = "performKeyRotation"

# =============================================================================
# STORAGE
# =============================================================================

CREDENTIAL_KEY = "geminiApiKey"
DEFAULT_CREDENTIAL_FILE = "credentials.json"

# =============================================================================
# ENVIRONMENT
# =============================================================================

ENV_PREFIX = "ANSWER_ENGINE_"

__all__ = [
    "DEFAULT_API_BASE",
    "DEFAULT_MODELS",
    "DEFAULT_TEMPERATURE",
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_RATE_LIMIT_WAIT",
    "RATE_LIMIT_HINT_BUFFER",
    "DEFAULT_MODEL_SWITCH_DELAY",
    "DEFAULT_MIN_REQUEST_INTERVAL",
    "DEFAULT_EXHAUSTION_MULTIPLIER",
    "DEFAULT_MAX_ROTATIONS",
    "DEFAULT_PROJECTS_URL",
    "DEFAULT_KEYS_URL",
    "DEFAULT_ROTATION_POLL_INTERVAL",
    "DEFAULT_ROTATION_MAX_POLLS",
    "AGENT_PROJECT_CLEANUP",
    "AGENT_KEY_ROTATION",
    "CREDENTIAL_KEY",
    "DEFAULT_CREDENTIAL_FILE",
    "ENV_PREFIX",
]
