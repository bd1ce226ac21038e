# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Filesystem locations used by the answer engine.
"""

import os
from pathlib import Path


def get_logs_dir() -> Path:
    """
    Resolve the base directory for transaction logs.

    ANSWER_ENGINE_LOGS_DIR wins, otherwise ./logs. The directory is not
    created here.
    """
    env_dir = os.getenv("ANSWER_ENGINE_LOGS_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.cwd() / "logs"
