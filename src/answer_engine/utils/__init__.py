# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .paths import get_logs_dir

__all__ = ["get_logs_dir"]
