# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Model roster and filtering.

The roster is fixed at configuration time. Ignore patterns use fnmatch
syntax, so "*-lite" drops every lite variant.
"""

import fnmatch
import logging
from typing import Iterable, List, Optional, Sequence

from ..core.types import EngineConfig

lib_logger = logging.getLogger("answer_engine")


def is_model_ignored(model: str, patterns: Iterable[str]) -> bool:
    """
    Check if a model matches any ignore pattern.

    Args:
        model: Model identifier
        patterns: fnmatch-style patterns

    Returns:
        True if the model should be dropped from the roster
    """
    for pattern in patterns:
        if fnmatch.fnmatch(model, pattern) or fnmatch.fnmatch(model.lower(), pattern.lower()):
            return True
    return False


class ModelRoster:
    """
    Ordered, non-empty list of model identifiers.

    Indices handed out by the roster are always valid; advancing wraps modulo
    the roster length.
    """

    def __init__(self, models: Sequence[str]):
        if not models:
            raise ValueError("Model roster must contain at least one model")
        self._models = tuple(models)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "ModelRoster":
        """
        Build the roster from config, applying ignore patterns.

        Raises:
            ValueError: Every configured model was ignored.
        """
        kept: List[str] = []
        for model in config.models:
            if is_model_ignored(model, config.ignore_models):
                lib_logger.debug(f"Model '{model}' ignored by pattern")
                continue
            if model not in kept:
                kept.append(model)
        if not kept:
            raise ValueError(
                f"All configured models are ignored (models={config.models}, "
                f"ignore={config.ignore_models})"
            )
        return cls(kept)

    @property
    def models(self) -> tuple:
        return self._models

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self):
        return iter(self._models)

    def __getitem__(self, index: int) -> str:
        return self._models[self.normalize(index)]

    def normalize(self, index: Optional[int]) -> int:
        if index is None:
            return 0
        return index % len(self._models)

    def next_index(self, index: int) -> int:
        return (index + 1) % len(self._models)
