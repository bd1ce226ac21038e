# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .store import CredentialStore
from .rotation import CredentialSource, ManualCredentialSource, CredentialRotator
from .automation import AutomationSurface, ConsoleAutomationSource

__all__ = [
    "CredentialStore",
    "CredentialSource",
    "ManualCredentialSource",
    "CredentialRotator",
    "AutomationSurface",
    "ConsoleAutomationSource",
]
