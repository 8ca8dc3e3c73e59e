"""Agregador de settings base.

Re-exporta todas as settings base para uso externo.
"""

from __future__ import annotations

from config.settings.base.core import (
    BaseSettings,
    Environment,
    get_base_settings,
)
from config.settings.base.state_machine import (
    RepositoryBackend,
    StateMachineSettings,
    get_state_machine_settings,
)

__all__ = [
    "BaseSettings",
    "Environment",
    "RepositoryBackend",
    "StateMachineSettings",
    "get_base_settings",
    "get_state_machine_settings",
]
