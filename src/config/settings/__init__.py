"""Agregador de settings do engine.

Re-exporta as settings e seus getters cacheados.
"""

from __future__ import annotations

from config.settings.base import (
    BaseSettings,
    Environment,
    RepositoryBackend,
    StateMachineSettings,
    get_base_settings,
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
