"""Settings do engine de máquinas de estados.

Registro de handlers, execução de efeitos e backend de persistência
das instâncias.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from config.settings.base.core import BaseSettings

RepositoryBackend = Literal["memory", "redis"]


@dataclass(frozen=True)
class StateMachineSettings:
    """Configurações do engine.

    Attributes:
        auto_register_handlers: Descobrir handlers nos módulos listados
        handler_modules: Módulos (dotted path) varridos na descoberta
        effects_continue_on_failure: Seguir com handlers/efeitos após falha
        effect_timeout_seconds: Timeout por handler de efeito (0 = sem timeout)
        repository_backend: Backend de persistência das instâncias
        redis_key_prefix: Prefixo das chaves no Redis
    """

    auto_register_handlers: bool = False
    handler_modules: tuple[str, ...] = ()
    effects_continue_on_failure: bool = True
    effect_timeout_seconds: float = 0.0
    repository_backend: RepositoryBackend = "memory"
    redis_key_prefix: str = "fsm:instance:"

    @property
    def effect_timeout(self) -> float | None:
        """Timeout efetivo (None quando desativado)."""
        return self.effect_timeout_seconds if self.effect_timeout_seconds > 0 else None

    def validate(self, base: BaseSettings) -> list[str]:
        """Valida configurações do engine.

        Args:
            base: BaseSettings para verificar ambiente e Redis.

        Returns:
            Lista de erros de validação.
        """
        errors: list[str] = []

        if self.effect_timeout_seconds < 0:
            errors.append("FSM_EFFECT_TIMEOUT_SECONDS deve ser >= 0")

        if self.repository_backend not in {"memory", "redis"}:
            errors.append(f"FSM_REPOSITORY_BACKEND inválido: {self.repository_backend}")

        if self.repository_backend == "memory" and not base.is_development:
            errors.append("FSM_REPOSITORY_BACKEND=memory proibido em staging/production")

        if self.repository_backend == "redis" and not base.redis_url:
            errors.append("REDIS_URL obrigatório com FSM_REPOSITORY_BACKEND=redis")

        if not self.redis_key_prefix:
            errors.append("FSM_REDIS_KEY_PREFIX não pode ser vazio")

        if self.auto_register_handlers and not self.handler_modules:
            errors.append("FSM_HANDLER_MODULES obrigatório com FSM_AUTO_REGISTER_HANDLERS")

        return errors


def _parse_modules(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _load_state_machine_from_env() -> StateMachineSettings:
    """Carrega StateMachineSettings de variáveis de ambiente."""
    backend_str = os.getenv("FSM_REPOSITORY_BACKEND", "memory").lower()
    backend: RepositoryBackend = backend_str if backend_str in ("memory", "redis") else "memory"
    return StateMachineSettings(
        auto_register_handlers=os.getenv("FSM_AUTO_REGISTER_HANDLERS", "").lower()
        in ("true", "1", "yes"),
        handler_modules=_parse_modules(os.getenv("FSM_HANDLER_MODULES", "")),
        effects_continue_on_failure=os.getenv("FSM_EFFECTS_CONTINUE_ON_FAILURE", "true").lower()
        in ("true", "1", "yes"),
        effect_timeout_seconds=float(os.getenv("FSM_EFFECT_TIMEOUT_SECONDS", "0")),
        repository_backend=backend,
        redis_key_prefix=os.getenv("FSM_REDIS_KEY_PREFIX", "fsm:instance:"),
    )


@lru_cache(maxsize=1)
def get_state_machine_settings() -> StateMachineSettings:
    """Retorna instância cacheada de StateMachineSettings."""
    return _load_state_machine_from_env()
