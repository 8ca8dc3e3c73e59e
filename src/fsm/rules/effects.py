"""
Efeitos de transição (ações executadas após o commit).

Assim como os requisitos, efeitos são valores opacos identificados pelo
tipo concreto. Falhas de efeito nunca desfazem a transição já registrada.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class Effect(BaseModel):
    """Base de todos os efeitos de transição."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[str] = ""

    description: str | None = Field(default=None, description="Descrição legível do efeito.")
    is_optional: bool = Field(
        default=False,
        description="Falha de efeito opcional não conta como falha na execução.",
    )
    execution_order: int = Field(
        default=0,
        description="Ordem de execução (menor primeiro; empates mantêm a ordem declarada).",
    )

    @classmethod
    def payload_kind(cls) -> str:
        """Discriminador estável do tipo concreto."""
        return cls.__dict__.get("kind") or cls.__name__

    def display_text(self) -> str:
        """Texto curto para diagramas e mensagens."""
        if self.description:
            return self.description
        return self.payload_kind().replace("Effect", "").replace("_", " ")


@dataclass(slots=True)
class EffectExecutionStatus:
    """
    Status de execução de um único efeito.

    Attributes:
        effect: Efeito executado
        is_executed: Se ao menos um handler executou com sucesso
        failure_reason: Motivo da falha
        handler_used: Último handler que executou com sucesso
        was_processed_by_specific_handler: Se algum handler específico o executou
        executed_at: Momento da execução bem-sucedida
        execution_duration: Tempo gasto com os handlers específicos
    """

    effect: Effect
    is_executed: bool = False
    failure_reason: str | None = None
    handler_used: str | None = None
    was_processed_by_specific_handler: bool = False
    executed_at: datetime | None = None
    execution_duration: timedelta | None = None

    @property
    def is_optional(self) -> bool:
        return self.effect.is_optional

    @property
    def is_failed(self) -> bool:
        """Falha que conta no resumo (efeitos opcionais não contam)."""
        return not self.is_executed and not self.is_optional

    def to_log_dict(self) -> dict[str, Any]:
        """Representação segura para logs."""
        return {
            "effect": self.effect.payload_kind(),
            "is_executed": self.is_executed,
            "is_optional": self.is_optional,
            "handler_used": self.handler_used,
            "failure_reason": self.failure_reason,
            "duration_ms": (
                round(self.execution_duration.total_seconds() * 1000, 2)
                if self.execution_duration is not None
                else None
            ),
        }
