"""
Requisitos de transição (pré-condições plugáveis).

O engine trata requisitos de forma opaca: cada requisito concreto é uma
subclasse de `Requirement` definida pela aplicação, identificada pelo
seu tipo em runtime e por um discriminador estável (`kind`) usado na
persistência. O que o requisito verifica é responsabilidade dos handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class Requirement(BaseModel):
    """
    Base de todos os requisitos de transição.

    Subclasses podem declarar `kind: ClassVar[str] = "..."` para fixar o
    discriminador; sem isso, o nome da classe é usado.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[str] = ""

    description: str | None = Field(default=None, description="Descrição legível do requisito.")
    is_optional: bool = Field(
        default=False,
        description="Requisito opcional não bloqueia a transição quando não atendido.",
    )

    @classmethod
    def payload_kind(cls) -> str:
        """Discriminador estável do tipo concreto."""
        return cls.__dict__.get("kind") or cls.__name__

    def required_data_types(self) -> tuple[type, ...]:
        """Tipos de dados que o usuário precisa fornecer antes da avaliação."""
        return ()

    def display_text(self) -> str:
        """Texto curto para diagramas e mensagens."""
        if self.description:
            return self.description
        return self.payload_kind().replace("Requirement", "").replace("_", " ")


@dataclass(slots=True)
class RequirementEvaluationStatus:
    """
    Status de avaliação de um único requisito.

    Attributes:
        requirement: Requisito avaliado
        is_fulfilled: Se foi atendido
        failure_reason: Motivo da falha (quando não atendido)
        handler_used: Nome do handler que atendeu o requisito
        was_processed_by_specific_handler: Se um handler específico o atendeu
    """

    requirement: Requirement
    is_fulfilled: bool = False
    failure_reason: str | None = None
    handler_used: str | None = None
    was_processed_by_specific_handler: bool = False

    @property
    def is_optional(self) -> bool:
        return self.requirement.is_optional

    @property
    def is_satisfied(self) -> bool:
        """Atendido ou opcional: não bloqueia a transição."""
        return self.is_fulfilled or self.is_optional

    def to_log_dict(self) -> dict[str, Any]:
        """Representação segura para logs (sem dados do requisito)."""
        return {
            "requirement": self.requirement.payload_kind(),
            "is_fulfilled": self.is_fulfilled,
            "is_optional": self.is_optional,
            "handler_used": self.handler_used,
            "failure_reason": self.failure_reason,
        }
