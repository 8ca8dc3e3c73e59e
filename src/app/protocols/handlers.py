"""Contratos de handlers de requisitos e efeitos.

Handlers recebem apenas ids e o payload opaco; buscam por conta própria
os dados de que precisam. Handlers específicos atendem um único tipo de
payload; handlers genéricos recebem a lista completa de status.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from fsm.rules import (
        Effect,
        EffectExecutionStatus,
        Requirement,
        RequirementEvaluationStatus,
    )
    from fsm.types import TransitionInfo


class RequirementHandler(ABC):
    """Avalia requisitos de um tipo concreto.

    Subclasses declaram `requirement_type`. Vários handlers do mesmo tipo
    formam um OU: o primeiro que retorna True atende o requisito.
    """

    requirement_type: ClassVar[type[Requirement]]
    description: ClassVar[str | None] = None

    @abstractmethod
    async def evaluate(
        self,
        requirement: Requirement,
        instance_id: str,
        context: Any = None,
    ) -> bool:
        """Retorna True se o requisito está atendido para a instância.

        Args:
            requirement: Requisito avaliado
            instance_id: Instância em transição
            context: Dados fornecidos pelo chamador para este tipo de requisito
        """


class GenericRequirementHandler(ABC):
    """Revisa todos os status após a fase específica.

    Pode apenas marcar como atendidos requisitos ainda não atendidos.
    """

    description: ClassVar[str | None] = None

    @abstractmethod
    async def process(
        self,
        statuses: list[RequirementEvaluationStatus],
        instance_id: str,
        context: dict[str, Any] | None = None,
    ) -> list[RequirementEvaluationStatus]:
        """Retorna a lista de status (mesmo tamanho e ordem da entrada)."""


class EffectHandler(ABC):
    """Executa efeitos de um tipo concreto após o commit."""

    effect_type: ClassVar[type[Effect]]
    description: ClassVar[str | None] = None

    @abstractmethod
    async def execute(
        self,
        effect: Effect,
        instance_id: str,
        transition_info: TransitionInfo,
    ) -> bool:
        """Retorna True se o efeito foi executado."""


class GenericEffectHandler(ABC):
    """Observa todos os status de efeitos após a fase específica."""

    description: ClassVar[str | None] = None

    @abstractmethod
    async def process(
        self,
        statuses: list[EffectExecutionStatus],
        instance_id: str,
        transition_info: TransitionInfo,
    ) -> list[EffectExecutionStatus]:
        """Devolve os status atualizados (mesmo tamanho); falhas são logadas e ignoradas."""
