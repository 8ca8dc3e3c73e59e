"""
Resumos devolvidos pelos serviços de avaliação, execução e transição.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from fsm.rules.effects import EffectExecutionStatus
from fsm.rules.requirements import RequirementEvaluationStatus


@dataclass(slots=True)
class RequirementEvaluationSummary:
    """
    Resultado agregado da avaliação de requisitos.

    Attributes:
        all_requirements_met: Todos atendidos ou opcionais
        requirement_results: Status por requisito (ordem declarada)
        failure_reasons: Motivos de não atendimento e falhas de handlers genéricos
    """

    all_requirements_met: bool
    requirement_results: list[RequirementEvaluationStatus] = field(default_factory=list)
    failure_reasons: list[str] = field(default_factory=list)

    @classmethod
    def all_met(cls) -> "RequirementEvaluationSummary":
        """Resumo para transições sem requisitos."""
        return cls(all_requirements_met=True)

    @property
    def fulfilled_count(self) -> int:
        return sum(1 for s in self.requirement_results if s.is_fulfilled)

    @property
    def unfulfilled(self) -> list[RequirementEvaluationStatus]:
        return [s for s in self.requirement_results if not s.is_satisfied]

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "all_requirements_met": self.all_requirements_met,
            "total": len(self.requirement_results),
            "fulfilled": self.fulfilled_count,
            "failure_reasons": list(self.failure_reasons),
        }


@dataclass(slots=True)
class EffectExecutionSummary:
    """
    Resultado agregado da execução de efeitos.

    `failed_effects` conta apenas efeitos não opcionais não executados.
    """

    all_effects_executed: bool
    effect_results: list[EffectExecutionStatus] = field(default_factory=list)
    failure_reasons: list[str] = field(default_factory=list)
    total_effects: int = 0
    successful_effects: int = 0
    failed_effects: int = 0
    total_execution_time: timedelta = field(default_factory=timedelta)

    @classmethod
    def from_results(
        cls,
        results: list[EffectExecutionStatus],
        total_execution_time: timedelta,
        extra_reasons: list[str] | None = None,
    ) -> "EffectExecutionSummary":
        failed = sum(1 for s in results if s.is_failed)
        reasons = [s.failure_reason for s in results if s.is_failed and s.failure_reason]
        return cls(
            all_effects_executed=failed == 0,
            effect_results=results,
            failure_reasons=reasons + list(extra_reasons or []),
            total_effects=len(results),
            successful_effects=sum(1 for s in results if s.is_executed),
            failed_effects=failed,
            total_execution_time=total_execution_time,
        )

    @classmethod
    def empty(cls) -> "EffectExecutionSummary":
        return cls(all_effects_executed=True)

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "all_effects_executed": self.all_effects_executed,
            "total_effects": self.total_effects,
            "successful_effects": self.successful_effects,
            "failed_effects": self.failed_effects,
            "total_execution_ms": round(self.total_execution_time.total_seconds() * 1000, 2),
        }


@dataclass(slots=True)
class TransitionInfo:
    """
    Detalhes de uma transição concluída (normal ou forçada).

    `effect_execution` é preenchido depois do commit, quando há efeitos.
    """

    success: bool
    instance_id: str
    previous_state_id: str
    new_state_id: str
    trigger_id: str | None = None
    was_forced: bool = False
    reason: str | None = None
    transitioned_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    requirement_evaluation: RequirementEvaluationSummary | None = None
    effect_execution: EffectExecutionSummary | None = None

    @property
    def changed_state(self) -> bool:
        return self.previous_state_id != self.new_state_id


@dataclass(slots=True)
class RevertInfo:
    """Detalhes de uma reversão concluída."""

    success: bool
    instance_id: str
    previous_state_id: str
    new_state_id: str
    transitions_reverted: int
    reason: str
    reverted_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    reverted_entries: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class AvailableTransition:
    """Transição saindo do estado atual, com a avaliação dos requisitos."""

    transition_id: str
    trigger_id: str
    trigger_name: str
    to_state_id: str | None
    to_state_name: str | None
    can_execute: bool
    requirement_evaluation: RequirementEvaluationSummary


@dataclass(frozen=True, slots=True)
class ValidTransition:
    """Transição cujos requisitos foram todos atendidos."""

    transition_id: str
    trigger_id: str
    trigger_name: str
    from_state_id: str | None
    to_state_id: str | None
    requirement_evaluation: RequirementEvaluationSummary


@dataclass(frozen=True, slots=True)
class HandlerInfo:
    """Descrição de um handler registrado (introspecção)."""

    payload_kind: str | None
    handler_type: str
    is_generic: bool
    description: str | None = None


@dataclass(frozen=True, slots=True)
class StateMachineSummary:
    """Visão resumida de uma instância para consulta e auditoria."""

    instance_id: str
    definition_id: str
    definition_name: str
    definition_version: int
    current_state: str
    current_state_category: str
    is_in_final_state: bool
    available_triggers: tuple[str, ...]
    total_transitions: int
    active_transitions: int
    reverted_transitions: int
    forced_transitions: int
    created_at: datetime
    last_transition_at: datetime | None
    recent_transitions: tuple[str, ...]
