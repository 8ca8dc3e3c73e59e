"""Orquestração de transições: tentar, forçar e reverter.

Fluxo de `try_transition`:
    busca de candidatas → avaliação de requisitos (primeira que passar
    vence) → commit (mutação da instância + persistência) → efeitos.

Falhas de pré-condição retornam `Result.failure` com código estável;
nada é levantado. Falhas de infraestrutura (exceto conflito de versão)
propagam para o chamador. Efeitos nunca desfazem o commit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from app.observability import record_effect_failures, record_latency, record_transition
from fsm.states import State
from fsm.triggers import Trigger
from fsm.types import (
    AvailableTransition,
    ErrorCode,
    FsmError,
    RequirementEvaluationSummary,
    Result,
    RevertInfo,
    TransitionHistoryEntry,
    TransitionInfo,
    ValidTransition,
)
from utils.errors import ConcurrencyConflictError

if TYPE_CHECKING:
    import asyncio

    from app.protocols.instance_repository import InstanceRepositoryProtocol
    from app.services.effect_execution import EffectExecutionService
    from app.services.requirement_evaluation import RequirementEvaluationService
    from fsm.manager import StateMachineInstance
    from fsm.transitions import Transition

logger = logging.getLogger(__name__)

_COMPONENT = "transition_service"


class TransitionService:
    """Serviço de transição de instâncias.

    Args:
        requirement_service: Avaliação de requisitos
        repository: Persistência das instâncias
        effect_service: Execução de efeitos (opcional; sem ele, efeitos são ignorados)
    """

    def __init__(
        self,
        requirement_service: RequirementEvaluationService,
        repository: InstanceRepositoryProtocol,
        effect_service: EffectExecutionService | None = None,
    ) -> None:
        if requirement_service is None:
            raise ValueError("requirement_service é obrigatório")
        if repository is None:
            raise ValueError("repository é obrigatório")
        self._requirements = requirement_service
        self._repository = repository
        self._effects = effect_service

    # ──────────────────────────────────────────────────────────────
    # Transição normal
    # ──────────────────────────────────────────────────────────────

    async def try_transition(
        self,
        instance: StateMachineInstance,
        trigger: Trigger | str,
        actor: str | None = None,
        context: Mapping[str, Any] | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Result[TransitionInfo]:
        """Tenta disparar o gatilho a partir do estado atual.

        Candidatas (origem = estado atual ou curinga) são avaliadas na ordem
        da definição; a primeira com todos os requisitos atendidos é aplicada.

        Args:
            instance: Instância alvo
            trigger: Gatilho (objeto ou nome)
            actor: Identificador de quem disparou
            context: Dados para os handlers de requisito (por discriminador)
            cancel_event: Cancela a operação se sinalizado antes do commit

        Returns:
            Result com TransitionInfo ou FsmError
        """
        started = time.perf_counter()
        result = await self._try_transition(instance, trigger, actor, context, cancel_event)
        self._record("try", result, instance, started)
        return result

    async def _try_transition(
        self,
        instance: StateMachineInstance,
        trigger: Trigger | str,
        actor: str | None,
        context: Mapping[str, Any] | None,
        cancel_event: asyncio.Event | None,
    ) -> Result[TransitionInfo]:
        resolved = self._resolve_trigger(instance, trigger)
        if resolved is None:
            return Result.failure(_trigger_not_found(trigger))

        candidates = instance.get_transitions_for_trigger(resolved)
        if not candidates:
            return Result.failure(
                FsmError.validation(
                    ErrorCode.TRANSITION_NO_AVAILABLE,
                    f"Nenhuma transição a partir de '{instance.current_state.name}' "
                    f"com o gatilho '{resolved.name}'",
                )
            )

        if _is_cancelled(cancel_event):
            return Result.failure(_cancelled(instance))

        chosen: Transition | None = None
        evaluation: RequirementEvaluationSummary | None = None
        reasons: list[str] = []
        for candidate in candidates:
            summary = await self.evaluate_transition_requirements(candidate, instance, context)
            if summary.all_requirements_met:
                chosen, evaluation = candidate, summary
                break
            for reason in summary.failure_reasons:
                if reason not in reasons:
                    reasons.append(reason)

        if chosen is None:
            logger.info(
                "transition_requirements_not_met",
                extra={
                    "component": _COMPONENT,
                    "instance_id": instance.id,
                    "trigger": resolved.name,
                    "candidates": len(candidates),
                },
            )
            return Result.failure(
                FsmError.validation(
                    ErrorCode.TRANSITION_REQUIREMENTS_NOT_MET,
                    "Nenhuma transição pôde ser concluída: requisitos não atendidos",
                    reasons,
                )
            )

        if _is_cancelled(cancel_event):
            return Result.failure(_cancelled(instance))

        previous_state_id = instance.current_state_id
        entry = instance.execute_transition(chosen, actor)
        conflict = await self._save(instance)
        if conflict is not None:
            return Result.failure(conflict)

        info = TransitionInfo(
            success=True,
            instance_id=instance.id,
            previous_state_id=previous_state_id,
            new_state_id=instance.current_state_id,
            trigger_id=resolved.id,
            was_forced=False,
            transitioned_at=entry.transitioned_at,
            requirement_evaluation=evaluation if chosen.has_requirements else None,
        )
        logger.info(
            "transition_committed",
            extra={
                "component": _COMPONENT,
                "instance_id": instance.id,
                "definition_id": instance.definition_id,
                "transition_id": chosen.id,
                "trigger_only": chosen.is_trigger_only,
                **entry.to_log_dict(),
            },
        )

        if chosen.has_effects and self._effects is not None:
            await self._run_effects(chosen, instance, info)
        return Result.success(info)

    async def _run_effects(
        self,
        transition: Transition,
        instance: StateMachineInstance,
        info: TransitionInfo,
    ) -> None:
        """Executa efeitos; qualquer exceção é absorvida (commit já ocorreu)."""
        try:
            summary = await self._effects.execute_effects(  # type: ignore[union-attr]
                transition.effects, instance, info
            )
        except Exception:
            logger.exception(
                "effect_phase_failed",
                extra={
                    "component": _COMPONENT,
                    "instance_id": instance.id,
                    "transition_id": transition.id,
                },
            )
            return
        info.effect_execution = summary
        record_effect_failures(summary.failed_effects, summary.total_effects, instance.id)

    # ──────────────────────────────────────────────────────────────
    # Transição forçada
    # ──────────────────────────────────────────────────────────────

    async def force_transition(
        self,
        instance: StateMachineInstance,
        target_state: State | str | None,
        reason: str,
        actor: str | None = None,
    ) -> Result[TransitionInfo]:
        """Move a instância para qualquer estado da definição.

        Ignora requisitos e efeitos. O motivo é obrigatório.
        """
        started = time.perf_counter()
        result = await self._force_transition(instance, target_state, reason, actor)
        self._record("force", result, instance, started)
        return result

    async def _force_transition(
        self,
        instance: StateMachineInstance,
        target_state: State | str | None,
        reason: str,
        actor: str | None,
    ) -> Result[TransitionInfo]:
        if target_state is None:
            return Result.failure(
                FsmError.validation(ErrorCode.STATE_NULL, "Estado alvo não pode ser nulo")
            )

        target = self._resolve_state(instance, target_state)
        if target is None:
            name = target_state.name if isinstance(target_state, State) else target_state
            return Result.failure(
                FsmError.validation(
                    ErrorCode.STATE_NOT_IN_DEFINITION,
                    f"Estado '{name}' não pertence à definição {instance.definition.name}",
                )
            )

        if not reason or not reason.strip():
            return Result.failure(
                FsmError.validation(
                    ErrorCode.FORCE_MISSING_REASON,
                    "Transição forçada exige um motivo",
                )
            )

        previous_state_id = instance.current_state_id
        entry = instance.execute_forced_transition(target, reason, actor)
        conflict = await self._save(instance)
        if conflict is not None:
            return Result.failure(conflict)

        logger.warning(
            "transition_forced",
            extra={
                "component": _COMPONENT,
                "instance_id": instance.id,
                "definition_id": instance.definition_id,
                "actor": actor,
                **entry.to_log_dict(),
            },
        )
        return Result.success(
            TransitionInfo(
                success=True,
                instance_id=instance.id,
                previous_state_id=previous_state_id,
                new_state_id=target.id,
                trigger_id=None,
                was_forced=True,
                reason=entry.reason,
                transitioned_at=entry.transitioned_at,
            )
        )

    # ──────────────────────────────────────────────────────────────
    # Reversão
    # ──────────────────────────────────────────────────────────────

    async def revert_transitions(
        self,
        instance: StateMachineInstance,
        count: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[RevertInfo]:
        """Desfaz as últimas `count` transições ativas.

        O estado alvo é o destino da entrada ativa que permanece (ou o
        estado inicial, quando todas são revertidas). As entradas são apenas
        marcadas; nenhuma entrada nova é criada.
        """
        started = time.perf_counter()
        result = await self._revert_transitions(instance, count, reason, actor)
        self._record("revert", result, instance, started)
        return result

    async def revert_last_transition(
        self,
        instance: StateMachineInstance,
        reason: str,
        actor: str | None = None,
    ) -> Result[RevertInfo]:
        return await self.revert_transitions(instance, 1, reason, actor)

    async def _revert_transitions(
        self,
        instance: StateMachineInstance,
        count: int,
        reason: str,
        actor: str | None,
    ) -> Result[RevertInfo]:
        if count <= 0:
            return Result.failure(
                FsmError.validation(
                    ErrorCode.REVERT_INVALID_COUNT,
                    "Quantidade de transições a reverter deve ser maior que 0",
                )
            )
        if not reason or not reason.strip():
            return Result.failure(
                FsmError.validation(
                    ErrorCode.REVERT_MISSING_REASON,
                    "Reversão exige um motivo",
                )
            )

        active = instance.non_reverted_history()
        if len(active) < count:
            return Result.failure(
                FsmError.validation(
                    ErrorCode.REVERT_INSUFFICIENT_HISTORY,
                    f"Não é possível reverter {count} transições: "
                    f"apenas {len(active)} ativas",
                )
            )

        target_result = self._target_state_after_revert(instance, active, count)
        if target_result.is_failure:
            return Result.failure(target_result.error)  # type: ignore[arg-type]
        target: State = target_result.value  # type: ignore[assignment]

        previous_state_id = instance.current_state_id
        reverted = instance.execute_revert(target, active[-count:], reason, actor)
        conflict = await self._save(instance)
        if conflict is not None:
            return Result.failure(conflict)

        info = RevertInfo(
            success=True,
            instance_id=instance.id,
            previous_state_id=previous_state_id,
            new_state_id=target.id,
            transitions_reverted=len(reverted),
            reason=reason.strip(),
            reverted_entries=[e.id for e in reverted],
        )
        logger.warning(
            "transitions_reverted",
            extra={
                "component": _COMPONENT,
                "instance_id": instance.id,
                "definition_id": instance.definition_id,
                "actor": actor,
                "transitions_reverted": info.transitions_reverted,
                "from_state_id": previous_state_id,
                "to_state": target.name,
            },
        )
        return Result.success(info)

    @staticmethod
    def _target_state_after_revert(
        instance: StateMachineInstance,
        active: list[TransitionHistoryEntry],
        count: int,
    ) -> Result[State]:
        if not active:
            return Result.failure(
                FsmError.validation(
                    ErrorCode.REVERT_NO_HISTORY,
                    "Nenhuma transição ativa no histórico",
                )
            )

        if count >= len(active):
            initial = instance.definition.initial_state
            if initial is None:
                return Result.failure(
                    FsmError.validation(
                        ErrorCode.REVERT_NO_INITIAL_STATE,
                        "Definição não tem estado inicial",
                    )
                )
            return Result.success(initial)

        remaining = active[len(active) - count - 1]
        target = instance.definition.get_state_by_id(remaining.to_state.id)
        if target is None:
            return Result.failure(
                FsmError.validation(
                    ErrorCode.REVERT_STATE_NOT_FOUND,
                    f"Estado {remaining.to_state.id} não existe na definição",
                )
            )
        return Result.success(target)

    # ──────────────────────────────────────────────────────────────
    # Consultas
    # ──────────────────────────────────────────────────────────────

    async def evaluate_transition_requirements(
        self,
        transition: Transition,
        instance: StateMachineInstance,
        context: Mapping[str, Any] | None = None,
    ) -> RequirementEvaluationSummary:
        """Avalia os requisitos de uma transição (todos atendidos quando não há)."""
        if not transition.has_requirements:
            return RequirementEvaluationSummary.all_met()
        return await self._requirements.evaluate_requirements(
            transition.requirements, instance, context
        )

    async def get_available_transitions(
        self,
        instance: StateMachineInstance,
        context: Mapping[str, Any] | None = None,
    ) -> list[AvailableTransition]:
        """Transições saindo do estado atual, cada uma com sua avaliação."""
        available = []
        for transition in instance.get_available_transitions():
            summary = await self.evaluate_transition_requirements(transition, instance, context)
            available.append(
                AvailableTransition(
                    transition_id=transition.id,
                    trigger_id=transition.trigger.id,
                    trigger_name=transition.trigger.name,
                    to_state_id=transition.to_state.id if transition.to_state else None,
                    to_state_name=transition.to_state.name if transition.to_state else None,
                    can_execute=summary.all_requirements_met,
                    requirement_evaluation=summary,
                )
            )
        return available

    async def get_valid_transitions(
        self,
        instance: StateMachineInstance,
        trigger: Trigger | str,
        context: Mapping[str, Any] | None = None,
    ) -> Result[list[ValidTransition]]:
        """Candidatas do gatilho cujos requisitos estão atendidos (ordem da definição)."""
        resolved = self._resolve_trigger(instance, trigger)
        if resolved is None:
            return Result.failure(_trigger_not_found(trigger))

        valid = []
        for transition in instance.get_transitions_for_trigger(resolved):
            summary = await self.evaluate_transition_requirements(transition, instance, context)
            if summary.all_requirements_met:
                valid.append(
                    ValidTransition(
                        transition_id=transition.id,
                        trigger_id=resolved.id,
                        trigger_name=resolved.name,
                        from_state_id=transition.from_state.id if transition.from_state else None,
                        to_state_id=transition.to_state.id if transition.to_state else None,
                        requirement_evaluation=summary,
                    )
                )
        return Result.success(valid)

    async def get_first_valid_transition(
        self,
        instance: StateMachineInstance,
        trigger: Trigger | str,
        context: Mapping[str, Any] | None = None,
    ) -> Result[ValidTransition]:
        """Primeira transição válida do gatilho (a que `try_transition` aplicaria)."""
        result = await self.get_valid_transitions(instance, trigger, context)
        if result.is_failure:
            return Result.failure(result.error)  # type: ignore[arg-type]
        if not result.value:
            return Result.failure(
                FsmError.validation(
                    ErrorCode.TRANSITION_REQUIREMENTS_NOT_MET,
                    "Nenhuma transição válida para o gatilho",
                )
            )
        return Result.success(result.value[0])

    # ──────────────────────────────────────────────────────────────
    # Auxiliares
    # ──────────────────────────────────────────────────────────────

    async def _save(self, instance: StateMachineInstance) -> FsmError | None:
        """Persiste; conflito de versão vira erro de domínio (sem retry)."""
        try:
            await self._repository.save_instance(instance)
        except ConcurrencyConflictError as exc:
            logger.warning(
                "transition_concurrency_conflict",
                extra={
                    "component": _COMPONENT,
                    "instance_id": instance.id,
                    "expected_version": exc.expected_version,
                    "actual_version": exc.actual_version,
                },
            )
            return FsmError.conflict(ErrorCode.CONCURRENCY_CONFLICT, str(exc))
        return None

    @staticmethod
    def _resolve_trigger(instance: StateMachineInstance, trigger: Trigger | str) -> Trigger | None:
        if isinstance(trigger, Trigger):
            return instance.definition.get_trigger_by_id(trigger.id)
        if not trigger:
            return None
        return instance.get_trigger(trigger)

    @staticmethod
    def _resolve_state(instance: StateMachineInstance, state: State | str) -> State | None:
        if isinstance(state, State):
            return state if instance.definition.contains_state(state) else None
        return instance.get_state(state)

    @staticmethod
    def _record(
        operation: str,
        result: Result[Any],
        instance: StateMachineInstance,
        started: float,
    ) -> None:
        record_latency(_COMPONENT, operation, (time.perf_counter() - started) * 1000)
        record_transition(
            operation,
            "success" if result.is_success else "failure",
            result.error.code.value if result.error is not None else None,
            instance.definition_id,
        )


def _is_cancelled(cancel_event: asyncio.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _cancelled(instance: StateMachineInstance) -> FsmError:
    logger.info(
        "transition_cancelled",
        extra={"component": _COMPONENT, "instance_id": instance.id},
    )
    return FsmError.validation(ErrorCode.TRANSITION_CANCELLED, "Transição cancelada")


def _trigger_not_found(trigger: Trigger | str) -> FsmError:
    name = trigger.name if isinstance(trigger, Trigger) else trigger
    return FsmError.validation(
        ErrorCode.TRIGGER_NOT_FOUND,
        f"Gatilho '{name}' não encontrado na definição",
    )
