"""Testes do TransitionService.

Testa:
    - Transição normal (primeira candidata válida vence)
    - Curingas e transições apenas de gatilho
    - Efeitos não críticos após o commit
    - Cancelamento e conflito de concorrência
    - Transição forçada e reversão
    - Consultas de transições disponíveis/válidas
"""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from app.infra.stores import MemoryInstanceRepository
from app.protocols.handlers import EffectHandler
from app.services import EffectExecutionService, RequirementEvaluationService, TransitionService
from fsm import (
    ErrorCode,
    ErrorType,
    StateMachineDefinition,
    StateMachineInstance,
    create_instance,
)
from fsm.types import REVERT_REASON_PREFIX
from tests.fakes.fsm_handlers import ApprovalHandler, NotifyHandler
from tests.fakes.fsm_payloads import (
    ApprovalRequirement,
    AttachmentRequirement,
    AuditEffect,
    NotifyEffect,
    build_document_definition,
)
from utils.errors import ConcurrencyConflictError, RedisConnectionError

MANAGER = {"Approval": {"role": "manager"}}


class FailingAuditHandler(EffectHandler):
    async def execute(self, effect: Any, instance_id: str, transition_info: Any) -> bool:
        raise RuntimeError("auditoria indisponível")


# ──────────────────────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def definition() -> StateMachineDefinition:
    return build_document_definition()


@pytest.fixture
def instance(definition) -> StateMachineInstance:
    return create_instance(definition, instance_id="doc-1")


@pytest.fixture
def repository() -> MemoryInstanceRepository:
    return MemoryInstanceRepository()


@pytest.fixture
def notify_handler() -> NotifyHandler:
    return NotifyHandler()


@pytest.fixture
def service(repository, notify_handler) -> TransitionService:
    requirements = RequirementEvaluationService()
    requirements.register_specific_handler(ApprovalRequirement, ApprovalHandler())
    effects = EffectExecutionService()
    effects.register_specific_handler(NotifyEffect, notify_handler)
    return TransitionService(requirements, repository, effects)


async def _submit(service: TransitionService, instance: StateMachineInstance) -> None:
    result = await service.try_transition(instance, "submit", actor="ana")
    assert result.is_success


class TestConstruction:
    def test_requires_collaborators(self, repository) -> None:
        with pytest.raises(ValueError):
            TransitionService(None, repository)  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            TransitionService(RequirementEvaluationService(), None)  # type: ignore[arg-type]


class TestTryTransition:
    """Transição normal."""

    @pytest.mark.asyncio
    async def test_simple_transition(self, service, instance, repository) -> None:
        result = await service.try_transition(instance, "submit", actor="ana")

        assert result.is_success
        info = result.value
        assert info.previous_state_id == instance.definition.get_state("Draft").id
        assert info.new_state_id == instance.current_state_id
        assert info.changed_state
        assert not info.was_forced
        assert info.requirement_evaluation is None
        assert instance.current_state.name == "Review"
        assert instance.history[0].triggered_by == "ana"
        assert repository.stored_version("doc-1") == 1
        assert instance.version == 1

    @pytest.mark.asyncio
    async def test_committed_state_is_persisted(self, service, instance, repository) -> None:
        await _submit(service, instance)

        loaded = await repository.load_instance("doc-1")

        assert loaded is not None
        assert loaded.current_state.name == "Review"
        assert loaded.version == 1
        assert [e.id for e in loaded.history] == [e.id for e in instance.history]

    @pytest.mark.asyncio
    async def test_unknown_trigger(self, service, instance) -> None:
        result = await service.try_transition(instance, "publish")
        assert result.error.code == ErrorCode.TRIGGER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_no_transition_from_current_state(self, service, instance, repository) -> None:
        result = await service.try_transition(instance, "approve")

        assert result.is_failure
        assert result.error.code == ErrorCode.TRANSITION_NO_AVAILABLE
        assert instance.current_state.name == "Draft"
        assert repository.stored_version("doc-1") is None

    @pytest.mark.asyncio
    async def test_requirements_not_met(self, service, instance) -> None:
        await _submit(service, instance)

        result = await service.try_transition(instance, "approve", context={"Approval": {}})

        assert result.error.code == ErrorCode.TRANSITION_REQUIREMENTS_NOT_MET
        assert result.error.failure_reasons == ("Requisito Approval não atendido",)
        assert instance.current_state.name == "Review"
        assert len(instance.history) == 1

    @pytest.mark.asyncio
    async def test_requirements_met_runs_effects(self, service, instance, notify_handler) -> None:
        await _submit(service, instance)

        result = await service.try_transition(instance, "approve", context=MANAGER)

        info = result.value
        assert instance.current_state.name == "Approved"
        assert instance.is_in_final_state()
        assert info.requirement_evaluation.all_requirements_met
        assert info.effect_execution.successful_effects == 1
        assert notify_handler.sent == ["doc-1"]

    @pytest.mark.asyncio
    async def test_first_valid_candidate_wins(self, repository) -> None:
        definition = StateMachineDefinition("Roteamento", "Inbox")
        definition.add_state("Priority")
        definition.add_state("Regular")
        definition.add_trigger("route")
        definition.add_transition(
            "route", "Inbox", "Priority", requirements=[ApprovalRequirement()]
        )
        definition.add_transition("route", "Inbox", "Regular")
        requirements = RequirementEvaluationService()
        requirements.register_specific_handler(ApprovalRequirement, ApprovalHandler())
        service = TransitionService(requirements, repository)

        regular = create_instance(definition)
        priority = create_instance(definition)
        await service.try_transition(regular, "route")
        await service.try_transition(priority, "route", context=MANAGER)

        assert regular.current_state.name == "Regular"
        assert priority.current_state.name == "Priority"

    @pytest.mark.asyncio
    async def test_failure_reasons_are_aggregated(self, repository) -> None:
        definition = StateMachineDefinition("Roteamento", "Inbox")
        definition.add_state("A")
        definition.add_state("B")
        definition.add_trigger("route")
        definition.add_transition("route", "Inbox", "A", requirements=[ApprovalRequirement()])
        definition.add_transition(
            "route", "Inbox", "B", requirements=[ApprovalRequirement(), AttachmentRequirement()]
        )
        service = TransitionService(RequirementEvaluationService(), repository)

        result = await service.try_transition(create_instance(definition), "route")

        assert result.error.failure_reasons == (
            "Nenhum handler registrado para o requisito Approval",
            "Nenhum handler registrado para o requisito AttachmentRequirement",
        )

    @pytest.mark.asyncio
    async def test_wildcard_transition(self, service, instance) -> None:
        result = await service.try_transition(instance, "cancel")

        assert result.is_success
        assert instance.current_state.name == "Rejected"

    @pytest.mark.asyncio
    async def test_trigger_only_transition(self, service, instance) -> None:
        result = await service.try_transition(instance, "comment")

        assert result.is_success
        assert not result.value.changed_state
        assert instance.current_state.name == "Draft"
        assert len(instance.history) == 1
        assert result.value.effect_execution.failed_effects == 1

    @pytest.mark.asyncio
    async def test_effect_failure_does_not_roll_back(self, repository, instance) -> None:
        effects = EffectExecutionService()
        effects.register_specific_handler(AuditEffect, FailingAuditHandler())
        service = TransitionService(RequirementEvaluationService(), repository, effects)

        result = await service.try_transition(instance, "comment")

        assert result.is_success
        assert repository.stored_version("doc-1") == 1
        assert result.value.effect_execution.failure_reasons == [
            "Handler FailingAuditHandler failed: auditoria indisponível"
        ]

    @pytest.mark.asyncio
    async def test_effect_phase_exception_is_absorbed(self, repository, instance) -> None:
        effects = AsyncMock(spec=EffectExecutionService)
        effects.execute_effects.side_effect = RuntimeError("quebrou")
        service = TransitionService(RequirementEvaluationService(), repository, effects)

        result = await service.try_transition(instance, "comment")

        assert result.is_success
        assert result.value.effect_execution is None

    @pytest.mark.asyncio
    async def test_cancelled_before_commit(self, service, instance, repository) -> None:
        cancel = asyncio.Event()
        cancel.set()

        result = await service.try_transition(instance, "submit", cancel_event=cancel)

        assert result.error.code == ErrorCode.TRANSITION_CANCELLED
        assert instance.current_state.name == "Draft"
        assert repository.stored_version("doc-1") is None

    @pytest.mark.asyncio
    async def test_concurrency_conflict(self, instance) -> None:
        repository = AsyncMock()
        repository.save_instance.side_effect = ConcurrencyConflictError("doc-1", 0, 1)
        service = TransitionService(RequirementEvaluationService(), repository)

        result = await service.try_transition(instance, "submit")

        assert result.is_failure
        assert result.error.code == ErrorCode.CONCURRENCY_CONFLICT
        assert result.error.error_type == ErrorType.CONFLICT

    @pytest.mark.asyncio
    async def test_stale_instance_conflicts(self, service, instance, repository) -> None:
        await _submit(service, instance)
        stale = await repository.load_instance("doc-1")
        fresh = await repository.load_instance("doc-1")

        assert (await service.try_transition(fresh, "reject")).is_success
        result = await service.try_transition(stale, "reject")

        assert result.error.code == ErrorCode.CONCURRENCY_CONFLICT

    @pytest.mark.asyncio
    async def test_infrastructure_errors_propagate(self, instance) -> None:
        repository = AsyncMock()
        repository.save_instance.side_effect = RedisConnectionError("down")
        service = TransitionService(RequirementEvaluationService(), repository)

        with pytest.raises(RedisConnectionError):
            await service.try_transition(instance, "submit")


class TestForceTransition:
    """Transição forçada."""

    @pytest.mark.asyncio
    async def test_force_to_any_state(self, service, instance, notify_handler) -> None:
        result = await service.force_transition(instance, "Approved", "decisão da diretoria", "ceo")

        info = result.value
        assert info.was_forced
        assert info.trigger_id is None
        assert info.reason == "decisão da diretoria"
        assert instance.current_state.name == "Approved"
        [entry] = instance.history
        assert entry.is_forced
        assert entry.triggered_by == "ceo"
        assert notify_handler.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("target", "reason", "code"),
        [
            (None, "motivo", ErrorCode.STATE_NULL),
            ("Inexistente", "motivo", ErrorCode.STATE_NOT_IN_DEFINITION),
            ("Review", "   ", ErrorCode.FORCE_MISSING_REASON),
        ],
    )
    async def test_force_validation(self, service, instance, target, reason, code) -> None:
        result = await service.force_transition(instance, target, reason)

        assert result.error.code == code
        assert instance.history == ()

    @pytest.mark.asyncio
    async def test_force_rejects_state_of_other_definition(self, service, instance) -> None:
        foreign = build_document_definition("Outra").get_state("Review")
        result = await service.force_transition(instance, foreign, "motivo")
        assert result.error.code == ErrorCode.STATE_NOT_IN_DEFINITION


class TestRevert:
    """Reversão de transições."""

    @pytest_asyncio.fixture
    async def approved(self, service, instance) -> StateMachineInstance:
        await _submit(service, instance)
        result = await service.try_transition(instance, "approve", context=MANAGER)
        assert result.is_success
        return instance

    @pytest.mark.asyncio
    async def test_revert_last(self, service, approved) -> None:
        result = await service.revert_last_transition(approved, "aprovação indevida", "admin")

        info = result.value
        assert info.transitions_reverted == 1
        assert approved.current_state.name == "Review"
        assert info.new_state_id == approved.current_state_id
        assert len(approved.history) == 2
        reverted = approved.history[1]
        assert reverted.is_reverted
        assert reverted.reverted_by == "admin"
        assert reverted.reason == f"{REVERT_REASON_PREFIX} aprovação indevida"
        assert info.reverted_entries == [reverted.id]

    @pytest.mark.asyncio
    async def test_revert_all_returns_to_initial(self, service, approved) -> None:
        result = await service.revert_transitions(approved, 2, "recomeçar")

        assert result.value.transitions_reverted == 2
        assert approved.current_state.name == "Draft"
        assert approved.non_reverted_history() == []

    @pytest.mark.asyncio
    async def test_reverted_entries_are_skipped_next_time(self, service, approved) -> None:
        await service.revert_last_transition(approved, "primeira")
        result = await service.revert_last_transition(approved, "segunda")

        assert result.is_success
        assert approved.current_state.name == "Draft"
        assert all(e.is_reverted for e in approved.history)

        again = await service.revert_last_transition(approved, "terceira")
        assert again.error.code == ErrorCode.REVERT_INSUFFICIENT_HISTORY

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("count", "reason", "code"),
        [
            (0, "motivo", ErrorCode.REVERT_INVALID_COUNT),
            (-1, "", ErrorCode.REVERT_INVALID_COUNT),
            (1, "  ", ErrorCode.REVERT_MISSING_REASON),
            (3, "motivo", ErrorCode.REVERT_INSUFFICIENT_HISTORY),
        ],
    )
    async def test_revert_validation(self, service, approved, count, reason, code) -> None:
        result = await service.revert_transitions(approved, count, reason)

        assert result.error.code == code
        assert approved.current_state.name == "Approved"

    @pytest.mark.asyncio
    async def test_revert_target_state_removed(self, service, instance, definition) -> None:
        definition.add_state("Arquivo")
        await service.force_transition(instance, "Arquivo", "arquivar")
        await service.force_transition(instance, "Draft", "reabrir")
        definition.remove_state("Arquivo")

        result = await service.revert_last_transition(instance, "desfazer reabertura")

        assert result.error.code == ErrorCode.REVERT_STATE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_revert_is_persisted(self, service, approved, repository) -> None:
        await service.revert_last_transition(approved, "engano")

        loaded = await repository.load_instance("doc-1")

        assert loaded.current_state.name == "Review"
        assert loaded.history[1].is_reverted


class TestQueries:
    """Transições disponíveis e válidas."""

    @pytest.mark.asyncio
    async def test_available_transitions(self, service, instance) -> None:
        await _submit(service, instance)

        available = await service.get_available_transitions(instance)

        by_trigger = {a.trigger_name: a for a in available}
        assert list(by_trigger) == ["approve", "reject", "comment", "cancel"]
        assert not by_trigger["approve"].can_execute
        assert by_trigger["reject"].can_execute
        assert by_trigger["comment"].to_state_id is None

    @pytest.mark.asyncio
    async def test_valid_transitions(self, service, instance) -> None:
        await _submit(service, instance)

        denied = await service.get_valid_transitions(instance, "approve")
        granted = await service.get_valid_transitions(instance, "approve", MANAGER)

        assert denied.is_success and denied.value == []
        assert [v.to_state_id for v in granted.value] == [
            instance.definition.get_state("Approved").id
        ]

    @pytest.mark.asyncio
    async def test_valid_transitions_unknown_trigger(self, service, instance) -> None:
        result = await service.get_valid_transitions(instance, "inexistente")
        assert result.error.code == ErrorCode.TRIGGER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_first_valid_transition(self, service, instance) -> None:
        await _submit(service, instance)

        missing = await service.get_first_valid_transition(instance, "approve")
        found = await service.get_first_valid_transition(instance, "reject")

        assert missing.error.code == ErrorCode.TRANSITION_REQUIREMENTS_NOT_MET
        assert found.value.trigger_name == "reject"

    @pytest.mark.asyncio
    async def test_evaluate_transition_requirements(self, service, instance, definition) -> None:
        approve = next(t for t in definition.transitions if t.trigger.name == "approve")
        submit = next(t for t in definition.transitions if t.trigger.name == "submit")

        assert (await service.evaluate_transition_requirements(submit, instance)).all_requirements_met
        summary = await service.evaluate_transition_requirements(approve, instance, MANAGER)
        assert summary.all_requirements_met
        assert summary.requirement_results[0].handler_used == "ApprovalHandler"
