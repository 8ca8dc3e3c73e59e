"""Avaliação de requisitos em duas fases.

1. Fase específica: para cada requisito, os handlers do tipo concreto
   são tentados em ordem de registro; o primeiro que retorna True atende
   o requisito (OU entre handlers). Exceções viram motivo de falha e o
   próximo handler é tentado.
2. Fase genérica: cada handler genérico recebe a lista completa de status
   e pode marcar como atendidos requisitos ainda pendentes. Nunca pode
   desmarcar um requisito já atendido.

Veredito: todos os requisitos atendidos ou opcionais (E entre requisitos).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import ModuleType
from typing import TYPE_CHECKING, Any

from app.protocols.handlers import GenericRequirementHandler, RequirementHandler
from app.services.handler_registry import (
    RequirementHandlerRegistry,
    create_requirement_registry,
)
from fsm.rules import Requirement, RequirementEvaluationStatus
from fsm.types import RequirementEvaluationSummary

if TYPE_CHECKING:
    from fsm.manager import StateMachineInstance

logger = logging.getLogger(__name__)

_Snapshot = tuple[bool, str | None, str | None, bool]


def _snapshot(status: RequirementEvaluationStatus) -> _Snapshot:
    return (
        status.is_fulfilled,
        status.failure_reason,
        status.handler_used,
        status.was_processed_by_specific_handler,
    )


def _restore(status: RequirementEvaluationStatus, snapshot: _Snapshot) -> None:
    (
        status.is_fulfilled,
        status.failure_reason,
        status.handler_used,
        status.was_processed_by_specific_handler,
    ) = snapshot


class RequirementEvaluationService:
    """Avalia requisitos de transições com handlers registrados.

    Args:
        registry: Registro de handlers (um novo registro vazio quando None)
    """

    def __init__(self, registry: RequirementHandlerRegistry | None = None) -> None:
        self._registry = registry or create_requirement_registry()

    @property
    def registry(self) -> RequirementHandlerRegistry:
        return self._registry

    def register_specific_handler(
        self,
        requirement_type: type[Requirement],
        handler: RequirementHandler,
    ) -> None:
        self._registry.register_specific(requirement_type, handler)

    def register_generic_handler(self, handler: GenericRequirementHandler) -> None:
        self._registry.register_generic(handler)

    def get_specific_handlers_for(
        self, requirement_type: type[Requirement]
    ) -> list[RequirementHandler]:
        return self._registry.specific_for(requirement_type)

    def get_generic_handlers(self) -> list[GenericRequirementHandler]:
        return self._registry.generic_handlers

    def add_handler_module(self, module: str | ModuleType) -> int:
        """Descobre e registra os handlers definidos no módulo."""
        return self._registry.discover([module])

    async def evaluate_requirements(
        self,
        requirements: Iterable[Requirement],
        instance: StateMachineInstance,
        context: Mapping[str, Any] | None = None,
    ) -> RequirementEvaluationSummary:
        """Avalia os requisitos para a instância.

        Args:
            requirements: Requisitos na ordem declarada
            instance: Instância em transição (handlers recebem apenas o id)
            context: Dados do chamador indexados pelo discriminador do requisito;
                handlers genéricos recebem o dicionário completo

        Returns:
            RequirementEvaluationSummary com veredito, status e motivos
            (falhas de handlers genéricos só entram nos motivos quando o
            veredito é negativo)
        """
        requirements = list(requirements)
        if not requirements:
            return RequirementEvaluationSummary.all_met()

        context = context or {}
        statuses = [
            await self._evaluate_specific(requirement, instance.id, context)
            for requirement in requirements
        ]
        generic_failures = await self._run_generic(statuses, instance.id, context)

        all_met = all(s.is_satisfied for s in statuses)
        failure_reasons = [
            s.failure_reason for s in statuses if not s.is_satisfied and s.failure_reason
        ]
        if not all_met:
            failure_reasons.extend(r for r in generic_failures if r not in failure_reasons)
        summary = RequirementEvaluationSummary(
            all_requirements_met=all_met,
            requirement_results=statuses,
            failure_reasons=failure_reasons,
        )
        logger.debug(
            "requirements_evaluated",
            extra={
                "component": "requirement_evaluation",
                "instance_id": instance.id,
                **summary.to_log_dict(),
            },
        )
        return summary

    async def _evaluate_specific(
        self,
        requirement: Requirement,
        instance_id: str,
        context: Mapping[str, Any],
    ) -> RequirementEvaluationStatus:
        status = RequirementEvaluationStatus(requirement=requirement)
        kind = requirement.payload_kind()
        handlers = self._registry.specific_for(type(requirement))
        if not handlers:
            status.failure_reason = f"Nenhum handler registrado para o requisito {kind}"
            return status

        requirement_context = context.get(kind)
        last_error: str | None = None
        for handler in handlers:
            name = type(handler).__name__
            try:
                fulfilled = await handler.evaluate(requirement, instance_id, requirement_context)
            except Exception as exc:
                last_error = f"Handler {name} failed: {exc}"
                logger.warning(
                    "requirement_handler_failed",
                    extra={
                        "component": "requirement_evaluation",
                        "instance_id": instance_id,
                        "requirement": kind,
                        "handler": name,
                        "error_type": type(exc).__name__,
                    },
                )
                continue
            if fulfilled:
                status.is_fulfilled = True
                status.handler_used = name
                status.was_processed_by_specific_handler = True
                return status

        status.failure_reason = last_error or f"Requisito {kind} não atendido"
        return status

    async def _run_generic(
        self,
        statuses: list[RequirementEvaluationStatus],
        instance_id: str,
        context: Mapping[str, Any],
    ) -> list[str]:
        """Executa handlers genéricos; retorna os motivos de falha dos handlers."""
        failures: list[str] = []
        for handler in self._registry.generic_handlers:
            name = type(handler).__name__
            snapshots = [_snapshot(s) for s in statuses]
            try:
                returned = await handler.process(list(statuses), instance_id, dict(context))
                if returned is None or len(returned) != len(statuses):
                    raise ValueError(
                        f"retornou {0 if returned is None else len(returned)} status, "
                        f"esperado {len(statuses)}"
                    )
            except Exception as exc:
                reason = f"Handler {name} failed: {exc}"
                failures.append(reason)
                for status, snapshot in zip(statuses, snapshots, strict=True):
                    _restore(status, snapshot)
                    if not status.is_fulfilled and not status.failure_reason:
                        status.failure_reason = reason
                logger.warning(
                    "generic_requirement_handler_failed",
                    extra={
                        "component": "requirement_evaluation",
                        "instance_id": instance_id,
                        "handler": name,
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            for status, result, snapshot in zip(statuses, returned, snapshots, strict=True):
                self._merge(status, result, snapshot, name, instance_id)
        return failures

    @staticmethod
    def _merge(
        status: RequirementEvaluationStatus,
        result: RequirementEvaluationStatus,
        snapshot: _Snapshot,
        handler_name: str,
        instance_id: str,
    ) -> None:
        """Aplica o resultado de um handler genérico sem permitir revogação."""
        was_fulfilled = snapshot[0]
        is_fulfilled = result.is_fulfilled
        failure_reason = result.failure_reason
        handler_used = result.handler_used
        _restore(status, snapshot)

        if was_fulfilled:
            if not is_fulfilled:
                logger.warning(
                    "generic_requirement_revocation_ignored",
                    extra={
                        "component": "requirement_evaluation",
                        "instance_id": instance_id,
                        "requirement": status.requirement.payload_kind(),
                        "handler": handler_name,
                    },
                )
            return

        if is_fulfilled:
            status.is_fulfilled = True
            status.failure_reason = None
            status.handler_used = (
                handler_used if handler_used and handler_used != snapshot[2] else handler_name
            )
        elif failure_reason:
            status.failure_reason = failure_reason
