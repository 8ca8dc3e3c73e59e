"""Execução de efeitos em duas fases, após o commit da transição.

Efeitos são não críticos: falhas são registradas no resumo e nos logs,
mas nunca desfazem a transição. Diferente dos requisitos, todos os
handlers de um efeito são executados (sem curto-circuito).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from types import ModuleType
from typing import TYPE_CHECKING

from app.protocols.handlers import EffectHandler, GenericEffectHandler
from app.services.handler_registry import EffectHandlerRegistry, create_effect_registry
from config.logging import log_fallback
from fsm.rules import Effect, EffectExecutionStatus
from fsm.types import EffectExecutionSummary

if TYPE_CHECKING:
    from fsm.manager import StateMachineInstance
    from fsm.types import TransitionInfo

logger = logging.getLogger(__name__)

SKIPPED_REASON = "Não executado: falha em efeito anterior"


class EffectExecutionService:
    """Executa efeitos com handlers registrados.

    Args:
        registry: Registro de handlers (um novo registro vazio quando None)
        continue_on_failure: Quando False, uma exceção encerra os handlers do
            efeito e um efeito obrigatório não executado encerra os seguintes
        effect_timeout_seconds: Timeout por chamada de handler (None = sem timeout)
    """

    def __init__(
        self,
        registry: EffectHandlerRegistry | None = None,
        *,
        continue_on_failure: bool = True,
        effect_timeout_seconds: float | None = None,
    ) -> None:
        self._registry = registry or create_effect_registry()
        self._continue_on_failure = continue_on_failure
        self._timeout = effect_timeout_seconds

    @property
    def registry(self) -> EffectHandlerRegistry:
        return self._registry

    def register_specific_handler(self, effect_type: type[Effect], handler: EffectHandler) -> None:
        self._registry.register_specific(effect_type, handler)

    def register_generic_handler(self, handler: GenericEffectHandler) -> None:
        self._registry.register_generic(handler)

    def get_specific_handlers_for(self, effect_type: type[Effect]) -> list[EffectHandler]:
        return self._registry.specific_for(effect_type)

    def get_generic_handlers(self) -> list[GenericEffectHandler]:
        return self._registry.generic_handlers

    def add_handler_module(self, module: str | ModuleType) -> int:
        return self._registry.discover([module])

    async def execute_effects(
        self,
        effects: Iterable[Effect],
        instance: StateMachineInstance,
        transition_info: TransitionInfo,
    ) -> EffectExecutionSummary:
        """Executa os efeitos em ordem de `execution_order` (estável).

        Returns:
            EffectExecutionSummary com status por efeito e contadores
        """
        ordered = sorted(effects, key=lambda e: e.execution_order)
        if not ordered:
            return EffectExecutionSummary.empty()

        started = time.perf_counter()
        statuses: list[EffectExecutionStatus] = []
        halted = False
        for effect in ordered:
            status = EffectExecutionStatus(effect=effect)
            statuses.append(status)
            if halted:
                status.failure_reason = SKIPPED_REASON
                continue
            await self._execute_specific(status, instance.id, transition_info)
            halted = not self._continue_on_failure and status.is_failed

        statuses = await self._run_generic(statuses, instance.id, transition_info)

        summary = EffectExecutionSummary.from_results(
            statuses, timedelta(seconds=time.perf_counter() - started)
        )
        log = logger.info if summary.all_effects_executed else logger.warning
        log(
            "effects_executed",
            extra={
                "component": "effect_execution",
                "instance_id": instance.id,
                **summary.to_log_dict(),
            },
        )
        return summary

    async def _execute_specific(
        self,
        status: EffectExecutionStatus,
        instance_id: str,
        transition_info: TransitionInfo,
    ) -> None:
        """Executa todos os handlers do efeito (uma exceção interrompe quando
        continue_on_failure=False)."""
        effect = status.effect
        kind = effect.payload_kind()
        handlers = self._registry.specific_for(type(effect))
        if not handlers:
            status.failure_reason = f"Nenhum handler específico para o efeito {kind}"
            log_fallback(
                logger,
                "effect_execution",
                reason="no_specific_handler",
                instance_id=instance_id,
                effect=kind,
            )
            return

        started = time.perf_counter()
        last_error: str | None = None
        for handler in handlers:
            name = type(handler).__name__
            try:
                executed = await self._call(handler, effect, instance_id, transition_info)
            except TimeoutError:
                last_error = f"Handler {name} excedeu o timeout de {self._timeout}s"
                log_fallback(
                    logger,
                    "effect_execution",
                    reason="handler_timeout",
                    elapsed_ms=(time.perf_counter() - started) * 1000,
                    instance_id=instance_id,
                    effect=kind,
                    handler=name,
                )
            except Exception as exc:
                last_error = f"Handler {name} failed: {exc}"
                logger.warning(
                    "effect_handler_failed",
                    extra={
                        "component": "effect_execution",
                        "instance_id": instance_id,
                        "effect": kind,
                        "handler": name,
                        "error_type": type(exc).__name__,
                    },
                )
            else:
                if executed:
                    status.is_executed = True
                    status.handler_used = name
                    status.was_processed_by_specific_handler = True
                    status.executed_at = datetime.now(UTC)
                continue

            if not self._continue_on_failure:
                break

        status.execution_duration = timedelta(seconds=time.perf_counter() - started)
        if not status.is_executed:
            status.failure_reason = last_error or f"Efeito {kind} não executado"

    async def _call(
        self,
        handler: EffectHandler,
        effect: Effect,
        instance_id: str,
        transition_info: TransitionInfo,
    ) -> bool:
        call = handler.execute(effect, instance_id, transition_info)
        if self._timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self._timeout)

    async def _run_generic(
        self,
        statuses: list[EffectExecutionStatus],
        instance_id: str,
        transition_info: TransitionInfo,
    ) -> list[EffectExecutionStatus]:
        """Encadeia os handlers genéricos; cada um recebe os status do anterior.

        Um handler que falha (ou devolve uma lista de tamanho diferente) é
        logado e a lista anterior é mantida.
        """
        for handler in self._registry.generic_handlers:
            try:
                returned = await handler.process(list(statuses), instance_id, transition_info)
                if returned is None or len(returned) != len(statuses):
                    raise ValueError(
                        f"retornou {0 if returned is None else len(returned)} status, "
                        f"esperado {len(statuses)}"
                    )
            except Exception as exc:
                logger.warning(
                    "generic_effect_handler_failed",
                    extra={
                        "component": "effect_execution",
                        "instance_id": instance_id,
                        "handler": type(handler).__name__,
                        "error_type": type(exc).__name__,
                    },
                )
                continue
            statuses = list(returned)
        return statuses
