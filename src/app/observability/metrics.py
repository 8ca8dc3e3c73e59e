"""Registro de métricas via structured logging.

As métricas são logs estruturados (`metric_type` no extra) e podem ser
agregadas depois pelo backend de logs.

Métricas suportadas:
- Latência: tempo de cada operação do engine (try/force/revert)
- Transição: contador por resultado e código de erro
- Efeitos: contador de efeitos não executados após um commit

Uso:
    start = time.perf_counter()
    result = await service.try_transition(instance, "submit", actor="u1")
    record_latency("transition_service", "try_transition", (time.perf_counter() - start) * 1000)
    record_transition("try", "success" if result.is_success else "failure", code)
"""

from __future__ import annotations

import logging

from app.observability.correlation import get_correlation_id

logger = logging.getLogger(__name__)


def record_latency(
    component: str,
    operation: str,
    latency_ms: float,
    correlation_id: str | None = None,
) -> None:
    """Registra latência de operação.

    Args:
        component: Nome do componente (ex: "transition_service")
        operation: Nome da operação (ex: "try_transition", "revert_transitions")
        latency_ms: Latência em milissegundos
        correlation_id: ID de correlação (usa o do contexto se None)
    """
    logger.info(
        "metric_latency",
        extra={
            "metric_type": "latency",
            "component": component,
            "operation": operation,
            "latency_ms": round(latency_ms, 2),
            "correlation_id": correlation_id or get_correlation_id(),
        },
    )


def record_transition(
    operation: str,
    outcome: str,
    code: str | None = None,
    definition_id: str | None = None,
) -> None:
    """Registra o resultado de uma operação de transição.

    Args:
        operation: "try", "force" ou "revert"
        outcome: "success" ou "failure"
        code: Código de erro quando outcome == "failure"
        definition_id: Definição da instância
    """
    logger.info(
        "metric_transition",
        extra={
            "metric_type": "transition",
            "component": "transition_service",
            "operation": operation,
            "outcome": outcome,
            "code": code,
            "definition_id": definition_id,
        },
    )


def record_effect_failures(
    failed_effects: int,
    total_effects: int,
    instance_id: str | None = None,
) -> None:
    """Registra efeitos não executados (falhas não revertem a transição)."""
    if failed_effects <= 0:
        return
    logger.info(
        "metric_effect_failures",
        extra={
            "metric_type": "effect_failures",
            "component": "effect_execution",
            "failed_effects": failed_effects,
            "total_effects": total_effects,
            "instance_id": instance_id,
        },
    )
