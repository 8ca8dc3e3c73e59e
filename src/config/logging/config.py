"""Configuração centralizada de logging.

Um único StreamHandler com formatter JSON e filtro de correlation_id é
instalado no root logger. Chamadas repetidas substituem o handler.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TextIO

from config.logging.filters import CorrelationIdFilter
from config.logging.formatters import create_json_formatter

if TYPE_CHECKING:
    from collections.abc import Callable

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

DEFAULT_SERVICE_NAME = "fsm_engine"


def configure_logging(
    level: str = "INFO",
    service_name: str = DEFAULT_SERVICE_NAME,
    correlation_id_getter: Callable[[], str] | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configura logging JSON estruturado.

    Args:
        level: Nível de log (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Nome do serviço nos logs
        correlation_id_getter: Função que retorna o correlation_id atual
            (ex: app.observability.get_correlation_id)
        stream: Destino do handler (stderr quando None)

    Raises:
        ValueError: Se o nível de log for inválido
    """
    level_upper = level.upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Nível de log inválido: {level}. "
            f"Válidos: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )

    handler = logging.StreamHandler(stream)
    handler.setLevel(level_upper)
    handler.setFormatter(create_json_formatter())
    handler.addFilter(CorrelationIdFilter(service_name, correlation_id_getter))

    root = logging.getLogger()
    root.setLevel(level_upper)
    root.handlers = [handler]


def get_logger(name: str) -> logging.Logger:
    """Atalho para logging.getLogger (service e correlation_id vêm do filtro)."""
    return logging.getLogger(name)


def log_fallback(
    logger: logging.Logger,
    component: str,
    reason: str | None = None,
    elapsed_ms: float | None = None,
    **fields: object,
) -> None:
    """Log observável de caminho degradado não fatal.

    Usado quando uma falha é absorvida por contrato (handler que levanta,
    efeito que expira, fase de efeitos abortada).

    Args:
        logger: Logger do módulo chamador
        component: Componente (ex: "effect_execution")
        reason: Motivo curto (ex: "handler_timeout")
        elapsed_ms: Tempo decorrido quando aplicável
        **fields: Ids adicionais (instance_id, handler, ...)
    """
    extra: dict[str, object] = {"fallback_used": True, "component": component}
    if reason:
        extra["reason"] = reason
    if elapsed_ms is not None:
        extra["elapsed_ms"] = round(elapsed_ms, 2)
    extra.update(fields)

    logger.warning("fallback_applied", extra=extra)
