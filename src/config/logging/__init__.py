"""Configuração de logging estruturado (JSON) do engine.

Uso:
    from config.logging import configure_logging

    # Na inicialização (app/bootstrap)
    configure_logging(level="INFO", service_name="fsm_engine")

    # Em qualquer módulo
    logger = logging.getLogger(__name__)
    logger.info("transition_committed", extra={"instance_id": instance.id})

Campos presentes em todo log: asctime, level, logger, message,
correlation_id, service. Payloads de requisitos/efeitos nunca são logados.
"""

from config.logging.config import (
    DEFAULT_SERVICE_NAME,
    configure_logging,
    get_logger,
    log_fallback,
)
from config.logging.filters import CorrelationIdFilter
from config.logging.formatters import (
    FIELD_RENAME_MAP,
    REQUIRED_LOG_FIELDS,
    create_json_formatter,
)

__all__ = [
    "DEFAULT_SERVICE_NAME",
    "FIELD_RENAME_MAP",
    "REQUIRED_LOG_FIELDS",
    "CorrelationIdFilter",
    "configure_logging",
    "create_json_formatter",
    "get_logger",
    "log_fallback",
]
