"""Formatter JSON dos logs estruturados (python-json-logger)."""

from __future__ import annotations

from pythonjsonlogger.json import JsonFormatter

REQUIRED_LOG_FIELDS = (
    "asctime",
    "levelname",
    "name",
    "message",
    "correlation_id",
    "service",
)

FIELD_RENAME_MAP = {
    "levelname": "level",
    "name": "logger",
}


def create_json_formatter() -> JsonFormatter:
    """Cria o formatter JSON.

    Exemplo de saída:
        {"asctime": "...", "level": "INFO", "logger": "app.services.transition_service",
         "message": "transition_committed", "correlation_id": "abc-123",
         "service": "fsm_engine", "instance_id": "..."}
    """
    format_string = " ".join(f"%({field})s" for field in REQUIRED_LOG_FIELDS)
    return JsonFormatter(format_string, rename_fields=FIELD_RENAME_MAP)
