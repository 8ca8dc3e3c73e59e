"""Filtro de logging que injeta correlation_id e service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class CorrelationIdFilter(logging.Filter):
    """Enriquece cada record com `correlation_id` e `service`.

    Um correlation_id passado explicitamente via `extra` é preservado.

    Args:
        service_name: Nome do serviço (ex: "fsm_engine")
        correlation_id_getter: Função que retorna o correlation_id atual
    """

    def __init__(
        self,
        service_name: str,
        correlation_id_getter: Callable[[], str] | None = None,
    ) -> None:
        super().__init__()
        self._service_name = service_name
        self._get_correlation_id = correlation_id_getter or (lambda: "")

    def filter(self, record: logging.LogRecord) -> bool:
        existing = getattr(record, "correlation_id", None)
        record.correlation_id = existing if existing else self._get_correlation_id()
        record.service = self._service_name
        return True
