"""Exceções de infraestrutura (persistência e concorrência)."""

from __future__ import annotations


class InfrastructureError(RuntimeError):
    """Base para falhas de infraestrutura."""


class RedisConnectionError(InfrastructureError):
    """Falha de conexão/timeout ao acessar Redis."""


class ConcurrencyConflictError(InfrastructureError):
    """Versão gravada da instância mudou desde a leitura."""

    def __init__(self, instance_id: str, expected_version: int, actual_version: int | None) -> None:
        self.instance_id = instance_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Conflito de concorrência na instância {instance_id}: "
            f"esperada versão {expected_version}, encontrada {actual_version}"
        )


class InstanceNotFoundError(InfrastructureError):
    """Instância ou definição referenciada não encontrada na persistência."""
