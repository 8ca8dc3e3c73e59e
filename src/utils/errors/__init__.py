"""Exceções utilitárias compartilhadas."""

from .exceptions import (
    ConcurrencyConflictError,
    InfrastructureError,
    InstanceNotFoundError,
    RedisConnectionError,
)

__all__ = [
    "ConcurrencyConflictError",
    "InfrastructureError",
    "InstanceNotFoundError",
    "RedisConnectionError",
]
