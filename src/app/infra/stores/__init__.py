"""Stores — implementações concretas de persistência de instâncias.

Módulos disponíveis:
    - redis_instance_store: Repositório usando Redis (WATCH/MULTI)
    - memory_stores: Repositório em memória para desenvolvimento/testes
"""

from __future__ import annotations

from app.infra.stores.memory_stores import MemoryInstanceRepository
from app.infra.stores.redis_instance_store import RedisInstanceRepository

__all__ = [
    "MemoryInstanceRepository",
    "RedisInstanceRepository",
]
