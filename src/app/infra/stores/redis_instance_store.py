"""Redis Instance Store — persistência de instâncias com checagem otimista.

Cada instância é um documento JSON `{"version": N, "instance": {...}}`.
O save usa WATCH/MULTI: lê a versão gravada, compara com o token da
instância e grava a versão N+1 na mesma transação. Se outra escrita
ocorrer entre o WATCH e o EXEC, o Redis aborta e o conflito é reportado.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from redis.exceptions import ConnectionError as RedisDriverConnectionError
from redis.exceptions import TimeoutError as RedisDriverTimeoutError
from redis.exceptions import WatchError

from app.protocols.instance_repository import DefinitionResolver, InstanceRepositoryProtocol
from fsm.manager import StateMachineInstance
from utils.errors import ConcurrencyConflictError, InstanceNotFoundError, RedisConnectionError

if TYPE_CHECKING:
    from redis.asyncio import Redis as AsyncRedis

logger = logging.getLogger(__name__)

# Prefixo padrão para namespace de instâncias
INSTANCE_PREFIX = "fsm:instance:"


def _stored_version(raw: bytes | str | None) -> int:
    if raw is None:
        return 0
    return int(json.loads(raw).get("version", 0))


class RedisInstanceRepository(InstanceRepositoryProtocol):
    """Repositório de instâncias usando Redis (async).

    Args:
        async_redis_client: Cliente Redis assíncrono
        definition_resolver: Resolve a definição pelo id na reidratação
        key_prefix: Namespace das chaves
    """

    def __init__(
        self,
        async_redis_client: AsyncRedis[bytes],
        definition_resolver: DefinitionResolver,
        key_prefix: str = INSTANCE_PREFIX,
    ) -> None:
        self._redis = async_redis_client
        self._resolver = definition_resolver
        self._prefix = key_prefix

    def _key(self, instance_id: str) -> str:
        """Gera chave Redis com namespace."""
        return f"{self._prefix}{instance_id}"

    async def save_instance(self, instance: StateMachineInstance) -> None:
        """Grava a instância se a versão no Redis for a esperada.

        Raises:
            ConcurrencyConflictError: Versão divergente ou transação abortada
            RedisConnectionError: Falha de conexão/timeout
        """
        key = self._key(instance.id)
        expected = instance.version
        document = json.dumps({"version": expected + 1, "instance": instance.to_dict()})

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                actual = _stored_version(await pipe.get(key))
                if actual != expected:
                    raise ConcurrencyConflictError(instance.id, expected, actual)
                pipe.multi()
                pipe.set(key, document)
                await pipe.execute()
        except WatchError as exc:
            raise ConcurrencyConflictError(instance.id, expected, None) from exc
        except (RedisDriverConnectionError, RedisDriverTimeoutError) as exc:
            raise RedisConnectionError("Falha ao salvar instância no Redis") from exc

        instance.mark_persisted(expected + 1)
        logger.debug(
            "instance_saved",
            extra={"instance_id": instance.id, "version": expected + 1, "backend": "redis"},
        )

    async def load_instance(self, instance_id: str) -> StateMachineInstance | None:
        """Carrega a instância do Redis; None se não existir.

        Raises:
            InstanceNotFoundError: Definição não resolvida ou documento corrompido
            RedisConnectionError: Falha de conexão/timeout
        """
        try:
            raw = await self._redis.get(self._key(instance_id))
        except (RedisDriverConnectionError, RedisDriverTimeoutError) as exc:
            raise RedisConnectionError("Falha ao carregar instância do Redis") from exc
        if raw is None:
            return None

        try:
            document: dict[str, Any] = json.loads(raw)
            data = document["instance"]
            definition = self._resolver(data["definition_id"])
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            logger.warning(
                "instance_load_error",
                extra={"instance_id": instance_id, "error_type": type(exc).__name__},
            )
            raise InstanceNotFoundError(f"Documento da instância {instance_id} inválido") from exc

        if definition is None:
            raise InstanceNotFoundError(
                f"Definição {data['definition_id']} da instância {instance_id} não encontrada"
            )
        instance = StateMachineInstance.from_dict(data, definition)
        instance.mark_persisted(int(document.get("version", 0)))
        return instance

    async def delete_instance(self, instance_id: str) -> bool:
        """Remove a instância do Redis."""
        try:
            return bool(await self._redis.delete(self._key(instance_id)))
        except (RedisDriverConnectionError, RedisDriverTimeoutError) as exc:
            raise RedisConnectionError("Falha ao remover instância do Redis") from exc
