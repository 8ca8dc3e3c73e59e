"""Repositório de instâncias em memória — apenas para desenvolvimento e testes.

ATENÇÃO: Não usar em staging/production. Sem persistência entre reinícios.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from app.protocols.instance_repository import DefinitionResolver, InstanceRepositoryProtocol
from fsm.manager import StateMachineInstance
from utils.errors import ConcurrencyConflictError, InstanceNotFoundError

if TYPE_CHECKING:
    from fsm.definitions import StateMachineDefinition

logger = logging.getLogger(__name__)


class MemoryInstanceRepository(InstanceRepositoryProtocol):
    """Repositório em memória com checagem otimista de versão.

    As instâncias são guardadas serializadas (JSON), de modo que cada
    `load_instance` devolve um objeto novo, como um backend real.

    Args:
        definition_resolver: Resolve definições por id; definições das
            instâncias salvas ficam conhecidas automaticamente
    """

    def __init__(self, definition_resolver: DefinitionResolver | None = None) -> None:
        self._store: dict[str, tuple[int, str]] = {}  # instance_id -> (version, json)
        self._definitions: dict[str, StateMachineDefinition] = {}
        self._resolver = definition_resolver

    def register_definition(self, definition: StateMachineDefinition) -> None:
        self._definitions[definition.id] = definition

    def _resolve(self, definition_id: str) -> StateMachineDefinition | None:
        definition = self._definitions.get(definition_id)
        if definition is None and self._resolver is not None:
            definition = self._resolver(definition_id)
        return definition

    def stored_version(self, instance_id: str) -> int | None:
        """Versão gravada (None se nunca salva)."""
        entry = self._store.get(instance_id)
        return entry[0] if entry else None

    async def save_instance(self, instance: StateMachineInstance) -> None:
        """Salva a instância se a versão gravada for a esperada."""
        actual = self.stored_version(instance.id) or 0
        if actual != instance.version:
            raise ConcurrencyConflictError(instance.id, instance.version, actual)

        new_version = actual + 1
        self._store[instance.id] = (new_version, json.dumps(instance.to_dict()))
        self.register_definition(instance.definition)
        instance.mark_persisted(new_version)
        logger.debug(
            "instance_saved",
            extra={"instance_id": instance.id, "version": new_version, "backend": "memory"},
        )

    async def load_instance(self, instance_id: str) -> StateMachineInstance | None:
        """Carrega a instância; None se não existir.

        Raises:
            InstanceNotFoundError: Se a definição da instância não for resolvida
        """
        entry = self._store.get(instance_id)
        if entry is None:
            return None
        version, raw = entry
        data = json.loads(raw)
        definition = self._resolve(data["definition_id"])
        if definition is None:
            raise InstanceNotFoundError(
                f"Definição {data['definition_id']} da instância {instance_id} não encontrada"
            )
        instance = StateMachineInstance.from_dict(data, definition)
        instance.mark_persisted(version)
        return instance

    async def delete_instance(self, instance_id: str) -> bool:
        return self._store.pop(instance_id, None) is not None
