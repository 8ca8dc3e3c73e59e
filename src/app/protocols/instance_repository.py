"""Protocolo de persistência de instâncias de máquina de estados.

O core só exige salvar e carregar. Adaptadores usam o `version` da
instância como token de concorrência otimista e levantam
ConcurrencyConflictError quando a versão gravada mudou.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fsm.definitions import StateMachineDefinition
    from fsm.manager import StateMachineInstance

DefinitionResolver = Callable[[str], "StateMachineDefinition | None"]
"""Resolve a definição pelo id ao reidratar uma instância."""


class InstanceRepositoryProtocol(ABC):
    """Contrato mínimo assíncrono para armazenamento de instâncias."""

    @abstractmethod
    async def save_instance(self, instance: StateMachineInstance) -> None:
        """Persiste a instância e atualiza seu token de versão.

        Raises:
            ConcurrencyConflictError: Versão gravada difere da versão da instância
        """

    @abstractmethod
    async def load_instance(self, instance_id: str) -> StateMachineInstance | None:
        """Carrega a instância; None se não existir."""
