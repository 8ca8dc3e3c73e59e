"""
Gatilhos de uma definição de máquina de estados.

O tipo do gatilho é apenas metadado descritivo: o engine não agenda
timers nem escuta eventos por conta própria.
"""

import uuid
from dataclasses import dataclass, field
from enum import StrEnum


class TriggerType(StrEnum):
    """Origem esperada do estímulo que dispara o gatilho."""

    MANUAL = "MANUAL"
    TIMER = "TIMER"
    EVENT = "EVENT"
    SIGNAL = "SIGNAL"
    CONDITION = "CONDITION"

    def __str__(self) -> str:
        return self.value


@dataclass(eq=False, slots=True)
class Trigger:
    """
    Estímulo nomeado que pode causar uma transição.

    Attributes:
        id: Identificador opaco do gatilho
        definition_id: Definição à qual o gatilho pertence
        name: Nome único dentro da definição
        description: Descrição opcional
        trigger_type: Tipo descritivo do gatilho
    """

    definition_id: str
    name: str
    description: str | None = None
    trigger_type: TriggerType = TriggerType.MANUAL
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def create(
        cls,
        definition_id: str,
        name: str,
        description: str | None = None,
        trigger_type: TriggerType = TriggerType.MANUAL,
        trigger_id: str | None = None,
    ) -> "Trigger":
        """
        Cria um gatilho validando o nome.

        Raises:
            ValueError: Se o nome for vazio
        """
        if not name or not name.strip():
            raise ValueError("Nome do gatilho não pode ser vazio")
        trigger = cls(
            definition_id=definition_id,
            name=name.strip(),
            description=description.strip() if description else None,
            trigger_type=TriggerType(trigger_type),
        )
        if trigger_id:
            trigger.id = trigger_id
        return trigger

    def update(
        self,
        description: str | None = None,
        trigger_type: TriggerType | None = None,
    ) -> None:
        """Atualiza descrição e tipo."""
        self.description = description.strip() if description else None
        if trigger_type is not None:
            self.trigger_type = TriggerType(trigger_type)

    def to_dict(self) -> dict[str, str | None]:
        """Serializa para persistência."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "trigger_type": self.trigger_type.value,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Trigger):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"{self.name} ({self.trigger_type.value})"
