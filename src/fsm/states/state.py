"""
Estados de uma definição de máquina de estados.

Cada estado pertence a exatamente uma definição e possui nome único
dentro dela. A categoria indica se é o ponto de partida (INITIAL),
um passo intermediário ou um estado final.
"""

import uuid
from dataclasses import dataclass, field
from enum import StrEnum


class StateCategory(StrEnum):
    """
    Categoria de um estado dentro da definição.

    Uma definição válida possui exatamente um estado INITIAL;
    zero ou mais estados FINAL; os demais são INTERMEDIATE.
    """

    INITIAL = "INITIAL"
    INTERMEDIATE = "INTERMEDIATE"
    FINAL = "FINAL"

    def __str__(self) -> str:
        return self.value


@dataclass(eq=False, slots=True)
class State:
    """
    Estado nomeado de uma definição.

    Igualdade e hash são por identificador: dois objetos com o mesmo
    `id` representam o mesmo estado, mesmo após reidratação.

    Attributes:
        id: Identificador opaco do estado
        definition_id: Definição à qual o estado pertence
        name: Nome único dentro da definição
        description: Descrição opcional
        category: Categoria do estado
    """

    definition_id: str
    name: str
    description: str | None = None
    category: StateCategory = StateCategory.INTERMEDIATE
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def create(
        cls,
        definition_id: str,
        name: str,
        description: str | None = None,
        category: StateCategory = StateCategory.INTERMEDIATE,
        state_id: str | None = None,
    ) -> "State":
        """
        Cria um estado validando o nome.

        Raises:
            ValueError: Se o nome for vazio
        """
        if not name or not name.strip():
            raise ValueError("Nome do estado não pode ser vazio")
        state = cls(
            definition_id=definition_id,
            name=name.strip(),
            description=description.strip() if description else None,
            category=StateCategory(category),
        )
        if state_id:
            state.id = state_id
        return state

    @property
    def is_initial(self) -> bool:
        return self.category == StateCategory.INITIAL

    @property
    def is_final(self) -> bool:
        return self.category == StateCategory.FINAL

    def update(
        self,
        name: str | None = None,
        description: str | None = None,
        category: StateCategory | None = None,
    ) -> None:
        """Atualiza nome, descrição e categoria (nome vazio é ignorado)."""
        if name and name.strip():
            self.name = name.strip()
        self.description = description.strip() if description else None
        if category is not None:
            self.category = StateCategory(category)

    def to_dict(self) -> dict[str, str | None]:
        """Serializa para persistência."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return self.name
