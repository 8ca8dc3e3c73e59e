"""
Transições de uma definição de máquina de estados.

Uma transição liga um gatilho a um estado de origem (ou a qualquer
estado, quando a origem é ausente) e, opcionalmente, a um estado de
destino. Sem destino, o gatilho dispara requisitos e efeitos sem mover
a instância.
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from fsm.rules.effects import Effect
from fsm.rules.requirements import Requirement
from fsm.states.state import State
from fsm.triggers.trigger import Trigger

PayloadSelector = str | type


def _matches_selector(payload: Requirement | Effect, selector: PayloadSelector) -> bool:
    if isinstance(selector, str):
        return type(payload).payload_kind() == selector
    return isinstance(payload, selector)


@dataclass(eq=False, slots=True)
class Transition:
    """
    Aresta da definição: gatilho + origem opcional + destino opcional.

    Attributes:
        id: Identificador opaco da transição
        definition_id: Definição à qual a transição pertence
        trigger: Gatilho que dispara a transição
        from_state: Estado de origem (None = qualquer estado)
        to_state: Estado de destino (None = apenas gatilho)
        description: Descrição opcional
        requirements: Requisitos avaliados antes do commit (ordem declarada)
        effects: Efeitos executados após o commit
    """

    definition_id: str
    trigger: Trigger
    from_state: State | None = None
    to_state: State | None = None
    description: str | None = None
    requirements: tuple[Requirement, ...] = ()
    effects: tuple[Effect, ...] = ()
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def create(
        cls,
        definition_id: str,
        trigger: Trigger,
        from_state: State | None = None,
        to_state: State | None = None,
        description: str | None = None,
        requirements: Iterable[Requirement] = (),
        effects: Iterable[Effect] = (),
        transition_id: str | None = None,
    ) -> "Transition":
        """
        Cria uma transição validando gatilho e payloads.

        Raises:
            ValueError: Se o gatilho for ausente ou um payload tiver tipo inválido
        """
        if trigger is None:
            raise ValueError("Transição exige um gatilho")
        transition = cls(
            definition_id=definition_id,
            trigger=trigger,
            from_state=from_state,
            to_state=to_state,
            description=description.strip() if description else None,
            requirements=_as_requirements(requirements),
            effects=_as_effects(effects),
        )
        if transition_id:
            transition.id = transition_id
        return transition

    @property
    def changes_state(self) -> bool:
        """Move a instância (destino presente; origem pode ser curinga)."""
        return self.to_state is not None

    @property
    def is_trigger_only(self) -> bool:
        return self.to_state is None

    @property
    def is_wildcard(self) -> bool:
        """Aplica-se a qualquer estado de origem."""
        return self.from_state is None

    @property
    def has_requirements(self) -> bool:
        return bool(self.requirements)

    @property
    def requirement_count(self) -> int:
        return len(self.requirements)

    @property
    def has_effects(self) -> bool:
        return bool(self.effects)

    @property
    def effect_count(self) -> int:
        return len(self.effects)

    @property
    def requires_user_data(self) -> bool:
        return bool(self.get_required_data_types())

    def get_required_data_types(self) -> list[type]:
        """Tipos de dados exigidos pelos requisitos, sem repetição."""
        seen: list[type] = []
        for requirement in self.requirements:
            for data_type in requirement.required_data_types():
                if data_type not in seen:
                    seen.append(data_type)
        return seen

    def applies_to(self, state: State | None) -> bool:
        """Origem igual ao estado informado ou curinga."""
        return self.from_state is None or (
            state is not None and self.from_state.id == state.id
        )

    def update(
        self,
        description: str | None = None,
        requirements: Iterable[Requirement] | None = None,
        effects: Iterable[Effect] | None = None,
    ) -> None:
        """Substitui descrição e, quando informados, requisitos e efeitos."""
        self.description = description.strip() if description else None
        if requirements is not None:
            self.requirements = _as_requirements(requirements)
        if effects is not None:
            self.effects = _as_effects(effects)

    def add_requirement(self, requirement: Requirement) -> None:
        self.requirements = (*self.requirements, *_as_requirements([requirement]))

    def remove_requirement(self, selector: PayloadSelector) -> int:
        """
        Remove requisitos pelo discriminador ou pelo tipo.

        Returns:
            Quantidade de requisitos removidos
        """
        kept = tuple(r for r in self.requirements if not _matches_selector(r, selector))
        removed = len(self.requirements) - len(kept)
        self.requirements = kept
        return removed

    def add_effect(self, effect: Effect) -> None:
        self.effects = (*self.effects, *_as_effects([effect]))

    def remove_effect(self, selector: PayloadSelector) -> int:
        """Remove efeitos pelo discriminador ou pelo tipo."""
        kept = tuple(e for e in self.effects if not _matches_selector(e, selector))
        removed = len(self.effects) - len(kept)
        self.effects = kept
        return removed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transition):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        if self.to_state is None:
            return f"Trigger: {self.trigger.name}"
        source = self.from_state.name if self.from_state is not None else "*"
        return f"{source} -> {self.to_state.name} ({self.trigger.name})"


def _as_requirements(items: Iterable[Requirement]) -> tuple[Requirement, ...]:
    result = tuple(items)
    for item in result:
        if not isinstance(item, Requirement):
            raise ValueError(f"Requisito inválido: {item!r}")
    return result


def _as_effects(items: Iterable[Effect]) -> tuple[Effect, ...]:
    result = tuple(items)
    for item in result:
        if not isinstance(item, Effect):
            raise ValueError(f"Efeito inválido: {item!r}")
    return result
