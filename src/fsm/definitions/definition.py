"""
Definição de máquina de estados (agregado raiz do modelo).

Uma definição reúne estados, gatilhos e transições. Todas as mutações
passam por métodos do agregado; as coleções são expostas como tuplas
somente leitura.
"""

from __future__ import annotations

import uuid
from collections import deque
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from fsm.definitions.diagram import render_mermaid
from fsm.rules.codec import PayloadRegistry, effect_registry, requirement_registry
from fsm.rules.effects import Effect
from fsm.rules.requirements import Requirement
from fsm.states.state import State, StateCategory
from fsm.transitions.transition import Transition
from fsm.triggers.trigger import Trigger, TriggerType


class DefinitionStatus(StrEnum):
    """Ciclo de vida da definição."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    DEPRECATED = "DEPRECATED"
    ARCHIVED = "ARCHIVED"

    @property
    def accepts_new_instances(self) -> bool:
        return self in (DefinitionStatus.DRAFT, DefinitionStatus.PUBLISHED)

    def __str__(self) -> str:
        return self.value


class StateMachineDefinition:
    """
    Grafo de estados, gatilhos e transições de uma máquina.

    Args:
        name: Nome da definição
        initial_state_name: Nome do estado inicial (criado automaticamente);
            None cria a definição sem estado inicial
        version: Versão da definição
        definition_id: Identificador (gerado quando ausente)
        description: Descrição opcional
        status: Status inicial

    Raises:
        ValueError: Se o nome for vazio ou a versão for menor que 1
    """

    __slots__ = (
        "_created_at",
        "_description",
        "_id",
        "_initial_state_id",
        "_name",
        "_states",
        "_status",
        "_transitions",
        "_triggers",
        "_version",
    )

    def __init__(
        self,
        name: str,
        initial_state_name: str | None,
        version: int = 1,
        *,
        definition_id: str | None = None,
        description: str | None = None,
        status: DefinitionStatus = DefinitionStatus.DRAFT,
    ) -> None:
        if not name or not name.strip():
            raise ValueError("Nome da definição não pode ser vazio")
        if version < 1:
            raise ValueError(f"Versão deve ser >= 1, recebido: {version}")

        self._id = definition_id or str(uuid.uuid4())
        self._name = name.strip()
        self._description = description.strip() if description else None
        self._version = version
        self._status = DefinitionStatus(status)
        self._created_at = datetime.now(UTC)
        self._states: list[State] = []
        self._triggers: list[Trigger] = []
        self._transitions: list[Transition] = []
        self._initial_state_id: str | None = None

        if initial_state_name is not None:
            initial = self.add_state(initial_state_name, category=StateCategory.INITIAL)
            self._initial_state_id = initial.id

    # ──────────────────────────────────────────────────────────────
    # Propriedades
    # ──────────────────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str | None:
        return self._description

    @property
    def version(self) -> int:
        return self._version

    @property
    def status(self) -> DefinitionStatus:
        return self._status

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def states(self) -> tuple[State, ...]:
        return tuple(self._states)

    @property
    def triggers(self) -> tuple[Trigger, ...]:
        return tuple(self._triggers)

    @property
    def transitions(self) -> tuple[Transition, ...]:
        return tuple(self._transitions)

    @property
    def initial_state(self) -> State | None:
        if self._initial_state_id is None:
            return None
        return self.get_state_by_id(self._initial_state_id)

    # ──────────────────────────────────────────────────────────────
    # Mutação
    # ──────────────────────────────────────────────────────────────

    def add_state(
        self,
        name: str,
        description: str | None = None,
        category: StateCategory = StateCategory.INTERMEDIATE,
        state_id: str | None = None,
    ) -> State:
        """
        Adiciona um estado.

        Raises:
            ValueError: Nome vazio ou já existente
        """
        state = State.create(self._id, name, description, category, state_id=state_id)
        if self.get_state(state.name) is not None:
            raise ValueError(f"Estado '{state.name}' já existe na definição {self._name}")
        self._states.append(state)
        return state

    def remove_state(self, name: str) -> None:
        """
        Remove um estado não referenciado.

        Raises:
            ValueError: Estado inexistente, inicial ou usado por uma transição
        """
        state = self._require_state(name)
        if state.id == self._initial_state_id:
            raise ValueError(f"Estado inicial '{state.name}' não pode ser removido")
        for transition in self._transitions:
            if state in (transition.from_state, transition.to_state):
                raise ValueError(
                    f"Estado '{state.name}' é usado pela transição {transition}"
                )
        self._states.remove(state)

    def add_trigger(
        self,
        name: str,
        description: str | None = None,
        trigger_type: TriggerType = TriggerType.MANUAL,
        trigger_id: str | None = None,
    ) -> Trigger:
        """
        Adiciona um gatilho.

        Raises:
            ValueError: Nome vazio ou já existente
        """
        trigger = Trigger.create(self._id, name, description, trigger_type, trigger_id=trigger_id)
        if self.get_trigger(trigger.name) is not None:
            raise ValueError(f"Gatilho '{trigger.name}' já existe na definição {self._name}")
        self._triggers.append(trigger)
        return trigger

    def remove_trigger(self, name: str) -> None:
        """
        Remove um gatilho sem transições.

        Raises:
            ValueError: Gatilho inexistente ou usado por uma transição
        """
        trigger = self._require_trigger(name)
        if any(t.trigger == trigger for t in self._transitions):
            raise ValueError(f"Gatilho '{trigger.name}' é usado por uma transição")
        self._triggers.remove(trigger)

    def add_transition(
        self,
        trigger: Trigger | str,
        from_state: State | str | None = None,
        to_state: State | str | None = None,
        description: str | None = None,
        requirements: Iterable[Requirement] = (),
        effects: Iterable[Effect] = (),
        transition_id: str | None = None,
    ) -> Transition:
        """
        Adiciona uma transição; estados e gatilho aceitos como objeto ou nome.

        Raises:
            ValueError: Estado ou gatilho fora desta definição
        """
        transition = Transition.create(
            self._id,
            self._require_trigger(trigger),
            from_state=self._resolve_optional_state(from_state),
            to_state=self._resolve_optional_state(to_state),
            description=description,
            requirements=requirements,
            effects=effects,
            transition_id=transition_id,
        )
        self._transitions.append(transition)
        return transition

    def remove_transition(self, transition_id: str) -> None:
        """Remove uma transição pelo id (ValueError quando inexistente)."""
        transition = self.get_transition_by_id(transition_id)
        if transition is None:
            raise ValueError(f"Transição {transition_id} não existe na definição")
        self._transitions.remove(transition)

    def set_status(self, status: DefinitionStatus) -> None:
        self._status = DefinitionStatus(status)

    # ──────────────────────────────────────────────────────────────
    # Consulta
    # ──────────────────────────────────────────────────────────────

    def get_state(self, name: str) -> State | None:
        return next((s for s in self._states if s.name == name), None)

    def get_state_by_id(self, state_id: str) -> State | None:
        return next((s for s in self._states if s.id == state_id), None)

    def get_trigger(self, name: str) -> Trigger | None:
        return next((t for t in self._triggers if t.name == name), None)

    def get_trigger_by_id(self, trigger_id: str) -> Trigger | None:
        return next((t for t in self._triggers if t.id == trigger_id), None)

    def get_transition_by_id(self, transition_id: str) -> Transition | None:
        return next((t for t in self._transitions if t.id == transition_id), None)

    def contains_state(self, state: State) -> bool:
        return state.definition_id == self._id and self.get_state_by_id(state.id) is not None

    def get_transitions_from_state(
        self,
        state: State | None,
        include_wildcard: bool = False,
    ) -> list[Transition]:
        """Transições com origem no estado (e curingas, se pedido), na ordem da definição."""
        result = []
        for transition in self._transitions:
            if transition.from_state is None:
                if include_wildcard:
                    result.append(transition)
            elif state is not None and transition.from_state.id == state.id:
                result.append(transition)
        return result

    def get_available_triggers_from_state(
        self,
        state: State | None,
        include_wildcard: bool = False,
    ) -> list[Trigger]:
        """Gatilhos distintos das transições saindo do estado."""
        triggers: list[Trigger] = []
        for transition in self.get_transitions_from_state(state, include_wildcard):
            if transition.trigger not in triggers:
                triggers.append(transition.trigger)
        return triggers

    def validate(self) -> list[str]:
        """
        Verifica consistência da definição (consultivo, não bloqueia uso).

        Returns:
            Lista de problemas encontrados (vazia se consistente)
        """
        errors: list[str] = []

        if not self._states:
            errors.append("Definição deve ter ao menos um estado")

        initial = self.initial_state
        if initial is None:
            errors.append("Estado inicial não definido")

        initials = [s for s in self._states if s.is_initial]
        if len(initials) > 1:
            names = ", ".join(s.name for s in initials)
            errors.append(f"Mais de um estado inicial: {names}")

        reachable = self._reachable_state_ids(initial)
        orphaned = [s for s in self._states if s.id not in reachable]
        if orphaned:
            names = ", ".join(s.name for s in orphaned)
            errors.append(f"Estados inalcançáveis a partir do inicial: {names}")

        used = {t.trigger.id for t in self._transitions}
        unused = [t for t in self._triggers if t.id not in used]
        if unused:
            names = ", ".join(t.name for t in unused)
            errors.append(f"Gatilhos sem transição: {names}")

        return errors

    def _reachable_state_ids(self, initial: State | None) -> set[str]:
        if initial is None:
            return set()
        reachable = {initial.id}
        queue = deque([initial])
        while queue:
            current = queue.popleft()
            for transition in self.get_transitions_from_state(current, include_wildcard=True):
                target = transition.to_state
                if target is not None and target.id not in reachable:
                    reachable.add(target.id)
                    queue.append(target)
        return reachable

    def to_mermaid_diagram(self, current_state: State | None = None) -> str:
        """Diagrama Mermaid `stateDiagram-v2` com destaque opcional do estado atual."""
        return render_mermaid(self._transitions, current_state)

    def create_new_version(self, version: int) -> StateMachineDefinition:
        """
        Copia a definição para uma nova versão (status DRAFT, novo id).

        Estados, gatilhos e transições são copiados por nome.

        Raises:
            RuntimeError: Se a definição não tem estado inicial
        """
        initial = self.initial_state
        if initial is None:
            raise RuntimeError("Não é possível versionar definição sem estado inicial")

        copy = StateMachineDefinition(
            self._name,
            initial.name,
            version,
            description=self._description,
        )
        copied_initial = copy.initial_state
        if copied_initial is not None:
            copied_initial.update(description=initial.description)
        for state in self._states:
            if state.id != initial.id:
                copy.add_state(state.name, state.description, state.category)
        for trigger in self._triggers:
            copy.add_trigger(trigger.name, trigger.description, trigger.trigger_type)
        for transition in self._transitions:
            copy.add_transition(
                transition.trigger.name,
                transition.from_state.name if transition.from_state else None,
                transition.to_state.name if transition.to_state else None,
                description=transition.description,
                requirements=transition.requirements,
                effects=transition.effects,
            )
        return copy

    # ──────────────────────────────────────────────────────────────
    # Persistência
    # ──────────────────────────────────────────────────────────────

    def to_dict(
        self,
        requirements: PayloadRegistry[Requirement] = requirement_registry,
        effects: PayloadRegistry[Effect] = effect_registry,
    ) -> dict[str, Any]:
        """Serializa a definição; payloads como união etiquetada."""
        return {
            "id": self._id,
            "name": self._name,
            "description": self._description,
            "version": self._version,
            "status": self._status.value,
            "created_at": self._created_at.isoformat(),
            "initial_state_id": self._initial_state_id,
            "states": [s.to_dict() for s in self._states],
            "triggers": [t.to_dict() for t in self._triggers],
            "transitions": [
                {
                    "id": t.id,
                    "trigger_id": t.trigger.id,
                    "from_state_id": t.from_state.id if t.from_state else None,
                    "to_state_id": t.to_state.id if t.to_state else None,
                    "description": t.description,
                    "requirements": requirements.encode_many(t.requirements),
                    "effects": effects.encode_many(t.effects),
                }
                for t in self._transitions
            ],
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        requirements: PayloadRegistry[Requirement] = requirement_registry,
        effects: PayloadRegistry[Effect] = effect_registry,
    ) -> StateMachineDefinition:
        """
        Reconstrói a definição a partir de `to_dict`, preservando ids.

        Raises:
            ValueError: Referência a estado/gatilho inexistente ou payload inválido
        """
        definition = cls(
            data["name"],
            None,
            int(data.get("version", 1)),
            definition_id=data.get("id"),
            description=data.get("description"),
            status=DefinitionStatus(data.get("status", DefinitionStatus.DRAFT)),
        )
        if data.get("created_at"):
            definition._created_at = datetime.fromisoformat(data["created_at"])

        for item in data.get("states") or ():
            definition.add_state(
                item["name"],
                item.get("description"),
                StateCategory(item.get("category", StateCategory.INTERMEDIATE)),
                state_id=item.get("id"),
            )
        initial_id = data.get("initial_state_id")
        if initial_id is not None and definition.get_state_by_id(initial_id) is None:
            raise ValueError(f"Estado inicial {initial_id} não está entre os estados")
        definition._initial_state_id = initial_id

        for item in data.get("triggers") or ():
            definition.add_trigger(
                item["name"],
                item.get("description"),
                TriggerType(item.get("trigger_type", TriggerType.MANUAL)),
                trigger_id=item.get("id"),
            )

        for item in data.get("transitions") or ():
            definition.add_transition(
                definition._require_by_id(definition.get_trigger_by_id, item["trigger_id"]),
                definition._optional_by_id(item.get("from_state_id")),
                definition._optional_by_id(item.get("to_state_id")),
                description=item.get("description"),
                requirements=requirements.decode_many(item.get("requirements")),
                effects=effects.decode_many(item.get("effects")),
                transition_id=item.get("id"),
            )
        return definition

    # ──────────────────────────────────────────────────────────────
    # Resolução interna
    # ──────────────────────────────────────────────────────────────

    def _require_state(self, state: State | str) -> State:
        if isinstance(state, State):
            if not self.contains_state(state):
                raise ValueError(f"Estado '{state.name}' não pertence à definição {self._name}")
            return self.get_state_by_id(state.id)  # type: ignore[return-value]
        found = self.get_state(state)
        if found is None:
            raise ValueError(f"Estado '{state}' não existe na definição {self._name}")
        return found

    def _resolve_optional_state(self, state: State | str | None) -> State | None:
        return None if state is None else self._require_state(state)

    def _require_trigger(self, trigger: Trigger | str) -> Trigger:
        if isinstance(trigger, Trigger):
            found = self.get_trigger_by_id(trigger.id)
            if trigger.definition_id != self._id or found is None:
                raise ValueError(
                    f"Gatilho '{trigger.name}' não pertence à definição {self._name}"
                )
            return found
        if trigger is None:
            raise ValueError("Transição exige um gatilho")
        found = self.get_trigger(trigger)
        if found is None:
            raise ValueError(f"Gatilho '{trigger}' não existe na definição {self._name}")
        return found

    def _optional_by_id(self, state_id: str | None) -> State | None:
        if state_id is None:
            return None
        return self._require_by_id(self.get_state_by_id, state_id)

    @staticmethod
    def _require_by_id(lookup, item_id: str):
        found = lookup(item_id)
        if found is None:
            raise ValueError(f"Referência desconhecida na definição: {item_id}")
        return found

    def __repr__(self) -> str:
        return (
            f"StateMachineDefinition(name={self._name!r}, version={self._version}, "
            f"status={self._status.value})"
        )
