"""
Instância de máquina de estados.

A instância liga uma entidade a uma definição, guarda o estado atual e
mantém o histórico auditável. As primitivas de mutação não avaliam
requisitos: a orquestração (serviço de transição) decide quando usá-las.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from fsm.definitions.definition import StateMachineDefinition
from fsm.rules.requirements import Requirement
from fsm.states.state import State
from fsm.transitions.transition import Transition
from fsm.triggers.trigger import Trigger
from fsm.types.summaries import StateMachineSummary
from fsm.types.transition import TransitionHistoryEntry


def _history_key(entry: TransitionHistoryEntry) -> tuple[datetime, int]:
    return (entry.transitioned_at, entry.sequence)


class StateMachineInstance:
    """
    Estado atual e histórico de uma entidade governada por uma definição.

    Attributes:
        id: Identificador da instância
        definition: Definição que governa a instância
        current_state: Estado atual
        history: Histórico ordenado por (transitioned_at, sequence)
        version: Token de concorrência otimista (atualizado pela persistência)
    """

    __slots__ = (
        "_created_at",
        "_current_state_id",
        "_definition",
        "_history",
        "_id",
        "_last_transition_at",
        "_next_sequence",
        "_version",
    )

    def __init__(
        self,
        definition: StateMachineDefinition,
        *,
        instance_id: str | None = None,
    ) -> None:
        """
        Cria a instância no estado inicial da definição.

        Raises:
            ValueError: Se a definição não tem estado inicial
        """
        initial = definition.initial_state
        if initial is None:
            raise ValueError(f"Definição {definition.name} não tem estado inicial")

        self._id = instance_id or str(uuid.uuid4())
        self._definition = definition
        self._current_state_id = initial.id
        self._history: list[TransitionHistoryEntry] = []
        self._last_transition_at: datetime | None = None
        self._created_at = datetime.now(UTC)
        self._next_sequence = 1
        self._version = 0

    # ──────────────────────────────────────────────────────────────
    # Propriedades
    # ──────────────────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self._id

    @property
    def definition(self) -> StateMachineDefinition:
        return self._definition

    @property
    def definition_id(self) -> str:
        return self._definition.id

    @property
    def current_state_id(self) -> str:
        return self._current_state_id

    @property
    def current_state(self) -> State:
        state = self._definition.get_state_by_id(self._current_state_id)
        if state is None:
            raise RuntimeError(
                f"Estado atual {self._current_state_id} não existe na definição"
            )
        return state

    @property
    def last_transition_at(self) -> datetime | None:
        return self._last_transition_at

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def history(self) -> tuple[TransitionHistoryEntry, ...]:
        """Histórico ordenado (cópia somente leitura)."""
        return tuple(sorted(self._history, key=_history_key))

    @property
    def version(self) -> int:
        return self._version

    def mark_persisted(self, version: int) -> None:
        """Registra o token de versão gravado pela persistência."""
        self._version = version

    # ──────────────────────────────────────────────────────────────
    # Primitivas de mutação
    # ──────────────────────────────────────────────────────────────

    def execute_transition(
        self,
        transition: Transition,
        actor: str | None = None,
    ) -> TransitionHistoryEntry:
        """
        Aplica a transição sem avaliar requisitos.

        Transições apenas de gatilho registram origem = destino = estado atual.

        Raises:
            ValueError: Transição de outra definição ou que não sai do estado atual
        """
        if self._definition.get_transition_by_id(transition.id) is None:
            raise ValueError(f"Transição {transition} não pertence à definição")
        current = self.current_state
        if not transition.applies_to(current):
            raise ValueError(f"Transição {transition} não sai do estado {current.name}")

        target = transition.to_state if transition.changes_state else current
        entry = TransitionHistoryEntry.create(
            instance_id=self._id,
            sequence=self._take_sequence(),
            from_state=current,
            to_state=target,  # type: ignore[arg-type]
            trigger=transition.trigger,
            triggered_by=actor,
        )
        self._apply(entry)
        return entry

    def execute_forced_transition(
        self,
        target_state: State,
        reason: str,
        actor: str | None = None,
    ) -> TransitionHistoryEntry:
        """
        Move a instância para qualquer estado da definição.

        Raises:
            ValueError: Motivo vazio ou estado fora da definição
        """
        if not reason or not reason.strip():
            raise ValueError("Transição forçada exige motivo")
        if target_state is None or not self._definition.contains_state(target_state):
            raise ValueError("Estado alvo não pertence à definição")

        entry = TransitionHistoryEntry.create_forced(
            instance_id=self._id,
            sequence=self._take_sequence(),
            from_state=self.current_state,
            to_state=target_state,
            reason=reason,
            triggered_by=actor,
        )
        self._apply(entry)
        return entry

    def execute_revert(
        self,
        target_state: State,
        entries: Iterable[TransitionHistoryEntry],
        reason: str | None = None,
        actor: str | None = None,
    ) -> list[TransitionHistoryEntry]:
        """
        Volta ao estado alvo marcando as entradas como revertidas.

        Nenhuma entrada nova é adicionada ao histórico.

        Returns:
            Entradas efetivamente marcadas (já revertidas são ignoradas)
        """
        if not self._definition.contains_state(target_state):
            raise ValueError("Estado alvo não pertence à definição")

        reverted: list[TransitionHistoryEntry] = []
        for entry in entries:
            if entry.instance_id != self._id:
                raise ValueError(f"Entrada {entry.id} pertence a outra instância")
            if entry.is_reverted:
                continue
            entry.mark_as_reverted(reason, reverted_by=actor)
            reverted.append(entry)

        self._current_state_id = target_state.id
        self._last_transition_at = datetime.now(UTC)
        return reverted

    def _take_sequence(self) -> int:
        sequence = self._next_sequence
        self._next_sequence += 1
        return sequence

    def _apply(self, entry: TransitionHistoryEntry) -> None:
        self._history.append(entry)
        self._current_state_id = entry.to_state.id
        self._last_transition_at = entry.transitioned_at

    # ──────────────────────────────────────────────────────────────
    # Consultas (origem = estado atual ou curinga)
    # ──────────────────────────────────────────────────────────────

    def get_available_transitions(self) -> list[Transition]:
        return self._definition.get_transitions_from_state(
            self.current_state, include_wildcard=True
        )

    def get_available_triggers(self) -> list[Trigger]:
        return self._definition.get_available_triggers_from_state(
            self.current_state, include_wildcard=True
        )

    def get_transitions_for_trigger(self, trigger: Trigger | str) -> list[Transition]:
        """Candidatas do gatilho a partir do estado atual, na ordem da definição."""
        resolved = self._resolve_trigger(trigger)
        if resolved is None:
            return []
        return [t for t in self.get_available_transitions() if t.trigger == resolved]

    def get_transition(self, trigger: Trigger | str, state: State | str) -> Transition | None:
        """Primeira transição do gatilho que leva ao estado informado."""
        target = self._resolve_state(state)
        if target is None:
            return None
        return next(
            (
                t
                for t in self.get_transitions_for_trigger(trigger)
                if t.to_state is not None and t.to_state.id == target.id
            ),
            None,
        )

    def can_trigger(self, trigger: Trigger | str) -> bool:
        return bool(self.get_transitions_for_trigger(trigger))

    def can_transition_to(self, state: State | str, trigger: Trigger | str | None = None) -> bool:
        """Existe aresta do estado atual até o estado (opcionalmente via gatilho)."""
        if trigger is not None:
            return self.get_transition(trigger, state) is not None
        target = self._resolve_state(state)
        if target is None:
            return False
        return any(
            t.to_state is not None and t.to_state.id == target.id
            for t in self.get_available_transitions()
        )

    def is_in_final_state(self) -> bool:
        return self.current_state.is_final

    def get_requirements_for_trigger(self, trigger: Trigger | str) -> list[Requirement]:
        return [r for t in self.get_transitions_for_trigger(trigger) for r in t.requirements]

    def get_all_requirements_from_current_state(self) -> list[Requirement]:
        return [r for t in self.get_available_transitions() for r in t.requirements]

    def get_state(self, name: str) -> State | None:
        return self._definition.get_state(name)

    def get_trigger(self, name: str) -> Trigger | None:
        return self._definition.get_trigger(name)

    def non_reverted_history(self) -> list[TransitionHistoryEntry]:
        """Entradas ativas, da mais antiga para a mais recente."""
        return [e for e in self.history if not e.is_reverted]

    def _resolve_trigger(self, trigger: Trigger | str) -> Trigger | None:
        if isinstance(trigger, Trigger):
            return self._definition.get_trigger_by_id(trigger.id)
        return self._definition.get_trigger(trigger)

    def _resolve_state(self, state: State | str) -> State | None:
        if isinstance(state, State):
            return self._definition.get_state_by_id(state.id)
        return self._definition.get_state(state)

    # ──────────────────────────────────────────────────────────────
    # Resumo e persistência
    # ──────────────────────────────────────────────────────────────

    def get_summary(self, recent: int = 5) -> StateMachineSummary:
        """
        Retorna resumo do estado atual para consulta e observability.

        Args:
            recent: Quantidade de entradas recentes descritas
        """
        history = self.history
        current = self.current_state
        return StateMachineSummary(
            instance_id=self._id,
            definition_id=self._definition.id,
            definition_name=self._definition.name,
            definition_version=self._definition.version,
            current_state=current.name,
            current_state_category=current.category.value,
            is_in_final_state=current.is_final,
            available_triggers=tuple(t.name for t in self.get_available_triggers()),
            total_transitions=len(history),
            active_transitions=sum(1 for e in history if not e.is_reverted),
            reverted_transitions=sum(1 for e in history if e.is_reverted),
            forced_transitions=sum(1 for e in history if e.is_forced),
            created_at=self._created_at,
            last_transition_at=self._last_transition_at,
            recent_transitions=tuple(
                e.get_description() for e in history[-recent:] if recent > 0
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serializa a instância (a definição é referenciada por id)."""
        return {
            "id": self._id,
            "definition_id": self._definition.id,
            "current_state_id": self._current_state_id,
            "created_at": self._created_at.isoformat(),
            "last_transition_at": (
                self._last_transition_at.isoformat() if self._last_transition_at else None
            ),
            "history": [e.to_dict() for e in self.history],
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        definition: StateMachineDefinition,
    ) -> StateMachineInstance:
        """
        Reidrata a instância com a definição correspondente.

        Raises:
            ValueError: Definição diferente ou estado atual desconhecido
        """
        if data.get("definition_id") != definition.id:
            raise ValueError(
                f"Instância {data.get('id')} pertence à definição {data.get('definition_id')}"
            )
        instance = cls(definition, instance_id=data["id"])

        current_state_id = data.get("current_state_id") or instance._current_state_id
        if definition.get_state_by_id(current_state_id) is None:
            raise ValueError(f"Estado atual {current_state_id} não existe na definição")
        instance._current_state_id = current_state_id

        if data.get("created_at"):
            instance._created_at = datetime.fromisoformat(data["created_at"])
        if data.get("last_transition_at"):
            instance._last_transition_at = datetime.fromisoformat(data["last_transition_at"])

        states = {s.id: s for s in definition.states}
        triggers = {t.id: t for t in definition.triggers}
        instance._history = [
            TransitionHistoryEntry.from_dict(item, states, triggers)
            for item in data.get("history") or ()
        ]
        instance._next_sequence = max((e.sequence for e in instance._history), default=0) + 1
        return instance

    def __repr__(self) -> str:
        return (
            f"StateMachineInstance(id={self._id!r}, definition={self._definition.name!r}, "
            f"state={self.current_state.name!r})"
        )


def create_instance(
    definition: StateMachineDefinition,
    instance_id: str | None = None,
) -> StateMachineInstance:
    """
    Factory para criar instância de uma definição ativa.

    Raises:
        ValueError: Definição depreciada/arquivada ou sem estado inicial
    """
    if not definition.status.accepts_new_instances:
        raise ValueError(
            f"Definição {definition.name} v{definition.version} "
            f"({definition.status.value}) não aceita novas instâncias"
        )
    return StateMachineInstance(definition, instance_id=instance_id)
