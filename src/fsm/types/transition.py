"""
Histórico de transições de uma instância.

Cada entrada registra origem, destino, gatilho (ausente em transições
forçadas), ator e instante. Entradas nunca são apagadas: a reversão
apenas as marca com `reverted_at`.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fsm.states.state import State
from fsm.triggers.trigger import Trigger

REVERT_REASON_PREFIX = "Revert reason:"


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass(eq=False, slots=True)
class TransitionHistoryEntry:
    """
    Registro auditável de uma transição executada.

    Attributes:
        id: Identificador da entrada
        instance_id: Instância à qual a entrada pertence
        sequence: Ordem de inserção na instância (desempate de timestamps)
        from_state: Estado antes da transição
        to_state: Estado depois da transição
        trigger: Gatilho (None em transições forçadas)
        is_forced: Se a transição ignorou requisitos
        reason: Motivo informado pelo operador
        transitioned_at: Momento da transição (UTC)
        triggered_by: Identificador do ator
        reverted_at: Momento da reversão (None = ativa)
        reverted_by: Ator que reverteu
    """

    instance_id: str
    sequence: int
    from_state: State
    to_state: State
    trigger: Trigger | None = None
    is_forced: bool = False
    reason: str | None = None
    transitioned_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    triggered_by: str | None = None
    reverted_at: datetime | None = None
    reverted_by: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def create(
        cls,
        instance_id: str,
        sequence: int,
        from_state: State,
        to_state: State,
        trigger: Trigger | None,
        triggered_by: str | None = None,
        transitioned_at: datetime | None = None,
    ) -> "TransitionHistoryEntry":
        """Entrada de transição normal (com gatilho)."""
        return cls(
            instance_id=instance_id,
            sequence=sequence,
            from_state=from_state,
            to_state=to_state,
            trigger=trigger,
            triggered_by=triggered_by,
            transitioned_at=transitioned_at or datetime.now(UTC),
        )

    @classmethod
    def create_forced(
        cls,
        instance_id: str,
        sequence: int,
        from_state: State,
        to_state: State,
        reason: str,
        triggered_by: str | None = None,
        transitioned_at: datetime | None = None,
    ) -> "TransitionHistoryEntry":
        """
        Entrada de transição forçada (sem gatilho).

        Raises:
            ValueError: Se o motivo for vazio
        """
        if not reason or not reason.strip():
            raise ValueError("Transição forçada exige motivo")
        return cls(
            instance_id=instance_id,
            sequence=sequence,
            from_state=from_state,
            to_state=to_state,
            trigger=None,
            is_forced=True,
            reason=reason.strip(),
            triggered_by=triggered_by,
            transitioned_at=transitioned_at or datetime.now(UTC),
        )

    @property
    def is_reverted(self) -> bool:
        return self.reverted_at is not None

    def mark_as_reverted(
        self,
        reason: str | None = None,
        reverted_by: str | None = None,
    ) -> None:
        """
        Marca a entrada como revertida.

        Raises:
            RuntimeError: Se a entrada já foi revertida
        """
        if self.is_reverted:
            raise RuntimeError(f"Entrada {self.id} já foi revertida")
        self.reverted_at = datetime.now(UTC)
        self.reverted_by = reverted_by
        if reason and reason.strip():
            note = f"{REVERT_REASON_PREFIX} {reason.strip()}"
            self.reason = f"{self.reason} | {note}" if self.reason else note

    def get_description(self) -> str:
        """Descrição curta para auditoria."""
        arrow = f"{self.from_state.name} -> {self.to_state.name}"
        if self.is_forced:
            text = f"{arrow} (forced: {self.reason})"
        elif self.trigger is not None:
            text = f"{arrow} ({self.trigger.name})"
        else:
            text = arrow
        if self.is_reverted:
            text = f"{text} [reverted]"
        return text

    def matches(
        self,
        from_state: State | None = None,
        to_state: State | None = None,
        trigger: Trigger | None = None,
    ) -> bool:
        """Confere os critérios informados (None = qualquer)."""
        if from_state is not None and self.from_state.id != from_state.id:
            return False
        if to_state is not None and self.to_state.id != to_state.id:
            return False
        if trigger is not None and (self.trigger is None or self.trigger.id != trigger.id):
            return False
        return True

    def matches_by_name(
        self,
        from_state: str | None = None,
        to_state: str | None = None,
        trigger: str | None = None,
    ) -> bool:
        """Confere os critérios por nome (None = qualquer)."""
        if from_state is not None and self.from_state.name != from_state:
            return False
        if to_state is not None and self.to_state.name != to_state:
            return False
        if trigger is not None and (self.trigger is None or self.trigger.name != trigger):
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Serializa por ids (estados e gatilho resolvidos pela definição)."""
        return {
            "id": self.id,
            "instance_id": self.instance_id,
            "sequence": self.sequence,
            "from_state_id": self.from_state.id,
            "to_state_id": self.to_state.id,
            "trigger_id": self.trigger.id if self.trigger is not None else None,
            "is_forced": self.is_forced,
            "reason": self.reason,
            "transitioned_at": self.transitioned_at.isoformat(),
            "triggered_by": self.triggered_by,
            "reverted_at": self.reverted_at.isoformat() if self.reverted_at else None,
            "reverted_by": self.reverted_by,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        states: dict[str, State],
        triggers: dict[str, Trigger],
    ) -> "TransitionHistoryEntry":
        """
        Reconstrói a entrada a partir de `to_dict`.

        Args:
            data: Dados serializados
            states: Estados da definição indexados por id
            triggers: Gatilhos da definição indexados por id

        Raises:
            ValueError: Se um estado ou gatilho não existir na definição
        """
        try:
            from_state = states[data["from_state_id"]]
            to_state = states[data["to_state_id"]]
        except KeyError as exc:
            raise ValueError(f"Estado desconhecido no histórico: {exc}") from exc

        trigger_id = data.get("trigger_id")
        trigger = None
        if trigger_id:
            trigger = triggers.get(trigger_id)
            if trigger is None:
                raise ValueError(f"Gatilho desconhecido no histórico: {trigger_id}")

        return cls(
            id=data["id"],
            instance_id=data["instance_id"],
            sequence=int(data.get("sequence", 0)),
            from_state=from_state,
            to_state=to_state,
            trigger=trigger,
            is_forced=bool(data.get("is_forced", False)),
            reason=data.get("reason"),
            transitioned_at=_parse_datetime(data.get("transitioned_at")) or datetime.now(UTC),
            triggered_by=data.get("triggered_by"),
            reverted_at=_parse_datetime(data.get("reverted_at")),
            reverted_by=data.get("reverted_by"),
        )

    def to_log_dict(self) -> dict[str, Any]:
        """Representação segura para logs."""
        return {
            "entry_id": self.id,
            "from_state": self.from_state.name,
            "to_state": self.to_state.name,
            "trigger": self.trigger.name if self.trigger is not None else None,
            "is_forced": self.is_forced,
            "is_reverted": self.is_reverted,
        }

    def __str__(self) -> str:
        return self.get_description()
