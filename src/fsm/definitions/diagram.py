"""
Exportação da definição como diagrama Mermaid (`stateDiagram-v2`).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fsm.states.state import State
    from fsm.transitions.transition import Transition

PSEUDO_STATE = "[*]"
CURRENT_STATE_STYLE = "fill:#f9f,stroke:#333,stroke-width:2px"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_state_name(name: str) -> str:
    """Troca caracteres fora de [A-Za-z0-9] por '_'."""
    return _UNSAFE_CHARS.sub("_", name)


def render_mermaid(
    transitions: Iterable[Transition],
    current_state: State | None = None,
) -> str:
    """
    Gera o texto do diagrama.

    Uma linha por transição (`[*]` para origem/destino ausentes), nota
    com requisitos e efeitos quando houver, e estilo de destaque para o
    estado atual.
    """
    lines = ["stateDiagram-v2"]

    for transition in transitions:
        source = (
            sanitize_state_name(transition.from_state.name)
            if transition.from_state is not None
            else PSEUDO_STATE
        )
        target = (
            sanitize_state_name(transition.to_state.name)
            if transition.to_state is not None
            else PSEUDO_STATE
        )
        lines.append(f"    {source} --> {target} : {transition.trigger.name}")

        if transition.has_requirements or transition.has_effects:
            lines.append(f"    note right of {target}")
            for requirement in transition.requirements:
                lines.append(f"      Require: {requirement.display_text()}")
            for effect in transition.effects:
                lines.append(f"      Effect: {effect.display_text()}")
            lines.append("    end note")
            lines.append("")

    if current_state is not None:
        lines.append("    %% Highlight current state")
        lines.append(
            f"    style {sanitize_state_name(current_state.name)} {CURRENT_STATE_STYLE}"
        )

    return "\n".join(lines) + "\n"
