"""
Exports públicos do módulo fsm/definitions.

Definição da máquina (agregado), diagrama Mermaid e loader YAML.
"""

from fsm.definitions.definition import DefinitionStatus, StateMachineDefinition
from fsm.definitions.diagram import render_mermaid, sanitize_state_name
from fsm.definitions.loader import (
    DefinitionLoadError,
    build_definition,
    load_definition,
    load_definition_from_string,
)

__all__ = [
    "DefinitionLoadError",
    "DefinitionStatus",
    "StateMachineDefinition",
    "build_definition",
    "load_definition",
    "load_definition_from_string",
    "render_mermaid",
    "sanitize_state_name",
]
