"""Loader de definições em YAML.

Formato esperado (nomes resolvem estados e gatilhos):

    name: Documento
    version: 1
    initial_state: Draft
    states:
      - Review
      - {name: Approved, category: FINAL}
    triggers:
      - {name: submit, type: MANUAL}
    transitions:
      - trigger: submit
        from: Draft
        to: Review
        requirements:
          - {type: HasAttachment, data: {is_optional: false}}
        effects:
          - {type: NotifyReviewer}

Requisitos e efeitos são decodificados pelos registros de payload.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from fsm.definitions.definition import DefinitionStatus, StateMachineDefinition
from fsm.rules.codec import PayloadRegistry, effect_registry, requirement_registry
from fsm.rules.effects import Effect
from fsm.rules.requirements import Requirement
from fsm.states.state import StateCategory
from fsm.triggers.trigger import TriggerType


class DefinitionLoadError(ValueError):
    """YAML inválido ou com schema incorreto."""


def load_definition(
    path: str | Path,
    requirements: PayloadRegistry[Requirement] = requirement_registry,
    effects: PayloadRegistry[Effect] = effect_registry,
) -> StateMachineDefinition:
    """Carrega definição de um arquivo YAML.

    Raises:
        FileNotFoundError: Se o arquivo não existe
        DefinitionLoadError: Se o YAML ou o schema forem inválidos
    """
    yaml_path = Path(path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Definição não encontrada: {yaml_path}")

    with yaml_path.open("r", encoding="utf-8") as f:
        return load_definition_from_string(f.read(), requirements, effects)


def load_definition_from_string(
    text: str,
    requirements: PayloadRegistry[Requirement] = requirement_registry,
    effects: PayloadRegistry[Effect] = effect_registry,
) -> StateMachineDefinition:
    """Carrega definição de um documento YAML em memória."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DefinitionLoadError(f"YAML de definição inválido: {exc}") from exc
    return build_definition(data, requirements, effects)


def build_definition(
    data: Any,
    requirements: PayloadRegistry[Requirement] = requirement_registry,
    effects: PayloadRegistry[Effect] = effect_registry,
) -> StateMachineDefinition:
    """Monta a definição a partir do dicionário já parseado."""
    if not isinstance(data, Mapping):
        raise DefinitionLoadError("Definição deve ser um dicionário")

    try:
        definition = StateMachineDefinition(
            str(data["name"]),
            str(data["initial_state"]),
            int(data.get("version", 1)),
            description=data.get("description"),
            status=DefinitionStatus(data.get("status", DefinitionStatus.DRAFT)),
        )
        initial = definition.initial_state
        for item in _as_list(data, "states"):
            entry = _named(item)
            if initial is not None and entry["name"] == initial.name:
                initial.update(description=entry.get("description"))
                continue
            definition.add_state(
                entry["name"],
                entry.get("description"),
                StateCategory(entry.get("category", StateCategory.INTERMEDIATE)),
            )
        for item in _as_list(data, "triggers"):
            entry = _named(item)
            definition.add_trigger(
                entry["name"],
                entry.get("description"),
                TriggerType(entry.get("type", TriggerType.MANUAL)),
            )
        for item in _as_list(data, "transitions"):
            if not isinstance(item, Mapping):
                raise DefinitionLoadError(f"Transição deve ser um dicionário: {item!r}")
            definition.add_transition(
                str(item["trigger"]),
                item.get("from"),
                item.get("to"),
                description=item.get("description"),
                requirements=requirements.decode_many(item.get("requirements")),
                effects=effects.decode_many(item.get("effects")),
            )
    except DefinitionLoadError:
        raise
    except KeyError as exc:
        raise DefinitionLoadError(f"Campo obrigatório ausente: {exc}") from exc
    except ValueError as exc:
        raise DefinitionLoadError(str(exc)) from exc

    return definition


def _as_list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise DefinitionLoadError(f"'{key}' deve ser uma lista")
    return value


def _named(item: Any) -> dict[str, Any]:
    """Aceita item como nome simples ou dicionário com 'name'."""
    if isinstance(item, str):
        return {"name": item}
    if isinstance(item, Mapping) and "name" in item:
        return dict(item)
    raise DefinitionLoadError(f"Item sem nome: {item!r}")
