"""
Testes da definição de máquina de estados.

Cobre mutações do agregado, validação consultiva, diagrama Mermaid,
versionamento e serialização com preservação de ids.
"""

import pytest

from fsm import DefinitionStatus, StateCategory, StateMachineDefinition
from fsm.definitions import render_mermaid, sanitize_state_name
from tests.fakes.fsm_payloads import (
    ApprovalRequirement,
    NotifyEffect,
    build_document_definition,
)


class TestDefinitionConstruction:
    """Criação e mutações."""

    def test_initial_state_is_created(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        assert definition.initial_state is not None
        assert definition.initial_state.name == "Draft"
        assert definition.initial_state.category == StateCategory.INITIAL
        assert definition.status == DefinitionStatus.DRAFT
        assert definition.version == 1

    def test_without_initial_state(self) -> None:
        definition = StateMachineDefinition("Doc", None)
        assert definition.initial_state is None
        assert definition.states == ()

    @pytest.mark.parametrize(("name", "version"), [("", 1), ("  ", 1), ("Doc", 0)])
    def test_invalid_arguments(self, name: str, version: int) -> None:
        with pytest.raises(ValueError):
            StateMachineDefinition(name, "Draft", version)

    def test_duplicate_state_and_trigger_rejected(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        definition.add_trigger("submit")
        with pytest.raises(ValueError):
            definition.add_state("Draft")
        with pytest.raises(ValueError):
            definition.add_trigger("submit")

    def test_collections_are_read_only_tuples(self) -> None:
        definition = build_document_definition()
        assert isinstance(definition.states, tuple)
        assert isinstance(definition.triggers, tuple)
        assert isinstance(definition.transitions, tuple)

    def test_add_transition_with_unknown_names(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        definition.add_trigger("submit")
        with pytest.raises(ValueError):
            definition.add_transition("submit", "Draft", "Inexistente")
        with pytest.raises(ValueError):
            definition.add_transition("inexistente", "Draft", None)

    def test_add_transition_rejects_foreign_state(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        other = StateMachineDefinition("Outra", "Draft")
        definition.add_trigger("submit")
        with pytest.raises(ValueError):
            definition.add_transition("submit", other.initial_state, None)

    def test_remove_state_refusals(self) -> None:
        definition = build_document_definition()
        with pytest.raises(ValueError):
            definition.remove_state("Draft")
        with pytest.raises(ValueError):
            definition.remove_state("Review")

        definition.add_state("Orphan")
        definition.remove_state("Orphan")
        assert definition.get_state("Orphan") is None

    def test_remove_trigger_in_use(self) -> None:
        definition = build_document_definition()
        with pytest.raises(ValueError):
            definition.remove_trigger("submit")
        definition.add_trigger("unused")
        definition.remove_trigger("unused")
        assert definition.get_trigger("unused") is None

    def test_remove_transition(self) -> None:
        definition = build_document_definition()
        transition = definition.transitions[0]
        definition.remove_transition(transition.id)
        assert definition.get_transition_by_id(transition.id) is None
        with pytest.raises(ValueError):
            definition.remove_transition(transition.id)

    def test_status_controls_new_instances(self) -> None:
        assert DefinitionStatus.DRAFT.accepts_new_instances
        assert DefinitionStatus.PUBLISHED.accepts_new_instances
        assert not DefinitionStatus.DEPRECATED.accepts_new_instances
        assert not DefinitionStatus.ARCHIVED.accepts_new_instances


class TestDefinitionQueries:
    """Consultas de transições e gatilhos."""

    def test_transitions_from_state_keep_definition_order(self) -> None:
        definition = build_document_definition()
        review = definition.get_state("Review")
        names = [t.trigger.name for t in definition.get_transitions_from_state(review)]
        assert names == ["approve", "reject"]

        with_wildcard = definition.get_transitions_from_state(review, include_wildcard=True)
        assert [t.trigger.name for t in with_wildcard] == ["approve", "reject", "comment", "cancel"]

    def test_available_triggers_are_distinct(self) -> None:
        definition = build_document_definition()
        definition.add_transition("submit", "Draft", "Rejected")
        draft = definition.initial_state
        triggers = definition.get_available_triggers_from_state(draft, include_wildcard=True)
        assert [t.name for t in triggers] == ["submit", "comment", "cancel"]


class TestDefinitionValidation:
    """Validação consultiva."""

    def test_valid_definition(self) -> None:
        assert build_document_definition().validate() == []

    def test_no_states_and_no_initial(self) -> None:
        errors = StateMachineDefinition("Doc", None).validate()
        assert "Definição deve ter ao menos um estado" in errors
        assert "Estado inicial não definido" in errors

    def test_unreachable_states_and_unused_triggers(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        definition.add_state("Island")
        definition.add_trigger("never")
        errors = definition.validate()
        assert "Estados inalcançáveis a partir do inicial: Island" in errors
        assert "Gatilhos sem transição: never" in errors

    def test_wildcard_edges_count_for_reachability(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        definition.add_state("Cancelled", category=StateCategory.FINAL)
        definition.add_trigger("cancel")
        definition.add_transition("cancel", None, "Cancelled")
        assert definition.validate() == []

    def test_multiple_initial_states(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        definition.add_state("Other", category=StateCategory.INITIAL)
        errors = definition.validate()
        assert any(e.startswith("Mais de um estado inicial") for e in errors)


class TestMermaidDiagram:
    """Exportação Mermaid."""

    def test_sanitize_state_name(self) -> None:
        assert sanitize_state_name("Em Revisão-1") == "Em_Revis_o_1"

    def test_diagram_with_notes_and_highlight(self) -> None:
        definition = StateMachineDefinition("Doc", "Draft")
        definition.add_state("In Review")
        definition.add_trigger("submit")
        definition.add_transition(
            "submit",
            "Draft",
            "In Review",
            requirements=[ApprovalRequirement(description="Aprovação")],
            effects=[NotifyEffect()],
        )

        diagram = definition.to_mermaid_diagram(definition.initial_state)

        assert diagram == (
            "stateDiagram-v2\n"
            "    Draft --> In_Review : submit\n"
            "    note right of In_Review\n"
            "      Require: Aprovação\n"
            "      Effect: Notify\n"
            "    end note\n"
            "\n"
            "    %% Highlight current state\n"
            "    style Draft fill:#f9f,stroke:#333,stroke-width:2px\n"
        )

    def test_pseudo_state_for_missing_endpoints(self) -> None:
        definition = build_document_definition()
        diagram = render_mermaid(definition.transitions)
        assert "    [*] --> Rejected : cancel" in diagram
        assert "    [*] --> [*] : comment" in diagram
        assert "style" not in diagram


class TestVersioningAndSerialization:
    """Nova versão e to_dict/from_dict."""

    def test_create_new_version_copies_by_name(self) -> None:
        definition = build_document_definition()
        definition.set_status(DefinitionStatus.PUBLISHED)

        copy = definition.create_new_version(2)

        assert copy.id != definition.id
        assert copy.version == 2
        assert copy.status == DefinitionStatus.DRAFT
        assert [s.name for s in copy.states] == [s.name for s in definition.states]
        assert [t.name for t in copy.triggers] == [t.name for t in definition.triggers]
        assert [str(t) for t in copy.transitions] == [str(t) for t in definition.transitions]
        assert copy.get_state("Review").description == "Em revisão"
        assert all(s.definition_id == copy.id for s in copy.states)
        assert copy.validate() == []

    def test_create_new_version_without_initial_state(self) -> None:
        with pytest.raises(RuntimeError):
            StateMachineDefinition("Doc", None).create_new_version(2)

    def test_round_trip_preserves_ids_and_payloads(self) -> None:
        definition = build_document_definition()
        restored = StateMachineDefinition.from_dict(definition.to_dict())

        assert restored.id == definition.id
        assert restored.initial_state == definition.initial_state
        assert [s.id for s in restored.states] == [s.id for s in definition.states]
        assert [t.id for t in restored.transitions] == [t.id for t in definition.transitions]

        approve = next(t for t in restored.transitions if t.trigger.name == "approve")
        assert approve.requirements == (ApprovalRequirement(),)
        assert approve.effects == (NotifyEffect(),)

    def test_from_dict_rejects_unknown_references(self) -> None:
        data = build_document_definition().to_dict()
        data["transitions"][0]["to_state_id"] = "desconhecido"
        with pytest.raises(ValueError):
            StateMachineDefinition.from_dict(data)
