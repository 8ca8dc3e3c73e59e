"""Testes do registro e descoberta de handlers."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from app.protocols.handlers import GenericRequirementHandler, RequirementHandler
from app.services import create_effect_registry, create_requirement_registry
from tests.fakes import fsm_handlers
from tests.fakes.fsm_payloads import ApprovalRequirement, AttachmentRequirement, NotifyEffect


class AllowHandler(RequirementHandler):
    requirement_type = ApprovalRequirement

    async def evaluate(self, requirement: Any, instance_id: str, context: Any = None) -> bool:
        return True


class NoTypeHandler(RequirementHandler):
    async def evaluate(self, requirement: Any, instance_id: str, context: Any = None) -> bool:
        return True


class PassThroughGeneric(GenericRequirementHandler):
    description = "Repassa os status"

    async def process(self, statuses: list, instance_id: str, context: Any = None) -> list:
        return statuses


class TestExplicitRegistration:
    """Registro explícito."""

    def test_register_specific_keeps_order_and_dedupes(self) -> None:
        registry = create_requirement_registry()
        first, second = AllowHandler(), AllowHandler()

        registry.register_specific(ApprovalRequirement, first)
        registry.register_specific(ApprovalRequirement, second)
        registry.register_specific(ApprovalRequirement, first)

        assert registry.specific_for(ApprovalRequirement) == [first, second]
        assert registry.specific_for(AttachmentRequirement) == []
        assert registry.registered_types == [ApprovalRequirement]

    def test_register_rejects_wrong_contract(self) -> None:
        registry = create_requirement_registry()
        with pytest.raises(TypeError):
            registry.register_specific(ApprovalRequirement, PassThroughGeneric())  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            registry.register_generic(AllowHandler())  # type: ignore[arg-type]

    def test_register_dispatches_on_contract(self) -> None:
        registry = create_requirement_registry()
        specific, generic = AllowHandler(), PassThroughGeneric()

        registry.register(specific)
        registry.register(generic)

        assert registry.specific_for(ApprovalRequirement) == [specific]
        assert registry.generic_handlers == [generic]

    def test_register_without_declared_type(self) -> None:
        with pytest.raises(TypeError):
            create_requirement_registry().register(NoTypeHandler())

    def test_describe_all(self) -> None:
        registry = create_requirement_registry()
        registry.register(AllowHandler())
        registry.register(PassThroughGeneric())

        infos = registry.describe_all()

        assert [(i.payload_kind, i.handler_type, i.is_generic) for i in infos] == [
            ("Approval", "AllowHandler", False),
            (None, "PassThroughGeneric", True),
        ]
        assert infos[1].description == "Repassa os status"


class TestDiscovery:
    """Descoberta por módulo."""

    def test_discover_requirement_handlers(self, caplog: pytest.LogCaptureFixture) -> None:
        registry = create_requirement_registry()

        with caplog.at_level(logging.WARNING):
            registered = registry.discover(["tests.fakes.fsm_handlers"])

        assert registered == 1
        [handler] = registry.specific_for(ApprovalRequirement)
        assert isinstance(handler, fsm_handlers.ApprovalHandler)
        assert any(r.getMessage() == "handler_discovery_failed" for r in caplog.records)

    def test_discover_effect_handlers(self) -> None:
        registry = create_effect_registry()

        assert registry.discover([fsm_handlers]) == 2
        assert len(registry.specific_for(NotifyEffect)) == 1
        assert len(registry.generic_handlers) == 1

    def test_module_scanned_once(self) -> None:
        registry = create_effect_registry()
        registry.discover([fsm_handlers])
        assert registry.discover(["tests.fakes.fsm_handlers"]) == 0
        assert len(registry.specific_for(NotifyEffect)) == 1

    def test_import_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        registry = create_requirement_registry()
        with caplog.at_level(logging.WARNING):
            assert registry.discover(["tests.fakes.modulo_inexistente"]) == 0
        assert any(r.getMessage() == "handler_module_import_failed" for r in caplog.records)
