"""Testes do codec de payloads e dos resultados tipados."""

from typing import ClassVar

import pytest
from pydantic import ValidationError

from fsm import (
    Effect,
    ErrorCode,
    ErrorType,
    FsmError,
    PayloadRegistry,
    Requirement,
    Result,
    UnknownPayloadTypeError,
    requirement_registry,
)
from fsm.rules import RequirementEvaluationStatus
from tests.fakes.fsm_payloads import ApprovalRequirement, AttachmentRequirement, NotifyEffect


class TestPayloadRegistry:
    """União etiquetada {type, data}."""

    def test_encode_uses_kind_discriminator(self) -> None:
        encoded = requirement_registry.encode(ApprovalRequirement(approver_role="director"))
        assert encoded == {
            "type": "Approval",
            "data": {"description": None, "is_optional": False, "approver_role": "director"},
        }

    def test_kind_defaults_to_class_name(self) -> None:
        assert AttachmentRequirement.payload_kind() == "AttachmentRequirement"

    def test_decode(self) -> None:
        decoded = requirement_registry.decode({"type": "Approval", "data": {"is_optional": True}})
        assert decoded == ApprovalRequirement(is_optional=True)

    def test_decode_unknown_or_missing_type(self) -> None:
        with pytest.raises(UnknownPayloadTypeError):
            requirement_registry.decode({"type": "Nope"})
        with pytest.raises(UnknownPayloadTypeError):
            requirement_registry.decode({"data": {}})

    def test_decode_invalid_data(self) -> None:
        with pytest.raises(ValueError):
            requirement_registry.decode({"type": "Approval", "data": {"extra_field": 1}})

    def test_encode_unregistered_type(self) -> None:
        registry: PayloadRegistry[Requirement] = PayloadRegistry(Requirement, "Requisito")
        with pytest.raises(UnknownPayloadTypeError):
            registry.encode(ApprovalRequirement())

    def test_register_rejects_wrong_base_and_conflicts(self) -> None:
        registry: PayloadRegistry[Requirement] = PayloadRegistry(Requirement, "Requisito")
        with pytest.raises(TypeError):
            registry.register(NotifyEffect)  # type: ignore[arg-type]

        registry.register(ApprovalRequirement)
        registry.register(ApprovalRequirement)

        class OtherApproval(Requirement):
            kind: ClassVar[str] = "Approval"

        with pytest.raises(ValueError):
            registry.register(OtherApproval)
        assert registry.kinds == frozenset({"Approval"})

    def test_payloads_are_immutable(self) -> None:
        effect = NotifyEffect()
        with pytest.raises(ValidationError):
            effect.channel = "sms"  # type: ignore[misc]
        assert isinstance(effect, Effect)


class TestStatuses:
    def test_optional_requirement_is_satisfied(self) -> None:
        status = RequirementEvaluationStatus(requirement=ApprovalRequirement(is_optional=True))
        assert not status.is_fulfilled
        assert status.is_satisfied


class TestResult:
    """Result/FsmError."""

    def test_success(self) -> None:
        result = Result.success(42)
        assert result.is_success
        assert not result.is_failure
        assert result.value == 42
        assert result.error is None

    def test_failure(self) -> None:
        error = FsmError.validation(ErrorCode.REVERT_MISSING_REASON, "sem motivo", ["a"])
        result: Result[int] = Result.failure(error)
        assert result.is_failure
        assert result.error.failure_reasons == ("a",)
        assert result.error.error_type == ErrorType.VALIDATION
        assert str(result.error) == "Revert.MissingReason: sem motivo"

    def test_conflict_error_type(self) -> None:
        error = FsmError.conflict(ErrorCode.CONCURRENCY_CONFLICT, "versão mudou")
        assert error.error_type == ErrorType.CONFLICT
        assert error.to_log_dict()["code"] == "ConcurrencyConflict"

    def test_inconsistent_results_rejected(self) -> None:
        error = FsmError.validation(ErrorCode.STATE_NULL, "nulo")
        with pytest.raises(ValueError):
            Result(is_success=True, error=error)
        with pytest.raises(ValueError):
            Result(is_success=False)
