"""
Resultados tipados das operações de orquestração.

Falhas de pré-condição nunca viram exceção: a operação devolve um
`Result` com `FsmError` carregando código estável, mensagem e o tipo do
erro (validação ou conflito).
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorType(StrEnum):
    """Classe do erro, para o chamador mapear em respostas."""

    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"


class ErrorCode(StrEnum):
    """Códigos estáveis de falha."""

    TRANSITION_NO_AVAILABLE = "Transition.NoAvailableTransitions"
    TRANSITION_REQUIREMENTS_NOT_MET = "Transition.RequirementsNotMet"
    TRANSITION_CANCELLED = "Transition.Cancelled"
    TRIGGER_NOT_FOUND = "Trigger.NotFound"
    STATE_NULL = "State.Null"
    STATE_NOT_IN_DEFINITION = "State.NotInDefinition"
    FORCE_MISSING_REASON = "Force.MissingReason"
    REVERT_INVALID_COUNT = "Revert.InvalidCount"
    REVERT_MISSING_REASON = "Revert.MissingReason"
    REVERT_INSUFFICIENT_HISTORY = "Revert.InsufficientHistory"
    REVERT_NO_HISTORY = "Revert.NoHistory"
    REVERT_NO_INITIAL_STATE = "Revert.NoInitialState"
    REVERT_STATE_NOT_FOUND = "Revert.StateNotFound"
    CONCURRENCY_CONFLICT = "ConcurrencyConflict"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class FsmError:
    """
    Erro de domínio devolvido em `Result.failure`.

    Attributes:
        code: Código estável
        message: Mensagem legível
        error_type: Validação ou conflito
        failure_reasons: Motivos agregados (ex.: requisitos não atendidos)
    """

    code: ErrorCode
    message: str
    error_type: ErrorType = ErrorType.VALIDATION
    failure_reasons: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def validation(
        cls,
        code: ErrorCode,
        message: str,
        failure_reasons: list[str] | tuple[str, ...] = (),
    ) -> "FsmError":
        return cls(code, message, ErrorType.VALIDATION, tuple(failure_reasons))

    @classmethod
    def conflict(cls, code: ErrorCode, message: str) -> "FsmError":
        return cls(code, message, ErrorType.CONFLICT)

    def to_log_dict(self) -> dict[str, object]:
        return {
            "code": self.code.value,
            "error_type": self.error_type.value,
            "failure_reasons": list(self.failure_reasons),
        }

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """
    Resultado de operação: valor em caso de sucesso, erro caso contrário.

    Prefira as fábricas `success` e `failure`.
    """

    is_success: bool
    value: T | None = None
    error: FsmError | None = None

    def __post_init__(self) -> None:
        """Valida consistência do resultado."""
        if self.is_success and self.error is not None:
            raise ValueError("Resultado de sucesso não pode conter erro")
        if not self.is_success and self.error is None:
            raise ValueError("Resultado de falha deve incluir error")

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def failure(cls, error: FsmError) -> "Result[T]":
        return cls(is_success=False, error=error)

    @property
    def is_failure(self) -> bool:
        return not self.is_success
