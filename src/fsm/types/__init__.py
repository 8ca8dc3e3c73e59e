"""
Exports públicos do módulo fsm/types.

Histórico de transições, resultados tipados e resumos dos serviços.
"""

from fsm.types.results import ErrorCode, ErrorType, FsmError, Result
from fsm.types.summaries import (
    AvailableTransition,
    EffectExecutionSummary,
    HandlerInfo,
    RequirementEvaluationSummary,
    RevertInfo,
    StateMachineSummary,
    TransitionInfo,
    ValidTransition,
)
from fsm.types.transition import REVERT_REASON_PREFIX, TransitionHistoryEntry

__all__ = [
    "REVERT_REASON_PREFIX",
    "AvailableTransition",
    "EffectExecutionSummary",
    "ErrorCode",
    "ErrorType",
    "FsmError",
    "HandlerInfo",
    "RequirementEvaluationSummary",
    "Result",
    "RevertInfo",
    "StateMachineSummary",
    "TransitionHistoryEntry",
    "TransitionInfo",
    "ValidTransition",
]
