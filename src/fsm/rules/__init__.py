"""
Exports públicos do módulo fsm/rules.

Requisitos e efeitos plugáveis, seus status e o codec de persistência.
"""

from fsm.rules.codec import (
    PayloadRegistry,
    UnknownPayloadTypeError,
    effect_registry,
    register_effect,
    register_requirement,
    requirement_registry,
)
from fsm.rules.effects import Effect, EffectExecutionStatus
from fsm.rules.requirements import Requirement, RequirementEvaluationStatus

__all__ = [
    "Effect",
    "EffectExecutionStatus",
    "PayloadRegistry",
    "Requirement",
    "RequirementEvaluationStatus",
    "UnknownPayloadTypeError",
    "effect_registry",
    "register_effect",
    "register_requirement",
    "requirement_registry",
]
