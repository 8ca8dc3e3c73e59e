"""Serviços de aplicação do engine.

Orquestração sem IO direto: avaliação de requisitos, execução de efeitos,
transições e registro de handlers. Persistência concreta fica em app/infra/.
"""

from app.services.effect_execution import EffectExecutionService
from app.services.handler_registry import (
    EffectHandlerRegistry,
    HandlerRegistry,
    RequirementHandlerRegistry,
    create_effect_registry,
    create_requirement_registry,
)
from app.services.requirement_evaluation import RequirementEvaluationService
from app.services.transition_service import TransitionService

__all__ = [
    "EffectExecutionService",
    "EffectHandlerRegistry",
    "HandlerRegistry",
    "RequirementEvaluationService",
    "RequirementHandlerRegistry",
    "TransitionService",
    "create_effect_registry",
    "create_requirement_registry",
]
