"""
Módulo FSM — modelo de domínio do engine de máquinas de estados.

Este módulo é puro (sem I/O): define a estrutura das máquinas e as
primitivas de mutação das instâncias. A orquestração (requisitos,
efeitos, persistência) fica em app/services.

Estrutura:
    - states/: Estados e categorias
    - triggers/: Gatilhos e tipos
    - rules/: Requisitos, efeitos e codec de payloads
    - transitions/: Transições (arestas da definição)
    - definitions/: Definição, diagrama Mermaid e loader YAML
    - manager/: Instância (estado atual + histórico)
    - types/: Histórico, resultados tipados e resumos
"""

from fsm.definitions import (
    DefinitionLoadError,
    DefinitionStatus,
    StateMachineDefinition,
    load_definition,
    load_definition_from_string,
)
from fsm.manager import StateMachineInstance, create_instance
from fsm.rules import (
    Effect,
    EffectExecutionStatus,
    PayloadRegistry,
    Requirement,
    RequirementEvaluationStatus,
    UnknownPayloadTypeError,
    effect_registry,
    register_effect,
    register_requirement,
    requirement_registry,
)
from fsm.states import State, StateCategory
from fsm.transitions import Transition
from fsm.triggers import Trigger, TriggerType
from fsm.types import (
    AvailableTransition,
    EffectExecutionSummary,
    ErrorCode,
    ErrorType,
    FsmError,
    HandlerInfo,
    RequirementEvaluationSummary,
    Result,
    RevertInfo,
    StateMachineSummary,
    TransitionHistoryEntry,
    TransitionInfo,
    ValidTransition,
)

__all__ = [
    "AvailableTransition",
    "DefinitionLoadError",
    "DefinitionStatus",
    "Effect",
    "EffectExecutionStatus",
    "EffectExecutionSummary",
    "ErrorCode",
    "ErrorType",
    "FsmError",
    "HandlerInfo",
    "PayloadRegistry",
    "Requirement",
    "RequirementEvaluationStatus",
    "RequirementEvaluationSummary",
    "Result",
    "RevertInfo",
    "State",
    "StateCategory",
    "StateMachineDefinition",
    "StateMachineInstance",
    "StateMachineSummary",
    "Transition",
    "TransitionHistoryEntry",
    "TransitionInfo",
    "Trigger",
    "TriggerType",
    "UnknownPayloadTypeError",
    "ValidTransition",
    "create_instance",
    "effect_registry",
    "load_definition",
    "load_definition_from_string",
    "register_effect",
    "register_requirement",
    "requirement_registry",
]
