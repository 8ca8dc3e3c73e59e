"""Protocolos e contratos do core da aplicação."""

from .handlers import (
    EffectHandler,
    GenericEffectHandler,
    GenericRequirementHandler,
    RequirementHandler,
)
from .instance_repository import DefinitionResolver, InstanceRepositoryProtocol

__all__ = [
    "DefinitionResolver",
    "EffectHandler",
    "GenericEffectHandler",
    "GenericRequirementHandler",
    "InstanceRepositoryProtocol",
    "RequirementHandler",
]
