"""Factories do engine baseadas em configuração de ambiente.

Conecta implementações concretas (repositórios, registros de handlers)
aos serviços de aplicação.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.bootstrap.clients import create_async_redis_client
from app.infra.stores import MemoryInstanceRepository, RedisInstanceRepository
from app.services import (
    EffectExecutionService,
    RequirementEvaluationService,
    TransitionService,
    create_effect_registry,
    create_requirement_registry,
)
from config.settings import get_base_settings, get_state_machine_settings

if TYPE_CHECKING:
    from app.protocols.instance_repository import DefinitionResolver, InstanceRepositoryProtocol

logger = logging.getLogger(__name__)


def create_instance_repository(
    definition_resolver: DefinitionResolver | None = None,
) -> InstanceRepositoryProtocol:
    """Cria o repositório de instâncias conforme FSM_REPOSITORY_BACKEND.

    Backends:
    - "redis": RedisInstanceRepository (exige resolver de definições)
    - "memory": MemoryInstanceRepository (dev only)
    """
    settings = get_state_machine_settings()
    backend = settings.repository_backend

    if backend == "redis":
        if definition_resolver is None:
            msg = "definition_resolver obrigatório para o backend redis"
            raise ValueError(msg)
        repository: InstanceRepositoryProtocol = RedisInstanceRepository(
            create_async_redis_client(),
            definition_resolver,
            key_prefix=settings.redis_key_prefix,
        )
        logger.info("instance_repository_created", extra={"component": "bootstrap", "backend": "redis"})
        return repository

    environment = get_base_settings().environment
    if environment != "development":
        logger.warning(
            "memory_store_in_non_dev",
            extra={"component": "bootstrap", "backend": "memory", "environment": environment},
        )
    repository = MemoryInstanceRepository(definition_resolver)
    logger.info("instance_repository_created", extra={"component": "bootstrap", "backend": "memory"})
    return repository


def create_requirement_service() -> RequirementEvaluationService:
    """Cria o serviço de requisitos, descobrindo handlers se configurado."""
    settings = get_state_machine_settings()
    registry = create_requirement_registry()
    if settings.auto_register_handlers:
        registry.discover(settings.handler_modules)
    return RequirementEvaluationService(registry)


def create_effect_service() -> EffectExecutionService:
    """Cria o serviço de efeitos com a política de falha e timeout configurados."""
    settings = get_state_machine_settings()
    registry = create_effect_registry()
    if settings.auto_register_handlers:
        registry.discover(settings.handler_modules)
    return EffectExecutionService(
        registry,
        continue_on_failure=settings.effects_continue_on_failure,
        effect_timeout_seconds=settings.effect_timeout,
    )


def create_transition_service(
    definition_resolver: DefinitionResolver | None = None,
    repository: InstanceRepositoryProtocol | None = None,
) -> TransitionService:
    """Monta o TransitionService completo a partir das settings."""
    return TransitionService(
        create_requirement_service(),
        repository or create_instance_repository(definition_resolver),
        create_effect_service(),
    )
