"""Registro e descoberta de handlers de requisitos e efeitos.

O registro é explícito: handlers específicos são indexados pelo tipo
concreto do payload, na ordem de registro; handlers genéricos formam uma
lista única. A descoberta por módulo é opcional e apenas registra as
subclasses concretas definidas no próprio módulo.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from collections.abc import Iterable
from types import ModuleType
from typing import Any, Generic, TypeVar

from app.protocols.handlers import (
    EffectHandler,
    GenericEffectHandler,
    GenericRequirementHandler,
    RequirementHandler,
)
from fsm.types import HandlerInfo

logger = logging.getLogger(__name__)

S = TypeVar("S")
G = TypeVar("G")


class HandlerRegistry(Generic[S, G]):
    """
    Handlers específicos (por tipo de payload) e genéricos de um pipeline.

    Args:
        specific_base: Contrato dos handlers específicos
        generic_base: Contrato dos handlers genéricos
        type_attr: Atributo de classe que declara o tipo atendido
        label: Nome do pipeline nos logs ("requirement" ou "effect")
    """

    __slots__ = (
        "_generic",
        "_generic_base",
        "_label",
        "_scanned_modules",
        "_specific",
        "_specific_base",
        "_type_attr",
    )

    def __init__(
        self,
        specific_base: type[S],
        generic_base: type[G],
        type_attr: str,
        label: str,
    ) -> None:
        self._specific_base = specific_base
        self._generic_base = generic_base
        self._type_attr = type_attr
        self._label = label
        self._specific: dict[type, list[S]] = {}
        self._generic: list[G] = []
        self._scanned_modules: set[str] = set()

    # ──────────────────────────────────────────────────────────────
    # Registro explícito
    # ──────────────────────────────────────────────────────────────

    def register_specific(self, payload_type: type, handler: S) -> None:
        """
        Registra handler para um tipo concreto de payload.

        Raises:
            TypeError: Se o handler não implementa o contrato específico
        """
        if not isinstance(handler, self._specific_base):
            raise TypeError(
                f"{type(handler).__name__} não é um {self._specific_base.__name__}"
            )
        handlers = self._specific.setdefault(payload_type, [])
        if handler in handlers:
            return
        handlers.append(handler)
        logger.debug(
            "handler_registered",
            extra={
                "component": "handler_registry",
                "pipeline": self._label,
                "handler": type(handler).__name__,
                "payload_kind": _kind_of(payload_type),
                "is_generic": False,
            },
        )

    def register_generic(self, handler: G) -> None:
        """
        Registra handler genérico (executado após a fase específica).

        Raises:
            TypeError: Se o handler não implementa o contrato genérico
        """
        if not isinstance(handler, self._generic_base):
            raise TypeError(
                f"{type(handler).__name__} não é um {self._generic_base.__name__}"
            )
        if handler in self._generic:
            return
        self._generic.append(handler)
        logger.debug(
            "handler_registered",
            extra={
                "component": "handler_registry",
                "pipeline": self._label,
                "handler": type(handler).__name__,
                "is_generic": True,
            },
        )

    def register(self, handler: S | G) -> None:
        """Registra handler escolhendo o tipo pelo contrato que ele implementa."""
        if isinstance(handler, self._generic_base):
            self.register_generic(handler)
            return
        payload_type = getattr(type(handler), self._type_attr, None)
        if payload_type is None:
            raise TypeError(
                f"{type(handler).__name__} não declara '{self._type_attr}'"
            )
        self.register_specific(payload_type, handler)  # type: ignore[arg-type]

    # ──────────────────────────────────────────────────────────────
    # Consulta
    # ──────────────────────────────────────────────────────────────

    def specific_for(self, payload_type: type) -> list[S]:
        """Handlers do tipo exato, em ordem de registro."""
        return list(self._specific.get(payload_type, ()))

    @property
    def generic_handlers(self) -> list[G]:
        return list(self._generic)

    @property
    def registered_types(self) -> list[type]:
        return [t for t, handlers in self._specific.items() if handlers]

    def describe_specific(self, payload_type: type) -> list[HandlerInfo]:
        return [
            HandlerInfo(
                payload_kind=_kind_of(payload_type),
                handler_type=type(handler).__name__,
                is_generic=False,
                description=getattr(handler, "description", None),
            )
            for handler in self._specific.get(payload_type, ())
        ]

    def describe_generic(self) -> list[HandlerInfo]:
        return [
            HandlerInfo(
                payload_kind=None,
                handler_type=type(handler).__name__,
                is_generic=True,
                description=getattr(handler, "description", None),
            )
            for handler in self._generic
        ]

    def describe_all(self) -> list[HandlerInfo]:
        infos: list[HandlerInfo] = []
        for payload_type in self._specific:
            infos.extend(self.describe_specific(payload_type))
        infos.extend(self.describe_generic())
        return infos

    # ──────────────────────────────────────────────────────────────
    # Descoberta
    # ──────────────────────────────────────────────────────────────

    def discover(self, modules: Iterable[str | ModuleType]) -> int:
        """
        Registra as subclasses concretas definidas em cada módulo.

        Classes são instanciadas sem argumentos, na ordem de definição.
        Falhas de import ou instanciação são logadas e ignoradas; cada
        módulo é varrido uma única vez.

        Returns:
            Quantidade de handlers registrados
        """
        registered = 0
        for module_ref in modules:
            module = self._import(module_ref)
            if module is None or module.__name__ in self._scanned_modules:
                continue
            self._scanned_modules.add(module.__name__)
            for handler_cls in self._handler_classes(module):
                try:
                    handler = handler_cls()
                    self.register(handler)
                except Exception as exc:
                    logger.warning(
                        "handler_discovery_failed",
                        extra={
                            "component": "handler_registry",
                            "pipeline": self._label,
                            "handler_module": module.__name__,
                            "handler": handler_cls.__name__,
                            "error_type": type(exc).__name__,
                        },
                    )
                    continue
                registered += 1
        logger.info(
            "handler_discovery_completed",
            extra={
                "component": "handler_registry",
                "pipeline": self._label,
                "registered": registered,
            },
        )
        return registered

    def _import(self, module_ref: str | ModuleType) -> ModuleType | None:
        if isinstance(module_ref, ModuleType):
            return module_ref
        try:
            return importlib.import_module(module_ref)
        except Exception as exc:
            logger.warning(
                "handler_module_import_failed",
                extra={
                    "component": "handler_registry",
                    "pipeline": self._label,
                    "handler_module": module_ref,
                    "error_type": type(exc).__name__,
                },
            )
            return None

    def _handler_classes(self, module: ModuleType) -> list[type]:
        classes = []
        for value in vars(module).values():
            if not inspect.isclass(value) or value.__module__ != module.__name__:
                continue
            if inspect.isabstract(value):
                continue
            if issubclass(value, (self._specific_base, self._generic_base)):
                classes.append(value)
        return classes


def _kind_of(payload_type: Any) -> str:
    kind = getattr(payload_type, "payload_kind", None)
    return kind() if callable(kind) else getattr(payload_type, "__name__", str(payload_type))


RequirementHandlerRegistry = HandlerRegistry[RequirementHandler, GenericRequirementHandler]
EffectHandlerRegistry = HandlerRegistry[EffectHandler, GenericEffectHandler]


def create_requirement_registry() -> RequirementHandlerRegistry:
    return HandlerRegistry(
        RequirementHandler, GenericRequirementHandler, "requirement_type", "requirement"
    )


def create_effect_registry() -> EffectHandlerRegistry:
    return HandlerRegistry(EffectHandler, GenericEffectHandler, "effect_type", "effect")
