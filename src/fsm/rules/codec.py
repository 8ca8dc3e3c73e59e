"""
Codec de payloads polimórficos (requisitos e efeitos).

Requisitos e efeitos são persistidos como união etiquetada:

    {"type": "<kind>", "data": {...campos do modelo...}}

O registro mapeia o discriminador para a classe concreta. O registro é
explícito (sem inferência por nome de tipo em runtime).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from fsm.rules.effects import Effect
from fsm.rules.requirements import Requirement

P = TypeVar("P", bound=BaseModel)

TYPE_FIELD = "type"
DATA_FIELD = "data"


class UnknownPayloadTypeError(ValueError):
    """Discriminador sem classe registrada."""


class PayloadRegistry(Generic[P]):
    """
    Registro discriminador → classe para um tipo base de payload.

    Args:
        base: Classe base aceita pelo registro (Requirement ou Effect)
        label: Nome usado em mensagens de erro
    """

    __slots__ = ("_base", "_label", "_types")

    def __init__(self, base: type[P], label: str) -> None:
        self._base = base
        self._label = label
        self._types: dict[str, type[P]] = {}

    @property
    def kinds(self) -> frozenset[str]:
        """Discriminadores registrados."""
        return frozenset(self._types)

    def register(self, payload_type: type[P]) -> type[P]:
        """
        Registra uma classe concreta; utilizável como decorator.

        Raises:
            TypeError: Se a classe não deriva da base do registro
            ValueError: Se o discriminador já está associado a outra classe
        """
        if not isinstance(payload_type, type) or not issubclass(payload_type, self._base):
            raise TypeError(f"{payload_type!r} não é um {self._label} válido")
        kind = payload_type.payload_kind()
        existing = self._types.get(kind)
        if existing is not None and existing is not payload_type:
            raise ValueError(f"{self._label} '{kind}' já registrado por {existing.__name__}")
        self._types[kind] = payload_type
        return payload_type

    def unregister(self, kind: str) -> None:
        """Remove um discriminador (uso em testes)."""
        self._types.pop(kind, None)

    def resolve(self, kind: str) -> type[P]:
        """Retorna a classe registrada para o discriminador."""
        try:
            return self._types[kind]
        except KeyError:
            raise UnknownPayloadTypeError(
                f"{self._label} '{kind}' não registrado"
            ) from None

    def encode(self, payload: P) -> dict[str, Any]:
        """Serializa payload como união etiquetada."""
        kind = type(payload).payload_kind()
        if kind not in self._types:
            raise UnknownPayloadTypeError(f"{self._label} '{kind}' não registrado")
        return {TYPE_FIELD: kind, DATA_FIELD: payload.model_dump(mode="json")}

    def decode(self, data: Mapping[str, Any]) -> P:
        """
        Reconstrói payload a partir da união etiquetada.

        Raises:
            UnknownPayloadTypeError: Discriminador ausente ou não registrado
            ValueError: Dados inválidos para o modelo
        """
        kind = data.get(TYPE_FIELD)
        if not kind:
            raise UnknownPayloadTypeError(f"{self._label} sem campo '{TYPE_FIELD}'")
        payload_type = self.resolve(str(kind))
        try:
            return payload_type.model_validate(data.get(DATA_FIELD) or {})
        except ValidationError as exc:
            raise ValueError(f"{self._label} '{kind}' inválido: {exc}") from exc

    def encode_many(self, payloads: Iterable[P]) -> list[dict[str, Any]]:
        return [self.encode(p) for p in payloads]

    def decode_many(self, items: Iterable[Mapping[str, Any]] | None) -> list[P]:
        return [self.decode(item) for item in items or ()]


requirement_registry: PayloadRegistry[Requirement] = PayloadRegistry(Requirement, "Requisito")
effect_registry: PayloadRegistry[Effect] = PayloadRegistry(Effect, "Efeito")


def register_requirement(payload_type: type[Requirement]) -> type[Requirement]:
    """Decorator: registra requisito concreto no registro global."""
    return requirement_registry.register(payload_type)


def register_effect(payload_type: type[Effect]) -> type[Effect]:
    """Decorator: registra efeito concreto no registro global."""
    return effect_registry.register(payload_type)
