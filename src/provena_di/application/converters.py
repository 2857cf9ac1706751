"""Application layer - Conversion of qualified string constants."""

import importlib
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Sequence, Type, get_origin

from provena_di.domain import ConverterRegistration, Matchers

BUILTIN_SOURCE = "[builtin converter]"

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def _to_bool(value: str, target_type: Type) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"'{value}' is not a boolean")


def _to_enum(value: str, target_type: Type[Enum]) -> Enum:
    try:
        return target_type[value]
    except KeyError:
        raise ValueError(f"'{value}' is not a member of {target_type.__name__}") from None


def _to_class(value: str, target_type: Any) -> type:
    module_name, _, attribute = value.rpartition(".")
    if not module_name:
        raise ValueError(f"'{value}' is not a dotted class path")
    found = getattr(importlib.import_module(module_name), attribute)
    if not isinstance(found, type):
        raise ValueError(f"'{value}' is not a class")
    return found


def _is_class_type(candidate: Any) -> bool:
    return candidate is type or get_origin(candidate) is type


DEFAULT_CONVERTERS: List[ConverterRegistration] = [
    ConverterRegistration(matcher=Matchers.only(int), converter=lambda v, t: int(v), source=BUILTIN_SOURCE),
    ConverterRegistration(matcher=Matchers.only(float), converter=lambda v, t: float(v), source=BUILTIN_SOURCE),
    ConverterRegistration(matcher=Matchers.only(Decimal), converter=lambda v, t: Decimal(v), source=BUILTIN_SOURCE),
    ConverterRegistration(matcher=Matchers.only(bool), converter=_to_bool, source=BUILTIN_SOURCE),
    ConverterRegistration(matcher=Matchers.subclasses_of(Enum), converter=_to_enum, source=BUILTIN_SOURCE),
    ConverterRegistration(matcher=Matchers.predicate(_is_class_type), converter=_to_class, source=BUILTIN_SOURCE),
]


def find_converter(
    target_type: Any,
    registrations: Sequence[ConverterRegistration],
) -> Optional[ConverterRegistration]:
    """First registration whose matcher accepts ``target_type``; user registrations come first."""
    for registration in registrations:
        if registration.matcher.matches(target_type):
            return registration
    return None
