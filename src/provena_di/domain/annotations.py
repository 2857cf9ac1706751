"""
Markers read by the metadata provider and by just-in-time binding synthesis.

Qualifiers and injection flags are attached with ``typing.Annotated``::

    class Service:
        cache: Annotated[Cache, Inject()]
        timeout: Annotated[int, Inject(), Named("timeout")]

        def __init__(self, url: Annotated[str, Named("db.url")]) -> None:
            ...

        @inject
        def configure(self, clock: Clock) -> None:
            ...
"""

from typing import Any, Callable, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict

C = TypeVar("C", bound=type)
F = TypeVar("F", bound=Callable[..., Any])

INJECT_ATTRIBUTE = "__provena_inject__"
IMPLEMENTED_BY_ATTRIBUTE = "__provena_implemented_by__"
PROVIDED_BY_ATTRIBUTE = "__provena_provided_by__"
SINGLETON_ATTRIBUTE = "__provena_singleton__"


class Inject(BaseModel):
    """Marks a field or method for injection.

    Attributes:
        optional: Skip the member when one of its bindings is missing.
        static: Inject a class-level field during static injection.
    """

    model_config = ConfigDict(frozen=True)

    optional: bool = False
    static: bool = False


class Named(BaseModel):
    """Qualifies a dependency by name."""

    model_config = ConfigDict(frozen=True)

    value: str

    def __init__(self, value: str) -> None:
        super().__init__(value=value)


def inject(method: Optional[F] = None, *, optional: bool = False) -> Union[F, Callable[[F], F]]:
    """Mark a method for injection.

    Works on instance methods and, below ``@staticmethod``/``@classmethod``, on
    static methods used by static injection.

    Example:
        >>> class Service:
        ...     @inject
        ...     def set_clock(self, clock: Clock) -> None:
        ...         self.clock = clock
    """

    def decorator(func: F) -> F:
        setattr(func, INJECT_ATTRIBUTE, Inject(optional=optional))
        return func

    if method is not None:
        return decorator(method)
    return decorator


def implemented_by(implementation: Type) -> Callable[[C], C]:
    """Declare the default implementation used when an abstract type has no binding."""

    def decorator(cls: C) -> C:
        setattr(cls, IMPLEMENTED_BY_ATTRIBUTE, implementation)
        return cls

    return decorator


def provided_by(provider_type: Type) -> Callable[[C], C]:
    """Declare the provider class used when a type has no binding."""

    def decorator(cls: C) -> C:
        setattr(cls, PROVIDED_BY_ATTRIBUTE, provider_type)
        return cls

    return decorator


def singleton(cls: C) -> C:
    """Give just-in-time bindings of ``cls`` singleton scope."""
    setattr(cls, SINGLETON_ATTRIBUTE, True)
    return cls


def own_attribute(cls: type, name: str) -> Any:
    """Read a marker set on ``cls`` itself, ignoring base classes."""
    return cls.__dict__.get(name)
