"""Application layer - Error collection and standard error messages."""

from typing import Any, List, Optional, Sequence

from provena_di.domain import (
    CircularDependencyError,
    ConfigurationError,
    ConstantConversionError,
    DIException,
    ErrorMessage,
    Key,
)
from provena_di.domain.models import type_name


class Errors:
    """Collects error messages so a batch can be reported at once.

    Example:
        >>> errors = Errors()
        >>> errors.missing_implementation(Key.get(Repository))
        >>> errors.throw_configuration_error_if_errors_exist()  # raises ConfigurationError
    """

    def __init__(self) -> None:
        self._messages: List[ErrorMessage] = []
        self._cycles: List[List[Key]] = []
        self._has_conversion_errors = False

    @property
    def messages(self) -> List[ErrorMessage]:
        return list(self._messages)

    def has_errors(self) -> bool:
        return bool(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, message: str, sources: Sequence[str] = (), cause: Optional[BaseException] = None) -> "Errors":
        self._messages.append(ErrorMessage(message=message, sources=tuple(sources), cause=cause))
        return self

    def merge(self, error: DIException, sources: Sequence[str] = ()) -> "Errors":
        """Add every message of ``error``, appending ``sources`` to each chain."""
        for message in getattr(error, "messages", []):
            self._messages.append(
                ErrorMessage(
                    message=message.message,
                    sources=tuple(message.sources) + tuple(s for s in sources if s not in message.sources),
                    cause=message.cause,
                )
            )
        if isinstance(error, CircularDependencyError):
            self._cycles.append(error.dependency_chain)
        if isinstance(error, ConstantConversionError):
            self._has_conversion_errors = True
        return self

    def missing_implementation(self, key: Key, sources: Sequence[str] = ()) -> "Errors":
        return self.add(f"No implementation for {key} was bound.", sources)

    def jit_disabled(self, key: Key, sources: Sequence[str] = ()) -> "Errors":
        return self.add(f"Explicit bindings are required and {key} is not explicitly bound.", sources)

    def binding_already_set(self, key: Key, source: str, sources: Sequence[str] = ()) -> "Errors":
        return self.add(f"A binding to {key} was already configured at {source}.", sources)

    def scope_not_permitted(self, sources: Sequence[str] = ()) -> "Errors":
        return self.add("Setting the scope is not permitted when binding to a single instance.", sources)

    def binding_to_none(self, sources: Sequence[str] = ()) -> "Errors":
        return self.add("Binding to None is not allowed; bind a provider returning None instead.", sources)

    def recursive_binding(self, key: Key, sources: Sequence[str] = ()) -> "Errors":
        return self.add(f"Binding points to itself: {key}.", sources)

    def cannot_construct_abstract(self, target: Any, sources: Sequence[str] = ()) -> "Errors":
        return self.add(f"{type_name(target)} is abstract and cannot be constructed.", sources)

    def not_a_provider(self, provider: Any, sources: Sequence[str] = ()) -> "Errors":
        return self.add(f"{provider!r} has no get() method and is not callable.", sources)

    def circular_dependency(self, chain: Sequence[Key], expected_type: Any, sources: Sequence[str] = ()) -> "Errors":
        path = " -> ".join(str(key) for key in chain)
        self._cycles.append(list(chain))
        return self.add(
            f"Circular dependency {path} cannot be broken: "
            f"{type_name(expected_type)} is not an abstract class or protocol.",
            sources,
        )

    def to_exception(self) -> ConfigurationError:
        if self._cycles:
            return CircularDependencyError(self._cycles[0], self._messages)
        if self._has_conversion_errors:
            return ConstantConversionError(self._messages)
        return ConfigurationError(self._messages)

    def throw_configuration_error_if_errors_exist(self) -> None:
        if self._messages:
            raise self.to_exception()


def configuration_error(message: str, sources: Sequence[str] = ()) -> ConfigurationError:
    """Single-message configuration error."""
    return ConfigurationError([ErrorMessage(message=message, sources=tuple(sources))])

