import inspect
from typing import Any, Callable

from provena_di.domain.interfaces import IMatcher


class _Only(IMatcher):
    def __init__(self, target: Any) -> None:
        self.target = target

    def matches(self, candidate: Any) -> bool:
        return candidate == self.target

    def __repr__(self) -> str:
        return f"only({self.target!r})"


class _SubclassesOf(IMatcher):
    def __init__(self, base: type) -> None:
        self.base = base

    def matches(self, candidate: Any) -> bool:
        return inspect.isclass(candidate) and issubclass(candidate, self.base)

    def __repr__(self) -> str:
        return f"subclasses_of({self.base!r})"


class _Implementing(IMatcher):
    def __init__(self, capability: type) -> None:
        self.capability = capability
        self.members = frozenset(
            name
            for name in dir(capability)
            if not name.startswith("_") and name not in getattr(capability, "__annotations__", {})
        )

    def matches(self, candidate: Any) -> bool:
        if not inspect.isclass(candidate):
            return False
        return all(callable(getattr(candidate, name, None)) for name in self.members)

    def __repr__(self) -> str:
        return f"implementing({self.capability!r})"


class _Any(IMatcher):
    def matches(self, candidate: Any) -> bool:
        return True

    def __repr__(self) -> str:
        return "any()"


class _Predicate(IMatcher):
    def __init__(self, predicate: Callable[[Any], bool]) -> None:
        self.predicate = predicate

    def matches(self, candidate: Any) -> bool:
        return bool(self.predicate(candidate))

    def __repr__(self) -> str:
        return f"predicate({self.predicate!r})"


class Matchers:
    """Factory for type matchers used by listener and converter registrations.

    Example:
        >>> Matchers.only(DependencyHolder).matches(DependencyHolder)
        True
        >>> Matchers.implementing(Closeable).matches(FileHandle)  # has every public method
        True
    """

    @staticmethod
    def only(target: Any) -> IMatcher:
        """Match exactly ``target``."""
        return _Only(target)

    @staticmethod
    def subclasses_of(base: type) -> IMatcher:
        """Match ``base`` and its subclasses."""
        return _SubclassesOf(base)

    @staticmethod
    def implementing(capability: type) -> IMatcher:
        """Match classes exposing every public method of ``capability``, whatever their bases."""
        return _Implementing(capability)

    @staticmethod
    def any() -> IMatcher:
        return _Any()

    @staticmethod
    def predicate(predicate: Callable[[Any], bool]) -> IMatcher:
        return _Predicate(predicate)
