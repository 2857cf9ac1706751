"""Application layer - Built-in scopes."""

import threading
from typing import Any

import structlog

from provena_di.domain import Dependency, IInternalFactory, IScope, Key, ResolutionContext
from provena_di.domain.context import CircularProxy

logger = structlog.get_logger(__name__)

_EMPTY = object()


class NoScope(IScope):
    """Pass-through scope: every request invokes the underlying factory."""

    def scope(self, key: Key, factory: IInternalFactory) -> IInternalFactory:
        return factory

    def __repr__(self) -> str:
        return "Scopes.NO_SCOPE"


class SingletonScope(IScope):
    """One instance per binding for the lifetime of the owning injector.

    All singleton factories created by one scope share a re-entrant lock, so
    concurrent first requests run the underlying factory exactly once and a
    thread resolving a cyclic singleton graph does not block itself. A failed
    construction caches nothing; a later request retries. Only the outermost
    request publishes the instance, once its members are injected.

    Attributes:
        _lock: Lock guarding first-time creation of every singleton of this scope.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def scope(self, key: Key, factory: IInternalFactory) -> IInternalFactory:
        return _SingletonFactory(key, factory, self._lock)

    def __repr__(self) -> str:
        return "Scopes.SINGLETON"


class _SingletonFactory(IInternalFactory):
    def __init__(self, key: Key, factory: IInternalFactory, lock: "threading.RLock") -> None:
        self._key = key
        self._factory = factory
        self._lock = lock
        self._instance: Any = _EMPTY
        self._creating = False

    @property
    def is_created(self) -> bool:
        return self._instance is not _EMPTY

    def get(self, context: ResolutionContext, dependency: Dependency) -> Any:
        instance = self._instance
        if instance is not _EMPTY:
            return instance

        with self._lock:
            instance = self._instance
            if instance is not _EMPTY:
                return instance

            # Re-entered by the creating thread: the value may still be under injection.
            if self._creating:
                return self._factory.get(context, dependency)

            self._creating = True
            try:
                instance = self._factory.get(context, dependency)
            finally:
                self._creating = False
            # A placeholder for an in-progress construction is never cached.
            if isinstance(instance, CircularProxy):
                return instance
            self._instance = instance
            logger.debug("Created singleton", key=str(self._key), dependency=str(dependency))
            return instance

    def __repr__(self) -> str:
        return f"SingletonFactory({self._key}, created={self.is_created})"


class Scopes:
    """Shared scope instances that hold no per-injector state."""

    NO_SCOPE: IScope = NoScope()
