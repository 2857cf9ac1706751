"""Unit tests for the built-in scopes."""

import threading
import time
from abc import ABC

import pytest

from provena_di.application.scopes import NoScope, Scopes, SingletonScope
from provena_di.domain import Dependency, IInternalFactory, Key, ResolutionContext
from provena_di.domain.context import ConstructionContext


class CountingFactory(IInternalFactory):
    def __init__(self, delay: float = 0.0, failures: int = 0) -> None:
        self.calls = 0
        self.delay = delay
        self.failures = failures
        self._lock = threading.Lock()

    def get(self, context, dependency):
        with self._lock:
            self.calls += 1
            calls = self.calls
        if self.delay:
            time.sleep(self.delay)
        if calls <= self.failures:
            raise RuntimeError("construction failed")
        return object()


class Service(ABC):
    pass


KEY = Key.get(object)


def request(factory: IInternalFactory):
    return factory.get(ResolutionContext(), Dependency.get(KEY))


class TestNoScope:
    """Test cases for the pass-through scope."""

    def test_returns_factory_unchanged(self):
        """Test that unscoped factories are not wrapped."""
        factory = CountingFactory()
        assert NoScope().scope(KEY, factory) is factory
        assert Scopes.NO_SCOPE.scope(KEY, factory) is factory

    def test_every_request_invokes_factory(self):
        """Test that each request produces a new value."""
        factory = Scopes.NO_SCOPE.scope(KEY, CountingFactory())
        assert request(factory) is not request(factory)


class TestSingletonScope:
    """Test cases for the singleton scope."""

    def test_same_instance_on_every_request(self):
        """Test that the first value is cached."""
        underlying = CountingFactory()
        factory = SingletonScope().scope(KEY, underlying)

        first = request(factory)

        assert request(factory) is first
        assert underlying.calls == 1
        assert factory.is_created

    def test_bindings_are_cached_separately(self):
        """Test that two scoped factories do not share a value."""
        scope = SingletonScope()
        first = scope.scope(KEY, CountingFactory())
        second = scope.scope(Key.get(str), CountingFactory())

        assert request(first) is not request(second)

    def test_failure_does_not_poison_cache(self):
        """Test that a failed construction can be retried."""
        underlying = CountingFactory(failures=1)
        factory = SingletonScope().scope(KEY, underlying)

        with pytest.raises(RuntimeError):
            request(factory)
        assert not factory.is_created

        value = request(factory)
        assert request(factory) is value
        assert underlying.calls == 2

    def test_concurrent_first_access_constructs_once(self):
        """Test that racing threads observe a single construction."""
        underlying = CountingFactory(delay=0.05)
        factory = SingletonScope().scope(KEY, underlying)
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(request(factory))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert underlying.calls == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)

    def test_circular_proxy_is_not_cached(self):
        """Test that a placeholder for an in-progress construction is never cached."""

        class ProxyFactory(IInternalFactory):
            def __init__(self):
                self.calls = 0

            def get(self, context, dependency):
                self.calls += 1
                if self.calls == 1:
                    return ConstructionContext().create_proxy(Key.get(Service), Service, ())
                return "real"

        underlying = ProxyFactory()
        factory = SingletonScope().scope(Key.get(Service), underlying)

        request(factory)

        assert not factory.is_created
        assert request(factory) == "real"

    def test_reentrant_request_is_not_cached(self):
        """Test that only the outermost request publishes the instance."""

        class ReentrantFactory(IInternalFactory):
            def __init__(self):
                self.scoped = None
                self.depth = 0
                self.created_during_outer = []

            def get(self, context, dependency):
                self.depth += 1
                try:
                    if self.depth == 1:
                        inner = self.scoped.get(context, dependency)
                        self.created_during_outer.append(self.scoped.is_created)
                        return ("outer", inner)
                    return "inner"
                finally:
                    self.depth -= 1

        underlying = ReentrantFactory()
        factory = SingletonScope().scope(KEY, underlying)
        underlying.scoped = factory

        value = request(factory)

        assert value == ("outer", "inner")
        assert underlying.created_during_outer == [False]
        assert request(factory) is value
