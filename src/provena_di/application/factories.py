"""Application layer - Internal factories implementing each binding kind."""

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from provena_di.domain import (
    DIException,
    Dependency,
    ErrorMessage,
    IConstructionProxy,
    IInternalFactory,
    Key,
    Provider,
    ResolutionContext,
    ResolutionError,
)

if TYPE_CHECKING:
    from provena_di.application.initializer import Initializer
    from provena_di.application.injector import Injector

ANONYMOUS_LOGGER = "provena_di.anonymous"


def resolution_error(message: str, context: ResolutionContext, cause: Optional[BaseException] = None) -> ResolutionError:
    return ResolutionError([ErrorMessage(message=message, sources=context.render_chain(), cause=cause)])


def check_for_none(value: Any, source: str, context: ResolutionContext, dependency: Dependency) -> Any:
    """Reject ``None`` for dependencies that are not nullable."""
    if value is None and not dependency.nullable:
        raise resolution_error(
            f"None returned by binding at {source} but {dependency} is not nullable.",
            context,
        )
    return value


class CallableProvider(Provider[Any]):
    """Adapts a zero-argument callable to the provider interface."""

    def __init__(self, func: Callable[[], Any]) -> None:
        self.func = func

    def get(self) -> Any:
        return self.func()

    def __repr__(self) -> str:
        return f"CallableProvider({self.func!r})"


class InjectorProvider(Provider[Any]):
    """Provider resolving a key from an injector on every call."""

    def __init__(self, injector: "Injector", key: Key) -> None:
        self._injector = injector
        self.key = key

    def get(self) -> Any:
        return self._injector.get_instance(self.key)

    def __repr__(self) -> str:
        return f"InjectorProvider({self.key})"


class ConstantFactory(IInternalFactory):
    """Returns a pre-built value, making sure its members were injected first."""

    def __init__(self, value: Any, initializer: Optional["Initializer"] = None) -> None:
        self.value = value
        self._initializer = initializer

    def get(self, context: ResolutionContext, dependency: Dependency) -> Any:
        if self._initializer is not None:
            self._initializer.ensure_injected(context, self.value)
        return self.value

    def __repr__(self) -> str:
        return f"ConstantFactory(value={self.value!r})"


class ProviderInstanceFactory(IInternalFactory):
    """Calls a user provider object."""

    def __init__(self, provider: Any, source: str, initializer: Optional["Initializer"] = None) -> None:
        self.provider = provider
        self._source = source
        self._initializer = initializer

    def get(self, context: ResolutionContext, dependency: Dependency) -> Any:
        if self._initializer is not None:
            self._initializer.ensure_injected(context, self.provider)
        try:
            value = self.provider.get()
        except DIException:
            raise
        except Exception as e:
            raise resolution_error(f"Error in custom provider, {e!r}", context, e) from e
        return check_for_none(value, self._source, context, dependency)

    def __repr__(self) -> str:
        return f"ProviderInstanceFactory({self.provider!r})"


class BoundProviderFactory(IInternalFactory):
    """Resolves a provider from the injector, then calls it.

    The provider is resolved with the same dependency, so it observes the
    request it serves rather than a frame of its own.
    """

    def __init__(self, injector: "Injector", provider_key: Key, source: str) -> None:
        self._injector = injector
        self.provider_key = provider_key
        self._source = source

    def get(self, context: ResolutionContext, dependency: Dependency) -> Any:
        provider_binding = self._injector.get_binding_or_raise(self.provider_key, context.render_chain())
        provider = provider_binding.factory.get(context, dependency)
        try:
            value = provider.get()
        except DIException:
            raise
        except Exception as e:
            raise resolution_error(f"Error in custom provider, {e!r}", context, e) from e
        return check_for_none(value, self._source, context, dependency)

    def __repr__(self) -> str:
        return f"BoundProviderFactory({self.provider_key})"


class LinkedKeyFactory(IInternalFactory):
    """Delegates to the binding of another key with the same dependency."""

    def __init__(self, injector: "Injector", target_key: Key) -> None:
        self._injector = injector
        self.target_key = target_key

    def get(self, context: ResolutionContext, dependency: Dependency) -> Any:
        target_binding = self._injector.get_binding_or_raise(self.target_key, context.render_chain())
        return target_binding.factory.get(context, dependency)

    def __repr__(self) -> str:
        return f"LinkedKeyFactory({self.target_key})"


class ConstructorFactory(IInternalFactory):
    """Builds instances of a concrete type by constructor injection.

    Re-entrant requests for the same type within one resolution get a circular
    proxy while the constructor arguments are being resolved, and the partially
    injected instance while its members are being injected.
    """

    def __init__(self, injector: "Injector", target_type: type, construction_proxy: IConstructionProxy) -> None:
        self._injector = injector
        self.target_type = target_type
        self.construction_proxy = construction_proxy

    @property
    def injection_point(self):
        return self.construction_proxy.injection_point

    def get(self, context: ResolutionContext, dependency: Dependency) -> Any:
        construction_context = context.get_construction_context(self.target_type)

        if construction_context.constructing:
            return construction_context.create_proxy(
                dependency.key,
                dependency.key.dependency_type,
                context.get_dependency_stack(),
                self._injector.settings.circular_proxies_enabled,
            )

        # Re-entered while injecting members: hand out the same instance.
        current = construction_context.current_reference
        if current is not None:
            return current

        try:
            construction_context.start_construction()
            try:
                arguments = self._injector.resolve_parameters(context, self.injection_point.dependencies)
                instance = self._new_instance(context, arguments)
                construction_context.set_proxy_delegates(instance)
            finally:
                construction_context.finish_construction()

            construction_context.current_reference = instance
            members_injector = self._injector.members_injector_for(self.target_type)
            members_injector.inject_and_notify(context, instance, dependency)
            return instance
        finally:
            construction_context.current_reference = None

    def _new_instance(self, context: ResolutionContext, arguments: Sequence[Any]) -> Any:
        try:
            return self.construction_proxy.new_instance(arguments)
        except DIException:
            raise
        except Exception as e:
            raise resolution_error(f"Error injecting constructor, {e!r}", context, e) from e

    def __repr__(self) -> str:
        return f"ConstructorFactory({self.target_type.__qualname__})"


class DependencyFactory(IInternalFactory):
    """Resolves ``Key(Dependency)`` to the request enclosing the current one, or None."""

    def get(self, context: ResolutionContext, dependency: Dependency) -> Optional[Dependency]:
        return context.enclosing_dependency()

    def __repr__(self) -> str:
        return "DependencyFactory()"


class LoggerFactory(IInternalFactory):
    """Resolves ``Key(logging.Logger)`` to a logger named after the requesting type."""

    def get(self, context: ResolutionContext, dependency: Dependency) -> logging.Logger:
        injection_point = dependency.injection_point
        if injection_point is None:
            return logging.getLogger(ANONYMOUS_LOGGER)
        declaring_type = injection_point.declaring_type
        return logging.getLogger(f"{declaring_type.__module__}.{declaring_type.__qualname__}")

    def __repr__(self) -> str:
        return "LoggerFactory()"


class ProviderFactory(IInternalFactory):
    """Resolves ``Key(Provider[T])`` to a provider of ``T``."""

    def __init__(self, injector: "Injector", provided_key: Key) -> None:
        self.provided_key = provided_key
        self._provider = InjectorProvider(injector, provided_key)

    def get(self, context: ResolutionContext, dependency: Dependency) -> Provider[Any]:
        return self._provider

    def __repr__(self) -> str:
        return f"ProviderFactory({self.provided_key})"
