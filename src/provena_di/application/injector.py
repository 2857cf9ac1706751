import inspect
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Type, TypeVar, Union, get_args, get_origin

import structlog

from provena_di.application.construction import DefaultConstructionProxyFactory
from provena_di.application.converters import DEFAULT_CONVERTERS, find_converter
from provena_di.application.errors import Errors, configuration_error
from provena_di.application.factories import (
    BoundProviderFactory,
    CallableProvider,
    ConstantFactory,
    ConstructorFactory,
    DependencyFactory,
    InjectorProvider,
    LinkedKeyFactory,
    LoggerFactory,
    ProviderFactory,
    ProviderInstanceFactory,
    resolution_error,
)
from provena_di.application.graph_validator import GraphValidator
from provena_di.application.initializer import Initializer
from provena_di.application.members_injector import MembersInjector
from provena_di.application.metadata_provider import TypeHintMetadataProvider
from provena_di.application.scopes import SingletonScope
from provena_di.domain import (
    Binding,
    BindingDeclaration,
    BindingKind,
    ConfigurationError,
    ConstantConversionError,
    ConverterRegistration,
    DIException,
    Dependency,
    ErrorMessage,
    IConstructionProxyFactory,
    IInjector,
    IInternalFactory,
    IMetadataProvider,
    InjectionPoint,
    InjectorSettings,
    Key,
    ListenerRegistration,
    Provider,
    ResolutionContext,
    Scoping,
    ScopingKind,
    Stage,
    is_proxyable,
)
from provena_di.domain.annotations import (
    IMPLEMENTED_BY_ATTRIBUTE,
    PROVIDED_BY_ATTRIBUTE,
    SINGLETON_ATTRIBUTE,
    own_attribute,
)
from provena_di.domain.models import type_name

logger = structlog.get_logger(__name__)

T = TypeVar("T")

BUILTIN_SOURCE = "[builtin]"
_SINGLE_VALUE_KINDS = (BindingKind.INSTANCE, BindingKind.CONSTANT)


class Injector(IInjector):
    """Binding registry and resolution engine.

    Builds bindings from declarations, synthesizes just-in-time bindings for
    unbound concrete classes, and resolves keys to instances. Every top-level
    call gets its own ``ResolutionContext``; the only state shared between
    concurrent calls is the binding registry and the singleton cache, both
    guarded so that synthesis and singleton creation happen exactly once.

    Attributes:
        settings: The injector configuration.
        _bindings: Explicit and built-in bindings.
        _jit_bindings: Bindings synthesized on demand.
        _lock: Guards just-in-time synthesis and the per-type caches.
        _singleton_scope: Singleton cache shared by every singleton binding of this injector.

    Example:
        >>> injector = Injector(
        ...     [
        ...         BindingDeclaration.to_key(Repository, SqlRepository),
        ...         BindingDeclaration.to_constructor(SqlRepository, Scoping.singleton()),
        ...         BindingDeclaration.constant("db.url", "sqlite://"),
        ...     ]
        ... )
        >>> service = injector.get_instance(UserService)

    Raises:
        ConfigurationError: From the constructor, when declarations are invalid,
            the graph has missing bindings or unsupported cycles, or an eager
            singleton failed.
    """

    def __init__(
        self,
        declarations: Iterable[BindingDeclaration] = (),
        *,
        listeners: Iterable[ListenerRegistration] = (),
        converters: Iterable[ConverterRegistration] = (),
        static_injections: Iterable[type] = (),
        settings: Optional[InjectorSettings] = None,
        metadata_provider: Optional[IMetadataProvider] = None,
        construction_proxy_factory: Optional[IConstructionProxyFactory] = None,
    ) -> None:
        self.settings = settings or InjectorSettings()
        self._metadata_provider = metadata_provider or TypeHintMetadataProvider()
        self._construction_proxy_factory = construction_proxy_factory or DefaultConstructionProxyFactory()
        self._listeners: List[ListenerRegistration] = list(listeners)
        self._converters: List[ConverterRegistration] = list(converters) + DEFAULT_CONVERTERS

        self._bindings: Dict[Key, Binding] = {}
        self._jit_bindings: Dict[Key, Binding] = {}
        self._constructor_factories: Dict[type, ConstructorFactory] = {}
        self._members_injectors: Dict[type, MembersInjector] = {}
        self._validated_keys: Set[Key] = set()
        self._lock = threading.RLock()

        self._singleton_scope = SingletonScope()
        self._initializer = Initializer(self)
        self._validator = GraphValidator(self)

        self._build(list(declarations), list(static_injections))

    # Building

    def _build(self, declarations: List[BindingDeclaration], static_injections: List[type]) -> None:
        errors = Errors()
        self._register_builtins()
        for declaration in declarations:
            self._register(declaration, errors)
        self._fail_build_if(errors)

        if self.settings.validate_on_build:
            for key in list(self._bindings):
                if self._bindings[key].source != BUILTIN_SOURCE:
                    self._validator.validate(key, errors)
            self._fail_build_if(errors)
            self._validated_keys.update(self._bindings)

        self._initializer.inject_all(errors)
        for target_type in static_injections:
            self._inject_static(target_type, errors)
        self._fail_build_if(errors)

        if self.settings.stage != Stage.TOOL:
            self._create_eager_singletons(errors)
        self._fail_build_if(errors)

        logger.debug(
            "Injector built",
            stage=str(self.settings.stage),
            bindings=len(self._bindings),
            listeners=len(self._listeners),
        )

    def _fail_build_if(self, errors: Errors) -> None:
        if errors.has_errors():
            logger.warning("Injector build failed", errors=len(errors))
            errors.throw_configuration_error_if_errors_exist()

    def _register_builtins(self) -> None:
        builtins = [
            (Key.get(Injector), BindingKind.INSTANCE, ConstantFactory(self), self),
            (Key.get(Stage), BindingKind.INSTANCE, ConstantFactory(self.settings.stage), self.settings.stage),
            (Key.get(Dependency), BindingKind.PROVIDER_INSTANCE, DependencyFactory(), None),
            (Key.get(logging.Logger), BindingKind.PROVIDER_INSTANCE, LoggerFactory(), None),
        ]
        for key, kind, factory, target in builtins:
            self._bindings[key] = Binding(key=key, kind=kind, factory=factory, source=BUILTIN_SOURCE, target=target)

    def _register(self, declaration: BindingDeclaration, errors: Errors) -> None:
        key = declaration.key
        sources = (f"at {declaration.source}",)
        existing = self._bindings.get(key)
        if existing is not None:
            errors.binding_already_set(key, existing.source, sources)
            return

        binding = self._create_binding(declaration, errors, sources)
        if binding is not None:
            self._bindings[key] = binding
            logger.debug("Registered binding", key=str(key), kind=str(binding.kind), scope=str(binding.scoping))

    def _create_binding(self, declaration: BindingDeclaration, errors: Errors, sources: Sequence[str]) -> Optional[Binding]:
        key, kind, target, source = declaration.key, declaration.kind, declaration.target, declaration.source
        raw: Optional[IInternalFactory] = None

        if kind in _SINGLE_VALUE_KINDS:
            if declaration.scoping.kind != ScopingKind.UNSCOPED:
                errors.scope_not_permitted(sources)
                return None
            if target is None:
                errors.binding_to_none(sources)
                return None
            raw = ConstantFactory(target, self._initializer)
            self._initializer.request_injection(target, source)

        elif kind == BindingKind.PROVIDER_INSTANCE:
            provider = target
            if not callable(getattr(provider, "get", None)):
                if not callable(provider):
                    errors.not_a_provider(provider, sources)
                    return None
                provider = CallableProvider(provider)
            raw = ProviderInstanceFactory(provider, source, self._initializer)
            self._initializer.request_injection(provider, source)

        elif kind == BindingKind.PROVIDER_KEY:
            raw = BoundProviderFactory(self, target, source)

        elif kind == BindingKind.LINKED_KEY:
            if target == key:
                errors.recursive_binding(key, sources)
                return None
            raw = LinkedKeyFactory(self, target)

        elif kind == BindingKind.CONSTRUCTOR:
            if not inspect.isclass(target) or is_proxyable(target):
                errors.cannot_construct_abstract(target, sources)
                return None
            try:
                raw = self.constructor_factory_for(target)
            except ConfigurationError as e:
                errors.merge(e, sources)
                return None
            target = raw.injection_point

        else:
            errors.add(f"Binding kind {kind} cannot be declared.", sources)
            return None

        return Binding(
            key=key,
            kind=kind,
            factory=self._apply_scope(key, raw, declaration.scoping),
            scoping=declaration.scoping,
            source=source,
            target=target,
        )

    def _apply_scope(self, key: Key, factory: IInternalFactory, scoping: Scoping) -> IInternalFactory:
        if scoping.is_singleton:
            return self._singleton_scope.scope(key, factory)
        if scoping.kind == ScopingKind.CUSTOM:
            return scoping.scope.scope(key, factory)
        return factory

    def _inject_static(self, target_type: type, errors: Errors) -> None:
        sources = (f"while injecting static members of {type_name(target_type)}",)
        try:
            points = self._metadata_provider.static_injection_points(target_type)
            points = [point for point in points if not point.optional or self._all_bound(point)]
            members_injector = MembersInjector(self, points, ())
            self.call_in_context(lambda context: members_injector.inject_members(context, target_type))
        except DIException as e:
            errors.merge(e, sources)

    def _create_eager_singletons(self, errors: Errors) -> None:
        production = self.settings.stage == Stage.PRODUCTION
        eager = [
            binding
            for binding in self._bindings.values()
            if binding.scoping.is_eager or (production and binding.scoping.is_singleton)
        ]
        for binding in eager:
            dependency = Dependency.get(binding.key)
            try:
                self.call_in_context(lambda context: self._resolve_with(context, binding, dependency))
            except DIException as e:
                errors.merge(e, (f"while creating eager singleton {binding.key}",))
        if eager:
            logger.debug("Created eager singletons", count=len(eager))

    # Resolution

    def call_in_context(self, action: Callable[[ResolutionContext], T]) -> T:
        """Run ``action`` as a top-level request with a fresh resolution context.

        Deferred ``after_injection`` listener callbacks run once ``action`` succeeded.
        """
        context = ResolutionContext()
        result = action(context)
        for instance, dependency, listeners in context.drain_after_injection():
            for listener in listeners:
                try:
                    listener.after_injection(instance, dependency)
                except DIException:
                    raise
                except Exception as e:
                    raise resolution_error(f"Error notifying listener {listener!r}, {e!r}", context, e) from e
        return result

    def resolve(self, context: ResolutionContext, dependency: Dependency) -> Any:
        """Resolve ``dependency`` within ``context``, pushing it for the duration of the call."""
        with context.frame(dependency):
            binding = self.get_binding_or_raise(dependency.key, context.render_chain())
            return binding.factory.get(context, dependency)

    def _resolve_with(self, context: ResolutionContext, binding: Binding, dependency: Dependency) -> Any:
        with context.frame(dependency):
            return binding.factory.get(context, dependency)

    def resolve_parameters(self, context: ResolutionContext, dependencies: Sequence[Dependency]) -> List[Any]:
        return [self.resolve(context, dependency) for dependency in dependencies]

    def get_instance(self, key: Union[Key, Type[T]]) -> T:
        """Resolve and return the value bound to ``key``.

        Args:
            key: A key, or a class standing for its unqualified key.

        Returns:
            The resolved value.

        Raises:
            ConfigurationError: If no binding can be found or synthesized, or the
                graph contains an unsupported cycle.
            ResolutionError: If a constructor, provider or listener raised.

        Example:
            >>> injector.get_instance(UserService)
            >>> injector.get_instance(Key.get(str, "db.url"))
        """
        key = Key.of(key)
        self._ensure_validated(key)
        dependency = Dependency.get(key)
        return self.call_in_context(lambda context: self.resolve(context, dependency))

    def _ensure_validated(self, key: Key) -> None:
        if key in self._validated_keys:
            return
        errors = Errors()
        self._validator.validate(key, errors)
        errors.throw_configuration_error_if_errors_exist()
        self._validated_keys.add(key)

    def inject_members(self, instance: Any) -> None:
        """Inject the fields and methods of an existing instance.

        No top-level dependency is pushed, so a ``Dependency`` field of the
        instance itself is injected as None.
        """
        members_injector = self.members_injector_for(type(instance))
        self.call_in_context(lambda context: members_injector.inject_members(context, instance))

    def get_provider(self, key: Union[Key, Type[T]]) -> Provider[T]:
        key = Key.of(key)
        self.get_binding_or_raise(key)
        return InjectorProvider(self, key)

    # Bindings

    def get_binding(self, key: Union[Key, Type]) -> Optional[Binding]:
        """Return the binding for ``key``, synthesizing it just in time when possible, else None."""
        key = Key.of(key)
        try:
            return self.get_binding_or_raise(key)
        except ConfigurationError as e:
            logger.debug("No binding available", key=str(key), errors=len(e.messages))
            return None

    def get_bindings(self) -> Dict[Key, Binding]:
        return dict(self._bindings)

    def existing_binding(self, key: Key) -> Optional[Binding]:
        """Explicit or already synthesized binding for ``key``, without synthesizing."""
        return self._bindings.get(key) or self._jit_bindings.get(key)

    def get_binding_or_raise(self, key: Key, sources: Sequence[str] = ()) -> Binding:
        """Return the binding for ``key``, synthesizing and registering it if needed.

        Synthesis runs under the injector lock, so concurrent first requests
        register a single binding and all of them get that binding.

        Raises:
            ConfigurationError: If no binding exists and none can be synthesized.
        """
        binding = self.existing_binding(key)
        if binding is not None:
            return binding

        with self._lock:
            binding = self.existing_binding(key)
            if binding is None:
                binding = self._create_jit_binding(key, sources)
                self._jit_bindings[key] = binding
                logger.debug("Created just-in-time binding", key=str(key), kind=str(binding.kind))
            return binding

    def _create_jit_binding(self, key: Key, sources: Sequence[str]) -> Binding:
        dependency_type = key.dependency_type

        if get_origin(dependency_type) is Provider:
            return self._create_provider_binding(key, sources)

        if key.qualifier is not None:
            converted = self._convert_constant(key, sources)
            if converted is not None:
                return converted
            raise Errors().missing_implementation(key, sources).to_exception()

        if not self.settings.jit_bindings_enabled:
            raise Errors().jit_disabled(key, sources).to_exception()

        if not inspect.isclass(dependency_type):
            raise Errors().missing_implementation(key, sources).to_exception()

        scoping = Scoping.singleton() if own_attribute(dependency_type, SINGLETON_ATTRIBUTE) else Scoping.unscoped()
        source = f"[just-in-time] {type_name(dependency_type)}"

        implementation = own_attribute(dependency_type, IMPLEMENTED_BY_ATTRIBUTE)
        if implementation is not None:
            if implementation is dependency_type or not issubclass(implementation, dependency_type):
                raise configuration_error(
                    f"{type_name(implementation)} given by @implemented_by is not a subclass of {key}.", sources
                )
            target = Key.get(implementation)
            self.get_binding_or_raise(target, sources)
            factory = LinkedKeyFactory(self, target)
            return Binding(
                key=key,
                kind=BindingKind.LINKED_KEY,
                factory=self._apply_scope(key, factory, scoping),
                scoping=scoping,
                source=source,
                target=target,
            )

        provider_type = own_attribute(dependency_type, PROVIDED_BY_ATTRIBUTE)
        if provider_type is not None:
            target = Key.get(provider_type)
            factory = BoundProviderFactory(self, target, source)
            return Binding(
                key=key,
                kind=BindingKind.PROVIDER_KEY,
                factory=self._apply_scope(key, factory, scoping),
                scoping=scoping,
                source=source,
                target=target,
            )

        if is_proxyable(dependency_type) or dependency_type.__module__ == "builtins":
            raise Errors().missing_implementation(key, sources).to_exception()

        try:
            constructor_factory = self.constructor_factory_for(dependency_type)
        except ConfigurationError as e:
            raise Errors().merge(e, sources).to_exception() from e
        return Binding(
            key=key,
            kind=BindingKind.CONSTRUCTOR,
            factory=self._apply_scope(key, constructor_factory, scoping),
            scoping=scoping,
            source=source,
            target=constructor_factory.injection_point,
        )

    def _create_provider_binding(self, key: Key, sources: Sequence[str]) -> Binding:
        arguments = get_args(key.dependency_type)
        if len(arguments) != 1:
            raise configuration_error(f"{key} must name exactly one provided type.", sources)
        provided = key.with_type(arguments[0])
        self.get_binding_or_raise(provided, sources)
        return Binding(
            key=key,
            kind=BindingKind.PROVIDER,
            factory=ProviderFactory(self, provided),
            source=BUILTIN_SOURCE,
            target=provided,
        )

    def _convert_constant(self, key: Key, sources: Sequence[str]) -> Optional[Binding]:
        if key.dependency_type is str:
            return None
        string_binding = self._bindings.get(key.with_type(str))
        if string_binding is None or string_binding.kind != BindingKind.CONSTANT:
            return None

        registration = find_converter(key.dependency_type, self._converters)
        if registration is None:
            return None

        value = string_binding.target
        try:
            converted = registration.converter(value, key.dependency_type)
        except Exception as e:
            message = ErrorMessage(
                message=(
                    f"Error converting '{value}' (bound at {string_binding.source}) to "
                    f"{type_name(key.dependency_type)} using converter registered at {registration.source}. "
                    f"Reason: {e!r}"
                ),
                sources=tuple(sources),
                cause=e,
            )
            raise ConstantConversionError([message]) from e

        if converted is None:
            raise configuration_error(f"Converter registered at {registration.source} returned None for {key}.", sources)
        return Binding(
            key=key,
            kind=BindingKind.CONVERTED_CONSTANT,
            factory=ConstantFactory(converted),
            source=string_binding.source,
            target=converted,
        )

    # Per-type caches

    def constructor_factory_for(self, target_type: type) -> ConstructorFactory:
        factory = self._constructor_factories.get(target_type)
        if factory is not None:
            return factory
        with self._lock:
            factory = self._constructor_factories.get(target_type)
            if factory is None:
                injection_point: InjectionPoint = self._metadata_provider.constructor_injection_point(target_type)
                proxy = self._construction_proxy_factory.get(injection_point)
                factory = ConstructorFactory(self, target_type, proxy)
                self._constructor_factories[target_type] = factory
            return factory

    def members_injector_for(self, target_type: type) -> MembersInjector:
        """Members injector for ``target_type``; optional members with missing bindings are dropped."""
        members_injector = self._members_injectors.get(target_type)
        if members_injector is not None:
            return members_injector
        with self._lock:
            members_injector = self._members_injectors.get(target_type)
            if members_injector is None:
                points = self._metadata_provider.instance_injection_points(target_type)
                points = [point for point in points if not point.optional or self._all_bound(point)]
                listeners = tuple(
                    registration.listener for registration in self._listeners if registration.matcher.matches(target_type)
                )
                members_injector = MembersInjector(self, points, listeners)
                self._members_injectors[target_type] = members_injector
            return members_injector

    def _all_bound(self, injection_point: InjectionPoint) -> bool:
        return all(self.get_binding(dependency.key) is not None for dependency in injection_point.dependencies)

    def __repr__(self) -> str:
        return f"Injector(stage={self.settings.stage}, bindings={len(self._bindings)}, jit={len(self._jit_bindings)})"
