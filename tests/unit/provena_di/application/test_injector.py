"""Unit tests for the Injector."""

import logging
from abc import ABC, abstractmethod
from typing import Annotated, Optional

import pytest

from provena_di.application.injector import Injector
from provena_di.domain import (
    BindingDeclaration,
    BindingKind,
    ConfigurationError,
    ConstantConversionError,
    ConverterRegistration,
    Dependency,
    IInjector,
    IInternalFactory,
    Inject,
    InjectorSettings,
    IScope,
    Key,
    Matchers,
    Named,
    Provider,
    ResolutionError,
    Scoping,
    Stage,
    implemented_by,
    inject,
    provided_by,
    singleton,
)


class Clock:
    pass


class Mailer(ABC):
    @abstractmethod
    def send(self, message: str) -> str: ...


class SmtpMailer(Mailer):
    def send(self, message: str) -> str:
        return f"smtp:{message}"


class Notifier:
    def __init__(self, mailer: Mailer, clock: Clock) -> None:
        self.mailer = mailer
        self.clock = clock


class Settings:
    def __init__(self, port: Annotated[int, Named("port")], debug: Annotated[bool, Named("debug")]) -> None:
        self.port = port
        self.debug = debug


class Counted:
    created = 0

    def __init__(self) -> None:
        Counted.created += 1


class Exploding:
    def __init__(self) -> None:
        raise ValueError("cannot build")


class Audited:
    clock: Annotated[Clock, Inject()]
    audit: Annotated[Optional[Mailer], Inject(optional=True)]

    @inject
    def configure(self, port: Annotated[int, Named("port")]) -> None:
        self.port = port


class Registry:
    @inject
    def attach(self, clock: Clock) -> None:
        self.clock = clock


class StaticHolder:
    clock: Annotated[Clock, Inject(static=True)]


class Sender(ABC):
    @abstractmethod
    def deliver(self) -> str: ...


class PigeonSender(Sender):
    def deliver(self) -> str:
        return "coo"


implemented_by(PigeonSender)(Sender)


class ConnectionProvider:
    def get(self) -> "Connection":
        return Connection("provided")


@provided_by(ConnectionProvider)
class Connection:
    def __init__(self, url: Annotated[str, Named("url")]) -> None:
        self.url = url


@singleton
class Cache:
    pass


class ClockConsumer:
    def __init__(self, clocks: Provider[Clock]) -> None:
        self.clocks = clocks


class Logged:
    def __init__(self, log: logging.Logger) -> None:
        self.log = log


class Staged:
    def __init__(self, stage: Stage, injector: Injector) -> None:
        self.stage = stage
        self.injector = injector


def lenient(*declarations, **settings) -> Injector:
    return Injector(declarations, settings=InjectorSettings(validate_on_build=False, **settings))


class TestInjectorBuild:
    """Test cases for building an injector from declarations."""

    def test_injector_implements_interface(self):
        """Test that Injector implements IInjector."""
        assert isinstance(Injector(), IInjector)

    def test_builtin_bindings(self):
        """Test the bindings every injector carries."""
        bindings = Injector().get_bindings()

        assert set(bindings) == {Key.get(Injector), Key.get(Stage), Key.get(Dependency), Key.get(logging.Logger)}

    def test_explicit_bindings_are_registered(self):
        """Test that declarations become bindings with their kind and source."""
        injector = Injector([BindingDeclaration.to_key(Mailer, SmtpMailer)])

        binding = injector.get_bindings()[Key.get(Mailer)]

        assert binding.kind == BindingKind.LINKED_KEY
        assert binding.target == Key.get(SmtpMailer)
        assert "test_injector.py" in binding.source

    def test_duplicate_binding(self):
        """Test that a key can only be bound once."""
        with pytest.raises(ConfigurationError, match="A binding to Key\\[Clock\\] was already configured"):
            Injector([BindingDeclaration.to_instance(Clock, Clock()), BindingDeclaration.to_instance(Clock, Clock())])

    def test_builtin_cannot_be_rebound(self):
        """Test that built-in keys are reserved."""
        with pytest.raises(ConfigurationError, match="already configured at \\[builtin\\]"):
            Injector([BindingDeclaration.to_instance(Stage, Stage.TOOL)])

    def test_scoped_instance_is_rejected(self):
        """Test that a single instance cannot be given a scope."""
        declaration = BindingDeclaration(
            key=Key.get(Clock), kind=BindingKind.INSTANCE, target=Clock(), scoping=Scoping.singleton()
        )
        with pytest.raises(ConfigurationError, match="Setting the scope is not permitted"):
            Injector([declaration])

    def test_instance_none_is_rejected(self):
        """Test that binding to None is a configuration error."""
        with pytest.raises(ConfigurationError, match="Binding to None is not allowed"):
            Injector([BindingDeclaration.to_instance(Clock, None)])

    def test_self_link_is_rejected(self):
        """Test that a key cannot link to itself."""
        with pytest.raises(ConfigurationError, match="Binding points to itself"):
            Injector([BindingDeclaration.to_key(Clock, Clock)])

    def test_abstract_constructor_is_rejected(self):
        """Test that abstract classes cannot be bound to their constructor."""
        with pytest.raises(ConfigurationError, match="Mailer is abstract and cannot be constructed"):
            Injector([BindingDeclaration.to_constructor(Mailer)])

    def test_invalid_provider_is_rejected(self):
        """Test that providers need get() or must be callable."""
        with pytest.raises(ConfigurationError, match="has no get\\(\\) method and is not callable"):
            Injector([BindingDeclaration.to_provider(Clock, 42)])

    def test_errors_are_reported_together(self):
        """Test that every build problem is reported at once."""
        with pytest.raises(ConfigurationError) as error:
            Injector([BindingDeclaration.to_instance(Clock, None), BindingDeclaration.to_key(Mailer, Mailer)])

        assert len(error.value.messages) == 2

    def test_validation_on_build(self):
        """Test that missing dependencies of explicit bindings fail the build."""
        with pytest.raises(ConfigurationError, match="No implementation for Key\\[Mailer\\] was bound"):
            Injector([BindingDeclaration.to_constructor(Notifier)])

    def test_validation_can_be_disabled(self):
        """Test that validate_on_build=False defers problems to first use."""
        injector = lenient(BindingDeclaration.to_constructor(Notifier))

        with pytest.raises(ConfigurationError, match="No implementation for Key\\[Mailer\\] was bound"):
            injector.get_instance(Notifier)


class TestBindingKinds:
    """Test cases for resolving each binding kind."""

    def test_instance_binding(self):
        """Test that an instance binding returns the instance."""
        clock = Clock()
        injector = Injector([BindingDeclaration.to_instance(Clock, clock)])
        assert injector.get_instance(Clock) is clock

    def test_provider_object(self):
        """Test providers with a get() method."""
        injector = Injector([BindingDeclaration.to_provider(Mailer, ConnectionProviderAdapter())])
        assert injector.get_instance(Mailer).send("hi") == "smtp:hi"

    def test_provider_callable(self):
        """Test zero-argument callables as providers."""
        injector = Injector([BindingDeclaration.to_provider(Mailer, SmtpMailer)])
        first = injector.get_instance(Mailer)
        assert isinstance(first, SmtpMailer)
        assert injector.get_instance(Mailer) is not first

    def test_provider_returning_none_for_direct_request(self):
        """Test that direct requests are nullable."""
        injector = Injector([BindingDeclaration.to_provider(Clock, lambda: None)])
        assert injector.get_instance(Clock) is None

    def test_provider_returning_none_for_required_dependency(self):
        """Test that None is rejected for a non-nullable injection point."""
        injector = Injector(
            [BindingDeclaration.to_provider(Mailer, lambda: None), BindingDeclaration.to_constructor(Notifier)]
        )
        with pytest.raises(ResolutionError, match="None returned by binding"):
            injector.get_instance(Notifier)

    def test_provider_failure_is_wrapped(self):
        """Test that provider exceptions become resolution errors with the cause chained."""

        def failing():
            raise KeyError("missing")

        injector = Injector([BindingDeclaration.to_provider(Clock, failing)])

        with pytest.raises(ResolutionError, match="Error in custom provider") as error:
            injector.get_instance(Clock)
        assert isinstance(error.value.cause, KeyError)
        assert isinstance(error.value.__cause__, KeyError)

    def test_provider_key(self):
        """Test providers resolved from the injector."""
        injector = Injector(
            [
                BindingDeclaration.to_provider_key(Connection, ConnectionProvider),
            ]
        )
        assert injector.get_instance(Connection).url == "provided"

    def test_linked_key(self):
        """Test that linked keys resolve their target."""
        injector = Injector([BindingDeclaration.to_key(Mailer, SmtpMailer)])
        assert isinstance(injector.get_instance(Mailer), SmtpMailer)

    def test_constructor_binding(self):
        """Test constructor injection with linked and just-in-time dependencies."""
        injector = Injector([BindingDeclaration.to_key(Mailer, SmtpMailer), BindingDeclaration.to_constructor(Notifier)])

        notifier = injector.get_instance(Notifier)

        assert isinstance(notifier.mailer, SmtpMailer)
        assert isinstance(notifier.clock, Clock)

    def test_constructor_failure_is_wrapped(self):
        """Test that constructor exceptions become resolution errors."""
        injector = Injector([BindingDeclaration.to_constructor(Exploding)])

        with pytest.raises(ResolutionError, match="Error injecting constructor") as error:
            injector.get_instance(Exploding)
        assert isinstance(error.value.cause, ValueError)
        assert "while locating Key[Exploding]" in str(error.value)

    def test_constants_and_conversion(self):
        """Test qualified constants converted to the requested type."""
        injector = Injector(
            [
                BindingDeclaration.constant("port", "8080"),
                BindingDeclaration.constant("debug", "yes"),
                BindingDeclaration.to_constructor(Settings),
            ]
        )

        settings = injector.get_instance(Settings)

        assert settings.port == 8080
        assert settings.debug is True
        assert injector.get_instance(Key.get(str, "port")) == "8080"
        assert injector.get_binding(Key.get(int, "port")).kind == BindingKind.CONVERTED_CONSTANT

    def test_conversion_error(self):
        """Test that a failed conversion is a ConstantConversionError."""
        injector = Injector([BindingDeclaration.constant("port", "eighty")])

        with pytest.raises(ConstantConversionError, match="Error converting 'eighty'"):
            injector.get_instance(Key.get(int, "port"))

    def test_user_converter(self):
        """Test that user converters take part in conversion."""
        converter = ConverterRegistration.of(Matchers.only(Clock), lambda value, target_type: Clock())
        injector = Injector([BindingDeclaration.constant("clock", "wall")], converters=[converter])

        assert isinstance(injector.get_instance(Key.get(Clock, "clock")), Clock)

    def test_qualified_key_without_constant(self):
        """Test that qualified keys are never synthesized from their type."""
        with pytest.raises(ConfigurationError, match="No implementation for Key\\[Clock, qualifier='wall'\\]"):
            Injector().get_instance(Key.get(Clock, "wall"))


class TestJustInTimeBindings:
    """Test cases for bindings synthesized on demand."""

    def test_concrete_class(self):
        """Test that concrete classes are constructed without a declaration."""
        injector = Injector()

        binding = injector.get_binding(Clock)

        assert binding.kind == BindingKind.CONSTRUCTOR
        assert binding.source.startswith("[just-in-time]")
        assert injector.get_binding(Clock) is binding
        assert isinstance(injector.get_instance(Clock), Clock)

    def test_unscoped_by_default(self):
        """Test that synthesized bindings create a new instance per request."""
        injector = Injector()
        assert injector.get_instance(Clock) is not injector.get_instance(Clock)

    def test_abstract_class_has_no_binding(self):
        """Test that abstract classes without a strategy are not synthesized."""
        injector = Injector()

        assert injector.get_binding(Mailer) is None
        with pytest.raises(ConfigurationError, match="No implementation for Key\\[Mailer\\] was bound"):
            injector.get_instance(Mailer)

    def test_builtin_types_are_not_synthesized(self):
        """Test that builtin types need an explicit binding."""
        assert Injector().get_binding(int) is None

    def test_disabled(self):
        """Test that just-in-time bindings can be turned off."""
        injector = Injector(settings=InjectorSettings(jit_bindings_enabled=False))

        with pytest.raises(ConfigurationError, match="Explicit bindings are required"):
            injector.get_instance(Clock)

    def test_implemented_by(self):
        """Test that @implemented_by links to the default implementation."""
        injector = Injector()

        assert injector.get_instance(Sender).deliver() == "coo"
        assert injector.get_binding(Sender).kind == BindingKind.LINKED_KEY

    def test_provided_by(self):
        """Test that @provided_by resolves through the provider class."""
        injector = Injector()

        assert injector.get_instance(Connection).url == "provided"
        assert injector.get_binding(Connection).kind == BindingKind.PROVIDER_KEY

    def test_singleton_marker(self):
        """Test that @singleton gives synthesized bindings singleton scope."""
        injector = Injector()
        assert injector.get_instance(Cache) is injector.get_instance(Cache)

    def test_provider_of_type(self):
        """Test that Provider[T] is resolved to a provider of T."""
        injector = Injector()

        consumer = injector.get_instance(ClockConsumer)

        assert isinstance(consumer.clocks.get(), Clock)
        assert consumer.clocks.get() is not consumer.clocks.get()
        assert injector.get_binding(Provider[Clock]).kind == BindingKind.PROVIDER

    def test_provider_of_unbound_type(self):
        """Test that Provider[T] needs a binding for T."""
        assert Injector().get_binding(Provider[Mailer]) is None


class TestBuiltins:
    """Test cases for the built-in bindings."""

    def test_injector_and_stage(self):
        """Test that the injector and its stage can be injected."""
        injector = Injector(settings=InjectorSettings(stage=Stage.TOOL))

        staged = injector.get_instance(Staged)

        assert staged.stage == Stage.TOOL
        assert staged.injector is injector

    def test_logger_is_named_after_declaring_type(self):
        """Test that injected loggers are named after the class requesting them."""
        logged = Injector().get_instance(Logged)
        assert logged.log.name == f"{Logged.__module__}.Logged"

    def test_direct_logger_is_anonymous(self):
        """Test the logger handed out for a direct request."""
        assert Injector().get_instance(logging.Logger).name == "provena_di.anonymous"

    def test_direct_dependency_is_none(self):
        """Test that the current dependency is None outside another resolution."""
        assert Injector().get_instance(Dependency) is None


class TestScopes:
    """Test cases for scoped bindings."""

    def setup_method(self):
        Counted.created = 0

    def test_singleton(self):
        """Test lazily created singletons."""
        injector = Injector([BindingDeclaration.to_constructor(Counted, Scoping.singleton())])

        assert Counted.created == 0
        assert injector.get_instance(Counted) is injector.get_instance(Counted)
        assert Counted.created == 1

    def test_eager_singleton(self):
        """Test that eager singletons are created while building."""
        Injector([BindingDeclaration.to_constructor(Counted, Scoping.eager_singleton())])
        assert Counted.created == 1

    def test_production_stage_creates_singletons_eagerly(self):
        """Test that every singleton is eager in production."""
        Injector(
            [BindingDeclaration.to_constructor(Counted, Scoping.singleton())],
            settings=InjectorSettings(stage=Stage.PRODUCTION),
        )
        assert Counted.created == 1

    def test_tool_stage_creates_nothing(self):
        """Test that the tool stage never creates instances."""
        Injector(
            [BindingDeclaration.to_constructor(Counted, Scoping.eager_singleton())],
            settings=InjectorSettings(stage=Stage.TOOL),
        )
        assert Counted.created == 0

    def test_eager_singleton_failure_fails_build(self):
        """Test that eager singleton failures are configuration errors."""
        with pytest.raises(ConfigurationError, match="Error injecting constructor"):
            Injector([BindingDeclaration.to_constructor(Exploding, Scoping.eager_singleton())])

    def test_injectors_do_not_share_singletons(self):
        """Test that singletons belong to one injector."""
        declarations = [BindingDeclaration.to_constructor(Counted, Scoping.singleton())]

        first = Injector(declarations).get_instance(Counted)
        second = Injector(declarations).get_instance(Counted)

        assert first is not second

    def test_custom_scope(self):
        """Test that custom scopes wrap the raw factory."""

        class RecordingScope(IScope):
            def __init__(self):
                self.scoped = []

            def scope(self, key: Key, factory: IInternalFactory) -> IInternalFactory:
                self.scoped.append(key)
                return factory

        scope = RecordingScope()
        injector = Injector([BindingDeclaration.to_constructor(Counted, Scoping.custom(scope))])

        assert scope.scoped == [Key.get(Counted)]
        assert isinstance(injector.get_instance(Counted), Counted)


class TestMemberInjection:
    """Test cases for field, method and static injection."""

    def test_fields_and_methods(self):
        """Test that constructed instances get their members injected."""
        injector = Injector([BindingDeclaration.constant("port", "25")])

        audited = injector.get_instance(Audited)

        assert isinstance(audited.clock, Clock)
        assert audited.port == 25

    def test_optional_member_with_missing_binding_is_skipped(self):
        """Test that optional members are skipped when unbound."""
        audited = Injector([BindingDeclaration.constant("port", "25")]).get_instance(Audited)
        assert not hasattr(audited, "audit")

    def test_optional_member_with_binding_is_injected(self):
        """Test that optional members are injected when bound."""
        injector = Injector([BindingDeclaration.constant("port", "25"), BindingDeclaration.to_key(Mailer, SmtpMailer)])
        assert isinstance(injector.get_instance(Audited).audit, SmtpMailer)

    def test_inject_members(self):
        """Test injecting an existing instance."""
        registry = Registry()

        Injector().inject_members(registry)

        assert isinstance(registry.clock, Clock)

    def test_bound_instances_are_injected_at_build(self):
        """Test that instance bindings get their members injected while building."""
        registry = Registry()

        Injector([BindingDeclaration.to_instance(Registry, registry)])

        assert isinstance(registry.clock, Clock)

    def test_static_injection(self):
        """Test that static members are injected while building."""
        Injector(static_injections=[StaticHolder])
        assert isinstance(StaticHolder.clock, Clock)

    def test_get_provider(self):
        """Test providers handed out by the injector."""
        provider = Injector().get_provider(Clock)
        assert isinstance(provider.get(), Clock)

    def test_get_provider_for_unbound_key(self):
        """Test that providers are only handed out for resolvable keys."""
        with pytest.raises(ConfigurationError):
            Injector().get_provider(Mailer)


class ConnectionProviderAdapter:
    def get(self) -> Mailer:
        return SmtpMailer()
