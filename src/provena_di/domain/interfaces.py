from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar, Union

from provena_di.domain.models import Binding, Dependency, InjectionPoint, Key

if TYPE_CHECKING:
    from provena_di.domain.context import ResolutionContext

T = TypeVar("T")


class Provider(ABC, Generic[T]):
    """Supplies instances of ``T``.

    Injecting ``Provider[Foo]`` yields a provider resolving ``Foo`` from the
    injector each time ``get()`` is called.
    """

    @abstractmethod
    def get(self) -> T:
        """Return an instance of ``T``."""


class IInternalFactory(ABC):
    """Construction strategy invoked by the engine for one binding."""

    @abstractmethod
    def get(self, context: "ResolutionContext", dependency: Dependency) -> Any:
        """Produce a value for ``dependency``.

        Args:
            context: The resolution context of the current top-level request.
            dependency: The dependency being satisfied; it is the top frame of
                ``context``'s dependency stack.

        Returns:
            The produced value.

        Raises:
            ConfigurationError: If a required binding is missing or a cycle is unsupported.
            ResolutionError: If user code raised while producing the value.
        """


class IScope(ABC):
    """Caching policy applied around a binding's raw factory."""

    @abstractmethod
    def scope(self, key: Key, factory: IInternalFactory) -> IInternalFactory:
        """Wrap ``factory`` with this scope's caching policy.

        Args:
            key: The bound key.
            factory: The unscoped factory.

        Returns:
            A factory applying the policy.
        """


class IConstructionProxy(ABC):
    """Builds instances of a concrete type from resolved constructor arguments."""

    @property
    @abstractmethod
    def injection_point(self) -> InjectionPoint:
        """The constructor injection point this proxy builds from."""

    @abstractmethod
    def new_instance(self, arguments: Sequence[Any]) -> Any:
        """Create an instance from the ordered constructor arguments."""


class IConstructionProxyFactory(ABC):
    """Creates construction proxies for constructor injection points."""

    @abstractmethod
    def get(self, injection_point: InjectionPoint) -> IConstructionProxy:
        """Return a proxy able to invoke the constructor behind ``injection_point``."""


class IMetadataProvider(ABC):
    """Discovers the injection points of concrete types."""

    @abstractmethod
    def constructor_injection_point(self, target_type: Type) -> InjectionPoint:
        """Return the injectable constructor of ``target_type``.

        Raises:
            ConfigurationError: If the constructor cannot be injected.
        """

    @abstractmethod
    def instance_injection_points(self, target_type: Type) -> List[InjectionPoint]:
        """Return instance fields then instance methods, supertypes first.

        Raises:
            ConfigurationError: If a member is malformed.
        """

    @abstractmethod
    def static_injection_points(self, target_type: Type) -> List[InjectionPoint]:
        """Return static fields then static methods, supertypes first.

        Raises:
            ConfigurationError: If a member is malformed.
        """


class IMatcher(ABC):
    """Decides whether a type is selected."""

    @abstractmethod
    def matches(self, candidate: Any) -> bool:
        """Return True if ``candidate`` is selected."""


class IDependencyListener(ABC, Generic[T]):
    """Observes instances created by the engine along with the dependency that caused them."""

    @abstractmethod
    def inject_members(self, instance: T, dependency: Dependency) -> None:
        """Called right after the instance's fields and methods were injected."""

    @abstractmethod
    def after_injection(self, instance: T, dependency: Dependency) -> None:
        """Called once the injection phase of the top-level request has completed."""


class IInjector(ABC):
    """Abstract interface for injector operations."""

    @abstractmethod
    def get_instance(self, key: Union[Key, Type[T]]) -> T:
        """Resolve and return the value bound to ``key``."""

    @abstractmethod
    def get_binding(self, key: Union[Key, Type]) -> Optional[Binding]:
        """Return the binding for ``key``, synthesizing it just in time when possible."""

    @abstractmethod
    def get_bindings(self) -> Dict[Key, Binding]:
        """Return the explicit and built-in bindings."""

    @abstractmethod
    def get_provider(self, key: Union[Key, Type[T]]) -> Provider[T]:
        """Return a provider resolving ``key`` on each call."""

    @abstractmethod
    def inject_members(self, instance: Any) -> None:
        """Inject the fields and methods of an existing instance."""
