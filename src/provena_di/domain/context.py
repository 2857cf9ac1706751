import inspect
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from provena_di.domain.exceptions import CircularDependencyError
from provena_di.domain.models import Dependency, ErrorMessage, Key, type_name

_UNSET = object()


def render_dependency_chain(stack: Sequence[Dependency]) -> Tuple[str, ...]:
    """Render a dependency stack (outermost first) as diagnostic lines, innermost first.

    Example:
        >>> render_dependency_chain(context.get_dependency_stack())
        ('while locating Key[Database]', '  for parameter 0 at Repository.__init__()', ...)
    """
    lines: List[str] = []
    for dependency in reversed(stack):
        lines.append(f"while locating {dependency.key}")
        if dependency.injection_point is not None:
            if dependency.position == -1:
                lines.append(f"  for field at {dependency.injection_point}")
            else:
                lines.append(f"  for parameter {dependency.position} at {dependency.injection_point}")
    return tuple(lines)


def is_proxyable(dependency_type: Any) -> bool:
    """True for interface-backed types: abstract classes and protocols."""
    if not inspect.isclass(dependency_type):
        return False
    return inspect.isabstract(dependency_type) or bool(getattr(dependency_type, "_is_protocol", False))


class CircularProxy:
    """Placeholder handed out while the real instance is still being constructed.

    Attribute access is forwarded to the delegate once construction finished.
    Special methods looked up on the type (``len()``, operators) are not forwarded.
    """

    def __init__(self, expected_type: Any) -> None:
        object.__setattr__(self, "_provena_expected_type", expected_type)
        object.__setattr__(self, "_provena_delegate", _UNSET)

    def __getattribute__(self, name: str) -> Any:
        if name.startswith("_provena_") or name == "__class__":
            return object.__getattribute__(self, name)
        delegate = object.__getattribute__(self, "_provena_delegate")
        if delegate is _UNSET:
            expected_type = object.__getattribute__(self, "_provena_expected_type")
            raise RuntimeError(
                f"Circular proxy for {type_name(expected_type)} used before its instance was constructed "
                f"(attribute '{name}')"
            )
        return getattr(delegate, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(object.__getattribute__(self, "_provena_delegate"), name, value)

    def __repr__(self) -> str:
        expected_type = object.__getattribute__(self, "_provena_expected_type")
        delegate = object.__getattribute__(self, "_provena_delegate")
        state = "unset" if delegate is _UNSET else repr(delegate)
        return f"<CircularProxy for {type_name(expected_type)}: {state}>"

    def _provena_set_delegate(self, delegate: Any) -> None:
        object.__setattr__(self, "_provena_delegate", delegate)


def _new_circular_proxy(expected_type: Any) -> CircularProxy:
    proxy_type = type(f"{expected_type.__name__}CircularProxy", (CircularProxy, expected_type), {})
    # Abstract members are served by the delegate.
    proxy_type.__abstractmethods__ = frozenset()
    proxy = object.__new__(proxy_type)
    CircularProxy.__init__(proxy, expected_type)
    return proxy


class ConstructionContext:
    """Tracks one in-progress construction within a resolution.

    While the constructor runs, re-entrant requests get a circular proxy when
    the requested type is interface-backed. Once the constructor returned and
    members are being injected, re-entrant requests get the current reference.

    Attributes:
        constructing: True while the constructor arguments are being resolved.
        current_reference: The constructed instance while its members are injected.
    """

    def __init__(self) -> None:
        self.constructing = False
        self.current_reference: Optional[Any] = None
        self._proxies: List[CircularProxy] = []

    def start_construction(self) -> None:
        self.constructing = True

    def finish_construction(self) -> None:
        self.constructing = False
        self._proxies = []

    def create_proxy(
        self,
        key: Key,
        expected_type: Any,
        stack: Sequence[Dependency],
        proxies_enabled: bool = True,
    ) -> CircularProxy:
        """Return a placeholder for the instance under construction.

        Args:
            key: Key whose construction is in progress.
            expected_type: Type requested at the re-entrant injection site.
            stack: Current dependency stack, outermost first.
            proxies_enabled: False to reject every constructor cycle.

        Raises:
            CircularDependencyError: If ``expected_type`` cannot be proxied.
        """
        if not proxies_enabled or not is_proxyable(expected_type):
            reason = (
                "circular proxies are disabled"
                if not proxies_enabled
                else f"{type_name(expected_type)} is not an abstract class or protocol"
            )
            message = ErrorMessage(
                message=f"Tried proxying {type_name(expected_type)} to support a circular dependency, but {reason}.",
                sources=render_dependency_chain(stack),
            )
            raise CircularDependencyError([dependency.key for dependency in stack] + [key], [message])

        proxy = _new_circular_proxy(expected_type)
        self._proxies.append(proxy)
        return proxy

    def set_proxy_delegates(self, delegate: Any) -> None:
        for proxy in self._proxies:
            proxy._provena_set_delegate(delegate)


class ResolutionContext(BaseModel):
    """State of one top-level resolution request.

    Holds the construction contexts used for cycle support and the LIFO stack of
    dependency frames (outermost first). Created at the start of each top-level
    request and discarded at its end; it is passed explicitly through every
    recursive call and never shared between requests.

    Attributes:
        construction_contexts: In-progress constructions keyed by construction target.
        dependency_stack: Dependencies currently being resolved, outermost first.
        pending_after_injection: Listener notifications deferred to the end of the request.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    construction_contexts: Dict[Any, ConstructionContext] = Field(
        default_factory=dict,
        description="Construction tracking records keyed by construction target.",
    )
    dependency_stack: List[Dependency] = Field(
        default_factory=list,
        description="Stack of dependencies currently being resolved.",
    )
    pending_after_injection: List[Tuple[Any, Dependency, Tuple[Any, ...]]] = Field(
        default_factory=list,
        description="(instance, dependency, listeners) awaiting after_injection.",
    )

    def get_construction_context(self, target: Any) -> ConstructionContext:
        """Return the construction record for ``target``, creating it if absent."""
        construction_context = self.construction_contexts.get(target)
        if construction_context is None:
            construction_context = ConstructionContext()
            self.construction_contexts[target] = construction_context
        return construction_context

    def push_dependency(self, dependency: Dependency) -> None:
        self.dependency_stack.append(dependency)

    def pop_dependency(self) -> Dependency:
        """Remove and return the innermost dependency.

        Raises:
            IndexError: If the stack is empty.
        """
        if not self.dependency_stack:
            raise IndexError("pop_dependency() called on an empty dependency stack")
        return self.dependency_stack.pop()

    def current_dependency(self) -> Optional[Dependency]:
        """The innermost dependency, or None when nothing is being resolved."""
        return self.dependency_stack[-1] if self.dependency_stack else None

    def enclosing_dependency(self) -> Optional[Dependency]:
        """The dependency one frame above the innermost one, or None."""
        return self.dependency_stack[-2] if len(self.dependency_stack) > 1 else None

    def get_dependency_stack(self) -> Tuple[Dependency, ...]:
        """Immutable snapshot of the pending dependency chain, outermost first."""
        return tuple(self.dependency_stack)

    def render_chain(self) -> Tuple[str, ...]:
        return render_dependency_chain(self.dependency_stack)

    @contextmanager
    def frame(self, dependency: Dependency) -> Iterator[Dependency]:
        """Push ``dependency`` for the duration of the block, popping it on every exit path.

        Example:
            >>> with context.frame(dependency):
            ...     value = factory.get(context, dependency)
        """
        self.push_dependency(dependency)
        try:
            yield dependency
        finally:
            self.pop_dependency()

    def defer_after_injection(self, instance: Any, dependency: Dependency, listeners: Tuple[Any, ...]) -> None:
        self.pending_after_injection.append((instance, dependency, listeners))

    def drain_after_injection(self) -> List[Tuple[Any, Dependency, Tuple[Any, ...]]]:
        pending = self.pending_after_injection
        self.pending_after_injection = []
        return pending
