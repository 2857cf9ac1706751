"""Application layer - Dependency graph validation."""

from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional, Set, Tuple

import structlog

from provena_di.application.errors import Errors
from provena_di.domain import (
    Binding,
    BindingKind,
    ConfigurationError,
    Dependency,
    InjectionPoint,
    Key,
    is_proxyable,
    render_dependency_chain,
)

if TYPE_CHECKING:
    from provena_di.application.injector import Injector

logger = structlog.get_logger(__name__)


class _NodeState(Enum):
    CONSTRUCTING = "constructing"
    INJECTING = "injecting"


class _Walk:
    """Mutable state of one validation walk."""

    def __init__(self, errors: Errors) -> None:
        self.errors = errors
        self.path: List[Dependency] = []
        self.states: Dict[type, _NodeState] = {}
        self.walked: Set[Tuple[type, FrozenSet[Tuple[type, _NodeState]]]] = set()
        self.reported: Set[object] = set()

    def in_progress(self) -> FrozenSet[Tuple[type, _NodeState]]:
        return frozenset(self.states.items())

    def chain(self) -> Tuple[str, ...]:
        return render_dependency_chain(self.path)


class GraphValidator:
    """Walks the dependency graph of a key before anything is instantiated.

    Mirrors the runtime behaviour of constructor injection: a type whose
    constructor arguments are being resolved is CONSTRUCTING, and reaching it
    again is only legal through an interface-backed key that can be proxied.
    Once its constructor is done the type is INJECTING and may be reached
    freely through its members. Reaching a type that is in neither state walks
    it, and the walk is only skipped when the same type was already walked
    with the same types in progress. Missing bindings are reported too, except
    for optional injection points. Provider objects are opaque and not walked.

    Example:
        >>> errors = Errors()
        >>> GraphValidator(injector).validate(Key.get(ServiceA), errors)
        >>> errors.throw_configuration_error_if_errors_exist()
    """

    def __init__(self, injector: "Injector") -> None:
        self._injector = injector

    def validate(self, key: Key, errors: Errors) -> None:
        """Record every problem reachable from ``key`` into ``errors``."""
        walk = _Walk(errors)
        self._visit(Dependency.get(key), walk)
        logger.debug("Validated dependency graph", key=str(key), walks=len(walk.walked), errors=len(errors))

    def _visit(self, dependency: Dependency, walk: _Walk) -> None:
        walk.path.append(dependency)
        try:
            binding = self._binding(dependency.key, walk)
            if binding is not None:
                self._follow(binding, dependency, walk)
        finally:
            walk.path.pop()

    def _binding(self, key: Key, walk: _Walk) -> Optional[Binding]:
        try:
            return self._injector.get_binding_or_raise(key, walk.chain())
        except ConfigurationError as e:
            # Each missing key is reported once, with the first chain that reached it.
            if key not in walk.reported:
                walk.reported.add(key)
                walk.errors.merge(e)
            return None

    def _follow(self, binding: Binding, dependency: Dependency, walk: _Walk) -> None:
        # Linked and provider keys resolve their target with the same dependency, without a frame of their own.
        seen = set()
        while binding.kind in (BindingKind.LINKED_KEY, BindingKind.PROVIDER_KEY):
            if binding.key in seen:
                if ("loop", binding.key) not in walk.reported:
                    walk.reported.add(("loop", binding.key))
                    walk.errors.add(f"Linked bindings form a loop through {binding.key}.", walk.chain())
                return
            seen.add(binding.key)
            binding = self._binding(binding.target, walk)
            if binding is None:
                return

        if binding.kind != BindingKind.CONSTRUCTOR:
            return

        constructor: InjectionPoint = binding.target
        node = constructor.declaring_type
        state = walk.states.get(node)
        if state == _NodeState.CONSTRUCTING:
            expected_type = dependency.key.dependency_type
            if not (self._injector.settings.circular_proxies_enabled and is_proxyable(expected_type)):
                if ("cycle", node, dependency.key) not in walk.reported:
                    walk.reported.add(("cycle", node, dependency.key))
                    chain = self._cycle(node, walk.path)
                    walk.errors.circular_dependency(chain, expected_type, walk.chain())
            return
        if state == _NodeState.INJECTING:
            return

        memo = (node, walk.in_progress())
        if memo in walk.walked:
            return
        walk.walked.add(memo)

        walk.states[node] = _NodeState.CONSTRUCTING
        try:
            for parameter in constructor.dependencies:
                self._visit(parameter, walk)

            walk.states[node] = _NodeState.INJECTING
            try:
                members = self._injector.members_injector_for(node).injection_points
            except ConfigurationError as e:
                if ("members", node) not in walk.reported:
                    walk.reported.add(("members", node))
                    walk.errors.merge(e, walk.chain())
                members = []
            for injection_point in members:
                for member_dependency in injection_point.dependencies:
                    self._visit(member_dependency, walk)
        finally:
            del walk.states[node]

    def _cycle(self, node: type, path: List[Dependency]) -> List[Key]:
        """Keys from the first request that reached ``node`` up to the re-entrant one."""
        keys = [dependency.key for dependency in path]
        for index, dependency in enumerate(path):
            binding = self._injector.existing_binding(dependency.key)
            if binding is not None and self._constructs(binding, node):
                return keys[index:]
        return keys

    def _constructs(self, binding: Binding, node: type) -> bool:
        seen = set()
        while binding is not None and binding.kind in (BindingKind.LINKED_KEY, BindingKind.PROVIDER_KEY):
            if binding.key in seen:
                return False
            seen.add(binding.key)
            binding = self._injector.existing_binding(binding.target)
        return binding is not None and binding.kind == BindingKind.CONSTRUCTOR and binding.target.declaring_type is node
