"""Application layer - Field and method injection with listener dispatch."""

from typing import TYPE_CHECKING, Any, List, Sequence, Tuple

from provena_di.application.factories import resolution_error
from provena_di.domain import (
    DIException,
    Dependency,
    IDependencyListener,
    InjectionPoint,
    MemberKind,
    ResolutionContext,
)

if TYPE_CHECKING:
    from provena_di.application.injector import Injector


def invoke_member(target: Any, injection_point: InjectionPoint, arguments: Sequence[Any]) -> Any:
    """Call the method behind ``injection_point`` on ``target``.

    Arguments are passed by name when the parameter names are known, so
    keyword-only parameters are supported.
    """
    member = injection_point.member
    method = getattr(target, member.name)
    if len(member.parameter_names) == len(arguments):
        return method(**dict(zip(member.parameter_names, arguments)))
    return method(*arguments)


class MembersInjector:
    """Injects the fields and methods of one type and notifies its listeners.

    Attributes:
        injection_points: Fields first, then methods, supertypes before subtypes.
        listeners: Dependency listeners whose matcher accepts the type.
    """

    def __init__(
        self,
        injector: "Injector",
        injection_points: List[InjectionPoint],
        listeners: Tuple[IDependencyListener, ...],
    ) -> None:
        self._injector = injector
        self.injection_points = injection_points
        self.listeners = listeners

    def inject_members(self, context: ResolutionContext, target: Any) -> None:
        """Inject every member of ``target``; ``target`` is a class for static injection."""
        for injection_point in self.injection_points:
            arguments = self._injector.resolve_parameters(context, injection_point.dependencies)
            if injection_point.member.kind == MemberKind.FIELD:
                setattr(target, injection_point.member.name, arguments[0])
                continue
            try:
                invoke_member(target, injection_point, arguments)
            except DIException:
                raise
            except Exception as e:
                raise resolution_error(f"Error injecting method {injection_point}, {e!r}", context, e) from e

    def inject_and_notify(self, context: ResolutionContext, instance: Any, dependency: Dependency) -> None:
        """Inject members, call ``inject_members`` listeners and defer ``after_injection`` ones."""
        self.inject_members(context, instance)
        if not self.listeners:
            return

        for listener in self.listeners:
            try:
                listener.inject_members(instance, dependency)
            except DIException:
                raise
            except Exception as e:
                raise resolution_error(f"Error notifying listener {listener!r}, {e!r}", context, e) from e
        context.defer_after_injection(instance, dependency, self.listeners)
