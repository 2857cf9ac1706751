"""Application layer - Instantiation of classes from resolved constructor arguments."""

from typing import Any, Sequence

from provena_di.domain import IConstructionProxy, IConstructionProxyFactory, InjectionPoint


class ReflectionConstructionProxy(IConstructionProxy):
    """Calls the class of a constructor injection point.

    Arguments are passed by parameter name when the names are known, so
    keyword-only constructor parameters are supported.
    """

    def __init__(self, injection_point: InjectionPoint) -> None:
        self._injection_point = injection_point

    @property
    def injection_point(self) -> InjectionPoint:
        return self._injection_point

    def new_instance(self, arguments: Sequence[Any]) -> Any:
        member = self._injection_point.member
        target_type = member.declaring_type
        if member.parameter_names and len(member.parameter_names) == len(arguments):
            return target_type(**dict(zip(member.parameter_names, arguments)))
        return target_type(*arguments)

    def __repr__(self) -> str:
        return f"ReflectionConstructionProxy({self._injection_point})"


class DefaultConstructionProxyFactory(IConstructionProxyFactory):
    """Creates a ``ReflectionConstructionProxy`` for every constructor."""

    def get(self, injection_point: InjectionPoint) -> IConstructionProxy:
        return ReflectionConstructionProxy(injection_point)
