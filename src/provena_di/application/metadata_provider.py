import inspect
import threading
import types
from typing import Annotated, Any, Callable, Dict, List, Optional, Tuple, Type, Union, get_args, get_origin, get_type_hints

from provena_di.application.errors import Errors
from provena_di.domain import (
    IMetadataProvider,
    Inject,
    InjectionPoint,
    Key,
    Member,
    Named,
    Requirement,
)
from provena_di.domain.annotations import INJECT_ATTRIBUTE
from provena_di.domain.models import type_name

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def parse_hint(hint: Any) -> Tuple[Requirement, Optional[Inject]]:
    """Split a type hint into its requirement and optional ``Inject`` marker.

    ``Annotated[T, Named("x")]`` qualifies the key, ``Optional[T]`` (or ``T | None``)
    makes it nullable, and an ``Inject`` marker in the metadata is returned alongside.
    """
    qualifier = None
    marker = None
    if get_origin(hint) is Annotated:
        hint, *metadata = get_args(hint)
        for item in metadata:
            if isinstance(item, Named):
                qualifier = item.value
            elif isinstance(item, Inject):
                marker = item

    nullable = False
    if get_origin(hint) in (Union, types.UnionType):
        arguments = get_args(hint)
        non_none = [argument for argument in arguments if argument is not type(None)]
        if len(non_none) == 1 and len(arguments) == 2:
            hint = non_none[0]
            nullable = True

    return Requirement(key=Key.get(hint, qualifier), nullable=nullable), marker


class TypeHintMetadataProvider(IMetadataProvider):
    """Discovers injection points from constructor signatures, type hints and markers.

    - Constructor: every parameter of ``__init__`` except ``self``, ``*args``,
      ``**kwargs`` and parameters with default values. Each needs a type hint.
    - Fields: class annotations carrying ``Inject()`` in ``Annotated`` metadata.
    - Methods: functions decorated with ``@inject``.

    Results are cached per type for the lifetime of the provider.

    Example:
        >>> class UserService:
        ...     audit: Annotated[AuditLog, Inject(optional=True)]
        ...
        ...     def __init__(self, db: DatabaseConnection, url: Annotated[str, Named("db.url")]):
        ...         ...
        >>>
        >>> provider = TypeHintMetadataProvider()
        >>> [d.key for d in provider.constructor_injection_point(UserService).dependencies]
        [Key[DatabaseConnection], Key[str, qualifier='db.url']]
    """

    def __init__(self) -> None:
        self._constructors: Dict[Type, InjectionPoint] = {}
        self._instance_members: Dict[Type, List[InjectionPoint]] = {}
        self._static_members: Dict[Type, List[InjectionPoint]] = {}
        self._lock = threading.RLock()

    def constructor_injection_point(self, target_type: Type) -> InjectionPoint:
        return self._cached(self._constructors, target_type, self._build_constructor)

    def instance_injection_points(self, target_type: Type) -> List[InjectionPoint]:
        return list(self._cached(self._instance_members, target_type, lambda t: self._build_members(t, False)))

    def static_injection_points(self, target_type: Type) -> List[InjectionPoint]:
        return list(self._cached(self._static_members, target_type, lambda t: self._build_members(t, True)))

    def _cached(self, cache: Dict[Type, Any], target_type: Type, build: Callable[[Type], Any]) -> Any:
        if target_type in cache:
            return cache[target_type]
        with self._lock:
            if target_type not in cache:
                cache[target_type] = build(target_type)
            return cache[target_type]

    def _build_constructor(self, target_type: Type) -> InjectionPoint:
        errors = Errors()
        if not inspect.isclass(target_type):
            errors.add(f"{type_name(target_type)} is not a class and has no constructor.")
            errors.throw_configuration_error_if_errors_exist()

        initializer = target_type.__init__
        if initializer is object.__init__:
            return InjectionPoint(member=Member.constructor_of(target_type))

        requirements, names = self._parameters(initializer, f"{type_name(target_type)}.__init__()", errors)
        errors.throw_configuration_error_if_errors_exist()
        return InjectionPoint(
            member=Member.constructor_of(target_type, names),
            requirements=tuple(requirements),
        )

    def _parameters(
        self,
        func: Callable[..., Any],
        where: str,
        errors: Errors,
        bound: bool = True,
    ) -> Tuple[List[Requirement], Tuple[str, ...]]:
        """Requirements and parameter names of ``func``, skipping its first parameter when ``bound``."""
        try:
            signature = inspect.signature(func)
            hints = get_type_hints(func, include_extras=True)
        except (NameError, TypeError, ValueError) as e:
            errors.add(f"Cannot read the signature of {where}: {e}", cause=e)
            return [], ()

        parameters = list(signature.parameters.values())
        if bound and parameters:
            parameters = parameters[1:]

        requirements: List[Requirement] = []
        names: List[str] = []
        positional_only = False
        for parameter in parameters:
            if parameter.kind in _SKIPPED_KINDS:
                continue
            if parameter.default is not inspect.Parameter.empty:
                continue
            if parameter.name not in hints:
                errors.add(f"Parameter '{parameter.name}' of {where} lacks a type hint and has no default value.")
                continue
            requirement, _ = parse_hint(hints[parameter.name])
            requirements.append(requirement)
            names.append(parameter.name)
            positional_only = positional_only or parameter.kind == inspect.Parameter.POSITIONAL_ONLY

        # Positional-only parameters cannot be passed by name.
        return requirements, () if positional_only else tuple(names)

    def _build_members(self, target_type: Type, static: bool) -> List[InjectionPoint]:
        errors = Errors()
        hierarchy = [klass for klass in reversed(inspect.getmro(target_type)) if klass is not object]

        fields: List[InjectionPoint] = []
        for klass in hierarchy:
            fields.extend(self._fields_of(klass, static, errors))

        methods: List[InjectionPoint] = []
        for klass in hierarchy:
            methods.extend(self._methods_of(target_type, klass, static, errors))

        errors.throw_configuration_error_if_errors_exist()
        return fields + methods

    def _fields_of(self, klass: Type, static: bool, errors: Errors) -> List[InjectionPoint]:
        own = inspect.get_annotations(klass)
        if not own:
            return []
        try:
            hints = get_type_hints(klass, include_extras=True)
        except (NameError, TypeError) as e:
            errors.add(f"Cannot resolve the annotations of {type_name(klass)}: {e}", cause=e)
            return []

        points = []
        for name in own:
            requirement, marker = parse_hint(hints.get(name))
            if marker is None or marker.static != static:
                continue
            points.append(
                InjectionPoint(
                    member=Member.field_of(klass, name, is_static=static),
                    optional=marker.optional,
                    requirements=(requirement,),
                )
            )
        return points

    def _methods_of(self, target_type: Type, klass: Type, static: bool, errors: Errors) -> List[InjectionPoint]:
        points = []
        for name, attribute in vars(klass).items():
            is_static = isinstance(attribute, (staticmethod, classmethod))
            func = attribute.__func__ if is_static else attribute
            marker = getattr(func, INJECT_ATTRIBUTE, None) if callable(func) else None
            if marker is None or is_static != static:
                continue

            # Overridden methods are injected once, through the most derived definition.
            owner = next(k for k in inspect.getmro(target_type) if name in vars(k))
            if owner is not klass:
                continue

            method_errors = Errors()
            requirements, names = self._parameters(
                func,
                f"{type_name(klass)}.{name}()",
                method_errors,
                bound=not isinstance(attribute, staticmethod),
            )
            if method_errors.has_errors():
                if not marker.optional:
                    for message in method_errors.messages:
                        errors.add(message.message, message.sources, message.cause)
                continue

            points.append(
                InjectionPoint(
                    member=Member.method_of(klass, name, names, is_static=is_static),
                    optional=marker.optional,
                    requirements=tuple(requirements),
                )
            )
        return points
