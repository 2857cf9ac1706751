import inspect
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from provena_di.domain.enums import BindingKind, MemberKind, ScopingKind

if TYPE_CHECKING:
    from provena_di.domain.interfaces import IDependencyListener, IInternalFactory, IMatcher, IScope

UNKNOWN_SOURCE = "[unknown source]"
_INTERNAL_MODULES = ("provena_di.", "pydantic.")


def type_name(dependency_type: Any) -> str:
    """Readable name of a class or typing construct."""
    if isinstance(dependency_type, type):
        return dependency_type.__qualname__
    return repr(dependency_type).replace("typing.", "")


def caller_source() -> str:
    """Return ``file:line`` of the first frame outside this package."""
    frame = inspect.currentframe()
    try:
        while frame is not None and frame.f_globals.get("__name__", "").startswith(_INTERNAL_MODULES):
            frame = frame.f_back
        if frame is None:
            return UNKNOWN_SOURCE
        return f"{frame.f_code.co_filename}:{frame.f_lineno}"
    finally:
        del frame


class Key(BaseModel):
    """Identity of a requested value.

    Two keys are equal when both their type and qualifier are equal.

    Attributes:
        dependency_type: The requested class or typing construct.
        qualifier: Optional name distinguishing bindings of the same type.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    dependency_type: Any = Field(..., description="The type identified by this key.")
    qualifier: Optional[str] = Field(default=None, description="Optional qualifier for the type.")

    @classmethod
    def get(cls, dependency_type: Any, qualifier: Optional[str] = None) -> "Key":
        """Create a key for ``dependency_type``, optionally qualified.

        Example:
            >>> Key.get(int, "port") == Key.get(int, "port")
            True
        """
        return cls(dependency_type=dependency_type, qualifier=qualifier)

    @classmethod
    def of(cls, key_or_type: Union["Key", Any]) -> "Key":
        """Return ``key_or_type`` unchanged if it is a key, else an unqualified key for it."""
        if isinstance(key_or_type, Key):
            return key_or_type
        return cls.get(key_or_type)

    def with_type(self, dependency_type: Any) -> "Key":
        """Key with the same qualifier and a different type."""
        return Key.get(dependency_type, self.qualifier)

    def __lt__(self, other: "Key") -> bool:
        return str(self) < str(other)

    def __str__(self) -> str:
        if self.qualifier is None:
            return f"Key[{type_name(self.dependency_type)}]"
        return f"Key[{type_name(self.dependency_type)}, qualifier={self.qualifier!r}]"


class Member(BaseModel):
    """A constructor, field or method on a target type.

    Equality ignores ``parameter_names``.

    Attributes:
        declaring_type: The class declaring the member.
        name: Attribute name (``__init__`` for constructors).
        kind: Constructor, field or method.
        is_static: True for class-level fields and static/class methods.
        parameter_names: Ordered parameter names for constructors and methods.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    declaring_type: Any
    name: str
    kind: MemberKind
    is_static: bool = False
    parameter_names: Tuple[str, ...] = ()

    @classmethod
    def constructor_of(cls, declaring_type: Type, parameter_names: Tuple[str, ...] = ()) -> "Member":
        return cls(
            declaring_type=declaring_type,
            name="__init__",
            kind=MemberKind.CONSTRUCTOR,
            parameter_names=parameter_names,
        )

    @classmethod
    def field_of(cls, declaring_type: Type, name: str, is_static: bool = False) -> "Member":
        return cls(declaring_type=declaring_type, name=name, kind=MemberKind.FIELD, is_static=is_static)

    @classmethod
    def method_of(
        cls,
        declaring_type: Type,
        name: str,
        parameter_names: Tuple[str, ...] = (),
        is_static: bool = False,
    ) -> "Member":
        return cls(
            declaring_type=declaring_type,
            name=name,
            kind=MemberKind.METHOD,
            is_static=is_static,
            parameter_names=parameter_names,
        )

    def _identity(self) -> Tuple[Any, ...]:
        return (self.declaring_type, self.name, self.kind, self.is_static)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Member) and self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __str__(self) -> str:
        owner = type_name(self.declaring_type)
        if self.kind == MemberKind.FIELD:
            return f"{owner}.{self.name}"
        return f"{owner}.{self.name}()"


class Requirement(BaseModel):
    """One required key of an injection point, before it is bound to a position."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: Key
    nullable: bool = False


class InjectionPoint(BaseModel):
    """Metadata for one injectable constructor, field or method.

    Built once per target type and member. The dependencies are created from the
    requirements and reference this injection point; fields have a single
    dependency at position -1, constructors and methods one per parameter.

    Attributes:
        member: The injected member.
        optional: Skip the injection when a required binding is missing.
        requirements: Ordered keys needed by the member.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    member: Member
    optional: bool = False
    requirements: Tuple[Requirement, ...] = ()

    _dependencies: Tuple["Dependency", ...] = PrivateAttr(default=())

    def model_post_init(self, __context: Any) -> None:
        is_field = self.member.kind == MemberKind.FIELD
        self._dependencies = tuple(
            Dependency(
                key=requirement.key,
                nullable=requirement.nullable,
                injection_point=self,
                position=-1 if is_field else index,
            )
            for index, requirement in enumerate(self.requirements)
        )

    @property
    def dependencies(self) -> Tuple["Dependency", ...]:
        """Dependencies of this injection point, in parameter order."""
        return self._dependencies

    @property
    def declaring_type(self) -> Any:
        return self.member.declaring_type

    def __eq__(self, other: object) -> bool:
        return isinstance(other, InjectionPoint) and self.member == other.member

    def __hash__(self) -> int:
        return hash(self.member)

    def __str__(self) -> str:
        return str(self.member)


class Dependency(BaseModel):
    """A resolvable request with its provenance.

    Attributes:
        key: The key sought.
        nullable: Whether ``None`` is an acceptable value.
        injection_point: The originating injection point, or None for direct requests.
        position: Parameter index, or -1 for fields and direct requests.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: Key
    nullable: bool = False
    injection_point: Optional[InjectionPoint] = None
    position: int = -1

    @classmethod
    def get(cls, key: Key) -> "Dependency":
        """Dependency for a key requested directly from an injector."""
        return cls(key=key, nullable=True, injection_point=None, position=-1)

    @property
    def parameter_index(self) -> int:
        return self.position

    def __str__(self) -> str:
        if self.injection_point is None:
            return str(self.key)
        if self.position == -1:
            return f"{self.key}@{self.injection_point}"
        return f"{self.key}@{self.injection_point}[{self.position}]"


class ErrorMessage(BaseModel):
    """One configuration or resolution problem.

    Attributes:
        message: Description of the problem.
        sources: Rendered dependency chain, innermost request first.
        cause: Exception that triggered the problem, if any.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    message: str
    sources: Tuple[str, ...] = ()
    cause: Optional[BaseException] = None


class Scoping(BaseModel):
    """Scope policy attached to a binding.

    Attributes:
        kind: Unscoped, singleton, eager singleton or custom.
        scope: The user scope for ``ScopingKind.CUSTOM``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ScopingKind = ScopingKind.UNSCOPED
    scope: Optional[Any] = None

    @classmethod
    def unscoped(cls) -> "Scoping":
        return cls(kind=ScopingKind.UNSCOPED)

    @classmethod
    def singleton(cls) -> "Scoping":
        return cls(kind=ScopingKind.SINGLETON)

    @classmethod
    def eager_singleton(cls) -> "Scoping":
        return cls(kind=ScopingKind.EAGER_SINGLETON)

    @classmethod
    def custom(cls, scope: "IScope") -> "Scoping":
        return cls(kind=ScopingKind.CUSTOM, scope=scope)

    @property
    def is_singleton(self) -> bool:
        return self.kind in (ScopingKind.SINGLETON, ScopingKind.EAGER_SINGLETON)

    @property
    def is_eager(self) -> bool:
        return self.kind == ScopingKind.EAGER_SINGLETON

    def __str__(self) -> str:
        if self.kind == ScopingKind.CUSTOM:
            return f"custom({self.scope})"
        return str(self.kind)


class Binding(BaseModel):
    """A key mapped to its scoped construction strategy.

    ``target`` depends on ``kind``: the instance, the provider object, the
    provider key, the linked key, the constructor injection point, the constant
    value, or the provided key of a ``Provider[T]`` binding.

    Attributes:
        key: The bound key.
        kind: The construction strategy tag.
        factory: Scoped internal factory producing values for the key.
        scoping: The scope policy.
        source: Where the binding was declared.
        target: Kind-specific target of the binding.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: Key
    kind: BindingKind
    factory: Any = Field(..., description="IInternalFactory producing the bound value.")
    scoping: Scoping = Field(default_factory=Scoping.unscoped)
    source: str = UNKNOWN_SOURCE
    target: Any = None

    def __str__(self) -> str:
        return f"Binding[{self.key}, kind={self.kind}, scope={self.scoping}, source={self.source}]"


class BindingDeclaration(BaseModel):
    """A binding as produced by a configuration layer, before the injector builds it.

    Use the class methods to declare bindings; each records the caller's
    ``file:line`` as its source.

    Example:
        >>> declarations = [
        ...     BindingDeclaration.to_key(Repository, SqlRepository),
        ...     BindingDeclaration.to_constructor(SqlRepository, scoping=Scoping.singleton()),
        ...     BindingDeclaration.constant("db.url", "sqlite://"),
        ... ]
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: Key
    kind: BindingKind
    target: Any = None
    scoping: Scoping = Field(default_factory=Scoping.unscoped)
    source: str = UNKNOWN_SOURCE

    @classmethod
    def to_instance(cls, key: Union[Key, Any], instance: Any) -> "BindingDeclaration":
        return cls(key=Key.of(key), kind=BindingKind.INSTANCE, target=instance, source=caller_source())

    @classmethod
    def to_provider(
        cls,
        key: Union[Key, Any],
        provider: Union[Any, Callable[[], Any]],
        scoping: Optional[Scoping] = None,
    ) -> "BindingDeclaration":
        """Bind to an object with a ``get()`` method, or to a zero-argument callable."""
        return cls(
            key=Key.of(key),
            kind=BindingKind.PROVIDER_INSTANCE,
            target=provider,
            scoping=scoping or Scoping.unscoped(),
            source=caller_source(),
        )

    @classmethod
    def to_provider_key(
        cls,
        key: Union[Key, Any],
        provider_key: Union[Key, Any],
        scoping: Optional[Scoping] = None,
    ) -> "BindingDeclaration":
        """Bind to a provider that is itself resolved from the injector."""
        return cls(
            key=Key.of(key),
            kind=BindingKind.PROVIDER_KEY,
            target=Key.of(provider_key),
            scoping=scoping or Scoping.unscoped(),
            source=caller_source(),
        )

    @classmethod
    def to_key(
        cls,
        key: Union[Key, Any],
        target_key: Union[Key, Any],
        scoping: Optional[Scoping] = None,
    ) -> "BindingDeclaration":
        """Link ``key`` to ``target_key``."""
        return cls(
            key=Key.of(key),
            kind=BindingKind.LINKED_KEY,
            target=Key.of(target_key),
            scoping=scoping or Scoping.unscoped(),
            source=caller_source(),
        )

    @classmethod
    def to_constructor(
        cls,
        key: Union[Key, Any],
        scoping: Optional[Scoping] = None,
    ) -> "BindingDeclaration":
        """Bind a concrete class to its own injectable constructor."""
        key = Key.of(key)
        return cls(
            key=key,
            kind=BindingKind.CONSTRUCTOR,
            target=key.dependency_type,
            scoping=scoping or Scoping.unscoped(),
            source=caller_source(),
        )

    @classmethod
    def constant(cls, qualifier: str, value: Any) -> "BindingDeclaration":
        """Bind a qualified constant; its key type is the type of ``value``."""
        return cls(
            key=Key.get(type(value), qualifier),
            kind=BindingKind.CONSTANT,
            target=value,
            source=caller_source(),
        )


class ListenerRegistration(BaseModel):
    """A dependency listener attached to the types accepted by a matcher."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    matcher: Any = Field(..., description="IMatcher selecting the listened types.")
    listener: Any = Field(..., description="IDependencyListener to notify.")
    source: str = Field(default_factory=caller_source)

    @classmethod
    def of(cls, matcher: "IMatcher", listener: "IDependencyListener") -> "ListenerRegistration":
        return cls(matcher=matcher, listener=listener, source=caller_source())


class ConverterRegistration(BaseModel):
    """A converter from qualified string constants to the types accepted by a matcher."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    matcher: Any = Field(..., description="IMatcher selecting the target types.")
    converter: Callable[[str, Any], Any] = Field(..., description="Called with (value, target_type).")
    source: str = Field(default_factory=caller_source)

    @classmethod
    def of(cls, matcher: "IMatcher", converter: Callable[[str, Any], Any]) -> "ConverterRegistration":
        return cls(matcher=matcher, converter=converter, source=caller_source())


InjectionPoint.model_rebuild()
Dependency.model_rebuild()
