from enum import Enum


class Stage(str, Enum):
    """Defines the stage an injector is built for.

    Attributes:
        DEVELOPMENT: Singletons are created lazily on first use.
        PRODUCTION: Every singleton is created eagerly while the injector is built.
        TOOL: Bindings are validated but nothing is created eagerly.
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TOOL = "tool"

    def __str__(self) -> str:
        return self.value


class BindingKind(str, Enum):
    """Tags the construction strategy carried by a binding."""

    INSTANCE = "instance"
    PROVIDER_INSTANCE = "provider_instance"
    PROVIDER_KEY = "provider_key"
    LINKED_KEY = "linked_key"
    CONSTRUCTOR = "constructor"
    CONSTANT = "constant"
    CONVERTED_CONSTANT = "converted_constant"
    PROVIDER = "provider"

    def __str__(self) -> str:
        return self.value


class ScopingKind(str, Enum):
    """How a binding's raw factory is wrapped.

    Attributes:
        UNSCOPED: A new invocation per request.
        SINGLETON: One instance per injector, created lazily.
        EAGER_SINGLETON: One instance per injector, created while the injector is built.
        CUSTOM: Delegates to a user supplied scope.
    """

    UNSCOPED = "unscoped"
    SINGLETON = "singleton"
    EAGER_SINGLETON = "eager_singleton"
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


class MemberKind(str, Enum):
    """Kind of member an injection point targets."""

    CONSTRUCTOR = "constructor"
    FIELD = "field"
    METHOD = "method"

    def __str__(self) -> str:
        return self.value
