"""
Domain layer - Core value objects and contracts of the resolution engine.

This layer contains keys, dependencies, injection points, bindings, the
resolution context and the interfaces of external collaborators.
It has no dependencies on other layers.
"""

from .annotations import Inject, Named, implemented_by, inject, provided_by, singleton
from .context import ConstructionContext, ResolutionContext, is_proxyable, render_dependency_chain
from .enums import BindingKind, MemberKind, ScopingKind, Stage
from .exceptions import (
    CircularDependencyError,
    ConfigurationError,
    ConstantConversionError,
    DIException,
    ResolutionError,
)
from .interfaces import (
    IConstructionProxy,
    IConstructionProxyFactory,
    IDependencyListener,
    IInjector,
    IInternalFactory,
    IMatcher,
    IMetadataProvider,
    IScope,
    Provider,
)
from .matchers import Matchers
from .models import (
    Binding,
    BindingDeclaration,
    ConverterRegistration,
    Dependency,
    ErrorMessage,
    InjectionPoint,
    Key,
    ListenerRegistration,
    Member,
    Requirement,
    Scoping,
)
from .settings import InjectorSettings

__all__ = [
    # Enums
    "Stage",
    "BindingKind",
    "ScopingKind",
    "MemberKind",
    # Exceptions
    "DIException",
    "ConfigurationError",
    "CircularDependencyError",
    "ConstantConversionError",
    "ResolutionError",
    # Interfaces
    "IInjector",
    "IInternalFactory",
    "IScope",
    "IConstructionProxy",
    "IConstructionProxyFactory",
    "IMetadataProvider",
    "IMatcher",
    "IDependencyListener",
    "Provider",
    # Models
    "Key",
    "Member",
    "Requirement",
    "InjectionPoint",
    "Dependency",
    "ErrorMessage",
    "Scoping",
    "Binding",
    "BindingDeclaration",
    "ListenerRegistration",
    "ConverterRegistration",
    # Context
    "ResolutionContext",
    "ConstructionContext",
    "is_proxyable",
    "render_dependency_chain",
    # Annotations
    "Inject",
    "Named",
    "inject",
    "implemented_by",
    "provided_by",
    "singleton",
    # Matchers
    "Matchers",
    # Settings
    "InjectorSettings",
]
