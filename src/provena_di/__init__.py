"""
provena-di: Type-hint based dependency injection with per-resolution dependency tracking.

Public API exports for the provena-di package.
"""

# Application exports
from provena_di.application.injector import Injector

# Domain exports
from provena_di.domain.annotations import Inject, Named, implemented_by, inject, provided_by, singleton
from provena_di.domain.enums import BindingKind, MemberKind, ScopingKind, Stage
from provena_di.domain.exceptions import (
    CircularDependencyError,
    ConfigurationError,
    ConstantConversionError,
    DIException,
    ResolutionError,
)
from provena_di.domain.interfaces import IDependencyListener, IScope, Provider
from provena_di.domain.matchers import Matchers
from provena_di.domain.models import (
    Binding,
    BindingDeclaration,
    ConverterRegistration,
    Dependency,
    InjectionPoint,
    Key,
    ListenerRegistration,
    Member,
    Scoping,
)
from provena_di.domain.settings import InjectorSettings

__version__ = "0.1.0"

__all__ = [
    # Injector
    "Injector",
    "InjectorSettings",
    # Declarations
    "BindingDeclaration",
    "Scoping",
    "ListenerRegistration",
    "ConverterRegistration",
    "Matchers",
    # Markers
    "Inject",
    "Named",
    "inject",
    "implemented_by",
    "provided_by",
    "singleton",
    # Models
    "Key",
    "Dependency",
    "InjectionPoint",
    "Member",
    "Binding",
    # Interfaces
    "Provider",
    "IDependencyListener",
    "IScope",
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
]
