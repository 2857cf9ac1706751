"""
Application layer - Binding construction and resolution.

This layer contains the injector, the internal factories behind each binding
kind, scopes, metadata discovery and graph validation.
It depends only on the Domain layer.
"""

from .construction import DefaultConstructionProxyFactory, ReflectionConstructionProxy
from .converters import DEFAULT_CONVERTERS
from .errors import Errors
from .graph_validator import GraphValidator
from .injector import Injector
from .metadata_provider import TypeHintMetadataProvider
from .scopes import NoScope, Scopes, SingletonScope

__all__ = [
    "Injector",
    "Errors",
    "GraphValidator",
    "TypeHintMetadataProvider",
    "DefaultConstructionProxyFactory",
    "ReflectionConstructionProxy",
    "DEFAULT_CONVERTERS",
    "Scopes",
    "NoScope",
    "SingletonScope",
]
