"""
Testing utilities module.

Provides helpers for building injectors with test doubles.
"""

from .utilities import create_test_injector

__all__ = [
    "create_test_injector",
]
