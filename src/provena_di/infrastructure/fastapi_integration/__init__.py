"""
FastAPI integration module.

Provides helpers for resolving provena-di keys from FastAPI endpoints.
"""

from .integration import create_fastapi_dependency, injected, install_injector

__all__ = [
    "install_injector",
    "create_fastapi_dependency",
    "injected",
]
