from typing import Any, Callable, Type, TypeVar, Union

from fastapi import FastAPI, Request

from provena_di.domain import IInjector, Key

T = TypeVar("T")

STATE_ATTRIBUTE = "injector"


def install_injector(app: FastAPI, injector: IInjector) -> None:
    """Attach an injector to a FastAPI application.

    The injector is stored on ``app.state`` so that ``injected()`` dependencies
    resolve from the application serving the request. Several applications
    with separate injectors can coexist in one process.

    Args:
        app: The FastAPI application.
        injector: The injector serving the application's endpoints.

    Example:
        >>> app = FastAPI()
        >>> install_injector(app, Injector(declarations))
    """
    setattr(app.state, STATE_ATTRIBUTE, injector)


def create_fastapi_dependency(injector: IInjector, key: Union[Key, Type[T]]) -> Callable[[], T]:
    """Create a FastAPI Depends() callable that resolves from a given injector.

    Every call performs a top-level resolution, so the instance follows the
    scope of the key's binding (a new instance per call when unscoped, the
    shared instance for singletons).

    Args:
        injector: The injector to resolve from.
        key: The key, or class, to resolve when the dependency is called.

    Returns:
        A callable that FastAPI can use with Depends().

    Example:
        >>> get_user_repo = create_fastapi_dependency(injector, UserRepository)
        >>>
        >>> @app.get("/users")
        >>> async def list_users(repo: UserRepository = Depends(get_user_repo)):
        ...     return await repo.get_all()
    """

    def dependency() -> T:
        """Resolve the key from the injector."""
        return injector.get_instance(key)

    return dependency


def injected(key: Union[Key, Type[T]]) -> Callable[[Request], T]:
    """Create a FastAPI dependency resolving ``key`` from the application's injector.

    Requires ``install_injector()`` to have been called on the application.

    Args:
        key: The key, or class, to resolve.

    Returns:
        A callable that resolves from the injector of the request's application.

    Example:
        >>> @app.get("/process")
        >>> async def process(service: ReportService = Depends(injected(ReportService))):
        ...     return service.render()
    """

    def injected_dependency(request: Request) -> Any:
        """Resolve from the injector installed on the request's application."""
        injector = getattr(request.app.state, STATE_ATTRIBUTE, None)
        if injector is None:
            raise RuntimeError("Application has no injector. Did you forget to call install_injector()?")
        return injector.get_instance(key)

    return injected_dependency
