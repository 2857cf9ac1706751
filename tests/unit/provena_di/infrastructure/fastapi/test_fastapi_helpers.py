"""Unit tests for the FastAPI helpers."""

from unittest.mock import Mock

import pytest

pytest.importorskip("fastapi")

from fastapi import FastAPI

from provena_di import BindingDeclaration, Injector, Key, Scoping
from provena_di.infrastructure.fastapi_integration import create_fastapi_dependency, injected, install_injector
from provena_di.infrastructure.fastapi_integration.integration import STATE_ATTRIBUTE


class Settings:
    pass


class ReportService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings


class TestInstallInjector:
    """Test cases for install_injector."""

    def test_stores_injector_on_app_state(self):
        """Test that the injector is attached to the application state."""
        app = FastAPI()
        injector = Injector()

        install_injector(app, injector)

        assert getattr(app.state, STATE_ATTRIBUTE) is injector

    def test_replaces_previous_injector(self):
        """Test that installing again replaces the injector."""
        app = FastAPI()
        second = Injector()

        install_injector(app, Injector())
        install_injector(app, second)

        assert app.state.injector is second


class TestCreateFastAPIDependency:
    """Test cases for create_fastapi_dependency."""

    def test_returns_callable(self):
        """Test that a callable is returned."""
        assert callable(create_fastapi_dependency(Injector(), ReportService))

    def test_resolves_from_injector(self):
        """Test that calling the dependency resolves the key."""
        dependency = create_fastapi_dependency(Injector(), ReportService)

        service = dependency()

        assert isinstance(service, ReportService)
        assert isinstance(service.settings, Settings)

    def test_follows_binding_scope(self):
        """Test that unscoped keys give new instances and singletons are shared."""
        injector = Injector([BindingDeclaration.to_constructor(Settings, Scoping.singleton())])
        dependency = create_fastapi_dependency(injector, ReportService)

        first, second = dependency(), dependency()

        assert first is not second
        assert first.settings is second.settings

    def test_accepts_qualified_keys(self):
        """Test resolving a qualified key."""
        injector = Injector([BindingDeclaration.constant("title", "Quarterly")])

        assert create_fastapi_dependency(injector, Key.get(str, "title"))() == "Quarterly"

    def test_delegates_to_get_instance(self):
        """Test that the dependency calls get_instance with the key."""
        injector = Mock()
        injector.get_instance.return_value = "resolved"

        assert create_fastapi_dependency(injector, Settings)() == "resolved"
        injector.get_instance.assert_called_once_with(Settings)


class TestInjected:
    """Test cases for injected."""

    def test_resolves_from_request_application(self):
        """Test that the injector installed on the request's app is used."""
        app = FastAPI()
        install_injector(app, Injector())
        request = Mock()
        request.app = app

        service = injected(ReportService)(request)

        assert isinstance(service, ReportService)

    def test_missing_injector_raises(self):
        """Test the error raised when no injector was installed."""
        request = Mock()
        request.app = FastAPI()

        with pytest.raises(RuntimeError, match="install_injector"):
            injected(ReportService)(request)
