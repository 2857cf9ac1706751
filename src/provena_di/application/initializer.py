"""Application layer - Member injection of bound instances and providers."""

import threading
from typing import TYPE_CHECKING, Any, Dict, Tuple

import structlog

from provena_di.domain import DIException, ResolutionContext

if TYPE_CHECKING:
    from provena_di.application.errors import Errors
    from provena_di.application.injector import Injector

logger = structlog.get_logger(__name__)


class Initializer:
    """Injects the members of instances handed to the injector at build time.

    Instances are injected once. An instance requested while another one is
    still being initialized is injected on demand by ``ensure_injected``.

    Attributes:
        _pending: Instances awaiting injection, keyed by ``id()``.
    """

    def __init__(self, injector: "Injector") -> None:
        self._injector = injector
        self._pending: Dict[int, Tuple[Any, str]] = {}
        self._lock = threading.RLock()

    def request_injection(self, instance: Any, source: str) -> None:
        if instance is None or type(instance).__module__ == "builtins":
            return
        with self._lock:
            self._pending[id(instance)] = (instance, source)

    def ensure_injected(self, context: ResolutionContext, instance: Any) -> None:
        """Inject ``instance`` now if it is still pending."""
        if not self._pending:
            return
        with self._lock:
            entry = self._pending.pop(id(instance), None)
        if entry is not None:
            self._injector.members_injector_for(type(instance)).inject_members(context, instance)

    def inject_all(self, errors: "Errors") -> None:
        """Inject every pending instance, collecting failures into ``errors``."""
        with self._lock:
            pending = list(self._pending.values())

        for instance, source in pending:
            try:
                self._injector.call_in_context(lambda context: self.ensure_injected(context, instance))
            except DIException as e:
                errors.merge(e, (f"while injecting members of instance bound at {source}",))
        logger.debug("Injected bound instances", count=len(pending))
