from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

if TYPE_CHECKING:
    from provena_di.domain.models import ErrorMessage, Key


def format_messages(heading: str, messages: Sequence["ErrorMessage"]) -> str:
    """Render error messages as a numbered report.

    Args:
        heading: First line of the report.
        messages: Messages to render, each followed by its dependency chain.

    Returns:
        The report text.
    """
    lines = [f"{heading}:", ""]
    for index, message in enumerate(messages, start=1):
        lines.append(f"{index}) {message.message}")
        lines.extend(f"  {source}" for source in message.sources)
        lines.append("")
    count = len(messages)
    lines.append(f"{count} error{'s' if count != 1 else ''}")
    return "\n".join(lines)


class DIException(Exception):
    """Base exception for DI-related errors."""


class ConfigurationError(DIException):
    """Raised when bindings are missing, malformed or form an unsupported cycle.

    Build-time problems are collected and reported together.

    Attributes:
        messages: Every collected error message with its dependency chain.
    """

    heading = "Configuration errors"

    def __init__(self, messages: Iterable["ErrorMessage"]) -> None:
        self.messages: List["ErrorMessage"] = list(messages)
        super().__init__(format_messages(self.heading, self.messages))


class CircularDependencyError(ConfigurationError):
    """Raised when a constructor cycle cannot be broken with a placeholder.

    Attributes:
        dependency_chain: Keys involved in the cycle, the re-entered key last.
    """

    def __init__(self, dependency_chain: Sequence["Key"], messages: Iterable["ErrorMessage"]) -> None:
        self.dependency_chain = list(dependency_chain)
        super().__init__(messages)


class ConstantConversionError(ConfigurationError):
    """Raised when a qualified string constant cannot be converted to the requested type."""


class ResolutionError(DIException):
    """Raised when a constructor, provider or listener failed while building an instance.

    The original exception is chained as ``__cause__``.

    Attributes:
        messages: Error messages with the dependency chain that led to the failure.
    """

    heading = "Resolution errors"

    def __init__(self, messages: Iterable["ErrorMessage"]) -> None:
        self.messages: List["ErrorMessage"] = list(messages)
        super().__init__(format_messages(self.heading, self.messages))

    @property
    def cause(self) -> Optional[BaseException]:
        """First underlying exception recorded in the messages."""
        for message in self.messages:
            if message.cause is not None:
                return message.cause
        return None
