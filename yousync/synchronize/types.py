"""Type hints for labels read from the source tracker."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class NamedLabel(Protocol):
    """A label model exposing its name, such as githubkit's ``Label``."""

    name: str


# Labels arrive as models, as raw REST payloads, or already reduced to names.
SourceLabel = str | dict[str, Any] | NamedLabel
