"""
Protocol definitions for the collaborators the resilience core consumes.
"""

from typing import Any, Dict, Optional, Protocol
from abc import abstractmethod

from .failure_models import ErrorReport


class ReportSink(Protocol):
    """Remote endpoint accepting JSON-serializable reports."""

    @abstractmethod
    async def send(self, payload: Dict[str, Any]) -> bool:
        """Deliver one payload. Returns True when the sink acknowledged it."""
        ...


class KeyValueStore(Protocol):
    """Durable local store used to survive process restarts."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored JSON value or None."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key if present."""
        ...


class ConsentPrompt(Protocol):
    """UI collaborator asking the user whether to send a report."""

    @abstractmethod
    async def request_consent(self, report: ErrorReport) -> bool:
        ...
