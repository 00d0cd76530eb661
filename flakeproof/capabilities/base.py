"""
Capability interfaces consumed by test bodies.

Test bodies talk to the system under test only through these interfaces,
so the orchestrator can hand every attempt a fresh set of resources and
tests can substitute fakes.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import TimeoutFault


class HttpResponse(BaseModel):
    """Normalized HTTP response."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    status: int = Field(..., description="HTTP status code")
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = Field(None, description="Decoded JSON, or text for other content types")
    duration_ms: float = Field(..., ge=0)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400


class CancellationToken:
    """Per-attempt cancellation signal that test bodies are expected to observe."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise TimeoutFault once the attempt has been cancelled."""
        if self.cancelled:
            raise TimeoutFault(f"Attempt cancelled: {self.reason}")


class HttpCapability(ABC):
    """HTTP access for network-mode test bodies."""

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        fail_on_status_code: bool = True,
    ) -> HttpResponse:
        """Send a request and return the normalized response."""


class InteractiveCapability(ABC):
    """Browser access for interactive-mode test bodies."""

    @abstractmethod
    async def visit(self, url: str) -> None:
        """Navigate the page to url."""

    @abstractmethod
    async def locate(self, selector: str) -> Any:
        """Return a handle to the first match, raising ElementNotFoundError if none."""

    @abstractmethod
    async def locate_all(self, selector: str) -> List[Any]:
        """Return handles for every match, possibly none."""

    @abstractmethod
    async def act(self, element: Any, action: str, value: Optional[str] = None) -> None:
        """Perform a user action on an element."""

    @abstractmethod
    async def screenshot(self, path: Path) -> Path:
        """Write a screenshot of the current page to path."""

    @abstractmethod
    async def video_path(self) -> Optional[Path]:
        """Path the page video is being recorded to, if recording."""

    @abstractmethod
    async def close(self) -> None:
        """Release the browser context."""
