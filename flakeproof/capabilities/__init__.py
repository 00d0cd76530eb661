"""
Capabilities consumed by test bodies.

HTTP access through aiohttp, browser access through Playwright, and the
provider that opens a fresh set of both for every attempt.
"""

from .base import CancellationToken, HttpCapability, HttpResponse, InteractiveCapability
from .browser import BrowserSession, Element
from .context import TestContext
from .http_client import HttpClient
from .provider import CapabilityProvider, LiveCapabilityProvider

__all__ = [
    "CancellationToken",
    "HttpCapability",
    "HttpResponse",
    "InteractiveCapability",
    "BrowserSession",
    "Element",
    "TestContext",
    "HttpClient",
    "CapabilityProvider",
    "LiveCapabilityProvider",
]
