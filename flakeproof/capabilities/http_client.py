"""
HTTP capability backed by aiohttp.

Each attempt gets its own client session so cookies and connection state
never leak from one attempt into the next.
"""

import time
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import aiohttp

from ..core.exceptions import HttpStatusError, TestFault
from ..core.logging_config import get_logger
from .base import HttpCapability, HttpResponse


class HttpClient(HttpCapability):
    """Thin request wrapper returning HttpResponse objects."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: Optional[str] = None,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        self.session = session
        self.base_url = base_url
        self.default_headers = default_headers or {}
        self.logger = get_logger(__name__)

    def resolve(self, url: str) -> str:
        """Resolve a relative URL against the base URL."""
        if url.startswith(("http://", "https://")) or not self.base_url:
            return url
        return urljoin(self.base_url + "/", url.lstrip("/"))

    async def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        fail_on_status_code: bool = True,
    ) -> HttpResponse:
        """
        Send an HTTP request.

        Args:
            method: HTTP method
            url: Absolute URL or a path relative to the base URL
            body: dict/list bodies are sent as JSON, str/bytes as-is
            headers: Extra request headers
            fail_on_status_code: Raise HttpStatusError for 4xx/5xx responses

        Returns:
            The normalized response
        """
        method = method.upper()
        full_url = self.resolve(url)
        request_headers = {**self.default_headers, **(headers or {})}

        kwargs: Dict[str, Any] = {"headers": request_headers}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["data"] = body

        start_time = time.perf_counter()
        try:
            async with self.session.request(method, full_url, **kwargs) as resp:
                if resp.content_type == "application/json":
                    payload = await resp.json()
                else:
                    payload = await resp.text()
                duration_ms = (time.perf_counter() - start_time) * 1000
                response = HttpResponse(
                    status=resp.status,
                    headers={k.lower(): v for k, v in resp.headers.items()},
                    body=payload,
                    duration_ms=duration_ms,
                )
        except aiohttp.ClientError as e:
            raise TestFault(f"{method} {full_url} failed: {e}") from e

        self.logger.debug(
            f"HTTP {method} {full_url} -> {response.status} in {response.duration_ms:.0f}ms",
            extra={
                "metadata": {
                    "method": method,
                    "url": full_url,
                    "status": response.status,
                    "duration_ms": response.duration_ms,
                }
            },
        )

        if fail_on_status_code and not response.ok:
            raise HttpStatusError(response.status, method, full_url)

        return response

    async def get(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, body: Any = None, **kwargs) -> HttpResponse:
        return await self.request("POST", url, body=body, **kwargs)

    async def put(self, url: str, body: Any = None, **kwargs) -> HttpResponse:
        return await self.request("PUT", url, body=body, **kwargs)

    async def patch(self, url: str, body: Any = None, **kwargs) -> HttpResponse:
        return await self.request("PATCH", url, body=body, **kwargs)

    async def delete(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("DELETE", url, **kwargs)
