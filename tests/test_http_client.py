"""
Unit tests for the aiohttp-backed HTTP capability.
"""

import aiohttp
import pytest
from aioresponses import aioresponses as aioresponses_cls
from yarl import URL

from flakeproof.capabilities.http_client import HttpClient
from flakeproof.core.exceptions import HttpStatusError, TestFault

BASE_URL = "https://api.example.com"


@pytest.fixture
def mocked():
    with aioresponses_cls() as m:
        yield m


@pytest.fixture
async def client():
    async with aiohttp.ClientSession() as session:
        yield HttpClient(session, base_url=BASE_URL, default_headers={"X-Suite": "flakeproof"})


class TestHttpClient:
    """Test cases for HttpClient."""

    def test_resolve(self):
        client = HttpClient(session=None, base_url=BASE_URL)

        assert client.resolve("/posts/1") == f"{BASE_URL}/posts/1"
        assert client.resolve("posts") == f"{BASE_URL}/posts"
        assert client.resolve("https://other.example.com/x") == "https://other.example.com/x"
        assert HttpClient(session=None).resolve("/relative") == "/relative"

    async def test_json_response(self, client, mocked):
        mocked.get(f"{BASE_URL}/posts/1", status=200, payload={"id": 1, "title": "hello"})

        response = await client.get("/posts/1")

        assert response.status == 200
        assert response.ok
        assert response.body == {"id": 1, "title": "hello"}
        assert response.headers["content-type"].startswith("application/json")
        assert response.duration_ms >= 0

    async def test_text_response(self, client, mocked):
        mocked.get(f"{BASE_URL}/health", status=200, body="ok", content_type="text/plain")

        response = await client.get("/health")

        assert response.body == "ok"

    async def test_json_body_and_headers_sent(self, client, mocked):
        url = f"{BASE_URL}/posts"
        mocked.post(url, status=201, payload={"id": 101})

        response = await client.post("/posts", body={"title": "new"}, headers={"X-Trace": "1"})

        assert response.status == 201
        call = mocked.requests[("POST", URL(url))][0]
        assert call.kwargs["json"] == {"title": "new"}
        assert call.kwargs["headers"]["X-Suite"] == "flakeproof"
        assert call.kwargs["headers"]["X-Trace"] == "1"

    async def test_raw_body_sent_as_data(self, client, mocked):
        url = f"{BASE_URL}/upload"
        mocked.put(url, status=204)

        await client.put("/upload", body="raw text")

        call = mocked.requests[("PUT", URL(url))][0]
        assert call.kwargs["data"] == "raw text"

    async def test_error_status_raises(self, client, mocked):
        mocked.get(f"{BASE_URL}/posts/999999", status=404, payload={})

        with pytest.raises(HttpStatusError) as exc_info:
            await client.get("/posts/999999")

        assert exc_info.value.status == 404
        assert exc_info.value.method == "GET"

    async def test_error_status_allowed_when_not_failing_on_status(self, client, mocked):
        mocked.delete(f"{BASE_URL}/posts/1", status=500, payload={"error": "boom"})

        response = await client.delete("/posts/1", fail_on_status_code=False)

        assert response.status == 500
        assert not response.ok
        assert response.body == {"error": "boom"}

    async def test_status_error_is_a_test_fault(self, client, mocked):
        mocked.patch(f"{BASE_URL}/posts/1", status=503)

        with pytest.raises(TestFault):
            await client.patch("/posts/1", body={"title": "x"})

    async def test_connection_error_becomes_test_fault(self, client, mocked):
        mocked.get(f"{BASE_URL}/down", exception=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(TestFault, match="refused"):
            await client.get("/down")

    async def test_method_is_uppercased(self, client, mocked):
        mocked.get(f"{BASE_URL}/posts", status=200, payload=[])

        response = await client.request("get", "/posts")

        assert response.body == []
