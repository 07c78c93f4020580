from __future__ import annotations

import asyncio
import json
import sys
import time
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from vision_mcp.client import VisionClient
from vision_mcp.config import VisionConfig
from vision_mcp.errors import ApiError

API_KEY = "sk-test-0123456789abcdef"
MESSAGES = [
    {"role": "system", "content": "sys"},
    {"role": "user", "content": [{"type": "text", "text": "hi"}]},
]


def _config(**overrides) -> VisionConfig:
    base = {"api_key": API_KEY, "base_url": "https://vision.test/v1", "timeout_ms": 1500}
    base.update(overrides)
    return VisionConfig(**base)


def _completion(content) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(handler, **overrides) -> VisionClient:
    return VisionClient(_config(**overrides), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_send_posts_expected_body_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion("A red square."))

    client = _client(handler, model="vision-x", temperature=0.2, top_p=0.9, max_tokens=512)
    assert await client.send(MESSAGES) == "A red square."

    request = seen[0]
    assert str(request.url) == "https://vision.test/v1/chat/completions"
    assert request.method == "POST"
    assert request.headers["authorization"] == f"Bearer {API_KEY}"
    assert request.headers["content-type"] == "application/json"
    body = json.loads(request.content)
    assert body == {
        "model": "vision-x",
        "messages": MESSAGES,
        "temperature": 0.2,
        "top_p": 0.9,
        "max_tokens": 512,
        "stream": False,
    }


def test_completions_url_not_doubled() -> None:
    client = VisionClient(_config(base_url="https://vision.test/v1/chat/completions"))
    assert client.url == "https://vision.test/v1/chat/completions"


@pytest.mark.asyncio
async def test_timeout_names_budget_and_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ApiError) as exc:
        await _client(handler).send(MESSAGES)
    message = str(exc.value)
    assert "1500ms" in message
    assert "https://vision.test/v1/chat/completions" in message
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_slow_endpoint_is_cut_off_at_the_budget() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json=_completion("too late"))

    client = _client(handler, timeout_ms=50)
    started = time.monotonic()
    with pytest.raises(ApiError) as exc:
        await client.send(MESSAGES)
    assert time.monotonic() - started < 2
    assert str(exc.value) == (
        "Request timeout after 50ms when calling https://vision.test/v1/chat/completions"
    )
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_connection_failure_is_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(ApiError) as exc:
        await _client(handler).send(MESSAGES)
    message = str(exc.value)
    assert message.startswith("Network error: Failed to connect to https://vision.test/v1/chat/completions")
    assert "ConnectError: Connection refused" in message
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_http_error_status_includes_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text='{"error": "invalid api key"}')

    with pytest.raises(ApiError) as exc:
        await _client(handler).send(MESSAGES)
    assert str(exc.value) == 'HTTP 401: {"error": "invalid api key"}'
    assert exc.value.status_code == 401
    assert exc.value.retryable is False


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
async def test_transient_statuses_are_retryable(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="busy")

    with pytest.raises(ApiError) as exc:
        await _client(handler).send(MESSAGES)
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_error_body_is_truncated() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="x" * 5000)

    with pytest.raises(ApiError) as exc:
        await _client(handler).send(MESSAGES)
    assert len(str(exc.value)) == len("HTTP 400: ") + 1000


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"choices": []},
        {"choices": [{"message": {}}]},
        _completion(""),
        _completion(None),
        _completion(["not", "text"]),
    ],
)
async def test_missing_content_is_invalid_response(payload: dict) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    with pytest.raises(ApiError, match="Invalid API response: missing content"):
        await _client(handler).send(MESSAGES)


@pytest.mark.asyncio
async def test_non_json_success_body_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(ApiError, match="Invalid API response"):
        await _client(handler).send(MESSAGES)
