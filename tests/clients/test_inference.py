import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from dirty_equals import IsStr

from github_profile_analyzer.clients.errors.base import ErrorKind
from github_profile_analyzer.clients.errors.inference import (
    InferenceServiceError,
    InferenceTimeoutError,
    InferenceUnauthorizedError,
    InferenceUnavailableError,
    InvalidResponseError,
)
from github_profile_analyzer.clients.inference import DEFAULT_INFERENCE_URL, InferenceClient

type Handler = Callable[[httpx.Request], Any]


def inference_client(handler: Handler, api_key: str | None = None, timeout: float = 5) -> InferenceClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler=handler))

    return InferenceClient(url="http://ollama.test/api/generate", model="llama3", api_key=api_key, timeout=timeout, http_client=http_client)


async def test_generate_request_shape():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=200, json={"response": '{"profileScore": 80}', "done": True})

    client = inference_client(handler=handler, api_key="secret")

    text = await client.generate(system_prompt="System", user_prompt="User", action="test")

    assert text == '{"profileScore": 80}'

    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "http://ollama.test/api/generate"
    assert request.headers["Authorization"] == "Bearer secret"
    assert json.loads(request.content) == {
        "model": "llama3",
        "prompt": "System\n\nUser",
        "stream": False,
        "format": "json",
        "options": {"temperature": 0, "num_predict": 4000},
    }


async def test_no_authorization_header_without_key(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("OLLAMA_API_KEY", raising=False)
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=200, json={"response": "{}"})

    _ = await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test")

    assert "Authorization" not in requests[0].headers


async def test_chat_style_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, json={"message": {"role": "assistant", "content": '{"a": 1}'}})

    assert await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test") == '{"a": 1}'


async def test_missing_response_text_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, json={"done": True})

    assert await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test") == ""


@pytest.mark.parametrize("status_code", [401, 403])
async def test_unauthorized(status_code: int):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=status_code, text="nope")

    with pytest.raises(InferenceUnauthorizedError) as exc_info:
        _ = await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test")

    assert exc_info.value.kind == ErrorKind.MODEL_UNAUTHORIZED


async def test_service_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=500, text="model not loaded")

    with pytest.raises(InferenceServiceError) as exc_info:
        _ = await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test")

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "model not loaded"
    assert exc_info.value.detail == "AI Service Error (500): model not loaded"


async def test_connection_refused():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(InferenceUnavailableError) as exc_info:
        _ = await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test")

    assert exc_info.value.kind == ErrorKind.MODEL_UNAVAILABLE


async def test_transport_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(InferenceTimeoutError):
        _ = await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test")


async def test_hard_timeout_cancels_slow_response():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(status_code=200, json={"response": "{}"})

    with pytest.raises(InferenceTimeoutError) as exc_info:
        _ = await inference_client(handler=handler, timeout=0.05).generate(system_prompt="s", user_prompt="u", action="test")

    assert exc_info.value.kind == ErrorKind.MODEL_TIMEOUT


async def test_non_json_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, text="<html>proxy error</html>")

    with pytest.raises(InvalidResponseError) as exc_info:
        _ = await inference_client(handler=handler).generate(system_prompt="s", user_prompt="u", action="test")

    assert "proxy error" not in str(exc_info.value)


def test_configuration_from_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OLLAMA_API_URL", "http://gpu-box:11434/api/generate")
    monkeypatch.setenv("OLLAMA_MODEL", "qwen2.5")
    monkeypatch.setenv("OLLAMA_API_KEY", "key")
    monkeypatch.setenv("OLLAMA_TIMEOUT_SECONDS", "30")

    client = InferenceClient()

    assert client.url == "http://gpu-box:11434/api/generate"
    assert client.model == "qwen2.5"
    assert client.api_key == IsStr(min_length=1)
    assert client.timeout == 30


def test_default_configuration(monkeypatch: pytest.MonkeyPatch):
    for env_var in ["OLLAMA_API_URL", "OLLAMA_MODEL", "OLLAMA_API_KEY", "OLLAMA_TIMEOUT_SECONDS"]:
        monkeypatch.delenv(env_var, raising=False)

    client = InferenceClient()

    assert client.url == DEFAULT_INFERENCE_URL
    assert client.model == "llama3"
    assert client.api_key is None
    assert client.timeout == 300
