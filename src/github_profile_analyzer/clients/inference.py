import asyncio
import os
from logging import Logger
from typing import Any

import httpx
from fastmcp.utilities.logging import get_logger

from github_profile_analyzer.clients.errors.inference import (
    InferenceServiceError,
    InferenceTimeoutError,
    InferenceUnauthorizedError,
    InferenceUnavailableError,
    InvalidResponseError,
)
from github_profile_analyzer.servers.shared.utility import estimate_tokens

DEFAULT_INFERENCE_URL = "http://localhost:8000/api/generate"
DEFAULT_INFERENCE_MODEL = "llama3"
DEFAULT_INFERENCE_TIMEOUT_SECONDS = 300.0
DEFAULT_MAX_TOKENS = 4000

UNAUTHORIZED_STATUS_CODES = (401, 403)


def get_inference_url() -> str:
    return os.environ.get("OLLAMA_API_URL") or DEFAULT_INFERENCE_URL


def get_inference_model() -> str:
    return os.environ.get("OLLAMA_MODEL") or DEFAULT_INFERENCE_MODEL


def get_inference_api_key() -> str | None:
    return os.environ.get("OLLAMA_API_KEY") or None


def get_inference_timeout() -> float:
    return float(os.environ.get("OLLAMA_TIMEOUT_SECONDS") or DEFAULT_INFERENCE_TIMEOUT_SECONDS)


class InferenceClient:
    """A client for an Ollama-compatible generate endpoint that is asked for JSON output."""

    url: str
    model: str
    api_key: str | None
    timeout: float
    max_tokens: int

    def __init__(
        self,
        url: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        http_client: httpx.AsyncClient | None = None,
        logger: Logger | None = None,
    ):
        self.url = url or get_inference_url()
        self.model = model or get_inference_model()
        self.api_key = api_key or get_inference_api_key()
        self.timeout = timeout or get_inference_timeout()
        self.max_tokens = max_tokens
        self.http_client = http_client
        self.logger = logger or get_logger(name=__name__)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}

        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        return headers

    def _body(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": f"{system_prompt}\n\n{user_prompt}",
            "stream": False,
            "format": "json",
            "options": {"temperature": 0, "num_predict": self.max_tokens},
        }

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.post(self.url, json=body, headers=self._headers())

        async with httpx.AsyncClient(timeout=self.timeout) as http_client:
            return await http_client.post(self.url, json=body, headers=self._headers())

    async def generate(self, system_prompt: str, user_prompt: str, action: str) -> str:
        """Send one deterministic, non-streaming generation request and return the raw model text.

        Raises:
            InferenceTimeoutError: If no response arrives within the timeout.
            InferenceUnavailableError: If the endpoint cannot be reached.
            InferenceUnauthorizedError: If the endpoint rejects the credentials.
            InferenceServiceError: If the endpoint responds with any other error status.
            InvalidResponseError: If the endpoint's response envelope is not JSON.
        """

        body = self._body(system_prompt=system_prompt, user_prompt=user_prompt)

        self.logger.info(f"Requesting {action} from {self.model} at {self.url}, ~{estimate_tokens(text=body['prompt'])} prompt tokens")

        try:
            async with asyncio.timeout(self.timeout):
                response = await self._post(body=body)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise InferenceTimeoutError(timeout=self.timeout) from e
        except httpx.TransportError as e:
            raise InferenceUnavailableError(url=self.url, message=str(e)) from e

        if response.status_code in UNAUTHORIZED_STATUS_CODES:
            raise InferenceUnauthorizedError(status_code=response.status_code)

        if not response.is_success:
            raise InferenceServiceError(status_code=response.status_code, body=response.text)

        try:
            result: Any = response.json()  # pyright: ignore[reportAny]
        except ValueError as e:
            self.logger.error(f"Inference endpoint returned a non-JSON envelope for {action}: {response.text}")  # noqa: TRY400
            raise InvalidResponseError(action=action, message="Response envelope is not JSON") from e

        if not isinstance(result, dict):
            raise InvalidResponseError(action=action, message="Response envelope is not an object")

        message: Any = result.get("message")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        message_content = message.get("content") if isinstance(message, dict) else None  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]

        text = result.get("response") or message_content or ""  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]

        return text if isinstance(text, str) else ""
