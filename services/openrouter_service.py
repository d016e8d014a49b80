"""
OpenRouter Service - structured chat completions over HTTP

Boundary adapter only: it validates the request, enforces the timeout,
translates provider failures into tagged errors and validates the response
shape. It holds no business logic and is shared by the question and PRD
generation engines.
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Union

import httpx
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from config.settings import settings
from backend.utils.errors import (
    ConfigurationError,
    ValidationError,
    ProviderError,
    CompletionTimeoutError,
    MalformedResponseError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds
STREAM_DONE = "[DONE]"


# Request models
class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class JsonSchemaFormat(BaseModel):
    name: str
    strict: bool = True
    schema_: Dict[str, Any] = Field(..., alias="schema")

    model_config = {"populate_by_name": True}


class ResponseFormat(BaseModel):
    type: Literal["text", "json_schema"] = "json_schema"
    json_schema: Optional[JsonSchemaFormat] = None


class CompletionRequest(BaseModel):
    model: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stop: Optional[List[str]] = None
    response_format: Optional[ResponseFormat] = None
    timeout: Optional[float] = Field(default=None, description="Seconds; defaults to the client timeout")

    def to_payload(self, stream: bool = False) -> Dict[str, Any]:
        payload = self.model_dump(exclude={"timeout"}, exclude_none=True, by_alias=True)
        payload["stream"] = stream
        return payload


# Response models
class CompletionMessage(BaseModel):
    content: str
    role: str


class CompletionChoice(BaseModel):
    message: CompletionMessage
    finish_reason: Optional[str] = None
    index: int


class CompletionUsage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class CompletionResult(BaseModel):
    id: str
    choices: List[CompletionChoice]
    model: str
    usage: CompletionUsage

    @property
    def content(self) -> Optional[str]:
        """Text of the first choice, if any."""
        return self.choices[0].message.content if self.choices else None


class ProviderErrorBody(BaseModel):
    message: str
    type: Optional[str] = None
    param: Optional[str] = None
    code: Optional[Union[str, int]] = None


class ProviderErrorEnvelope(BaseModel):
    error: ProviderErrorBody


def json_schema_format(name: str, schema: Dict[str, Any]) -> ResponseFormat:
    """Strict json_schema response_format for a named schema."""
    return ResponseFormat(
        type="json_schema",
        json_schema=JsonSchemaFormat(name=name, strict=True, schema=schema),
    )


class OpenRouterClient:
    """Client for the OpenRouter chat-completions endpoint"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client

        Args:
            api_key: Default credential (falls back to OPENROUTER_API_KEY)
            api_url: Chat-completions URL (falls back to OPENROUTER_API_URL)
            timeout: Default timeout in seconds (falls back to OPENROUTER_TIMEOUT)
            http_client: Shared httpx.AsyncClient; a short-lived one is opened per call when omitted
        """
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.api_url = api_url or settings.openrouter_api_url
        self.timeout = timeout or settings.openrouter_timeout or DEFAULT_TIMEOUT
        self.http_client = http_client

    def _prepare(self, request: CompletionRequest, api_key: Optional[str]) -> str:
        """Fail fast, before any network traffic, on a request that cannot succeed."""
        key = api_key or self.api_key
        if not key:
            raise ConfigurationError("OpenRouter API key is not configured")
        if not request.messages:
            raise ValidationError("No messages provided")
        if not request.model:
            raise ValidationError("No model specified")
        return key

    def _headers(self, key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "X-Title": "Project Planner",
        }

    @staticmethod
    def _provider_error(response: httpx.Response) -> ProviderError:
        """Translate a non-success response into a ProviderError."""
        try:
            envelope = ProviderErrorEnvelope.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            return ProviderError(
                f"OpenRouter API error: {response.status_code} {response.reason_phrase}".strip(),
                provider_status=response.status_code,
            )
        return ProviderError(
            envelope.error.message,
            provider_status=response.status_code,
            error_type=envelope.error.type,
            param=envelope.error.param,
            code=envelope.error.code,
        )

    async def _post(self, client: httpx.AsyncClient, key: str, payload: Dict[str, Any], timeout: float) -> httpx.Response:
        return await client.post(self.api_url, headers=self._headers(key), json=payload, timeout=timeout)

    async def complete(self, request: CompletionRequest, api_key: Optional[str] = None) -> CompletionResult:
        """
        Send a completion request.

        Raises:
            ConfigurationError: no API key
            ValidationError: no messages or no model
            CompletionTimeoutError: the call did not finish within the timeout
            ProviderError: transport failure or non-success HTTP status
            MalformedResponseError: 2xx body that does not match the response schema
        """
        key = self._prepare(request, api_key)
        timeout = request.timeout or self.timeout
        payload = request.to_payload()

        try:
            if self.http_client is not None:
                response = await asyncio.wait_for(self._post(self.http_client, key, payload, timeout), timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await asyncio.wait_for(self._post(client, key, payload, timeout), timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"OpenRouter request timed out after {timeout}s (model={request.model})")
            raise CompletionTimeoutError(timeout)
        except httpx.RequestError as e:
            logger.error(f"OpenRouter request failed: {e}")
            raise ProviderError(f"Failed to communicate with OpenRouter API: {e}") from e

        if not response.is_success:
            error = self._provider_error(response)
            logger.warning(f"OpenRouter API returned {response.status_code}: {error.message}")
            raise error

        try:
            result = CompletionResult.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Invalid response format from OpenRouter API: {e}")
            raise MalformedResponseError(
                "Invalid response format from OpenRouter API",
                {"reason": "Schema validation failed"},
            ) from e

        logger.info(
            f"OpenRouter completion {result.id} model={result.model} "
            f"tokens={result.usage.total_tokens}"
        )
        return result

    async def stream(self, request: CompletionRequest, api_key: Optional[str] = None) -> AsyncIterator[str]:
        """
        Stream a completion as incremental text fragments.

        Yields the content delta of every server-sent event until the
        ``[DONE]`` sentinel or the end of the body. The generator is
        single-use; closing it early (``aclose()`` or leaving an
        ``async for`` via break) closes the underlying HTTP stream.

        The request timeout bounds the whole stream. Running past it cancels
        the pending read and raises CompletionTimeoutError.
        """
        key = self._prepare(request, api_key)
        timeout = request.timeout or self.timeout
        payload = request.to_payload(stream=True)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        owns_client = self.http_client is None
        client = httpx.AsyncClient() if owns_client else self.http_client
        try:
            async with client.stream(
                "POST", self.api_url, headers=self._headers(key), json=payload, timeout=timeout
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise self._provider_error(response)

                lines = response.aiter_lines()
                while True:
                    # Overall deadline, not per read: a slow trickle of events still ends
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    line = await asyncio.wait_for(anext(lines, None), remaining)
                    if line is None:
                        break
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == STREAM_DONE:
                        break
                    try:
                        chunk = json.loads(data)
                        delta = chunk["choices"][0].get("delta", {}).get("content")
                    except (ValueError, KeyError, IndexError, AttributeError, TypeError) as e:
                        logger.warning(f"Failed to parse streaming data: {e}")
                        continue
                    if delta:
                        yield delta
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"OpenRouter stream timed out after {timeout}s")
            raise CompletionTimeoutError(timeout)
        except httpx.RequestError as e:
            logger.error(f"OpenRouter streaming request failed: {e}")
            raise ProviderError(f"Failed to stream from OpenRouter API: {e}") from e
        finally:
            if owns_client:
                await client.aclose()
