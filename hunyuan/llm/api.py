"""
Low-level client for the Hunyuan ``ChatCompletions`` action.

Every call is a signed ``POST /`` against the Tencent Cloud API gateway.
One-shot responses arrive wrapped in a ``{"Response": {...}}`` envelope;
streamed responses arrive as Server-Sent Events whose ``data:`` payloads are
bare chunk objects.  Errors come back either as a non-2xx status or as an
``Error`` object inside the envelope (frequently with HTTP 200).

Dependencies: ``httpx`` (async HTTP client).  No vendor SDK needed.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator
from urllib.parse import urlparse

import httpx

from hunyuan.errors import APIError
from hunyuan.llm.signer import RequestSigner
from hunyuan.llm.types import ChatCompletion, ChatCompletionChunk, ChatRequest

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://hunyuan.tencentcloudapi.com"
DEFAULT_SERVICE = "hunyuan"
DEFAULT_ACTION = "ChatCompletions"
DEFAULT_CHAT_MODEL = "hunyuan-pro"

# Provider error codes worth another attempt.  Anything else (auth failures,
# invalid parameters, moderation) fails immediately.
RETRYABLE_ERROR_PREFIXES = (
    "InternalError",
    "RequestLimitExceeded",
    "ResourceUnavailable",
    "FailedOperation.EngineRequestTimeout",
    "FailedOperation.EngineServerError",
    "FailedOperation.EngineServerLimitExceeded",
)


def _is_retryable_code(code: str | None) -> bool:
    return bool(code) and code.startswith(RETRYABLE_ERROR_PREFIXES)


def _envelope_error(envelope: object) -> APIError | None:
    """Turn an ``Error`` object inside a ``Response`` envelope into an ``APIError``."""
    err = envelope.get("Error") if isinstance(envelope, dict) else None
    if not err:
        return None
    if not isinstance(err, dict):
        err = {"Message": str(err)}
    code = _field(err, "Code")
    return APIError(
        f"{code or 'Error'}: {err.get('Message', '')}",
        code=code,
        request_id=envelope.get("RequestId"),
        retryable=_is_retryable_code(code),
    )


def _field(data: object, key: str) -> str | None:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, str) else None


def _json_or_none(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        logger.warning("Response body is not JSON: %s", response.text[:200])
        return None


class ChatCompletionStream:
    """
    An open streamed response.

    Iterate it for ``ChatCompletionChunk`` objects; ``aclose`` releases the
    connection and may be called at any point, including mid-stream.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[ChatCompletionChunk]:
        return self._iter_chunks()

    async def __aenter__(self) -> ChatCompletionStream:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await self._response.aclose()

    async def _iter_chunks(self) -> AsyncIterator[ChatCompletionChunk]:
        """
        Parse Server-Sent Events from the response.

        Each event has the form::

            data: {json}\\n\\n

        A ``data: [DONE]`` sentinel, if the service sends one, ends the stream.
        """
        try:
            async for line in self._response.aiter_lines():
                line = line.rstrip("\r")
                if not line or not line.startswith("data:"):
                    # Event boundary, comment or other SSE field.
                    continue

                data_str = line[len("data:"):].strip()
                if data_str == "[DONE]":
                    return

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    logger.warning("Failed to parse SSE data: %s", data_str[:200])
                    continue

                if isinstance(data, dict) and "Response" in data:
                    # Errors raised after the stream has started are wrapped.
                    error = _envelope_error(data["Response"])
                    if error is not None:
                        raise error
                    data = data["Response"]

                try:
                    chunk = ChatCompletionChunk.from_wire(data)
                except (TypeError, ValueError) as e:
                    # Keep the stream going; the fragment normalizes to an empty result.
                    logger.warning("Malformed chunk skipped (%s): %s", e, data_str[:200])
                    chunk = ChatCompletionChunk(id=_field(data, "Id"))
                yield chunk
        finally:
            await self.aclose()


class HunyuanApi:
    """
    Signed access to the ``ChatCompletions`` action.

    Parameters
    ----------
    signer:
        Produces the TC3 headers; called once per attempt.
    base_url:
        Gateway URL, e.g. ``"https://hunyuan.tencentcloudapi.com"``.
    host:
        Value of the signed ``Host`` header.  Defaults to the host of
        *base_url*.
    service:
        Service name used in the credential scope.
    action:
        API action sent in ``X-TC-Action``.
    timeout:
        HTTP timeout in seconds.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one with a
        ``MockTransport``).  A client passed in is not closed by ``aclose``.
    """

    def __init__(
        self,
        signer: RequestSigner,
        base_url: str = DEFAULT_BASE_URL,
        host: str | None = None,
        service: str = DEFAULT_SERVICE,
        action: str = DEFAULT_ACTION,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._signer = signer
        self._url = base_url.rstrip("/") + "/"
        self._host = host or urlparse(base_url).netloc
        self._service = service
        self._action = action
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=30.0)
        )

    async def __aenter__(self) -> HunyuanApi:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_request(self, request: ChatRequest) -> httpx.Request:
        body = request.to_json()
        # Signed per attempt: the signature is bound to the current second.
        headers = self._signer.headers(self._service, self._host, self._action, body)
        if request.stream:
            headers["Accept"] = "text/event-stream"
        logger.info(
            "REQUEST: action=%s model=%s tools=%d messages=%d stream=%s secret_id=%s...",
            self._action,
            request.model,
            len(request.tools) if request.tools else 0,
            len(request.messages),
            request.stream,
            self._signer.secret_id[:8],
        )
        return self._client.build_request("POST", self._url, content=body, headers=headers)

    @staticmethod
    def _status_error(response: httpx.Response) -> APIError:
        request_id = None
        code = None
        message = response.text[:200]
        data = _json_or_none(response)
        error = _envelope_error(data.get("Response") if isinstance(data, dict) else None)
        if error is not None:
            code = error.code
            message = str(error)
            request_id = error.request_id
        return APIError(
            f"HTTP {response.status_code}: {message}",
            code=code,
            request_id=request_id,
            status_code=response.status_code,
            retryable=True if _is_retryable_code(code) else None,
        )

    # ------------------------------------------------------------------
    # One-shot request
    # ------------------------------------------------------------------

    async def chat_completion(self, request: ChatRequest) -> ChatCompletion | None:
        """
        Send a non-streaming request.

        Returns ``None`` when the service answers without a ``Response``
        body; raises ``APIError`` for error statuses and error envelopes.
        """
        response = await self._client.send(self._build_request(request))
        if response.is_error:
            raise self._status_error(response)

        data = _json_or_none(response)
        envelope = data.get("Response") if isinstance(data, dict) else None
        if envelope is None:
            return None
        if not isinstance(envelope, dict):
            logger.warning("Response envelope is not an object: %r", envelope)
            return None
        error = _envelope_error(envelope)
        if error is not None:
            raise error
        try:
            return ChatCompletion.from_wire(envelope)
        except (TypeError, ValueError) as e:
            logger.warning("Malformed completion %s: %s", envelope.get("RequestId"), e)
            return ChatCompletion(id=_field(envelope, "Id"), request_id=_field(envelope, "RequestId"))

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    async def open_chat_stream(self, request: ChatRequest) -> ChatCompletionStream:
        """
        Open a streamed request and check its status.

        Failures before the first event (error status, error envelope instead
        of an event stream) raise here, so the call can be retried as a unit.
        """
        response = await self._client.send(self._build_request(request), stream=True)
        try:
            if response.is_error:
                await response.aread()
                raise self._status_error(response)

            content_type = response.headers.get("content-type", "")
            if "text/event-stream" not in content_type:
                await response.aread()
                data = _json_or_none(response)
                envelope = data.get("Response") if isinstance(data, dict) else None
                error = _envelope_error(envelope or {})
                if error is not None:
                    raise error
                raise APIError(
                    f"Expected an event stream, got {content_type or 'no content type'}",
                    status_code=response.status_code,
                    retryable=False,
                )
        except BaseException:
            await response.aclose()
            raise
        return ChatCompletionStream(response)
