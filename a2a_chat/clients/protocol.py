"""HTTP/SSE client for the agent gateway.

Provides discovery, the synchronous ``message/send`` call, and the
incrementally delivered ``message/stream`` call. Streamed replies are
exposed as an ordered channel of stream events (``stream_message``) and,
for callback-style consumers, through ``open_stream``.
"""
import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

import httpx
from httpx_sse import ServerSentEvent, aconnect_sse
from pydantic import ValidationError

from a2a_chat.clients.events import (
    PartsReceived,
    StreamDone,
    StreamEvent,
    StreamFailed,
    Working,
    envelope_error,
    extract_context_id,
    interpret_event,
    unwrap_envelope,
)
from a2a_chat.clients.sse import SSEBlockDecoder
from a2a_chat.constants import DISCOVERY_PATH, DONE_SENTINEL, RpcMethod
from a2a_chat.core.errors import A2AClientError, DecodeError, HttpError, NetworkError, ProtocolError
from a2a_chat.core.settings import GatewaySettings
from a2a_chat.models.agent_card import AgentCard, AgentDescriptor
from a2a_chat.models.jsonrpc import JsonRpcResponse, build_message_request
from a2a_chat.models.parts import DataPart, TextPart, parse_parts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    """Reply to a synchronous call.

    Attributes:
        parts: Content parts of the agent reply
        context_id: Context id returned by the gateway; use it for follow-up messages
    """
    parts: tuple[TextPart | DataPart, ...]
    context_id: str | None


@dataclass
class StreamCallbacks:
    """Callbacks for ``ProtocolClient.open_stream``."""
    on_working: Callable[[], None]
    on_part: Callable[[tuple[TextPart | DataPart, ...]], None]
    on_done: Callable[[str | None], None]
    on_error: Callable[[A2AClientError], None]


class StreamHandle:
    """Handle on a stream opened with ``open_stream``.

    ``cancel()`` is exact at the callback layer: once it returns, no further
    callback runs, even for blocks that were already received.
    """

    def __init__(self) -> None:
        self.aborted = False
        self._task: asyncio.Task | None = None

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task
        task.add_done_callback(self._log_task_failure)

    @staticmethod
    def _log_task_failure(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Stream callback raised", exc_info=task.exception())

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> None:
        """Stop dispatching callbacks and abort the underlying transfer."""
        if self.aborted:
            return
        self.aborted = True
        if self._task is not None:
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the stream has finished or been cancelled."""
        if self._task is not None:
            await asyncio.wait([self._task])


class ProtocolClient:
    """HTTP/SSE client for talking to agents behind the gateway."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        stream_read_timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the protocol client.

        Args:
            base_url: Gateway base URL, e.g. http://localhost:8000/api
            timeout: Timeout in seconds for discovery and synchronous calls
            stream_read_timeout: Read timeout between stream chunks (None waits indefinitely)
            client: Optional preconfigured HTTP client (owned by the caller)
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._stream_timeout = httpx.Timeout(timeout, read=stream_read_timeout)
        self._owns_client = client is None
        self._client = client

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "ProtocolClient":
        return cls(
            base_url=settings.url,
            timeout=settings.timeout,
            stream_read_timeout=settings.stream_read_timeout,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def agent_url(self, agent_id: str) -> str:
        return f"{self.base_url}/agents/{agent_id}/"

    # ── Discovery ───────────────────────────────────────────────────────────

    async def discover(self) -> list[AgentDescriptor]:
        """Fetch the agent cards published by the gateway.

        Returns:
            One descriptor per valid card, in gateway order.

        Raises:
            NetworkError: If the gateway cannot be reached.
            HttpError: If the gateway answers with a non-success status.
            ProtocolError: If the body is not a JSON array.
        """
        try:
            response = await self._get_client().get(f"{self.base_url}{DISCOVERY_PATH}")
        except httpx.HTTPError as e:
            logger.error(f"Request error fetching agents: {e}")
            raise NetworkError(str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.error(f"HTTP error fetching agents: {response.status_code} - {response.text}")
            raise HttpError(response.status_code, response.text)

        try:
            cards = response.json()
        except json.JSONDecodeError as e:
            raise ProtocolError("Invalid agent list: body is not JSON") from e
        if not isinstance(cards, list):
            raise ProtocolError("Invalid agent list: expected a JSON array")

        agents: list[AgentDescriptor] = []
        for raw in cards:
            try:
                agents.append(AgentDescriptor.from_card(AgentCard.model_validate(raw)))
            except ValidationError as e:
                logger.warning(f"Skipping invalid agent card: {e.error_count()} validation error(s)")

        logger.debug(f"Discovered {len(agents)} agent(s): {[agent.id for agent in agents]}")
        return agents

    # ── message/send ────────────────────────────────────────────────────────

    async def send_message(self, agent_id: str, text: str, context_id: str) -> SendResult:
        """Send one message and wait for the complete reply.

        Args:
            agent_id: Target agent.
            text: User message text.
            context_id: Conversation context id proposed by the caller.

        Returns:
            The reply parts and the gateway's context id.

        Raises:
            NetworkError: On transport failure.
            HttpError: On a non-success status.
            ProtocolError: On a JSON-RPC error or an empty result.
        """
        request = build_message_request(RpcMethod.MESSAGE_SEND, text, context_id)
        logger.debug(f"message/send to agent={agent_id} context={context_id} id={request.id}")

        try:
            response = await self._get_client().post(self.agent_url(agent_id), json=request.to_wire())
        except httpx.HTTPError as e:
            logger.error(f"Request error sending message to {agent_id}: {e}")
            raise NetworkError(str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.error(f"HTTP error sending message to {agent_id}: {response.status_code}")
            raise HttpError(response.status_code, response.text)

        try:
            envelope = JsonRpcResponse.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as e:
            raise ProtocolError("Invalid JSON-RPC response") from e

        if envelope.error is not None:
            raise ProtocolError(envelope.error.message, code=envelope.error.code, data=envelope.error.data)
        if envelope.result is None:
            raise ProtocolError("Empty result")

        context = envelope.result.get("contextId")
        return SendResult(
            parts=parse_parts(envelope.result.get("parts")),
            context_id=context if isinstance(context, str) and context else None,
        )

    # ── message/stream ──────────────────────────────────────────────────────

    async def stream_message(self, agent_id: str, text: str, context_id: str) -> AsyncIterator[StreamEvent]:
        """Send one message and stream the reply as events.

        Yields ``Working``/``PartsReceived`` in decode order, then exactly one
        ``StreamDone`` or ``StreamFailed``. Closing the iterator (or cancelling
        the task consuming it) aborts the transfer and yields nothing more.

        Args:
            agent_id: Target agent.
            text: User message text.
            context_id: Conversation context id proposed by the caller.

        Yields:
            Stream events.
        """
        request = build_message_request(RpcMethod.MESSAGE_STREAM, text, context_id)
        logger.debug(f"message/stream to agent={agent_id} context={context_id} id={request.id}")

        canonical_context_id: str | None = None
        try:
            async with aconnect_sse(
                self._get_client(),
                "POST",
                self.agent_url(agent_id),
                json=request.to_wire(),
                timeout=self._stream_timeout,
            ) as event_source:
                response = event_source.response
                if not response.is_success:
                    await response.aread()
                    raise HttpError(response.status_code, response.text)

                async with aclosing(self._iter_blocks(response)) as blocks:
                    async for sse_event in blocks:
                        payload = self._decode_payload(sse_event)
                        if payload is None:
                            continue
                        canonical_context_id = canonical_context_id or extract_context_id(payload)
                        event = self._convert_payload(payload)
                        if event is not None:
                            yield event
        except httpx.HTTPError as e:
            logger.error(f"Stream error from agent {agent_id}: {e}")
            yield StreamFailed(NetworkError(str(e) or type(e).__name__))
            return
        except A2AClientError as e:
            logger.error(f"Stream from agent {agent_id} failed: {e}")
            yield StreamFailed(e)
            return

        logger.debug(f"Stream from agent {agent_id} ended (context={canonical_context_id})")
        yield StreamDone(canonical_context_id)

    @staticmethod
    async def _iter_blocks(response: httpx.Response) -> AsyncIterator[ServerSentEvent]:
        """Decode the response body into blocks, including an unterminated last one."""
        decoder = SSEBlockDecoder()
        async for chunk in response.aiter_text():
            for sse_event in decoder.feed(chunk):
                yield sse_event
        for sse_event in decoder.flush():
            yield sse_event

    @staticmethod
    def _parse_block(sse_event: ServerSentEvent) -> Any:
        try:
            return json.loads(sse_event.data)
        except json.JSONDecodeError as e:
            raise DecodeError(sse_event.data, e.msg) from e

    @classmethod
    def _decode_payload(cls, sse_event: ServerSentEvent) -> dict[str, Any] | None:
        """Parse one block's JSON payload, skipping sentinels and malformed blocks."""
        if sse_event.data == DONE_SENTINEL:
            return None
        try:
            payload = cls._parse_block(sse_event)
        except DecodeError as e:
            logger.warning(str(e))
            return None

        if not isinstance(payload, dict):
            logger.debug(f"Ignoring non-object stream payload: {payload!r}")
            return None
        return payload

    @staticmethod
    def _convert_payload(payload: dict[str, Any]) -> Working | PartsReceived | None:
        """Convert one decoded payload into a content event.

        Raises:
            ProtocolError: If the payload is a JSON-RPC error envelope.
        """
        error = envelope_error(payload)
        if error is not None:
            raise error
        return interpret_event(unwrap_envelope(payload))

    def open_stream(
        self,
        agent_id: str,
        text: str,
        context_id: str,
        callbacks: StreamCallbacks,
    ) -> StreamHandle:
        """Stream a reply and dispatch its events to callbacks.

        Must be called with a running event loop. Returns immediately; the
        stream is consumed by a background task.

        Args:
            agent_id: Target agent.
            text: User message text.
            context_id: Conversation context id proposed by the caller.
            callbacks: Receivers for content and the single terminal event.

        Returns:
            A handle whose ``cancel()`` silences all further callbacks.
        """
        handle = StreamHandle()
        handle._attach(asyncio.create_task(
            self._dispatch(handle, self.stream_message(agent_id, text, context_id), callbacks)
        ))
        return handle

    @staticmethod
    async def _dispatch(
        handle: StreamHandle,
        events: AsyncIterator[StreamEvent],
        callbacks: StreamCallbacks,
    ) -> None:
        async with aclosing(events):
            async for event in events:
                if handle.aborted:
                    return
                if isinstance(event, Working):
                    callbacks.on_working()
                elif isinstance(event, PartsReceived):
                    callbacks.on_part(event.parts)
                elif isinstance(event, StreamDone):
                    callbacks.on_done(event.context_id)
                elif isinstance(event, StreamFailed):
                    callbacks.on_error(event.error)
