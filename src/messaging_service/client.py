"""
Reconnecting client for the live channel.

The server only pushes messages to connections that are open at send time, so
this client treats the socket as a fast path and the history endpoint as the
source of truth: after every (re)connect it refetches the conversation history
and then appends live ``newMessage`` events, skipping ids it already has.
"""

import asyncio
import json
import logging
from contextlib import suppress
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx
import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger("messaging_service.client")

DEFAULT_RETRY_DELAY = 3.0


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


def _http_to_ws(url: str) -> str:
    if url.startswith("https://"):
        return "wss://" + url[len("https://") :]
    if url.startswith("http://"):
        return "ws://" + url[len("http://") :]
    return url


class LiveChannelClient:
    """
    Keeps one conversation view current over an unreliable live channel.

    Retries forever with a fixed delay and no backoff. ``close()`` is the only
    way to stop it and tears down the retry timer, the socket and the HTTP client.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        conversation_id: str,
        *,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        on_message: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_state_change: Optional[Callable[[ChannelState], None]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        connect: Optional[Callable[..., Any]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.ws_url = f"{_http_to_ws(self.base_url)}/ws/live?token={token}"
        self.conversation_id = str(conversation_id)
        self.retry_delay = retry_delay
        self.on_message = on_message
        self.on_state_change = on_state_change

        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=15.0,
        )
        self._connect = connect or websockets.connect

        self._messages: Dict[str, Dict[str, Any]] = {}
        self._state = ChannelState.DISCONNECTED
        self._stop = asyncio.Event()
        self._socket = None
        self._task: Optional[asyncio.Task] = None
        self.connect_count = 0

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return list(self._messages.values())

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        logger.debug("Live channel %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify(self.on_state_change, state)

    def _notify(self, callback: Optional[Callable[[Any], None]], value: Any) -> None:
        # A faulty callback must not end the retry loop
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            logger.exception("Live channel callback %r failed", callback)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def run(self) -> None:
        while not self._stop.is_set():
            self._set_state(ChannelState.CONNECTING)
            try:
                async with self._connect(self.ws_url) as socket:
                    self._socket = socket
                    self.connect_count += 1
                    self._set_state(ChannelState.CONNECTED)
                    await self.catch_up()
                    async for raw in socket:
                        self._handle_frame(raw)
            except (OSError, WebSocketException, httpx.HTTPError, asyncio.TimeoutError) as e:
                logger.warning(f"Live channel dropped: {e!r}")
            finally:
                self._socket = None

            if self._stop.is_set():
                break
            self._set_state(ChannelState.DISCONNECTED)
            # Fixed delay; close() wakes this up early
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=self.retry_delay)

        self._set_state(ChannelState.CLOSED)

    async def catch_up(self) -> None:
        """Replace the local view with the server's full history."""
        response = await self._http.get(f"/conversations/{self.conversation_id}/messages")
        response.raise_for_status()
        history = response.json()

        known = set(self._messages)
        self._messages = {str(m["id"]): m for m in history}
        for message_id, message in self._messages.items():
            if message_id not in known:
                self._notify(self.on_message, message)
        logger.info(
            f"Caught up conversation {self.conversation_id}: {len(history)} messages"
        )

    def _handle_frame(self, raw: Any) -> None:
        try:
            event = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring non-JSON frame from live channel")
            return
        if not isinstance(event, dict) or event.get("type") != "newMessage":
            return

        message = event.get("message") or {}
        if str(message.get("conversationId")) != self.conversation_id:
            return
        message_id = str(message.get("id"))
        if message_id in self._messages:
            return
        self._messages[message_id] = message
        self._notify(self.on_message, message)

    async def close(self) -> None:
        self._stop.set()
        socket = self._socket
        if socket is not None:
            with suppress(WebSocketException, OSError):
                await socket.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
        if self._owns_http_client:
            await self._http.aclose()
        self._set_state(ChannelState.CLOSED)
