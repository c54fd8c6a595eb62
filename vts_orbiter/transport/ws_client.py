"""WebSocket client wrapper for the VTube Studio public API."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)
from websockets.protocol import State

from ..errors import OrbiterConnectionError, OrbiterHandshakeError, OrbiterTimeout

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_LOGGER = logging.getLogger(__name__)


class VtsWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class VtsWsMessage:
    """Normalized WebSocket message payload."""

    type: VtsWsMessageType
    data: str | None = None


class VtsWsClient:
    """Wrapper around the websockets library for one host connection.

    Sends are fire-and-forget: a frame sent while the socket is not open is
    dropped rather than queued, and the caller learns about it only through
    the boolean result.
    """

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    async def connect(
        self,
        host: str,
        port: int,
        *,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Open the socket at the API root, ``ws://host:port``.

        Raises:
            OrbiterTimeout: The host did not answer within ``timeout``.
            OrbiterHandshakeError: The HTTP upgrade was refused.
            OrbiterConnectionError: The socket could not be opened.
        """
        url = f"ws://{host}:{port}"
        try:
            self._ws = await asyncio.wait_for(
                websockets.connect(url, ping_interval=ping_interval, max_size=None),
                timeout=timeout,
            )
        except TimeoutError as err:
            raise OrbiterTimeout(f"No answer from {url}") from err
        except (InvalidHandshake, InvalidURI) as err:
            raise OrbiterHandshakeError(f"Upgrade rejected by {url}: {err}") from err
        except (OSError, WebSocketException) as err:
            raise OrbiterConnectionError(f"Cannot reach {url}: {err}") from err

    @property
    def is_open(self) -> bool:
        """Return True while frames can be written to the socket."""
        return self._ws is not None and self._ws.state is State.OPEN

    async def close(self, *, timeout: float = 2.0) -> None:
        """Close the websocket, aborting the transport if the handshake stalls."""
        if self._ws is None:
            return
        ws = self._ws
        try:
            await asyncio.wait_for(ws.close(), timeout=timeout)
        except TimeoutError:
            _LOGGER.warning("[Transport] Close timed out, aborting connection")
            transport = getattr(ws, "transport", None)
            if transport is not None:
                transport.abort()

    async def send_json(self, payload: dict[str, Any]) -> bool:
        """Send a JSON payload, returning False when it was dropped."""
        if not self.is_open:
            _LOGGER.debug(
                "[Transport] Dropping %s: socket not open",
                payload.get("messageType"),
            )
            return False
        assert self._ws is not None
        try:
            await self._ws.send(json.dumps(payload))
        except ConnectionClosed:
            _LOGGER.debug("[Transport] Dropping frame: connection closed mid-send")
            return False
        return True

    def __aiter__(self) -> AsyncIterator[VtsWsMessage]:
        if self._ws is None:
            raise OrbiterConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[VtsWsMessage]:
        if self._ws is None:
            raise OrbiterConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed:
            yield VtsWsMessage(type=VtsWsMessageType.CLOSED)
        except Exception:
            _LOGGER.debug("[Transport] Receive failed", exc_info=True)
            yield VtsWsMessage(type=VtsWsMessageType.ERROR)
        else:
            # Iteration ends when the peer closes gracefully.
            yield VtsWsMessage(type=VtsWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> VtsWsMessage | None:
        """Normalize raw frames into VtsWsMessage; binary frames are skipped."""
        if isinstance(msg, bytes):
            return None
        if isinstance(msg, str):
            return VtsWsMessage(VtsWsMessageType.TEXT, msg)
        return VtsWsMessage(VtsWsMessageType.TEXT, str(msg))
