"""Pytest configuration and fixtures for vts_orbiter tests."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from vts_orbiter.config import OrbitConfig, OrbiterConfig, ReconnectPolicy
from vts_orbiter.credentials import TokenStore
from vts_orbiter.session import OrbiterSession, SessionState
from vts_orbiter.transport import VtsWsMessage, VtsWsMessageType


class FakeWsClient:
    """In-memory stand-in for VtsWsClient.

    Yields the given frames in order; with ``hold=True`` the iteration then
    blocks until ``release()`` is called, like an idle open socket.
    """

    def __init__(
        self,
        frames: list[VtsWsMessage] | None = None,
        *,
        hold: bool = False,
        log: list[tuple[str, str]] | None = None,
    ) -> None:
        self.frames = list(frames or [])
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.connected_to: tuple[str, int] | None = None
        self.log = log if log is not None else []
        self._hold = hold
        self._released = asyncio.Event()

    async def connect(self, host: str, port: int, **kwargs: Any) -> None:
        self.connected_to = (host, port)

    @property
    def is_open(self) -> bool:
        return self.connected_to is not None and not self.closed

    async def send_json(self, payload: dict[str, Any]) -> bool:
        if self.closed:
            return False
        self.sent.append(payload)
        self.log.append(("send", payload["messageType"]))
        return True

    async def close(self, **kwargs: Any) -> None:
        self.closed = True
        self.log.append(("close", ""))
        self._released.set()

    def release(self) -> None:
        self._released.set()

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for frame in self.frames:
            yield frame
        if self._hold:
            await self._released.wait()
        yield VtsWsMessage(VtsWsMessageType.CLOSED)

    @property
    def sent_types(self) -> list[str]:
        return [payload["messageType"] for payload in self.sent]

    def sent_of(self, message_type: str) -> list[dict[str, Any]]:
        return [p for p in self.sent if p["messageType"] == message_type]


def text_frame(message_type: str, data: dict[str, Any] | None = None) -> VtsWsMessage:
    """Build a TEXT frame carrying a host response envelope."""
    return VtsWsMessage(
        VtsWsMessageType.TEXT,
        json.dumps(
            {
                "apiName": "VTubeStudioPublicAPI",
                "apiVersion": "1.0",
                "requestID": "resp",
                "messageType": message_type,
                "data": data or {},
            }
        ),
    )


def attach(session: OrbiterSession, fake: FakeWsClient, state: SessionState) -> None:
    """Install ``fake`` as the session's live connection in ``state``."""
    fake.connected_to = ("localhost", 8001)
    session._ws = fake  # type: ignore[assignment]
    session._correlator.bind(fake)  # type: ignore[arg-type]
    session._context.state = state


@pytest.fixture
def token_path(tmp_path: Path) -> Path:
    return tmp_path / "auth_token.txt"


@pytest.fixture
def config(token_path: Path) -> OrbiterConfig:
    """Config with a tick loop too slow to fire during a test."""
    return OrbiterConfig(
        token_file=token_path,
        reconnect=ReconnectPolicy(delay=0.05),
        animation=OrbitConfig(interval=60.0),
        shutdown_grace=0.05,
    )


@pytest.fixture
def session(config: OrbiterConfig) -> OrbiterSession:
    return OrbiterSession(config, TokenStore(config.token_file))


@pytest.fixture
def fake_ws() -> FakeWsClient:
    return FakeWsClient()
