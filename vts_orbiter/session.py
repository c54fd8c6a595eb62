"""Session manager for the VTube Studio public API.

This module owns the single connection to the host application. It handles:
- Connection management and fixed-delay reconnects
- The authentication handshake (token issuance, persistence, authenticate)
- Optional ModelMovedEvent subscription
- Spawning (and optionally pinning) the orbiting item
- Starting and stopping the orbit animation with the item's lifetime

Protocol progress is an explicit transition table keyed by
(state, event). A message that arrives in a state that does not accept it
raises IllegalTransitionError, which the dispatcher logs and drops.

Everything runs on one event loop; session fields are only mutated inside
a single handler invocation, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .animation import ModelPose, OrbitAnimator
from .config import OrbiterConfig
from .credentials import TokenStore
from .errors import (
    IllegalTransitionError,
    OrbiterConnectionError,
    OrbiterError,
    OrbiterHandshakeError,
    OrbiterTimeout,
    ProtocolError,
)
from .protocol import (
    API_ERROR,
    API_STATE_REQUEST,
    API_STATE_RESPONSE,
    AUTH_REQUEST,
    AUTH_RESPONSE,
    AUTH_TOKEN_REQUEST,
    AUTH_TOKEN_RESPONSE,
    ERROR_INSTANCE_NOT_FOUND,
    EVENT_SUBSCRIPTION_REQUEST,
    EVENT_SUBSCRIPTION_RESPONSE,
    ITEM_LOAD_REQUEST,
    ITEM_LOAD_RESPONSE,
    ITEM_PIN_REQUEST,
    ITEM_PIN_RESPONSE,
    MODEL_MOVED_EVENT,
    InboundMessage,
    RequestCorrelator,
    auth_request_data,
    item_load_data,
    item_pin_data,
    model_moved_subscription_data,
    parse_inbound,
    token_request_data,
)
from .transport import VtsWsClient, VtsWsMessageType

_LOGGER = logging.getLogger(__name__)


class SessionState(Enum):
    """Connection status of the session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    SUBSCRIBING = "subscribing"
    SPAWNING_OBJECT = "spawning_object"
    PINNING = "pinning"
    ACTIVE = "active"


class SessionEvent(Enum):
    """Inputs that drive the session state machine."""

    CONNECT = "connect"
    OPENED = "opened"
    ALREADY_AUTHENTICATED = "already_authenticated"
    NEEDS_AUTH = "needs_auth"
    TOKEN_ISSUED = "token_issued"
    AUTH_ACCEPTED = "auth_accepted"
    AUTH_REJECTED = "auth_rejected"
    SUBSCRIBED = "subscribed"
    ITEM_LOADED = "item_loaded"
    ITEM_AWAITING_PIN = "item_awaiting_pin"
    ITEM_PINNED = "item_pinned"
    CLOSED = "closed"


_TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.DISCONNECTED, SessionEvent.CONNECT): SessionState.CONNECTING,
    (SessionState.CONNECTING, SessionEvent.OPENED): SessionState.CONNECTED,
    (
        SessionState.CONNECTED,
        SessionEvent.ALREADY_AUTHENTICATED,
    ): SessionState.SPAWNING_OBJECT,
    (SessionState.CONNECTED, SessionEvent.NEEDS_AUTH): SessionState.AUTHENTICATING,
    (
        SessionState.AUTHENTICATING,
        SessionEvent.TOKEN_ISSUED,
    ): SessionState.AUTHENTICATING,
    (
        SessionState.AUTHENTICATING,
        SessionEvent.AUTH_ACCEPTED,
    ): SessionState.SUBSCRIBING,
    # A rejected token stalls the session until the operator clears it.
    (
        SessionState.AUTHENTICATING,
        SessionEvent.AUTH_REJECTED,
    ): SessionState.AUTHENTICATING,
    (SessionState.SUBSCRIBING, SessionEvent.SUBSCRIBED): SessionState.SPAWNING_OBJECT,
    (SessionState.SPAWNING_OBJECT, SessionEvent.ITEM_LOADED): SessionState.ACTIVE,
    (
        SessionState.SPAWNING_OBJECT,
        SessionEvent.ITEM_AWAITING_PIN,
    ): SessionState.PINNING,
    (SessionState.PINNING, SessionEvent.ITEM_PINNED): SessionState.ACTIVE,
}


def next_state(state: SessionState, event: SessionEvent) -> SessionState:
    """Look up the transition for ``event`` in ``state``.

    CLOSED is accepted from every state.

    Raises:
        IllegalTransitionError: If ``state`` does not accept ``event``.
    """
    if event is SessionEvent.CLOSED:
        return SessionState.DISCONNECTED
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise IllegalTransitionError(state, event) from None


@dataclass
class SessionContext:
    """Per-connection fields, replaced wholesale on every (re)connect.

    ``instance_id`` is only ever set together with the ACTIVE state.
    """

    state: SessionState = SessionState.DISCONNECTED
    instance_id: str | None = None
    pending_instance_id: str | None = None


MessageHandler = Callable[[dict[str, Any]], Awaitable[None]]


class OrbiterSession:
    """Session with VTube Studio that keeps an orbiting item alive.

    Usage:
        session = OrbiterSession(config, TokenStore(config.token_file))
        await session.connect()
        ...
        await session.send_request("ItemUnloadRequest", unload_all_data())
        await session.close()
    """

    def __init__(self, config: OrbiterConfig, token_store: TokenStore) -> None:
        self._config = config
        self._token_store = token_store
        self.token: str | None = token_store.load()
        self.model_pose = ModelPose()

        self._context = SessionContext()
        self._correlator = RequestCorrelator()
        self._ws: VtsWsClient | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._retry_attempts = 0
        self._shutdown_requested = False
        self._state_callback: Callable[[SessionState], None] | None = None

        self.animator = OrbitAnimator(
            config.animation,
            handle=lambda: self._context.instance_id,
            pose=self.model_pose,
            send=self.send_request,
        )

        self._handlers: dict[str, MessageHandler] = {
            API_STATE_RESPONSE: self._on_api_state,
            AUTH_TOKEN_RESPONSE: self._on_token_issued,
            AUTH_RESPONSE: self._on_authentication,
            EVENT_SUBSCRIPTION_RESPONSE: self._on_subscription,
            MODEL_MOVED_EVENT: self._on_model_moved,
            ITEM_LOAD_RESPONSE: self._on_item_loaded,
            ITEM_PIN_RESPONSE: self._on_item_pinned,
        }

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._context.state

    @property
    def instance_id(self) -> str | None:
        """Handle of the spawned item; None unless the session is ACTIVE."""
        return self._context.instance_id

    @property
    def is_active(self) -> bool:
        return self._context.state is SessionState.ACTIVE

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def on_state_changed(self, callback: Callable[[SessionState], None]) -> None:
        """Register callback for session state changes."""
        self._state_callback = callback

    async def connect(self) -> bool:
        """Open a fresh connection and start the handshake.

        Any previous connection is torn down first so its listener can no
        longer mutate session state.

        Returns:
            True if the socket opened, False otherwise (a retry is scheduled).
        """
        if self._shutdown_requested:
            _LOGGER.debug("[Connect] Connection aborted: shutdown requested")
            return False

        await self._teardown_connection()
        self._reset()
        self._transition(SessionEvent.CONNECT)

        _LOGGER.info(
            "[Connect] Connecting to VTS @ %s (attempt #%d)",
            self._config.url,
            self._retry_attempts + 1,
        )

        ws_client = VtsWsClient()
        try:
            await ws_client.connect(
                self._config.host,
                self._config.port,
                timeout=self._config.connect_timeout,
            )
        except OrbiterTimeout:
            _LOGGER.warning("[Connect] Connection timeout - VTS unreachable")
            self._handle_disconnect()
            return False
        except OrbiterConnectionError as err:
            _LOGGER.warning("[Connect] Connection failed: %s", err)
            self._handle_disconnect()
            return False
        except OrbiterHandshakeError as err:
            _LOGGER.error("[Connect] WebSocket handshake failed: %s", err)
            self._handle_disconnect()
            return False

        if self._shutdown_requested:
            await ws_client.close()
            return False

        self._ws = ws_client
        self._correlator.bind(ws_client)
        self._retry_attempts = 0
        self._listen_task = asyncio.create_task(self._listen(ws_client))
        return True

    async def close(self) -> None:
        """Stop reconnecting, stop the animation and close the socket."""
        _LOGGER.info("[Connect] Closing session")
        self._shutdown_requested = True

        if self._reconnect_task is not None:
            task = self._reconnect_task
            self._reconnect_task = None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._reset()
        await self._teardown_connection()

    async def send_request(
        self, message_type: str, data: dict[str, Any] | None = None
    ) -> bool:
        """Send a request to the host; dropped (False) if the socket is not open."""
        return await self._correlator.send(message_type, data or {})

    async def handle_message(self, message: InboundMessage) -> None:
        """Dispatch one inbound message by its messageType."""
        if message.message_type == API_ERROR:
            self._handle_api_error(message.data)
            return

        handler = self._handlers.get(message.message_type)
        if handler is None:
            _LOGGER.debug("[Protocol] Unhandled message type: %s", message.message_type)
            return

        try:
            await handler(message.data)
        except IllegalTransitionError as err:
            _LOGGER.warning(
                "[Protocol] Ignoring %s: %s", message.message_type, err
            )
        except ProtocolError as err:
            _LOGGER.warning("[Protocol] Invalid %s: %s", message.message_type, err)

    # -------------------------------------------------------------------------
    # Internal: State machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        """Update connection state and notify callback."""
        if self._context.state is not state:
            _LOGGER.debug(
                "[Session] State: %s → %s", self._context.state.value, state.value
            )
            self._context.state = state
            if self._state_callback:
                self._state_callback(state)

    def _transition(self, event: SessionEvent) -> SessionState:
        state = next_state(self._context.state, event)
        self._set_state(state)
        return state

    def _reset(self) -> None:
        """Drop every per-connection field; the token survives."""
        self.animator.stop()
        self._correlator.bind(None)
        previous = self._context.state
        self._context = SessionContext(state=previous)
        self._set_state(SessionState.DISCONNECTED)

    def _handle_disconnect(self) -> None:
        """Reset session-scoped state and schedule a reconnect."""
        self._reset()
        if not self._shutdown_requested:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._shutdown_requested or self.reconnect_pending:
            return

        delay = self._config.reconnect.delay_for(self._retry_attempts + 1)
        if delay is None:
            _LOGGER.error(
                "[Connect] Giving up after %d attempts", self._retry_attempts
            )
            return
        self._retry_attempts += 1

        _LOGGER.warning("[Connect] Disconnected. Retrying in %gs...", delay)
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay(delay))

    async def _reconnect_after_delay(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            _LOGGER.debug("[Connect] Reconnect cancelled")
            raise
        self._reconnect_task = None
        await self.connect()

    async def _teardown_connection(self) -> None:
        """Detach the previous listener and close its socket."""
        self._correlator.bind(None)

        if self._listen_task is not None:
            task = self._listen_task
            self._listen_task = None
            if task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if self._ws is not None:
            ws = self._ws
            self._ws = None
            await ws.close()

    # -------------------------------------------------------------------------
    # Internal: Message listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws: VtsWsClient) -> None:
        """Run the handshake and dispatch frames until the socket goes away."""
        message_count = 0
        reconnect_required = False

        try:
            self._transition(SessionEvent.OPENED)
            _LOGGER.info("[Connect] Connected.")
            await self.send_request(API_STATE_REQUEST)

            async for msg in ws:
                if msg.type is VtsWsMessageType.TEXT:
                    message_count += 1
                    await self._handle_frame(msg.data)
                elif msg.type is VtsWsMessageType.CLOSED:
                    _LOGGER.info("[Connect] WebSocket closed by VTS")
                    reconnect_required = True
                    break
                elif msg.type is VtsWsMessageType.ERROR:
                    _LOGGER.error("[Connect] WebSocket error")
                    reconnect_required = True
                    break

        except asyncio.CancelledError:
            _LOGGER.debug("[Connect] Listener cancelled (%d messages)", message_count)
            raise
        except OrbiterError as err:
            _LOGGER.warning("[Connect] Client error: %s", err)
            reconnect_required = True
        except Exception as err:
            _LOGGER.exception("[Connect] Unexpected error: %s", err)
            reconnect_required = True
        finally:
            if reconnect_required and self._ws is ws and not self._shutdown_requested:
                self._handle_disconnect()

    async def _handle_frame(self, raw: str | None) -> None:
        try:
            message = parse_inbound(raw or "")
        except ProtocolError as err:
            _LOGGER.warning("[Error] Parse failed: %s", err)
            return
        await self.handle_message(message)

    # -------------------------------------------------------------------------
    # Internal: Protocol handlers
    # -------------------------------------------------------------------------

    async def _on_api_state(self, data: dict[str, Any]) -> None:
        if data.get("currentSessionAuthenticated"):
            self._transition(SessionEvent.ALREADY_AUTHENTICATED)
            _LOGGER.info("[Auth] Session already authenticated.")
            await self._spawn_item()
            return

        self._transition(SessionEvent.NEEDS_AUTH)
        if self.token:
            await self._authenticate()
        else:
            _LOGGER.info("[Auth] Check VTube Studio to approve plugin...")
            await self.send_request(
                AUTH_TOKEN_REQUEST,
                token_request_data(
                    self._config.plugin_name, self._config.plugin_developer
                ),
            )

    async def _on_token_issued(self, data: dict[str, Any]) -> None:
        token = data.get("authenticationToken")
        if not isinstance(token, str) or not token:
            raise ProtocolError("authenticationToken missing")

        self._transition(SessionEvent.TOKEN_ISSUED)
        self.token = token
        try:
            self._token_store.save(token)
        except OSError as err:
            _LOGGER.error("[Auth] Could not save token: %s", err)
        await self._authenticate()

    async def _on_authentication(self, data: dict[str, Any]) -> None:
        if not data.get("authenticated"):
            self._transition(SessionEvent.AUTH_REJECTED)
            _LOGGER.error(
                "[Auth] Failed (%s). Delete %s to reset.",
                data.get("reason", "no reason given"),
                self._token_store.path,
            )
            return

        self._transition(SessionEvent.AUTH_ACCEPTED)
        _LOGGER.info("[Auth] Authenticated.")

        if self._config.subscribe_model_events:
            await self.send_request(
                EVENT_SUBSCRIPTION_REQUEST, model_moved_subscription_data()
            )
        self._transition(SessionEvent.SUBSCRIBED)
        await self._spawn_item()

    async def _on_subscription(self, data: dict[str, Any]) -> None:
        _LOGGER.debug("[Events] Subscribed to %s", data.get("subscribedEvents"))

    async def _on_model_moved(self, data: dict[str, Any]) -> None:
        position = data.get("modelPosition")
        if not isinstance(position, dict):
            return
        try:
            self.model_pose.update(position)
        except (TypeError, ValueError) as err:
            raise ProtocolError(f"modelPosition is malformed: {err}") from err
        _LOGGER.debug("[Model] Pos: %s", self.model_pose)

    async def _on_item_loaded(self, data: dict[str, Any]) -> None:
        instance_id = data.get("instanceID")
        if not isinstance(instance_id, str) or not instance_id:
            raise ProtocolError("instanceID missing")

        _LOGGER.info("[Item] Loaded successfully (ID: %s)", instance_id)
        art_mesh_id = self._config.pin_art_mesh_id
        if not art_mesh_id:
            self._activate(SessionEvent.ITEM_LOADED, instance_id)
            return

        self._transition(SessionEvent.ITEM_AWAITING_PIN)
        self._context.pending_instance_id = instance_id
        _LOGGER.info("[Pin] Pinning item to ArtMesh %s...", art_mesh_id)
        await self.send_request(
            ITEM_PIN_REQUEST, item_pin_data(instance_id, art_mesh_id)
        )

    async def _on_item_pinned(self, data: dict[str, Any]) -> None:
        instance_id = self._context.pending_instance_id
        if instance_id is None:
            raise IllegalTransitionError(self._context.state, SessionEvent.ITEM_PINNED)

        if data.get("isPinned"):
            _LOGGER.info("[Pin] Item pinned to model. Starting orbit.")
        else:
            _LOGGER.warning("[Pin] Item not pinned, starting orbit anyway.")
        self._activate(SessionEvent.ITEM_PINNED, instance_id)

    def _activate(self, event: SessionEvent, instance_id: str) -> None:
        self._transition(event)
        self._context.instance_id = instance_id
        self._context.pending_instance_id = None
        self.animator.start()

    async def _authenticate(self) -> None:
        await self.send_request(
            AUTH_REQUEST,
            auth_request_data(
                self._config.plugin_name,
                self._config.plugin_developer,
                self.token or "",
            ),
        )

    async def _spawn_item(self) -> None:
        _LOGGER.info("[Item] Spawning '%s' in VTS...", self._config.asset_filename)
        await self.send_request(
            ITEM_LOAD_REQUEST,
            item_load_data(
                self._config.asset_filename, custom_data=self._config.custom_data
            ),
        )

    def _handle_api_error(self, data: dict[str, Any]) -> None:
        error_id = data.get("errorID")
        if error_id == ERROR_INSTANCE_NOT_FOUND:
            # Expected while items are being torn down.
            _LOGGER.debug("[API Error] %s", data.get("message"))
            return
        _LOGGER.error("[API Error] %s (errorID %s)", data.get("message"), error_id)
