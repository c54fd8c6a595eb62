"""Envelope and payload helpers for the VTube Studio public API.

Every outgoing frame is wrapped in the same envelope::

    {"apiName": "VTubeStudioPublicAPI", "apiVersion": "1.0",
     "requestID": "req_<n>", "messageType": "...", "data": {...}}

Responses are dispatched by ``messageType``; request ids are only required
to be unique, they are never used for correlation.
"""

from __future__ import annotations

import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from .errors import ProtocolError

if TYPE_CHECKING:
    from .transport import VtsWsClient

_LOGGER = logging.getLogger(__name__)

API_NAME: Final = "VTubeStudioPublicAPI"
API_VERSION: Final = "1.0"
REQUEST_ID_PREFIX: Final = "req_"

# Request message types
API_STATE_REQUEST: Final = "APIStateRequest"
AUTH_TOKEN_REQUEST: Final = "AuthenticationTokenRequest"
AUTH_REQUEST: Final = "AuthenticationRequest"
EVENT_SUBSCRIPTION_REQUEST: Final = "EventSubscriptionRequest"
ITEM_LOAD_REQUEST: Final = "ItemLoadRequest"
ITEM_PIN_REQUEST: Final = "ItemPinRequest"
ITEM_MOVE_REQUEST: Final = "ItemMoveRequest"
ITEM_UNLOAD_REQUEST: Final = "ItemUnloadRequest"

# Response and event message types
API_STATE_RESPONSE: Final = "APIStateResponse"
AUTH_TOKEN_RESPONSE: Final = "AuthenticationTokenResponse"
AUTH_RESPONSE: Final = "AuthenticationResponse"
EVENT_SUBSCRIPTION_RESPONSE: Final = "EventSubscriptionResponse"
MODEL_MOVED_EVENT: Final = "ModelMovedEvent"
ITEM_LOAD_RESPONSE: Final = "ItemLoadResponse"
ITEM_PIN_RESPONSE: Final = "ItemPinResponse"
API_ERROR: Final = "APIError"

# Host error id for an item instance that no longer exists.
ERROR_INSTANCE_NOT_FOUND: Final = 50

# Sentinels the host reads as "leave unchanged" in ItemMoveRequest.
KEEP_SIZE: Final = -1000
KEEP_ORDER: Final = -1000


def build_envelope(
    *,
    request_id: str,
    message_type: str,
    data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a canonical API envelope."""
    return {
        "apiName": API_NAME,
        "apiVersion": API_VERSION,
        "requestID": request_id,
        "messageType": message_type,
        "data": data if data is not None else {},
    }


@dataclass(frozen=True)
class InboundMessage:
    """A parsed inbound envelope."""

    message_type: str
    data: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None


def parse_inbound(raw: str | bytes) -> InboundMessage:
    """Parse a raw text frame into an InboundMessage.

    Raises:
        ProtocolError: If the frame is not JSON or lacks a messageType.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as err:
        raise ProtocolError(f"Frame is not valid JSON: {err}") from err

    if not isinstance(payload, dict):
        raise ProtocolError("Frame is not a JSON object")

    message_type = payload.get("messageType")
    if not isinstance(message_type, str) or not message_type:
        raise ProtocolError("Frame has no messageType")

    data = payload.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ProtocolError(f"{message_type} data is not an object")

    return InboundMessage(
        message_type=message_type,
        data=data,
        request_id=payload.get("requestID"),
    )


class RequestCorrelator:
    """Stamp outgoing requests with ids and forward them to the transport.

    The counter lives for the whole process and is never reset on reconnect,
    so ``req_<n>`` stays unique across connections in the log output.
    """

    def __init__(self) -> None:
        self._counter = itertools.count()
        self._transport: VtsWsClient | None = None
        self.last_request_id: str | None = None

    def bind(self, transport: VtsWsClient | None) -> None:
        """Route future sends through ``transport`` (None detaches)."""
        self._transport = transport

    def next_request_id(self) -> str:
        request_id = f"{REQUEST_ID_PREFIX}{next(self._counter)}"
        self.last_request_id = request_id
        return request_id

    def build(
        self, message_type: str, data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Build an envelope with the next request id."""
        return build_envelope(
            request_id=self.next_request_id(),
            message_type=message_type,
            data=data,
        )

    async def send(
        self, message_type: str, data: dict[str, Any] | None = None
    ) -> bool:
        """Send a request; returns False if no open transport took it."""
        transport = self._transport
        if transport is None:
            _LOGGER.debug("[Request] Dropping %s: no transport", message_type)
            return False
        envelope = self.build(message_type, data)
        return await transport.send_json(envelope)


# -----------------------------------------------------------------------------
# Request payloads
# -----------------------------------------------------------------------------


def token_request_data(plugin_name: str, plugin_developer: str) -> dict[str, Any]:
    return {"pluginName": plugin_name, "pluginDeveloper": plugin_developer}


def auth_request_data(
    plugin_name: str, plugin_developer: str, token: str
) -> dict[str, Any]:
    return {
        "pluginName": plugin_name,
        "pluginDeveloper": plugin_developer,
        "authenticationToken": token,
    }


def model_moved_subscription_data(*, subscribe: bool = True) -> dict[str, Any]:
    return {"eventName": MODEL_MOVED_EVENT, "subscribe": subscribe, "config": {}}


def item_load_data(file_name: str, *, custom_data: str) -> dict[str, Any]:
    return {
        "fileName": file_name,
        "positionX": 0,
        "positionY": 0,
        "size": 0.1,
        "animationPlayState": True,
        "useAutoFit": True,
        "customData": custom_data,
    }


def item_pin_data(instance_id: str, art_mesh_id: str) -> dict[str, Any]:
    """Pin an item to an ArtMesh of the current model, keeping angle and size."""
    return {
        "pin": True,
        "itemInstanceID": instance_id,
        "angleRelativeTo": "RelativeToModel",
        "sizeRelativeTo": "RelativeToCurrentItemSize",
        "vertexPinType": "Center",
        "pinInfo": {
            "modelID": "",
            "artMeshID": art_mesh_id,
            "angle": 0,
            "size": 0,
        },
    }


def item_move_data(
    instance_id: str,
    *,
    x: float,
    y: float,
    rotation: float,
    duration: float,
) -> dict[str, Any]:
    return {
        "itemsToMove": [
            {
                "itemInstanceID": instance_id,
                "timeInSeconds": duration,
                "fadeMode": "linear",
                "positionX": x,
                "positionY": y,
                "size": KEEP_SIZE,
                "rotation": rotation,
                "order": KEEP_ORDER,
                "setFlip": False,
                "flip": False,
                "userCanStop": True,
            }
        ]
    }


def unload_all_data() -> dict[str, Any]:
    return {"unloadAllLoadedByThisPlugin": True}
