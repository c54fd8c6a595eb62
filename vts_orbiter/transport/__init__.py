"""Transport layer: WebSocket connection management and frame iteration."""

from .ws_client import VtsWsClient, VtsWsMessage, VtsWsMessageType

__all__ = [
    "VtsWsClient",
    "VtsWsMessage",
    "VtsWsMessageType",
]
