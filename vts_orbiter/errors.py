"""Error types for the VTube Studio orbiter."""

from __future__ import annotations


class OrbiterError(Exception):
    """Base error for orbiter failures."""


class OrbiterTimeout(OrbiterError):
    """Timeout while communicating with the host application."""


class OrbiterConnectionError(OrbiterError):
    """Network connection to the host application failed."""


class OrbiterHandshakeError(OrbiterError):
    """WebSocket handshake failed."""


class ProtocolError(OrbiterError):
    """Inbound frame could not be parsed into an API envelope."""


class IllegalTransitionError(OrbiterError):
    """A session event arrived in a state that does not accept it."""

    def __init__(self, state: object, event: object) -> None:
        super().__init__(f"Event {event} is not valid in state {state}")
        self.state = state
        self.event = event


class ConfigError(OrbiterError):
    """Configuration file is missing or malformed."""


class AssetProvisionError(OrbiterError):
    """The item asset could not be placed where the host can read it."""
