"""Keep an item orbiting a VTube Studio model over the public WebSocket API."""

__version__ = "0.1.0"

from .animation import ModelPose, OrbitAnimator, orbit_sample, phase_to_rotation
from .config import OrbiterConfig, OrbitConfig, ReconnectPolicy, load_config
from .credentials import TokenStore
from .errors import (
    AssetProvisionError,
    ConfigError,
    IllegalTransitionError,
    OrbiterConnectionError,
    OrbiterError,
    OrbiterHandshakeError,
    OrbiterTimeout,
    ProtocolError,
)
from .protocol import InboundMessage, RequestCorrelator, build_envelope, parse_inbound
from .session import OrbiterSession, SessionEvent, SessionState
from .shutdown import ShutdownCoordinator
from .transport import VtsWsClient, VtsWsMessage, VtsWsMessageType

__all__ = [
    "AssetProvisionError",
    "ConfigError",
    "IllegalTransitionError",
    "InboundMessage",
    "ModelPose",
    "OrbitAnimator",
    "OrbitConfig",
    "OrbiterConfig",
    "OrbiterConnectionError",
    "OrbiterError",
    "OrbiterHandshakeError",
    "OrbiterSession",
    "OrbiterTimeout",
    "ProtocolError",
    "ReconnectPolicy",
    "RequestCorrelator",
    "SessionEvent",
    "SessionState",
    "ShutdownCoordinator",
    "TokenStore",
    "VtsWsClient",
    "VtsWsMessage",
    "VtsWsMessageType",
    "__version__",
    "build_envelope",
    "load_config",
    "orbit_sample",
    "parse_inbound",
]
