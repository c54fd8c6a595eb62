"""Orbiter configuration.

Configuration is plain data: frozen dataclasses with defaults matching a
stock VTube Studio install, optionally overridden from a YAML file.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

DEFAULT_PORT = 8001


@dataclass(frozen=True)
class ReconnectPolicy:
    """Fixed-delay reconnect policy.

    Attributes:
        delay: Seconds to wait after a close before reconnecting.
        max_attempts: Give up after this many consecutive failures
            (None retries forever).
    """

    delay: float = 2.0
    max_attempts: int | None = None

    def delay_for(self, attempt: int) -> float | None:
        """Return the delay before ``attempt`` (1-based), or None to give up."""
        if self.max_attempts is not None and attempt > self.max_attempts:
            return None
        return self.delay


@dataclass(frozen=True)
class OrbitConfig:
    """Animation parameters for the orbiting item.

    Attributes:
        interval: Seconds between ticks (~30Hz).
        speed: Phase increment per tick, in radians.
        radius: Horizontal ellipse radius in host coordinates.
        squash: Vertical radius as a fraction of ``radius``.
        head_offset_x: Horizontal offset of the ellipse center from the model.
        head_offset_y: Vertical offset of the ellipse center from the model.
        move_duration: Host-side fade time for each move, in seconds.
    """

    interval: float = 0.033
    speed: float = 0.35
    radius: float = 0.18
    squash: float = 0.5
    head_offset_x: float = 0.0
    head_offset_y: float = 0.75
    move_duration: float = 0.1


@dataclass(frozen=True)
class OrbiterConfig:
    """Top-level orbiter configuration."""

    host: str = "localhost"
    port: int = DEFAULT_PORT
    plugin_name: str = "PyOrbiter"
    plugin_developer: str = "vts-orbiter"
    token_file: Path = Path("auth_token.txt")
    asset_filename: str = "orbiter.png"
    public_dir: Path = Path("public")
    items_dir: Path | None = None
    subscribe_model_events: bool = True
    pin_art_mesh_id: str | None = None
    connect_timeout: float = 15.0
    shutdown_grace: float = 0.2
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)
    animation: OrbitConfig = field(default_factory=OrbitConfig)

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def custom_data(self) -> str:
        """Tag stored on spawned items so they can be told apart in the host."""
        return f"{self.plugin_name}_Orbit_Item"


_PATH_FIELDS = frozenset({"token_file", "public_dir", "items_dir"})


def _build(cls: type, data: dict[str, Any], section: str) -> Any:
    """Instantiate a config dataclass, rejecting unknown keys."""
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(
            f"Unknown {section} option(s): {', '.join(sorted(unknown))}"
        )
    try:
        return cls(**data)
    except TypeError as err:
        raise ConfigError(f"Invalid {section} section: {err}") from err


def config_from_dict(data: dict[str, Any]) -> OrbiterConfig:
    """Build an OrbiterConfig from a parsed mapping."""
    values = dict(data)

    reconnect = values.pop("reconnect", None) or {}
    animation = values.pop("animation", None) or {}
    if not isinstance(reconnect, dict) or not isinstance(animation, dict):
        raise ConfigError("reconnect and animation must be mappings")

    for name in _PATH_FIELDS & values.keys():
        if values[name] is not None:
            values[name] = Path(values[name]).expanduser()

    return _build(
        OrbiterConfig,
        {
            **values,
            "reconnect": _build(ReconnectPolicy, reconnect, "reconnect"),
            "animation": _build(OrbitConfig, animation, "animation"),
        },
        "top-level",
    )


def load_config(path: Path | None = None) -> OrbiterConfig:
    """Load configuration from a YAML file, or defaults when ``path`` is None."""
    if path is None:
        return OrbiterConfig()
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as err:
        raise ConfigError(f"Invalid YAML in {path}: {err}") from err
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return config_from_dict(data)
