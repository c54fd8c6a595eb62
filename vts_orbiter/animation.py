"""Orbit animation driver.

Moves the tracked item along an ellipse around the model's head by sending
one ``ItemMoveRequest`` per tick. The driver holds no handle of its own: it
asks the session for the current item instance id on every tick and does
nothing while there is none, so a tick that fires after a disconnect is a
no-op.

The phase advances only on ticks that emit a move, keeping motion and
emission coupled. It is never reset on reconnect, so the orbit resumes where
it left off.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .config import OrbitConfig
from .protocol import ITEM_MOVE_REQUEST, item_move_data

_LOGGER = logging.getLogger(__name__)

SendRequest = Callable[[str, dict[str, Any]], Awaitable[bool]]


@dataclass
class ModelPose:
    """Last known pose of the model, fed by ModelMovedEvent.

    May be stale between events; it is never interpolated.
    """

    x: float = 0.0
    y: float = 0.0
    rotation: float = 0.0
    size: float = 1.0

    def update(self, model_position: dict[str, Any]) -> None:
        """Apply a ``modelPosition`` payload, keeping fields it omits."""
        self.x = float(model_position.get("positionX", self.x))
        self.y = float(model_position.get("positionY", self.y))
        self.rotation = float(model_position.get("rotation", self.rotation))
        self.size = float(model_position.get("size", self.size))


@dataclass(frozen=True)
class OrbitSample:
    x: float
    y: float
    rotation: float


def phase_to_rotation(phase: float) -> float:
    """Convert a phase in radians to the host's rotation in degrees.

    The angle is normalized to (-180, 180] and negated because the host
    rotates clockwise for positive values.
    """
    degrees = math.degrees(phase) % 360
    if degrees > 180:
        degrees -= 360
    return -degrees


def orbit_sample(phase: float, pose: ModelPose, config: OrbitConfig) -> OrbitSample:
    """Compute the item pose for ``phase``.

    The model size is deliberately ignored so a zoomed-in model does not
    throw the item off-screen.
    """
    center_x = pose.x + config.head_offset_x
    center_y = pose.y + config.head_offset_y
    return OrbitSample(
        x=center_x + math.cos(phase) * config.radius,
        y=center_y + math.sin(phase) * config.radius * config.squash,
        rotation=phase_to_rotation(phase),
    )


class OrbitAnimator:
    """Periodic task that emits move commands while an item handle is live."""

    def __init__(
        self,
        config: OrbitConfig,
        *,
        handle: Callable[[], str | None],
        pose: ModelPose,
        send: SendRequest,
        initial_phase: float = 0.0,
    ) -> None:
        self._config = config
        self._handle = handle
        self._pose = pose
        self._send = send
        self._phase = initial_phase
        self._task: asyncio.Task[None] | None = None

    @property
    def phase(self) -> float:
        return self._phase

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking; a no-op if already running."""
        if self.running:
            return
        _LOGGER.info("[Orbit] Orbiting...")
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Cancel the tick task; safe to call when already stopped."""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        _LOGGER.debug("[Orbit] Stopped at phase %.2f", self._phase)

    async def tick(self) -> bool:
        """Run one animation step. Returns True if a move was sent."""
        instance_id = self._handle()
        if instance_id is None:
            return False

        self._phase += self._config.speed
        sample = orbit_sample(self._phase, self._pose, self._config)
        return await self._send(
            ITEM_MOVE_REQUEST,
            item_move_data(
                instance_id,
                x=sample.x,
                y=sample.y,
                rotation=sample.rotation,
                duration=self._config.move_duration,
            ),
        )

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._config.interval)
                await self.tick()
        except asyncio.CancelledError:
            _LOGGER.debug("[Orbit] Tick loop cancelled")
        except Exception as err:
            _LOGGER.exception("[Orbit] Tick loop error: %s", err)
