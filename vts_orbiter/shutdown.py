"""Graceful shutdown: unload the item, close the socket, then let go."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .protocol import ITEM_UNLOAD_REQUEST, unload_all_data

if TYPE_CHECKING:
    from .session import OrbiterSession

_LOGGER = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Run the shutdown sequence once, from any external trigger.

    ``trigger()`` is the single entry point. It is synchronous so signal
    handlers and key readers can call it directly, and idempotent so a
    second Ctrl+C does not unload twice. ``wait()`` returns once the grace
    delay after closing has elapsed; the caller then ends the process.
    """

    def __init__(
        self,
        session: OrbiterSession,
        *,
        grace_delay: float = 0.2,
    ) -> None:
        self._session = session
        self._grace_delay = grace_delay
        self._cleanups: list[Callable[[], object]] = []
        self._task: asyncio.Task[None] | None = None
        self._finished = asyncio.Event()

    @property
    def triggered(self) -> bool:
        return self._task is not None

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def add_cleanup(self, callback: Callable[[], object]) -> None:
        """Register a callback to run once the socket is closed."""
        self._cleanups.append(callback)

    def trigger(self) -> asyncio.Task[None]:
        """Start the shutdown sequence; returns the running sequence task."""
        if self._task is None:
            _LOGGER.info("[Exit] Cleaning up...")
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def wait(self) -> None:
        """Block until shutdown has fully completed."""
        await self._finished.wait()

    async def _run(self) -> None:
        try:
            await self._session.send_request(ITEM_UNLOAD_REQUEST, unload_all_data())
            await self._session.close()

            for callback in self._cleanups:
                try:
                    callback()
                except Exception as err:
                    _LOGGER.exception("[Exit] Cleanup callback error: %s", err)

            # Give the unload frame time to leave the socket buffers.
            await asyncio.sleep(self._grace_delay)
        finally:
            self._finished.set()
            _LOGGER.info("[Exit] Done.")
