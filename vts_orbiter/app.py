"""Application wiring: provision the asset, run the session until shutdown."""

from __future__ import annotations

import logging
from functools import partial

from .assets import provision_asset, remove_asset
from .config import OrbiterConfig
from .controls import install_exit_controls
from .credentials import TokenStore
from .errors import AssetProvisionError
from .session import OrbiterSession
from .shutdown import ShutdownCoordinator

_LOGGER = logging.getLogger(__name__)


async def run_orbiter(config: OrbiterConfig, *, exit_controls: bool = True) -> int:
    """Run the orbiter until a shutdown trigger fires.

    Returns:
        Process exit status: 0 after a clean shutdown, 1 if the asset could
        not be provisioned (no connection is attempted in that case).
    """
    try:
        asset_path = provision_asset(
            config.asset_filename, config.public_dir, config.items_dir
        )
    except AssetProvisionError as err:
        _LOGGER.error("[Error] %s", err)
        return 1

    session = OrbiterSession(config, TokenStore(config.token_file))
    coordinator = ShutdownCoordinator(session, grace_delay=config.shutdown_grace)
    coordinator.add_cleanup(partial(remove_asset, asset_path))

    restore_controls = None
    if exit_controls:
        restore_controls = install_exit_controls(coordinator.trigger)
        coordinator.add_cleanup(restore_controls)

    try:
        await session.connect()
        await coordinator.wait()
    finally:
        # Shutdown never ran: release what it would have.
        if not coordinator.finished:
            await session.close()
            remove_asset(asset_path)
            if restore_controls is not None:
                restore_controls()
    return 0
