"""Tests for application wiring."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vts_orbiter.app import run_orbiter
from vts_orbiter.config import OrbiterConfig


@pytest.mark.asyncio
async def test_missing_asset_exits_before_connecting(tmp_path: Path):
    config = OrbiterConfig(public_dir=tmp_path, items_dir=tmp_path)

    with patch("vts_orbiter.app.OrbiterSession") as session_cls:
        assert await run_orbiter(config, exit_controls=False) == 1

    session_cls.assert_not_called()


@pytest.mark.asyncio
async def test_runs_until_shutdown(tmp_path: Path):
    config = OrbiterConfig(token_file=tmp_path / "auth_token.txt")
    session = MagicMock()
    session.connect = AsyncMock(return_value=True)
    coordinator = MagicMock()
    coordinator.wait = AsyncMock()

    with (
        patch(
            "vts_orbiter.app.provision_asset", return_value=tmp_path / "orbiter.png"
        ),
        patch("vts_orbiter.app.OrbiterSession", return_value=session),
        patch("vts_orbiter.app.ShutdownCoordinator", return_value=coordinator),
    ):
        assert await run_orbiter(config, exit_controls=False) == 0

    session.connect.assert_awaited_once()
    coordinator.wait.assert_awaited_once()
    coordinator.add_cleanup.assert_called_once()


@pytest.mark.asyncio
async def test_failed_run_still_restores_terminal(tmp_path: Path):
    config = OrbiterConfig(token_file=tmp_path / "auth_token.txt")
    asset = tmp_path / "orbiter.png"
    asset.write_bytes(b"png")
    session = MagicMock()
    session.connect = AsyncMock(side_effect=RuntimeError("boom"))
    session.close = AsyncMock()
    restore = MagicMock()

    with (
        patch("vts_orbiter.app.provision_asset", return_value=asset),
        patch("vts_orbiter.app.OrbiterSession", return_value=session),
        patch("vts_orbiter.app.install_exit_controls", return_value=restore),
    ):
        with pytest.raises(RuntimeError, match="boom"):
            await run_orbiter(config)

    restore.assert_called_once_with()
    session.close.assert_awaited_once()
    assert not asset.exists()
