"""Place the item image where VTube Studio can load it.

VTube Studio only loads items from the ``Items`` folder inside its
StreamingAssets directory, so the asset is copied there before the session
connects. Failures here are fatal to startup.
"""

from __future__ import annotations

import logging
import shutil
import sys
from collections.abc import Iterable
from pathlib import Path

from .errors import AssetProvisionError

_LOGGER = logging.getLogger(__name__)

_ITEMS_SUFFIX = Path("VTube Studio_Data", "StreamingAssets", "Items")


def candidate_items_dirs(
    platform: str | None = None, home: Path | None = None
) -> list[Path]:
    """Return well-known Items directories for a Steam install on ``platform``."""
    platform = platform or sys.platform
    home = home or Path.home()

    if platform == "win32":
        libraries = [
            Path("C:/Program Files (x86)/Steam/steamapps/common"),
            Path("C:/Program Files/Steam/steamapps/common"),
            Path("D:/Steam/steamapps/common"),
            Path("D:/SteamLibrary/steamapps/common"),
        ]
        return [lib / "VTube Studio" / _ITEMS_SUFFIX for lib in libraries]
    if platform == "darwin":
        return [
            Path(
                "/Applications/VTube Studio.app/Contents/Resources/Data/"
                "StreamingAssets/Items"
            ),
            home
            / "Library/Application Support/Steam/steamapps/common/VTube Studio"
            / _ITEMS_SUFFIX,
        ]
    return [home / ".steam/steam/steamapps/common/VTube Studio" / _ITEMS_SUFFIX]


def find_items_dir(candidates: Iterable[Path] | None = None) -> Path | None:
    """Return the first existing Items directory, or None."""
    for path in candidates if candidates is not None else candidate_items_dirs():
        if path.is_dir():
            return path
    return None


def provision_asset(
    filename: str, public_dir: Path, items_dir: Path | None = None
) -> Path:
    """Copy ``public_dir/filename`` into the host's Items directory.

    Args:
        filename: Asset file name, also the name VTube Studio loads it by.
        public_dir: Local directory holding the asset.
        items_dir: Items directory override; auto-detected when None.

    Returns:
        The destination path of the copied asset.

    Raises:
        AssetProvisionError: If the asset or Items directory is missing, or
            the copy fails.
    """
    _LOGGER.info("[Setup] Preparing to load: %s", filename)

    source = public_dir / filename
    if not source.is_file():
        raise AssetProvisionError(
            f"File not found in public folder: {source}. "
            f"Put '{filename}' inside '{public_dir}'."
        )

    target_dir = items_dir if items_dir is not None else find_items_dir()
    if target_dir is None or not target_dir.is_dir():
        raise AssetProvisionError(
            "Could not find the VTube Studio Items folder. Set items_dir or "
            "install VTube Studio in a standard Steam library location."
        )

    destination = target_dir / filename
    _LOGGER.info("[Setup] Copying asset to: %s", target_dir)
    try:
        shutil.copyfile(source, destination)
    except OSError as err:
        raise AssetProvisionError(f"Failed to copy asset: {err}") from err
    _LOGGER.info("[Setup] Asset copied successfully.")
    return destination


def remove_asset(path: Path) -> None:
    """Delete a provisioned asset; a missing file is not an error."""
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as err:
        _LOGGER.warning("[Exit] Could not remove %s: %s", path, err)
        return
    _LOGGER.debug("[Exit] Removed %s", path)
