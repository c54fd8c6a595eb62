"""Persistent storage for the plugin authentication token."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER = logging.getLogger(__name__)


class TokenStore:
    """Keep a single opaque token in a plain-text file.

    A missing or empty file means the plugin has not been authorized yet.
    The store never deletes the file; a token the host rejects has to be
    removed by the operator.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> str | None:
        """Return the stored token, or None if there is none."""
        if not self.path.exists():
            return None
        token = self.path.read_text(encoding="utf-8").strip()
        return token or None

    def save(self, token: str) -> None:
        """Persist ``token``, replacing any previous value."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")
        _LOGGER.info("[Auth] Token saved to %s", self.path)
