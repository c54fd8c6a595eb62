"""Wire external shutdown triggers (signals, 'q' keypress) to the coordinator."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Callable
from typing import Any, TextIO

_LOGGER = logging.getLogger(__name__)

_QUIT_KEYS = frozenset({"q", "Q", "\x03"})


def install_exit_controls(
    trigger: Callable[[], Any],
    *,
    stdin: TextIO | None = None,
) -> Callable[[], None]:
    """Route SIGINT/SIGTERM and 'q'/Ctrl+C keypresses to ``trigger``.

    Keypresses are only read from an interactive POSIX terminal, which is put
    in cbreak mode for the duration.

    Returns:
        A callable that removes the handlers and restores the terminal.
    """
    loop = asyncio.get_running_loop()
    restorers: list[Callable[[], None]] = []

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, trigger)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            continue
        restorers.append(lambda sig=sig: loop.remove_signal_handler(sig))

    stream = stdin if stdin is not None else sys.stdin
    restore_tty = _install_key_reader(loop, stream, trigger)
    if restore_tty is not None:
        restorers.append(restore_tty)
        _LOGGER.info("[Controls] Press 'q' or Ctrl+C to quit.")

    def restore() -> None:
        while restorers:
            restorers.pop()()

    return restore


def _install_key_reader(
    loop: asyncio.AbstractEventLoop,
    stream: TextIO,
    trigger: Callable[[], Any],
) -> Callable[[], None] | None:
    if not stream.isatty():
        return None
    try:
        import termios
        import tty
    except ImportError:
        return None

    fd = stream.fileno()
    saved = termios.tcgetattr(fd)
    tty.setcbreak(fd)

    def on_key() -> None:
        # Unbuffered read; one burst may carry several keys.
        try:
            chunk = os.read(fd, 64)
        except OSError:
            chunk = b""
        if not chunk:
            loop.remove_reader(fd)
            return
        if _QUIT_KEYS.intersection(chunk.decode("utf-8", errors="ignore")):
            trigger()

    loop.add_reader(fd, on_key)

    def restore() -> None:
        loop.remove_reader(fd)
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)

    return restore
