# Ethan Doughty
# window.py
"""User-visible message channel."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, Protocol, TextIO

logger = logging.getLogger(__name__)


class Window(Protocol):
    def show_error_message(self, message: str) -> None: ...

    def show_warning_message(self, message: str) -> None: ...

    def show_information_message(self, message: str) -> None: ...


class ConsoleWindow:
    """Window that prints messages to a stream (stderr by default).

    Every message is also kept in ``messages`` as (kind, text) pairs.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream
        self.messages: List[tuple[str, str]] = []

    def _show(self, kind: str, message: str) -> None:
        self.messages.append((kind, message))
        stream = self.stream if self.stream is not None else sys.stderr
        print(f"{kind.upper()}: {message}", file=stream)

    def show_error_message(self, message: str) -> None:
        logger.debug("error shown: %s", message)
        self._show("error", message)

    def show_warning_message(self, message: str) -> None:
        logger.debug("warning shown: %s", message)
        self._show("warning", message)

    def show_information_message(self, message: str) -> None:
        logger.debug("info shown: %s", message)
        self._show("info", message)
