# Ethan Doughty
# context.py
"""Extension context handed to activate(): install path, mode, subscriptions."""

from __future__ import annotations

import enum
import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Union

logger = logging.getLogger(__name__)

DisposeCallback = Callable[[], Union[None, Awaitable[Any]]]


class ExtensionMode(enum.Enum):
    """How the host launched the extension."""
    PRODUCTION = 1
    DEVELOPMENT = 2
    TEST = 3


class Disposable:
    """A callback the host runs once when the extension unloads."""

    def __init__(self, callback: DisposeCallback):
        self._callback: Optional[DisposeCallback] = callback

    @property
    def disposed(self) -> bool:
        return self._callback is None

    async def dispose(self) -> None:
        callback, self._callback = self._callback, None
        if callback is None:
            return
        result = callback()
        if inspect.isawaitable(result):
            await result


@dataclass
class ExtensionContext:
    """What the host knows about this extension's installation."""
    extension_path: Path
    workspace_root: Path = field(default_factory=Path.cwd)
    extension_mode: ExtensionMode = ExtensionMode.PRODUCTION
    subscriptions: List[Disposable] = field(default_factory=list)

    async def dispose_subscriptions(self) -> None:
        """Dispose registered subscriptions, newest first.

        A failing disposable is logged and the rest still run.
        """
        while self.subscriptions:
            disposable = self.subscriptions.pop()
            try:
                await disposable.dispose()
            except Exception:
                logger.error("Disposable %r failed during unload", disposable, exc_info=True)
