"""Which documents and filesystem events reach the language server."""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Tuple
from urllib.parse import unquote, urlparse

import pathspec
from lsprotocol import types
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

LANGUAGE_ID = "arcane"

# File suffix -> language id, as the host's language association would report it
LANGUAGE_EXTENSIONS = {".arc": LANGUAGE_ID}

FileEventCallback = Callable[[str, types.FileChangeType], None]


def uri_to_path(uri: str) -> Path:
    """Convert file:// URI to filesystem Path."""
    parsed = urlparse(uri)
    return Path(unquote(parsed.path))


def path_to_uri(path: os.PathLike | str) -> str:
    return Path(path).resolve().as_uri()


def language_id_for(path: os.PathLike | str) -> Optional[str]:
    return LANGUAGE_EXTENSIONS.get(Path(path).suffix.lower())


@dataclass(frozen=True)
class DocumentFilter:
    scheme: str
    language: str

    def matches(self, uri: str, language_id: Optional[str]) -> bool:
        return urlparse(uri).scheme == self.scheme and language_id == self.language


@dataclass(frozen=True)
class DocumentSyncPolicy:
    """Document selector plus the glob for out-of-editor file changes."""

    selector: Tuple[DocumentFilter, ...] = (DocumentFilter(scheme="file", language=LANGUAGE_ID),)
    watch_glob: str = "**/*.arc"
    _spec: pathspec.GitIgnoreSpec = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_spec", pathspec.GitIgnoreSpec.from_lines([self.watch_glob]))

    def selects(self, uri: str, language_id: Optional[str]) -> bool:
        return any(f.matches(uri, language_id) for f in self.selector)

    def watches(self, relative_path: str) -> bool:
        """True if a root-relative path (any separator) matches the watch glob."""
        return self._spec.match_file(Path(relative_path).as_posix())


class FileSystemWatcher:
    """Watch a workspace for changes to files matching the policy's glob.

    Events arrive on watchdog's observer thread. When a loop is given the
    callback is scheduled onto it with call_soon_threadsafe, so the session
    only ever sees them on its own event loop.
    """

    def __init__(
        self,
        root: Path,
        policy: DocumentSyncPolicy,
        callback: FileEventCallback,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.root = Path(root).resolve()
        self.policy = policy
        self._callback = callback
        self._loop = loop
        self._observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        if self._observer is not None:
            return
        if not self.root.is_dir():
            logger.warning("Workspace root %s is not a directory; file watching disabled", self.root)
            return
        observer = Observer()
        observer.daemon = True
        observer.schedule(_WatchHandler(self), str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for %s", self.root, self.policy.watch_glob)

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
        logger.info("Stopped watching %s", self.root)

    def notify(self, file_path: str, change: types.FileChangeType) -> None:
        """Filter one filesystem event and hand it to the callback."""
        try:
            rel = os.path.relpath(os.path.realpath(file_path), self.root)
        except ValueError:
            # Different drive on Windows
            return
        if rel == os.curdir or rel.startswith(os.pardir):
            return
        if not self.policy.watches(rel):
            return

        uri = path_to_uri(file_path)
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._dispatch, uri, change)
        else:
            self._dispatch(uri, change)

    def _dispatch(self, uri: str, change: types.FileChangeType) -> None:
        try:
            self._callback(uri, change)
        except Exception:
            logger.error("File event callback failed for %s", uri, exc_info=True)


class _WatchHandler(FileSystemEventHandler):
    """Translate watchdog events into LSP file change types."""

    def __init__(self, watcher: FileSystemWatcher):
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify(os.fsdecode(event.src_path), types.FileChangeType.Created)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify(os.fsdecode(event.src_path), types.FileChangeType.Changed)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify(os.fsdecode(event.src_path), types.FileChangeType.Deleted)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify(os.fsdecode(event.src_path), types.FileChangeType.Deleted)
            self._watcher.notify(os.fsdecode(event.dest_path), types.FileChangeType.Created)
