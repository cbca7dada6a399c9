# Ethan Doughty
# resolve.py
"""Locate the arcane-lsp executable to launch.

Resolution order when no explicit ``arcane.serverPath`` is configured:

    1. <extension>/../target/release/arcane-lsp   (cargo release build)
    2. <extension>/../target/debug/arcane-lsp     (cargo debug build)
    3. arcane-lsp                                 (global install, on PATH)
    4. <extension>/bin/arcane-lsp                 (bundled binary)

The bare command name is accepted without looking on disk; whether it
exists on PATH is only known when the process is spawned. Since it sits
third, the bundled binary is never reached with the default ordering.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from host.config import WorkspaceConfiguration

logger = logging.getLogger(__name__)

SERVER_COMMAND = "arcane-lsp"

PathLike = Union[str, os.PathLike]


def default_candidates(extension_path: PathLike) -> list[str]:
    """Return the fixed candidate list for an extension installed at *extension_path*."""
    base = os.fspath(extension_path)
    return [
        os.path.join(base, "..", "target", "release", SERVER_COMMAND),
        os.path.join(base, "..", "target", "debug", SERVER_COMMAND),
        SERVER_COMMAND,
        os.path.join(base, "bin", SERVER_COMMAND),
    ]


def configured_server_path(config: Optional[WorkspaceConfiguration]) -> Optional[str]:
    """Return the user override, or None when it is unset or empty."""
    if config is None:
        return None
    value = config.get("serverPath")
    if not isinstance(value, str) or value == "":
        return None
    return value


def resolve_server_command(
    config: Optional[WorkspaceConfiguration],
    extension_path: PathLike,
    candidates: Optional[Sequence[str]] = None,
    exists: Callable[[str], bool] = os.path.exists,
) -> Optional[str]:
    """Pick the single command used to launch the server.

    Args:
        config: The ``arcane`` settings section (may be None)
        extension_path: Directory the extension is installed in
        candidates: Override for the fixed candidate list
        exists: Filesystem existence check (injected by tests)

    Returns:
        The chosen path or command name, or None when nothing was accepted
    """
    override = configured_server_path(config)
    if override is not None:
        logger.debug("Using configured server path %s", override)
        return override

    if candidates is None:
        candidates = default_candidates(extension_path)

    for candidate in candidates:
        if candidate == SERVER_COMMAND:
            logger.debug("Falling back to %s on PATH", candidate)
            return candidate
        if exists(candidate):
            logger.debug("Found server at %s", candidate)
            return candidate
        logger.debug("No server at %s", candidate)

    logger.info("No %s candidate accepted under %s", SERVER_COMMAND, Path(extension_path))
    return None
