"""Launch descriptors for the arcane-lsp process."""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional


class LaunchMode(enum.Enum):
    RUN = "run"
    DEBUG = "debug"


@dataclass(frozen=True)
class LaunchDescriptor:
    """Command plus the environment the server process inherits."""

    command: str
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServerOptions:
    """Descriptors for both launch modes.

    The client does not change behavior between modes; the server is
    expected to pick up debug settings from its own flags or environment.
    """

    run: LaunchDescriptor
    debug: LaunchDescriptor

    def for_mode(self, mode: LaunchMode) -> LaunchDescriptor:
        return self.debug if mode is LaunchMode.DEBUG else self.run


def build_server_options(command: str, env: Optional[Mapping[str, str]] = None) -> ServerOptions:
    """Bind one descriptor for *command* to both launch modes.

    The environment defaults to a snapshot of the calling process's
    environment, passed through unfiltered.
    """
    inherited: Dict[str, str] = dict(os.environ if env is None else env)
    descriptor = LaunchDescriptor(command=command, env=inherited)
    return ServerOptions(run=descriptor, debug=descriptor)
