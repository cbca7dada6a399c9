"""Extension entry points: activate() wires the client, deactivate() stops it.

There is no module-level client. activate() returns the session it started
and registers its stop() with the context; hosts pass the same session to
deactivate().
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from host.config import WorkspaceConfiguration
from host.context import Disposable, ExtensionContext, ExtensionMode
from host.window import ConsoleWindow, Window
from lsp.diagnostics import DiagnosticCollection
from lsp.launch import LaunchMode, build_server_options
from lsp.session import EXIT_GRACE_SECONDS, ClientFactory, LanguageClientSession, WatcherFactory
from lsp.sync import DocumentSyncPolicy
from runtime.resolve import resolve_server_command

logger = logging.getLogger(__name__)

SERVER_NOT_FOUND_MESSAGE = (
    "Arcane LSP server not found. Please build it with `cargo build --release` "
    "or set arcane.serverPath in settings."
)


async def activate(
    context: ExtensionContext,
    configuration: Optional[WorkspaceConfiguration] = None,
    window: Optional[Window] = None,
    diagnostics: Optional[DiagnosticCollection] = None,
    candidates: Optional[Sequence[str]] = None,
    shutdown_timeout: Optional[float] = None,
    exit_grace: float = EXIT_GRACE_SECONDS,
    client_factory: Optional[ClientFactory] = None,
    watcher_factory: Optional[WatcherFactory] = None,
) -> Optional[LanguageClientSession]:
    """Resolve the server, start a session, and register its disposal.

    The start is scheduled, not awaited: the returned session may still be
    STARTING. Returns None, after one error message, when no server
    executable could be resolved.
    """
    if window is None:
        window = ConsoleWindow()
    if configuration is None:
        configuration = WorkspaceConfiguration()

    command = resolve_server_command(configuration, context.extension_path, candidates=candidates)
    if command is None:
        window.show_error_message(SERVER_NOT_FOUND_MESSAGE)
        return None

    if context.extension_mode is ExtensionMode.DEVELOPMENT:
        mode = LaunchMode.DEBUG
    else:
        mode = LaunchMode.RUN

    session = LanguageClientSession(
        build_server_options(command),
        policy=DocumentSyncPolicy(),
        launch_mode=mode,
        workspace_root=context.workspace_root,
        window=window,
        diagnostics=diagnostics,
        shutdown_timeout=shutdown_timeout,
        exit_grace=exit_grace,
        client_factory=client_factory,
        watcher_factory=watcher_factory,
    )
    session.begin()
    context.subscriptions.append(Disposable(session.stop))
    return session


async def deactivate(session: Optional[LanguageClientSession]) -> None:
    if session is None:
        return
    await session.stop()
