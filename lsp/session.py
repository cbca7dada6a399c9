"""Protocol session with the arcane-lsp process.

A session owns one pygls LanguageClient, the process it spawns, and the
file watcher feeding it. States only move forward:

    UNINITIALIZED -> STARTING -> RUNNING -> STOPPING -> STOPPED

A start that fails (spawn error, broken handshake) jumps to STOPPED.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional

from lsprotocol import types
from pygls.lsp.client import LanguageClient

from host.window import ConsoleWindow, Window
from lsp.diagnostics import DiagnosticCollection
from lsp.launch import LaunchMode, ServerOptions
from lsp.sync import DocumentSyncPolicy, FileSystemWatcher
from runtime.errors import SessionStateError

logger = logging.getLogger(__name__)

CLIENT_ID = "arcaneLsp"
CLIENT_NAME = "Arcane Language Server"
CLIENT_VERSION = "v1.0"

# LSP MessageType -> logging level for window/logMessage
_LOG_LEVELS = {
    types.MessageType.Error: logging.ERROR,
    types.MessageType.Warning: logging.WARNING,
    types.MessageType.Info: logging.INFO,
    types.MessageType.Log: logging.DEBUG,
}


EXIT_GRACE_SECONDS = 2.0


async def _wait_process(process, timeout: float) -> bool:
    """Wait up to *timeout* seconds for *process*; True if it exited."""
    try:
        await asyncio.wait_for(process.wait(), timeout)
    except asyncio.TimeoutError:
        return False
    return True


def _signal_process(process, action: str) -> None:
    try:
        getattr(process, action)()
    except ProcessLookupError:
        pass


class SessionState(enum.IntEnum):
    UNINITIALIZED = 0
    STARTING = 1
    RUNNING = 2
    STOPPING = 3
    STOPPED = 4


class ArcaneLanguageClient(LanguageClient):
    """pygls client that reports transport errors and server exit to its session."""

    def __init__(self, session: "LanguageClientSession"):
        super().__init__(CLIENT_ID, CLIENT_VERSION)
        self._session = session

    def report_server_error(self, error, source) -> None:
        logger.error("%s protocol error (%s): %s", CLIENT_NAME, source, error, exc_info=error)

    async def server_exit(self, server) -> None:
        self._session.on_server_exit(server.returncode)


ClientFactory = Callable[["LanguageClientSession"], LanguageClient]
WatcherFactory = Callable[..., FileSystemWatcher]


class LanguageClientSession:
    """Start, feed, and stop one arcane-lsp process.

    Args:
        server_options: Run/debug launch descriptors
        policy: Which documents and file events are forwarded
        launch_mode: Which descriptor of server_options to launch
        workspace_root: Root sent in initialize and watched for file changes
        window: User-visible message channel
        diagnostics: Where published diagnostics are stored
        shutdown_timeout: Seconds to wait for the shutdown response (None waits forever)
        exit_grace: Seconds the process gets to exit on its own before it is terminated
        client_factory: Builds the protocol client (tests inject fakes)
        watcher_factory: Builds the file watcher (tests inject fakes)
    """

    def __init__(
        self,
        server_options: ServerOptions,
        policy: Optional[DocumentSyncPolicy] = None,
        launch_mode: LaunchMode = LaunchMode.RUN,
        workspace_root: Optional[Path] = None,
        window: Optional[Window] = None,
        diagnostics: Optional[DiagnosticCollection] = None,
        shutdown_timeout: Optional[float] = None,
        exit_grace: float = EXIT_GRACE_SECONDS,
        client_factory: Optional[ClientFactory] = None,
        watcher_factory: Optional[WatcherFactory] = None,
    ):
        self.server_options = server_options
        self.policy = policy or DocumentSyncPolicy()
        self.launch_mode = launch_mode
        self.workspace_root = Path(workspace_root or Path.cwd()).resolve()
        self.window = window or ConsoleWindow()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollection()
        self.shutdown_timeout = shutdown_timeout
        self.exit_grace = exit_grace
        self._client_factory = client_factory or ArcaneLanguageClient
        self._watcher_factory = watcher_factory or FileSystemWatcher

        self.state = SessionState.UNINITIALIZED
        self.server_capabilities: Optional[types.ServerCapabilities] = None
        self._client: Optional[LanguageClient] = None
        self._watcher: Optional[FileSystemWatcher] = None
        self._initialized = False
        self._server_exited = False
        self._start_task: Optional[asyncio.Task] = None
        self._stop_task: Optional[asyncio.Task] = None
        # Notifications issued while STARTING, flushed in order once RUNNING
        self._pending: List[Callable[[LanguageClient], None]] = []
        # Open document URI -> last version sent
        self._versions: Dict[str, int] = {}

    def __repr__(self) -> str:
        return f"LanguageClientSession({self.command!r}, {self.state.name})"

    @property
    def command(self) -> str:
        return self.server_options.for_mode(self.launch_mode).command

    @property
    def is_running(self) -> bool:
        return self.state is SessionState.RUNNING

    def _transition(self, new_state: SessionState) -> None:
        if new_state <= self.state:
            raise SessionStateError(f"cannot move to {new_state.name}", self.state.name)
        logger.debug("%s: %s -> %s", CLIENT_ID, self.state.name, new_state.name)
        self.state = new_state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin(self) -> asyncio.Task:
        """Move to STARTING and schedule the start on the running loop.

        Returns the start task; callers that need RUNNING can await it.
        """
        if self._start_task is not None:
            return self._start_task
        loop = asyncio.get_running_loop()
        self._transition(SessionState.STARTING)
        self._start_task = loop.create_task(self._start(loop))
        return self._start_task

    async def start(self) -> None:
        """Start the session and wait for the handshake to finish.

        Failures do not raise; they leave the session STOPPED.
        """
        if self.state is SessionState.UNINITIALIZED:
            self.begin()
        if self._start_task is not None:
            await self._start_task

    async def _start(self, loop: asyncio.AbstractEventLoop) -> None:
        descriptor = self.server_options.for_mode(self.launch_mode)
        logger.info("Starting %s (%s mode): %s", CLIENT_NAME, self.launch_mode.value, descriptor.command)
        try:
            client = self._client_factory(self)
            self._client = client
            self._register_handlers(client)
            await client.start_io(descriptor.command, env=dict(descriptor.env))
            result = await client.initialize_async(self._initialize_params())
            client.initialized(types.InitializedParams())
        except Exception as e:
            logger.error("Failed to start %s from %s: %s", CLIENT_NAME, descriptor.command, e, exc_info=True)
            self.window.show_error_message(f"Couldn't start client {CLIENT_NAME}: {e}")
            await self._close_client()
            if self.state is SessionState.STARTING:
                self._transition(SessionState.STOPPED)
            return

        self._initialized = True
        self.server_capabilities = getattr(result, "capabilities", None)
        if self.state is not SessionState.STARTING:
            # stop() arrived during the handshake and will finish the shutdown
            return

        self._transition(SessionState.RUNNING)
        logger.info("%s running", CLIENT_NAME)
        self._start_watcher(loop)
        pending, self._pending = self._pending, []
        for send in pending:
            send(client)

    async def stop(self) -> None:
        """Shut the server down gracefully; safe to call any number of times."""
        if self.state is SessionState.UNINITIALIZED:
            return
        if self._stop_task is None:
            if self.state is SessionState.STOPPED:
                return
            self._stop_task = asyncio.get_running_loop().create_task(self._stop())
        await self._stop_task

    async def _stop(self) -> None:
        self._transition(SessionState.STOPPING)
        if self._start_task is not None and not self._start_task.done():
            await self._start_task

        self._stop_watcher()
        client = self._client
        if client is not None and self._initialized and not self._server_exited:
            try:
                await asyncio.wait_for(client.shutdown_async(None), self.shutdown_timeout)
                logger.debug("%s acknowledged shutdown", CLIENT_NAME)
            except Exception as e:
                logger.warning("Shutdown of %s did not complete: %s", CLIENT_NAME, e, exc_info=True)
            try:
                client.exit(None)
            except Exception as e:
                logger.debug("Could not send exit to %s: %s", CLIENT_NAME, e)
        await self._close_client()

        self._pending.clear()
        self._versions.clear()
        self._transition(SessionState.STOPPED)
        logger.info("%s stopped", CLIENT_NAME)

    async def _close_client(self) -> None:
        """Reap the server process, forcing it down if it does not exit on its own.

        LanguageClient.stop() only waits for the process, so a server that
        ignores exit (or never got one) is terminated, then killed.
        """
        client, self._client = self._client, None
        if client is None:
            return
        process = getattr(client, "_server", None)
        if process is not None and process.returncode is None:
            if not await _wait_process(process, self.exit_grace):
                logger.warning("%s did not exit after %.1fs; terminating", CLIENT_NAME, self.exit_grace)
                _signal_process(process, "terminate")
                if not await _wait_process(process, self.exit_grace):
                    logger.warning("%s ignored terminate; killing pid %s", CLIENT_NAME, process.pid)
                    _signal_process(process, "kill")
                    await process.wait()
        try:
            await client.stop()
        except Exception:
            logger.error("Error while stopping %s", CLIENT_NAME, exc_info=True)

    def on_server_exit(self, returncode: Optional[int]) -> None:
        self._server_exited = True
        if self.state is SessionState.RUNNING:
            logger.error("%s exited unexpectedly with code %s", CLIENT_NAME, returncode)
            self.window.show_error_message(
                f"{CLIENT_NAME} exited unexpectedly (exit code {returncode})."
            )
        else:
            logger.debug("%s exited with code %s", CLIENT_NAME, returncode)

    def _start_watcher(self, loop: asyncio.AbstractEventLoop) -> None:
        watcher = self._watcher_factory(self.workspace_root, self.policy, self._on_file_event, loop)
        try:
            watcher.start()
        except OSError as e:
            logger.warning("File watching disabled for %s: %s", self.workspace_root, e)
            return
        self._watcher = watcher

    def _stop_watcher(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()

    def _initialize_params(self) -> types.InitializeParams:
        root_uri = self.workspace_root.as_uri()
        return types.InitializeParams(
            process_id=os.getpid(),
            root_uri=root_uri,
            workspace_folders=[types.WorkspaceFolder(uri=root_uri, name=self.workspace_root.name)],
            capabilities=types.ClientCapabilities(
                text_document=types.TextDocumentClientCapabilities(
                    synchronization=types.TextDocumentSyncClientCapabilities(did_save=True),
                    publish_diagnostics=types.PublishDiagnosticsClientCapabilities(),
                ),
                workspace=types.WorkspaceClientCapabilities(
                    did_change_watched_files=types.DidChangeWatchedFilesClientCapabilities(),
                    workspace_folders=True,
                ),
            ),
        )

    # ------------------------------------------------------------------
    # Server -> client notifications
    # ------------------------------------------------------------------

    def _register_handlers(self, client: LanguageClient) -> None:
        # pygls tags handlers with attributes, which bound methods refuse
        @client.feature(types.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS)
        def publish_diagnostics(params):
            self._on_publish_diagnostics(params)

        @client.feature(types.WINDOW_LOG_MESSAGE)
        def log_message(params):
            self._on_log_message(params)

        @client.feature(types.WINDOW_SHOW_MESSAGE)
        def show_message(params):
            self._on_show_message(params)

    def _on_publish_diagnostics(self, params: types.PublishDiagnosticsParams) -> None:
        logger.debug("%d diagnostics for %s", len(params.diagnostics), params.uri)
        self.diagnostics.set(params.uri, params.diagnostics)

    def _on_log_message(self, params: types.LogMessageParams) -> None:
        logger.log(_LOG_LEVELS.get(params.type, logging.DEBUG), "[%s] %s", CLIENT_ID, params.message)

    def _on_show_message(self, params: types.ShowMessageParams) -> None:
        if params.type == types.MessageType.Error:
            self.window.show_error_message(params.message)
        elif params.type == types.MessageType.Warning:
            self.window.show_warning_message(params.message)
        else:
            logger.info("[%s] %s", CLIENT_ID, params.message)

    # ------------------------------------------------------------------
    # Client -> server document sync
    # ------------------------------------------------------------------

    def _send(self, send: Callable[[LanguageClient], None]) -> None:
        if self.state is SessionState.RUNNING:
            send(self._client)
        elif self.state is SessionState.STARTING:
            self._pending.append(send)
        else:
            raise SessionStateError("session is not accepting documents", self.state.name)

    def did_open(self, uri: str, language_id: Optional[str], text: str, version: int = 1) -> bool:
        """Forward an opened document if the selector matches it.

        Returns False when the document is not one the server handles.
        """
        if not self.policy.selects(uri, language_id):
            logger.debug("Not forwarding %s (language %s)", uri, language_id)
            return False
        params = types.DidOpenTextDocumentParams(
            text_document=types.TextDocumentItem(
                uri=uri, language_id=language_id, version=version, text=text
            )
        )
        self._send(lambda client: client.text_document_did_open(params))
        self._versions[uri] = version
        return True

    def did_change(self, uri: str, text: str) -> bool:
        if uri not in self._versions:
            return False
        version = self._versions[uri] + 1
        params = types.DidChangeTextDocumentParams(
            text_document=types.VersionedTextDocumentIdentifier(uri=uri, version=version),
            content_changes=[types.TextDocumentContentChangeWholeDocument(text=text)],
        )
        self._send(lambda client: client.text_document_did_change(params))
        self._versions[uri] = version
        return True

    def did_save(self, uri: str, text: Optional[str] = None) -> bool:
        if uri not in self._versions:
            return False
        params = types.DidSaveTextDocumentParams(
            text_document=types.TextDocumentIdentifier(uri=uri), text=text
        )
        self._send(lambda client: client.text_document_did_save(params))
        return True

    def did_close(self, uri: str) -> bool:
        if uri not in self._versions:
            return False
        params = types.DidCloseTextDocumentParams(text_document=types.TextDocumentIdentifier(uri=uri))
        self._send(lambda client: client.text_document_did_close(params))
        del self._versions[uri]
        return True

    def _on_file_event(self, uri: str, change: types.FileChangeType) -> None:
        if self.state is not SessionState.RUNNING:
            return
        params = types.DidChangeWatchedFilesParams(changes=[types.FileEvent(uri=uri, type=change)])
        self._client.workspace_did_change_watched_files(params)
