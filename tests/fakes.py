"""Stand-ins for the pygls client, its server process, and the watcher.

All of them record what happens to them in a shared ``events`` list so
tests can assert on ordering (shutdown acknowledged before the process is
torn down, watcher stopped before shutdown, and so on).

Like pygls, FakeClient.stop() only waits for the process; a process that
ignores exit stays alive until the session terminates or kills it.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from lsprotocol import types


class FakeProcess:
    """Just enough of asyncio.subprocess.Process for the session."""

    pid = 4242

    def __init__(self, events: List[Any], ignore_terminate: bool = False):
        self.events = events
        self.ignore_terminate = ignore_terminate
        self.returncode: Optional[int] = None
        self._exited = asyncio.Event()

    def finish(self, returncode: int) -> None:
        if self.returncode is None:
            self.returncode = returncode
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def terminate(self) -> None:
        self.events.append("terminate")
        if not self.ignore_terminate:
            self.finish(-15)

    def kill(self) -> None:
        self.events.append("kill")
        self.finish(-9)


class FakeClient:
    def __init__(
        self,
        events: List[Any],
        fail_spawn: bool = False,
        fail_initialize: bool = False,
        fail_shutdown: bool = False,
        hang_shutdown: bool = False,
        ignore_exit: bool = False,
        ignore_terminate: bool = False,
        handshake_gate: Optional[asyncio.Event] = None,
    ):
        self.events = events
        self.fail_spawn = fail_spawn
        self.fail_initialize = fail_initialize
        self.fail_shutdown = fail_shutdown
        self.hang_shutdown = hang_shutdown
        self.ignore_exit = ignore_exit
        self.ignore_terminate = ignore_terminate
        self.handshake_gate = handshake_gate
        self.handlers: Dict[str, Callable] = {}
        self.sent: List[tuple] = []
        self.spawn_env: Optional[dict] = None
        self.initialize_params: Optional[types.InitializeParams] = None
        self._server: Optional[FakeProcess] = None

    def feature(self, name: str):
        def decorator(f):
            # pygls does the same; bound methods raise AttributeError here
            f.reg_name = name
            self.handlers[name] = f
            return f
        return decorator

    async def start_io(self, cmd: str, *args, **kwargs) -> None:
        self.events.append(("spawn", cmd))
        self.spawn_env = kwargs.get("env")
        if self.fail_spawn:
            raise FileNotFoundError(2, "No such file or directory", cmd)
        self._server = FakeProcess(self.events, ignore_terminate=self.ignore_terminate)

    async def initialize_async(self, params: types.InitializeParams) -> types.InitializeResult:
        self.events.append("initialize")
        self.initialize_params = params
        if self.handshake_gate is not None:
            await self.handshake_gate.wait()
        if self.fail_initialize:
            raise RuntimeError("initialize rejected: unsupported client")
        return types.InitializeResult(capabilities=types.ServerCapabilities())

    def initialized(self, params) -> None:
        self.events.append("initialized")

    async def shutdown_async(self, params) -> None:
        self.events.append("shutdown")
        await asyncio.sleep(0)
        if self.hang_shutdown:
            await asyncio.Event().wait()
        if self.fail_shutdown:
            raise RuntimeError("server went away")
        self.events.append("shutdown-ack")

    def exit(self, params) -> None:
        self.events.append("exit")
        if self._server is not None and not self.ignore_exit:
            self._server.finish(0)

    async def stop(self) -> None:
        self.events.append("client-stop")
        if self._server is not None:
            await self._server.wait()

    def text_document_did_open(self, params) -> None:
        self.sent.append(("didOpen", params))

    def text_document_did_change(self, params) -> None:
        self.sent.append(("didChange", params))

    def text_document_did_save(self, params) -> None:
        self.sent.append(("didSave", params))

    def text_document_did_close(self, params) -> None:
        self.sent.append(("didClose", params))

    def workspace_did_change_watched_files(self, params) -> None:
        self.sent.append(("didChangeWatchedFiles", params))


class FakeWatcher:
    def __init__(self, events: List[Any], root, policy, callback, loop=None):
        self.events = events
        self.root = root
        self.policy = policy
        self.callback = callback
        self.loop = loop

    def start(self) -> None:
        self.events.append("watch-start")

    def stop(self) -> None:
        self.events.append("watch-stop")


class Harness:
    """Collects the fakes a session creates."""

    def __init__(self, **client_options):
        self.events: List[Any] = []
        self.clients: List[FakeClient] = []
        self.watchers: List[FakeWatcher] = []
        self.client_options = client_options

    def client_factory(self, session) -> FakeClient:
        client = FakeClient(self.events, **self.client_options)
        self.clients.append(client)
        return client

    def watcher_factory(self, root, policy, callback, loop=None) -> FakeWatcher:
        watcher = FakeWatcher(self.events, root, policy, callback, loop)
        self.watchers.append(watcher)
        return watcher

    @property
    def client(self) -> FakeClient:
        return self.clients[-1]

    @property
    def process(self) -> Optional[FakeProcess]:
        return self.client._server

    def sent_methods(self) -> List[str]:
        return [method for method, _ in self.client.sent]
