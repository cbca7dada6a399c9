# Ethan Doughty
# arcane.py
"""Command-line host for the Arcane language client.

Plays the editor's part: reads settings, activates the client, forwards
.arc files to arcane-lsp and prints the diagnostics it publishes.

    python3 arcane.py resolve
    python3 arcane.py check examples/hello.arc
    python3 arcane.py watch src/
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from lsprotocol import types

from host.config import WorkspaceConfiguration
from host.context import ExtensionContext, ExtensionMode
from host.window import ConsoleWindow
from lsp.diagnostics import DiagnosticCollection, format_diagnostic
from lsp.extension import SERVER_NOT_FOUND_MESSAGE, activate, deactivate
from lsp.session import SessionState
from lsp.sync import language_id_for, path_to_uri, uri_to_path
from runtime.errors import ArcaneClientError
from runtime.resolve import resolve_server_command

logger = logging.getLogger("arcane")

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_NO_SERVER = 2


def _configuration(args: argparse.Namespace) -> WorkspaceConfiguration:
    settings = Path(args.settings) if args.settings else None
    return WorkspaceConfiguration.from_file(settings).with_overrides(serverPath=args.server_path)


def _context(args: argparse.Namespace) -> ExtensionContext:
    mode = ExtensionMode.DEVELOPMENT if args.debug_mode else ExtensionMode.PRODUCTION
    return ExtensionContext(
        extension_path=Path(args.extension_path).resolve(),
        workspace_root=Path(args.workspace).resolve(),
        extension_mode=mode,
    )


def _collect_files(paths: List[str]) -> List[Path]:
    """Expand directories to the .arc files under them."""
    files: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(p for p in sorted(path.rglob("*")) if p.is_file() and language_id_for(p))
        else:
            files.append(path)
    return files


def _print_diagnostics(collection: DiagnosticCollection, uri: str) -> int:
    """Print one document's diagnostics; return how many are errors."""
    location = str(uri_to_path(uri))
    errors = 0
    for diag in collection.get(uri):
        print(format_diagnostic(diag, location))
        if diag.severity in (None, types.DiagnosticSeverity.Error):
            errors += 1
    return errors


def run_resolve(args: argparse.Namespace) -> int:
    """Print the command that would be launched."""
    command = resolve_server_command(_configuration(args), _context(args).extension_path)
    if command is None:
        print(f"ERROR: {SERVER_NOT_FOUND_MESSAGE}")
        return EXIT_NO_SERVER
    print(command)
    return EXIT_OK


async def run_check(args: argparse.Namespace) -> int:
    """Open each file, wait for its diagnostics, print them, shut down.

    Returns:
        0 when no errors were reported, 1 when at least one error was,
        2 when the server could not be found or started
    """
    files = _collect_files(args.files)
    missing = [f for f in files if not f.is_file()]
    if missing:
        for f in missing:
            print(f"ERROR: file not found: {f}")
        return EXIT_DIAGNOSTICS

    received: Dict[str, asyncio.Event] = {}

    def on_diagnostics(uri: str, diagnostics) -> None:
        received.setdefault(uri, asyncio.Event()).set()

    context = _context(args)
    collection = DiagnosticCollection(listener=on_diagnostics)
    session = await activate(
        context,
        _configuration(args),
        window=ConsoleWindow(),
        diagnostics=collection,
        shutdown_timeout=args.shutdown_timeout,
    )
    if session is None:
        return EXIT_NO_SERVER

    try:
        await session.start()
        if session.state is not SessionState.RUNNING:
            return EXIT_NO_SERVER

        uris = []
        for f in files:
            uri = path_to_uri(f)
            text = f.read_text(encoding="utf-8", errors="replace")
            if session.did_open(uri, language_id_for(f), text):
                uris.append(uri)
                received.setdefault(uri, asyncio.Event())
            else:
                logger.warning("Skipping %s: not an Arcane source file", f)

        waits = [received[uri].wait() for uri in uris]
        if waits:
            try:
                await asyncio.wait_for(asyncio.gather(*waits), args.wait)
            except asyncio.TimeoutError:
                logger.warning("Timed out after %.1fs waiting for diagnostics", args.wait)

        errors = 0
        for uri in uris:
            errors += _print_diagnostics(collection, uri)
            session.did_close(uri)
        return EXIT_DIAGNOSTICS if errors else EXIT_OK
    finally:
        await context.dispose_subscriptions()


async def run_watch(args: argparse.Namespace) -> int:
    """Keep a session open and print diagnostics as they arrive, until interrupted."""

    def on_diagnostics(uri: str, diagnostics) -> None:
        if not diagnostics:
            print(f"{uri_to_path(uri)}: clean")
        for diag in diagnostics:
            print(format_diagnostic(diag, str(uri_to_path(uri))))

    context = _context(args)
    session = await activate(
        context,
        _configuration(args),
        window=ConsoleWindow(),
        diagnostics=DiagnosticCollection(listener=on_diagnostics),
        shutdown_timeout=args.shutdown_timeout,
    )
    if session is None:
        return EXIT_NO_SERVER

    try:
        await session.start()
        if session.state is not SessionState.RUNNING:
            return EXIT_NO_SERVER
        for f in _collect_files(args.files):
            session.did_open(path_to_uri(f), language_id_for(f), f.read_text(encoding="utf-8", errors="replace"))
        # File edits reach the server through the workspace watcher
        await asyncio.Event().wait()
    finally:
        await deactivate(session)
        await context.dispose_subscriptions()
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Arcane language client host")
    parser.add_argument("--settings", help="Settings JSON file (reads arcane.serverPath)")
    parser.add_argument("--server-path", help="Path or command for arcane-lsp (overrides settings)")
    parser.add_argument(
        "--extension-path",
        default=str(Path(__file__).resolve().parent),
        help="Extension install directory used to locate bundled or cargo-built servers",
    )
    parser.add_argument("--workspace", default=".", help="Workspace root (default: current directory)")
    parser.add_argument("--debug-mode", action="store_true", help="Launch with the debug server options")
    parser.add_argument("--shutdown-timeout", type=float, default=None,
                        help="Seconds to wait for the server to acknowledge shutdown")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("resolve", help="Print the server command that would be launched")

    check = sub.add_parser("check", help="Print diagnostics for files and exit")
    check.add_argument("files", nargs="+", help=".arc files or directories")
    check.add_argument("--wait", type=float, default=5.0, help="Seconds to wait for diagnostics")

    watch = sub.add_parser("watch", help="Stream diagnostics until interrupted")
    watch.add_argument("files", nargs="*", help=".arc files or directories to open")
    return parser


def configure_logging(verbose: int, log_file: Optional[str] = None) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        filename=log_file,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    try:
        if args.command == "resolve":
            return run_resolve(args)
        if args.command == "check":
            return asyncio.run(run_check(args))
        return asyncio.run(run_watch(args))
    except ArcaneClientError as e:
        print(f"ERROR: {e}")
        return EXIT_NO_SERVER
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
