"""Language client bridge for the arcane-lsp server."""
from __future__ import annotations

from lsp.extension import SERVER_NOT_FOUND_MESSAGE, activate, deactivate
from lsp.launch import LaunchDescriptor, LaunchMode, ServerOptions, build_server_options
from lsp.session import LanguageClientSession, SessionState
from lsp.sync import DocumentFilter, DocumentSyncPolicy, FileSystemWatcher

__all__ = [
    "DocumentFilter",
    "DocumentSyncPolicy",
    "FileSystemWatcher",
    "LanguageClientSession",
    "LaunchDescriptor",
    "LaunchMode",
    "SERVER_NOT_FOUND_MESSAGE",
    "ServerOptions",
    "SessionState",
    "activate",
    "build_server_options",
    "deactivate",
]
