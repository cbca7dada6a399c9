# Ethan Doughty
# host/__init__.py
"""Headless stand-ins for the editor host: settings, extension context, window."""

from host.config import WorkspaceConfiguration, load_settings
from host.context import Disposable, ExtensionContext, ExtensionMode
from host.window import ConsoleWindow, Window

__all__ = [
    "ConsoleWindow",
    "Disposable",
    "ExtensionContext",
    "ExtensionMode",
    "Window",
    "WorkspaceConfiguration",
    "load_settings",
]
