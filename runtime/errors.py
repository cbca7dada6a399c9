# Ethan Doughty
# errors.py
"""Exception types raised by the Arcane language client."""

from __future__ import annotations


class ArcaneClientError(Exception):
    """Base class for client-side failures."""


class SettingsError(ArcaneClientError):
    """Raised when a settings file exists but cannot be used."""


class SessionStateError(ArcaneClientError):
    """Raised when the host drives a session that cannot accept the call.

    For example, forwarding a document after the session was stopped.
    """

    def __init__(self, message: str, state: object):
        super().__init__(f"{message} (session state: {state})")
        self.state = state
