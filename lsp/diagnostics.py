"""Collect diagnostics published by the server and render them for the CLI."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from lsprotocol import types

logger = logging.getLogger(__name__)

SEVERITY_LABELS = {
    types.DiagnosticSeverity.Error: "error",
    types.DiagnosticSeverity.Warning: "warning",
    types.DiagnosticSeverity.Information: "info",
    types.DiagnosticSeverity.Hint: "hint",
}

DiagnosticsListener = Callable[[str, List[types.Diagnostic]], None]


class DiagnosticCollection:
    """Latest diagnostics per document URI.

    The server always republishes the full set for a document, so each
    publish replaces what was stored; an empty list clears the entry.
    """

    def __init__(self, listener: Optional[DiagnosticsListener] = None):
        self._entries: Dict[str, List[types.Diagnostic]] = {}
        self._listener = listener

    def set(self, uri: str, diagnostics: List[types.Diagnostic]) -> None:
        if diagnostics:
            self._entries[uri] = list(diagnostics)
        else:
            self._entries.pop(uri, None)
        if self._listener is not None:
            try:
                self._listener(uri, list(diagnostics))
            except Exception:
                logger.error("Diagnostics listener failed for %s", uri, exc_info=True)

    def get(self, uri: str) -> List[types.Diagnostic]:
        return list(self._entries.get(uri, []))

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, uri: str) -> bool:
        return uri in self._entries

    def __iter__(self) -> Iterator[Tuple[str, List[types.Diagnostic]]]:
        return iter(sorted(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)


def format_diagnostic(diagnostic: types.Diagnostic, location: str) -> str:
    """Render one diagnostic as ``location:line:col: severity: message [code]``.

    LSP positions are zero-based; the rendered line and column are 1-based.
    """
    start = diagnostic.range.start
    severity = SEVERITY_LABELS.get(diagnostic.severity, "error")
    text = f"{location}:{start.line + 1}:{start.character + 1}: {severity}: {diagnostic.message}"
    if diagnostic.code is not None:
        text += f" [{diagnostic.code}]"
    return text
