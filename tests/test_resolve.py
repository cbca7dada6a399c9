"""Unit tests for server executable resolution.

Run directly:   python3 tests/test_resolve.py
"""
import os
import sys
import tempfile
import unittest
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from host.config import WorkspaceConfiguration
from runtime.resolve import SERVER_COMMAND, default_candidates, resolve_server_command

EXT = "/ext/arcane"
RELEASE = os.path.join(EXT, "..", "target", "release", "arcane-lsp")
DEBUG = os.path.join(EXT, "..", "target", "debug", "arcane-lsp")
BUNDLED = os.path.join(EXT, "bin", "arcane-lsp")


class ExistsRecorder:
    """Fake filesystem: records every existence check."""

    def __init__(self, *present):
        self.present = set(present)
        self.checked = []

    def __call__(self, path):
        self.checked.append(path)
        return path in self.present


def settings(server_path=None):
    if server_path is None:
        return WorkspaceConfiguration({})
    return WorkspaceConfiguration({"arcane": {"serverPath": server_path}})


class TestConfiguredOverride(unittest.TestCase):
    def test_override_is_returned_verbatim(self):
        exists = ExistsRecorder()
        result = resolve_server_command(settings("/opt/bin/arcane-lsp"), EXT, exists=exists)
        self.assertEqual(result, "/opt/bin/arcane-lsp")
        self.assertEqual(exists.checked, [])

    def test_override_is_trusted_even_if_missing(self):
        exists = ExistsRecorder()
        result = resolve_server_command(settings("./does/not/exist"), EXT, candidates=[], exists=exists)
        self.assertEqual(result, "./does/not/exist")
        self.assertEqual(exists.checked, [])

    def test_empty_override_falls_back_to_search(self):
        exists = ExistsRecorder(RELEASE)
        self.assertEqual(resolve_server_command(settings(""), EXT, exists=exists), RELEASE)

    def test_non_string_override_is_ignored(self):
        config = WorkspaceConfiguration({"arcane": {"serverPath": 42}})
        self.assertEqual(resolve_server_command(config, EXT, exists=ExistsRecorder()), SERVER_COMMAND)

    def test_missing_configuration(self):
        self.assertEqual(resolve_server_command(None, EXT, exists=ExistsRecorder(DEBUG)), DEBUG)


class TestCandidateSearch(unittest.TestCase):
    def test_default_candidate_order(self):
        self.assertEqual(default_candidates(EXT), [RELEASE, DEBUG, SERVER_COMMAND, BUNDLED])

    def test_release_build_wins_over_debug_build(self):
        exists = ExistsRecorder(RELEASE, DEBUG)
        self.assertEqual(resolve_server_command(settings(), EXT, exists=exists), RELEASE)
        # Debug build is never looked at
        self.assertEqual(exists.checked, [RELEASE])

    def test_debug_build_when_release_missing(self):
        exists = ExistsRecorder(DEBUG)
        self.assertEqual(resolve_server_command(settings(), EXT, exists=exists), DEBUG)
        self.assertEqual(exists.checked, [RELEASE, DEBUG])

    def test_bare_command_accepted_without_lookup(self):
        # The bundled binary exists, but the bare name comes first and always wins
        exists = ExistsRecorder(BUNDLED)
        self.assertEqual(resolve_server_command(settings(), EXT, exists=exists), SERVER_COMMAND)
        self.assertEqual(exists.checked, [RELEASE, DEBUG])
        self.assertNotIn(SERVER_COMMAND, exists.checked)
        self.assertNotIn(BUNDLED, exists.checked)

    def test_default_list_never_fails(self):
        self.assertEqual(resolve_server_command(settings(), EXT, exists=ExistsRecorder()), SERVER_COMMAND)

    def test_without_bare_command_nothing_found(self):
        candidates = [RELEASE, DEBUG, BUNDLED]
        exists = ExistsRecorder()
        self.assertIsNone(resolve_server_command(settings(), EXT, candidates=candidates, exists=exists))
        self.assertEqual(exists.checked, candidates)

    def test_without_bare_command_bundled_binary_reachable(self):
        candidates = [RELEASE, DEBUG, BUNDLED]
        exists = ExistsRecorder(BUNDLED)
        self.assertEqual(resolve_server_command(settings(), EXT, candidates=candidates, exists=exists), BUNDLED)

    def test_bare_command_accepted_anywhere_in_list(self):
        exists = ExistsRecorder(BUNDLED)
        result = resolve_server_command(settings(), EXT, candidates=[SERVER_COMMAND, BUNDLED], exists=exists)
        self.assertEqual(result, SERVER_COMMAND)
        self.assertEqual(exists.checked, [])


class TestRealFilesystem(unittest.TestCase):
    def test_finds_cargo_release_build(self):
        with tempfile.TemporaryDirectory() as tmp:
            ext = Path(tmp) / "vscode-arcane"
            ext.mkdir()
            binary = Path(tmp) / "target" / "release" / "arcane-lsp"
            binary.parent.mkdir(parents=True)
            binary.write_text("")
            result = resolve_server_command(settings(), ext)
            self.assertEqual(Path(result).resolve(), binary.resolve())

    def test_no_builds_gives_bare_command(self):
        with tempfile.TemporaryDirectory() as tmp:
            ext = Path(tmp) / "vscode-arcane"
            ext.mkdir()
            self.assertEqual(resolve_server_command(settings(), ext), SERVER_COMMAND)


if __name__ == "__main__":
    unittest.main()
