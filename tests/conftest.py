"""
Shared pytest fixtures for sessh tests.
"""

import shlex
import subprocess
import sys
from pathlib import Path

import pytest

# Ensure the sessh package is importable when running tests from a checkout
_ROOT_DIR = Path(__file__).resolve().parents[1]
if str(_ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(_ROOT_DIR))

from sessh.config import ENV_VARS, SesshConfig  # noqa: E402
from sessh.errors import SessionNotFound  # noqa: E402
from sessh.models import SessionKey  # noqa: E402


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's SESSH_* variables out of every test."""
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def config(tmp_path):
    """Default config with control sockets under tmp_path."""
    return SesshConfig(socket_dir=tmp_path / "sockets")


@pytest.fixture
def key():
    return SessionKey(alias="demo", user_host="alice@10.0.0.5", port=2222)


@pytest.fixture
def make_proc():
    """Build a CompletedProcess like subprocess.run returns."""
    def _make(returncode=0, stdout="", stderr=""):
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)
    return _make


class FakeRemote:
    """In-memory stand-in for ssh masters and the remote tmux server."""

    def __init__(self):
        self.masters = set()
        # (user_host, port, alias) -> pane lines
        self.sessions = {}


class FakeMultiplexer:
    def __init__(self, remote: FakeRemote):
        self.remote = remote
        self.ensure_calls = 0

    @staticmethod
    def _conn(key):
        return (key.user_host, key.port)

    def is_alive(self, key):
        return self._conn(key) in self.remote.masters

    def ensure(self, key):
        self.ensure_calls += 1
        if self.is_alive(key):
            return False
        self.remote.masters.add(self._conn(key))
        return True

    def teardown(self, key):
        if not self.is_alive(key):
            return False
        self.remote.masters.discard(self._conn(key))
        return True


class FakeController:
    """Sessions are lists of pane lines. ``echo`` is the only command it runs."""

    def __init__(self, remote: FakeRemote):
        self.remote = remote

    @staticmethod
    def _sid(key):
        return (key.user_host, key.port, key.alias)

    def exists(self, key):
        return self._sid(key) in self.remote.sessions

    def ensure_exists(self, key):
        self.remote.sessions.setdefault(self._sid(key), [])

    def send_input(self, key, text):
        pane = self.remote.sessions.get(self._sid(key))
        if pane is None:
            raise SessionNotFound(f"Session '{key.alias}' not found")
        pane.append(f"$ {text}")
        words = shlex.split(text)
        if words and words[0] == "echo":
            pane.append(" ".join(words[1:]))

    def capture_output(self, key, lines):
        pane = self.remote.sessions.get(self._sid(key))
        if pane is None:
            raise SessionNotFound(f"Session '{key.alias}' not found")
        return "\n".join(pane[-lines:])

    def attach(self, key):
        return 0

    def destroy(self, key):
        return self.remote.sessions.pop(self._sid(key), None) is not None


@pytest.fixture
def fake_remote():
    remote = FakeRemote()
    return remote, FakeMultiplexer(remote), FakeController(remote)
