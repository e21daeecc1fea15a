import shlex
from unittest.mock import MagicMock

import pytest

from sessh.config import SesshConfig
from sessh.errors import RemoteSessionError, RemoteToolMissing, SessionNotFound, TransportError
from sessh.multiplexer import ConnectionMultiplexer
from sessh.tmux_controller import TmuxController


@pytest.fixture
def mux():
    return MagicMock(spec=ConnectionMultiplexer)


@pytest.fixture
def controller(mux, config):
    return TmuxController(mux, config)


def _remote(mux):
    """The remote command line of the last multiplexer.run call."""
    return mux.run.call_args[0][1]


class TestEnsureExists:

    def test_single_idempotent_invocation(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc()
        controller.ensure_exists(key)
        assert mux.run.call_count == 1
        words = shlex.split(_remote(mux))
        assert words[:4] == ["tmux", "has-session", "-t", "=demo"]
        assert "||" in words
        assert words[words.index("||") + 1:] == ["tmux", "new-session", "-d", "-s", "demo"]

    def test_tmux_missing(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(127, stderr="bash: tmux: command not found")
        with pytest.raises(RemoteToolMissing, match="not installed"):
            controller.ensure_exists(key)

    def test_other_failure(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(1, stderr="create session failed: sizes")
        with pytest.raises(RemoteSessionError, match="create session failed"):
            controller.ensure_exists(key)

    def test_custom_tmux_binary(self, mux, key, make_proc, tmp_path):
        controller = TmuxController(mux, SesshConfig(socket_dir=tmp_path, tmux_binary="/opt/bin/tmux"))
        mux.run.return_value = make_proc()
        controller.ensure_exists(key)
        assert shlex.split(_remote(mux))[0] == "/opt/bin/tmux"


class TestSendInput:

    @pytest.mark.parametrize("text", [
        "echo hi",
        "42",
        "echo 'it'\\''s'",
        "python3 -c 'import sys; print(f\"v: {sys.version}\")'",
        "-n",
        "Enter",
        "cd /tmp && pwd; echo $HOME `id`",
    ])
    def test_remote_shell_receives_exact_text(self, controller, mux, key, make_proc, text):
        mux.run.return_value = make_proc()
        controller.send_input(key, text)
        words = shlex.split(_remote(mux))
        assert words[:7] == ["tmux", "send-keys", "-t", "=demo:", "-l", "--", text]

    def test_enter_follows_text(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc()
        controller.send_input(key, "ls")
        words = shlex.split(_remote(mux))
        assert words[7] == "&&"
        assert words[8:] == ["tmux", "send-keys", "-t", "=demo:", "Enter"]

    def test_absent_session(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(1, stderr="can't find pane: =demo:")
        with pytest.raises(SessionNotFound):
            controller.send_input(key, "ls")

    def test_no_server(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(1, stderr="no server running on /tmp/tmux-1000/default")
        with pytest.raises(SessionNotFound):
            controller.send_input(key, "ls")


class TestCaptureOutput:

    def test_requests_scrollback(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(stdout="")
        controller.capture_output(key, 5)
        words = shlex.split(_remote(mux))
        assert words[:3] == ["tmux", "capture-pane", "-p"]
        assert words[words.index("-t") + 1] == "=demo:"
        assert words[words.index("-S") + 1] == "-5"

    def test_trailing_padding_dropped(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(stdout="$ echo hi\nhi\n$   \n\n\n")
        assert controller.capture_output(key, 5) == "$ echo hi\nhi\n$"

    def test_at_most_n_lines(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(stdout="\n".join(str(i) for i in range(20)) + "\n\n")
        out = controller.capture_output(key, 3)
        assert out.splitlines() == ["17", "18", "19"]

    def test_empty_pane_is_not_an_error(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(stdout="\n" * 24)
        assert controller.capture_output(key, 10) == ""

    def test_absent_session(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(1, stderr="can't find session: demo")
        with pytest.raises(SessionNotFound):
            controller.capture_output(key, 10)


class TestExists:

    def test_present(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(0)
        assert controller.exists(key) is True

    def test_absent(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(1, stderr="can't find session: demo")
        assert controller.exists(key) is False

    def test_tmux_missing(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(127)
        with pytest.raises(RemoteToolMissing):
            controller.exists(key)

    def test_exact_match_target(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(0)
        controller.exists(key)
        assert shlex.split(_remote(mux)) == ["tmux", "has-session", "-t", "=demo"]


class TestDestroy:

    def test_kills_session(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(0)
        assert controller.destroy(key) is True
        assert shlex.split(_remote(mux)) == ["tmux", "kill-session", "-t", "=demo"]

    def test_absent_session_is_swallowed(self, controller, mux, key, make_proc):
        mux.run.return_value = make_proc(1, stderr="can't find session: demo")
        assert controller.destroy(key) is False

    def test_transport_failure_propagates(self, controller, mux, key):
        mux.run.side_effect = TransportError("unreachable")
        with pytest.raises(TransportError):
            controller.destroy(key)


class TestAttach:

    def test_exit_status_passes_through(self, controller, mux, key):
        mux.interactive.return_value = 130
        assert controller.attach(key) == 130
        remote = mux.interactive.call_args[0][1]
        assert shlex.split(remote) == ["tmux", "attach-session", "-t", "=demo"]
