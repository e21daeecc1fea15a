import logging
import re
import subprocess

from .config import SesshConfig
from .errors import RemoteSessionError, RemoteToolMissing, SessionNotFound
from .models import SessionKey
from .multiplexer import ConnectionMultiplexer
from .quoting import join_remote

log = logging.getLogger(__name__)

# Exit status of a POSIX shell that could not find the command
COMMAND_NOT_FOUND = 127

_MISSING_SESSION = re.compile(
    r"can't find (session|pane|window)|session not found|no server running|error connecting to",
    re.IGNORECASE,
)


class TmuxController:
    """Interacts with the remote tmux server that holds each session.

    Every primitive is a single ssh invocation through the multiplexer.
    Targets use tmux's ``=name`` form so alias ``demo`` never matches a
    session called ``demo2``.
    """

    def __init__(self, multiplexer: ConnectionMultiplexer, config: SesshConfig):
        self.multiplexer = multiplexer
        self.config = config

    @staticmethod
    def session_target(alias: str) -> str:
        return f"={alias}"

    @staticmethod
    def pane_target(alias: str) -> str:
        return f"={alias}:"

    def _tmux(self, *args: str) -> str:
        return join_remote([self.config.tmux_binary, *args])

    def _check(self, key: SessionKey, proc: subprocess.CompletedProcess, action: str) -> subprocess.CompletedProcess:
        if proc.returncode == 0:
            return proc
        stderr = (proc.stderr or "").strip()
        if proc.returncode == COMMAND_NOT_FOUND:
            raise RemoteToolMissing(f"{self.config.tmux_binary} is not installed on {key.host}")
        if _MISSING_SESSION.search(stderr):
            raise SessionNotFound(f"Session '{key.alias}' not found on {key.user_host}")
        detail = f": {stderr}" if stderr else ""
        raise RemoteSessionError(
            f"{action} failed for '{key.alias}' on {key.user_host} (exit {proc.returncode}){detail}"
        )

    def exists(self, key: SessionKey) -> bool:
        """Checks if the session exists. Never creates anything."""
        proc = self.multiplexer.run(key, self._tmux("has-session", "-t", self.session_target(key.alias)))
        # has-session exits 1 for an absent session and for "no server running"
        if proc.returncode == 1:
            return False
        self._check(key, proc, "has-session")
        return True

    def ensure_exists(self, key: SessionKey) -> None:
        """Create a detached session named after the alias unless it exists."""
        has = self._tmux("has-session", "-t", self.session_target(key.alias))
        new = self._tmux("new-session", "-d", "-s", key.alias)
        proc = self.multiplexer.run(key, f"{has} 2>/dev/null || {new}")
        self._check(key, proc, "new-session")

    def send_input(self, key: SessionKey, text: str) -> None:
        """Type ``text`` into the session, then press Enter.

        Returns as soon as tmux has the keys, not when the command finishes.
        """
        target = self.pane_target(key.alias)
        keys = self._tmux("send-keys", "-t", target, "-l", "--", text)
        enter = self._tmux("send-keys", "-t", target, "Enter")
        proc = self.multiplexer.run(key, f"{keys} && {enter}")
        self._check(key, proc, "send-keys")

    def capture_output(self, key: SessionKey, lines: int) -> str:
        """Return at most ``lines`` trailing lines of the pane, scrollback included.

        Blank padding below the cursor is dropped, so a fresh session yields "".
        """
        proc = self.multiplexer.run(
            key,
            self._tmux("capture-pane", "-p", "-J", "-t", self.pane_target(key.alias), "-S", f"-{lines}"),
        )
        self._check(key, proc, "capture-pane")
        captured = [line.rstrip() for line in proc.stdout.splitlines()]
        while captured and not captured[-1]:
            captured.pop()
        return "\n".join(captured[-lines:])

    def attach(self, key: SessionKey) -> int:
        """Attach this terminal to the session. Blocks; returns the exit status."""
        return self.multiplexer.interactive(
            key, self._tmux("attach-session", "-t", self.session_target(key.alias))
        )

    def destroy(self, key: SessionKey) -> bool:
        """Kills the session. Remote failures are swallowed; False if nothing was killed.

        Transport failures still raise, since then nothing is known about the session.
        """
        proc = self.multiplexer.run(key, self._tmux("kill-session", "-t", self.session_target(key.alias)))
        if proc.returncode != 0:
            log.debug("kill-session for %s returned %s: %s", key.alias, proc.returncode, (proc.stderr or "").strip())
            return False
        return True
