#!/usr/bin/env python3
"""
Connection multiplexing over OpenSSH ControlMaster sockets.

A master connection is keyed by (user, host, port), not by alias, so every
session on a host shares one handshake. Nothing is cached in-process: the
control socket on disk and ``ssh -O check`` are the only source of truth,
since another sessh process may have started or stopped the master.
"""

import getpass
import hashlib
import logging
import os
import shlex
import stat
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from .config import SesshConfig
from .errors import TransportError
from .models import SessionKey
from .ui import log_info

log = logging.getLogger(__name__)

# ssh exits with 255 when the transport itself fails
SSH_TRANSPORT_FAILURE = 255


class ConnectionMultiplexer:
    """Owns the mapping from (user, host, port) to a persistent ssh master."""

    def __init__(self, config: SesshConfig):
        self.config = config
        self._socket_dir: Optional[Path] = None

    # ---------- Socket location ----------

    def _socket_dir_candidates(self) -> List[Path]:
        """Memory-backed locations first, the disk-backed fallback last."""
        if self.config.socket_dir:
            return [Path(self.config.socket_dir).expanduser()]
        candidates = []
        runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
        if runtime_dir:
            candidates.append(Path(runtime_dir) / "sessh")
        candidates.append(Path("/dev/shm") / f"sessh-{getpass.getuser()}")
        candidates.append(Path.home() / ".ssh" / "sessh")
        return candidates

    @staticmethod
    def _prepare_dir(path: Path) -> Optional[str]:
        """Create ``path`` if needed and check it is private to this user.

        Returns None if the directory is usable, otherwise the reason it is not.
        """
        if not path.exists() and not path.is_symlink():
            try:
                path.mkdir(mode=0o700, parents=True, exist_ok=True)
                # mkdir's mode is filtered through the umask
                path.chmod(0o700)
            except OSError as e:
                return f"cannot create: {e}"
        try:
            st = path.lstat()
        except OSError as e:
            return f"cannot stat: {e}"
        if not stat.S_ISDIR(st.st_mode):
            return "not a directory"
        if st.st_uid != os.getuid():
            return f"owned by uid {st.st_uid}"
        if st.st_mode & 0o077:
            return f"mode {stat.S_IMODE(st.st_mode):o} is accessible to other users"
        return None

    def socket_dir(self) -> Path:
        """Return the control-socket directory, creating it if absent.

        Only a directory owned by this user and closed to everyone else is
        used. An unusable explicit ``socket_dir`` is an error; unusable
        default locations are skipped.

        Raises:
            TransportError: If no usable directory is found.
        """
        if self._socket_dir is not None:
            return self._socket_dir
        problems = []
        for candidate in self._socket_dir_candidates():
            problem = self._prepare_dir(candidate)
            if problem is None:
                log.debug("control socket directory: %s", candidate)
                self._socket_dir = candidate
                return candidate
            log.debug("skipping socket directory %s: %s", candidate, problem)
            problems.append(f"{candidate} ({problem})")
        raise TransportError("No usable control socket directory: " + "; ".join(problems))

    def control_path(self, key: SessionKey) -> Path:
        """Deterministic socket path for (user, host, port).

        Hashed so the path stays under the unix socket length limit.
        """
        ident = f"{key.user_host}:{key.port}"
        digest = hashlib.sha256(ident.encode("utf-8")).hexdigest()[:20]
        return self.socket_dir() / f"{digest}.sock"

    # ---------- argv construction ----------

    def _uses_autossh(self) -> bool:
        return Path(self.config.ssh_binary).name == "autossh"

    def _binary(self, master: bool = False) -> List[str]:
        if self._uses_autossh():
            # autossh only supervises the long-lived master; one-shot calls
            # go straight to the ssh client it wraps
            if master:
                return [self.config.ssh_binary, "-M", "0"]
            return [self.config.ssh_client]
        return [self.config.ssh_binary]

    def _master_env(self) -> Optional[Dict[str, str]]:
        """Point autossh at the same ssh client the one-shot calls use."""
        if not self._uses_autossh():
            return None
        return {**os.environ, "AUTOSSH_PATH": self.config.ssh_client}

    def ssh_options(self, key: SessionKey) -> List[str]:
        c = self.config
        opts = [
            "-p", str(key.port),
            "-o", f"ServerAliveInterval={c.alive_interval}",
            "-o", f"ServerAliveCountMax={c.alive_count}",
            "-o", f"StrictHostKeyChecking={c.host_key_policy}",
            "-o", f"ConnectTimeout={c.connect_timeout}",
        ]
        if c.kex_algorithms:
            opts += ["-o", f"KexAlgorithms={c.kex_algorithms}"]
        if c.ciphers:
            opts += ["-o", f"Ciphers={c.ciphers}"]
        if c.macs:
            opts += ["-o", f"MACs={c.macs}"]
        if c.identity_file:
            opts += ["-i", os.path.expanduser(c.identity_file)]
        if c.proxy_jump:
            opts += ["-J", c.proxy_jump]
        return opts

    def master_argv(self, key: SessionKey) -> List[str]:
        return (
            self._binary(master=True)
            + self.ssh_options(key)
            + [
                "-o", "ControlMaster=yes",
                "-o", f"ControlPath={self.control_path(key)}",
                "-o", f"ControlPersist={self.config.persist}",
                "-N", "-f",
                key.user_host,
            ]
        )

    def command_argv(self, key: SessionKey, remote_command: str, tty: bool = False) -> List[str]:
        argv = self._binary() + self.ssh_options(key)
        if self.config.multiplex:
            # Reuse a live master if there is one, never start one here
            argv += [
                "-o", f"ControlPath={self.control_path(key)}",
                "-o", "ControlMaster=no",
            ]
        if tty:
            argv.append("-t")
        argv += [key.user_host, remote_command]
        return argv

    def control_argv(self, key: SessionKey, operation: str) -> List[str]:
        return self._binary() + [
            "-p", str(key.port),
            "-o", f"ControlPath={self.control_path(key)}",
            "-O", operation,
            key.user_host,
        ]

    # ---------- Operations ----------

    def _check_master(self, key: SessionKey) -> Optional[bool]:
        """Run ``-O check`` against the key's socket.

        None if there is no socket file, so nothing was checked.
        """
        if not self.control_path(key).exists():
            return None
        proc = self._run(self.control_argv(key, "check"))
        return proc.returncode == 0

    def is_alive(self, key: SessionKey) -> bool:
        """True if a master for the key answers ``-O check``.

        Always False when multiplexing is disabled.
        """
        if not self.config.multiplex:
            return False
        return self._check_master(key) is True

    def _remove_stale_socket(self, path: Path) -> None:
        # ssh refuses to bind over a leftover socket from a dead master
        log.debug("removing stale control socket %s", path)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise TransportError(f"Cannot remove stale control socket {path}: {e}") from e

    def ensure(self, key: SessionKey) -> bool:
        """Start a background master for the key unless one is alive.

        Returns True if a new master was started. In no-multiplexing mode this
        is a no-op and every later call opens its own connection. A socket is
        only removed after ``-O check`` ran against it and failed.

        Raises:
            TransportError: If the master could not be established.
        """
        if not self.config.multiplex:
            log.debug("multiplexing disabled, %s uses a fresh connection per call", key.user_host)
            return False
        state = self._check_master(key)
        if state:
            log_info(f"Reusing connection to {key.user_host}:{key.port}")
            return False
        if state is False:
            self._remove_stale_socket(self.control_path(key))

        argv = self.master_argv(key)
        log.debug("starting master: %s", shlex.join(argv))
        # The backgrounded master keeps stderr open, so it must not be a pipe
        with tempfile.TemporaryFile(mode="w+") as err:
            try:
                proc = subprocess.run(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=err,
                    env=self._master_env(),
                    timeout=self.config.command_timeout,
                )
            except FileNotFoundError as e:
                raise TransportError(f"Transport binary not found: {argv[0]}") from e
            except subprocess.TimeoutExpired as e:
                raise TransportError(
                    f"Timed out opening connection to {key.user_host}:{key.port}"
                ) from e
            err.seek(0)
            stderr = err.read().strip()

        if proc.returncode != 0:
            detail = f": {stderr}" if stderr else ""
            raise TransportError(
                f"Could not open connection to {key.user_host}:{key.port} "
                f"(exit {proc.returncode}){detail}"
            )
        log_info(f"Opened connection to {key.user_host}:{key.port} (persist {self.config.persist})")
        return True

    def run(self, key: SessionKey, remote_command: str) -> subprocess.CompletedProcess:
        """Run one remote command line and return the completed process.

        Raises:
            TransportError: If ssh itself failed (exit 255), is missing, or timed out.
        """
        proc = self._run(self.command_argv(key, remote_command))
        if proc.returncode == SSH_TRANSPORT_FAILURE:
            stderr = (proc.stderr or "").strip()
            raise TransportError(
                f"Connection to {key.user_host}:{key.port} failed"
                + (f": {stderr}" if stderr else "")
            )
        return proc

    def interactive(self, key: SessionKey, remote_command: str) -> int:
        """Run a remote command on a forced tty with this terminal's stdio.

        Blocks until the remote side exits and returns its status unmodified.
        """
        argv = self.command_argv(key, remote_command, tty=True)
        log.debug("interactive: %s", shlex.join(argv))
        try:
            proc = subprocess.run(argv, check=False)
        except FileNotFoundError as e:
            raise TransportError(f"Transport binary not found: {argv[0]}") from e
        return proc.returncode

    def teardown(self, key: SessionKey) -> bool:
        """Ask the master for the key to exit. False if there was none."""
        if not self.config.multiplex:
            return False
        if not self.control_path(key).exists():
            return False
        proc = self._run(self.control_argv(key, "exit"))
        return proc.returncode == 0

    def _run(self, argv: List[str]) -> subprocess.CompletedProcess:
        log.debug("ssh: %s", shlex.join(argv))
        try:
            proc = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.config.command_timeout,
            )
        except FileNotFoundError as e:
            raise TransportError(f"Transport binary not found: {argv[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise TransportError(f"Timed out after {self.config.command_timeout:g}s: {shlex.join(argv)}") from e
        log.debug("ssh exit %s", proc.returncode)
        return proc
