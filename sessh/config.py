import os
import re
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError

# Field name -> environment variable
ENV_VARS: Dict[str, str] = {
    "persist": "SESSH_PERSIST",
    "ssh_binary": "SESSH_SSH",
    "ssh_client": "SESSH_SSH_CLIENT",
    "default_port": "SESSH_PORT",
    "log_lines": "SESSH_LINES",
    "host_key_policy": "SESSH_STRICT_HOSTKEY",
    "kex_algorithms": "SESSH_KEX",
    "ciphers": "SESSH_CIPHERS",
    "macs": "SESSH_MACS",
    "alive_interval": "SESSH_ALIVE_INTERVAL",
    "alive_count": "SESSH_ALIVE_COUNT",
    "socket_dir": "SESSH_SOCKET_DIR",
    "json_output": "SESSH_JSON",
    "identity_file": "SESSH_IDENTITY",
    "proxy_jump": "SESSH_PROXYJUMP",
    "multiplex": "SESSH_MULTIPLEX",
    "close_master": "SESSH_CLOSE_MASTER",
    "connect_timeout": "SESSH_CONNECT_TIMEOUT",
    "command_timeout": "SESSH_COMMAND_TIMEOUT",
    "tmux_binary": "SESSH_TMUX",
    "log_level": "SESSH_LOG_LEVEL",
}

HOST_KEY_POLICIES = ("yes", "no", "accept-new", "ask", "off")
LOG_LEVELS = ("debug", "info", "warning", "error")

_PERSIST_RE = re.compile(r"^(yes|no|(\d+[smhdw]?)+)$")


class SesshConfig(BaseModel):
    """Explicit configuration threaded into the multiplexer and controller.

    Every field can be overridden from the environment, see ``ENV_VARS``.

    Attributes:
        persist: ControlPersist for a master connection. The master is
            allowed to expire after this long even if it is idle.
        ssh_binary: Transport binary. ``autossh`` is accepted and gets
            ``-M 0`` so it relies on ServerAlive keepalives.
        ssh_client: ssh client used for one-shot calls when ``ssh_binary``
            is autossh, and handed to autossh as ``AUTOSSH_PATH``.
        default_port: Port used when none is given positionally. ``run`` and
            ``logs`` always use it.
        log_lines: Default line count for ``logs``.
        host_key_policy: StrictHostKeyChecking value.
        kex_algorithms: Optional KexAlgorithms list.
        ciphers: Optional Ciphers list.
        macs: Optional MACs list.
        alive_interval: ServerAliveInterval in seconds.
        alive_count: ServerAliveCountMax.
        socket_dir: Forces the control-socket directory. It must be owned by
            the current user and closed to group and others.
        json_output: Structured output mode.
        identity_file: Identity file passed with ``-i``.
        proxy_jump: Jump host passed with ``-J``.
        multiplex: When False every operation opens a fresh ssh connection
            and no control socket is used.
        close_master: ``close`` also asks the master connection to exit.
        connect_timeout: ConnectTimeout in seconds.
        command_timeout: Wall-clock limit for every non-interactive ssh call.
        tmux_binary: Remote multiplexer binary.
        log_level: Diagnostic logging level.
    """

    model_config = ConfigDict(frozen=True)

    persist: str = "10m"
    ssh_binary: str = "ssh"
    ssh_client: str = "ssh"
    default_port: int = 22
    log_lines: int = 300
    host_key_policy: str = "accept-new"
    kex_algorithms: Optional[str] = None
    ciphers: Optional[str] = None
    macs: Optional[str] = None
    alive_interval: int = 15
    alive_count: int = 4
    socket_dir: Optional[Path] = None
    json_output: bool = False
    identity_file: Optional[str] = None
    proxy_jump: Optional[str] = None
    multiplex: bool = True
    close_master: bool = True
    connect_timeout: int = 10
    command_timeout: float = 60.0
    tmux_binary: str = "tmux"
    log_level: str = "warning"

    @field_validator("persist")
    @classmethod
    def _check_persist(cls, v: str) -> str:
        v = v.strip().lower()
        if not _PERSIST_RE.match(v):
            raise ValueError(f"invalid persist duration '{v}' (use yes, no, or e.g. 600, 10m, 1h30m)")
        return v

    @field_validator("default_port")
    @classmethod
    def _check_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"port {v} out of range 1-65535")
        return v

    @field_validator("log_lines", "alive_interval", "alive_count", "connect_timeout")
    @classmethod
    def _check_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("command_timeout")
    @classmethod
    def _check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("host_key_policy")
    @classmethod
    def _check_host_key_policy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in HOST_KEY_POLICIES:
            raise ValueError(f"must be one of {', '.join(HOST_KEY_POLICIES)}")
        return v

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return v

    @field_validator("ssh_binary", "ssh_client", "tmux_binary")
    @classmethod
    def _check_binary(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SesshConfig":
        """Build a config from environment-style overrides.

        Unset or empty variables keep their default.

        Raises:
            ConfigError: If any override fails validation.
        """
        env = os.environ if environ is None else environ
        values = {}
        for field, var in ENV_VARS.items():
            raw = env.get(var)
            if raw is not None and raw.strip() != "":
                values[field] = raw.strip()
        try:
            return cls(**values)
        except ValidationError as e:
            problems = []
            for err in e.errors():
                field = err["loc"][0] if err["loc"] else "?"
                problems.append(f"{ENV_VARS.get(field, field)}: {err['msg']}")
            raise ConfigError("Invalid configuration: " + "; ".join(problems)) from e
