"""
Command dispatch.

Each invocation is evaluated from scratch: the dispatcher keeps no state
between calls and composes at most one connection step with one remote
session primitive per verb.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .config import SesshConfig
from .errors import UsageError
from .models import Attach, Close, Command, Logs, Open, Run, SessionKey, Status
from .multiplexer import ConnectionMultiplexer
from .tmux_controller import TmuxController

log = logging.getLogger(__name__)


@dataclass
class Result:
    """Outcome of one dispatched command."""
    ok: bool
    verb: str
    key: SessionKey
    data: Dict[str, Any] = field(default_factory=dict)
    message: str = ""
    exit_code: int = 0
    # attach hands the terminal over and prints nothing of its own
    render: bool = True


class Dispatcher:
    """Runs one command record against the multiplexer and the tmux controller."""

    def __init__(
        self,
        config: SesshConfig,
        multiplexer: Optional[ConnectionMultiplexer] = None,
        controller: Optional[TmuxController] = None,
    ):
        self.config = config
        self.multiplexer = multiplexer or ConnectionMultiplexer(config)
        self.controller = controller or TmuxController(self.multiplexer, config)
        self._handlers: Dict[type, Callable[[Any], Result]] = {
            Open: self._open,
            Run: self._run,
            Logs: self._logs,
            Status: self._status,
            Attach: self._attach,
            Close: self._close,
        }

    def dispatch(self, command: Command) -> Result:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise UsageError(f"Unsupported command: {type(command).__name__}")
        log.debug("dispatching %s for %s", command.verb, command.key)
        return handler(command)

    def _open(self, command: Open) -> Result:
        key = command.key
        started = self.multiplexer.ensure(key)
        self.controller.ensure_exists(key)
        return Result(
            ok=True,
            verb=command.verb,
            key=key,
            data={"new_connection": started},
            message=f"Session '{key.alias}' ready on {key.user_host}:{key.port}",
        )

    def _run(self, command: Run) -> Result:
        key = command.key
        self.multiplexer.ensure(key)
        self.controller.send_input(key, command.command)
        return Result(
            ok=True,
            verb=command.verb,
            key=key,
            data={"sent": command.command},
            message=f"Sent to '{key.alias}': {command.command}",
        )

    def _logs(self, command: Logs) -> Result:
        key = command.key
        self.multiplexer.ensure(key)
        output = self.controller.capture_output(key, command.lines)
        return Result(
            ok=True,
            verb=command.verb,
            key=key,
            data={"lines": command.lines, "output": output},
            message=output,
        )

    def _status(self, command: Status) -> Result:
        # No ensure here: an absent connection or session must stay observable
        key = command.key
        connection_alive = self.multiplexer.is_alive(key)
        session_alive = self.controller.exists(key)
        return Result(
            ok=True,
            verb=command.verb,
            key=key,
            data={
                "connection_alive": connection_alive,
                "session_alive": session_alive,
                "multiplex": self.config.multiplex,
            },
            message=(
                f"{key.alias} on {key.user_host}:{key.port} "
                f"connection={'alive' if connection_alive else 'none'} "
                f"session={'alive' if session_alive else 'absent'}"
            ),
        )

    def _attach(self, command: Attach) -> Result:
        key = command.key
        self.multiplexer.ensure(key)
        rc = self.controller.attach(key)
        return Result(ok=rc == 0, verb=command.verb, key=key, exit_code=rc, render=False)

    def _close(self, command: Close) -> Result:
        key = command.key
        destroyed = self.controller.destroy(key)
        connection_closed = False
        if self.config.close_master:
            connection_closed = self.multiplexer.teardown(key)
        return Result(
            ok=True,
            verb=command.verb,
            key=key,
            data={"session_destroyed": destroyed, "connection_closed": connection_closed},
            message=(
                f"Closed session '{key.alias}' on {key.user_host}"
                if destroyed
                else f"No session '{key.alias}' on {key.user_host}, nothing to close"
            ),
        )
