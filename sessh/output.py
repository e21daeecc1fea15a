import json
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .dispatcher import Result
from .models import SessionKey
from .ui import log_error, log_success, print_raw


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OutputFormatter:
    """Renders results as one JSON line (structured mode) or human text.

    Structured records always carry ok, command, alias, host, port, the
    verb's payload fields and a UTC timestamp.
    """

    def __init__(self, json_mode: bool = False, clock: Optional[Callable[[], datetime]] = None):
        self.json_mode = json_mode
        self._clock = clock or _utc_now

    def _timestamp(self) -> str:
        return self._clock().isoformat(timespec="seconds")

    def record(self, result: Result) -> Dict[str, Any]:
        rec: Dict[str, Any] = {
            "ok": result.ok,
            "command": result.verb,
            "alias": result.key.alias,
            "host": result.key.user_host,
            "port": result.key.port,
        }
        rec.update(result.data)
        rec["timestamp"] = self._timestamp()
        return rec

    def failure_record(self, verb: Optional[str], key: Optional[SessionKey], error: str) -> Dict[str, Any]:
        return {
            "ok": False,
            "command": verb,
            "alias": key.alias if key else None,
            "host": key.user_host if key else None,
            "port": key.port if key else None,
            "error": error,
            "timestamp": self._timestamp(),
        }

    def _write_json(self, rec: Dict[str, Any]) -> None:
        sys.stdout.write(json.dumps(rec, ensure_ascii=False) + "\n")
        sys.stdout.flush()

    def emit(self, result: Result) -> None:
        if not result.render:
            return
        if self.json_mode:
            self._write_json(self.record(result))
            return
        if result.verb in ("logs", "status"):
            if result.message:
                print_raw(result.message)
        else:
            log_success(result.message)

    def emit_error(self, verb: Optional[str], key: Optional[SessionKey], error: str) -> None:
        # attach never produces a structured record, even on failure
        if self.json_mode and verb != "attach":
            self._write_json(self.failure_record(verb, key, error))
        else:
            log_error(error)
