import re
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator


class SessionKey(BaseModel):
    """(alias, user@host, port): names one remote session and its connection."""

    model_config = ConfigDict(frozen=True)

    alias: str
    user_host: str
    port: int = 22

    @field_validator("alias")
    @classmethod
    def _check_alias(cls, v: str) -> str:
        if not v:
            raise ValueError("alias cannot be empty")
        if len(v) > 100:
            raise ValueError("alias too long (max 100 characters)")
        if re.search(r"\s", v):
            raise ValueError("alias cannot contain whitespace")
        # tmux uses these to separate session, window and pane in a target
        if re.search(r"[:\.]", v):
            raise ValueError("alias cannot contain colons or dots")
        return v

    @field_validator("user_host")
    @classmethod
    def _check_user_host(cls, v: str) -> str:
        if not v:
            raise ValueError("host cannot be empty")
        if re.search(r"\s", v):
            raise ValueError("host cannot contain whitespace")
        if v.startswith("-"):
            raise ValueError("host cannot start with '-'")
        if v.endswith("@"):
            raise ValueError("host missing after '@'")
        return v

    @field_validator("port")
    @classmethod
    def _check_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"port {v} out of range 1-65535")
        return v

    @property
    def user(self) -> Optional[str]:
        if "@" not in self.user_host:
            return None
        return self.user_host.rsplit("@", 1)[0]

    @property
    def host(self) -> str:
        return self.user_host.rsplit("@", 1)[-1]

    def __str__(self) -> str:
        return f"{self.alias} on {self.user_host}:{self.port}"


# One command record per invocation. Each variant carries only its own payload.

class Open(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: Literal["open"] = "open"
    key: SessionKey


class Run(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: Literal["run"] = "run"
    key: SessionKey
    command: str


class Logs(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: Literal["logs"] = "logs"
    key: SessionKey
    lines: int


class Status(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: Literal["status"] = "status"
    key: SessionKey


class Attach(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: Literal["attach"] = "attach"
    key: SessionKey


class Close(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: Literal["close"] = "close"
    key: SessionKey


Command = Union[Open, Run, Logs, Status, Attach, Close]

VERBS = ("open", "run", "logs", "status", "attach", "close")
