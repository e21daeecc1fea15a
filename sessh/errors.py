"""Exception hierarchy for sessh.

Every failure carries the process exit code that ``sessh.cli.main`` returns
for it. Nothing here is retried.
"""


class SesshError(Exception):
    """Base exception for sessh operations."""
    exit_code = 1


class UsageError(SesshError):
    """Malformed invocation, detected before any network action."""
    exit_code = 2


class ConfigError(SesshError):
    """An environment override holds an invalid value."""
    exit_code = 2


class TransportError(SesshError):
    """The ssh transport failed: unreachable, auth, host key, timeout, missing binary."""
    exit_code = 3


class RemoteSessionError(SesshError):
    """The remote multiplexer returned a failure."""
    exit_code = 4


class RemoteToolMissing(RemoteSessionError):
    """The remote multiplexer binary is not installed on the target host."""
    pass


class SessionNotFound(RemoteSessionError):
    """The named remote session does not exist."""
    pass
