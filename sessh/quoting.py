"""Quoting for command strings that are evaluated by the remote login shell."""

from typing import Iterable


def quote_single(text: str) -> str:
    """Wrap ``text`` in single quotes for a POSIX shell.

    Each embedded single quote becomes ``'\\''``: close the quoted run, emit
    an escaped literal quote, reopen quoting. Nothing else is special inside
    single quotes, so the remote shell receives ``text`` byte for byte.

    >>> quote_single("it's")
    "'it'\\\\''s'"
    """
    return "'" + text.replace("'", "'\\''") + "'"


def join_remote(argv: Iterable[str]) -> str:
    """Quote every argument and join them into one remote command line."""
    return " ".join(quote_single(str(arg)) for arg in argv)
