#!/usr/bin/env python3
"""
sessh - persistent remote shells for callers that only run one-shot commands.

Command-line interface: resolves argv into one command record and hands it
to the dispatcher.
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from . import __version__
from .config import ENV_VARS, SesshConfig
from .dispatcher import Dispatcher
from .errors import ConfigError, SesshError, UsageError
from .models import VERBS, Attach, Close, Command, Logs, Open, Run, SessionKey, Status
from .output import OutputFormatter
from .ui import set_verbose

EPILOG = (
    "Examples:\n"
    "  sessh open demo alice@10.0.0.5 2222        # start (or reuse) session 'demo'\n"
    "  sessh run demo alice@10.0.0.5 -- 'echo hi'  # type a command into it\n"
    "  sessh logs demo alice@10.0.0.5 5           # last 5 lines of its pane\n"
    "  sessh status demo alice@10.0.0.5 2222      # connection / session liveness\n"
    "  sessh attach demo alice@10.0.0.5 2222      # interactive attach\n"
    "  sessh close demo alice@10.0.0.5 2222       # kill the session\n"
    "\n"
    "run and logs take their port from SESSH_PORT (default 22), never positionally.\n"
    "Environment: " + ", ".join(ENV_VARS.values())
)

_STRUCTURAL = {
    "open": Open,
    "status": Status,
    "attach": Attach,
    "close": Close,
}


class SesshArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message):
        raise UsageError(message)


def build_parser() -> SesshArgumentParser:
    parser = SesshArgumentParser(
        prog="sessh",
        description="Drive persistent remote tmux sessions over multiplexed ssh connections",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true",
                        help="Emit one JSON record per invocation (same as SESSH_JSON=1)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Print informational lines and debug logging to stderr")
    parser.add_argument("--version", action="version", version=f"sessh {__version__}")

    # Same flags after the verb; SUPPRESS keeps the top-level value when absent
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", default=argparse.SUPPRESS, help=argparse.SUPPRESS)
    common.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help=argparse.SUPPRESS)

    subparsers = parser.add_subparsers(dest="verb", title="commands", metavar="VERB", required=True)

    for verb in _STRUCTURAL:
        p = subparsers.add_parser(verb, parents=[common], help=f"{verb} <alias> <user@host> [port]")
        p.add_argument("alias", help="Session name")
        p.add_argument("user_host", metavar="user@host", help="Target host")
        p.add_argument("port", nargs="?", type=int, default=None,
                       help="ssh port (default: SESSH_PORT or 22)")

    p_run = subparsers.add_parser("run", parents=[common], help="run <alias> <user@host> -- <command>")
    p_run.add_argument("alias", help="Session name")
    p_run.add_argument("user_host", metavar="user@host", help="Target host")
    p_run.add_argument("extra", nargs="*", help=argparse.SUPPRESS)

    p_logs = subparsers.add_parser("logs", parents=[common], help="logs <alias> <user@host> [lines]")
    p_logs.add_argument("alias", help="Session name")
    p_logs.add_argument("user_host", metavar="user@host", help="Target host")
    p_logs.add_argument("lines", nargs="?", type=int, default=None,
                        help="Lines to capture (default: SESSH_LINES or 300)")

    return parser


def _split_separator(argv: Sequence[str]) -> Tuple[List[str], Optional[List[str]]]:
    """Split argv at the first literal '--'. The tail is None if there is none."""
    argv = list(argv)
    if "--" not in argv:
        return argv, None
    i = argv.index("--")
    return argv[:i], argv[i + 1:]


def _validation_message(e: ValidationError) -> str:
    err = e.errors()[0]
    msg = err["msg"]
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return msg


def resolve(argv: Sequence[str], config: SesshConfig) -> Tuple[Command, argparse.Namespace]:
    """Turn raw argv into a command record.

    The port is positional only for open, status, attach and close. For run
    and logs every token after the host is payload, so the port always comes
    from ``config.default_port``.

    Raises:
        UsageError: On any malformed invocation. Nothing touches the network.
    """
    head, tail = _split_separator(argv)
    args = build_parser().parse_args(head)
    verb = args.verb

    if tail is not None and verb != "run":
        raise UsageError(f"'--' is only valid for run, not {verb}")

    if verb in ("run", "logs"):
        port = config.default_port
    else:
        port = args.port if args.port is not None else config.default_port

    try:
        key = SessionKey(alias=args.alias, user_host=args.user_host, port=port)
    except ValidationError as e:
        raise UsageError(_validation_message(e)) from e

    if verb == "run":
        if args.extra:
            raise UsageError(
                f"unexpected argument(s) before '--': {' '.join(args.extra)} "
                f"(run takes its port from {ENV_VARS['default_port']})"
            )
        if tail is None:
            raise UsageError("run requires '--' followed by the command, e.g. sessh run ALIAS USER@HOST -- 'ls -la'")
        command = " ".join(tail)
        if not command.strip():
            raise UsageError("empty command after '--'")
        return Run(key=key, command=command), args

    if verb == "logs":
        lines = args.lines if args.lines is not None else config.log_lines
        if lines < 1:
            raise UsageError(f"line count must be >= 1, got {lines}")
        return Logs(key=key, lines=lines), args

    return _STRUCTURAL[verb](key=key), args


def _guess_verb(argv: Sequence[str]) -> Optional[str]:
    for token in argv:
        if token == "--":
            break
        if token in VERBS:
            return token
    return None


def _configure_logging(level_name: str, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    set_verbose(verbose or level <= logging.INFO)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the sessh CLI. Returns the process exit code."""
    argv = sys.argv[1:] if argv is None else list(argv)

    try:
        config = SesshConfig.from_env()
    except ConfigError as e:
        OutputFormatter(json_mode=False).emit_error(_guess_verb(argv), None, str(e))
        return e.exit_code

    head, _ = _split_separator(argv)
    json_mode = config.json_output or "--json" in head

    try:
        command, args = resolve(argv, config)
    except UsageError as e:
        if not json_mode:
            sys.stderr.write(build_parser().format_usage())
        OutputFormatter(json_mode=json_mode).emit_error(_guess_verb(argv), None, f"usage: {e}")
        return e.exit_code

    _configure_logging(config.log_level, args.verbose)
    formatter = OutputFormatter(json_mode=json_mode)
    dispatcher = Dispatcher(config)

    try:
        result = dispatcher.dispatch(command)
    except SesshError as e:
        formatter.emit_error(command.verb, command.key, str(e))
        return e.exit_code
    except KeyboardInterrupt:
        return 130

    formatter.emit(result)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
