"""Tests for remote command quoting."""

import shlex

import pytest

from sessh.quoting import join_remote, quote_single


@pytest.mark.parametrize("text, expected", [
    ("", "''"),
    ("ls", "'ls'"),
    ("ls -la /tmp", "'ls -la /tmp'"),
    ("it's", "'it'\\''s'"),
    ("''", "''\\'''\\'''"),
    ("echo 'hi'", "'echo '\\''hi'\\'''"),
    ("$HOME `id`; rm -rf x", "'$HOME `id`; rm -rf x'"),
    ('say "hi"', "'say \"hi\"'"),
    ("a\\b", "'a\\b'"),
    ("line1\nline2", "'line1\nline2'"),
])
def test_quote_single(text, expected):
    assert quote_single(text) == expected


@pytest.mark.parametrize("text", [
    "it's",
    "echo 'a' \"b\" $c `d` \\e",
    "python3 -c 'import sys; print(f\"v: {sys.version}\")'",
    "cd /tmp && pwd && echo 'State persisted!'",
])
def test_shell_reads_back_original_text(text):
    """A POSIX shell parse of the quoted form yields exactly one word: the input."""
    assert shlex.split(quote_single(text)) == [text]


def test_join_remote_quotes_every_argument():
    assert join_remote(["tmux", "has-session", "-t", "=a b"]) == "'tmux' 'has-session' '-t' '=a b'"


def test_join_remote_converts_non_strings():
    assert join_remote(["tmux", "capture-pane", "-S", -5]) == "'tmux' 'capture-pane' '-S' '-5'"
