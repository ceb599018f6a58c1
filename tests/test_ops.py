from __future__ import annotations

import pytest

from redscout.core.ops import SCRIPT_COMMANDS, OpClass, classify_command


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("get", OpClass.GET),
        ("HGETALL", OpClass.GET),
        ("scan", OpClass.GET),
        ("set", OpClass.SET),
        ("hincrbyfloat", OpClass.SET),
        ("expire", OpClass.SET),
        ("del", OpClass.DEL),
        ("unlink", OpClass.DEL),
        ("ltrim", OpClass.DEL),
        ("eval", OpClass.EVAL),
        ("ping", OpClass.UNKNOWN),
        ("", OpClass.UNKNOWN),
    ],
)
def test_classify_command(command: str, expected: OpClass) -> None:
    assert classify_command(command) is expected


def test_script_commands_are_lowercase() -> None:
    assert "eval" in SCRIPT_COMMANDS
