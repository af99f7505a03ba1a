"""Blocks whose text comes from running a shell command."""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

from barblocks.core import BlockError, State

_BLOCK = "custom"


@dataclass(frozen=True)
class CustomOutput:
    """A command's structured output: text, optional icon and state."""

    text: str
    icon: str = ""
    state: State = State.IDLE


def _parse_state(value: object) -> State:
    if isinstance(value, str):
        for state in State:
            if state.value == value.lower():
                return state
    raise BlockError(_BLOCK, f"Error parsing JSON: unknown state {value!r}")


def parse_json_output(raw: str) -> CustomOutput:
    """Parse a ``{"text": ..., "icon": ..., "state": ...}`` object."""
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise BlockError(_BLOCK, f"Error parsing JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise BlockError(_BLOCK, "Error parsing JSON: expected an object")
    text = data.get("text")
    if not isinstance(text, str):
        raise BlockError(_BLOCK, "Error parsing JSON: missing field `text`")
    icon = data.get("icon", "")
    if not isinstance(icon, str):
        raise BlockError(_BLOCK, "Error parsing JSON: `icon` must be a string")
    state = _parse_state(data["state"]) if "state" in data else State.IDLE
    return CustomOutput(text=text, icon=icon, state=state)


class CustomCommand:
    """A fixed command, or a list of commands cycled through on click."""

    def __init__(
        self,
        command: str | None = None,
        cycle: Sequence[str] | None = None,
        shell: str | None = None,
    ) -> None:
        if command is not None and cycle is not None:
            raise BlockError(_BLOCK, "`command` and `cycle` are mutually exclusive")
        self.command = command
        self.cycle = list(cycle) if cycle is not None else None
        self._index = 0
        self.shell = shell if shell is not None else os.environ.get("SHELL", "sh")

    def current_command(self) -> str:
        """The command that the next run executes; empty when there is none."""
        if self.cycle is not None:
            return self.cycle[self._index] if self.cycle else ""
        return self.command or ""

    def advance(self) -> bool:
        """Move to the next command of the cycle; True when a cycle is configured."""
        if self.cycle is None:
            return False
        if self.cycle:
            self._index = (self._index + 1) % len(self.cycle)
        return True

    def run(self) -> str:
        """Run the current command in the shell and return its trimmed standard output."""
        try:
            completed = subprocess.run(
                [self.shell, "-c", self.current_command()], capture_output=True
            )
        except OSError as exc:
            raise BlockError(_BLOCK, str(exc)) from exc
        return completed.stdout.decode("utf-8", errors="replace").strip()