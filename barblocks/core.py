"""Shared pieces of status blocks: update policy, states, errors and common settings."""

from __future__ import annotations

import enum
import subprocess
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Update:
    """When a block wants to be refreshed: every ``interval`` seconds, or just once."""

    interval: float | None = None

    def __post_init__(self) -> None:
        if self.interval is not None and self.interval < 0:
            raise ValueError("update interval must not be negative")

    def is_once(self) -> bool:
        """True when the block does not ask for periodic refreshes."""
        return self.interval is None


class State(enum.Enum):
    """Visual state of a block."""

    IDLE = "idle"
    INFO = "info"
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class BlockError(Exception):
    """A block failed to do its work."""

    def __init__(self, block: str, message: str) -> None:
        super().__init__(f"{block}: {message}")
        self.block = block
        self.message = message


class ConfigurationError(BlockError):
    """A block was given a configuration it cannot use."""


@dataclass
class CommonBlockConfig:
    """Settings every block accepts, whatever its kind."""

    on_click: str | None = None
    theme_overrides: dict[str, str] | None = None
    icons_format: str | None = None


_COMMON_FIELDS = ("on_click", "theme_overrides", "icons_format")
_DESERIALIZE_FAILED = "Failed to deserialize common block config."


def _optional_str(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ConfigurationError("block", _DESERIALIZE_FAILED)


def _optional_str_map(value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ConfigurationError("block", _DESERIALIZE_FAILED)
    return dict(value)


def extract_common_config(config: Any) -> CommonBlockConfig:
    """Remove the common fields from a block's config table and return them.

    The fields are popped from ``config`` so that what remains is the
    block-specific part. A config that is not a table yields the defaults.
    """
    if not isinstance(config, MutableMapping):
        return CommonBlockConfig()
    taken = {name: config.pop(name) for name in _COMMON_FIELDS if name in config}
    return CommonBlockConfig(
        on_click=_optional_str(taken.get("on_click")),
        theme_overrides=_optional_str_map(taken.get("theme_overrides")),
        icons_format=_optional_str(taken.get("icons_format")),
    )


def spawn_shell(command: str) -> subprocess.Popen:
    """Start ``sh -c command`` in the background and return the process."""
    try:
        return subprocess.Popen(["sh", "-c", command])
    except OSError as exc:
        raise BlockError("shell", "could not spawn child") from exc