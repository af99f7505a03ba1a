"""Pending package updates reported by apt and dnf."""

from __future__ import annotations

import os
import re
import subprocess
import tempfile
from collections.abc import Iterator
from pathlib import Path

from barblocks.core import BlockError, ConfigurationError, State

APT_CACHE_DIR_NAME = "i3rs-apt"
_UPGRADABLE_MARKER = "[upgradable"


def _lines(text: str) -> Iterator[str]:
    """Split on newlines, dropping a final empty line and trailing carriage returns."""
    if not text:
        return
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    for part in parts:
        yield part[:-1] if part.endswith("\r") else part


def compile_optional_regex(pattern: str | None, message: str) -> re.Pattern[str] | None:
    """Compile ``pattern`` if one is given; an invalid pattern raises with ``message``."""
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError("packages", message) from exc


def write_apt_config(cache_dir: str | Path | None = None) -> Path:
    """Create a private apt state/cache directory and write an ``apt.conf`` pointing at it.

    Without ``cache_dir`` the directory is created in the system temporary
    directory. Returns the path of the written configuration file.
    """
    directory = (
        Path(tempfile.gettempdir()) / APT_CACHE_DIR_NAME if cache_dir is None else Path(cache_dir)
    )
    if not directory.exists():
        try:
            directory.mkdir()
        except OSError as exc:
            raise BlockError("apt", "Failed to create temp dir") from exc
    config = "\n".join(
        (
            f'Dir::State "{directory}";',
            'Dir::State::lists "lists";',
            f'Dir::Cache "{directory}";',
            'Dir::Cache::srcpkgcache "srcpkgcache.bin";',
            'Dir::Cache::pkgcache "pkgcache.bin";',
        )
    )
    config_path = directory / "apt.conf"
    try:
        config_path.write_text(config)
    except OSError as exc:
        raise BlockError("apt", "Failed to write to config file") from exc
    return config_path


def _run_shell(command: str, env: dict[str, str], block: str, message: str) -> bytes:
    try:
        completed = subprocess.run(["sh", "-c", command], env=env, capture_output=True)
    except OSError as exc:
        raise BlockError(block, message) from exc
    return completed.stdout


def _decode(output: bytes, block: str, message: str) -> str:
    try:
        return output.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BlockError(block, message) from exc


def apt_updates_list(config_path: str | Path) -> str:
    """Refresh apt's package lists and return the output of ``apt list --upgradable``."""
    env = {**os.environ, "APT_CONFIG": str(config_path)}
    _run_shell("apt update", env, "apt", "Failed to run `apt update` command")
    output = _run_shell("apt list --upgradable", env, "apt", "Problem running apt command")
    return _decode(output, "apt", "Problem capturing apt command output")


def dnf_updates_list() -> str:
    """Return the output of ``dnf check-update -q --skip-broken``."""
    env = {**os.environ, "LC_LANG": "C"}
    output = _run_shell(
        "dnf check-update -q --skip-broken", env, "dnf", "Failure running dnf check-update"
    )
    return _decode(output, "dnf", "Failed to capture dnf output")


def apt_update_count(updates: str) -> int:
    """Number of upgradable packages in ``apt list --upgradable`` output."""
    return sum(1 for line in _lines(updates) if _UPGRADABLE_MARKER in line)


def dnf_update_count(updates: str) -> int:
    """Number of update lines in ``dnf check-update`` output (lines longer than one byte)."""
    return sum(1 for line in _lines(updates) if len(line.encode("utf-8")) > 1)


def has_matching_update(updates: str, regex: re.Pattern[str]) -> bool:
    """True when any line of ``updates`` matches ``regex``."""
    return any(regex.search(line) for line in _lines(updates))


def update_state(count: int, warning: bool, critical: bool) -> State:
    """Block state for ``count`` pending updates and whether any are warning or critical."""
    if count == 0:
        return State.IDLE
    if critical:
        return State.CRITICAL
    if warning:
        return State.WARNING
    return State.INFO