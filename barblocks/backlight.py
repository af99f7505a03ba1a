"""Brightness of backlit devices read from and written to sysfs."""

from __future__ import annotations

import math
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path

from barblocks.core import BlockError

DEFAULT_BASE = "/sys/class/backlight"
_BLOCK = "backlight"
_UNSIGNED = re.compile(r"\+?[0-9]+")
_U64_MAX = (1 << 64) - 1

_ICON_THRESHOLDS = (
    (6, "backlight_empty"),
    (13, "backlight_1"),
    (20, "backlight_2"),
    (26, "backlight_3"),
    (33, "backlight_4"),
    (40, "backlight_5"),
    (46, "backlight_6"),
    (53, "backlight_7"),
    (60, "backlight_8"),
    (67, "backlight_9"),
    (73, "backlight_10"),
    (80, "backlight_11"),
    (87, "backlight_12"),
    (93, "backlight_13"),
)


def _read_brightness(path: Path) -> int:
    try:
        content = path.read_text()
    except OSError as exc:
        raise BlockError(_BLOCK, "Failed to open brightness file") from exc
    if content.endswith("\n"):
        content = content[:-1]
    if not _UNSIGNED.fullmatch(content) or int(content) > _U64_MAX:
        raise BlockError(_BLOCK, "Failed to read value from brightness file")
    return int(content)


def _round_u64(value: float) -> int:
    """Round half away from zero and convert to an unsigned 64-bit integer, saturating."""
    if math.isnan(value) or value <= 0:
        return 0
    if value >= _U64_MAX:
        return _U64_MAX
    return math.floor(value + 0.5)


def clamp_root_scaling(root_scaling: float) -> float:
    """Clamp the scaling root to a safe range; useful values are 1.0 to 3.0."""
    return min(max(root_scaling, 0.1), 10.0)


class BacklitDevice:
    """A backlit device under ``/sys/class/backlight`` whose brightness can be queried and set."""

    def __init__(self, device_path: str | Path, root_scaling: float = 1.0) -> None:
        self.device_path = Path(device_path)
        self.root_scaling = clamp_root_scaling(root_scaling)
        self.max_brightness = _read_brightness(self.device_path / "max_brightness")

    def brightness_file(self) -> Path:
        """The file holding the current brightness.

        amdgpu drivers report ``actual_brightness`` on a different scale, so
        their ``brightness`` file is used instead.
        """
        if self.device_path.name == "amdgpu_bl0":
            return self.device_path / "brightness"
        return self.device_path / "actual_brightness"

    def brightness(self) -> int:
        """Current brightness as a percentage, capped at 100."""
        raw = _read_brightness(self.brightness_file())
        if self.max_brightness == 0:
            return 100 if raw > 0 else 0
        ratio = (raw / self.max_brightness) ** (1.0 / self.root_scaling)
        return min(_round_u64(ratio * 100.0), 100)

    def set_brightness(self, value: int) -> None:
        """Set the brightness as a percentage; values above 100 count as 100."""
        safe_value = min(max(value, 0), 100)
        ratio = (safe_value / 100.0) ** self.root_scaling
        raw = max(1, _round_u64(ratio * self.max_brightness))
        try:
            handle = open(self.device_path / "brightness", "w")
        except OSError:
            self._set_brightness_via_logind(raw)
            return
        try:
            with handle:
                handle.write(str(raw))
        except OSError as exc:
            raise BlockError(_BLOCK, "Failed to write into brightness file") from exc

    def _set_brightness_via_logind(self, raw: int) -> None:
        name = self.device_path.name
        if not name:
            raise BlockError(_BLOCK, "Malformed device path")
        command = [
            "busctl",
            "call",
            "--system",
            "org.freedesktop.login1",
            "/org/freedesktop/login1/session/auto",
            "org.freedesktop.login1.Session",
            "SetBrightness",
            "ssu",
            "backlight",
            name,
            str(raw & 0xFFFFFFFF),
        ]
        try:
            subprocess.run(command, check=True, capture_output=True, timeout=1)
        except (OSError, subprocess.SubprocessError) as exc:
            raise BlockError(_BLOCK, "Failed to send D-Bus message") from exc


def open_backlit_device(
    device: str | None = None,
    root_scaling: float = 1.0,
    base: str | Path = DEFAULT_BASE,
) -> BacklitDevice:
    """Open ``device`` under ``base``, or the first device found there when ``device`` is None."""
    base_path = Path(base)
    if device is None:
        try:
            first = next(iter(base_path.iterdir()), None)
        except OSError as exc:
            raise BlockError(_BLOCK, "Failed to read backlight device directory") from exc
        if first is None:
            raise BlockError(_BLOCK, "No backlit devices found")
        return BacklitDevice(first, root_scaling)
    device_path = base_path / device
    if not device_path.exists():
        raise BlockError(_BLOCK, f"Backlight device '{device_path}' does not exist")
    return BacklitDevice(device_path, root_scaling)


def next_cycle_index(cycle: Sequence[int], cycle_index: int, current: int) -> int:
    """Index of the cycle entry to switch to, given the current brightness.

    The cycle restarts after the entry nearest to ``current``; ties go to the
    first entry at or after ``cycle_index``, circularly.
    """
    if not cycle:
        raise ValueError("cycle is empty")
    if cycle[cycle_index] == current:
        nearest = cycle_index
    else:
        size = len(cycle)
        nearest = min(
            enumerate(cycle),
            key=lambda item: (
                abs(item[1] - current),
                item[0] + (0 if item[0] >= cycle_index else size),
            ),
        )[0]
    return (nearest + 1) % len(cycle)


def brightness_icon(brightness: int, invert: bool = False) -> str:
    """Name of the icon that shows ``brightness`` percent."""
    if invert:
        brightness = 100 - brightness
    for upper, icon in _ICON_THRESHOLDS:
        if brightness <= upper:
            return icon
    return "backlight_full"