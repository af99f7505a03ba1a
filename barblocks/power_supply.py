"""Battery readings from the kernel's power-supply class in sysfs."""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from barblocks.core import BlockError

DEFAULT_ROOT = "/sys/class/power_supply"
_BLOCK = "battery"
_U64_MAX = (1 << 64) - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")

_T = TypeVar("_T")


def _parse_unsigned(text: str, what: str) -> int:
    if not _UNSIGNED.fullmatch(text):
        raise BlockError(_BLOCK, f"failed to parse {what}")
    value = int(text)
    if value > _U64_MAX:
        raise BlockError(_BLOCK, f"failed to parse {what}")
    return value


def _parse_float(text: str, what: str) -> float:
    if not text or "_" in text or text != text.strip():
        raise BlockError(_BLOCK, f"failed to parse {what}")
    try:
        return float(text)
    except ValueError:
        raise BlockError(_BLOCK, f"failed to parse {what}") from None


def _saturating_u64(value: float) -> int:
    """Convert a float to an unsigned 64-bit integer, saturating at the bounds."""
    if math.isnan(value) or value <= 0:
        return 0
    if value >= _U64_MAX:
        return _U64_MAX
    return int(value)


def _read(path: Path) -> str:
    try:
        return path.read_text().strip()
    except OSError as exc:
        raise BlockError(_BLOCK, f"failed to read {path}") from exc


def default_device(root: str | Path = DEFAULT_ROOT) -> str:
    """Name of the lexically first ``BAT*`` entry under ``root``, or ``BAT0`` if none."""
    try:
        names = [entry.name for entry in Path(root).iterdir()]
    except OSError:
        return "BAT0"
    batteries = [name for name in names if name.startswith("BAT")]
    return min(batteries) if batteries else "BAT0"


class PowerSupplyDevice:
    """A power supply as exposed under ``/sys/class/power_supply/<device>``."""

    def __init__(
        self, device: str, allow_missing: bool = False, root: str | Path = DEFAULT_ROOT
    ) -> None:
        self.device_path = Path(root) / device
        self.allow_missing = allow_missing
        self.charge_full: int | None = None
        self.energy_full: int | None = None

    def _file(self, name: str) -> Path:
        return self.device_path / name

    def _read_unsigned(self, name: str) -> int:
        return _parse_unsigned(_read(self._file(name)), name)

    def _optional(self, name: str, parse: Callable[[str, str], _T]) -> _T | None:
        """Read and parse ``name`` if present; a parse failure yields ``None``."""
        path = self._file(name)
        if not path.exists():
            return None
        text = _read(path)
        try:
            return parse(text, name)
        except BlockError:
            return None

    def _first_optional(self, names: tuple[str, ...]) -> float | None:
        for name in names:
            if self._file(name).exists():
                return self._optional(name, _parse_float)
        return None

    def is_available(self) -> bool:
        """True when the device directory exists."""
        return self.device_path.exists()

    def refresh_device_info(self) -> None:
        """Re-read the full-charge and full-energy specs of the device."""
        if not self.is_available():
            if self.allow_missing:
                self.charge_full = None
                self.energy_full = None
                return
            raise BlockError(
                _BLOCK, f"Power supply device '{self.device_path}' does not exist"
            )
        self.charge_full = (
            self._read_unsigned("charge_full") if self._file("charge_full").exists() else None
        )
        self.energy_full = (
            self._read_unsigned("energy_full") if self._file("energy_full").exists() else None
        )

    def status(self) -> str:
        """The kernel's status string, such as ``Charging`` or ``Full``."""
        return _read(self._file("status"))

    def capacity(self) -> int:
        """Current charge as a percentage, capped at 100."""
        if self._file("capacity").exists():
            capacity = self._read_unsigned("capacity")
        elif self._file("charge_now").exists() and self.charge_full is not None:
            charge = self._read_unsigned("charge_now")
            capacity = _saturating_u64(charge / self.charge_full * 100.0)
        elif self._file("energy_now").exists() and self.energy_full is not None:
            energy = self._read_unsigned("energy_now")
            capacity = _saturating_u64(energy / self.energy_full * 100.0)
        else:
            raise BlockError(
                _BLOCK, "Device does not support reading capacity, charge, or energy"
            )
        return min(capacity, 100)

    def time_remaining(self) -> int:
        """Minutes until the battery is empty or full; 0 when neither applies."""
        time_to_empty = self._optional("time_to_empty_now", _parse_unsigned)
        time_to_full = self._optional("time_to_full_now", _parse_unsigned)
        full = self.energy_full if self.energy_full is not None else self.charge_full
        fill = self._first_optional(("energy_now", "charge_now"))
        usage = self._first_optional(("power_now", "current_now"))

        status = self.status()
        if status == "Discharging":
            if time_to_empty is not None:
                return time_to_empty
            if fill is not None and usage is not None:
                return _saturating_u64(_divide(fill, usage) * 60.0)
            raise BlockError(
                _BLOCK, "Device does not support any method of calculating time to empty"
            )
        if status == "Charging":
            if time_to_full is not None:
                return time_to_full
            if full is not None and fill is not None and usage is not None:
                return _saturating_u64(_divide(full - fill, usage) * 60.0)
            raise BlockError(
                _BLOCK, "Device does not support any method of calculating time to full"
            )
        return 0

    def power_consumption(self) -> int:
        """Current power draw in microwatts."""
        if self._file("power_now").exists():
            return self._read_unsigned("power_now")
        if self._file("current_now").exists() and self._file("voltage_now").exists():
            current = self._read_unsigned("current_now")
            voltage = self._read_unsigned("voltage_now")
            return (current * voltage) // 1_000_000
        raise BlockError(_BLOCK, "Device does not support power consumption")


def _divide(numerator: float, denominator: float) -> float:
    """Floating division with IEEE semantics for a zero denominator."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
    return numerator / denominator