"""Battery readings from an apcupsd-managed UPS, and the display rules for batteries."""

from __future__ import annotations

import math
from collections.abc import Mapping

from barblocks.apcaccess import ApcAccess
from barblocks.core import BlockError, State

DEFAULT_ADDRESS = "localhost:3551"
_BLOCK = "battery"
_U64_MAX = (1 << 64) - 1
_FULL_STATUSES = ("Full", "Not charging")


def _to_u64(value: float) -> int:
    """Convert a float to an unsigned 64-bit integer, truncating and saturating."""
    if math.isnan(value) or value <= 0:
        return 0
    if value >= _U64_MAX:
        return _U64_MAX
    return int(value)


def _parse_float(text: str, stat_name: str) -> float:
    if not text or "_" in text or text != text.strip():
        raise BlockError(_BLOCK, f"could not parse {stat_name} to float")
    try:
        return float(text)
    except ValueError:
        raise BlockError(_BLOCK, f"could not parse {stat_name} to float") from None


def parse_apc_value(
    status_data: Mapping[str, str], stat_name: str, required_unit: str
) -> float:
    """Read ``stat_name`` as ``"<number> <unit>"`` and return the number.

    Raises :class:`BlockError` when the entry is missing, malformed, or carries
    a unit other than ``required_unit``.
    """
    raw = status_data.get(stat_name)
    if raw is None:
        raise BlockError(_BLOCK, f"{stat_name} not in apcaccess data")
    value, sep, unit = raw.partition(" ")
    if not sep:
        raise BlockError(_BLOCK, f"could not split {stat_name}")
    if unit != required_unit:
        raise BlockError(
            _BLOCK,
            f"Expected unit for {stat_name} are {required_unit}, but got {unit}",
        )
    return _parse_float(value, stat_name)


def format_time_remaining(minutes: int) -> str:
    """Render minutes as ``H:MM``, hours capped at 99; zero renders as an empty string."""
    if minutes == 0:
        return ""
    hours = min(minutes // 60, 99)
    return f"{hours}:{minutes % 60:02}"


def classify_battery(
    status: str,
    capacity: int | None,
    full_threshold: int = 100,
    good: int = 60,
    info: int = 60,
    warning: int = 30,
    critical: int = 15,
) -> tuple[State, bool]:
    """Decide the block state for a battery reading.

    Returns the state and whether the battery counts as full. ``capacity`` is
    ``None`` when it could not be read.
    """
    if status in _FULL_STATUSES or (capacity is not None and capacity >= full_threshold):
        return State.GOOD, True
    if status == "Charging":
        return State.GOOD, False
    if capacity is None:
        return State.WARNING, False
    if capacity <= critical:
        return State.CRITICAL, False
    if capacity <= warning:
        return State.WARNING, False
    if capacity <= info:
        return State.INFO, False
    if capacity > good:
        return State.GOOD, False
    return State.IDLE, False


class ApcUpsDevice:
    """A UPS battery as reported by an apcupsd daemon."""

    def __init__(self, device: str, allow_missing: bool = False) -> None:
        addr = device if ":" in device else DEFAULT_ADDRESS
        try:
            self.con = ApcAccess(addr, 1)
        except BlockError as exc:
            raise BlockError(
                _BLOCK, f"Could not create a apcaccess connection to {addr}"
            ) from exc
        self.allow_missing = allow_missing
        self._ups_status: str | None = None
        self.charge_percent = 0.0
        self.time_left = 0.0
        self.nom_power = 0.0
        self.load_percent = 0.0

    def _fetch_status(self) -> dict[str, str] | None:
        try:
            return self.con.get_status()
        except (OSError, BlockError):
            return None

    def is_available(self) -> bool:
        """True when the daemon answers and its link to the UPS is up."""
        return self.con.is_available(self._fetch_status())

    def refresh_device_info(self) -> None:
        """Fetch a fresh status table and store charge, time left and load."""
        status = self._fetch_status()
        status_data = status if status is not None else {}
        self._ups_status = status_data.get("STATUS")

        if not self.con.is_available(status):
            if self.allow_missing:
                self.charge_percent = 0.0
                self.time_left = 0.0
                self.nom_power = 0.0
                self.load_percent = 0.0
                return
            raise BlockError(_BLOCK, "Unable to communicate with apcupsd")

        # Percentages are 0.0-100.0, not 0.0-1.0.
        self.charge_percent = parse_apc_value(status_data, "BCHARGE", "Percent")
        self.time_left = parse_apc_value(status_data, "TIMELEFT", "Minutes")
        self.nom_power = parse_apc_value(status_data, "NOMPOWER", "Watts")
        self.load_percent = parse_apc_value(status_data, "LOADPCT", "Percent")

    def status(self) -> str:
        """One of ``Empty``, ``Discharging``, ``Full``, ``Charging`` or ``Unknown``."""
        ups_status = self._ups_status
        if ups_status is not None:
            if "ONBATT" in ups_status:
                return "Empty" if self.charge_percent == 0.0 else "Discharging"
            if "ONLINE" in ups_status:
                return "Full" if self.charge_percent >= 100.0 else "Charging"
        return "Unknown"

    def capacity(self) -> int:
        """Charge as a percentage, capped at 100."""
        if self.charge_percent > 100.0:
            return 100
        return _to_u64(self.charge_percent)

    def time_remaining(self) -> int:
        """Minutes of runtime left, as reported by the daemon."""
        return _to_u64(self.time_left)

    def power_consumption(self) -> int:
        """Current draw in microwatts: nominal watts times the load percentage."""
        return _to_u64(self.nom_power * self.load_percent * 10_000.0)