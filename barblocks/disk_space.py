"""Disk space usage of a mounted filesystem and the alert rules applied to it."""

from __future__ import annotations

import enum
import math
import os
from dataclasses import dataclass
from pathlib import Path

from barblocks.core import BlockError, State

_BLOCK = "disk_space"

_UNIT_DIVISORS = {
    "TB": 1 << 40,
    "GB": 1 << 30,
    "MB": 1 << 20,
    "KB": 1 << 10,
    "B": 1,
}


class AlertType(enum.Enum):
    """Whether a value is alarming when it grows above or falls below the limits."""

    ABOVE = "above"
    BELOW = "below"


class InfoType(enum.Enum):
    """Which figure a disk-space block reports and alerts on."""

    AVAILABLE = "available"
    FREE = "free"
    USED = "used"

    @property
    def alert_type(self) -> AlertType:
        """Used space alerts when high; available and free space alert when low."""
        return AlertType.ABOVE if self is InfoType.USED else AlertType.BELOW


@dataclass(frozen=True)
class DiskUsage:
    """Sizes of a filesystem in bytes."""

    total: int
    used: int
    available: int
    free: int


def disk_usage(path: str | Path) -> DiskUsage:
    """Query the filesystem holding ``path``."""
    try:
        st = os.statvfs(path)
    except OSError as exc:
        raise BlockError(_BLOCK, "failed to retrieve statvfs") from exc
    return DiskUsage(
        total=st.f_blocks * st.f_frsize,
        used=(st.f_blocks - st.f_bfree) * st.f_frsize,
        available=st.f_bavail * st.f_bsize,
        free=st.f_bfree * st.f_bsize,
    )


def unit_divisor(unit: str) -> int:
    """Number of bytes in one ``unit`` (B, KB, MB, GB or TB, binary multiples)."""
    try:
        return _UNIT_DIVISORS[unit]
    except KeyError:
        raise BlockError(_BLOCK, f"cannot set unit to '{unit}'") from None


def compute_state(value: float, warning: float, alert: float, alert_type: AlertType) -> State:
    """Block state for ``value`` against the warning and alert limits."""
    if alert_type is AlertType.ABOVE:
        if value > alert:
            return State.CRITICAL
        if warning < value <= alert:
            return State.WARNING
        return State.IDLE
    if 0.0 <= value < alert:
        return State.CRITICAL
    if alert <= value < warning:
        return State.WARNING
    return State.IDLE


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator


def alert_value(
    usage: DiskUsage, info_type: InfoType, unit: str = "GB", alert_absolute: bool = False
) -> float:
    """The figure checked against the limits: a percentage of the total, or an absolute size in ``unit``."""
    result = float(getattr(usage, info_type.value))
    if alert_absolute:
        return result / unit_divisor(unit)
    return _ratio(result, float(usage.total)) * 100.0