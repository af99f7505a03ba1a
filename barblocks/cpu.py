"""CPU utilisation, frequency and turbo-boost readings from procfs and sysfs."""

from __future__ import annotations

from pathlib import Path
from collections.abc import Sequence

from barblocks.core import BlockError, State

_BLOCK = "cpu"
_BOXCHARS = "▁▂▃▄▅▆▇█"


def parse_frequencies(cpuinfo_text: str) -> list[float]:
    """Per-core frequencies in Hz from the text of ``/proc/cpuinfo``."""
    freqs = []
    for line in cpuinfo_text.splitlines():
        if not line.startswith("cpu MHz"):
            continue
        last = line.split(" ")[-1]
        try:
            freqs.append(float(last) * 1e6)
        except ValueError:
            raise BlockError(
                _BLOCK, "failed to parse cpu frequency from /proc/cpuinfo"
            ) from None
    return freqs


def barchart(utilizations: Sequence[float]) -> str:
    """One block character per utilisation in ``[0, 1]``."""
    return "".join(_BOXCHARS[int(7.5 * u)] for u in utilizations)


def boost_status(root: str | Path = "/sys") -> bool | None:
    """Whether turbo boost is on, from cpufreq or intel_pstate; None if unknown."""
    cpu_dir = Path(root) / "devices" / "system" / "cpu"
    try:
        return (cpu_dir / "cpufreq" / "boost").read_text().startswith("1")
    except OSError:
        pass
    try:
        return (cpu_dir / "intel_pstate" / "no_turbo").read_text().startswith("0")
    except OSError:
        return None


def cpu_state(
    utilization: float, info: int = 30, warning: int = 60, critical: int = 90
) -> State:
    """Block state for an average utilisation given in percent."""
    value = max(int(utilization), 0)
    if value > critical:
        return State.CRITICAL
    if value > warning:
        return State.WARNING
    if value > info:
        return State.INFO
    return State.IDLE


class CpuMonitor:
    """Turns successive ``/proc/stat`` snapshots into utilisation ratios."""

    def __init__(self) -> None:
        self._previous: dict[int, tuple[int, int]] = {}

    def sample(self, stat_text: str) -> tuple[float, list[float]]:
        """Return the average and per-core utilisation since the previous sample.

        Each value lies in ``[0, 1]``. Counters that went backwards, as after
        hibernation, and unchanged counters give a utilisation of 0.
        """
        utilizations = []
        for index, line in enumerate(stat_text.splitlines()):
            if not line.startswith("cpu"):
                continue
            data = [int(word) for word in line.split() if word.isdigit()]
            if len(data) < 8:
                raise BlockError(_BLOCK, f"malformed /proc/stat line {line!r}")
            idle = data[3] + data[4]
            non_idle = data[0] + data[1] + data[2] + data[5] + data[6] + data[7]

            prev_idle, prev_non_idle = self._previous.get(index, (0, 0))
            prev_total = prev_idle + prev_non_idle
            total = idle + non_idle
            if prev_total < total and prev_idle <= idle:
                total_delta, idle_delta = total - prev_total, idle - prev_idle
            else:
                total_delta, idle_delta = 1, 1

            ratio = (total_delta - idle_delta) / total_delta
            utilizations.append(min(max(ratio, 0.0), 1.0))
            self._previous[index] = (idle, non_idle)

        if not utilizations:
            raise BlockError(_BLOCK, "no cpu lines in /proc/stat")
        return utilizations[0], utilizations[1:]