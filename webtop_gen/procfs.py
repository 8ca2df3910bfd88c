"""Parsers for the kernel pseudo-files sampled on every tick.

Every parser takes raw text and returns typed values. Short or malformed
lines are skipped; nothing here raises on bad input.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from pathlib import Path
import re

_CPU_KEY = re.compile(r"^cpu\d*$")

AGGREGATE_CPU_KEY = "cpu"


@dataclass(frozen=True)
class CpuTimes:
    total: int
    idle: int


@dataclass(frozen=True)
class NetCounters:
    rx_bytes: int
    tx_bytes: int


@dataclass(frozen=True)
class CounterSnapshot:
    timestamp_ms: float
    cpu: dict[str, CpuTimes] = field(default_factory=dict)
    net: dict[str, NetCounters] = field(default_factory=dict)


@dataclass(frozen=True)
class MemorySnapshot:
    used_gb: float
    available_gb: float
    cached_gb: float
    used_pct: int
    available_pct: int
    cached_pct: int

    def to_dict(self) -> dict[str, float | int]:
        return {
            "usedGb": self.used_gb,
            "availableGb": self.available_gb,
            "cachedGb": self.cached_gb,
            "usedPct": self.used_pct,
            "availablePct": self.available_pct,
            "cachedPct": self.cached_pct,
        }


def _to_number(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _to_int(value: str) -> int:
    return int(_to_number(value))


def parse_cpu_stat(text: str) -> dict[str, CpuTimes]:
    stats: dict[str, CpuTimes] = {}
    for line in text.splitlines():
        parts = line.split()
        if not parts or not _CPU_KEY.match(parts[0]):
            continue
        nums = [_to_int(value) for value in parts[1:9]]
        nums.extend([0] * (8 - len(nums)))
        user, nice, system, idle, iowait, irq, softirq, steal = nums
        idle_total = idle + iowait
        active_total = user + nice + system + irq + softirq + steal
        stats[parts[0]] = CpuTimes(total=idle_total + active_total, idle=idle_total)
    return stats


def parse_loadavg(text: str) -> tuple[float, float, float]:
    fields = text.split()[:3]
    fields.extend(["0"] * (3 - len(fields)))
    one, five, fifteen = (round(_to_number(value), 2) for value in fields)
    return one, five, fifteen


def parse_net_dev(text: str) -> dict[str, NetCounters]:
    """Per-interface byte totals from ``/proc/net/dev``.

    Insertion order follows the file, which is the order the kernel lists
    interfaces in; interface selection relies on it.
    """
    totals: dict[str, NetCounters] = {}
    for line in text.splitlines()[2:]:
        if ":" not in line:
            continue
        iface, _, rest = line.partition(":")
        nums = rest.split()
        if len(nums) < 16:
            continue
        totals[iface.strip()] = NetCounters(
            rx_bytes=_to_int(nums[0]), tx_bytes=_to_int(nums[8])
        )
    return totals


def parse_meminfo(text: str) -> dict[str, int]:
    """Raw ``/proc/meminfo`` values in kB, units stripped."""
    result: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        if not sep or not key.strip():
            continue
        parts = rest.split()
        if not parts:
            continue
        try:
            result[key.strip()] = int(parts[0])
        except ValueError:
            continue
    return result


def memory_snapshot_from_meminfo(values: dict[str, int]) -> MemorySnapshot:
    total_kb = values.get("MemTotal", 0)
    available_kb = values.get("MemAvailable", 0)
    cached_kb = values.get("Cached", 0) + values.get("SReclaimable", 0)
    used_kb = max(0, total_kb - available_kb)

    def to_gb(kb: int) -> float:
        return round(kb / 1024 / 1024, 2)

    def pct(kb: int) -> int:
        if total_kb <= 0:
            return 0
        return max(0, min(100, round(kb / total_kb * 100)))

    return MemorySnapshot(
        used_gb=to_gb(used_kb),
        available_gb=to_gb(available_kb),
        cached_gb=to_gb(cached_kb),
        used_pct=pct(used_kb),
        available_pct=pct(available_kb),
        cached_pct=pct(cached_kb),
    )


def parse_default_route(text: str) -> str:
    for line in text.splitlines()[1:]:
        cols = line.split()
        if len(cols) < 4:
            continue
        try:
            flags = int(cols[3], 16)
        except ValueError:
            continue
        # RTF_UP
        if cols[1] == "00000000" and flags & 0x2:
            return cols[0]
    return ""


class ProcReader:
    """Scoped reads of the pseudo-files under ``proc_root``."""

    def __init__(self, proc_root: str | Path = "/proc") -> None:
        self.root = Path(proc_root)
        self.logger = logging.getLogger(self.__class__.__name__)

    def read_text(self, relative: str) -> str:
        path = self.root / relative
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            self.logger.debug("Unable to read %s: %s", path, exc)
            return ""

    def cpu_stat(self) -> dict[str, CpuTimes]:
        return parse_cpu_stat(self.read_text("stat"))

    def loadavg(self) -> tuple[float, float, float]:
        return parse_loadavg(self.read_text("loadavg"))

    def net_dev(self) -> dict[str, NetCounters]:
        return parse_net_dev(self.read_text("net/dev"))

    def meminfo(self) -> dict[str, int]:
        return parse_meminfo(self.read_text("meminfo"))

    def default_route_iface(self) -> str:
        return parse_default_route(self.read_text("net/route"))
