from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import TYPE_CHECKING, Any

from webtop_gen.procfs import AGGREGATE_CPU_KEY, CounterSnapshot, CpuTimes, NetCounters

if TYPE_CHECKING:
    from webtop_gen.sampler import DynamicSample

MIN_ELAPSED_S = 0.001

_THREAD_KEY = re.compile(r"^cpu(\d+)$")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickMetrics:
    per_thread_pct: list[int]
    total_usage_pct: int
    load_avg: tuple[float, float, float]
    temp_c: float
    download_kibps: float
    upload_kibps: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "cpu": {
                "perThreadPct": list(self.per_thread_pct),
                "totalUsagePct": self.total_usage_pct,
                "loadAvg": list(self.load_avg),
                "tempC": self.temp_c,
            },
            "network": {
                "downloadKibps": self.download_kibps,
                "uploadKibps": self.upload_kibps,
            },
        }


def cpu_usage_pct(
    previous: dict[str, CpuTimes], current: dict[str, CpuTimes], key: str
) -> int:
    before = previous.get(key)
    after = current.get(key)
    if before is None or after is None:
        return 0
    delta_total = after.total - before.total
    delta_idle = after.idle - before.idle
    if delta_total <= 0:
        if delta_total < 0:
            logger.debug("CPU counters for %s went backwards; reporting 0%%.", key)
        return 0
    usage = (delta_total - delta_idle) / delta_total * 100
    return round(max(0.0, min(100.0, usage)))


def thread_keys(cpu: dict[str, CpuTimes]) -> list[str]:
    """Per-thread keys (``cpu0``, ``cpu1``, ...) in numeric order."""
    numbered = [
        (int(match.group(1)), key)
        for key in cpu
        if (match := _THREAD_KEY.match(key))
    ]
    return [key for _, key in sorted(numbered)]


def elapsed_seconds(start_ms: float, end_ms: float) -> float:
    return max(MIN_ELAPSED_S, (end_ms - start_ms) / 1000)


def throughput_kibps(previous_bytes: int, current_bytes: int, elapsed_s: float) -> float:
    delta = current_bytes - previous_bytes
    if delta < 0:
        logger.debug("Byte counter went backwards (%s -> %s); clamping.", previous_bytes, current_bytes)
    return round(max(0, delta) / elapsed_s / 1024, 2)


def compute_cpu(previous: CounterSnapshot, current: CounterSnapshot) -> tuple[list[int], int]:
    per_thread = [
        cpu_usage_pct(previous.cpu, current.cpu, key) for key in thread_keys(current.cpu)
    ]
    total = cpu_usage_pct(previous.cpu, current.cpu, AGGREGATE_CPU_KEY)
    return per_thread, total


def compute_network(
    previous: CounterSnapshot, current: CounterSnapshot, iface: str
) -> tuple[float, float]:
    elapsed = elapsed_seconds(previous.timestamp_ms, current.timestamp_ms)
    empty = NetCounters(rx_bytes=0, tx_bytes=0)
    before = previous.net.get(iface, empty)
    after = current.net.get(iface, empty)
    return (
        throughput_kibps(before.rx_bytes, after.rx_bytes, elapsed),
        throughput_kibps(before.tx_bytes, after.tx_bytes, elapsed),
    )


def compute_tick(previous: DynamicSample, current: DynamicSample) -> TickMetrics:
    per_thread, total = compute_cpu(previous.snapshot, current.snapshot)
    download, upload = compute_network(previous.snapshot, current.snapshot, current.iface)
    return TickMetrics(
        per_thread_pct=per_thread,
        total_usage_pct=total,
        load_avg=current.load_avg,
        temp_c=current.temp.celsius or 0.0,
        download_kibps=download,
        upload_kibps=upload,
    )
