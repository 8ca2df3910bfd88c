from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Callable

from webtop_gen.config import SamplerConfig
from webtop_gen.deltas import TickMetrics, compute_tick
from webtop_gen.procfs import CounterSnapshot, NetCounters, ProcReader
from webtop_gen.sensors import SensorResolver, TempSelection

LOOPBACK = "lo"


@dataclass(frozen=True)
class DynamicSample:
    snapshot: CounterSnapshot
    load_avg: tuple[float, float, float]
    temp: TempSelection
    iface: str


def select_interface(
    net: dict[str, NetCounters], preferred: str = "", default_route: str = ""
) -> str:
    if preferred and preferred in net:
        return preferred
    if default_route and default_route in net:
        return default_route
    for name in net:
        if name != LOOPBACK:
            return name
    return next(iter(net), LOOPBACK)


class SnapshotArena:
    """Two fixed slots holding the previous and current sample.

    ``rotate`` flips the index so the current slot becomes the previous one;
    the slot it frees is overwritten by the next ``advance``.
    """

    def __init__(self) -> None:
        self._slots: list[DynamicSample | None] = [None, None]
        self._previous = 0

    @property
    def previous(self) -> DynamicSample | None:
        return self._slots[self._previous]

    @property
    def current(self) -> DynamicSample | None:
        return self._slots[1 - self._previous]

    def seed(self, sample: DynamicSample) -> None:
        self._slots = [None, None]
        self._previous = 0
        self._slots[0] = sample

    def advance(self, sample: DynamicSample) -> tuple[DynamicSample, DynamicSample]:
        previous = self.previous
        if previous is None:
            raise RuntimeError("SnapshotArena.advance() called before seed()")
        self._slots[1 - self._previous] = sample
        return previous, sample

    def rotate(self) -> None:
        self._previous = 1 - self._previous


class TickSampler:
    def __init__(
        self,
        proc: ProcReader,
        resolver: SensorResolver,
        config: SamplerConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.proc = proc
        self.resolver = resolver
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.arena = SnapshotArena()
        self.iface = ""
        self.logger = logging.getLogger(self.__class__.__name__)

    def capture(self) -> DynamicSample:
        cpu = self.proc.cpu_stat()
        load_avg = self.proc.loadavg()
        net = self.proc.net_dev()
        timestamp_ms = self.clock() * 1000
        temp = self.resolver.resolve_cpu_temp()
        if not self.iface:
            self.iface = select_interface(
                net, self.config.iface, self.proc.default_route_iface()
            )
            self.logger.debug("Selected network interface %s", self.iface)
        snapshot = CounterSnapshot(timestamp_ms=timestamp_ms, cpu=cpu, net=net)
        return DynamicSample(snapshot=snapshot, load_avg=load_avg, temp=temp, iface=self.iface)

    def run(self) -> list[TickMetrics]:
        updates: list[TickMetrics] = []
        count = self.config.updates
        interval_s = self.config.interval_ms / 1000
        self.iface = ""
        self.arena.seed(self.capture())
        self.logger.info(
            "Capturing %s updates every %sms...", count, self.config.interval_ms
        )

        for index in range(count):
            self.sleep(interval_s)
            previous, current = self.arena.advance(self.capture())
            tick = compute_tick(previous, current)
            updates.append(tick)
            self.logger.info(
                "tick %s/%s: cpu=%s%% temp=%.1fC net=%s/%s kibps iface=%s",
                index + 1,
                count,
                tick.total_usage_pct,
                tick.temp_c,
                tick.download_kibps,
                tick.upload_kibps,
                current.iface,
            )
            if not current.temp.resolved:
                self.logger.info("  temp source unresolved (%s).", current.temp.source)
            self.arena.rotate()

        return updates
