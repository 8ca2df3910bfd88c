from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Any

from webtop_gen.commands import CommandRunner
from webtop_gen.config import AppConfig
from webtop_gen.procfs import ProcReader
from webtop_gen.sampler import TickSampler
from webtop_gen.sensors import SensorResolver
from webtop_gen.static import StaticSnapshotBuilder
from webtop_gen.ups import read_ups_snapshot


class WebtopCollector:
    """Runs one full capture: static snapshot, UPS status and the tick series."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.runner = CommandRunner(timeout_s=config.collector.command_timeout_s)
        self.proc = ProcReader(config.collector.proc_root)
        self.resolver = SensorResolver(
            self.runner,
            sensors_path=config.collector.sensors_path,
            sys_root=config.collector.sys_root,
            cpu_temp_id=config.sampler.cpu_temp_id,
            disk_temp_id=config.sampler.disk_temp_id,
        )
        self.static_builder = StaticSnapshotBuilder(
            self.proc,
            self.runner,
            self.resolver,
            df_path=config.collector.df_path,
            max_disks=config.sampler.max_disks,
        )
        self.sampler = TickSampler(self.proc, self.resolver, config.sampler)

    def collect(self) -> dict[str, Any]:
        self.resolver.describe()
        sampler_config = self.config.sampler

        with ThreadPoolExecutor(max_workers=2) as executor:
            static_future = executor.submit(self.static_builder.build)
            ups_future = executor.submit(
                read_ups_snapshot,
                self.runner,
                self.config.collector.upsc_path,
                sampler_config.ups_server,
            )
            static = static_future.result()
            ups = ups_future.result()

        if ups is not None and ups.status != "unavailable":
            self.logger.info(
                "UPS snapshot: status=%s charge=%s%% load=%s%%",
                ups.status,
                ups.battery_charge_pct if ups.battery_charge_pct is not None else "n/a",
                ups.load_pct if ups.load_pct is not None else "n/a",
            )

        updates = self.sampler.run()
        if self.resolver.sensors_used:
            self.logger.info(
                "CPU temp source: using sensors fallback when sysfs probes are unavailable."
            )

        payload: dict[str, Any] = {
            "memory": static.memory.to_dict(),
            "disks": [row.to_dict() for row in static.disks.rows],
            "diskTempC": static.disk_temp.celsius,
            "updates": [tick.to_dict() for tick in updates],
        }
        if ups is not None:
            payload["ups"] = ups.to_dict()
        return payload

