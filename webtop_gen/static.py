from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import re
from typing import Any

from webtop_gen.commands import CommandRunner
from webtop_gen.procfs import MemorySnapshot, ProcReader, memory_snapshot_from_meminfo, parse_meminfo
from webtop_gen.sensors import SensorResolver, TempSelection

# Pseudo and virtual filesystems passed to df as -x exclusions.
EXCLUDED_FS = (
    "tmpfs",
    "devtmpfs",
    "overlay",
    "squashfs",
    "proc",
    "sysfs",
    "cgroup",
    "cgroup2",
    "tracefs",
    "debugfs",
    "mqueue",
    "hugetlbfs",
    "fusectl",
    "securityfs",
    "pstore",
    "configfs",
    "ramfs",
    "autofs",
)

SNAP_MOUNT_PREFIX = "/snap"
_EFI = re.compile(r"efi", re.IGNORECASE)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiskRow:
    name: str
    total_gb: float
    usage_pct: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "totalGb": self.total_gb, "usagePct": self.usage_pct}


@dataclass(frozen=True)
class DiskSnapshot:
    rows: list[DiskRow] = field(default_factory=list)
    skipped_efi: int = 0


@dataclass(frozen=True)
class StaticSnapshot:
    memory: MemorySnapshot
    disks: DiskSnapshot
    disk_temp: TempSelection
    sensors_entry_count: int = 0


def build_disk_name(mount_point: str) -> str:
    if mount_point == "/":
        return "root"
    name = mount_point.removeprefix("/").replace("/", "-")
    return name or "root"


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_df_output(text: str, max_disks: int) -> DiskSnapshot:
    """Turn ``df -B1 -P`` output into named disk rows.

    EFI partitions are dropped before deduplication and the row cap, so
    they never take up one of the ``max_disks`` slots.
    """
    rows: list[DiskRow] = []
    skipped_efi = 0
    for line in text.strip().splitlines()[1:]:
        cols = line.split()
        if len(cols) < 6:
            continue
        fs_name = cols[0]
        total_bytes = _to_int(cols[1])
        used_bytes = _to_int(cols[2])
        mount_point = " ".join(cols[5:])
        if not mount_point or mount_point.startswith(SNAP_MOUNT_PREFIX):
            continue
        if fs_name.startswith(("tmpfs", "devtmpfs")):
            continue

        name = build_disk_name(mount_point)
        if _EFI.search(name):
            skipped_efi += 1
            continue

        usage_pct = round(used_bytes / total_bytes * 100) if total_bytes > 0 else 0
        rows.append(
            DiskRow(
                name=name,
                total_gb=round(total_bytes / 1024 / 1024 / 1024, 2),
                usage_pct=max(0, min(100, usage_pct)),
            )
        )

    deduped: list[DiskRow] = []
    seen: set[str] = set()
    for row in rows:
        if row.name in seen:
            continue
        seen.add(row.name)
        deduped.append(row)
        if len(deduped) >= max_disks:
            break
    return DiskSnapshot(rows=deduped, skipped_efi=skipped_efi)


def df_command(df_path: str = "df") -> list[str]:
    command = [df_path, "-B1", "-P"]
    for fs_type in EXCLUDED_FS:
        command.extend(["-x", fs_type])
    return command


def read_disk_rows(runner: CommandRunner, df_path: str, max_disks: int) -> DiskSnapshot:
    result = runner.run(df_command(df_path))
    if not result.ok:
        logger.debug("Disk usage unavailable: %s", result.error)
        return DiskSnapshot()
    return parse_df_output(result.stdout or "", max_disks)


class StaticSnapshotBuilder:
    def __init__(
        self,
        proc: ProcReader,
        runner: CommandRunner,
        resolver: SensorResolver,
        df_path: str = "df",
        max_disks: int = 8,
    ) -> None:
        self.proc = proc
        self.runner = runner
        self.resolver = resolver
        self.df_path = df_path
        self.max_disks = max_disks
        self.logger = logging.getLogger(self.__class__.__name__)

    def build(self) -> StaticSnapshot:
        self.logger.info("Reading static snapshot...")
        with ThreadPoolExecutor(max_workers=3) as executor:
            meminfo_future = executor.submit(self.proc.read_text, "meminfo")
            disks_future = executor.submit(
                read_disk_rows, self.runner, self.df_path, self.max_disks
            )
            sensors_future = executor.submit(self.resolver.fetch_sensors_output)
            meminfo_text = meminfo_future.result()
            disks = disks_future.result()
            sensors_result = sensors_future.result()

        entries = self.resolver.read_sensors(sensors_result)
        disk_temp = self.resolver.resolve_disk_temp(entries)
        snapshot = StaticSnapshot(
            memory=memory_snapshot_from_meminfo(parse_meminfo(meminfo_text)),
            disks=disks,
            disk_temp=disk_temp,
            sensors_entry_count=len(entries or []),
        )

        self.logger.info(
            "Static snapshot: disks=%s (filtered efi=%s, sensors-entries=%s)",
            len(disks.rows),
            disks.skipped_efi,
            snapshot.sensors_entry_count,
        )
        if disk_temp.celsius is not None:
            self.logger.info(
                "Disk temp selected: %.1fC from %s", disk_temp.celsius, disk_temp.source
            )
        else:
            self.logger.info("Disk temp unresolved (source=%s).", disk_temp.source)
        return snapshot
