"""Temperature probe discovery and selection.

Probes come from two sysfs trees (thermal zones and hwmon chips) and, as a
fallback or when the user names a sensor explicitly, from the text output
of lm-sensors' ``sensors`` tool. Candidates are ranked with keyword weight
tables; the hottest candidate wins ties.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from pathlib import Path
import re
from typing import Callable

from webtop_gen.commands import CommandResult, CommandRunner

MIN_VALID_C = -20.0
MAX_VALID_C = 150.0

SOURCE_THERMAL = "thermal"
SOURCE_HWMON = "hwmon"

# Keywords are matched as substrings of "<name> <label>" and their weights
# add up, so "x86_pkg_temp" on a "package" label beats a bare "cpu".
CPU_KEYWORD_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("x86_pkg_temp", 120),
    ("package", 100),
    ("cpu", 80),
    ("coretemp", 75),
    ("k10temp", 75),
    ("tctl", 70),
    ("tdie", 70),
    ("thermal", 20),
)

DISK_CHIP_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("nvme", 60),
    ("drivetemp", 60),
    ("ssd", 40),
    ("ata", 30),
)

DISK_LABEL_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("composite", 30),
    ("temperature", 20),
    ("temp1", 10),
)

CPU_CHIP_PATTERN = re.compile(r"k10temp|coretemp|cpu|x86_pkg_temp|package")
CPU_LABEL_PATTERN = re.compile(r"tctl|tdie|package|cpu|temp1")
DISK_CHIP_PATTERN = re.compile(r"nvme|drivetemp|ssd|ata")
DISK_LABEL_PATTERN = re.compile(r"composite|temp1|temperature")

_CPU_HINTS = ("cpu", "package", "coretemp", "k10temp", "x86_pkg_temp", "tctl", "tdie")
_MEASUREMENT = re.compile(r"^\s*([^:]+):\s*\+?(-?\d+(?:\.\d+)?)\s*°?C\b", re.IGNORECASE)
_HWMON_INPUT = re.compile(r"^temp(\d+)_input$")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SensorProbe:
    source: str
    name: str
    label: str
    path: Path


@dataclass(frozen=True)
class SensorReading:
    chip: str
    label: str
    celsius: float

    @property
    def id(self) -> str:
        return f"{self.chip}/{self.label}"

    @property
    def normalized_id(self) -> str:
        return normalize_sensor_id(self.id)


@dataclass(frozen=True)
class TempSelection:
    celsius: float | None
    source: str

    @property
    def resolved(self) -> bool:
        return self.celsius is not None and self.celsius != 0


@dataclass(frozen=True)
class _Candidate:
    celsius: float
    score: int
    source: str


def normalize_sensor_id(value: str) -> str:
    return _WHITESPACE.sub(" ", value.lower()).strip()


def _in_range(celsius: float) -> bool:
    return math.isfinite(celsius) and MIN_VALID_C <= celsius <= MAX_VALID_C


def normalize_temp_value(raw: str | float) -> float | None:
    """Convert a raw probe value to degrees Celsius.

    sysfs reports millidegrees, so anything above 1000 is scaled down.
    Out-of-range values are probe noise and yield ``None``.
    """
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    celsius = value / 1000 if value > 1000 else value
    if not _in_range(celsius):
        return None
    return round(celsius, 1)


def parse_sensors_output(text: str) -> list[SensorReading]:
    """Parse the human-readable output of ``sensors``.

    A chip header is an unindented line without a colon; measurement lines
    look like ``Tctl:  +45.2°C``. Anything else (fans, voltages, adapter
    lines, garbage) is skipped.
    """
    chip = ""
    entries: list[SensorReading] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not line[0].isspace() and ":" not in stripped:
            chip = stripped
            continue
        match = _MEASUREMENT.match(line)
        if not match or not match.group(1).strip():
            continue
        try:
            celsius = float(match.group(2))
        except ValueError:
            continue
        if not _in_range(celsius):
            continue
        entries.append(
            SensorReading(
                chip=chip or "unknown-chip",
                label=match.group(1).strip(),
                celsius=round(celsius, 1),
            )
        )
    return entries


def _weighted_score(text: str, weights: tuple[tuple[str, int], ...]) -> int:
    return sum(weight for keyword, weight in weights if keyword in text)


def score_cpu_probe(name: str, label: str) -> int:
    return _weighted_score(f"{name} {label}".lower(), CPU_KEYWORD_WEIGHTS)


def score_disk_reading(chip: str, label: str) -> int:
    return _weighted_score(chip.lower(), DISK_CHIP_WEIGHTS) + _weighted_score(
        label.lower(), DISK_LABEL_WEIGHTS
    )


def looks_like_cpu_temp(name: str, label: str) -> bool:
    text = f"{name} {label}".lower()
    return any(hint in text for hint in _CPU_HINTS)


def find_sensor_by_id(
    entries: list[SensorReading], identifier: str
) -> SensorReading | None:
    needle = normalize_sensor_id(identifier)
    for entry in entries:
        if needle in entry.normalized_id:
            return entry
    return None


def _select_from_sensors(
    entries: list[SensorReading],
    override: str,
    chip_pattern: re.Pattern[str],
    label_pattern: re.Pattern[str],
    scorer: Callable[[str, str], int],
) -> SensorReading | None:
    if override:
        return find_sensor_by_id(entries, override)
    candidates = [
        entry
        for entry in entries
        if chip_pattern.search(entry.chip.lower())
        and label_pattern.search(entry.label.lower())
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda entry: (scorer(entry.chip, entry.label), entry.celsius))


def select_cpu_from_sensors(
    entries: list[SensorReading], override: str = ""
) -> SensorReading | None:
    return _select_from_sensors(
        entries, override, CPU_CHIP_PATTERN, CPU_LABEL_PATTERN, score_cpu_probe
    )


def select_disk_from_sensors(
    entries: list[SensorReading], override: str = ""
) -> SensorReading | None:
    return _select_from_sensors(
        entries, override, DISK_CHIP_PATTERN, DISK_LABEL_PATTERN, score_disk_reading
    )


def _read_stripped(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return ""


def _list_dir(path: Path) -> list[Path]:
    try:
        return sorted(path.iterdir())
    except OSError:
        return []


def discover_probes(sys_root: str | Path = "/sys") -> list[SensorProbe]:
    root = Path(sys_root)
    probes: list[SensorProbe] = []

    for zone in _list_dir(root / "class" / "thermal"):
        if not zone.name.startswith("thermal_zone") or not zone.is_dir():
            continue
        zone_type = _read_stripped(zone / "type")
        probes.append(
            SensorProbe(
                source=SOURCE_THERMAL,
                name=zone_type or zone.name,
                label=zone.name,
                path=zone / "temp",
            )
        )

    for chip_dir in _list_dir(root / "class" / "hwmon"):
        if not chip_dir.is_dir():
            continue
        chip_name = _read_stripped(chip_dir / "name") or chip_dir.name
        for entry in _list_dir(chip_dir):
            match = _HWMON_INPUT.match(entry.name)
            if not match:
                continue
            index = match.group(1)
            label = _read_stripped(chip_dir / f"temp{index}_label")
            probes.append(
                SensorProbe(
                    source=SOURCE_HWMON,
                    name=chip_name,
                    label=label or f"temp{index}",
                    path=entry,
                )
            )

    return probes


class SensorResolver:
    """Discovers probes once and resolves CPU and disk temperatures.

    ``sensors_used`` records whether the external tool has produced output
    for the CPU temperature path during this run. Disk reads do not set it.
    """

    def __init__(
        self,
        runner: CommandRunner,
        sensors_path: str = "sensors",
        sys_root: str | Path = "/sys",
        cpu_temp_id: str = "",
        disk_temp_id: str = "",
    ) -> None:
        self.runner = runner
        self.sensors_path = sensors_path
        self.cpu_temp_id = cpu_temp_id
        self.disk_temp_id = disk_temp_id
        self.logger = logging.getLogger(self.__class__.__name__)
        self.probes = discover_probes(sys_root)
        self.sensors_used = False

    @property
    def probe_count(self) -> int:
        return len(self.probes)

    @property
    def cpu_hint_count(self) -> int:
        return sum(1 for probe in self.probes if looks_like_cpu_temp(probe.name, probe.label))

    def describe(self) -> None:
        self.logger.info(
            "CPU temp probes: found=%s, cpu-hints=%s",
            self.probe_count,
            self.cpu_hint_count,
        )
        if self.probe_count == 0:
            self.logger.info(
                "No readable probes in /sys/class/thermal or /sys/class/hwmon; "
                "temp will report 0C unless sensors provides one."
            )
        elif self.cpu_hint_count == 0:
            self.logger.info(
                "Probes found but none looked CPU-specific; using best available match."
            )
        if self.cpu_temp_id:
            self.logger.info('CPU temp selection: forcing sensors id match for "%s"', self.cpu_temp_id)
        if self.disk_temp_id:
            self.logger.info('Disk temp selection: forcing sensors id match for "%s"', self.disk_temp_id)

    def fetch_sensors_output(self) -> CommandResult:
        return self.runner.run([self.sensors_path])

    def read_sensors(self, result: CommandResult | None = None) -> list[SensorReading] | None:
        """Parsed ``sensors`` entries, or ``None`` when the tool gave nothing."""
        if result is None:
            result = self.fetch_sensors_output()
        if not result.ok or not result.stdout:
            return None
        return parse_sensors_output(result.stdout)

    def _read_cpu_sensors(self) -> list[SensorReading] | None:
        entries = self.read_sensors()
        if entries is not None:
            self.sensors_used = True
        return entries

    def resolve_cpu_temp(self) -> TempSelection:
        if self.cpu_temp_id:
            return self._match_override(
                self.cpu_temp_id, self._read_cpu_sensors(), unresolved=0.0
            )

        candidates: list[_Candidate] = []
        for probe in self.probes:
            celsius = normalize_temp_value(_read_stripped(probe.path))
            if celsius is None:
                continue
            candidates.append(
                _Candidate(
                    celsius=celsius,
                    score=score_cpu_probe(probe.name, probe.label),
                    source=f"{probe.source}:{probe.name}/{probe.label}",
                )
            )

        if candidates:
            pool = [candidate for candidate in candidates if candidate.score > 0] or candidates
            best = max(pool, key=lambda candidate: (candidate.score, candidate.celsius))
            return TempSelection(celsius=best.celsius, source=best.source)

        entries = self._read_cpu_sensors()
        if entries is not None:
            selected = select_cpu_from_sensors(entries)
            if selected is not None:
                return TempSelection(celsius=selected.celsius, source=f"sensors:{selected.id}")
        return TempSelection(
            celsius=0.0, source="sensors:no-cpu-temp" if self.sensors_used else "none"
        )

    def resolve_disk_temp(self, entries: list[SensorReading] | None) -> TempSelection:
        """Pick the disk temperature from already-read ``sensors`` entries.

        ``entries`` is ``None`` when the tool was unavailable; sysfs probes
        are never consulted for disks.
        """
        if self.disk_temp_id:
            return self._match_override(self.disk_temp_id, entries, unresolved=None)
        if entries is None:
            return TempSelection(celsius=None, source="none")
        selected = select_disk_from_sensors(entries)
        if selected is None:
            return TempSelection(celsius=None, source="none")
        return TempSelection(celsius=selected.celsius, source=f"sensors:{selected.id}")

    @staticmethod
    def _match_override(
        identifier: str,
        entries: list[SensorReading] | None,
        unresolved: float | None,
    ) -> TempSelection:
        # An explicit sensor id is authoritative: a miss never falls back
        # to the sysfs heuristics.
        if entries is None:
            return TempSelection(celsius=unresolved, source=f"sensors:unavailable:{identifier}")
        selected = find_sensor_by_id(entries, identifier)
        if selected is None:
            return TempSelection(celsius=unresolved, source=f"sensors:missing:{identifier}")
        return TempSelection(celsius=selected.celsius, source=f"sensors:{selected.id}")
