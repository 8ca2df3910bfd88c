from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Any

from webtop_gen.commands import CommandRunner

UPS_SOURCE = "nut"
STATUS_UNAVAILABLE = "unavailable"
STATUS_UNKNOWN = "unknown"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpsSnapshot:
    status: str
    battery_charge_pct: float | None = None
    battery_runtime_sec: float | None = None
    load_pct: float | None = None
    output_voltage_v: float | None = None
    source: str = UPS_SOURCE

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"source": self.source, "status": self.status}
        optional = {
            "batteryChargePct": self.battery_charge_pct,
            "batteryRuntimeSec": self.battery_runtime_sec,
            "loadPct": self.load_pct,
            "outputVoltageV": self.output_voltage_v,
        }
        result.update({key: value for key, value in optional.items() if value is not None})
        return result


def parse_upsc_output(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        if not key:
            continue
        values[key] = value.strip()
    return values


def parse_optional_number(value: str | None) -> float | None:
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return round(number, 2)


def read_ups_snapshot(
    runner: CommandRunner, upsc_path: str, target: str
) -> UpsSnapshot | None:
    """Query ``upsc`` once. ``None`` means no UPS target was configured."""
    if not target:
        return None

    result = runner.run([upsc_path, target])
    if not result.ok:
        logger.info('UPS snapshot unresolved for "%s" (%s).', target, result.error)
        return UpsSnapshot(status=STATUS_UNAVAILABLE)

    values = parse_upsc_output(result.stdout or "")
    return UpsSnapshot(
        status=values.get("ups.status") or STATUS_UNKNOWN,
        battery_charge_pct=parse_optional_number(values.get("battery.charge")),
        battery_runtime_sec=parse_optional_number(values.get("battery.runtime")),
        load_pct=parse_optional_number(values.get("ups.load")),
        output_voltage_v=parse_optional_number(values.get("output.voltage")),
    )
