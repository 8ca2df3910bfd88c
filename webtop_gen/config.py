from __future__ import annotations

import configparser
import math
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

UPDATES_RANGE = (1, 600)
INTERVAL_MS_RANGE = (100, 60000)
MAX_DISKS_RANGE = (1, 64)

_UPSC_PREFIX = re.compile(r"^upsc\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class SamplerConfig:
    updates: int = 10
    interval_ms: int = 1000
    iface: str = ""
    max_disks: int = 8
    cpu_temp_id: str = ""
    disk_temp_id: str = ""
    ups_server: str = ""


@dataclass(frozen=True)
class CollectorConfig:
    df_path: str = "df"
    sensors_path: str = "sensors"
    upsc_path: str = "upsc"
    proc_root: str = "/proc"
    sys_root: str = "/sys"
    command_timeout_s: float = 10.0


@dataclass(frozen=True)
class OutputConfig:
    out: str | None = None
    indent: int = 4


@dataclass(frozen=True)
class MqttConfig:
    host: str
    port: int
    topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    tls_enabled: bool
    ca_cert: str | None
    keepalive: int


@dataclass(frozen=True)
class AppConfig:
    sampler: SamplerConfig
    collector: CollectorConfig
    output: OutputConfig
    mqtt: MqttConfig | None = None


def clamp_int(value: Any, minimum: int, maximum: int) -> int:
    """Coerce ``value`` to an int inside ``[minimum, maximum]``.

    Anything that is not a finite number collapses to ``minimum``.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return minimum
    if not math.isfinite(number):
        return minimum
    return max(minimum, min(maximum, math.floor(number)))


def normalize_ups_target(value: str | None) -> str:
    """Accept either ``ups@host`` or a pasted ``upsc ups@host`` command."""
    if not value:
        return ""
    trimmed = value.strip()
    if not trimmed:
        return ""
    match = _UPSC_PREFIX.match(trimmed)
    if match:
        return match.group(1).strip()
    return trimmed


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _normalize_sampler(sampler: SamplerConfig) -> SamplerConfig:
    return replace(
        sampler,
        updates=clamp_int(sampler.updates, *UPDATES_RANGE),
        interval_ms=clamp_int(sampler.interval_ms, *INTERVAL_MS_RANGE),
        max_disks=clamp_int(sampler.max_disks, *MAX_DISKS_RANGE),
        iface=sampler.iface.strip(),
        cpu_temp_id=sampler.cpu_temp_id.strip(),
        disk_temp_id=sampler.disk_temp_id.strip(),
        ups_server=normalize_ups_target(sampler.ups_server),
    )


def load_config(path: str | Path | None = None) -> AppConfig:
    parser = configparser.ConfigParser()
    if path is not None:
        read_files = parser.read(path)
        if not read_files:
            raise FileNotFoundError(f"Config file not found: {path}")

    defaults = SamplerConfig()
    sampler = SamplerConfig(
        updates=parser.get("sampler", "updates", fallback=str(defaults.updates)),
        interval_ms=parser.get(
            "sampler", "interval_ms", fallback=str(defaults.interval_ms)
        ),
        iface=parser.get("sampler", "iface", fallback=""),
        max_disks=parser.get("sampler", "max_disks", fallback=str(defaults.max_disks)),
        cpu_temp_id=parser.get("sampler", "cpu_temp_id", fallback=""),
        disk_temp_id=parser.get("sampler", "disk_temp_id", fallback=""),
        ups_server=parser.get("sampler", "ups_server", fallback=""),
    )

    collector = CollectorConfig(
        df_path=parser.get("collector", "df_path", fallback="df"),
        sensors_path=parser.get("collector", "sensors_path", fallback="sensors"),
        upsc_path=parser.get("collector", "upsc_path", fallback="upsc"),
        proc_root=parser.get("collector", "proc_root", fallback="/proc"),
        sys_root=parser.get("collector", "sys_root", fallback="/sys"),
        command_timeout_s=parser.getfloat(
            "collector", "command_timeout_s", fallback=10.0
        ),
    )

    output = OutputConfig(
        out=_get_optional(parser.get("output", "out", fallback=None)),
        indent=parser.getint("output", "indent", fallback=4),
    )

    mqtt = None
    mqtt_host = _get_optional(parser.get("mqtt", "host", fallback=None))
    if mqtt_host:
        mqtt_section = parser["mqtt"]
        mqtt = MqttConfig(
            host=mqtt_host,
            port=mqtt_section.getint("port", 1883),
            topic=mqtt_section.get("topic", "telemetry/webtop"),
            client_id=mqtt_section.get("client_id", "webtop-gen"),
            username=_get_optional(mqtt_section.get("username")),
            password=_get_optional(mqtt_section.get("password")),
            qos=mqtt_section.getint("qos", 0),
            retain=mqtt_section.getboolean("retain", False),
            tls_enabled=mqtt_section.getboolean("tls", False),
            ca_cert=_get_optional(mqtt_section.get("ca_cert")),
            keepalive=mqtt_section.getint("keepalive", 60),
        )

    return AppConfig(
        sampler=_normalize_sampler(sampler),
        collector=collector,
        output=output,
        mqtt=mqtt,
    )


def apply_overrides(config: AppConfig, overrides: dict[str, Any]) -> AppConfig:
    """Layer command-line values over a loaded config.

    Keys are ``SamplerConfig`` field names plus ``out``. ``None`` and empty
    strings mean "not given" and leave the file value in place.
    """
    given = {key: value for key, value in overrides.items() if value not in (None, "")}
    out = given.pop("out", None)
    sampler_fields = {
        key: value for key, value in given.items() if hasattr(config.sampler, key)
    }
    sampler = _normalize_sampler(replace(config.sampler, **sampler_fields))
    output = replace(config.output, out=out) if out else config.output
    return replace(config, sampler=sampler, output=output)
