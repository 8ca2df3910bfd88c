"""Tests for configuration loading and command-line overrides."""
from __future__ import annotations

import pytest

from webtop_gen.config import (
    SamplerConfig,
    apply_overrides,
    clamp_int,
    load_config,
    normalize_ups_target,
)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "webtop.cfg"
    path.write_text(
        """[sampler]
updates = 5
interval_ms = 50
iface = eth1
max_disks = 200
cpu_temp_id = k10temp/Tctl
ups_server = upsc ups@10.0.0.5

[collector]
sensors_path = /usr/bin/sensors
command_timeout_s = 2.5

[output]
out = /tmp/webtop.json
indent = 2

[mqtt]
host = broker.local
port = 8883
tls = true
username = webtop
password =
""",
        encoding="utf-8",
    )
    return path


class TestClampInt:
    @pytest.mark.parametrize(
        "value,expected",
        [(5, 5), ("7", 7), (0, 1), (1000, 600), ("abc", 1), (None, 1), (float("nan"), 1), (3.9, 3)],
    )
    def test_clamp(self, value, expected):
        assert clamp_int(value, 1, 600) == expected


class TestNormalizeUpsTarget:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("ups@10.0.0.5", "ups@10.0.0.5"),
            ("  upsc   ups@host  ", "ups@host"),
            ("UPSC myups", "myups"),
            ("", ""),
            ("   ", ""),
            (None, ""),
            ("upscale@host", "upscale@host"),
        ],
    )
    def test_normalize(self, value, expected):
        assert normalize_ups_target(value) == expected


class TestLoadConfig:
    def test_defaults_without_file(self):
        config = load_config()

        assert config.sampler == SamplerConfig()
        assert config.collector.df_path == "df"
        assert config.collector.proc_root == "/proc"
        assert config.output.out is None
        assert config.mqtt is None

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.cfg")

    def test_file_values_are_clamped_and_normalised(self, config_file):
        config = load_config(config_file)

        assert config.sampler.updates == 5
        assert config.sampler.interval_ms == 100
        assert config.sampler.max_disks == 64
        assert config.sampler.iface == "eth1"
        assert config.sampler.cpu_temp_id == "k10temp/Tctl"
        assert config.sampler.ups_server == "ups@10.0.0.5"
        assert config.collector.sensors_path == "/usr/bin/sensors"
        assert config.collector.command_timeout_s == 2.5
        assert config.output.out == "/tmp/webtop.json"
        assert config.output.indent == 2

    def test_mqtt_section(self, config_file):
        mqtt = load_config(config_file).mqtt

        assert mqtt is not None
        assert mqtt.host == "broker.local"
        assert mqtt.port == 8883
        assert mqtt.tls_enabled is True
        assert mqtt.username == "webtop"
        assert mqtt.password is None
        assert mqtt.topic == "telemetry/webtop"


class TestApplyOverrides:
    def test_cli_values_win(self, config_file):
        config = apply_overrides(
            load_config(config_file),
            {"updates": "20", "iface": "wlan0", "out": "x.json", "max_disks": None},
        )

        assert config.sampler.updates == 20
        assert config.sampler.iface == "wlan0"
        assert config.sampler.max_disks == 64
        assert config.output.out == "x.json"
        assert config.output.indent == 2

    def test_empty_values_are_ignored(self):
        config = apply_overrides(load_config(), {"updates": "", "out": None})

        assert config.sampler.updates == 10
        assert config.output.out is None

    def test_override_values_are_clamped(self):
        config = apply_overrides(
            load_config(), {"interval_ms": "999999", "ups_server": "upsc ups@nas"}
        )

        assert config.sampler.interval_ms == 60000
        assert config.sampler.ups_server == "ups@nas"
