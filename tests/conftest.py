"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from pathlib import Path

import pytest

from webtop_gen.commands import CommandResult
from webtop_gen.config import AppConfig, CollectorConfig, OutputConfig, SamplerConfig

PROC_STAT = """cpu  100 0 50 800 50 0 0 0 0 0
cpu0 50 0 25 400 25 0 0 0 0 0
cpu1 50 0 25 400 25 0 0 0 0 0
intr 12345 0 0
ctxt 6789
"""

PROC_LOADAVG = "0.52 0.48 0.41 2/512 12345\n"

PROC_NET_DEV = """Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:    1000      10    0    0    0     0          0         0     1000      10    0    0    0     0       0          0
  eth0: 2048000    1500    0    0    0     0          0         0   512000    1200    0    0    0     0       0          0
"""

PROC_NET_ROUTE = """Iface\tDestination\tGateway \tFlags\tRefCnt\tUse\tMetric\tMask\t\tMTU\tWindow\tIRTT
eth0\t00000000\t0101A8C0\t0003\t0\t0\t100\t00000000\t0\t0\t0
eth0\t0001A8C0\t00000000\t0001\t0\t0\t100\t00FFFFFF\t0\t0\t0
"""

PROC_MEMINFO = """MemTotal:       16777216 kB
MemFree:         2097152 kB
MemAvailable:    8388608 kB
Buffers:          262144 kB
Cached:          3145728 kB
SReclaimable:    1048576 kB
"""


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "linux: mark test as Linux-specific"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


def write_tree(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def proc_root(tmp_path):
    """A fake /proc with one stat, loadavg, net/dev, net/route and meminfo."""
    return write_tree(
        tmp_path / "proc",
        {
            "stat": PROC_STAT,
            "loadavg": PROC_LOADAVG,
            "net/dev": PROC_NET_DEV,
            "net/route": PROC_NET_ROUTE,
            "meminfo": PROC_MEMINFO,
        },
    )


@pytest.fixture
def sys_root(tmp_path):
    """A fake /sys with an ACPI thermal zone and a coretemp hwmon chip."""
    return write_tree(
        tmp_path / "sys",
        {
            "class/thermal/thermal_zone0/type": "acpitz\n",
            "class/thermal/thermal_zone0/temp": "41000\n",
            "class/hwmon/hwmon1/name": "coretemp\n",
            "class/hwmon/hwmon1/temp1_input": "52000\n",
            "class/hwmon/hwmon1/temp1_label": "Package id 0\n",
            "class/hwmon/hwmon1/temp2_input": "55000\n",
            "class/hwmon/hwmon1/temp2_label": "Core 0\n",
        },
    )


@pytest.fixture
def empty_sys_root(tmp_path):
    root = tmp_path / "empty-sys"
    root.mkdir()
    return root


@pytest.fixture
def app_config(proc_root, sys_root):
    """Create an app config pointed at the fake trees."""
    return AppConfig(
        sampler=SamplerConfig(updates=2, interval_ms=100, max_disks=8),
        collector=CollectorConfig(
            df_path="df",
            sensors_path="sensors",
            upsc_path="upsc",
            proc_root=str(proc_root),
            sys_root=str(sys_root),
            command_timeout_s=5.0,
        ),
        output=OutputConfig(out="out.json", indent=4),
    )


def ok(stdout: str) -> CommandResult:
    return CommandResult(stdout=stdout)


def failed(error: str = "boom") -> CommandResult:
    return CommandResult.failure(error)
