from __future__ import annotations

import argparse
import configparser
import json
import logging
from pathlib import Path
import platform

from webtop_gen.collector import WebtopCollector
from webtop_gen.config import AppConfig, MqttConfig, apply_overrides, load_config
from webtop_gen.logging_utils import configure_logging, resolve_log_level
from webtop_gen.mqtt_client import MqttPublisher
from webtop_gen.schema import validate_payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sample Linux CPU, memory, disk, network, temperature and UPS state "
        "over a fixed number of ticks and write a JSON snapshot series."
    )
    parser.add_argument("--config", help="Path to CFG configuration file")
    parser.add_argument("--out", help="Output JSON path (required)")
    parser.add_argument(
        "--updates", help="Number of tick updates to capture (default: 10)"
    )
    parser.add_argument(
        "--interval-ms",
        dest="interval_ms",
        help="Milliseconds between samples (default: 1000)",
    )
    parser.add_argument("--iface", help="Network interface override (default: auto)")
    parser.add_argument(
        "--max-disks",
        dest="max_disks",
        help="Max number of disk rows to emit (default: 8)",
    )
    parser.add_argument(
        "--cpu-temp-id",
        dest="cpu_temp_id",
        help="Preferred CPU temp sensor id, e.g. k10temp-pci-00c3/Tctl",
    )
    parser.add_argument(
        "--disk-temp-id",
        dest="disk_temp_id",
        help="Preferred disk temp sensor id, e.g. nvme-pci-0300/Composite",
    )
    parser.add_argument(
        "--ups-server",
        dest="ups_server",
        help='Optional NUT target for "upsc", e.g. ups@10.0.0.5',
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Also publish the payload to the MQTT broker from the config file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    return parser


def log_resolved_options(config: AppConfig) -> None:
    logger = logging.getLogger("webtop_gen")
    sampler = config.sampler
    logger.info("Resolved options:")
    logger.info("  updates: %s", sampler.updates)
    logger.info("  interval-ms: %s", sampler.interval_ms)
    logger.info("  iface: %s", sampler.iface or "auto")
    logger.info("  max-disks: %s", sampler.max_disks)
    logger.info("  cpu-temp-id: %s", sampler.cpu_temp_id or "auto")
    logger.info("  disk-temp-id: %s", sampler.disk_temp_id or "auto")
    logger.info("  ups-server: %s", sampler.ups_server or "off")
    logger.info("  out: %s", config.output.out)


def write_payload(path: Path, payload_json: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(payload_json)
        handle.write("\n")


def publish_payload(mqtt_config: MqttConfig, payload_json: str) -> bool:
    logger = logging.getLogger("webtop_gen")
    try:
        publisher = MqttPublisher(mqtt_config)
    except (OSError, ValueError) as exc:
        logger.error("Unable to set up MQTT client: %s", exc)
        return False
    return publisher.publish_once(payload_json)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("webtop_gen")

    if platform.system().lower() != "linux":
        logger.error("This tool requires Linux (/proc and /sys).")
        return 1

    try:
        config = load_config(args.config)
    except (FileNotFoundError, configparser.Error, ValueError) as exc:
        logger.error("Unable to load configuration: %s", exc)
        return 1
    config = apply_overrides(
        config,
        {
            "out": args.out,
            "updates": args.updates,
            "interval_ms": args.interval_ms,
            "iface": args.iface,
            "max_disks": args.max_disks,
            "cpu_temp_id": args.cpu_temp_id,
            "disk_temp_id": args.disk_temp_id,
            "ups_server": args.ups_server,
        },
    )

    if not config.output.out:
        logger.error("Missing required option: --out=<path>")
        return 1

    log_resolved_options(config)

    collector = WebtopCollector(config)
    try:
        payload = collector.collect()
    except KeyboardInterrupt:
        logger.info("Capture interrupted; no output written.")
        return 130

    schema_errors = validate_payload(payload)
    if schema_errors:
        logger.warning("Schema validation failed with %s errors.", len(schema_errors))
        logger.debug("Schema errors: %s", schema_errors)
    else:
        logger.debug("Schema validation passed.")

    payload_json = json.dumps(payload, indent=config.output.indent)
    out_path = Path(config.output.out).resolve()
    write_payload(out_path, payload_json)

    threads = len(payload["updates"][0]["cpu"]["perThreadPct"]) if payload["updates"] else 0
    logger.info(
        "Done: captured %s updates (%s threads) -> %s",
        len(payload["updates"]),
        threads,
        out_path,
    )

    if args.publish:
        if config.mqtt is None:
            logger.warning("--publish given but no [mqtt] host configured; skipping.")
        else:
            publish_payload(config.mqtt, json.dumps(payload))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
