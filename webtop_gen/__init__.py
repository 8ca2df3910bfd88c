"""webtop-gen Linux host snapshot series generator."""

from webtop_gen.config import AppConfig, load_config
from webtop_gen.collector import WebtopCollector
from webtop_gen.mqtt_client import MqttPublisher
from webtop_gen.schema import validate_payload
from webtop_gen.sensors import SensorResolver

__all__ = [
    "AppConfig",
    "MqttPublisher",
    "SensorResolver",
    "WebtopCollector",
    "load_config",
    "validate_payload",
]
