import json
import pytest
from telemetry_bridge.core.bridge import BridgeService
from telemetry_bridge.core.config_manager import ConfigManager
from telemetry_bridge.core.config_validator import ConfigValidator


def build_schema():
    return {
        "broker": {"host": "localhost", "port": 1883},
        "tabs": [
            {
                "id": "telemetry",
                "label": "Telemetry",
                "members": [
                    {"type": "sensor", "topic": "sensors/temperature", "label": "CPU"},
                    {"type": "sensor", "topic": "sensors/compass"},
                    {"type": "sensor", "topic": "sensors/gps"},
                    {"type": "sensor", "topic": "sensors/status"},
                    {"type": "sensor", "topic": "sensors/humidity", "unit": "%", "kind": "raw"},
                ],
            },
            {
                "id": "control",
                "members": [
                    {"type": "button", "button_name": "reboot", "publish_topic": "actuators/reboot"},
                    {"type": "button", "button_name": "fan", "publish_topic": "actuators/fan"},
                ],
            },
            {
                "id": "files",
                "members": [
                    {
                        "type": "upload",
                        "button_name": "firmware",
                        "upload_directory": "uploads",
                        "allowed_extensions": [".bin", ".txt"],
                        "max_file_size": 1024,
                    },
                    {
                        "type": "download",
                        "button_name": "logs",
                        "root_directory": "exports",
                        "allowed_extensions": [".log", ".txt"],
                    },
                ],
            },
        ],
    }


@pytest.fixture
def schema():
    return build_schema()


@pytest.fixture
def index(schema):
    return ConfigValidator.load(schema)


@pytest.fixture
def settings(tmp_path, schema):
    schema_file = tmp_path / "schema.json"
    schema_file.write_text(json.dumps(schema))
    settings_file = tmp_path / "settings.yml"
    settings_file.write_text(
        "api:\n"
        "  host: 127.0.0.1\n"
        "  port: 8000\n"
        "logging:\n"
        "  level: DEBUG\n"
        "  file: ''\n"
        "mqtt:\n"
        "  reconnect_interval: 0.01\n"
        "  connect_timeout: 0.5\n"
        "bridge:\n"
        "  schema_path: schema.json\n"
        "realtime:\n"
        "  queue_size: 8\n"
    )
    return ConfigManager.load_settings(str(settings_file))


@pytest.fixture
def bridge(settings):
    return BridgeService.from_settings(settings)


@pytest.fixture
def base_directory(settings):
    return settings.base_directory
