import pytest
from telemetry_bridge.core.config_validator import ConfigValidator
from telemetry_bridge.models.config import SensorKind
from telemetry_bridge.utils.exceptions import ConfigurationError


def _files_tab(schema):
    return next(tab for tab in schema["tabs"] if tab["id"] == "files")


def test_valid_schema_builds_index(index):
    assert set(index.sensors_by_topic) == {
        "sensors/temperature", "sensors/compass", "sensors/gps", "sensors/status", "sensors/humidity"
    }
    assert [b.button_name for b in index.buttons] == ["reboot", "fan"]
    assert index.uploads[0].button_name == "firmware"
    assert index.downloads[0].button_name == "logs"
    assert set(index.members_by_name) == {"reboot", "fan", "firmware", "logs"}


def test_unknown_member_keys_are_preserved(index):
    sensor = index.sensors_by_topic["sensors/temperature"]
    assert sensor.model_extra["label"] == "CPU"
    assert index.config.tabs[0].model_extra["label"] == "Telemetry"


def test_sensor_kind_from_topic_or_declaration(index):
    assert index.sensors_by_topic["sensors/temperature"].sensor_kind is SensorKind.TEMPERATURE
    assert index.sensors_by_topic["sensors/humidity"].sensor_kind is SensorKind.RAW
    assert index.sensors_by_topic["sensors/gps"].key == "gps"


def test_duplicate_button_name_is_rejected(schema):
    _files_tab(schema)["members"].append({
        "type": "download",
        "button_name": "logs",
        "root_directory": "other",
        "allowed_extensions": [".txt"],
    })
    with pytest.raises(ConfigurationError) as exc_info:
        ConfigValidator.load(schema)
    assert "logs" in str(exc_info.value)


def test_duplicate_name_across_member_types(schema):
    schema["tabs"][1]["members"].append(
        {"type": "button", "button_name": "firmware", "publish_topic": "a/b"}
    )
    with pytest.raises(ConfigurationError, match="duplicate button_name: firmware"):
        ConfigValidator.load(schema)


def test_upload_without_directory(schema):
    del _files_tab(schema)["members"][0]["upload_directory"]
    with pytest.raises(ConfigurationError, match="Upload config missing upload_directory for button: firmware"):
        ConfigValidator.load(schema)


def test_upload_without_extensions(schema):
    _files_tab(schema)["members"][0]["allowed_extensions"] = []
    with pytest.raises(ConfigurationError, match="allowed_extensions"):
        ConfigValidator.load(schema)


def test_upload_with_non_positive_size(schema):
    _files_tab(schema)["members"][0]["max_file_size"] = 0
    with pytest.raises(ConfigurationError, match="max_file_size"):
        ConfigValidator.load(schema)


def test_download_without_root(schema):
    del _files_tab(schema)["members"][1]["root_directory"]
    with pytest.raises(ConfigurationError, match="Download config missing root_directory for button: logs"):
        ConfigValidator.load(schema)


def test_download_without_extensions(schema):
    del _files_tab(schema)["members"][1]["allowed_extensions"]
    with pytest.raises(ConfigurationError, match="Download config missing allowed_extensions"):
        ConfigValidator.load(schema)


def test_button_without_topic(schema):
    del schema["tabs"][1]["members"][0]["publish_topic"]
    with pytest.raises(ConfigurationError, match="Button config missing publish_topic for button: reboot"):
        ConfigValidator.load(schema)


def test_member_without_button_name(schema):
    del schema["tabs"][1]["members"][1]["button_name"]
    with pytest.raises(ConfigurationError, match="missing button_name"):
        ConfigValidator.load(schema)


def test_upload_checked_before_button(schema):
    del schema["tabs"][1]["members"][0]["publish_topic"]
    del _files_tab(schema)["members"][0]["upload_directory"]
    with pytest.raises(ConfigurationError, match="upload_directory"):
        ConfigValidator.load(schema)


@pytest.mark.parametrize("topic", ["sensors/+", "sensors/#"])
def test_wildcard_sensor_topic(schema, topic):
    schema["tabs"][0]["members"].append({"type": "sensor", "topic": topic})
    with pytest.raises(ConfigurationError, match="wildcards"):
        ConfigValidator.load(schema)


def test_duplicate_sensor_topic(schema):
    schema["tabs"][1]["members"].append({"type": "sensor", "topic": "sensors/compass"})
    with pytest.raises(ConfigurationError, match="duplicate sensor topic: sensors/compass"):
        ConfigValidator.load(schema)


def test_sensor_key_collision(schema):
    schema["tabs"][0]["members"].append({"type": "sensor", "topic": "lab/temperature"})
    with pytest.raises(ConfigurationError, match="share the sensor key 'temperature'"):
        ConfigValidator.load(schema)


def test_sensor_without_topic(schema):
    schema["tabs"][0]["members"].append({"type": "sensor"})
    with pytest.raises(ConfigurationError, match="missing topic"):
        ConfigValidator.load(schema)


def test_duplicate_tab_id(schema):
    schema["tabs"].append({"id": "control", "members": []})
    with pytest.raises(ConfigurationError, match="duplicate tab id: control"):
        ConfigValidator.load(schema)


def test_unknown_member_type(schema):
    schema["tabs"][0]["members"].append({"type": "slider"})
    with pytest.raises(ConfigurationError, match="Invalid schema"):
        ConfigValidator.load(schema)


def test_missing_broker(schema):
    del schema["broker"]
    with pytest.raises(ConfigurationError):
        ConfigValidator.load(schema)


def test_schema_must_be_mapping():
    with pytest.raises(ConfigurationError, match="mapping"):
        ConfigValidator.load(["not", "a", "schema"])
