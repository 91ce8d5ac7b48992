import base64
import json
import pytest
from telemetry_bridge.core.topic_registry import TopicRegistry
from telemetry_bridge.models.config import SensorKind
from telemetry_bridge.sensors.decoders import DecoderRegistry, decode_raw, json_decoder
from telemetry_bridge.sensors.payloads import CompassData
from telemetry_bridge.utils.exceptions import DecodeError, NotFoundError


@pytest.fixture
def registry(index):
    return TopicRegistry(index)


def test_topics_match_configured_sensors(registry, index):
    assert registry.topics == frozenset(index.sensors_by_topic)
    assert not registry.is_registered("sensors/unknown")


def test_binding_for_unregistered_topic(registry):
    with pytest.raises(NotFoundError):
        registry.binding("sensors/unknown")


def test_bindings_pick_decoder_by_kind(registry):
    kinds = {binding.topic: binding.kind for binding in registry.bindings}
    assert kinds["sensors/compass"] is SensorKind.COMPASS
    assert kinds["sensors/humidity"] is SensorKind.RAW
    assert registry.binding("sensors/humidity").decoder is decode_raw


def test_decode_temperature(registry):
    decoded = registry.decode("sensors/temperature", json.dumps({"temperature": 21.5}).encode())
    assert decoded == {"temperature": 21.5}


def test_decode_gps(registry):
    payload = json.dumps({"position": {"latitude": 59.3293, "longitude": 18.0686}}).encode()
    decoded = registry.decode("sensors/gps", payload)
    assert decoded["position"]["latitude"] == 59.3293


def test_decode_failure_keeps_raw_bytes(registry):
    payload = b"\x00\x01not json"
    decoded = registry.decode("sensors/temperature", payload)
    assert base64.b64decode(decoded["raw"]) == payload
    assert decoded["error"]


def test_out_of_range_heading_falls_back(registry):
    decoded = registry.decode("sensors/compass", json.dumps({"heading": 400}).encode())
    assert "raw" in decoded
    assert "CompassData" in decoded["error"]


def test_raw_kind_is_passthrough(registry):
    decoded = registry.decode("sensors/humidity", b"42")
    assert decoded == {"raw": base64.b64encode(b"42").decode()}


def test_json_decoder_raises_decode_error():
    decoder = json_decoder(CompassData)
    with pytest.raises(DecodeError, match="CompassData"):
        decoder(b"{}")


def test_unknown_kind_uses_raw_decoder():
    assert DecoderRegistry.get("vibration") is decode_raw
