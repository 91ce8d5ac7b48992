from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from ..models.config import SensorKind, SensorMember
from ..models.readings import SensorReading
from ..utils.logging import get_logger

logger = get_logger(__name__)

STATUS_LABELS = ("UNKNOWN", "ONLINE", "OFFLINE", "ERROR")

DEFAULT_UNITS: Dict[SensorKind, str] = {
    SensorKind.TEMPERATURE: "°C",
    SensorKind.COMPASS: "degrees",
    SensorKind.GPS: "decimal_degrees",
}

DEFAULT_DESCRIPTIONS: Dict[SensorKind, str] = {
    SensorKind.TEMPERATURE: "CPU Temperature",
    SensorKind.COMPASS: "Compass Heading",
    SensorKind.GPS: "GPS Location",
    SensorKind.STATUS: "Sensor Status",
}


def isoformat(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix"""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_unit(member: SensorMember, decoded: Dict[str, Any], kind: SensorKind) -> Optional[str]:
    # config > payload > per-kind default
    return member.unit or decoded.get("unit") or DEFAULT_UNITS.get(kind)


def _description(member: SensorMember, kind: SensorKind) -> Optional[str]:
    return member.description or DEFAULT_DESCRIPTIONS.get(kind)


def _format_temperature(member, decoded, kind, received_at) -> SensorReading:
    return SensorReading(
        value=decoded["temperature"],
        unit=resolve_unit(member, decoded, kind),
        timestamp=isoformat(received_at),
        description=_description(member, kind),
    )


def _format_compass(member, decoded, kind, received_at) -> SensorReading:
    return SensorReading(
        value=decoded["heading"],
        unit=resolve_unit(member, decoded, kind),
        timestamp=isoformat(received_at),
        description=_description(member, kind),
    )


def _format_gps(member, decoded, kind, received_at) -> SensorReading:
    position = decoded["position"]
    latitude = position["latitude"]
    longitude = position["longitude"]
    return SensorReading(
        value=f"{latitude:.6f}, {longitude:.6f}",
        unit=resolve_unit(member, decoded, kind),
        timestamp=isoformat(received_at),
        description=_description(member, kind),
        latitude=latitude,
        longitude=longitude,
    )


def _format_status(member, decoded, kind, received_at) -> SensorReading:
    status = decoded.get("status", 0)
    label = STATUS_LABELS[status] if 0 <= status < len(STATUS_LABELS) else STATUS_LABELS[0]

    # The device clock is authoritative for status messages
    device_time = decoded.get("timestamp")
    moment = received_at
    if device_time:
        try:
            moment = datetime.fromtimestamp(device_time / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Status timestamp {device_time} out of range, using receive time")

    return SensorReading(
        value=label,
        unit=member.unit,
        timestamp=isoformat(moment),
        description=_description(member, kind),
        device_id=decoded.get("device_id", ""),
        message=decoded.get("message", ""),
    )


def _format_raw(member, decoded, kind, received_at) -> SensorReading:
    extra = {"raw": decoded.get("raw", "")}
    if decoded.get("error"):
        extra["error"] = decoded["error"]
    return SensorReading(
        value=decoded.get("raw", ""),
        unit=member.unit,
        timestamp=isoformat(received_at),
        description=member.description,
        **extra,
    )


_FORMATTERS: Dict[SensorKind, Callable[..., SensorReading]] = {
    SensorKind.TEMPERATURE: _format_temperature,
    SensorKind.COMPASS: _format_compass,
    SensorKind.GPS: _format_gps,
    SensorKind.STATUS: _format_status,
    SensorKind.RAW: _format_raw,
}


def format_reading(
    member: SensorMember,
    decoded: Dict[str, Any],
    received_at: Optional[datetime] = None,
) -> SensorReading:
    """Normalize a decoded payload into the reading served to clients.

    Payloads that fell back to raw passthrough keep their base64 bytes and
    decode error regardless of the sensor kind.
    """
    received_at = received_at or datetime.now(timezone.utc)
    kind = member.sensor_kind
    if "raw" in decoded:
        return _format_raw(member, decoded, kind, received_at)
    formatter = _FORMATTERS.get(kind, _format_raw)
    return formatter(member, decoded, kind, received_at)
