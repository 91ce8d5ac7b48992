import base64
from typing import Any, Callable, Dict, Type
from pydantic import BaseModel, ValidationError as PydanticValidationError
from ..models.config import SensorKind
from ..utils.exceptions import DecodeError
from .payloads import TemperatureData, CompassData, GpsPositionData, StatusMessage

Decoder = Callable[[bytes], Dict[str, Any]]


def encode_raw(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


def decode_raw(payload: bytes) -> Dict[str, Any]:
    """Passthrough for kinds without a schema: keep the bytes as base64"""
    return {"raw": encode_raw(payload)}


def json_decoder(model: Type[BaseModel]) -> Decoder:
    """Build a decoder that parses a JSON payload into ``model``"""
    def decode(payload: bytes) -> Dict[str, Any]:
        try:
            return model.model_validate_json(payload).model_dump(exclude_none=True)
        except PydanticValidationError as e:
            raise DecodeError(
                f"Invalid {model.__name__} payload: {e.error_count()} error(s), "
                f"first: {e.errors()[0]['msg']}"
            ) from e
    decode.__name__ = f"decode_{model.__name__}"
    return decode


class DecoderRegistry:
    """Registry of decode capabilities keyed by sensor kind"""
    _decoders: Dict[SensorKind, Decoder] = {
        SensorKind.TEMPERATURE: json_decoder(TemperatureData),
        SensorKind.COMPASS: json_decoder(CompassData),
        SensorKind.GPS: json_decoder(GpsPositionData),
        SensorKind.STATUS: json_decoder(StatusMessage),
        SensorKind.RAW: decode_raw,
    }

    @classmethod
    def register(cls, kind: SensorKind, decoder: Decoder) -> None:
        """Register or replace the decoder for a sensor kind"""
        cls._decoders[kind] = decoder

    @classmethod
    def get(cls, kind: SensorKind) -> Decoder:
        return cls._decoders.get(kind, decode_raw)
