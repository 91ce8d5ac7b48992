from typing import Optional
from pydantic import BaseModel, field_validator


class TemperatureData(BaseModel):
    temperature: float
    unit: Optional[str] = None


class CompassData(BaseModel):
    heading: float
    unit: Optional[str] = None

    @field_validator('heading')
    def validate_heading(cls, v):
        if not 0 <= v <= 360:
            raise ValueError(f"Heading {v} is out of valid range")
        return v


class Position(BaseModel):
    latitude: float
    longitude: float
    altitude: Optional[float] = None

    @field_validator('latitude')
    def validate_latitude(cls, v):
        if not -90 <= v <= 90:
            raise ValueError(f"Latitude {v} is out of valid range")
        return v

    @field_validator('longitude')
    def validate_longitude(cls, v):
        if not -180 <= v <= 180:
            raise ValueError(f"Longitude {v} is out of valid range")
        return v


class GpsPositionData(BaseModel):
    position: Position
    unit: Optional[str] = None


class StatusMessage(BaseModel):
    status: int = 0
    device_id: str = ""
    message: str = ""
    timestamp: Optional[int] = None  # epoch milliseconds, set by the device
