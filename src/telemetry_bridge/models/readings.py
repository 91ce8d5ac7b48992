from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class SensorReading(BaseModel):
    """Latest formatted value for one sensor key.

    Type specific fields (device_id, message, latitude, raw, error, ...)
    are carried as extras.
    """
    model_config = ConfigDict(extra="allow")

    value: Any = None
    unit: Optional[str] = None
    timestamp: str
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)
