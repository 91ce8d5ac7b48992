# Latest-value cache for sensor readings

from typing import Dict, Any, Optional
from ..models.readings import SensorReading
from ..utils.logging import get_logger

logger = get_logger(__name__)

class SensorCache:
    """Latest reading per sensor key.

    Only the bus message path writes; everything else reads snapshots. All
    access happens on the event loop, so no lock is needed. Readings never
    expire: a value stays until replaced or the process restarts.
    """
    def __init__(self):
        self._readings: Dict[str, SensorReading] = {}

    def update(self, key: str, reading: SensorReading) -> None:
        """Replace the reading stored under key"""
        self._readings[key] = reading
        logger.debug(f"Cached reading for {key}: {reading.value}")

    def get(self, key: str) -> Optional[SensorReading]:
        return self._readings.get(key)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Point-in-time copy of every reading, ready for JSON"""
        return {key: reading.to_dict() for key, reading in self._readings.items()}

    def get_size(self) -> int:
        return len(self._readings)

    def __contains__(self, key: str) -> bool:
        return key in self._readings
