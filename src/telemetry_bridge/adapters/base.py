# Abstract base class for bus adapters

from abc import ABC, abstractmethod
from typing import Optional

class CommunicationAdapter(ABC):
    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def publish(self, topic: str, payload: bytes, qos: Optional[int] = None,
                      retain: bool = False) -> None:
        pass
