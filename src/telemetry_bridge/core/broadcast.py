import asyncio
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict
from ..storage.cache import SensorCache
from ..utils.logging import get_logger

logger = get_logger(__name__)


class OverflowPolicy(str, Enum):
    DROP_NEWEST = "drop_newest"
    DROP_OLDEST = "drop_oldest"


@dataclass(eq=False)
class Client:
    """A connected real-time subscriber and its delivery queue"""
    client_id: str
    queue: asyncio.Queue
    dropped: int = 0
    queued: int = 0


class BroadcastHub:
    """Fans sensor and system events out to connected real-time clients.

    Publishing never waits: each client has a small bounded queue and a
    client that cannot keep up loses events on its own queue only.
    """

    def __init__(self, cache: SensorCache, queue_size: int = 64,
                 overflow_policy: OverflowPolicy = OverflowPolicy.DROP_NEWEST):
        self.cache = cache
        self.queue_size = max(1, queue_size)
        self.overflow_policy = OverflowPolicy(overflow_policy)
        self._clients: Dict[str, Client] = {}

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def connect(self) -> Client:
        """Register a client and queue its init event with the full snapshot"""
        client = Client(client_id=uuid.uuid4().hex, queue=asyncio.Queue(maxsize=self.queue_size))
        client.queue.put_nowait({"type": "init", "sensors": self.cache.snapshot()})
        self._clients[client.client_id] = client
        logger.info(f"Real-time client {client.client_id} connected ({self.client_count} total)")
        return client

    def disconnect(self, client: Client) -> None:
        if self._clients.pop(client.client_id, None) is not None:
            logger.info(
                f"Real-time client {client.client_id} disconnected "
                f"(queued {client.queued}, dropped {client.dropped})"
            )

    def publish(self, event: Dict[str, Any]) -> int:
        """Offer an event to every client; returns how many accepted it"""
        accepted = 0
        for client in list(self._clients.values()):
            if self._offer(client, event):
                accepted += 1
        return accepted

    def publish_sensor_update(self, sensor: str, data: Dict[str, Any]) -> int:
        return self.publish({"type": "sensor_update", "sensor": sensor, "data": data})

    def publish_system_update(self, data: Dict[str, Any]) -> int:
        return self.publish({"type": "system_update", "data": data})

    def _offer(self, client: Client, event: Dict[str, Any]) -> bool:
        try:
            client.queue.put_nowait(event)
            client.queued += 1
            return True
        except asyncio.QueueFull:
            pass

        client.dropped += 1
        if self.overflow_policy is OverflowPolicy.DROP_OLDEST:
            client.queue.get_nowait()
            client.queue.put_nowait(event)
            client.queued += 1
            logger.warning(f"Client {client.client_id} queue full, dropped oldest event")
            return True

        logger.warning(f"Client {client.client_id} queue full, dropped {event.get('type')} event")
        return False
