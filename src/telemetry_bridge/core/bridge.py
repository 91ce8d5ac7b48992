import asyncio
from typing import Any, Dict, Optional
from pydantic import ValidationError as PydanticValidationError
from ..adapters.mqtt import BrokerConnectionManager, MQTTConfig
from ..models.readings import SensorReading
from ..sensors.decoders import encode_raw
from ..storage.cache import SensorCache
from ..utils.exceptions import ConfigurationError
from ..utils.logging import get_logger
from .action_dispatcher import ActionDispatcher
from .broadcast import BroadcastHub
from .config_manager import ConfigManager, Settings
from .config_validator import ConfigIndex
from .file_gateway import FileGateway
from .formatter import format_reading
from .system_metrics import collect_system_metrics
from .topic_registry import TopicRegistry

logger = get_logger(__name__)


class BridgeService:
    """Owns all runtime state derived from one validated schema.

    Built once at startup. The sensor cache is written only from
    ``handle_message``; HTTP and WebSocket handlers read snapshots.
    """

    def __init__(self, raw_config: Dict[str, Any], index: ConfigIndex, settings: Settings):
        self.raw_config = raw_config
        self.index = index
        self.settings = settings

        self.registry = TopicRegistry(index)
        self.cache = SensorCache()
        self.hub = BroadcastHub(
            self.cache,
            queue_size=settings.realtime.queue_size,
            overflow_policy=settings.realtime.overflow_policy,
        )

        broker = index.config.broker
        try:
            mqtt_config = MQTTConfig(**{**settings.mqtt, "host": broker.host, "port": broker.port})
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid MQTT configuration: {e}") from e
        self.broker = BrokerConnectionManager(mqtt_config, self.registry.topics, self.handle_message)
        self.actions = ActionDispatcher(index, self.broker)

        default_upload_directory = (
            index.uploads[0].upload_directory if index.uploads
            else settings.files.default_upload_directory
        )
        self.files = FileGateway(
            index,
            base_directory=settings.base_directory,
            staging_directory=settings.bridge.staging_directory,
            default_upload_directory=default_upload_directory,
            chunk_size=settings.files.upload_chunk_size,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "BridgeService":
        raw_config, index = ConfigManager.load_schema(settings.schema_file)
        return cls(raw_config, index, settings)

    async def start(self) -> None:
        logger.info(f"Starting bridge with {len(self.registry.topics)} sensor topics")
        await self.broker.connect()

    async def stop(self) -> None:
        await self.broker.disconnect()
        logger.info("Bridge stopped")

    async def handle_message(self, topic: str, payload: bytes) -> Optional[SensorReading]:
        """Decode, format, cache and broadcast one bus message"""
        if not self.registry.is_registered(topic):
            logger.debug(f"Ignoring message on unconfigured topic {topic}")
            return None

        binding = self.registry.binding(topic)
        decoded = self.registry.decode(topic, payload)
        try:
            reading = format_reading(binding.member, decoded)
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            logger.warning(f"Could not format reading from {topic}: {str(e)}")
            reading = format_reading(binding.member, {"raw": encode_raw(payload), "error": str(e)})

        self.cache.update(binding.key, reading)
        self.hub.publish_sensor_update(binding.key, reading.to_dict())
        return reading

    async def system_status(self) -> Dict[str, str]:
        """Collect host metrics and push them to real-time clients"""
        metrics = await asyncio.to_thread(collect_system_metrics)
        self.hub.publish_system_update(metrics)
        return metrics
