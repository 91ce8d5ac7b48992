from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Tuple
import traceback
from ..models.config import SensorKind, SensorMember
from ..sensors.decoders import Decoder, DecoderRegistry, encode_raw
from ..utils.exceptions import NotFoundError
from ..utils.logging import get_logger
from .config_validator import ConfigIndex

logger = get_logger(__name__)


@dataclass(frozen=True)
class TopicBinding:
    topic: str
    key: str
    kind: SensorKind
    member: SensorMember
    decoder: Decoder


class TopicRegistry:
    """Topics the bridge subscribes to and how each one is decoded.

    Built once from the validated configuration; it never changes at
    runtime, so the subscription set is exactly the configured sensor
    topics.
    """

    def __init__(self, index: ConfigIndex):
        self._bindings: Dict[str, TopicBinding] = {}
        for member in index.sensors:
            kind = member.sensor_kind
            self._bindings[member.topic] = TopicBinding(
                topic=member.topic,
                key=member.key,
                kind=kind,
                member=member,
                decoder=DecoderRegistry.get(kind),
            )
            logger.info(f"Registered sensor topic {member.topic} as '{member.key}' ({kind.value})")

    @property
    def topics(self) -> FrozenSet[str]:
        return frozenset(self._bindings)

    @property
    def bindings(self) -> Tuple[TopicBinding, ...]:
        return tuple(self._bindings.values())

    def is_registered(self, topic: str) -> bool:
        return topic in self._bindings

    def binding(self, topic: str) -> TopicBinding:
        try:
            return self._bindings[topic]
        except KeyError:
            raise NotFoundError(f"Topic not registered: {topic}") from None

    def decode(self, topic: str, payload: bytes) -> Dict[str, Any]:
        """Decode a payload for a registered topic.

        A failing decoder never drops the message: the result degrades to
        the raw bytes (base64) plus the error text.
        """
        binding = self.binding(topic)
        try:
            return binding.decoder(payload)
        except Exception as e:
            logger.warning(f"Decode failed on {topic}, keeping raw payload: {e}")
            logger.debug(traceback.format_exc())
            return {"raw": encode_raw(payload), "error": str(e)}
