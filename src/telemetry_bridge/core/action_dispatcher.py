import json
from typing import Any
from ..adapters.mqtt import BrokerConnectionManager
from ..models.config import ButtonMember
from ..utils.exceptions import BrokerUnavailableError, NotFoundError, ValidationError
from ..utils.logging import get_logger
from .config_validator import ConfigIndex

logger = get_logger(__name__)


def encode_payload(value: Any) -> bytes:
    """Encode an action value for the bus; None becomes an empty payload"""
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode()
    return json.dumps(value).encode()


class ActionDispatcher:
    """Publishes button actions to their configured topics.

    The broker address stays private to the bridge; callers only know the
    button_name from the schema.
    """

    def __init__(self, index: ConfigIndex, broker: BrokerConnectionManager):
        self.index = index
        self.broker = broker

    def resolve(self, action: str) -> ButtonMember:
        member = self.index.members_by_name.get(action)
        if not isinstance(member, ButtonMember):
            raise NotFoundError("Action not found in config")
        return member

    async def dispatch(self, action: str, value: Any = None) -> str:
        """Publish ``value`` to the button's topic and return the topic.

        When the bus is down, exactly one reconnect is attempted before
        giving up with BrokerUnavailableError.
        """
        if not action:
            raise ValidationError("No action provided in request")
        button = self.resolve(action)

        if not self.broker.connected.is_set():
            logger.warning(f"Broker not connected, attempting reconnect for action {action}")
            if not await self.broker.request_reconnect():
                raise BrokerUnavailableError("MQTT broker unavailable")

        payload = encode_payload(value)
        await self.broker.publish(button.publish_topic, payload)
        logger.info(f"Action {action} published to {button.publish_topic} ({len(payload)} bytes)")
        return button.publish_topic
