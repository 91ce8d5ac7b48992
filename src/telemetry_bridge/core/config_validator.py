from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Tuple
from pydantic import ValidationError as PydanticValidationError
from ..models.config import (
    Configuration, Tab, SensorMember, ButtonMember, UploadMember, DownloadMember, NamedMember
)
from ..utils.exceptions import ConfigurationError
from ..utils.logging import get_logger

logger = get_logger(__name__)

MQTT_WILDCARDS = ("+", "#")


@dataclass(frozen=True)
class ConfigIndex:
    """Validated configuration plus the lookups derived from it"""
    config: Configuration
    members_by_name: Mapping[str, NamedMember]
    sensors_by_topic: Mapping[str, SensorMember]
    buttons: Tuple[ButtonMember, ...] = field(default=())
    uploads: Tuple[UploadMember, ...] = field(default=())
    downloads: Tuple[DownloadMember, ...] = field(default=())

    @property
    def sensors(self) -> Tuple[SensorMember, ...]:
        return tuple(self.sensors_by_topic.values())


def iter_members(config: Configuration) -> Iterator[Tuple[Tab, Any]]:
    for tab in config.tabs:
        for member in tab.members:
            yield tab, member


class ConfigValidator:
    """Fail-fast checks on the bridge schema.

    Checks run in a fixed order and the first failure raises
    ConfigurationError; there is no partially valid configuration.
    """

    @staticmethod
    def parse(raw: Dict[str, Any]) -> Configuration:
        """Parse a loaded schema document into the typed model"""
        if not isinstance(raw, dict):
            raise ConfigurationError("Schema must be a mapping with 'broker' and 'tabs'")
        try:
            return Configuration.model_validate(raw)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid schema: {e}") from e

    @classmethod
    def validate(cls, config: Configuration) -> ConfigIndex:
        members_by_name = cls._check_button_names(config)
        cls._check_uploads(config)
        cls._check_downloads(config)
        cls._check_buttons(config)
        sensors_by_topic = cls._check_sensors(config)
        cls._check_tabs(config)

        index = ConfigIndex(
            config=config,
            members_by_name=MappingProxyType(members_by_name),
            sensors_by_topic=MappingProxyType(sensors_by_topic),
            buttons=tuple(m for _, m in iter_members(config) if isinstance(m, ButtonMember)),
            uploads=tuple(m for _, m in iter_members(config) if isinstance(m, UploadMember)),
            downloads=tuple(m for _, m in iter_members(config) if isinstance(m, DownloadMember)),
        )
        logger.info(
            f"Config validation passed: {len(index.sensors_by_topic)} sensors, "
            f"{len(index.buttons)} buttons, {len(index.uploads)} uploads, "
            f"{len(index.downloads)} downloads"
        )
        return index

    @classmethod
    def load(cls, raw: Dict[str, Any]) -> ConfigIndex:
        return cls.validate(cls.parse(raw))

    @staticmethod
    def _check_button_names(config: Configuration) -> Dict[str, NamedMember]:
        members_by_name: Dict[str, NamedMember] = {}
        for tab, member in iter_members(config):
            if isinstance(member, SensorMember):
                continue
            if isinstance(member, (ButtonMember, UploadMember, DownloadMember)):
                name = member.button_name
                if not name:
                    raise ConfigurationError(
                        f"{member.type.capitalize()} config in tab '{tab.id}' is missing button_name"
                    )
                if name in members_by_name:
                    raise ConfigurationError(f"duplicate button_name: {name}")
                members_by_name[name] = member
            else:
                raise ConfigurationError(f"Unsupported member type in tab '{tab.id}': {type(member).__name__}")
        return members_by_name

    @staticmethod
    def _check_uploads(config: Configuration) -> None:
        for _, member in iter_members(config):
            if not isinstance(member, UploadMember):
                continue
            if not member.upload_directory:
                raise ConfigurationError(
                    f"Upload config missing upload_directory for button: {member.button_name}"
                )
            if not member.allowed_extensions:
                raise ConfigurationError(
                    f"Upload config missing allowed_extensions for button: {member.button_name}"
                )
            if member.max_file_size is not None and member.max_file_size <= 0:
                raise ConfigurationError(
                    f"Upload config max_file_size must be positive for button: {member.button_name}"
                )

    @staticmethod
    def _check_downloads(config: Configuration) -> None:
        for _, member in iter_members(config):
            if not isinstance(member, DownloadMember):
                continue
            if not member.root_directory:
                raise ConfigurationError(
                    f"Download config missing root_directory for button: {member.button_name}"
                )
            if not member.allowed_extensions:
                raise ConfigurationError(
                    f"Download config missing allowed_extensions for button: {member.button_name}"
                )

    @staticmethod
    def _check_buttons(config: Configuration) -> None:
        for _, member in iter_members(config):
            if isinstance(member, ButtonMember) and not member.publish_topic:
                raise ConfigurationError(
                    f"Button config missing publish_topic for button: {member.button_name}"
                )

    @staticmethod
    def _check_sensors(config: Configuration) -> Dict[str, SensorMember]:
        sensors_by_topic: Dict[str, SensorMember] = {}
        topics_by_key: Dict[str, str] = {}
        for tab, member in iter_members(config):
            if not isinstance(member, SensorMember):
                continue
            topic = member.topic
            if not topic:
                raise ConfigurationError(f"Sensor config in tab '{tab.id}' is missing topic")
            if any(wildcard in topic for wildcard in MQTT_WILDCARDS):
                raise ConfigurationError(f"Sensor topic must not contain wildcards: {topic}")
            if topic in sensors_by_topic:
                raise ConfigurationError(f"duplicate sensor topic: {topic}")
            if member.key in topics_by_key:
                raise ConfigurationError(
                    f"Sensor topics {topics_by_key[member.key]} and {topic} "
                    f"share the sensor key '{member.key}'"
                )
            sensors_by_topic[topic] = member
            topics_by_key[member.key] = topic
        return sensors_by_topic

    @staticmethod
    def _check_tabs(config: Configuration) -> None:
        seen: List[str] = []
        for tab in config.tabs:
            if tab.id in seen:
                raise ConfigurationError(f"duplicate tab id: {tab.id}")
            seen.append(tab.id)
