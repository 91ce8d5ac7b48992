from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class SensorKind(str, Enum):
    TEMPERATURE = "temperature"
    COMPASS = "compass"
    GPS = "gps"
    STATUS = "status"
    RAW = "raw"

    @classmethod
    def resolve(cls, name: Optional[str]) -> "SensorKind":
        """Map a declared kind (or topic segment) to a kind, RAW when unknown"""
        if not name:
            return cls.RAW
        try:
            return cls(name.strip().lower())
        except ValueError:
            return cls.RAW


class BrokerEndpoint(BaseModel):
    host: str = Field(..., min_length=1, description="MQTT broker hostname")
    port: int = Field(1883, ge=1, le=65535, description="MQTT broker port")


class MemberBase(BaseModel):
    # Web client keys such as label/icon ride along untouched
    model_config = ConfigDict(extra="allow", frozen=True)


class SensorMember(MemberBase):
    type: Literal["sensor"]
    topic: str = ""
    unit: Optional[str] = None
    kind: Optional[str] = None
    description: Optional[str] = None

    @property
    def key(self) -> str:
        """Cache key: the last path segment of the topic"""
        return self.topic.rstrip("/").rsplit("/", 1)[-1]

    @property
    def sensor_kind(self) -> SensorKind:
        if self.kind:
            return SensorKind.resolve(self.kind)
        return SensorKind.resolve(self.key)


class ButtonMember(MemberBase):
    type: Literal["button"]
    button_name: Optional[str] = None
    publish_topic: Optional[str] = None


class UploadMember(MemberBase):
    type: Literal["upload"]
    button_name: Optional[str] = None
    upload_directory: Optional[str] = None
    allowed_extensions: Optional[List[str]] = None
    max_file_size: Optional[int] = None


class DownloadMember(MemberBase):
    type: Literal["download"]
    button_name: Optional[str] = None
    root_directory: Optional[str] = None
    allowed_extensions: Optional[List[str]] = None


Member = Annotated[
    Union[SensorMember, ButtonMember, UploadMember, DownloadMember],
    Field(discriminator="type"),
]

# Members addressed by button_name
NamedMember = Union[ButtonMember, UploadMember, DownloadMember]


class Tab(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    members: List[Member] = Field(default_factory=list)


class Configuration(BaseModel):
    """Parsed bridge schema: broker endpoint plus tabs of members"""
    model_config = ConfigDict(extra="allow", frozen=True)

    broker: BrokerEndpoint
    tabs: List[Tab] = Field(default_factory=list)
