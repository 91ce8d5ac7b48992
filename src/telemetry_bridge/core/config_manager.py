import traceback
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from ..utils.exceptions import ConfigurationError
from .broadcast import OverflowPolicy
from .config_validator import ConfigIndex, ConfigValidator


class APISettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(8000, ge=1, le=65535)


class BridgeSettings(BaseModel):
    schema_path: str = Field(..., description="Schema file (JSON or YAML)")
    base_directory: Optional[str] = Field(None, description="Root for relative directories, defaults to the schema's folder")
    staging_directory: str = Field(".staging", description="Where uploads land before policy checks")


class RealtimeSettings(BaseModel):
    queue_size: int = Field(64, ge=1, description="Pending events kept per client")
    overflow_policy: OverflowPolicy = OverflowPolicy.DROP_NEWEST


class FilesSettings(BaseModel):
    default_upload_directory: str = "uploads"
    upload_chunk_size: int = Field(64 * 1024, ge=1024)


class Settings(BaseModel):
    api: APISettings = Field(default_factory=APISettings)
    logging: Dict[str, Any] = Field(default_factory=dict)
    mqtt: Dict[str, Any] = Field(default_factory=dict)
    bridge: BridgeSettings
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    files: FilesSettings = Field(default_factory=FilesSettings)
    source: Optional[Path] = None

    @property
    def schema_file(self) -> Path:
        path = Path(self.bridge.schema_path).expanduser()
        if not path.is_absolute() and self.source is not None:
            path = self.source.parent / path
        return path

    @property
    def base_directory(self) -> Path:
        if self.bridge.base_directory:
            path = Path(self.bridge.base_directory).expanduser()
            if not path.is_absolute() and self.source is not None:
                path = self.source.parent / path
            return path
        return self.schema_file.parent


class ConfigManager:
    """Manages configuration loading and validation"""

    REQUIRED_SECTIONS = ('api', 'logging', 'mqtt', 'bridge')

    @staticmethod
    def _read_yaml(path: str) -> Any:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f)
        except yaml.YAMLError:
            raise ConfigurationError(f"Error parsing configuration file {path}: {traceback.format_exc()}")
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")

    @classmethod
    def load_config(cls, config_path: str) -> Dict[str, Any]:
        """Load settings from YAML and check the required sections"""
        config = cls._read_yaml(config_path)
        if config is None or not isinstance(config, dict):
            raise ConfigurationError("Configuration file is empty or incorrectly formatted")

        missing_sections = [section for section in cls.REQUIRED_SECTIONS if section not in config]
        if missing_sections:
            raise ConfigurationError(f"Missing required configuration sections: {', '.join(missing_sections)}")

        return config

    @classmethod
    def load_settings(cls, config_path: str) -> Settings:
        config = cls.load_config(config_path)
        try:
            settings = Settings.model_validate({**config, "source": Path(config_path)})
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid settings in {config_path}: {e}") from e
        return settings

    @classmethod
    def load_schema(cls, schema_path: Path) -> Tuple[Dict[str, Any], ConfigIndex]:
        """Load the bridge schema once and validate it.

        Returns the document exactly as loaded (served by /api/config)
        together with the validated index.
        """
        raw = cls._read_yaml(str(schema_path))
        if raw is None:
            raise ConfigurationError(f"Schema file is empty: {schema_path}")
        index = ConfigValidator.load(raw)
        return raw, index
