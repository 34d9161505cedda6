from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import (
    DEFAULT_LOW_SPACE_THRESHOLD,
    DEFAULT_PERIOD_HR,
    ScanConfiguration,
    VolumeCustomization,
)


class Settings(BaseSettings):
    # Scan configuration
    period_hr: float = DEFAULT_PERIOD_HR
    default_alarm_threshold: float = DEFAULT_LOW_SPACE_THRESHOLD
    exclusion_masks: List[str] = Field(default_factory=list)  # JSON list of regex strings
    volume_customizations: List[VolumeCustomization] = Field(default_factory=list)

    # Logging configuration
    log_level: str = "INFO"
    log_file_path: str = "logs/volmon.log"
    log_retention_days: int = 30

    # HTTP service
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="VOLMON_", env_file="settings.env", extra="ignore"
    )

    @property
    def log_directory(self) -> Path:
        return Path(self.log_file_path).parent

    @property
    def scan_configuration(self) -> ScanConfiguration:
        """Validated orchestrator inputs. Raises pydantic.ValidationError."""
        return ScanConfiguration(
            period_hr=self.period_hr,
            default_alarm_threshold=self.default_alarm_threshold,
            exclusion_masks=self.exclusion_masks,
            volume_customizations=self.volume_customizations,
        )
