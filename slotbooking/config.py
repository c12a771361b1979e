"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class BusinessConfig(BaseModel):
    """Business window and calendar rules."""
    timezone: str = "America/Denver"
    open_hour: int = 7
    close_hour: int = 17
    slot_minutes: int = 30
    holiday_country: str = "US"
    holiday_subdivision: Optional[str] = None

    @field_validator("open_hour", "close_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @field_validator("slot_minutes")
    @classmethod
    def validate_slot_minutes(cls, value: int) -> int:
        """Slots must tile an hour exactly."""
        if value <= 0 or 60 % value:
            raise ValueError(f"slot_minutes must divide 60, got {value}")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessConfig":
        """Ensure the configured window opens before it closes."""
        if self.close_hour <= self.open_hour:
            raise ValueError("close_hour must be later than open_hour")
        return self


class ZoomConfig(BaseModel):
    """Zoom server-to-server OAuth app."""
    account_id: str
    client_id: str
    client_secret: str
    base_url: str = "https://api.zoom.us/v2"
    token_url: str = "https://zoom.us/oauth/token"


class GraphConfig(BaseModel):
    """Azure AD application with Calendars.ReadWrite application permission."""
    client_id: str
    tenant_id: str
    client_secret: str
    calendar_user: str

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///bookings.db"
    echo: bool = False


class AppConfig(BaseModel):
    """Application configuration."""
    business: BusinessConfig = Field(default_factory=BusinessConfig)
    zoom: Optional[ZoomConfig] = None
    graph: Optional[GraphConfig] = None
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    external_timeout_seconds: float = 10.0
    log_level: str = "INFO"

    @field_validator("external_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("external_timeout_seconds must be greater than zero")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
