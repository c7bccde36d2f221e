"""
Configuration management using Pydantic models loaded from YAML.
"""

import re
from pathlib import Path

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.exceptions import ConfigurationError


PLACEHOLDER_MARKERS = ("YOUR_SUPABASE_URL", "YOUR_SUPABASE_ANON_KEY", "YOUR_ONESIGNAL")


class BookingDefaults(BaseModel):
    """Default settings for slot generation and client validation."""
    slot_interval_minutes: int = 15
    phone_prefix: str = "+55"

    @field_validator("slot_interval_minutes")
    @classmethod
    def validate_interval(cls, value: int) -> int:
        """Ensure the slot interval is positive."""
        if value <= 0:
            raise ValueError("slot_interval_minutes must be greater than zero")
        return value

    @field_validator("phone_prefix")
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        """Country prefix must look like +<digits>."""
        if not re.fullmatch(r"\+\d{1,3}", value):
            raise ValueError(f"phone_prefix must look like '+55', got {value!r}")
        return value


class SupabaseConfig(BaseModel):
    """Backend-as-a-service connection settings."""
    url: str = ""
    anon_key: str = ""
    timeout_seconds: float = 30

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def is_configured(self) -> bool:
        """True when both values are set and are not the template placeholders."""
        if not self.url or not self.anon_key:
            return False
        return not any(marker in self.url or marker in self.anon_key for marker in PLACEHOLDER_MARKERS)


class OneSignalConfig(BaseModel):
    """Push notification provider settings. Optional."""
    app_id: str = ""
    api_key: str = ""

    def is_configured(self) -> bool:
        if not self.app_id or not self.api_key:
            return False
        return not self.app_id.startswith("YOUR_ONESIGNAL")


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Sao_Paulo"
    defaults: BookingDefaults = Field(default_factory=BookingDefaults)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    onesignal: OneSignalConfig = Field(default_factory=OneSignalConfig)
    mock_data: Path | None = None
    token_cache_file: Path | None = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject unknown IANA timezone names early."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def require_backend(self) -> SupabaseConfig:
        """
        Return the backend settings or fail when they are not filled in.

        Raises:
            ConfigurationError: If the Supabase URL or key is missing
        """
        if not self.supabase.is_configured():
            raise ConfigurationError(
                "A conexão com o banco de dados ainda não foi configurada. "
                "Preencha 'supabase.url' e 'supabase.anon_key' no config.yaml."
            )
        return self.supabase

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

        config = cls(**data)
        if config.mock_data is not None and not config.mock_data.is_absolute():
            config.mock_data = config_path.parent / config.mock_data
        return config


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


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the given config file, or defaults when no config.yaml exists."""
    path = config_path or get_default_config_path()
    if config_path is None and not path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(path)
