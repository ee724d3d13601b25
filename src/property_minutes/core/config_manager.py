"""Configuration management backed by a JSON document and the system keyring."""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..utils.exceptions import ConfigurationError
from ..utils.logging_config import get_logger, get_security_logger
from .security_manager import SecurityManager


@dataclass
class CompanyConfig:
    """Company settings."""

    name: str = "株式会社〇〇〇〇"


@dataclass
class DefaultsConfig:
    """Defaults offered by the meeting form."""

    location: str = "tokyo"
    start_time: str = "14:00"
    end_time: str = "15:00"
    retrieval_period: int = 1


@dataclass
class GoogleConfig:
    """Google integration settings."""

    drive_folder_path: str = "定例会"
    drive_folder_id: str = ""
    gmail_label: str = "物件情報"
    credentials_path: str = ""
    organize_by_month: bool = False


@dataclass
class ParticipantsConfig:
    """Display names for the fixed participant slots."""

    president: str = "山田太郎"
    wife: str = "山田花子"
    chairman: str = "山田一郎"
    mother: str = "山田春子"
    sister: str = "山田美咲"


@dataclass
class AIConfig:
    """AI service configuration."""

    model_name: str = "gemini-2.0-flash"
    temperature: float = 0.7
    max_tokens: int = 8192
    rate_limit: int = 60


@dataclass
class AppSettings:
    """Application settings."""

    log_level: str = "INFO"
    log_file: str = ""


@dataclass
class Configuration:
    """Main configuration container."""

    company: CompanyConfig = field(default_factory=CompanyConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)
    participants: ParticipantsConfig = field(default_factory=ParticipantsConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    app: AppSettings = field(default_factory=AppSettings)
    version: str = "1.0.0"
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())


SECTION_TYPES = {
    "company": CompanyConfig,
    "defaults": DefaultsConfig,
    "google": GoogleConfig,
    "participants": ParticipantsConfig,
    "ai": AIConfig,
    "app": AppSettings,
}

# Settings kept in the keyring, never in config.json
SECRET_SETTINGS: Tuple[Tuple[str, str], ...] = (
    ("google", "refresh_token"),
    ("ai", "gemini_api_key"),
)

SecretValues = Dict[Tuple[str, str], str]


def _build_section(section_type, data: Dict[str, Any]):
    known = {f.name for f in fields(section_type)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {section_type.__name__} keys: {', '.join(sorted(unknown))}"
        )
    return section_type(**data)


class ConfigManager:
    """Loads, saves and patches the application configuration.

    The manager is the configuration handle handed to the orchestrator. The
    host decides when to load and save; the pipeline re-reads the document at
    the start of every run. Secrets (the Google refresh token and the Gemini
    API key) go through ``SecurityManager`` into the system keyring.

    Attributes:
        config_dir: Directory holding ``config.json`` and ``credentials.json``
        config_file: Path of the JSON configuration document
        security_manager: Encrypted keyring storage for secrets
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        security_manager: Optional[SecurityManager] = None,
    ):
        self.logger = get_logger(__name__)
        self.security_logger = get_security_logger()

        if config_dir:
            self.config_dir = Path(config_dir)
        elif os.environ.get("PROPERTY_MINUTES_HOME"):
            self.config_dir = Path(os.environ["PROPERTY_MINUTES_HOME"])
        else:
            self.config_dir = Path.home() / ".property_minutes"

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / "config.json"

        try:
            self.security_manager = security_manager or SecurityManager(
                self.config_dir / "salt"
            )
        except Exception as e:
            raise ConfigurationError(f"Secret storage is unavailable: {e}")

        self._config = Configuration()
        self._load_configuration()

    def _load_configuration(self) -> None:
        """Load configuration from file, creating the defaults on first run."""
        try:
            if self.config_file.exists():
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config_data = json.load(f)

                self._config, secret_values = self._config_from_dict(config_data)
                self.logger.info(f"Configuration loaded from {self.config_file}")

                if secret_values:
                    # Secrets written by hand into the document move to the keyring
                    self._store_secrets(secret_values)
                    self._save_configuration()
                    self.logger.info("Moved secrets from the configuration file to the keyring")
            else:
                self._config = Configuration()
                self._save_configuration()
                self.logger.info("Default configuration created")

        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Failed to load configuration: {e}")

    def _config_from_dict(
        self, config_data: Dict[str, Any]
    ) -> Tuple[Configuration, SecretValues]:
        """Build a configuration and pull out any non-empty secret values."""
        if not isinstance(config_data, dict):
            raise ConfigurationError("Configuration document must be a JSON object")

        config = Configuration()
        secret_values: SecretValues = {}

        for section, section_type in SECTION_TYPES.items():
            if section not in config_data:
                continue

            section_data = config_data[section]
            if not isinstance(section_data, dict):
                raise ConfigurationError(f"Section '{section}' must be an object")

            section_data = dict(section_data)
            for secret_section, key in SECRET_SETTINGS:
                if secret_section == section and key in section_data:
                    value = section_data.pop(key)
                    if value:
                        secret_values[(section, key)] = value

            setattr(config, section, _build_section(section_type, section_data))

        config.version = config_data.get("version", config.version)
        config.updated_at = config_data.get("updated_at", config.updated_at)
        return config, secret_values

    def _save_configuration(self) -> None:
        """Write the whole configuration document."""
        try:
            self._config.updated_at = datetime.now().isoformat()

            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(asdict(self._config), f, indent=2, ensure_ascii=False)

            self.config_file.chmod(0o600)

            self.logger.info(f"Configuration saved to {self.config_file}")

        except Exception as e:
            self.logger.error(f"Failed to save configuration: {e}")
            raise ConfigurationError(f"Failed to save configuration: {e}")

    def reload(self) -> Configuration:
        """Re-read the configuration document from disk."""
        self._load_configuration()
        return self._config

    def get_config(self) -> Configuration:
        """Get current configuration."""
        return self._config

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        """Configuration as a plain dictionary for the settings form."""
        config_dict = asdict(self._config)
        if include_secrets:
            for section, key in SECRET_SETTINGS:
                config_dict[section][key] = self.retrieve_secret(section, key) or ""
        return config_dict

    def save_all(self, config_data: Dict[str, Any]) -> None:
        """Overwrite the whole configuration.

        Secrets missing or blank in ``config_data`` keep their stored value;
        the settings form never carries them back.
        """
        new_config, secret_values = self._config_from_dict(config_data)

        self._store_secrets(secret_values)
        self._config = new_config
        self._save_configuration()
        self.security_logger.log_configuration_change(
            component="settings", change_type="overwrite"
        )

    def update_section(self, section: str, **kwargs) -> None:
        """Update individual fields of one configuration section."""
        if section not in SECTION_TYPES:
            raise ConfigurationError(f"Unknown configuration section: {section}")

        section_obj = getattr(self._config, section)
        for key, value in kwargs.items():
            if (section, key) in SECRET_SETTINGS:
                self.store_secret(section, key, value)
            elif hasattr(section_obj, key):
                setattr(section_obj, key, value)
            else:
                raise ConfigurationError(f"Unknown {section} setting: {key}")

        self._save_configuration()
        self.logger.info(f"{section.capitalize()} configuration updated")

    def reset(self) -> None:
        """Restore defaults. Stored secrets are discarded too."""
        for section, key in SECRET_SETTINGS:
            self.delete_secret(section, key)
        self._config = Configuration()
        self._save_configuration()

    # Secrets

    def store_secret(self, section: str, key: str, value: str) -> None:
        """Store a secret setting in the keyring; a blank value removes it."""
        if not value:
            self.delete_secret(section, key)
            return

        try:
            self.security_manager.store_credential(section, key, value)
        except Exception as e:
            self.logger.error(f"Failed to store {section}.{key}: {e}")
            raise ConfigurationError(f"Failed to store {section}.{key}: {e}")

        self.security_logger.log_configuration_change(
            component=section, change_type=f"{key}_stored"
        )

    def retrieve_secret(self, section: str, key: str) -> Optional[str]:
        try:
            return self.security_manager.retrieve_credential(section, key)
        except Exception as e:
            self.logger.error(f"Failed to retrieve {section}.{key}: {e}")
            return None

    def delete_secret(self, section: str, key: str) -> None:
        try:
            self.security_manager.delete_credential(section, key)
        except Exception as e:
            self.logger.error(f"Failed to delete {section}.{key}: {e}")
            raise ConfigurationError(f"Failed to delete {section}.{key}: {e}")

        self.security_logger.log_configuration_change(
            component=section, change_type=f"{key}_cleared"
        )

    def _store_secrets(self, secret_values: SecretValues) -> None:
        for (section, key), value in secret_values.items():
            self.store_secret(section, key, value)

    def get_refresh_token(self) -> Optional[str]:
        return self.retrieve_secret("google", "refresh_token") or None

    def set_refresh_token(self, token: str) -> None:
        self.store_secret("google", "refresh_token", token)

    def clear_refresh_token(self) -> None:
        self.delete_secret("google", "refresh_token")

    def get_gemini_api_key(self) -> Optional[str]:
        """Gemini API key, with ``GEMINI_API_KEY`` taking precedence."""
        return os.environ.get("GEMINI_API_KEY") or self.retrieve_secret("ai", "gemini_api_key") or None

    def set_gemini_api_key(self, api_key: str) -> None:
        self.store_secret("ai", "gemini_api_key", api_key)

    def get_credentials_path(self) -> Path:
        configured = self._config.google.credentials_path
        if configured:
            return Path(configured).expanduser()
        return self.config_dir / "credentials.json"

    def get_participant_names(self) -> Dict[str, str]:
        return asdict(self._config.participants)

    def validate_configuration(self) -> bool:
        """Check the settings the pipeline cannot run without."""
        try:
            if not self._config.company.name.strip():
                raise ConfigurationError("Company name is not configured")

            if not self._config.google.gmail_label.strip():
                raise ConfigurationError("Gmail label is not configured")

            if self._config.defaults.start_time >= self._config.defaults.end_time:
                raise ConfigurationError("Default start time must precede end time")

            if self._config.defaults.retrieval_period < 1:
                raise ConfigurationError("Retrieval period must be at least 1")

            self.logger.info("Configuration validation passed")
            return True

        except ConfigurationError as e:
            self.logger.error(f"Configuration validation failed: {e}")
            return False
