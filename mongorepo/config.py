"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mongorepo.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ClientConfig(BaseModel):
    """Options passed to every MongoClient the provider creates."""

    server_selection_timeout_ms: int = 5000
    connect_timeout_ms: int = 5000
    app_name: str = "mongorepo"
    tz_aware: bool = True

    def client_options(self) -> dict:
        """Keyword arguments understood by pymongo.MongoClient."""
        return {
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "connectTimeoutMS": self.connect_timeout_ms,
            "appname": self.app_name,
            "tz_aware": self.tz_aware,
        }


class Settings(BaseSettings):
    """Main configuration class."""

    # Store endpoint
    mongodb_url: str = ""
    mongodb_database: str = ""  # Used when the URL names no database

    # Optional YAML file merged over the defaults
    config_path: Path = Field(
        default=Path("mongorepo.yaml"), validation_alias="MONGOREPO_CONFIG"
    )

    # Observability
    logfire_token: str = ""
    log_level: str = "INFO"

    client: ClientConfig = Field(default_factory=ClientConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the level name so logging accepts it."""
        return v.strip().upper()

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.config_path

        if not config_path.exists():
            logger.debug(f"Config file not found: {config_path}. Using environment only.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            # Environment wins over the file for the endpoint itself
            for key in ("mongodb_url", "mongodb_database"):
                if key in yaml_config and not getattr(self, key):
                    setattr(self, key, str(yaml_config[key]))

            if "client" in yaml_config:
                section_dict = self.client.model_dump()
                section_dict.update(yaml_config["client"] or {})
                self.client = ClientConfig(**section_dict)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings


def get_default_connection_string() -> str:
    """Return the process-wide default endpoint or fail if none is configured."""
    url = get_settings().mongodb_url
    if not url:
        raise ConfigurationError(
            "No default connection string configured. "
            "Set MONGODB_URL or mongodb_url in the config file."
        )
    return url
