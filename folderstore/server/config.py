"""Server configuration."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from mashumaro.mixins.dict import DataClassDictMixin

from .constants import DEFAULT_MAX_TITLE_LENGTH

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"

MB = 1024 * 1024


@dataclass
class QuotaConfig(DataClassDictMixin):
    """Upload size and personal space limits."""

    max_upload_size: int = 5 * 1024 * MB
    """Largest single-request upload in bytes."""

    max_chunked_upload_size: int = 10 * 1024 * MB
    """Largest chunked upload in bytes."""

    personal_mode: bool = False
    """When enabled each user is limited to `personal_max_space`."""

    personal_max_space: int = 1024 * MB
    """Personal quota in bytes, only used in personal mode."""


@dataclass
class SearchConfig(DataClassDictMixin):
    """Full-text index settings."""

    enable_index: bool = True
    """Use the in-process index. When disabled title search falls back to LIKE."""


@dataclass
class ServerConfig(DataClassDictMixin):
    """Top level configuration for the folder store server."""

    host: str = "0.0.0.0"
    port: int = 8080
    database_url: str = "sqlite+aiosqlite:///./folderstore.db"
    log_level: str = "INFO"
    max_title_length: int = DEFAULT_MAX_TITLE_LENGTH
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    @classmethod
    def load(cls, config_dir: str | Path | None = None) -> "ServerConfig":
        """Load configuration from `config.yaml` in the config directory.

        A missing file yields the defaults. Environment variables take
        precedence over the file. The file is never written.
        """
        if config_dir is None:
            config_dir = os.getenv("FOLDERSTORE_CONFIG_DIR", "config")
        config_file = Path(config_dir) / CONFIG_FILE_NAME

        data: dict = {}
        if config_file.exists():
            with open(config_file, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {config_file}")

        config = cls.from_dict(data)

        if host := os.getenv("FOLDERSTORE_HOST"):
            config.host = host
        if port := os.getenv("FOLDERSTORE_PORT"):
            config.port = int(port)
        if database_url := os.getenv("FOLDERSTORE_DATABASE_URL"):
            config.database_url = database_url
        if personal_mode := os.getenv("FOLDERSTORE_PERSONAL_MODE"):
            config.quota.personal_mode = personal_mode.lower() in ("1", "true", "yes")

        return config
