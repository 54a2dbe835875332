"""Configuration for image-insight."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from image_insight.analysis.config import Language

logger = logging.getLogger(__name__)

# Default configuration for end-users
DEFAULT_HOME = Path.home() / ".image-insight"
DEFAULT_DB_PATH = str(DEFAULT_HOME / "database.db")
DEFAULT_DATA_DIR = str(DEFAULT_HOME / "data")
DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_LANGUAGE = "fr"
DEFAULT_TIMEOUT = 120.0  # seconds, applied by the HTTP transport

# Configuration file path
CONFIG_FILE_PATH = DEFAULT_HOME / "config.json"

# API key is loaded from the environment when not given explicitly
ENV_GOOGLE_API_KEY = "GOOGLE_API_KEY"


class InsightConfig:
    """Configuration manager for the CLI and web application."""

    def __init__(
        self,
        db_path: Optional[str] = None,
        data_dir: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
        google_api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        # Expand ~ in paths if present
        if db_path:
            db_path = os.path.expanduser(db_path)
        if data_dir:
            data_dir = os.path.expanduser(data_dir)
        self.db_path = db_path or DEFAULT_DB_PATH
        self.data_dir = data_dir or DEFAULT_DATA_DIR
        self.model = model or DEFAULT_MODEL
        self.language = Language.normalize(language or DEFAULT_LANGUAGE)
        self.google_api_key = google_api_key or os.environ.get(ENV_GOOGLE_API_KEY)
        self.timeout = timeout or DEFAULT_TIMEOUT

        # Ensure database directory exists
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load_from_file(cls, config_path: Optional[Path] = None, **overrides) -> "InsightConfig":
        """Load configuration from JSON file.

        Keyword overrides that are not None take precedence over file values.
        """
        if config_path is None:
            config_path = CONFIG_FILE_PATH

        config_data = {}
        if config_path.exists():
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                # If config file is invalid, log warning and use defaults
                logger.warning(f"Failed to load config file {config_path}: {e}")
                config_data = {}

        values = {
            "db_path": config_data.get("db_path"),
            "data_dir": config_data.get("data_dir"),
            "model": config_data.get("model"),
            "language": config_data.get("language"),
            "google_api_key": config_data.get("google_api_key"),
            "timeout": config_data.get("timeout"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def save_to_file(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to JSON file."""
        if config_path is None:
            config_path = CONFIG_FILE_PATH

        # Ensure config directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        config_data = {
            "db_path": self.db_path,
            "data_dir": self.data_dir,
            "model": self.model,
            "language": self.language.value,
            "timeout": self.timeout,
            # Note: API keys are not saved to config file for security
            # Users should use environment variables
        }

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=2, ensure_ascii=False)
        except IOError as e:
            logger.error(f"Failed to save config file {config_path}: {e}")

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "db_path": self.db_path,
            "data_dir": self.data_dir,
            "model": self.model,
            "language": self.language.value,
            "timeout": self.timeout,
            "google_api_key_set": bool(self.google_api_key),
        }


def get_default_config() -> InsightConfig:
    """Create default configuration."""
    return InsightConfig.load_from_file()
