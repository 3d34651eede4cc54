"""Configuration management for lark-md."""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import toml
from loguru import logger


def default_config_dir() -> Path:
    """Config directory: $LARK_MD_HOME or ~/.lark_md."""
    override = os.environ.get("LARK_MD_HOME")
    return Path(override).expanduser() if override else Path.home() / ".lark_md"


@dataclass
class ExportSettings:
    """Export defaults, overridable per command."""
    output_dir: str = "."
    concurrency: int = 5
    whiteboard: bool = False
    images_dir: str = "images"
    files_dir: str = "files"
    # Title for snapshots without one; empty means the snapshot file name.
    default_title: str = ""

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir).expanduser()


class Config:
    """Manage user configuration in <config dir>/config.toml."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or default_config_dir()
        self.config_file = self.config_dir / "config.toml"

    def _ensure_config_dir(self):
        """Ensure config directory exists."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Config directory: {}", self.config_dir)

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_file.exists()

    def load(self) -> dict:
        """Load configuration from file."""
        if not self.exists():
            logger.debug("Config file does not exist, returning empty config")
            return {}

        try:
            config_data = toml.load(self.config_file)
            logger.debug("Loaded config from {}", self.config_file)
            return config_data
        except (OSError, toml.TomlDecodeError) as e:
            logger.error("Failed to load config: {}", e)
            return {}

    def save(self, config_data: dict):
        """Save configuration to file."""
        self._ensure_config_dir()
        try:
            with open(self.config_file, 'w') as f:
                toml.dump(config_data, f)
            logger.debug("Saved config to {}", self.config_file)
        except OSError as e:
            logger.error("Failed to save config: {}", e)
            raise

    def get_settings(self) -> ExportSettings:
        """Get export settings, falling back to defaults for missing keys."""
        data = self.load().get('export', {})
        known = {f.name for f in fields(ExportSettings)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown export settings: {}", ", ".join(sorted(unknown)))
        return ExportSettings(**{key: value for key, value in data.items() if key in known})

    def save_settings(self, settings: ExportSettings):
        """Save export settings."""
        data = self.load()
        data['export'] = asdict(settings)
        self.save(data)
        logger.info("Export settings saved")
