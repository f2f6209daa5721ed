"""
Configuration management for flcmd.

Loads config.yaml from the flcmd home directory ($FLCMD_HOME, default
~/.config/flcmd). Relative paths in the file resolve against the home.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from flcmd.errors import ConfigError

DEFAULT_ORIGIN_URL = "https://open-fl.github.io/RepositoryOrigins/default-origin.txt"

PATH_KEYS = ("kernel_dir", "origins_file", "action_log_file", "log_file", "env_file")


def get_flcmd_home() -> Path:
    """Return the flcmd home directory."""
    custom = os.environ.get("FLCMD_HOME")
    if custom:
        return Path(custom).expanduser()
    return Path("~/.config/flcmd").expanduser()


@dataclass
class FlcmdConfig:
    """Runtime configuration shared by all commands."""

    home: Path = field(default_factory=get_flcmd_home)
    kernel_dir: Optional[Path] = None
    backend: Optional[str] = None
    origins_file: Optional[Path] = None
    action_log_file: Optional[Path] = None
    default_origin_url: str = DEFAULT_ORIGIN_URL
    save_poll_interval: float = 0.1
    request_timeout: float = 30.0
    log_file: Optional[Path] = None
    env_file: Optional[Path] = None

    def __post_init__(self):
        self.home = Path(self.home).expanduser()
        for key in PATH_KEYS:
            value = getattr(self, key)
            if value is not None:
                path = Path(value).expanduser()
                setattr(self, key, path if path.is_absolute() else self.home / path)

        if self.kernel_dir is None:
            self.kernel_dir = self.home / "kernels"
        if self.origins_file is None:
            self.origins_file = self.home / "origins.txt"
        if self.action_log_file is None:
            self.action_log_file = self.home / "startup-actions.txt"

        if self.save_poll_interval <= 0:
            raise ConfigError(
                f"save_poll_interval must be positive, got {self.save_poll_interval}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Serializable view (paths as strings), used by `flcmd init`."""
        data = {}
        for f in fields(self):
            if f.name == "home":
                continue
            value = getattr(self, f.name)
            data[f.name] = str(value) if isinstance(value, Path) else value
        return data


def load_config(config_path: Optional[Path] = None) -> FlcmdConfig:
    """
    Load flcmd configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to <home>/config.yaml

    Returns:
        FlcmdConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the file is not a valid YAML mapping, has unknown keys
            or holds a value of the wrong type
    """
    home = get_flcmd_home()
    if config_path is None:
        config_path = home / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"flcmd config.yaml not found at {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    known = {f.name for f in fields(FlcmdConfig)} - {"home"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")

    try:
        config = FlcmdConfig(home=home, **raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {config_path}: {e}")

    if config.env_file and config.env_file.exists():
        load_dotenv(config.env_file)

    return config
