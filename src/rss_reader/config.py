"""Configuration loading from TOML."""

import tomllib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def config_dir() -> Path:
    """Return $XDG_CONFIG_HOME/rss-reader (or ~/.config/rss-reader)."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / "rss-reader"


def expand_env_var(value):
    """Expand ``env:NAME`` values from the environment, leaving others as-is."""
    if isinstance(value, str) and value.startswith("env:"):
        env_var = value[4:]
        return os.environ.get(env_var, "")
    return value


@dataclass
class Config:
    """Configuration dataclass with validation.

    Loads from ~/.config/rss-reader/config.toml - config file is required.
    """

    # Daemon settings
    fetch_interval: int  # minutes
    fetch_timeout: float  # seconds per feed request
    user_agent: str
    default_daily_days: int

    # SMTP settings
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_sender_name: str
    smtp_use_ssl: bool

    # API settings
    api_host: str = "127.0.0.1"
    api_port: int = 8990

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration values are invalid.
        """
        if self.fetch_interval < 1:
            raise ValueError(
                f"fetch_interval must be at least 1 minute, got {self.fetch_interval}"
            )

        if not 1 <= self.fetch_timeout <= 300:
            raise ValueError(
                f"fetch_timeout must be between 1 and 300 seconds, got {self.fetch_timeout}"
            )

        if not 1 <= self.default_daily_days <= 366:
            raise ValueError(
                f"default_daily_days must be between 1 and 366, got {self.default_daily_days}"
            )

        if not 1 <= self.smtp_port <= 65535:
            raise ValueError(f"smtp_port must be a valid port, got {self.smtp_port}")

        if not 1 <= self.api_port <= 65535:
            raise ValueError(f"api_port must be a valid port, got {self.api_port}")

    @classmethod
    def from_file(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from TOML file.

        Args:
            config_path: Optional path to config file.
                        Defaults to $XDG_CONFIG_HOME/rss-reader/config.toml

        Returns:
            Config instance with loaded values.
        """
        if config_path is None:
            config_path = config_dir() / "config.toml"

        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Run 'python -m rss_reader init' to create the default configuration."
            )

        try:
            with open(config_path, "rb") as f:
                config_dict = tomllib.load(f)
        except Exception as e:
            raise ValueError(f"Failed to parse config file {config_path}: {e}")

        daemon = config_dict.get("daemon", {})
        smtp = config_dict.get("smtp", {})
        api = config_dict.get("api", {})

        try:
            config = cls(
                fetch_interval=daemon["fetch_interval"],
                fetch_timeout=float(daemon.get("fetch_timeout", 30)),
                user_agent=daemon.get("user_agent", "rss-reader/1.0"),
                default_daily_days=daemon.get("default_daily_days", 7),
                smtp_host=smtp["host"],
                smtp_port=smtp.get("port", 465),
                smtp_user=expand_env_var(smtp.get("user", "env:RSS_READER_SMTP_USER")),
                smtp_password=expand_env_var(
                    smtp.get("password", "env:RSS_READER_SMTP_PASSWORD")
                ),
                smtp_sender_name=smtp.get("sender_name", "RSS Reader"),
                smtp_use_ssl=smtp.get("use_ssl", True),
                api_host=api.get("host", "127.0.0.1"),  # localhost only by default
                api_port=api.get("port", 8990),
            )
        except KeyError as e:
            raise ValueError(f"Missing required config field: {e}")

        config.validate()

        return config
