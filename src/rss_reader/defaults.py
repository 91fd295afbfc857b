"""Default configuration file for the RSS reader daemon."""

from .config import config_dir


DEFAULT_CONFIG_TOML = """# RSS Reader Configuration

[daemon]
fetch_interval = 30  # minutes between batch fetches
fetch_timeout = 30  # seconds before a single feed request is abandoned
user_agent = "rss-reader/1.0 (+https://github.com/rss-reader)"
default_daily_days = 7  # window for the daily stats view

[smtp]
host = "smtp.example.com"
port = 465
user = "env:RSS_READER_SMTP_USER"
password = "env:RSS_READER_SMTP_PASSWORD"
sender_name = "RSS Reader"
use_ssl = true  # false = plain connection upgraded with STARTTLS

[api]
host = "127.0.0.1"  # 127.0.0.1=localhost only, 0.0.0.0=all interfaces
port = 8990
"""


def ensure_config() -> None:
    """Create the default configuration file if it doesn't exist.

    Creates $XDG_CONFIG_HOME/rss-reader/config.toml
    (or ~/.config/rss-reader/config.toml).
    """
    directory = config_dir()
    directory.mkdir(parents=True, exist_ok=True)

    config_file = directory / "config.toml"
    if not config_file.exists():
        config_file.write_text(DEFAULT_CONFIG_TOML)
        print(f"Created {config_file}")
    else:
        print(f"Config already exists: {config_file}")


if __name__ == "__main__":
    ensure_config()
