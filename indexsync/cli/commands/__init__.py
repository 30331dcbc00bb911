"""CLI commands."""

from indexsync.config import Config, configure_logging


def load_config() -> Config:
    """Load settings and configure logging before any command runs."""
    config = Config()
    configure_logging(config.logging)
    return config
