"""Alembic entry points for the queue tables and the review change trigger.

Alembic drives the async engine from its own event loop, so call
``run_migrations`` outside a running loop.
"""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig

from indexsync.infrastructure.persistence.database import _expand_sqlite_path

logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).parents[3] / "alembic.ini"


def get_alembic_config(database_url: str, notify_channel: str | None = None) -> AlembicConfig:
    config = AlembicConfig(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", _expand_sqlite_path(database_url))
    # env.py leaves the process logging alone unless asked
    config.attributes["configure_logger"] = False
    if notify_channel is not None:
        config.attributes["notify_channel"] = notify_channel
    return config


def run_migrations(database_url: str, notify_channel: str | None = None) -> None:
    """Upgrade to head; the trigger publishes on ``notify_channel`` when given."""
    command.upgrade(get_alembic_config(database_url, notify_channel), "head")
    logger.info(f"Database migrations applied up to head ({ALEMBIC_INI.parent / 'migrations'})")
