"""Migrate command - apply database migrations."""

import cyclopts

from indexsync.cli.commands import load_config
from indexsync.cli.console import get_console
from indexsync.infrastructure.persistence.migrate import run_migrations

app = cyclopts.App(name="migrate", help="Apply database migrations")


@app.default
def migrate() -> None:
    """Upgrade the queue tables and change trigger to the latest revision."""
    config = load_config()
    run_migrations(config.database.url, notify_channel=config.subscriber.channel)
    get_console().success("Database is up to date")
