"""Main CLI application using Cyclopts."""

import cyclopts

from indexsync.cli.commands import backfill, bootstrap, dead_letters, migrate, run, status

app = cyclopts.App(
    name="indexsync",
    help="Keep the review search index in sync with the relational store",
)

app.command(bootstrap.app, name="bootstrap")
app.command(backfill.app, name="backfill")
app.command(run.app, name="run")
app.command(dead_letters.app, name="dead-letters")
app.command(migrate.app, name="migrate")
app.command(status.app, name="status")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
