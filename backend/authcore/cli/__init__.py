"""Command-line interface registration for the Flask application."""

from __future__ import annotations

import logging

import click
from flask import Flask, current_app
from flask.cli import with_appcontext

from authcore.core.extensions import db

LOGGER = logging.getLogger(__name__)


def _ensure_non_production() -> None:
    """Abort destructive commands when running in production."""
    if str(current_app.config.get("APP_ENV", "")).lower() == "production" or not (
        current_app.debug or current_app.testing
    ):
        raise click.UsageError("'flask init-db --drop' is restricted to non-production environments.")


@click.command("init-db")
@click.option("--drop", is_flag=True, help="Drop every table before creating it again.")
@with_appcontext
def init_db_command(drop: bool) -> None:
    """Create the credential tables."""
    if drop:
        _ensure_non_production()
        db.drop_all()
        LOGGER.warning("All tables dropped")
    db.create_all()
    click.echo("Database tables created.")


def init_app(app: Flask) -> None:
    """Register application-specific CLI commands.

    Parameters
    ----------
    app:
        Flask application instance whose CLI registry receives the commands.
    """
    app.cli.add_command(init_db_command)
