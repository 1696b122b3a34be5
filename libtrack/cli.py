import json

import click
from flask import current_app

from libtrack.db_objects import ensure_db_objects
from libtrack.extensions import db
from libtrack.models.system_settings import SystemSettings
from libtrack.services.penalty_service import get_penalty_service
from libtrack.services.settings_service import DEFAULT_SETTINGS


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create tables, install db objects, seed the settings row."""
        db.create_all()
        ensure_db_objects(current_app._get_current_object())

        if not SystemSettings.query.first():
            db.session.add(SystemSettings(**DEFAULT_SETTINGS))
            db.session.commit()
            click.echo("Seeded default fine settings.")
        click.echo("Database ready.")

    @app.cli.command("process-overdue")
    def process_overdue():
        """Reconcile penalties for every overdue borrow."""
        summary = get_penalty_service().process_overdue()
        click.echo(json.dumps(summary, indent=2))

    @app.cli.command("cleanup-penalties")
    def cleanup_penalties():
        """Delete superseded non-paid penalty rows."""
        result = get_penalty_service().cleanup()
        click.echo(f"Deleted {result['records_deleted']} superseded penalty row(s).")
