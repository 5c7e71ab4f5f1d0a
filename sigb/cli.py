# sigb/cli.py
import click
from flask import current_app

from sigb.services.setting_service import SettingService
from sigb.tasks.late_check import run_late_check_job


def register_cli(app):
    @app.cli.command("seed-penalty-settings")
    def seed_penalty_settings():
        """Insert the default rate for every document type that has no penalty setting."""
        created = SettingService.seed()
        click.echo(f"{created} penalty setting(s) created")

    @app.cli.command("late-check")
    def late_check():
        """Run the overdue scan and fine accrual once."""
        result = run_late_check_job(current_app._get_current_object())
        click.echo(
            f"marked_overdue={result['marked_overdue']} total_overdue={result['total_overdue']} "
            f"fines_updated={result['fines_updated']} penalties_created={result['penalties_created']} "
            f"failed={len(result['errors'])}"
        )

    @app.cli.command("ensure-db-objects")
    def ensure_objects():
        """Create or refresh the penalty_stats view (after migrations)."""
        from sigb.db_objects import ensure_db_objects
        ok = ensure_db_objects(current_app._get_current_object())
        click.echo("penalty_stats view ensured" if ok else "loans table missing, view skipped")
