"""
Flask CLI commands for scheduled and administrative tasks.

Usage:
    flask materialize-tasks                    # Create today's tasks (reference timezone)
    flask materialize-tasks --date 2024-03-01  # Backfill a specific day
"""

from __future__ import annotations

import click
from flask.cli import with_appcontext


@click.command("materialize-tasks")
@click.option("--date", "day", default=None,
              help="Day to materialize (YYYY-MM-DD). Defaults to today in CARE_TIMEZONE.")
@with_appcontext
def materialize_tasks_command(day: str | None) -> None:
    """Create pending tasks for every reminder due on the given day."""
    from plantcare.services import supabase_client
    from plantcare.services.task_history import run_daily_materialization
    from plantcare.utils.errors import CareValidationError
    from plantcare.utils.validation import parse_iso_date

    if not supabase_client.get_admin_client():
        click.echo("Error: Supabase admin client not configured (SUPABASE_SERVICE_ROLE_KEY missing).")
        raise SystemExit(1)

    target = None
    if day:
        try:
            target = parse_iso_date(day, "date")
        except CareValidationError as e:
            raise click.BadParameter(e.message, param_hint="--date")

    stats = run_daily_materialization(target)

    click.echo(
        f"Done ({stats['date']}). Due: {stats['due_rules']}, Created: {stats['created']}, "
        f"Already present: {stats['skipped']}, Errors: {stats['errors']}"
    )
    if stats["errors"]:
        raise SystemExit(1)
