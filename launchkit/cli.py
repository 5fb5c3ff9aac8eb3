# -*- coding: utf-8 -*-
"""Flask CLI commands: database setup and terms publishing."""

from datetime import datetime
from pathlib import Path

import click
from flask import current_app

from launchkit.exceptions import TermsVersionExistsError
from launchkit.extensions import db
from launchkit.terms import DEFAULT_TERMS_PATH, publish_terms, seed_initial_terms


def _resolve_path(path: str) -> Path:
    candidate = Path(path)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    # Relative paths fall back to the project root
    return Path(current_app.root_path).parent / candidate


def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables."""
        db.create_all()
        click.echo("Initialized the database.")

    @app.cli.command("seed-terms")
    @click.option("--file", "file_path", default=str(DEFAULT_TERMS_PATH), show_default=True,
                  help="Markdown file holding the initial terms.")
    def seed_terms_command(file_path):
        """Seed terms version 1.0.0 from markdown."""
        try:
            terms = seed_initial_terms(_resolve_path(file_path))
        except FileNotFoundError as e:
            raise click.ClickException(str(e))
        if terms is None:
            click.echo("Terms v1.0.0 already exists. Skipping seed.")
            return
        click.echo(f"Created terms v{terms.version} (id={terms.id})")

    @app.cli.command("publish-terms")
    @click.argument("version")
    @click.option("--file", "file_path", required=True, help="Markdown file holding the new terms.")
    @click.option("--effective-date", "effective_date", default=None,
                  help="ISO date or datetime; defaults to now.")
    def publish_terms_command(version, file_path, effective_date):
        """Publish VERSION as the only current terms."""
        path = _resolve_path(file_path)
        if not path.exists():
            raise click.ClickException(f"Terms file not found at: {path}")
        parsed_date = None
        if effective_date:
            try:
                parsed_date = datetime.fromisoformat(effective_date)
            except ValueError:
                raise click.BadParameter("must be an ISO date, e.g. 2026-01-31", param_hint="--effective-date")
        try:
            terms = publish_terms(version, path.read_text(encoding="utf-8"), parsed_date)
        except TermsVersionExistsError as e:
            raise click.ClickException(str(e))
        click.echo(f"Published terms v{terms.version} (id={terms.id})")
