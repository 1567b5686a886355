# investdesk/cli.py
from __future__ import annotations

import click
from flask import Flask

from .services.users import ensure_admin


def register_commands(app: Flask) -> None:
    @app.cli.command("create-admin")
    @click.option("--email", required=True, help="Login email for the admin.")
    @click.option("--name", default="Administrator", show_default=True)
    @click.option(
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Prompted for when omitted.",
    )
    def create_admin(email: str, name: str, password: str) -> None:
        """Create an admin user, or promote and reset an existing one."""
        try:
            user, created = ensure_admin(email=email, name=name, password=password)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--password")

        verb = "Created" if created else "Updated"
        click.echo(f"{verb} admin: {user.email}")
