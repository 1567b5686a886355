# migrations/env.py
"""
Alembic environment for investdesk.

Two ways in:
  * ``flask --app investdesk db upgrade``: Flask-Migrate supplies the app, its
    engine and any configure args.
  * ``DATABASE_URL=... alembic -c migrations/alembic.ini upgrade head``: no app
    is built; the URL is used directly and metadata comes from the models.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

config = context.config
if config.config_file_name and config.file_config.has_section("loggers"):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

log = logging.getLogger("alembic.env")


def _standalone_url() -> str | None:
    from investdesk.settings import _normalize_db_url

    return _normalize_db_url(os.getenv("DATABASE_URL"))


def _migrate_ext():
    """Flask-Migrate state of the running app, or None outside ``flask db``."""
    from flask import current_app, has_app_context

    if not has_app_context():
        return None
    return current_app.extensions.get("migrate")


def _metadata():
    from investdesk import models  # noqa: F401  (registers tables)
    from investdesk.extensions import db

    return db.metadata


def _skip_empty_autogenerate(ctx, revision, directives):
    cmd_opts = getattr(config, "cmd_opts", None)
    if not (cmd_opts and getattr(cmd_opts, "autogenerate", False)):
        return
    if directives and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        log.info("No schema changes; revision not written.")


def _configure_kwargs(extra: dict | None = None) -> dict:
    kwargs = dict(extra or {})
    kwargs.setdefault("target_metadata", _metadata())
    kwargs.setdefault("compare_type", True)
    kwargs.setdefault("process_revision_directives", _skip_empty_autogenerate)
    return kwargs


def _resolve():
    """(url, engine factory, configure kwargs) for whichever entry point is in use."""
    url = _standalone_url()
    if url:
        return url, lambda: create_engine(url), _configure_kwargs()

    ext = _migrate_ext()
    if ext is None:
        raise RuntimeError("Set DATABASE_URL or run through `flask db`.")
    engine = ext.db.engine
    url = engine.url.render_as_string(hide_password=False)
    return url, lambda: engine, _configure_kwargs(ext.configure_args)


URL, ENGINE, CONFIGURE_KWARGS = _resolve()
config.set_main_option("sqlalchemy.url", URL.replace("%", "%%"))


def run_migrations_offline() -> None:
    context.configure(url=URL, literal_binds=True, **CONFIGURE_KWARGS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with ENGINE().connect() as connection:
        context.configure(connection=connection, **CONFIGURE_KWARGS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
