# investdesk/services/__init__.py
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db


def commit_or_rollback(action: str) -> None:
    """Commit the session; on failure roll back, log, and re-raise."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise
