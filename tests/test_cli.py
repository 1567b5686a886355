from __future__ import annotations

from investdesk.extensions import db
from investdesk.models import User, UserRole
from investdesk.utils.passwords import verify_password


def test_create_admin(app):
    runner = app.test_cli_runner()

    result = runner.invoke(
        args=["create-admin", "--email", "Root@Example.com", "--name", "Root", "--password", "root-pass-123"]
    )

    assert result.exit_code == 0, result.output
    assert "Created admin: root@example.com" in result.output
    user = User.query.filter_by(email="root@example.com").one()
    assert user.role == UserRole.ADMIN
    assert user.email_verified_at is not None


def test_promotes_existing_user(app, member):
    runner = app.test_cli_runner()

    result = runner.invoke(
        args=["create-admin", "--email", member.email, "--password", "promoted-pass-1"]
    )

    assert result.exit_code == 0, result.output
    assert "Updated admin" in result.output
    db.session.expire_all()
    promoted = db.session.get(User, member.id)
    assert promoted.role == UserRole.ADMIN
    assert verify_password(promoted.password_hash, "promoted-pass-1")


def test_short_password_rejected(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["create-admin", "--email", "a@example.com", "--password", "short"])

    assert result.exit_code != 0
    assert User.query.count() == 0
