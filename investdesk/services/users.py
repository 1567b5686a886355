# investdesk/services/users.py
from __future__ import annotations

from typing import Any, Mapping

import sqlalchemy as sa
from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import User, UserRole, enum_values, utcnow_naive
from ..policies import authorize
from . import commit_or_rollback
from ..utils.listing import ListParams, apply_sort, paginate
from ..utils.passwords import hash_password, validate_password
from ..utils.validation import NAME_MAXLEN, Validator, parse_id

USER_ROLES = enum_values(UserRole)

SORTERS = {
    "name": lambda q: (q, User.name),
    "email": lambda q: (q, User.email),
    "created_at": lambda q: (q, User.created_at),
    "email_verified_at": lambda q: (q, User.email_verified_at),
}


def _validate(data: Mapping[str, Any], *, ignore_id: int | None = None, password_required: bool) -> dict[str, Any]:
    v = Validator(data)
    fields: dict[str, Any] = {
        "name": v.string("name", max_len=NAME_MAXLEN),
        "email": v.email("email"),
        "role": v.choice("role", USER_ROLES),
    }
    v.unique("email", fields["email"], User.email, ignore_id=ignore_id)

    # On update, an empty password means "keep the current one".
    raw_password = data.get("password")
    if password_required or (isinstance(raw_password, str) and raw_password.strip()):
        password = v.string("password")
        if password is not None:
            ok, msg = validate_password(raw_password)
            if not ok:
                v.add("password", msg)
            v.confirmed("password", password)
            fields["password"] = raw_password

    v.raise_if_invalid()
    return fields


def _apply(user: User, fields: Mapping[str, Any]) -> None:
    user.name = fields["name"]
    user.email = fields["email"]
    user.role = UserRole(fields["role"])
    if fields.get("password"):
        user.password_hash = hash_password(fields["password"])


def get_user(caller: User, user_id: int, *, ability: str = "view") -> User:
    user = db.session.get(User, user_id) if parse_id(user_id) is not None else None
    if user is None or user.is_deleted:
        raise NotFoundError.for_entity("User")
    authorize(caller, ability, user)
    return user


def list_users(caller: User, params: ListParams, *, per_page: int):
    authorize(caller, "view_any", User)

    query = User.undeleted()

    if params.search:
        like = f"%{params.search}%"
        query = query.filter(sa.or_(User.name.ilike(like), User.email.ilike(like)))

    verified = params.filters.get("verified")
    if verified == "verified":
        query = query.filter(User.email_verified_at.isnot(None))
    elif verified == "unverified":
        query = query.filter(User.email_verified_at.is_(None))

    query = apply_sort(query, params, SORTERS, tiebreak=User.id)
    return paginate(query, params, per_page)


def create_user(caller: User, data: Mapping[str, Any]) -> User:
    authorize(caller, "create", User)
    fields = _validate(data, password_required=True)

    user = User()
    _apply(user, fields)
    db.session.add(user)
    commit_or_rollback("Create user")

    current_app.logger.info("User %s (%s) created by user %s", user.id, user.role.value, caller.id)
    return user


def update_user(caller: User, user_id: int, data: Mapping[str, Any]) -> User:
    user = get_user(caller, user_id, ability="update")
    fields = _validate(data, ignore_id=user.id, password_required=False)

    _apply(user, fields)
    commit_or_rollback("Update user")

    current_app.logger.info("User %s updated by user %s", user.id, caller.id)
    return user


def delete_user(caller: User, user_id: int) -> None:
    """Users are never deleted: answers 404 for unknown ids, otherwise 403."""
    get_user(caller, user_id, ability="delete")


def ensure_admin(*, email: str, name: str, password: str) -> tuple[User, bool]:
    """
    Operator bootstrap (CLI): create the admin, or promote an existing user.
    Returns (user, created).
    """
    email = email.strip().lower()
    ok, msg = validate_password(password)
    if not ok:
        raise ValueError(msg)

    user = User.query.filter(sa.func.lower(User.email) == email).first()
    created = user is None
    if created:
        user = User(email=email, name=name)
        db.session.add(user)

    user.name = name or user.name
    user.role = UserRole.ADMIN
    user.password_hash = hash_password(password)
    user.deleted_at = None
    if user.email_verified_at is None:
        user.email_verified_at = utcnow_naive()

    commit_or_rollback("Create admin")
    current_app.logger.info("Admin %s %s", user.email, "created" if created else "updated")
    return user, created
