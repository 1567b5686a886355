# investdesk/services/investors.py
from __future__ import annotations

from typing import Any, Mapping

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Investor, InvestorStatus, User, UserRole, enum_values
from ..policies import authorize
from ..schemas import PersonalInfo
from . import commit_or_rollback
from ..utils.listing import ListParams, apply_sort, paginate
from ..utils.passwords import hash_password, validate_password
from ..utils.validation import MOBILE_MAXLEN, NAME_MAXLEN, Validator, parse_id

INVESTOR_STATUSES = enum_values(InvestorStatus)

SORTERS = {
    "name": lambda q: (q, Investor.name),
    "uid": lambda q: (q, Investor.uid),
    "status": lambda q: (q, Investor.status),
    "created_at": lambda q: (q, Investor.created_at),
}


# -------------------------------------------------------------------
# Validation
# -------------------------------------------------------------------
def _validate_investor_fields(v: Validator, *, ignore_id: int | None = None) -> dict[str, Any]:
    fields = {
        "uid": v.string("uid", max_len=NAME_MAXLEN),
        "name": v.string("name", max_len=NAME_MAXLEN),
        "nickname": v.string("nickname", required=False, max_len=NAME_MAXLEN),
        "email": v.email("email"),
        "permanent_address": v.string("permanent_address"),
        "current_address": v.string("current_address"),
        "mobile": v.string("mobile", max_len=MOBILE_MAXLEN),
        "emergency_mobile": v.string("emergency_mobile", required=False, max_len=MOBILE_MAXLEN),
        "status": v.choice("status", INVESTOR_STATUSES),
    }

    v.unique("uid", fields["uid"], Investor.uid, ignore_id=ignore_id)
    v.unique("email", fields["email"], Investor.email, ignore_id=ignore_id)

    doc = v.document("personal_info")
    fields["personal_info"] = None
    if doc is not None:
        try:
            fields["personal_info"] = PersonalInfo.from_dict(doc).to_dict()
        except ValueError as exc:
            v.add("personal_info", str(exc))

    return fields


def _apply(investor: Investor, fields: Mapping[str, Any]) -> None:
    for key, value in fields.items():
        if key == "status":
            value = InvestorStatus(value)
        setattr(investor, key, value)


# -------------------------------------------------------------------
# Queries
# -------------------------------------------------------------------
def get_investor(caller: User, investor_id: int, *, ability: str = "view") -> Investor:
    investor = db.session.get(Investor, investor_id) if parse_id(investor_id) is not None else None
    if investor is None or investor.is_deleted:
        raise NotFoundError.for_entity("Investor")
    authorize(caller, ability, investor)
    return investor


def list_investors(caller: User, params: ListParams, *, per_page: int):
    authorize(caller, "view_any", Investor)

    query = Investor.undeleted()

    if params.search:
        like = f"%{params.search}%"
        query = query.filter(
            sa.or_(
                Investor.name.ilike(like),
                Investor.email.ilike(like),
                Investor.uid.ilike(like),
            )
        )

    status = params.filters.get("status")
    if status in INVESTOR_STATUSES:
        query = query.filter(Investor.status == InvestorStatus(status))

    query = apply_sort(query, params, SORTERS, tiebreak=Investor.id)
    return paginate(query, params, per_page)


def form_options() -> dict[str, Any]:
    return {"statuses": INVESTOR_STATUSES, "user_roles": enum_values(UserRole)}


# -------------------------------------------------------------------
# Mutations
# -------------------------------------------------------------------
def create_investor(caller: User, data: Mapping[str, Any]) -> Investor:
    authorize(caller, "create", Investor)

    v = Validator(data)
    fields = _validate_investor_fields(v)
    v.raise_if_invalid()

    investor = Investor(user_id=caller.id)
    _apply(investor, fields)
    db.session.add(investor)
    commit_or_rollback("Create investor")

    current_app.logger.info("Investor %s created by user %s", investor.id, caller.id)
    return investor


def create_investor_with_user(caller: User, data: Mapping[str, Any]) -> Investor:
    """
    Create a login (User) and the Investor it owns in one transaction.
    Either both rows persist or neither does.
    """
    authorize(caller, "create_with_user", Investor)

    v = Validator(data)
    user_name = v.string("user_name", max_len=NAME_MAXLEN)
    user_email = v.email("user_email")
    v.unique("user_email", user_email, User.email)
    user_role = v.choice("user_role", enum_values(UserRole))

    password = v.string("password")
    if password is not None:
        ok, msg = validate_password(data.get("password"))
        if not ok:
            v.add("password", msg)
        v.confirmed("password", password)

    fields = _validate_investor_fields(v)
    v.raise_if_invalid()

    user = User(
        name=user_name,
        email=user_email,
        role=UserRole(user_role),
        password_hash=hash_password(data.get("password")),
    )
    investor = Investor(user=user)
    _apply(investor, fields)

    db.session.add_all([user, investor])
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Create user and investor failed")
        raise ValidationError(
            {"error": ["Failed to create user and investor."]}, old=data
        ) from exc

    current_app.logger.info(
        "Investor %s and user %s created by user %s", investor.id, user.id, caller.id
    )
    return investor


def update_investor(caller: User, investor_id: int, data: Mapping[str, Any]) -> Investor:
    investor = get_investor(caller, investor_id, ability="update")

    v = Validator(data)
    fields = _validate_investor_fields(v, ignore_id=investor.id)
    v.raise_if_invalid()

    _apply(investor, fields)
    commit_or_rollback("Update investor")

    current_app.logger.info("Investor %s updated by user %s", investor.id, caller.id)
    return investor


def delete_investor(caller: User, investor_id: int) -> Investor:
    investor = get_investor(caller, investor_id, ability="delete")
    investor.soft_delete()
    commit_or_rollback("Delete investor")

    current_app.logger.info("Investor %s deleted by user %s", investor.id, caller.id)
    return investor


def _set_status(caller: User, investor_id: int, ability: str, status: InvestorStatus) -> Investor:
    investor = get_investor(caller, investor_id, ability=ability)
    if investor.status != status:
        investor.status = status
        commit_or_rollback(f"Set investor status {status.value}")
        current_app.logger.info(
            "Investor %s set to %s by user %s", investor.id, status.value, caller.id
        )
    return investor


def activate_investor(caller: User, investor_id: int) -> Investor:
    return _set_status(caller, investor_id, "activate", InvestorStatus.ACTIVE)


def set_investor_pending(caller: User, investor_id: int) -> Investor:
    return _set_status(caller, investor_id, "set_pending", InvestorStatus.PENDING)
