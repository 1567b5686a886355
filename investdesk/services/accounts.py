# investdesk/services/accounts.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

import sqlalchemy as sa
from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import Account, Investment, Investor, User
from ..policies import authorize
from . import commit_or_rollback
from ..utils.listing import ListParams, apply_sort, paginate
from ..utils.validation import NAME_MAXLEN, Validator, parse_id

SORTERS = {
    "name": lambda q: (q, Account.name),
    "investor": lambda q: (q, Investor.name),
    "created_at": lambda q: (q, Account.created_at),
    "is_active": lambda q: (q, Account.is_active),
}


def _validate(data: Mapping[str, Any]) -> dict[str, Any]:
    v = Validator(data)
    investor = v.exists("investor_id", Investor)
    fields = {
        "name": v.string("name", max_len=NAME_MAXLEN),
        "amount": v.decimal("amount"),
        "investor_id": investor.id if investor else None,
    }
    v.raise_if_invalid()
    return fields


# -------------------------------------------------------------------
# Queries
# -------------------------------------------------------------------
def get_account(caller: User, account_id: int, *, ability: str = "view") -> Account:
    account = db.session.get(Account, account_id) if parse_id(account_id) is not None else None
    if account is None or account.is_deleted:
        raise NotFoundError.for_entity("Account")
    authorize(caller, ability, account)
    return account


def list_accounts(caller: User, params: ListParams, *, per_page: int):
    authorize(caller, "view_any", Account)

    query = Account.undeleted().join(Investor, Account.investor_id == Investor.id)

    if params.search:
        like = f"%{params.search}%"
        query = query.filter(
            sa.or_(
                Account.name.ilike(like),
                Investor.name.ilike(like),
                Investor.email.ilike(like),
            )
        )

    verified = params.filters.get("verified")
    if verified:
        query = query.filter(Account.is_active.is_(verified == "verified"))

    query = apply_sort(query, params, SORTERS, tiebreak=Account.id)
    return paginate(query, params, per_page)


def investment_totals(account_ids: list[int]) -> dict[int, Decimal]:
    """Sum of (undeleted) investments per account; accounts without any map to 0."""
    if not account_ids:
        return {}
    rows = (
        db.session.query(Investment.account_id, sa.func.sum(Investment.amount))
        .filter(Investment.account_id.in_(account_ids), Investment.deleted_at.is_(None))
        .group_by(Investment.account_id)
        .all()
    )
    totals = {account_id: Decimal("0.00") for account_id in account_ids}
    for account_id, total in rows:
        totals[account_id] = Decimal(total or 0)
    return totals


def investor_choices() -> list[dict[str, Any]]:
    return [i.to_brief() for i in Investor.undeleted().order_by(Investor.name.asc()).all()]


# -------------------------------------------------------------------
# Mutations
# -------------------------------------------------------------------
def create_account(caller: User, data: Mapping[str, Any]) -> Account:
    authorize(caller, "create", Account)
    fields = _validate(data)

    account = Account(**fields)
    db.session.add(account)
    commit_or_rollback("Create account")

    current_app.logger.info("Account %s created by user %s", account.id, caller.id)
    return account


def update_account(caller: User, account_id: int, data: Mapping[str, Any]) -> Account:
    account = get_account(caller, account_id, ability="update")
    fields = _validate(data)

    for key, value in fields.items():
        setattr(account, key, value)
    commit_or_rollback("Update account")

    current_app.logger.info("Account %s updated by user %s", account.id, caller.id)
    return account


def toggle_account(caller: User, account_id: int) -> Account:
    """Flips is_active on every call, despite the 'activate' endpoint name."""
    account = get_account(caller, account_id, ability="activate")
    account.is_active = not account.is_active
    commit_or_rollback("Toggle account")

    current_app.logger.info(
        "Account %s %s by user %s",
        account.id,
        "activated" if account.is_active else "inactivated",
        caller.id,
    )
    return account


def delete_account(caller: User, account_id: int) -> Account:
    account = get_account(caller, account_id, ability="delete")
    account.soft_delete()
    commit_or_rollback("Delete account")

    current_app.logger.info("Account %s deleted by user %s", account.id, caller.id)
    return account
