# investdesk/services/payments.py
from __future__ import annotations

from typing import Any, Mapping

import sqlalchemy as sa
from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import Investor, Payment, User
from ..policies import authorize
from . import commit_or_rollback
from ..utils.listing import ListParams, apply_sort, paginate
from ..utils.validation import Validator, parse_id

SORTERS = {
    "investor": lambda q: (q, Investor.name),
    "created_at": lambda q: (q, Payment.created_at),
    "is_adjusted": lambda q: (q, Payment.is_adjusted),
}


def _validate(data: Mapping[str, Any]) -> dict[str, Any]:
    v = Validator(data)
    investor = v.exists("investor_id", Investor)
    fields = {
        "amount": v.decimal("amount"),
        "investor_id": investor.id if investor else None,
        "remarks": v.string("remarks", required=False),
    }
    v.raise_if_invalid()
    return fields


def get_payment(caller: User, payment_id: int, *, ability: str = "view") -> Payment:
    payment = db.session.get(Payment, payment_id) if parse_id(payment_id) is not None else None
    if payment is None or payment.is_deleted:
        raise NotFoundError.for_entity("Payment")
    authorize(caller, ability, payment)
    return payment


def list_payments(caller: User, params: ListParams, *, per_page: int):
    authorize(caller, "view_any", Payment)

    query = Payment.undeleted().join(Investor, Payment.investor_id == Investor.id)

    if params.search:
        like = f"%{params.search}%"
        query = query.filter(
            sa.or_(
                Investor.name.ilike(like),
                Investor.email.ilike(like),
            )
        )

    is_adjusted = params.filters.get("is_adjusted")
    if is_adjusted:
        query = query.filter(Payment.is_adjusted.is_(is_adjusted == "is_adjusted"))

    query = apply_sort(query, params, SORTERS, tiebreak=Payment.id)
    return paginate(query, params, per_page)


def create_payment(caller: User, data: Mapping[str, Any]) -> Payment:
    authorize(caller, "create", Payment)
    fields = _validate(data)

    payment = Payment(created_by=caller.id, is_adjusted=False, logs=[], **fields)
    db.session.add(payment)
    commit_or_rollback("Create payment")

    current_app.logger.info(
        "Payment %s (%s) for investor %s recorded by user %s",
        payment.id,
        payment.amount,
        payment.investor_id,
        caller.id,
    )
    return payment


def update_payment(caller: User, payment_id: int, data: Mapping[str, Any]) -> Payment:
    """Replaces amount/investor/remarks. logs and is_adjusted are not editable here."""
    payment = get_payment(caller, payment_id, ability="update")
    fields = _validate(data)

    for key, value in fields.items():
        setattr(payment, key, value)
    commit_or_rollback("Update payment")

    current_app.logger.info("Payment %s updated by user %s", payment.id, caller.id)
    return payment


def toggle_adjusted(caller: User, payment_id: int) -> Payment:
    payment = get_payment(caller, payment_id, ability="adjust")
    payment.is_adjusted = not payment.is_adjusted
    commit_or_rollback("Adjust payment")

    current_app.logger.info(
        "Payment %s is_adjusted=%s by user %s", payment.id, payment.is_adjusted, caller.id
    )
    return payment


def delete_payment(caller: User, payment_id: int) -> Payment:
    payment = get_payment(caller, payment_id, ability="delete")
    payment.soft_delete()
    commit_or_rollback("Delete payment")

    current_app.logger.info("Payment %s deleted by user %s", payment.id, caller.id)
    return payment
