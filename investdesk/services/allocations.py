# investdesk/services/allocations.py
"""
Bulk investment recording against a payment.

A batch of line items ({account_id, for_month, amount, type}) becomes one
Investment row per line, and the same lines are appended to Payment.logs.
The whole batch is validated before anything is written, then persisted in a
single transaction: either every row and the log append commit, or nothing
does.

Concurrent batches on the same payment are serialized by locking the payment
row (SELECT ... FOR UPDATE) for the read-modify-write of ``logs``; the second
writer waits and then appends on top of the first writer's entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import AllocationFailed
from ..extensions import db
from ..models import Account, Investment, InvestmentType, Payment, User, enum_values
from ..schemas import AllocationLine
from ..utils.validation import Validator
from .payments import get_payment

INVESTMENT_TYPES = enum_values(InvestmentType)

BATCH_FIELD = "investments"


@dataclass
class AllocationResult:
    payment: Payment
    investments: list[Investment]


class StaleBatch(Exception):
    """A referenced account disappeared between validation and commit."""

    def __init__(self, account_ids: Iterable[int]):
        self.account_ids = sorted(account_ids)
        super().__init__(f"accounts no longer available: {self.account_ids}")


# -------------------------------------------------------------------
# Validation (whole batch, before any write)
# -------------------------------------------------------------------
def validate_lines(raw_lines: Any) -> list[AllocationLine]:
    v = Validator({BATCH_FIELD: raw_lines})

    if not isinstance(raw_lines, list) or not raw_lines:
        v.add(BATCH_FIELD, "The investments field must contain at least 1 item.")
        v.raise_if_invalid()

    lines: list[AllocationLine] = []
    for index, item in enumerate(raw_lines):
        prefix = f"{BATCH_FIELD}.{index}"
        if not isinstance(item, dict):
            v.add(prefix, "Each investment must be an object.")
            continue

        account = v.exists(f"{prefix}.account_id", Account, value=item.get("account_id"))
        for_month = v.month(f"{prefix}.for_month", value=item.get("for_month"))
        amount = v.decimal(f"{prefix}.amount", value=item.get("amount"))
        kind = v.choice(f"{prefix}.type", INVESTMENT_TYPES, value=item.get("type"))

        if account is None or for_month is None or amount is None or kind is None:
            continue
        lines.append(
            AllocationLine(account_id=account.id, for_month=for_month, amount=amount, type=kind)
        )

    v.raise_if_invalid()
    return lines


# -------------------------------------------------------------------
# Transaction steps
# -------------------------------------------------------------------
def _lock_payment(payment_id: int) -> Payment:
    stmt = (
        sa.select(Payment)
        .where(Payment.id == payment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one()


def _live_account_ids(account_ids: set[int]) -> set[int]:
    stmt = (
        sa.select(Account.id)
        .where(Account.id.in_(account_ids), Account.deleted_at.is_(None))
        .with_for_update(read=True)
    )
    return set(db.session.scalars(stmt))


def record_allocations(caller: User, payment_id: int, raw_lines: Any) -> AllocationResult:
    """
    Validate, then atomically insert the investments and append them to the
    payment's log. ``is_adjusted`` is left alone. No retry on failure.
    """
    get_payment(caller, payment_id, ability="allocate")
    lines = validate_lines(raw_lines)

    try:
        payment = _lock_payment(payment_id)

        wanted = {line.account_id for line in lines}
        missing = wanted - _live_account_ids(wanted)
        if missing:
            raise StaleBatch(missing)

        investments = [
            Investment(
                account_id=line.account_id,
                for_month=line.for_month,
                amount=line.amount,
                type=InvestmentType(line.type),
            )
            for line in lines
        ]
        db.session.add_all(investments)

        # Existing entries keep their order; new ones go on the end.
        payment.logs = payment.log_entries() + [line.to_log() for line in lines]

        db.session.commit()
    except (SQLAlchemyError, StaleBatch) as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Allocation on payment %s failed (%d lines)", payment_id, len(lines)
        )
        raise AllocationFailed() from exc

    current_app.logger.info(
        "Payment %s: %d investments recorded by user %s (log size %d)",
        payment.id,
        len(investments),
        caller.id,
        len(payment.logs),
    )
    return AllocationResult(payment=payment, investments=investments)
