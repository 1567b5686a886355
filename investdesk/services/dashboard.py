# investdesk/services/dashboard.py
from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal

import sqlalchemy as sa

from ..extensions import db
from ..models import Account, Investor, Payment, money_str


def summary() -> dict:
    """Headline counts plus payment totals per calendar month (YYYY-MM, ascending)."""
    total_amount = (
        db.session.query(sa.func.coalesce(sa.func.sum(Payment.amount), 0))
        .filter(Payment.deleted_at.is_(None))
        .scalar()
    )

    # Grouped in Python: month formatting differs between Postgres and SQLite.
    monthly: "OrderedDict[str, Decimal]" = OrderedDict()
    rows = (
        db.session.query(Payment.created_at, Payment.amount)
        .filter(Payment.deleted_at.is_(None))
        .order_by(Payment.created_at.asc())
        .all()
    )
    for created_at, amount in rows:
        month = created_at.strftime("%Y-%m")
        monthly[month] = monthly.get(month, Decimal("0")) + Decimal(amount or 0)

    return {
        "stats": {
            "total_investors": Investor.undeleted().count(),
            "total_accounts": Account.undeleted().count(),
            "total_amount": money_str(total_amount),
        },
        "monthly_totals": [
            {"month": month, "total": money_str(total)} for month, total in monthly.items()
        ],
    }
