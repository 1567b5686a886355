# investdesk/models.py
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableDict

from .extensions import db


# Use **naive UTC** everywhere because the DB columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.utcnow()


# jsonb on Postgres, plain JSON elsewhere (SQLite in tests).
# A fresh instance per column: MutableDict.as_mutable binds to the type object.
def json_document():
    return sa.JSON().with_variant(JSONB(), "postgresql")

MONEY = sa.Numeric(12, 2)


def money_str(value) -> str | None:
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def enum_column(enum_cls: type[enum.Enum], name: str, **kwargs):
    return db.Column(
        SAEnum(
            enum_cls,
            name=name,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            validate_strings=True,
        ),
        **kwargs,
    )


# =========================================================
# Enumerations
# =========================================================
class UserRole(enum.Enum):
    ADMIN = "admin"
    MEMBER = "member"


class InvestorStatus(enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"


class InvestmentType(enum.Enum):
    REGULAR = "regular"
    EID = "eid"
    OTHERS = "others"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [m.value for m in enum_cls]


# =========================================================
# Mixins (auditing columns + soft delete)
# =========================================================
class TimestampMixin:
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow_naive,
        onupdate=utcnow_naive,
    )


class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    @classmethod
    def undeleted(cls):
        return cls.query.filter(cls.deleted_at.is_(None))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = utcnow_naive()


# =========================================================
# User model (Authentication + Roles)
# =========================================================
class User(UserMixin, TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    role = enum_column(UserRole, "user_role", nullable=False, default=UserRole.MEMBER)
    email_verified_at = db.Column(db.DateTime, nullable=True)

    investors = db.relationship("Investor", back_populates="user", lazy="select")

    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.CheckConstraint("role in ('admin','member')", name="ck_users_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_active(self) -> bool:
        # Flask-Login: soft-deleted users cannot hold a session.
        return self.deleted_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "email_verified_at": _iso(self.email_verified_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"


# =========================================================
# Investor (profile owned by a user)
# =========================================================
class Investor(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "investors"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user = db.relationship("User", back_populates="investors", lazy="joined")

    uid = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    nickname = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=False)

    permanent_address = db.Column(db.Text, nullable=False)
    current_address = db.Column(db.Text, nullable=False)

    # Tagged document, see schemas.PersonalInfo.
    # MutableDict so in-place edits are tracked and persisted.
    personal_info = db.Column(MutableDict.as_mutable(json_document()), nullable=True)

    mobile = db.Column(db.String(20), nullable=False)
    emergency_mobile = db.Column(db.String(20), nullable=True)

    status = enum_column(
        InvestorStatus, "investor_status", nullable=False, default=InvestorStatus.PENDING
    )

    accounts = db.relationship("Account", back_populates="investor", lazy="select")
    payments = db.relationship("Payment", back_populates="investor", lazy="select")

    __table_args__ = (
        db.UniqueConstraint("uid", name="uq_investors_uid"),
        db.UniqueConstraint("email", name="uq_investors_email"),
        db.CheckConstraint("status in ('pending','active')", name="ck_investors_status"),
    )

    def is_owned_by(self, user) -> bool:
        return user is not None and user.id == self.user_id

    @property
    def is_active(self) -> bool:
        return self.status == InvestorStatus.ACTIVE

    @property
    def is_pending(self) -> bool:
        return self.status == InvestorStatus.PENDING

    def active_accounts(self) -> list["Account"]:
        """Accounts eligible as allocation targets."""
        return (
            Account.undeleted()
            .filter(Account.investor_id == self.id, Account.is_active.is_(True))
            .order_by(Account.name.asc(), Account.id.asc())
            .all()
        )

    def total_payments(self) -> Decimal:
        total = (
            db.session.query(sa.func.coalesce(sa.func.sum(Payment.amount), 0))
            .filter(Payment.investor_id == self.id, Payment.deleted_at.is_(None))
            .scalar()
        )
        return Decimal(total or 0)

    def to_dict(self, *, with_user: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "uid": self.uid,
            "name": self.name,
            "nickname": self.nickname,
            "email": self.email,
            "permanent_address": self.permanent_address,
            "current_address": self.current_address,
            "personal_info": dict(self.personal_info) if self.personal_info is not None else None,
            "mobile": self.mobile,
            "emergency_mobile": self.emergency_mobile,
            "status": self.status.value if self.status else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_user and self.user is not None:
            data["user"] = self.user.to_dict()
        return data

    def to_brief(self) -> dict:
        return {"id": self.id, "name": self.name}

    def __repr__(self) -> str:
        return f"<Investor {self.id} {self.uid}>"


# =========================================================
# Account (sub-ledger under an investor)
# =========================================================
class Account(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "accounts"

    id = db.Column(db.Integer, primary_key=True)

    investor_id = db.Column(
        db.Integer,
        db.ForeignKey("investors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    investor = db.relationship("Investor", back_populates="accounts", lazy="joined")

    name = db.Column(db.String(255), nullable=False)
    amount = db.Column(MONEY, nullable=False, default=Decimal("0.00"))
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    investments = db.relationship("Investment", back_populates="account", lazy="select")

    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_accounts_amount_positive"),
    )

    def to_dict(self, *, total_amount=None) -> dict:
        data = {
            "id": self.id,
            "investor_id": self.investor_id,
            "name": self.name,
            "amount": money_str(self.amount),
            "is_active": bool(self.is_active),
            "investor": self.investor.to_brief() if self.investor else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if total_amount is not None:
            data["total_amount"] = money_str(total_amount)
        return data

    def __repr__(self) -> str:
        return f"<Account {self.id} {self.name} active={self.is_active}>"


# =========================================================
# Payment (lump sum received from an investor)
# =========================================================
class Payment(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)

    investor_id = db.Column(
        db.Integer,
        db.ForeignKey("investors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    investor = db.relationship("Investor", back_populates="payments", lazy="joined")

    amount = db.Column(MONEY, nullable=False)
    remarks = db.Column(db.Text, nullable=True)

    created_by = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    creator = db.relationship("User", foreign_keys=[created_by], lazy="joined")

    # Manual flag; allocation never touches it.
    is_adjusted = db.Column(db.Boolean, nullable=False, default=False)

    # Append-only allocation log, written only by services.allocations.
    # The whole list is reassigned on write, so no Mutable wrapper.
    logs = db.Column(json_document(), nullable=True, default=list)

    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_payments_amount_positive"),
    )

    def log_entries(self) -> list[dict]:
        return list(self.logs or [])

    def to_dict(self, *, with_accounts: bool = False) -> dict:
        investor = None
        if self.investor is not None:
            investor = self.investor.to_brief()
            if with_accounts:
                investor["active_accounts"] = [
                    a.to_dict() for a in self.investor.active_accounts()
                ]
        return {
            "id": self.id,
            "investor_id": self.investor_id,
            "amount": money_str(self.amount),
            "remarks": self.remarks,
            "created_by": self.created_by,
            "is_adjusted": bool(self.is_adjusted),
            "logs": self.log_entries(),
            "investor": investor,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.amount} adjusted={self.is_adjusted}>"


# =========================================================
# Investment (one dated, typed allocation to an account)
# =========================================================
class Investment(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "investments"

    id = db.Column(db.Integer, primary_key=True)

    account_id = db.Column(
        db.Integer,
        db.ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account = db.relationship("Account", back_populates="investments", lazy="joined")

    for_month = db.Column(db.String(7), nullable=False, index=True)  # YYYY-MM
    amount = db.Column(MONEY, nullable=False)
    type = enum_column(InvestmentType, "investment_type", nullable=False)

    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_investments_amount_positive"),
        db.CheckConstraint(
            "type in ('regular','eid','others')", name="ck_investments_type"
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "for_month": self.for_month,
            "amount": money_str(self.amount),
            "type": self.type.value if self.type else None,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Investment {self.id} {self.for_month} {self.amount} {self.type}>"
