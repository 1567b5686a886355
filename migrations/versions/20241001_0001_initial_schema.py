"""Initial schema: users, investors, accounts, payments, investments

Revision ID: 20241001_0001
Revises:
Create Date: 2024-10-01 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20241001_0001"
down_revision = None
branch_labels = None
depends_on = None

JSON_DOC = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    ]


def upgrade():
    # -----------------------
    # users
    # -----------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(6), nullable=False, server_default="member"),
        sa.Column("email_verified_at", sa.DateTime(), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role in ('admin','member')", name="ck_users_role"),
    )
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    # -----------------------
    # investors
    # -----------------------
    op.create_table(
        "investors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("uid", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("nickname", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("permanent_address", sa.Text(), nullable=False),
        sa.Column("current_address", sa.Text(), nullable=False),
        sa.Column("personal_info", JSON_DOC, nullable=True),
        sa.Column("mobile", sa.String(20), nullable=False),
        sa.Column("emergency_mobile", sa.String(20), nullable=True),
        sa.Column("status", sa.String(7), nullable=False, server_default="pending"),
        *_audit_columns(),
        sa.UniqueConstraint("uid", name="uq_investors_uid"),
        sa.UniqueConstraint("email", name="uq_investors_email"),
        sa.CheckConstraint("status in ('pending','active')", name="ck_investors_status"),
    )
    op.create_index("ix_investors_user_id", "investors", ["user_id"])
    op.create_index("ix_investors_deleted_at", "investors", ["deleted_at"])

    # -----------------------
    # accounts
    # -----------------------
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "investor_id",
            sa.Integer(),
            sa.ForeignKey("investors.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_audit_columns(),
        sa.CheckConstraint("amount >= 0", name="ck_accounts_amount_positive"),
    )
    op.create_index("ix_accounts_investor_id", "accounts", ["investor_id"])
    op.create_index("ix_accounts_deleted_at", "accounts", ["deleted_at"])

    # -----------------------
    # payments
    # -----------------------
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "investor_id",
            sa.Integer(),
            sa.ForeignKey("investors.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_adjusted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("logs", JSON_DOC, nullable=True),
        *_audit_columns(),
        sa.CheckConstraint("amount >= 0", name="ck_payments_amount_positive"),
    )
    op.create_index("ix_payments_investor_id", "payments", ["investor_id"])
    op.create_index("ix_payments_created_by", "payments", ["created_by"])
    op.create_index("ix_payments_deleted_at", "payments", ["deleted_at"])

    # -----------------------
    # investments
    # -----------------------
    op.create_table(
        "investments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("for_month", sa.String(7), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(7), nullable=False),
        *_audit_columns(),
        sa.CheckConstraint("amount >= 0", name="ck_investments_amount_positive"),
        sa.CheckConstraint("type in ('regular','eid','others')", name="ck_investments_type"),
    )
    op.create_index("ix_investments_account_id", "investments", ["account_id"])
    op.create_index("ix_investments_for_month", "investments", ["for_month"])
    op.create_index("ix_investments_deleted_at", "investments", ["deleted_at"])


def downgrade():
    op.drop_table("investments")
    op.drop_table("payments")
    op.drop_table("accounts")
    op.drop_table("investors")
    op.drop_table("users")
