"""
Shared fixtures: an app on in-memory SQLite with fresh tables per test,
users of both roles, and small factories for the domain rows.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from investdesk import create_app
from investdesk.extensions import db
from investdesk.models import (
    Account,
    Investor,
    InvestorStatus,
    Payment,
    User,
    UserRole,
    utcnow_naive,
)
from investdesk.settings import TestConfig
from investdesk.utils.passwords import hash_password

PASSWORD = "secret-pass-1"


# ---------------------------------------------------------------------------
# App / DB
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.MEMBER, **overrides) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=overrides.pop("name", f"User {n}"),
            email=overrides.pop("email", f"user{n}@example.com"),
            role=role,
            password_hash=hash_password(overrides.pop("password", PASSWORD)),
            email_verified_at=overrides.pop("email_verified_at", utcnow_naive()),
            **overrides,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, name="Admin", email="admin@example.com")


@pytest.fixture
def member(make_user):
    return make_user(UserRole.MEMBER, name="Member", email="member@example.com")


@pytest.fixture
def investor_payload():
    """Builder for a valid investor form submission."""

    def _payload(**overrides) -> dict:
        data = {
            "uid": "INV-1",
            "name": "Amina Rahman",
            "nickname": "Amu",
            "email": "amina@example.com",
            "permanent_address": "12 Lake Road, Dhaka",
            "current_address": "12 Lake Road, Dhaka",
            "personal_info": {"occupation": "Engineer", "notes": "VIP client"},
            "mobile": "+8801700000001",
            "emergency_mobile": "+8801700000002",
            "status": "pending",
        }
        data.update(overrides)
        return data

    return _payload


@pytest.fixture
def make_investor(app):
    counter = {"n": 0}

    def _make(owner: User, **overrides) -> Investor:
        counter["n"] += 1
        n = counter["n"]
        investor = Investor(
            user_id=owner.id,
            uid=overrides.pop("uid", f"INV-{n}"),
            name=overrides.pop("name", f"Investor {n}"),
            email=overrides.pop("email", f"investor{n}@example.com"),
            permanent_address="Permanent address",
            current_address="Current address",
            mobile="0170000000",
            status=overrides.pop("status", InvestorStatus.PENDING),
            **overrides,
        )
        db.session.add(investor)
        db.session.commit()
        return investor

    return _make


@pytest.fixture
def make_account(app):
    def _make(investor: Investor, name: str = "Main", amount: str = "100.00", is_active: bool = True) -> Account:
        account = Account(
            investor_id=investor.id,
            name=name,
            amount=Decimal(amount),
            is_active=is_active,
        )
        db.session.add(account)
        db.session.commit()
        return account

    return _make


@pytest.fixture
def make_payment(app):
    def _make(investor: Investor, creator: User, amount: str = "500.00", **overrides) -> Payment:
        payment = Payment(
            investor_id=investor.id,
            amount=Decimal(amount),
            created_by=creator.id,
            logs=overrides.pop("logs", []),
            **overrides,
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    return _make


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def login(client):
    """Switch the test client's session to ``user`` (logs out whoever was in)."""

    def _login(user: User):
        client.post("/logout")
        response = client.post("/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200, response.get_json()
        return response

    return _login
