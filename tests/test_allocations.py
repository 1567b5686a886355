"""
Bulk investment recording: validation of the whole batch, atomic insert of
the Investment rows plus the payment log append, and the HTTP surface.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from investdesk.errors import AllocationFailed, AuthorizationError, NotFoundError, ValidationError
from investdesk.extensions import db
from investdesk.models import Investment, InvestmentType, Payment
from investdesk.schemas import AllocationLine
from investdesk.services import allocations as allocation_service
from investdesk.services.allocations import record_allocations, validate_lines


@pytest.fixture
def ledger(admin, make_investor, make_account, make_payment):
    """One investor with two active accounts and a fresh payment."""
    investor = make_investor(admin)
    main = make_account(investor, name="Main")
    savings = make_account(investor, name="Savings")
    payment = make_payment(investor, admin, amount="500.00")
    return {"investor": investor, "main": main, "savings": savings, "payment": payment}


def _line(account, for_month="2024-01", amount="100", kind="regular") -> dict:
    return {"account_id": account.id, "for_month": for_month, "amount": amount, "type": kind}


def _investment_count() -> int:
    return db.session.query(Investment).count()


def _reload(payment_id: int) -> Payment:
    db.session.expire_all()
    return db.session.get(Payment, payment_id)


# ---------------------------------------------------------------------------
# Service: happy path
# ---------------------------------------------------------------------------

class TestRecordAllocations:
    def test_single_line_creates_row_and_log_entry(self, admin, ledger):
        payment, main = ledger["payment"], ledger["main"]

        result = record_allocations(admin, payment.id, [_line(main)])

        assert len(result.investments) == 1
        investment = result.investments[0]
        assert investment.account_id == main.id
        assert investment.for_month == "2024-01"
        assert investment.amount == Decimal("100.00")
        assert investment.type == InvestmentType.REGULAR

        stored = _reload(payment.id)
        assert stored.logs == [
            {"account_id": main.id, "for_month": "2024-01", "amount": "100.00", "type": "regular"}
        ]
        assert stored.is_adjusted is False

    def test_lines_append_in_submission_order(self, admin, ledger):
        payment, main, savings = ledger["payment"], ledger["main"], ledger["savings"]

        record_allocations(
            admin,
            payment.id,
            [
                _line(main, "2024-01", "100"),
                _line(savings, "2024-02", "50.5", "eid"),
                _line(main, "2024-03", "25", "others"),
            ],
        )

        logs = _reload(payment.id).logs
        assert [entry["for_month"] for entry in logs] == ["2024-01", "2024-02", "2024-03"]
        assert [entry["amount"] for entry in logs] == ["100.00", "50.50", "25.00"]
        assert [entry["type"] for entry in logs] == ["regular", "eid", "others"]
        assert _investment_count() == 3

    def test_existing_log_entries_are_kept_in_front(self, admin, ledger, make_payment):
        investor, main = ledger["investor"], ledger["main"]
        earlier = {"account_id": main.id, "for_month": "2023-12", "amount": "10.00", "type": "regular"}
        payment = make_payment(investor, admin, logs=[earlier])

        record_allocations(admin, payment.id, [_line(main, "2024-01")])
        record_allocations(admin, payment.id, [_line(main, "2024-02")])

        logs = _reload(payment.id).logs
        assert logs[0] == earlier
        assert [entry["for_month"] for entry in logs] == ["2023-12", "2024-01", "2024-02"]

    def test_type_is_case_insensitive(self, admin, ledger):
        record_allocations(admin, ledger["payment"].id, [_line(ledger["main"], kind="EID")])

        assert _reload(ledger["payment"].id).logs[0]["type"] == "eid"

    def test_zero_amount_is_allowed(self, admin, ledger):
        record_allocations(admin, ledger["payment"].id, [_line(ledger["main"], amount="0")])

        assert _reload(ledger["payment"].id).logs[0]["amount"] == "0.00"

    def test_is_adjusted_untouched_when_already_set(self, admin, ledger, make_payment):
        payment = make_payment(ledger["investor"], admin, is_adjusted=True)

        record_allocations(admin, payment.id, [_line(ledger["main"])])

        assert _reload(payment.id).is_adjusted is True


# ---------------------------------------------------------------------------
# Service: rejected batches leave no trace
# ---------------------------------------------------------------------------

class TestRejectedBatches:
    @pytest.mark.parametrize(
        "bad_line, error_key",
        [
            ({"account_id": 9999}, "investments.1.account_id"),
            ({"for_month": "2024-13"}, "investments.1.for_month"),
            ({"for_month": "2024/01"}, "investments.1.for_month"),
            ({"amount": "-1"}, "investments.1.amount"),
            ({"amount": "abc"}, "investments.1.amount"),
            ({"amount": "1e30"}, "investments.1.amount"),
            ({"amount": "10000000000.00"}, "investments.1.amount"),
            ({"account_id": 10**20}, "investments.1.account_id"),
            ({"account_id": 0}, "investments.1.account_id"),
            ({"type": "bonus"}, "investments.1.type"),
        ],
    )
    def test_one_bad_line_rejects_whole_batch(self, admin, ledger, bad_line, error_key):
        payment, main = ledger["payment"], ledger["main"]
        lines = [_line(main), {**_line(main, "2024-02"), **bad_line}]

        with pytest.raises(ValidationError) as excinfo:
            record_allocations(admin, payment.id, lines)

        assert error_key in excinfo.value.errors
        assert _investment_count() == 0
        assert _reload(payment.id).logs == []

    @pytest.mark.parametrize("raw", [[], None, "not-a-list", {"account_id": 1}])
    def test_empty_or_malformed_batch(self, admin, ledger, raw):
        with pytest.raises(ValidationError) as excinfo:
            record_allocations(admin, ledger["payment"].id, raw)

        assert "investments" in excinfo.value.errors
        assert _investment_count() == 0

    def test_missing_fields_are_reported_per_line(self):
        with pytest.raises(ValidationError) as excinfo:
            validate_lines([{}])

        errors = excinfo.value.errors
        for field in ("account_id", "for_month", "amount", "type"):
            assert f"investments.0.{field}" in errors

    def test_soft_deleted_account_is_invalid(self, admin, ledger):
        main = ledger["main"]
        main.soft_delete()
        db.session.commit()

        with pytest.raises(ValidationError) as excinfo:
            record_allocations(admin, ledger["payment"].id, [_line(main)])

        assert "investments.0.account_id" in excinfo.value.errors

    def test_account_vanishing_before_commit_fails_atomically(self, admin, ledger, monkeypatch):
        payment, main, savings = ledger["payment"], ledger["main"], ledger["savings"]
        monkeypatch.setattr(allocation_service, "_live_account_ids", lambda ids: set())

        with pytest.raises(AllocationFailed):
            record_allocations(admin, payment.id, [_line(main), _line(savings)])

        assert _investment_count() == 0
        assert _reload(payment.id).logs == []

    def test_commit_failure_discards_inserted_rows(self, admin, ledger, monkeypatch):
        payment, main, savings = ledger["payment"], ledger["main"], ledger["savings"]

        def flush_then_fail():
            db.session.flush()
            raise OperationalError("COMMIT", {}, Exception("connection lost"))

        monkeypatch.setattr(db.session(), "commit", flush_then_fail)

        with pytest.raises(AllocationFailed):
            record_allocations(admin, payment.id, [_line(main), _line(savings, "2024-02")])

        assert _investment_count() == 0
        assert _reload(payment.id).logs == []

    def test_constraint_violation_on_insert_rolls_back(self, admin, ledger, monkeypatch):
        payment, main = ledger["payment"], ledger["main"]
        lines = [
            AllocationLine(account_id=main.id, for_month="2024-01", amount=Decimal("5.00"), type="regular"),
            AllocationLine(account_id=main.id, for_month="2024-02", amount=Decimal("-1.00"), type="regular"),
        ]
        monkeypatch.setattr(allocation_service, "validate_lines", lambda raw: lines)

        with pytest.raises(AllocationFailed):
            record_allocations(admin, payment.id, [])

        assert _investment_count() == 0
        assert _reload(payment.id).logs == []

    def test_member_cannot_allocate(self, member, ledger):
        with pytest.raises(AuthorizationError):
            record_allocations(member, ledger["payment"].id, [_line(ledger["main"])])

        assert _investment_count() == 0

    def test_unknown_payment(self, admin, ledger):
        with pytest.raises(NotFoundError):
            record_allocations(admin, 9999, [_line(ledger["main"])])

    def test_soft_deleted_payment(self, admin, ledger):
        payment = ledger["payment"]
        payment.soft_delete()
        db.session.commit()

        with pytest.raises(NotFoundError):
            record_allocations(admin, payment.id, [_line(ledger["main"])])


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

class TestBulkEndpoint:
    def test_created(self, client, login, admin, ledger):
        login(admin)
        payment, main = ledger["payment"], ledger["main"]

        response = client.post(
            f"/investments/bulk/{payment.id}", json={"investments": [_line(main)]}
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["message"] == "Investments added successfully!"
        assert body["payment"]["logs"][0]["amount"] == "100.00"
        assert body["investments"][0]["for_month"] == "2024-01"
        assert body["payment"]["is_adjusted"] is False

    def test_payment_id_in_body(self, client, login, admin, ledger):
        login(admin)
        payment, main = ledger["payment"], ledger["main"]

        response = client.post(
            "/investments/bulk",
            json={"payment_id": payment.id, "investments": [_line(main)]},
        )

        assert response.status_code == 201
        assert _investment_count() == 1

    def test_payment_id_required_in_body(self, client, login, admin, ledger):
        login(admin)

        response = client.post("/investments/bulk", json={"investments": [_line(ledger["main"])]})

        assert response.status_code == 422
        assert "payment_id" in response.get_json()["errors"]

    def test_invalid_batch_is_422_with_old_input(self, client, login, admin, ledger):
        login(admin)
        lines = [_line(ledger["main"], for_month="January")]

        response = client.post(f"/investments/bulk/{ledger['payment'].id}", json={"investments": lines})

        assert response.status_code == 422
        body = response.get_json()
        assert body["errors"]["investments.0.for_month"] == [
            "The for month field must match the format Y-m."
        ]
        assert body["old"]["investments"] == lines

    def test_member_forbidden(self, client, login, member, ledger):
        login(member)

        response = client.post(
            f"/investments/bulk/{ledger['payment'].id}", json={"investments": [_line(ledger["main"])]}
        )

        assert response.status_code == 403
        assert _investment_count() == 0

    def test_anonymous_unauthenticated(self, client, ledger):
        response = client.post(
            f"/investments/bulk/{ledger['payment'].id}", json={"investments": [_line(ledger["main"])]}
        )

        assert response.status_code == 401

    def test_allocation_failure_is_409(self, client, login, admin, ledger, monkeypatch):
        login(admin)
        monkeypatch.setattr(allocation_service, "_live_account_ids", lambda ids: set())

        response = client.post(
            f"/investments/bulk/{ledger['payment'].id}", json={"investments": [_line(ledger["main"])]}
        )

        assert response.status_code == 409
        assert _investment_count() == 0
