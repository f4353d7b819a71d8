"""
API tests for the payment, schedule, ledger and settings routes
using FastAPI TestClient against the in-memory database.
"""

import pytest
from fastapi.testclient import TestClient

from app.models.loan_model import LoanStatus
from app.utils.database import get_db
from main import app


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _pay(client, loan_id, amount, **extra):
    body = {
        "loan_id": loan_id,
        "amount": amount,
        "method": "efectivo",
        "payment_date": "2024-01-08T10:00:00",
    }
    body.update(extra)
    return client.post("/payments/apply", json=body)


class TestApplyPaymentEndpoint:

    def test_on_time_payment(self, client, loan_with_installment):
        loan, _ = loan_with_installment

        r = _pay(client, loan.loan_id, "1000.00")

        assert r.status_code == 200
        data = r.json()
        assert data["paidInstallmentWeeks"] == [1]
        assert data["remaining"] == 0.0
        assert data["receipt_generated"] is True
        assert data["payment_id"] is not None
        alloc = data["allocations"][0]
        assert (alloc["penalty_paid"], alloc["interest_paid"], alloc["capital_paid"]) == (0.0, 200.0, 800.0)

    def test_overpayment_reports_remaining(self, client, loan_with_installment):
        loan, _ = loan_with_installment

        data = _pay(client, loan.loan_id, 1500).json()

        assert data["remaining"] == 500.0
        assert data["remaining_unapplied"] is True

    def test_extra_to_capital(self, client, loan_with_installment):
        loan, _ = loan_with_installment

        data = _pay(client, loan.loan_id, 1500, apply_extra_to="capital").json()

        assert data["remaining"] == 0.0
        assert data["extra_capital"] == 500.0

    @pytest.mark.parametrize("body_update", [
        {"amount": 0},
        {"amount": -5},
        {"method": "cheque"},
        {"apply_extra_to": "interest"},
    ])
    def test_invalid_body_is_400(self, client, loan_with_installment, body_update):
        loan, _ = loan_with_installment

        r = _pay(client, loan.loan_id, **{"amount": 100, **body_update})

        assert r.status_code == 400
        assert r.json()["error"] == "validation_error"
        assert "message" in r.json()

    def test_precondition_is_400(self, client, make_loan, make_installment):
        loan = make_loan(status=LoanStatus.PENDING_ADMIN_APPROVAL.value)
        make_installment(loan)

        r = _pay(client, loan.loan_id, 100)

        assert r.status_code == 400
        assert r.json()["error"] == "precondition_failed"

    def test_unknown_loan_is_404(self, client):
        r = _pay(client, 999, 100)

        assert r.status_code == 404
        assert r.json()["error"] == "not_found"


class TestLedgerEndpoints:

    def test_journal_by_payment_source(self, client, loan_with_installment):
        loan, _ = loan_with_installment
        payment_id = _pay(client, loan.loan_id, 1000).json()["payment_id"]

        rows = client.get("/ledger/journal", params={"source_type": "payment", "source_id": payment_id}).json()

        assert len(rows) == 3
        assert sum(r["debit"] for r in rows) == sum(r["credit"] for r in rows) == 1000.0

    def test_accounting_by_payment_source(self, client, loan_with_installment):
        loan, _ = loan_with_installment
        payment_id = _pay(client, loan.loan_id, 1000).json()["payment_id"]

        rows = client.get("/ledger/accounting", params={"source_id": payment_id}).json()

        assert sorted(r["type"] for r in rows) == ["capitalPaid", "cash", "interestPaid"]

    def test_chart_of_accounts(self, client):
        codes = [a["code"] for a in client.get("/ledger/accounts").json()]
        assert codes == ["1101", "1102", "1103", "4100", "4101"]


class TestScheduleEndpoints:

    def test_generate_and_read_schedule(self, client, make_loan):
        loan = make_loan(status=LoanStatus.APPROVED.value, weeks=4, principal="4000.00", interest="400.00")

        r = client.post(f"/loans/{loan.loan_id}/schedule")
        assert r.status_code == 200
        assert r.json()["installments_created"] == 4

        rows = client.get(f"/loans/{loan.loan_id}/schedule").json()
        assert [row["week_number"] for row in rows] == [1, 2, 3, 4]
        assert rows[0]["amount_due"] == 1100.0

        again = client.post(f"/loans/{loan.loan_id}/schedule")
        assert again.status_code == 400

    def test_accrue_penalty_endpoint(self, client, loan_with_installment):
        _, inst = loan_with_installment
        url = f"/installments/{inst.installment_id}/accrue-penalty"

        first = client.post(url, json={"as_of": "2024-01-09T10:00:00"}).json()
        second = client.post(url, json={"as_of": "2024-01-09T16:00:00"}).json()

        assert first["status"] == "applied"
        assert first["newPenaltyTotal"] == 100.0
        assert second["status"] == "skipped"
        assert second["newPenaltyTotal"] == 100.0

    def test_accrue_unknown_installment(self, client):
        r = client.post("/installments/777/accrue-penalty", json={})
        assert r.status_code == 404


class TestSettingsEndpoints:

    def test_create_and_update(self, client):
        r = client.post("/settings", json={"key": "PENALTY_FLAT_AMOUNT", "value": "60"})
        assert r.status_code == 201

        r = client.patch(
            "/settings",
            json={"key": "PENALTY_FLAT_AMOUNT", "value": "70"},
            headers={"x-user-id": "9"},
        )
        assert r.json()["value"] == "70"
        assert r.json()["updated_by"] == 9

    def test_duplicate_key_conflict(self, client):
        client.post("/settings", json={"key": "PENALTY_RATE", "value": "0.2"})
        r = client.post("/settings", json={"key": "PENALTY_RATE", "value": "0.3"})
        assert r.status_code == 409

    def test_non_numeric_penalty_setting_rejected(self, client):
        r = client.post("/settings", json={"key": "PENALTY_RATE", "value": "ten percent"})
        assert r.status_code == 400

    def test_setting_overrides_penalty_rate(self, client, loan_with_installment):
        _, inst = loan_with_installment
        client.post("/settings", json={"key": "penalty_rate", "value": "0.20"})

        r = client.post(
            f"/installments/{inst.installment_id}/accrue-penalty",
            json={"as_of": "2024-01-09T10:00:00"},
        )

        assert r.json()["penaltyDelta"] == 200.0
        assert [s["key"] for s in client.get("/settings").json()] == ["PENALTY_RATE"]

    def test_fractional_cutoff_hour_is_stored_whole(self, client, loan_with_installment):
        loan, _ = loan_with_installment

        r = client.post("/settings", json={"key": "PENALTY_CUTOFF_HOUR", "value": "14.0"})
        assert r.status_code == 201
        assert r.json()["value"] == "14"

        paid = _pay(client, loan.loan_id, "1000.00")
        assert paid.status_code == 200
        assert paid.json()["paidInstallmentWeeks"] == [1]

    def test_cutoff_hour_must_be_whole(self, client):
        r = client.post("/settings", json={"key": "PENALTY_CUTOFF_HOUR", "value": "14.5"})
        assert r.status_code == 400
