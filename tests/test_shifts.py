import pytest
from decimal import Decimal

from pos.models import Transaction
from pos.models_shift import CashierShift, CashierShiftLog, ShiftStatus


@pytest.mark.django_db
def test_open_shift(cashier_client, cashier_user):
    resp = cashier_client.post("/api/shifts/open/", {"opening_balance": "50000", "note": " pagi "}, format="json")

    assert resp.status_code == 201, resp.data
    shift = CashierShift.objects.get(cashier=cashier_user)
    assert shift.status == ShiftStatus.OPEN
    assert shift.note == "pagi"
    assert CashierShiftLog.objects.filter(shift=shift, action="OPEN_SHIFT").exists()


@pytest.mark.django_db
def test_second_open_conflicts(cashier_client):
    first = cashier_client.post("/api/shifts/open/", {"opening_balance": "0"}, format="json")
    resp = cashier_client.post("/api/shifts/open/", {"opening_balance": "0"}, format="json")

    assert resp.status_code == 409
    assert resp.data["shift_id"] == first.data["shift"]["id"]


@pytest.mark.django_db
def test_negative_opening_balance_rejected(cashier_client):
    resp = cashier_client.post("/api/shifts/open/", {"opening_balance": "-1"}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_current_shift(cashier_client):
    assert cashier_client.get("/api/shifts/current/").data == {"open": False, "shift": None}

    cashier_client.post("/api/shifts/open/", {"opening_balance": "10000"}, format="json")
    resp = cashier_client.get("/api/shifts/current/")
    assert resp.data["open"] is True
    assert Decimal(resp.data["shift"]["expected_cash"]) == Decimal("10000")


@pytest.mark.django_db
def test_close_computes_expected_cash(cashier_client, checkout, product_factory):
    product = product_factory(price=Decimal("50000"), stock=10)
    cashier_client.post("/api/shifts/open/", {"opening_balance": "50000"}, format="json")

    cash = checkout([(product, 2)]).data
    checkout([(product, 1)], payment_method="CARD")
    assert cash["shift"] is not None

    resp = cashier_client.post("/api/shifts/close/", {"closing_balance": "140000"}, format="json")

    assert resp.status_code == 200, resp.data
    shift = resp.data["shift"]
    assert shift["status"] == "CLOSED"
    assert Decimal(shift["cash_sales"]) == Decimal("100000")
    assert Decimal(shift["total_sales"]) == Decimal("150000")
    assert Decimal(shift["expected_cash"]) == Decimal("150000")
    assert Decimal(shift["difference"]) == Decimal("-10000")

    report = resp.data["report"]
    assert report["transaction_count"] == 2
    assert report["payment_breakdown"]["CASH"]["count"] == 1
    assert report["items_sold"] == 3


@pytest.mark.django_db
def test_close_blocked_by_pending(cashier_client, checkout, product_factory):
    cashier_client.post("/api/shifts/open/", {"opening_balance": "0"}, format="json")
    checkout([(product_factory(), 1)], payment_method="QRIS")

    resp = cashier_client.post("/api/shifts/close/", {"closing_balance": "0"}, format="json")

    assert resp.status_code == 400
    assert resp.data["pending_transactions"] == 1
    assert CashierShift.objects.get().status == ShiftStatus.OPEN


@pytest.mark.django_db
def test_close_without_open_shift(cashier_client):
    resp = cashier_client.post("/api/shifts/close/", {"closing_balance": "0"}, format="json")
    assert resp.status_code == 400
    assert resp.data["code"] == "shift_error"


@pytest.mark.django_db
def test_shift_list_and_report_scoping(cashier_client, manager_client, user_factory):
    other = user_factory()
    other_shift = CashierShift.objects.create(cashier=other)
    cashier_client.post("/api/shifts/open/", {"opening_balance": "0"}, format="json")

    assert len(cashier_client.get("/api/shifts/").data) == 1
    assert len(manager_client.get("/api/shifts/").data) == 2
    assert cashier_client.get(f"/api/shifts/{other_shift.id}/report/").status_code == 404

    resp = manager_client.get(f"/api/shifts/{other_shift.id}/report/")
    assert resp.status_code == 200
    assert resp.data["report"]["shift_id"] == other_shift.id


@pytest.mark.django_db
def test_transactions_without_open_shift_have_no_shift(checkout, product_factory):
    trx = checkout([(product_factory(), 1)]).data
    assert Transaction.objects.get(pk=trx["id"]).shift_id is None
