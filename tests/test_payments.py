import pytest
from decimal import Decimal

import requests

from pos.models import Transaction
from pos.services import midtrans

WEBHOOK = "/api/payments/midtrans/webhook/"


@pytest.fixture
def midtrans_key(settings):
    settings.MIDTRANS_SERVER_KEY = "SB-Mid-server-test"
    return settings.MIDTRANS_SERVER_KEY


def notification(trx, transaction_status="settlement", fraud_status="accept", key="SB-Mid-server-test"):
    gross = f"{trx['final_total']}"
    return {
        "order_id": trx["invoice_number"],
        "status_code": "200",
        "gross_amount": gross,
        "transaction_status": transaction_status,
        "fraud_status": fraud_status,
        "signature_key": midtrans.compute_signature(trx["invoice_number"], "200", gross, server_key=key),
    }


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


# ---------- webhook ----------

@pytest.mark.django_db
def test_webhook_liveness(api_client):
    resp = api_client.get(WEBHOOK)
    assert resp.status_code == 200


@pytest.mark.django_db
def test_settlement_completes_pending(api_client, checkout, product_factory, midtrans_key):
    product = product_factory(stock=5)
    trx = checkout([(product, 2)], payment_method="MIDTRANS").data

    resp = api_client.post(WEBHOOK, notification(trx), format="json")

    assert resp.status_code == 200, resp.data
    assert resp.data["status"] == "COMPLETED"
    product.refresh_from_db()
    assert product.stock == 3


@pytest.mark.django_db
def test_repeat_notification_is_idempotent(api_client, checkout, product_factory, midtrans_key):
    product = product_factory(stock=5)
    trx = checkout([(product, 1)], payment_method="QRIS").data

    api_client.post(WEBHOOK, notification(trx), format="json")
    resp = api_client.post(WEBHOOK, notification(trx), format="json")

    assert resp.data["detail"] == "Already completed"
    product.refresh_from_db()
    assert product.stock == 4


@pytest.mark.django_db
def test_invalid_signature_rejected(api_client, checkout, product_factory, midtrans_key):
    trx = checkout([(product_factory(), 1)], payment_method="MIDTRANS").data

    resp = api_client.post(WEBHOOK, notification(trx, key="wrong"), format="json")

    assert resp.status_code == 400
    assert Transaction.objects.get(pk=trx["id"]).status == "PENDING"


@pytest.mark.django_db
def test_webhook_rejects_everything_without_key(api_client, checkout, product_factory, settings):
    settings.MIDTRANS_SERVER_KEY = ""
    trx = checkout([(product_factory(), 1)], payment_method="MIDTRANS").data
    resp = api_client.post(WEBHOOK, notification(trx, key=""), format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_unknown_order_is_404(api_client, midtrans_key):
    fake = {"invoice_number": "INV999999999999", "final_total": "1000.00"}
    resp = api_client.post(WEBHOOK, notification(fake), format="json")
    assert resp.status_code == 404


@pytest.mark.django_db
def test_paid_but_out_of_stock_stays_pending(api_client, checkout, product_factory, midtrans_key):
    product = product_factory(stock=2)
    trx = checkout([(product, 2)], payment_method="MIDTRANS").data
    product.stock = 1
    product.save()

    resp = api_client.post(WEBHOOK, notification(trx), format="json")

    assert resp.status_code == 200
    saved = Transaction.objects.get(pk=trx["id"])
    assert saved.status == Transaction.Status.PENDING
    assert saved.payment_status == Transaction.PaymentStatus.PAID
    assert "Insufficient stock" in saved.failure_reason
    assert saved.history[-1]["type"] == "PAYMENT_RECEIVED"
    product.refresh_from_db()
    assert product.stock == 1


@pytest.mark.django_db
def test_paid_but_points_already_spent_stays_pending(api_client, checkout, product_factory, member_factory, midtrans_key):
    member = member_factory(points=10)
    product = product_factory(price=Decimal("10500"), cost_price=Decimal("5000"), stock=5)
    trx = checkout([(product, 1)], payment_method="MIDTRANS", member_id=member.id, points_used=10).data
    checkout([(product, 1)], member_id=member.id, points_used=10)
    member.refresh_from_db()
    assert member.points == 0

    resp = api_client.post(WEBHOOK, notification(trx), format="json")

    assert resp.status_code == 200, resp.data
    saved = Transaction.objects.get(pk=trx["id"])
    assert saved.status == Transaction.Status.PENDING
    assert saved.payment_status == Transaction.PaymentStatus.PAID
    assert "Member only has 0 points" in saved.failure_reason
    assert saved.history[-1]["type"] == "PAYMENT_RECEIVED"
    product.refresh_from_db()
    assert product.stock == 4


@pytest.mark.django_db
def test_expire_cancels(api_client, checkout, product_factory, midtrans_key):
    trx = checkout([(product_factory(), 1)], payment_method="QRIS").data

    resp = api_client.post(WEBHOOK, notification(trx, transaction_status="expire", fraud_status=""), format="json")

    assert resp.data["payment_status"] == "FAILED"
    saved = Transaction.objects.get(pk=trx["id"])
    assert saved.status == Transaction.Status.CANCELLED
    assert saved.payment_status == Transaction.PaymentStatus.FAILED


@pytest.mark.django_db
def test_pending_notification_is_noop(api_client, checkout, product_factory, midtrans_key):
    trx = checkout([(product_factory(), 1)], payment_method="MIDTRANS").data
    resp = api_client.post(WEBHOOK, notification(trx, transaction_status="pending", fraud_status=""), format="json")
    assert resp.data["status"] == "PENDING"
    assert resp.data["payment_status"] == "PENDING"


# ---------- bank transfer ----------

@pytest.mark.django_db
def test_bank_transfer_confirm(cashier_client, checkout, product_factory):
    product = product_factory(stock=3)
    trx = checkout([(product, 1)], payment_method="BANK_TRANSFER").data

    resp = cashier_client.post("/api/payments/bank-transfer/confirm/", {"transaction_id": trx["id"]}, format="json")

    assert resp.status_code == 200, resp.data
    assert resp.data["status"] == "COMPLETED"
    assert resp.data["payment_status"] == "PAID"
    product.refresh_from_db()
    assert product.stock == 2


@pytest.mark.django_db
def test_bank_transfer_confirm_rejects_other_methods(cashier_client, checkout, product_factory):
    trx = checkout([(product_factory(), 1)], payment_method="QRIS").data
    resp = cashier_client.post("/api/payments/bank-transfer/confirm/", {"transaction_id": trx["id"]}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_bank_transfer_confirm_twice(cashier_client, checkout, product_factory):
    trx = checkout([(product_factory(), 1)], payment_method="BANK_TRANSFER").data
    url = "/api/payments/bank-transfer/confirm/"
    cashier_client.post(url, {"transaction_id": trx["id"]}, format="json")
    assert cashier_client.post(url, {"transaction_id": trx["id"]}, format="json").status_code == 400


# ---------- snap token ----------

@pytest.mark.django_db
def test_snap_token(cashier_client, checkout, product_factory, midtrans_key, monkeypatch):
    trx = checkout([(product_factory(price=Decimal("20000")), 2)], payment_method="MIDTRANS").data
    calls = {}

    def fake_post(url, **kwargs):
        calls["url"] = url
        calls["json"] = kwargs["json"]
        calls["auth"] = kwargs["auth"]
        return FakeResponse(201, {"token": "snap-123", "redirect_url": "https://example.test/pay"})

    monkeypatch.setattr(midtrans.requests, "post", fake_post)

    resp = cashier_client.post("/api/payments/midtrans/token/", {"transaction_id": trx["id"]}, format="json")

    assert resp.status_code == 200, resp.data
    assert resp.data["token"] == "snap-123"
    assert resp.data["order_id"] == trx["invoice_number"]
    assert calls["url"] == midtrans.SNAP_SANDBOX_URL
    assert calls["auth"] == (midtrans_key, "")
    assert calls["json"]["transaction_details"]["gross_amount"] == 40000
    assert len(calls["json"]["item_details"]) == 1


@pytest.mark.django_db
def test_snap_gateway_failure_is_502(cashier_client, checkout, product_factory, midtrans_key, monkeypatch):
    trx = checkout([(product_factory(), 1)], payment_method="MIDTRANS").data

    def broken_post(url, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(midtrans.requests, "post", broken_post)
    resp = cashier_client.post("/api/payments/midtrans/token/", {"transaction_id": trx["id"]}, format="json")
    assert resp.status_code == 502


@pytest.mark.django_db
def test_snap_token_rejected_for_cash(cashier_client, checkout, product_factory, midtrans_key):
    trx = checkout([(product_factory(), 1)]).data
    resp = cashier_client.post("/api/payments/midtrans/token/", {"transaction_id": trx["id"]}, format="json")
    assert resp.status_code == 400


def test_signature_matches_midtrans_formula():
    import hashlib
    expected = hashlib.sha512(b"INV0000000000012001000.00key").hexdigest()
    assert midtrans.compute_signature("INV000000000001", "200", "1000.00", server_key="key") == expected
