import pytest
from decimal import Decimal

from pos.models import PointHistory, StockMovement, Transaction, Voucher, VoucherUsage


@pytest.mark.django_db
def test_cash_checkout_completes_and_moves_stock(checkout, product_factory, cashier_user):
    product = product_factory(price=Decimal("50000"), stock=10)

    resp = checkout([(product, 2)])

    assert resp.status_code == 201, resp.data
    assert resp.data["status"] == "COMPLETED"
    assert resp.data["payment_status"] == "PAID"
    assert resp.data["invoice_number"].startswith("INV")
    assert Decimal(resp.data["final_total"]) == Decimal("100000")
    assert resp.data["cashier"] == cashier_user.id

    product.refresh_from_db()
    assert product.stock == 8
    movement = StockMovement.objects.get(product=product)
    assert movement.movement_type == StockMovement.Type.SALE
    assert (movement.quantity_delta, movement.before_stock, movement.after_stock) == (-2, 10, 8)


@pytest.mark.django_db
def test_repeated_lines_are_merged(checkout, product_factory):
    product = product_factory(stock=5)
    resp = checkout([(product, 2), (product, 1)])
    assert resp.status_code == 201
    assert len(resp.data["items"]) == 1
    assert resp.data["items"][0]["quantity"] == 3


@pytest.mark.django_db
def test_server_price_wins(checkout, product_factory):
    product = product_factory(price=Decimal("50000"))
    resp = checkout([(product, 1)], total="1.00")
    assert resp.status_code == 201
    assert Decimal(resp.data["subtotal"]) == Decimal("50000")
    assert Decimal(resp.data["items"][0]["price"]) == Decimal("50000")


@pytest.mark.django_db
def test_insufficient_stock_is_409_and_writes_nothing(checkout, product_factory):
    product = product_factory(stock=1)
    resp = checkout([(product, 3)])

    assert resp.status_code == 409
    assert resp.data["code"] == "insufficient_stock"
    assert resp.data["shortages"][0]["available"] == 1
    assert Transaction.objects.count() == 0
    product.refresh_from_db()
    assert product.stock == 1


@pytest.mark.django_db
def test_inactive_product_rejected(checkout, product_factory):
    product = product_factory(is_active=False)
    resp = checkout([(product, 1)])
    assert resp.status_code == 400
    assert resp.data["code"] == "product_unavailable"


@pytest.mark.django_db
def test_empty_cart_rejected(cashier_client):
    resp = cashier_client.post("/api/transactions/", {"items": [], "payment_method": "CASH"}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_delayed_payment_stays_pending(checkout, product_factory, member_factory):
    product = product_factory(stock=4)
    member = member_factory(points=0)

    resp = checkout([(product, 2)], payment_method="QRIS", member_id=member.id)

    assert resp.status_code == 201
    assert resp.data["status"] == "PENDING"
    assert resp.data["payment_status"] == "PENDING"
    product.refresh_from_db()
    member.refresh_from_db()
    assert product.stock == 4
    assert member.points == 0


@pytest.mark.django_db
def test_card_requiring_confirmation_is_pending(checkout, product_factory):
    product = product_factory()
    resp = checkout([(product, 1)], payment_method="CARD", requires_confirmation=True)
    assert resp.data["status"] == "PENDING"

    resp = checkout([(product, 1)], payment_method="CARD")
    assert resp.data["status"] == "COMPLETED"


@pytest.mark.django_db
def test_member_earns_points_on_completion(checkout, product_factory, member_factory):
    product = product_factory(price=Decimal("50000"))
    member = member_factory(points=0)

    resp = checkout([(product, 2)], member_id=member.id)

    assert resp.data["points_earned"] == 100
    member.refresh_from_db()
    assert member.points == 100
    assert member.total_spent == Decimal("100000")
    assert member.last_visit is not None
    assert PointHistory.objects.get(member=member).type == PointHistory.Type.EARNED


@pytest.mark.django_db
def test_points_redemption_reduces_total(checkout, product_factory, member_factory):
    product = product_factory(price=Decimal("50000"))
    member = member_factory(points=20)

    resp = checkout([(product, 2)], member_id=member.id, points_used=20)

    assert resp.status_code == 201, resp.data
    assert Decimal(resp.data["points_discount"]) == Decimal("20000")
    assert Decimal(resp.data["final_total"]) == Decimal("80000")
    assert resp.data["points_earned"] == 80
    member.refresh_from_db()
    assert member.points == 80
    types = set(PointHistory.objects.filter(member=member).values_list("type", flat=True))
    assert types == {PointHistory.Type.USED, PointHistory.Type.EARNED}


@pytest.mark.django_db
def test_points_above_balance_rejected(checkout, product_factory, member_factory):
    product = product_factory()
    member = member_factory(points=5)
    resp = checkout([(product, 1)], member_id=member.id, points_used=6)
    assert resp.status_code == 400
    assert resp.data["code"] == "points_rejected"
    assert Transaction.objects.count() == 0


@pytest.mark.django_db
def test_unknown_member_is_404(checkout, product_factory):
    resp = checkout([(product_factory(), 1)], member_id=424242)
    assert resp.status_code == 404


@pytest.mark.django_db
def test_promotion_and_voucher_stack(checkout, product_factory, promotion_factory, voucher_factory):
    product = product_factory(price=Decimal("100000"))
    promotion_factory(products=[product], discount_value=Decimal("10"))
    voucher = voucher_factory(code="EXTRA", type=Voucher.Type.FIXED, value=Decimal("5000"))

    resp = checkout([(product, 1)], voucher_code="extra", tax="1000")

    assert resp.status_code == 201, resp.data
    assert Decimal(resp.data["promo_discount"]) == Decimal("10000")
    assert Decimal(resp.data["voucher_discount"]) == Decimal("5000")
    assert Decimal(resp.data["final_total"]) == Decimal("86000")
    assert resp.data["voucher_codes"] == ["EXTRA"]
    voucher.refresh_from_db()
    assert voucher.used_count == 1
    assert VoucherUsage.objects.filter(voucher=voucher).count() == 1


@pytest.mark.django_db
def test_invalid_voucher_aborts_checkout(checkout, product_factory):
    resp = checkout([(product_factory(), 1)], voucher_code="GHOST")
    assert resp.status_code == 404
    assert Transaction.objects.count() == 0


@pytest.mark.django_db
def test_cancel_completed_restores_everything(checkout, cashier_client, product_factory, member_factory, voucher_factory):
    product = product_factory(price=Decimal("50000"), stock=10)
    member = member_factory(points=10)
    voucher = voucher_factory(code="BATAL", type=Voucher.Type.FIXED, value=Decimal("10000"))

    trx = checkout([(product, 2)], member_id=member.id, points_used=10, voucher_code="BATAL").data
    member.refresh_from_db()
    assert member.points == 80

    resp = cashier_client.post(f"/api/transactions/{trx['id']}/cancel/", {"reason": "salah input"}, format="json")

    assert resp.status_code == 200, resp.data
    assert resp.data["status"] == "CANCELLED"
    assert resp.data["history"][-1]["reason"] == "salah input"
    product.refresh_from_db()
    member.refresh_from_db()
    voucher.refresh_from_db()
    assert product.stock == 10
    assert member.points == 10
    assert member.total_spent == Decimal("0")
    assert voucher.used_count == 0
    assert not VoucherUsage.objects.exists()
    assert StockMovement.objects.filter(movement_type=StockMovement.Type.SALE_RETURN).count() == 1


@pytest.mark.django_db
def test_cancel_pending_cancels_payment(checkout, cashier_client, product_factory):
    product = product_factory(stock=3)
    trx = checkout([(product, 1)], payment_method="BANK_TRANSFER").data

    resp = cashier_client.post(f"/api/transactions/{trx['id']}/cancel/", {}, format="json")

    assert resp.data["status"] == "CANCELLED"
    assert resp.data["payment_status"] == "CANCELLED"
    product.refresh_from_db()
    assert product.stock == 3
    assert not StockMovement.objects.exists()


@pytest.mark.django_db
def test_cancel_twice_rejected(checkout, cashier_client, product_factory):
    trx = checkout([(product_factory(), 1)]).data
    cashier_client.post(f"/api/transactions/{trx['id']}/cancel/", {}, format="json")
    resp = cashier_client.post(f"/api/transactions/{trx['id']}/cancel/", {}, format="json")
    assert resp.status_code == 400
    assert resp.data["code"] == "invalid_state"


@pytest.mark.django_db
def test_refund_completed(checkout, cashier_client, product_factory, member_factory):
    product = product_factory(price=Decimal("20000"), stock=5)
    member = member_factory(points=0)
    trx = checkout([(product, 1)], member_id=member.id).data

    resp = cashier_client.post(f"/api/transactions/{trx['id']}/refund/", {}, format="json")

    assert resp.status_code == 200, resp.data
    assert resp.data["status"] == "REFUNDED"
    assert resp.data["payment_status"] == "REFUNDED"
    assert resp.data["history"][-1]["refund_ref"] == f"RF-{trx['invoice_number']}"
    product.refresh_from_db()
    member.refresh_from_db()
    assert product.stock == 5
    assert member.points == 0


@pytest.mark.django_db
def test_refund_pending_rejected(checkout, cashier_client, product_factory):
    trx = checkout([(product_factory(), 1)], payment_method="QRIS").data
    resp = cashier_client.post(f"/api/transactions/{trx['id']}/refund/", {"refund_ref": "X1"}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_reversal_clamps_points_at_zero(checkout, cashier_client, product_factory, member_factory):
    product = product_factory(price=Decimal("50000"))
    member = member_factory(points=0)
    trx = checkout([(product, 1)], member_id=member.id).data
    member.refresh_from_db()
    member.points = 10
    member.save()

    cashier_client.post(f"/api/transactions/{trx['id']}/cancel/", {}, format="json")

    member.refresh_from_db()
    assert member.points == 0


@pytest.mark.django_db
def test_patch_completes_pending(checkout, cashier_client, product_factory):
    product = product_factory(stock=2)
    trx = checkout([(product, 1)], payment_method="VIRTUAL_ACCOUNT").data

    resp = cashier_client.patch(f"/api/transactions/{trx['id']}/", {"status": "COMPLETED"}, format="json")

    assert resp.status_code == 200, resp.data
    assert resp.data["status"] == "COMPLETED"
    assert resp.data["paid_at"] is not None
    product.refresh_from_db()
    assert product.stock == 1


@pytest.mark.django_db
def test_patch_rejects_unsupported_transition(checkout, cashier_client, product_factory):
    trx = checkout([(product_factory(), 1)]).data
    resp = cashier_client.patch(f"/api/transactions/{trx['id']}/", {"status": "PENDING"}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_list_summary_and_filters(checkout, cashier_client, product_factory):
    product = product_factory(price=Decimal("10000"), stock=50)
    checkout([(product, 1)])
    checkout([(product, 3)])
    checkout([(product, 1)], payment_method="QRIS")

    resp = cashier_client.get("/api/transactions/")
    assert resp.status_code == 200
    assert len(resp.data["results"]) == 3
    assert Decimal(resp.data["summary"]["total_sales"]) == Decimal("40000")
    assert resp.data["summary"]["transaction_count"] == 2
    assert resp.data["summary"]["top_product"]["product_id"] == product.id

    resp = cashier_client.get("/api/transactions/?payment_method=qris")
    assert len(resp.data["results"]) == 1

    resp = cashier_client.get("/api/transactions/", {"q": product.name, "status": "COMPLETED"})
    assert len(resp.data["results"]) == 2


@pytest.mark.django_db
def test_list_invalid_filter_is_400(cashier_client):
    resp = cashier_client.get("/api/transactions/?payment_status=LUNAS")
    assert resp.status_code == 400
    assert "payment_status" in resp.data


@pytest.mark.django_db
def test_cashier_sees_only_own_transactions(checkout, cashier_client, manager_client, user_factory, product_factory):
    product = product_factory(stock=10)
    other = user_factory()
    Transaction.objects.create(cashier=other, payment_method="CASH", final_total=Decimal("1"))
    checkout([(product, 1)])

    assert len(cashier_client.get("/api/transactions/").data["results"]) == 1
    assert len(manager_client.get("/api/transactions/").data["results"]) == 2


@pytest.mark.django_db
def test_receipt_text_and_phone(checkout, cashier_client, product_factory):
    product = product_factory(price=Decimal("1250000"), size="L", color="Hitam")
    trx = checkout([(product, 1)], customer_name="Budi", customer_phone="0812-3456-7890").data

    resp = cashier_client.get(f"/api/transactions/{trx['id']}/receipt/")

    assert resp.status_code == 200
    assert resp.data["phone"] == "6281234567890"
    assert resp.data["phone_error"] is None
    text = resp.data["text"]
    assert "*DETAIL TRANSAKSI*" in text
    assert trx["invoice_number"] in text
    assert "Rp 1.250.000" in text
    assert "Ukuran: L" in text
    assert "Metode Pembayaran: Tunai" in text
