"""
Cashier checkout and the transaction lifecycle.

A transaction is created PENDING (delayed payments) or COMPLETED (cash and
card). Stock, member points and spend counters only move when a transaction
becomes COMPLETED; cancel/refund walk those effects back.
"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.db import transaction as db_transaction
from django.db.models import F
from django.utils import timezone

from rest_framework.exceptions import NotFound

from pos.exceptions import InsufficientStock, InvalidTransactionState, PointsRejected, ProductUnavailable
from pos.models import (
    Member,
    PointHistory,
    Product,
    StockMovement,
    Transaction,
    TransactionItem,
    Voucher,
    VoucherUsage,
)
from pos.services import pricing
from pos.services.shift_service import find_open_shift

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def is_delayed(payment_method: str, requires_confirmation: bool = False) -> bool:
    if payment_method in Transaction.DELAYED_METHODS:
        return True
    return payment_method == Transaction.PaymentMethod.CARD and bool(requires_confirmation)


def merge_lines(items):
    """Collapse repeated product lines into one line per product (order kept)."""
    merged = OrderedDict()
    for item in items:
        pid = int(item["product_id"])
        qty = int(item["quantity"])
        if pid in merged:
            merged[pid]["quantity"] += qty
        else:
            merged[pid] = {**item, "product_id": pid, "quantity": qty}
    return list(merged.values())


def lock_products(product_ids):
    products = Product.objects.select_for_update().filter(id__in=product_ids)
    by_id = {p.id: p for p in products}

    missing = [pid for pid in product_ids if pid not in by_id]
    if missing:
        raise ProductUnavailable(f"Product not found: {missing}", product_ids=missing)

    inactive = [pid for pid in product_ids if not by_id[pid].is_active]
    if inactive:
        raise ProductUnavailable(f"Product is not active: {inactive}", product_ids=inactive)

    return by_id


def check_stock(quantities, products_by_id):
    """quantities: {product_id: qty}. Raises InsufficientStock listing every short line."""
    shortages = []
    for pid, qty in quantities.items():
        product = products_by_id[pid]
        if qty > product.stock:
            shortages.append({
                "product_id": pid,
                "name": product.name,
                "requested": qty,
                "available": product.stock,
            })
    if shortages:
        names = ", ".join(f"{s['name']} (stock {s['available']})" for s in shortages)
        raise InsufficientStock(f"Insufficient stock: {names}", shortages=shortages)


def _append_history(trx: Transaction, entry_type: str, actor=None, **data):
    entry = {"type": entry_type, "at": timezone.now().isoformat()}
    if actor is not None:
        entry["by"] = actor.pk
    entry.update(data)
    trx.history = list(trx.history or []) + [entry]


# ==========================================================
# CREATE
# ==========================================================
@db_transaction.atomic
def create_transaction(cashier, data):
    """
    data (already validated by CheckoutSerializer):
      items[{product_id, quantity, price?, subtotal?}], payment_method,
      requires_confirmation?, member_id?, voucher_code?, points_used?,
      discount?, tax?, customer_*?, notes?, subtotal?, total?
    """
    lines = merge_lines(data["items"])
    if not lines:
        raise ProductUnavailable("Transaction must contain at least one item.")

    products = lock_products([line["product_id"] for line in lines])
    check_stock({line["product_id"]: line["quantity"] for line in lines}, products)

    # server prices win
    priced = []
    for line in lines:
        product = products[line["product_id"]]
        client_price = line.get("price")
        if client_price is not None and pricing.as_decimal(client_price) != product.price:
            logger.warning(
                "Price mismatch for product %s: client=%s server=%s",
                product.id, client_price, product.price,
            )
        priced.append({
            "product_id": product.id,
            "category_id": product.category_id,
            "name": product.name,
            "quantity": line["quantity"],
            "price": product.price,
        })

    subtotal = pricing.cart_subtotal(priced)
    client_subtotal = data.get("subtotal")
    if client_subtotal is not None and pricing.as_decimal(client_subtotal) != subtotal:
        logger.warning("Subtotal mismatch: client=%s server=%s", client_subtotal, subtotal)

    member = None
    if data.get("member_id"):
        member = Member.objects.select_for_update().filter(pk=data["member_id"]).first()
        if member is None:
            raise NotFound("Member not found.")

    promo = pricing.calculate_promotions(priced)
    promo_discount = promo["total_discount"]

    voucher = None
    voucher_discount = ZERO
    if data.get("voucher_code"):
        voucher, voucher_discount = pricing.validate_voucher(
            data["voucher_code"], subtotal, user=cashier, member=member, lock=True,
        )

    manual_discount = pricing.as_decimal(data.get("discount"))
    tax = pricing.as_decimal(data.get("tax"))

    payable = max(subtotal - promo_discount - voucher_discount - manual_discount, ZERO)
    points_used = int(data.get("points_used") or 0)
    points_discount = pricing.check_points_redemption(member, points_used, payable)

    final_total = max(subtotal - promo_discount - voucher_discount - points_discount - manual_discount + tax, ZERO)
    client_total = data.get("total")
    if client_total is not None and pricing.as_decimal(client_total) != final_total:
        logger.warning("Total mismatch: client=%s server=%s", client_total, final_total)

    delayed = is_delayed(data["payment_method"], data.get("requires_confirmation", False))

    trx = Transaction.objects.create(
        cashier=cashier,
        member=member,
        shift=find_open_shift(cashier),
        subtotal=subtotal,
        discount=manual_discount,
        voucher_discount=voucher_discount,
        promo_discount=promo_discount,
        points_used=points_used,
        points_discount=points_discount,
        tax=tax,
        final_total=final_total,
        payment_method=data["payment_method"],
        status=Transaction.Status.PENDING,
        payment_status=Transaction.PaymentStatus.PENDING,
        customer_name=data.get("customer_name") or (member.name if member else ""),
        customer_phone=data.get("customer_phone") or (member.phone or "" if member else ""),
        customer_email=data.get("customer_email") or (member.email or "" if member else ""),
        notes=data.get("notes") or "",
        history=[{
            "type": "CREATED",
            "at": timezone.now().isoformat(),
            "by": cashier.pk,
            "applied_promotions": [p["id"] for p in promo["applied_promotions"]],
        }],
    )

    TransactionItem.objects.bulk_create([
        TransactionItem(
            transaction=trx,
            product=products[line["product_id"]],
            quantity=line["quantity"],
            price=line["price"],
            cost_price=products[line["product_id"]].cost_price,
            subtotal=line["price"] * line["quantity"],
        )
        for line in priced
    ])

    if voucher is not None:
        VoucherUsage.objects.create(
            voucher=voucher,
            transaction=trx,
            user=cashier,
            member=member,
            discount_amount=voucher_discount,
        )
        Voucher.objects.filter(pk=voucher.pk).update(used_count=F("used_count") + 1)

    if not delayed:
        _complete(trx, actor=cashier)

    logger.info(
        "Transaction %s created by %s: %s %s total=%s",
        trx.invoice_number, cashier.pk, trx.payment_method, trx.status, trx.final_total,
    )
    return trx


# ==========================================================
# COMPLETION EFFECTS
# ==========================================================
def _apply_sale_stock(trx: Transaction, actor=None):
    items = list(trx.items.all())
    products = lock_products([item.product_id for item in items])

    quantities = {}
    for item in items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    check_stock(quantities, products)

    for pid, qty in quantities.items():
        product = products[pid]
        before = product.stock
        product.stock = before - qty
        product.save(update_fields=["stock", "updated_at"])
        StockMovement.objects.create(
            product=product,
            movement_type=StockMovement.Type.SALE,
            quantity_delta=-qty,
            before_stock=before,
            after_stock=product.stock,
            note=f"Sale {trx.invoice_number}",
            ref_model="Transaction",
            ref_id=trx.pk,
            created_by=actor,
        )


def _restore_stock(trx: Transaction, actor=None, note="Return"):
    items = list(trx.items.all())
    products = Product.objects.select_for_update().in_bulk([item.product_id for item in items])

    for item in items:
        product = products[item.product_id]
        before = product.stock
        product.stock = before + item.quantity
        product.save(update_fields=["stock", "updated_at"])
        StockMovement.objects.create(
            product=product,
            movement_type=StockMovement.Type.SALE_RETURN,
            quantity_delta=item.quantity,
            before_stock=before,
            after_stock=product.stock,
            note=f"{note} {trx.invoice_number}",
            ref_model="Transaction",
            ref_id=trx.pk,
            created_by=actor,
        )


def _apply_member_points(trx: Transaction):
    if not trx.member_id:
        return

    member = Member.objects.select_for_update().get(pk=trx.member_id)

    if trx.points_used > member.points:
        raise PointsRejected(
            f"Member only has {member.points} points.",
            available_points=member.points,
        )

    earned = pricing.points_earned_for(trx.final_total)

    member.points = member.points - trx.points_used + earned
    member.total_spent = member.total_spent + trx.final_total
    member.last_visit = timezone.now()
    member.save(update_fields=["points", "total_spent", "last_visit", "updated_at"])

    if trx.points_used:
        PointHistory.objects.create(
            member=member,
            transaction=trx,
            points=-trx.points_used,
            type=PointHistory.Type.USED,
            description=f"Redeemed on {trx.invoice_number}",
        )
    if earned:
        PointHistory.objects.create(
            member=member,
            transaction=trx,
            points=earned,
            type=PointHistory.Type.EARNED,
            description=f"Earned from {trx.invoice_number}",
        )

    trx.points_earned = earned


def _reverse_member_points(trx: Transaction, reason: str):
    if not trx.member_id:
        return

    member = Member.objects.select_for_update().get(pk=trx.member_id)
    delta = trx.points_used - trx.points_earned
    new_points = member.points + delta
    if new_points < 0:
        logger.warning(
            "Member %s points would go negative (%s) reversing %s; clamped to 0",
            member.pk, new_points, trx.invoice_number,
        )
        new_points = 0

    member.points = new_points
    member.total_spent = max(member.total_spent - trx.final_total, ZERO)
    member.save(update_fields=["points", "total_spent", "updated_at"])

    if delta:
        PointHistory.objects.create(
            member=member,
            transaction=trx,
            points=delta,
            type=PointHistory.Type.ADJUSTED,
            description=f"{reason} {trx.invoice_number}",
        )


def _release_vouchers(trx: Transaction):
    for usage in trx.voucher_usages.select_related("voucher"):
        Voucher.objects.filter(pk=usage.voucher_id, used_count__gt=0).update(used_count=F("used_count") - 1)
        usage.delete()


def _complete(trx: Transaction, actor=None):
    _apply_sale_stock(trx, actor=actor)
    _apply_member_points(trx)

    now = timezone.now()
    trx.status = Transaction.Status.COMPLETED
    trx.payment_status = Transaction.PaymentStatus.PAID
    trx.paid_at = trx.paid_at or now
    trx.failure_reason = ""
    _append_history(trx, "COMPLETED", actor=actor)
    trx.save(update_fields=[
        "status", "payment_status", "paid_at", "points_earned",
        "failure_reason", "history", "updated_at",
    ])


# ==========================================================
# LIFECYCLE
# ==========================================================
def _locked(trx_or_id):
    pk = trx_or_id.pk if isinstance(trx_or_id, Transaction) else trx_or_id
    return Transaction.objects.select_for_update().get(pk=pk)


@db_transaction.atomic
def complete_transaction(trx, actor=None):
    trx = _locked(trx)
    if trx.status != Transaction.Status.PENDING:
        raise InvalidTransactionState(
            f"Only PENDING transactions can be completed (current: {trx.status}).",
            status=trx.status,
        )
    _complete(trx, actor=actor)
    logger.info("Transaction %s completed", trx.invoice_number)
    return trx


def mark_paid_not_completed(trx, reason: str):
    """Gateway says paid but completion failed: keep PENDING and record why."""
    with db_transaction.atomic():
        trx = _locked(trx)
        trx.payment_status = Transaction.PaymentStatus.PAID
        trx.paid_at = trx.paid_at or timezone.now()
        trx.failure_reason = reason[:255]
        _append_history(trx, "PAYMENT_RECEIVED", reason=reason)
        trx.save(update_fields=["payment_status", "paid_at", "failure_reason", "history", "updated_at"])
    logger.warning("Transaction %s paid but not completed: %s", trx.invoice_number, reason)
    return trx


@db_transaction.atomic
def cancel_transaction(trx, actor=None, reason: str = ""):
    trx = _locked(trx)
    if trx.status not in (Transaction.Status.PENDING, Transaction.Status.COMPLETED):
        raise InvalidTransactionState(
            f"Transaction cannot be cancelled (current: {trx.status}).",
            status=trx.status,
        )

    was_completed = trx.status == Transaction.Status.COMPLETED
    if was_completed:
        _restore_stock(trx, actor=actor, note="Cancel")
        _reverse_member_points(trx, "Cancelled")

    _release_vouchers(trx)

    trx.status = Transaction.Status.CANCELLED
    if trx.payment_status == Transaction.PaymentStatus.PENDING:
        trx.payment_status = Transaction.PaymentStatus.CANCELLED
    _append_history(trx, "CANCELLED", actor=actor, reason=reason, restored_stock=was_completed)
    trx.save(update_fields=["status", "payment_status", "history", "updated_at"])

    logger.info("Transaction %s cancelled (reason=%r)", trx.invoice_number, reason)
    return trx


@db_transaction.atomic
def refund_transaction(trx, actor=None, refund_ref: str = ""):
    trx = _locked(trx)
    if trx.status != Transaction.Status.COMPLETED:
        raise InvalidTransactionState(
            f"Only COMPLETED transactions can be refunded (current: {trx.status}).",
            status=trx.status,
        )

    _restore_stock(trx, actor=actor, note="Refund")
    _reverse_member_points(trx, "Refunded")
    _release_vouchers(trx)

    ref = refund_ref or f"RF-{trx.invoice_number}"
    trx.status = Transaction.Status.REFUNDED
    trx.payment_status = Transaction.PaymentStatus.REFUNDED
    _append_history(trx, "REFUNDED", actor=actor, amount=str(trx.final_total), refund_ref=ref)
    trx.save(update_fields=["status", "payment_status", "history", "updated_at"])

    logger.info("Transaction %s refunded (%s)", trx.invoice_number, ref)
    return trx


def update_transaction_status(trx, actor=None, status=None, payment_status=None):
    """PATCH handler: routes status changes through complete/cancel."""
    if status == Transaction.Status.COMPLETED and trx.status != Transaction.Status.COMPLETED:
        return complete_transaction(trx, actor=actor)

    if status == Transaction.Status.CANCELLED and trx.status != Transaction.Status.CANCELLED:
        trx = cancel_transaction(trx, actor=actor, reason="status update")
        if payment_status:
            Transaction.objects.filter(pk=trx.pk).update(payment_status=payment_status)
            trx.payment_status = payment_status
        return trx

    if status and status != trx.status:
        raise InvalidTransactionState(
            f"Status change {trx.status} -> {status} is not supported.",
            status=trx.status,
        )

    if payment_status and payment_status != trx.payment_status:
        with db_transaction.atomic():
            trx = _locked(trx)
            old = trx.payment_status
            trx.payment_status = payment_status
            _append_history(trx, "PAYMENT_STATUS", actor=actor, old=old, new=payment_status)
            trx.save(update_fields=["payment_status", "history", "updated_at"])
    return trx
