import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum, Value, DecimalField
from django.db.models.functions import Coalesce
from django.utils import timezone

from pos.exceptions import ShiftAlreadyOpen, ShiftError
from pos.models_shift import CashierShift, CashierShiftLog, ShiftStatus

logger = logging.getLogger(__name__)

DEC0 = Value(Decimal("0.00"), output_field=DecimalField(max_digits=18, decimal_places=2))


def _sum_or_zero(qs, field_name: str) -> Decimal:
    """
    Sum decimal field safely (returns Decimal 0.00 if null).
    """
    agg = qs.aggregate(s=Coalesce(Sum(field_name), DEC0))
    return agg["s"] or Decimal("0.00")


def find_open_shift(cashier):
    if cashier is None or not getattr(cashier, "pk", None):
        return None
    return (
        CashierShift.objects
        .filter(cashier=cashier, status=ShiftStatus.OPEN, closed_at__isnull=True)
        .order_by("-opened_at", "-id")
        .first()
    )


def shift_transactions(shift):
    """Transactions of the shift's cashier inside the shift window."""
    from pos.models import Transaction

    time_end = shift.closed_at or timezone.now()
    return Transaction.objects.filter(
        cashier_id=shift.cashier_id,
        created_at__gte=shift.opened_at,
        created_at__lte=time_end,
    )


def recompute_shift_totals(shift, save: bool = True):
    """
    total_sales = completed transactions in the window
    cash_sales  = completed CASH transactions
    expected    = opening balance + cash sales
    difference  = closing - expected (0 while open)
    """
    from pos.models import Transaction

    completed = shift_transactions(shift).filter(status=Transaction.Status.COMPLETED)

    total_sales = _sum_or_zero(completed, "final_total")
    cash_sales = _sum_or_zero(completed.filter(payment_method=Transaction.PaymentMethod.CASH), "final_total")
    expected_cash = (shift.opening_balance or Decimal("0.00")) + cash_sales

    shift.total_sales = total_sales
    shift.cash_sales = cash_sales
    shift.expected_cash = expected_cash

    if shift.status == ShiftStatus.CLOSED and shift.closing_balance is not None:
        shift.difference = shift.closing_balance - expected_cash
    else:
        shift.difference = Decimal("0.00")

    if save:
        shift.save(update_fields=["total_sales", "cash_sales", "expected_cash", "difference"])
    return shift


@transaction.atomic
def open_shift(cashier, opening_balance: Decimal, note: str = ""):
    # anti double open (per cashier)
    existing = (
        CashierShift.objects.select_for_update()
        .filter(cashier=cashier, status=ShiftStatus.OPEN)
        .first()
    )
    if existing:
        raise ShiftAlreadyOpen(shift_id=existing.id)

    shift = CashierShift.objects.create(
        cashier=cashier,
        status=ShiftStatus.OPEN,
        opened_at=timezone.now(),
        opening_balance=opening_balance,
        note=note,
    )
    CashierShiftLog.objects.create(
        shift=shift,
        action=CashierShiftLog.Action.OPEN_SHIFT,
        details={"opening_balance": str(opening_balance)},
    )
    logger.info("Shift %s opened by %s with %s", shift.id, cashier.pk, opening_balance)
    return shift


@transaction.atomic
def close_shift(cashier, closing_balance: Decimal, note: str = ""):
    from pos.models import Transaction

    shift = (
        CashierShift.objects.select_for_update()
        .filter(cashier=cashier, status=ShiftStatus.OPEN)
        .order_by("-opened_at", "-id")
        .first()
    )
    if not shift:
        raise ShiftError("Tidak ada shift yang sedang dibuka.")

    pending = shift_transactions(shift).filter(status=Transaction.Status.PENDING).count()
    if pending:
        raise ShiftError(
            f"Masih ada {pending} transaksi pending. Selesaikan atau batalkan terlebih dahulu.",
            pending_transactions=pending,
        )

    shift.status = ShiftStatus.CLOSED
    shift.closed_at = timezone.now()
    shift.closing_balance = closing_balance
    if note:
        shift.note = note
    shift.save(update_fields=["status", "closed_at", "closing_balance", "note"])

    recompute_shift_totals(shift)

    CashierShiftLog.objects.create(
        shift=shift,
        action=CashierShiftLog.Action.CLOSE_SHIFT,
        details={
            "closing_balance": str(closing_balance),
            "expected_cash": str(shift.expected_cash),
            "difference": str(shift.difference),
        },
    )
    logger.info(
        "Shift %s closed by %s: expected=%s closing=%s diff=%s",
        shift.id, cashier.pk, shift.expected_cash, closing_balance, shift.difference,
    )
    return shift


def shift_report(shift):
    from pos.models import Transaction, TransactionItem

    trx = shift_transactions(shift)
    completed = trx.filter(status=Transaction.Status.COMPLETED)

    payment_breakdown = {
        row["payment_method"]: {"total": str(row["total"]), "count": row["count"]}
        for row in (
            completed.values("payment_method")
            .annotate(total=Coalesce(Sum("final_total"), DEC0), count=Count("id"))
            .order_by("payment_method")
        )
    }

    status_counts = {
        row["status"]: row["count"]
        for row in trx.values("status").annotate(count=Count("id")).order_by("status")
    }

    items_sold = (
        TransactionItem.objects.filter(transaction__in=completed)
        .aggregate(qty=Coalesce(Sum("quantity"), 0))["qty"]
    )

    return {
        "shift_id": shift.id,
        "cashier": shift.cashier.display_name,
        "opened_at": shift.opened_at,
        "closed_at": shift.closed_at,
        "opening_balance": str(shift.opening_balance),
        "closing_balance": None if shift.closing_balance is None else str(shift.closing_balance),
        "total_sales": str(_sum_or_zero(completed, "final_total")),
        "cash_sales": str(shift.cash_sales),
        "expected_cash": str(shift.expected_cash),
        "difference": str(shift.difference),
        "transaction_count": completed.count(),
        "payment_breakdown": payment_breakdown,
        "status_counts": status_counts,
        "discounts": {
            "regular": str(_sum_or_zero(completed, "discount")),
            "voucher": str(_sum_or_zero(completed, "voucher_discount")),
            "promo": str(_sum_or_zero(completed, "promo_discount")),
            "points": str(_sum_or_zero(completed, "points_discount")),
        },
        "points": {
            "used": completed.aggregate(v=Coalesce(Sum("points_used"), 0))["v"],
            "earned": completed.aggregate(v=Coalesce(Sum("points_earned"), 0))["v"],
        },
        "items_sold": items_sold,
    }
