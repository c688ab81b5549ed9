"""
Sales / financial aggregation shared by the report API and the export pages.

Money values are returned as strings; counts as ints.
"""
import calendar
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, F, Sum, DecimalField, ExpressionWrapper
from django.db.models.functions import Coalesce, TruncDate
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from pos.models import Member, OperationalExpense, Product, Transaction, TransactionItem
from pos.services.shift_service import DEC0, _sum_or_zero

ZERO = Decimal("0.00")

RANGE_DAYS = {
    "7days": 7,
    "30days": 30,
}
RANGE_MONTHS = {
    "3months": 3,
    "1year": 12,
}

LINE_COST = ExpressionWrapper(F("cost_price") * F("quantity"), output_field=DecimalField(max_digits=18, decimal_places=2))


def _parse_date(value, name):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError({name: f"Invalid date '{value}', expected YYYY-MM-DD."})


def _minus_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _aware(day: date, at: time) -> datetime:
    return timezone.make_aware(datetime.combine(day, at), timezone.get_current_timezone())


def resolve_range(params, default="7days"):
    """
    Returns (start, end) aware datetimes.

    `from`/`to` (local dates, inclusive) win over `range`. Unknown ranges fall
    back to the default.
    """
    date_from = params.get("from") or params.get("start_date")
    date_to = params.get("to") or params.get("end_date")

    today = timezone.localdate()

    if date_from or date_to:
        start_day = _parse_date(date_from, "from") if date_from else date(2000, 1, 1)
        end_day = _parse_date(date_to, "to") if date_to else today
        if start_day > end_day:
            raise ValidationError({"from": "Start date must be before end date."})
        return _aware(start_day, time.min), _aware(end_day, time.max)

    key = params.get("range") or default
    if key in RANGE_MONTHS:
        start_day = _minus_months(today, RANGE_MONTHS[key])
    else:
        start_day = today - timedelta(days=RANGE_DAYS.get(key, RANGE_DAYS[default]))
    return _aware(start_day, time.min), _aware(today, time.max)


def completed_in(start, end):
    return Transaction.objects.filter(
        status=Transaction.Status.COMPLETED,
        created_at__gte=start,
        created_at__lte=end,
    )


def _discounts(qs):
    regular = _sum_or_zero(qs, "discount")
    voucher = _sum_or_zero(qs, "voucher_discount")
    promo = _sum_or_zero(qs, "promo_discount")
    points = _sum_or_zero(qs, "points_discount")
    return {
        "regular": regular,
        "voucher": voucher,
        "promo": promo,
        "points": points,
        "total": regular + voucher + promo + points,
    }


def _money(d):
    return {k: str(v) for k, v in d.items()}


def top_products(items_qs, limit=10):
    rows = (
        items_qs.values("product_id", "product__name")
        .annotate(quantity=Coalesce(Sum("quantity"), 0), revenue=Coalesce(Sum("subtotal"), DEC0))
        .order_by("-quantity", "-revenue")[:limit]
    )
    return [
        {
            "product_id": r["product_id"],
            "name": r["product__name"],
            "quantity": r["quantity"],
            "revenue": str(r["revenue"]),
        }
        for r in rows
    ]


def sales_summary(start, end):
    qs = completed_in(start, end)
    items = TransactionItem.objects.filter(transaction__in=qs)

    gross = _sum_or_zero(qs, "subtotal")
    discounts = _discounts(qs)
    tax = _sum_or_zero(qs, "tax")
    revenue = _sum_or_zero(qs, "final_total")
    count = qs.count()

    daily = [
        {"date": r["day"].isoformat(), "total": str(r["total"]), "count": r["count"]}
        for r in (
            qs.annotate(day=TruncDate("created_at"))
            .values("day")
            .annotate(total=Coalesce(Sum("final_total"), DEC0), count=Count("id"))
            .order_by("day")
        )
    ]

    payment_methods = [
        {"payment_method": r["payment_method"], "total": str(r["total"]), "count": r["count"]}
        for r in (
            qs.values("payment_method")
            .annotate(total=Coalesce(Sum("final_total"), DEC0), count=Count("id"))
            .order_by("-total")
        )
    ]

    categories = [
        {"category": r["product__category__name"], "quantity": r["quantity"], "revenue": str(r["revenue"])}
        for r in (
            items.values("product__category__name")
            .annotate(quantity=Coalesce(Sum("quantity"), 0), revenue=Coalesce(Sum("subtotal"), DEC0))
            .order_by("-revenue")
        )
    ]

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "gross_sales": str(gross),
        "discounts": _money(discounts),
        "net_sales": str(gross - discounts["total"]),
        "tax": str(tax),
        "revenue": str(revenue),
        "transaction_count": count,
        "average_transaction": str((revenue / count).quantize(Decimal("0.01")) if count else ZERO),
        "daily": daily,
        "payment_methods": payment_methods,
        "top_products": top_products(items, limit=10),
        "categories": categories,
    }


def _pct(part, whole):
    if not whole:
        return 0.0
    return round(float(part) / float(whole) * 100, 2)


def _profit_figures(start, end):
    qs = completed_in(start, end)
    items = TransactionItem.objects.filter(transaction__in=qs)

    gross = _sum_or_zero(qs, "subtotal")
    discounts = _discounts(qs)
    net_sales = gross - discounts["total"]
    revenue = _sum_or_zero(qs, "final_total")
    cogs = items.aggregate(v=Coalesce(Sum(LINE_COST), DEC0))["v"]
    gross_profit = net_sales - cogs

    expenses = OperationalExpense.objects.filter(date__gte=timezone.localtime(start).date(), date__lte=timezone.localtime(end).date())
    total_expenses = _sum_or_zero(expenses, "amount")
    operating_profit = gross_profit - total_expenses

    return {
        "qs": qs,
        "items": items,
        "expenses": expenses,
        "gross": gross,
        "discounts": discounts,
        "net_sales": net_sales,
        "revenue": revenue,
        "cogs": cogs,
        "gross_profit": gross_profit,
        "total_expenses": total_expenses,
        "operating_profit": operating_profit,
        "net_profit": operating_profit,
        "count": qs.count(),
    }


def financial_report(start, end):
    cur = _profit_figures(start, end)

    length = end - start
    prev_end = start - timedelta(microseconds=1)
    prev = _profit_figures(prev_end - length, prev_end)

    expense_rows = [
        {"category": r["category"], "amount": str(r["amount"]), "count": r["count"]}
        for r in (
            cur["expenses"].values("category")
            .annotate(amount=Coalesce(Sum("amount"), DEC0), count=Count("id"))
            .order_by("-amount")
        )
    ]

    category_rows = []
    for r in (
        cur["items"].values("product__category__name")
        .annotate(
            revenue=Coalesce(Sum("subtotal"), DEC0),
            cogs=Coalesce(Sum(LINE_COST), DEC0),
            quantity=Coalesce(Sum("quantity"), 0),
        )
        .order_by("-revenue")
    ):
        profit = r["revenue"] - r["cogs"]
        category_rows.append({
            "category": r["product__category__name"],
            "quantity": r["quantity"],
            "revenue": str(r["revenue"]),
            "cogs": str(r["cogs"]),
            "profit": str(profit),
            "margin": _pct(profit, r["revenue"]),
        })

    def growth(now_value, before):
        if not before:
            return None
        return round((float(now_value) - float(before)) / abs(float(before)) * 100, 2)

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "gross_sales": str(cur["gross"]),
        "discounts": _money(cur["discounts"]),
        "net_sales": str(cur["net_sales"]),
        "revenue": str(cur["revenue"]),
        "cogs": str(cur["cogs"]),
        "gross_profit": str(cur["gross_profit"]),
        "gross_margin": _pct(cur["gross_profit"], cur["net_sales"]),
        "operating_expenses": {
            "total": str(cur["total_expenses"]),
            "by_category": expense_rows,
        },
        "operating_profit": str(cur["operating_profit"]),
        "operating_margin": _pct(cur["operating_profit"], cur["net_sales"]),
        "net_profit": str(cur["net_profit"]),
        "net_margin": _pct(cur["net_profit"], cur["net_sales"]),
        "categories": category_rows,
        "growth": {
            "revenue": growth(cur["revenue"], prev["revenue"]),
            "net_profit": growth(cur["net_profit"], prev["net_profit"]),
            "transactions": growth(cur["count"], prev["count"]),
            "previous_revenue": str(prev["revenue"]),
            "previous_net_profit": str(prev["net_profit"]),
        },
        "transaction_count": cur["count"],
    }


def dashboard_stats():
    today = timezone.localdate()
    day_start = _aware(today, time.min)
    day_end = _aware(today, time.max)
    month_start = _aware(today.replace(day=1), time.min)

    today_qs = completed_in(day_start, day_end)
    month_qs = completed_in(month_start, day_end)
    threshold = settings.POS_LOW_STOCK_THRESHOLD

    recent = (
        Transaction.objects.select_related("cashier")
        .order_by("-created_at", "-id")[:5]
    )

    return {
        "today_sales": str(_sum_or_zero(today_qs, "final_total")),
        "today_transactions": today_qs.count(),
        "month_sales": str(_sum_or_zero(month_qs, "final_total")),
        "active_products": Product.objects.filter(is_active=True).count(),
        "low_stock_products": Product.objects.filter(is_active=True, stock__lte=threshold).count(),
        "low_stock_threshold": threshold,
        "members": Member.objects.filter(is_active=True).count(),
        "recent_transactions": [
            {
                "id": t.id,
                "invoice_number": t.invoice_number,
                "final_total": str(t.final_total),
                "status": t.status,
                "payment_status": t.payment_status,
                "payment_method": t.payment_method,
                "cashier": t.cashier.display_name,
                "created_at": t.created_at.isoformat(),
            }
            for t in recent
        ],
        "top_products": top_products(TransactionItem.objects.filter(transaction__in=month_qs), limit=5),
    }
