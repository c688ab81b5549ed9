"""
Discount computation for the cashier checkout.

Three discount sources stack on a cart, in this order:

1. automatic promotions (product/category/bulk/buy-x-get-y),
2. one voucher code,
3. redeemed member points.

All amounts are rupiah and are rounded to whole rupiah (half-up).
"""
import logging
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from pos.exceptions import PointsRejected, VoucherNotFound, VoucherRejected
from pos.models import Promotion, Voucher, VoucherUsage

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
RUPIAH = Decimal("1")
HUNDRED = Decimal("100")


def to_rupiah(amount) -> Decimal:
    return Decimal(amount).quantize(RUPIAH, rounding=ROUND_HALF_UP)


def as_decimal(value, default=ZERO) -> Decimal:
    if value is None or value == "":
        return default
    return Decimal(str(value))


def cart_subtotal(lines) -> Decimal:
    return sum((as_decimal(line["price"]) * int(line["quantity"]) for line in lines), ZERO)


# ==========================================================
# VOUCHERS
# ==========================================================
def voucher_discount(voucher: Voucher, subtotal: Decimal) -> Decimal:
    subtotal = as_decimal(subtotal)
    value = as_decimal(voucher.value)

    if voucher.type == Voucher.Type.PERCENTAGE:
        discount = subtotal * value / HUNDRED
        if voucher.max_discount and discount > voucher.max_discount:
            discount = voucher.max_discount
    elif voucher.type == Voucher.Type.FIXED:
        discount = min(value, subtotal)
    else:
        # free shipping: flat amount
        discount = value

    return to_rupiah(max(discount, ZERO))


def count_personal_usages(voucher: Voucher, user=None, member=None) -> int:
    cond = Q()
    if user is not None:
        cond |= Q(user=user)
    if member is not None:
        cond |= Q(member=member)
    if not cond:
        return 0
    return VoucherUsage.objects.filter(voucher=voucher).filter(cond).count()


def validate_voucher(code, subtotal, user=None, member=None, now=None, lock=False):
    """
    Check a voucher code against the cart and return ``(voucher, discount)``.

    Raises VoucherNotFound / VoucherRejected with ``valid=False`` in the body.
    ``lock=True`` row-locks the voucher (only inside an atomic block).
    """
    code = (code or "").strip()
    subtotal = as_decimal(subtotal)
    now = now or timezone.now()

    qs = Voucher.objects.all()
    if lock:
        qs = qs.select_for_update()
    voucher = qs.filter(code__iexact=code).first() if code else None

    if voucher is None:
        raise VoucherNotFound("Voucher not found", valid=False)

    if not voucher.is_active:
        raise VoucherRejected("Voucher is not active", valid=False)

    if now < voucher.start_date or now > voucher.end_date:
        raise VoucherRejected("Voucher is expired or not yet valid", valid=False)

    if voucher.min_purchase and subtotal < voucher.min_purchase:
        raise VoucherRejected(
            f"Minimum purchase of {voucher.min_purchase} required",
            valid=False,
            min_purchase=str(voucher.min_purchase),
        )

    if voucher.max_uses and voucher.used_count >= voucher.max_uses:
        raise VoucherRejected("Voucher usage limit exceeded", valid=False)

    if voucher.max_uses_per_user and (user is not None or member is not None):
        used = count_personal_usages(voucher, user=user, member=member)
        if used >= voucher.max_uses_per_user:
            raise VoucherRejected(
                f"Personal usage limit exceeded ({used}/{voucher.max_uses_per_user})",
                valid=False,
                per_user_limit=voucher.max_uses_per_user,
            )

    return voucher, voucher_discount(voucher, subtotal)


# ==========================================================
# PROMOTIONS
# ==========================================================
def active_promotions(now=None):
    now = now or timezone.now()
    return (
        Promotion.objects
        .filter(is_active=True, start_date__lte=now, end_date__gte=now)
        .prefetch_related("products", "categories")
        .order_by("-created_at", "-id")
    )


def promotion_discount(promotion: Promotion, items) -> Decimal:
    """Raw (unrounded) discount of one promotion over its eligible cart lines."""
    value = as_decimal(promotion.discount_value)
    percentage = promotion.discount_type == Promotion.DiscountType.PERCENTAGE
    discount = ZERO

    if promotion.type in (Promotion.Type.PRODUCT_DISCOUNT, Promotion.Type.CATEGORY_DISCOUNT):
        for item in items:
            qty = int(item["quantity"])
            line_total = as_decimal(item["price"]) * qty
            if percentage:
                discount += line_total * value / HUNDRED
            else:
                # fixed amount off each unit
                discount += min(value * qty, line_total)

    elif promotion.type == Promotion.Type.BULK_DISCOUNT:
        total_qty = sum(int(item["quantity"]) for item in items)
        total_amount = cart_subtotal(items)
        if promotion.min_quantity and total_qty >= promotion.min_quantity:
            if percentage:
                discount += total_amount * value / HUNDRED
            else:
                discount += min(value, total_amount)

    elif promotion.type == Promotion.Type.BUY_X_GET_Y:
        buy = promotion.buy_quantity or 0
        get = promotion.get_quantity or 0
        if buy and get:
            for item in items:
                qty = int(item["quantity"])
                sets = qty // buy
                if sets <= 0:
                    continue
                free_items = min(sets * get, qty - sets * buy)
                if free_items > 0:
                    discount += as_decimal(item["price"]) * free_items

    return discount


def calculate_promotions(lines, now=None):
    """
    lines: [{"product_id", "category_id", "quantity", "price", "name"?}]

    Returns {"total_discount": Decimal, "applied_promotions": [...]}; the
    total never exceeds the cart subtotal.
    """
    applied = []
    total = ZERO

    for promotion in active_promotions(now):
        product_ids = {p.id for p in promotion.products.all()}
        category_ids = {c.id for c in promotion.categories.all()}

        eligible = [
            line for line in lines
            if line.get("product_id") in product_ids or line.get("category_id") in category_ids
        ]
        if not eligible:
            continue

        discount = to_rupiah(promotion_discount(promotion, eligible))
        if discount <= 0:
            continue

        applied.append({
            "id": promotion.id,
            "name": promotion.name,
            "type": promotion.type,
            "discount_type": promotion.discount_type,
            "discount_value": str(promotion.discount_value),
            "discount": str(discount),
            "applicable_items": [
                {
                    "product_id": line["product_id"],
                    "name": line.get("name", ""),
                    "quantity": int(line["quantity"]),
                    "price": str(line["price"]),
                }
                for line in eligible
            ],
        })
        total += discount

    subtotal = cart_subtotal(lines)
    if total > subtotal:
        logger.info("Promotion discount %s capped at subtotal %s", total, subtotal)
        total = subtotal

    return {"total_discount": total, "applied_promotions": applied}


# ==========================================================
# LOYALTY POINTS
# ==========================================================
def points_to_rupiah(points: int) -> Decimal:
    return Decimal(int(points)) * settings.POS_POINT_VALUE


def points_earned_for(final_total) -> int:
    final_total = as_decimal(final_total)
    if final_total <= 0:
        return 0
    return int((final_total / settings.POS_POINTS_EARN_UNIT).to_integral_value(rounding=ROUND_FLOOR))


def max_redeemable_points(member, payable) -> int:
    if member is None:
        return 0
    by_amount = int((as_decimal(payable) / settings.POS_POINT_VALUE).to_integral_value(rounding=ROUND_FLOOR))
    return max(min(member.points, by_amount), 0)


def check_points_redemption(member, points_used, payable) -> Decimal:
    """Return the rupiah discount for ``points_used`` or raise PointsRejected."""
    points_used = int(points_used or 0)
    if points_used <= 0:
        return ZERO

    if member is None:
        raise PointsRejected("Points can only be redeemed by a member.")

    if points_used > member.points:
        raise PointsRejected(
            f"Member only has {member.points} points.",
            available_points=member.points,
        )

    discount = points_to_rupiah(points_used)
    if discount > as_decimal(payable):
        raise PointsRejected(
            "Points discount exceeds the amount due.",
            max_points=max_redeemable_points(member, payable),
        )
    return discount
