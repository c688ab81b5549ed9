import re
from decimal import Decimal

from django.utils import timezone

from pos.models import Shop, Transaction

PAYMENT_LABELS = {
    Transaction.PaymentMethod.CASH: "Tunai",
    Transaction.PaymentMethod.CARD: "Kartu",
    Transaction.PaymentMethod.QRIS: "QRIS",
    Transaction.PaymentMethod.MIDTRANS: "Midtrans",
    Transaction.PaymentMethod.BANK_TRANSFER: "Transfer Bank",
    Transaction.PaymentMethod.VIRTUAL_ACCOUNT: "Virtual Account",
}

STATUS_LABELS = {
    Transaction.Status.COMPLETED: "Selesai",
    Transaction.Status.PENDING: "Menunggu",
    Transaction.Status.CANCELLED: "Dibatalkan",
    Transaction.Status.REFUNDED: "Dikembalikan",
}


def format_rupiah(amount) -> str:
    """Rp 1.250.000 (no decimals, dot thousands separator)."""
    value = int(Decimal(amount or 0).quantize(Decimal("1")))
    sign = "-" if value < 0 else ""
    return f"{sign}Rp {abs(value):,}".replace(",", ".")


def normalize_phone(phone):
    """
    Normalize an Indonesian phone number to 62xxxxxxxxxx.

    Returns (is_valid, formatted_or_error).
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        return False, "Nomor telepon kosong"

    if digits.startswith("0"):
        digits = "62" + digits[1:]
    elif digits.startswith("62"):
        pass
    elif 9 <= len(digits) <= 12:
        digits = "62" + digits
    else:
        return False, "Format nomor telepon tidak valid"

    if len(digits) < 10 or len(digits) > 15:
        return False, "Panjang nomor telepon tidak valid"

    return True, digits


def format_receipt(trx: Transaction, shop: Shop = None) -> str:
    shop = shop or Shop.objects.order_by("id").first()
    shop_name = shop.name if shop else "StorePOS"
    created = timezone.localtime(trx.created_at).strftime("%d/%m/%Y %H:%M:%S")

    lines = [
        f"*Terima kasih telah berbelanja di {shop_name}!*",
        "",
        "*DETAIL TRANSAKSI*",
        f" - No. Transaksi: *{trx.invoice_number}*",
        f" - Tanggal: {created}",
        f" - Kasir: {trx.cashier.display_name}",
    ]

    if trx.member_id:
        lines.append(f" - Member: {trx.member.name}")
        if trx.member.phone:
            lines.append(f" - Telepon: {trx.member.phone}")
    elif trx.customer_name:
        lines.append(f" - Pelanggan: {trx.customer_name}")
        if trx.customer_phone:
            lines.append(f" - Telepon: {trx.customer_phone}")
    lines.append("")

    lines.append("*DETAIL PESANAN*")
    for idx, item in enumerate(trx.items.select_related("product"), start=1):
        product = item.product
        lines.append(f"{idx}. *{product.name}*")
        if product.product_code:
            lines.append(f"   Kode: {product.product_code}")
        if product.size:
            lines.append(f"   Ukuran: {product.size}")
        if product.color:
            lines.append(f"   Warna: {product.color}")
        lines.append(
            f"   Jumlah: {item.quantity} x {format_rupiah(item.price)} = *{format_rupiah(item.subtotal)}*"
        )
    lines.append("")

    lines.append("*RINCIAN PEMBAYARAN*")
    lines.append(f"Subtotal: {format_rupiah(trx.subtotal)}")
    if trx.tax > 0:
        lines.append(f"Pajak: {format_rupiah(trx.tax)}")
    if trx.discount > 0:
        lines.append(f"Diskon: -{format_rupiah(trx.discount)}")
    if trx.points_used > 0:
        lines.append(f"Diskon Poin ({trx.points_used} poin): -{format_rupiah(trx.points_discount)}")
    if trx.voucher_discount > 0:
        usage = trx.voucher_usages.select_related("voucher").first()
        code = f" ({usage.voucher.code})" if usage else ""
        lines.append(f"Diskon Voucher{code}: -{format_rupiah(trx.voucher_discount)}")
    if trx.promo_discount > 0:
        lines.append(f"Diskon Promosi: -{format_rupiah(trx.promo_discount)}")

    lines.append("")
    lines.append(f"*TOTAL PEMBAYARAN: {format_rupiah(trx.final_total)}*")
    lines.append(f"Metode Pembayaran: {PAYMENT_LABELS.get(trx.payment_method, trx.payment_method)}")
    lines.append(f"Status: {STATUS_LABELS.get(trx.status, trx.status)}")
    if trx.points_earned > 0:
        lines.append(f"Poin Diperoleh: +{trx.points_earned} poin")

    if shop:
        lines.append("")
        lines.append(f"*{shop.name.upper()}*")
        if shop.address:
            lines.append(shop.address)
        if shop.phone:
            lines.append(f"Telp: {shop.phone}")
        if shop.receipt_footer:
            lines.append("")
            lines.append(shop.receipt_footer)

    return "\n".join(lines) + "\n"
