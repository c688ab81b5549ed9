"""
Midtrans Snap integration: token creation and notification signature check.
"""
import hashlib
import hmac
import logging

import requests
from django.conf import settings

from pos.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

SNAP_SANDBOX_URL = "https://app.sandbox.midtrans.com/snap/v1/transactions"
SNAP_PRODUCTION_URL = "https://app.midtrans.com/snap/v1/transactions"


def snap_url() -> str:
    return SNAP_PRODUCTION_URL if settings.MIDTRANS_IS_PRODUCTION else SNAP_SANDBOX_URL


def compute_signature(order_id, status_code, gross_amount, server_key=None) -> str:
    key = settings.MIDTRANS_SERVER_KEY if server_key is None else server_key
    raw = f"{order_id}{status_code}{gross_amount}{key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_signature(payload) -> bool:
    if not settings.MIDTRANS_SERVER_KEY:
        logger.error("MIDTRANS_SERVER_KEY is not configured; rejecting notification")
        return False

    signature = payload.get("signature_key") or ""
    expected = compute_signature(
        payload.get("order_id", ""),
        payload.get("status_code", ""),
        payload.get("gross_amount", ""),
    )
    return hmac.compare_digest(signature, expected)


def build_snap_payload(trx):
    items = [
        {
            "id": str(item.product_id),
            "price": int(item.price),
            "quantity": item.quantity,
            "name": item.product.name[:50],
        }
        for item in trx.items.select_related("product")
    ]
    payload = {
        "transaction_details": {
            "order_id": trx.invoice_number,
            "gross_amount": int(trx.final_total),
        },
    }
    # item_details must add up to gross_amount; skip them when discounts apply
    if sum(i["price"] * i["quantity"] for i in items) == int(trx.final_total):
        payload["item_details"] = items

    customer = {}
    if trx.customer_name:
        customer["first_name"] = trx.customer_name
    if trx.customer_email:
        customer["email"] = trx.customer_email
    if trx.customer_phone:
        customer["phone"] = trx.customer_phone
    if customer:
        payload["customer_details"] = customer
    return payload


def create_snap_token(trx):
    """Returns {"token", "redirect_url"} from the Snap API."""
    if not settings.MIDTRANS_SERVER_KEY:
        raise PaymentGatewayError("Midtrans server key is not configured.")

    try:
        response = requests.post(
            snap_url(),
            json=build_snap_payload(trx),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            auth=(settings.MIDTRANS_SERVER_KEY, ""),
            timeout=settings.MIDTRANS_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error("Midtrans request failed for %s: %s", trx.invoice_number, e)
        raise PaymentGatewayError(f"Midtrans request failed: {e}")

    if response.status_code not in (200, 201):
        logger.error("Midtrans returned %s for %s: %s", response.status_code, trx.invoice_number, response.text[:500])
        raise PaymentGatewayError(
            f"Midtrans error {response.status_code}",
            gateway_status=response.status_code,
        )

    data = response.json()
    logger.info("Midtrans Snap token created for %s", trx.invoice_number)
    return {"token": data.get("token"), "redirect_url": data.get("redirect_url")}
