from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class PosError(APIException):
    """
    Base for checkout/business-rule errors.

    `extra` holds machine readable context (shortages, limits, ...) that the
    cashier front end needs; it is merged into the JSON body as-is.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."
    default_code = "pos_error"

    def __init__(self, detail=None, code=None, **extra):
        super().__init__(detail=detail, code=code)
        self.extra = extra


class InsufficientStock(PosError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient stock."
    default_code = "insufficient_stock"


class ProductUnavailable(PosError):
    default_detail = "Product is not available."
    default_code = "product_unavailable"


class VoucherNotFound(PosError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Voucher not found."
    default_code = "voucher_not_found"


class VoucherRejected(PosError):
    default_detail = "Voucher cannot be used."
    default_code = "voucher_rejected"


class PointsRejected(PosError):
    default_detail = "Points cannot be redeemed."
    default_code = "points_rejected"


class InvalidTransactionState(PosError):
    default_detail = "Transaction is not in a valid state for this action."
    default_code = "invalid_state"


class ShiftError(PosError):
    default_detail = "Shift action not allowed."
    default_code = "shift_error"


class ShiftAlreadyOpen(ShiftError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Shift kasir sudah dibuka."
    default_code = "shift_open"


class PaymentGatewayError(PosError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment gateway error."
    default_code = "gateway_error"


class Conflict(PosError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"


def pos_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, PosError):
        data = response.data if isinstance(response.data, dict) else {"detail": response.data}
        data.setdefault("code", exc.default_code)
        data.update(exc.extra)
        response.data = data
    return response
