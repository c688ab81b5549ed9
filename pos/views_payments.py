import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .exceptions import InsufficientStock, InvalidTransactionState, PointsRejected, ProductUnavailable
from .models import Transaction
from .permissions import HasFeature
from .serializers import TransactionIdSerializer, TransactionSerializer
from .services import checkout_service, midtrans

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = ("capture", "settlement")
FAILED_STATUSES = ("deny", "cancel", "expire")


@api_view(["POST"])
@permission_classes([HasFeature("pos.create_orders")])
def bank_transfer_confirm(request):
    """
    POST /api/payments/bank-transfer/confirm/
    body: { "transaction_id": 12 }
    """
    ser = TransactionIdSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    trx = get_object_or_404(Transaction, pk=ser.validated_data["transaction_id"])

    if trx.payment_method != Transaction.PaymentMethod.BANK_TRANSFER:
        raise InvalidTransactionState("Transaction is not a bank transfer.")
    if trx.status != Transaction.Status.PENDING or trx.payment_status != Transaction.PaymentStatus.PENDING:
        raise InvalidTransactionState(
            "Only pending bank transfers can be confirmed.",
            status=trx.status,
            payment_status=trx.payment_status,
        )

    trx = checkout_service.complete_transaction(trx, actor=request.user)
    logger.info("Bank transfer %s confirmed by %s", trx.invoice_number, request.user.pk)
    return Response(TransactionSerializer(trx).data)


@api_view(["POST"])
@permission_classes([HasFeature("pos.create_orders")])
def midtrans_token(request):
    """
    POST /api/payments/midtrans/token/
    body: { "transaction_id": 12 }
    """
    ser = TransactionIdSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    trx = get_object_or_404(Transaction, pk=ser.validated_data["transaction_id"])

    if trx.payment_method not in (Transaction.PaymentMethod.MIDTRANS, Transaction.PaymentMethod.QRIS):
        raise InvalidTransactionState("Transaction is not paid through Midtrans.")
    if trx.status != Transaction.Status.PENDING:
        raise InvalidTransactionState("Transaction is not pending.", status=trx.status)

    data = midtrans.create_snap_token(trx)
    return Response({"transaction_id": trx.id, "order_id": trx.invoice_number, **data})


@api_view(["GET", "POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def midtrans_webhook(request):
    """
    Midtrans HTTP notification.
    GET answers a liveness message so the dashboard "test URL" button works.
    """
    if request.method == "GET":
        return Response({"message": "Midtrans webhook endpoint is active"})

    payload = request.data
    order_id = payload.get("order_id")

    if not midtrans.verify_signature(payload):
        logger.warning("Midtrans notification with invalid signature for order %s", order_id)
        return Response({"detail": "Invalid signature"}, status=status.HTTP_400_BAD_REQUEST)

    trx = Transaction.objects.filter(invoice_number=order_id).first()
    if trx is None:
        logger.warning("Midtrans notification for unknown order %s", order_id)
        return Response({"detail": "Transaction not found"}, status=status.HTTP_404_NOT_FOUND)

    trx_status = (payload.get("transaction_status") or "").lower()
    fraud_status = (payload.get("fraud_status") or "").lower()
    logger.info("Midtrans notification %s: %s (fraud=%s)", order_id, trx_status, fraud_status or "-")

    if trx_status in SUCCESS_STATUSES and fraud_status in ("", "accept"):
        if trx.status == Transaction.Status.COMPLETED:
            return Response({"detail": "Already completed", "status": trx.status})
        if trx.status != Transaction.Status.PENDING:
            return Response({"detail": f"Ignored for {trx.status} transaction", "status": trx.status})
        try:
            trx = checkout_service.complete_transaction(trx)
        except (InsufficientStock, ProductUnavailable, PointsRejected) as e:
            trx = checkout_service.mark_paid_not_completed(trx, f"Paid but not completed: {e.detail}")
        return Response({"detail": "OK", "status": trx.status, "payment_status": trx.payment_status})

    if trx_status in FAILED_STATUSES or (trx_status in SUCCESS_STATUSES and fraud_status == "deny"):
        if trx.status in (Transaction.Status.PENDING, Transaction.Status.COMPLETED):
            trx = checkout_service.cancel_transaction(trx, reason=f"midtrans {trx_status}")
        Transaction.objects.filter(pk=trx.pk).update(payment_status=Transaction.PaymentStatus.FAILED)
        return Response({"detail": "OK", "status": trx.status, "payment_status": Transaction.PaymentStatus.FAILED})

    # pending / challenge / anything else: nothing to do yet
    return Response({"detail": "OK", "status": trx.status, "payment_status": trx.payment_status})
