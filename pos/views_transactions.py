import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Q, Sum
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import Transaction, TransactionItem
from .permissions import HasFeature, is_admin_or_manager
from .serializers import (
    CancelSerializer,
    CheckoutSerializer,
    RefundSerializer,
    TransactionSerializer,
    TransactionStatusSerializer,
)
from .services import checkout_service
from .services.receipt import format_receipt, normalize_phone
from .services.report_service import resolve_range

logger = logging.getLogger(__name__)


class TransactionViewSet(mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         viewsets.GenericViewSet):
    """
    /api/transactions/            GET list (+summary), POST checkout
    /api/transactions/<id>/       GET, PATCH {status?, payment_status?}
    /api/transactions/<id>/cancel/   POST {reason?}
    /api/transactions/<id>/refund/   POST {refund_ref?}
    /api/transactions/<id>/receipt/  GET text receipt
    """
    serializer_class = TransactionSerializer

    def get_permissions(self):
        if self.action == "create":
            return [HasFeature("pos.create_orders")()]
        if self.action in ("refund", "cancel", "partial_update"):
            return [HasFeature("pos.refunds")()]
        return [IsAuthenticated()]

    def base_queryset(self):
        qs = (
            Transaction.objects
            .select_related("cashier", "member")
            .prefetch_related("items__product", "voucher_usages__voucher")
            .order_by("-created_at", "-id")
        )
        if not is_admin_or_manager(self.request.user):
            qs = qs.filter(cashier=self.request.user)
        return qs

    def get_queryset(self):
        qs = self.base_queryset()
        if self.action != "list":
            return qs

        p = self.request.query_params
        start, end = resolve_range(p)
        qs = qs.filter(created_at__gte=start, created_at__lte=end)

        for field, choices in (
            ("payment_method", Transaction.PaymentMethod.values),
            ("status", Transaction.Status.values),
            ("payment_status", Transaction.PaymentStatus.values),
        ):
            value = p.get(field)
            if value:
                value = value.upper()
                if value not in choices:
                    raise ValidationError({field: f"Invalid value '{value}'. Choose from {choices}."})
                qs = qs.filter(**{field: value})

        if p.get("category"):
            qs = qs.filter(items__product__category_id=p["category"])
        if p.get("product"):
            qs = qs.filter(items__product_id=p["product"])

        q = (p.get("q") or "").strip()
        if q:
            cond = Q(items__product__name__icontains=q) | Q(invoice_number__icontains=q)
            if q.startswith("#") and q[1:].isdigit():
                cond |= Q(pk=int(q[1:]))
            qs = qs.filter(cond)

        return qs.distinct()

    def _summary(self, qs):
        completed = Transaction.objects.filter(
            pk__in=qs.values("pk"), status=Transaction.Status.COMPLETED
        )
        agg = completed.aggregate(total=Sum("final_total"), count=Count("id"))
        total = agg["total"] or Decimal("0.00")
        count = agg["count"] or 0

        top = (
            TransactionItem.objects.filter(transaction__in=completed)
            .values("product_id", "product__name")
            .annotate(quantity=Sum("quantity"))
            .order_by("-quantity")
            .first()
        )
        return {
            "total_sales": str(total),
            "transaction_count": count,
            "average_transaction": str((total / count).quantize(Decimal("0.01")) if count else Decimal("0.00")),
            "top_product": (
                {"product_id": top["product_id"], "name": top["product__name"], "quantity": top["quantity"]}
                if top else None
            ),
        }

    def list(self, request, *args, **kwargs):
        qs = self.get_queryset()
        rows = qs[: settings.POS_TRANSACTION_LIST_LIMIT]
        return Response({
            "results": self.get_serializer(rows, many=True).data,
            "summary": self._summary(qs),
        })

    def create(self, request, *args, **kwargs):
        ser = CheckoutSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        trx = checkout_service.create_transaction(request.user, ser.validated_data)
        trx = self.base_queryset().get(pk=trx.pk)
        return Response(TransactionSerializer(trx).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        trx = self.get_object()
        ser = TransactionStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        checkout_service.update_transaction_status(
            trx,
            actor=request.user,
            status=ser.validated_data.get("status"),
            payment_status=ser.validated_data.get("payment_status"),
        )
        return Response(TransactionSerializer(self.base_queryset().get(pk=trx.pk)).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        trx = self.get_object()
        ser = CancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        checkout_service.cancel_transaction(trx, actor=request.user, reason=ser.validated_data["reason"])
        return Response(TransactionSerializer(self.base_queryset().get(pk=trx.pk)).data)

    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        trx = self.get_object()
        ser = RefundSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        checkout_service.refund_transaction(trx, actor=request.user, refund_ref=ser.validated_data["refund_ref"])
        return Response(TransactionSerializer(self.base_queryset().get(pk=trx.pk)).data)

    @action(detail=True, methods=["get"])
    def receipt(self, request, pk=None):
        trx = self.get_object()
        phone = trx.customer_phone or (trx.member.phone if trx.member_id else "")
        valid, formatted = normalize_phone(phone) if phone else (False, "Nomor telepon kosong")
        return Response({
            "transaction_id": trx.id,
            "invoice_number": trx.invoice_number,
            "phone": formatted if valid else None,
            "phone_error": None if valid else formatted,
            "text": format_receipt(trx),
        })
