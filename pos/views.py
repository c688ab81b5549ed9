import io
import logging
from decimal import Decimal

from django.contrib import messages
from django.contrib.auth import get_user_model
from django.db.models import Count, Max, ProtectedError, Q, Sum
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.template.loader import get_template
from django.urls import reverse
from django.views.decorators.http import require_POST
from rest_framework import status, viewsets
from rest_framework.authtoken.views import ObtainAuthToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import SAFE_METHODS, AllowAny, IsAuthenticated
from rest_framework.response import Response
from xhtml2pdf import pisa

from .decorators import role_required
from .exceptions import Conflict
from .models import (
    Category, Member, OperationalExpense, Product, Promotion, Shop,
    Transaction, Voucher,
)
from .permissions import (
    AdminOnlyWriteOrRead, AdminOrManagerWriteOrRead, HasFeature, IsSuperAdminOnly,
)
from .serializers import (
    CategorySerializer, CheckoutSerializer, MeSerializer, MemberActiveSerializer,
    MemberSerializer, OperationalExpenseSerializer, PointHistorySerializer,
    ProductImportSerializer, ProductSerializer, PromotionCalculateSerializer,
    PromotionSerializer, ShopSerializer, UserSerializer, VoucherSerializer,
    VoucherValidateSerializer,
)
from .services import pricing
from .services.checkout_service import create_transaction
from .services.product_import import ProductImporter

User = get_user_model()
logger = logging.getLogger(__name__)

TRUTHY = ("1", "true", "yes")


def _flag(value):
    if value is None or value == "":
        return None
    return str(value).lower() in TRUTHY


class ProtectedDeleteMixin:
    """DELETE of a row still referenced elsewhere answers 409."""
    protected_message = "Object is still in use and cannot be deleted."

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise Conflict(self.protected_message)


# ==========================================================
# AUTH
# ==========================================================
class LoginView(ObtainAuthToken):
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.serializer_class(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        token, _ = Token.objects.get_or_create(user=user)
        logger.info("User %s logged in", user.pk)
        return Response({"token": token.key, "user": MeSerializer(user).data})


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response(MeSerializer(request.user).data)


# ==========================================================
# SHOP
# ==========================================================
class ShopViewSet(viewsets.ModelViewSet):
    """Store header printed on receipts. Everyone reads, admin writes."""
    queryset = Shop.objects.all().order_by("id")
    serializer_class = ShopSerializer
    permission_classes = [AdminOnlyWriteOrRead]


# ==========================================================
# CATALOG
# ==========================================================
class CategoryViewSet(ProtectedDeleteMixin, viewsets.ModelViewSet):
    serializer_class = CategorySerializer
    permission_classes = [AdminOrManagerWriteOrRead]
    protected_message = "Category still has products."

    def get_queryset(self):
        return Category.objects.annotate(product_count=Count("products")).order_by("name")


class ProductViewSet(ProtectedDeleteMixin, viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [AdminOrManagerWriteOrRead]
    protected_message = "Product is referenced by transactions; deactivate it instead."

    def get_queryset(self):
        qs = Product.objects.select_related("category").order_by("name")
        p = self.request.query_params

        search = (p.get("search") or "").strip()
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(product_code__icontains=search))

        if p.get("category"):
            qs = qs.filter(category_id=p["category"])

        active = _flag(p.get("active"))
        if active is not None:
            qs = qs.filter(is_active=active)

        in_stock = _flag(p.get("in_stock"))
        if in_stock is True:
            qs = qs.filter(stock__gt=0)
        elif in_stock is False:
            qs = qs.filter(stock=0)
        return qs

    @action(detail=False, methods=["post"], url_path="import",
            parser_classes=[MultiPartParser, FormParser])
    def import_csv(self, request):
        ser = ProductImportSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        raw = ser.validated_data["file"].read()
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError({"file": "CSV must be UTF-8 encoded."})

        importer = ProductImporter(
            user=request.user,
            duplicate_strategy=ser.validated_data["duplicate_strategy"],
            auto_create_category=ser.validated_data["auto_create_category"],
        )
        return Response(importer.run(text))


# ==========================================================
# MEMBERS
# ==========================================================
class MemberViewSet(viewsets.ModelViewSet):
    serializer_class = MemberSerializer
    permission_classes = [HasFeature("pos.manage_customers")]

    def get_queryset(self):
        qs = Member.objects.annotate(
            transaction_count=Count("transactions"),
            last_transaction_at=Max("transactions__created_at"),
        ).order_by("-created_at", "-id")

        active = _flag(self.request.query_params.get("active"))
        if active is not None:
            qs = qs.filter(is_active=active)
        return qs

    @action(detail=False, methods=["get"])
    def search(self, request):
        q = (request.query_params.get("q") or "").strip()
        if not q:
            raise ValidationError({"q": "Query parameter q is required."})

        try:
            limit = int(request.query_params.get("limit") or 50)
        except ValueError:
            raise ValidationError({"limit": "limit must be a number."})
        limit = max(1, min(limit, 500))

        qs = self.get_queryset().filter(
            Q(name__icontains=q) | Q(email__icontains=q) | Q(phone__icontains=q)
        )[:limit]
        return Response(MemberSerializer(qs, many=True).data)

    @action(detail=True, methods=["patch"])
    def active(self, request, pk=None):
        member = self.get_object()
        ser = MemberActiveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        member.is_active = ser.validated_data["is_active"]
        member.save(update_fields=["is_active", "updated_at"])
        return Response(MemberSerializer(member).data)

    @action(detail=True, methods=["get"])
    def points(self, request, pk=None):
        member = self.get_object()
        history = member.point_history.select_related("transaction")
        return Response({
            "member_id": member.id,
            "points": member.points,
            "history": PointHistorySerializer(history, many=True).data,
        })


# ==========================================================
# VOUCHERS / PROMOTIONS
# ==========================================================
class VoucherViewSet(viewsets.ModelViewSet):
    serializer_class = VoucherSerializer

    def get_permissions(self):
        if self.action == "validate":
            return [HasFeature("pos.create_orders")()]
        if self.request.method in SAFE_METHODS:
            return [IsAuthenticated()]
        return [HasFeature("pos.manage_promotions")()]

    def get_queryset(self):
        qs = Voucher.objects.all().order_by("-created_at", "-id")
        active = _flag(self.request.query_params.get("active"))
        if active is not None:
            qs = qs.filter(is_active=active)
        return qs

    @action(detail=False, methods=["post"])
    def validate(self, request):
        ser = VoucherValidateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        member = None
        if data.get("member_id"):
            member = Member.objects.filter(pk=data["member_id"]).first()

        voucher, discount = pricing.validate_voucher(
            data["code"], data["subtotal"], user=request.user, member=member,
        )
        return Response({
            "valid": True,
            "voucher": {
                "id": voucher.id,
                "code": voucher.code,
                "name": voucher.name,
                "type": voucher.type,
                "value": str(voucher.value),
            },
            "discount": str(discount),
        })


class PromotionViewSet(viewsets.ModelViewSet):
    serializer_class = PromotionSerializer

    def get_permissions(self):
        if self.action == "calculate":
            return [HasFeature("pos.create_orders")()]
        if self.request.method in SAFE_METHODS:
            return [IsAuthenticated()]
        return [HasFeature("pos.manage_promotions")()]

    def get_queryset(self):
        qs = Promotion.objects.prefetch_related("products", "categories").order_by("-created_at", "-id")
        active = _flag(self.request.query_params.get("active"))
        if active is not None:
            qs = qs.filter(is_active=active)
        return qs

    @action(detail=False, methods=["post"])
    def calculate(self, request):
        ser = PromotionCalculateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        items = ser.validated_data["items"]

        products = Product.objects.in_bulk([i["product_id"] for i in items])
        lines = []
        for item in items:
            product = products.get(item["product_id"])
            if product is None:
                continue
            lines.append({
                "product_id": product.id,
                "category_id": item.get("category_id") or product.category_id,
                "name": product.name,
                "quantity": item["quantity"],
                "price": item.get("price", product.price),
            })

        result = pricing.calculate_promotions(lines)
        return Response({
            "total_discount": str(result["total_discount"]),
            "applied_promotions": result["applied_promotions"],
        })


# ==========================================================
# EXPENSES / USERS
# ==========================================================
class OperationalExpenseViewSet(viewsets.ModelViewSet):
    serializer_class = OperationalExpenseSerializer
    permission_classes = [HasFeature("pos.manage_expenses", write_admin_only=True)]

    def get_queryset(self):
        qs = OperationalExpense.objects.select_related("created_by").order_by("-date", "-id")
        p = self.request.query_params
        if p.get("start_date"):
            qs = qs.filter(date__gte=p["start_date"])
        if p.get("end_date"):
            qs = qs.filter(date__lte=p["end_date"])
        if p.get("category"):
            qs = qs.filter(category=p["category"])
        return qs

    def list(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        total = qs.aggregate(s=Sum("amount"))["s"] or Decimal("0.00")
        by_category = {
            row["category"]: str(row["total"])
            for row in qs.values("category").annotate(total=Sum("amount")).order_by("category")
        }
        return Response({
            "results": self.get_serializer(qs, many=True).data,
            "total_amount": str(total),
            "by_category": by_category,
        })

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class UserViewSet(viewsets.ModelViewSet):
    serializer_class = UserSerializer
    permission_classes = [IsSuperAdminOnly]

    def get_queryset(self):
        return User.objects.order_by("username")

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise ValidationError({"detail": "You cannot delete your own account."})
        try:
            instance.delete()
        except ProtectedError:
            raise Conflict("User has transactions; deactivate the account instead.")


# ==========================================================
# CASHIER PAGE (session cart)
# ==========================================================
CASHIER_ROLES = ["admin", "manager", "cashier"]


def _cart(request):
    return request.session.get("cart", [])


def _cart_context(request):
    cart = _cart(request)
    products = Product.objects.in_bulk([int(i["product_id"]) for i in cart])

    cart_items = []
    lines = []
    for item in cart:
        product = products.get(int(item["product_id"]))
        if product is None:
            continue
        subtotal = product.price * item["quantity"]
        cart_items.append({"product": product, "quantity": item["quantity"], "subtotal": subtotal})
        lines.append({
            "product_id": product.id,
            "category_id": product.category_id,
            "name": product.name,
            "quantity": item["quantity"],
            "price": product.price,
        })

    subtotal = pricing.cart_subtotal(lines)
    promo = pricing.calculate_promotions(lines) if lines else {"total_discount": Decimal("0"), "applied_promotions": []}
    return {
        "cart_items": cart_items,
        "subtotal": subtotal,
        "promo_discount": promo["total_discount"],
        "applied_promotions": promo["applied_promotions"],
        "estimated_total": max(subtotal - promo["total_discount"], Decimal("0")),
    }


@role_required(CASHIER_ROLES)
def cashier_view(request):
    if request.method == "POST":
        try:
            product_id = int(request.POST.get("product_id"))
            quantity = int(request.POST.get("quantity", 1))
        except (TypeError, ValueError):
            messages.error(request, "Produk atau jumlah tidak valid.")
            return redirect("cashier")

        product = Product.objects.filter(pk=product_id, is_active=True).first()
        if product is None or quantity < 1:
            messages.error(request, "Produk tidak ditemukan.")
            return redirect("cashier")

        cart = _cart(request)
        for item in cart:
            if int(item["product_id"]) == product.id:
                item["quantity"] = min(item["quantity"] + quantity, product.stock)
                break
        else:
            cart.append({"product_id": product.id, "quantity": min(quantity, product.stock)})

        cart = [i for i in cart if i["quantity"] > 0]
        if not any(int(i["product_id"]) == product.id for i in cart):
            messages.warning(request, f"Stok {product.name} habis.")

        request.session["cart"] = cart
        return redirect("cashier")

    products = Product.objects.filter(is_active=True).select_related("category").order_by("name")
    context = {
        "products": products,
        "payment_methods": Transaction.PaymentMethod.choices,
        "members": Member.objects.filter(is_active=True).order_by("name"),
        **_cart_context(request),
    }
    return render(request, "pos/cashier.html", context)


@role_required(CASHIER_ROLES)
@require_POST
def cashier_update_line(request, product_id):
    cart = _cart(request)
    try:
        quantity = int(request.POST.get("quantity", 0))
    except ValueError:
        quantity = 0

    product = Product.objects.filter(pk=product_id).first()
    updated = []
    for item in cart:
        if int(item["product_id"]) == product_id:
            if quantity <= 0 or product is None:
                continue
            item["quantity"] = min(quantity, product.stock)
        updated.append(item)
    request.session["cart"] = [i for i in updated if i["quantity"] > 0]
    return redirect("cashier")


@role_required(CASHIER_ROLES)
def cashier_remove_line(request, product_id):
    cart = [item for item in _cart(request) if int(item["product_id"]) != product_id]
    request.session["cart"] = cart
    return redirect("cashier")


@role_required(CASHIER_ROLES)
@require_POST
def cashier_checkout(request):
    cart = _cart(request)
    if not cart:
        messages.error(request, "Keranjang kosong.")
        return redirect("cashier")

    payload = {
        "items": [{"product_id": i["product_id"], "quantity": i["quantity"]} for i in cart],
        "payment_method": request.POST.get("payment_method") or Transaction.PaymentMethod.CASH,
        "requires_confirmation": request.POST.get("requires_confirmation") in TRUTHY,
        "member_id": request.POST.get("member_id") or None,
        "voucher_code": (request.POST.get("voucher_code") or "").strip(),
        "points_used": request.POST.get("points_used") or 0,
        "customer_name": request.POST.get("customer_name", ""),
        "customer_phone": request.POST.get("customer_phone", ""),
        "notes": request.POST.get("notes", ""),
    }

    ser = CheckoutSerializer(data=payload)
    if not ser.is_valid():
        messages.error(request, f"Data checkout tidak valid: {ser.errors}")
        return redirect("cashier")

    try:
        trx = create_transaction(request.user, ser.validated_data)
    except APIException as e:
        messages.error(request, str(e.detail))
        return redirect("cashier")

    request.session["cart"] = []
    messages.success(request, f"Transaksi {trx.invoice_number} berhasil ({trx.get_status_display()}).")
    return redirect(reverse("transaction_receipt_pdf", args=[trx.id]))


@role_required(CASHIER_ROLES)
def transaction_receipt_pdf(request, transaction_id):
    trx = get_object_or_404(
        Transaction.objects.select_related("cashier", "member").prefetch_related("items__product"),
        id=transaction_id,
    )
    if request.user.role_label == "cashier" and trx.cashier_id != request.user.pk:
        return HttpResponse("Forbidden", status=status.HTTP_403_FORBIDDEN)

    shop = Shop.objects.first()

    template = get_template("pos/order_receipt.html")
    html = template.render({"trx": trx, "shop": shop})

    result = io.BytesIO()
    pdf = pisa.pisaDocument(io.BytesIO(html.encode("UTF-8")), result)

    if not pdf.err:
        return HttpResponse(result.getvalue(), content_type="application/pdf")
    logger.error("PDF receipt generation failed for %s", trx.invoice_number)
    return HttpResponse("Error generating PDF", status=500)
