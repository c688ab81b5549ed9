from django.contrib.auth import get_user_model
from rest_framework import serializers

from .exceptions import Conflict
from .models import (
    Category,
    Member,
    OperationalExpense,
    PointHistory,
    Product,
    Promotion,
    Shop,
    Transaction,
    TransactionItem,
    Voucher,
)

User = get_user_model()


# ==========================================================
# CATALOG
# ==========================================================
class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Category
        fields = ["id", "name", "description", "product_count", "created_at"]
        read_only_fields = ["id", "created_at"]


class ShopSerializer(serializers.ModelSerializer):
    logo_url = serializers.SerializerMethodField()

    class Meta:
        model = Shop
        fields = ["id", "name", "address", "phone", "email", "logo_url", "receipt_footer"]
        read_only_fields = ["id"]

    def get_logo_url(self, obj):
        if obj.logo:
            return getattr(obj.logo, "url", None)
        return None


class ProductSerializer(serializers.ModelSerializer):
    image_url = serializers.SerializerMethodField()
    category = CategorySerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), source="category", write_only=True)

    class Meta:
        model = Product
        fields = [
            "id", "name", "description", "product_code",
            "price", "cost_price", "stock", "size", "color", "is_active",
            "image_url", "category", "category_id",
            "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {
            "product_code": {"required": False, "allow_blank": True},
            "price": {"min_value": 0},
            "cost_price": {"min_value": 0},
        }

    def get_image_url(self, obj):
        if obj.image:
            return getattr(obj.image, "url", None)
        return None

    def validate(self, attrs):
        price = attrs.get("price", getattr(self.instance, "price", None))
        cost = attrs.get("cost_price", getattr(self.instance, "cost_price", None))
        if price is not None and cost is not None and cost > price:
            raise serializers.ValidationError({"cost_price": "Cost price cannot be greater than selling price."})
        return attrs


class ProductImportSerializer(serializers.Serializer):
    file = serializers.FileField()
    duplicate_strategy = serializers.ChoiceField(choices=["skip", "update", "overwrite"], default="skip")
    auto_create_category = serializers.BooleanField(default=False)


# ==========================================================
# MEMBERS
# ==========================================================
class MemberSerializer(serializers.ModelSerializer):
    transaction_count = serializers.IntegerField(read_only=True, required=False)
    last_transaction_at = serializers.DateTimeField(read_only=True, required=False)

    class Meta:
        model = Member
        fields = [
            "id", "name", "phone", "email", "is_active",
            "points", "total_spent", "last_visit",
            "transaction_count", "last_transaction_at",
            "created_at", "updated_at",
        ]
        read_only_fields = ["id", "points", "total_spent", "last_visit", "created_at", "updated_at"]
        # uniqueness is reported as 409 by validate()
        extra_kwargs = {
            "phone": {"validators": [], "required": False, "allow_null": True, "allow_blank": True},
            "email": {"validators": [], "required": False, "allow_null": True, "allow_blank": True},
        }

    def validate(self, attrs):
        for field in ("phone", "email"):
            if field in attrs:
                value = (attrs[field] or "").strip()
                attrs[field] = value or None

        conflicts = []
        others = Member.objects.all()
        if self.instance is not None:
            others = others.exclude(pk=self.instance.pk)

        for field in ("phone", "email"):
            value = attrs.get(field)
            if value and others.filter(**{f"{field}__iexact": value}).exists():
                conflicts.append(field)

        if conflicts:
            raise Conflict("Member with the same phone/email already exists.", conflicts=conflicts)
        return attrs


class MemberActiveSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class PointHistorySerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="transaction.invoice_number", read_only=True, default=None)

    class Meta:
        model = PointHistory
        fields = ["id", "points", "type", "description", "transaction", "invoice_number", "created_at"]


# ==========================================================
# VOUCHERS / PROMOTIONS
# ==========================================================
class VoucherSerializer(serializers.ModelSerializer):
    class Meta:
        model = Voucher
        fields = [
            "id", "code", "name", "description", "type", "value",
            "min_purchase", "max_discount", "max_uses", "max_uses_per_user", "used_count",
            "start_date", "end_date", "is_active", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "used_count", "created_at", "updated_at"]
        extra_kwargs = {
            "max_uses_per_user": {"min_value": 1},
            "value": {"min_value": 0},
        }

    def validate_code(self, value):
        code = value.strip().upper()
        qs = Voucher.objects.filter(code__iexact=code)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Voucher code already exists.")
        return code

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and start > end:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})

        vtype = attrs.get("type", getattr(self.instance, "type", None))
        value = attrs.get("value", getattr(self.instance, "value", None))
        if vtype == Voucher.Type.PERCENTAGE and value is not None and value > 100:
            raise serializers.ValidationError({"value": "Percentage cannot exceed 100."})
        return attrs


class VoucherValidateSerializer(serializers.Serializer):
    code = serializers.CharField()
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    member_id = serializers.IntegerField(required=False, allow_null=True)


class PromotionSerializer(serializers.ModelSerializer):
    product_ids = serializers.PrimaryKeyRelatedField(
        queryset=Product.objects.all(), source="products", many=True, required=False)
    category_ids = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), source="categories", many=True, required=False)

    class Meta:
        model = Promotion
        fields = [
            "id", "name", "description", "type", "discount_type", "discount_value",
            "min_quantity", "buy_quantity", "get_quantity",
            "product_ids", "category_ids",
            "start_date", "end_date", "is_active", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate(self, attrs):
        def current(name):
            return attrs.get(name, getattr(self.instance, name, None))

        start, end = current("start_date"), current("end_date")
        if start and end and start > end:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})

        ptype = current("type")
        if ptype == Promotion.Type.BULK_DISCOUNT and not current("min_quantity"):
            raise serializers.ValidationError({"min_quantity": "Required for bulk discount."})
        if ptype == Promotion.Type.BUY_X_GET_Y and not (current("buy_quantity") and current("get_quantity")):
            raise serializers.ValidationError({"buy_quantity": "buy_quantity and get_quantity are required."})
        if current("discount_type") == Promotion.DiscountType.PERCENTAGE and (current("discount_value") or 0) > 100:
            raise serializers.ValidationError({"discount_value": "Percentage cannot exceed 100."})
        return attrs


class PromotionItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    category_id = serializers.IntegerField(required=False)


class PromotionCalculateSerializer(serializers.Serializer):
    items = PromotionItemSerializer(many=True)


# ==========================================================
# EXPENSES / USERS
# ==========================================================
class OperationalExpenseSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source="created_by.display_name", read_only=True)

    class Meta:
        model = OperationalExpense
        fields = [
            "id", "name", "amount", "category", "date", "description", "receipt",
            "created_by", "created_by_name", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_by", "created_at", "updated_at"]


class UserSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, min_length=6)

    class Meta:
        model = User
        fields = [
            "id", "username", "first_name", "last_name", "email", "role",
            "is_active", "is_staff", "is_superuser", "password", "date_joined",
        ]
        read_only_fields = ["id", "is_staff", "is_superuser", "date_joined"]

    def validate(self, attrs):
        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "This field is required."})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        for k, v in validated_data.items():
            setattr(instance, k, v)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class MeSerializer(serializers.ModelSerializer):
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "first_name", "last_name", "email", "role", "permissions"]

    def get_permissions(self, obj):
        return obj.get_feature_permissions()


# ==========================================================
# TRANSACTIONS
# ==========================================================
class TransactionItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    product_code = serializers.CharField(source="product.product_code", read_only=True)

    class Meta:
        model = TransactionItem
        fields = ["id", "product", "product_name", "product_code", "quantity", "price", "subtotal"]


class TransactionSerializer(serializers.ModelSerializer):
    items = TransactionItemSerializer(many=True, read_only=True)
    cashier_name = serializers.CharField(source="cashier.display_name", read_only=True)
    member_name = serializers.CharField(source="member.name", read_only=True, default=None)
    voucher_codes = serializers.SerializerMethodField()

    class Meta:
        model = Transaction
        fields = [
            "id", "invoice_number", "cashier", "cashier_name", "member", "member_name", "shift",
            "subtotal", "discount", "voucher_discount", "promo_discount",
            "points_used", "points_discount", "points_earned", "tax", "final_total",
            "payment_method", "status", "payment_status", "paid_at",
            "customer_name", "customer_phone", "customer_email",
            "notes", "failure_reason", "voucher_codes", "history", "items",
            "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_voucher_codes(self, obj):
        return [u.voucher.code for u in obj.voucher_usages.all()]


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)


class CheckoutSerializer(serializers.Serializer):
    items = CheckoutItemSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(choices=Transaction.PaymentMethod.choices)
    requires_confirmation = serializers.BooleanField(default=False)

    member_id = serializers.IntegerField(required=False, allow_null=True)
    voucher_code = serializers.CharField(required=False, allow_blank=True)
    points_used = serializers.IntegerField(required=False, min_value=0, default=0)
    discount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, min_value=0)
    tax = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, min_value=0)

    # client-side figures; logged when they disagree with the server
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    total = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)

    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    customer_phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class TransactionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Transaction.Status.choices, required=False)
    payment_status = serializers.ChoiceField(choices=Transaction.PaymentStatus.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("status or payment_status is required.")
        return attrs


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class RefundSerializer(serializers.Serializer):
    refund_ref = serializers.CharField(required=False, allow_blank=True, default="")


class TransactionIdSerializer(serializers.Serializer):
    transaction_id = serializers.IntegerField()