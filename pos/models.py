import random
import string
from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from rest_framework.authtoken.models import Token
from cloudinary.models import CloudinaryField

MONEY = dict(max_digits=14, decimal_places=2)


# ========== CUSTOM USER ==========
class CustomUser(AbstractUser):
    ROLE_ADMIN = "admin"
    ROLE_MANAGER = "manager"
    ROLE_CASHIER = "cashier"

    ROLE_CHOICES = (
        (ROLE_ADMIN, "Admin"),
        (ROLE_MANAGER, "Manager"),
        (ROLE_CASHIER, "Cashier"),
    )

    ROLE_PERMISSIONS = {
        ROLE_ADMIN: [
            "pos.view_reports",
            "pos.manage_products",
            "pos.manage_users",
            "pos.manage_expenses",
            "pos.manage_promotions",
            "pos.create_orders",
            "pos.refunds",
            "pos.stock_adjust",
            "pos.export_data",
            "pos.manage_settings",
            "pos.manage_customers",
        ],
        ROLE_MANAGER: [
            "pos.view_reports",
            "pos.manage_products",
            "pos.manage_expenses",
            "pos.manage_promotions",
            "pos.create_orders",
            "pos.refunds",
            "pos.stock_adjust",
            "pos.export_data",
            "pos.manage_customers",
        ],
        ROLE_CASHIER: [
            "pos.create_orders",
            "pos.refunds",
            "pos.manage_customers",
        ],
    }

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CASHIER, db_index=True)

    @property
    def role_label(self):
        # compatibility for templates/context processors
        if self.is_superuser:
            return self.ROLE_ADMIN
        return self.role or self.ROLE_CASHIER

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def save(self, *args, **kwargs):
        """
        HARD POLICY:
        - ADMIN => is_superuser=True and is_staff=True
        - MANAGER => is_staff=True (admin site for catalog/reports)
        - CASHIER => is_superuser=False and is_staff=False
        """
        r = (self.role or self.ROLE_CASHIER).lower().strip()
        self.role = r

        if r == self.ROLE_ADMIN:
            self.is_superuser = True
            self.is_staff = True
        elif r == self.ROLE_MANAGER:
            self.is_superuser = False
            self.is_staff = True
        else:
            self.is_superuser = False
            self.is_staff = False

        super().save(*args, **kwargs)

    def get_feature_permissions(self):
        """
        Central Feature Permission Mapping
        Cashier app & API will use this.
        """
        return self.ROLE_PERMISSIONS.get(self.role_label, [])

    def has_feature(self, feature_code: str) -> bool:
        return feature_code in self.get_feature_permissions()


# ========== CATEGORY ==========
class Category(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("name",)
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name


# ========== PRODUCT ==========
def generate_product_code() -> str:
    # PRD-<last 6 digits of epoch ms>-<3 random chars>
    stamp = str(int(timezone.now().timestamp() * 1000))[-6:]
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=3))
    return f"PRD-{stamp}-{suffix}"


class Product(models.Model):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    price = models.DecimalField(**MONEY, default=0, validators=[MinValueValidator(Decimal("0"))])
    cost_price = models.DecimalField(**MONEY, default=0, validators=[MinValueValidator(Decimal("0"))])
    stock = models.PositiveIntegerField(default=0)

    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="products")

    # barcode / SKU printed on the label
    product_code = models.CharField(max_length=50, unique=True, blank=True)

    size = models.CharField(max_length=20, blank=True, default="")
    color = models.CharField(max_length=50, blank=True, default="")
    is_active = models.BooleanField(default=True, db_index=True)

    image = CloudinaryField("product_image", blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name",)
        indexes = [
            models.Index(fields=["name"], name="pos_product_name_idx"),
            models.Index(fields=["stock"], name="pos_product_stock_idx"),
        ]

    def clean(self):
        if self.cost_price is not None and self.price is not None and self.cost_price > self.price:
            raise ValidationError({"cost_price": "Cost price cannot be greater than selling price."})

    def save(self, *args, **kwargs):
        if not self.product_code:
            self.product_code = generate_product_code()
        super().save(*args, **kwargs)

    @property
    def profit(self):
        return self.price - self.cost_price

    def __str__(self):
        return f"{self.name} ({self.product_code})"


# ========== MEMBER (loyalty) ==========
class Member(models.Model):
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, unique=True, null=True, blank=True)
    email = models.EmailField(unique=True, null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    points = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(**MONEY, default=0)
    last_visit = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self):
        return self.name


class PointHistory(models.Model):
    class Type(models.TextChoices):
        EARNED = "EARNED", "Earned"
        USED = "USED", "Used"
        EXPIRED = "EXPIRED", "Expired"
        ADJUSTED = "ADJUSTED", "Adjusted"

    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="point_history")
    transaction = models.ForeignKey(
        "pos.Transaction", on_delete=models.SET_NULL, null=True, blank=True, related_name="point_history"
    )
    # Positive = credited, Negative = debited
    points = models.IntegerField()
    type = models.CharField(max_length=10, choices=Type.choices)
    description = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name_plural = "Point histories"

    def __str__(self):
        return f"{self.member} {self.type} {self.points}"


# ========== VOUCHER ==========
class Voucher(models.Model):
    class Type(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage"
        FIXED = "fixed", "Fixed amount"
        FREE_SHIPPING = "free_shipping", "Free shipping"

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=20, choices=Type.choices)
    value = models.DecimalField(**MONEY, validators=[MinValueValidator(Decimal("0"))])

    min_purchase = models.DecimalField(**MONEY, null=True, blank=True)
    max_discount = models.DecimalField(**MONEY, null=True, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    max_uses_per_user = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)

    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    is_active = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.code


class VoucherUsage(models.Model):
    voucher = models.ForeignKey(Voucher, on_delete=models.CASCADE, related_name="usages")
    transaction = models.ForeignKey("pos.Transaction", on_delete=models.CASCADE, related_name="voucher_usages")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    member = models.ForeignKey(Member, on_delete=models.SET_NULL, null=True, blank=True)
    discount_amount = models.DecimalField(**MONEY, default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.voucher.code} -> {self.transaction_id}"


# ========== PROMOTION ==========
class Promotion(models.Model):
    class Type(models.TextChoices):
        PRODUCT_DISCOUNT = "PRODUCT_DISCOUNT", "Product discount"
        CATEGORY_DISCOUNT = "CATEGORY_DISCOUNT", "Category discount"
        BULK_DISCOUNT = "BULK_DISCOUNT", "Bulk discount"
        BUY_X_GET_Y = "BUY_X_GET_Y", "Buy X get Y"

    class DiscountType(models.TextChoices):
        PERCENTAGE = "PERCENTAGE", "Percentage"
        FIXED = "FIXED", "Fixed"

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=20, choices=Type.choices)
    discount_type = models.CharField(max_length=10, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    discount_value = models.DecimalField(**MONEY, default=0, validators=[MinValueValidator(Decimal("0"))])

    min_quantity = models.PositiveIntegerField(null=True, blank=True)
    buy_quantity = models.PositiveIntegerField(null=True, blank=True)
    get_quantity = models.PositiveIntegerField(null=True, blank=True)

    products = models.ManyToManyField(Product, blank=True, related_name="promotions")
    categories = models.ManyToManyField(Category, blank=True, related_name="promotions")

    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    is_active = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self):
        return self.name


# ========== TRANSACTION ==========
class Transaction(models.Model):
    class PaymentMethod(models.TextChoices):
        CASH = "CASH", "Cash"
        CARD = "CARD", "Card"
        QRIS = "QRIS", "QRIS"
        MIDTRANS = "MIDTRANS", "Midtrans"
        BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
        VIRTUAL_ACCOUNT = "VIRTUAL_ACCOUNT", "Virtual account"

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"
        REFUNDED = "REFUNDED", "Refunded"

    class PaymentStatus(models.TextChoices):
        PENDING = "PENDING", "Pending"
        PAID = "PAID", "Paid"
        FAILED = "FAILED", "Failed"
        CANCELLED = "CANCELLED", "Cancelled"
        REFUNDED = "REFUNDED", "Refunded"

    # Payment confirmed later (gateway / manual transfer check)
    DELAYED_METHODS = (
        PaymentMethod.QRIS,
        PaymentMethod.MIDTRANS,
        PaymentMethod.BANK_TRANSFER,
        PaymentMethod.VIRTUAL_ACCOUNT,
    )

    invoice_number = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        editable=False,
        help_text="Auto generated invoice number. Example: INV000000000123"
    )

    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    member = models.ForeignKey(Member, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions")
    shift = models.ForeignKey(
        "pos.CashierShift", on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )

    subtotal = models.DecimalField(**MONEY, default=0)
    discount = models.DecimalField(**MONEY, default=0)
    voucher_discount = models.DecimalField(**MONEY, default=0)
    promo_discount = models.DecimalField(**MONEY, default=0)
    points_used = models.PositiveIntegerField(default=0)
    points_discount = models.DecimalField(**MONEY, default=0)
    points_earned = models.PositiveIntegerField(default=0)
    tax = models.DecimalField(**MONEY, default=0)
    final_total = models.DecimalField(**MONEY, default=0)

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, db_index=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    customer_name = models.CharField(max_length=100, blank=True, default="")
    customer_phone = models.CharField(max_length=20, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")

    notes = models.TextField(blank=True, default="")
    failure_reason = models.CharField(max_length=255, blank=True, default="")
    # status changes: [{"type": "CANCELLED", "at": "...", ...}]
    history = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")

    @property
    def total_discount(self):
        return self.discount + self.voucher_discount + self.promo_discount + self.points_discount

    def generate_invoice_number(self) -> str:
        # Format professional: INV + 12 digit
        return f"INV{self.pk:012d}"

    def save(self, *args, **kwargs):
        creating = self.pk is None
        super().save(*args, **kwargs)

        # After we have pk, generate invoice once
        if (creating or not self.invoice_number) and self.pk:
            inv = self.generate_invoice_number()
            if self.invoice_number != inv:
                Transaction.objects.filter(pk=self.pk).update(invoice_number=inv)
                self.invoice_number = inv

    def __str__(self):
        return self.invoice_number or f"Transaction #{self.id}"


class TransactionItem(models.Model):
    transaction = models.ForeignKey(Transaction, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="transaction_items")
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price = models.DecimalField(**MONEY)
    # cost snapshot for COGS
    cost_price = models.DecimalField(**MONEY, default=0)
    subtotal = models.DecimalField(**MONEY)

    def __str__(self):
        return f"{self.product.name} x{self.quantity}"


# ==========================================================
# INVENTORY LEDGER (Inventory History)
# ==========================================================
class StockMovement(models.Model):
    class Type(models.TextChoices):
        SALE = "SALE", "Sale"
        SALE_RETURN = "SALE_RETURN", "Sale Return"
        ADJUSTMENT = "ADJUSTMENT", "Adjustment"
        IMPORT = "IMPORT", "Import"

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="movements")
    movement_type = models.CharField(max_length=20, choices=Type.choices, db_index=True)

    # Positive = IN, Negative = OUT
    quantity_delta = models.IntegerField()

    before_stock = models.IntegerField()
    after_stock = models.IntegerField()

    note = models.CharField(max_length=255, blank=True, default="")
    ref_model = models.CharField(max_length=50, blank=True, default="")
    ref_id = models.IntegerField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True
    )

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self):
        return f"{self.product.name} {self.movement_type} {self.quantity_delta}"


# ========== OPERATIONAL EXPENSE ==========
class OperationalExpense(models.Model):
    name = models.CharField(max_length=100)
    amount = models.DecimalField(**MONEY, validators=[MinValueValidator(Decimal("0.01"))])
    category = models.CharField(max_length=50, db_index=True)
    date = models.DateField(db_index=True)
    description = models.TextField(blank=True, default="")
    # receipt photo URL or path
    receipt = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="expenses"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-date", "-id")

    def __str__(self):
        return self.name


# ========== SHOP ==========
class Shop(models.Model):
    name = models.CharField(max_length=100)
    address = models.TextField()
    phone = models.CharField(max_length=20)
    email = models.EmailField(blank=True, null=True)
    logo = CloudinaryField("shop_logo", blank=True, null=True)
    receipt_footer = models.CharField(max_length=255, blank=True, default="Terima kasih atas kunjungan Anda!")

    def __str__(self):
        return self.name


class TokenProxy(Token):
    class Meta:
        proxy = True
        app_label = "pos"
        verbose_name = "Token"
        verbose_name_plural = "Tokens"


from .models_shift import CashierShift, CashierShiftLog  # noqa: E402,F401
