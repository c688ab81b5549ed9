from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.urls import reverse
from django.utils.html import format_html

from .models import (
    Category, CustomUser, Member, OperationalExpense, PointHistory, Product,
    Promotion, Shop, StockMovement, TokenProxy, Transaction, TransactionItem,
    Voucher, VoucherUsage,
)
from .models_shift import CashierShift, CashierShiftLog


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'product_code', 'price', 'cost_price', 'stock', 'category', 'is_active')
    search_fields = ('name', 'product_code')
    list_filter = ('category', 'is_active')
    ordering = ('name',)


class TransactionItemInline(admin.TabularInline):
    model = TransactionItem
    extra = 0
    readonly_fields = ('product', 'quantity', 'price', 'cost_price', 'subtotal')
    can_delete = False


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = (
        'invoice_number', 'customer_label', 'final_total', 'payment_method',
        'status', 'payment_status', 'created_at_formatted', 'cashier', 'receipt_link',
    )
    search_fields = ('invoice_number', 'customer_name', 'member__name')
    list_filter = ('payment_method', 'status', 'payment_status')
    ordering = ('-created_at',)
    inlines = [TransactionItemInline]
    readonly_fields = (
        'invoice_number', 'cashier', 'member', 'shift', 'subtotal', 'discount',
        'voucher_discount', 'promo_discount', 'points_used', 'points_discount',
        'points_earned', 'tax', 'final_total', 'paid_at', 'history',
    )

    def customer_label(self, obj):
        if obj.member_id:
            return obj.member.name
        return obj.customer_name or "Walk In Customer"
    customer_label.short_description = 'Customer'

    def created_at_formatted(self, obj):
        return obj.created_at.strftime("%I:%M %p, %d %B, %Y")
    created_at_formatted.short_description = 'Time'

    def receipt_link(self, obj):
        url = reverse('transaction_receipt_pdf', args=[obj.id])
        return format_html('<a class="button" href="{}" target="_blank">PDF</a>', url)
    receipt_link.short_description = 'Receipt'

    def get_queryset(self, request):
        qs = super().get_queryset(request).select_related('member', 'cashier')
        if request.user.is_superuser or request.user.role in ['admin', 'manager']:
            return qs
        return qs.filter(cashier=request.user)


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ('name', 'phone', 'email', 'points', 'total_spent', 'is_active', 'last_visit')
    search_fields = ('name', 'phone', 'email')
    list_filter = ('is_active',)


@admin.register(Voucher)
class VoucherAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'type', 'value', 'used_count', 'max_uses', 'start_date', 'end_date', 'is_active')
    search_fields = ('code', 'name')
    list_filter = ('type', 'is_active')


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'discount_type', 'discount_value', 'start_date', 'end_date', 'is_active')
    list_filter = ('type', 'is_active')
    filter_horizontal = ('products', 'categories')


@admin.register(OperationalExpense)
class OperationalExpenseAdmin(admin.ModelAdmin):
    list_display = ('date', 'name', 'category', 'amount', 'created_by')
    list_filter = ('category',)
    search_fields = ('name', 'description')

    def save_model(self, request, obj, form, change):
        if not obj.created_by_id:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(CashierShift)
class CashierShiftAdmin(admin.ModelAdmin):
    list_display = ('id', 'cashier', 'status', 'opened_at', 'closed_at', 'opening_balance', 'expected_cash', 'closing_balance', 'difference')
    list_filter = ('status',)


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'product', 'movement_type', 'quantity_delta', 'before_stock', 'after_stock', 'note')
    list_filter = ('movement_type',)


admin.site.register(Category)
admin.site.register(Shop)
admin.site.register(PointHistory)
admin.site.register(VoucherUsage)
admin.site.register(CashierShiftLog)
admin.site.register(TokenProxy)


class CustomUserAdmin(UserAdmin):
    model = CustomUser
    list_display = ['username', 'email', 'role', 'is_active', 'is_staff']
    fieldsets = UserAdmin.fieldsets + (
        (None, {'fields': ('role',)}),
    )


admin.site.register(CustomUser, CustomUserAdmin)
