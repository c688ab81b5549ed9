from rest_framework import serializers
from pos.models_shift import CashierShift


class ShiftSerializer(serializers.ModelSerializer):
    cashier_name = serializers.SerializerMethodField()

    class Meta:
        model = CashierShift
        fields = [
            "id", "cashier", "cashier_name", "status",
            "opened_at", "closed_at",
            "opening_balance", "closing_balance",
            "total_sales", "cash_sales",
            "expected_cash", "difference",
            "note",
        ]
        read_only_fields = fields

    def get_cashier_name(self, obj):
        u = obj.cashier
        return getattr(u, "display_name", None) or getattr(u, "username", "")


class ShiftOpenSerializer(serializers.Serializer):
    opening_balance = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class ShiftCloseSerializer(serializers.Serializer):
    closing_balance = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
