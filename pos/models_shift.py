from decimal import Decimal
from django.conf import settings
from django.db import models
from django.utils import timezone


class ShiftStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    CLOSED = "CLOSED", "Closed"


class CashierShift(models.Model):
    cashier = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="shifts")

    status = models.CharField(max_length=10, choices=ShiftStatus.choices, default=ShiftStatus.OPEN, db_index=True)

    opened_at = models.DateTimeField(default=timezone.now, db_index=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    opening_balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    closing_balance = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    # Totals (snapshot / cached)
    total_sales = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    cash_sales = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    expected_cash = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    difference = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    note = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-opened_at", "-id"]
        indexes = [
            models.Index(fields=["cashier", "status", "opened_at"], name="pos_shift_cashier_status_idx"),
        ]

    def __str__(self):
        return f"Shift#{self.id} {self.cashier_id} {self.status}"


class CashierShiftLog(models.Model):
    class Action(models.TextChoices):
        OPEN_SHIFT = "OPEN_SHIFT", "Open shift"
        CLOSE_SHIFT = "CLOSE_SHIFT", "Close shift"

    shift = models.ForeignKey(CashierShift, on_delete=models.CASCADE, related_name="logs")
    action = models.CharField(max_length=20, choices=Action.choices)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.action} #{self.shift_id}"
