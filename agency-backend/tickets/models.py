from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from airlines.choices import CommissionMode, TravelClass
from common.models import TimeStampedModel


class PaymentStatus(models.TextChoices):
    UNPAID  = "UNPAID",  "Unpaid"
    PARTIAL = "PARTIAL", "Partial"
    PAID    = "PAID",    "Paid"


class CommissionCalculationStatus(models.TextChoices):
    FINAL     = "FINAL",     "Final"
    ESTIMATED = "ESTIMATED", "Estimated"


class PaymentMethod(models.TextChoices):
    CASH          = "CASH",          "Cash"
    MOBILE_MONEY  = "MOBILE_MONEY",  "Mobile money"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
    CARD          = "CARD",          "Card"


class TicketSale(TimeStampedModel):
    """
    One ticket sold. The commission_* fields are always derived by
    tickets.services, never written by clients.
    """
    ticket_number = models.CharField(max_length=40, unique=True)
    customer_name = models.CharField(max_length=160)
    route = models.CharField(max_length=64)
    travel_class = models.CharField(max_length=20, choices=TravelClass.choices, default=TravelClass.ECONOMY)
    travel_date = models.DateTimeField()
    sold_at = models.DateTimeField(default=timezone.now, db_index=True)

    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3, default="USD")
    base_fare_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    agency_markup_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    airline = models.ForeignKey("airlines.Airline", on_delete=models.PROTECT, related_name="tickets")
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="tickets_sold")
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID)
    notes = models.TextField(blank=True)

    commission_rule = models.ForeignKey(
        "airlines.CommissionRule", on_delete=models.SET_NULL, null=True, blank=True, related_name="tickets"
    )
    # AFTER_DEPOSIT batch payouts on small sales yield rates far above 100
    commission_rate_used = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    commission_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    commission_mode_applied = models.CharField(max_length=24, choices=CommissionMode.choices, blank=True)
    commission_base_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    commission_calculation_status = models.CharField(
        max_length=10, choices=CommissionCalculationStatus.choices, default=CommissionCalculationStatus.FINAL
    )
    # Portion of this sale already added to its AFTER_DEPOSIT rule counter
    deposit_counted_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    # Rule counter when this sale was first counted; recomputes reuse it
    deposit_consumed_before = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    class Meta:
        ordering = ["-sold_at", "-id"]
        indexes = [
            models.Index(fields=["airline", "sold_at"], name="tickets_tic_airline_0c6e3b_idx"),
            models.Index(fields=["seller", "sold_at"], name="tickets_tic_seller__91f2d4_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="ticket_amount_positive"),
        ]

    def __str__(self):
        return f"{self.ticket_number} {self.route} {self.amount} {self.currency}"


class Payment(models.Model):
    ticket = models.ForeignKey(TicketSale, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    reference = models.CharField(max_length=80, blank=True)
    paid_at = models.DateTimeField(default=timezone.now)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments_recorded"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-paid_at", "-id"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="payment_amount_positive"),
        ]

    def __str__(self):
        return f"Payment #{self.id} {self.amount} on {self.ticket.ticket_number}"
