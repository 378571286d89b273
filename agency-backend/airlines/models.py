from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone

from common.models import TimeStampedModel
from .choices import CommissionMode, TravelClass
from .commission import resolve_rates


class Airline(TimeStampedModel):
    code = models.CharField(max_length=4, unique=True)
    name = models.CharField(max_length=120)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)


class CommissionRule(TimeStampedModel):
    """
    One commission rule of an airline's catalog.
    Rules are deactivated, never deleted. Sale processing only ever touches
    deposit_stock_consumed_amount (AFTER_DEPOSIT mode).
    """
    airline = models.ForeignKey(Airline, on_delete=models.PROTECT, related_name="commission_rules")
    route_pattern = models.CharField(max_length=64, default="*", help_text="Glob with * wildcard, case-insensitive")
    travel_class = models.CharField(max_length=20, choices=TravelClass.choices, null=True, blank=True)
    commission_mode = models.CharField(
        max_length=24, choices=CommissionMode.choices, default=CommissionMode.IMMEDIATE, db_index=True
    )

    rate_percent = models.DecimalField(max_digits=7, decimal_places=3, default=0, help_text="Legacy flat rate")
    system_rate_percent = models.DecimalField(max_digits=7, decimal_places=3, default=0)
    markup_rate_percent = models.DecimalField(max_digits=7, decimal_places=3, default=0)
    default_base_fare_ratio = models.DecimalField(max_digits=5, decimal_places=4, default=Decimal("0.6"))

    deposit_stock_target_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    deposit_stock_consumed_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    batch_commission_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    starts_at = models.DateTimeField(default=timezone.now)
    ends_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        indexes = [models.Index(fields=["airline", "is_active"], name="airlines_co_airline_5b7d10_idx")]
        constraints = [
            models.CheckConstraint(
                condition=Q(deposit_stock_consumed_amount__gte=0),
                name="commission_rule_consumed_non_negative",
            ),
        ]

    def __str__(self):
        klass = self.travel_class or "ANY"
        return f"{self.airline.code} {self.route_pattern} [{klass}] {self.commission_mode}"

    @property
    def resolved_rates(self):
        return resolve_rates(self)
