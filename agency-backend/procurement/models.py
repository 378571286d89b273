from django.conf import settings
from django.db import models
from django.db.models import Q

from common.models import TimeStampedModel


class NeedStatus(models.TextChoices):
    DRAFT     = "DRAFT",     "Draft"
    SUBMITTED = "SUBMITTED", "Submitted"
    APPROVED  = "APPROVED",  "Approved"
    REJECTED  = "REJECTED",  "Rejected"


class MovementType(models.TextChoices):
    IN  = "IN",  "In"
    OUT = "OUT", "Out"


class NeedRequest(TimeStampedModel):
    """
    Procurement request ("état de besoin").
    DRAFT -> SUBMITTED -> APPROVED | REJECTED; approval seals the document.
    """
    title = models.CharField(max_length=160)
    category = models.CharField(max_length=80)
    details = models.TextField(blank=True)
    quantity = models.PositiveIntegerField()
    unit = models.CharField(max_length=32)
    estimated_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default="XAF")
    status = models.CharField(max_length=10, choices=NeedStatus.choices, default=NeedStatus.DRAFT, db_index=True)

    requester = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="need_requests")
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="need_reviews"
    )
    review_comment = models.TextField(blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    sealed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.reference} {self.title} [{self.status}]"

    @property
    def reference(self):
        return f"EDB-{self.pk or 0:08d}"


class StockItem(TimeStampedModel):
    """
    current_quantity is the running balance of the item's movements and is
    only written by procurement.ledger.
    """
    name = models.CharField(max_length=120)
    category = models.CharField(max_length=80)
    unit = models.CharField(max_length=32)
    current_quantity = models.IntegerField(default=0)

    class Meta:
        ordering = ["category", "name"]
        constraints = [
            models.UniqueConstraint(fields=["name", "category", "unit"], name="stock_item_name_category_unit_uniq"),
            models.CheckConstraint(condition=Q(current_quantity__gte=0), name="stock_item_quantity_non_negative"),
        ]

    def __str__(self):
        return f"{self.name} ({self.category}) {self.current_quantity} {self.unit}"


class StockMovement(models.Model):
    """Append-only ledger entry."""
    stock_item = models.ForeignKey(StockItem, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(max_length=3, choices=MovementType.choices)
    quantity = models.PositiveIntegerField()
    justification = models.CharField(max_length=255)
    reference_doc = models.CharField(max_length=64, blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="stock_movements"
    )
    need_request = models.ForeignKey(
        NeedRequest, on_delete=models.PROTECT, null=True, blank=True, related_name="stock_movements"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["stock_item", "movement_type"], name="procurement_stock_i_4a7c1e_idx")]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name="stock_movement_quantity_positive"),
        ]

    def __str__(self):
        return f"{self.movement_type} {self.quantity} {self.stock_item.name}"
