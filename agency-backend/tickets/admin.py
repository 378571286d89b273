from django.contrib import admin
from .models import Payment, TicketSale


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("amount", "method", "reference", "paid_at", "recorded_by")
    readonly_fields = fields
    can_delete = False


@admin.register(TicketSale)
class TicketSaleAdmin(admin.ModelAdmin):
    list_display = (
        "ticket_number", "airline", "route", "travel_class", "amount", "currency",
        "commission_amount", "commission_mode_applied", "commission_calculation_status",
        "payment_status", "sold_at",
    )
    list_filter = ("airline", "payment_status", "commission_calculation_status", "travel_class")
    search_fields = ("ticket_number", "customer_name", "route")
    date_hierarchy = "sold_at"
    readonly_fields = (
        "commission_rule", "commission_rate_used", "commission_amount", "commission_mode_applied",
        "commission_base_amount", "commission_calculation_status", "deposit_counted_amount", "deposit_consumed_before",
        "created_at", "updated_at",
    )
    inlines = [PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("ticket", "amount", "method", "reference", "paid_at", "recorded_by")
    list_filter = ("method",)
    search_fields = ("ticket__ticket_number", "reference")
