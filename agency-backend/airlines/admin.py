from django.contrib import admin
from .models import Airline, CommissionRule


class CommissionRuleInline(admin.TabularInline):
    model = CommissionRule
    extra = 0
    fields = (
        "route_pattern", "travel_class", "commission_mode", "system_rate_percent", "markup_rate_percent",
        "rate_percent", "default_base_fare_ratio", "starts_at", "ends_at", "is_active",
    )

    def has_delete_permission(self, request, obj=None):
        # Rules are deactivated, never deleted
        return False


@admin.register(Airline)
class AirlineAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "updated_at")
    search_fields = ("code", "name")
    inlines = [CommissionRuleInline]


@admin.register(CommissionRule)
class CommissionRuleAdmin(admin.ModelAdmin):
    list_display = (
        "airline", "route_pattern", "travel_class", "commission_mode", "system_rate_percent",
        "markup_rate_percent", "deposit_stock_consumed_amount", "starts_at", "ends_at", "is_active",
    )
    list_filter = ("commission_mode", "travel_class", "is_active", "airline")
    search_fields = ("airline__code", "airline__name", "route_pattern")
    readonly_fields = ("deposit_stock_consumed_amount", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        return False
