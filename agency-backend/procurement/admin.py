from django.contrib import admin
from .models import NeedRequest, StockItem, StockMovement


@admin.register(NeedRequest)
class NeedRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "category", "quantity", "unit", "status", "requester", "submitted_at", "reviewed_at")
    list_filter = ("status", "category")
    search_fields = ("title", "category", "details")
    readonly_fields = ("reviewed_by", "reviewed_at", "approved_at", "sealed_at", "created_at", "updated_at")


class StockMovementInline(admin.TabularInline):
    model = StockMovement
    extra = 0
    fields = ("movement_type", "quantity", "justification", "reference_doc", "performed_by", "need_request", "created_at")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(StockItem)
class StockItemAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "unit", "current_quantity", "updated_at")
    list_filter = ("category",)
    search_fields = ("name", "category")
    # Balance changes go through the ledger only
    readonly_fields = ("current_quantity", "created_at", "updated_at")
    inlines = [StockMovementInline]


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("stock_item", "movement_type", "quantity", "reference_doc", "performed_by", "need_request", "created_at")
    list_filter = ("movement_type",)
    search_fields = ("stock_item__name", "justification", "reference_doc")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
