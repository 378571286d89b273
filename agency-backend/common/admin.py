from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "severity", "user")
    list_filter = ("action", "severity", "created_at")
    search_fields = ("action", "user__username")
    date_hierarchy = "created_at"
    readonly_fields = ("action", "severity", "user", "metadata", "created_at")

    def has_add_permission(self, request):
        # Audit entries are only written programmatically
        return False

    def has_change_permission(self, request, obj=None):
        return False
