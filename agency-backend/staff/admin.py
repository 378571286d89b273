from django.contrib import admin
from .models import StaffProfile


@admin.register(StaffProfile)
class StaffProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "job_title", "is_active", "updated_at")
    list_filter = ("role", "job_title", "is_active")
    search_fields = ("user__username", "user__email", "user__first_name", "user__last_name")
