from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class AuditLog(models.Model):
    """
    Append-only trail of back-office actions (ticket writes, stock movements,
    need request reviews). Nothing reads it back for business decisions.
    """
    SEVERITY_CHOICES = [
        ("info", "Info"),
        ("warning", "Warning"),
        ("critical", "Critical"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_logs"
    )
    action = models.CharField(max_length=64)
    severity = models.CharField(max_length=16, choices=SEVERITY_CHOICES, default="info")
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["action", "created_at"], name="common_audi_action_8d2e41_idx")]

    def __str__(self):
        return f"{self.action} @ {self.created_at}"

    @classmethod
    def record(cls, *, action, user=None, severity="info", metadata=None):
        if user is not None and not getattr(user, "is_authenticated", False):
            user = None
        return cls.objects.create(
            action=action,
            user=user,
            severity=severity,
            metadata=metadata or {},
        )
