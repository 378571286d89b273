from django.conf import settings
from django.db import models

from common.models import TimeStampedModel
from common.roles import AgencyRole, JobTitle


class StaffProfile(TimeStampedModel):
    """
    Binds a Django user to an agency role and a job title.
    The role gates API access; the job title narrows what an EMPLOYEE may do.
    """
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="staff_profile")
    role = models.CharField(max_length=20, choices=AgencyRole.choices, default=AgencyRole.EMPLOYEE)
    job_title = models.CharField(max_length=40, choices=JobTitle.choices, default=JobTitle.AGENT_TERRAIN)
    is_active = models.BooleanField(default=True)

    class Meta:
        indexes = [models.Index(fields=["role", "is_active"], name="staff_staff_role_3f1c2a_idx")]

    def __str__(self):
        return f"{self.user} ({self.role} / {self.job_title})"
