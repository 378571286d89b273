from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase
from rest_framework.test import APIRequestFactory
from rest_framework_simplejwt.tokens import AccessToken

from common.auth_views import RoleAwareTokenObtainPairView
from common.models import AuditLog
from common.permissions import RoleRequired, user_job_title, user_role
from common.roles import AgencyRole, JobTitle
from staff.assignment import assignment_capabilities, can_process_payments, can_sell_tickets, is_procurement_officer
from staff.models import StaffProfile


class UserRoleTests(TestCase):
    def setUp(self):
        self.User = get_user_model()

    def test_superuser_is_admin_without_profile(self):
        root = self.User.objects.create_superuser(username="root", password="test-pass", email="root@example.com")
        self.assertEqual(user_role(root), AgencyRole.ADMIN)
        self.assertEqual(user_job_title(root), "")

    def test_inactive_profile_has_no_role(self):
        user = self.User.objects.create_user(username="gone", password="test-pass")
        StaffProfile.objects.create(user=user, role=AgencyRole.MANAGER, is_active=False)
        self.assertIsNone(user_role(user))

    def test_anonymous(self):
        self.assertIsNone(user_role(AnonymousUser()))

    def test_role_required_uses_per_method_map(self):
        user = self.User.objects.create_user(username="compta", password="test-pass")
        StaffProfile.objects.create(user=user, role=AgencyRole.ACCOUNTANT, job_title=JobTitle.COMPTABLE)

        class View:
            permission_roles = {"POST": [AgencyRole.ADMIN]}

        factory = APIRequestFactory()
        get_request, post_request = factory.get("/"), factory.post("/")
        get_request.user = post_request.user = user
        self.assertTrue(RoleRequired().has_permission(get_request, View()))
        self.assertFalse(RoleRequired().has_permission(post_request, View()))


class TokenTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.User = get_user_model()

    def _obtain(self, username):
        request = self.factory.post(
            "/api/v1/auth/token/", {"username": username, "password": "test-pass"}, format="json"
        )
        return RoleAwareTokenObtainPairView.as_view()(request)

    def test_token_carries_role_and_job_title(self):
        user = self.User.objects.create_user(username="caisse", password="test-pass")
        StaffProfile.objects.create(user=user, role=AgencyRole.EMPLOYEE, job_title=JobTitle.CAISSIERE)

        response = self._obtain("caisse")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["role"], "EMPLOYEE")
        token = AccessToken(response.data["access"])
        self.assertEqual(token["role"], "EMPLOYEE")
        self.assertEqual(token["job_title"], "CAISSIERE")

    def test_user_without_profile_is_refused(self):
        self.User.objects.create_user(username="stranger", password="test-pass")
        self.assertEqual(self._obtain("stranger").status_code, 401)


class AssignmentTests(TestCase):
    def test_capabilities(self):
        self.assertTrue(can_sell_tickets(JobTitle.COMMERCIAL))
        self.assertTrue(can_sell_tickets(JobTitle.DIRECTION_GENERALE))
        self.assertFalse(can_sell_tickets(JobTitle.CAISSIERE))
        self.assertTrue(can_process_payments(JobTitle.CAISSIERE))
        self.assertFalse(can_process_payments(JobTitle.COMMERCIAL))
        self.assertTrue(is_procurement_officer(JobTitle.APPROVISIONNEMENT_MARKETING))
        self.assertEqual(assignment_capabilities("UNKNOWN")[0], "Opérations terrain")


class AuditLogTests(TestCase):
    def test_anonymous_user_is_not_stored(self):
        entry = AuditLog.record(action="TEST", user=AnonymousUser(), metadata={"k": 1})
        self.assertIsNone(entry.user)
        self.assertEqual(entry.metadata, {"k": 1})
