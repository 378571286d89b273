from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from airlines.catalog import ensure_airline_catalog
from airlines.models import Airline
from common.roles import AgencyRole, JobTitle
from staff.models import StaffProfile
from tickets.api import PaymentCreateView, TicketDetailView, TicketListCreateView
from tickets.models import PaymentStatus, TicketSale


def make_staff(username, role, job_title=JobTitle.AGENT_TERRAIN):
    user = get_user_model().objects.create_user(username=username, password="test-pass")
    StaffProfile.objects.create(user=user, role=role, job_title=job_title)
    return user


class TicketApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        ensure_airline_catalog()
        self.air_france = Airline.objects.get(code="AF")
        self.admin = make_staff("admin", AgencyRole.ADMIN, JobTitle.DIRECTION_GENERALE)
        self.commercial = make_staff("commercial", AgencyRole.EMPLOYEE, JobTitle.COMMERCIAL)
        self.other_commercial = make_staff("commercial2", AgencyRole.EMPLOYEE, JobTitle.COMMERCIAL)
        self.field_agent = make_staff("terrain", AgencyRole.EMPLOYEE, JobTitle.AGENT_TERRAIN)
        self.accountant = make_staff("compta", AgencyRole.ACCOUNTANT, JobTitle.COMPTABLE)

    def _payload(self, **overrides):
        payload = {
            "ticket_number": "AF-0001",
            "customer_name": "Mme Nkounkou",
            "route": "bzv-cdg",
            "travel_class": "ECONOMY",
            "travel_date": (timezone.now() + timedelta(days=7)).isoformat(),
            "amount": "1000.00",
            "base_fare_amount": "800.00",
            "agency_markup_amount": "0",
            "airline": self.air_france.id,
        }
        payload.update(overrides)
        return payload

    def _post(self, user, payload):
        request = self.factory.post("/api/v1/tickets/", payload, format="json")
        force_authenticate(request, user=user)
        return TicketListCreateView.as_view()(request)

    def _detail(self, method, user, pk, payload=None):
        request = getattr(self.factory, method)(f"/api/v1/tickets/{pk}", payload or {}, format="json")
        force_authenticate(request, user=user)
        return TicketDetailView.as_view()(request, pk=pk)

    def test_commercial_creates_ticket_with_derived_commission(self):
        response = self._post(self.commercial, self._payload(commission_amount="999"))
        self.assertEqual(response.status_code, 201, response.data)

        data = response.data["data"]
        self.assertEqual(data["route"], "BZV-CDG")
        self.assertEqual(data["seller"], self.commercial.id)
        self.assertEqual(data["currency"], "USD")
        self.assertEqual(Decimal(data["commission_amount"]), Decimal("60.00"))
        self.assertEqual(data["commission_calculation_status"], "FINAL")

    def test_field_agent_cannot_sell(self):
        response = self._post(self.field_agent, self._payload())
        self.assertEqual(response.status_code, 403)
        self.assertFalse(TicketSale.objects.exists())

    def test_employee_cannot_sell_on_behalf_of_someone_else(self):
        response = self._post(self.commercial, self._payload(seller=self.other_commercial.id))
        self.assertEqual(response.status_code, 403)

    def test_accountant_cannot_create_tickets(self):
        response = self._post(self.accountant, self._payload())
        self.assertEqual(response.status_code, 403)

    def test_missing_base_fare_for_override_airline_is_400(self):
        air_congo = Airline.objects.get(code="ACG")
        payload = self._payload(airline=air_congo.id)
        payload.pop("base_fare_amount")
        response = self._post(self.admin, payload)
        self.assertEqual(response.status_code, 400)
        self.assertIn("BaseFare", response.data["error"])

    def test_duplicate_ticket_number_is_400(self):
        self.assertEqual(self._post(self.admin, self._payload()).status_code, 201)
        response = self._post(self.admin, self._payload())
        self.assertEqual(response.status_code, 400)
        self.assertIn("ticket_number", response.data["error"])

    def test_list_includes_metrics(self):
        self._post(self.admin, self._payload())
        request = self.factory.get("/api/v1/tickets/")
        force_authenticate(request, user=self.accountant)
        response = TicketListCreateView.as_view()(request)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["data"]), 1)
        self.assertEqual(Decimal(response.data["metrics"]["total_sales"]), Decimal("1000.00"))
        self.assertEqual(Decimal(response.data["metrics"]["gross_commission"]), Decimal("60.00"))

    def test_user_without_profile_is_denied(self):
        stranger = get_user_model().objects.create_user(username="stranger", password="test-pass")
        request = self.factory.get("/api/v1/tickets/")
        force_authenticate(request, user=stranger)
        response = TicketListCreateView.as_view()(request)
        self.assertEqual(response.status_code, 403)

    def test_seller_patches_own_ticket_and_commission_is_recomputed(self):
        pk = self._post(self.commercial, self._payload()).data["data"]["id"]
        response = self._detail("patch", self.commercial, pk, {"base_fare_amount": "900.00"})
        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(Decimal(response.data["data"]["commission_amount"]), Decimal("67.50"))

    def test_employee_cannot_patch_or_delete_other_sellers_ticket(self):
        pk = self._post(self.other_commercial, self._payload()).data["data"]["id"]
        self.assertEqual(self._detail("patch", self.commercial, pk, {"notes": "x"}).status_code, 403)
        self.assertEqual(self._detail("delete", self.commercial, pk).status_code, 403)
        self.assertTrue(TicketSale.objects.filter(pk=pk).exists())

    def test_manager_cannot_patch(self):
        manager = make_staff("manager", AgencyRole.MANAGER)
        pk = self._post(self.admin, self._payload()).data["data"]["id"]
        self.assertEqual(self._detail("patch", manager, pk, {"notes": "x"}).status_code, 403)

    def test_admin_deletes_ticket(self):
        pk = self._post(self.commercial, self._payload()).data["data"]["id"]
        response = self._detail("delete", self.admin, pk)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(TicketSale.objects.filter(pk=pk).exists())

    def test_missing_ticket_is_404(self):
        self.assertEqual(self._detail("patch", self.admin, 424242, {"notes": "x"}).status_code, 404)


class PaymentApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        ensure_airline_catalog()
        seller = make_staff("commercial", AgencyRole.EMPLOYEE, JobTitle.COMMERCIAL)
        self.ticket = TicketSale.objects.create(
            ticket_number="KQ-0007",
            customer_name="M. Mabiala",
            route="BZV-NBO",
            travel_date=timezone.now() + timedelta(days=2),
            amount=Decimal("400.00"),
            airline=Airline.objects.get(code="KQ"),
            seller=seller,
        )

    def _pay(self, user, amount):
        request = self.factory.post(
            "/api/v1/tickets/payments",
            {"ticket_id": self.ticket.id, "amount": amount, "method": "CASH"},
            format="json",
        )
        force_authenticate(request, user=user)
        return PaymentCreateView.as_view()(request)

    def test_cashier_records_payment(self):
        cashier = make_staff("caisse", AgencyRole.EMPLOYEE, JobTitle.CAISSIERE)
        response = self._pay(cashier, "150.00")
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["data"]["ticket"]["payment_status"], PaymentStatus.PARTIAL)
        self.assertEqual(Decimal(response.data["data"]["paid_total"]), Decimal("150.00"))

    def test_employee_without_payment_capability_is_403(self):
        agent = make_staff("terrain", AgencyRole.EMPLOYEE, JobTitle.AGENT_TERRAIN)
        self.assertEqual(self._pay(agent, "10.00").status_code, 403)

    def test_overpayment_is_400(self):
        accountant = make_staff("compta", AgencyRole.ACCOUNTANT, JobTitle.COMPTABLE)
        response = self._pay(accountant, "400.01")
        self.assertEqual(response.status_code, 400)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.payment_status, PaymentStatus.UNPAID)
