from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from common.models import AuditLog
from common.roles import AgencyRole, JobTitle
from procurement.api import (
    NeedRequestListCreateView,
    NeedRequestPdfView,
    NeedRequestReviewView,
    StockItemListView,
    StockMovementListCreateView,
)
from procurement.models import NeedStatus, StockItem
from procurement.needs import InvalidNeedTransition, review_need_request, submit_need_request
from procurement.pdf import detail_lines, render_need_request_pdf
from staff.models import StaffProfile


def make_staff(username, role, job_title=JobTitle.AGENT_TERRAIN):
    user = get_user_model().objects.create_user(username=username, password="test-pass", first_name=username.title())
    StaffProfile.objects.create(user=user, role=role, job_title=job_title)
    return user


NEED_PAYLOAD = {
    "title": "Achat consommables bureau T1",
    "category": "Fournitures de bureau",
    "details": "Ramettes A4\nStylos\n- Classeurs",
    "quantity": 40,
    "unit": "lot",
    "estimated_amount": "250000.00",
}


class NeedRequestServiceTests(TestCase):
    def setUp(self):
        self.officer = make_staff("appro", AgencyRole.EMPLOYEE, JobTitle.APPROVISIONNEMENT_MARKETING)
        self.manager = make_staff("manager", AgencyRole.MANAGER, JobTitle.DIRECTION_GENERALE)

    def test_submit_creates_submitted_request(self):
        need = submit_need_request(self.officer, **NEED_PAYLOAD)
        self.assertEqual(need.status, NeedStatus.SUBMITTED)
        self.assertIsNotNone(need.submitted_at)
        self.assertEqual(need.currency, "XAF")
        self.assertEqual(need.reference, f"EDB-{need.id:08d}")

    def test_approval_stamps_review_and_seal(self):
        need = submit_need_request(self.officer, **NEED_PAYLOAD)
        need = review_need_request(need, self.manager, NeedStatus.APPROVED, "OK")

        self.assertEqual(need.status, NeedStatus.APPROVED)
        self.assertEqual(need.reviewed_by, self.manager)
        self.assertIsNotNone(need.approved_at)
        self.assertEqual(need.sealed_at, need.approved_at)
        self.assertTrue(AuditLog.objects.filter(action="NEED_APPROVE").exists())

    def test_rejection_does_not_seal(self):
        need = submit_need_request(self.officer, **NEED_PAYLOAD)
        need = review_need_request(need, self.manager, NeedStatus.REJECTED, "Budget épuisé")
        self.assertEqual(need.status, NeedStatus.REJECTED)
        self.assertIsNone(need.sealed_at)
        self.assertIsNotNone(need.reviewed_at)

    def test_only_submitted_requests_can_be_reviewed(self):
        need = submit_need_request(self.officer, **NEED_PAYLOAD)
        review_need_request(need, self.manager, NeedStatus.APPROVED)
        with self.assertRaises(InvalidNeedTransition):
            review_need_request(need, self.manager, NeedStatus.REJECTED)

    def test_review_outcome_must_be_final_status(self):
        need = submit_need_request(self.officer, **NEED_PAYLOAD)
        with self.assertRaises(InvalidNeedTransition):
            review_need_request(need, self.manager, NeedStatus.DRAFT)

    def test_pdf_renders(self):
        need = submit_need_request(self.officer, **NEED_PAYLOAD)
        need = review_need_request(need, self.manager, NeedStatus.APPROVED, "Validé <urgent>")
        content = render_need_request_pdf(need, printed_by=self.manager)
        self.assertTrue(content.startswith(b"%PDF"))

    def test_detail_lines_are_bulleted(self):
        self.assertEqual(detail_lines("Ramettes A4\n\n- Classeurs"), ["• Ramettes A4", "- Classeurs"])
        self.assertEqual(detail_lines(""), ["• -"])


class ProcurementApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.officer = make_staff("appro", AgencyRole.EMPLOYEE, JobTitle.APPROVISIONNEMENT_MARKETING)
        self.commercial = make_staff("commercial", AgencyRole.EMPLOYEE, JobTitle.COMMERCIAL)
        self.accountant = make_staff("compta", AgencyRole.ACCOUNTANT, JobTitle.COMPTABLE)

    def _call(self, view, method, user, path, data=None, **kwargs):
        request = getattr(self.factory, method)(path, data, format="json")
        force_authenticate(request, user=user)
        return view.as_view()(request, **kwargs)

    def _submit(self, user=None):
        return self._call(NeedRequestListCreateView, "post", user or self.officer, "/api/v1/procurement/needs", NEED_PAYLOAD)

    def _movement(self, user, **overrides):
        payload = {
            "item_name": "Ramette A4",
            "category": "Fournitures de bureau",
            "unit": "paquet",
            "movement_type": "IN",
            "quantity": 80,
            "justification": "Réception achat validé",
            "reference_doc": "BL-APPRO-001",
        }
        payload.update(overrides)
        return self._call(StockMovementListCreateView, "post", user, "/api/v1/procurement/stock/movements", payload)

    def test_procurement_officer_submits_need(self):
        response = self._submit()
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["data"]["status"], NeedStatus.SUBMITTED)

    def test_other_employee_cannot_submit_need(self):
        self.assertEqual(self._submit(self.commercial).status_code, 403)

    def test_accountant_cannot_submit_need(self):
        self.assertEqual(self._submit(self.accountant).status_code, 403)

    def test_employee_lists_only_own_needs(self):
        self._submit()
        manager = make_staff("manager", AgencyRole.MANAGER)
        self._submit(manager)

        response = self._call(NeedRequestListCreateView, "get", self.officer, "/api/v1/procurement/needs")
        self.assertEqual(len(response.data["data"]), 1)
        response = self._call(NeedRequestListCreateView, "get", self.accountant, "/api/v1/procurement/needs")
        self.assertEqual(len(response.data["data"]), 2)

    def test_review_flow_then_linked_movement(self):
        need_id = self._submit().data["data"]["id"]

        response = self._movement(self.officer, need_request_id=need_id)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(StockItem.objects.exists())

        response = self._call(
            NeedRequestReviewView, "post", self.accountant, f"/api/v1/procurement/needs/{need_id}/review",
            {"status": "APPROVED", "review_comment": "OK"}, pk=need_id,
        )
        self.assertEqual(response.status_code, 200, response.data)
        self.assertIsNotNone(response.data["data"]["sealed_at"])

        response = self._movement(self.officer, need_request_id=need_id)
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["data"]["item"]["current_quantity"], 80)

    def test_employee_cannot_review(self):
        need_id = self._submit().data["data"]["id"]
        response = self._call(
            NeedRequestReviewView, "post", self.officer, f"/api/v1/procurement/needs/{need_id}/review",
            {"status": "APPROVED"}, pk=need_id,
        )
        self.assertEqual(response.status_code, 403)

    def test_second_review_is_400(self):
        need_id = self._submit().data["data"]["id"]
        path = f"/api/v1/procurement/needs/{need_id}/review"
        self._call(NeedRequestReviewView, "post", self.accountant, path, {"status": "REJECTED"}, pk=need_id)
        response = self._call(NeedRequestReviewView, "post", self.accountant, path, {"status": "APPROVED"}, pk=need_id)
        self.assertEqual(response.status_code, 400)

    def test_movement_errors(self):
        self.assertEqual(self._movement(self.officer, need_request_id=424242).status_code, 404)
        self.assertEqual(self._movement(self.officer, movement_type="OUT").status_code, 400)
        self.assertEqual(self._movement(self.officer, quantity=0).status_code, 400)
        self.assertEqual(self._movement(self.commercial).status_code, 403)

    def test_insufficient_stock_is_400_and_balance_kept(self):
        self._movement(self.accountant, quantity=30)
        response = self._movement(self.accountant, movement_type="OUT", quantity=50)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(StockItem.objects.get().current_quantity, 30)

    def test_stock_items_include_recent_movements(self):
        self._movement(self.officer)
        self._movement(self.officer, movement_type="OUT", quantity=15, reference_doc="BS-ADMIN-002")
        response = self._call(StockItemListView, "get", self.commercial, "/api/v1/procurement/stock/items")

        self.assertEqual(response.status_code, 200)
        item = response.data["data"][0]
        self.assertEqual(item["current_quantity"], 65)
        self.assertEqual([m["movement_type"] for m in item["movements"]], ["OUT", "IN"])

    def test_pdf_endpoint(self):
        need_id = self._submit().data["data"]["id"]
        request = self.factory.get(f"/api/v1/procurement/needs/{need_id}/pdf", {"download": "1"})
        force_authenticate(request, user=self.commercial)
        response = NeedRequestPdfView.as_view()(request, pk=need_id)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertTrue(response["Content-Disposition"].startswith("attachment"))
        self.assertTrue(response.content.startswith(b"%PDF"))

    def test_pdf_missing_need_is_404(self):
        response = self._call(NeedRequestPdfView, "get", self.commercial, "/api/v1/procurement/needs/9/pdf", pk=9)
        self.assertEqual(response.status_code, 404)
