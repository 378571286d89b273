from io import StringIO

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone

from common.models import AuditLog
from procurement.ledger import (
    InsufficientStock,
    ItemNotFound,
    NeedRequestNotFound,
    RequestNotApproved,
    StockTotals,
    apply_stock_reconciliation,
    post_stock_movement,
    reconcile_stock_totals,
)
from procurement.models import MovementType, NeedRequest, NeedStatus, StockItem, StockMovement

PAPER = ("Ramette A4", "Fournitures de bureau", "paquet")
MARKER = ("Marqueur tableau", "Fournitures de bureau", "pièce")


class LedgerTestBase(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="appro", password="test-pass")

    def make_need(self, status=NeedStatus.APPROVED):
        return NeedRequest.objects.create(
            title="Achat consommables bureau",
            category="Fournitures de bureau",
            quantity=40,
            unit="lot",
            status=status,
            requester=self.user,
            submitted_at=timezone.now(),
        )

    def post(self, key, direction, quantity, **kwargs):
        kwargs.setdefault("justification", "Mouvement de test")
        return post_stock_movement(key, direction, quantity, performed_by=self.user, **kwargs)


class PostStockMovementTests(LedgerTestBase):
    def test_ramette_scenario(self):
        result = self.post(PAPER, MovementType.IN, 80, reference_doc="BL-APPRO-001")
        self.assertEqual(result.item.current_quantity, 80)
        self.assertEqual(result.movement.movement_type, MovementType.IN)

        result = self.post(PAPER, MovementType.OUT, 15)
        self.assertEqual(result.item.current_quantity, 65)

        with self.assertRaises(InsufficientStock) as ctx:
            self.post(PAPER, MovementType.OUT, 100)
        self.assertEqual(ctx.exception.available, 65)

        item = StockItem.objects.get(name="Ramette A4")
        self.assertEqual(item.current_quantity, 65)
        self.assertEqual(item.movements.count(), 2)

    def test_rejected_out_leaves_quantity_unchanged(self):
        self.post(MARKER, MovementType.IN, 30)
        with self.assertRaises(InsufficientStock):
            self.post(MARKER, MovementType.OUT, 50)

        self.assertEqual(StockItem.objects.get(name="Marqueur tableau").current_quantity, 30)
        self.assertEqual(StockMovement.objects.count(), 1)
        self.assertTrue(AuditLog.objects.filter(action="STOCK_MOVEMENT_REJECTED").exists())

    def test_out_on_unknown_item_is_rejected_without_creating_it(self):
        with self.assertRaises(ItemNotFound):
            self.post(PAPER, MovementType.OUT, 1)
        self.assertFalse(StockItem.objects.exists())

    def test_submitted_request_is_rejected_regardless_of_quantity(self):
        need = self.make_need(status=NeedStatus.SUBMITTED)
        with self.assertRaises(RequestNotApproved):
            self.post(PAPER, MovementType.IN, 10, need_request_id=need.id)
        self.assertFalse(StockItem.objects.exists())

    def test_rejected_request_is_rejected(self):
        need = self.make_need(status=NeedStatus.REJECTED)
        with self.assertRaises(RequestNotApproved):
            self.post(PAPER, MovementType.IN, 10, need_request_id=need.id)

    def test_unknown_request(self):
        with self.assertRaises(NeedRequestNotFound):
            self.post(PAPER, MovementType.IN, 10, need_request_id=987654)

    def test_approved_request_is_linked(self):
        need = self.make_need()
        result = self.post(PAPER, MovementType.IN, 80, need_request_id=need.id)
        self.assertEqual(result.movement.need_request_id, need.id)

    def test_non_positive_quantity_is_invalid(self):
        with self.assertRaises(ValidationError):
            self.post(PAPER, MovementType.IN, 0)

    def test_unknown_direction_is_invalid(self):
        with self.assertRaises(ValidationError):
            self.post(PAPER, "SIDEWAYS", 1)

    def test_item_key_is_trimmed(self):
        self.post(("  Ramette A4 ", "Fournitures de bureau", "paquet "), MovementType.IN, 5)
        self.post(PAPER, MovementType.IN, 5)
        self.assertEqual(StockItem.objects.get().current_quantity, 10)


class ReconcileStockTotalsTests(LedgerTestBase):
    def test_pure_totals_from_mappings(self):
        totals = reconcile_stock_totals([
            {"stock_item_id": 1, "movement_type": "IN", "quantity": 80},
            {"stock_item_id": 1, "movement_type": "OUT", "quantity": 15},
            {"stock_item_id": 2, "movement_type": "OUT", "quantity": 4},
        ])
        self.assertEqual(totals[1], StockTotals(in_qty=80, out_qty=15, resulting_quantity=65))
        self.assertEqual(totals[2], StockTotals(in_qty=0, out_qty=4, resulting_quantity=0))

    def test_matches_sequential_posting(self):
        sequence = [
            (PAPER, MovementType.IN, 80),
            (MARKER, MovementType.IN, 30),
            (PAPER, MovementType.OUT, 15),
            (MARKER, MovementType.OUT, 6),
            (PAPER, MovementType.IN, 20),
            (MARKER, MovementType.OUT, 24),
            (PAPER, MovementType.OUT, 85),
        ]
        for key, direction, quantity in sequence:
            self.post(key, direction, quantity)

        totals = reconcile_stock_totals(StockMovement.objects.all())
        for item in StockItem.objects.all():
            self.assertEqual(totals[item.id].resulting_quantity, item.current_quantity)

    def test_apply_reconciliation_repairs_drifted_balance(self):
        paper = self.post(PAPER, MovementType.IN, 80).item
        self.post(PAPER, MovementType.OUT, 15)
        StockItem.objects.filter(pk=paper.pk).update(current_quantity=3)
        orphan = StockItem.objects.create(name="Agrafes", category="Fournitures de bureau", unit="boîte", current_quantity=7)

        totals = apply_stock_reconciliation()

        paper.refresh_from_db()
        orphan.refresh_from_db()
        self.assertEqual(paper.current_quantity, 65)
        self.assertEqual(totals[paper.id].resulting_quantity, 65)
        self.assertEqual(orphan.current_quantity, 0)


class StockCommandTests(LedgerTestBase):
    def test_stock_check_clean(self):
        self.post(PAPER, MovementType.IN, 12)
        out = StringIO()
        call_command("stock_check", stdout=out)
        self.assertIn("clean", out.getvalue())

    def test_stock_check_reports_and_fixes_mismatch(self):
        item = self.post(PAPER, MovementType.IN, 12).item
        StockItem.objects.filter(pk=item.pk).update(current_quantity=20)

        with self.assertRaises(CommandError):
            call_command("stock_check", stdout=StringIO())

        call_command("stock_check", "--fix", stdout=StringIO())
        item.refresh_from_db()
        self.assertEqual(item.current_quantity, 12)

    def test_seed_procurement_demo_is_idempotent(self):
        call_command("seed_procurement_demo", stdout=StringIO())
        call_command("seed_procurement_demo", stdout=StringIO())

        self.assertEqual(StockItem.objects.get(name="Ramette A4").current_quantity, 65)
        self.assertEqual(StockItem.objects.get(name="Marqueur tableau").current_quantity, 24)
        self.assertEqual(StockMovement.objects.count(), 4)
        self.assertEqual(NeedRequest.objects.filter(status=NeedStatus.APPROVED).count(), 1)
        self.assertEqual(NeedRequest.objects.filter(status=NeedStatus.SUBMITTED).count(), 1)
