"""
Seed demo procurement data: one approved and one submitted need request,
two stock items with their movements, then recompute balances.

Usage:
    python manage.py seed_procurement_demo

Safe to run repeatedly: records are matched on natural keys.
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from common.roles import AgencyRole, JobTitle
from procurement.ledger import apply_stock_reconciliation
from procurement.models import MovementType, NeedRequest, NeedStatus, StockItem, StockMovement
from staff.models import StaffProfile

OFFICE_SUPPLIES = "Fournitures de bureau"

DEMO_MOVEMENTS = [
    # (item, unit, type, quantity, justification, reference_doc, linked to approved need)
    ("Ramette A4", "paquet", MovementType.IN, 80, "Réception achat validé consommables bureau T1", "BL-APPRO-001", True),
    ("Ramette A4", "paquet", MovementType.OUT, 15, "Sortie pour impression dossiers administratifs", "BS-ADMIN-002", False),
    ("Marqueur tableau", "pièce", MovementType.IN, 30, "Entrée stock marqueurs pour salles de briefing", "BL-APPRO-003", True),
    ("Marqueur tableau", "pièce", MovementType.OUT, 6, "Dotation kits formation commerciale", "BS-FORM-001", False),
]


def _demo_user(username, role, job_title, first_name):
    user, created = get_user_model().objects.get_or_create(
        username=username, defaults={"first_name": first_name}
    )
    if created:
        user.set_unusable_password()
        user.save(update_fields=["password"])
    StaffProfile.objects.update_or_create(user=user, defaults={"role": role, "job_title": job_title, "is_active": True})
    return user


class Command(BaseCommand):
    help = "Seed demo need requests, stock items and movements"

    def handle(self, *args, **options):
        now = timezone.now()
        with transaction.atomic():
            officer = _demo_user(
                "demo.appro", AgencyRole.EMPLOYEE, JobTitle.APPROVISIONNEMENT_MARKETING, "Approvisionnement"
            )
            director = _demo_user("demo.direction", AgencyRole.ADMIN, JobTitle.DIRECTION_GENERALE, "Direction")

            approved, _ = NeedRequest.objects.update_or_create(
                title="Achat consommables bureau T1",
                requester=officer,
                defaults={
                    "category": OFFICE_SUPPLIES,
                    "details": "Ramettes A4, stylos, chemises cartonnées, classeurs.",
                    "quantity": 40,
                    "unit": "lot",
                    "status": NeedStatus.APPROVED,
                    "reviewed_by": director,
                    "review_comment": "Besoin validé pour continuité des opérations.",
                    "submitted_at": now,
                    "reviewed_at": now,
                    "approved_at": now,
                    "sealed_at": now,
                },
            )
            NeedRequest.objects.update_or_create(
                title="Renouvellement kits imprimante",
                requester=officer,
                defaults={
                    "category": "Consommables IT",
                    "details": "Toners et tambours pour imprimantes administration et caisse.",
                    "quantity": 12,
                    "unit": "pièce",
                    "status": NeedStatus.SUBMITTED,
                    "submitted_at": now,
                    "reviewed_by": None,
                    "reviewed_at": None,
                    "approved_at": None,
                    "sealed_at": None,
                },
            )

            for name, unit, movement_type, quantity, justification, reference_doc, linked in DEMO_MOVEMENTS:
                item, _ = StockItem.objects.get_or_create(name=name, category=OFFICE_SUPPLIES, unit=unit)
                StockMovement.objects.update_or_create(
                    stock_item=item,
                    movement_type=movement_type,
                    reference_doc=reference_doc,
                    defaults={
                        "quantity": quantity,
                        "justification": justification,
                        "performed_by": officer,
                        "need_request": approved if linked else None,
                    },
                )

        totals = apply_stock_reconciliation()
        for item in StockItem.objects.filter(id__in=totals.keys()).order_by("name"):
            self.stdout.write(f"{item.name}: {item.current_quantity} {item.unit}")
        self.stdout.write(self.style.SUCCESS(f"Demo procurement data ready (approved need {approved.reference})"))
