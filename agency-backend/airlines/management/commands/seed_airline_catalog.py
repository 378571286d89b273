"""
Management command to seed the fixed airline catalog and its commission rules.

Usage:
    python manage.py seed_airline_catalog
"""
from django.core.management.base import BaseCommand

from airlines.catalog import AIRLINE_CATALOG, ensure_airline_catalog


class Command(BaseCommand):
    help = "Upsert the airline catalog and create missing commission rules"

    def handle(self, *args, **options):
        created = ensure_airline_catalog()
        self.stdout.write(
            self.style.SUCCESS(
                f"{len(AIRLINE_CATALOG)} airline(s) checked, {created} commission rule(s) created"
            )
        )
