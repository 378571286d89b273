# airlines/catalog.py
"""
Fixed airline catalog. ensure_airline_catalog() upserts every airline and
creates a catalog rule only when no identical active rule exists, so it is
safe to call before every ticket write.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from .choices import CommissionMode
from .models import Airline, CommissionRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogRule:
    rate_percent: Decimal
    commission_mode: str
    system_rate_percent: Decimal
    markup_rate_percent: Decimal
    default_base_fare_ratio: Decimal
    route_pattern: str = "*"
    travel_class: Optional[str] = None
    deposit_stock_target_amount: Optional[Decimal] = None
    batch_commission_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class CatalogAirline:
    code: str
    name: str
    rules: List[CatalogRule]


def _markup_only(markup, ratio="0.55"):
    return CatalogRule(
        rate_percent=Decimal("0"),
        commission_mode=CommissionMode.MARKUP_ONLY,
        system_rate_percent=Decimal("0"),
        markup_rate_percent=Decimal(markup),
        default_base_fare_ratio=Decimal(ratio),
    )


IMMEDIATE_DEFAULT = CatalogRule(
    rate_percent=Decimal("7"),
    commission_mode=CommissionMode.IMMEDIATE,
    system_rate_percent=Decimal("7"),
    markup_rate_percent=Decimal("0"),
    default_base_fare_ratio=Decimal("0.6"),
)

AIRLINE_CATALOG = [
    CatalogAirline("CAA", "CAA", [
        CatalogRule(
            rate_percent=Decimal("0"),
            commission_mode=CommissionMode.AFTER_DEPOSIT,
            system_rate_percent=Decimal("0"),
            markup_rate_percent=Decimal("0"),
            default_base_fare_ratio=Decimal("1"),
            deposit_stock_target_amount=Decimal("10000"),
            batch_commission_amount=Decimal("650"),
        ),
    ]),
    CatalogAirline("ACG", "Air Congo", [
        CatalogRule(Decimal("5"), CommissionMode.IMMEDIATE, Decimal("5"), Decimal("0"), Decimal("0.62")),
    ]),
    CatalogAirline("MGB", "Mont Gabaon", [
        CatalogRule(Decimal("5"), CommissionMode.IMMEDIATE, Decimal("5"), Decimal("0"), Decimal("0.62")),
    ]),
    CatalogAirline("FST", "Air Fast", [_markup_only("6")]),
    CatalogAirline("ET", "Ethiopian Airlines", [
        CatalogRule(Decimal("5"), CommissionMode.SYSTEM_PLUS_MARKUP, Decimal("5"), Decimal("0"), Decimal("0.55")),
    ]),
    CatalogAirline("KQ", "Kenya Airways", [
        CatalogRule(Decimal("5"), CommissionMode.SYSTEM_PLUS_MARKUP, Decimal("5"), Decimal("2"), Decimal("0.55")),
    ]),
    CatalogAirline("UR", "Uganda Air", [_markup_only("5")]),
    CatalogAirline("TC", "Air Tanzania", [_markup_only("5")]),
    CatalogAirline("AF", "Air France", [
        CatalogRule(Decimal("7.5"), CommissionMode.IMMEDIATE, Decimal("7.5"), Decimal("0"), Decimal("0.6")),
    ]),
    CatalogAirline("KP", "ASKY", [_markup_only("5")]),
    CatalogAirline("WB", "Rwanda Air", [_markup_only("5")]),
    CatalogAirline("DKT", "Dakota", [_markup_only("5")]),
    CatalogAirline("SN", "Brussels Airlines", [IMMEDIATE_DEFAULT]),
    CatalogAirline("TK", "Turkish Airlines", [IMMEDIATE_DEFAULT]),
    CatalogAirline("QR", "Qatar Airways", [IMMEDIATE_DEFAULT]),
]


def _same_rule(existing: CommissionRule, rule: CatalogRule) -> bool:
    return (
        existing.route_pattern == rule.route_pattern
        and existing.travel_class == rule.travel_class
        and existing.commission_mode == rule.commission_mode
        and existing.system_rate_percent == rule.system_rate_percent
        and existing.markup_rate_percent == rule.markup_rate_percent
        and existing.deposit_stock_target_amount == rule.deposit_stock_target_amount
        and existing.batch_commission_amount == rule.batch_commission_amount
        and existing.default_base_fare_ratio == rule.default_base_fare_ratio
    )


def ensure_airline_catalog(catalog=None) -> int:
    """
    Returns the number of rules created.
    """
    catalog = AIRLINE_CATALOG if catalog is None else catalog
    starts_at = timezone.now()
    created = 0

    with transaction.atomic():
        for entry in catalog:
            airline, _ = Airline.objects.update_or_create(code=entry.code, defaults={"name": entry.name})
            existing_rules = list(CommissionRule.objects.filter(airline=airline, is_active=True))

            for rule in entry.rules:
                if any(_same_rule(existing, rule) for existing in existing_rules):
                    continue
                new_rule = CommissionRule.objects.create(
                    airline=airline,
                    rate_percent=rule.rate_percent,
                    route_pattern=rule.route_pattern,
                    travel_class=rule.travel_class,
                    commission_mode=rule.commission_mode,
                    system_rate_percent=rule.system_rate_percent,
                    markup_rate_percent=rule.markup_rate_percent,
                    default_base_fare_ratio=rule.default_base_fare_ratio,
                    deposit_stock_target_amount=rule.deposit_stock_target_amount,
                    batch_commission_amount=rule.batch_commission_amount,
                    starts_at=starts_at,
                    is_active=True,
                )
                existing_rules.append(new_rule)
                created += 1

    if created:
        logger.info("Airline catalog seeded: %s commission rule(s) created", created)
    return created
