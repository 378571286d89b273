# airlines/commission.py
"""
Commission rule selection and commission computation.

Both entry points are pure: they read the rule attributes they are given and
never touch the database. Callers that apply an AFTER_DEPOSIT result are
responsible for persisting the consumed-amount increment under a row lock
(see tickets.services).
"""
import math
import re
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Iterable, Optional

from django.utils import timezone

from .choices import CommissionMode

ZERO = Decimal("0")
HUNDRED = Decimal("100")

CLASS_FILTER_SCORE = 100


class CommissionError(Exception):
    """Base exception for commission calculation"""
    pass


class NoApplicableRule(CommissionError):
    """Raised when no active rule matches the airline, route and travel class"""

    def __init__(self, message="Aucune règle de commission active trouvée pour cette compagnie, itinéraire et classe."):
        super().__init__(message)


@dataclass(frozen=True)
class ResolvedRates:
    system_rate: Decimal
    markup_rate: Decimal


@dataclass(frozen=True)
class CommissionResult:
    rate_percent: Decimal
    amount: Decimal
    mode_applied: str


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def resolve_rates(rule, extra_markup_percent=0) -> ResolvedRates:
    """
    system rate falls back to the legacy flat rate when unset;
    a negative extra markup is ignored.
    """
    system_rate = _dec(rule.system_rate_percent)
    if system_rate <= 0:
        system_rate = _dec(rule.rate_percent)
    markup_rate = _dec(rule.markup_rate_percent) + max(ZERO, _dec(extra_markup_percent))
    return ResolvedRates(system_rate=system_rate, markup_rate=markup_rate)


def normalize_route(value: str) -> str:
    return (value or "").strip().upper()


@lru_cache(maxsize=512)
def _pattern_regex(pattern: str):
    escaped = re.escape(pattern.strip().upper()).replace(r"\*", ".*")
    return re.compile(f"^{escaped}$")


def route_matches(route: str, route_pattern: Optional[str]) -> bool:
    if not route_pattern or route_pattern.strip() == "*":
        return True
    return _pattern_regex(route_pattern).match(normalize_route(route)) is not None


def rule_score(rule) -> int:
    class_score = CLASS_FILTER_SCORE if rule.travel_class else 0
    pattern = (rule.route_pattern or "*").strip()
    route_score = 0 if pattern == "*" else len(pattern.replace("*", ""))
    return class_score + route_score


def is_rule_eligible(rule, route: str, travel_class, now) -> bool:
    if not rule.is_active:
        return False
    if rule.starts_at > now:
        return False
    if rule.ends_at and rule.ends_at < now:
        return False
    if rule.travel_class and rule.travel_class != travel_class:
        return False
    return route_matches(route, rule.route_pattern)


def pick_commission_rule(rules: Iterable, route: str, travel_class, now=None):
    """
    Return the single most specific eligible rule, or None.

    Specificity: a travel-class filter outweighs any route pattern; among
    equals, the longer literal part of the pattern wins, then the latest
    starts_at.
    """
    now = now or timezone.now()
    eligible = [rule for rule in rules if is_rule_eligible(rule, route, travel_class, now)]
    if not eligible:
        return None
    return max(eligible, key=lambda rule: (rule_score(rule), rule.starts_at))


def _percent_of(amount: Decimal, rate_percent: Decimal) -> Decimal:
    return amount * (rate_percent / HUNDRED)


def compute_commission_amount(amount, rule, extra_markup_percent=0) -> CommissionResult:
    amount = _dec(amount)
    rates = resolve_rates(rule, extra_markup_percent)
    mode = rule.commission_mode

    if mode == CommissionMode.AFTER_DEPOSIT:
        target = _dec(rule.deposit_stock_target_amount)
        batch_amount = _dec(rule.batch_commission_amount)
        if target <= 0 or batch_amount <= 0:
            return CommissionResult(ZERO, ZERO, CommissionMode.AFTER_DEPOSIT)

        consumed_before = _dec(rule.deposit_stock_consumed_amount)
        consumed_after = consumed_before + amount
        batches_before = math.floor(consumed_before / target)
        batches_after = math.floor(consumed_after / target)
        new_batches = max(0, batches_after - batches_before)
        commission = batch_amount * new_batches
        rate_percent = (commission / amount) * HUNDRED if amount > 0 else ZERO
        return CommissionResult(rate_percent, commission, CommissionMode.AFTER_DEPOSIT)

    if mode == CommissionMode.SYSTEM_PLUS_MARKUP:
        rate_percent = rates.system_rate + rates.markup_rate
        return CommissionResult(rate_percent, _percent_of(amount, rate_percent), CommissionMode.SYSTEM_PLUS_MARKUP)

    if mode == CommissionMode.MARKUP_ONLY:
        rate_percent = rates.markup_rate
        return CommissionResult(rate_percent, _percent_of(amount, rate_percent), CommissionMode.MARKUP_ONLY)

    rate_percent = rates.system_rate
    return CommissionResult(rate_percent, _percent_of(amount, rate_percent), CommissionMode.IMMEDIATE)
