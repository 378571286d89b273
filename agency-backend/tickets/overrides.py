# tickets/overrides.py
"""
Per-airline commission overrides.

A few airlines are paid on hard-coded formulas that ignore the matched
catalog rule's own rate. Each formula is one OverrideStrategy, looked up by
airline code; every other airline goes through GenericStrategy, i.e. the
catalog rule plus the agency markup.
"""
from dataclasses import dataclass
from decimal import Decimal

from django.db.models import Q

from airlines.choices import CommissionMode
from airlines.commission import CommissionResult, compute_commission_amount
from .models import TicketSale

ZERO = Decimal("0")
HUNDRED = Decimal("100")

AIR_FAST_BONUS_CYCLE = 13


@dataclass
class CommissionContext:
    ticket: object
    rule: object
    base_amount: Decimal
    input_amount: Decimal
    agency_markup: Decimal


def _rate_on_base(commission: Decimal, base: Decimal) -> Decimal:
    return (commission / base) * HUNDRED if base > 0 else ZERO


class OverrideStrategy:
    code = None
    requires_base_fare = False

    def compute(self, ctx: CommissionContext) -> CommissionResult:
        raise NotImplementedError


class GenericStrategy(OverrideStrategy):
    """
    Catalog rule result; outside AFTER_DEPOSIT the agency markup is added and
    the rate is restated against the commission base.
    """

    def compute(self, ctx):
        result = compute_commission_amount(ctx.input_amount, ctx.rule, 0)
        if ctx.rule.commission_mode == CommissionMode.AFTER_DEPOSIT:
            return result
        amount = result.amount + ctx.agency_markup
        return CommissionResult(
            rate_percent=_rate_on_base(amount, ctx.base_amount),
            amount=amount,
            mode_applied=result.mode_applied,
        )


class FixedBaseRateStrategy(OverrideStrategy):
    requires_base_fare = True

    def __init__(self, code, rate_percent):
        self.code = code
        self.rate_percent = Decimal(rate_percent)

    def compute(self, ctx):
        return CommissionResult(
            rate_percent=self.rate_percent,
            amount=ctx.base_amount * self.rate_percent / HUNDRED,
            mode_applied=CommissionMode.IMMEDIATE,
        )


class BaseRatePlusMarkupStrategy(OverrideStrategy):
    requires_base_fare = True

    def __init__(self, code, rate_percent):
        self.code = code
        self.rate_percent = Decimal(rate_percent)

    def compute(self, ctx):
        amount = ctx.base_amount * self.rate_percent / HUNDRED + ctx.agency_markup
        return CommissionResult(
            rate_percent=_rate_on_base(amount, ctx.base_amount),
            amount=amount,
            mode_applied=CommissionMode.SYSTEM_PLUS_MARKUP,
        )


def airline_sale_order(ticket) -> int:
    """
    1-indexed chronological position of a saved ticket among its airline's
    sales, ordered by sold_at then id.
    """
    return TicketSale.objects.filter(airline_id=ticket.airline_id).filter(
        Q(sold_at__lt=ticket.sold_at) | Q(sold_at=ticket.sold_at, id__lte=ticket.id)
    ).count()


class EveryNthSaleStrategy(OverrideStrategy):
    """Every Nth sale of the airline earns its full amount; the others earn nothing."""

    def __init__(self, code, cycle):
        self.code = code
        self.cycle = cycle

    def compute(self, ctx):
        order = airline_sale_order(ctx.ticket)
        if order % self.cycle == 0:
            return CommissionResult(HUNDRED, ctx.ticket.amount, CommissionMode.IMMEDIATE)
        return CommissionResult(ZERO, ZERO, CommissionMode.IMMEDIATE)


GENERIC = GenericStrategy()

OVERRIDE_STRATEGIES = {
    strategy.code: strategy
    for strategy in (
        FixedBaseRateStrategy("ACG", "5"),
        FixedBaseRateStrategy("MGB", "9"),
        BaseRatePlusMarkupStrategy("ET", "5"),
        EveryNthSaleStrategy("FST", AIR_FAST_BONUS_CYCLE),
    )
}


def strategy_for_airline(code) -> OverrideStrategy:
    return OVERRIDE_STRATEGIES.get((code or "").strip().upper(), GENERIC)
