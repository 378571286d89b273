# tickets/services.py
"""
Ticket write flows: commission derivation, create/update/delete, payments.

Every write runs in one transaction. The AFTER_DEPOSIT rule row is locked
before its consumed counter is read, so concurrent sales on the same rule
serialize on that row.
"""
import copy
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from airlines.choices import CommissionMode
from airlines.commission import CommissionResult, NoApplicableRule, pick_commission_rule
from airlines.models import CommissionRule
from common.models import AuditLog
from .models import CommissionCalculationStatus, Payment, PaymentStatus, TicketSale
from .overrides import CommissionContext, strategy_for_airline

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")
ZERO = Decimal("0")

BASE_FARE_HISTORY_SIZE = 80
BASE_FARE_RATIO_MIN = Decimal("0.20")
BASE_FARE_RATIO_MAX = Decimal("0.95")
DEFAULT_BASE_FARE_RATIO = Decimal("0.6")
PAYMENT_TOLERANCE = Decimal("0.0001")


class TicketError(Exception):
    """Base exception for ticket operations"""
    pass


class MissingRequiredBaseFare(TicketError):
    """Raised when an override airline's formula needs a base fare that was not supplied"""

    def __init__(self, airline_code):
        self.airline_code = airline_code
        super().__init__(
            f"Le BaseFare est obligatoire pour calculer la commission de la compagnie {airline_code}."
        )


class PaymentExceedsAmount(TicketError):
    """Raised when a payment would take the paid total above the ticket amount"""
    pass


def money(q: Decimal) -> Decimal:
    return q.quantize(CENTS, rounding=ROUND_HALF_UP)


def rate(q: Decimal) -> Decimal:
    return q.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def estimate_base_fare_ratio(ticket, rule) -> Decimal:
    """
    Mean base/amount of the airline's latest FINAL sales (this one excluded),
    or the rule's default ratio when there is no history; clamped either way.
    """
    history = (
        TicketSale.objects.filter(
            airline_id=ticket.airline_id,
            base_fare_amount__isnull=False,
            amount__gt=0,
            commission_calculation_status=CommissionCalculationStatus.FINAL,
        )
        .exclude(id=ticket.id)
        .order_by("-sold_at", "-id")
        .values_list("amount", "base_fare_amount")[:BASE_FARE_HISTORY_SIZE]
    )
    history = list(history)
    if history:
        total = sum((_dec(base) / _dec(amount) for amount, base in history), ZERO)
        return clamp(total / len(history), BASE_FARE_RATIO_MIN, BASE_FARE_RATIO_MAX)

    default_ratio = rule.default_base_fare_ratio
    if default_ratio is None:
        default_ratio = DEFAULT_BASE_FARE_RATIO
    return clamp(_dec(default_ratio), BASE_FARE_RATIO_MIN, BASE_FARE_RATIO_MAX)


def _active_rules(airline_id):
    return list(CommissionRule.objects.filter(airline_id=airline_id, is_active=True))


def apply_ticket_commission(ticket: TicketSale) -> CommissionResult:
    """
    Derive every commission_* field of a saved ticket in place (not saved).
    Must run inside transaction.atomic(); may bump the AFTER_DEPOSIT counter.

    Raises:
        NoApplicableRule: no active rule matches airline, route and class
        MissingRequiredBaseFare: override airline without a base fare
    """
    airline = ticket.airline
    rule = pick_commission_rule(_active_rules(airline.id), ticket.route, ticket.travel_class)
    if rule is None:
        raise NoApplicableRule()

    strategy = strategy_for_airline(airline.code)
    if strategy.requires_base_fare and not ticket.base_fare_amount:
        raise MissingRequiredBaseFare(airline.code)

    is_after_deposit = rule.commission_mode == CommissionMode.AFTER_DEPOSIT
    amount = _dec(ticket.amount)

    if not is_after_deposit and not ticket.base_fare_amount:
        base_amount = amount * estimate_base_fare_ratio(ticket, rule)
        status = CommissionCalculationStatus.ESTIMATED
    else:
        base_amount = _dec(ticket.base_fare_amount)
        status = CommissionCalculationStatus.FINAL

    rule_for_engine = rule
    if is_after_deposit:
        rule = CommissionRule.objects.select_for_update().get(pk=rule.pk)
        counted_here = ticket.commission_rule_id == rule.pk and ticket.deposit_consumed_before is not None
        if counted_here:
            already_counted = _dec(ticket.deposit_counted_amount)
            consumed_before = _dec(ticket.deposit_consumed_before)
        else:
            already_counted = ZERO
            consumed_before = _dec(rule.deposit_stock_consumed_amount)
        # Engine sees the counter as it stood when this sale was first counted
        rule_for_engine = copy.copy(rule)
        rule_for_engine.deposit_stock_consumed_amount = consumed_before

    ctx = CommissionContext(
        ticket=ticket,
        rule=rule_for_engine,
        base_amount=base_amount,
        input_amount=amount if is_after_deposit else base_amount,
        agency_markup=_dec(ticket.agency_markup_amount),
    )
    result = strategy.compute(ctx)
    if strategy.code:
        logger.info(
            "Commission override %s applied to ticket %s: %s (%s%%)",
            strategy.code, ticket.ticket_number, result.amount, result.rate_percent,
        )

    if is_after_deposit:
        growth = max(ZERO, amount - already_counted)
        if growth > 0:
            rule.deposit_stock_consumed_amount = _dec(rule.deposit_stock_consumed_amount) + growth
            rule.save(update_fields=["deposit_stock_consumed_amount", "updated_at"])
        ticket.deposit_counted_amount = max(already_counted, amount)
        ticket.deposit_consumed_before = consumed_before
    else:
        ticket.deposit_counted_amount = ZERO
        ticket.deposit_consumed_before = None

    ticket.commission_rule = rule
    ticket.commission_base_amount = money(base_amount)
    ticket.commission_calculation_status = status
    ticket.commission_rate_used = rate(result.rate_percent)
    ticket.commission_amount = money(result.amount)
    ticket.commission_mode_applied = result.mode_applied
    return result


COMMISSION_FIELDS = [
    "commission_rule",
    "commission_base_amount",
    "commission_calculation_status",
    "commission_rate_used",
    "commission_amount",
    "commission_mode_applied",
    "deposit_counted_amount",
    "deposit_consumed_before",
]

EDITABLE_FIELDS = [
    "ticket_number",
    "customer_name",
    "route",
    "travel_class",
    "travel_date",
    "sold_at",
    "amount",
    "base_fare_amount",
    "agency_markup_amount",
    "airline",
    "seller",
    "payment_status",
    "notes",
]


def create_ticket(*, performed_by=None, **fields) -> TicketSale:
    """
    Create a ticket and derive its commission in the same transaction.
    The row is inserted first so the sale has an id and a chronological rank.
    """
    fields.setdefault("agency_markup_amount", ZERO)
    with transaction.atomic():
        ticket = TicketSale(currency=settings.AGENCY_TICKET_CURRENCY, **fields)
        ticket.save()
        apply_ticket_commission(ticket)
        ticket.save(update_fields=COMMISSION_FIELDS + ["updated_at"])

    AuditLog.record(
        action="TICKET_CREATE",
        user=performed_by,
        metadata={
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "airline": ticket.airline.code,
            "commission_amount": str(ticket.commission_amount),
            "commission_mode": ticket.commission_mode_applied,
        },
    )
    return ticket


def update_ticket(ticket: TicketSale, changes: dict, *, performed_by=None) -> TicketSale:
    """
    Apply client changes, then re-derive the commission. Fields missing from
    `changes` keep their stored value.
    """
    with transaction.atomic():
        ticket = TicketSale.objects.select_for_update().select_related("airline").get(pk=ticket.pk)
        for field, value in changes.items():
            if field not in EDITABLE_FIELDS:
                continue
            if value is None and field in ("base_fare_amount", "agency_markup_amount"):
                # absent optional amounts keep the stored value
                continue
            setattr(ticket, field, value)
        ticket.currency = settings.AGENCY_TICKET_CURRENCY
        apply_ticket_commission(ticket)
        ticket.save()

    AuditLog.record(
        action="TICKET_UPDATE",
        user=performed_by,
        metadata={
            "ticket_id": ticket.id,
            "changed": sorted(k for k in changes if k in EDITABLE_FIELDS),
            "commission_amount": str(ticket.commission_amount),
        },
    )
    return ticket


def delete_ticket(ticket: TicketSale, *, performed_by=None) -> None:
    """
    AFTER_DEPOSIT counters are left untouched: they never decrease.
    """
    ticket_id, ticket_number = ticket.id, ticket.ticket_number
    ticket.delete()
    AuditLog.record(
        action="TICKET_DELETE",
        user=performed_by,
        severity="warning",
        metadata={"ticket_id": ticket_id, "ticket_number": ticket_number},
    )


def compute_payment_status(total_due, total_paid) -> str:
    total_due, total_paid = _dec(total_due), _dec(total_paid)
    if total_paid <= 0:
        return PaymentStatus.UNPAID
    if total_paid + PAYMENT_TOLERANCE >= total_due:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


@dataclass
class PaymentResult:
    payment: Payment
    ticket: TicketSale
    paid_total: Decimal


def record_payment(ticket_id, amount, *, method, reference="", paid_at=None, performed_by=None) -> PaymentResult:
    """
    Raises:
        TicketSale.DoesNotExist: unknown ticket
        PaymentExceedsAmount: paid total would exceed the ticket amount
    """
    amount = _dec(amount)
    with transaction.atomic():
        ticket = TicketSale.objects.select_for_update().get(pk=ticket_id)
        already_paid = sum((p.amount for p in ticket.payments.all()), ZERO)
        next_paid_total = already_paid + amount
        if next_paid_total > ticket.amount + PAYMENT_TOLERANCE:
            raise PaymentExceedsAmount("Le paiement dépasse le montant facturé du billet.")

        payment = Payment.objects.create(
            ticket=ticket,
            amount=amount,
            method=method,
            reference=reference or "",
            paid_at=paid_at or timezone.now(),
            recorded_by=performed_by if getattr(performed_by, "is_authenticated", False) else None,
        )
        ticket.payment_status = compute_payment_status(ticket.amount, next_paid_total)
        ticket.currency = settings.AGENCY_TICKET_CURRENCY
        ticket.save(update_fields=["payment_status", "currency", "updated_at"])

    AuditLog.record(
        action="TICKET_PAYMENT",
        user=performed_by,
        metadata={"ticket_id": ticket.id, "payment_id": payment.id, "amount": str(amount)},
    )
    return PaymentResult(payment=payment, ticket=ticket, paid_total=next_paid_total)
