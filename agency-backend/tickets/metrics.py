# tickets/metrics.py
from decimal import Decimal

from .models import PaymentStatus

ZERO = Decimal("0")
HALF = Decimal("0.5")
HUNDRED = Decimal("100")


def gross_commission_of(ticket) -> Decimal:
    if ticket.commission_amount is not None:
        return ticket.commission_amount
    return ticket.amount * (ticket.commission_rate_used or ZERO) / HUNDRED


def calculate_ticket_metrics(tickets):
    """
    Sales KPIs over a list of tickets. A partially paid sale counts for half
    of its amount in the paid ratio.
    """
    tickets = list(tickets)
    total_sales = sum((t.amount for t in tickets), ZERO)
    gross_commission = sum((gross_commission_of(t) for t in tickets), ZERO)
    paid_sales = sum((t.amount for t in tickets if t.payment_status == PaymentStatus.PAID), ZERO)
    partial_sales = sum((t.amount for t in tickets if t.payment_status == PaymentStatus.PARTIAL), ZERO)

    paid_ratio = ZERO if total_sales == 0 else (paid_sales + partial_sales * HALF) / total_sales
    return {
        "total_sales": total_sales,
        "gross_commission": gross_commission,
        "net_commission": gross_commission * paid_ratio,
        "paid_ratio": paid_ratio,
    }
