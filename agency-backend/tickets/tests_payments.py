from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from airlines.models import Airline, CommissionRule
from tickets.metrics import calculate_ticket_metrics
from tickets.models import PaymentMethod, PaymentStatus, TicketSale
from tickets.services import PaymentExceedsAmount, compute_payment_status, record_payment


class PaymentStatusTests(TestCase):
    def test_status_thresholds(self):
        self.assertEqual(compute_payment_status(Decimal("500"), Decimal("0")), PaymentStatus.UNPAID)
        self.assertEqual(compute_payment_status(Decimal("500"), Decimal("200")), PaymentStatus.PARTIAL)
        self.assertEqual(compute_payment_status(Decimal("500"), Decimal("500")), PaymentStatus.PAID)
        self.assertEqual(compute_payment_status(Decimal("500"), Decimal("499.99995")), PaymentStatus.PAID)


class RecordPaymentTests(TestCase):
    def setUp(self):
        self.cashier = get_user_model().objects.create_user(username="caisse", password="test-pass")
        airline = Airline.objects.create(code="AF", name="Air France")
        CommissionRule.objects.create(airline=airline, system_rate_percent=Decimal("7.5"))
        self.ticket = TicketSale.objects.create(
            ticket_number="TK-PAY-1",
            customer_name="Client",
            route="BZV-CDG",
            travel_date=timezone.now() + timedelta(days=3),
            amount=Decimal("500.00"),
            airline=airline,
            seller=self.cashier,
        )

    def test_partial_then_full_payment(self):
        result = record_payment(self.ticket.id, Decimal("200"), method=PaymentMethod.CASH, performed_by=self.cashier)
        self.assertEqual(result.ticket.payment_status, PaymentStatus.PARTIAL)
        self.assertEqual(result.paid_total, Decimal("200"))
        self.assertEqual(result.payment.recorded_by, self.cashier)

        result = record_payment(self.ticket.id, Decimal("300"), method=PaymentMethod.MOBILE_MONEY, reference="MM-42")
        self.assertEqual(result.ticket.payment_status, PaymentStatus.PAID)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.ticket.payments.count(), 2)

    def test_overpayment_is_rejected(self):
        record_payment(self.ticket.id, Decimal("450"), method=PaymentMethod.CASH)
        with self.assertRaises(PaymentExceedsAmount):
            record_payment(self.ticket.id, Decimal("60"), method=PaymentMethod.CASH)

        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.payments.count(), 1)
        self.assertEqual(self.ticket.payment_status, PaymentStatus.PARTIAL)

    def test_unknown_ticket(self):
        with self.assertRaises(TicketSale.DoesNotExist):
            record_payment(999999, Decimal("10"), method=PaymentMethod.CASH)


class TicketMetricsTests(TestCase):
    def _ticket(self, amount, status, commission=None, rate="0"):
        return TicketSale(
            amount=Decimal(amount),
            payment_status=status,
            commission_amount=None if commission is None else Decimal(commission),
            commission_rate_used=Decimal(rate),
        )

    def test_metrics(self):
        tickets = [
            self._ticket("1000", PaymentStatus.PAID, commission="70"),
            self._ticket("600", PaymentStatus.PARTIAL, rate="5"),
            self._ticket("400", PaymentStatus.UNPAID, commission="10"),
        ]
        metrics = calculate_ticket_metrics(tickets)

        self.assertEqual(metrics["total_sales"], Decimal("2000"))
        self.assertEqual(metrics["gross_commission"], Decimal("110"))
        self.assertEqual(metrics["paid_ratio"], Decimal("0.65"))
        self.assertEqual(metrics["net_commission"], Decimal("71.5"))

    def test_empty(self):
        metrics = calculate_ticket_metrics([])
        self.assertEqual(metrics["paid_ratio"], Decimal("0"))
        self.assertEqual(metrics["net_commission"], Decimal("0"))
