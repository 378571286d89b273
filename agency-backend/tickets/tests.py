from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from airlines.choices import CommissionMode, TravelClass
from airlines.commission import NoApplicableRule
from airlines.models import Airline, CommissionRule
from common.models import AuditLog
from tickets.models import CommissionCalculationStatus, TicketSale
from tickets.services import MissingRequiredBaseFare, create_ticket, estimate_base_fare_ratio, update_ticket


class TicketCommissionTestBase(TestCase):
    def setUp(self):
        self.seller = get_user_model().objects.create_user(username="seller", password="test-pass")
        self.now = timezone.now()
        self._seq = 0

    def make_airline(self, code, mode=CommissionMode.IMMEDIATE, **rule_fields):
        airline = Airline.objects.create(code=code, name=f"Airline {code}")
        rule_fields.setdefault("starts_at", self.now - timedelta(days=30))
        rule = CommissionRule.objects.create(airline=airline, commission_mode=mode, **rule_fields)
        return airline, rule

    def sell(self, airline, amount, **fields):
        self._seq += 1
        fields.setdefault("sold_at", self.now - timedelta(hours=1) + timedelta(minutes=self._seq))
        return create_ticket(
            ticket_number=f"TK-{airline.code}-{self._seq:04d}",
            customer_name="Client Test",
            route=fields.pop("route", "BZV-PNR"),
            travel_class=fields.pop("travel_class", TravelClass.ECONOMY),
            travel_date=self.now + timedelta(days=10),
            amount=Decimal(amount),
            airline=airline,
            seller=self.seller,
            **fields,
        )


class OverrideAirlineTests(TicketCommissionTestBase):
    def test_air_congo_pays_five_percent_of_base_fare(self):
        airline, _ = self.make_airline("ACG", system_rate_percent=Decimal("5"))
        ticket = self.sell(airline, "500.00", base_fare_amount=Decimal("400.00"), agency_markup_amount=Decimal("30"))
        ticket.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("20.00"))
        self.assertEqual(ticket.commission_rate_used, Decimal("5"))
        self.assertEqual(ticket.commission_mode_applied, CommissionMode.IMMEDIATE)
        self.assertEqual(ticket.commission_calculation_status, CommissionCalculationStatus.FINAL)
        self.assertEqual(ticket.commission_base_amount, Decimal("400.00"))

    def test_mont_gabaon_pays_nine_percent_of_base_fare(self):
        # Catalog rate is ignored for override airlines
        airline, _ = self.make_airline("MGB", system_rate_percent=Decimal("5"))
        ticket = self.sell(airline, "1200.00", base_fare_amount=Decimal("1000.00"))
        ticket.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("90.00"))
        self.assertEqual(ticket.commission_rate_used, Decimal("9"))

    def test_ethiopian_adds_agency_markup_to_base_commission(self):
        airline, _ = self.make_airline(
            "ET", mode=CommissionMode.SYSTEM_PLUS_MARKUP, system_rate_percent=Decimal("5")
        )
        ticket = self.sell(
            airline, "1300.00", base_fare_amount=Decimal("1000.00"), agency_markup_amount=Decimal("20.00")
        )
        ticket.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("70.00"))
        self.assertEqual(ticket.commission_rate_used, Decimal("7.0000"))
        self.assertEqual(ticket.commission_mode_applied, CommissionMode.SYSTEM_PLUS_MARKUP)

    def test_override_airline_without_base_fare_is_rejected_and_nothing_persists(self):
        airline, _ = self.make_airline("ACG", system_rate_percent=Decimal("5"))
        with self.assertRaises(MissingRequiredBaseFare):
            self.sell(airline, "500.00")
        self.assertEqual(TicketSale.objects.count(), 0)

    def test_air_fast_thirteenth_sale_earns_full_amount(self):
        airline, _ = self.make_airline("FST", mode=CommissionMode.MARKUP_ONLY, markup_rate_percent=Decimal("6"))
        tickets = [self.sell(airline, "100.00") for _ in range(14)]

        earned = [t.commission_amount for t in tickets]
        self.assertEqual(earned[12], Decimal("100.00"))
        self.assertEqual(tickets[12].commission_rate_used, Decimal("100"))
        for index, amount in enumerate(earned):
            if index != 12:
                self.assertEqual(amount, Decimal("0.00"), f"sale #{index + 1}")


class GenericCommissionTests(TicketCommissionTestBase):
    def test_immediate_rule_plus_agency_markup_restates_rate_on_base(self):
        airline, _ = self.make_airline("AF", system_rate_percent=Decimal("7"))
        ticket = self.sell(
            airline, "1400.00", base_fare_amount=Decimal("1000.00"), agency_markup_amount=Decimal("15.00")
        )
        ticket.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("85.00"))
        self.assertEqual(ticket.commission_rate_used, Decimal("8.5000"))
        self.assertEqual(ticket.commission_mode_applied, CommissionMode.IMMEDIATE)

    def test_no_matching_rule_raises(self):
        airline = Airline.objects.create(code="ZZ", name="No Rules")
        with self.assertRaises(NoApplicableRule):
            self.sell(airline, "100.00")
        self.assertFalse(TicketSale.objects.exists())

    def test_class_specific_rule_is_applied(self):
        airline, _ = self.make_airline("SN", system_rate_percent=Decimal("7"))
        CommissionRule.objects.create(
            airline=airline,
            travel_class=TravelClass.BUSINESS,
            system_rate_percent=Decimal("10"),
            starts_at=self.now - timedelta(days=1),
        )
        ticket = self.sell(
            airline, "2000.00", base_fare_amount=Decimal("1000.00"), travel_class=TravelClass.BUSINESS
        )
        self.assertEqual(ticket.commission_amount, Decimal("100.00"))


class BaseFareEstimationTests(TicketCommissionTestBase):
    def test_without_history_uses_rule_default_ratio(self):
        airline, _ = self.make_airline("TK", system_rate_percent=Decimal("7"))
        ticket = self.sell(airline, "1000.00")
        ticket.refresh_from_db()

        self.assertEqual(ticket.commission_calculation_status, CommissionCalculationStatus.ESTIMATED)
        self.assertEqual(ticket.commission_base_amount, Decimal("600.00"))
        self.assertEqual(ticket.commission_amount, Decimal("42.00"))

    def test_default_ratio_is_clamped(self):
        airline, _ = self.make_airline("QR", system_rate_percent=Decimal("7"), default_base_fare_ratio=Decimal("1"))
        ticket = self.sell(airline, "1000.00")
        self.assertEqual(ticket.commission_base_amount, Decimal("950.00"))

    def test_history_mean_ratio_of_final_sales(self):
        airline, rule = self.make_airline("KQ", system_rate_percent=Decimal("7"))
        self.sell(airline, "1000.00", base_fare_amount=Decimal("800.00"))
        self.sell(airline, "1000.00", base_fare_amount=Decimal("500.00"))

        ticket = self.sell(airline, "1000.00")
        self.assertEqual(ticket.commission_base_amount, Decimal("650.00"))
        self.assertEqual(ticket.commission_amount, Decimal("45.50"))

        # ESTIMATED sales never feed the history
        self.assertEqual(estimate_base_fare_ratio(ticket, rule), Decimal("0.65"))

    def test_history_ratio_clamped_low(self):
        airline, _ = self.make_airline("UR", mode=CommissionMode.MARKUP_ONLY, markup_rate_percent=Decimal("5"))
        self.sell(airline, "1000.00", base_fare_amount=Decimal("50.00"))
        ticket = self.sell(airline, "1000.00")
        self.assertEqual(ticket.commission_base_amount, Decimal("200.00"))
        self.assertEqual(ticket.commission_amount, Decimal("10.00"))


class AfterDepositCounterTests(TicketCommissionTestBase):
    def setUp(self):
        super().setUp()
        self.airline, self.rule = self.make_airline(
            "CAA",
            mode=CommissionMode.AFTER_DEPOSIT,
            deposit_stock_target_amount=Decimal("10000"),
            deposit_stock_consumed_amount=Decimal("9500"),
            batch_commission_amount=Decimal("650"),
        )

    def test_sale_crossing_target_earns_batch_and_advances_counter(self):
        ticket = self.sell(self.airline, "700.00")
        ticket.refresh_from_db()
        self.rule.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("650.00"))
        self.assertEqual(ticket.commission_mode_applied, CommissionMode.AFTER_DEPOSIT)
        self.assertEqual(ticket.commission_calculation_status, CommissionCalculationStatus.FINAL)
        self.assertEqual(ticket.commission_rate_used, Decimal("92.8571"))
        self.assertEqual(self.rule.deposit_stock_consumed_amount, Decimal("10200.00"))

    def test_next_sale_within_batch_earns_nothing(self):
        self.sell(self.airline, "700.00")
        ticket = self.sell(self.airline, "300.00")
        self.rule.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("0.00"))
        self.assertEqual(self.rule.deposit_stock_consumed_amount, Decimal("10500.00"))

    def test_updating_a_sale_does_not_count_it_twice(self):
        ticket = self.sell(self.airline, "700.00")
        ticket = update_ticket(ticket, {"notes": "Correction nom client"})
        self.rule.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("650.00"))
        self.assertEqual(self.rule.deposit_stock_consumed_amount, Decimal("10200.00"))

    def test_counter_never_decreases(self):
        ticket = self.sell(self.airline, "700.00")
        update_ticket(ticket, {"amount": Decimal("100.00")})
        self.rule.refresh_from_db()
        self.assertEqual(self.rule.deposit_stock_consumed_amount, Decimal("10200.00"))

    def test_later_sales_do_not_change_an_earned_batch(self):
        ticket = self.sell(self.airline, "700.00")
        self.sell(self.airline, "5000.00")

        ticket = update_ticket(ticket, {"notes": "Correction nom client"})
        self.rule.refresh_from_db()
        self.assertEqual(ticket.commission_amount, Decimal("650.00"))
        self.assertEqual(ticket.deposit_consumed_before, Decimal("9500.00"))
        self.assertEqual(self.rule.deposit_stock_consumed_amount, Decimal("15200.00"))

    def test_edit_does_not_claim_batch_earned_by_a_later_sale(self):
        first = self.sell(self.airline, "300.00")
        self.sell(self.airline, "100.00")
        crossing = self.sell(self.airline, "200.00")
        self.assertEqual(crossing.commission_amount, Decimal("650.00"))

        first = update_ticket(first, {"notes": "Client rappelé"})
        self.assertEqual(first.commission_amount, Decimal("0.00"))

    def test_growing_amount_counts_only_the_difference(self):
        ticket = self.sell(self.airline, "300.00")
        ticket = update_ticket(ticket, {"amount": Decimal("500.00")})
        self.rule.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("650.00"))
        self.assertEqual(ticket.deposit_counted_amount, Decimal("500.00"))
        self.assertEqual(self.rule.deposit_stock_consumed_amount, Decimal("10000.00"))

    def test_batch_on_tiny_sale_stores_large_rate(self):
        CommissionRule.objects.filter(pk=self.rule.pk).update(deposit_stock_consumed_amount=Decimal("9999.99"))
        ticket = self.sell(self.airline, "0.01")
        ticket.refresh_from_db()

        self.assertEqual(ticket.commission_amount, Decimal("650.00"))
        self.assertEqual(ticket.commission_rate_used, Decimal("6500000.0000"))


class TicketUpdateTests(TicketCommissionTestBase):
    def test_update_recomputes_commission_and_keeps_stored_base_fare(self):
        airline, _ = self.make_airline("AF", system_rate_percent=Decimal("7.5"))
        ticket = self.sell(airline, "1000.00", base_fare_amount=Decimal("800.00"))
        self.assertEqual(ticket.commission_amount, Decimal("60.00"))

        ticket = update_ticket(ticket, {"amount": Decimal("1100.00"), "base_fare_amount": None})
        self.assertEqual(ticket.base_fare_amount, Decimal("800.00"))
        self.assertEqual(ticket.commission_amount, Decimal("60.00"))
        self.assertEqual(ticket.currency, "USD")

    def test_switching_airline_applies_target_airline_rule(self):
        air_france, _ = self.make_airline("AF", system_rate_percent=Decimal("7.5"))
        air_congo, _ = self.make_airline("ACG", system_rate_percent=Decimal("5"))
        ticket = self.sell(air_france, "1000.00", base_fare_amount=Decimal("800.00"))

        ticket = update_ticket(ticket, {"airline": air_congo})
        self.assertEqual(ticket.commission_amount, Decimal("40.00"))
        self.assertEqual(ticket.commission_rule.airline_id, air_congo.id)

    def test_base_fare_supplied_later_replaces_estimate(self):
        airline, _ = self.make_airline("TK", system_rate_percent=Decimal("7"))
        ticket = self.sell(airline, "1000.00")
        self.assertEqual(ticket.commission_calculation_status, CommissionCalculationStatus.ESTIMATED)
        self.assertEqual(ticket.commission_base_amount, Decimal("600.00"))

        ticket = update_ticket(ticket, {"base_fare_amount": Decimal("800.00")})
        ticket.refresh_from_db()
        self.assertEqual(ticket.commission_calculation_status, CommissionCalculationStatus.FINAL)
        self.assertEqual(ticket.commission_base_amount, Decimal("800.00"))
        self.assertEqual(ticket.commission_amount, Decimal("56.00"))

    def test_writes_are_audited(self):
        airline, _ = self.make_airline("AF", system_rate_percent=Decimal("7.5"))
        ticket = self.sell(airline, "1000.00", base_fare_amount=Decimal("800.00"))
        update_ticket(ticket, {"notes": "ok"}, performed_by=self.seller)

        actions = list(AuditLog.objects.order_by("id").values_list("action", flat=True))
        self.assertEqual(actions, ["TICKET_CREATE", "TICKET_UPDATE"])
