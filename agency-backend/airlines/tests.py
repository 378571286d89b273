from datetime import timedelta
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from airlines.api import AirlineListCreateView
from airlines.catalog import AIRLINE_CATALOG, ensure_airline_catalog
from airlines.choices import CommissionMode, TravelClass
from airlines.commission import (
    compute_commission_amount,
    pick_commission_rule,
    resolve_rates,
    route_matches,
    rule_score,
)
from airlines.models import Airline, CommissionRule
from common.roles import AgencyRole, JobTitle
from staff.models import StaffProfile

NOW = timezone.now()


def rule(**overrides):
    """In-memory stand-in for a CommissionRule row."""
    fields = dict(
        route_pattern="*",
        travel_class=None,
        commission_mode=CommissionMode.IMMEDIATE,
        rate_percent=Decimal("0"),
        system_rate_percent=Decimal("0"),
        markup_rate_percent=Decimal("0"),
        deposit_stock_target_amount=None,
        deposit_stock_consumed_amount=Decimal("0"),
        batch_commission_amount=None,
        starts_at=NOW - timedelta(days=10),
        ends_at=None,
        is_active=True,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class RouteMatchingTests(SimpleTestCase):
    def test_star_and_empty_match_everything(self):
        self.assertTrue(route_matches("BZV-PNR", "*"))
        self.assertTrue(route_matches("anything", ""))
        self.assertTrue(route_matches("anything", None))

    def test_prefix_pattern(self):
        self.assertTrue(route_matches("BZV-PNR", "BZV-*"))
        self.assertFalse(route_matches("PNR-BZV", "BZV-*"))

    def test_case_insensitive_and_trimmed(self):
        self.assertTrue(route_matches("  bzv-pnr ", "BZV-*"))
        self.assertTrue(route_matches("BZV-PNR", "bzv-pnr"))

    def test_regex_metacharacters_are_literal(self):
        self.assertTrue(route_matches("BZV.CDG", "BZV.*"))
        self.assertFalse(route_matches("BZVXCDG", "BZV.CDG"))
        self.assertTrue(route_matches("BZV+1", "BZV+1"))

    def test_anchored(self):
        self.assertFalse(route_matches("XBZV-PNR", "BZV-*"))


class RuleSelectionTests(SimpleTestCase):
    def test_no_rules(self):
        self.assertIsNone(pick_commission_rule([], "BZV-PNR", TravelClass.ECONOMY, now=NOW))

    def test_filters_inactive_and_out_of_window(self):
        rules = [
            rule(is_active=False),
            rule(starts_at=NOW + timedelta(days=1)),
            rule(ends_at=NOW - timedelta(seconds=1)),
            rule(route_pattern="DLA-*"),
            rule(travel_class=TravelClass.BUSINESS),
        ]
        self.assertIsNone(pick_commission_rule(rules, "BZV-PNR", TravelClass.ECONOMY, now=NOW))

    def test_class_filter_outweighs_route_specificity(self):
        by_route = rule(route_pattern="BZV-PNR")
        by_class = rule(travel_class=TravelClass.BUSINESS)
        picked = pick_commission_rule([by_route, by_class], "BZV-PNR", TravelClass.BUSINESS, now=NOW)
        self.assertIs(picked, by_class)

    def test_longer_literal_pattern_wins(self):
        generic = rule()
        prefix = rule(route_pattern="BZV-*")
        exact = rule(route_pattern="BZV-PNR")
        picked = pick_commission_rule([generic, exact, prefix], "BZV-PNR", TravelClass.ECONOMY, now=NOW)
        self.assertIs(picked, exact)
        self.assertEqual(rule_score(prefix), 4)
        self.assertEqual(rule_score(generic), 0)

    def test_tie_goes_to_latest_start(self):
        older = rule(starts_at=NOW - timedelta(days=5))
        newer = rule(starts_at=NOW - timedelta(days=1))
        self.assertIs(pick_commission_rule([newer, older], "BZV-PNR", None, now=NOW), newer)

    def test_open_window_edges(self):
        starting_now = rule(starts_at=NOW)
        ending_now = rule(ends_at=NOW, starts_at=NOW - timedelta(days=2))
        self.assertIsNotNone(pick_commission_rule([starting_now], "X", None, now=NOW))
        self.assertIsNotNone(pick_commission_rule([ending_now], "X", None, now=NOW))


class CommissionAmountTests(SimpleTestCase):
    def test_after_deposit_crossing_one_batch(self):
        r = rule(
            commission_mode=CommissionMode.AFTER_DEPOSIT,
            deposit_stock_target_amount=Decimal("10000"),
            deposit_stock_consumed_amount=Decimal("9500"),
            batch_commission_amount=Decimal("650"),
        )
        result = compute_commission_amount(Decimal("700"), r)
        self.assertEqual(result.amount, Decimal("650"))
        self.assertEqual(result.mode_applied, CommissionMode.AFTER_DEPOSIT)
        # pure: the counter is not advanced
        self.assertEqual(r.deposit_stock_consumed_amount, Decimal("9500"))

    def test_after_deposit_multiple_batches(self):
        r = rule(
            commission_mode=CommissionMode.AFTER_DEPOSIT,
            deposit_stock_target_amount=Decimal("1000"),
            deposit_stock_consumed_amount=Decimal("900"),
            batch_commission_amount=Decimal("50"),
        )
        self.assertEqual(compute_commission_amount(Decimal("2200"), r).amount, Decimal("150"))

    def test_after_deposit_unconfigured_or_zero_amount(self):
        unset = rule(commission_mode=CommissionMode.AFTER_DEPOSIT, batch_commission_amount=Decimal("650"))
        result = compute_commission_amount(Decimal("700"), unset)
        self.assertEqual((result.amount, result.rate_percent), (Decimal("0"), Decimal("0")))

        r = rule(
            commission_mode=CommissionMode.AFTER_DEPOSIT,
            deposit_stock_target_amount=Decimal("10000"),
            batch_commission_amount=Decimal("650"),
        )
        self.assertEqual(compute_commission_amount(Decimal("0"), r).rate_percent, Decimal("0"))

    def test_system_plus_markup(self):
        r = rule(
            commission_mode=CommissionMode.SYSTEM_PLUS_MARKUP,
            system_rate_percent=Decimal("5"),
            markup_rate_percent=Decimal("2"),
        )
        result = compute_commission_amount(Decimal("1000"), r)
        self.assertEqual(result.rate_percent, Decimal("7"))
        self.assertEqual(result.amount, Decimal("70"))

    def test_extra_markup_ignored_when_negative(self):
        r = rule(commission_mode=CommissionMode.MARKUP_ONLY, markup_rate_percent=Decimal("5"))
        self.assertEqual(compute_commission_amount(Decimal("100"), r, Decimal("-3")).amount, Decimal("5"))
        self.assertEqual(compute_commission_amount(Decimal("100"), r, Decimal("1")).amount, Decimal("6"))

    def test_immediate_falls_back_to_legacy_rate(self):
        r = rule(rate_percent=Decimal("7.5"))
        self.assertEqual(resolve_rates(r).system_rate, Decimal("7.5"))
        result = compute_commission_amount(Decimal("200"), r)
        self.assertEqual(result.amount, Decimal("15"))
        self.assertEqual(result.mode_applied, CommissionMode.IMMEDIATE)


class AirlineCatalogTests(TestCase):
    def test_seeding_is_idempotent(self):
        created = ensure_airline_catalog()
        self.assertEqual(created, sum(len(entry.rules) for entry in AIRLINE_CATALOG))
        self.assertEqual(Airline.objects.count(), 15)

        self.assertEqual(ensure_airline_catalog(), 0)
        self.assertEqual(CommissionRule.objects.count(), created)

    def test_catalog_values(self):
        ensure_airline_catalog()
        caa = CommissionRule.objects.get(airline__code="CAA")
        self.assertEqual(caa.commission_mode, CommissionMode.AFTER_DEPOSIT)
        self.assertEqual(caa.deposit_stock_target_amount, Decimal("10000"))
        self.assertEqual(caa.batch_commission_amount, Decimal("650"))

        kq = CommissionRule.objects.get(airline__code="KQ")
        self.assertEqual(kq.resolved_rates.system_rate + kq.resolved_rates.markup_rate, Decimal("7"))

    def test_reseeding_keeps_deposit_counter(self):
        ensure_airline_catalog()
        CommissionRule.objects.filter(airline__code="CAA").update(deposit_stock_consumed_amount=Decimal("4200"))
        ensure_airline_catalog()
        self.assertEqual(
            CommissionRule.objects.get(airline__code="CAA").deposit_stock_consumed_amount, Decimal("4200")
        )

    def test_management_command(self):
        out = StringIO()
        call_command("seed_airline_catalog", stdout=out)
        self.assertIn("15 airline(s) checked", out.getvalue())


class AirlineApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        User = get_user_model()
        self.admin = User.objects.create_user(username="admin", password="test-pass")
        StaffProfile.objects.create(user=self.admin, role=AgencyRole.ADMIN, job_title=JobTitle.DIRECTION_GENERALE)
        self.employee = User.objects.create_user(username="agent", password="test-pass")
        StaffProfile.objects.create(user=self.employee, role=AgencyRole.EMPLOYEE, job_title=JobTitle.COMMERCIAL)

    def _post(self, user, payload):
        request = self.factory.post("/api/v1/airlines/", payload, format="json")
        force_authenticate(request, user=user)
        return AirlineListCreateView.as_view()(request)

    def test_admin_creates_airline_with_rule(self):
        response = self._post(self.admin, {"code": "hf", "name": "Air Côte d'Ivoire", "rate_percent": "6"})
        self.assertEqual(response.status_code, 201, response.data)
        airline = Airline.objects.get(code="HF")
        self.assertEqual(airline.commission_rules.get().rate_percent, Decimal("6"))
        self.assertEqual(len(response.data["data"]["commission_rules"]), 1)

    def test_duplicate_code_is_400(self):
        self._post(self.admin, {"code": "HF", "name": "Air Côte d'Ivoire", "rate_percent": "6"})
        response = self._post(self.admin, {"code": "hf", "name": "Autre", "rate_percent": "6"})
        self.assertEqual(response.status_code, 400)

    def test_employee_cannot_create(self):
        response = self._post(self.employee, {"code": "HF", "name": "Air Côte d'Ivoire", "rate_percent": "6"})
        self.assertEqual(response.status_code, 403)

    def test_list_shows_active_rules(self):
        ensure_airline_catalog()
        CommissionRule.objects.filter(airline__code="AF").update(is_active=False)
        request = self.factory.get("/api/v1/airlines/")
        force_authenticate(request, user=self.employee)
        response = AirlineListCreateView.as_view()(request)

        self.assertEqual(response.status_code, 200)
        rows = {row["code"]: row for row in response.data["data"]}
        self.assertEqual(len(rows), 15)
        self.assertEqual(rows["AF"]["commission_rules"], [])
        self.assertEqual(len(rows["TK"]["commission_rules"]), 1)
