"""Tests for the PMT/RATE formulas, rate conversions and schedules."""
import unittest
from datetime import date
from unittest.mock import patch

from paytik.exceptions import CalculationError, RateConvergenceError, TegCapExceededError
from paytik.services import amortization


class TestPmt(unittest.TestCase):

    def test_zero_rate_splits_principal_evenly(self):
        """Test that a zero rate splits the principal into equal installments."""
        self.assertEqual(amortization.pmt(0, 12, 1200), 100)

    def test_known_installment(self):
        """Test that PMT matches a known annuity installment."""
        self.assertAlmostEqual(amortization.pmt(0.01, 12, 10000), 888.49, places=2)

    def test_degenerate_inputs_rejected(self):
        """Test that degenerate inputs raise CalculationError instead of NaN."""
        with self.assertRaises(CalculationError):
            amortization.pmt(0.01, 0, 1000)
        with self.assertRaises(CalculationError):
            amortization.pmt(0.01, 12, -5)
        with self.assertRaises(CalculationError):
            amortization.pmt(float("nan"), 12, 1000)
        with self.assertRaises(CalculationError):
            amortization.pmt(-1, 12, 1000)


class TestRate(unittest.TestCase):

    def test_rate_inverts_pmt(self):
        """Test that RATE recovers the periodic rate used by PMT."""
        for periodic in (0.001, 0.01, 0.05):
            installment = amortization.pmt(periodic, 24, 50000)
            self.assertAlmostEqual(amortization.rate(24, installment, 50000), periodic, delta=1e-6)

    def test_no_interest_gives_zero_rate(self):
        """Test that repaying exactly the principal gives a zero rate."""
        self.assertEqual(amortization.rate(12, 100, 1200), 0.0)

    def test_non_positive_payment_rejected(self):
        """Test that a non-positive payment is rejected."""
        with self.assertRaises(CalculationError):
            amortization.rate(12, 0, 1200)

    def test_non_convergence_raises(self):
        """Test that RATE raises RateConvergenceError when iterations run out."""
        installment = amortization.pmt(0.01, 12, 10000)
        with patch("paytik.services.amortization.RATE_MAX_ITERATIONS", 1):
            with self.assertRaises(RateConvergenceError) as context:
                amortization.rate(12, installment, 10000, guess=0.5)
        self.assertEqual(context.exception.details['iterations'], 1)


class TestRateConversions(unittest.TestCase):

    def test_periodic_and_annual_are_inverse(self):
        """Test that periodic and annual rate conversions are inverses."""
        periodic = amortization.periodic_rate_from_annual(0.15, 12)
        self.assertAlmostEqual(periodic, 1.15 ** (1 / 12) - 1)
        self.assertAlmostEqual(amortization.annual_rate_from_periodic(periodic, 12), 0.15)

    def test_margin_rate_per_frequency(self):
        """Test that the margin rate is the annual margin split per period."""
        self.assertAlmostEqual(amortization.margin_rate_percent("monthly"), 23.5 / 12)
        self.assertAlmostEqual(amortization.margin_rate_percent("weekly"), 23.5 / 52)
        self.assertAlmostEqual(amortization.margin_rate_percent("daily"), 23.5 / 365)

    def test_unknown_frequency(self):
        """Test that unknown frequencies are rejected and aliases normalized."""
        with self.assertRaises(CalculationError):
            amortization.normalize_frequency("yearly")
        self.assertEqual(amortization.normalize_frequency("weeks"), "weekly")


class TestSchedule(unittest.TestCase):

    def test_principal_components_sum_to_principal(self):
        """Test that principal components sum to the principal and the balance ends at zero."""
        schedule = amortization.build_schedule(100000, 0.012, 18, date(2025, 1, 15), "monthly")
        self.assertEqual(len(schedule), 18)
        self.assertAlmostEqual(sum(r.principal for r in schedule), 100000, places=6)
        self.assertEqual(schedule[-1].balance, 0.0)

    def test_monthly_dates_are_counted_from_first_date(self):
        """Test that monthly due dates are counted from the first date."""
        schedule = amortization.build_schedule(3000, 0.01, 3, date(2025, 1, 31), "monthly")
        self.assertEqual([r.date for r in schedule],
                         [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)])

    def test_weekly_and_daily_dates(self):
        """Test that weekly and daily schedules step by a week and a day."""
        weekly = amortization.build_schedule(3000, 0.01, 3, "2025-03-01", "weekly")
        self.assertEqual(weekly[2].date, date(2025, 3, 15))
        daily = amortization.build_schedule(3000, 0.0, 3, "2025-03-01", "daily")
        self.assertEqual(daily[2].date, date(2025, 3, 3))
        self.assertAlmostEqual(daily[0].payment, 1000)


class TestTegSimulation(unittest.TestCase):

    def test_simulation_at_the_cap(self):
        """Test that a simulation at the 15 % cap reports its figures."""
        sim = amortization.simulate_teg(100000, 12, "months", "2025-01-01")
        self.assertAlmostEqual(sim.annual_teg, 15.0)
        self.assertEqual(sim.periodicity, "monthly")
        self.assertAlmostEqual(sim.total_cost, sim.total_repaid - 100000)
        self.assertAlmostEqual(
            amortization.effective_annual_rate(100000, sim.installment_amount, 12, "monthly"),
            0.15, places=5)

    def test_rate_above_cap_rejected(self):
        """Test that an annual TEG above the cap raises TegCapExceededError."""
        with self.assertRaises(TegCapExceededError):
            amortization.simulate_teg(100000, 12, "months", "2025-01-01", annual_teg=0.16)

    def test_small_amount_rejected(self):
        """Test that amounts below the simulator minimum are rejected."""
        with self.assertRaises(CalculationError):
            amortization.simulate_teg(500, 12, "months", "2025-01-01")


class TestBnplQuote(unittest.TestCase):

    def test_quote_with_down_payment(self):
        """Test that the down payment is deducted from the financed amount."""
        quote = amortization.quote_bnpl(60000, 10000, 3, "monthly", "2025-02-01")
        self.assertEqual(quote.financed_amount, 50000)
        self.assertAlmostEqual(quote.margin_rate, 23.5 / 12)
        self.assertAlmostEqual(sum(r.principal for r in quote.schedule), 50000, places=6)
        self.assertGreater(quote.total_cost, 0)

    def test_down_payment_must_be_below_amount(self):
        """Test that the down payment must stay below the purchase amount."""
        with self.assertRaises(CalculationError):
            amortization.quote_bnpl(60000, 60000, 3, "monthly", "2025-02-01")
        with self.assertRaises(CalculationError):
            amortization.quote_bnpl(60000, -1, 3, "monthly", "2025-02-01")

    def test_standard_margin_is_teg_compliant_check(self):
        """Test that the standard BNPL margin exceeds the TEG cap."""
        quote = amortization.quote_bnpl(50000, 0, 12, "monthly", "2025-02-01")
        # 23.5 % a year compounded monthly is above the 15 % cap
        self.assertFalse(amortization.is_teg_compliant(50000, quote.installment_amount, 12, "monthly"))


class TestMourabahaPlan(unittest.TestCase):

    def test_flat_profit(self):
        """Test that the Mourabaha profit is flat on the amount."""
        plan = amortization.mourabaha_plan(120000, 12)
        self.assertAlmostEqual(plan.profit, 28200)
        self.assertAlmostEqual(plan.total_repayable, 148200)
        self.assertEqual(plan.installment_amount, 12350)

    def test_installment_rounded_up(self):
        """Test that the Mourabaha installment is rounded up to the franc."""
        plan = amortization.mourabaha_plan(100000, 7)
        self.assertGreaterEqual(plan.installment_amount * 7, plan.total_repayable)
        self.assertEqual(plan.installment_amount, 16245)


class TestRepaymentPlanText(unittest.TestCase):

    def test_format_rounds_up(self):
        """Test that the plan text rounds the installment up."""
        self.assertEqual(amortization.format_repayment_plan(3, 33.2), "3 versements de 34 Fcfa")

    def test_parse(self):
        """Test that the plan text is parsed back into count and installment."""
        self.assertEqual(amortization.parse_repayment_plan("3 versements de 34 Fcfa"), (3, 34.0))
        self.assertEqual(amortization.parse_repayment_plan("12 versements de 12350 F"), (12, 12350.0))
        self.assertIsNone(amortization.parse_repayment_plan("à définir"))
        self.assertIsNone(amortization.parse_repayment_plan(None))

    def test_parse_keeps_decimals(self):
        """Test that decimal marks survive while thousands separators are dropped."""
        self.assertEqual(amortization.parse_repayment_plan("3 versements de 34.5 Fcfa"), (3, 34.5))
        self.assertEqual(amortization.parse_repayment_plan("3 versements de 34,50 F"), (3, 34.5))
        self.assertEqual(amortization.parse_repayment_plan("6 versements de 12.350 Fcfa"), (6, 12350.0))
        self.assertEqual(amortization.parse_repayment_plan("6 versements de 1 234,50 F"), (6, 1234.5))
        self.assertEqual(amortization.parse_repayment_plan("2 versements de 1.234.567 F"), (2, 1234567.0))


if __name__ == '__main__':
    unittest.main()
