"""Tests for the rule-based credit assessor."""
import unittest

from paytik.config import LOW_BALANCE_THRESHOLD
from paytik.data_structures import BnplApplication, FinancingApplication
from paytik.services.assessment import RuleBasedAssessor

INCOME = [{'amount': 200000, 'type': 'received', 'date': '2025-01-05T10:00:00'}]
SPENDING = [{'amount': 5000, 'type': 'sent', 'date': '2025-01-06T10:00:00'}]


def bnpl_application(amount=50000, history=INCOME, balance=20000, margin_rate=23.5 / 12, down_payment=0):
    return BnplApplication(
        alias="awa",
        purchase_amount=amount,
        down_payment=down_payment,
        current_balance=balance,
        transaction_history=history,
        repayment_frequency="monthly",
        installments_count=3,
        first_installment_date="2025-02-01",
        margin_rate=margin_rate,
    )


def financing_application(amount=200000, history=INCOME, balance=20000, months=12,
                          purpose="Achat d'un réfrigérateur pour la boutique"):
    return FinancingApplication(
        alias="awa",
        financing_type="mourabaha",
        amount=amount,
        duration_months=months,
        purpose=purpose,
        current_balance=balance,
        transaction_history=history,
    )


class TestBnplAssessment(unittest.TestCase):

    def setUp(self):
        self.assessor = RuleBasedAssessor()

    def test_no_history_rejected(self):
        """Test that a BNPL applicant without history is rejected."""
        outcome = self.assessor.assess_bnpl(bnpl_application(history=[]))
        self.assertEqual(outcome.status, "rejected")
        self.assertIsNone(outcome.repayment_plan)

    def test_large_amount_without_income_rejected(self):
        """Test that a large BNPL amount without income is rejected."""
        outcome = self.assessor.assess_bnpl(bnpl_application(amount=200000, history=SPENDING))
        self.assertEqual(outcome.status, "rejected")

    def test_large_amount_with_income_reviewed(self):
        """Test that a large BNPL amount with income goes to review."""
        outcome = self.assessor.assess_bnpl(bnpl_application(amount=200000))
        self.assertEqual(outcome.status, "review")

    def test_down_payment_reduces_financed_amount(self):
        """Test that the down payment is deducted before the limits apply."""
        outcome = self.assessor.assess_bnpl(bnpl_application(amount=200000, down_payment=120000))
        self.assertEqual(outcome.status, "approved")

    def test_small_amount_with_income_approved_with_plan(self):
        """Test that a small BNPL amount with income is approved with a plan."""
        outcome = self.assessor.assess_bnpl(bnpl_application())
        self.assertEqual(outcome.status, "approved")
        self.assertTrue(outcome.repayment_plan.startswith("3 versements de "))
        self.assertTrue(outcome.repayment_plan.endswith(" Fcfa"))

    def test_non_standard_margin_reviewed(self):
        """Test that a non-standard margin rate goes to review."""
        outcome = self.assessor.assess_bnpl(bnpl_application(margin_rate=5.0))
        self.assertEqual(outcome.status, "review")

    def test_low_balance_reviewed(self):
        """Test that a BNPL applicant with a low balance goes to review."""
        outcome = self.assessor.assess_bnpl(bnpl_application(balance=500))
        self.assertEqual(outcome.status, "review")

    def test_balance_at_threshold_is_enough(self):
        """Test that a balance equal to the threshold is enough for approval."""
        outcome = self.assessor.assess_bnpl(bnpl_application(balance=LOW_BALANCE_THRESHOLD))
        self.assertEqual(outcome.status, "approved")
        outcome = self.assessor.assess_bnpl(bnpl_application(balance=LOW_BALANCE_THRESHOLD - 1))
        self.assertEqual(outcome.status, "review")

    def test_small_amount_without_income_reviewed(self):
        """Test that a small BNPL amount without income goes to review."""
        outcome = self.assessor.assess_bnpl(bnpl_application(history=SPENDING))
        self.assertEqual(outcome.status, "review")


class TestFinancingAssessment(unittest.TestCase):

    def setUp(self):
        self.assessor = RuleBasedAssessor()

    def test_no_history_rejected(self):
        """Test that a financing applicant without history is rejected."""
        self.assertEqual(self.assessor.assess_financing(financing_application(history=[])).status, "rejected")

    def test_large_amount_without_income_rejected(self):
        """Test that a large financing amount without income is rejected."""
        outcome = self.assessor.assess_financing(financing_application(amount=600000, history=SPENDING))
        self.assertEqual(outcome.status, "rejected")

    def test_reasonable_request_approved_with_mourabaha_plan(self):
        """Test that a reasonable financing request is approved with a Mourabaha plan."""
        outcome = self.assessor.assess_financing(financing_application(amount=120000))
        self.assertEqual(outcome.status, "approved")
        self.assertEqual(outcome.repayment_plan, "12 versements de 12350 Fcfa")

    def test_long_duration_reviewed(self):
        """Test that financing longer than 24 months goes to review."""
        self.assertEqual(self.assessor.assess_financing(financing_application(months=30)).status, "review")

    def test_vague_purpose_reviewed(self):
        """Test that a vague purpose goes to review."""
        self.assertEqual(self.assessor.assess_financing(financing_application(purpose="achat")).status, "review")

    def test_low_balance_reviewed(self):
        """Test that a financing applicant with a low balance goes to review."""
        self.assertEqual(self.assessor.assess_financing(financing_application(balance=0)).status, "review")

    def test_mid_amount_reviewed(self):
        """Test that amounts between the approval and caution limits go to review."""
        self.assertEqual(self.assessor.assess_financing(financing_application(amount=400000)).status, "review")


if __name__ == '__main__':
    unittest.main()
