"""Credit assessment rules for BNPL and Islamic financing requests.

The assessor looks at the amount requested, the applicant's recent
transactions, the current balance and the credit terms, and answers with
approved, rejected or review (manual admin decision).
"""
import logging

from paytik.config import (
    BNPL_APPROVAL_LIMIT,
    BNPL_CAUTION_LIMIT,
    CREDIT_STATUS_APPROVED,
    CREDIT_STATUS_REJECTED,
    CREDIT_STATUS_REVIEW,
    FINANCING_APPROVAL_LIMIT,
    FINANCING_CAUTION_LIMIT,
    FINANCING_LONG_DURATION_MONTHS,
    FINANCING_PURPOSE_MIN_LENGTH,
    LOW_BALANCE_THRESHOLD,
    RATE_TOLERANCE,
)
from paytik.data_structures import AssessmentOutcome
from paytik.exceptions import CalculationError
from paytik.services import amortization

logger = logging.getLogger(__name__)


def _has_income(history):
    return any(t.get('type') == 'received' for t in history)


class RuleBasedAssessor:
    """Deterministic assessor applying the published credit policy.

    Any object exposing ``assess_bnpl`` and ``assess_financing`` can be
    handed to the engine instead.
    """

    def assess_bnpl(self, application):
        """Decide on a BNPL application.

        Args:
            application: BnplApplication.

        Returns:
            AssessmentOutcome; approved outcomes carry the repayment plan.
        """
        financed = application.purchase_amount - (application.down_payment or 0)
        history = application.transaction_history
        income = _has_income(history)

        if not history:
            outcome = AssessmentOutcome(CREDIT_STATUS_REJECTED,
                                        "Nouvel utilisateur sans historique de transactions.")
        elif financed > BNPL_CAUTION_LIMIT and not income:
            outcome = AssessmentOutcome(CREDIT_STATUS_REJECTED,
                                        "Montant excessif sans revenus justifiant le crédit.")
        elif financed > BNPL_CAUTION_LIMIT:
            outcome = AssessmentOutcome(CREDIT_STATUS_REVIEW,
                                        "Montant élevé malgré un bon historique, examen manuel requis.")
        elif not self._standard_terms(application):
            outcome = AssessmentOutcome(CREDIT_STATUS_REVIEW,
                                        "Conditions de crédit inhabituelles, examen manuel requis.")
        elif application.current_balance < LOW_BALANCE_THRESHOLD:
            outcome = AssessmentOutcome(CREDIT_STATUS_REVIEW,
                                        "Solde actuel trop faible, examen manuel requis.")
        elif financed < BNPL_APPROVAL_LIMIT and income:
            installment = amortization.pmt(application.margin_rate / 100,
                                           application.installments_count, financed)
            outcome = AssessmentOutcome(
                CREDIT_STATUS_APPROVED,
                "Montant raisonnable et historique de transactions régulier.",
                amortization.format_repayment_plan(application.installments_count, installment),
            )
        else:
            outcome = AssessmentOutcome(CREDIT_STATUS_REVIEW,
                                        "Profil intermédiaire, examen manuel requis.")

        logger.info("BNPL assessment for %s (%.0f financed): %s", application.alias, financed, outcome.status)
        return outcome

    def _standard_terms(self, application):
        try:
            standard = amortization.margin_rate_percent(application.repayment_frequency)
        except CalculationError:
            return False
        return application.margin_rate <= standard + RATE_TOLERANCE

    def assess_financing(self, application):
        """Decide on an Islamic financing application."""
        history = application.transaction_history
        income = _has_income(history)
        purpose = (application.purpose or "").strip()

        if not history:
            outcome = AssessmentOutcome(CREDIT_STATUS_REJECTED,
                                        "Nouvel utilisateur sans historique de transactions.")
        elif application.amount > FINANCING_CAUTION_LIMIT and not income:
            outcome = AssessmentOutcome(CREDIT_STATUS_REJECTED,
                                        "Montant excessif au regard de l'historique.")
        elif (application.amount < FINANCING_APPROVAL_LIMIT and income
              and len(purpose) >= FINANCING_PURPOSE_MIN_LENGTH
              and application.duration_months <= FINANCING_LONG_DURATION_MONTHS
              and application.current_balance >= LOW_BALANCE_THRESHOLD):
            plan = amortization.mourabaha_plan(application.amount, application.duration_months)
            outcome = AssessmentOutcome(
                CREDIT_STATUS_APPROVED,
                "Montant raisonnable, objet clair et historique régulier.",
                amortization.format_repayment_plan(application.duration_months, plan.installment_amount),
            )
        else:
            outcome = AssessmentOutcome(CREDIT_STATUS_REVIEW,
                                        "Cas limite, examen manuel requis.")

        logger.info("Financing assessment for %s (%.0f, %s): %s",
                    application.alias, application.amount, application.financing_type, outcome.status)
        return outcome
