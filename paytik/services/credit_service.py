"""Credit request lifecycle for BNPL and Islamic financing.

A request is created in one of three states by the assessor and may then
be decided by an admin:

    review -> approved
    review -> rejected

Approving a request moves money. Every write of an approval (status,
balances, transaction records) happens inside one database transaction
and the status change is a compare-and-set on ``review``, so a failed or
concurrent approval leaves nothing half-applied.
"""
import logging
from datetime import datetime

from paytik.config import (
    BNPL_PRODUCT,
    CREDIT_DESK_ALIAS,
    CREDIT_STATUS_APPROVED,
    CREDIT_STATUS_REJECTED,
    CREDIT_STATUS_REVIEW,
    FINANCING_DESK_ALIAS,
    FINANCING_MAX_DURATION,
    FINANCING_MIN_DURATION,
    FINANCING_PRODUCT,
    FINANCING_PURPOSE_MAX_LENGTH,
    FINANCING_PURPOSE_MIN_LENGTH,
    FINANCING_TYPE_LABELS,
    FINANCING_TYPES,
)
from paytik.data_structures import BnplApplication, CreditRequest, FinancingApplication
from paytik.database import new_id
from paytik.exceptions import (
    CreditRequestNotFoundError,
    InsufficientBalanceError,
    InvalidStatusTransitionError,
    RepaymentError,
    ValidationError,
)
from paytik.services import amortization
from paytik.services.assessment import RuleBasedAssessor

logger = logging.getLogger(__name__)


class CreditRequestService:
    """Shared lifecycle of credit requests.

    Subclasses set ``product`` and implement ``_execute_approval`` and
    ``_repayment_plan``.
    """

    product = None

    def __init__(self, db_manager, balance_service, transaction_service, user_service, assessor=None):
        self.db = db_manager
        self.balances = balance_service
        self.transactions = transaction_service
        self.users = user_service
        self.assessor = assessor or RuleBasedAssessor()

    # Read side
    def get_request(self, request_id):
        row = self.db.get_credit_request(request_id)
        if not row or row['product'] != self.product:
            raise CreditRequestNotFoundError(request_id)
        return CreditRequest.from_row(row)

    def get_requests(self, status=None):
        return [CreditRequest.from_row(r) for r in self.db.get_credit_requests(self.product, status=status)]

    def get_requests_for(self, alias):
        return [CreditRequest.from_row(r) for r in self.db.get_credit_requests(self.product, alias=alias)]

    def current_credit_balance(self, alias):
        """Outstanding amount of the alias's approved requests."""
        return sum(r.outstanding for r in self.get_requests_for(alias) if r.status == CREDIT_STATUS_APPROVED)

    # Lifecycle
    def _store_assessed_request(self, record, outcome):
        """Persist a freshly assessed request and run an automatic approval."""
        record.update({
            'product': self.product,
            'status': CREDIT_STATUS_REJECTED if outcome.status == CREDIT_STATUS_REJECTED else CREDIT_STATUS_REVIEW,
            'reason': outcome.reason,
            'repayment_plan': outcome.repayment_plan,
            'request_date': datetime.now().isoformat(),
            'repaid_amount': 0.0,
        })
        self.db.add_credit_request(record)
        logger.info("%s request %s stored for %s: %s", self.product, record['id'], record['alias'], outcome.status)

        if outcome.status == CREDIT_STATUS_APPROVED:
            try:
                self._approve(self.get_request(record['id']))
            except InsufficientBalanceError as e:
                # Assessor said yes but the money is not there: leave it to an admin
                self.db.set_credit_request_reason(
                    record['id'], f"{outcome.reason} Solde insuffisant pour exécuter l'opération.")
                logger.warning("Automatic approval of %s deferred: %s", record['id'], e)
        return self.get_request(record['id'])

    def update_request_status(self, request_id, status):
        """Admin decision on a request under review.

        Args:
            request_id: Request identifier.
            status: "approved" or "rejected".

        Returns:
            The updated CreditRequest.

        Raises:
            ValidationError: If status is not approved/rejected.
            CreditRequestNotFoundError: If the request does not exist.
            InvalidStatusTransitionError: If the request is no longer under review.
            InsufficientBalanceError: If the approval cannot be funded; the
                request stays under review.
        """
        if status not in (CREDIT_STATUS_APPROVED, CREDIT_STATUS_REJECTED):
            raise ValidationError("status", status, "must be approved or rejected")
        request = self.get_request(request_id)
        if request.status != CREDIT_STATUS_REVIEW:
            raise InvalidStatusTransitionError(request_id, request.status, status)

        if status == CREDIT_STATUS_REJECTED:
            if not self.db.transition_credit_request(request_id, CREDIT_STATUS_REVIEW, CREDIT_STATUS_REJECTED):
                raise InvalidStatusTransitionError(request_id, self.get_request(request_id).status, status)
            logger.info("%s request %s rejected", self.product, request_id)
        else:
            self._approve(request)
        return self.get_request(request_id)

    def _approve(self, request):
        with self.db.transaction():
            if not self.db.transition_credit_request(request.id, CREDIT_STATUS_REVIEW, CREDIT_STATUS_APPROVED):
                current = self.db.get_credit_request(request.id)['status']
                raise InvalidStatusTransitionError(request.id, current, CREDIT_STATUS_APPROVED)
            self._execute_approval(request)
            if not request.repayment_plan:
                plan = self._repayment_plan(request)
                if plan:
                    self.db.set_repayment_plan(request.id, plan)
        logger.info("%s request %s approved for %s (%s)", self.product, request.id, request.alias, request.amount)

    def _execute_approval(self, request):
        raise NotImplementedError

    def _repayment_plan(self, request):
        return None

    def _repayment_counterparty(self, request):
        return CREDIT_DESK_ALIAS

    def repay(self, request_id, amount):
        """Repay part of an approved request from the requester's balance.

        Raises:
            RepaymentError: If the request is not approved or the amount is
                not positive or above the outstanding amount.
            InsufficientBalanceError: If the requester cannot pay.
        """
        request = self.get_request(request_id)
        if request.status != CREDIT_STATUS_APPROVED:
            raise RepaymentError(f"Request '{request_id}' is not approved", {'status': request.status})
        if amount is None or amount <= 0:
            raise RepaymentError("Repayment amount must be positive", {'amount': amount})
        if amount > request.outstanding:
            raise RepaymentError("Repayment exceeds the outstanding amount",
                                 {'amount': amount, 'outstanding': request.outstanding})

        with self.db.transaction():
            self.balances.debit(request.alias, amount)
            self.db.set_repaid_amount(request.id, request.repaid_amount + amount)
            self.transactions.add_transaction(
                request.alias, "versement", self._repayment_counterparty(request),
                "Remboursement crédit", amount)
        logger.info("Repayment of %s on %s", amount, request.id)
        return self.get_request(request_id)


class BnplService(CreditRequestService):
    """Buy-now-pay-later purchases at a merchant."""

    product = BNPL_PRODUCT

    def submit_request(self, alias, merchant_alias, amount, installments_count, repayment_frequency,
                       first_installment_date, down_payment=0.0, margin_rate=None):
        """Assess and store a BNPL request.

        Returns:
            The stored CreditRequest. An assessor approval is executed at once.
        """
        self.users.require_active(alias)
        self.users.require_feature(alias, "bnpl")
        self.users.get_user(merchant_alias)
        if merchant_alias == alias:
            raise ValidationError("merchant_alias", merchant_alias, "must differ from the applicant")

        frequency = amortization.normalize_frequency(repayment_frequency)
        if margin_rate is None:
            margin_rate = amortization.margin_rate_percent(frequency)
        # Validates the terms before anything is stored
        amortization.quote_bnpl(amount, down_payment, installments_count, frequency,
                                first_installment_date, margin_rate)

        application = BnplApplication(
            alias=alias,
            purchase_amount=amount,
            down_payment=down_payment or 0.0,
            current_balance=self.balances.get_balance(alias),
            transaction_history=self.transactions.recent_history(alias),
            repayment_frequency=frequency,
            installments_count=installments_count,
            first_installment_date=first_installment_date,
            margin_rate=margin_rate,
        )
        outcome = self.assessor.assess_bnpl(application)

        record = {
            'id': new_id("bnpl"),
            'alias': alias,
            'merchant_alias': merchant_alias,
            'amount': amount,
            'down_payment': down_payment or 0.0,
            'installments_count': installments_count,
            'repayment_frequency': frequency,
            'first_installment_date': str(first_installment_date),
            'margin_rate': margin_rate,
        }
        return self._store_assessed_request(record, outcome)

    def submit_from_proposal(self, proposal):
        """Submit the request described by a merchant's scanned credit proposal."""
        return self.submit_request(
            alias=proposal.client_alias,
            merchant_alias=proposal.merchant_alias,
            amount=proposal.amount,
            installments_count=proposal.installments_count,
            repayment_frequency=proposal.repayment_frequency,
            first_installment_date=proposal.first_installment_date[:10],
            down_payment=proposal.down_payment,
            margin_rate=proposal.margin_rate,
        )

    def _execute_approval(self, request):
        # Double-entry transfer: requester pays the merchant
        self.balances.debit(request.alias, request.amount)
        self.transactions.add_transaction(request.alias, "sent", request.merchant_alias,
                                          "Achat BNPL approuvé", request.amount)
        self.balances.credit(request.merchant_alias, request.amount)
        self.transactions.add_transaction(request.merchant_alias, "received", request.alias,
                                          "Paiement BNPL reçu", request.amount)

    def _repayment_plan(self, request):
        financed = request.amount - (request.down_payment or 0)
        installment = amortization.pmt(request.margin_rate / 100, request.installments_count, financed)
        return amortization.format_repayment_plan(request.installments_count, installment)

    def _repayment_counterparty(self, request):
        return request.merchant_alias

    def get_merchant_requests(self, merchant_alias):
        return [CreditRequest.from_row(r)
                for r in self.db.get_credit_requests(self.product, merchant_alias=merchant_alias)]

    def merchant_outstanding(self, merchant_alias):
        """Credit the merchant's customers still owe on approved purchases."""
        return sum(r.outstanding for r in self.get_merchant_requests(merchant_alias)
                   if r.status == CREDIT_STATUS_APPROVED)

    def repay_credit(self, alias, amount):
        """Repay the alias's current credit, oldest approved request first.

        Returns:
            The list of CreditRequest touched by the repayment.
        """
        outstanding = self.current_credit_balance(alias)
        if amount is None or amount <= 0:
            raise RepaymentError("Repayment amount must be positive", {'amount': amount})
        if amount > outstanding:
            raise RepaymentError("Repayment exceeds the current credit",
                                 {'amount': amount, 'outstanding': outstanding})

        touched = []
        remaining = amount
        with self.db.transaction():
            for request in self.get_requests_for(alias):
                if remaining <= 0:
                    break
                if request.status != CREDIT_STATUS_APPROVED or request.outstanding == 0:
                    continue
                share = min(remaining, request.outstanding)
                touched.append(self.repay(request.id, share))
                remaining -= share
        return touched


class FinancingService(CreditRequestService):
    """Islamic financing (Mourabaha, Ijara, Moudaraba)."""

    product = FINANCING_PRODUCT

    def submit_request(self, alias, financing_type, amount, duration_months, purpose):
        """Assess and store a financing request.

        Returns:
            The stored CreditRequest. An assessor approval disburses at once.
        """
        self.users.require_active(alias)
        if financing_type not in FINANCING_TYPES:
            raise ValidationError("financing_type", financing_type,
                                  f"must be one of {', '.join(FINANCING_TYPES)}")
        if amount is None or amount <= 0:
            raise ValidationError("amount", amount, "must be positive")
        if (isinstance(duration_months, bool) or not isinstance(duration_months, int)
                or not FINANCING_MIN_DURATION <= duration_months <= FINANCING_MAX_DURATION):
            raise ValidationError("duration_months", duration_months,
                                  f"must be between {FINANCING_MIN_DURATION} and {FINANCING_MAX_DURATION}")
        purpose = (purpose or "").strip()
        if not FINANCING_PURPOSE_MIN_LENGTH <= len(purpose) <= FINANCING_PURPOSE_MAX_LENGTH:
            raise ValidationError("purpose", purpose,
                                  f"must be {FINANCING_PURPOSE_MIN_LENGTH} to {FINANCING_PURPOSE_MAX_LENGTH} characters")

        application = FinancingApplication(
            alias=alias,
            financing_type=financing_type,
            amount=amount,
            duration_months=duration_months,
            purpose=purpose,
            current_balance=self.balances.get_balance(alias),
            transaction_history=self.transactions.recent_history(alias),
        )
        outcome = self.assessor.assess_financing(application)

        record = {
            'id': new_id("fin"),
            'alias': alias,
            'amount': amount,
            'financing_type': financing_type,
            'duration_months': duration_months,
            'purpose': purpose,
        }
        return self._store_assessed_request(record, outcome)

    def _execute_approval(self, request):
        self.balances.credit(request.alias, request.amount)
        label = FINANCING_TYPE_LABELS.get(request.financing_type, request.financing_type)
        self.transactions.add_transaction(request.alias, "received", FINANCING_DESK_ALIAS,
                                          f"Financement {label} approuvé", request.amount)

    def _repayment_plan(self, request):
        plan = amortization.mourabaha_plan(request.amount, request.duration_months)
        return amortization.format_repayment_plan(request.duration_months, plan.installment_amount)

    def _repayment_counterparty(self, request):
        return FINANCING_DESK_ALIAS
