"""Wallet payments: transfers between aliases, QR payments, mobile money, bills and cash withdrawals."""
import logging
import math
import random

from paytik.config import (
    CASH_WITHDRAWAL_FEES,
    TX_STATUS_COMPLETED,
    TX_STATUS_PENDING,
    WITHDRAWAL_CODE_COUNTERPARTY,
    WITHDRAWAL_CODE_DIGITS,
)
from paytik.data_structures import CashWithdrawal
from paytik.exceptions import ValidationError
from paytik.qr import CreditProposal, MerchantPaymentCode, parse_payload

logger = logging.getLogger(__name__)


class PaymentService:
    """Moves money out of and into a wallet.

    Every payment is a double-entry operation: the balance changes and the
    transaction records of both sides are written in a single database
    transaction.
    """

    def __init__(self, db_manager, balance_service, transaction_service, user_service,
                 product_service, bnpl_service=None, rng=None):
        self.db = db_manager
        self.balances = balance_service
        self.transactions = transaction_service
        self.users = user_service
        self.products = product_service
        self.bnpl = bnpl_service
        self.rng = rng or random.SystemRandom()

    def _authorize(self, alias, pin):
        self.users.require_active(alias)
        self.users.verify_pin(alias, pin)

    def send(self, sender, recipient, amount, reason="", pin=None):
        """Transfer money from one alias to another.

        Args:
            sender: Paying alias.
            recipient: Receiving alias, must be registered.
            amount: Positive amount.
            reason: Free text shown on both sides.
            pin: Sender's PIN.

        Returns:
            Reference of the sender's transaction.

        Raises:
            InvalidPinError, UserSuspendedError, UserNotFoundError,
            InsufficientBalanceError, ValidationError.
        """
        self._authorize(sender, pin)
        self.users.get_user(recipient)
        if recipient == sender:
            raise ValidationError("recipient", recipient, "cannot send money to yourself")
        if amount is None or amount <= 0:
            raise ValidationError("amount", amount, "must be positive")

        with self.db.transaction():
            self.balances.debit(sender, amount)
            ref = self.transactions.add_transaction(sender, "sent", recipient, reason, amount)
            self.balances.credit(recipient, amount)
            self.transactions.add_transaction(recipient, "received", sender, reason, amount)
        logger.info("Transfer of %s from %s to %s", amount, sender, recipient)
        return ref

    def pay_from_qr(self, payer, payload, pin, amount=None):
        """Act on a scanned QR payload.

        Merchant codes and raw aliases are paid with ``send``; the code's own
        amount wins over ``amount``. A credit proposal is submitted as a BNPL
        request for the payer and the stored CreditRequest is returned.
        """
        scanned = parse_payload(payload)
        if isinstance(scanned, CreditProposal):
            if scanned.client_alias != payer:
                raise ValidationError("clientAlias", scanned.client_alias, "proposal is addressed to another client")
            self.users.verify_pin(payer, pin)
            if self.bnpl is None:
                raise ValidationError("payload", "bnpl_proposal", "credit proposals are not accepted here")
            return self.bnpl.submit_from_proposal(scanned)

        reason = "Paiement QR"
        if isinstance(scanned, MerchantPaymentCode):
            if scanned.amount is not None:
                amount = scanned.amount
            reason = scanned.reason or "Paiement marchand"
        if not scanned.recipient_alias:
            raise ValidationError("payload", payload, "no recipient")
        return self.send(payer, scanned.recipient_alias, amount, reason, pin)

    # Mobile money
    def _operator(self, operator_id):
        operator = self.products.find_operator(operator_id)
        if operator is None:
            raise ValidationError("operator", operator_id, "unknown mobile-money operator")
        return operator

    def recharge(self, alias, operator_id, amount):
        """Credit the wallet from a mobile-money account."""
        operator = self._operator(operator_id)
        self.users.require_active(alias)
        with self.db.transaction():
            self.balances.credit(alias, amount)
            ref = self.transactions.add_transaction(alias, "received", operator.name,
                                                    "Recharge Mobile Money", amount)
        logger.info("Recharge of %s for %s via %s", amount, alias, operator.id)
        return ref

    def withdraw(self, alias, operator_id, amount, pin=None):
        """Send wallet money to a mobile-money account."""
        operator = self._operator(operator_id)
        self._authorize(alias, pin)
        with self.db.transaction():
            self.balances.debit(alias, amount)
            ref = self.transactions.add_transaction(alias, "sent", operator.name,
                                                    "Retrait Mobile Money", amount)
        logger.info("Withdrawal of %s for %s via %s", amount, alias, operator.id)
        return ref

    def pay_bill(self, alias, biller_id, reference, amount, pin=None):
        biller = self.products.find_biller(biller_id)
        if biller is None:
            raise ValidationError("biller", biller_id, "unknown biller")
        if not (reference or "").strip():
            raise ValidationError("reference", reference, "must not be empty")
        self._authorize(alias, pin)
        with self.db.transaction():
            self.balances.debit(alias, amount)
            ref = self.transactions.add_transaction(alias, "sent", biller.name,
                                                    f"Facture {reference.strip()}", amount)
        logger.info("Bill %s paid by %s to %s", reference, alias, biller.id)
        return ref

    # Cash
    def _withdrawal_code(self):
        low = 10 ** (WITHDRAWAL_CODE_DIGITS - 1)
        return str(self.rng.randint(low, 10 * low - 1))

    def cash_withdrawal(self, alias, withdrawal_type, amount, pin, agent_alias=None):
        """Withdraw cash at an ATM ("GAB") or a merchant agent ("Marchand").

        The service fee of the channel is charged on top of the amount and
        the wallet is debited with both.

        Args:
            alias: Withdrawing alias.
            withdrawal_type: "GAB" or "Marchand".
            amount: Positive amount handed out in cash.
            pin: Alias PIN.
            agent_alias: The ATM or agent identified by scanning its code.
                When given the withdrawal completes at once. Otherwise a
                one-time code is issued and the record stays pending until
                the code is presented.

        Returns:
            CashWithdrawal, carrying the code when one was issued.

        Raises:
            ValidationError, InvalidPinError, UserSuspendedError,
            InsufficientBalanceError.
        """
        fee = CASH_WITHDRAWAL_FEES.get(withdrawal_type)
        if fee is None:
            raise ValidationError("withdrawal_type", withdrawal_type,
                                  f"must be one of {', '.join(CASH_WITHDRAWAL_FEES)}")
        if (amount is None or isinstance(amount, bool) or not isinstance(amount, (int, float))
                or not math.isfinite(amount) or amount <= 0):
            raise ValidationError("amount", amount, "must be positive")
        self._authorize(alias, pin)

        total = amount + fee
        code = None
        if agent_alias:
            counterparty, reason, status = agent_alias, f"Retrait {withdrawal_type}", TX_STATUS_COMPLETED
        else:
            code = self._withdrawal_code()
            counterparty = WITHDRAWAL_CODE_COUNTERPARTY
            reason = f"Retrait {withdrawal_type} - Code: {code}"
            status = TX_STATUS_PENDING

        with self.db.transaction():
            self.balances.debit(alias, total)
            ref = self.transactions.add_transaction(alias, "sent", counterparty, reason, total, status=status)
        logger.info("Cash withdrawal of %s (+%s fee) for %s, %s", amount, fee, alias, status)
        return CashWithdrawal(ref, withdrawal_type, amount, fee, total, status, code)
