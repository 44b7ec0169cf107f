"""Virtual payment card, one per alias."""
import logging
import random
from datetime import datetime

from dateutil.relativedelta import relativedelta

from paytik.config import VIRTUAL_CARD_OPENING_BALANCE
from paytik.data_structures import CardDetails, CardTransaction
from paytik.exceptions import CardFrozenError, CardNotFoundError, InsufficientBalanceError, ValidationError

logger = logging.getLogger(__name__)

CARD_VALIDITY_YEARS = 3


def _card_number(rng):
    return " ".join("".join(str(rng.randint(0, 9)) for _ in range(4)) for _ in range(4))


class VirtualCardService:
    """Handles the virtual card of an alias.

    A new card opens with VIRTUAL_CARD_OPENING_BALANCE and an initial credit
    record. Recharges and withdrawals move money between the main balance
    and the card atomically.
    """

    def __init__(self, db_manager, balance_service, transaction_service, rng=None):
        self.db = db_manager
        self.balances = balance_service
        self.transactions = transaction_service
        self.rng = rng or random.SystemRandom()

    def get_card(self, alias):
        row = self.db.get_card(alias)
        if not row:
            raise CardNotFoundError(alias)
        return CardDetails(row['number'], row['expiry'], row['cvv'], row['is_frozen'], row['balance'])

    def has_card(self, alias):
        return self.db.get_card(alias) is not None

    def get_card_transactions(self, alias):
        self.get_card(alias)
        return [CardTransaction(**r) for r in self.db.get_card_transactions(alias)]

    def create_card(self, alias):
        if self.has_card(alias):
            raise ValidationError("alias", alias, "already has a virtual card")
        expiry = (datetime.now() + relativedelta(years=CARD_VALIDITY_YEARS)).strftime("%m/%y")
        cvv = f"{self.rng.randint(0, 999):03d}"
        with self.db.transaction():
            self.db.save_card(alias, _card_number(self.rng), expiry, cvv, False, VIRTUAL_CARD_OPENING_BALANCE)
            self.db.add_card_transaction(alias, "credit", VIRTUAL_CARD_OPENING_BALANCE, "Solde initial")
        logger.info("Virtual card created for %s", alias)
        return self.get_card(alias)

    def _save(self, alias, card):
        self.db.save_card(alias, card.number, card.expiry, card.cvv, card.is_frozen, card.balance)

    def _active_card(self, alias):
        card = self.get_card(alias)
        if card.is_frozen:
            raise CardFrozenError(alias)
        return card

    def toggle_freeze(self, alias):
        card = self.get_card(alias)
        card.is_frozen = not card.is_frozen
        self._save(alias, card)
        logger.info("Virtual card of %s %s", alias, "frozen" if card.is_frozen else "unfrozen")
        return card

    def recharge(self, alias, amount):
        """Move ``amount`` from the main balance onto the card."""
        card = self._active_card(alias)
        with self.db.transaction():
            self.balances.debit(alias, amount)
            card.balance += amount
            self._save(alias, card)
            self.db.add_card_transaction(alias, "credit", amount, "Recharge depuis le solde")
            self.transactions.add_transaction(alias, "card_recharge", "Carte virtuelle",
                                              "Recharge carte virtuelle", amount)
        return card

    def withdraw(self, alias, amount):
        """Move ``amount`` from the card back to the main balance."""
        card = self._active_card(alias)
        if amount is not None and amount > card.balance:
            raise InsufficientBalanceError(amount, card.balance, alias)
        with self.db.transaction():
            self.balances.credit(alias, amount)
            card.balance -= amount
            self._save(alias, card)
            self.db.add_card_transaction(alias, "debit", amount, "Retrait vers le solde")
        return card

    def pay(self, alias, amount, merchant):
        """Pay a merchant with the card balance."""
        card = self._active_card(alias)
        if amount is None or amount <= 0:
            raise ValidationError("amount", amount, "must be positive")
        if amount > card.balance:
            raise InsufficientBalanceError(amount, card.balance, alias)
        with self.db.transaction():
            card.balance -= amount
            self._save(alias, card)
            self.db.add_card_transaction(alias, "debit", amount, merchant)
        return card

    def delete_card(self, alias):
        """Delete the card; its remaining balance goes back to the main balance."""
        card = self.get_card(alias)
        with self.db.transaction():
            if card.balance > 0:
                self.balances.credit(alias, card.balance)
            self.db.delete_card(alias)
        logger.info("Virtual card of %s deleted, %s returned", alias, card.balance)
        return card.balance
