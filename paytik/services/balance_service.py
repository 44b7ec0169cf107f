"""Main wallet balance of each alias."""
import logging

from paytik.exceptions import InsufficientBalanceError, ValidationError

logger = logging.getLogger(__name__)


class BalanceService:
    """Credits and debits the main balance of an alias.

    Both operations join the caller's database transaction when there is
    one, so a transfer made of a debit and a credit is applied as a whole.
    """

    def __init__(self, db_manager):
        self.db = db_manager

    def get_balance(self, alias):
        return self.db.get_balance(alias)

    def credit(self, alias, amount):
        """Add ``amount`` to the balance and return the new balance."""
        self._check_amount(amount)
        new_balance = self.db.get_balance(alias) + amount
        self.db.set_balance(alias, new_balance)
        return new_balance

    def debit(self, alias, amount):
        """Remove ``amount`` from the balance and return the new balance.

        Raises:
            InsufficientBalanceError: If the balance does not cover the amount.
        """
        self._check_amount(amount)
        current = self.db.get_balance(alias)
        if current < amount:
            logger.warning("Debit of %s refused for %s (balance %s)", amount, alias, current)
            raise InsufficientBalanceError(amount, current, alias)
        new_balance = current - amount
        self.db.set_balance(alias, new_balance)
        return new_balance

    def _check_amount(self, amount):
        if amount is None or amount <= 0:
            raise ValidationError("amount", amount, "must be positive")
