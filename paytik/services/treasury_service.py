"""Treasury position of the platform and the operations moving it."""
import logging
from datetime import datetime

from paytik.config import TREASURY_ACCOUNT_LABELS, TREASURY_OPENING_BALANCES, TX_STATUS_COMPLETED
from paytik.data_structures import TreasuryOperation
from paytik.database import new_id
from paytik.exceptions import InsufficientBalanceError, TreasuryAccountError, ValidationError

logger = logging.getLogger(__name__)


class TreasuryService:
    """Handles own funds, client funds and the asset accounts.

    The accounts are seeded with TREASURY_OPENING_BALANCES the first time
    they are read.
    """

    def __init__(self, db_manager):
        self.db = db_manager

    def get_accounts(self):
        accounts = self.db.get_treasury_accounts()
        if not accounts:
            with self.db.transaction():
                for name, balance in TREASURY_OPENING_BALANCES.items():
                    self.db.set_treasury_balance(name, balance)
            accounts = self.db.get_treasury_accounts()
        return accounts

    def resolve_account(self, account):
        """Accept an account key or one of its display labels."""
        key = TREASURY_ACCOUNT_LABELS.get(account, account)
        if key not in self.get_accounts():
            raise TreasuryAccountError(account)
        return key

    def get_operations(self):
        return [TreasuryOperation(**r) for r in self.db.get_treasury_operations()]

    def add_operation(self, op_type, source, destination, amount, description=""):
        """Move ``amount`` from ``source`` to ``destination`` and log it.

        Raises:
            TreasuryAccountError: If either account is unknown.
            InsufficientBalanceError: If the source account cannot cover the amount.
        """
        source_key = self.resolve_account(source)
        destination_key = self.resolve_account(destination)
        if source_key == destination_key:
            raise ValidationError("destination", destination, "must differ from the source")
        if amount is None or amount <= 0:
            raise ValidationError("amount", amount, "must be positive")

        accounts = self.get_accounts()
        if accounts[source_key] < amount:
            raise InsufficientBalanceError(amount, accounts[source_key], source_key)

        operation = TreasuryOperation(
            id=new_id("op"),
            date=datetime.now().isoformat(),
            type=op_type,
            source=source_key,
            destination=destination_key,
            amount=amount,
            status=TX_STATUS_COMPLETED,
            description=description,
        )
        with self.db.transaction():
            self.db.set_treasury_balance(source_key, accounts[source_key] - amount)
            self.db.set_treasury_balance(destination_key, accounts[destination_key] + amount)
            self.db.add_treasury_operation(operation.id, operation.date, operation.type, operation.source,
                                           operation.destination, operation.amount, operation.status,
                                           operation.description)
        logger.info("Treasury %s of %s from %s to %s", op_type, amount, source_key, destination_key)
        return operation

    def total_assets(self):
        accounts = self.get_accounts()
        return sum(v for k, v in accounts.items() if k not in ("ownFunds", "clientFunds"))
