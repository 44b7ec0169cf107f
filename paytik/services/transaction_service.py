"""Append-only transaction history of each alias."""
from paytik.config import ASSESSMENT_HISTORY_SIZE, TX_STATUS_COMPLETED, TX_STATUSES, TX_TYPES
from paytik.data_structures import Transaction
from paytik.exceptions import ValidationError


class TransactionService:
    """Records and reads wallet transactions."""

    def __init__(self, db_manager):
        self.db = db_manager

    def add_transaction(self, alias, tx_type, counterparty, reason, amount,
                        status=TX_STATUS_COMPLETED, date=None):
        """Append a transaction to an alias's history.

        Args:
            alias: Owner of the record.
            tx_type: One of sent, received, tontine, card_recharge, versement.
            counterparty: Other party (alias, merchant, operator...).
            reason: Free text shown in the history.
            amount: Non-negative amount.
            status: Status label, completed by default.
            date: ISO timestamp, now by default.

        Returns:
            The transaction reference ("TXN...").
        """
        if tx_type not in TX_TYPES:
            raise ValidationError("type", tx_type, f"must be one of {', '.join(TX_TYPES)}")
        if status not in TX_STATUSES:
            raise ValidationError("status", status, "unknown transaction status")
        if amount is None or amount < 0:
            raise ValidationError("amount", amount, "must not be negative")
        return self.db.add_transaction(alias, tx_type, counterparty, reason, amount, status, date=date)

    def get_transactions(self, alias, limit=None):
        """Transactions of an alias, newest first."""
        return [Transaction.from_row(r) for r in self.db.get_transactions(alias, limit)]

    def get_transaction(self, ref):
        row = self.db.get_transaction(ref)
        return Transaction.from_row(row) if row else None

    def recent_history(self, alias, size=ASSESSMENT_HISTORY_SIZE):
        """Summary of the latest transactions handed to the credit assessor."""
        return [
            {'amount': t.amount, 'type': t.type, 'date': t.date}
            for t in self.get_transactions(alias, limit=size)
        ]

    def get_ledger_df(self, alias=None, start_date=None, end_date=None):
        return self.db.get_ledger(alias, start_date, end_date)
