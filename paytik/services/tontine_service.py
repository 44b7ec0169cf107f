"""Tontines (rotating savings groups)."""
import logging

from paytik.data_structures import Tontine
from paytik.database import new_id
from paytik.exceptions import TontineNotFoundError, ValidationError

logger = logging.getLogger(__name__)

FREQUENCIES = ("weekly", "monthly")


def _tontine(row):
    return Tontine(row['id'], row['name'], row['participants'], row['amount'], row['frequency'],
                   row['progress'], row['is_my_turn'])


class TontineService:
    """Handles the tontines an alias takes part in."""

    def __init__(self, db_manager, balance_service, transaction_service):
        self.db = db_manager
        self.balances = balance_service
        self.transactions = transaction_service

    def get_tontines(self, alias):
        return [_tontine(r) for r in self.db.get_tontines(alias)]

    def get_tontine(self, alias, tontine_id):
        row = self.db.get_tontine(alias, tontine_id)
        if not row:
            raise TontineNotFoundError(tontine_id)
        return _tontine(row)

    def create_tontine(self, alias, name, participants, amount, frequency):
        """Start a tontine; progress starts at 0 and it is not the creator's turn.

        Args:
            alias: Creator, added to the participants if missing.
            name: Display name.
            participants: Aliases of the members.
            amount: Contribution per member and per round.
            frequency: weekly or monthly.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", name, "must not be empty")
        if amount is None or amount <= 0:
            raise ValidationError("amount", amount, "must be positive")
        if frequency not in FREQUENCIES:
            raise ValidationError("frequency", frequency, f"must be one of {', '.join(FREQUENCIES)}")
        members = list(dict.fromkeys([alias] + [p for p in (participants or []) if p]))
        tontine_id = new_id("tontine")
        self.db.add_tontine(tontine_id, alias, name, members, amount, frequency)
        logger.info("Tontine %s created by %s with %d members", tontine_id, alias, len(members))
        return self.get_tontine(alias, tontine_id)

    def contribute(self, alias, tontine_id):
        """Pay this round's contribution.

        The progress advances by one member share and is capped at 100.
        """
        tontine = self.get_tontine(alias, tontine_id)
        share = 100.0 / max(len(tontine.participants), 1)
        progress = min(100.0, tontine.progress + share)
        with self.db.transaction():
            self.balances.debit(alias, tontine.amount)
            self.transactions.add_transaction(alias, "tontine", tontine.name,
                                              "Cotisation tontine", tontine.amount)
            self.db.update_tontine_progress(tontine_id, progress, progress >= 100.0)
        logger.info("Contribution of %s to tontine %s by %s", tontine.amount, tontine_id, alias)
        return self.get_tontine(alias, tontine_id)
