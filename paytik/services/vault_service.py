"""Savings vaults funded from the main balance."""
import logging

from paytik.data_structures import Vault
from paytik.database import new_id
from paytik.exceptions import InsufficientBalanceError, ValidationError, VaultNotFoundError

logger = logging.getLogger(__name__)


def _vault(row):
    return Vault(row['id'], row['name'], row['balance'], row['target_amount'])


class VaultService:
    """Handles the savings vaults of an alias.

    Deposits and withdrawals move money between the main balance and the
    vault inside one database transaction.
    """

    def __init__(self, db_manager, balance_service):
        self.db = db_manager
        self.balances = balance_service

    def get_vaults(self, alias):
        return [_vault(r) for r in self.db.get_vaults(alias)]

    def get_vault(self, alias, vault_id):
        row = self.db.get_vault(alias, vault_id)
        if not row:
            raise VaultNotFoundError(vault_id)
        return _vault(row)

    def create_vault(self, alias, name, target_amount=None):
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", name, "must not be empty")
        if target_amount is not None and target_amount <= 0:
            raise ValidationError("target_amount", target_amount, "must be positive")
        vault_id = new_id("vault")
        self.db.add_vault(vault_id, alias, name, 0.0, target_amount)
        logger.info("Vault %s created for %s", vault_id, alias)
        return self.get_vault(alias, vault_id)

    def deposit(self, alias, vault_id, amount):
        """Move ``amount`` from the main balance into the vault."""
        vault = self.get_vault(alias, vault_id)
        with self.db.transaction():
            self.balances.debit(alias, amount)
            self.db.set_vault_balance(vault_id, vault.balance + amount)
        return self.get_vault(alias, vault_id)

    def withdraw(self, alias, vault_id, amount):
        """Move ``amount`` from the vault back to the main balance.

        Raises:
            InsufficientBalanceError: If the vault holds less than ``amount``.
        """
        vault = self.get_vault(alias, vault_id)
        if amount is not None and amount > vault.balance:
            raise InsufficientBalanceError(amount, vault.balance, alias)
        with self.db.transaction():
            self.balances.credit(alias, amount)
            self.db.set_vault_balance(vault_id, vault.balance - amount)
        return self.get_vault(alias, vault_id)

    def total_savings(self, alias):
        return sum(v.balance for v in self.get_vaults(alias))
