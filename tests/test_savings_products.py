"""Tests for vaults, tontines, the virtual card, contacts and recurring payments."""
import random
import unittest
from datetime import date

from paytik.database import DatabaseManager
from paytik.engine import PaytikEngine
from paytik.exceptions import (
    CardFrozenError,
    CardNotFoundError,
    InsufficientBalanceError,
    TontineNotFoundError,
    ValidationError,
    VaultNotFoundError,
)
from paytik.result import ErrorType
from paytik.services import VirtualCardService


class SavingsTestCase(unittest.TestCase):

    def setUp(self):
        self.db = DatabaseManager(":memory:")
        self.engine = PaytikEngine(self.db)
        self.engine.users.create_user("awa", "Awa Diop", "", "1234")
        self.engine.payments.recharge("awa", "Wave", 30000)

    def tearDown(self):
        self.db.close()

    def balance(self):
        return self.engine.balances.get_balance("awa")


class TestVaults(SavingsTestCase):

    def test_deposit_and_withdraw(self):
        """Test that deposits and withdrawals move money between wallet and vault."""
        vault = self.engine.vaults.create_vault("awa", "Tabaski", target_amount=100000)
        self.assertEqual(vault.balance, 0)

        vault = self.engine.vaults.deposit("awa", vault.id, 12000)
        self.assertEqual(vault.balance, 12000)
        self.assertEqual(self.balance(), 18000)

        vault = self.engine.vaults.withdraw("awa", vault.id, 2000)
        self.assertEqual(vault.balance, 10000)
        self.assertEqual(self.balance(), 20000)
        self.assertEqual(self.engine.vaults.total_savings("awa"), 10000)

    def test_overdrawn_vault_and_wallet(self):
        """Test that neither the vault nor the wallet can be overdrawn."""
        vault = self.engine.vaults.create_vault("awa", "Voyage")
        with self.assertRaises(InsufficientBalanceError):
            self.engine.vaults.withdraw("awa", vault.id, 1)
        with self.assertRaises(InsufficientBalanceError):
            self.engine.vaults.deposit("awa", vault.id, 30001)
        self.assertEqual(self.engine.vaults.get_vault("awa", vault.id).balance, 0)
        self.assertEqual(self.balance(), 30000)

    def test_vaults_are_scoped_to_owner(self):
        """Test that a vault is only reachable by its owner."""
        vault = self.engine.vaults.create_vault("awa", "Voyage")
        with self.assertRaises(VaultNotFoundError):
            self.engine.vaults.deposit("moussa", vault.id, 100)
        with self.assertRaises(ValidationError):
            self.engine.vaults.create_vault("awa", "  ")


class TestTontines(SavingsTestCase):

    def test_contribution_advances_progress(self):
        """Test that each contribution debits the wallet and advances progress by one share."""
        tontine = self.engine.tontines.create_tontine("awa", "Famille", ["moussa", "fatou", "ibou"], 5000, "monthly")
        self.assertEqual(tontine.participants, ["awa", "moussa", "fatou", "ibou"])
        self.assertEqual(tontine.progress, 0)
        self.assertFalse(tontine.is_my_turn)

        tontine = self.engine.tontines.contribute("awa", tontine.id)
        self.assertAlmostEqual(tontine.progress, 25)
        self.assertEqual(self.balance(), 25000)
        last = self.engine.transactions.get_transactions("awa")[0]
        self.assertEqual((last.type, last.counterparty, last.amount), ("tontine", "Famille", 5000))

    def test_progress_is_capped(self):
        """Test that progress stops at 100 and marks the member's turn."""
        tontine = self.engine.tontines.create_tontine("awa", "Duo", ["moussa"], 1000, "weekly")
        for _ in range(3):
            tontine = self.engine.tontines.contribute("awa", tontine.id)
        self.assertEqual(tontine.progress, 100)
        self.assertTrue(tontine.is_my_turn)

    def test_invalid_tontines(self):
        """Test that invalid amounts and frequencies are rejected."""
        with self.assertRaises(ValidationError):
            self.engine.tontines.create_tontine("awa", "Famille", [], 0, "monthly")
        with self.assertRaises(ValidationError):
            self.engine.tontines.create_tontine("awa", "Famille", [], 1000, "daily")
        with self.assertRaises(TontineNotFoundError):
            self.engine.tontines.contribute("awa", "tontine-missing")


class TestVirtualCard(SavingsTestCase):

    def setUp(self):
        super().setUp()
        self.cards = VirtualCardService(self.db, self.engine.balances, self.engine.transactions,
                                        rng=random.Random(7))

    def test_creation(self):
        """Test that a new card has a formatted number, expiry, CVV and opening balance."""
        card = self.cards.create_card("awa")
        self.assertEqual(card.balance, 50000)
        self.assertFalse(card.is_frozen)
        self.assertRegex(card.number, r"^\d{4} \d{4} \d{4} \d{4}$")
        self.assertRegex(card.cvv, r"^\d{3}$")
        self.assertRegex(card.expiry, r"^\d{2}/\d{2}$")
        history = self.cards.get_card_transactions("awa")
        self.assertEqual([(t.type, t.amount) for t in history], [("credit", 50000)])
        with self.assertRaises(ValidationError):
            self.cards.create_card("awa")

    def test_recharge_and_withdraw(self):
        """Test that card recharges and withdrawals move money with the wallet."""
        self.cards.create_card("awa")
        card = self.cards.recharge("awa", 10000)
        self.assertEqual(card.balance, 60000)
        self.assertEqual(self.balance(), 20000)
        self.assertEqual(self.engine.transactions.get_transactions("awa")[0].type, "card_recharge")

        card = self.cards.withdraw("awa", 5000)
        self.assertEqual(card.balance, 55000)
        self.assertEqual(self.balance(), 25000)
        with self.assertRaises(InsufficientBalanceError):
            self.cards.withdraw("awa", 55001)

    def test_frozen_card(self):
        """Test that a frozen card refuses operations until thawed."""
        self.cards.create_card("awa")
        self.assertTrue(self.cards.toggle_freeze("awa").is_frozen)
        with self.assertRaises(CardFrozenError):
            self.cards.recharge("awa", 1000)
        with self.assertRaises(CardFrozenError):
            self.cards.pay("awa", 1000, "Jumia")
        self.assertFalse(self.cards.toggle_freeze("awa").is_frozen)
        self.assertEqual(self.cards.pay("awa", 1000, "Jumia").balance, 49000)

    def test_delete_returns_balance(self):
        """Test that deleting a card returns its balance to the wallet."""
        self.cards.create_card("awa")
        returned = self.cards.delete_card("awa")
        self.assertEqual(returned, 50000)
        self.assertEqual(self.balance(), 80000)
        self.assertFalse(self.cards.has_card("awa"))
        with self.assertRaises(CardNotFoundError):
            self.cards.get_card("awa")


class TestContacts(SavingsTestCase):

    def test_default_contacts(self):
        """Test that a new alias starts with the default contacts."""
        contacts = self.engine.contacts.get_contacts("awa")
        self.assertEqual([c.name for c in contacts], ["Maman", "Boutique du coin", "Papa"])

    def test_add_and_remove(self):
        """Test that contacts can be added, de-duplicated and removed."""
        result = self.engine.contacts.add_contact("awa", "Moussa", "moussa")
        self.assertTrue(result)
        self.assertEqual(len(self.engine.contacts.get_contacts("awa")), 4)

        duplicate = self.engine.contacts.add_contact("awa", "moussa", "other")
        self.assertFalse(duplicate)
        self.assertEqual(duplicate.error_type, ErrorType.DUPLICATE)
        self.assertFalse(self.engine.contacts.add_contact("awa", "Autre", "boutiqueCoin"))

        self.assertTrue(self.engine.contacts.remove_contact("awa", result.value.id))
        self.assertFalse(self.engine.contacts.remove_contact("awa", result.value.id))
        self.assertEqual(len(self.engine.contacts.get_contacts("awa")), 3)

    def test_removed_default_contacts_are_not_reseeded(self):
        """Test that removed default contacts do not come back."""
        first = self.engine.contacts.get_contacts("awa")[0]
        self.engine.contacts.remove_contact("awa", first.id)
        self.assertEqual(len(self.engine.contacts.get_contacts("awa")), 2)


class TestRecurringPayments(SavingsTestCase):

    def test_schedule(self):
        """Test that due_payments follows monthly and weekly schedules and end dates."""
        service = self.engine.recurring_payments
        monthly = service.add_payment("awa", "moussa", 15000, "monthly", "2025-01-31", "Loyer")
        weekly = service.add_payment("awa", "fatou", 2000, "weekly", "2025-02-03", end_date="2025-03-03")

        self.assertEqual([p.id for p in service.due_payments("awa", date(2025, 2, 28))], [monthly.id])
        self.assertEqual([p.id for p in service.due_payments("awa", date(2025, 2, 17))], [weekly.id])
        self.assertEqual(service.due_payments("awa", date(2025, 3, 10)), [])
        self.assertEqual([p.id for p in service.due_payments("awa", date(2025, 3, 31))], [monthly.id])
        self.assertEqual(service.due_payments("awa", date(2025, 1, 1)), [])

    def test_add_remove_and_validation(self):
        """Test that payments can be added and removed, with invalid input refused."""
        service = self.engine.recurring_payments
        payment = service.add_payment("awa", "moussa", 15000, "monthly", "2025-01-01")
        self.assertEqual(len(service.get_payments("awa")), 1)
        self.assertTrue(service.remove_payment("awa", payment.id))
        self.assertFalse(service.remove_payment("awa", payment.id))

        with self.assertRaises(ValidationError):
            service.add_payment("awa", "moussa", 0, "monthly", "2025-01-01")
        with self.assertRaises(ValidationError):
            service.add_payment("awa", "moussa", 100, "yearly", "2025-01-01")
        with self.assertRaises(ValidationError):
            service.add_payment("awa", "moussa", 100, "weekly", "2025-02-01", end_date="2025-01-01")


if __name__ == '__main__':
    unittest.main()
