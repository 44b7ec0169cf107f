"""Smoke tests for the command line."""
import re
import unittest

from click.testing import CliRunner

from paytik.main import cli


class TestCli(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def invoke(self, *args):
        return self.runner.invoke(cli, ["--db", "paytik-test.db", "--log-level", "WARNING", *args])

    def test_simulate(self):
        """Test that simulate prints the TEG and the dated schedule."""
        with self.runner.isolated_filesystem():
            result = self.invoke("simulate", "100000", "12", "--first-date", "2025-01-15")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("TEG annuel: 15.00 %", result.output)
        self.assertIn("15/12/2025", result.output)

    def test_simulate_above_cap(self):
        """Test that simulate exits with code 1 above the TEG cap."""
        with self.runner.isolated_filesystem():
            result = self.invoke("simulate", "100000", "12", "--teg", "20")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("exceeds", result.output)

    def test_simulate_export(self):
        """Test that simulate exports the schedule to CSV."""
        with self.runner.isolated_filesystem():
            result = self.invoke("simulate", "50000", "6", "--export", "echeancier.csv")
            with open("echeancier.csv", encoding="utf-8") as f:
                lines = f.read().splitlines()
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(len(lines), 7)

    def test_quote(self):
        """Test that quote prints the financed amount."""
        with self.runner.isolated_filesystem():
            result = self.invoke("quote", "60000", "3", "--down-payment", "10000", "--first-date", "2025-02-01")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Montant financé: 50.000 F", result.output)

    def test_credit_flow(self):
        """Test the BNPL lifecycle from submission to repayment."""
        with self.runner.isolated_filesystem():
            self.assertEqual(self.invoke("create-user", "awa", "Awa Diop", "--pin", "1234").exit_code, 0)
            self.assertEqual(self.invoke("create-user", "boutique", "Boutique", "--pin", "4321").exit_code, 0)
            self.assertEqual(self.invoke("credit", "awa", "100000").exit_code, 0)

            submitted = self.invoke("bnpl", "awa", "boutique", "120000", "3", "--first-date", "2025-02-01")
            self.assertEqual(submitted.exit_code, 0, submitted.output)
            self.assertIn("review", submitted.output)
            request_id = re.search(r"bnpl-[0-9a-f]{12}", submitted.output).group(0)

            listed = self.invoke("requests", "--status", "review")
            self.assertIn(request_id, listed.output)

            refused = self.invoke("approve", request_id)
            self.assertEqual(refused.exit_code, 1)
            self.assertIn("Insufficient balance", refused.output)

            self.assertEqual(self.invoke("credit", "awa", "50000").exit_code, 0)
            approved = self.invoke("approve", request_id)
            self.assertEqual(approved.exit_code, 0, approved.output)
            self.assertIn("approved", approved.output)

            again = self.invoke("reject", request_id)
            self.assertEqual(again.exit_code, 1)

            repaid = self.invoke("repay", request_id, "20000")
            self.assertEqual(repaid.exit_code, 0, repaid.output)
            self.assertIn("20.000 F repaid", repaid.output)

            analysis = self.invoke("analysis")
            self.assertIn("Transactions: 5", analysis.output)

    def test_send_with_wrong_pin(self):
        """Test that send refuses a wrong PIN."""
        with self.runner.isolated_filesystem():
            self.invoke("create-user", "awa", "Awa", "--pin", "1234")
            self.invoke("create-user", "moussa", "Moussa", "--pin", "5678")
            self.invoke("credit", "awa", "5000")
            result = self.invoke("send", "awa", "moussa", "1000", "--pin", "0000")
            self.assertEqual(result.exit_code, 1)
            ok = self.invoke("send", "awa", "moussa", "1000", "--pin", "1234", "--reason", "Taxi")
            self.assertEqual(ok.exit_code, 0, ok.output)
            self.assertIn("1.000 F sent to moussa", ok.output)

    def test_finance(self):
        """Test that a financing request from a user without history is rejected."""
        with self.runner.isolated_filesystem():
            self.invoke("create-user", "awa", "Awa", "--pin", "1234")
            result = self.invoke("finance", "awa", "mourabaha", "120000", "12", "Achat d'un frigo pour la boutique")
        self.assertEqual(result.exit_code, 0, result.output)
        # No history yet
        self.assertIn("rejected", result.output)


if __name__ == '__main__':
    unittest.main()
