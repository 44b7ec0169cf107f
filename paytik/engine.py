"""Business logic engine for PAYTIK.

This module provides the PaytikEngine class which acts as a facade over
the focused service classes in paytik/services/.

Service Classes:
    - UserService, BalanceService, TransactionService: wallet core
    - BnplService, FinancingService: credit request lifecycle
    - PaymentService: transfers, QR, mobile money and bills
    - VaultService, TontineService, VirtualCardService: savings and card
    - ContactService, RecurringPaymentService: address book and schedules
    - TreasuryService, RoleService, ProductService: back office
"""
from paytik.reports import ReportGenerator
from paytik.services import (
    BalanceService,
    BnplService,
    ContactService,
    FinancingService,
    PaymentService,
    ProductService,
    RecurringPaymentService,
    RoleService,
    RuleBasedAssessor,
    TontineService,
    TransactionService,
    TreasuryService,
    UserService,
    VaultService,
    VirtualCardService,
    amortization,
)


class PaytikEngine:
    """Handles business logic, interfacing with DatabaseManager.

    Services are created on first use and share the same DatabaseManager,
    so a multi-service operation can run inside one ``db.transaction()``.

    Attributes:
        db: DatabaseManager instance for data persistence.
        assessor: Credit assessor handed to the credit services.
    """

    def __init__(self, db_manager, assessor=None):
        self.db = db_manager
        self.assessor = assessor or RuleBasedAssessor()
        self._services = {}

    def _service(self, name, factory):
        if name not in self._services:
            self._services[name] = factory()
        return self._services[name]

    @property
    def users(self):
        """Lazy-load UserService instance."""
        return self._service('users', lambda: UserService(self.db))

    @property
    def balances(self):
        """Lazy-load BalanceService instance."""
        return self._service('balances', lambda: BalanceService(self.db))

    @property
    def transactions(self):
        """Lazy-load TransactionService instance."""
        return self._service('transactions', lambda: TransactionService(self.db))

    @property
    def bnpl(self):
        """Lazy-load BnplService instance."""
        return self._service('bnpl', lambda: BnplService(
            self.db, self.balances, self.transactions, self.users, self.assessor))

    @property
    def financing(self):
        """Lazy-load FinancingService instance."""
        return self._service('financing', lambda: FinancingService(
            self.db, self.balances, self.transactions, self.users, self.assessor))

    @property
    def products(self):
        return self._service('products', lambda: ProductService(self.db))

    @property
    def payments(self):
        return self._service('payments', lambda: PaymentService(
            self.db, self.balances, self.transactions, self.users, self.products, self.bnpl))

    @property
    def vaults(self):
        return self._service('vaults', lambda: VaultService(self.db, self.balances))

    @property
    def tontines(self):
        return self._service('tontines', lambda: TontineService(self.db, self.balances, self.transactions))

    @property
    def cards(self):
        return self._service('cards', lambda: VirtualCardService(self.db, self.balances, self.transactions))

    @property
    def contacts(self):
        return self._service('contacts', lambda: ContactService(self.db))

    @property
    def recurring_payments(self):
        return self._service('recurring_payments', lambda: RecurringPaymentService(self.db))

    @property
    def treasury(self):
        return self._service('treasury', lambda: TreasuryService(self.db))

    @property
    def roles(self):
        return self._service('roles', lambda: RoleService(self.db))

    @property
    def reports(self):
        return self._service('reports', lambda: ReportGenerator(self.db))

    def credit_service(self, product):
        """Return the lifecycle service of a product ("bnpl" or "financing")."""
        if product == self.bnpl.product:
            return self.bnpl
        if product == self.financing.product:
            return self.financing
        raise ValueError(f"Unknown credit product '{product}'")

    def find_credit_request(self, request_id):
        """Look a request up in every product; returns (service, CreditRequest)."""
        row = self.db.get_credit_request(request_id)
        if row is None:
            # Let the service raise its not-found error
            return self.bnpl, self.bnpl.get_request(request_id)
        service = self.credit_service(row['product'])
        return service, service.get_request(request_id)

    def update_request_status(self, request_id, status):
        service, _ = self.find_credit_request(request_id)
        return service.update_request_status(request_id, status)

    def repay(self, request_id, amount):
        service, _ = self.find_credit_request(request_id)
        return service.repay(request_id, amount)

    def simulate_teg(self, loan_amount, duration, periodicity, first_installment_date, annual_teg=None):
        if annual_teg is None:
            return amortization.simulate_teg(loan_amount, duration, periodicity, first_installment_date)
        return amortization.simulate_teg(loan_amount, duration, periodicity, first_installment_date, annual_teg)

    def quote_bnpl(self, amount, down_payment, installments_count, frequency, first_installment_date,
                   margin_rate=None):
        return amortization.quote_bnpl(amount, down_payment, installments_count, frequency,
                                       first_installment_date, margin_rate)

    def get_ledger_df(self, alias=None, start_date=None, end_date=None):
        return self.db.get_ledger(alias, start_date, end_date)
