"""Services package for PAYTIK business logic.

This package contains one focused service class per wallet or back-office
concern. PaytikEngine in paytik.engine wires them together.
"""

from . import amortization
from .assessment import RuleBasedAssessor
from .balance_service import BalanceService
from .transaction_service import TransactionService
from .user_service import UserService
from .credit_service import CreditRequestService, BnplService, FinancingService
from .product_service import ProductService
from .payment_service import PaymentService
from .vault_service import VaultService
from .tontine_service import TontineService
from .virtual_card_service import VirtualCardService
from .contact_service import ContactService
from .recurring_payment_service import RecurringPaymentService
from .treasury_service import TreasuryService
from .role_service import RoleService

__all__ = ['amortization', 'RuleBasedAssessor', 'BalanceService', 'TransactionService', 'UserService',
           'CreditRequestService', 'BnplService', 'FinancingService', 'ProductService', 'PaymentService',
           'VaultService', 'TontineService', 'VirtualCardService', 'ContactService',
           'RecurringPaymentService', 'TreasuryService', 'RoleService']
