from dataclasses import dataclass, field
from datetime import date
from typing import List, Dict, Any, Optional


@dataclass
class Transaction:
    """A wallet ledger entry for one alias."""
    id: str
    alias: str
    type: str
    counterparty: str
    reason: str
    date: str
    amount: float
    status: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=row['ref'],
            alias=row['alias'],
            type=row['type'],
            counterparty=row['counterparty'],
            reason=row['reason'],
            date=row['date'],
            amount=row['amount'],
            status=row['status'],
        )


@dataclass
class CreditRequest:
    """A BNPL or Islamic financing request and its lifecycle state."""
    id: str
    product: str
    alias: str
    amount: float
    status: str
    reason: str
    request_date: str
    repaid_amount: float = 0.0
    repayment_plan: Optional[str] = None
    merchant_alias: Optional[str] = None
    down_payment: float = 0.0
    installments_count: Optional[int] = None
    repayment_frequency: Optional[str] = None
    first_installment_date: Optional[str] = None
    margin_rate: Optional[float] = None
    financing_type: Optional[str] = None
    duration_months: Optional[int] = None
    purpose: Optional[str] = None
    decided_at: Optional[str] = None

    @property
    def outstanding(self) -> float:
        return max(self.amount - self.repaid_amount, 0.0)

    @property
    def is_settled(self) -> bool:
        return self.status == "approved" and self.outstanding == 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'CreditRequest':
        return cls(**{k: row[k] for k in cls.__dataclass_fields__ if k in row})


@dataclass
class AssessmentOutcome:
    """Decision returned by a credit assessor."""
    status: str
    reason: str
    repayment_plan: Optional[str] = None


@dataclass
class BnplApplication:
    alias: str
    purchase_amount: float
    current_balance: float
    transaction_history: List[Dict[str, Any]]
    repayment_frequency: str
    installments_count: int
    first_installment_date: date
    margin_rate: float
    down_payment: float = 0.0


@dataclass
class FinancingApplication:
    alias: str
    financing_type: str
    amount: float
    duration_months: int
    purpose: str
    current_balance: float
    transaction_history: List[Dict[str, Any]]


@dataclass
class ScheduleRow:
    number: int
    date: date
    payment: float
    principal: float
    interest: float
    balance: float


@dataclass
class TegSimulation:
    """Output of the admin TEG simulator."""
    loan_amount: float
    duration: int
    periodicity: str
    annual_teg: float
    periodic_rate: float
    installment_amount: float
    total_repaid: float
    total_cost: float
    schedule: List[ScheduleRow]


@dataclass
class BnplQuote:
    """Figures shown to a client before a BNPL request is confirmed."""
    amount: float
    down_payment: float
    financed_amount: float
    margin_rate: float
    installments_count: int
    installment_amount: float
    total_repaid: float
    total_cost: float
    schedule: List[ScheduleRow]


@dataclass
class FinancingPlan:
    amount: float
    duration_months: int
    profit: float
    total_repayable: float
    installment_amount: int


@dataclass
class CashWithdrawal:
    """A cash withdrawal at an ATM or a merchant agent."""
    reference: str
    withdrawal_type: str
    amount: float
    fee: float
    total: float
    status: str
    code: Optional[str] = None


@dataclass
class Vault:
    id: str
    name: str
    balance: float
    target_amount: Optional[float] = None


@dataclass
class Tontine:
    id: str
    name: str
    participants: List[str]
    amount: float
    frequency: str
    progress: float = 0.0
    is_my_turn: bool = False


@dataclass
class CardDetails:
    number: str
    expiry: str
    cvv: str
    is_frozen: bool
    balance: float


@dataclass
class CardTransaction:
    id: str
    type: str
    amount: float
    merchant: str
    date: str


@dataclass
class Contact:
    id: str
    name: str
    alias: str


@dataclass
class RecurringPayment:
    id: str
    recipient_alias: str
    amount: float
    frequency: str
    start_date: str
    reason: str
    end_date: Optional[str] = None


@dataclass
class TreasuryOperation:
    id: str
    date: str
    type: str
    source: str
    destination: str
    amount: float
    status: str
    description: str


@dataclass
class Role:
    id: str
    name: str
    description: str
    permissions: List[str] = field(default_factory=list)
    is_deletable: bool = True


@dataclass
class ProductItem:
    id: str
    name: str


@dataclass
class ManagedUser:
    """Admin view of one user, joined from every per-alias table."""
    name: str
    email: str
    alias: str
    balance: float
    avatar: Optional[str]
    is_suspended: bool
    role: str = "user"
    feature_flags: Dict[str, bool] = field(default_factory=dict)
    transactions: List[Transaction] = field(default_factory=list)
    vaults: List[Vault] = field(default_factory=list)
    tontines: List[Tontine] = field(default_factory=list)
    virtual_card: Optional[CardDetails] = None

    @property
    def vaults_balance(self) -> float:
        return sum(v.balance for v in self.vaults)

    @property
    def tontines_balance(self) -> float:
        return sum(t.amount * len(t.participants) for t in self.tontines)

    @property
    def card_balance(self) -> float:
        return self.virtual_card.balance if self.virtual_card else 0.0
