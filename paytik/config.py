"""Centralized configuration for PAYTIK.

This module contains all magic numbers, default values, and business rule
constants used by the wallet and credit services.
"""
import os

# =============================================================================
# STORAGE & LOGGING
# =============================================================================

DEFAULT_DB_NAME = os.environ.get("PAYTIK_DB", "paytik.db")

LOG_LEVEL = os.environ.get("PAYTIK_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# =============================================================================
# WALLET
# =============================================================================

# Balance of a freshly created alias
INITIAL_BALANCE = 0

# PIN length enforced at user creation
PIN_LENGTH = 4

# Transaction types and statuses (stored verbatim)
TX_TYPES = ("sent", "received", "tontine", "card_recharge", "versement")
TX_STATUS_COMPLETED = "Terminé"
TX_STATUS_PENDING = "En attente"
TX_STATUS_FAILED = "Échoué"
TX_STATUS_RETURNED = "Retourné"
TX_STATUSES = (TX_STATUS_COMPLETED, TX_STATUS_PENDING, TX_STATUS_FAILED, TX_STATUS_RETURNED)

# Number of recent transactions handed to the credit assessor
ASSESSMENT_HISTORY_SIZE = 10

# =============================================================================
# RATES
# =============================================================================

# Annual margin rate of the BNPL product, in percent
ANNUAL_MARGIN_RATE = 23.5

# Annual profit rate of Islamic financing (Mourabaha), as a fraction
ISLAMIC_ANNUAL_PROFIT_RATE = 0.235

# Regulatory cap on the annual effective rate (TEG)
MAX_ANNUAL_TEG = 0.15

PERIODS_PER_YEAR = {
    "daily": 365,
    "weekly": 52,
    "monthly": 12,
}

# The admin simulator speaks in units rather than frequencies
PERIODICITY_ALIASES = {
    "days": "daily",
    "weeks": "weekly",
    "months": "monthly",
}

# Newton-Raphson settings for the RATE solver
RATE_MAX_ITERATIONS = 20
RATE_TOLERANCE = 1e-6

# =============================================================================
# CREDIT PRODUCTS
# =============================================================================

CREDIT_STATUS_REVIEW = "review"
CREDIT_STATUS_APPROVED = "approved"
CREDIT_STATUS_REJECTED = "rejected"

BNPL_PRODUCT = "bnpl"
FINANCING_PRODUCT = "financing"
FINANCING_TYPES = ("mourabaha", "ijara", "moudaraba")

FINANCING_TYPE_LABELS = {
    "bnpl": "Crédit Achat (BNPL)",
    "mourabaha": "Mourabaha (Achat de biens)",
    "ijara": "Ijara (Location)",
    "moudaraba": "Moudaraba (Partenariat)",
}

# Assessment thresholds (Fcfa)
BNPL_APPROVAL_LIMIT = 100_000
BNPL_CAUTION_LIMIT = 150_000
FINANCING_APPROVAL_LIMIT = 300_000
FINANCING_CAUTION_LIMIT = 500_000
LOW_BALANCE_THRESHOLD = 1_000
FINANCING_LONG_DURATION_MONTHS = 24

FINANCING_MIN_DURATION = 1
FINANCING_MAX_DURATION = 36
FINANCING_PURPOSE_MIN_LENGTH = 10
FINANCING_PURPOSE_MAX_LENGTH = 200

# Minimum amount accepted by the TEG simulator
MIN_SIMULATION_AMOUNT = 1000

# Account labels used as counterparties of credit movements
FINANCING_DESK_ALIAS = "Midi Financement"
CREDIT_DESK_ALIAS = "PAYTIK Crédit"

# =============================================================================
# PRODUCTS & SEEDS
# =============================================================================

DEFAULT_FEATURE_FLAGS = {
    "virtualCards": True,
    "tontine": True,
    "bnpl": True,
}

VIRTUAL_CARD_OPENING_BALANCE = 50_000

# Cash withdrawal service fees, added on top of the amount withdrawn
CASH_WITHDRAWAL_FEES = {
    "GAB": 250,
    "Marchand": 100,
}
WITHDRAWAL_CODE_COUNTERPARTY = "Code de retrait"
WITHDRAWAL_CODE_DIGITS = 6

DEFAULT_CONTACTS = [
    {"name": "Maman", "alias": "+221771112233"},
    {"name": "Boutique du coin", "alias": "boutiqueCoin"},
    {"name": "Papa", "alias": "+221774445566"},
]

DEFAULT_BILLERS = [
    {"id": "SENELEC", "name": "SENELEC - Électricité"},
    {"id": "SDE", "name": "SDE - Eau"},
    {"id": "Orange", "name": "Orange - Internet / Mobile"},
    {"id": "Free", "name": "Free - Internet / Mobile"},
    {"id": "Canal+", "name": "Canal+ - TV"},
]

DEFAULT_MOBILE_MONEY_OPERATORS = [
    {"id": "Wave", "name": "Wave"},
    {"id": "Orange Money", "name": "Orange Money"},
    {"id": "Free Money", "name": "Free Money"},
    {"id": "Wizall", "name": "Wizall Money"},
]

DEFAULT_ROLES = [
    {"id": "superadmin", "name": "Super Admin",
     "description": "Contrôle total sur la plateforme, y compris la gestion des autres administrateurs.",
     "permissions": ["Toutes les permissions"], "is_deletable": False},
    {"id": "admin", "name": "Admin",
     "description": "Gère les utilisateurs, supervise les transactions et configure les produits.",
     "permissions": ["Gestion utilisateurs", "Analyse transactions", "Gestion produits"], "is_deletable": False},
    {"id": "analyst", "name": "Agent de Crédit",
     "description": "Examine et valide les demandes de financement des clients.",
     "permissions": ["Voir financements", "Approuver financements", "Rejeter financements"], "is_deletable": True},
    {"id": "compliance", "name": "Agent de Conformité",
     "description": "Supervise la conformité des opérations et des produits avec les standards éthiques.",
     "permissions": ["Voir transactions", "Rapports de conformité", "Auditer les produits"], "is_deletable": True},
    {"id": "support", "name": "Support",
     "description": "Assiste les utilisateurs, consulte les transactions et peut suspendre des comptes.",
     "permissions": ["Consultation utilisateurs", "Consultation transactions", "Suspension utilisateurs"], "is_deletable": False},
    {"id": "teller", "name": "Guichetier",
     "description": "Gère les opérations cash en agence: dépôts, retraits, ouverture de comptes.",
     "permissions": ["Dépôt cash", "Retrait cash", "Ouvrir compte", "Vérifier identité"], "is_deletable": True},
    {"id": "branch_manager", "name": "Responsable Agence",
     "description": "Supervise les opérations d'un point de service ou d'une agence.",
     "permissions": ["Voir transactions agence", "Gérer guichetiers", "Rapports agence"], "is_deletable": True},
    {"id": "merchant", "name": "Marchand",
     "description": "Accepte les paiements, consulte son historique de ventes et demande des versements.",
     "permissions": ["Recevoir paiements", "Voir ses transactions", "Demander versements"], "is_deletable": False},
    {"id": "user", "name": "Utilisateur",
     "description": "Utilisateur standard de l'application avec accès aux fonctionnalités de base.",
     "permissions": ["Payer", "Recharger", "Gérer ses produits (coffres, etc.)"], "is_deletable": False},
]

# Treasury opening position (Fcfa)
TREASURY_OPENING_BALANCES = {
    "ownFunds": 150_000_000,
    "clientFunds": 850_000_000,
    "centralBank": 300_000_000,
    "commercialBanks": 450_000_000,
    "mobileMoneyOperators": 200_000_000,
    "foreignCorrespondents": 50_000_000,
}

# Display names accepted for the two funding accounts
TREASURY_ACCOUNT_LABELS = {
    "Fonds Propres": "ownFunds",
    "Fonds Clients": "clientFunds",
}

# =============================================================================
# DISPLAY FORMATS
# =============================================================================

DATE_FORMAT_STORAGE = "%Y-%m-%d"
DATE_FORMAT_DISPLAY = "%d/%m/%Y"
CURRENCY_SUFFIX = "F"
REPAYMENT_PLAN_TEMPLATE = "{count} versements de {amount} Fcfa"
