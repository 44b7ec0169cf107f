"""User directory, PINs, suspension, feature flags and monthly budgets."""
import hashlib
import logging
from datetime import datetime

from paytik.config import DEFAULT_FEATURE_FLAGS, PIN_LENGTH
from paytik.data_structures import CardDetails, ManagedUser, Tontine, Transaction, Vault
from paytik.exceptions import (
    DuplicateUserError,
    FeatureDisabledError,
    InvalidPinError,
    UserNotFoundError,
    UserSuspendedError,
    ValidationError,
)
from paytik.result import ErrorType, Result

logger = logging.getLogger(__name__)


def hash_pin(alias, pin):
    return hashlib.sha256(f"{alias}:{pin}".encode("utf-8")).hexdigest()


class UserService:
    """Handles user accounts and the admin user directory."""

    def __init__(self, db_manager):
        self.db = db_manager

    def create_user(self, alias, name, email, pin, role="user"):
        """Register a new alias.

        Raises:
            ValidationError: If the alias is empty or the PIN is not PIN_LENGTH digits.
            DuplicateUserError: If the alias is already registered.
        """
        alias = (alias or "").strip()
        if not alias:
            raise ValidationError("alias", alias, "must not be empty")
        self._check_pin(pin)
        if self.db.get_user(alias):
            raise DuplicateUserError(alias)
        self.db.add_user(alias, name, email, hash_pin(alias, pin), role)
        # Touch the balance so the alias starts at the initial balance
        self.db.get_balance(alias)
        logger.info("User %s created with role %s", alias, role)
        return self.get_user(alias)

    def _check_pin(self, pin):
        pin = str(pin or "")
        if len(pin) != PIN_LENGTH or not pin.isdigit():
            raise ValidationError("pin", "****", f"must be {PIN_LENGTH} digits")

    def get_user(self, alias):
        user = self.db.get_user(alias)
        if not user:
            raise UserNotFoundError(alias)
        return user

    def exists(self, alias):
        return self.db.get_user(alias) is not None

    def verify_pin(self, alias, pin):
        user = self.get_user(alias)
        if user['pin_hash'] != hash_pin(alias, pin):
            logger.warning("Invalid PIN for %s", alias)
            raise InvalidPinError(alias)
        return True

    def change_pin(self, alias, old_pin, new_pin):
        self.verify_pin(alias, old_pin)
        self._check_pin(new_pin)
        self.db.set_user_pin_hash(alias, hash_pin(alias, new_pin))

    def require_active(self, alias):
        """Return the user record, refusing unknown or suspended aliases."""
        user = self.get_user(alias)
        if user['is_suspended']:
            raise UserSuspendedError(alias)
        return user

    def toggle_user_suspension(self, alias, suspend):
        if not self.exists(alias):
            return Result.fail(f"User '{alias}' not found", ErrorType.NOT_FOUND)
        self.db.set_user_suspended(alias, suspend)
        logger.info("User %s %s", alias, "suspended" if suspend else "reactivated")
        return Result.ok(suspend)

    # Feature flags
    def get_feature_flags(self, alias):
        flags = dict(DEFAULT_FEATURE_FLAGS)
        flags.update(self.get_user(alias)['feature_flags'])
        return flags

    def set_feature_flag(self, alias, feature, enabled):
        if feature not in DEFAULT_FEATURE_FLAGS:
            raise ValidationError("feature", feature, "unknown feature")
        flags = self.get_feature_flags(alias)
        flags[feature] = bool(enabled)
        self.db.set_user_feature_flags(alias, flags)
        return flags

    def require_feature(self, alias, feature):
        if not self.get_feature_flags(alias).get(feature, False):
            raise FeatureDisabledError(alias, feature)

    # Monthly budget
    def get_monthly_budget(self, alias):
        return float(self.db.get_setting(f"monthly_budget_{alias}", "0"))

    def set_monthly_budget(self, alias, amount):
        if amount is None or amount < 0:
            raise ValidationError("budget", amount, "must not be negative")
        self.db.set_setting(f"monthly_budget_{alias}", amount)

    def monthly_spending(self, alias, month=None):
        """Total sent by an alias during a month ("YYYY-MM", current month by default)."""
        if month is None:
            month = datetime.now().strftime("%Y-%m")
        df = self.db.get_ledger(alias)
        if df.empty:
            return 0.0
        spent = df[(df['type'] == 'sent') & (df['date'].str.startswith(month))]
        return float(spent['amount'].sum())

    # Directory
    def list_users(self):
        """Scan every registered alias into a lightweight ManagedUser list."""
        users = []
        for alias in self.db.get_user_aliases():
            user = self.db.get_user(alias)
            users.append(ManagedUser(
                name=user['name'],
                email=user['email'],
                alias=alias,
                balance=self.db.get_balance(alias),
                avatar=user['avatar'],
                is_suspended=user['is_suspended'],
                role=user['role'],
                feature_flags=user['feature_flags'],
            ))
        return users

    def get_managed_user(self, alias):
        """Join every per-alias record into the admin view of one user."""
        user = self.get_user(alias)
        card = self.db.get_card(alias)
        return ManagedUser(
            name=user['name'],
            email=user['email'],
            alias=alias,
            balance=self.db.get_balance(alias),
            avatar=user['avatar'],
            is_suspended=user['is_suspended'],
            role=user['role'],
            feature_flags=self.get_feature_flags(alias),
            transactions=[Transaction.from_row(r) for r in self.db.get_transactions(alias)],
            vaults=[Vault(v['id'], v['name'], v['balance'], v['target_amount'])
                    for v in self.db.get_vaults(alias)],
            tontines=[Tontine(t['id'], t['name'], t['participants'], t['amount'], t['frequency'],
                              t['progress'], t['is_my_turn'])
                      for t in self.db.get_tontines(alias)],
            virtual_card=CardDetails(card['number'], card['expiry'], card['cvv'],
                                     card['is_frozen'], card['balance']) if card else None,
        )
