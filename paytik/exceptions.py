"""Custom exceptions for PAYTIK."""


class PaytikError(Exception):
    """Base exception for all PAYTIK errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class DatabaseError(PaytikError):
    """Raised when a database operation fails."""
    pass


class TransactionError(DatabaseError):
    """Raised when a database transaction fails to complete."""
    pass


class ValidationError(PaytikError):
    """Raised when an input value is out of its accepted domain."""

    def __init__(self, field: str, value, reason: str):
        details = {'field': field, 'value': value}
        super().__init__(f"Invalid {field}: {reason}", details)


class CalculationError(PaytikError):
    """Raised when a financial formula receives degenerate input."""
    pass


class RateConvergenceError(CalculationError):
    """Raised when the RATE solver does not converge."""

    def __init__(self, nper: int, payment: float, present_value: float, iterations: int):
        details = {
            'nper': nper,
            'payment': payment,
            'present_value': present_value,
            'iterations': iterations,
        }
        super().__init__("Rate solver did not converge", details)


class TegCapExceededError(CalculationError):
    """Raised when an annual effective rate exceeds the regulatory cap."""

    def __init__(self, annual_rate: float, cap: float):
        details = {'annual_rate': annual_rate, 'cap': cap}
        message = f"TEG {annual_rate * 100:.2f}% exceeds the {cap * 100:.2f}% cap"
        super().__init__(message, details)


class InsufficientBalanceError(PaytikError):
    """Raised when an operation cannot be completed due to insufficient balance."""

    def __init__(self, required: float, available: float, alias: str = None):
        details = {
            'required': required,
            'available': available
        }
        if alias:
            details['alias'] = alias

        message = f"Insufficient balance: required {required}, available {available}"
        super().__init__(message, details)


class UserNotFoundError(PaytikError):
    """Raised when an alias has no user record."""

    def __init__(self, alias: str):
        super().__init__(f"User '{alias}' not found", {'alias': alias})


class DuplicateUserError(PaytikError):
    """Raised when creating a user whose alias is already taken."""

    def __init__(self, alias: str):
        super().__init__(f"Alias '{alias}' is already registered", {'alias': alias})


class UserSuspendedError(PaytikError):
    """Raised when a suspended user attempts an operation."""

    def __init__(self, alias: str):
        super().__init__(f"User '{alias}' is suspended", {'alias': alias})


class InvalidPinError(PaytikError):
    """Raised when a PIN does not match the stored one."""

    def __init__(self, alias: str):
        super().__init__("Invalid PIN", {'alias': alias})


class FeatureDisabledError(PaytikError):
    """Raised when a product is switched off for the user."""

    def __init__(self, alias: str, feature: str):
        details = {'alias': alias, 'feature': feature}
        super().__init__(f"Feature '{feature}' is disabled for '{alias}'", details)


class CreditRequestNotFoundError(PaytikError):
    """Raised when a credit request cannot be found."""

    def __init__(self, request_id: str):
        super().__init__(f"Credit request '{request_id}' not found", {'request_id': request_id})


class InvalidStatusTransitionError(PaytikError):
    """Raised when a credit request is moved out of a terminal status."""

    def __init__(self, request_id: str, current: str, requested: str):
        details = {
            'request_id': request_id,
            'current': current,
            'requested': requested,
        }
        message = f"Request '{request_id}' cannot move from '{current}' to '{requested}'"
        super().__init__(message, details)


class RepaymentError(PaytikError):
    """Raised when a repayment is not acceptable for a request."""
    pass


class VaultNotFoundError(PaytikError):
    """Raised when a vault cannot be found."""

    def __init__(self, vault_id: str):
        super().__init__(f"Vault '{vault_id}' not found", {'vault_id': vault_id})


class TontineNotFoundError(PaytikError):
    """Raised when a tontine cannot be found."""

    def __init__(self, tontine_id: str):
        super().__init__(f"Tontine '{tontine_id}' not found", {'tontine_id': tontine_id})


class CardNotFoundError(PaytikError):
    """Raised when an alias has no virtual card."""

    def __init__(self, alias: str):
        super().__init__(f"No virtual card for '{alias}'", {'alias': alias})


class CardFrozenError(PaytikError):
    """Raised when an operation targets a frozen virtual card."""

    def __init__(self, alias: str):
        super().__init__(f"Virtual card of '{alias}' is frozen", {'alias': alias})


class TreasuryAccountError(PaytikError):
    """Raised when a treasury operation names an unknown account."""

    def __init__(self, account: str):
        super().__init__(f"Unknown treasury account '{account}'", {'account': account})


class MalformedQrPayloadError(PaytikError):
    """Raised when a structured QR payload is missing required fields."""
    pass
