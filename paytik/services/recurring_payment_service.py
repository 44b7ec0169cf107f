"""Scheduled recurring transfers."""
import logging
from datetime import date, datetime

from dateutil.relativedelta import relativedelta

from paytik.data_structures import RecurringPayment
from paytik.database import new_id
from paytik.exceptions import CalculationError, ValidationError
from paytik.result import ErrorType, Result
from paytik.services.amortization import normalize_frequency

logger = logging.getLogger(__name__)


def _to_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


def falls_on(payment, day):
    """Whether the payment's schedule has an occurrence on ``day``."""
    day = _to_date(day)
    start = _to_date(payment.start_date)
    if day < start:
        return False
    if payment.end_date and day > _to_date(payment.end_date):
        return False

    if payment.frequency == "daily":
        return True
    if payment.frequency == "weekly":
        return (day - start).days % 7 == 0
    # Monthly occurrences are counted from the start date so that a
    # 31st start falls on the last day of shorter months
    delta = relativedelta(day, start)
    months = delta.years * 12 + delta.months
    return start + relativedelta(months=months) == day


class RecurringPaymentService:
    """Handles recurring payment orders of an alias."""

    def __init__(self, db_manager):
        self.db = db_manager

    def get_payments(self, alias):
        return [RecurringPayment(**r) for r in self.db.get_recurring_payments(alias)]

    def add_payment(self, alias, recipient_alias, amount, frequency, start_date, reason="", end_date=None):
        """Register a recurring payment.

        Raises:
            ValidationError: On a missing recipient, a non-positive amount, an
                unknown frequency or an end date before the start date.
        """
        if not (recipient_alias or "").strip():
            raise ValidationError("recipient_alias", recipient_alias, "must not be empty")
        if amount is None or amount <= 0:
            raise ValidationError("amount", amount, "must be positive")
        try:
            frequency = normalize_frequency(frequency)
        except CalculationError:
            raise ValidationError("frequency", frequency, "must be daily, weekly or monthly")
        start = _to_date(start_date)
        if end_date is not None and _to_date(end_date) < start:
            raise ValidationError("end_date", end_date, "must not be before the start date")

        payment = RecurringPayment(
            id=new_id("rp"),
            recipient_alias=recipient_alias.strip(),
            amount=amount,
            frequency=frequency,
            start_date=start.isoformat(),
            reason=reason,
            end_date=_to_date(end_date).isoformat() if end_date is not None else None,
        )
        self.db.add_recurring_payment(payment.id, alias, payment.recipient_alias, payment.amount,
                                      payment.frequency, payment.start_date, payment.end_date, payment.reason)
        logger.info("Recurring payment %s registered for %s", payment.id, alias)
        return payment

    def remove_payment(self, alias, payment_id):
        if not self.db.delete_recurring_payment(alias, payment_id):
            return Result.fail(f"Recurring payment '{payment_id}' not found", ErrorType.NOT_FOUND)
        return Result.ok(payment_id)

    def due_payments(self, alias, on=None):
        """Payments of an alias scheduled on a date (today by default)."""
        on = _to_date(on or date.today())
        return [p for p in self.get_payments(alias) if falls_on(p, on)]
