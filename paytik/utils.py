"""Display helpers."""
from datetime import datetime

from paytik.config import CURRENCY_SUFFIX, DATE_FORMAT_DISPLAY


def format_currency(amount):
    """Format an amount the way the wallet shows it: ``1.234 F``.

    Amounts are rounded to the franc and thousands are separated by dots.
    """
    if amount is None:
        return f"0 {CURRENCY_SUFFIX}"
    value = int(round(amount))
    return f"{value:,}".replace(",", ".") + f" {CURRENCY_SUFFIX}"


def format_date(value):
    """Render an ISO date or timestamp as dd/mm/yyyy; unparseable text is returned as is."""
    if not value:
        return ""
    try:
        return datetime.fromisoformat(str(value)).strftime(DATE_FORMAT_DISPLAY)
    except ValueError:
        return str(value)
