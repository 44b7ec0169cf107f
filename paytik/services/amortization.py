"""Amortization and TEG calculations.

Pure functions shared by the credit services, the assessor and the admin
simulator:
- PMT (installment of a level-payment loan)
- RATE (periodic rate implied by an installment, Newton-Raphson)
- conversions between annual effective rates and periodic rates
- amortization schedules with dated installments
"""
import math
import re
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from paytik.config import (
    ANNUAL_MARGIN_RATE,
    ISLAMIC_ANNUAL_PROFIT_RATE,
    MAX_ANNUAL_TEG,
    MIN_SIMULATION_AMOUNT,
    PERIODICITY_ALIASES,
    PERIODS_PER_YEAR,
    RATE_MAX_ITERATIONS,
    RATE_TOLERANCE,
    REPAYMENT_PLAN_TEMPLATE,
)
from paytik.data_structures import BnplQuote, FinancingPlan, ScheduleRow, TegSimulation
from paytik.exceptions import CalculationError, RateConvergenceError, TegCapExceededError

_PLAN_PATTERN = re.compile(r"(\d+)\s*versements\s*de\s*([\d\s.,]+)\s*F")
_THOUSANDS_SEPARATOR = re.compile(r"[\s.,](?=\d{3}(?!\d))")


def _require_finite(name, value):
    if value is None or not math.isfinite(value):
        raise CalculationError(f"{name} must be a finite number", {name: value})


def _require_count(name, value):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise CalculationError(f"{name} must be a positive integer", {name: value})


def normalize_frequency(frequency):
    """Map a frequency or simulator periodicity to daily/weekly/monthly."""
    key = PERIODICITY_ALIASES.get(frequency, frequency)
    if key not in PERIODS_PER_YEAR:
        raise CalculationError(f"Unknown repayment frequency '{frequency}'", {'frequency': frequency})
    return key


def periods_per_year(frequency):
    return PERIODS_PER_YEAR[normalize_frequency(frequency)]


def periodic_rate_from_annual(annual_rate, periods):
    """Periodic rate equivalent to an annual effective rate.

    ``(1 + annual) ** (1 / periods) - 1``
    """
    _require_finite("annual_rate", annual_rate)
    _require_count("periods", periods)
    if annual_rate <= -1:
        raise CalculationError("annual_rate must be greater than -100%", {'annual_rate': annual_rate})
    return (1 + annual_rate) ** (1 / periods) - 1


def annual_rate_from_periodic(periodic_rate, periods):
    """Annual effective rate of a periodic rate, inverse of periodic_rate_from_annual."""
    _require_finite("periodic_rate", periodic_rate)
    _require_count("periods", periods)
    if periodic_rate <= -1:
        raise CalculationError("periodic_rate must be greater than -100%", {'periodic_rate': periodic_rate})
    return (1 + periodic_rate) ** periods - 1


def margin_rate_percent(frequency):
    """BNPL margin per repayment period, in percent (23.5 / periods per year)."""
    return ANNUAL_MARGIN_RATE / periods_per_year(frequency)


def pmt(rate, nper, pv):
    """Installment amount of a level-payment loan.

    Args:
        rate: Periodic interest rate as a fraction.
        nper: Number of installments.
        pv: Principal (present value).

    Returns:
        ``pv / nper`` for a zero rate, otherwise ``pv * rate / (1 - (1 + rate) ** -nper)``.

    Raises:
        CalculationError: On non-finite input, non-positive count,
            negative principal or a rate at or below -100%.
    """
    _require_finite("rate", rate)
    _require_finite("pv", pv)
    _require_count("nper", nper)
    if pv < 0:
        raise CalculationError("pv must not be negative", {'pv': pv})
    if rate <= -1:
        raise CalculationError("rate must be greater than -100%", {'rate': rate})
    if rate == 0:
        return pv / nper
    return pv * rate / (1 - (1 + rate) ** -nper)


def _annuity_gap(r, nper, payment, pv):
    """Present value of the installments minus the principal, and its derivative."""
    if abs(r) < 1e-12:
        # Series expansion around zero
        return payment * nper - pv, -payment * nper * (nper + 1) / 2
    discount = (1 + r) ** -nper
    value = payment * (1 - discount) / r - pv
    derivative = payment * (nper * r * (1 + r) ** (-nper - 1) - (1 - discount)) / (r * r)
    return value, derivative


def rate(nper, payment, pv, guess=None):
    """Periodic rate at which ``nper`` installments of ``payment`` repay ``pv``.

    Newton-Raphson on the annuity equation, at most RATE_MAX_ITERATIONS
    steps, stopping when successive estimates differ by less than
    RATE_TOLERANCE.

    Raises:
        CalculationError: On degenerate input.
        RateConvergenceError: When the iteration does not settle.
    """
    _require_count("nper", nper)
    _require_finite("payment", payment)
    _require_finite("pv", pv)
    if payment <= 0 or pv <= 0:
        raise CalculationError("payment and pv must be positive", {'payment': payment, 'pv': pv})
    if math.isclose(payment * nper, pv, rel_tol=1e-12):
        return 0.0

    if guess is None:
        # Simple-interest approximation, usually within a few percent of the root
        guess = 2 * (payment * nper - pv) / (pv * (nper + 1))
    r = guess
    for _ in range(RATE_MAX_ITERATIONS):
        value, derivative = _annuity_gap(r, nper, payment, pv)
        if derivative == 0:
            break
        next_r = r - value / derivative
        if next_r <= -1:
            next_r = (r - 1) / 2
        if abs(next_r - r) < RATE_TOLERANCE:
            return next_r
        r = next_r
    raise RateConvergenceError(nper, payment, pv, RATE_MAX_ITERATIONS)


def _installment_date(first_date, frequency, index):
    if frequency == "daily":
        return first_date + timedelta(days=index)
    if frequency == "weekly":
        return first_date + timedelta(weeks=index)
    # Monthly steps are taken from the first date to avoid end-of-month drift
    return first_date + relativedelta(months=index)


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def build_schedule(principal, periodic_rate, nper, first_date, frequency, installment=None):
    """Build the amortization schedule of a level-payment loan.

    The last row settles the remaining principal so that the principal
    components add up to ``principal`` and the final balance is zero.
    """
    frequency = normalize_frequency(frequency)
    first_date = _as_date(first_date)
    if installment is None:
        installment = pmt(periodic_rate, nper, principal)

    schedule = []
    remaining = principal
    for i in range(1, nper + 1):
        interest = remaining * periodic_rate
        if i == nper:
            principal_part = remaining
            payment = principal_part + interest
        else:
            principal_part = installment - interest
            payment = installment
        remaining -= principal_part
        schedule.append(ScheduleRow(
            number=i,
            date=_installment_date(first_date, frequency, i - 1),
            payment=payment,
            principal=principal_part,
            interest=interest,
            balance=remaining if remaining > 0.01 else 0.0,
        ))
    return schedule


def simulate_teg(loan_amount, duration, periodicity, first_installment_date, annual_teg=MAX_ANNUAL_TEG):
    """Model a credit offer whose annual effective rate respects the cap.

    Args:
        loan_amount: Principal, at least MIN_SIMULATION_AMOUNT.
        duration: Number of installments.
        periodicity: days/weeks/months (or daily/weekly/monthly).
        first_installment_date: Date of the first installment.
        annual_teg: Annual effective rate applied, as a fraction.

    Raises:
        TegCapExceededError: If annual_teg is above MAX_ANNUAL_TEG.
        CalculationError: On invalid amount or duration.
    """
    _require_finite("loan_amount", loan_amount)
    _require_count("duration", duration)
    if loan_amount < MIN_SIMULATION_AMOUNT:
        raise CalculationError(f"Loan amount must be at least {MIN_SIMULATION_AMOUNT}",
                               {'loan_amount': loan_amount})
    if annual_teg > MAX_ANNUAL_TEG:
        raise TegCapExceededError(annual_teg, MAX_ANNUAL_TEG)

    frequency = normalize_frequency(periodicity)
    periodic = periodic_rate_from_annual(annual_teg, PERIODS_PER_YEAR[frequency])
    installment = pmt(periodic, duration, loan_amount)
    total_repaid = installment * duration

    return TegSimulation(
        loan_amount=loan_amount,
        duration=duration,
        periodicity=frequency,
        annual_teg=annual_teg * 100,
        periodic_rate=periodic,
        installment_amount=installment,
        total_repaid=total_repaid,
        total_cost=total_repaid - loan_amount,
        schedule=build_schedule(loan_amount, periodic, duration, first_installment_date, frequency, installment),
    )


def quote_bnpl(amount, down_payment, installments_count, frequency, first_installment_date, margin_rate=None):
    """Compute the BNPL figures shown before a request is confirmed.

    ``margin_rate`` is in percent per period and defaults to the standard
    margin of the frequency.
    """
    _require_finite("amount", amount)
    _require_count("installments_count", installments_count)
    down_payment = down_payment or 0
    if amount <= 0:
        raise CalculationError("amount must be positive", {'amount': amount})
    if down_payment < 0 or down_payment >= amount:
        raise CalculationError("down payment must be between 0 and the purchase amount",
                               {'down_payment': down_payment, 'amount': amount})
    if margin_rate is None:
        margin_rate = margin_rate_percent(frequency)

    financed = amount - down_payment
    periodic = margin_rate / 100
    installment = pmt(periodic, installments_count, financed)
    total_repaid = installment * installments_count

    return BnplQuote(
        amount=amount,
        down_payment=down_payment,
        financed_amount=financed,
        margin_rate=margin_rate,
        installments_count=installments_count,
        installment_amount=installment,
        total_repaid=total_repaid,
        total_cost=total_repaid - financed,
        schedule=build_schedule(financed, periodic, installments_count, first_installment_date,
                                frequency, installment),
    )


def mourabaha_plan(amount, duration_months, annual_profit_rate=ISLAMIC_ANNUAL_PROFIT_RATE):
    """Flat-profit Islamic financing plan."""
    _require_finite("amount", amount)
    _require_count("duration_months", duration_months)
    if amount <= 0:
        raise CalculationError("amount must be positive", {'amount': amount})
    profit = amount * annual_profit_rate * (duration_months / 12)
    total = amount + profit
    return FinancingPlan(
        amount=amount,
        duration_months=duration_months,
        profit=profit,
        total_repayable=total,
        installment_amount=math.ceil(round(total / duration_months, 6)),
    )


def effective_annual_rate(financed_amount, installment, nper, frequency):
    """Annual effective rate (TEG) actually charged by a plan."""
    periodic = rate(nper, installment, financed_amount)
    return annual_rate_from_periodic(periodic, periods_per_year(frequency))


def is_teg_compliant(financed_amount, installment, nper, frequency, cap=MAX_ANNUAL_TEG):
    return effective_annual_rate(financed_amount, installment, nper, frequency) <= cap + RATE_TOLERANCE


def format_repayment_plan(count, installment):
    return REPAYMENT_PLAN_TEMPLATE.format(count=count, amount=int(math.ceil(round(installment, 6))))


def parse_repayment_plan(plan):
    """Extract (count, installment) from a "<n> versements de <x> F..." plan.

    Returns:
        A tuple, or None when the text does not follow the pattern.
    """
    if not plan:
        return None
    match = _PLAN_PATTERN.search(plan)
    if not match:
        return None
    count = int(match.group(1))
    # Separators followed by exactly three digits group thousands, a
    # remaining comma is a decimal mark
    digits = _THOUSANDS_SEPARATOR.sub("", match.group(2).strip())
    try:
        amount = float(digits.replace(",", "."))
    except ValueError:
        return None
    return count, amount
