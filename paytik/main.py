"""Command line entry point for PAYTIK."""
import functools
import logging
from datetime import date

import click

from paytik.config import DEFAULT_DB_NAME, FINANCING_TYPES, LOG_FORMAT, LOG_LEVEL
from paytik.database import DatabaseManager
from paytik.engine import PaytikEngine
from paytik.exceptions import PaytikError
from paytik.utils import format_currency, format_date


def handle_errors(func):
    """Turn business errors into a one-line message and exit code 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PaytikError as e:
            raise click.ClickException(str(e))
    return wrapper


@click.group()
@click.option("--db", "db_name", default=DEFAULT_DB_NAME, show_default=True, help="SQLite database file.")
@click.option("--log-level", default=LOG_LEVEL, show_default=True)
@click.pass_context
def cli(ctx, db_name, log_level):
    """PAYTIK wallet and credit administration."""
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)
    db = DatabaseManager(db_name)
    ctx.call_on_close(db.close)
    ctx.obj = PaytikEngine(db)


def _print_schedule(schedule):
    click.echo(f"{'N°':>4}  {'Date':<10}  {'Échéance':>12}  {'Capital':>12}  {'Intérêts':>10}  {'Restant dû':>12}")
    for row in schedule:
        click.echo(f"{row.number:>4}  {format_date(row.date.isoformat()):<10}  "
                   f"{format_currency(row.payment):>12}  {format_currency(row.principal):>12}  "
                   f"{format_currency(row.interest):>10}  {format_currency(row.balance):>12}")


@cli.command()
@click.argument("amount", type=float)
@click.argument("duration", type=int)
@click.option("--periodicity", type=click.Choice(["days", "weeks", "months"]), default="months", show_default=True)
@click.option("--first-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="First installment date (today by default).")
@click.option("--teg", type=float, default=None, help="Annual effective rate in percent (15 max).")
@click.option("--export", "export_path", default=None, help="Write the schedule to a .csv or .xlsx file.")
@click.pass_obj
@handle_errors
def simulate(engine, amount, duration, periodicity, first_date, teg, export_path):
    """Simulate a loan at a capped TEG."""
    first = first_date.date() if first_date else date.today()
    sim = engine.simulate_teg(amount, duration, periodicity, first, None if teg is None else teg / 100)
    click.echo(f"TEG annuel: {sim.annual_teg:.2f} %")
    click.echo(f"Taux périodique: {sim.periodic_rate * 100:.4f} %")
    click.echo(f"Échéance: {format_currency(sim.installment_amount)}")
    click.echo(f"Total remboursé: {format_currency(sim.total_repaid)}")
    click.echo(f"Coût du crédit: {format_currency(sim.total_cost)}")
    _print_schedule(sim.schedule)
    if export_path:
        success, msg = engine.reports.export_schedule(sim, export_path)
        if not success:
            raise click.ClickException(msg)
        click.echo(msg)


@cli.command()
@click.argument("amount", type=float)
@click.argument("installments", type=int)
@click.option("--frequency", type=click.Choice(["daily", "weekly", "monthly"]), default="monthly", show_default=True)
@click.option("--down-payment", type=float, default=0.0, show_default=True)
@click.option("--margin", type=float, default=None, help="Margin per period in percent.")
@click.option("--first-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.pass_obj
@handle_errors
def quote(engine, amount, installments, frequency, down_payment, margin, first_date):
    """Quote a BNPL purchase."""
    first = first_date.date() if first_date else date.today()
    q = engine.quote_bnpl(amount, down_payment, installments, frequency, first, margin)
    click.echo(f"Montant financé: {format_currency(q.financed_amount)}")
    click.echo(f"Marge: {q.margin_rate:.4f} % par période")
    click.echo(f"Échéance: {format_currency(q.installment_amount)}")
    click.echo(f"Coût total: {format_currency(q.total_cost)}")
    _print_schedule(q.schedule)


@cli.command("create-user")
@click.argument("alias")
@click.argument("name")
@click.option("--email", default="")
@click.option("--pin", prompt=True, hide_input=True)
@click.option("--role", default="user", show_default=True)
@click.pass_obj
@handle_errors
def create_user(engine, alias, name, email, pin, role):
    """Register a new alias."""
    engine.users.create_user(alias, name, email, pin, role)
    click.echo(f"User {alias} created.")


@cli.command()
@click.argument("alias")
@click.argument("amount", type=float)
@click.option("--operator", default="Wave", show_default=True, help="Mobile-money operator.")
@click.pass_obj
@handle_errors
def credit(engine, alias, amount, operator):
    """Recharge a wallet from a mobile-money operator."""
    ref = engine.payments.recharge(alias, operator, amount)
    click.echo(f"{ref}: {format_currency(amount)} credited, balance {format_currency(engine.balances.get_balance(alias))}")


@cli.command()
@click.argument("sender")
@click.argument("recipient")
@click.argument("amount", type=float)
@click.option("--reason", default="")
@click.option("--pin", prompt=True, hide_input=True)
@click.pass_obj
@handle_errors
def send(engine, sender, recipient, amount, reason, pin):
    """Transfer money between two aliases."""
    ref = engine.payments.send(sender, recipient, amount, reason, pin)
    click.echo(f"{ref}: {format_currency(amount)} sent to {recipient}")


@cli.command()
@click.argument("alias")
@click.argument("merchant")
@click.argument("amount", type=float)
@click.argument("installments", type=int)
@click.option("--frequency", type=click.Choice(["daily", "weekly", "monthly"]), default="monthly", show_default=True)
@click.option("--down-payment", type=float, default=0.0, show_default=True)
@click.option("--first-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.pass_obj
@handle_errors
def bnpl(engine, alias, merchant, amount, installments, frequency, down_payment, first_date):
    """Submit a BNPL request for a purchase at a merchant."""
    first = (first_date.date() if first_date else date.today()).isoformat()
    request = engine.bnpl.submit_request(alias, merchant, amount, installments, frequency, first,
                                         down_payment=down_payment)
    _echo_request(request)


@cli.command()
@click.argument("alias")
@click.argument("financing_type", type=click.Choice(FINANCING_TYPES))
@click.argument("amount", type=float)
@click.argument("months", type=int)
@click.argument("purpose")
@click.pass_obj
@handle_errors
def finance(engine, alias, financing_type, amount, months, purpose):
    """Submit an Islamic financing request."""
    _echo_request(engine.financing.submit_request(alias, financing_type, amount, months, purpose))


def _echo_request(request):
    click.echo(f"{request.id}  {request.product:<9}  {request.alias:<16}  "
               f"{format_currency(request.amount):>12}  {request.status:<8}  {request.reason or ''}")
    if request.repayment_plan:
        click.echo(f"    {request.repayment_plan}")


@cli.command()
@click.option("--product", type=click.Choice(["bnpl", "financing"]), default=None)
@click.option("--status", type=click.Choice(["review", "approved", "rejected"]), default=None)
@click.option("--alias", default=None)
@click.pass_obj
@handle_errors
def requests(engine, product, status, alias):
    """List credit requests."""
    services = [engine.credit_service(product)] if product else [engine.bnpl, engine.financing]
    found = False
    for service in services:
        items = service.get_requests_for(alias) if alias else service.get_requests(status)
        for request in items:
            if status and request.status != status:
                continue
            found = True
            _echo_request(request)
    if not found:
        click.echo("No credit requests.")


@cli.command()
@click.argument("request_id")
@click.pass_obj
@handle_errors
def approve(engine, request_id):
    """Approve a request under review."""
    _echo_request(engine.update_request_status(request_id, "approved"))


@cli.command()
@click.argument("request_id")
@click.pass_obj
@handle_errors
def reject(engine, request_id):
    """Reject a request under review."""
    _echo_request(engine.update_request_status(request_id, "rejected"))


@cli.command()
@click.argument("request_id")
@click.argument("amount", type=float)
@click.pass_obj
@handle_errors
def repay(engine, request_id, amount):
    """Repay part of an approved request."""
    request = engine.repay(request_id, amount)
    click.echo(f"{request.id}: {format_currency(request.repaid_amount)} repaid, "
               f"{format_currency(request.outstanding)} outstanding")


@cli.command()
@click.option("--start", default=None, help="Start date (YYYY-MM-DD).")
@click.option("--end", default=None, help="End date (YYYY-MM-DD).")
@click.pass_obj
@handle_errors
def analysis(engine, start, end):
    """Transaction analysis across every alias."""
    # Stored dates are timestamps; include the whole end day
    report = engine.reports.transaction_analysis(start, f"{end}T23:59:59" if end else None)
    click.echo(f"Volume total: {format_currency(report['total_volume'])}")
    click.echo(f"Transactions: {report['count']}")
    click.echo(f"Montant moyen: {format_currency(report['average'])}")
    for _, row in report['by_type'].iterrows():
        click.echo(f"  {row['type']:<14} {int(row['count']):>5}  {format_currency(row['volume']):>14}")


if __name__ == "__main__":
    cli()
