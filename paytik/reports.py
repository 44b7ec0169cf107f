"""
Report generation module for PAYTIK.
Handles the admin transaction analysis, the credit portfolio summary and
the export of TEG simulation receipts.
"""
import logging
import math

import pandas as pd

from paytik.utils import format_date

logger = logging.getLogger(__name__)

SCHEDULE_COLUMNS = ["N°", "Date", "Échéance", "Capital", "Intérêts", "Capital restant dû"]


def _ceil_franc(value):
    return math.ceil(round(value, 6))


class ReportGenerator:
    def __init__(self, db_manager):
        self.db = db_manager

    def transaction_analysis(self, start_date=None, end_date=None):
        """
        Aggregate the transactions of every alias.

        Args:
            start_date (str, optional): Lower bound on the ISO date.
            end_date (str, optional): Upper bound on the ISO date.

        Returns:
            dict: total_volume, count, average, by_type (DataFrame with
            type/volume/count) and daily (DataFrame with day/volume/count).
        """
        df = self.db.get_ledger(None, start_date, end_date)
        if df.empty:
            return {
                'total_volume': 0.0,
                'count': 0,
                'average': 0.0,
                'by_type': pd.DataFrame(columns=['type', 'volume', 'count']),
                'daily': pd.DataFrame(columns=['day', 'volume', 'count']),
            }

        by_type = (df.groupby('type')['amount']
                     .agg(volume='sum', count='count')
                     .reset_index()
                     .sort_values('volume', ascending=False, ignore_index=True))

        df['day'] = df['date'].str[:10]
        daily = (df.groupby('day')['amount']
                   .agg(volume='sum', count='count')
                   .reset_index())

        total = float(df['amount'].sum())
        return {
            'total_volume': total,
            'count': int(len(df)),
            'average': total / len(df),
            'by_type': by_type,
            'daily': daily,
        }

    def credit_portfolio(self):
        """Count and amount of credit requests per product and status."""
        rows = self.db.get_credit_requests()
        df = pd.DataFrame(rows, columns=['product', 'status', 'amount', 'repaid_amount'])
        if df.empty:
            return pd.DataFrame(columns=['product', 'status', 'count', 'amount', 'outstanding'])
        df['outstanding'] = df['amount'] - df['repaid_amount'].fillna(0)
        return (df.groupby(['product', 'status'])
                  .agg(count=('amount', 'count'), amount=('amount', 'sum'), outstanding=('outstanding', 'sum'))
                  .reset_index())

    def schedule_dataframe(self, simulation):
        """Tabulate the schedule of a TegSimulation or BnplQuote, rounded up to the franc."""
        data = [{
            "N°": row.number,
            "Date": format_date(row.date.isoformat()),
            "Échéance": _ceil_franc(row.payment),
            "Capital": _ceil_franc(row.principal),
            "Intérêts": _ceil_franc(row.interest),
            "Capital restant dû": _ceil_franc(row.balance),
        } for row in simulation.schedule]
        return pd.DataFrame(data, columns=SCHEDULE_COLUMNS)

    def export_schedule(self, simulation, output_path):
        """
        Export a simulation receipt.

        Args:
            simulation: TegSimulation or BnplQuote.
            output_path (str): .csv or .xlsx file path.

        Returns:
            tuple: (bool, str) - (Success status, Result message or Error details).
        """
        df = self.schedule_dataframe(simulation)
        if output_path.endswith('.csv'):
            return self._export_to_csv(df, output_path)
        return self._export_to_excel(df, output_path)

    def _export_to_excel(self, df, output_path):
        """Export DataFrame to Excel with formatting."""
        try:
            with pd.ExcelWriter(output_path, engine='xlsxwriter') as writer:
                df.to_excel(writer, index=False, sheet_name='Echeancier')
                workbook = writer.book
                worksheet = writer.sheets['Echeancier']

                header_fmt = workbook.add_format({'bold': True, 'border': 1, 'bg_color': '#D7E4BC'})
                num_fmt = workbook.add_format({'num_format': '#,##0'})

                for col_num, value in enumerate(df.columns.values):
                    worksheet.write(0, col_num, value, header_fmt)
                worksheet.set_column('A:B', 12)
                worksheet.set_column('C:F', 18, num_fmt)
            return True, "Schedule exported successfully."
        except Exception as e:
            logger.error("Excel export failed: %s", e)
            return False, f"Excel Export Failed: {e}"

    def _export_to_csv(self, df, output_path):
        """Export DataFrame to CSV."""
        try:
            df.to_csv(output_path, index=False)
            return True, "Schedule exported successfully (CSV)."
        except Exception as e:
            logger.error("CSV export failed: %s", e)
            return False, f"CSV Export Failed: {e}"
