"""
Display formatting and CSV serialization for analyzed records.
"""

import csv
import io
from datetime import datetime

from .models import FLOW_EXPENSE, INCOME_REPAYMENT


CSV_HEADER = ['date', 'merchant', 'category', 'flow', 'amount']

FLOW_LABEL_EXPENSE = 'Expense'
FLOW_LABEL_REPAYMENT = 'Repayment'
FLOW_LABEL_REFUND = 'Refund'


def format_currency(amount: float, currency_format: str = "¥{amount}") -> str:
    """Format amount with currency symbol/format (with 2 decimal places).

    Args:
        amount: The amount to format
        currency_format: Format string with {amount} placeholder

    Returns:
        Formatted currency string, e.g. "¥1,234.56" or "-¥20.00"
    """
    formatted = currency_format.format(amount=f"{abs(amount):,.2f}")
    return f"-{formatted}" if amount < 0 else formatted


def validate_currency_format(currency_format: str) -> str:
    """Check that a currency format renders with only an {amount} field.

    Raises:
        ValueError: If the format lacks {amount}, names another field or
            is not a valid format string
    """
    if '{amount}' not in currency_format:
        raise ValueError(f"currency_format must contain '{{amount}}': {currency_format!r}")
    try:
        currency_format.format(amount='0.00')
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid currency_format {currency_format!r}: {e}") from e
    return currency_format


def format_signed_currency(amount: float, currency_format: str = "¥{amount}") -> str:
    """Like format_currency but always carries a sign, e.g. "+¥10.00"."""
    formatted = currency_format.format(amount=f"{abs(amount):,.2f}")
    return f"+{formatted}" if amount >= 0 else f"-{formatted}"


def format_date(value: str) -> str:
    """Format a YYYY-MM-DD date as 2024年01月05日; other text is returned as-is."""
    try:
        parsed = datetime.strptime(value, '%Y-%m-%d')
    except (TypeError, ValueError):
        return value
    return parsed.strftime('%Y年%m月%d日')


def resolve_flow_label(record) -> str:
    """Display label for a record's money direction."""
    if record.flow == FLOW_EXPENSE:
        return FLOW_LABEL_EXPENSE
    if record.income_type == INCOME_REPAYMENT:
        return FLOW_LABEL_REPAYMENT
    return FLOW_LABEL_REFUND


def to_csv(records) -> str:
    """Serialize enriched records to CSV.

    Every cell is quoted and embedded quotes are doubled. Amounts keep their
    sign and are written with two decimals.
    """
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow([
            record.transaction_date,
            record.merchant,
            record.category,
            resolve_flow_label(record),
            f"{record.amount:.2f}",
        ])
    return output.getvalue().rstrip('\n')


def parse_csv(text: str) -> list:
    """Read CSV produced by to_csv() back into a list of dicts.

    Amounts are returned as floats; rows with an unreadable amount keep the
    raw string so callers can decide what to do with them.
    """
    rows = []
    reader = csv.DictReader(io.StringIO(text))
    for row in reader:
        try:
            row['amount'] = float(row['amount'])
        except (KeyError, TypeError, ValueError):
            pass
        rows.append(row)
    return rows


def transactions_to_csv(transactions) -> str:
    """Serialize parsed (not yet analyzed) transactions to CSV."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(['date', 'merchant', 'amount'])
    for txn in transactions:
        writer.writerow([txn.transaction_date, txn.merchant, f"{txn.amount:.2f}"])
    return output.getvalue().rstrip('\n')
