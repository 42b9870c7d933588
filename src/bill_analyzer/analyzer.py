"""
Bill Analyzer - Core analysis logic.

Enriches statement transactions with category and cash-flow direction,
aggregates them into a summary, ranks the largest expenses and renders a
plain-text report.
"""

import logging
import math
from collections.abc import Mapping
from typing import Dict, Iterable, List, Optional, Sequence

from .classifier import Classifier
from .config_loader import DEFAULT_CURRENCY_FORMAT, DEFAULT_REPAYMENT_KEYWORDS
from .format import format_currency, resolve_flow_label, validate_currency_format
from .models import (
    FLOW_EXPENSE,
    FLOW_INCOME,
    INCOME_REFUND,
    INCOME_REPAYMENT,
    UNKNOWN_MERCHANT,
    AnalysisResult,
    AnalysisSummary,
    EnrichedTransaction,
    RecordTotals,
    Transaction,
)

logger = logging.getLogger(__name__)

TOP_EXPENSE_LIMIT = 5


# ============================================================================
# INPUT COERCION
# ============================================================================

def coerce_transaction(item) -> Optional[Transaction]:
    """Turn a Transaction or a stored mapping into a Transaction.

    Mappings may use 'transaction_date' or 'transactionDate'. Returns None
    when the amount is missing or not a finite number.
    """
    if isinstance(item, Transaction):
        date, merchant, amount = item.transaction_date, item.merchant, item.amount
    elif isinstance(item, Mapping):
        date = item.get('transaction_date', item.get('transactionDate', ''))
        merchant = item.get('merchant')
        amount = item.get('amount')
    else:
        return None

    try:
        amount = float(amount)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(amount):
        return None

    merchant = str(merchant).strip() if merchant is not None else ''
    return Transaction(
        transaction_date='' if date is None else str(date),
        merchant=merchant or UNKNOWN_MERCHANT,
        amount=amount,
    )


# ============================================================================
# ANALYSIS
# ============================================================================

class BillAnalyzer:
    """Stateless analysis pipeline; each analyze() call is independent."""

    def __init__(
        self,
        classifier: Optional[Classifier] = None,
        repayment_keywords: Sequence[str] = DEFAULT_REPAYMENT_KEYWORDS,
        currency_format: str = DEFAULT_CURRENCY_FORMAT,
    ):
        self.classifier = classifier if classifier is not None else Classifier()
        self.repayment_keywords = tuple(k.lower() for k in repayment_keywords if k)
        self.currency_format = validate_currency_format(currency_format)

    def is_repayment(self, merchant: str) -> bool:
        normalized = (merchant or '').lower()
        return any(keyword in normalized for keyword in self.repayment_keywords)

    def enrich(self, transaction: Transaction) -> EnrichedTransaction:
        """Attach category, flow and income type to one transaction."""
        flow = FLOW_EXPENSE if transaction.amount < 0 else FLOW_INCOME
        income_type = None
        if flow == FLOW_INCOME:
            income_type = INCOME_REPAYMENT if self.is_repayment(transaction.merchant) else INCOME_REFUND

        return EnrichedTransaction(
            transaction_date=transaction.transaction_date,
            merchant=transaction.merchant,
            amount=transaction.amount,
            category=self.classifier.classify(transaction.merchant),
            flow=flow,
            income_type=income_type,
        )

    def analyze(self, transactions: Iterable) -> AnalysisResult:
        """Analyze transactions and return records, summary, top expenses and report.

        Args:
            transactions: Transaction objects or mappings with
                transaction_date, merchant and amount

        Returns:
            AnalysisResult; entries with an unusable amount are left out
        """
        try:
            items = list(transactions or ())
        except TypeError:
            logger.warning("Expected a sequence of transactions, got %s", type(transactions).__name__)
            items = []

        records = []
        skipped = 0
        for item in items:
            transaction = coerce_transaction(item)
            if transaction is None:
                skipped += 1
                continue
            records.append(self.enrich(transaction))

        if skipped:
            logger.warning("Skipped %d transactions without a usable amount", skipped)

        summary = summarize(records)
        top = top_expenses(records)
        report = build_report(summary, top, self.currency_format)

        return AnalysisResult(
            records=tuple(records),
            summary=summary,
            top_expenses=top,
            report=report,
        )


def summarize(records: Sequence[EnrichedTransaction]) -> AnalysisSummary:
    """Aggregate enriched records in a single pass."""
    total_expense = 0.0
    total_income = 0.0
    repayment_amount = 0.0
    refund_amount = 0.0
    category_summary: Dict[str, float] = {}

    for record in records:
        if record.flow == FLOW_EXPENSE:
            expense = abs(record.amount)
            total_expense += expense
            category_summary[record.category] = category_summary.get(record.category, 0.0) + expense
        else:
            total_income += record.amount
            if record.income_type == INCOME_REPAYMENT:
                repayment_amount += record.amount
            else:
                refund_amount += record.amount

    return AnalysisSummary(
        total_transactions=len(records),
        total_expense=total_expense,
        total_income=total_income,
        repayment_amount=repayment_amount,
        refund_amount=refund_amount,
        net_expense=total_expense - refund_amount,
        category_summary=category_summary,
    )


def top_expenses(records: Sequence[EnrichedTransaction], limit: int = TOP_EXPENSE_LIMIT):
    """Largest expenses by absolute amount; ties keep their input order."""
    expenses = [r for r in records if r.flow == FLOW_EXPENSE]
    # sorted() is stable, reverse=True included
    ranked = sorted(expenses, key=lambda r: abs(r.amount), reverse=True)
    return tuple(ranked[:limit])


# ============================================================================
# REPORT
# ============================================================================

def build_report(summary: AnalysisSummary, top: Sequence[EnrichedTransaction],
                 currency_format: str = DEFAULT_CURRENCY_FORMAT) -> str:
    """Render the text report from a summary and the top expense list."""
    def fmt(amount):
        return format_currency(amount, currency_format)

    lines = [
        '--- Bill Analysis Report ---',
        f"Total transactions: {summary.total_transactions}",
        f"Total expense: {fmt(summary.total_expense)}",
        f"Total income: {fmt(summary.total_income)}",
        f"Repayment amount: {fmt(summary.repayment_amount)}",
        f"Refund amount: {fmt(summary.refund_amount)}",
        f"Net expense: {fmt(summary.net_expense)}",
        '',
        '--- Spending by Category ---',
    ]

    total = summary.total_expense
    sorted_cats = sorted(summary.category_summary.items(), key=lambda x: x[1], reverse=True)
    for category, amount in sorted_cats:
        pct = (amount / total * 100) if total > 0 else 0.0
        lines.append(f"{category}: {fmt(amount)} ({pct:.1f}%)")

    lines.append('')
    lines.append(f"--- Top {TOP_EXPENSE_LIMIT} Expenses ---")
    for i, record in enumerate(top, 1):
        lines.append(f"{i}. {record.transaction_date} | {record.merchant} | {fmt(abs(record.amount))}")

    return '\n'.join(lines)


# ============================================================================
# FILTERED VIEWS
# ============================================================================

def filter_records(records: Iterable[EnrichedTransaction], category: Optional[str] = None,
                   flow_label: Optional[str] = None) -> List[EnrichedTransaction]:
    """Keep records matching the category and/or flow label exactly."""
    selected = []
    for record in records:
        if category and record.category != category:
            continue
        if flow_label and resolve_flow_label(record) != flow_label:
            continue
        selected.append(record)
    return selected


def summarize_records(records: Iterable[EnrichedTransaction]) -> RecordTotals:
    """Count and expense/income totals for a view of records."""
    count = 0
    expense_total = 0.0
    income_total = 0.0
    for record in records:
        count += 1
        if record.amount < 0:
            expense_total += abs(record.amount)
        else:
            income_total += record.amount
    return RecordTotals(count=count, expense_total=expense_total, income_total=income_total)
