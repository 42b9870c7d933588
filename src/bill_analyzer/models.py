"""
Value objects passed between the parser, the classifier and the analyzer.

All of them are frozen dataclasses: an analysis run builds fresh objects and
never mutates them afterwards.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


FLOW_EXPENSE = 'expense'
FLOW_INCOME = 'income'

INCOME_REPAYMENT = 'repayment'
INCOME_REFUND = 'refund'

UNKNOWN_MERCHANT = 'Unknown Merchant'


@dataclass(frozen=True)
class Transaction:
    """A single statement line: negative amount = money leaving the account."""

    transaction_date: str
    merchant: str
    amount: float


@dataclass(frozen=True)
class EnrichedTransaction(Transaction):
    """A transaction with its category and cash-flow direction resolved."""

    category: str = ''
    flow: str = FLOW_EXPENSE
    income_type: Optional[str] = None


@dataclass(frozen=True)
class AnalysisSummary:
    """Aggregate counters over one analysis run.

    category_summary is stored as a read-only mapping so the summary stays
    immutable and hashable.
    """

    total_transactions: int = 0
    total_expense: float = 0.0
    total_income: float = 0.0
    repayment_amount: float = 0.0
    refund_amount: float = 0.0
    net_expense: float = 0.0
    category_summary: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'category_summary', MappingProxyType(dict(self.category_summary)))

    def __hash__(self):
        return hash((
            self.total_transactions,
            self.total_expense,
            self.total_income,
            self.repayment_amount,
            self.refund_amount,
            self.net_expense,
            frozenset(self.category_summary.items()),
        ))


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one call to BillAnalyzer.analyze() produces."""

    records: Tuple[EnrichedTransaction, ...]
    summary: AnalysisSummary
    top_expenses: Tuple[EnrichedTransaction, ...]
    report: str


@dataclass(frozen=True)
class RecordTotals:
    """Totals over a (possibly filtered) view of enriched records."""

    count: int = 0
    expense_total: float = 0.0
    income_total: float = 0.0

    @property
    def net(self) -> float:
        return self.income_total - self.expense_total
