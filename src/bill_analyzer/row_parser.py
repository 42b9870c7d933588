"""
Row parser - turns scraped statement table rows into transactions.

Statement pages mix data rows with headers, subtotals and separators, and the
direction of a charge is not always printed next to the amount. Each row is
therefore parsed heuristically:

    1. structural rows (headers, totals, separators) are skipped
    2. the first YYYY-MM-DD in any cell is the transaction date
    3. the first two-decimal number in any cell is the amount, optionally
       followed by an annotation like "/RMB(支出)"
    4. the direction comes from DIRECTION_RULES, first match wins
    5. whatever text is left over is the merchant

Rows that don't look like transactions are rejected by returning None.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .models import FLOW_EXPENSE, FLOW_INCOME, UNKNOWN_MERCHANT, Transaction

logger = logging.getLogger(__name__)


# =============================================================================
# STATEMENT VOCABULARY
# =============================================================================

# Header/footer labels: transaction date column, merchant column, total row
STRUCTURAL_MARKERS = ('交易日', '商户名称', '合计', '---')

# Direction annotations printed in parentheses after the amount
ANNOTATION_DIRECTIONS = {
    '支出': FLOW_EXPENSE,   # expense
    '存入': FLOW_INCOME,    # deposit
    '收入': FLOW_INCOME,    # income
    '退款': FLOW_INCOME,    # refund
    '还款': FLOW_INCOME,    # repayment
}

EXPENSE_KEYWORDS = ('支出', '消费')
INCOME_KEYWORDS = ('存入', '收入', '退款', '还款')

DATE_PATTERN = re.compile(r'\d{4}-\d{2}-\d{2}')
CARD_SUFFIX_PATTERN = re.compile(r'^\d{4}$')


def build_amount_pattern(annotations: Iterable[str]) -> 're.Pattern':
    """Compile the amount regex for a set of direction annotations.

    Matches "1,234.56", "-35.00", "35.00/RMB(支出)" and "35.00（退款）".
    """
    labels = '|'.join(re.escape(label) for label in sorted(annotations, key=len, reverse=True))
    return re.compile(
        r'(?P<amount>-?\d[\d,]*\.\d{2})'
        r'(?:\s*/\s*(?P<currency>[A-Za-z]{3}))?'
        r'(?:\s*[(（]\s*(?P<label>' + labels + r')\s*[)）])?'
    )


AMOUNT_PATTERN = build_amount_pattern(ANNOTATION_DIRECTIONS)


# =============================================================================
# DIRECTION INFERENCE
# =============================================================================

@dataclass(frozen=True)
class RowEvidence:
    """What the parser saw in a row, handed to each direction rule."""

    cells: Tuple[str, ...]
    amount_index: int
    literal: float
    annotation: Optional[str] = None


@dataclass(frozen=True)
class DirectionRule:
    """A named predicate returning a flow, or None if it has no opinion."""

    name: str
    infer: Callable[[RowEvidence], Optional[str]]


def annotation_direction(evidence: RowEvidence) -> Optional[str]:
    """Explicit "(支出)" / "(存入)" style annotation on the amount."""
    if evidence.annotation is None:
        return None
    return ANNOTATION_DIRECTIONS.get(evidence.annotation)


def keyword_direction(evidence: RowEvidence) -> Optional[str]:
    """Expense or income wording anywhere in the row."""
    for cell in evidence.cells:
        lowered = cell.lower()
        if any(keyword in lowered for keyword in EXPENSE_KEYWORDS):
            return FLOW_EXPENSE
        if any(keyword in lowered for keyword in INCOME_KEYWORDS):
            return FLOW_INCOME
    return None


def fallback_direction(evidence: RowEvidence) -> Optional[str]:
    """Unlabeled amounts are charges, whatever their printed sign."""
    return FLOW_EXPENSE


DIRECTION_RULES = (
    DirectionRule('annotation', annotation_direction),
    DirectionRule('keyword', keyword_direction),
    DirectionRule('fallback', fallback_direction),
)


def infer_direction(evidence: RowEvidence, rules: Sequence[DirectionRule] = DIRECTION_RULES) -> str:
    """Run the rules in order and return the first flow one of them yields."""
    for rule in rules:
        flow = rule.infer(evidence)
        if flow is not None:
            return flow
    return FLOW_EXPENSE


# =============================================================================
# ROW PARSING
# =============================================================================

def parse_amount(amount_str: str) -> Optional[float]:
    """Parse an amount literal like "-1,234.56" to a finite float, or None."""
    try:
        value = float(amount_str.replace(',', ''))
    except ValueError:
        return None
    # Digit runs past the float range come back as inf
    return value if math.isfinite(value) else None


def is_structural_row(row_text: str, markers: Sequence[str] = STRUCTURAL_MARKERS) -> bool:
    """True for header, total and separator rows."""
    lowered = row_text.lower()
    return any(marker.lower() in lowered for marker in markers)


class RowParser:
    """Parses scraped table rows into Transaction objects."""

    def __init__(
        self,
        markers: Sequence[str] = STRUCTURAL_MARKERS,
        rules: Sequence[DirectionRule] = DIRECTION_RULES,
        unknown_merchant: str = UNKNOWN_MERCHANT,
    ):
        self.markers = tuple(markers)
        self.rules = tuple(rules)
        self.unknown_merchant = unknown_merchant

    def parse_row(self, cells: Sequence[str], row_text: Optional[str] = None) -> Optional[Transaction]:
        """Parse one row's cell texts, returning None for non-transaction rows.

        Args:
            cells: Text content of each cell, in column order
            row_text: Full text of the row; defaults to the cells joined

        Returns:
            A Transaction with a signed amount, or None if the row is rejected
        """
        cells = tuple('' if cell is None else str(cell).strip() for cell in cells)
        row_text = ''.join(cells) if row_text is None else str(row_text)

        if is_structural_row(row_text, self.markers):
            return None

        date_index, date = self._find_date(cells)
        if date is None:
            return None

        amount_index, match = self._find_amount(cells)
        if match is None:
            return None

        literal = parse_amount(match.group('amount'))
        if literal is None:
            return None

        evidence = RowEvidence(
            cells=cells,
            amount_index=amount_index,
            literal=literal,
            annotation=match.group('label'),
        )
        flow = infer_direction(evidence, self.rules)
        amount = -abs(literal) if flow == FLOW_EXPENSE else abs(literal)

        merchant = self._extract_merchant(cells, exclude=(date_index, amount_index))
        return Transaction(transaction_date=date, merchant=merchant, amount=amount)

    def parse_rows(self, rows: Iterable[Union[Sequence[str], Mapping]]) -> List[Transaction]:
        """Parse a batch of rows, keeping accepted transactions in row order.

        Each row is either a list of cell texts or a mapping with a 'cells'
        list and an optional 'text' string holding the row's full text.
        """
        transactions = []
        rejected = 0
        for row in rows:
            if isinstance(row, Mapping):
                cells, row_text = row.get('cells') or [], row.get('text')
            else:
                cells, row_text = row, None

            if isinstance(cells, str):
                cells = [cells]
            elif not isinstance(cells, (list, tuple)):
                cells = []

            transaction = self.parse_row(cells, row_text)
            if transaction is None:
                rejected += 1
            else:
                transactions.append(transaction)

        logger.debug("Parsed %d transactions, rejected %d rows", len(transactions), rejected)
        return transactions

    @staticmethod
    def _find_date(cells):
        for index, cell in enumerate(cells):
            match = DATE_PATTERN.search(cell)
            if match:
                return index, match.group(0)
        return -1, None

    @staticmethod
    def _find_amount(cells):
        for index, cell in enumerate(cells):
            match = AMOUNT_PATTERN.search(cell)
            if match:
                return index, match
        return -1, None

    def _extract_merchant(self, cells, exclude):
        parts = [
            cell for index, cell in enumerate(cells)
            if index not in exclude
            and not CARD_SUFFIX_PATTERN.match(cell)
            and len(cell) > 1
        ]
        merchant = ' '.join(parts).strip()
        return merchant or self.unknown_merchant


def parse_row(cells: Sequence[str], row_text: Optional[str] = None) -> Optional[Transaction]:
    """Parse one row with the default statement vocabulary."""
    return RowParser().parse_row(cells, row_text)


def parse_rows(rows: Iterable[Union[Sequence[str], Mapping]]) -> List[Transaction]:
    """Parse a batch of rows with the default statement vocabulary."""
    return RowParser().parse_rows(rows)
