"""Tests for row parser - extracting transactions from scraped table rows."""

import pytest

from bill_analyzer.models import FLOW_EXPENSE, FLOW_INCOME, UNKNOWN_MERCHANT, Transaction
from bill_analyzer.row_parser import (
    DIRECTION_RULES,
    DirectionRule,
    RowEvidence,
    RowParser,
    annotation_direction,
    fallback_direction,
    infer_direction,
    is_structural_row,
    keyword_direction,
    parse_amount,
    parse_row,
    parse_rows,
)


class TestStructuralRows:
    """Header, total and separator rows are never transactions."""

    def test_header_row_rejected(self):
        """The column header row is skipped."""
        assert parse_row(['交易日', '记账日', '商户名称', '金额']) is None

    def test_total_row_rejected(self):
        """A total row with a date and an amount is still skipped."""
        assert parse_row(['2024-01-31', '合计', '1,234.00/RMB(支出)']) is None

    def test_separator_row_rejected(self):
        """Separator rows are skipped."""
        assert parse_row(['---', '2024-01-05', '35.00']) is None

    def test_row_text_checked_not_just_cells(self):
        """Markers in the row text reject the row even if cells look clean."""
        cells = ['2024-01-05', 'STARBUCKS', '35.00']
        assert parse_row(cells, row_text='2024-01-05 starbucks 35.00 合计') is None

    def test_is_structural_row_case_insensitive(self):
        """Marker matching ignores case."""
        assert is_structural_row('Subtotal ---', markers=('SUBTOTAL',))
        assert not is_structural_row('2024-01-05 starbucks')


class TestRejection:
    """Rows missing a date or an amount are dropped silently."""

    def test_no_date(self):
        """Row without a YYYY-MM-DD date is rejected."""
        assert parse_row(['01/05/2024', 'STARBUCKS', '35.00']) is None

    def test_no_amount(self):
        """Row without a two-decimal amount is rejected."""
        assert parse_row(['2024-01-05', 'STARBUCKS', '35']) is None

    def test_empty_row(self):
        """Empty rows are rejected."""
        assert parse_row([]) is None

    def test_none_cells_tolerated(self):
        """None cells are treated as empty text."""
        txn = parse_row(['2024-01-05', None, 'STARBUCKS', '35.00'])
        assert txn.merchant == 'STARBUCKS'


class TestAmountExtraction:
    """Tests for finding and parsing the amount cell."""

    def test_parse_amount_with_thousands(self):
        """Thousands separators are removed."""
        assert parse_amount('1,234.56') == 1234.56
        assert parse_amount('-35.00') == -35.0

    def test_parse_amount_invalid(self):
        """Unparseable literals return None."""
        assert parse_amount('abc') is None

    def test_parse_amount_out_of_float_range(self):
        """A digit run too long for a float returns None instead of inf."""
        assert parse_amount('9' * 400 + '.00') is None
        assert parse_amount('-' + '9' * 400 + '.00') is None

    def test_out_of_range_amount_rejects_row(self):
        """The row is rejected rather than yielding an infinite amount."""
        assert parse_row(['2024-01-05', 'SHOP', '9' * 400 + '.00/RMB(支出)']) is None

    def test_annotated_expense(self):
        """"/RMB(支出)" marks an expense."""
        txn = parse_row(['2024-01-05', 'STARBUCKS', '35.00/RMB(支出)'])
        assert txn == Transaction('2024-01-05', 'STARBUCKS', -35.0)

    def test_annotated_deposit(self):
        """"(存入)" marks money arriving."""
        txn = parse_row(['2024-01-06', '手机银行', '1,000.00/RMB(存入)'])
        assert txn.amount == 1000.0

    def test_full_width_parentheses(self):
        """Full-width parentheses are accepted around the annotation."""
        txn = parse_row(['2024-01-06', 'JD.COM', '88.00（退款）'])
        assert txn.amount == 88.0

    def test_first_amount_cell_wins(self):
        """With several amount-like cells, the first one is used."""
        txn = parse_row(['2024-01-05', 'SHOP', '12.50', '99.99'])
        assert txn.amount == -12.5
        assert txn.merchant == 'SHOP 99.99'


class TestDateExtraction:
    """Tests for finding the date."""

    def test_date_embedded_in_text(self):
        """The date can be part of a longer cell."""
        txn = parse_row(['交易 2024-02-29 10:30', 'STARBUCKS', '35.00'])
        assert txn.transaction_date == '2024-02-29'

    def test_first_date_wins(self):
        """The transaction date is the first date found, not the posting date."""
        txn = parse_row(['2024-01-05', '2024-01-07', 'STARBUCKS', '35.00'])
        assert txn.transaction_date == '2024-01-05'

    def test_no_calendar_validation(self):
        """Dates are copied verbatim, even impossible ones."""
        txn = parse_row(['2024-13-45', 'STARBUCKS', '35.00'])
        assert txn.transaction_date == '2024-13-45'


class TestDirectionInference:
    """Direction precedence: annotation > cell keyword > fallback."""

    def test_annotation_beats_keyword(self):
        """An explicit annotation wins over keywords in other cells."""
        txn = parse_row(['2024-01-05', '消费', 'STARBUCKS', '35.00/RMB(退款)'])
        assert txn.amount == 35.0

    def test_expense_keyword_in_cell(self):
        """A "消费" type cell marks an expense."""
        txn = parse_row(['2024-01-05', '消费', 'STARBUCKS', '35.00'])
        assert txn.amount == -35.0

    def test_income_keyword_in_cell(self):
        """A "退款" cell turns an unlabeled amount into income."""
        txn = parse_row(['2024-01-05', '退款', 'JD.COM', '35.00'])
        assert txn.amount == 35.0

    def test_income_keyword_flips_negative_literal(self):
        """Keyword evidence overrides the printed sign."""
        txn = parse_row(['2024-01-05', '存入', 'PAYROLL', '-500.00'])
        assert txn.amount == 500.0

    def test_unlabeled_positive_is_expense(self):
        """Bare positive amounts are treated as charges."""
        txn = parse_row(['2024-01-05', 'STARBUCKS', '35.00'])
        assert txn.amount == -35.0

    def test_unlabeled_negative_stays_negative(self):
        """Bare negative amounts stay negative."""
        txn = parse_row(['2024-01-05', 'STARBUCKS', '-35.00'])
        assert txn.amount == -35.0

    def test_rules_are_ordered(self):
        """The rule list is annotation, keyword, fallback."""
        assert [rule.name for rule in DIRECTION_RULES] == ['annotation', 'keyword', 'fallback']


class TestDirectionRules:
    """Each rule can be exercised on its own."""

    def _evidence(self, cells, annotation=None):
        return RowEvidence(cells=tuple(cells), amount_index=len(cells) - 1, literal=1.0,
                           annotation=annotation)

    def test_annotation_rule(self):
        assert annotation_direction(self._evidence(['1.00'], '支出')) == FLOW_EXPENSE
        assert annotation_direction(self._evidence(['1.00'], '还款')) == FLOW_INCOME
        assert annotation_direction(self._evidence(['1.00'])) is None

    def test_keyword_rule(self):
        assert keyword_direction(self._evidence(['跨行消费', '1.00'])) == FLOW_EXPENSE
        assert keyword_direction(self._evidence(['收入', '1.00'])) == FLOW_INCOME
        assert keyword_direction(self._evidence(['SHOP', '1.00'])) is None

    def test_keyword_rule_first_cell_decides(self):
        """The earliest cell with a keyword decides."""
        assert keyword_direction(self._evidence(['退款', '消费', '1.00'])) == FLOW_INCOME

    def test_fallback_rule(self):
        assert fallback_direction(self._evidence(['1.00'])) == FLOW_EXPENSE

    def test_custom_rule_list(self):
        """A custom rule list is evaluated in order."""
        always_income = DirectionRule('income', lambda evidence: FLOW_INCOME)
        evidence = self._evidence(['消费', '1.00'])
        assert infer_direction(evidence, [always_income] + list(DIRECTION_RULES)) == FLOW_INCOME
        assert infer_direction(evidence, DIRECTION_RULES) == FLOW_EXPENSE


class TestMerchantExtraction:
    """Merchant text is whatever is left over."""

    def test_excludes_card_suffix_and_short_cells(self):
        """Four-digit card numbers and single characters are dropped."""
        txn = parse_row(['2024-01-05', '2024-01-06', '6789', 'STARBUCKS', '上海', '-', '35.00'])
        assert txn.merchant == '2024-01-06 STARBUCKS 上海'

    def test_unknown_merchant_sentinel(self):
        """Nothing left over falls back to the sentinel."""
        txn = parse_row(['2024-01-05', '1234', '35.00'])
        assert txn.merchant == UNKNOWN_MERCHANT

    def test_custom_sentinel(self):
        """The sentinel can be configured."""
        parser = RowParser(unknown_merchant='未知商户')
        assert parser.parse_row(['2024-01-05', '35.00']).merchant == '未知商户'


class TestParseRows:
    """Tests for batch parsing."""

    def test_mixed_rows_keep_order(self):
        """Accepted rows come back in order, rejected rows are dropped."""
        rows = [
            ['交易日', '商户名称', '金额'],
            ['2024-01-05', 'STARBUCKS', '35.00/RMB(支出)'],
            {'cells': ['2024-01-06', '手机银行', '1,000.00/RMB(存入)'], 'text': '2024-01-06 手机银行'},
            ['本期应还', '999'],
            ['2024-01-07', 'DIDI', '12.00'],
            ['合计', '2,000.00'],
        ]
        transactions = parse_rows(rows)
        assert [t.merchant for t in transactions] == ['STARBUCKS', '手机银行', 'DIDI']
        assert [t.amount for t in transactions] == [-35.0, 1000.0, -12.0]

    def test_empty_batch(self):
        assert parse_rows([]) == []

    @pytest.mark.parametrize('row', [
        {'text': 'no cells here'},
        {'cells': None},
        'not-a-row',
        42,
    ])
    def test_odd_row_shapes(self, row):
        """Odd shapes are rejected, not raised."""
        assert parse_rows([row]) == []
