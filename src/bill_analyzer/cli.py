"""
Bill Analyzer CLI - Command-line interface.

Usage:
    bill-analyzer extract rows.json                  # Parsed transactions as CSV
    bill-analyzer analyze rows.json                  # Print the analysis report
    bill-analyzer analyze rows.json --csv out.csv    # Also export analyzed records
    bill-analyzer analyze data.json --flow Refund    # Totals for a filtered view
    bill-analyzer explain "STARBUCKS 1234"           # Show which keyword matches
"""

import argparse
import json
import os
import sys

from . import __version__
from .analyzer import BillAnalyzer, filter_records, summarize_records
from .classifier import Classifier
from .config_loader import (
    CachedCategoryLoader,
    CategoryLoadError,
    default_settings,
    load_category_dictionary,
    load_settings,
)
from .format import (
    FLOW_LABEL_EXPENSE,
    FLOW_LABEL_REFUND,
    FLOW_LABEL_REPAYMENT,
    format_currency,
    format_signed_currency,
    to_csv,
    transactions_to_csv,
)
from .logging import setup_logging
from .row_parser import RowParser


INPUT_HELP = '''
INPUT FILES
-----------
A JSON list of either raw table rows scraped from the statement page:

  [
    ["2024-01-05", "STARBUCKS", "35.00/RMB(支出)"],
    {"cells": ["2024-01-06", "手机银行还款", "1,000.00/RMB(存入)"], "text": "..."}
  ]

or already-parsed transactions:

  [{"transaction_date": "2024-01-05", "merchant": "STARBUCKS", "amount": -35.0}]

SETTINGS.YAML (optional, passed with --config DIR)
--------------------------------------------------
categories: categories.yaml       # Category -> keywords, first match wins
repayment_keywords: [还款, 转账, 手机银行]
currency_format: "¥{amount}"
'''


def _error(message):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def load_input(filepath):
    """Load a JSON input file holding a list of rows or transactions."""
    if not os.path.exists(filepath):
        _error(f"Input file not found: {filepath}")

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        _error(f"Cannot read {filepath}: {e}")

    if isinstance(data, dict) and isinstance(data.get('transactions'), list):
        data = data['transactions']
    if not isinstance(data, list):
        _error(f"{filepath} must contain a JSON list of rows or transactions")
    return data


def is_raw_rows(items):
    """True when the items look like scraped rows rather than transactions."""
    for item in items:
        if isinstance(item, dict):
            if 'cells' in item:
                return True
            if 'amount' in item:
                return False
        elif isinstance(item, (list, tuple)):
            return True
    return False


def resolve_settings(args):
    if args.config:
        try:
            settings = load_settings(args.config, args.settings)
        except (FileNotFoundError, ValueError) as e:
            _error(e)
    else:
        settings = default_settings()

    if getattr(args, 'categories', None):
        settings['categories'] = os.path.abspath(args.categories)
    return settings


def build_analyzer(settings):
    """Wire the cached dictionary loader, classifier and analyzer together."""
    loader = CachedCategoryLoader.from_path(settings['categories'])
    classifier = Classifier(loader.get())
    return BillAnalyzer(
        classifier,
        repayment_keywords=settings['repayment_keywords'],
        currency_format=settings['currency_format'],
    )


def write_output(content, output_path):
    if output_path:
        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            f.write(content + '\n')
        print(f"Wrote {output_path}", file=sys.stderr)
    else:
        print(content)


def cmd_extract(args):
    """Parse raw statement rows and print the transactions as CSV."""
    rows = load_input(args.input)
    transactions = RowParser().parse_rows(rows)
    if not transactions:
        _error("No transactions found")
    write_output(transactions_to_csv(transactions), args.output)


def cmd_analyze(args):
    """Run the analysis and print the report."""
    settings = resolve_settings(args)
    items = load_input(args.input)

    if is_raw_rows(items):
        items = RowParser().parse_rows(items)

    analyzer = build_analyzer(settings)
    result = analyzer.analyze(items)

    print(result.report)

    if args.csv:
        with open(args.csv, 'w', encoding='utf-8-sig', newline='') as f:
            f.write(to_csv(result.records) + '\n')
        print(f"\nExported {len(result.records)} records to {args.csv}", file=sys.stderr)

    if args.category or args.flow:
        view = filter_records(result.records, category=args.category, flow_label=args.flow)
        totals = summarize_records(view)
        fmt = settings['currency_format']
        print()
        print("--- Filtered View ---")
        print(f"Showing {totals.count} transactions")
        print(f"Expense: {format_currency(totals.expense_total, fmt)}")
        print(f"Income: {format_currency(totals.income_total, fmt)}")
        print(f"Net: {format_signed_currency(totals.net, fmt)}")


def cmd_explain(args):
    """Show which category and keyword a merchant matches."""
    settings = resolve_settings(args)
    try:
        dictionary = load_category_dictionary(settings['categories'])
    except CategoryLoadError as e:
        _error(e)

    classifier = Classifier(dictionary)
    for merchant in args.merchant:
        match = classifier.explain(merchant)
        if match:
            category, keyword = match
            print(f"{merchant}: {category} (keyword: {keyword})")
        else:
            print(f"{merchant}: {classifier.fallback_category} (no keyword matched)")


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='bill-analyzer',
        description='Analyze credit card statement tables: extract, categorize, summarize.',
        epilog=INPUT_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--log-level', default='WARNING',
                        help='Log level (default: WARNING)')
    parser.add_argument('--log-format', choices=['standard', 'json'], default='standard',
                        help='Log line format (default: standard)')

    subparsers = parser.add_subparsers(dest='command', title='commands')

    extract_parser = subparsers.add_parser(
        'extract',
        help='Parse scraped statement rows into transactions (CSV)',
    )
    extract_parser.add_argument('input', help='JSON file with raw table rows')
    extract_parser.add_argument('-o', '--output', help='Write CSV here instead of stdout')

    analyze_parser = subparsers.add_parser(
        'analyze',
        help='Categorize transactions and print the analysis report',
    )
    analyze_parser.add_argument('input', help='JSON file with raw rows or transactions')
    analyze_parser.add_argument('--config', help='Config directory containing settings.yaml')
    analyze_parser.add_argument('--settings', default='settings.yaml',
                                help='Settings file name inside --config (default: settings.yaml)')
    analyze_parser.add_argument('--categories', help='Category dictionary file (YAML or JSON)')
    analyze_parser.add_argument('--csv', help='Export analyzed records to this CSV file')
    analyze_parser.add_argument('--category', help='Show totals for this category only')
    analyze_parser.add_argument(
        '--flow',
        choices=[FLOW_LABEL_EXPENSE, FLOW_LABEL_REPAYMENT, FLOW_LABEL_REFUND],
        help='Show totals for this flow only',
    )

    explain_parser = subparsers.add_parser(
        'explain',
        help='Show which category a merchant is classified into and why',
    )
    explain_parser.add_argument('merchant', nargs='+', help='Merchant text to classify')
    explain_parser.add_argument('--config', help='Config directory containing settings.yaml')
    explain_parser.add_argument('--settings', default='settings.yaml',
                                help='Settings file name inside --config (default: settings.yaml)')
    explain_parser.add_argument('--categories', help='Category dictionary file (YAML or JSON)')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level, args.log_format)

    if args.command == 'extract':
        cmd_extract(args)
    elif args.command == 'analyze':
        cmd_analyze(args)
    elif args.command == 'explain':
        cmd_explain(args)


if __name__ == '__main__':
    main()
