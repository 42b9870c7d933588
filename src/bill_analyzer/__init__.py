"""
Bill Analyzer - credit card statement extraction, categorization and summary.
"""

__version__ = '0.1.0'

from .analyzer import BillAnalyzer, build_report, filter_records, summarize, summarize_records, top_expenses
from .classifier import FALLBACK_CATEGORY, CategoryDictionary, Classifier
from .config_loader import CachedCategoryLoader, CategoryLoadError, load_category_dictionary, load_settings
from .format import parse_csv, to_csv
from .models import (
    AnalysisResult,
    AnalysisSummary,
    EnrichedTransaction,
    RecordTotals,
    Transaction,
)
from .row_parser import RowParser, parse_row, parse_rows
