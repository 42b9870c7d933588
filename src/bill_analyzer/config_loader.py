"""
Configuration loader for bill analysis.

Loads the category dictionary (YAML or JSON) and optional settings.yaml.
"""

import json
import logging
import os
import threading
from pathlib import Path

import yaml

from .classifier import CategoryDictionary
from .format import validate_currency_format

logger = logging.getLogger(__name__)


DEFAULT_REPAYMENT_KEYWORDS = ('还款', '转账', '手机银行')
DEFAULT_CURRENCY_FORMAT = '¥{amount}'


class CategoryLoadError(Exception):
    """Category dictionary file is missing or malformed."""


def get_data_dir():
    """Get the directory containing bundled data files."""
    return Path(__file__).parent / 'data'


def default_categories_path():
    """Path of the bundled category dictionary."""
    return get_data_dir() / 'categories.yaml'


def load_category_dictionary(path):
    """Load a category dictionary from a YAML or JSON file.

    The document must map category names to keyword lists, e.g.:

        Dining:
          - starbucks
          - 餐厅

    Args:
        path: Path to a .yaml/.yml or .json file

    Returns:
        CategoryDictionary in the file's declared order

    Raises:
        CategoryLoadError: if the file can't be read or has the wrong shape
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() == '.json':
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise CategoryLoadError(f"Cannot load categories from {path}: {e}") from e

    if not isinstance(data, dict):
        raise CategoryLoadError(f"Categories file {path} must contain a mapping of category -> keywords")

    for category, keywords in data.items():
        if keywords is None or isinstance(keywords, str):
            continue
        if not isinstance(keywords, list) or not all(isinstance(k, (str, int, float)) for k in keywords):
            raise CategoryLoadError(f"Keywords for category '{category}' must be a list of strings")

    return CategoryDictionary(
        (category, [str(k) for k in keywords] if isinstance(keywords, list) else keywords)
        for category, keywords in data.items()
    )


class CachedCategoryLoader:
    """Loads the category dictionary once and shares it.

    The first call to get() runs the load function; later calls return the
    cached dictionary. If loading fails, a warning is logged and the
    single-entry fallback dictionary is cached instead, so classification
    still works (everything becomes "Other").
    """

    def __init__(self, load_fn):
        self._load_fn = load_fn
        self._lock = threading.Lock()
        self._dictionary = None

    @classmethod
    def from_path(cls, path):
        return cls(lambda: load_category_dictionary(path))

    @property
    def loaded(self):
        return self._dictionary is not None

    def get(self):
        dictionary = self._dictionary
        if dictionary is not None:
            return dictionary

        with self._lock:
            if self._dictionary is None:
                try:
                    self._dictionary = self._load_fn()
                    logger.info("Loaded %d categories", len(self._dictionary))
                except (CategoryLoadError, OSError, ValueError, yaml.YAMLError) as e:
                    logger.warning("Category dictionary unavailable, classifying everything as Other: %s", e)
                    self._dictionary = CategoryDictionary.fallback()
            return self._dictionary


def load_settings(config_dir, settings_file='settings.yaml'):
    """Load settings.yaml from a config directory and fill in defaults.

    Recognised keys:
        categories: path to the category dictionary (relative to config_dir)
        repayment_keywords: merchant keywords marking credit-line repayments
        currency_format: format string with an {amount} placeholder

    Returns:
        dict with all settings resolved
    """
    config_dir = os.path.abspath(config_dir)

    if not os.path.isdir(config_dir):
        raise FileNotFoundError(f"Config directory not found: {config_dir}")

    settings_path = os.path.join(config_dir, settings_file)
    if not os.path.exists(settings_path):
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with open(settings_path, 'r', encoding='utf-8') as f:
        settings = yaml.safe_load(f) or {}

    if not isinstance(settings, dict):
        raise ValueError(f"Settings file must contain a mapping: {settings_path}")

    categories = settings.get('categories')
    if categories:
        settings['categories'] = os.path.normpath(os.path.join(config_dir, categories))
    else:
        settings['categories'] = str(default_categories_path())

    keywords = settings.get('repayment_keywords')
    if keywords is None:
        keywords = DEFAULT_REPAYMENT_KEYWORDS
    elif isinstance(keywords, str):
        keywords = [keywords]
    settings['repayment_keywords'] = tuple(str(k) for k in keywords if str(k).strip())

    settings['currency_format'] = validate_currency_format(
        str(settings.get('currency_format') or DEFAULT_CURRENCY_FORMAT))

    settings['_config_dir'] = config_dir
    return settings


def default_settings():
    """Settings used when no config directory is given."""
    return {
        'categories': str(default_categories_path()),
        'repayment_keywords': DEFAULT_REPAYMENT_KEYWORDS,
        'currency_format': DEFAULT_CURRENCY_FORMAT,
    }
