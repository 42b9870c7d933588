"""
Keyword classifier - maps merchant text to a spending category.

The category dictionary is an ordered list of (category, keywords) pairs.
Order matters: the first category with a keyword contained in the merchant
wins, so overlapping keywords are resolved by declaration order alone.
"""

from typing import Iterable, Mapping, Optional, Sequence, Tuple, Union


FALLBACK_CATEGORY = 'Other'


class CategoryDictionary:
    """Immutable, ordered category -> keywords lookup."""

    def __init__(self, entries: Iterable[Tuple[str, Sequence[str]]] = ()):
        normalized = []
        for category, keywords in entries:
            if isinstance(keywords, str):
                keywords = [keywords]
            # A blank keyword would match every merchant
            cleaned = tuple(k for k in (keywords or ()) if k and k.strip())
            normalized.append((str(category), cleaned))
        self._entries = tuple(normalized)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Union[str, Sequence[str]]]) -> 'CategoryDictionary':
        """Build from an ordered mapping such as a parsed JSON/YAML document."""
        return cls(mapping.items())

    @classmethod
    def fallback(cls) -> 'CategoryDictionary':
        """Single "Other" entry with no keywords - everything is Other."""
        return cls([(FALLBACK_CATEGORY, [])])

    @property
    def entries(self) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
        return self._entries

    @property
    def categories(self) -> Tuple[str, ...]:
        return tuple(category for category, _ in self._entries)

    def keywords_for(self, category: str) -> Tuple[str, ...]:
        for name, keywords in self._entries:
            if name == category:
                return keywords
        return ()

    def __iter__(self):
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)

    def __eq__(self, other):
        if not isinstance(other, CategoryDictionary):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self):
        return hash(self._entries)

    def __repr__(self):
        return f"CategoryDictionary({list(self.categories)!r})"


class Classifier:
    """First-match keyword classifier over a CategoryDictionary."""

    def __init__(self, dictionary: Optional[CategoryDictionary] = None,
                 fallback_category: str = FALLBACK_CATEGORY):
        self.dictionary = dictionary if dictionary is not None else CategoryDictionary.fallback()
        self.fallback_category = fallback_category
        # Lower-case once; dictionary is immutable
        self._lowered = tuple(
            (category, tuple(keyword.lower() for keyword in keywords))
            for category, keywords in self.dictionary
        )

    def classify(self, merchant: Optional[str]) -> str:
        """Return the category for a merchant, or the fallback category.

        Args:
            merchant: Merchant text as it appears on the statement

        Returns:
            Name of the first category with a keyword contained in the
            merchant (case-insensitive), else the fallback category
        """
        if not merchant:
            return self.fallback_category

        normalized = merchant.lower()
        for category, keywords in self._lowered:
            for keyword in keywords:
                if keyword in normalized:
                    return category
        return self.fallback_category

    def explain(self, merchant: Optional[str]) -> Optional[Tuple[str, str]]:
        """Return (category, keyword) of the matching entry, or None."""
        if not merchant:
            return None
        normalized = merchant.lower()
        for (category, keywords), (_, original) in zip(self._lowered, self.dictionary):
            for keyword, shown in zip(keywords, original):
                if keyword in normalized:
                    return category, shown
        return None
