"""
Name Normalizer

Reduces free-text product names to a canonical core name for matching.

Removed (case-insensitive, whole words/phrases):
1. Store-brand prefixes: "great value", "market pantry", ...
2. Size/weight tokens: "12 oz", "1.5 lb", "6pk", ...
3. Qualifiers: organic, premium, fresh, select, choice, natural

Example:
    >>> normalize_name("Great Value Organic Whole Milk 1 gal")
    'whole milk 1 gal'
    >>> normalize_name("Bananas 3 lb")
    'bananas'
"""

import math
import re
from typing import Optional, Pattern

from .config import DEFAULT_CONFIG, NormalizerConfig


def _phrase_pattern(phrases) -> Optional[Pattern]:
    """Whole-phrase alternation, longest first, tolerant of inner whitespace."""
    if not phrases:
        return None
    ordered = sorted({p.lower() for p in phrases}, key=len, reverse=True)
    alternatives = [r'\s+'.join(re.escape(word) for word in p.split()) for p in ordered]
    return re.compile(r'(?<!\w)(?:' + '|'.join(alternatives) + r')(?!\w)', re.IGNORECASE)


class NameNormalizer:
    """
    Strips brand, size and qualifier noise from product names.

    Built once from a NormalizerConfig; compiled patterns are read-only so a
    single instance is safe to share between threads.
    """

    def __init__(self, config: Optional[NormalizerConfig] = None):
        self.config = config or DEFAULT_CONFIG.normalizer
        self._brand_pattern = _phrase_pattern(self.config.store_brand_prefixes)
        self._qualifier_pattern = _phrase_pattern(self.config.qualifiers)
        self._size_pattern = None
        if self.config.size_units:
            units = '|'.join(re.escape(u) for u in sorted(self.config.size_units, key=len, reverse=True))
            self._size_pattern = re.compile(
                r'\b\d+(?:\.\d+)?\s*(?:' + units + r')\b', re.IGNORECASE
            )

    def _strip_once(self, text: str) -> str:
        for pattern in (self._brand_pattern, self._size_pattern, self._qualifier_pattern):
            if pattern is not None:
                text = pattern.sub(' ', text)
        return re.sub(r'\s+', ' ', text).strip()

    def normalize(self, raw_name: Optional[str]) -> str:
        """
        Normalize a product name.

        Total: any input returns a string, None and "" included. Removal is
        repeated until nothing changes, so normalizing a normalized name is
        a no-op.

        Example:
            >>> NameNormalizer().normalize("  Kroger Brand  2% MILK ")
            '2% milk'
        """
        if not raw_name or not isinstance(raw_name, str):
            return ""

        text = re.sub(r'\s+', ' ', raw_name.lower()).strip()
        while True:
            stripped = self._strip_once(text)
            if stripped == text:
                return stripped
            text = stripped

    def suggest_quantity(self, name: str, quantity: float) -> int:
        """
        Suggested purchase count for a list item.

        Household goods in the pack-size policy table are capped at their
        typical pack count; everything else rounds the requested quantity up.

        Example:
            >>> NameNormalizer().suggest_quantity("Toilet Paper", 20)
            12
        """
        suggested = max(1, math.ceil(quantity))
        name_lower = (name or "").lower()
        for keyword, cap in self.config.pack_size_policy.items():
            if keyword in name_lower:
                return max(1, min(suggested, cap))
        return suggested


_default_normalizer = NameNormalizer(DEFAULT_CONFIG.normalizer)


def normalize_name(raw_name: Optional[str]) -> str:
    """Normalize with the default noise tables."""
    return _default_normalizer.normalize(raw_name)
