"""
Candidate Matcher

Finds retailer products that could satisfy a shopping-list item.

Strategies (all evaluated, every hit kept for the selector):
1. Exact: normalized names equal, or one contains the other
2. Brand: retailer store-brand product whose name minus the brand phrase
   is similar to the item
3. Fuzzy: edit-distance similarity above threshold
4. Category: item names a category keyword, product names a known variation

The selector weighs exact matches against cheaper fuzzy ones, so the
matcher never stops at the first strategy that hits.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .config import DEFAULT_CONFIG, MatcherConfig
from .errors import InvalidArgument
from .name_normalizer import NameNormalizer
from .schema import (
    Candidate,
    Deal,
    Identifier,
    MatchResult,
    MatchType,
    RetailerProduct,
    UserPreferences,
    utc_now,
    validate_identifier,
)
from .selector import PreferenceSelector
from .similarity import similarity

logger = logging.getLogger(__name__)


class CandidateMatcher:
    """
    Four-strategy product matcher for a single retailer catalog.

    Lookup tables (store brands, categories) come from the injected config
    and are never mutated.
    """

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        normalizer: Optional[NameNormalizer] = None,
        selector: Optional[PreferenceSelector] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.normalizer = normalizer or NameNormalizer(self.config.normalizer)
        self.selector = selector or PreferenceSelector(self.config)
        self.thresholds = self.config.thresholds

    # === Strategies ===

    def _exact_matches(self, item_name: str, products: List[tuple]) -> List[Candidate]:
        if not item_name:
            return []
        matches = []
        for product, name in products:
            if not name:
                continue
            if name == item_name or item_name in name or name in item_name:
                matches.append(Candidate(product, MatchType.EXACT, self.thresholds.exact_confidence))
        return matches

    def _brand_matches(self, item_name: str, retailer_id: Identifier, products: List[tuple]) -> List[Candidate]:
        store_brands = self.config.brands_for(retailer_id)
        if not store_brands:
            return []

        matches = []
        for product, name in products:
            for brand in store_brands:
                if brand not in name:
                    continue
                remainder = ' '.join(name.replace(brand, ' ').split())
                if similarity(item_name, remainder) > self.thresholds.brand_similarity:
                    matches.append(Candidate(product, MatchType.BRAND, self.thresholds.brand_confidence))
                    break
        return matches

    def _fuzzy_matches(self, item_name: str, products: List[tuple]) -> List[Candidate]:
        matches = []
        for product, name in products:
            score = similarity(item_name, name)
            if score > self.thresholds.fuzzy_similarity:
                matches.append(Candidate(product, MatchType.FUZZY, min(score, 1.0)))
        matches.sort(key=lambda c: c.confidence, reverse=True)
        return matches

    def _category_matches(self, item_name: str, products: List[tuple]) -> List[Candidate]:
        matches = []
        for category, variations in self.config.category_variations.items():
            if category not in item_name:
                continue
            for product, name in products:
                if any(variation in name for variation in variations):
                    matches.append(Candidate(product, MatchType.CATEGORY, self.thresholds.category_confidence))
        return matches

    # === Deals ===

    def find_deal_for_product(
        self,
        product: RetailerProduct,
        deals: Iterable[Deal],
        now: Optional[datetime] = None,
    ) -> Optional[Deal]:
        """
        First active deal whose product name is the same or near-identical
        to the product's name.

        Example:
            deal = matcher.find_deal_for_product(bananas, deals)
        """
        if not product.name:
            return None
        now = now or utc_now()
        product_name = self.normalizer.normalize(product.name)

        for deal in deals:
            if not deal.product_name or not deal.is_active(now):
                continue
            deal_name = self.normalizer.normalize(deal.product_name)
            if deal_name == product_name or similarity(deal_name, product_name) > self.thresholds.deal_similarity:
                return deal
        return None

    # === Public API ===

    def find_candidates(
        self,
        item_name: str,
        retailer_id: Identifier,
        products: Sequence[RetailerProduct],
        deals: Sequence[Deal] = (),
        now: Optional[datetime] = None,
    ) -> List[Candidate]:
        """
        Gather candidates from all four strategies.

        Args:
            item_name: Raw shopping-list item name
            retailer_id: Retailer the catalog belongs to
            products: Retailer catalog
            deals: Deals to attach to surfaced products
            now: Evaluation time for deal activity (defaults to current UTC)

        Returns:
            Every discovered candidate in strategy order, deals attached.
            A product hit by several strategies appears once per strategy.
        """
        if item_name is None or not isinstance(item_name, str):
            raise InvalidArgument(f"item name must be a string, got {item_name!r}")
        validate_identifier(retailer_id, "retailer id")

        now = now or utc_now()
        normalized_item = self.normalizer.normalize(item_name)
        normalized = [(p, self.normalizer.normalize(p.name)) for p in products]

        found: List[Candidate] = []
        if not normalized_item:
            # Nothing left to compare once the noise is stripped
            logger.debug(f"'{item_name}': empty after normalization")
            return found

        found += self._exact_matches(normalized_item, normalized)
        found += self._brand_matches(normalized_item, retailer_id, normalized)
        found += self._fuzzy_matches(normalized_item, normalized)
        found += self._category_matches(normalized_item, normalized)

        if not found or not deals:
            logger.debug(f"'{item_name}': {len(found)} candidates")
            return found

        # One deal lookup per distinct product
        deal_by_product: Dict[int, Optional[Deal]] = {}
        candidates = []
        for candidate in found:
            key = id(candidate.product)
            if key not in deal_by_product:
                deal_by_product[key] = self.find_deal_for_product(candidate.product, deals, now)
            candidates.append(Candidate(
                product=candidate.product,
                match_type=candidate.match_type,
                confidence=candidate.confidence,
                deal=deal_by_product[key],
            ))

        logger.debug(f"'{item_name}': {len(candidates)} candidates")
        return candidates

    def match(
        self,
        item_name: str,
        retailer_id: Identifier,
        products: Sequence[RetailerProduct],
        deals: Sequence[Deal] = (),
        preferences: Optional[UserPreferences] = None,
        now: Optional[datetime] = None,
    ) -> MatchResult:
        """
        Best single match for an item.

        Returns a "none" result naming the original item when no strategy
        finds anything.
        """
        candidates = self.find_candidates(item_name, retailer_id, products, deals, now)
        if not candidates:
            return MatchResult.no_match(item_name)
        return self.selector.select_best(candidates, preferences)
