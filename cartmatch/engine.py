"""
Matching Engine

Single call surface over the normalizer, matcher, selector and cart builder,
all sharing one immutable MatcherConfig.

Usage:
    engine = create_engine()
    engine.normalize_name("Great Value Milk 1 gal")
    candidates = engine.find_candidates("milk", 1, catalog, deals)
    best = engine.select_best_match(candidates, preferences)
    cart = engine.build_cart(items, 1, catalog, deals, preferences)
"""

from datetime import datetime
from typing import List, Optional, Sequence, Union
from pathlib import Path

from .cart import CartBuilder
from .config import DEFAULT_CONFIG, MatcherConfig, load_config
from .matcher import CandidateMatcher
from .name_normalizer import NameNormalizer
from .schema import (
    Candidate,
    CartPayload,
    Deal,
    Identifier,
    MatchResult,
    RetailerProduct,
    ShoppingListItem,
    UserPreferences,
)
from .selector import PreferenceSelector


class MatchingEngine:
    """Stateless engine; safe to share across threads."""

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.normalizer = NameNormalizer(self.config.normalizer)
        self.selector = PreferenceSelector(self.config)
        self.matcher = CandidateMatcher(self.config, self.normalizer, self.selector)
        self.cart_builder = CartBuilder(self.config, self.matcher)

    def normalize_name(self, raw: str) -> str:
        return self.normalizer.normalize(raw)

    def find_candidates(
        self,
        item_name: str,
        retailer_id: Identifier,
        products: Sequence[RetailerProduct],
        deals: Sequence[Deal] = (),
        now: Optional[datetime] = None,
    ) -> List[Candidate]:
        return self.matcher.find_candidates(item_name, retailer_id, products, deals, now)

    def select_best_match(
        self,
        candidates: Sequence[Candidate],
        preferences: Optional[UserPreferences] = None,
    ) -> MatchResult:
        return self.selector.select_best(candidates, preferences)

    def match(
        self,
        item_name: str,
        retailer_id: Identifier,
        products: Sequence[RetailerProduct],
        deals: Sequence[Deal] = (),
        preferences: Optional[UserPreferences] = None,
        now: Optional[datetime] = None,
    ) -> MatchResult:
        return self.matcher.match(item_name, retailer_id, products, deals, preferences, now)

    def build_cart(
        self,
        items: Sequence[ShoppingListItem],
        retailer_id: Identifier,
        products: Sequence[RetailerProduct],
        deals: Sequence[Deal] = (),
        preferences: Optional[UserPreferences] = None,
        now: Optional[datetime] = None,
    ) -> CartPayload:
        return self.cart_builder.build_cart(items, retailer_id, products, deals, preferences, now)


def create_engine(config: Optional[Union[MatcherConfig, str, Path]] = None) -> MatchingEngine:
    """Build an engine from a config object, a JSON path, or the defaults."""
    if config is None or isinstance(config, (str, Path)):
        config = load_config(config)
    return MatchingEngine(config)
