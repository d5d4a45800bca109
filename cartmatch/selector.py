"""
Preference-Aware Selector

Scores match candidates against user preferences, deals and unit cost, and
picks the single best candidate per item.

Score = confidence * 100
      + preference bonuses (organic, name/store brand, bulk, cost savings)
      + cost efficiency (always)
      + deal presence (always)
      + match-type bonus (exact > brand > fuzzy > category)

Equal scores are broken by lower cost per unit, then product name, then
product id, so the same inputs always pick the same winner.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import DEFAULT_CONFIG, MatcherConfig
from .errors import InvalidArgument
from .schema import Candidate, MatchResult, MatchType, UserPreferences

logger = logging.getLogger(__name__)

MATCH_DESCRIPTIONS = {
    MatchType.EXACT: 'Exact product match',
    MatchType.BRAND: 'Store brand alternative',
    MatchType.CATEGORY: 'Category substitute',
}


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: float
    cost_per_unit: float
    explanation: str

    @property
    def sort_key(self):
        product = self.candidate.product
        return (-self.score, self.cost_per_unit, product.name.lower(), str(product.id))


def effective_price(candidate: Candidate) -> int:
    """Sale price when a deal is attached, otherwise the shelf price."""
    if candidate.deal is not None:
        return candidate.deal.sale_price
    return candidate.product.price


def cost_per_unit(candidate: Candidate) -> float:
    """Effective price divided by pack size, in minor currency units."""
    return effective_price(candidate) / (candidate.product.quantity or 1)


class PreferenceSelector:
    """Picks the best candidate for a list item."""

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.weights = self.config.weights

    def score(self, candidate: Candidate, preferences: Optional[UserPreferences] = None) -> float:
        """Total score for one candidate; see module docstring for the terms."""
        w = self.weights
        product = candidate.product
        name = product.name.lower()
        unit_cost = cost_per_unit(candidate)
        pack = product.quantity or 1

        total = candidate.confidence * 100

        if preferences is not None:
            if preferences.prefer_organic and ('organic' in name or 'natural' in name):
                total += w.organic

            if preferences.prefer_name_brand and product.is_name_brand:
                total += w.name_brand
            elif not preferences.prefer_name_brand and not product.is_name_brand:
                total += w.store_brand

            if preferences.buy_in_bulk and pack > w.bulk_pack_threshold:
                total += w.bulk
            elif not preferences.buy_in_bulk and pack <= w.bulk_pack_threshold:
                total += w.regular_size

            if preferences.prioritize_cost_savings:
                if candidate.deal is not None:
                    total += candidate.deal.discount_fraction * w.deal_discount
                total += max(0.0, w.savings_unit_cap - unit_cost / w.savings_unit_divisor)

        total += max(0.0, w.efficiency_cap - unit_cost / w.efficiency_divisor)

        if candidate.deal is not None:
            total += w.deal_presence

        total += w.match_type_bonus.get(candidate.match_type.value, 0.0)
        return total

    def explain(self, candidate: Candidate, preferences: Optional[UserPreferences] = None) -> str:
        """
        Human-readable reason for a match.

        Example:
            'Exact product match, 24.6% off sale, $1.49/unit, great value'
        """
        if candidate.match_type == MatchType.FUZZY:
            parts = [f"Similar product ({round(candidate.confidence * 100)}% match)"]
        else:
            parts = [MATCH_DESCRIPTIONS.get(candidate.match_type, 'Match')]

        if candidate.deal is not None:
            parts.append(f"{candidate.deal.discount_fraction * 100:.1f}% off sale")

        parts.append(f"{self.config.currency_symbol}{cost_per_unit(candidate) / 100:.2f}/unit")

        if preferences is not None:
            product = candidate.product
            if preferences.prefer_organic and 'organic' in product.name.lower():
                parts.append('organic as preferred')
            if preferences.buy_in_bulk and (product.quantity or 1) > self.weights.bulk_pack_threshold:
                parts.append('bulk size as preferred')
            if preferences.prioritize_cost_savings and candidate.deal is not None:
                parts.append('great value')

        return ', '.join(parts)

    def preference_alignment(self, candidate: Candidate, preferences: Optional[UserPreferences]) -> float:
        """How well a chosen product fits the user's stated preferences."""
        if preferences is None:
            return 0.0
        w = self.weights
        product = candidate.product
        alignment = 0.0
        if preferences.prefer_organic and 'organic' in product.name.lower():
            alignment += w.alignment_organic
        if preferences.prefer_name_brand and product.is_name_brand:
            alignment += w.alignment_name_brand
        if preferences.buy_in_bulk and (product.quantity or 1) > w.bulk_pack_threshold:
            alignment += w.alignment_bulk
        if preferences.prioritize_cost_savings and candidate.deal is not None:
            alignment += w.alignment_deal
        return alignment

    def rank(
        self,
        candidates: Sequence[Candidate],
        preferences: Optional[UserPreferences] = None,
    ) -> List[ScoredCandidate]:
        """All candidates scored, best first."""
        scored = [
            ScoredCandidate(
                candidate=c,
                score=self.score(c, preferences),
                cost_per_unit=cost_per_unit(c),
                explanation=self.explain(c, preferences),
            )
            for c in candidates
        ]
        scored.sort(key=lambda s: s.sort_key)
        return scored

    def select_best(
        self,
        candidates: Sequence[Candidate],
        preferences: Optional[UserPreferences] = None,
    ) -> MatchResult:
        """
        Highest-scoring candidate as a MatchResult.

        Callers only invoke this with at least one candidate; an empty list
        is an error in the caller, not a "no match".
        """
        if not candidates:
            raise InvalidArgument("select_best requires at least one candidate")

        best = self.rank(candidates, preferences)[0]
        winner = best.candidate
        logger.debug(
            f"Selected '{winner.product.name}' ({winner.match_type.value}, "
            f"score {best.score:.1f}) from {len(candidates)} candidates"
        )
        return MatchResult(
            confidence=winner.confidence,
            match_type=winner.match_type,
            retailer_product=winner.product,
            deal=winner.deal,
            explanation=best.explanation,
            score=best.score,
            cost_per_unit=best.cost_per_unit,
        )
