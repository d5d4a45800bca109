"""
Cart Builder

Turns a shopping list into a retailer cart payload: one best match per item,
deal-aware prices, totals, savings and a cost analysis.

Items whose best match is not confident enough are reported as unmatched
with the match explanation as the reason; no item is ever dropped.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import DEFAULT_CONFIG, MatcherConfig
from .errors import InvalidArgument
from .matcher import CandidateMatcher
from .schema import (
    Candidate,
    CartLine,
    CartPayload,
    CostAnalysis,
    Deal,
    Identifier,
    MatchResult,
    MatchType,
    RetailerProduct,
    ShoppingListItem,
    UnmatchedItem,
    UserPreferences,
    utc_now,
    validate_identifier,
    validate_quantity,
)

logger = logging.getLogger(__name__)


class CartBuilder:
    """
    Aggregates per-item matches into a CartPayload.

    Usage:
        builder = CartBuilder(config)
        cart = builder.build_cart(items, retailer_id=1, products=catalog, deals=deals)
    """

    def __init__(self, config: Optional[MatcherConfig] = None, matcher: Optional[CandidateMatcher] = None):
        self.config = config or DEFAULT_CONFIG
        self.matcher = matcher or CandidateMatcher(self.config)
        self.selector = self.matcher.selector
        self.normalizer = self.matcher.normalizer

    @staticmethod
    def _validate(items: Sequence[ShoppingListItem], retailer_id: Identifier):
        validate_identifier(retailer_id, "retailer id")
        for item in items:
            if item.product_name is None or not isinstance(item.product_name, str):
                raise InvalidArgument(f"Item {item.id!r}: product name must be a string")
            validate_quantity(item.quantity, f"Item {item.id!r} quantity")

    def _cart_line(self, item: ShoppingListItem, match: MatchResult, preferences: Optional[UserPreferences]) -> CartLine:
        product = match.retailer_product
        deal = match.deal

        if deal is not None:
            estimated = deal.sale_price
            original = deal.regular_price
        else:
            estimated = product.price
            original = product.price
        savings = original - estimated if deal is not None else 0

        winner = Candidate(product, match.match_type, match.confidence, deal)
        return CartLine(
            shopping_list_item_id=item.id,
            product_name=item.product_name,
            retailer_product_id=product.id,
            retailer_product_name=product.name,
            quantity=item.quantity,
            estimated_price=estimated,
            original_price=original,
            savings=savings,
            cost_per_unit=match.cost_per_unit,
            deal_id=deal.id if deal is not None else None,
            match_type=match.match_type,
            match_confidence=match.confidence,
            match_explanation=match.explanation,
            preference_alignment=self.selector.preference_alignment(winner, preferences),
            suggested_quantity=self.normalizer.suggest_quantity(item.product_name, item.quantity),
        )

    def build_cart(
        self,
        items: Sequence[ShoppingListItem],
        retailer_id: Identifier,
        products: Sequence[RetailerProduct],
        deals: Sequence[Deal] = (),
        preferences: Optional[UserPreferences] = None,
        now: Optional[datetime] = None,
    ) -> CartPayload:
        """
        Build the cart payload for a shopping list at one retailer.

        Args:
            items: Shopping-list entries (quantity must be positive)
            retailer_id: Retailer whose catalog is supplied
            products: Retailer catalog (may be empty)
            deals: Advertised deals (may be empty)
            preferences: Optional user shopping preferences
            now: Evaluation time for deal activity

        Returns:
            CartPayload where len(items) + len(unmatched_items) == len(input)

        Raises:
            InvalidArgument: non-positive quantity, missing item name or
                malformed retailer id
        """
        self._validate(items, retailer_id)
        now = now or utc_now()
        cart_threshold = self.config.thresholds.cart_confidence

        lines: List[CartLine] = []
        unmatched: List[UnmatchedItem] = []
        summary: Dict[str, int] = {t.value: 0 for t in MatchType}
        total_value = 0
        deals_saved = 0

        for item in items:
            match = self.matcher.match(
                item.product_name, retailer_id, products, deals, preferences, now
            )

            if match.retailer_product is not None and match.confidence > cart_threshold:
                line = self._cart_line(item, match, preferences)
                lines.append(line)
                total_value += line.estimated_price * item.quantity
                deals_saved += line.savings * item.quantity
                summary[match.match_type.value] += 1
            else:
                unmatched.append(UnmatchedItem(item=item, reason=match.explanation or 'No match found'))
                summary[MatchType.NONE.value] += 1

        if lines:
            average_cpu = float(np.average(
                [line.cost_per_unit for line in lines],
                weights=[line.quantity for line in lines],
            ))
            alignment = float(np.mean([line.preference_alignment for line in lines]))
        else:
            average_cpu = 0.0
            alignment = 0.0

        logger.info(
            f"Cart for retailer {retailer_id}: {len(lines)} matched, "
            f"{len(unmatched)} unmatched, total {total_value}, saved {deals_saved}"
        )

        return CartPayload(
            retailer_id=retailer_id,
            items=lines,
            total_estimated_value=total_value,
            deals_saved=deals_saved,
            unmatched_items=unmatched,
            match_summary=summary,
            cost_analysis=CostAnalysis(
                average_cost_per_unit=average_cpu,
                total_savings_from_deals=deals_saved,
                preference_alignment=alignment,
            ),
        )
