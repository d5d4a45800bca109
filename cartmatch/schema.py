"""
Matching Engine Schema

Typed records passed into and out of the engine.

Inputs (ShoppingListItem, RetailerProduct, Deal, UserPreferences) are built
per request by the collaborators and validated at that boundary through
their from_dict constructors. Outputs (MatchResult, CartLine, CartPayload)
serialize with to_dict for the HTTP and CLI layers.

Prices are integers in minor currency units (cents).
"""

import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import InvalidArgument

Identifier = Union[int, str]


class Unit(str, Enum):
    COUNT = "COUNT"
    LB = "LB"
    OZ = "OZ"
    G = "G"
    KG = "KG"
    PKG = "PKG"
    ROLL = "ROLL"
    BOX = "BOX"
    CAN = "CAN"
    BOTTLE = "BOTTLE"
    JAR = "JAR"
    BUNCH = "BUNCH"
    GALLON = "GALLON"
    LOAF = "LOAF"
    DOZEN = "DOZEN"
    PINT = "PINT"
    QUART = "QUART"
    ML = "ML"
    L = "L"
    PACK = "PACK"
    BAG = "BAG"
    CONTAINER = "CONTAINER"
    PIECE = "PIECE"
    UNIT = "UNIT"


class MatchType(str, Enum):
    EXACT = "exact"
    BRAND = "brand"
    FUZZY = "fuzzy"
    CATEGORY = "category"
    NONE = "none"


# === Boundary validation helpers ===

def _require(data: Dict[str, Any], key: str, record: str) -> Any:
    if key not in data or data[key] is None:
        raise InvalidArgument(f"{record}: missing required field '{key}'")
    return data[key]


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def validate_identifier(value: Any, name: str = "id") -> Identifier:
    """Accept positive integers or non-blank strings."""
    if isinstance(value, bool) or value is None:
        raise InvalidArgument(f"Malformed {name}: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise InvalidArgument(f"Malformed {name}: {value!r} (must be positive)")
        return value
    if isinstance(value, str):
        if not value.strip():
            raise InvalidArgument(f"Malformed {name}: blank string")
        return value
    raise InvalidArgument(f"Malformed {name}: {value!r}")


def _is_finite_number(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


def validate_quantity(value: Any, name: str = "quantity") -> float:
    if not _is_finite_number(value):
        raise InvalidArgument(f"{name} must be a finite number, got {value!r}")
    if value <= 0:
        raise InvalidArgument(f"{name} must be positive, got {value!r}")
    return value


def _price(value: Any, name: str, record: str) -> int:
    if not _is_finite_number(value) or value < 0:
        raise InvalidArgument(f"{record}: {name} must be a non-negative number, got {value!r}")
    return int(round(value))


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_datetime(value: Any, name: str, record: str) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, str):
        try:
            return _as_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError:
            pass
    raise InvalidArgument(f"{record}: {name} is not an ISO 8601 datetime: {value!r}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# === Inputs ===

@dataclass(frozen=True)
class ShoppingListItem:
    """One entry of the user's shopping list."""
    id: Identifier
    product_name: str
    quantity: float = 1
    unit: Unit = Unit.COUNT
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShoppingListItem":
        record = "ShoppingListItem"
        name = _require(data, 'product_name', record)
        if not isinstance(name, str):
            raise InvalidArgument(f"{record}: product_name must be a string")
        unit = data.get('unit') or Unit.COUNT
        if isinstance(unit, Unit):
            unit = unit.value
        try:
            unit = Unit(str(unit).upper())
        except ValueError:
            raise InvalidArgument(f"{record}: unknown unit {unit!r}") from None
        return cls(
            id=validate_identifier(_require(data, 'id', record), "item id"),
            product_name=name,
            quantity=validate_quantity(data.get('quantity', 1)),
            unit=unit,
            notes=data.get('notes'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit": self.unit.value,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class RetailerProduct:
    """A product in a retailer's catalog."""
    id: Identifier
    name: str
    price: int
    quantity: int = 1  # pack size
    is_name_brand: bool = False
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetailerProduct":
        record = "RetailerProduct"
        name = _require(data, 'name', record)
        if not isinstance(name, str):
            raise InvalidArgument(f"{record}: name must be a string")
        quantity = data.get('quantity')
        if quantity is None:
            quantity = 1
        if not _is_finite_number(quantity) or quantity <= 0:
            raise InvalidArgument(f"{record}: pack quantity must be positive, got {quantity!r}")
        return cls(
            id=validate_identifier(_require(data, 'id', record), "product id"),
            name=name,
            price=_price(_require(data, 'price', record), 'price', record),
            quantity=quantity,
            is_name_brand=bool(data.get('is_name_brand', False)),
            category=data.get('category'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "is_name_brand": self.is_name_brand,
            "category": self.category,
        }


@dataclass(frozen=True)
class Deal:
    """An advertised sale price, valid in [start_date, end_date)."""
    id: Identifier
    product_name: str
    retailer_id: Identifier
    regular_price: int
    sale_price: int
    start_date: datetime
    end_date: datetime

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = _as_utc(now or utc_now())
        return _as_utc(self.start_date) <= now < _as_utc(self.end_date)

    @property
    def discount_fraction(self) -> float:
        if self.regular_price <= 0:
            return 0.0
        return (self.regular_price - self.sale_price) / self.regular_price

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Deal":
        record = "Deal"
        start = _parse_datetime(_require(data, 'start_date', record), 'start_date', record)
        end = _parse_datetime(_require(data, 'end_date', record), 'end_date', record)
        if end < start:
            raise InvalidArgument(f"{record}: end_date precedes start_date")
        name = _require(data, 'product_name', record)
        if not isinstance(name, str):
            raise InvalidArgument(f"{record}: product_name must be a string")
        return cls(
            id=validate_identifier(_require(data, 'id', record), "deal id"),
            product_name=name,
            retailer_id=validate_identifier(_require(data, 'retailer_id', record), "retailer id"),
            regular_price=_price(_require(data, 'regular_price', record), 'regular_price', record),
            sale_price=_price(_require(data, 'sale_price', record), 'sale_price', record),
            start_date=start,
            end_date=end,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "retailer_id": self.retailer_id,
            "regular_price": self.regular_price,
            "sale_price": self.sale_price,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }


@dataclass(frozen=True)
class UserPreferences:
    prefer_name_brand: bool = False
    prefer_organic: bool = False
    buy_in_bulk: bool = False
    prioritize_cost_savings: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPreferences":
        return cls(
            prefer_name_brand=bool(data.get('prefer_name_brand', False)),
            prefer_organic=bool(data.get('prefer_organic', False)),
            buy_in_bulk=bool(data.get('buy_in_bulk', False)),
            prioritize_cost_savings=bool(data.get('prioritize_cost_savings', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prefer_name_brand": self.prefer_name_brand,
            "prefer_organic": self.prefer_organic,
            "buy_in_bulk": self.buy_in_bulk,
            "prioritize_cost_savings": self.prioritize_cost_savings,
        }


# === Engine outputs ===

@dataclass(frozen=True)
class Candidate:
    """A (product, match type, confidence) triple surfaced by one strategy."""
    product: RetailerProduct
    match_type: MatchType
    confidence: float
    deal: Optional[Deal] = None


@dataclass(frozen=True)
class MatchResult:
    confidence: float
    match_type: MatchType
    retailer_product: Optional[RetailerProduct]
    deal: Optional[Deal] = None
    explanation: str = ""
    score: float = 0.0
    cost_per_unit: float = 0.0

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")

    @classmethod
    def no_match(cls, item_name: str) -> "MatchResult":
        return cls(
            confidence=0.0,
            match_type=MatchType.NONE,
            retailer_product=None,
            explanation=f'No suitable match found for "{item_name}"',
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence": self.confidence,
            "match_type": self.match_type.value,
            "retailer_product": self.retailer_product.to_dict() if self.retailer_product else None,
            "deal": self.deal.to_dict() if self.deal else None,
            "explanation": self.explanation,
            "score": round(self.score, 4),
            "cost_per_unit": self.cost_per_unit,
        }


@dataclass(frozen=True)
class CartLine:
    shopping_list_item_id: Identifier
    product_name: str
    retailer_product_id: Identifier
    retailer_product_name: str
    quantity: float
    estimated_price: int
    original_price: int
    savings: int
    cost_per_unit: float
    deal_id: Optional[Identifier]
    match_type: MatchType
    match_confidence: float
    match_explanation: str
    preference_alignment: float
    suggested_quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shopping_list_item_id": self.shopping_list_item_id,
            "product_name": self.product_name,
            "retailer_product_id": self.retailer_product_id,
            "retailer_product_name": self.retailer_product_name,
            "quantity": self.quantity,
            "estimated_price": self.estimated_price,
            "original_price": self.original_price,
            "savings": self.savings,
            "cost_per_unit": self.cost_per_unit,
            "deal_id": self.deal_id,
            "match_type": self.match_type.value,
            "match_confidence": self.match_confidence,
            "match_explanation": self.match_explanation,
            "preference_alignment": self.preference_alignment,
            "suggested_quantity": self.suggested_quantity,
        }


@dataclass(frozen=True)
class UnmatchedItem:
    item: ShoppingListItem
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        data = self.item.to_dict()
        data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class CostAnalysis:
    average_cost_per_unit: float = 0.0
    total_savings_from_deals: float = 0.0
    preference_alignment: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_cost_per_unit": self.average_cost_per_unit,
            "total_savings_from_deals": self.total_savings_from_deals,
            "preference_alignment": self.preference_alignment,
        }


@dataclass(frozen=True)
class CartPayload:
    retailer_id: Identifier
    items: List[CartLine] = field(default_factory=list)
    total_estimated_value: float = 0
    deals_saved: float = 0
    unmatched_items: List[UnmatchedItem] = field(default_factory=list)
    match_summary: Dict[str, int] = field(default_factory=dict)
    cost_analysis: CostAnalysis = field(default_factory=CostAnalysis)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retailer_id": self.retailer_id,
            "items": [line.to_dict() for line in self.items],
            "total_estimated_value": self.total_estimated_value,
            "deals_saved": self.deals_saved,
            "unmatched_items": [u.to_dict() for u in self.unmatched_items],
            "match_summary": dict(self.match_summary),
            "cost_analysis": self.cost_analysis.to_dict(),
        }
