"""
cartmatch API - HTTP surface for the matching engine

Endpoints:
    GET  /                 service info
    POST /api/normalize    canonical core name
    POST /api/candidates   every candidate for one item
    POST /api/match        best match for one item
    POST /api/cart         cart payload for a shopping list

Run:
    uvicorn cartmatch.api:app --port 8000
"""

import logging
from datetime import datetime
from typing import List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .engine import MatchingEngine, create_engine
from .errors import InvalidArgument
from .providers import InMemoryStore, SQLiteStore
from .schema import (
    Deal,
    RetailerProduct,
    ShoppingListItem,
    UserPreferences,
)

logger = logging.getLogger(__name__)

RetailerId = Union[int, str]


# === Request models ===

class ProductIn(BaseModel):
    id: Union[int, str]
    name: str
    price: int = Field(ge=0)
    quantity: float = Field(default=1, gt=0)
    is_name_brand: bool = False
    category: Optional[str] = None


class DealIn(BaseModel):
    id: Union[int, str]
    product_name: str
    retailer_id: Union[int, str]
    regular_price: int = Field(ge=0)
    sale_price: int = Field(ge=0)
    start_date: datetime
    end_date: datetime


class PreferencesIn(BaseModel):
    prefer_name_brand: bool = False
    prefer_organic: bool = False
    buy_in_bulk: bool = False
    prioritize_cost_savings: bool = False


class ItemIn(BaseModel):
    id: Union[int, str]
    product_name: str
    # Positivity is enforced by the engine so the error kind stays InvalidArgument
    quantity: float = 1
    unit: str = "COUNT"
    notes: Optional[str] = None


class NormalizeRequest(BaseModel):
    name: str


class CandidatesRequest(BaseModel):
    item_name: str
    retailer_id: RetailerId
    products: List[ProductIn] = Field(default_factory=list)
    deals: List[DealIn] = Field(default_factory=list)


class MatchRequest(CandidatesRequest):
    preferences: Optional[PreferencesIn] = None


class CartRequest(BaseModel):
    items: List[ItemIn]
    retailer_id: RetailerId
    products: Optional[List[ProductIn]] = None
    deals: Optional[List[DealIn]] = None
    preferences: Optional[PreferencesIn] = None
    user_id: Optional[Union[int, str]] = None


# === Conversion into engine records ===

def _products(models: List[ProductIn]) -> List[RetailerProduct]:
    return [RetailerProduct.from_dict(m.model_dump()) for m in models]


def _deals(models: List[DealIn]) -> List[Deal]:
    return [Deal.from_dict(m.model_dump()) for m in models]


def _preferences(model: Optional[PreferencesIn]) -> Optional[UserPreferences]:
    return UserPreferences.from_dict(model.model_dump()) if model is not None else None


def create_app(
    engine: Optional[MatchingEngine] = None,
    store: Optional[Union[InMemoryStore, SQLiteStore]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Matching engine (defaults to create_engine())
        store: Optional provider; lets /api/cart omit products, deals and
            preferences and fetch them instead
    """
    engine = engine or create_engine()
    app = FastAPI(title="cartmatch API", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidArgument)
    async def invalid_argument_handler(request: Request, exc: InvalidArgument):
        logger.info(f"Rejected {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.get("/")
    def root():
        return {
            "name": "cartmatch API",
            "version": __version__,
            "store": store is not None,
        }

    @app.post("/api/normalize")
    def normalize(request: NormalizeRequest):
        return {"name": request.name, "normalized": engine.normalize_name(request.name)}

    @app.post("/api/candidates")
    def candidates(request: CandidatesRequest):
        found = engine.find_candidates(
            request.item_name, request.retailer_id,
            _products(request.products), _deals(request.deals),
        )
        return {
            "count": len(found),
            "candidates": [
                {
                    "product": c.product.to_dict(),
                    "match_type": c.match_type.value,
                    "confidence": c.confidence,
                    "deal": c.deal.to_dict() if c.deal else None,
                }
                for c in found
            ],
        }

    @app.post("/api/match")
    def match(request: MatchRequest):
        result = engine.match(
            request.item_name, request.retailer_id,
            _products(request.products), _deals(request.deals),
            _preferences(request.preferences),
        )
        return result.to_dict()

    @app.post("/api/cart")
    def cart(request: CartRequest):
        items = [ShoppingListItem.from_dict(i.model_dump()) for i in request.items]

        if request.products is not None:
            products = _products(request.products)
        elif store is not None:
            products = store.get_products_for_retailer(request.retailer_id)
        else:
            products = []

        if request.deals is not None:
            deals = _deals(request.deals)
        elif store is not None:
            deals = store.get_active_deals(request.retailer_id)
        else:
            deals = []

        preferences = _preferences(request.preferences)
        if preferences is None and store is not None and request.user_id is not None:
            preferences = store.get_user_preferences(request.user_id)

        payload = engine.build_cart(items, request.retailer_id, products, deals, preferences)
        return payload.to_dict()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
