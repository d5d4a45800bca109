"""
cartmatch - Shopping-List Matching Engine

Matches shopping-list items to retailer products and deals, scores them
against user preferences and builds cart payloads with savings.

Key Components:
- NameNormalizer: Strip brand, size and qualifier noise from names
- CandidateMatcher: Exact, store-brand, fuzzy and category matching
- PreferenceSelector: Deal- and preference-aware scoring
- CartBuilder: Cart totals, savings and cost analysis
- MatchingEngine: Facade over all of the above
"""

__version__ = "0.3.0"

from .errors import InvalidArgument, ConfigError
from .config import MatcherConfig, load_config
from .schema import (
    Candidate,
    CartLine,
    CartPayload,
    Deal,
    MatchResult,
    MatchType,
    RetailerProduct,
    ShoppingListItem,
    Unit,
    UserPreferences,
)
from .similarity import similarity, edit_distance
from .name_normalizer import NameNormalizer, normalize_name
from .selector import PreferenceSelector
from .matcher import CandidateMatcher
from .cart import CartBuilder
from .engine import MatchingEngine, create_engine

__all__ = [
    # Errors
    'InvalidArgument',
    'ConfigError',

    # Config
    'MatcherConfig',
    'load_config',

    # Schema
    'Candidate',
    'CartLine',
    'CartPayload',
    'Deal',
    'MatchResult',
    'MatchType',
    'RetailerProduct',
    'ShoppingListItem',
    'Unit',
    'UserPreferences',

    # Matching
    'similarity',
    'edit_distance',
    'NameNormalizer',
    'normalize_name',
    'PreferenceSelector',
    'CandidateMatcher',
    'CartBuilder',
    'MatchingEngine',
    'create_engine',
]
