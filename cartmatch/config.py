"""
Matcher Configuration

Central configuration for the matching engine: noise tables for name
normalization, store-brand and category lookup tables, thresholds and
scoring weights.

The configuration is immutable once built. Mapping tables are exposed as
read-only views so a single instance can be shared by every request.

Usage:
    config = load_config()                      # defaults (+ $CARTMATCH_CONFIG)
    config = load_config("matcher.json")        # defaults + overrides
    engine = MatchingEngine(config)
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CARTMATCH_CONFIG"


def _freeze_table(table: Mapping) -> Mapping:
    """Copy a {key: [phrases]} table into a read-only {key: (phrases,)} view."""
    return MappingProxyType({
        key: tuple(value) if isinstance(value, (list, tuple)) else value
        for key, value in table.items()
    })


@dataclass(frozen=True)
class NormalizerConfig:
    """Noise tables stripped from product names before comparison."""
    store_brand_prefixes: Tuple[str, ...] = (
        'great value', 'market pantry', 'good & gather',
        'kroger brand', 'simple truth', 'private selection',
    )
    size_units: Tuple[str, ...] = (
        'oz', 'lb', 'g', 'kg', 'ml', 'l', 'count', 'ct', 'pk', 'pack',
    )
    qualifiers: Tuple[str, ...] = (
        'organic', 'premium', 'fresh', 'select', 'choice', 'natural',
    )
    # Typical household pack counts; suggested quantities never exceed them
    pack_size_policy: Mapping[str, int] = field(default_factory=lambda: {
        'paper towel': 6,
        'toilet paper': 12,
    })

    def __post_init__(self):
        object.__setattr__(self, 'store_brand_prefixes', tuple(self.store_brand_prefixes))
        object.__setattr__(self, 'size_units', tuple(self.size_units))
        object.__setattr__(self, 'qualifiers', tuple(self.qualifiers))
        object.__setattr__(self, 'pack_size_policy', MappingProxyType(dict(self.pack_size_policy)))


@dataclass(frozen=True)
class MatchThresholds:
    """Similarity thresholds and fixed confidences per strategy."""
    fuzzy_similarity: float = 0.6
    brand_similarity: float = 0.8
    deal_similarity: float = 0.9
    cart_confidence: float = 0.6

    exact_confidence: float = 1.0
    brand_confidence: float = 0.9
    category_confidence: float = 0.8


@dataclass(frozen=True)
class ScoreWeights:
    """Additive bonuses used by the preference selector."""
    organic: float = 20.0
    name_brand: float = 15.0
    store_brand: float = 10.0
    bulk: float = 25.0
    regular_size: float = 10.0
    bulk_pack_threshold: int = 6

    deal_discount: float = 30.0
    savings_unit_cap: float = 20.0
    savings_unit_divisor: float = 10.0
    efficiency_cap: float = 50.0
    efficiency_divisor: float = 5.0
    deal_presence: float = 15.0

    match_type_bonus: Mapping[str, float] = field(default_factory=lambda: {
        'exact': 50.0,
        'brand': 30.0,
        'fuzzy': 10.0,
        'category': 5.0,
    })

    # Per-line preference alignment reported in the cart
    alignment_organic: float = 25.0
    alignment_name_brand: float = 20.0
    alignment_bulk: float = 20.0
    alignment_deal: float = 35.0

    def __post_init__(self):
        object.__setattr__(self, 'match_type_bonus', MappingProxyType(dict(self.match_type_bonus)))


@dataclass(frozen=True)
class MatcherConfig:
    """Main engine configuration"""
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    thresholds: MatchThresholds = field(default_factory=MatchThresholds)
    weights: ScoreWeights = field(default_factory=ScoreWeights)

    # Retailer id -> retailer key used by the tables below
    retailers: Mapping[int, str] = field(default_factory=lambda: {
        1: 'walmart',
        2: 'target',
        3: 'kroger',
    })

    # Store-brand phrases per retailer key
    store_brands: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: {
        'walmart': ['great value', 'marketside', 'equate', "parent's choice", "sam's choice"],
        'target': ['good & gather', 'market pantry', 'simply balanced', 'archer farms', 'up & up'],
        'kroger': ['kroger brand', 'simple truth', 'private selection', 'comfy', 'heritage farm'],
    })

    # Category keyword -> known product-name variations
    category_variations: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: {
        'milk': ['whole milk', '2% milk', 'skim milk', 'organic milk', 'lactaid milk'],
        'bread': ['white bread', 'wheat bread', 'whole grain bread', 'sourdough bread'],
    })

    currency_symbol: str = "$"

    def __post_init__(self):
        object.__setattr__(self, 'retailers', MappingProxyType(dict(self.retailers)))
        object.__setattr__(self, 'store_brands', _freeze_table(self.store_brands))
        object.__setattr__(self, 'category_variations', _freeze_table(self.category_variations))

    def retailer_key(self, retailer_id: Union[int, str]) -> str:
        """Resolve a retailer id (numeric or name) to its table key."""
        if isinstance(retailer_id, str):
            key = retailer_id.strip().lower()
            if key.isdecimal():
                return self.retailers.get(int(key), 'unknown')
            return key
        return self.retailers.get(retailer_id, 'unknown')

    def brands_for(self, retailer_id: Union[int, str]) -> Tuple[str, ...]:
        return tuple(self.store_brands.get(self.retailer_key(retailer_id), ()))


DEFAULT_CONFIG = MatcherConfig()


def _merge_section(section, overrides: Dict[str, Any], name: str):
    known = {f.name for f in fields(section)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigError(f"Unknown keys in [{name}]: {', '.join(sorted(unknown))}")
    try:
        return replace(section, **overrides)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid [{name}] section: {e}") from e


def config_from_dict(data: Dict[str, Any], base: Optional[MatcherConfig] = None) -> MatcherConfig:
    """
    Overlay a plain dictionary (e.g. parsed JSON) onto a base configuration.

    Nested sections ("normalizer", "thresholds", "weights") are merged field
    by field; table sections ("retailers", "store_brands",
    "category_variations") replace the default table as a whole.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be an object")

    base = base or DEFAULT_CONFIG
    updates: Dict[str, Any] = {}

    sections = {
        'normalizer': base.normalizer,
        'thresholds': base.thresholds,
        'weights': base.weights,
    }
    for name, section in sections.items():
        if name in data:
            if not isinstance(data[name], dict):
                raise ConfigError(f"[{name}] must be an object")
            updates[name] = _merge_section(section, data[name], name)

    if 'retailers' in data:
        try:
            # JSON object keys are strings; retailer ids are integers
            updates['retailers'] = {int(k): str(v).lower() for k, v in data['retailers'].items()}
        except (AttributeError, ValueError) as e:
            raise ConfigError(f"Invalid [retailers] table: {e}") from e

    for table in ('store_brands', 'category_variations'):
        if table in data:
            value = data[table]
            if not isinstance(value, dict) or not all(isinstance(v, list) for v in value.values()):
                raise ConfigError(f"[{table}] must map names to lists of phrases")
            updates[table] = {k.lower(): [p.lower() for p in v] for k, v in value.items()}

    if 'currency_symbol' in data:
        updates['currency_symbol'] = str(data['currency_symbol'])

    unknown = set(data) - set(sections) - {
        'retailers', 'store_brands', 'category_variations', 'currency_symbol',
    }
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    return replace(base, **updates)


def load_config(path: Optional[Union[str, Path]] = None) -> MatcherConfig:
    """
    Load configuration from a JSON file.

    Args:
        path: JSON override file. Falls back to $CARTMATCH_CONFIG, then to
            the built-in defaults.

    Returns:
        Immutable MatcherConfig
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return DEFAULT_CONFIG

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed config file {config_path}: {e}") from e

    config = config_from_dict(data)
    logger.info(f"Loaded matcher config: {config_path}")
    return config
