#!/usr/bin/env python3
"""
cartmatch - command line entry point

Usage:
    cartmatch normalize "Great Value Whole Milk 1 gal"
    cartmatch candidates "milk" --retailer 1 --data fixtures.json
    cartmatch cart --list list.json --retailer 1 --data fixtures.json [--user 42]
    cartmatch serve --port 8000
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .engine import create_engine
from .errors import InvalidArgument
from .providers import InMemoryStore
from .schema import ShoppingListItem

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
    )


def _retailer(value: str):
    """Numeric retailer ids stay integers; names stay strings."""
    return int(value) if value.isdigit() else value


def _load_items(path: str) -> List[ShoppingListItem]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('items', [])
    return [ShoppingListItem.from_dict(item) for item in data]


def _print(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


def cmd_normalize(args) -> int:
    engine = create_engine(args.config)
    for name in args.names:
        _print({"name": name, "normalized": engine.normalize_name(name)})
    return 0


def cmd_candidates(args) -> int:
    engine = create_engine(args.config)
    store = InMemoryStore.from_json(args.data)
    found = engine.find_candidates(
        args.item,
        args.retailer,
        store.get_products_for_retailer(args.retailer),
        store.get_active_deals(args.retailer),
    )
    _print([
        {
            "product": c.product.name,
            "match_type": c.match_type.value,
            "confidence": round(c.confidence, 4),
            "deal": c.deal.id if c.deal else None,
        }
        for c in found
    ])
    return 0


def cmd_cart(args) -> int:
    engine = create_engine(args.config)
    store = InMemoryStore.from_json(args.data)
    items = _load_items(args.list)
    preferences = store.get_user_preferences(args.user) if args.user is not None else None

    payload = engine.build_cart(
        items,
        args.retailer,
        store.get_products_for_retailer(args.retailer),
        store.get_active_deals(args.retailer),
        preferences,
    )
    _print(payload.to_dict())
    return 0 if not payload.unmatched_items or not args.strict else 2


def cmd_serve(args) -> int:
    import uvicorn
    from .api import create_app

    store = InMemoryStore.from_json(args.data) if args.data else None
    app = create_app(create_engine(args.config), store)
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='cartmatch', description='Shopping-list matching engine')
    parser.add_argument('--config', help='JSON config overrides (default: $CARTMATCH_CONFIG)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('normalize', help='Print canonical names')
    p.add_argument('names', nargs='+')
    p.set_defaults(func=cmd_normalize)

    p = sub.add_parser('candidates', help='List candidates for one item')
    p.add_argument('item')
    p.add_argument('--retailer', type=_retailer, required=True)
    p.add_argument('--data', required=True, help='JSON fixture with retailers, deals, preferences')
    p.set_defaults(func=cmd_candidates)

    p = sub.add_parser('cart', help='Build a cart payload for a shopping list')
    p.add_argument('--list', required=True, help='JSON list of shopping-list items')
    p.add_argument('--retailer', type=_retailer, required=True)
    p.add_argument('--data', required=True, help='JSON fixture with retailers, deals, preferences')
    p.add_argument('--user', help='User id whose preferences apply')
    p.add_argument('--strict', action='store_true', help='Exit 2 when any item is unmatched')
    p.set_defaults(func=cmd_cart)

    p = sub.add_parser('serve', help='Run the HTTP API')
    p.add_argument('--host', default='127.0.0.1')
    p.add_argument('--port', type=int, default=8000)
    p.add_argument('--data', help='Optional JSON fixture served as the store')
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    try:
        return args.func(args)
    except InvalidArgument as e:
        logger.error(str(e))
        return 1
    except FileNotFoundError as e:
        logger.error(f"File not found: {e.filename}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
