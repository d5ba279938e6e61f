"""
CLI for the sync pipelines.
Usage: python tools/sync_cli.py {init-db,tournaments,decks,catalog,prices,alerts} [options]
Prints the run summary as JSON. Exits 1 when the sync raised, 2 on a config error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add backend to path when run from repo root
_backend = Path(__file__).resolve().parent.parent / "backend"
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

import models  # noqa: F401 - register models
from core.config import get_settings
from core.database import init_database, dispose_database, get_database_manager
from core.logging import setup_logging
from ingestion.connectors.tcgplayer import TcgplayerConfigError
from ingestion.registry import open_limitless_client, open_tcgplayer_client
from services.alert_service import evaluate_price_alerts
from services.catalog_sync_service import sync_tcg_catalog
from services.price_sync_service import sync_tcgplayer_prices
from services.tournament_sync_service import (
    sync_limitless_tournament_decks,
    sync_limitless_tournaments,
)

logger = logging.getLogger("sync_cli")


def _stable_json(obj: object) -> str:
    """JSON with sorted keys for deterministic output."""
    return json.dumps(obj, sort_keys=True, indent=2, default=str)


def _parse_card_ids(raw: Optional[str]) -> Optional[List[int]]:
    if not raw:
        return None
    return [int(part) for part in raw.split(",") if part.strip()]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run tournament, catalog and price syncs")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")
    sub.add_parser("tournaments", help="Sync Limitless tournament listings")

    decks = sub.add_parser("decks", help="Import placements and deck lists")
    decks.add_argument("--limit", type=int, default=None, help="Only the N most recent tournaments")

    catalog = sub.add_parser("catalog", help="Mirror the TCGplayer catalog")
    catalog.add_argument("--page-size", type=int, default=100)
    catalog.add_argument("--offset", type=int, default=0)
    catalog.add_argument("--limit", type=int, default=None, help="Stop after N products")
    catalog.add_argument("--delay-ms", type=int, default=None, help="Pause between pages")
    mode = catalog.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", dest="dry_run", action="store_true", default=None)
    mode.add_argument("--write", dest="dry_run", action="store_false", help="Persist changes")

    prices = sub.add_parser("prices", help="Refresh card prices")
    prices.add_argument("--only-watchlisted", action="store_true")

    alerts = sub.add_parser("alerts", help="Evaluate active price alerts")
    alerts.add_argument("--card-ids", default=None, help="Comma-separated card ids")
    return parser


async def _run(args: argparse.Namespace) -> Dict[str, Any]:
    manager = get_database_manager()
    if args.command == "init-db":
        await manager.create_schema()
        return {"created": True}

    async with manager.session() as session:
        if args.command == "tournaments":
            async with open_limitless_client() as client:
                result = await sync_limitless_tournaments(session, client=client)
        elif args.command == "decks":
            async with open_limitless_client() as client:
                result = await sync_limitless_tournament_decks(session, client=client, limit=args.limit)
        elif args.command == "catalog":
            async with open_tcgplayer_client() as client:
                result = await sync_tcg_catalog(
                    session,
                    client=client,
                    page_size=args.page_size,
                    offset=args.offset,
                    limit=args.limit,
                    delay_ms=args.delay_ms,
                    dry_run=args.dry_run,
                )
        elif args.command == "prices":
            async with open_tcgplayer_client() as client:
                result = await sync_tcgplayer_prices(
                    session, client=client, only_watchlisted=args.only_watchlisted
                )
        else:
            result = await evaluate_price_alerts(session, _parse_card_ids(args.card_ids))
    return asdict(result)


async def _main() -> int:
    args = _build_parser().parse_args()

    settings = get_settings()
    setup_logging(settings)
    await init_database(settings.database_url)

    try:
        summary = await _run(args)
    except TcgplayerConfigError as exc:
        logger.error("%s", exc)
        return 2
    except Exception:
        logger.exception("Sync '%s' failed", args.command)
        return 1
    finally:
        await dispose_database()

    print(_stable_json(summary))
    return 0


def main() -> None:
    sys.exit(asyncio.run(_main()))


if __name__ == "__main__":
    main()
