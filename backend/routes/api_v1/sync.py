"""Cron-triggered sync endpoints. All POSTs require Authorization: Bearer <CRON_SECRET>."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import get_db_session, require_cron_secret
from ingestion.connectors.limitless import LimitlessClient
from ingestion.connectors.tcgplayer import (
    TcgplayerClient,
    TcgplayerConfigError,
    TcgplayerRequestError,
)
from ingestion.registry import open_limitless_client, open_tcgplayer_client
from services.alert_service import evaluate_price_alerts
from services.catalog_sync_service import MAX_PAGE_SIZE, sync_tcg_catalog
from services.price_sync_service import sync_tcgplayer_prices
from services.tournament_sync_service import (
    TournamentSourceNotFoundError,
    sync_limitless_tournament_decks,
    sync_limitless_tournaments,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])

_UPSTREAM_ERRORS = (TcgplayerRequestError, httpx.HTTPError)


async def get_limitless_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[LimitlessClient, None]:
    async with open_limitless_client(settings) as client:
        yield client


async def get_tcgplayer_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[TcgplayerClient, None]:
    async with open_tcgplayer_client(settings) as client:
        yield client


class AlertEvaluationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_ids: Optional[List[int]] = Field(None, alias="cardIds")


def _response(started: float, summary: Any) -> Dict[str, Any]:
    return {
        "success": True,
        "duration": f"{time.perf_counter() - started:.2f}",
        **asdict(summary),
    }


def _http_error(name: str, exc: Exception) -> HTTPException:
    logger.error("[%s] Failed: %s", name, exc)
    if isinstance(exc, TcgplayerConfigError):
        return HTTPException(status_code=500, detail=str(exc))
    if isinstance(exc, TournamentSourceNotFoundError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


@router.post(
    "/tournaments",
    summary="Sync Limitless tournament listings",
    dependencies=[Depends(require_cron_secret)],
)
async def post_sync_tournaments(
    session: AsyncSession = Depends(get_db_session),
    client: LimitlessClient = Depends(get_limitless_client),
) -> dict:
    started = time.perf_counter()
    try:
        result = await sync_limitless_tournaments(session, client=client)
    except _UPSTREAM_ERRORS as exc:
        raise _http_error("tournaments", exc) from exc
    return _response(started, result)


@router.post(
    "/tournament-decks",
    summary="Import placements and deck lists for stored tournaments",
    dependencies=[Depends(require_cron_secret)],
)
async def post_sync_tournament_decks(
    limit: Optional[int] = Query(None, ge=1),
    session: AsyncSession = Depends(get_db_session),
    client: LimitlessClient = Depends(get_limitless_client),
) -> dict:
    started = time.perf_counter()
    try:
        result = await sync_limitless_tournament_decks(session, client=client, limit=limit)
    except (TournamentSourceNotFoundError, *_UPSTREAM_ERRORS) as exc:
        raise _http_error("tournament-decks", exc) from exc
    return _response(started, result)


@router.get("/tcg-catalog", summary="Describe the catalog sync endpoint")
async def get_sync_tcg_catalog() -> dict:
    return {
        "status": "active",
        "description": "POST with Authorization header to sync the One Piece catalog from TCGplayer",
    }


@router.post(
    "/tcg-catalog",
    summary="Mirror the TCGplayer One Piece catalog",
    dependencies=[Depends(require_cron_secret)],
)
async def post_sync_tcg_catalog(
    page_size: int = Query(MAX_PAGE_SIZE, alias="pageSize"),
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    dry_run: Optional[bool] = Query(None, alias="dryRun"),
    session: AsyncSession = Depends(get_db_session),
    client: TcgplayerClient = Depends(get_tcgplayer_client),
) -> dict:
    started = time.perf_counter()
    logger.info("[tcg-catalog] Starting sync")
    try:
        result = await sync_tcg_catalog(
            session,
            client=client,
            page_size=page_size,
            offset=offset,
            limit=limit,
            dry_run=dry_run,
        )
    except (TcgplayerConfigError, *_UPSTREAM_ERRORS) as exc:
        raise _http_error("tcg-catalog", exc) from exc
    return _response(started, result)


@router.post(
    "/prices",
    summary="Refresh card prices from TCGplayer",
    dependencies=[Depends(require_cron_secret)],
)
async def post_sync_prices(
    only_watchlisted: bool = Query(False, alias="onlyWatchlisted"),
    session: AsyncSession = Depends(get_db_session),
    client: TcgplayerClient = Depends(get_tcgplayer_client),
) -> dict:
    started = time.perf_counter()
    try:
        result = await sync_tcgplayer_prices(session, client=client, only_watchlisted=only_watchlisted)
    except (TcgplayerConfigError, *_UPSTREAM_ERRORS) as exc:
        raise _http_error("prices", exc) from exc
    return _response(started, result)


@router.post(
    "/alerts",
    summary="Evaluate active price alerts",
    dependencies=[Depends(require_cron_secret)],
)
async def post_evaluate_alerts(
    payload: Optional[AlertEvaluationRequest] = Body(None),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    started = time.perf_counter()
    card_ids = payload.card_ids if payload is not None else None
    result = await evaluate_price_alerts(session, card_ids)
    await session.commit()
    return _response(started, result)
