"""Leaderboard endpoints."""

from fastapi import APIRouter, HTTPException, Query, Request

import config
from utils import payloads

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


@router.get("")
async def get_leaderboard(
    request: Request,
    window: str = Query('all', alias='filter'),
    limit: int = Query(config.LEADERBOARD_LIMIT, ge=1, le=100),
):
    """Top performers, optionally limited to today, this week or this month."""
    aggregator = request.app.state.aggregator
    try:
        rows = await aggregator.get_leaderboard(window, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return payloads.leaderboard_payload(rows)
