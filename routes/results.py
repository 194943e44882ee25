"""Test result submission, history and stats endpoints."""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

import config
from realtime.auth import AuthenticationError, Identity
from realtime.messages import TypingEndData
from utils.log import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tests", tags=["tests"])


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith('bearer '):
        return authorization[7:]
    return None


async def optional_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[Identity]:
    """Identity of the caller, None for anonymous requests."""
    token = _bearer(authorization)
    if token is None:
        return None
    return await request.app.state.verifier.verify(token)


async def require_identity(identity: Optional[Identity] = Depends(optional_identity)) -> Identity:
    """Identity of the caller; anonymous requests are rejected."""
    if identity is None:
        raise AuthenticationError("Authentication token required")
    return identity


@router.post("/results", status_code=201)
async def submit_result(
    request: Request,
    data: TypingEndData,
    identity: Optional[Identity] = Depends(optional_identity),
):
    """Store a finished test. Authenticated results update the user's stats."""
    store = request.app.state.store
    record = await store.record_test_result(
        identity.user_id if identity else None,
        data.to_result(),
        test_type=data.test_type,
        difficulty=data.difficulty,
        text_content=data.text_content,
    )

    if identity:
        await request.app.state.presence.refresh_leaderboard()

    logger.info(
        "Test result submitted",
        user_id=identity.user_id if identity else None,
        test_id=record.session_id,
    )
    return {
        'message': 'Test result saved successfully',
        'testSession': record.to_payload(),
    }


@router.get("/history")
async def get_history(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(require_identity),
):
    """The caller's past tests, newest first."""
    store = request.app.state.store
    sessions = await store.get_test_history(identity.user_id, limit=limit, offset=(page - 1) * limit)
    total = await store.count_test_sessions(identity.user_id)
    return {
        'testSessions': [s.to_payload() for s in sessions],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'totalPages': math.ceil(total / limit),
        },
    }


@router.get("/stats")
async def get_stats(
    request: Request,
    timeframe: str = Query(config.DEFAULT_STATS_TIMEFRAME),
    identity: Identity = Depends(require_identity),
):
    """Averages and bests over the caller's recent tests."""
    days = config.STATS_TIMEFRAMES.get(timeframe)
    if days is None:
        raise HTTPException(status_code=400, detail=f"Unknown timeframe: {timeframe}")

    since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat(timespec="seconds")
    stats = await request.app.state.store.get_user_stats(identity.user_id, since)
    progress = stats.pop('progressData')
    rank = await request.app.state.aggregator.get_player_rank(identity.user_id)
    return {
        'stats': stats,
        'progressData': progress,
        'rank': rank,
    }
