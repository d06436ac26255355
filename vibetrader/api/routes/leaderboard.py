"""Leaderboard API routes (read-only over the cached stats)."""
import asyncio
from fastapi import APIRouter, Depends, HTTPException, Query
from vibetrader.api.deps import get_components, get_identity
from vibetrader.core.time import now_iso
from vibetrader.db.repo.leaderboard_repo import SORT_COLUMNS

router = APIRouter()

MAX_LIMIT = 100


@router.get("")
async def get_leaderboard(
    sort: str = Query("pnl"),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    components=Depends(get_components)
):
    if sort not in SORT_COLUMNS:
        raise HTTPException(status_code=400, detail="Invalid sort parameter")

    repo = components.leaderboard_repo
    global_stats, leaderboard = await asyncio.gather(
        asyncio.to_thread(repo.get_global_stats),
        asyncio.to_thread(repo.get_leaderboard, sort, min(limit, MAX_LIMIT), offset),
    )
    return {
        "globalStats": global_stats,
        "leaderboard": leaderboard,
        "lastUpdated": now_iso(),
    }


@router.get("/me")
async def get_my_stats(components=Depends(get_components), identity=Depends(get_identity)):
    """Caller's stats; zeros and rank None when they have no cached row."""
    user_id, _ = identity
    stats = await asyncio.to_thread(components.leaderboard_repo.get_user_stats, user_id)
    if stats is None:
        return {
            "totalTrades": 0,
            "totalInvestedSol": 0,
            "totalPnlUsd": 0,
            "winRate": 0,
            "rank": None,
        }
    return stats
