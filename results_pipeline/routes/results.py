"""
Computed Results and Leaderboard API Routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.database import get_db
from results_pipeline.orm.submission_result import Tier
from results_pipeline.rbac import AdminCapability, require_admin
from results_pipeline.schemas.results import EventResultsResponse, LeaderboardResponse
from results_pipeline.services.lifecycle_service import LifecycleService
from results_pipeline.services.results_ranker import get_event_results, get_published_leaderboard


router = APIRouter(prefix="/events", tags=["results"])


@router.get("/{event_id}/results", response_model=EventResultsResponse)
async def event_results(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    capability: AdminCapability = Depends(require_admin)
):
    """
    Computed results ordered by rank, for administrator review.

    **Roles:** Admin
    """
    event = await LifecycleService.get_event(db, event_id)
    rows = await get_event_results(db, event_id)

    tiers = {tier.value: 0 for tier in Tier}
    for row in rows:
        tiers[row.tier] += 1

    return EventResultsResponse(
        event_id=event_id,
        results_status=event.results_status,
        tiers=tiers,
        results=[row.to_dict() for row in rows]
    )


@router.get("/{event_id}/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    event_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Public leaderboard. Only available once results are published."""
    event = await LifecycleService.get_event(db, event_id)
    entries = await get_published_leaderboard(db, event)
    return LeaderboardResponse(
        event_id=event_id,
        title=event.title,
        results_published_at=event.results_published_at.isoformat() if event.results_published_at else None,
        results=entries
    )
