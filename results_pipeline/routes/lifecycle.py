"""
Event Results Lifecycle API Routes.

Administrator transitions of the results state machine.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.database import get_db
from results_pipeline.rbac import Actor, ActorRole, AdminCapability, require_admin, require_role
from results_pipeline.schemas.results import (
    EventStatusResponse, TransitionResponse, ComputeResponse, PublishResponse, OperationCheckResponse
)
from results_pipeline.services.lifecycle_service import LifecycleService


router = APIRouter(prefix="/events", tags=["results-lifecycle"])


@router.get("/{event_id}/lifecycle", response_model=EventStatusResponse)
async def get_lifecycle_status(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    capability: AdminCapability = Depends(require_admin)
):
    """
    Current results state, result and credential counts.

    **Roles:** Admin
    """
    return await LifecycleService.get_status(db, event_id)


@router.get("/{event_id}/lifecycle/check/{operation}", response_model=OperationCheckResponse)
async def check_operation(
    event_id: int,
    operation: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role([ActorRole.admin, ActorRole.judge]))
):
    """
    Check if an operation is allowed in the event's current state.

    **Roles:** Admin, Judge
    """
    allowed, reason = await LifecycleService.check_operation_allowed(db, event_id, operation)
    return OperationCheckResponse(event_id=event_id, operation=operation, allowed=allowed, reason=reason)


@router.post("/{event_id}/lifecycle/open-scoring", response_model=TransitionResponse)
async def open_scoring(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    capability: AdminCapability = Depends(require_admin)
):
    """
    not_started -> scoring_open.

    **Roles:** Admin
    """
    event = await LifecycleService.open_scoring(db, event_id, capability)
    return TransitionResponse(
        success=True,
        event_id=event.id,
        results_status=event.results_status,
        message="Scoring opened"
    )


@router.post("/{event_id}/lifecycle/lock-and-compute", response_model=ComputeResponse)
async def lock_and_compute(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    capability: AdminCapability = Depends(require_admin)
):
    """
    Lock scoring, aggregate and rank. Leaves the event in review.

    **Roles:** Admin

    May be repeated while in review; each run fully replaces the results.
    """
    count = await LifecycleService.lock_and_compute(db, event_id, capability)
    event = await LifecycleService.get_event(db, event_id)
    return ComputeResponse(
        success=True,
        event_id=event_id,
        results_status=event.results_status,
        message=f"Computed {count} results",
        computed_results=count
    )


@router.post("/{event_id}/lifecycle/publish", response_model=PublishResponse)
async def publish_results(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    capability: AdminCapability = Depends(require_admin)
):
    """
    review -> published. Issues credentials.

    **Roles:** Admin
    """
    count = await LifecycleService.publish(db, event_id, capability)
    event = await LifecycleService.get_event(db, event_id)
    return PublishResponse(
        success=True,
        event_id=event_id,
        results_status=event.results_status,
        message=f"Results published, {count} credentials issued",
        issued_credentials=count,
        results_published_at=event.results_published_at.isoformat() if event.results_published_at else None
    )
