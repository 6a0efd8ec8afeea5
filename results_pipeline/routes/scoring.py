"""
Rubric and Judge Scoring API Routes.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.database import get_db
from results_pipeline.rbac import (
    Actor, ActorRole, AdminCapability, get_current_actor, require_admin, require_role
)
from results_pipeline.schemas.scoring import (
    SubmitScoresRequest, SubmitScoresResponse, SaveRubricRequest, CriterionResponse,
    ScoringProgressResponse
)
from results_pipeline.services.rubric_service import CriterionInput, get_rubric, save_rubric
from results_pipeline.services.scoring_service import ScoringService, ScoreEntry


router = APIRouter(tags=["scoring"])


@router.put("/events/{event_id}/rubric", response_model=List[CriterionResponse])
async def replace_rubric(
    event_id: int,
    request: SaveRubricRequest,
    db: AsyncSession = Depends(get_db),
    capability: AdminCapability = Depends(require_admin)
):
    """
    Replace the event rubric.

    **Roles:** Admin

    Only before scoring opens, or while open and no judge has scored yet.
    """
    rows = await save_rubric(
        db,
        event_id,
        [
            CriterionInput(
                title=c.title,
                description=c.description,
                max_score=c.max_score,
                weight=c.weight,
                display_order=c.display_order,
            )
            for c in request.criteria
        ],
        capability
    )
    return [CriterionResponse.model_validate(row.to_dict()) for row in rows]


@router.get("/events/{event_id}/rubric", response_model=List[CriterionResponse])
async def read_rubric(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    rows = await get_rubric(db, event_id)
    return [CriterionResponse.model_validate(row.to_dict()) for row in rows]


@router.post("/submissions/{submission_id}/scores", response_model=SubmitScoresResponse)
async def submit_scores(
    submission_id: int,
    request: SubmitScoresRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role([ActorRole.judge, ActorRole.admin]))
):
    """
    Record the caller's scores for a submission.

    **Roles:** Judge, Admin

    Re-scoring a criterion overwrites the caller's previous score.
    """
    result = await ScoringService.submit_scores(
        db,
        submission_id,
        actor.id,
        [ScoreEntry(criterion_id=s.criterion_id, score=s.score, feedback=s.feedback) for s in request.scores]
    )
    return SubmitScoresResponse(**result)


@router.get("/events/{event_id}/scoring-progress", response_model=ScoringProgressResponse)
async def scoring_progress(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    capability: AdminCapability = Depends(require_admin)
):
    """
    **Roles:** Admin
    """
    return await ScoringService.get_scoring_progress(db, event_id)
