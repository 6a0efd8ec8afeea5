"""
Rubric Service

Replace and read an event's evaluation criteria.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.errors import (
    BadRequestError, InvalidLifecycleTransitionError, InvalidScoreError, ErrorCode
)
from results_pipeline.orm.event import ResultsStatus
from results_pipeline.orm.rubric import EvaluationCriterion
from results_pipeline.orm.submission import Submission, SubmissionScore
from results_pipeline.rbac import AdminCapability, ensure_admin
from results_pipeline.services.lifecycle_service import LifecycleService
from results_pipeline.services.scoring_service import parse_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CriterionInput:
    title: str
    max_score: Any
    weight: Any = 1
    description: Optional[str] = None
    display_order: Optional[int] = None


def validate_criteria(criteria: List[CriterionInput]) -> List[dict]:
    """
    Raises:
        BadRequestError: Empty rubric
        InvalidScoreError: max_score <= 0, weight < 0, or all weights zero
    """
    if not criteria:
        raise BadRequestError("Rubric must contain at least one criterion", code=ErrorCode.MISSING_RUBRIC)

    validated = []
    for index, item in enumerate(criteria):
        max_score = parse_decimal(item.max_score, "max_score")
        weight = parse_decimal(item.weight, "weight")
        if max_score <= 0:
            raise InvalidScoreError("max_score must be positive", details={"index": index})
        if weight < 0:
            raise InvalidScoreError("weight must not be negative", details={"index": index})
        validated.append({
            "title": item.title,
            "description": item.description,
            "max_score": max_score,
            "weight": weight,
            "display_order": item.display_order if item.display_order is not None else index,
        })

    if sum((v["weight"] for v in validated), Decimal("0")) <= 0:
        raise InvalidScoreError("At least one criterion must have a positive weight")
    return validated


async def get_rubric(db: AsyncSession, event_id: int) -> List[EvaluationCriterion]:
    await LifecycleService.get_event(db, event_id)
    result = await db.execute(
        select(EvaluationCriterion)
        .where(EvaluationCriterion.event_id == event_id)
        .order_by(EvaluationCriterion.display_order.asc(), EvaluationCriterion.id.asc())
    )
    return list(result.scalars().all())


async def save_rubric(
    db: AsyncSession,
    event_id: int,
    criteria: List[CriterionInput],
    capability: AdminCapability
) -> List[EvaluationCriterion]:
    """
    Replace the event's rubric.

    Allowed before scoring opens, and while scoring is open only as long as no
    judge has recorded a score.
    """
    ensure_admin(capability)
    validated = validate_criteria(criteria)

    try:
        event = await LifecycleService.get_event(db, event_id, lock=True)

        allowed, reason = LifecycleService.operation_allowed_for(event, "rubric_edit")
        if not allowed:
            raise InvalidLifecycleTransitionError(
                reason,
                current_state=event.results_status,
                attempted="rubric_edit",
            )

        if event.status == ResultsStatus.SCORING_OPEN:
            scored = await db.execute(
                select(func.count(SubmissionScore.id))
                .join(Submission, Submission.id == SubmissionScore.submission_id)
                .where(Submission.event_id == event_id)
            )
            if (scored.scalar() or 0) > 0:
                raise InvalidLifecycleTransitionError(
                    "Rubric cannot change once judges have started scoring",
                    current_state=event.results_status,
                    attempted="rubric_edit",
                )

        await db.execute(delete(EvaluationCriterion).where(EvaluationCriterion.event_id == event_id))

        rows = [EvaluationCriterion(event_id=event_id, **item) for item in validated]
        db.add_all(rows)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Rubric saved for event={event_id}: {len(rows)} criteria by actor={capability.actor_id}")
    return rows
