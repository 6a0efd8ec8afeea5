"""
Judge Scoring Service

Raw score upserts and the scoring progress monitor.

Design:
- One row per (submission, judge, criterion); re-scoring overwrites
- Scores are validated into bounded Decimals before they touch the database
- Writes are rejected outside `scoring_open`
- Retry on IntegrityError when two writes race on the same triple
"""
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.errors import (
    InvalidLifecycleTransitionError, InvalidScoreError, NotFoundError, ErrorCode
)
from results_pipeline.orm.event import Event, ResultsStatus
from results_pipeline.orm.rubric import EvaluationCriterion
from results_pipeline.orm.submission import Submission, SubmissionScore, SubmissionStatus

logger = logging.getLogger(__name__)

# Matches Numeric(8, 2) on scores, max scores and weights
SCORE_PLACES = 2
SCORE_MAX_DIGITS = 8


@dataclass(frozen=True)
class ScoreEntry:
    criterion_id: int
    score: Any
    feedback: Optional[str] = None


def parse_decimal(
    value: Any,
    field: str,
    places: int = SCORE_PLACES,
    max_digits: int = SCORE_MAX_DIGITS
) -> Decimal:
    """
    Convert loosely typed numeric input into a finite Decimal that the
    Numeric(max_digits, places) columns store exactly.

    Raises:
        InvalidScoreError: Value is not a finite number, has more than
            `places` decimals, or does not fit the column
    """
    if isinstance(value, bool):
        raise InvalidScoreError(f"{field} must be a number", details={"field": field})
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidScoreError(f"{field} must be a number", details={"field": field})
    if not number.is_finite():
        raise InvalidScoreError(f"{field} must be finite", details={"field": field})
    if abs(number) >= Decimal(10) ** (max_digits - places):
        raise InvalidScoreError(
            f"{field} is too large",
            details={"field": field, "value": str(value)}
        )
    # 7.500 is fine, 7.555 would be rounded by the column
    if number != number.quantize(Decimal(1).scaleb(-places)):
        raise InvalidScoreError(
            f"{field} must have at most {places} decimal places",
            details={"field": field, "value": str(value)}
        )
    return number


async def _with_retry(
    operation,
    max_retries: int = 3,
    backoff_ms: Tuple[int, ...] = (50, 150, 300)
) -> Any:
    """Execute operation with retry on IntegrityError or OperationalError."""
    for attempt in range(max_retries):
        try:
            return await operation()
        except (IntegrityError, OperationalError) as e:
            if attempt >= max_retries - 1:
                raise
            delay = backoff_ms[min(attempt, len(backoff_ms) - 1)] / 1000
            logger.warning(f"Retry {attempt + 1}/{max_retries} after error: {e}. Waiting {delay}s")
            await asyncio.sleep(delay)


async def get_submission(db: AsyncSession, submission_id: int) -> Submission:
    result = await db.execute(select(Submission).where(Submission.id == submission_id))
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFoundError("Submission", submission_id, code=ErrorCode.SUBMISSION_NOT_FOUND)
    return submission


class ScoringService:

    @staticmethod
    def validate_entries(
        entries: List[ScoreEntry],
        criteria: Dict[int, EvaluationCriterion]
    ) -> List[Dict[str, Any]]:
        """
        Check every entry against the event rubric.

        Returns:
            List of {"criterion_id", "score" (Decimal), "feedback"}

        Raises:
            InvalidScoreError: Unknown criterion, duplicate criterion, or score
                outside [0, max_score]
        """
        if not entries:
            raise InvalidScoreError("At least one score is required")

        validated = []
        seen = set()
        for entry in entries:
            criterion = criteria.get(entry.criterion_id)
            if criterion is None:
                raise InvalidScoreError(
                    "Criterion does not belong to this event",
                    details={"criterion_id": entry.criterion_id}
                )
            if entry.criterion_id in seen:
                raise InvalidScoreError(
                    "Criterion scored more than once in the same request",
                    details={"criterion_id": entry.criterion_id}
                )
            seen.add(entry.criterion_id)

            score = parse_decimal(entry.score, "score")
            max_score = Decimal(str(criterion.max_score))
            if score < 0 or score > max_score:
                raise InvalidScoreError(
                    f"Score must be between 0 and {max_score}",
                    details={"criterion_id": entry.criterion_id, "score": str(score)}
                )

            validated.append({
                "criterion_id": entry.criterion_id,
                "score": score,
                "feedback": entry.feedback,
            })
        return validated

    @staticmethod
    async def submit_scores(
        db: AsyncSession,
        submission_id: int,
        judge_id: str,
        entries: List[ScoreEntry]
    ) -> Dict[str, Any]:
        """
        Upsert a judge's raw scores for one submission.

        Raises:
            NotFoundError: Submission does not exist
            InvalidLifecycleTransitionError: Event is not accepting scores
            InvalidScoreError: Entry fails boundary validation
        """

        async def _submit():
            try:
                submission = await get_submission(db, submission_id)

                # Shared row lock: waits for a concurrent lock-and-compute
                event_result = await db.execute(
                    select(Event).where(Event.id == submission.event_id).with_for_update(read=True)
                )
                event = event_result.scalar_one()

                if event.status != ResultsStatus.SCORING_OPEN:
                    raise InvalidLifecycleTransitionError(
                        "Scoring is locked for this event",
                        current_state=event.results_status,
                        attempted="score",
                        allowed_states=[ResultsStatus.SCORING_OPEN.value],
                    )

                criteria_result = await db.execute(
                    select(EvaluationCriterion).where(EvaluationCriterion.event_id == event.id)
                )
                criteria = {c.id: c for c in criteria_result.scalars().all()}
                validated = ScoringService.validate_entries(entries, criteria)

                existing_result = await db.execute(
                    select(SubmissionScore).where(
                        SubmissionScore.submission_id == submission_id,
                        SubmissionScore.judge_id == judge_id,
                        SubmissionScore.criterion_id.in_([v["criterion_id"] for v in validated]),
                    )
                )
                existing = {s.criterion_id: s for s in existing_result.scalars().all()}

                for item in validated:
                    row = existing.get(item["criterion_id"])
                    if row is None:
                        db.add(SubmissionScore(
                            submission_id=submission_id,
                            judge_id=judge_id,
                            criterion_id=item["criterion_id"],
                            score=item["score"],
                            feedback=item["feedback"],
                        ))
                    else:
                        row.score = item["score"]
                        row.feedback = item["feedback"]

                submission.status = SubmissionStatus.REVIEWED.value
                await db.commit()
            except Exception:
                await db.rollback()
                raise

            logger.info(
                f"Judge {judge_id} scored submission={submission_id}: "
                f"{len(validated)} criteria ({len(existing)} updated)"
            )
            return {
                "submission_id": submission_id,
                "judge_id": judge_id,
                "saved": len(validated),
                "updated": len(existing),
            }

        return await _with_retry(_submit)

    @staticmethod
    async def get_scoring_progress(db: AsyncSession, event_id: int) -> Dict[str, Any]:
        """
        Scoring progress for the administrator dashboard.

        Returns:
            Dict with submission totals, reviewed count, per-judge counts of
            distinct submissions scored, criteria count and current state
        """
        event_result = await db.execute(select(Event).where(Event.id == event_id))
        event = event_result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("Event", event_id, code=ErrorCode.EVENT_NOT_FOUND)

        total_result = await db.execute(
            select(func.count(Submission.id)).where(Submission.event_id == event_id)
        )
        reviewed_result = await db.execute(
            select(func.count(func.distinct(SubmissionScore.submission_id)))
            .join(Submission, Submission.id == SubmissionScore.submission_id)
            .where(Submission.event_id == event_id)
        )
        criteria_result = await db.execute(
            select(func.count(EvaluationCriterion.id)).where(EvaluationCriterion.event_id == event_id)
        )
        judges_result = await db.execute(
            select(
                SubmissionScore.judge_id,
                func.count(func.distinct(SubmissionScore.submission_id)).label("scored"),
            )
            .join(Submission, Submission.id == SubmissionScore.submission_id)
            .where(Submission.event_id == event_id)
            .group_by(SubmissionScore.judge_id)
            .order_by(SubmissionScore.judge_id.asc())
        )

        total = total_result.scalar() or 0
        reviewed = reviewed_result.scalar() or 0

        return {
            "event_id": event_id,
            "results_status": event.results_status,
            "total_submissions": total,
            "reviewed_submissions": reviewed,
            "pending_submissions": total - reviewed,
            "criteria_count": criteria_result.scalar() or 0,
            "judges": [
                {"judge_id": row.judge_id, "submissions_scored": int(row.scored)}
                for row in judges_result.all()
            ],
        }
