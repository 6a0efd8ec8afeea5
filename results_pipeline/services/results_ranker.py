"""
Results Ranker

Deterministic ranking and percentile tiers over aggregated submissions, and
full-replace persistence of the event's computed results.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Dict, Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.errors import InvalidLifecycleTransitionError
from results_pipeline.orm.base import utcnow
from results_pipeline.orm.credential import Credential
from results_pipeline.orm.event import Event, ResultsStatus
from results_pipeline.orm.participant import Student, School
from results_pipeline.orm.submission_result import SubmissionResult, Tier
from results_pipeline.services.score_aggregator import SubmissionAggregate

logger = logging.getLogger(__name__)

# First match wins, evaluated top-down
TIER_THRESHOLDS = (
    (Decimal("0.10"), Tier.GOLD),
    (Decimal("0.25"), Tier.SILVER),
    (Decimal("0.40"), Tier.BRONZE),
)


@dataclass(frozen=True)
class RankedResult:
    aggregate: SubmissionAggregate
    rank: int
    percentile: Decimal
    tier: Tier


def assign_tier(percentile: Decimal) -> Tier:
    for threshold, tier in TIER_THRESHOLDS:
        if percentile <= threshold:
            return tier
    return Tier.PARTICIPANT


def ranking_key(aggregate: SubmissionAggregate):
    # weighted_score DESC, then earlier submission, then lower id
    return (-aggregate.weighted_score, aggregate.created_at, aggregate.submission_id)


def rank_aggregates(aggregates: List[SubmissionAggregate]) -> List[RankedResult]:
    """
    Assign dense ranks 1..N and tiers by rank / N.

    N counts only the aggregates passed in, i.e. the event's scored submissions.
    """
    ordered = sorted(aggregates, key=ranking_key)
    total = len(ordered)

    ranked = []
    for rank, aggregate in enumerate(ordered, start=1):
        percentile = Decimal(rank) / Decimal(total)
        ranked.append(RankedResult(
            aggregate=aggregate,
            rank=rank,
            percentile=percentile,
            tier=assign_tier(percentile),
        ))
    return ranked


def tier_distribution(ranked: List[RankedResult]) -> Dict[str, int]:
    counts = {tier.value: 0 for tier in Tier}
    for result in ranked:
        counts[result.tier.value] += 1
    return counts


async def persist_results(
    db: AsyncSession,
    event_id: int,
    ranked: List[RankedResult],
    computed_at: Optional[datetime] = None
) -> List[SubmissionResult]:
    """
    Replace the event's computed results with `ranked`.

    Rows are upserted by submission_id; rows for submissions no longer in the
    ranked set are deleted. Caller owns the transaction.
    """
    computed_at = computed_at or utcnow()

    existing_result = await db.execute(
        select(SubmissionResult).where(SubmissionResult.event_id == event_id)
    )
    existing = {row.submission_id: row for row in existing_result.scalars().all()}

    rows = []
    for result in ranked:
        aggregate = result.aggregate
        row = existing.pop(aggregate.submission_id, None)
        if row is None:
            row = SubmissionResult(submission_id=aggregate.submission_id, event_id=event_id)
            db.add(row)

        row.student_id = aggregate.student_id
        row.raw_score = aggregate.raw_score
        row.weighted_score = aggregate.weighted_score
        row.public_vote_score = aggregate.public_vote_score
        row.public_vote_count = aggregate.public_vote_count
        row.judge_count = aggregate.judge_count
        row.rank = result.rank
        row.tier = result.tier.value
        row.computed_at = computed_at
        rows.append(row)

    for orphan in existing.values():
        logger.info(f"Pruning stale result for submission={orphan.submission_id} event={event_id}")
        await db.delete(orphan)

    await db.flush()
    return rows


async def get_event_results(db: AsyncSession, event_id: int) -> List[SubmissionResult]:
    """Computed results of an event ordered by rank."""
    result = await db.execute(
        select(SubmissionResult)
        .where(SubmissionResult.event_id == event_id)
        .order_by(SubmissionResult.rank.asc())
    )
    return list(result.scalars().all())


async def get_published_leaderboard(db: AsyncSession, event: Event) -> List[Dict[str, Any]]:
    """
    Public leaderboard for a published event.

    Names come from the credential snapshot when one exists, otherwise from the
    live student/school rows.

    Raises:
        InvalidLifecycleTransitionError: Event results are not published
    """
    if event.results_status != ResultsStatus.PUBLISHED.value:
        raise InvalidLifecycleTransitionError(
            "Results are not published yet",
            current_state=event.results_status,
            attempted="view_leaderboard",
        )

    result = await db.execute(
        select(SubmissionResult, Credential, Student.full_name, School.name)
        .outerjoin(Credential, Credential.submission_result_id == SubmissionResult.id)
        .outerjoin(Student, Student.id == SubmissionResult.student_id)
        .outerjoin(School, School.id == Student.school_id)
        .where(SubmissionResult.event_id == event.id)
        .order_by(SubmissionResult.rank.asc())
    )

    leaderboard = []
    for row, credential, student_name, school_name in result.all():
        entry = row.to_dict()
        entry.pop("computed_at", None)
        entry["student_name"] = credential.student_name if credential else (student_name or "Unknown")
        entry["school_name"] = credential.school_name if credential else (school_name or "Unknown School")
        entry["credential_id"] = credential.credential_id if credential else None
        leaderboard.append(entry)
    return leaderboard
