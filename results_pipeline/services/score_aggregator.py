"""
Score Aggregator

Collapses many (judge x criterion) raw scores per submission into one
normalized judge score, and blends it with a normalized public-vote score.

Uses Decimal for all numeric computation to avoid float errors; published
figures are rounded half-up to 2 decimal places.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.config import settings
from results_pipeline.errors import MissingRubricError, NoSubmissionsError
from results_pipeline.orm.base import QUANTIZER_2DP
from results_pipeline.orm.event import Event, MAX_PUBLIC_VOTE_WEIGHT, DEFAULT_PUBLIC_VOTE_WEIGHT
from results_pipeline.orm.rubric import EvaluationCriterion
from results_pipeline.orm.submission import Submission, SubmissionScore, SubmissionVote

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def quantize_2dp(value: Decimal) -> Decimal:
    return Decimal(value).quantize(QUANTIZER_2DP, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CriterionSpec:
    id: int
    max_score: Decimal
    weight: Decimal


@dataclass(frozen=True)
class RawScoreInput:
    judge_id: str
    criterion_id: int
    score: Decimal


@dataclass
class SubmissionInput:
    submission_id: int
    student_id: int
    created_at: datetime
    scores: List[RawScoreInput] = field(default_factory=list)
    vote_count: int = 0


@dataclass
class CriterionTally:
    """Running sum of one criterion's scores and how many judges contributed."""
    total: Decimal = ZERO
    judge_count: int = 0

    def add(self, score: Decimal) -> None:
        self.total += score
        self.judge_count += 1

    @property
    def average(self) -> Decimal:
        if self.judge_count == 0:
            return ZERO
        return self.total / Decimal(self.judge_count)


@dataclass(frozen=True)
class SubmissionAggregate:
    submission_id: int
    student_id: int
    created_at: datetime
    raw_score: Decimal
    judge_score: Decimal
    public_vote_score: Decimal
    weighted_score: Decimal
    judge_count: int
    public_vote_count: int


@dataclass
class EventInputs:
    event_id: int
    criteria: List[CriterionSpec]
    submissions: List[SubmissionInput]
    public_vote_weight: Optional[int]


def resolve_vote_weight(public_vote_weight: Optional[int]) -> Tuple[Decimal, Decimal]:
    """
    Clamp the event's public vote percentage to [0, 60].

    Returns:
        Tuple of (vote_weight, judge_weight) as fractions summing to 1
    """
    if public_vote_weight is None:
        public_vote_weight = DEFAULT_PUBLIC_VOTE_WEIGHT
    clamped = min(max(Decimal(str(public_vote_weight)), ZERO), Decimal(MAX_PUBLIC_VOTE_WEIGHT))
    vote_weight = clamped / HUNDRED
    return vote_weight, ONE - vote_weight


def tally_criteria(scores: List[RawScoreInput]) -> Dict[int, CriterionTally]:
    tallies: Dict[int, CriterionTally] = {}
    for entry in scores:
        tallies.setdefault(entry.criterion_id, CriterionTally()).add(entry.score)
    return tallies


def compute_judge_score(
    tallies: Dict[int, CriterionTally],
    criteria: List[CriterionSpec],
    total_weight: Decimal
) -> Tuple[Decimal, Decimal]:
    """
    Returns:
        Tuple of (raw_score, judge_score); judge_score is on a 0-100 scale
    """
    raw_score = ZERO
    judge_score = ZERO
    for criterion in criteria:
        average = tallies.get(criterion.id, CriterionTally()).average
        raw_score += average
        judge_score += (average / criterion.max_score) * (criterion.weight / total_weight) * HUNDRED
    return raw_score, judge_score


def aggregate_submissions(
    event_id: int,
    criteria: List[CriterionSpec],
    submissions: List[SubmissionInput],
    public_vote_weight: Optional[int]
) -> List[SubmissionAggregate]:
    """
    Aggregate every scored submission of an event.

    Submissions without any raw score are skipped and receive no result.

    Raises:
        MissingRubricError: Event has no criteria, their weights sum to 0, or a
            criterion has no positive max score
        NoSubmissionsError: Event has no submissions at all
    """
    if not criteria:
        raise MissingRubricError(event_id)
    if not submissions:
        raise NoSubmissionsError(event_id)

    total_weight = sum((c.weight for c in criteria), ZERO)
    if total_weight <= ZERO:
        raise MissingRubricError(event_id, "Rubric criteria weights sum to zero")
    if any(c.max_score <= ZERO for c in criteria):
        raise MissingRubricError(event_id, "Rubric criteria must have a positive max score")

    vote_weight, judge_weight = resolve_vote_weight(public_vote_weight)
    max_votes = max([s.vote_count for s in submissions] + [1])

    aggregates = []
    for submission in submissions:
        if not submission.scores:
            continue

        tallies = tally_criteria(submission.scores)
        raw_score, judge_score = compute_judge_score(tallies, criteria, total_weight)

        public_vote_score = Decimal(submission.vote_count) / Decimal(max_votes) * HUNDRED
        weighted_score = judge_score * judge_weight + public_vote_score * vote_weight

        aggregates.append(SubmissionAggregate(
            submission_id=submission.submission_id,
            student_id=submission.student_id,
            created_at=submission.created_at,
            raw_score=quantize_2dp(raw_score),
            judge_score=quantize_2dp(judge_score),
            public_vote_score=quantize_2dp(public_vote_score),
            weighted_score=quantize_2dp(weighted_score),
            judge_count=len({entry.judge_id for entry in submission.scores}),
            public_vote_count=submission.vote_count,
        ))

    logger.info(
        f"Aggregated event={event_id}: {len(aggregates)} scored of {len(submissions)} submissions "
        f"(criteria={len(criteria)}, vote_weight={vote_weight})"
    )
    return aggregates


async def collect_event_inputs(db: AsyncSession, event: Event) -> EventInputs:
    """
    Read the event's rubric, submissions, raw scores and vote counts.

    Scores referencing criteria outside the event's rubric are ignored.
    """
    criteria_result = await db.execute(
        select(EvaluationCriterion)
        .where(EvaluationCriterion.event_id == event.id)
        .order_by(EvaluationCriterion.display_order.asc(), EvaluationCriterion.id.asc())
    )
    criteria = [
        CriterionSpec(
            id=c.id,
            max_score=Decimal(str(c.max_score)),
            weight=Decimal(str(c.weight)),
        )
        for c in criteria_result.scalars().all()
    ]
    criterion_ids = {c.id for c in criteria}

    submissions_result = await db.execute(
        select(Submission)
        .where(Submission.event_id == event.id)
        .order_by(Submission.created_at.asc(), Submission.id.asc())
    )
    submissions: Dict[int, SubmissionInput] = {
        s.id: SubmissionInput(submission_id=s.id, student_id=s.student_id, created_at=s.created_at)
        for s in submissions_result.scalars().all()
    }

    scores_result = await db.execute(
        select(
            SubmissionScore.submission_id,
            SubmissionScore.judge_id,
            SubmissionScore.criterion_id,
            SubmissionScore.score,
        )
        .join(Submission, Submission.id == SubmissionScore.submission_id)
        .where(Submission.event_id == event.id)
        .order_by(SubmissionScore.id.asc())
    )
    for row in scores_result.all():
        if row.criterion_id not in criterion_ids or row.submission_id not in submissions:
            continue
        submissions[row.submission_id].scores.append(RawScoreInput(
            judge_id=row.judge_id,
            criterion_id=row.criterion_id,
            score=Decimal(str(row.score)),
        ))

    votes_result = await db.execute(
        select(SubmissionVote.submission_id, func.count(SubmissionVote.id).label("votes"))
        .join(Submission, Submission.id == SubmissionVote.submission_id)
        .where(Submission.event_id == event.id)
        .group_by(SubmissionVote.submission_id)
    )
    for row in votes_result.all():
        if row.submission_id in submissions:
            submissions[row.submission_id].vote_count = int(row.votes or 0)

    return EventInputs(
        event_id=event.id,
        criteria=criteria,
        submissions=list(submissions.values()),
        public_vote_weight=(
            event.public_vote_weight
            if event.public_vote_weight is not None
            else settings.DEFAULT_PUBLIC_VOTE_WEIGHT
        ),
    )


async def aggregate_event(db: AsyncSession, event: Event) -> List[SubmissionAggregate]:
    """Collect the event's inputs and aggregate them."""
    inputs = await collect_event_inputs(db, event)
    return aggregate_submissions(
        inputs.event_id,
        inputs.criteria,
        inputs.submissions,
        inputs.public_vote_weight,
    )
