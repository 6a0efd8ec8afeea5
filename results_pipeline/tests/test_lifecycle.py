"""
Event Results Lifecycle Test Suite.

State machine rules plus lock-and-compute and publish against a database.
"""
from decimal import Decimal

import pytest
from sqlalchemy import delete, select

from results_pipeline.errors import (
    ForbiddenError, InvalidLifecycleTransitionError, MissingRubricError,
    NoSubmissionsError, NotFoundError
)
from results_pipeline.orm import (
    Credential, EvaluationCriterion, ResultsStatus, SubmissionResult, SubmissionScore
)
from results_pipeline.services.lifecycle_service import LifecycleService, _get_event_lock
from results_pipeline.services.results_ranker import get_event_results
from results_pipeline.services.scoring_service import ScoringService, ScoreEntry


async def score(db, seeded, submission_index, values, judge="judge-1"):
    entries = [
        ScoreEntry(criterion_id=criterion.id, score=value)
        for criterion, value in zip(seeded.criteria, values)
    ]
    return await ScoringService.submit_scores(db, seeded.submissions[submission_index].id, judge, entries)


def snapshot(rows):
    return [
        {k: v for k, v in row.to_dict().items() if k != "computed_at"}
        for row in rows
    ]


# =============================================================================
# Test Class 1: State Machine
# =============================================================================

class TestStateMachine:

    def test_forward_transitions_are_valid(self):
        assert LifecycleService._is_valid_transition(
            ResultsStatus.NOT_STARTED, ResultsStatus.SCORING_OPEN
        ) is True
        assert LifecycleService._is_valid_transition(
            ResultsStatus.SCORING_OPEN, ResultsStatus.SCORING_LOCKED
        ) is True
        assert LifecycleService._is_valid_transition(
            ResultsStatus.SCORING_LOCKED, ResultsStatus.REVIEW
        ) is True
        assert LifecycleService._is_valid_transition(
            ResultsStatus.REVIEW, ResultsStatus.PUBLISHED
        ) is True

    def test_no_skipping(self):
        assert LifecycleService._is_valid_transition(
            ResultsStatus.NOT_STARTED, ResultsStatus.REVIEW
        ) is False
        assert LifecycleService._is_valid_transition(
            ResultsStatus.SCORING_OPEN, ResultsStatus.PUBLISHED
        ) is False

    def test_scoring_never_reopens(self):
        reopening = [
            state for state, targets in LifecycleService.VALID_TRANSITIONS.items()
            if ResultsStatus.SCORING_OPEN in targets
        ]
        assert reopening == [ResultsStatus.NOT_STARTED]

    def test_published_is_terminal(self):
        assert LifecycleService.VALID_TRANSITIONS[ResultsStatus.PUBLISHED] == []

    @pytest.mark.parametrize("operation,allowed_in", [
        ("score", {ResultsStatus.SCORING_OPEN}),
        ("vote", {ResultsStatus.NOT_STARTED, ResultsStatus.SCORING_OPEN}),
        ("compute", {ResultsStatus.SCORING_OPEN, ResultsStatus.REVIEW}),
        ("publish", {ResultsStatus.REVIEW}),
    ])
    def test_operation_states(self, operation, allowed_in):
        assert set(LifecycleService.OPERATION_STATES[operation]) == allowed_in

    @pytest.mark.asyncio
    async def test_event_lock_is_shared_per_event(self):
        assert await _get_event_lock(41) is await _get_event_lock(41)
        assert await _get_event_lock(41) is not await _get_event_lock(42)


# =============================================================================
# Test Class 2: Open Scoring
# =============================================================================

class TestOpenScoring:

    @pytest.mark.asyncio
    async def test_open_scoring(self, db_session, seed, admin):
        seeded = await seed(db_session, status=ResultsStatus.NOT_STARTED)

        event = await LifecycleService.open_scoring(db_session, seeded.event.id, admin)

        assert event.results_status == ResultsStatus.SCORING_OPEN.value

    @pytest.mark.asyncio
    async def test_open_scoring_twice_fails(self, db_session, seed, admin):
        seeded = await seed(db_session, status=ResultsStatus.NOT_STARTED)
        await LifecycleService.open_scoring(db_session, seeded.event.id, admin)

        with pytest.raises(InvalidLifecycleTransitionError):
            await LifecycleService.open_scoring(db_session, seeded.event.id, admin)

    @pytest.mark.asyncio
    async def test_requires_admin_capability(self, db_session, seed):
        seeded = await seed(db_session, status=ResultsStatus.NOT_STARTED)

        with pytest.raises(ForbiddenError):
            await LifecycleService.open_scoring(db_session, seeded.event.id, None)

    @pytest.mark.asyncio
    async def test_unknown_event(self, db_session, admin):
        with pytest.raises(NotFoundError):
            await LifecycleService.open_scoring(db_session, 999, admin)


# =============================================================================
# Test Class 3: Lock and Compute
# =============================================================================

class TestLockAndCompute:

    @pytest.mark.asyncio
    async def test_sixty_forty_scenario(self, db_session, seed, admin):
        seeded = await seed(db_session, criteria=((60, 50), (40, 50)), public_vote_weight=0)
        await score(db_session, seeded, 0, [50, 50])
        await score(db_session, seeded, 1, [25, 25])

        count = await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

        assert count == 2
        event = await LifecycleService.get_event(db_session, seeded.event.id)
        assert event.results_status == ResultsStatus.REVIEW.value

        results = await get_event_results(db_session, seeded.event.id)
        assert [r.submission_id for r in results] == [s.id for s in seeded.submissions]
        assert results[0].weighted_score == Decimal("100.00")
        assert results[1].weighted_score == Decimal("50.00")
        assert [r.rank for r in results] == [1, 2]
        assert results[0].tier == "participant"
        assert results[0].judge_count == 1

    @pytest.mark.asyncio
    async def test_unscored_submission_gets_no_result(self, db_session, seed, admin):
        seeded = await seed(db_session, submission_count=3)
        await score(db_session, seeded, 0, [10, 10])

        count = await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

        assert count == 1

    @pytest.mark.asyncio
    async def test_submit_after_lock_fails(self, db_session, seed, admin):
        seeded = await seed(db_session)
        await score(db_session, seeded, 0, [50, 50])
        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

        with pytest.raises(InvalidLifecycleTransitionError) as exc_info:
            await score(db_session, seeded, 1, [20, 20])
        assert exc_info.value.message == "Scoring is locked for this event"

    @pytest.mark.asyncio
    async def test_compute_before_scoring_opens_fails(self, db_session, seed, admin):
        seeded = await seed(db_session, status=ResultsStatus.NOT_STARTED)

        with pytest.raises(InvalidLifecycleTransitionError):
            await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, db_session, seed, admin):
        seeded = await seed(db_session, submission_count=4)
        for index, values in enumerate([[50, 10], [30, 30], [12.5, 49], [0, 1]]):
            await score(db_session, seeded, index, values)

        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)
        first = snapshot(await get_event_results(db_session, seeded.event.id))

        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)
        second = snapshot(await get_event_results(db_session, seeded.event.id))

        assert first == second

    @pytest.mark.asyncio
    async def test_recompute_prunes_results_without_scores(self, db_session, seed, admin):
        seeded = await seed(db_session, submission_count=3)
        for index in range(3):
            await score(db_session, seeded, index, [40 - index, 40])
        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

        dropped = seeded.submissions[1].id
        await db_session.execute(delete(SubmissionScore).where(SubmissionScore.submission_id == dropped))
        await db_session.commit()

        count = await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

        assert count == 2
        results = await get_event_results(db_session, seeded.event.id)
        assert dropped not in [r.submission_id for r in results]
        assert [r.rank for r in results] == [1, 2]

    @pytest.mark.asyncio
    async def test_missing_rubric_fails(self, db_session, seed, admin):
        seeded = await seed(db_session, criteria=())
        event_id = seeded.event.id

        with pytest.raises(MissingRubricError):
            await LifecycleService.lock_and_compute(db_session, event_id, admin)

        event = await LifecycleService.get_event(db_session, event_id)
        assert event.results_status == ResultsStatus.SCORING_OPEN.value

    @pytest.mark.asyncio
    async def test_no_submissions_fails(self, db_session, seed, admin):
        seeded = await seed(db_session, submission_count=0)

        with pytest.raises(NoSubmissionsError):
            await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

    @pytest.mark.asyncio
    async def test_failed_recompute_keeps_prior_results(self, db_session, seed, admin):
        seeded = await seed(db_session)
        event_id = seeded.event.id
        await score(db_session, seeded, 0, [50, 50])
        await score(db_session, seeded, 1, [10, 10])
        await LifecycleService.lock_and_compute(db_session, event_id, admin)
        before = snapshot(await get_event_results(db_session, event_id))

        await db_session.execute(
            delete(EvaluationCriterion).where(EvaluationCriterion.event_id == event_id)
        )
        await db_session.commit()

        with pytest.raises(MissingRubricError):
            await LifecycleService.lock_and_compute(db_session, event_id, admin)

        event = await LifecycleService.get_event(db_session, event_id)
        assert event.results_status == ResultsStatus.REVIEW.value
        assert snapshot(await get_event_results(db_session, event_id)) == before


# =============================================================================
# Test Class 4: Publish
# =============================================================================

class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_before_compute_fails(self, db_session, seed, admin, issuer):
        seeded = await seed(db_session)

        with pytest.raises(InvalidLifecycleTransitionError) as exc_info:
            await LifecycleService.publish(db_session, seeded.event.id, admin, issuer=issuer)
        assert exc_info.value.message == "Results must be computed before publishing"

    @pytest.mark.asyncio
    async def test_publish_issues_credentials(self, db_session, seed, admin, issuer):
        seeded = await seed(db_session, submission_count=3)
        for index in range(3):
            await score(db_session, seeded, index, [50 - index * 10, 50])
        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

        count = await LifecycleService.publish(db_session, seeded.event.id, admin, issuer=issuer)

        assert count == 3
        event = await LifecycleService.get_event(db_session, seeded.event.id)
        assert event.results_status == ResultsStatus.PUBLISHED.value
        assert event.results_published_at is not None

        credentials = (await db_session.execute(
            select(Credential).where(Credential.event_id == seeded.event.id)
        )).scalars().all()
        assert len(credentials) == 3
        assert len({c.submission_result_id for c in credentials}) == 3

    @pytest.mark.asyncio
    async def test_publish_twice_fails(self, db_session, seed, admin, issuer):
        seeded = await seed(db_session)
        await score(db_session, seeded, 0, [50, 50])
        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)
        await LifecycleService.publish(db_session, seeded.event.id, admin, issuer=issuer)

        with pytest.raises(InvalidLifecycleTransitionError):
            await LifecycleService.publish(db_session, seeded.event.id, admin, issuer=issuer)

    @pytest.mark.asyncio
    async def test_compute_after_publish_fails(self, db_session, seed, admin, issuer):
        seeded = await seed(db_session)
        await score(db_session, seeded, 0, [50, 50])
        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)
        await LifecycleService.publish(db_session, seeded.event.id, admin, issuer=issuer)

        with pytest.raises(InvalidLifecycleTransitionError):
            await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

    @pytest.mark.asyncio
    async def test_status_reports_counts(self, db_session, seed, admin, issuer):
        seeded = await seed(db_session)
        await score(db_session, seeded, 0, [50, 50])
        await score(db_session, seeded, 1, [5, 5])
        await LifecycleService.lock_and_compute(db_session, seeded.event.id, admin)

        status = await LifecycleService.get_status(db_session, seeded.event.id)

        assert status["results_status"] == "review"
        assert status["computed_results"] == 2
        assert status["issued_credentials"] == 0
        assert status["allowed_operations"] == ["compute", "publish"]


# =============================================================================
# Test Class 5: Operation Checks
# =============================================================================

class TestOperationChecks:

    @pytest.mark.asyncio
    async def test_scoring_allowed_only_while_open(self, db_session, seed):
        seeded = await seed(db_session, status=ResultsStatus.REVIEW)

        allowed, reason = await LifecycleService.check_operation_allowed(
            db_session, seeded.event.id, "score"
        )

        assert allowed is False
        assert "review" in reason

    @pytest.mark.asyncio
    async def test_unknown_operation(self, db_session, seed):
        seeded = await seed(db_session)

        allowed, reason = await LifecycleService.check_operation_allowed(
            db_session, seeded.event.id, "teleport"
        )

        assert allowed is False
        assert reason == "Unknown operation 'teleport'"
