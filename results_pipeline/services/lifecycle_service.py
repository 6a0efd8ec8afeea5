"""
Event Results Lifecycle Controller

Deterministic results state machine for a competition event:

    not_started -> scoring_open -> scoring_locked -> review -> published

`scoring_locked` is transient: lock-and-compute sets it, runs the aggregator
and ranker, and moves to `review` in the same transaction.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.errors import InvalidLifecycleTransitionError, NotFoundError, ErrorCode
from results_pipeline.orm.base import utcnow
from results_pipeline.orm.credential import Credential
from results_pipeline.orm.event import Event, ResultsStatus
from results_pipeline.orm.submission_result import SubmissionResult
from results_pipeline.rbac import AdminCapability, ensure_admin
from results_pipeline.services.credential_issuer import CredentialIssuer
from results_pipeline.services.results_ranker import (
    rank_aggregates, persist_results, tier_distribution
)
from results_pipeline.services.score_aggregator import aggregate_event

logger = logging.getLogger(__name__)

# Per-event locks serialize compute and publish within this process
_event_locks: Dict[int, asyncio.Lock] = {}
_lock_lock = asyncio.Lock()  # Lock for creating event locks


async def _get_event_lock(event_id: int) -> asyncio.Lock:
    """Get or create a lock for a specific event."""
    async with _lock_lock:
        if event_id not in _event_locks:
            _event_locks[event_id] = asyncio.Lock()
        return _event_locks[event_id]


class LifecycleService:
    """
    Results lifecycle orchestrator.

    PUBLISHED is terminal. No transition re-opens scoring.
    """

    # State machine valid transitions
    VALID_TRANSITIONS = {
        ResultsStatus.NOT_STARTED: [ResultsStatus.SCORING_OPEN],
        ResultsStatus.SCORING_OPEN: [ResultsStatus.SCORING_LOCKED],
        ResultsStatus.SCORING_LOCKED: [ResultsStatus.REVIEW],
        # Repeating lock-and-compute passes back through the transient lock
        ResultsStatus.REVIEW: [ResultsStatus.SCORING_LOCKED, ResultsStatus.PUBLISHED],
        ResultsStatus.PUBLISHED: [],  # Terminal state
    }

    COMPUTE_STATES = [ResultsStatus.SCORING_OPEN, ResultsStatus.REVIEW]

    # Operation name -> states in which it is allowed
    OPERATION_STATES = {
        "score": [ResultsStatus.SCORING_OPEN],
        "vote": [ResultsStatus.NOT_STARTED, ResultsStatus.SCORING_OPEN],
        "rubric_edit": [ResultsStatus.NOT_STARTED, ResultsStatus.SCORING_OPEN],
        "compute": COMPUTE_STATES,
        "publish": [ResultsStatus.REVIEW],
    }

    @staticmethod
    def _is_valid_transition(current: ResultsStatus, new: ResultsStatus) -> bool:
        """Check if status transition is valid."""
        return new in LifecycleService.VALID_TRANSITIONS.get(current, [])

    @staticmethod
    def _transition(event: Event, new_status: ResultsStatus, actor_id: str) -> None:
        current = event.status
        if not LifecycleService._is_valid_transition(current, new_status):
            raise InvalidLifecycleTransitionError(
                f"Cannot transition from {current.value} to {new_status.value}",
                current_state=current.value,
                attempted=new_status.value,
                allowed_states=[s.value for s in LifecycleService.VALID_TRANSITIONS.get(current, [])],
            )
        event.results_status = new_status.value
        logger.info(
            f"[TRANSITION event={event.id}] {current.value} -> {new_status.value} by actor={actor_id}"
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    @staticmethod
    async def get_event(db: AsyncSession, event_id: int, lock: bool = False) -> Event:
        """
        Get event by id.

        Args:
            db: Database session
            event_id: Event id
            lock: Whether to use FOR UPDATE locking

        Raises:
            NotFoundError: Event does not exist
        """
        query = select(Event).where(Event.id == event_id)
        if lock:
            query = query.with_for_update()

        result = await db.execute(query)
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("Event", event_id, code=ErrorCode.EVENT_NOT_FOUND)
        return event

    @staticmethod
    async def get_status(db: AsyncSession, event_id: int) -> Dict[str, Any]:
        event = await LifecycleService.get_event(db, event_id)

        results_count = await db.execute(
            select(func.count(SubmissionResult.id)).where(SubmissionResult.event_id == event_id)
        )
        credentials_count = await db.execute(
            select(func.count(Credential.id)).where(Credential.event_id == event_id)
        )

        return {
            **event.to_dict(),
            "computed_results": results_count.scalar() or 0,
            "issued_credentials": credentials_count.scalar() or 0,
            "allowed_operations": [
                operation
                for operation, states in LifecycleService.OPERATION_STATES.items()
                if event.status in states
            ],
        }

    @staticmethod
    async def check_operation_allowed(
        db: AsyncSession,
        event_id: int,
        operation: str
    ) -> Tuple[bool, str]:
        """
        Check if an operation is allowed on the event in its current state.

        Args:
            db: Database session
            event_id: Event id
            operation: One of "score", "vote", "rubric_edit", "compute", "publish"

        Returns:
            Tuple of (allowed, reason)
        """
        event = await LifecycleService.get_event(db, event_id)
        return LifecycleService.operation_allowed_for(event, operation)

    @staticmethod
    def operation_allowed_for(event: Event, operation: str) -> Tuple[bool, str]:
        allowed_states = LifecycleService.OPERATION_STATES.get(operation)
        if allowed_states is None:
            return False, f"Unknown operation '{operation}'"

        if event.status not in allowed_states:
            return False, f"'{operation}' not allowed while event is {event.results_status}"
        return True, ""

    # ==========================================================================
    # Lifecycle Operations
    # ==========================================================================

    @staticmethod
    async def open_scoring(
        db: AsyncSession,
        event_id: int,
        capability: AdminCapability
    ) -> Event:
        """not_started -> scoring_open."""
        ensure_admin(capability)

        lock = await _get_event_lock(event_id)
        async with lock:
            try:
                event = await LifecycleService.get_event(db, event_id, lock=True)
                LifecycleService._transition(event, ResultsStatus.SCORING_OPEN, capability.actor_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return event

    @staticmethod
    async def lock_and_compute(
        db: AsyncSession,
        event_id: int,
        capability: AdminCapability
    ) -> int:
        """
        Lock scoring and compute the event's results.

        Allowed from scoring_open, or repeated from review. Either every
        computed result of the event is replaced, or nothing changes.

        Returns:
            Number of computed results
        """
        ensure_admin(capability)

        lock = await _get_event_lock(event_id)
        async with lock:
            try:
                event = await LifecycleService.get_event(db, event_id, lock=True)

                if event.status not in LifecycleService.COMPUTE_STATES:
                    raise InvalidLifecycleTransitionError(
                        f"Cannot compute results while event is {event.results_status}",
                        current_state=event.results_status,
                        attempted=ResultsStatus.SCORING_LOCKED.value,
                        allowed_states=[s.value for s in LifecycleService.COMPUTE_STATES],
                    )

                LifecycleService._transition(event, ResultsStatus.SCORING_LOCKED, capability.actor_id)
                await db.flush()

                aggregates = await aggregate_event(db, event)
                ranked = rank_aggregates(aggregates)
                rows = await persist_results(db, event.id, ranked)

                LifecycleService._transition(event, ResultsStatus.REVIEW, capability.actor_id)
                await db.commit()
            except Exception:
                await db.rollback()
                logger.warning(f"Lock-and-compute failed for event={event_id}, rolled back")
                raise

        logger.info(
            f"Computed {len(rows)} results for event={event_id} "
            f"tiers={tier_distribution(ranked)}"
        )
        return len(rows)

    @staticmethod
    async def publish(
        db: AsyncSession,
        event_id: int,
        capability: AdminCapability,
        issuer: Optional[CredentialIssuer] = None
    ) -> int:
        """
        review -> published. Issues credentials and stamps results_published_at.

        Returns:
            Number of credentials issued by this call
        """
        ensure_admin(capability)
        issuer = issuer or CredentialIssuer.from_settings()

        lock = await _get_event_lock(event_id)
        async with lock:
            try:
                event = await LifecycleService.get_event(db, event_id, lock=True)

                if event.status != ResultsStatus.REVIEW:
                    raise InvalidLifecycleTransitionError(
                        "Results must be computed before publishing",
                        current_state=event.results_status,
                        attempted=ResultsStatus.PUBLISHED.value,
                        allowed_states=[ResultsStatus.REVIEW.value],
                    )

                issued = await issuer.issue_for_event(db, event)

                event.results_published_at = utcnow()
                LifecycleService._transition(event, ResultsStatus.PUBLISHED, capability.actor_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return len(issued)
