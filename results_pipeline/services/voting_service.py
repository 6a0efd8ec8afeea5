"""
Public Voting Service

One vote per (submission, voter). Voters are identified only by a salted
SHA-256 of their network address.
"""
import hashlib
import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.config import settings
from results_pipeline.errors import AlreadyVotedError, InvalidLifecycleTransitionError
from results_pipeline.orm.event import Event
from results_pipeline.orm.submission import SubmissionVote
from results_pipeline.services.lifecycle_service import LifecycleService
from results_pipeline.services.scoring_service import get_submission

logger = logging.getLogger(__name__)


def hash_voter(fingerprint: str, salt: str) -> str:
    return hashlib.sha256(f"{fingerprint}{salt}".encode("utf-8")).hexdigest()


async def get_vote_count(db: AsyncSession, submission_id: int) -> int:
    result = await db.execute(
        select(func.count(SubmissionVote.id)).where(SubmissionVote.submission_id == submission_id)
    )
    return result.scalar() or 0


async def cast_vote(
    db: AsyncSession,
    submission_id: int,
    voter_fingerprint: str,
    salt: Optional[str] = None
) -> int:
    """
    Record a public vote.

    Returns:
        The submission's vote count after this vote

    Raises:
        NotFoundError: Submission does not exist
        InvalidLifecycleTransitionError: Voting is closed for the event
        AlreadyVotedError: This voter already voted for the submission
    """
    voter_hash = hash_voter(voter_fingerprint, salt if salt is not None else settings.VOTE_SALT)

    submission = await get_submission(db, submission_id)
    event_result = await db.execute(select(Event).where(Event.id == submission.event_id))
    event = event_result.scalar_one()

    allowed, _ = LifecycleService.operation_allowed_for(event, "vote")
    if not allowed:
        raise InvalidLifecycleTransitionError(
            "Voting is closed for this event",
            current_state=event.results_status,
            attempted="vote",
        )

    existing = await db.execute(
        select(SubmissionVote.id).where(
            SubmissionVote.submission_id == submission_id,
            SubmissionVote.voter_hash == voter_hash,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise AlreadyVotedError(submission_id)

    db.add(SubmissionVote(submission_id=submission_id, voter_hash=voter_hash))
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against the same voter
        await db.rollback()
        raise AlreadyVotedError(submission_id)

    count = await get_vote_count(db, submission_id)
    logger.info(f"Vote recorded for submission={submission_id} (total={count})")
    return count
