"""
Public Voting API Routes.

Unauthenticated; rate limited per client address.
"""
from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.config import settings
from results_pipeline.database import get_db
from results_pipeline.errors import FeatureDisabledError
from results_pipeline.schemas.results import VoteResponse
from results_pipeline.services.scoring_service import get_submission
from results_pipeline.services.voting_service import cast_vote, get_vote_count


def client_fingerprint(request: Request) -> str:
    """
    Client address used both as the rate-limit key and as the voter identity.

    X-Forwarded-For is client-controlled, so it is only read when
    TRUST_FORWARDED_FOR is set.
    """
    if settings.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(key_func=client_fingerprint)

router = APIRouter(prefix="/submissions", tags=["votes"])


def check_voting_enabled():
    if not settings.FEATURE_PUBLIC_VOTING:
        raise FeatureDisabledError("Public voting")


@router.post("/{submission_id}/votes", response_model=VoteResponse)
@limiter.limit(settings.VOTE_RATE_LIMIT)
async def vote(
    request: Request,
    submission_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Cast a public vote. One per client per submission.
    """
    check_voting_enabled()
    count = await cast_vote(db, submission_id, client_fingerprint(request))
    return VoteResponse(success=True, submission_id=submission_id, vote_count=count)


@router.get("/{submission_id}/votes", response_model=VoteResponse)
async def vote_count(
    submission_id: int,
    db: AsyncSession = Depends(get_db)
):
    await get_submission(db, submission_id)
    count = await get_vote_count(db, submission_id)
    return VoteResponse(success=True, submission_id=submission_id, vote_count=count)
