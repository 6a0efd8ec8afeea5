"""
Credential Issuer

Converts an event's finalized, ranked results into signed credential records.

Issuance is keyed by submission result: a result that already carries a
credential keeps it and is never re-minted.
"""
import logging
import secrets
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.config import Settings, settings as default_settings
from results_pipeline.errors import InvalidLifecycleTransitionError, NoComputedResultsError
from results_pipeline.orm.base import utcnow
from results_pipeline.orm.credential import Credential
from results_pipeline.orm.event import Event, ResultsStatus
from results_pipeline.orm.participant import Student, School
from results_pipeline.orm.submission_result import SubmissionResult, Tier
from results_pipeline.services.hash_service import HashService

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 10
UNKNOWN_STUDENT = "Unknown"
UNKNOWN_SCHOOL = "Unknown School"


def truncate_to_milliseconds(value: datetime) -> datetime:
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


class CredentialIssuer:
    """
    Mints credentials for every computed result of an event in review.

    Credential ids look like `CE-2026-9F3A61C2`: prefix, issuance year and
    `id_bytes` random bytes hex-encoded.
    """

    def __init__(
        self,
        secret: str,
        prefix: str = "CE",
        id_bytes: int = 4,
        issuer_name: str = "CompeteEdu"
    ):
        if not secret:
            raise ValueError("Credential secret must not be empty")
        self.secret = secret
        self.prefix = prefix
        self.id_bytes = id_bytes
        self.issuer_name = issuer_name

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CredentialIssuer":
        settings = settings or default_settings
        return cls(
            secret=settings.get_credential_secret(),
            prefix=settings.CREDENTIAL_ID_PREFIX,
            id_bytes=settings.CREDENTIAL_ID_BYTES,
            issuer_name=settings.CREDENTIAL_ISSUER_NAME,
        )

    def generate_credential_id(self, issued_at: datetime) -> str:
        suffix = secrets.token_hex(self.id_bytes).upper()
        return f"{self.prefix}-{issued_at.year}-{suffix}"

    def sign(self, credential: Credential) -> str:
        return HashService.compute_credential_hash(credential.hash_payload(), self.secret)

    async def _unique_credential_id(
        self,
        db: AsyncSession,
        issued_at: datetime,
        reserved: Set[str]
    ) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self.generate_credential_id(issued_at)
            if candidate in reserved:
                continue
            existing = await db.execute(
                select(Credential.id).where(Credential.credential_id == candidate)
            )
            if existing.scalar_one_or_none() is None:
                reserved.add(candidate)
                return candidate
            logger.warning(f"Credential id collision on {candidate}, regenerating")
        raise RuntimeError("Could not generate a unique credential id")

    async def issue_for_event(self, db: AsyncSession, event: Event) -> List[Credential]:
        """
        Issue credentials for every computed result of the event.

        Caller owns the transaction and the event lock.

        Returns:
            Newly issued credentials (results that already had one are skipped)

        Raises:
            InvalidLifecycleTransitionError: Event is not in review
            NoComputedResultsError: Event has no computed results
        """
        if event.results_status != ResultsStatus.REVIEW.value:
            raise InvalidLifecycleTransitionError(
                "Results must be computed before publishing",
                current_state=event.results_status,
                attempted=ResultsStatus.PUBLISHED.value,
            )

        result = await db.execute(
            select(SubmissionResult, Student.full_name, School.name)
            .outerjoin(Student, Student.id == SubmissionResult.student_id)
            .outerjoin(School, School.id == Student.school_id)
            .where(SubmissionResult.event_id == event.id)
            .order_by(SubmissionResult.rank.asc())
        )
        rows = result.all()

        if not rows:
            raise NoComputedResultsError(event.id)

        already_issued = await db.execute(
            select(Credential.submission_result_id).where(Credential.event_id == event.id)
        )
        issued_result_ids = set(already_issued.scalars().all())

        # One timestamp per run, shared by the hashed payload and the stored row
        issued_at = truncate_to_milliseconds(utcnow())
        reserved: Set[str] = set()

        issued = []
        for submission_result, student_name, school_name in rows:
            if submission_result.id in issued_result_ids:
                logger.info(
                    f"Credential already issued for result={submission_result.id}, skipping"
                )
                continue

            credential = Credential(
                credential_id=await self._unique_credential_id(db, issued_at, reserved),
                submission_result_id=submission_result.id,
                student_id=submission_result.student_id,
                event_id=event.id,
                student_name=student_name or UNKNOWN_STUDENT,
                school_name=school_name or UNKNOWN_SCHOOL,
                event_name=event.title,
                issued_by=self.issuer_name,
                tier=submission_result.tier,
                rank=submission_result.rank,
                weighted_score=submission_result.weighted_score,
                issued_at=issued_at,
                is_public=submission_result.tier != Tier.PARTICIPANT.value,
            )
            credential.credential_hash = self.sign(credential)
            db.add(credential)
            issued.append(credential)

        await db.flush()

        logger.info(
            f"Issued {len(issued)} credentials for event={event.id} "
            f"({len(issued_result_ids)} already existed)"
        )
        return issued
