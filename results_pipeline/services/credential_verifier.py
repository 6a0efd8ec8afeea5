"""
Credential Verifier

Recomputes a credential's signature from its own stored fields and reports
authenticity. Read-only.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.config import Settings, settings as default_settings
from results_pipeline.errors import CredentialNotFoundError
from results_pipeline.orm.credential import Credential
from results_pipeline.services.hash_service import HashService

logger = logging.getLogger(__name__)


class CredentialVerifier:

    def __init__(self, secret: str):
        self.secret = secret

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CredentialVerifier":
        settings = settings or default_settings
        return cls(secret=settings.get_credential_secret())

    def check(self, credential: Credential) -> bool:
        """True when the stored hash matches the recomputed one."""
        expected = HashService.compute_credential_hash(credential.hash_payload(), self.secret)
        return HashService.constant_time_compare(expected, credential.credential_hash or "")

    async def verify(self, db: AsyncSession, credential_id: str) -> Dict[str, Any]:
        """
        Verify a credential by its public id.

        Returns:
            {"found": False, "valid": False, "credential_id": ...} for unknown ids,
            otherwise {"found": True, "valid": bool, **stored display fields}
        """
        credential = await get_credential_record(db, credential_id)

        if credential is None:
            logger.info(f"Verification requested for unknown credential {credential_id}")
            return {"found": False, "valid": False, "credential_id": credential_id}

        valid = self.check(credential)
        if not valid:
            logger.warning(f"Credential {credential_id} failed signature verification")

        return {"found": True, "valid": valid, **credential.to_dict()}


async def get_credential_record(db: AsyncSession, credential_id: str) -> Optional[Credential]:
    result = await db.execute(
        select(Credential).where(Credential.credential_id == credential_id)
    )
    return result.scalar_one_or_none()


async def get_credential(db: AsyncSession, credential_id: str) -> Credential:
    """
    Raises:
        CredentialNotFoundError: No credential with this id
    """
    credential = await get_credential_record(db, credential_id)
    if credential is None:
        raise CredentialNotFoundError(credential_id)
    return credential


async def list_public_credentials(
    db: AsyncSession,
    event_id: Optional[int] = None,
    limit: int = 100
) -> List[Credential]:
    """Public credentials, newest first."""
    query = select(Credential).where(Credential.is_public.is_(True))
    if event_id is not None:
        query = query.where(Credential.event_id == event_id)
    query = query.order_by(Credential.issued_at.desc(), Credential.id.desc()).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_credentials_for_student(db: AsyncSession, student_id: int) -> List[Credential]:
    """
    Every credential held by one student, public or not, newest first.

    Credentials only exist for published events, so this is the student's
    results history.
    """
    result = await db.execute(
        select(Credential)
        .where(Credential.student_id == student_id)
        .order_by(Credential.issued_at.desc(), Credential.id.desc())
    )
    return list(result.scalars().all())
