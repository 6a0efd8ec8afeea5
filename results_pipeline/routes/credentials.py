"""
Credential Verification API Routes.

Verification is public: anyone holding a credential id can check it.
A student's own credential history needs a bearer token.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from results_pipeline.config import settings
from results_pipeline.database import get_db
from results_pipeline.errors import CredentialNotFoundError, FeatureDisabledError, ForbiddenError
from results_pipeline.rbac import Actor, ActorRole, require_role
from results_pipeline.schemas.credentials import (
    CredentialResponse, VerifyResponse, CredentialGalleryResponse
)
from results_pipeline.services.credential_verifier import (
    CredentialVerifier, get_credential, list_credentials_for_student, list_public_credentials
)


router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.get("", response_model=CredentialGalleryResponse)
async def credential_gallery(
    event_id: Optional[int] = Query(default=None, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    """Public credentials (gold, silver, bronze), newest first."""
    if not settings.FEATURE_CREDENTIAL_GALLERY:
        raise FeatureDisabledError("Credential gallery")

    rows = await list_public_credentials(db, event_id=event_id, limit=limit)
    return CredentialGalleryResponse(
        count=len(rows),
        credentials=[row.to_dict() for row in rows]
    )


@router.get("/{credential_id}", response_model=CredentialResponse)
async def show_credential(
    credential_id: str,
    db: AsyncSession = Depends(get_db)
):
    credential = await get_credential(db, credential_id)
    return credential.to_dict()


@router.get("/{credential_id}/verify", response_model=VerifyResponse)
async def verify_credential(
    credential_id: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Recompute the credential signature from its stored fields.

    404 when the id is unknown; 200 with `valid=false` when the record
    was altered after issuance.
    """
    verifier = CredentialVerifier.from_settings()
    result = await verifier.verify(db, credential_id)
    if not result["found"]:
        raise CredentialNotFoundError(credential_id)
    return result


student_router = APIRouter(prefix="/students", tags=["credentials"])


@student_router.get("/{student_id}/credentials", response_model=CredentialGalleryResponse)
async def student_credentials(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role([ActorRole.admin, ActorRole.student]))
):
    """
    A student's credentials across all published events, newest first.

    **Roles:** Admin, Student (own credentials only)
    """
    if actor.role == ActorRole.student and actor.id != str(student_id):
        raise ForbiddenError("Students may only view their own credentials")

    rows = await list_credentials_for_student(db, student_id)
    return CredentialGalleryResponse(
        count=len(rows),
        credentials=[row.to_dict() for row in rows]
    )
